"""
Pytest configuration and shared fixtures for propline tests.
"""

import pytest

from propline.ingestion import prizepicks as prizepicks_ingestion
from propline.ingestion import stats as stats_ingestion
from propline.storage import ProjectionStore
from tests.mocks import StubLimiter, make_prizepicks_payload, make_stats


@pytest.fixture
def store():
    """Initialised in-memory projection store."""
    projection_store = ProjectionStore(":memory:")
    projection_store.init_schema()
    yield projection_store
    projection_store.close()


@pytest.fixture
def no_rate_limit(monkeypatch):
    """Replace the shared rate limiter so tests never sleep."""
    monkeypatch.setattr(prizepicks_ingestion, "get_rate_limiter", lambda: StubLimiter())
    monkeypatch.setattr(stats_ingestion, "get_rate_limiter", lambda: StubLimiter())


@pytest.fixture
def sample_payload():
    """PrizePicks response with three NBA projections and one NFL projection."""
    return make_prizepicks_payload([
        ("1001", "LeBron James", "LAL", "NBA", "Points", 24.5),
        ("1002", "Stephen Curry", "GSW", "NBA", "3-PT Made", 4.5),
        ("1003", "Nikola Jokic", "DEN", "NBA", "Rebounds", 12),
        ("2001", "Patrick Mahomes", "KC", "NFL", "Pass Yards", 275.5),
    ])


@pytest.fixture
def strong_over_stats():
    """Stats well above a 20 line with high consistency and upward trend."""
    return make_stats(recent_average=25.0, last_5_games=[24, 26, 25, 27, 23])
