"""Unit tests for the SQLite projection store."""

import sqlite3

import pytest

from propline.exceptions import StorageError
from propline.models import analyze_with_metadata
from propline.models.types import AnalysisResult
from tests.mocks import make_stats


def _projection(external_id, player="LeBron James", sport="NBA", line="24.5", status="active"):
    return {
        "external_id": external_id,
        "player_name": player,
        "sport": sport,
        "league": sport,
        "team": "LAL",
        "opponent": "",
        "stat_type": "Points",
        "line_score": line,
        "game_time": "2024-01-15T19:00:00-05:00",
        "status": status,
    }


def _result(recommendation="over", confidence=80):
    return AnalysisResult(
        recommendation=recommendation,
        confidence_score=confidence,
        reasoning="test",
        recent_average="25.0",
        games_analyzed=5,
    )


class TestProjections:
    """Tests for projection upserts and queries."""

    def test_upsert_on_external_id(self, store):
        store.save_projections([_projection("1001", line="24.5")])
        store.save_projections([_projection("1001", line="25.5")])

        rows = store.get_active_projections()
        assert len(rows) == 1
        assert rows[0]["line_score"] == "25.5"

    def test_numeric_line_stored_as_text(self, store):
        store.save_projections([_projection("1001", line=12)])

        assert store.get_active_projections()[0]["line_score"] == "12"

    def test_active_filter_by_sport(self, store):
        store.save_projections([
            _projection("1", sport="NBA"),
            _projection("2", sport="NFL"),
            _projection("3", sport="NBA", status="completed"),
        ])

        assert [row["external_id"] for row in store.get_active_projections()] == ["1", "2"]
        assert [row["external_id"] for row in store.get_active_projections("NFL")] == ["2"]

    def test_empty_save(self, store):
        assert store.save_projections([]) == 0

    def test_missing_projection(self, store):
        assert store.get_projection_by_id(999) is None


class TestAnalyses:
    """Tests for analyses, metadata and pick queries."""

    def test_latest_analysis(self, store):
        store.save_projections([_projection("1")])
        projection_id = store.get_active_projections()[0]["id"]

        store.save_analysis(projection_id, _result("under", 60))
        latest_id = store.save_analysis(projection_id, _result("over", 80))

        latest = store.get_latest_analysis(projection_id)
        assert latest["id"] == latest_id
        assert latest["recommendation"] == "over"
        assert len(store.get_analyses_by_projection_id(projection_id)) == 2

    def test_metadata_non_finite_saved_as_null(self, store):
        store.save_projections([_projection("1", line="0")])
        projection_id = store.get_active_projections()[0]["id"]
        stats = make_stats(recent_average=5.0, last_5_games=[5, 5, 5, 5, 5])
        result, metadata = analyze_with_metadata(0, stats)

        analysis_id = store.save_analysis(projection_id, result)
        store.save_analysis_metadata(analysis_id, metadata)

        row = store.get_analysis_metadata(analysis_id)
        assert row["percent_difference"] is None
        assert row["games_over_line"] == 5
        assert row["last_game_performance"] == "5"

    def test_high_confidence_picks_use_latest_actionable(self, store):
        store.save_projections([
            _projection("1", player="A"),
            _projection("2", player="B"),
            _projection("3", player="C"),
            _projection("4", player="D", sport="NFL"),
        ])
        ids = {row["player_name"]: row["id"] for row in store.get_active_projections()}

        store.save_analysis(ids["A"], _result("over", 90))
        store.save_analysis(ids["A"], _result("over", 65))  # newer and below threshold
        store.save_analysis(ids["B"], _result("under", 75))
        store.save_analysis(ids["C"], _result("skip", 80))
        store.save_analysis(ids["D"], _result("over", 85))

        picks = store.get_high_confidence_picks(min_confidence=70)
        assert [pick["player_name"] for pick in picks] == ["D", "B"]

        nba_picks = store.get_high_confidence_picks(min_confidence=70, sport="NBA")
        assert [pick["player_name"] for pick in nba_picks] == ["B"]

        assert len(store.get_high_confidence_picks(min_confidence=0, limit=1)) == 1

    def test_constraint_violation_raises_storage_error(self, store):
        with pytest.raises(StorageError) as exc_info:
            store.save_analysis(12345, _result())

        assert exc_info.value.operation == "save_analysis"
        assert isinstance(exc_info.value.original_error, sqlite3.Error)


class TestPlayerStatsCache:
    """Tests for the player_stats cache table."""

    def test_round_trip(self, store):
        stats = make_stats(player_name="A", last_10_games=[1, 2, 3])
        store.save_player_stats(stats)

        cached = store.get_player_stats("A", "NBA", "Points")
        assert cached.recent_average == 25.0
        assert cached.last_5_games == (24, 26, 25, 27, 23)
        assert cached.last_10_games == (1, 2, 3)
        assert cached.consistency == "high"
        assert cached.trend == "increasing"

    def test_lookup_is_keyed_on_sport_and_stat(self, store):
        store.save_player_stats(make_stats(player_name="A"))

        assert store.get_player_stats("A", "NBA", "Rebounds") is None
        assert store.get_player_stats("A", "NFL", "Points") is None

    def test_stale_entry_ignored(self, store):
        store.save_player_stats(make_stats(player_name="A"))
        store._conn.execute(
            "UPDATE player_stats SET last_fetched = '2020-01-01T00:00:00+00:00'"
        )

        assert store.get_player_stats("A", "NBA", "Points", max_age_seconds=3600) is None
        assert store.get_player_stats("A", "NBA", "Points") is not None


class TestSyncLogAndPerformance:
    """Tests for api_sync_log and model_performance."""

    def test_sync_log(self, store):
        store.log_api_sync("prizepicks", "/projections", "success", sport="NBA", records_fetched=3)
        store.log_api_sync("prizepicks", "/projections", "failed", error_message="boom")

        logs = store.get_recent_sync_logs(source="prizepicks")
        assert [log["status"] for log in logs] == ["failed", "success"]
        assert logs[1]["records_fetched"] == 3

    def test_model_performance_booleans(self, store):
        store.save_projections([_projection("1")])
        projection_id = store.get_active_projections()[0]["id"]
        analysis_id = store.save_analysis(projection_id, _result())

        store.record_model_performance(analysis_id, projection_id, "over", 80, "over", True, "v1")
        store.record_model_performance(analysis_id, projection_id, "over", 80, "push", None, "v2")

        rows = store.get_model_performance()
        assert rows[0]["is_correct"] is True
        assert rows[1]["is_correct"] is None
        assert len(store.get_model_performance("v2")) == 1
