"""Unit tests for stats providers and batch fetching."""

import asyncio
import json

import pytest
import requests

from propline.exceptions import StatsParseError
from propline.ingestion.stats import (
    CachedStatsProvider,
    LLMStatsProvider,
    StaticStatsProvider,
    StatsProvider,
    StatsRequest,
    batch_get_player_stats,
    empty_stats,
    fetch_stats_batch,
    stats_from_payload,
)
from propline.ingestion.stats import _extract_json
from tests.mocks import RecordingStatsProvider, StubResponse, StubSession, make_stats


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


VALID_PAYLOAD = {
    "playerName": "LeBron James",
    "sport": "NBA",
    "statType": "Points",
    "recentAverage": 26.4,
    "last5Games": [28, 25, 31, 22, 26],
    "last10Games": [28, 25, 31, 22, 26, 24, 30, 27, 23, 28],
    "consistency": "medium",
    "trend": "increasing",
}


class TestStatsFromPayload:
    """Tests for validating provider payloads."""

    def test_valid_payload(self):
        stats = stats_from_payload(VALID_PAYLOAD, "LeBron James", "NBA", "Points")

        assert stats.recent_average == 26.4
        assert stats.last_5_games == (28.0, 25.0, 31.0, 22.0, 26.0)
        assert len(stats.last_10_games) == 10
        assert stats.consistency == "medium"
        assert stats.trend == "increasing"
        assert stats.has_data

    def test_invalid_values_are_normalized(self):
        payload = {
            "recentAverage": "n/a",
            "last5Games": [20, "DNP", None, 18.5, True],
            "consistency": "very high",
            "trend": "sideways",
        }
        stats = stats_from_payload(payload, "Player", "NBA", "Points")

        assert stats.recent_average is None
        assert stats.last_5_games == (20.0, 18.5)
        assert stats.last_10_games == ()
        assert stats.consistency == "low"
        assert stats.trend == "stable"
        assert not stats.has_data

    def test_non_mapping_rejected(self):
        with pytest.raises(StatsParseError):
            stats_from_payload([1, 2, 3], "Player", "NBA", "Points")

    def test_empty_stats_shape(self):
        stats = empty_stats("Player", "NFL", "Pass Yards")

        assert stats.recent_average is None
        assert stats.last_5_games == ()
        assert stats.consistency == "low"
        assert stats.trend == "stable"

    def test_extract_json_from_code_fence(self):
        content = "```json\n" + json.dumps(VALID_PAYLOAD) + "\n```"

        assert _extract_json(content)["recentAverage"] == 26.4

    def test_extract_json_with_surrounding_text(self):
        content = "Here are the stats: " + json.dumps(VALID_PAYLOAD) + " Hope this helps."

        assert _extract_json(content)["trend"] == "increasing"

    def test_extract_json_without_object(self):
        with pytest.raises(StatsParseError):
            _extract_json("I don't know that player.")


class TestLLMStatsProvider:
    """Tests for the chat-completions stats provider (sync path)."""

    def test_successful_lookup(self, no_rate_limit):
        session = StubSession(StubResponse(payload=_completion(json.dumps(VALID_PAYLOAD))))
        provider = LLMStatsProvider(api_key="test-key", session=session)

        stats = provider.get_player_stats("LeBron James", "NBA", "Points")

        assert stats.recent_average == 26.4
        method, url, kwargs = session.calls[0]
        assert method == "POST"
        assert url == "https://api.perplexity.ai/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer test-key"
        assert kwargs["json"]["model"] == "sonar"
        assert "LeBron James in NBA for the stat: Points" in kwargs["json"]["messages"][1]["content"]

    def test_missing_key_skips_request(self, no_rate_limit):
        session = StubSession(StubResponse(payload=_completion("{}")))
        provider = LLMStatsProvider(api_key="", session=session)

        stats = provider.get_player_stats("Player", "NBA", "Points")

        assert stats == empty_stats("Player", "NBA", "Points")
        assert session.calls == []

    def test_http_error_returns_empty(self, no_rate_limit):
        session = StubSession(StubResponse(status_code=500, payload={"error": "boom"}))
        provider = LLMStatsProvider(api_key="test-key", session=session)

        stats = provider.get_player_stats("Player", "NBA", "Points")

        assert not stats.has_data

    def test_network_error_returns_empty(self, no_rate_limit):
        session = StubSession(requests.Timeout("timed out"))
        provider = LLMStatsProvider(api_key="test-key", session=session)

        assert not provider.get_player_stats("Player", "NBA", "Points").has_data

    def test_unparseable_reply_returns_empty(self, no_rate_limit):
        session = StubSession(StubResponse(payload=_completion("no idea")))
        provider = LLMStatsProvider(api_key="test-key", session=session)

        assert not provider.get_player_stats("Player", "NBA", "Points").has_data

    def test_no_choices_raises_parse_error(self):
        provider = LLMStatsProvider(api_key="test-key")

        with pytest.raises(StatsParseError):
            provider.parse_response({"choices": []}, "Player", "NBA", "Points")


class TestStaticAndCachedProviders:
    """Tests for the in-memory and store-backed providers."""

    def test_static_lookup_by_key_and_name(self):
        stats = make_stats(player_name="A")
        provider = StaticStatsProvider({("A", "NBA", "Points"): stats, "B": make_stats(player_name="B")})

        assert provider.get_player_stats("A", "NBA", "Points") is stats
        assert provider.get_player_stats("B", "NFL", "Yards").player_name == "B"
        assert not provider.get_player_stats("C", "NBA", "Points").has_data

    def test_cached_provider_stores_and_reuses(self, store):
        upstream = RecordingStatsProvider({"A": make_stats(player_name="A")})
        provider = CachedStatsProvider(store, upstream, ttl_seconds=3600)

        first = provider.get_player_stats("A", "NBA", "Points")
        second = provider.get_player_stats("A", "NBA", "Points")

        assert upstream.calls == ["A"]
        assert first == second

    def test_cached_provider_does_not_store_empty_stats(self, store):
        upstream = RecordingStatsProvider()
        provider = CachedStatsProvider(store, upstream)

        provider.get_player_stats("Nobody", "NBA", "Points")
        provider.get_player_stats("Nobody", "NBA", "Points")

        assert upstream.calls == ["Nobody", "Nobody"]
        assert store.get_player_stats("Nobody", "NBA", "Points") is None

    @pytest.mark.asyncio
    async def test_cached_provider_async_path(self, store):
        store.save_player_stats(make_stats(player_name="A"))
        upstream = RecordingStatsProvider()
        provider = CachedStatsProvider(store, upstream)

        stats = await provider.fetch_player_stats(None, "A", "NBA", "Points")

        assert stats.recent_average == 25.0
        assert upstream.calls == []


class ConcurrencyProbe(StatsProvider):
    """Async provider that records how many lookups overlap."""

    def __init__(self):
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_player_stats(self, session, player_name, sport, stat_type):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        return make_stats(player_name=player_name, sport=sport, stat_type=stat_type)


class TestBatchFetching:
    """Tests for bounded concurrent stats fetching."""

    @pytest.mark.asyncio
    async def test_batch_preserves_order(self):
        provider = RecordingStatsProvider({
            "A": make_stats(player_name="A"),
            "C": make_stats(player_name="C", recent_average=12.0),
        })
        requests_ = [("A", "NBA", "Points"), ("B", "NBA", "Points"), ("C", "NBA", "Points")]

        result = await fetch_stats_batch(provider, requests_, batch_size=2)

        assert [s.player_name for s in result.summaries] == ["A", "B", "C"]
        assert result.summaries[2].recent_average == 12.0
        assert result.players_with_data == 2
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_failed_item_does_not_stop_batch(self):
        provider = RecordingStatsProvider({"A": make_stats(player_name="A")}, failing={"B"})

        result = await fetch_stats_batch(
            provider,
            [StatsRequest("A", "NBA", "Points"), StatsRequest("B", "NBA", "Points")],
        )

        assert result.summaries[0].has_data
        assert result.summaries[1] == empty_stats("B", "NBA", "Points")
        assert len(result.errors) == 1
        assert "B" in result.errors[0]

    @pytest.mark.asyncio
    async def test_batch_size_bounds_concurrency(self):
        provider = ConcurrencyProbe()
        requests_ = [(f"P{i}", "NBA", "Points") for i in range(12)]

        result = await fetch_stats_batch(provider, requests_, batch_size=3)

        assert len(result.summaries) == 12
        assert provider.max_in_flight <= 3

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        result = await fetch_stats_batch(RecordingStatsProvider(), [])

        assert result.summaries == []

    def test_sync_wrapper_accepts_mappings(self):
        provider = RecordingStatsProvider({"A": make_stats(player_name="A")})

        result = batch_get_player_stats(
            provider,
            [{"player_name": "A", "sport": "NBA", "stat_type": "Points"}],
        )

        assert result.summaries[0].player_name == "A"
        assert provider.calls == ["A"]
