"""Player statistics providers.

Every provider answers the same question: given a player, sport and stat
type, return a StatsSummary. The engine does not care where the numbers come
from (a stats API, the local cache, or a language model asked for recent game
values), only that the summary has the fixed shape.

Usage:
    from propline.ingestion.stats import LLMStatsProvider, batch_get_player_stats

    provider = LLMStatsProvider(api_key="...")
    result = batch_get_player_stats(provider, [("LeBron James", "NBA", "Points")])
    print(result.summaries[0].recent_average)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
import asyncio
import json
import logging
import math

import aiohttp
import requests

from propline.constants import CONSISTENCY_LEVELS, STATS_SOURCE, TREND_DIRECTIONS
from propline.exceptions import StatsParseError, StorageError
from propline.models.types import StatsSummary
from propline.ops import get_rate_limiter

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.perplexity.ai/chat/completions"
DEFAULT_MODEL = "sonar"
DEFAULT_BATCH_SIZE = 5

SYSTEM_PROMPT = (
    "You are a sports statistics expert with knowledge of player performance across "
    "all major sports. Provide accurate, realistic statistics."
)

USER_PROMPT = """You are a sports statistics expert. Provide recent performance data for {player} in {sport} for the stat: {stat_type}.

Please provide:
1. Last 5 games statistics for {stat_type}
2. Last 10 games statistics for {stat_type}
3. Recent average (last 5-10 games)
4. Performance consistency (high/medium/low based on variance)
5. Trend (increasing/stable/decreasing)

Format your response as JSON with this structure:
{{
  "playerName": "{player}",
  "sport": "{sport}",
  "statType": "{stat_type}",
  "recentAverage": <number or null>,
  "last5Games": [<array of numbers>],
  "last10Games": [<array of numbers>],
  "consistency": "high" | "medium" | "low",
  "trend": "increasing" | "stable" | "decreasing"
}}

If you don't have exact data, provide realistic estimates based on the player's typical performance level. If the player is unknown or the stat doesn't apply, return null for recentAverage and empty arrays."""

RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "playerName": {"type": "string"},
        "sport": {"type": "string"},
        "statType": {"type": "string"},
        "recentAverage": {"type": ["number", "null"]},
        "last5Games": {"type": "array", "items": {"type": "number"}},
        "last10Games": {"type": "array", "items": {"type": "number"}},
        "consistency": {"type": "string", "enum": list(CONSISTENCY_LEVELS)},
        "trend": {"type": "string", "enum": list(TREND_DIRECTIONS)},
    },
    "required": [
        "playerName", "sport", "statType", "recentAverage",
        "last5Games", "last10Games", "consistency", "trend",
    ],
    "additionalProperties": False,
}


def empty_stats(player_name: str, sport: str, stat_type: str) -> StatsSummary:
    """Summary used when no statistics could be obtained."""
    return StatsSummary(
        player_name=player_name,
        sport=sport,
        stat_type=stat_type,
        recent_average=None,
        last_5_games=(),
        last_10_games=(),
        consistency="low",
        trend="stable",
    )


def _coerce_number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _coerce_games(values) -> Tuple[float, ...]:
    if not isinstance(values, (list, tuple)):
        return ()
    games = (_coerce_number(value) for value in values)
    return tuple(game for game in games if game is not None)


def stats_from_payload(
    payload: Mapping,
    player_name: str,
    sport: str,
    stat_type: str,
) -> StatsSummary:
    """Validate a provider payload (camelCase keys) into a StatsSummary."""
    if not isinstance(payload, Mapping):
        raise StatsParseError(f"Expected a JSON object, got {type(payload).__name__}")

    consistency = str(payload.get("consistency") or "").lower()
    if consistency not in CONSISTENCY_LEVELS:
        consistency = "low"
    trend = str(payload.get("trend") or "").lower()
    if trend not in TREND_DIRECTIONS:
        trend = "stable"

    return StatsSummary(
        player_name=player_name,
        sport=sport,
        stat_type=stat_type,
        recent_average=_coerce_number(payload.get("recentAverage")),
        last_5_games=_coerce_games(payload.get("last5Games")),
        last_10_games=_coerce_games(payload.get("last10Games")),
        consistency=consistency,
        trend=trend,
    )


def _extract_json(content: str) -> Dict:
    """Pull the JSON object out of a model reply (tolerates code fences)."""
    text = (content or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise StatsParseError("No JSON object in model response")
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError as exc:
            raise StatsParseError(f"Malformed JSON in model response: {exc}") from exc


class StatsProvider:
    """Interface for anything that can summarise a player's recent games."""

    name = "base"

    def get_player_stats(self, player_name: str, sport: str, stat_type: str) -> StatsSummary:
        raise NotImplementedError

    async def fetch_player_stats(
        self,
        session: Optional[aiohttp.ClientSession],
        player_name: str,
        sport: str,
        stat_type: str,
    ) -> StatsSummary:
        """Async variant; by default runs the sync lookup in the executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self.get_player_stats, player_name, sport, stat_type
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


class StaticStatsProvider(StatsProvider):
    """Serves summaries from memory; unknown players get empty stats."""

    name = "static"

    def __init__(self, summaries: Optional[Mapping] = None) -> None:
        self._summaries: Dict = dict(summaries or {})

    def add(self, summary: StatsSummary) -> None:
        self._summaries[(summary.player_name, summary.sport, summary.stat_type)] = summary

    def get_player_stats(self, player_name: str, sport: str, stat_type: str) -> StatsSummary:
        summary = self._summaries.get((player_name, sport, stat_type))
        if summary is None:
            summary = self._summaries.get(player_name)
        return summary or empty_stats(player_name, sport, stat_type)


class LLMStatsProvider(StatsProvider):
    """
    Asks a chat-completions model for a player's recent game values.

    Any OpenAI-compatible endpoint works; Perplexity is the default. Failures
    (network, HTTP status, unparseable reply) are logged and answered with
    empty stats so a single player never breaks a batch.
    """

    name = "llm"

    def __init__(
        self,
        api_key: str,
        api_url: str = DEFAULT_API_URL,
        model: str = DEFAULT_MODEL,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.timeout = timeout
        self._session = session

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_request(self, player_name: str, sport: str, stat_type: str) -> Dict:
        prompt = USER_PROMPT.format(player=player_name, sport=sport, stat_type=stat_type)
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.1,
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": "player_stats",
                    "strict": True,
                    "schema": RESPONSE_SCHEMA,
                },
            },
        }

    def parse_response(
        self,
        payload: Mapping,
        player_name: str,
        sport: str,
        stat_type: str,
    ) -> StatsSummary:
        choices = payload.get("choices") or []
        if not choices:
            raise StatsParseError("No choices in model response")
        content = (choices[0].get("message") or {}).get("content")
        if not content or not isinstance(content, str):
            raise StatsParseError("No content in model response")
        return stats_from_payload(_extract_json(content), player_name, sport, stat_type)

    def get_player_stats(self, player_name: str, sport: str, stat_type: str) -> StatsSummary:
        if not self.api_key:
            logger.warning("Stats API key missing; returning empty stats for %s.", player_name)
            return empty_stats(player_name, sport, stat_type)

        get_rate_limiter().wait(STATS_SOURCE)
        http = self._session or requests
        try:
            response = http.post(
                self.api_url,
                headers=self._headers(),
                json=self.build_request(player_name, sport, stat_type),
                timeout=self.timeout,
            )
            if response.status_code != 200:
                logger.warning("Stats API error for %s: %s", player_name, response.status_code)
                return empty_stats(player_name, sport, stat_type)
            return self.parse_response(response.json(), player_name, sport, stat_type)
        except requests.RequestException as exc:
            logger.warning("Stats request failed for %s: %s", player_name, exc)
        except (ValueError, StatsParseError) as exc:
            logger.warning("Could not parse stats for %s: %s", player_name, exc)
        return empty_stats(player_name, sport, stat_type)

    async def fetch_player_stats(
        self,
        session: Optional[aiohttp.ClientSession],
        player_name: str,
        sport: str,
        stat_type: str,
    ) -> StatsSummary:
        if not self.api_key:
            logger.warning("Stats API key missing; returning empty stats for %s.", player_name)
            return empty_stats(player_name, sport, stat_type)
        if session is None:
            async with aiohttp.ClientSession() as own_session:
                return await self.fetch_player_stats(own_session, player_name, sport, stat_type)

        try:
            async with session.post(
                self.api_url,
                headers=self._headers(),
                json=self.build_request(player_name, sport, stat_type),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status != 200:
                    logger.warning("Stats API error for %s: %s", player_name, response.status)
                    return empty_stats(player_name, sport, stat_type)
                payload = await response.json(content_type=None)
            return self.parse_response(payload, player_name, sport, stat_type)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Stats request failed for %s: %s", player_name, exc)
        except (ValueError, StatsParseError) as exc:
            logger.warning("Could not parse stats for %s: %s", player_name, exc)
        return empty_stats(player_name, sport, stat_type)


class CachedStatsProvider(StatsProvider):
    """Serves fresh summaries from the store's player_stats cache, else asks upstream."""

    name = "cached"

    def __init__(self, store, upstream: StatsProvider, ttl_seconds: int = 3600) -> None:
        self._store = store
        self._upstream = upstream
        self._ttl_seconds = ttl_seconds

    def _lookup(self, player_name: str, sport: str, stat_type: str) -> Optional[StatsSummary]:
        try:
            return self._store.get_player_stats(
                player_name, sport, stat_type, max_age_seconds=self._ttl_seconds
            )
        except StorageError as exc:
            logger.warning("Stats cache read failed for %s: %s", player_name, exc)
            return None

    def _remember(self, summary: StatsSummary) -> None:
        # Empty summaries are not cached so the next run retries upstream
        if not summary.has_data:
            return
        try:
            self._store.save_player_stats(summary)
        except StorageError as exc:
            logger.warning("Stats cache write failed for %s: %s", summary.player_name, exc)

    def get_player_stats(self, player_name: str, sport: str, stat_type: str) -> StatsSummary:
        cached = self._lookup(player_name, sport, stat_type)
        if cached is not None:
            return cached
        summary = self._upstream.get_player_stats(player_name, sport, stat_type)
        self._remember(summary)
        return summary

    async def fetch_player_stats(
        self,
        session: Optional[aiohttp.ClientSession],
        player_name: str,
        sport: str,
        stat_type: str,
    ) -> StatsSummary:
        cached = self._lookup(player_name, sport, stat_type)
        if cached is not None:
            return cached
        summary = await self._upstream.fetch_player_stats(session, player_name, sport, stat_type)
        self._remember(summary)
        return summary


@dataclass(frozen=True)
class StatsRequest:
    player_name: str
    sport: str
    stat_type: str


@dataclass
class StatsBatchResult:
    """Summaries in request order plus any per-item errors."""
    summaries: List[StatsSummary]
    total_fetch_time_ms: float = 0.0
    errors: List[str] = field(default_factory=list)

    @property
    def players_with_data(self) -> int:
        return sum(1 for summary in self.summaries if summary.has_data)


RequestLike = Union[StatsRequest, Sequence[str], Mapping]


def _as_request(item: RequestLike) -> StatsRequest:
    if isinstance(item, StatsRequest):
        return item
    if isinstance(item, Mapping):
        return StatsRequest(
            player_name=item.get("player_name") or item.get("playerName") or "",
            sport=item.get("sport") or "",
            stat_type=item.get("stat_type") or item.get("statType") or "",
        )
    player_name, sport, stat_type = item
    return StatsRequest(player_name, sport, stat_type)


async def fetch_stats_batch(
    provider: StatsProvider,
    items: Iterable[RequestLike],
    batch_size: int = DEFAULT_BATCH_SIZE,
    session: Optional[aiohttp.ClientSession] = None,
) -> StatsBatchResult:
    """
    Fetch stats for many players with at most `batch_size` calls in flight.

    Results keep the request order. A failing item is logged, recorded in
    `errors` and answered with empty stats; the rest of the batch continues.
    """
    start_time = datetime.now()
    stats_requests = [_as_request(item) for item in items]
    errors: List[str] = []
    if not stats_requests:
        return StatsBatchResult(summaries=[], errors=errors)

    semaphore = asyncio.Semaphore(max(1, batch_size))

    async def fetch_one(client: Optional[aiohttp.ClientSession], request: StatsRequest) -> StatsSummary:
        async with semaphore:
            try:
                return await provider.fetch_player_stats(
                    client, request.player_name, request.sport, request.stat_type
                )
            except Exception as e:
                logger.warning("Stats fetch failed for %s: %s", request.player_name, e)
                errors.append(f"{request.player_name}: {e}")
                return empty_stats(request.player_name, request.sport, request.stat_type)

    async def run(client: Optional[aiohttp.ClientSession]) -> List[StatsSummary]:
        return list(await asyncio.gather(*(fetch_one(client, request) for request in stats_requests)))

    if session is None:
        async with aiohttp.ClientSession() as own_session:
            summaries = await run(own_session)
    else:
        summaries = await run(session)

    total_time = (datetime.now() - start_time).total_seconds() * 1000
    return StatsBatchResult(summaries=summaries, total_fetch_time_ms=total_time, errors=errors)


def batch_get_player_stats(
    provider: StatsProvider,
    items: Iterable[RequestLike],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> StatsBatchResult:
    """Synchronous wrapper around fetch_stats_batch."""
    return asyncio.run(fetch_stats_batch(provider, list(items), batch_size=batch_size))
