"""PrizePicks projection ingestion.

The projections endpoint returns a JSON:API document: projection rows in
`data`, with the players and leagues they reference in `included`.
"""

from dataclasses import dataclass, asdict
from typing import Dict, List, Optional
import logging

import requests

from propline.constants import LEAGUE_IDS, PRIZEPICKS_SOURCE, PROJECTION_STATUSES
from propline.exceptions import DataFetchError, PrizePicksAPIError, RateLimitError
from propline.ops import get_rate_limiter
from propline.storage import CacheStore

logger = logging.getLogger(__name__)

BASE_URL = "https://partner-api.prizepicks.com/projections"
DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
}

__all__ = ["LEAGUE_IDS", "ParsedProjection", "fetch_projections", "parse_projections"]


@dataclass
class ParsedProjection:
    """One projection joined with its player and league."""
    id: str
    player_name: str
    team: str
    sport: str
    league: str
    stat_type: str
    line_score: str
    game_time: Optional[str]
    status: str

    def to_record(self) -> Dict:
        """Row shape expected by ProjectionStore.save_projections."""
        record = asdict(self)
        record["external_id"] = record.pop("id")
        record["opponent"] = ""
        if record["status"] not in PROJECTION_STATUSES:
            record["status"] = "active"
        return record


def fetch_projections(
    league_id: Optional[str] = None,
    *,
    base_url: str = BASE_URL,
    per_page: int = 1000,
    timeout: float = 20.0,
    session: Optional[requests.Session] = None,
    cache: Optional[CacheStore] = None,
    ttl_seconds: int = 60,
) -> Dict:
    """Fetch raw projections, optionally filtered to one league.

    Raises:
        PrizePicksAPIError: non-success HTTP status
        RateLimitError: HTTP 429
        DataFetchError: network failure or undecodable body
    """
    params = {"per_page": str(per_page)}
    if league_id:
        params["league_id"] = str(league_id)

    cache_key = f"prizepicks:{league_id or 'all'}:{per_page}"
    if cache is not None:
        cached = cache.get(cache_key)
        if cached is not None:
            logger.debug("Using cached PrizePicks projections for %s", cache_key)
            return cached

    get_rate_limiter().wait(PRIZEPICKS_SOURCE)

    http = session or requests
    try:
        response = http.get(base_url, params=params, headers=DEFAULT_HEADERS, timeout=timeout)
    except requests.RequestException as exc:
        logger.error("Error fetching PrizePicks projections: %s", exc)
        raise DataFetchError(PRIZEPICKS_SOURCE, "request failed", exc) from exc

    if response.status_code == 429:
        retry_after = response.headers.get("Retry-After")
        raise RateLimitError(
            PRIZEPICKS_SOURCE,
            int(retry_after) if retry_after and retry_after.isdigit() else None,
        )
    if not response.ok:
        raise PrizePicksAPIError(response.status_code, response.reason or "", response.text)

    try:
        payload = response.json()
    except ValueError as exc:
        raise DataFetchError(PRIZEPICKS_SOURCE, "response was not JSON", exc) from exc

    if cache is not None:
        cache.set(cache_key, payload, ttl_seconds)
    logger.info("Fetched %d PrizePicks projections", len(payload.get("data") or []))
    return payload


def _attributes(item: Optional[Dict]) -> Dict:
    if not item:
        return {}
    return item.get("attributes") or {}


def _related_id(projection: Dict, name: str) -> Optional[str]:
    relationship = (projection.get("relationships") or {}).get(name) or {}
    data = relationship.get("data") or {}
    related = data.get("id")
    return str(related) if related is not None else None


def parse_projections(payload: Dict) -> List[ParsedProjection]:
    """Join projections with their included players and leagues."""
    players: Dict[str, Dict] = {}
    leagues: Dict[str, Dict] = {}
    for item in payload.get("included") or []:
        item_type = item.get("type")
        if item_type == "new_player":
            players[str(item.get("id"))] = item
        elif item_type == "league":
            leagues[str(item.get("id"))] = item

    parsed = []
    for projection in payload.get("data") or []:
        attrs = _attributes(projection)
        player_id = _related_id(projection, "new_player")
        league_id = _related_id(projection, "league")
        player = _attributes(players.get(player_id)) if player_id else {}
        league = _attributes(leagues.get(league_id)) if league_id else {}

        line_score = attrs.get("line_score")
        parsed.append(ParsedProjection(
            id=str(projection.get("id")),
            player_name=player.get("name") or "Unknown",
            team=player.get("team_name") or player.get("team") or "",
            sport=league.get("sport") or league.get("name") or "",
            league=league.get("name") or "",
            stat_type=attrs.get("stat_type") or "",
            line_score="" if line_score is None else str(line_score),
            game_time=attrs.get("board_time") or None,
            status=attrs.get("status") or "active",
        ))
    return parsed
