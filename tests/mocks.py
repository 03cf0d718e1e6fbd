"""Stub collaborators for propline tests."""

import json

from propline.ingestion.stats import StatsProvider, empty_stats
from propline.models.types import StatsSummary


class StubLimiter:
    def wait(self, source, interval=None):
        return 0.0

    def set_interval(self, source, interval):
        pass


class StubResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, payload=None, text=None, headers=None, reason="OK"):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)
        self.headers = headers or {}
        self.reason = reason

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class StubSession:
    """Records get/post calls and replays canned responses in order."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)


class RecordingStatsProvider(StatsProvider):
    """Serves fixed summaries and counts lookups per player."""

    name = "recording"

    def __init__(self, summaries=None, failing=()):
        self.summaries = dict(summaries or {})
        self.failing = set(failing)
        self.calls = []

    def get_player_stats(self, player_name, sport, stat_type):
        self.calls.append(player_name)
        if player_name in self.failing:
            raise RuntimeError(f"upstream unavailable for {player_name}")
        summary = self.summaries.get(player_name)
        if summary is None:
            return empty_stats(player_name, sport, stat_type)
        return summary


def make_stats(player_name="Test Player", sport="NBA", stat_type="Points", **overrides):
    values = {
        "recent_average": 25.0,
        "last_5_games": [24, 26, 25, 27, 23],
        "last_10_games": [24, 26, 25, 27, 23, 22, 28, 25, 26, 24],
        "consistency": "high",
        "trend": "increasing",
    }
    values.update(overrides)
    return StatsSummary(player_name=player_name, sport=sport, stat_type=stat_type, **values)


def make_prizepicks_payload(projections):
    """
    Build a JSON:API document from (id, player, team, league, stat, line) tuples.

    League names double as sport names, which is how PrizePicks reports them.
    """
    data = []
    players = {}
    leagues = {}
    for projection_id, player, team, league, stat_type, line in projections:
        player_id = f"p-{player}"
        league_id = {"NBA": "7", "NFL": "9", "MLB": "2", "NHL": "8", "CFB": "11"}.get(league, "99")
        players[player_id] = {
            "type": "new_player",
            "id": player_id,
            "attributes": {"name": player, "team_name": team},
        }
        leagues[league_id] = {
            "type": "league",
            "id": league_id,
            "attributes": {"name": league},
        }
        data.append({
            "type": "projection",
            "id": projection_id,
            "attributes": {
                "line_score": line,
                "stat_type": stat_type,
                "board_time": "2024-01-15T19:00:00-05:00",
                "status": "pre_game",
            },
            "relationships": {
                "new_player": {"data": {"type": "new_player", "id": player_id}},
                "league": {"data": {"type": "league", "id": league_id}},
            },
        })
    return {"data": data, "included": list(players.values()) + list(leagues.values())}
