"""SQLite-backed projection store.

The store is constructed explicitly and handed to whatever needs it; there is
no module-level connection. Pass ":memory:" for a throwaway database in tests.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Union
import json
import logging
import sqlite3
import threading

from propline.exceptions import StorageError
from propline.models.types import AnalysisMetadata, AnalysisResult, StatsSummary

logger = logging.getLogger(__name__)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS projections (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id TEXT NOT NULL UNIQUE,
    player_name TEXT NOT NULL,
    sport TEXT NOT NULL,
    league TEXT,
    team TEXT,
    opponent TEXT,
    stat_type TEXT NOT NULL,
    line_score TEXT NOT NULL,
    game_time TEXT,
    status TEXT NOT NULL DEFAULT 'active'
        CHECK (status IN ('active', 'completed', 'cancelled')),
    fetched_at TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS analyses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    projection_id INTEGER NOT NULL REFERENCES projections(id) ON DELETE CASCADE,
    recommendation TEXT NOT NULL CHECK (recommendation IN ('over', 'under', 'skip')),
    confidence_score INTEGER NOT NULL CHECK (confidence_score BETWEEN 0 AND 100),
    recent_average TEXT,
    games_analyzed INTEGER,
    reasoning TEXT,
    analyzed_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS analysis_metadata (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    analysis_id INTEGER NOT NULL REFERENCES analyses(id) ON DELETE CASCADE,
    recent_average_value REAL,
    line_score_value REAL,
    percent_difference REAL,
    hit_rate_5_games REAL,
    games_over_line INTEGER,
    games_under_line INTEGER,
    standard_deviation REAL,
    coefficient_of_variation REAL,
    trend_indicator TEXT CHECK (trend_indicator IN ('increasing', 'stable', 'decreasing')),
    consistency_indicator TEXT CHECK (consistency_indicator IN ('high', 'medium', 'low')),
    last_game_performance TEXT,
    last_3_games_average REAL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS player_stats (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    player_name TEXT NOT NULL,
    sport TEXT NOT NULL,
    stat_type TEXT NOT NULL,
    recent_games TEXT,
    average TEXT,
    last_fetched TEXT NOT NULL,
    UNIQUE (player_name, sport, stat_type)
);

CREATE TABLE IF NOT EXISTS api_sync_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source TEXT NOT NULL CHECK (source IN ('prizepicks', 'statmuse')),
    endpoint TEXT NOT NULL,
    sport TEXT,
    status TEXT NOT NULL CHECK (status IN ('success', 'partial', 'failed')),
    records_fetched INTEGER DEFAULT 0,
    records_processed INTEGER DEFAULT 0,
    error_message TEXT,
    request_duration_ms INTEGER,
    started_at TEXT NOT NULL,
    completed_at TEXT
);

CREATE TABLE IF NOT EXISTS model_performance (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    analysis_id INTEGER NOT NULL REFERENCES analyses(id) ON DELETE CASCADE,
    projection_id INTEGER NOT NULL REFERENCES projections(id) ON DELETE CASCADE,
    prediction_over_under TEXT NOT NULL CHECK (prediction_over_under IN ('over', 'under')),
    prediction_confidence INTEGER NOT NULL,
    actual_outcome TEXT CHECK (actual_outcome IN ('over', 'under', 'push', 'cancelled', 'unknown')),
    is_correct INTEGER,
    model_version TEXT,
    evaluated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_projections_status ON projections(status);
CREATE INDEX IF NOT EXISTS idx_projections_sport ON projections(sport);
CREATE INDEX IF NOT EXISTS idx_analyses_projection_id ON analyses(projection_id);
CREATE INDEX IF NOT EXISTS idx_analysis_metadata_analysis_id ON analysis_metadata(analysis_id);
CREATE INDEX IF NOT EXISTS idx_api_sync_log_source ON api_sync_log(source);
CREATE INDEX IF NOT EXISTS idx_model_performance_version ON model_performance(model_version);
"""

_PROJECTION_FIELDS = (
    "external_id",
    "player_name",
    "sport",
    "league",
    "team",
    "opponent",
    "stat_type",
    "line_score",
    "game_time",
    "status",
)


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ProjectionStore:
    """Persists projections, analyses and the supporting tables."""

    def __init__(self, database: Union[str, Path, sqlite3.Connection] = ":memory:") -> None:
        if isinstance(database, sqlite3.Connection):
            self._conn = database
            self._path = None
        else:
            path = str(database)
            if path != ":memory:":
                Path(path).parent.mkdir(parents=True, exist_ok=True)
            # Stats batches call into the store from executor threads
            self._conn = sqlite3.connect(path, check_same_thread=False)
            self._path = path
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.RLock()

    def __enter__(self) -> "ProjectionStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def _operation(self, name: str) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as exc:
                logger.error("Storage operation %s failed: %s", name, exc)
                raise StorageError(name, exc) from exc

    def init_schema(self) -> None:
        with self._operation("init_schema") as conn:
            conn.executescript(_SCHEMA)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def save_projections(self, projections: Iterable[Mapping]) -> int:
        """Insert or refresh projections keyed on external_id."""
        now = _utcnow()
        rows = []
        for projection in projections:
            row = {field: projection.get(field) for field in _PROJECTION_FIELDS}
            row["status"] = row["status"] or "active"
            row["line_score"] = str(row["line_score"])
            row["fetched_at"] = now
            row["created_at"] = now
            rows.append(row)
        if not rows:
            return 0
        with self._operation("save_projections") as conn:
            conn.executemany(
                """
                INSERT INTO projections (
                    external_id, player_name, sport, league, team, opponent,
                    stat_type, line_score, game_time, status, fetched_at, created_at
                ) VALUES (
                    :external_id, :player_name, :sport, :league, :team, :opponent,
                    :stat_type, :line_score, :game_time, :status, :fetched_at, :created_at
                )
                ON CONFLICT(external_id) DO UPDATE SET
                    player_name = excluded.player_name,
                    sport = excluded.sport,
                    league = excluded.league,
                    team = excluded.team,
                    opponent = excluded.opponent,
                    stat_type = excluded.stat_type,
                    line_score = excluded.line_score,
                    game_time = excluded.game_time,
                    status = excluded.status,
                    fetched_at = excluded.fetched_at
                """,
                rows,
            )
        return len(rows)

    def get_active_projections(self, sport: Optional[str] = None) -> List[Dict]:
        query = "SELECT * FROM projections WHERE status = 'active'"
        params: List = []
        if sport:
            query += " AND sport = ?"
            params.append(sport)
        query += " ORDER BY id"
        with self._operation("get_active_projections") as conn:
            return [dict(row) for row in conn.execute(query, params)]

    def get_projection_by_id(self, projection_id: int) -> Optional[Dict]:
        with self._operation("get_projection_by_id") as conn:
            row = conn.execute(
                "SELECT * FROM projections WHERE id = ?", (projection_id,)
            ).fetchone()
        return dict(row) if row else None

    def set_projection_status(self, projection_id: int, status: str) -> None:
        with self._operation("set_projection_status") as conn:
            conn.execute(
                "UPDATE projections SET status = ? WHERE id = ?", (status, projection_id)
            )

    # ------------------------------------------------------------------
    # Analyses
    # ------------------------------------------------------------------

    def save_analysis(self, projection_id: int, result: AnalysisResult) -> int:
        with self._operation("save_analysis") as conn:
            cursor = conn.execute(
                """
                INSERT INTO analyses (
                    projection_id, recommendation, confidence_score,
                    recent_average, games_analyzed, reasoning, analyzed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    projection_id,
                    result.recommendation,
                    result.confidence_score,
                    result.recent_average,
                    result.games_analyzed,
                    result.reasoning,
                    _utcnow(),
                ),
            )
            return cursor.lastrowid

    def get_analysis_by_id(self, analysis_id: int) -> Optional[Dict]:
        with self._operation("get_analysis_by_id") as conn:
            row = conn.execute("SELECT * FROM analyses WHERE id = ?", (analysis_id,)).fetchone()
        return dict(row) if row else None

    def get_analyses_by_projection_id(self, projection_id: int) -> List[Dict]:
        with self._operation("get_analyses_by_projection_id") as conn:
            rows = conn.execute(
                "SELECT * FROM analyses WHERE projection_id = ? ORDER BY id",
                (projection_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    def get_latest_analysis(self, projection_id: int) -> Optional[Dict]:
        with self._operation("get_latest_analysis") as conn:
            row = conn.execute(
                "SELECT * FROM analyses WHERE projection_id = ? ORDER BY id DESC LIMIT 1",
                (projection_id,),
            ).fetchone()
        return dict(row) if row else None

    def save_analysis_metadata(self, analysis_id: int, metadata: AnalysisMetadata) -> int:
        record = metadata.to_record()
        record["analysis_id"] = analysis_id
        record["created_at"] = _utcnow()
        columns = ", ".join(record)
        placeholders = ", ".join(f":{key}" for key in record)
        with self._operation("save_analysis_metadata") as conn:
            cursor = conn.execute(
                f"INSERT INTO analysis_metadata ({columns}) VALUES ({placeholders})",
                record,
            )
            return cursor.lastrowid

    def get_analysis_metadata(self, analysis_id: int) -> Optional[Dict]:
        with self._operation("get_analysis_metadata") as conn:
            row = conn.execute(
                "SELECT * FROM analysis_metadata WHERE analysis_id = ? ORDER BY id DESC LIMIT 1",
                (analysis_id,),
            ).fetchone()
        return dict(row) if row else None

    def get_high_confidence_picks(
        self,
        min_confidence: int = 70,
        sport: Optional[str] = None,
        limit: int = 50,
    ) -> List[Dict]:
        """Latest over/under analysis per active projection at or above min_confidence."""
        query = """
            SELECT p.player_name, p.sport, p.stat_type, p.line_score, p.game_time,
                   a.recommendation, a.confidence_score, a.reasoning
            FROM projections p
            JOIN analyses a ON a.id = (
                SELECT MAX(id) FROM analyses WHERE projection_id = p.id
            )
            WHERE p.status = 'active'
              AND a.recommendation IN ('over', 'under')
              AND a.confidence_score >= ?
        """
        params: List = [min_confidence]
        if sport:
            query += " AND p.sport = ?"
            params.append(sport)
        query += " ORDER BY a.confidence_score DESC, p.id LIMIT ?"
        params.append(limit)
        with self._operation("get_high_confidence_picks") as conn:
            return [dict(row) for row in conn.execute(query, params)]

    # ------------------------------------------------------------------
    # Player stats cache
    # ------------------------------------------------------------------

    def save_player_stats(self, stats: StatsSummary) -> None:
        recent_games = json.dumps({
            "last5Games": list(stats.last_5_games),
            "last10Games": list(stats.last_10_games),
            "consistency": stats.consistency,
            "trend": stats.trend,
        })
        average = None if stats.recent_average is None else str(stats.recent_average)
        with self._operation("save_player_stats") as conn:
            conn.execute(
                """
                INSERT INTO player_stats (player_name, sport, stat_type, recent_games, average, last_fetched)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(player_name, sport, stat_type) DO UPDATE SET
                    recent_games = excluded.recent_games,
                    average = excluded.average,
                    last_fetched = excluded.last_fetched
                """,
                (stats.player_name, stats.sport, stats.stat_type, recent_games, average, _utcnow()),
            )

    def get_player_stats(
        self,
        player_name: str,
        sport: str,
        stat_type: str,
        max_age_seconds: Optional[int] = None,
    ) -> Optional[StatsSummary]:
        """Cached stats for a player, or None when missing or older than max_age_seconds."""
        with self._operation("get_player_stats") as conn:
            row = conn.execute(
                """
                SELECT * FROM player_stats
                WHERE player_name = ? AND sport = ? AND stat_type = ?
                """,
                (player_name, sport, stat_type),
            ).fetchone()
        if row is None:
            return None

        if max_age_seconds is not None:
            fetched = _parse_timestamp(row["last_fetched"])
            if fetched is None:
                return None
            age = (datetime.now(timezone.utc) - fetched).total_seconds()
            if age > max_age_seconds:
                return None

        try:
            games = json.loads(row["recent_games"] or "{}")
            average = float(row["average"]) if row["average"] is not None else None
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring corrupt stats cache row for %s: %s", player_name, exc)
            return None
        return StatsSummary(
            player_name=row["player_name"],
            sport=row["sport"],
            stat_type=row["stat_type"],
            recent_average=average,
            last_5_games=games.get("last5Games") or (),
            last_10_games=games.get("last10Games") or (),
            consistency=games.get("consistency", "medium"),
            trend=games.get("trend", "stable"),
        )

    # ------------------------------------------------------------------
    # Sync log and model performance
    # ------------------------------------------------------------------

    def log_api_sync(
        self,
        source: str,
        endpoint: str,
        status: str,
        sport: Optional[str] = None,
        records_fetched: int = 0,
        records_processed: int = 0,
        error_message: Optional[str] = None,
        request_duration_ms: Optional[int] = None,
        started_at: Optional[str] = None,
    ) -> int:
        with self._operation("log_api_sync") as conn:
            cursor = conn.execute(
                """
                INSERT INTO api_sync_log (
                    source, endpoint, sport, status, records_fetched, records_processed,
                    error_message, request_duration_ms, started_at, completed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    source,
                    endpoint,
                    sport,
                    status,
                    records_fetched,
                    records_processed,
                    error_message,
                    request_duration_ms,
                    started_at or _utcnow(),
                    _utcnow(),
                ),
            )
            return cursor.lastrowid

    def get_recent_sync_logs(self, limit: int = 20, source: Optional[str] = None) -> List[Dict]:
        query = "SELECT * FROM api_sync_log"
        params: List = []
        if source:
            query += " WHERE source = ?"
            params.append(source)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        with self._operation("get_recent_sync_logs") as conn:
            return [dict(row) for row in conn.execute(query, params)]

    def record_model_performance(
        self,
        analysis_id: int,
        projection_id: int,
        prediction: str,
        confidence: int,
        actual_outcome: Optional[str],
        is_correct: Optional[bool],
        model_version: Optional[str] = None,
    ) -> int:
        with self._operation("record_model_performance") as conn:
            cursor = conn.execute(
                """
                INSERT INTO model_performance (
                    analysis_id, projection_id, prediction_over_under, prediction_confidence,
                    actual_outcome, is_correct, model_version, evaluated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    analysis_id,
                    projection_id,
                    prediction,
                    confidence,
                    actual_outcome,
                    None if is_correct is None else int(is_correct),
                    model_version,
                    _utcnow(),
                ),
            )
            return cursor.lastrowid

    def get_model_performance(self, model_version: Optional[str] = None) -> List[Dict]:
        query = "SELECT * FROM model_performance"
        params: List = []
        if model_version:
            query += " WHERE model_version = ?"
            params.append(model_version)
        query += " ORDER BY id"
        with self._operation("get_model_performance") as conn:
            rows = [dict(row) for row in conn.execute(query, params)]
        for row in rows:
            if row["is_correct"] is not None:
                row["is_correct"] = bool(row["is_correct"])
        return rows
