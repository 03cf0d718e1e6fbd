"""
Fetch, analyze and query projections.

PropLinePipeline wires the collaborators together: projections come from the
PrizePicks fetcher, player stats from a StatsProvider, and every analysis is
persisted through the ProjectionStore. The recommendation engine itself stays
pure; everything with side effects happens here.

Usage:
    store = ProjectionStore("data/propline.db")
    store.init_schema()
    pipeline = PropLinePipeline(store, CachedStatsProvider(store, LLMStatsProvider(key)))
    pipeline.fetch_and_store("NBA")
    pipeline.analyze_all("NBA")
    picks = pipeline.high_confidence_picks(min_confidence=70)
"""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
import logging
import math
import time

from propline.constants import LEAGUE_IDS, PRIZEPICKS_SOURCE
from propline.exceptions import (
    ConfigurationError,
    DataFetchError,
    InvalidLineError,
    ProjectionNotFoundError,
    StorageError,
)
from propline.ingestion.prizepicks import fetch_projections, parse_projections
from propline.ingestion.stats import StatsProvider, StatsRequest, batch_get_player_stats
from propline.models.analyzer import analyze_with_metadata
from propline.ops import InMemoryMetricsRecorder, MetricsRecorder
from propline.storage import ProjectionStore

logger = logging.getLogger(__name__)

PROJECTIONS_ENDPOINT = "/projections"


def parse_line_score(value, projection_id: Optional[int] = None) -> float:
    """Convert a stored line score (text or number) into a finite float."""
    if value is None or isinstance(value, bool):
        raise InvalidLineError(value, projection_id)
    try:
        line = float(str(value).strip())
    except ValueError as exc:
        raise InvalidLineError(value, projection_id) from exc
    if not math.isfinite(line):
        raise InvalidLineError(value, projection_id)
    return line


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PropLinePipeline:
    """Coordinates projection ingestion, stats lookup, analysis and storage."""

    def __init__(
        self,
        store: ProjectionStore,
        stats_provider: StatsProvider,
        fetcher: Callable[[Optional[str]], Dict] = fetch_projections,
        metrics: Optional[MetricsRecorder] = None,
    ) -> None:
        self.store = store
        self.stats_provider = stats_provider
        self._fetcher = fetcher
        self.metrics = metrics or InMemoryMetricsRecorder()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def fetch_and_store(self, sport: Optional[str] = None) -> Dict:
        """Pull current projections (optionally for one sport) into the store.

        Every attempt leaves an api_sync_log row. Fetch failures are logged
        there and re-raised.
        """
        league_id = None
        if sport:
            sport = sport.upper()
            league_id = LEAGUE_IDS.get(sport)
            if league_id is None:
                raise ConfigurationError(
                    "sport", f"unknown sport {sport!r}; expected one of {sorted(LEAGUE_IDS)}"
                )

        started_at = _now_iso()
        start = time.perf_counter()
        try:
            payload = self._fetcher(league_id)
            parsed = parse_projections(payload)
            count = self.store.save_projections(p.to_record() for p in parsed)
        except (DataFetchError, StorageError) as exc:
            duration_ms = int((time.perf_counter() - start) * 1000)
            self.metrics.increment("projections.fetch_failed")
            try:
                self.store.log_api_sync(
                    PRIZEPICKS_SOURCE,
                    PROJECTIONS_ENDPOINT,
                    "failed",
                    sport=sport,
                    error_message=str(exc),
                    request_duration_ms=duration_ms,
                    started_at=started_at,
                )
            except StorageError as log_exc:
                logger.warning("Could not record failed sync: %s", log_exc)
            logger.error("Projection fetch failed: %s", exc)
            raise

        duration_ms = int((time.perf_counter() - start) * 1000)
        self.metrics.timing("projections.fetch", duration_ms)
        self.metrics.increment("projections.saved", count)
        self.store.log_api_sync(
            PRIZEPICKS_SOURCE,
            PROJECTIONS_ENDPOINT,
            "success",
            sport=sport,
            records_fetched=len(parsed),
            records_processed=count,
            request_duration_ms=duration_ms,
            started_at=started_at,
        )
        logger.info("Stored %d projections%s", count, f" for {sport}" if sport else "")
        return {"success": True, "count": count}

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def _persist(self, projection_id: int, result, metadata) -> int:
        analysis_id = self.store.save_analysis(projection_id, result)
        if metadata is not None:
            self.store.save_analysis_metadata(analysis_id, metadata)
        return analysis_id

    def analyze_projection(self, projection_id: int) -> Dict:
        """Analyze one stored projection and persist the result."""
        projection = self.store.get_projection_by_id(projection_id)
        if projection is None:
            raise ProjectionNotFoundError(projection_id)

        line = parse_line_score(projection["line_score"], projection_id)
        stats = self.stats_provider.get_player_stats(
            projection["player_name"], projection["sport"], projection["stat_type"]
        )
        with self.metrics.timed("analysis.single"):
            result, metadata = analyze_with_metadata(line, stats)
        analysis_id = self._persist(projection_id, result, metadata)
        self.metrics.increment("analyses.saved")

        analysis = result.to_dict()
        analysis["id"] = analysis_id
        return {
            "projection": projection,
            "analysis": analysis,
            "metadata": metadata.to_record() if metadata is not None else None,
        }

    def analyze_all(self, sport: Optional[str] = None, batch_size: int = 5) -> Dict:
        """
        Analyze every active projection.

        Stats are fetched with at most `batch_size` requests in flight. A
        projection whose line cannot be parsed, or whose results cannot be
        saved, is logged and skipped; the run never aborts part way.
        """
        projections = self.store.get_active_projections(sport.upper() if sport else None)
        errors: List[str] = []

        runnable = []
        for projection in projections:
            try:
                line = parse_line_score(projection["line_score"], projection["id"])
            except InvalidLineError as exc:
                logger.warning("Skipping projection %s: %s", projection["id"], exc)
                errors.append(str(exc))
                continue
            runnable.append((projection, line))

        batch = batch_get_player_stats(
            self.stats_provider,
            [
                StatsRequest(p["player_name"], p["sport"], p["stat_type"])
                for p, _ in runnable
            ],
            batch_size=batch_size,
        )
        errors.extend(batch.errors)
        self.metrics.timing("stats.batch", batch.total_fetch_time_ms)

        analyzed = 0
        actionable = 0
        for (projection, line), stats in zip(runnable, batch.summaries):
            result, metadata = analyze_with_metadata(line, stats)
            try:
                self._persist(projection["id"], result, metadata)
            except StorageError as exc:
                logger.warning("Could not save analysis for projection %s: %s", projection["id"], exc)
                errors.append(str(exc))
                self.metrics.increment("analyses.failed")
                continue
            analyzed += 1
            if result.is_actionable:
                actionable += 1

        self.metrics.increment("analyses.saved", analyzed)
        self.metrics.increment("analyses.actionable", actionable)
        logger.info(
            "Analyzed %d of %d projections (%d actionable, %d with stats, %d errors)",
            analyzed, len(projections), actionable, batch.players_with_data, len(errors),
        )
        return {
            "success": True,
            "analyzed": analyzed,
            "total": len(projections),
            "errors": errors,
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def projections_with_analyses(self, sport: Optional[str] = None) -> List[Dict]:
        """Active projections, each with its latest analysis (or None)."""
        rows = []
        for projection in self.store.get_active_projections(sport.upper() if sport else None):
            row = dict(projection)
            row["analysis"] = self.store.get_latest_analysis(projection["id"])
            rows.append(row)
        return rows

    def high_confidence_picks(
        self,
        min_confidence: int = 70,
        sport: Optional[str] = None,
        limit: int = 50,
    ) -> List[Dict]:
        return self.store.get_high_confidence_picks(
            min_confidence=min_confidence,
            sport=sport.upper() if sport else None,
            limit=limit,
        )
