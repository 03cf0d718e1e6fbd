"""CLI entry points."""

from functools import partial
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple
import argparse
import json
import logging
import os
import sys
import uuid

from propline.config import Config, parse_env_file
from propline.constants import PRIZEPICKS_SOURCE, STATS_SOURCE
from propline.exceptions import PropLineError
from propline.ingestion.prizepicks import fetch_projections
from propline.ingestion.stats import CachedStatsProvider, LLMStatsProvider
from propline.ops import get_rate_limiter
from propline.ops.logging import configure_logging
from propline.pipeline import PropLinePipeline
from propline.reporting.csv_output import write_picks_csv
from propline.review import evaluate_analysis, summarize_accuracy
from propline.storage import FileCache, ProjectionStore

logger = logging.getLogger(__name__)

# Keys copied from a discovered .env into the process environment
_ENV_KEYS = (
    "PROPLINE_DB_PATH",
    "PROPLINE_CACHE_DIR",
    "PROPLINE_LOG_LEVEL",
    "PRIZEPICKS_BASE_URL",
    "PRIZEPICKS_PER_PAGE",
    "PRIZEPICKS_TIMEOUT",
    "PRIZEPICKS_DELAY",
    "PRIZEPICKS_CACHE_TTL",
    "STATS_API_KEY",
    "STATS_API_URL",
    "STATS_MODEL",
    "STATS_TIMEOUT",
    "STATS_BATCH_SIZE",
    "STATS_CACHE_TTL",
    "MIN_CONFIDENCE",
    "MAX_PICKS",
    "MODEL_VERSION",
)


def _try_load_dotenv(search_dirs: Sequence[Path]) -> Optional[str]:
    """Seed os.environ from the first .env found; existing values win."""
    for directory in search_dirs:
        env_path = directory / ".env"
        if not env_path.exists():
            continue
        try:
            values = parse_env_file(env_path)
        except OSError as exc:
            logger.warning("Could not read %s: %s", env_path, exc)
            continue
        for key in _ENV_KEYS:
            if values.get(key):
                os.environ.setdefault(key, values[key])
        return str(env_path)
    return None


def _setup(config_path: Optional[str], db_path: Optional[str]) -> Tuple[Config, ProjectionStore]:
    dotenv_path = _try_load_dotenv([Path.cwd(), Path(__file__).resolve().parents[1]])
    config = Config.load(config_path=config_path)
    configure_logging(run_id=uuid.uuid4().hex[:8])
    if config_path:
        logger.info("Loaded config from %s", config_path)
    elif dotenv_path:
        logger.info("Loaded config from %s", dotenv_path)

    store = ProjectionStore(db_path or config.db_path)
    store.init_schema()
    return config, store


def _build_pipeline(config: Config, store: ProjectionStore) -> PropLinePipeline:
    limiter = get_rate_limiter()
    limiter.set_interval(PRIZEPICKS_SOURCE, config.prizepicks_delay)
    limiter.set_interval(STATS_SOURCE, 0.0)

    fetcher = partial(
        fetch_projections,
        base_url=config.prizepicks_base_url,
        per_page=config.prizepicks_per_page,
        timeout=config.prizepicks_timeout,
        cache=FileCache(Path(config.cache_dir) / "prizepicks"),
        ttl_seconds=config.prizepicks_cache_ttl,
    )
    if not config.stats_api_key:
        logger.warning("STATS_API_KEY not set; analyses will report insufficient data.")
    stats_provider = CachedStatsProvider(
        store,
        LLMStatsProvider(
            api_key=config.stats_api_key,
            api_url=config.stats_api_url,
            model=config.stats_model,
            timeout=config.stats_timeout,
        ),
        ttl_seconds=config.stats_cache_ttl,
    )
    return PropLinePipeline(store, stats_provider, fetcher=fetcher)


def _emit(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def run_fetch(config_path: Optional[str] = None, db_path: Optional[str] = None, sport: Optional[str] = None) -> int:
    """Fetch projections from PrizePicks into the database."""
    config, store = _setup(config_path, db_path)
    with store:
        try:
            result = _build_pipeline(config, store).fetch_and_store(sport)
        except PropLineError as exc:
            logger.error("Fetch failed: %s", exc)
            return 1
    _emit(result)
    return 0


def run_analyze(config_path: Optional[str] = None, db_path: Optional[str] = None, projection_id: int = 0) -> int:
    """Analyze a single stored projection."""
    config, store = _setup(config_path, db_path)
    with store:
        try:
            result = _build_pipeline(config, store).analyze_projection(projection_id)
        except PropLineError as exc:
            logger.error("Analysis failed: %s", exc)
            return 1
    _emit(result)
    return 0


def run_analyze_all(
    config_path: Optional[str] = None,
    db_path: Optional[str] = None,
    sport: Optional[str] = None,
    batch_size: Optional[int] = None,
) -> int:
    """Analyze every active projection."""
    config, store = _setup(config_path, db_path)
    with store:
        pipeline = _build_pipeline(config, store)
        try:
            result = pipeline.analyze_all(sport, batch_size=batch_size or config.stats_batch_size)
        except PropLineError as exc:
            logger.error("Batch analysis failed: %s", exc)
            return 1
        logger.info("Run metrics: %s", pipeline.metrics.snapshot())
    _emit(result)
    return 0


def run_list(config_path: Optional[str] = None, db_path: Optional[str] = None, sport: Optional[str] = None) -> int:
    """List active projections with their latest analysis."""
    config, store = _setup(config_path, db_path)
    with store:
        try:
            rows = _build_pipeline(config, store).projections_with_analyses(sport)
        except PropLineError as exc:
            logger.error("Listing failed: %s", exc)
            return 1
    _emit(rows)
    return 0


def run_picks(
    config_path: Optional[str] = None,
    db_path: Optional[str] = None,
    min_confidence: Optional[int] = None,
    sport: Optional[str] = None,
    limit: Optional[int] = None,
    csv_path: Optional[str] = None,
) -> int:
    """Show (and optionally export) high-confidence picks."""
    config, store = _setup(config_path, db_path)
    with store:
        try:
            picks: List[Dict] = _build_pipeline(config, store).high_confidence_picks(
                min_confidence=config.min_confidence if min_confidence is None else min_confidence,
                sport=sport,
                limit=config.max_picks if limit is None else limit,
            )
        except PropLineError as exc:
            logger.error("Pick query failed: %s", exc)
            return 1
    if csv_path:
        path = write_picks_csv(picks, csv_path)
        logger.info("Wrote %d picks to %s", len(picks), path)
    _emit(picks)
    return 0


def run_grade(
    config_path: Optional[str] = None,
    db_path: Optional[str] = None,
    analysis_id: int = 0,
    actual: float = 0.0,
) -> int:
    """Grade one analysis against the actual stat value."""
    config, store = _setup(config_path, db_path)
    with store:
        try:
            result = evaluate_analysis(store, analysis_id, actual, model_version=config.model_version)
        except PropLineError as exc:
            logger.error("Grading failed: %s", exc)
            return 1
    if result is None:
        logger.info("Analysis %s recommended skip; not graded", analysis_id)
        return 0
    _emit(result)
    return 0


def run_accuracy(config_path: Optional[str] = None, db_path: Optional[str] = None) -> int:
    """Summarise graded predictions per model version."""
    config, store = _setup(config_path, db_path)
    with store:
        try:
            rows = store.get_model_performance()
        except PropLineError as exc:
            logger.error("Accuracy query failed: %s", exc)
            return 1
    _emit([metrics.to_dict() for metrics in summarize_accuracy(rows)])
    return 0


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", dest="config_path", help="Path to config file (.env or JSON)")
    parser.add_argument("--db-path", dest="db_path", help="Override the SQLite database path")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="propline")
    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch = subparsers.add_parser("fetch", help="Fetch projections from PrizePicks")
    _add_common(fetch)
    fetch.add_argument("--sport", dest="sport", help="Limit to one sport (NBA, NFL, MLB, NHL, CFB)")

    analyze = subparsers.add_parser("analyze", help="Analyze one projection")
    _add_common(analyze)
    analyze.add_argument("--projection-id", dest="projection_id", type=int, required=True)

    analyze_all = subparsers.add_parser("analyze-all", help="Analyze every active projection")
    _add_common(analyze_all)
    analyze_all.add_argument("--sport", dest="sport", help="Limit to one sport")
    analyze_all.add_argument("--batch-size", dest="batch_size", type=int, help="Concurrent stats lookups")

    listing = subparsers.add_parser("list", help="List projections with their latest analysis")
    _add_common(listing)
    listing.add_argument("--sport", dest="sport", help="Limit to one sport")

    picks = subparsers.add_parser("picks", help="Show high-confidence picks")
    _add_common(picks)
    picks.add_argument("--min-confidence", dest="min_confidence", type=int)
    picks.add_argument("--sport", dest="sport", help="Limit to one sport")
    picks.add_argument("--limit", dest="limit", type=int)
    picks.add_argument("--csv", dest="csv_path", help="Also write picks to this CSV path")

    grade = subparsers.add_parser("grade", help="Grade an analysis against the actual result")
    _add_common(grade)
    grade.add_argument("--analysis-id", dest="analysis_id", type=int, required=True)
    grade.add_argument("--actual", dest="actual", type=float, required=True)

    accuracy = subparsers.add_parser("accuracy", help="Summarise model accuracy")
    _add_common(accuracy)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    common = {"config_path": args.config_path, "db_path": args.db_path}

    if args.command == "fetch":
        return run_fetch(sport=args.sport, **common)
    if args.command == "analyze":
        return run_analyze(projection_id=args.projection_id, **common)
    if args.command == "analyze-all":
        return run_analyze_all(sport=args.sport, batch_size=args.batch_size, **common)
    if args.command == "list":
        return run_list(sport=args.sport, **common)
    if args.command == "picks":
        return run_picks(
            min_confidence=args.min_confidence,
            sport=args.sport,
            limit=args.limit,
            csv_path=args.csv_path,
            **common,
        )
    if args.command == "grade":
        return run_grade(analysis_id=args.analysis_id, actual=args.actual, **common)
    if args.command == "accuracy":
        return run_accuracy(**common)

    parser.error("Unknown command")
    return 2


if __name__ == "__main__":
    sys.exit(main())
