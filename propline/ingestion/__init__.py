"""
Ingestion module - projection lines and player statistics.

Usage:
    from propline.ingestion import fetch_projections, parse_projections

    payload = fetch_projections(league_id="7")
    for projection in parse_projections(payload):
        print(projection.player_name, projection.stat_type, projection.line_score)
"""

from propline.ingestion.prizepicks import ParsedProjection, fetch_projections, parse_projections
from propline.ingestion.stats import (
    StatsProvider,
    LLMStatsProvider,
    CachedStatsProvider,
    StaticStatsProvider,
    StatsRequest,
    StatsBatchResult,
    empty_stats,
    stats_from_payload,
    fetch_stats_batch,
    batch_get_player_stats,
)

__all__ = [
    # Projections
    'ParsedProjection',
    'fetch_projections',
    'parse_projections',

    # Stats providers
    'StatsProvider',
    'LLMStatsProvider',
    'CachedStatsProvider',
    'StaticStatsProvider',

    # Batch fetching
    'StatsRequest',
    'StatsBatchResult',
    'fetch_stats_batch',
    'batch_get_player_stats',

    # Helpers
    'empty_stats',
    'stats_from_payload',
]
