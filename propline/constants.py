"""Shared constants."""

RECOMMENDATION_OVER = "over"
RECOMMENDATION_UNDER = "under"
RECOMMENDATION_SKIP = "skip"
RECOMMENDATION_TYPES = (RECOMMENDATION_OVER, RECOMMENDATION_UNDER, RECOMMENDATION_SKIP)

CONSISTENCY_LEVELS = ("high", "medium", "low")
TREND_DIRECTIONS = ("increasing", "stable", "decreasing")

PROJECTION_STATUSES = ("active", "completed", "cancelled")
OUTCOMES = ("over", "under", "push", "cancelled", "unknown")
SYNC_STATUSES = ("success", "partial", "failed")

SPORT_TYPES = ("NFL", "NBA", "MLB", "NHL", "CFB")

# PrizePicks league ids used to filter projections by sport
LEAGUE_IDS = {
    "NFL": "9",
    "NBA": "7",
    "MLB": "2",
    "NHL": "8",
    "CFB": "11",
}

PRIZEPICKS_SOURCE = "prizepicks"
STATS_SOURCE = "statmuse"

# Engine thresholds
STRONG_DIFF_PCT = 15.0
MODERATE_DIFF_PCT = 8.0
HIT_RATE_THRESHOLD = 0.8

STRONG_BASE_CONFIDENCE = 70
MODERATE_BASE_CONFIDENCE = 55
HIT_RATE_BASE_CONFIDENCE = 60
WEAK_BASE_CONFIDENCE = 30

HIGH_CONSISTENCY_BOOST = 10
LOW_CONSISTENCY_PENALTY = -15
TREND_ADJUSTMENT = 10

MIN_ACTIONABLE_CONFIDENCE = 45

INSUFFICIENT_DATA_REASON = "Insufficient data available for analysis"
LOW_CONFIDENCE_REASON = "Low confidence - recommend skipping this pick."
