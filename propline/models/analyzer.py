"""
Recommendation engine.

Compares a projection line with a player's recent statistics and produces an
over/under/skip recommendation with a 0-100 confidence score and a short
English explanation.

The engine is a pure function: no I/O, no shared state, and it never raises.
Degenerate inputs (no recent average, no recent games, a line of 0) still
produce a structurally valid AnalysisResult.

Usage:
    from propline.models.analyzer import analyze
    from propline.models.types import StatsSummary

    stats = StatsSummary(recent_average=25.0, last_5_games=[24, 26, 25, 27, 23],
                         consistency="high", trend="increasing")
    result = analyze(20.0, stats)
    print(result.recommendation, result.confidence_score)  # over 90
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union
import math

from propline.constants import (
    RECOMMENDATION_OVER,
    RECOMMENDATION_UNDER,
    RECOMMENDATION_SKIP,
    STRONG_DIFF_PCT,
    MODERATE_DIFF_PCT,
    HIT_RATE_THRESHOLD,
    STRONG_BASE_CONFIDENCE,
    MODERATE_BASE_CONFIDENCE,
    HIT_RATE_BASE_CONFIDENCE,
    WEAK_BASE_CONFIDENCE,
    HIGH_CONSISTENCY_BOOST,
    LOW_CONSISTENCY_PENALTY,
    TREND_ADJUSTMENT,
    MIN_ACTIONABLE_CONFIDENCE,
    INSUFFICIENT_DATA_REASON,
    LOW_CONFIDENCE_REASON,
)
from propline.models.types import AnalysisMetadata, AnalysisResult, StatsSummary


BatchItem = Union[Tuple[float, StatsSummary], Mapping]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _divide(numerator: float, denominator: float) -> float:
    """Float division that follows IEEE semantics instead of raising."""
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator) * math.copysign(1.0, denominator)
    return numerator / denominator


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _format_non_finite(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    return "Infinity" if value > 0 else "-Infinity"


def format_one_decimal(value: float) -> str:
    """Format with one decimal place, rounding halves away from zero."""
    if not math.isfinite(value):
        return _format_non_finite(value)
    try:
        quantized = Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return f"{value:.1f}"
    text = f"{quantized:.1f}"
    return "0.0" if text == "-0.0" else text


def format_line(value: float) -> str:
    """Render a line the way it is posted: 20 not 20.0, 24.5 stays 24.5."""
    if isinstance(value, float) and not math.isfinite(value):
        return _format_non_finite(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def calculate_std_dev(values: Sequence[float]) -> float:
    """Population standard deviation; 0 for an empty sequence."""
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    variance = sum((value - mean) ** 2 for value in values) / len(values)
    return math.sqrt(variance)


def _insufficient_data() -> AnalysisResult:
    return AnalysisResult(
        recommendation=RECOMMENDATION_SKIP,
        confidence_score=0,
        reasoning=INSUFFICIENT_DATA_REASON,
        recent_average=None,
        games_analyzed=0,
    )


def analyze_with_metadata(
    line_score: float,
    stats: StatsSummary,
) -> Tuple[AnalysisResult, Optional[AnalysisMetadata]]:
    """
    Analyze a projection and also return the intermediate calculations.

    Returns:
        (AnalysisResult, AnalysisMetadata). Metadata is None when there is
        not enough data to analyze.
    """
    recent_average = stats.recent_average
    last_5 = [float(value) for value in stats.last_5_games]

    if recent_average is None or not last_5:
        return _insufficient_data(), None

    recent_average = float(recent_average)
    line_score = float(line_score)

    # How far the line sits from the recent average
    difference = recent_average - line_score
    percent_difference = _divide(difference, line_score) * 100
    direction = "above" if difference > 0 else "below"
    line_text = format_line(line_score)
    average_text = format_one_decimal(recent_average)

    # Games landing on each side of the line; pushes count for neither
    games_over = sum(1 for value in last_5 if value > line_score)
    games_under = sum(1 for value in last_5 if value < line_score)
    hit_rate = max(games_over, games_under) / len(last_5)

    std_dev = calculate_std_dev(last_5)
    coefficient_of_variation = _divide(std_dev, recent_average)

    # NaN never passes a threshold, matching IEEE comparison rules
    abs_percent = abs(percent_difference)
    if abs_percent > STRONG_DIFF_PCT:
        recommendation = RECOMMENDATION_OVER if difference > 0 else RECOMMENDATION_UNDER
        base_confidence = STRONG_BASE_CONFIDENCE
        reasoning = (
            f"Player's recent average ({average_text}) is "
            f"{format_one_decimal(abs_percent)}% {direction} the line ({line_text}). "
        )
    elif abs_percent > MODERATE_DIFF_PCT:
        recommendation = RECOMMENDATION_OVER if difference > 0 else RECOMMENDATION_UNDER
        base_confidence = MODERATE_BASE_CONFIDENCE
        reasoning = (
            f"Player's recent average ({average_text}) is moderately "
            f"{direction} the line ({line_text}). "
        )
    elif hit_rate >= HIT_RATE_THRESHOLD:
        recommendation = RECOMMENDATION_OVER if games_over > games_under else RECOMMENDATION_UNDER
        base_confidence = HIT_RATE_BASE_CONFIDENCE
        reasoning = (
            f"Player has hit {recommendation} in {max(games_over, games_under)} "
            f"of last {len(last_5)} games. "
        )
    else:
        recommendation = RECOMMENDATION_SKIP
        base_confidence = WEAK_BASE_CONFIDENCE
        reasoning = (
            f"Line ({line_text}) is close to recent average ({average_text}), "
            f"making this a coin flip. "
        )

    adjustment = 0
    if stats.consistency == "high":
        adjustment += HIGH_CONSISTENCY_BOOST
        reasoning += "Player shows high consistency. "
    elif stats.consistency == "low":
        adjustment += LOW_CONSISTENCY_PENALTY
        reasoning += "Player shows high variance in performance. "

    trend = stats.trend
    if trend == "increasing" and recommendation == RECOMMENDATION_OVER:
        adjustment += TREND_ADJUSTMENT
        reasoning += "Player is trending upward. "
    elif trend == "decreasing" and recommendation == RECOMMENDATION_UNDER:
        adjustment += TREND_ADJUSTMENT
        reasoning += "Player is trending downward. "
    elif trend == "increasing" and recommendation == RECOMMENDATION_UNDER:
        adjustment -= TREND_ADJUSTMENT
        reasoning += "Caution: Player is trending upward. "
    elif trend == "decreasing" and recommendation == RECOMMENDATION_OVER:
        adjustment -= TREND_ADJUSTMENT
        reasoning += "Caution: Player is trending downward. "

    confidence_score = _round_half_up(_clamp(base_confidence + adjustment, 0, 100))

    # The score is kept as computed even when the pick is forced to skip
    if confidence_score < MIN_ACTIONABLE_CONFIDENCE and recommendation != RECOMMENDATION_SKIP:
        recommendation = RECOMMENDATION_SKIP
        reasoning += LOW_CONFIDENCE_REASON

    result = AnalysisResult(
        recommendation=recommendation,
        confidence_score=confidence_score,
        reasoning=reasoning.strip(),
        recent_average=average_text,
        games_analyzed=len(last_5),
    )

    last_3 = last_5[:3]
    metadata = AnalysisMetadata(
        recent_average_value=recent_average,
        line_score_value=line_score,
        percent_difference=percent_difference,
        hit_rate_5_games=hit_rate,
        games_over_line=games_over,
        games_under_line=games_under,
        standard_deviation=std_dev,
        coefficient_of_variation=coefficient_of_variation,
        trend_indicator=trend,
        consistency_indicator=stats.consistency,
        last_game_performance=format_line(last_5[0]),
        last_3_games_average=sum(last_3) / len(last_3),
    )
    return result, metadata


def analyze(line_score: float, stats: StatsSummary) -> AnalysisResult:
    """Analyze a projection line against a player's stats summary."""
    result, _ = analyze_with_metadata(line_score, stats)
    return result


def _unpack(item: BatchItem) -> Tuple[float, StatsSummary]:
    if isinstance(item, Mapping):
        return item["line_score"], item["stats"]
    line_score, stats = item
    return line_score, stats


def analyze_batch(items: Iterable[BatchItem]) -> List[AnalysisResult]:
    """
    Analyze many projections.

    Items are (line_score, stats) pairs or mappings with 'line_score' and
    'stats' keys. Output order matches input order and every item is
    analyzed independently.
    """
    results = []
    for item in items:
        line_score, stats = _unpack(item)
        results.append(analyze(line_score, stats))
    return results
