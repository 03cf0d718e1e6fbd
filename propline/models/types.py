"""
Value types shared by the engine and its collaborators.

StatsSummary is the fixed-shape input every stats provider must produce;
AnalysisResult is what the engine hands back. Both are frozen so a result
can be passed around (stored, exported, displayed) without being mutated.
"""

from dataclasses import dataclass, asdict
from typing import Optional, Tuple
import math


@dataclass(frozen=True)
class StatsSummary:
    """Recent performance summary for one player and stat type."""
    player_name: str = ""
    sport: str = ""
    stat_type: str = ""
    recent_average: Optional[float] = None
    last_5_games: Tuple[float, ...] = ()
    last_10_games: Tuple[float, ...] = ()
    consistency: str = "medium"  # 'high', 'medium', 'low'
    trend: str = "stable"  # 'increasing', 'stable', 'decreasing'

    def __post_init__(self) -> None:
        # Accept lists from callers but keep the stored sequences immutable
        object.__setattr__(self, "last_5_games", tuple(self.last_5_games or ()))
        object.__setattr__(self, "last_10_games", tuple(self.last_10_games or ()))

    @property
    def has_data(self) -> bool:
        return self.recent_average is not None and len(self.last_5_games) > 0

    def to_dict(self) -> dict:
        return {
            "playerName": self.player_name,
            "sport": self.sport,
            "statType": self.stat_type,
            "recentAverage": self.recent_average,
            "last5Games": list(self.last_5_games),
            "last10Games": list(self.last_10_games),
            "consistency": self.consistency,
            "trend": self.trend,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Over/under recommendation for a single projection line."""
    recommendation: str  # 'over', 'under', 'skip'
    confidence_score: int  # 0-100
    reasoning: str
    recent_average: Optional[str]  # formatted to 1 decimal
    games_analyzed: int

    @property
    def is_actionable(self) -> bool:
        return self.recommendation != "skip"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AnalysisMetadata:
    """
    Intermediate values behind an AnalysisResult.

    Kept for explainability: shows exactly which numbers drove the pick.
    Non-finite values (line of 0) are reported as None by to_record().
    """
    recent_average_value: float
    line_score_value: float
    percent_difference: float
    hit_rate_5_games: float
    games_over_line: int
    games_under_line: int
    standard_deviation: float
    coefficient_of_variation: float
    trend_indicator: str
    consistency_indicator: str
    last_game_performance: Optional[str] = None
    last_3_games_average: Optional[float] = None

    def to_record(self) -> dict:
        """Convert to a storage row; NaN/inf become None."""
        record = {}
        for key, value in asdict(self).items():
            if isinstance(value, float) and not math.isfinite(value):
                value = None
            record[key] = value
        return record
