"""
Models module - the recommendation engine and its value types.

Usage:
    from propline.models import analyze, StatsSummary

    result = analyze(24.5, StatsSummary(recent_average=27.0, last_5_games=[25, 28, 30, 26, 26]))
    print(result.recommendation, result.confidence_score)
"""

from propline.models.types import StatsSummary, AnalysisResult, AnalysisMetadata
from propline.models.analyzer import (
    analyze,
    analyze_batch,
    analyze_with_metadata,
    calculate_std_dev,
)

__all__ = [
    # Data classes
    'StatsSummary',
    'AnalysisResult',
    'AnalysisMetadata',

    # Engine
    'analyze',
    'analyze_batch',
    'analyze_with_metadata',
    'calculate_std_dev',
]
