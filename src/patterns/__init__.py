"""
Cyclical pattern analysis over historical peak events
"""

from .analyzer import (HistoricalPeak, PatternAnalysis, PatternThresholds,
                       PatternType, PredictedOccurrence, analyze_pattern)

__all__ = [
    "HistoricalPeak",
    "PatternAnalysis",
    "PatternThresholds",
    "PatternType",
    "PredictedOccurrence",
    "analyze_pattern",
]
