# file: src/patterns/analyzer.py
"""
Cyclical pattern detection over a keyword's historical peaks.

Cycles are checked in priority order (annual, quarterly, monthly, weekly);
the first one whose dominant bucket clears its consistency bar wins. When none
does, the peaks are reported as event-driven, without a predicted date.
"""

from __future__ import annotations

import calendar
import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatternThresholds:
    # Consistency in percent of peaks sharing the dominant bucket
    annual_consistency: float = 60.0
    annual_min_count: int = 2
    quarterly_consistency: float = 50.0
    quarterly_min_count: int = 3
    monthly_consistency: float = 60.0
    monthly_min_count: int = 3
    weekly_consistency: float = 70.0
    weekly_min_count: int = 4
    month_end_day: int = 28
    event_driven_confidence: int = 40


class PatternType(str, Enum):
    ANNUAL = "annual"
    QUARTERLY = "quarterly"
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    EVENT_DRIVEN = "event-driven"
    NONE = "none"


@dataclass(frozen=True)
class HistoricalPeak:
    keyword: str
    date: date
    magnitude: float
    value: float


@dataclass(frozen=True)
class PredictedOccurrence:
    date: date
    date_range: Tuple[date, date]
    confidence: int

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "date_range": {
                "start": self.date_range[0].isoformat(),
                "end": self.date_range[1].isoformat(),
            },
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class PatternAnalysis:
    pattern_type: PatternType
    confidence: int
    frequency: str
    historical_occurrences: Tuple[date, ...] = field(default_factory=tuple)
    next_predicted: Optional[PredictedOccurrence] = None
    pattern_strength: float = 0.0
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "pattern_type": self.pattern_type.value,
            "confidence": self.confidence,
            "frequency": self.frequency,
            "historical_occurrences": [d.isoformat() for d in self.historical_occurrences],
            "next_predicted": self.next_predicted.to_dict() if self.next_predicted else None,
            "pattern_strength": self.pattern_strength,
            "description": self.description,
        }


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()


def _clamped(year: int, month: int, day: int) -> date:
    """date(year, month, day) with day clamped into the month"""
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(1, day), last))


def _add_months(year: int, month: int, n: int) -> Tuple[int, int]:
    idx = year * 12 + (month - 1) + n
    return idx // 12, idx % 12 + 1


def _dominant_bucket(dates: List[date], key: Callable[[date], int]) -> Tuple[int, List[date]]:
    """Most populated bucket; ties go to the smallest key"""
    buckets: Dict[int, List[date]] = defaultdict(list)
    for d in dates:
        buckets[key(d)].append(d)
    best = min(buckets, key=lambda k: (-len(buckets[k]), k))
    return best, buckets[best]


def _day_window(year: int, month: int, days: List[int]) -> Tuple[date, Tuple[date, date]]:
    """Predicted date at the mean day with a window covering the historical spread"""
    avg_day = int(round(float(np.mean(days))))
    half = math.ceil((max(days) - min(days)) / 2)
    predicted = _clamped(year, month, avg_day)
    return predicted, (_clamped(year, month, avg_day - half), _clamped(year, month, avg_day + half))


def _week_of_quarter(d: date) -> int:
    return ((d.month - 1) % 3) * 4 + d.day // 7


def _annual(dates, as_of, t: PatternThresholds) -> Optional[PatternAnalysis]:
    month, hits = _dominant_bucket(dates, lambda d: d.month)
    consistency = len(hits) / len(dates) * 100
    if consistency < t.annual_consistency or len(hits) < t.annual_min_count:
        return None

    days = [d.day for d in hits]
    year = as_of.year
    predicted, window = _day_window(year, month, days)
    if predicted < as_of:
        predicted, window = _day_window(year + 1, month, days)

    month_name = calendar.month_name[month]
    score = int(round(consistency))
    return PatternAnalysis(
        pattern_type=PatternType.ANNUAL,
        confidence=score,
        frequency=f"Every {month_name}",
        historical_occurrences=tuple(hits),
        next_predicted=PredictedOccurrence(predicted, window, score),
        pattern_strength=score,
        description=(
            f"Peaks every {month_name} with {consistency:.0f}% consistency over "
            f"{len(dates)} occurrences. Historical dates: "
            f"{', '.join(d.isoformat() for d in hits)}."
        ),
    )


def _quarterly(dates, as_of, t: PatternThresholds) -> Optional[PatternAnalysis]:
    week, hits = _dominant_bucket(dates, _week_of_quarter)
    consistency = len(hits) / len(dates) * 100
    if consistency < t.quarterly_consistency or len(hits) < t.quarterly_min_count:
        return None

    month_offset = int(round(float(np.mean([(d.month - 1) % 3 for d in hits]))))
    days = [d.day for d in hits]

    quarter_start = ((as_of.month - 1) // 3) * 3 + 1
    year, month = as_of.year, quarter_start + month_offset
    predicted, window = _day_window(year, month, days)
    while predicted < as_of:
        year, month = _add_months(year, month, 3)
        predicted, window = _day_window(year, month, days)

    score = int(round(consistency))
    return PatternAnalysis(
        pattern_type=PatternType.QUARTERLY,
        confidence=score,
        frequency=f"Quarterly (week {week + 1} of the quarter)",
        historical_occurrences=tuple(hits),
        next_predicted=PredictedOccurrence(predicted, window, score),
        pattern_strength=score,
        description=(
            f"Peaks in week {week + 1} of the quarter with {consistency:.0f}% consistency, "
            f"consistent with earnings reports or quarterly announcements."
        ),
    )


def _monthly(dates, as_of, t: PatternThresholds) -> Optional[PatternAnalysis]:
    end = t.month_end_day
    day, hits = _dominant_bucket(dates, lambda d: min(d.day, end))
    consistency = len(hits) / len(dates) * 100
    if consistency < t.monthly_consistency or len(hits) < t.monthly_min_count:
        return None

    is_end = day >= end

    def occurrence(year, month):
        last = calendar.monthrange(year, month)[1]
        if is_end:
            return date(year, month, last), (_clamped(year, month, end), date(year, month, last))
        d = _clamped(year, month, day)
        return d, (d, d)

    year, month = as_of.year, as_of.month
    predicted, window = occurrence(year, month)
    if predicted < as_of:
        year, month = _add_months(year, month, 1)
        predicted, window = occurrence(year, month)

    label = "end of month" if is_end else f"day {day}"
    score = int(round(consistency))
    return PatternAnalysis(
        pattern_type=PatternType.MONTHLY,
        confidence=score,
        frequency=f"Monthly ({label})",
        historical_occurrences=tuple(hits),
        next_predicted=PredictedOccurrence(predicted, window, score),
        pattern_strength=score,
        description=(
            f"Peaks monthly on the {label} with {consistency:.0f}% consistency, "
            f"consistent with monthly reports or billing cycles."
        ),
    )


def _weekly(dates, as_of, t: PatternThresholds) -> Optional[PatternAnalysis]:
    weekday, hits = _dominant_bucket(dates, lambda d: d.weekday())
    consistency = len(hits) / len(dates) * 100
    if consistency < t.weekly_consistency or len(hits) < t.weekly_min_count:
        return None

    predicted = as_of + timedelta(days=(weekday - as_of.weekday()) % 7)
    day_name = calendar.day_name[weekday]
    score = int(round(consistency))
    return PatternAnalysis(
        pattern_type=PatternType.WEEKLY,
        confidence=score,
        frequency=f"Every {day_name}",
        historical_occurrences=tuple(hits),
        next_predicted=PredictedOccurrence(predicted, (predicted, predicted), score),
        pattern_strength=score,
        description=(
            f"Peaks every {day_name} with {consistency:.0f}% consistency, "
            f"consistent with weekly releases or day-of-week effects."
        ),
    )


def _event_driven(dates: List[date], t: PatternThresholds) -> PatternAnalysis:
    intervals = np.array([(b - a).days for a, b in zip(dates, dates[1:])], dtype=float)
    avg = float(intervals.mean())
    # Peaks sharing one date have no measurable regularity
    irregularity = float(intervals.std() / avg * 100) if avg > 0 else 100.0

    return PatternAnalysis(
        pattern_type=PatternType.EVENT_DRIVEN,
        confidence=t.event_driven_confidence,
        frequency=f"Irregular (avg {avg:.0f} days between peaks)",
        historical_occurrences=tuple(dates),
        next_predicted=None,
        pattern_strength=max(0.0, 100.0 - irregularity),
        description=(
            f"Irregular, event-driven peaks ({irregularity:.0f}% coefficient of variation "
            f"of intervals). Peaks are likely triggered by news or announcements rather "
            f"than a calendar cycle. Average interval: {avg:.0f} days."
        ),
    )


def analyze_pattern(
    keyword: str,
    peaks: Iterable[HistoricalPeak],
    as_of=None,
    thresholds: PatternThresholds = None,
) -> PatternAnalysis:
    """
    Classify the recurrence of a keyword's peaks.

    Args:
        keyword: Keyword to analyze (matched case-insensitively)
        peaks: Peak history, any order, may include other keywords
        as_of: Reference date for next_predicted (defaults to the latest peak)
        thresholds: Per-cycle consistency and count thresholds

    Returns:
        PatternAnalysis
    """
    thresholds = thresholds or PatternThresholds()
    target = keyword.lower()

    relevant = sorted(
        (p for p in peaks if p.keyword.lower() == target),
        key=lambda p: (_as_date(p.date), p.value, p.magnitude),
    )
    dates = [_as_date(p.date) for p in relevant]

    if len(dates) < 2:
        logger.debug(f"Pattern '{keyword}': {len(dates)} peaks, not enough to analyze")
        return PatternAnalysis(
            pattern_type=PatternType.NONE,
            confidence=0,
            frequency="Insufficient data",
            description="Not enough historical peaks to identify a pattern (minimum 2).",
        )

    ref = _as_date(as_of) if as_of is not None else dates[-1]

    for detector in (_annual, _quarterly, _monthly, _weekly):
        analysis = detector(dates, ref, thresholds)
        if analysis is not None:
            logger.info(
                f"Pattern '{keyword}': {analysis.pattern_type.value} "
                f"(confidence {analysis.confidence})"
            )
            return analysis

    analysis = _event_driven(dates, thresholds)
    logger.info(f"Pattern '{keyword}': event-driven (strength {analysis.pattern_strength:.0f})")
    return analysis
