"""
Per-term data quality flags.

The flags drive model selection (naive for short series, damped smoothing
for noisy ones) and penalize the confidence score.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Optional

import numpy as np

from .config import QualityThresholds

logger = logging.getLogger(__name__)

MAD_TO_STD = 1.4826


@dataclass(frozen=True)
class QualityFlags:
    series_too_short: bool = False
    too_spiky: bool = False
    event_shock_likely: bool = False

    @property
    def severity(self) -> int:
        """Number of raised flags"""
        return int(self.series_too_short) + int(self.too_spiky) + int(self.event_shock_likely)

    def to_dict(self) -> dict:
        return asdict(self)


def robust_std(x: np.ndarray, floor: float = 0.0) -> float:
    """Standard deviation estimated from the median absolute deviation"""
    if len(x) == 0:
        return floor
    mad = float(np.median(np.abs(x - np.median(x))))
    return max(MAD_TO_STD * mad, floor)


def delta_cv(values: np.ndarray) -> float:
    """Coefficient of variation of absolute day-over-day changes"""
    abs_deltas = np.abs(np.diff(values))
    mean = float(abs_deltas.mean()) if len(abs_deltas) else 0.0
    if mean < 1e-12:
        return 0.0
    return float(abs_deltas.std() / mean)


def _has_outlier_step(values: np.ndarray, thresholds: QualityThresholds) -> bool:
    deltas = np.diff(values)[-thresholds.volatility_window:]
    if len(deltas) < 3:
        return False
    scale = robust_std(deltas, floor=thresholds.min_volatility)
    return bool(np.max(np.abs(deltas - np.median(deltas))) > thresholds.spike_sigma * scale)


def _shock_score(values: np.ndarray, thresholds: QualityThresholds) -> Optional[float]:
    """
    Standardized deviation of the last point from its trailing moving average.

    Each point's deviation from the mean of the `shock_ma_window` points before
    it is computed over the trailing volatility window; the last deviation is
    scored against the earlier ones, so a steady trend is not mistaken for a shock.
    """
    w = thresholds.shock_ma_window
    n = len(values)
    if n < w + 4:
        return None

    start = max(w, n - thresholds.volatility_window - 1)
    deviations = np.array([values[i] - values[i - w:i].mean() for i in range(start, n)])
    history, last = deviations[:-1], deviations[-1]
    if len(history) < 3:
        return None

    scale = max(float(history.std()), thresholds.min_volatility)
    return abs(last - float(history.mean())) / scale


def assess_quality(values: np.ndarray, thresholds: QualityThresholds = None) -> QualityFlags:
    """
    Compute quality flags for one term.

    Args:
        values: Validated series values (oldest first)
        thresholds: Tunable thresholds

    Returns:
        QualityFlags
    """
    thresholds = thresholds or QualityThresholds()
    values = np.asarray(values, dtype=float)

    if len(values) < thresholds.seasonal_min_points:
        return QualityFlags(series_too_short=True)

    cv = delta_cv(values)
    too_spiky = cv > thresholds.spiky_delta_cv or _has_outlier_step(values, thresholds)

    shock = _shock_score(values, thresholds)
    event_shock_likely = shock is not None and shock > thresholds.shock_sigma

    flags = QualityFlags(
        series_too_short=False,
        too_spiky=bool(too_spiky),
        event_shock_likely=bool(event_shock_likely),
    )
    logger.debug(f"Quality: delta_cv={cv:.2f} shock={shock} flags={flags}")
    return flags
