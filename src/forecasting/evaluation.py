# file: src/forecasting/evaluation.py
"""
Forecast evaluation metrics and the confidence score

Computes metrics with explicit NaN handling (fail-loud principle).
"""

import logging
from dataclasses import asdict, dataclass
from typing import Optional

import numpy as np

from .config import ConfidenceConfig
from .quality import QualityFlags

logger = logging.getLogger(__name__)


class ForecastMetrics:
    """Forecasting evaluation metrics"""

    @staticmethod
    def mae(y_true: np.ndarray, y_pred: np.ndarray) -> float:
        """
        Mean Absolute Error

        Explicit NaN masking (fail-loud):
        - Returns NaN if no valid predictions
        - Masks NaN/inf values before computation
        """
        valid_mask = np.isfinite(y_pred) & np.isfinite(y_true)

        if valid_mask.sum() == 0:
            return np.nan

        return float(np.mean(np.abs(y_pred[valid_mask] - y_true[valid_mask])))

    @staticmethod
    def mape(y_true: np.ndarray, y_pred: np.ndarray, epsilon: float = 1.0) -> float:
        """
        Mean Absolute Percentage Error (%)

        Actual values with |y| < epsilon are excluded; on a 0-100 interest
        scale they would dominate the mean.
        """
        valid_mask = (
            np.isfinite(y_pred) &
            np.isfinite(y_true) &
            (np.abs(y_true) >= epsilon)
        )

        if valid_mask.sum() == 0:
            return np.nan

        ape = np.abs((y_pred[valid_mask] - y_true[valid_mask]) / np.abs(y_true[valid_mask]))
        return float(100 * np.mean(ape))

    @staticmethod
    def coverage(y_true: np.ndarray, lower: np.ndarray, upper: np.ndarray) -> float:
        """Percentage of actual values within [lower, upper]"""
        valid_mask = (
            np.isfinite(y_true) &
            np.isfinite(lower) &
            np.isfinite(upper)
        )

        if valid_mask.sum() == 0:
            return np.nan

        covered = (y_true[valid_mask] >= lower[valid_mask]) & \
                  (y_true[valid_mask] <= upper[valid_mask])

        return float(100 * np.mean(covered))


@dataclass(frozen=True)
class BacktestMetrics:
    """
    Aggregated walk-forward metrics.

    Metric fields are None when too few folds succeeded to say anything.
    """
    mae: Optional[float] = None
    mape: Optional[float] = None
    interval_coverage80: Optional[float] = None
    interval_coverage95: Optional[float] = None
    sample_size: int = 0
    fold_count: int = 0

    @property
    def has_metrics(self) -> bool:
        return self.mae is not None

    def to_dict(self) -> dict:
        return asdict(self)


def _nan_to_none(x: float) -> Optional[float]:
    return None if x is None or not np.isfinite(x) else float(x)


def summarize_errors(
    actuals: np.ndarray,
    predictions: np.ndarray,
    lower80: np.ndarray,
    upper80: np.ndarray,
    lower95: np.ndarray,
    upper95: np.ndarray,
    fold_count: int,
    mape_epsilon: float = 1.0,
) -> BacktestMetrics:
    """Aggregate pooled fold predictions into BacktestMetrics"""
    return BacktestMetrics(
        mae=_nan_to_none(ForecastMetrics.mae(actuals, predictions)),
        mape=_nan_to_none(ForecastMetrics.mape(actuals, predictions, epsilon=mape_epsilon)),
        interval_coverage80=_nan_to_none(ForecastMetrics.coverage(actuals, lower80, upper80)),
        interval_coverage95=_nan_to_none(ForecastMetrics.coverage(actuals, lower95, upper95)),
        sample_size=int(len(actuals)),
        fold_count=fold_count,
    )


def confidence_score(
    metrics: BacktestMetrics,
    flags: QualityFlags,
    config: ConfidenceConfig = None,
) -> int:
    """
    Combine backtest accuracy, calibration and sample size into 0-100.

    Weights default to 40% error, 30% interval calibration, 30% sample size;
    quality flags then apply multiplicative penalties. No metrics means no
    confidence.

    Args:
        metrics: Walk-forward metrics of the chosen model
        flags: Quality flags of the same term
        config: Weights, calibration targets and penalties

    Returns:
        Integer score in [0, 100]
    """
    config = config or ConfidenceConfig()
    if not metrics.has_metrics or metrics.sample_size == 0:
        return 0

    mae_score = max(0.0, 100 - min(100.0, metrics.mae * config.mae_scale))
    if metrics.mape is not None:
        mape_score = max(0.0, 100 - min(100.0, metrics.mape))
        error_score = (mae_score + mape_score) / 2
    else:
        error_score = mae_score

    cov80 = metrics.interval_coverage80 if metrics.interval_coverage80 is not None else 0.0
    cov95 = metrics.interval_coverage95 if metrics.interval_coverage95 is not None else 0.0
    coverage80_score = max(0.0, 100 - abs(cov80 - config.target_coverage80) * config.coverage_scale)
    coverage95_score = max(0.0, 100 - abs(cov95 - config.target_coverage95) * config.coverage_scale)
    coverage_score = (coverage80_score + coverage95_score) / 2

    sample_score = min(100.0, metrics.sample_size / config.full_confidence_samples * 100)

    confidence = (
        error_score * config.error_weight
        + coverage_score * config.coverage_weight
        + sample_score * config.sample_weight
    )

    if flags.series_too_short:
        confidence *= config.short_series_penalty
    if flags.too_spiky:
        confidence *= config.spiky_penalty
    if flags.event_shock_likely:
        confidence *= config.shock_penalty

    return int(max(0, min(100, round(confidence))))
