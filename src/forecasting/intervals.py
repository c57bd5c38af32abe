"""
Prediction interval estimation

Bands are calibrated on backtest residuals (normalized by sqrt(step)) when
enough are available, otherwise on a normal approximation. Everything is
clipped to the 0-100 interest scale.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Tuple

import numpy as np
import pandas as pd
from scipy import stats as sp_stats

from .config import IntervalConfig
from .models import ModelForecast

logger = logging.getLogger(__name__)

Z_80 = float(sp_stats.norm.ppf(0.90))
Z_95 = float(sp_stats.norm.ppf(0.975))


@dataclass(frozen=True)
class ForecastPoint:
    date: date
    value: float
    lower80: float
    upper80: float
    lower95: float
    upper95: float

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "value": self.value,
            "lower80": self.lower80,
            "upper80": self.upper80,
            "lower95": self.lower95,
            "upper95": self.upper95,
        }


def forecast_dates(last_date: pd.Timestamp, horizon: int) -> pd.DatetimeIndex:
    """Consecutive days strictly after the last observation"""
    start = pd.Timestamp(last_date).normalize() + pd.Timedelta(days=1)
    return pd.date_range(start=start, periods=horizon, freq="D")


def half_widths(
    model_forecast: ModelForecast,
    residuals: np.ndarray,
    config: IntervalConfig = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    80% and 95% half-widths for steps 1..horizon.

    Args:
        model_forecast: Fitted model output (supplies the one-step sigma)
        residuals: Backtest errors already divided by sqrt(step)
        config: Interval settings

    Returns:
        (half80, half95) arrays
    """
    config = config or IntervalConfig()
    r = np.asarray(residuals, dtype=float)
    r = r[np.isfinite(r)]

    if len(r) >= config.min_empirical_residuals:
        q80 = float(np.quantile(np.abs(r), 0.80))
        q95 = float(np.quantile(np.abs(r), 0.95))
        method = "empirical"
    else:
        residual_sigma = float(np.sqrt(np.mean(r ** 2))) if len(r) > 1 else 0.0
        sigma = max(residual_sigma, model_forecast.one_step_sigma)
        q80 = Z_80 * sigma
        q95 = Z_95 * sigma
        method = "normal"

    growth = np.sqrt(np.arange(1, model_forecast.horizon + 1))
    half80 = np.maximum(q80 * growth, config.min_half_width)
    half95 = np.maximum(q95 * growth, half80 * Z_95 / Z_80)

    logger.debug(f"Intervals ({method}, n_residuals={len(r)}): q80={q80:.3f} q95={q95:.3f}")
    return half80, half95


def estimate_intervals(
    model_forecast: ModelForecast,
    residuals: np.ndarray,
    dates: pd.DatetimeIndex,
    config: IntervalConfig = None,
) -> List[ForecastPoint]:
    """
    Attach 80/95 bands to a model forecast.

    Clipping to [lower_bound, upper_bound] is monotone, so
    lower95 <= lower80 <= value <= upper80 <= upper95 survives it.
    """
    config = config or IntervalConfig()
    if len(dates) != model_forecast.horizon:
        raise ValueError(
            f"Got {len(dates)} dates for a {model_forecast.horizon}-step forecast"
        )

    half80, half95 = half_widths(model_forecast, residuals, config)
    lo, hi = config.lower_bound, config.upper_bound
    values = model_forecast.values

    def clip(x):
        return np.clip(x, lo, hi)

    value = clip(values)
    lower80, upper80 = clip(values - half80), clip(values + half80)
    lower95, upper95 = clip(values - half95), clip(values + half95)

    return [
        ForecastPoint(
            date=d.date(),
            value=float(value[i]),
            lower80=float(lower80[i]),
            upper80=float(upper80[i]),
            lower95=float(lower95[i]),
            upper95=float(upper95[i]),
        )
        for i, d in enumerate(dates)
    ]
