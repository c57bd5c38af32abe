"""
Head-to-head comparison of two term forecasts

Final-horizon values are treated as independent normals whose spread is read
back from the forecast bands. The win probability is closed form; a seeded
Monte-Carlo estimate is available as a cross-check.
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

import numpy as np
from scipy import stats as sp_stats

from .config import HeadToHeadConfig
from .intervals import Z_80, Z_95, ForecastPoint
from .selection import ForecastResult

logger = logging.getLogger(__name__)


class LeadChangeRisk(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class HeadToHeadForecast:
    winner_probability: float
    expected_margin_points: float
    lead_change_risk: LeadChangeRisk
    current_margin: float
    forecast_horizon: int

    def to_dict(self) -> dict:
        d = asdict(self)
        d["lead_change_risk"] = self.lead_change_risk.value
        return d


def point_sigma(point: ForecastPoint) -> float:
    """Normal sigma implied by a point's 95% band (80% band as fallback)"""
    sigma = (point.upper95 - point.lower95) / (2 * Z_95)
    if sigma > 0:
        return sigma
    return max(0.0, (point.upper80 - point.lower80) / (2 * Z_80))


def winner_probability(delta: float, sigma: float) -> float:
    """
    P(A > B) in percent for A - B ~ N(delta, sigma^2).

    Evaluated on |delta| so exchanging the terms gives exactly 100 - p.
    """
    if sigma <= 0:
        if delta > 0:
            return 100.0
        if delta < 0:
            return 0.0
        return 50.0

    q = float(100 * sp_stats.norm.cdf(abs(delta) / sigma))
    return q if delta >= 0 else 100.0 - q


def lead_change_risk(
    delta: float,
    sigma: float,
    current_margin: float,
    config: HeadToHeadConfig = None,
) -> LeadChangeRisk:
    config = config or HeadToHeadConfig()

    if current_margin != 0 and np.sign(current_margin) != np.sign(delta):
        return LeadChangeRisk.HIGH
    if delta == 0:
        return LeadChangeRisk.HIGH if sigma > 0 else LeadChangeRisk.LOW

    ratio = sigma / abs(delta)
    if ratio > config.high_risk_ratio:
        return LeadChangeRisk.HIGH
    if ratio > config.medium_risk_ratio:
        return LeadChangeRisk.MEDIUM
    return LeadChangeRisk.LOW


def compute_head_to_head(
    result_a: ForecastResult,
    result_b: ForecastResult,
    current_a: float,
    current_b: float,
    config: HeadToHeadConfig = None,
) -> HeadToHeadForecast:
    """
    Compare two term forecasts at the final horizon.

    Args:
        result_a: Forecast for term A
        result_b: Forecast for term B (same horizon)
        current_a: Last observed value of A
        current_b: Last observed value of B
        config: Risk thresholds

    Returns:
        HeadToHeadForecast
    """
    config = config or HeadToHeadConfig()
    if len(result_a.points) != len(result_b.points):
        raise ValueError(
            f"Horizon mismatch: {len(result_a.points)} vs {len(result_b.points)}"
        )

    final_a, final_b = result_a.final_point, result_b.final_point
    delta = final_a.value - final_b.value
    sigma = float(np.hypot(point_sigma(final_a), point_sigma(final_b)))
    current_margin = float(current_a - current_b)

    h2h = HeadToHeadForecast(
        winner_probability=winner_probability(delta, sigma),
        expected_margin_points=float(delta),
        lead_change_risk=lead_change_risk(delta, sigma, current_margin, config),
        current_margin=current_margin,
        forecast_horizon=len(result_a.points),
    )
    logger.info(
        f"Head-to-head: P(A)={h2h.winner_probability:.1f} margin={delta:.2f} "
        f"risk={h2h.lead_change_risk.value}"
    )
    return h2h


def simulate_winner_probability(
    result_a: ForecastResult,
    result_b: ForecastResult,
    n_samples: Optional[int] = None,
    seed: int = 0,
    config: HeadToHeadConfig = None,
) -> float:
    """Monte-Carlo estimate of P(A > B) at the final horizon, seeded"""
    config = config or HeadToHeadConfig()
    if n_samples is None:
        n_samples = config.simulation_samples

    rng = np.random.default_rng(seed)
    final_a, final_b = result_a.final_point, result_b.final_point
    a = rng.normal(final_a.value, point_sigma(final_a), n_samples)
    b = rng.normal(final_b.value, point_sigma(final_b), n_samples)
    return float(100 * np.mean(a > b))
