"""
Model selection and per-term forecasting

Orchestrates quality-aware model choice, backtest arbitration and interval
estimation for a single term.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from .backtesting import BacktestOutcome, walk_forward_backtest
from .config import EngineConfig
from .evaluation import BacktestMetrics, confidence_score
from .exceptions import ModelFitError
from .intervals import ForecastPoint, estimate_intervals, forecast_dates
from .models import ModelForecast, ModelKind, fit_and_forecast
from .quality import QualityFlags, assess_quality

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForecastResult:
    """Forecast for one term; points and params are stored read-only"""
    points: Tuple[ForecastPoint, ...]
    model: ModelKind
    metrics: BacktestMetrics
    confidence_score: int
    quality_flags: QualityFlags
    model_params: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "points", tuple(self.points))
        object.__setattr__(self, "model_params", MappingProxyType(dict(self.model_params)))

    @property
    def final_point(self) -> ForecastPoint:
        return self.points[-1]

    def to_dict(self) -> dict:
        return {
            "points": [p.to_dict() for p in self.points],
            "model": self.model.value,
            "metrics": self.metrics.to_dict(),
            "confidence_score": self.confidence_score,
            "quality_flags": self.quality_flags.to_dict(),
        }


@dataclass(frozen=True)
class ModelChoice:
    """Selected model with the reason it was picked"""
    kind: ModelKind
    damped: bool = False
    reason: str = ""


def _mape_key(outcome: BacktestOutcome) -> float:
    mape = outcome.metrics.mape
    return np.inf if mape is None else mape


class ModelSelector:
    """Pick a forecaster per term from its quality flags and backtest results"""

    def __init__(self, config: EngineConfig = None):
        self.config = config or EngineConfig()

    def _fit(self, choice: ModelChoice, values: np.ndarray, horizon: int) -> ModelForecast:
        return fit_and_forecast(
            choice.kind, values, horizon, self.config.models, damped=choice.damped
        )

    def _backtest(self, choice: ModelChoice, values: np.ndarray) -> BacktestOutcome:
        return walk_forward_backtest(
            values,
            choice.kind,
            self.config.backtest,
            self.config.models,
            damped=choice.damped,
        )

    def _compete(
        self,
        values: np.ndarray,
        horizon: int,
    ) -> Optional[Tuple[ModelChoice, ModelForecast, BacktestOutcome]]:
        """Fit ets and arima, keep the one with the lower backtest MAPE (ties to ets)"""
        best = None
        for kind in (ModelKind.ETS, ModelKind.ARIMA):
            choice = ModelChoice(kind=kind, reason="lowest_backtest_mape")
            try:
                fc = self._fit(choice, values, horizon)
            except ModelFitError as e:
                logger.warning(f"Candidate {kind.value} failed on full series: {e}")
                continue

            outcome = self._backtest(choice, values)
            logger.info(
                f"Candidate {kind.value}: mape={outcome.metrics.mape} "
                f"folds={outcome.metrics.fold_count}"
            )
            if best is None or _mape_key(outcome) < _mape_key(best[2]):
                best = (choice, fc, outcome)

        return best

    def select(
        self,
        values: np.ndarray,
        flags: QualityFlags,
        horizon: int,
    ) -> Tuple[ModelChoice, ModelForecast, BacktestOutcome]:
        """
        Choose and fit a model for one term.

        Policy:
        1. series_too_short -> naive
        2. too_spiky or event_shock_likely -> damped ets
        3. otherwise ets vs arima by backtest MAPE

        Fit failures degrade to naive; this never raises ModelFitError for
        series that passed preprocessing.

        Returns:
            (choice, forecast, backtest outcome of the chosen model)
        """
        values = np.asarray(values, dtype=float)

        if flags.series_too_short:
            choice = ModelChoice(kind=ModelKind.NAIVE, reason="series_too_short")
        elif flags.too_spiky or flags.event_shock_likely:
            choice = ModelChoice(kind=ModelKind.ETS, damped=True, reason="noisy_series")
        else:
            best = self._compete(values, horizon)
            if best is not None:
                return best
            logger.warning("All candidates failed, falling back to naive")
            choice = ModelChoice(kind=ModelKind.NAIVE, reason="fallback")

        try:
            fc = self._fit(choice, values, horizon)
        except ModelFitError as e:
            logger.warning(f"{choice.kind.value} failed ({e}), falling back to naive")
            choice = ModelChoice(kind=ModelKind.NAIVE, reason="fallback")
            fc = self._fit(choice, values, horizon)

        return choice, fc, self._backtest(choice, values)


def select_and_fit(
    values: np.ndarray,
    flags: QualityFlags,
    horizon: int,
    config: EngineConfig = None,
) -> Tuple[ModelChoice, ModelForecast, BacktestOutcome]:
    return ModelSelector(config).select(values, flags, horizon)


def forecast_term(
    values: np.ndarray,
    dates: pd.DatetimeIndex,
    horizon: int,
    config: EngineConfig = None,
    flags: QualityFlags = None,
) -> ForecastResult:
    """
    Quality-assess, select, fit, backtest and band one term.

    Args:
        values: Validated values (oldest first)
        dates: Matching daily dates
        horizon: Days to forecast
        config: Engine config
        flags: Precomputed quality flags (computed when omitted)

    Returns:
        ForecastResult
    """
    config = config or EngineConfig()
    values = np.asarray(values, dtype=float)
    if flags is None:
        flags = assess_quality(values, config.quality)

    choice, fc, outcome = select_and_fit(values, flags, horizon, config)

    points = estimate_intervals(
        fc,
        outcome.residuals,
        forecast_dates(dates[-1], horizon),
        config.intervals,
    )
    score = confidence_score(outcome.metrics, flags, config.confidence)

    logger.info(
        f"Term forecast: model={choice.kind.value} ({choice.reason}) "
        f"confidence={score} folds={outcome.metrics.fold_count}"
    )
    return ForecastResult(
        points=points,
        model=choice.kind,
        metrics=outcome.metrics,
        confidence_score=score,
        quality_flags=flags,
        model_params=dict(fc.params),
    )
