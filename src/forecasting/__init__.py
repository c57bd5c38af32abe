"""
Forecasting engine for head-to-head trend comparison

Implements the per-request forecasting pipeline:
- Series preprocessing and quality flags
- Model implementations (naive, ets, arima) and selection
- Walk-forward backtesting, metrics and confidence score
- Prediction intervals and head-to-head win probability
- Guardrail policy and forecast pack assembly
"""

from .backtesting import (BacktestOutcome, BacktestSplit, generate_splits,
                          walk_forward_backtest)
from .config import EngineConfig, load_config
from .evaluation import BacktestMetrics, ForecastMetrics, confidence_score
from .exceptions import ModelFitError, SeriesValidationError
from .guardrails import (GuardrailDecision, GuardrailInputs, compute_volatility,
                         evaluate_guardrails, should_show_forecast)
from .head_to_head import (HeadToHeadForecast, LeadChangeRisk,
                           compute_head_to_head, simulate_winner_probability)
from .intervals import ForecastPoint, estimate_intervals, forecast_dates
from .models import ModelForecast, ModelKind, fit_and_forecast, list_models
from .pack import ForecastPack, build_forecast_pack, compute_data_hash
from .preprocess import (AlignedSeries, SeriesPoint, preprocess_series,
                         validate_series_frame)
from .quality import QualityFlags, assess_quality
from .selection import (ForecastResult, ModelChoice, ModelSelector, forecast_term,
                        select_and_fit)

__all__ = [
    # Config / errors
    "EngineConfig",
    "load_config",
    "SeriesValidationError",
    "ModelFitError",
    # Preprocessing
    "SeriesPoint",
    "AlignedSeries",
    "preprocess_series",
    "validate_series_frame",
    "QualityFlags",
    "assess_quality",
    # Models
    "ModelKind",
    "ModelForecast",
    "fit_and_forecast",
    "list_models",
    "ModelChoice",
    "ModelSelector",
    "select_and_fit",
    "ForecastResult",
    "forecast_term",
    # Backtesting / evaluation
    "BacktestSplit",
    "BacktestOutcome",
    "generate_splits",
    "walk_forward_backtest",
    "BacktestMetrics",
    "ForecastMetrics",
    "confidence_score",
    # Intervals / comparison
    "ForecastPoint",
    "estimate_intervals",
    "forecast_dates",
    "HeadToHeadForecast",
    "LeadChangeRisk",
    "compute_head_to_head",
    "simulate_winner_probability",
    # Guardrails / pack
    "GuardrailInputs",
    "GuardrailDecision",
    "evaluate_guardrails",
    "should_show_forecast",
    "compute_volatility",
    "ForecastPack",
    "build_forecast_pack",
    "compute_data_hash",
]
