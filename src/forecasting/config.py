# file: src/forecasting/config.py
"""
Engine configuration.

Every threshold here is a product-tuning choice, not a derived optimum.
Override by constructing the dataclasses directly or through load_config().
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from src.patterns.analyzer import PatternThresholds

ENGINE_VERSION = "1.0.0"

MIN_SERIES_POINTS = 7
SEASON_LENGTH = 7


@dataclass(frozen=True)
class QualityThresholds:
    seasonal_min_points: int = 14
    spiky_delta_cv: float = 2.0
    spike_sigma: float = 5.0
    volatility_window: int = 28
    min_volatility: float = 0.5
    shock_ma_window: int = 7
    shock_sigma: float = 3.5


@dataclass(frozen=True)
class BacktestConfig:
    validation_size: int = 7
    step_size: int = 7
    min_train_size: int = 14
    max_folds: int = 12
    min_folds: int = 2
    mape_epsilon: float = 1.0


@dataclass(frozen=True)
class ModelConfig:
    season_length: int = SEASON_LENGTH
    max_ar_order: int = 4
    adf_alpha: float = 0.05
    ets_alphas: tuple = (0.1, 0.2, 0.3, 0.5, 0.7)
    ets_betas: tuple = (0.02, 0.05, 0.1, 0.2)
    ets_phis: tuple = (0.9, 0.95, 0.98, 1.0)
    ets_damped_phis: tuple = (0.8, 0.85, 0.9)


@dataclass(frozen=True)
class IntervalConfig:
    min_empirical_residuals: int = 30
    min_half_width: float = 0.5
    lower_bound: float = 0.0
    upper_bound: float = 100.0


@dataclass(frozen=True)
class HeadToHeadConfig:
    high_risk_ratio: float = 1.0
    medium_risk_ratio: float = 0.5
    simulation_samples: int = 2000


@dataclass(frozen=True)
class GuardrailThresholds:
    min_series_length: int = 14
    high_volatility: float = 50.0
    agreement_floor: float = 40.0
    disagreement_below: float = 60.0


@dataclass(frozen=True)
class ConfidenceConfig:
    error_weight: float = 0.4
    coverage_weight: float = 0.3
    sample_weight: float = 0.3
    mae_scale: float = 2.0
    coverage_scale: float = 2.0
    target_coverage80: float = 80.0
    target_coverage95: float = 95.0
    full_confidence_samples: int = 20
    short_series_penalty: float = 0.5
    spiky_penalty: float = 0.7
    shock_penalty: float = 0.8


@dataclass(frozen=True)
class EngineConfig:
    quality: QualityThresholds = field(default_factory=QualityThresholds)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    models: ModelConfig = field(default_factory=ModelConfig)
    intervals: IntervalConfig = field(default_factory=IntervalConfig)
    head_to_head: HeadToHeadConfig = field(default_factory=HeadToHeadConfig)
    guardrails: GuardrailThresholds = field(default_factory=GuardrailThresholds)
    confidence: ConfidenceConfig = field(default_factory=ConfidenceConfig)
    patterns: PatternThresholds = field(default_factory=PatternThresholds)

    # Forecast / runtime
    default_horizon: int = 14
    parallel: bool = True
    trust_db_path: Optional[str] = None


def _env_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config(base: Optional[EngineConfig] = None) -> EngineConfig:
    """
    Load engine config with overrides from environment.

    Reads TRENDCAST_* variables from .env file or environment.
    """
    load_dotenv(find_dotenv(usecwd=True))

    cfg = base or EngineConfig()

    horizon = os.getenv("TRENDCAST_DEFAULT_HORIZON")
    if horizon:
        try:
            cfg = replace(cfg, default_horizon=int(horizon))
        except ValueError:
            raise ValueError(f"TRENDCAST_DEFAULT_HORIZON must be an integer, got {horizon!r}")

    parallel = os.getenv("TRENDCAST_PARALLEL")
    if parallel:
        cfg = replace(cfg, parallel=_env_bool(parallel))

    trust_db = os.getenv("TRENDCAST_TRUST_DB")
    if trust_db:
        cfg = replace(cfg, trust_db_path=trust_db)

    max_folds = os.getenv("TRENDCAST_MAX_FOLDS")
    if max_folds:
        try:
            cfg = replace(cfg, backtest=replace(cfg.backtest, max_folds=int(max_folds)))
        except ValueError:
            raise ValueError(f"TRENDCAST_MAX_FOLDS must be an integer, got {max_folds!r}")

    return cfg
