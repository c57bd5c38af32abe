"""
Walk-forward backtesting

Holds out trailing validation windows, refits on everything before each one,
and pools the out-of-sample errors. Splits are validated against leakage.
Folds whose fit fails are excluded and logged, never scored as zero error.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np

from .config import BacktestConfig, ModelConfig
from .evaluation import BacktestMetrics, summarize_errors
from .exceptions import ModelFitError
from .intervals import Z_80, Z_95
from .models import ModelKind, fit_and_forecast

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BacktestSplit:
    """A single train/validation split, as positional indices"""
    split_id: int
    train_end: int
    test_start: int
    test_end: int

    def __post_init__(self):
        """Validate no leakage"""
        if self.train_end > self.test_start:
            raise ValueError(
                f"Train/test leakage: train_end ({self.train_end}) > "
                f"test_start ({self.test_start})"
            )

    @property
    def train_size(self) -> int:
        return self.train_end

    @property
    def test_size(self) -> int:
        return self.test_end - self.test_start

    @property
    def info(self) -> Dict:
        return {
            "split_id": self.split_id,
            "train_size": self.train_size,
            "test_start": self.test_start,
            "test_end": self.test_end,
        }


@dataclass(frozen=True)
class BacktestOutcome:
    """Metrics plus the residuals the interval estimator calibrates on"""
    metrics: BacktestMetrics
    residuals: np.ndarray = field(default_factory=lambda: np.empty(0))
    splits: List[BacktestSplit] = field(default_factory=list)
    failed_folds: int = 0


def generate_splits(n: int, config: BacktestConfig = None) -> List[BacktestSplit]:
    """
    Generate walk-forward splits from the end of the series backwards.

    Args:
        n: Series length
        config: Backtest settings

    Returns:
        Splits in chronological order (possibly empty)
    """
    config = config or BacktestConfig()
    bounds = []
    for k in range(config.max_folds):
        test_end = n - k * config.step_size
        test_start = test_end - config.validation_size
        if test_start < config.min_train_size:
            break
        bounds.append((test_start, test_end))

    bounds.reverse()
    return [
        BacktestSplit(split_id=i, train_end=start, test_start=start, test_end=end)
        for i, (start, end) in enumerate(bounds)
    ]


def walk_forward_backtest(
    values: np.ndarray,
    kind: ModelKind,
    config: BacktestConfig = None,
    model_config: ModelConfig = None,
    damped: bool = False,
) -> BacktestOutcome:
    """
    Walk-forward backtest of one model kind on one series.

    Args:
        values: Series values (oldest first)
        kind: Model to evaluate
        config: Backtest settings
        model_config: Model settings passed to each refit
        damped: Use the damped ets grid

    Returns:
        BacktestOutcome; metrics are None when fewer than min_folds succeed
    """
    config = config or BacktestConfig()
    model_config = model_config or ModelConfig()
    values = np.asarray(values, dtype=float)
    kind = ModelKind(kind)

    splits = generate_splits(len(values), config)

    actuals, preds = [], []
    lo80, hi80, lo95, hi95 = [], [], [], []
    residuals = []
    used_splits = []
    failed = 0

    for split in splits:
        train = values[:split.train_end]
        actual = values[split.test_start:split.test_end]
        try:
            fc = fit_and_forecast(kind, train, split.test_size, model_config, damped=damped)
        except ModelFitError as e:
            failed += 1
            logger.warning(f"Backtest fold {split.split_id} ({kind.value}) failed: {e}")
            continue

        l80, u80 = fc.bands(Z_80)
        l95, u95 = fc.bands(Z_95)
        actuals.append(actual)
        preds.append(fc.values)
        lo80.append(l80)
        hi80.append(u80)
        lo95.append(l95)
        hi95.append(u95)

        steps = np.arange(1, split.test_size + 1)
        residuals.append((actual - fc.values) / np.sqrt(steps))
        used_splits.append(split)
        logger.debug(f"Fold {split.split_id} ({kind.value}): {split.info}")

    if len(used_splits) < config.min_folds:
        logger.info(
            f"Backtest {kind.value}: {len(used_splits)} usable folds "
            f"(< {config.min_folds}), metrics unavailable"
        )
        return BacktestOutcome(
            metrics=BacktestMetrics(fold_count=len(used_splits)),
            residuals=np.concatenate(residuals) if residuals else np.empty(0),
            splits=used_splits,
            failed_folds=failed,
        )

    metrics = summarize_errors(
        np.concatenate(actuals),
        np.concatenate(preds),
        np.concatenate(lo80),
        np.concatenate(hi80),
        np.concatenate(lo95),
        np.concatenate(hi95),
        fold_count=len(used_splits),
        mape_epsilon=config.mape_epsilon,
    )
    logger.debug(f"Backtest {kind.value}: {metrics}")

    return BacktestOutcome(
        metrics=metrics,
        residuals=np.concatenate(residuals),
        splits=used_splits,
        failed_folds=failed,
    )
