"""
Forecasting model implementations

Three independent forecasters behind one registry:
1. naive: last value, or seasonal naive (weekly) with enough history
2. ets: level + damped additive trend, grid-searched smoothing parameters
3. arima: AR(p) on the (optionally) differenced series, statsmodels-backed

Each forecaster returns point forecasts plus a per-step standard error.
"""

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Tuple

import numpy as np

from .config import ModelConfig
from .exceptions import ModelFitError

logger = logging.getLogger(__name__)


class ModelKind(str, Enum):
    NAIVE = "naive"
    ETS = "ets"
    ARIMA = "arima"


@dataclass(frozen=True)
class ModelForecast:
    """Point forecasts and standard errors for steps 1..horizon"""
    kind: ModelKind
    values: np.ndarray
    std_errors: np.ndarray
    params: Dict = field(default_factory=dict)

    @property
    def horizon(self) -> int:
        return len(self.values)

    @property
    def one_step_sigma(self) -> float:
        return float(self.std_errors[0]) if len(self.std_errors) else 0.0

    def bands(self, z: float) -> Tuple[np.ndarray, np.ndarray]:
        """Symmetric normal bands at the given z-score"""
        return self.values - z * self.std_errors, self.values + z * self.std_errors


def _check_finite(kind: ModelKind, values: np.ndarray, std_errors: np.ndarray):
    if not (np.all(np.isfinite(values)) and np.all(np.isfinite(std_errors))):
        raise ModelFitError(f"{kind.value} produced non-finite output")


def fit_naive(y: np.ndarray, horizon: int, config: ModelConfig, **kwargs) -> ModelForecast:
    """
    Naive forecaster.

    Uses the value one season back when at least two seasons of history are
    available, otherwise the last value. Standard error comes from the spread
    of the matching (seasonal) differences and grows with sqrt(h).
    """
    n = len(y)
    if n == 0:
        raise ModelFitError("naive requires at least one observation")

    m = config.season_length
    steps = np.arange(1, horizon + 1)

    if n >= 2 * m:
        season = y[n - m:]
        values = season[(steps - 1) % m].astype(float)
        diffs = y[m:] - y[:-m]
        seasonal = True
    else:
        values = np.full(horizon, float(y[-1]))
        diffs = np.diff(y)
        seasonal = False

    sigma = float(np.std(diffs, ddof=1)) if len(diffs) > 1 else 0.0
    std_errors = sigma * np.sqrt(steps)

    _check_finite(ModelKind.NAIVE, values, std_errors)
    return ModelForecast(
        kind=ModelKind.NAIVE,
        values=values,
        std_errors=std_errors,
        params={"seasonal": seasonal, "sigma": sigma},
    )


def _damped_holt(y: np.ndarray, alpha: float, beta: float, phi: float, init_span: int):
    """Run the damped Holt recursions, returning final state and one-step errors"""
    span = min(init_span, len(y) - 1)
    level = float(y[0])
    trend = float(y[span] - y[0]) / span

    errors = np.empty(len(y) - 1)
    for t in range(1, len(y)):
        pred = level + phi * trend
        errors[t - 1] = y[t] - pred
        new_level = pred + alpha * errors[t - 1]
        trend = beta * (new_level - level) + (1 - beta) * phi * trend
        level = new_level

    return level, trend, errors


def fit_ets(
    y: np.ndarray,
    horizon: int,
    config: ModelConfig,
    damped: bool = False,
    **kwargs,
) -> ModelForecast:
    """
    Exponential smoothing with damped additive trend.

    (alpha, beta, phi) are picked by grid search on one-step squared error;
    damped=True restricts phi to the conservative grid.
    """
    if len(y) < 4:
        raise ModelFitError(f"ets requires at least 4 observations, got {len(y)}")

    phis = config.ets_damped_phis if damped else config.ets_phis
    best = None
    for alpha in config.ets_alphas:
        for beta in config.ets_betas:
            for phi in phis:
                level, trend, errors = _damped_holt(y, alpha, beta, phi, config.season_length)
                mse = float(np.mean(errors ** 2))
                if not np.isfinite(mse):
                    continue
                if best is None or mse < best[0]:
                    best = (mse, alpha, beta, phi, level, trend)

    if best is None:
        raise ModelFitError("ets grid search found no finite fit")

    mse, alpha, beta, phi, level, trend = best
    steps = np.arange(1, horizon + 1)
    damp = np.cumsum(phi ** steps)
    values = level + damp * trend
    std_errors = np.sqrt(mse) * np.sqrt(steps)

    _check_finite(ModelKind.ETS, values, std_errors)
    logger.debug(f"ets fitted: alpha={alpha} beta={beta} phi={phi} mse={mse:.4f}")
    return ModelForecast(
        kind=ModelKind.ETS,
        values=values,
        std_errors=std_errors,
        params={"alpha": alpha, "beta": beta, "phi": phi, "damped": damped},
    )


def _adf_pvalue(y: np.ndarray) -> float:
    """ADF p-value; asks for the plain tuple where statsmodels offers a result object"""
    from statsmodels.tsa.stattools import adfuller

    kwargs = {}
    if "result_object" in inspect.signature(adfuller).parameters:
        kwargs["result_object"] = False
    return float(adfuller(y, autolag="AIC", **kwargs)[1])


def _difference_order(y: np.ndarray, alpha: float) -> int:
    """Pick d in {0, 1} with the augmented Dickey-Fuller test"""
    try:
        p_value = _adf_pvalue(y)
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.debug(f"ADF test failed ({e}), differencing once")
        return 1

    return 0 if p_value < alpha else 1


def fit_arima(y: np.ndarray, horizon: int, config: ModelConfig, **kwargs) -> ModelForecast:
    """
    ARIMA(p, d, 0) forecaster.

    d is chosen by ADF test, p in [0, max_ar_order] by AIC on the differenced
    series. Standard errors come from the psi-weights of the integrated AR
    polynomial.

    Raises:
        ModelFitError: non-stationary AR fit, singular system or non-finite output
    """
    from statsmodels.tsa.ar_model import AutoReg, ar_select_order
    from statsmodels.tsa.arima_process import arma2ma

    if len(y) < 10:
        raise ModelFitError(f"arima requires at least 10 observations, got {len(y)}")

    d = _difference_order(y, config.adf_alpha)
    z = np.diff(y) if d == 1 else np.asarray(y, dtype=float)
    if np.ptp(z) < 1e-12:
        raise ModelFitError("arima input has no variation")

    maxlag = max(1, min(config.max_ar_order, (len(z) - 1) // 4))
    try:
        selection = ar_select_order(z, maxlag=maxlag, ic="aic", trend="c")
        res = AutoReg(z, lags=selection.ar_lags, trend="c").fit()
    except (ValueError, np.linalg.LinAlgError) as e:
        raise ModelFitError(f"arima fit failed: {e}") from e

    params = np.asarray(res.params, dtype=float)
    const, phi = params[0], params[1:]
    if len(phi) and np.any(np.abs(res.roots) <= 1.0):
        raise ModelFitError("arima AR polynomial is not stationary")

    history: List[float] = list(z)
    forecast_z = np.empty(horizon)
    for h in range(horizon):
        step = const + sum(phi[i] * history[-1 - i] for i in range(len(phi)))
        forecast_z[h] = step
        history.append(step)

    values = y[-1] + np.cumsum(forecast_z) if d == 1 else forecast_z

    ar_poly = np.r_[1.0, -phi]
    if d == 1:
        ar_poly = np.convolve(ar_poly, [1.0, -1.0])
    psi = arma2ma(ar_poly, np.array([1.0]), lags=horizon)
    std_errors = np.sqrt(float(res.sigma2) * np.cumsum(psi ** 2))

    _check_finite(ModelKind.ARIMA, values, std_errors)
    logger.debug(f"arima fitted: p={len(phi)} d={d} sigma2={float(res.sigma2):.4f}")
    return ModelForecast(
        kind=ModelKind.ARIMA,
        values=np.asarray(values, dtype=float),
        std_errors=std_errors,
        params={"p": len(phi), "d": d},
    )


FORECASTERS: Dict[ModelKind, Callable[..., ModelForecast]] = {
    ModelKind.NAIVE: fit_naive,
    ModelKind.ETS: fit_ets,
    ModelKind.ARIMA: fit_arima,
}


def fit_and_forecast(
    kind: ModelKind,
    y: np.ndarray,
    horizon: int,
    config: ModelConfig = None,
    damped: bool = False,
) -> ModelForecast:
    """
    Fit the given model kind and forecast `horizon` steps ahead.

    Raises:
        ModelFitError: if the model cannot produce a usable forecast
    """
    if horizon < 1:
        raise ValueError(f"horizon must be >= 1, got {horizon}")

    kind = ModelKind(kind)
    config = config or ModelConfig()
    y = np.asarray(y, dtype=float)
    return FORECASTERS[kind](y, horizon, config, damped=damped)


def list_models() -> List[str]:
    """List available model kinds"""
    return [k.value for k in FORECASTERS]
