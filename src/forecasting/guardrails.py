"""
Guardrail policy: fail-closed gate on whether a forecast may be shown

Every rule that cannot be evaluated (missing or non-finite input, unexpected
error) suppresses the forecast. Suppression is a decision, never an exception.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import GuardrailThresholds
from .quality import QualityFlags

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuardrailInputs:
    """Signals the guardrail decides on; None means the caller did not supply it"""
    series_length: Optional[int] = None
    volatility: Optional[float] = None
    disagreement_flag: Optional[bool] = None
    agreement_index: Optional[float] = None
    quality_flags: Sequence[QualityFlags] = field(default_factory=tuple)


@dataclass(frozen=True)
class GuardrailDecision:
    show_forecast: bool
    reasons: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "reasons", tuple(self.reasons))

    def to_dict(self) -> dict:
        return {"show_forecast": self.show_forecast, "reasons": list(self.reasons)}


def compute_volatility(values: np.ndarray) -> float:
    """
    Coefficient of variation on a 0-100 scale.

    Non-finite and negative values are ignored; fewer than two usable values
    or a zero mean give 0.
    """
    x = np.asarray(values, dtype=float)
    x = x[np.isfinite(x) & (x >= 0)]
    if len(x) < 2:
        return 0.0

    mean = float(x.mean())
    if mean <= 0:
        return 0.0
    return float(min(100.0, x.std() / mean * 100))


def _is_finite_number(x) -> bool:
    return x is not None and not isinstance(x, bool) and math.isfinite(float(x))


def _evaluate(inputs: GuardrailInputs, thresholds: GuardrailThresholds) -> List[str]:
    reasons = []

    if not _is_finite_number(inputs.series_length):
        reasons.append("missing_series_length")
    if not _is_finite_number(inputs.volatility):
        reasons.append("missing_volatility")
    if not _is_finite_number(inputs.agreement_index):
        reasons.append("missing_agreement_index")
    if inputs.disagreement_flag is None:
        reasons.append("missing_disagreement_flag")
    if reasons:
        return reasons

    flags = list(inputs.quality_flags or ())

    if inputs.series_length < thresholds.min_series_length or any(
        f.series_too_short for f in flags
    ):
        reasons.append("series_too_short")

    spiky = inputs.volatility > thresholds.high_volatility or any(f.too_spiky for f in flags)
    if spiky and inputs.disagreement_flag:
        reasons.append("volatile_and_disagreeing")

    if inputs.agreement_index < thresholds.agreement_floor:
        reasons.append("low_agreement")

    return reasons


def evaluate_guardrails(
    inputs: GuardrailInputs,
    thresholds: GuardrailThresholds = None,
) -> GuardrailDecision:
    """
    Decide whether a forecast may be shown.

    Suppresses when any input is missing, the series is too short, the data
    is spiky while the sources disagree, or agreement is below the floor.

    Returns:
        GuardrailDecision with every triggered reason
    """
    thresholds = thresholds or GuardrailThresholds()
    try:
        reasons = _evaluate(inputs, thresholds)
    except Exception as e:
        logger.error(f"Guardrail evaluation failed, suppressing forecast: {e}")
        return GuardrailDecision(show_forecast=False, reasons=["guardrail_error"])

    if reasons:
        logger.info(f"Forecast suppressed: {', '.join(reasons)}")
    return GuardrailDecision(show_forecast=not reasons, reasons=reasons)


def should_show_forecast(
    inputs: GuardrailInputs,
    thresholds: GuardrailThresholds = None,
) -> bool:
    return evaluate_guardrails(inputs, thresholds).show_forecast


def complete_inputs(
    inputs: GuardrailInputs,
    values_a: np.ndarray,
    values_b: np.ndarray,
    flags: Sequence[QualityFlags],
    thresholds: GuardrailThresholds = None,
) -> GuardrailInputs:
    """
    Fill derivable guardrail inputs from the series itself.

    series_length and volatility (the larger of the two terms) are computed
    when missing; disagreement_flag defaults to agreement_index below the
    disagreement threshold. agreement_index is never invented.
    """
    thresholds = thresholds or GuardrailThresholds()

    series_length = inputs.series_length
    if series_length is None:
        series_length = min(len(values_a), len(values_b))

    volatility = inputs.volatility
    if volatility is None:
        volatility = max(compute_volatility(values_a), compute_volatility(values_b))

    disagreement = inputs.disagreement_flag
    if disagreement is None and _is_finite_number(inputs.agreement_index):
        disagreement = inputs.agreement_index < thresholds.disagreement_below

    return GuardrailInputs(
        series_length=series_length,
        volatility=volatility,
        disagreement_flag=disagreement,
        agreement_index=inputs.agreement_index,
        quality_flags=tuple(inputs.quality_flags or ()) + tuple(flags),
    )
