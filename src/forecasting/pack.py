"""
Forecast pack assembly

Runs the per-term pipeline for both terms (concurrently when enabled), joins
them into a head-to-head view, applies the guardrail and decorates the result
with optional pattern and trust context. Identical inputs give identical packs.
"""

import hashlib
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd

from src.patterns.analyzer import HistoricalPeak, PatternAnalysis, analyze_pattern
from src.trust.stats import TrustStats, TrustStatsRepository, TrustStatsSource

from .config import ENGINE_VERSION, EngineConfig
from .guardrails import (GuardrailDecision, GuardrailInputs, complete_inputs,
                         evaluate_guardrails)
from .head_to_head import HeadToHeadForecast, compute_head_to_head
from .preprocess import AlignedSeries, preprocess_series
from .quality import assess_quality
from .selection import ForecastResult, forecast_term

logger = logging.getLogger(__name__)

DATA_HASH_LENGTH = 16


@dataclass(frozen=True)
class ForecastPack:
    term_a: ForecastResult
    term_b: ForecastResult
    head_to_head: HeadToHeadForecast
    computed_at: str
    horizon: int
    data_hash: str
    guardrail: GuardrailDecision
    category: Optional[str] = None
    pattern: Optional[PatternAnalysis] = None
    trust_stats: Optional[TrustStats] = None

    @property
    def show_forecast(self) -> bool:
        return self.guardrail.show_forecast

    def to_dict(self) -> dict:
        return {
            "term_a": self.term_a.to_dict(),
            "term_b": self.term_b.to_dict(),
            "head_to_head": self.head_to_head.to_dict(),
            "computed_at": self.computed_at,
            "horizon": self.horizon,
            "data_hash": self.data_hash,
            "guardrail": self.guardrail.to_dict(),
            "category": self.category,
            "pattern": self.pattern.to_dict() if self.pattern else None,
            "trust_stats": self.trust_stats.to_dict() if self.trust_stats else None,
        }


def _timestamp(value) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _signal(value):
    if value is None:
        return None
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return str(value)


def _guardrail_payload(inputs: Optional[GuardrailInputs]) -> dict:
    inputs = inputs or GuardrailInputs()
    return {
        "series_length": _signal(inputs.series_length),
        "volatility": _signal(inputs.volatility),
        "disagreement_flag": _signal(inputs.disagreement_flag),
        "agreement_index": _signal(inputs.agreement_index),
        "quality_flags": [f.to_dict() for f in inputs.quality_flags or ()],
    }


def _peaks_payload(peaks: Optional[Iterable[HistoricalPeak]], keyword: Optional[str]):
    if peaks is None or not keyword:
        return None
    wanted = keyword.lower()
    rows = [
        [pd.Timestamp(p.date).date().isoformat(), float(p.value), float(p.magnitude)]
        for p in peaks
        if p.keyword.lower() == wanted
    ]
    return sorted(rows)


def compute_data_hash(
    aligned: AlignedSeries,
    horizon: int,
    config: EngineConfig,
    *,
    guardrail_inputs: Optional[GuardrailInputs] = None,
    category: Optional[str] = None,
    computed_at=None,
    peaks: Optional[Iterable[HistoricalPeak]] = None,
    keyword: Optional[str] = None,
) -> str:
    """
    Content hash of every request input that shapes a pack.

    Covers the series, horizon and engine settings plus the caller-supplied
    guardrail signals, category, explicit timestamp and the peaks of the
    analyzed keyword. Runtime switches (parallelism, trust store location)
    do not change the pack and are left out.
    """
    settings = asdict(config)
    settings.pop("parallel", None)
    settings.pop("trust_db_path", None)

    payload = {
        "engine_version": ENGINE_VERSION,
        "horizon": horizon,
        "dates": [d.strftime("%Y-%m-%d") for d in aligned.dates],
        "value_a": [float(v) for v in aligned.values_a],
        "value_b": [float(v) for v in aligned.values_b],
        "config": settings,
        "guardrail_inputs": _guardrail_payload(guardrail_inputs),
        "category": category,
        "computed_at": None if computed_at is None else _timestamp(computed_at),
        "keyword": keyword if peaks is not None and keyword else None,
        "peaks": _peaks_payload(peaks, keyword),
    }
    blob = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()[:DATA_HASH_LENGTH]


def _format_computed_at(value, aligned: AlignedSeries) -> str:
    if value is None:
        return aligned.last_date.date().isoformat()
    return _timestamp(value)


def _run_terms(
    aligned: AlignedSeries,
    horizon: int,
    config: EngineConfig,
) -> Tuple[ForecastResult, ForecastResult]:
    def run_one(values: np.ndarray) -> ForecastResult:
        flags = assess_quality(values, config.quality)
        return forecast_term(values, aligned.dates, horizon, config, flags=flags)

    if not config.parallel:
        return run_one(aligned.values_a), run_one(aligned.values_b)

    with ThreadPoolExecutor(max_workers=2) as executor:
        future_a = executor.submit(run_one, aligned.values_a)
        future_b = executor.submit(run_one, aligned.values_b)
        return future_a.result(), future_b.result()


def build_forecast_pack(
    series: Union[pd.DataFrame, Iterable, AlignedSeries],
    horizon: Optional[int] = None,
    config: Optional[EngineConfig] = None,
    *,
    guardrail_inputs: Optional[GuardrailInputs] = None,
    category: Optional[str] = None,
    computed_at=None,
    peaks: Optional[Iterable[HistoricalPeak]] = None,
    keyword: Optional[str] = None,
    trust_source: Optional[TrustStatsSource] = None,
) -> ForecastPack:
    """
    Build the full forecast pack for two aligned series.

    Args:
        series: DataFrame [ds, value_a, value_b], SeriesPoints, or AlignedSeries
        horizon: Days to forecast (defaults to config.default_horizon)
        config: Engine config (defaults to EngineConfig())
        guardrail_inputs: Caller-supplied signals (agreement index, etc.)
        category: Passed through untouched
        computed_at: Pack timestamp (defaults to the last observed date)
        peaks: Optional peak history for pattern context
        keyword: Keyword whose peaks to analyze
        trust_source: Where to read trust stats (defaults to config.trust_db_path)

    Returns:
        ForecastPack

    Raises:
        SeriesValidationError: if the input series is malformed
        ValueError: if horizon < 1
    """
    config = config or EngineConfig()
    horizon = config.default_horizon if horizon is None else int(horizon)
    if horizon < 1:
        raise ValueError(f"horizon must be >= 1, got {horizon}")

    aligned = series if isinstance(series, AlignedSeries) else preprocess_series(series)
    if peaks is not None:
        peaks = list(peaks)
    data_hash = compute_data_hash(
        aligned,
        horizon,
        config,
        guardrail_inputs=guardrail_inputs,
        category=category,
        computed_at=computed_at,
        peaks=peaks,
        keyword=keyword,
    )
    logger.info(f"Building forecast pack: n={len(aligned)} horizon={horizon} hash={data_hash}")

    result_a, result_b = _run_terms(aligned, horizon, config)

    head_to_head = compute_head_to_head(
        result_a,
        result_b,
        current_a=float(aligned.values_a[-1]),
        current_b=float(aligned.values_b[-1]),
        config=config.head_to_head,
    )

    inputs = complete_inputs(
        guardrail_inputs or GuardrailInputs(),
        aligned.values_a,
        aligned.values_b,
        [result_a.quality_flags, result_b.quality_flags],
        config.guardrails,
    )
    guardrail = evaluate_guardrails(inputs, config.guardrails)

    pattern = None
    if peaks is not None and keyword:
        pattern = analyze_pattern(keyword, peaks, as_of=aligned.last_date.date(),
                                  thresholds=config.patterns)

    if trust_source is None and config.trust_db_path:
        trust_source = TrustStatsRepository(config.trust_db_path)
    trust_stats = trust_source.get() if trust_source is not None else None

    return ForecastPack(
        term_a=result_a,
        term_b=result_b,
        head_to_head=head_to_head,
        computed_at=_format_computed_at(computed_at, aligned),
        horizon=horizon,
        data_hash=data_hash,
        guardrail=guardrail,
        category=category,
        pattern=pattern,
        trust_stats=trust_stats,
    )
