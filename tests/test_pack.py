"""
Smoke Tests: end-to-end forecast pack with synthetic data

No network or external services; all series are generated with seeded noise.
"""

import json
from dataclasses import replace
from datetime import date

import numpy as np
import pandas as pd
import pytest

from src.forecasting.config import EngineConfig
from src.forecasting.exceptions import SeriesValidationError
from src.forecasting.guardrails import GuardrailInputs
from src.forecasting.head_to_head import LeadChangeRisk
from src.forecasting.models import ModelKind
from src.forecasting.pack import build_forecast_pack, compute_data_hash
from src.forecasting.preprocess import preprocess_series
from src.patterns.analyzer import HistoricalPeak, PatternType
from src.trust.stats import InMemoryTrustStatsSource, TrustStats, attach_trust_stats

AGREEING = GuardrailInputs(agreement_index=80.0)


def make_series(n=90, seed=0):
    """Term A trending up, term B flat"""
    rng = np.random.default_rng(seed)
    t = np.arange(n)
    return pd.DataFrame({
        "ds": pd.date_range("2024-01-01", periods=n, freq="D"),
        "value_a": 10 + 0.5 * t + rng.normal(0, 0.5, n),
        "value_b": 30 + rng.normal(0, 0.5, n),
    })


def swap_terms(df):
    return df.rename(columns={"value_a": "value_b", "value_b": "value_a"})


@pytest.mark.smoke
class TestScenarios:

    def test_trending_vs_flat(self):
        pack = build_forecast_pack(make_series(), horizon=14, guardrail_inputs=AGREEING)

        assert pack.term_a.model != ModelKind.NAIVE
        assert pack.head_to_head.winner_probability > 50.0
        assert pack.head_to_head.lead_change_risk == LeadChangeRisk.LOW
        assert pack.head_to_head.forecast_horizon == 14
        assert pack.show_forecast

    def test_ten_points_is_naive_and_suppressed(self):
        pack = build_forecast_pack(make_series(n=10), horizon=7, guardrail_inputs=AGREEING)

        assert pack.term_a.model == ModelKind.NAIVE
        assert pack.term_b.model == ModelKind.NAIVE
        assert pack.term_a.quality_flags.series_too_short
        assert pack.term_a.confidence_score == 0
        assert not pack.show_forecast
        assert "series_too_short" in pack.guardrail.reasons

    def test_missing_agreement_suppresses(self):
        pack = build_forecast_pack(make_series(), horizon=7)

        assert not pack.show_forecast
        assert "missing_agreement_index" in pack.guardrail.reasons


@pytest.mark.fail_loud
class TestPackInvariants:

    def test_band_ordering_and_dates(self):
        df = make_series()
        pack = build_forecast_pack(df, horizon=30, guardrail_inputs=AGREEING)
        last = df["ds"].iloc[-1].date()

        for result in (pack.term_a, pack.term_b):
            assert len(result.points) == 30
            for i, p in enumerate(result.points):
                assert 0.0 <= p.lower95 <= p.lower80 <= p.value <= p.upper80 <= p.upper95 <= 100.0
                assert (p.date - last).days == i + 1

    def test_deterministic(self):
        df = make_series()
        first = build_forecast_pack(df, horizon=14, guardrail_inputs=AGREEING)
        second = build_forecast_pack(df, horizon=14, guardrail_inputs=AGREEING)

        assert first == second
        assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())

    def test_parallel_matches_sequential(self):
        df = make_series()
        parallel = build_forecast_pack(df, 14, EngineConfig(parallel=True), guardrail_inputs=AGREEING)
        sequential = build_forecast_pack(df, 14, EngineConfig(parallel=False), guardrail_inputs=AGREEING)

        assert parallel == sequential

    def test_swap_symmetry(self):
        df = make_series()
        forward = build_forecast_pack(df, 14, guardrail_inputs=AGREEING)
        backward = build_forecast_pack(swap_terms(df), 14, guardrail_inputs=AGREEING)

        p, q = forward.head_to_head, backward.head_to_head
        assert q.winner_probability == pytest.approx(100.0 - p.winner_probability)
        assert q.expected_margin_points == pytest.approx(-p.expected_margin_points)
        assert q.current_margin == pytest.approx(-p.current_margin)

    def test_invalid_series_raises(self):
        df = make_series()
        df.loc[4, "value_a"] = np.nan

        with pytest.raises(SeriesValidationError):
            build_forecast_pack(df, 14)

    def test_invalid_horizon_raises(self):
        with pytest.raises(ValueError):
            build_forecast_pack(make_series(), 0)


class TestDataHash:

    def test_hash_shape_and_sensitivity(self):
        aligned = preprocess_series(make_series())
        cfg = EngineConfig()

        h14 = compute_data_hash(aligned, 14, cfg)
        h30 = compute_data_hash(aligned, 30, cfg)

        assert len(h14) == 16
        int(h14, 16)
        assert h14 != h30
        assert h14 != compute_data_hash(aligned.swapped(), 14, cfg)

    def test_runtime_switches_do_not_change_hash(self):
        aligned = preprocess_series(make_series())

        assert compute_data_hash(aligned, 14, EngineConfig(parallel=True)) == \
            compute_data_hash(aligned, 14, EngineConfig(parallel=False, trust_db_path="x.db"))

    def test_pack_carries_hash(self):
        df = make_series()
        pack = build_forecast_pack(df, 14, guardrail_inputs=AGREEING)

        assert pack.data_hash == compute_data_hash(
            preprocess_series(df), 14, EngineConfig(), guardrail_inputs=AGREEING
        )

    def test_agreement_index_changes_hash(self):
        df = make_series()
        shown = build_forecast_pack(df, 14, guardrail_inputs=AGREEING)
        suppressed = build_forecast_pack(df, 14, guardrail_inputs=GuardrailInputs(agreement_index=10.0))

        assert shown.show_forecast != suppressed.show_forecast
        assert shown.data_hash != suppressed.data_hash

    def test_decoration_inputs_change_hash(self):
        aligned = preprocess_series(make_series())
        cfg = EngineConfig()
        peaks = [HistoricalPeak("tax", date(y, 4, 15), 3.0, 90.0) for y in range(2019, 2023)]
        base = compute_data_hash(aligned, 14, cfg)

        assert compute_data_hash(aligned, 14, cfg, category="tech") != base
        assert compute_data_hash(aligned, 14, cfg, computed_at="2024-04-01") != base
        assert compute_data_hash(aligned, 14, cfg, peaks=peaks, keyword="tax") != base

    def test_empty_guardrail_inputs_hash_like_none(self):
        aligned = preprocess_series(make_series())
        cfg = EngineConfig()

        assert compute_data_hash(aligned, 14, cfg) == \
            compute_data_hash(aligned, 14, cfg, guardrail_inputs=GuardrailInputs())

    def test_non_finite_signal_still_hashes(self):
        pack = build_forecast_pack(
            make_series(), 7,
            guardrail_inputs=GuardrailInputs(series_length=float("nan"), agreement_index=80.0),
        )

        assert len(pack.data_hash) == 16
        assert "missing_series_length" in pack.guardrail.reasons

    def test_peak_order_does_not_change_hash(self):
        aligned = preprocess_series(make_series())
        peaks = [HistoricalPeak("tax", date(y, 4, 15), 3.0, 90.0) for y in range(2019, 2023)]
        other = [HistoricalPeak("other", date(2020, 1, 1), 1.0, 50.0)]

        forward = compute_data_hash(aligned, 14, EngineConfig(), peaks=peaks, keyword="tax")
        shuffled = compute_data_hash(
            aligned, 14, EngineConfig(), peaks=other + peaks[::-1], keyword="tax"
        )

        assert forward == shuffled

    def test_generator_peaks_reach_the_analyzer(self):
        peaks = (HistoricalPeak("term a", date(y, 9, 14), 2.0, 90.0) for y in range(2019, 2024))
        pack = build_forecast_pack(
            make_series(), 7, guardrail_inputs=AGREEING, peaks=peaks, keyword="term a"
        )

        assert pack.pattern.pattern_type == PatternType.ANNUAL


@pytest.mark.fail_loud
class TestPackImmutability:

    def test_nested_collections_are_read_only(self):
        pack = build_forecast_pack(make_series(), 7, guardrail_inputs=AGREEING)

        with pytest.raises(AttributeError):
            pack.term_a.points.clear()
        with pytest.raises(AttributeError):
            pack.guardrail.reasons.append("forced")
        with pytest.raises(TypeError):
            pack.term_a.model_params["forced"] = 1
        with pytest.raises(AttributeError):
            pack.term_a.points = ()

        assert len(pack.term_a.points) == 7
        assert pack.show_forecast
        assert pack.guardrail.reasons == ()

    def test_list_inputs_are_frozen_on_construction(self):
        pack = build_forecast_pack(make_series(), 7, guardrail_inputs=AGREEING)
        points = list(pack.term_b.points)

        rebuilt = replace(pack.term_b, points=points)
        points.clear()

        assert isinstance(rebuilt.points, tuple)
        assert len(rebuilt.points) == 7
        assert rebuilt == pack.term_b


class TestDecoration:

    def test_passthrough_and_default_timestamp(self):
        pack = build_forecast_pack(make_series(), 7, guardrail_inputs=AGREEING, category="tech")

        assert pack.category == "tech"
        assert pack.computed_at == "2024-03-30"
        assert pack.horizon == 7

    def test_pattern_attached_when_peaks_given(self):
        peaks = [
            HistoricalPeak("term a", date(y, 9, 14), 2.0, 90.0) for y in range(2019, 2024)
        ]
        pack = build_forecast_pack(
            make_series(), 7, guardrail_inputs=AGREEING, peaks=peaks, keyword="Term A"
        )

        assert pack.pattern.pattern_type == PatternType.ANNUAL
        assert pack.pattern.next_predicted.date == date(2024, 9, 14)

    def test_trust_stats_attached(self):
        stats = TrustStats("alltime", 50, 72.0, 81.0, 70.0, 50)
        pack = build_forecast_pack(
            make_series(), 7, guardrail_inputs=AGREEING,
            trust_source=InMemoryTrustStatsSource([stats]),
        )

        assert pack.trust_stats == stats
        assert pack.to_dict()["trust_stats"]["winner_accuracy_percent"] == 72.0

    def test_attach_returns_decorated_copy(self):
        pack = build_forecast_pack(make_series(), 7, guardrail_inputs=AGREEING)
        stats = TrustStats("alltime", 5, 60.0, 75.0, None, 5)

        decorated = attach_trust_stats(pack, stats)

        assert decorated.trust_stats is stats
        assert pack.trust_stats is None
        assert decorated == replace(pack, trust_stats=stats)
