"""
Model selection policy and per-term forecasting
"""

import numpy as np
import pandas as pd
import pytest

import src.forecasting.selection as selection
from src.forecasting.exceptions import ModelFitError
from src.forecasting.models import ModelKind
from src.forecasting.quality import QualityFlags
from src.forecasting.selection import ModelSelector, forecast_term


def trending(n=90, seed=0):
    rng = np.random.default_rng(seed)
    return 10 + 0.5 * np.arange(n) + rng.normal(0, 0.5, n)


class TestSelectionPolicy:

    def test_short_series_uses_naive(self):
        values = trending(n=10)
        choice, fc, outcome = ModelSelector().select(
            values, QualityFlags(series_too_short=True), horizon=7
        )

        assert choice.kind == ModelKind.NAIVE
        assert fc.horizon == 7
        assert outcome.metrics.mae is None

    def test_noisy_series_uses_damped_ets(self):
        choice, fc, _ = ModelSelector().select(
            trending(), QualityFlags(too_spiky=True), horizon=7
        )

        assert choice.kind == ModelKind.ETS
        assert choice.damped
        assert fc.params["damped"]

    def test_shock_uses_damped_ets(self):
        choice, _, _ = ModelSelector().select(
            trending(), QualityFlags(event_shock_likely=True), horizon=7
        )

        assert choice == selection.ModelChoice(ModelKind.ETS, damped=True, reason="noisy_series")

    def test_clean_series_competes(self):
        choice, _, outcome = ModelSelector().select(trending(), QualityFlags(), horizon=14)

        assert choice.kind in (ModelKind.ETS, ModelKind.ARIMA)
        assert outcome.metrics.mape is not None

    def test_all_candidates_failing_falls_back_to_naive(self, monkeypatch):
        real_fit = selection.fit_and_forecast

        def failing_fit(kind, *args, **kwargs):
            if kind != ModelKind.NAIVE:
                raise ModelFitError("forced")
            return real_fit(kind, *args, **kwargs)

        monkeypatch.setattr(selection, "fit_and_forecast", failing_fit)
        choice, fc, _ = ModelSelector().select(trending(), QualityFlags(), horizon=5)

        assert choice.kind == ModelKind.NAIVE
        assert choice.reason == "fallback"
        assert fc.horizon == 5

    def test_select_and_fit_matches_selector(self):
        values = trending(n=40)
        flags = QualityFlags(too_spiky=True)

        choice, fc, _ = selection.select_and_fit(values, flags, horizon=7)
        expected, expected_fc, _ = ModelSelector().select(values, flags, horizon=7)

        assert choice == expected
        np.testing.assert_allclose(fc.values, expected_fc.values)


class TestForecastTerm:

    def test_forecast_term_shape(self):
        values = trending()
        dates = pd.date_range("2024-01-01", periods=len(values), freq="D")

        result = forecast_term(values, dates, horizon=14)

        assert len(result.points) == 14
        assert result.points[0].date > dates[-1].date()
        assert result.model != ModelKind.NAIVE
        assert 0 <= result.confidence_score <= 100
        assert result.final_point is result.points[-1]

    def test_to_dict_is_plain(self):
        values = trending(n=30)
        dates = pd.date_range("2024-01-01", periods=30, freq="D")

        d = forecast_term(values, dates, horizon=3).to_dict()

        assert d["model"] in ("naive", "ets", "arima")
        assert len(d["points"]) == 3
        assert set(d["quality_flags"]) == {"series_too_short", "too_spiky", "event_shock_likely"}
