"""
Series preprocessing: fail-loud input gates

Malformed series must raise SeriesValidationError, never be coerced.
"""

from datetime import date

import numpy as np
import pandas as pd
import pytest

from src.forecasting.exceptions import SeriesValidationError
from src.forecasting.preprocess import (AlignedSeries, SeriesPoint,
                                        preprocess_series, validate_series_frame)


def make_frame(n=20, start="2024-01-01"):
    return pd.DataFrame({
        "ds": pd.date_range(start, periods=n, freq="D"),
        "value_a": np.linspace(10, 30, n),
        "value_b": np.linspace(50, 40, n),
    })


@pytest.mark.fail_loud
class TestRejectsMalformedSeries:
    """Every integrity gate raises a typed validation error"""

    def test_duplicate_dates_raise(self):
        df = make_frame()
        df.loc[5, "ds"] = df.loc[4, "ds"]

        with pytest.raises(SeriesValidationError) as exc:
            preprocess_series(df)
        assert exc.value.details["n_duplicates"] == 2

    def test_out_of_order_dates_raise(self):
        df = make_frame()
        df = df.iloc[[0, 1, 3, 2] + list(range(4, len(df)))].reset_index(drop=True)

        with pytest.raises(SeriesValidationError, match="increasing"):
            preprocess_series(df)

    def test_nan_value_raises(self):
        df = make_frame()
        df.loc[3, "value_b"] = np.nan

        with pytest.raises(SeriesValidationError) as exc:
            preprocess_series(df)
        assert exc.value.details["n_nulls"] == 1

    def test_non_numeric_value_raises(self):
        df = make_frame()
        df["value_a"] = df["value_a"].astype(object)
        df.loc[2, "value_a"] = "NOT_A_NUMBER"

        with pytest.raises(SeriesValidationError):
            preprocess_series(df)

    def test_out_of_scale_value_raises(self):
        df = make_frame()
        df.loc[7, "value_a"] = 120.0

        with pytest.raises(SeriesValidationError, match=r"\[0, 100\]"):
            preprocess_series(df)

    def test_too_few_points_raises(self):
        with pytest.raises(SeriesValidationError, match="too short"):
            preprocess_series(make_frame(n=5))

    def test_gap_in_dates_raises(self):
        df = make_frame(n=21).drop(index=10).reset_index(drop=True)

        with pytest.raises(SeriesValidationError) as exc:
            preprocess_series(df)
        assert exc.value.details["n_irregular_steps"] == 1

    def test_missing_column_raises(self):
        df = make_frame().drop(columns=["value_b"])

        with pytest.raises(SeriesValidationError, match="Missing required columns"):
            preprocess_series(df)

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            preprocess_series(make_frame(n=3))


class TestValidSeries:
    """Valid input produces an aligned, immutable daily series"""

    def test_returns_aligned_series(self):
        aligned = preprocess_series(make_frame(n=20))

        assert isinstance(aligned, AlignedSeries)
        assert len(aligned) == 20
        assert aligned.last_date == pd.Timestamp("2024-01-20")
        assert aligned.values_a[0] == pytest.approx(10.0)
        assert aligned.values_b[-1] == pytest.approx(40.0)

    def test_arrays_are_read_only(self):
        aligned = preprocess_series(make_frame())

        with pytest.raises(ValueError):
            aligned.values_a[0] = 99.0

    def test_accepts_series_points(self):
        points = [
            SeriesPoint(date=date(2024, 3, d), value_a=float(d), value_b=100.0 - d)
            for d in range(1, 11)
        ]
        aligned = preprocess_series(points)

        assert len(aligned) == 10
        assert aligned.dates[0] == pd.Timestamp("2024-03-01")

    def test_timezone_aware_dates_normalized(self):
        df = make_frame()
        df["ds"] = pd.date_range("2024-01-01", periods=len(df), freq="D", tz="UTC")
        aligned = preprocess_series(df)

        assert aligned.dates.tz is None

    def test_swapped_exchanges_terms(self):
        aligned = preprocess_series(make_frame())
        swapped = aligned.swapped()

        np.testing.assert_array_equal(swapped.values_a, aligned.values_b)
        np.testing.assert_array_equal(swapped.values_b, aligned.values_a)


class TestValidationReport:
    """validate_series_frame reports without raising"""

    def test_clean_frame_is_valid(self):
        result = validate_series_frame(make_frame())

        assert result.is_valid
        assert result.errors == []

    def test_report_lists_every_problem(self):
        df = make_frame()
        df.loc[3, "value_a"] = np.nan
        df.loc[4, "value_b"] = -5.0

        result = validate_series_frame(df)

        assert not result.is_valid
        assert result.n_nulls == 1
        assert result.n_out_of_range == 1
        assert len(result.errors) == 2
