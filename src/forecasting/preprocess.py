"""
Series preprocessing: validate and align the two input series

Hard gates for input integrity (fail loud, never coerce):
- Required columns present
- Parseable dates, no duplicates, strictly increasing
- Daily spacing (irregular sampling is rejected)
- Finite numeric values on the 0-100 scale
- Minimum point count for any downstream model
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Union

import numpy as np
import pandas as pd

from .config import MIN_SERIES_POINTS
from .exceptions import SeriesValidationError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("ds", "value_a", "value_b")


@dataclass(frozen=True)
class SeriesPoint:
    """One aligned observation for both terms"""
    date: date
    value_a: float
    value_b: float


@dataclass(frozen=True)
class AlignedSeries:
    """Validated, sorted daily series for term A and term B"""
    dates: pd.DatetimeIndex
    values_a: np.ndarray
    values_b: np.ndarray

    def __len__(self) -> int:
        return len(self.dates)

    @property
    def last_date(self) -> pd.Timestamp:
        return self.dates[-1]

    def swapped(self) -> "AlignedSeries":
        """Same series with term A and term B exchanged"""
        return AlignedSeries(dates=self.dates, values_a=self.values_b, values_b=self.values_a)


@dataclass
class ValidationResult:
    """Results of series validation"""
    is_valid: bool
    n_rows: int
    n_duplicates: int = 0
    n_bad_dates: int = 0
    n_nulls: int = 0
    n_out_of_range: int = 0
    n_irregular_steps: int = 0
    is_monotonic: bool = True
    errors: List[str] = field(default_factory=list)


def _points_to_frame(points: Iterable[SeriesPoint]) -> pd.DataFrame:
    rows = [{"ds": p.date, "value_a": p.value_a, "value_b": p.value_b} for p in points]
    return pd.DataFrame(rows, columns=list(REQUIRED_COLUMNS))


def validate_series_frame(df: pd.DataFrame, min_points: int = MIN_SERIES_POINTS) -> ValidationResult:
    """
    Validate a two-term series frame.

    Checks:
    1. Required columns [ds, value_a, value_b]
    2. Parseable dates
    3. No duplicate dates, monotonic increasing order as given
    4. Daily spacing
    5. Finite numeric values within [0, 100]
    6. Minimum row count

    Args:
        df: DataFrame with columns [ds, value_a, value_b]
        min_points: Hard minimum number of points

    Returns:
        ValidationResult with detailed findings
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        return ValidationResult(
            is_valid=False,
            n_rows=len(df),
            errors=[f"Missing required columns: {missing}"],
        )

    errors = []
    n_rows = len(df)

    ds = pd.to_datetime(df["ds"], errors="coerce")
    n_bad_dates = int(ds.isna().sum())
    if n_bad_dates:
        errors.append(f"Unparseable dates: {n_bad_dates}")
    if getattr(ds.dt, "tz", None) is not None:
        ds = ds.dt.tz_convert("UTC").dt.tz_localize(None)
    ds = ds.dt.normalize()

    n_duplicates = int(ds.dropna().duplicated(keep=False).sum())
    if n_duplicates:
        errors.append(f"Duplicate dates: {n_duplicates}")

    is_monotonic = bool(ds.dropna().is_monotonic_increasing)
    if not is_monotonic:
        errors.append("Dates are not in increasing order")

    n_irregular = 0
    if n_bad_dates == 0 and n_duplicates == 0 and is_monotonic and n_rows > 1:
        steps = ds.diff().dropna()
        n_irregular = int((steps != pd.Timedelta(days=1)).sum())
        if n_irregular:
            errors.append(f"Non-daily spacing at {n_irregular} steps")

    n_nulls = 0
    n_out_of_range = 0
    for col in ("value_a", "value_b"):
        values = pd.to_numeric(df[col], errors="coerce").astype(float)
        bad = ~np.isfinite(values.to_numpy())
        n_nulls += int(bad.sum())
        finite = values[~bad]
        n_out_of_range += int(((finite < 0) | (finite > 100)).sum())
    if n_nulls:
        errors.append(f"Missing or non-numeric values: {n_nulls}")
    if n_out_of_range:
        errors.append(f"Values outside [0, 100]: {n_out_of_range}")

    if n_rows < min_points:
        errors.append(f"Series too short: {n_rows} < {min_points}")

    return ValidationResult(
        is_valid=not errors,
        n_rows=n_rows,
        n_duplicates=n_duplicates,
        n_bad_dates=n_bad_dates,
        n_nulls=n_nulls,
        n_out_of_range=n_out_of_range,
        n_irregular_steps=n_irregular,
        is_monotonic=is_monotonic,
        errors=errors,
    )


def preprocess_series(
    data: Union[pd.DataFrame, Iterable[SeriesPoint]],
    min_points: int = MIN_SERIES_POINTS,
) -> AlignedSeries:
    """
    Validate and align both term series.

    Raises:
        SeriesValidationError: if any integrity gate fails
    """
    df = data if isinstance(data, pd.DataFrame) else _points_to_frame(data)

    result = validate_series_frame(df, min_points=min_points)
    if not result.is_valid:
        logger.warning(f"Series rejected: {'; '.join(result.errors)}")
        raise SeriesValidationError(
            f"Invalid series: {'; '.join(result.errors)}",
            details={
                "n_rows": result.n_rows,
                "n_duplicates": result.n_duplicates,
                "n_nulls": result.n_nulls,
                "n_out_of_range": result.n_out_of_range,
                "n_irregular_steps": result.n_irregular_steps,
                "is_monotonic": result.is_monotonic,
            },
        )

    ds = pd.to_datetime(df["ds"], errors="raise")
    if getattr(ds.dt, "tz", None) is not None:
        ds = ds.dt.tz_convert("UTC").dt.tz_localize(None)
    dates = pd.DatetimeIndex(ds.dt.normalize(), freq="D")

    values_a = pd.to_numeric(df["value_a"], errors="raise").to_numpy(dtype=float).copy()
    values_b = pd.to_numeric(df["value_b"], errors="raise").to_numpy(dtype=float).copy()
    values_a.setflags(write=False)
    values_b.setflags(write=False)

    logger.debug(f"Preprocessed {len(dates)} points: {dates[0].date()} .. {dates[-1].date()}")
    return AlignedSeries(dates=dates, values_a=values_a, values_b=values_b)
