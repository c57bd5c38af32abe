"""
Read-only access to the rolling forecast accuracy record.

The record is produced by an external evaluation job that scores past
forecasts against what actually happened. This module only reads it and
decorates forecast packs with it.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol

from .db import TRUST_STATS_TABLE, connect_readonly

logger = logging.getLogger(__name__)

DEFAULT_PERIOD = "alltime"


@dataclass(frozen=True)
class TrustStats:
    period: str
    total_evaluated: int
    winner_accuracy_percent: Optional[float]
    interval_coverage_percent: Optional[float]
    last_90_days_accuracy: Optional[float]
    sample_size: int
    last_calculated: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


class TrustStatsSource(Protocol):
    def get(self, period: str = DEFAULT_PERIOD) -> Optional[TrustStats]:
        ...


class InMemoryTrustStatsSource:
    """Serves a fixed set of records keyed by period"""

    def __init__(self, stats: Iterable[TrustStats] = ()):
        self._stats: Dict[str, TrustStats] = {s.period: s for s in stats}

    def get(self, period: str = DEFAULT_PERIOD) -> Optional[TrustStats]:
        return self._stats.get(period)


class TrustStatsRepository:
    """SQLite-backed reader for the forecast_trust_stats table"""

    def __init__(self, db_path: str):
        self.db_path = db_path

    def get(self, period: str = DEFAULT_PERIOD) -> Optional[TrustStats]:
        """
        Fetch the record for one evaluation period.

        Returns:
            TrustStats, or None when the store or the row does not exist
        """
        if not Path(self.db_path).exists():
            logger.info(f"Trust stats store not found: {self.db_path}")
            return None

        con = connect_readonly(self.db_path)
        try:
            row = con.execute(
                f"SELECT * FROM {TRUST_STATS_TABLE} WHERE period = ?", (period,)
            ).fetchone()
        except sqlite3.OperationalError as e:
            logger.warning(f"Trust stats unavailable in {self.db_path}: {e}")
            return None
        finally:
            con.close()

        if row is None:
            return None

        return TrustStats(
            period=row["period"],
            total_evaluated=int(row["total_evaluated"]),
            winner_accuracy_percent=row["winner_accuracy_percent"],
            interval_coverage_percent=row["interval_coverage_percent"],
            last_90_days_accuracy=row["last_90_days_accuracy"],
            sample_size=int(row["sample_size"]),
            last_calculated=row["last_calculated"],
        )


def attach_trust_stats(pack, stats: Optional[TrustStats]):
    """Return a copy of the pack decorated with trust stats"""
    return replace(pack, trust_stats=stats)
