"""
Trust statistics: read-only rolling accuracy record for forecast transparency
"""

from .db import TRUST_STATS_SCHEMA, TRUST_STATS_TABLE, connect_readonly
from .stats import (DEFAULT_PERIOD, InMemoryTrustStatsSource, TrustStats,
                    TrustStatsRepository, TrustStatsSource, attach_trust_stats)

__all__ = [
    "TrustStats",
    "TrustStatsSource",
    "TrustStatsRepository",
    "InMemoryTrustStatsSource",
    "attach_trust_stats",
    "DEFAULT_PERIOD",
    "TRUST_STATS_TABLE",
    "TRUST_STATS_SCHEMA",
    "connect_readonly",
]
