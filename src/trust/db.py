# file: src/trust/db.py
"""
Trust stats store layout and read-only access.

The table is written by the external evaluation job; this side only opens
existing stores for reading.
"""
from __future__ import annotations

import sqlite3
from pathlib import Path

TRUST_STATS_TABLE = "forecast_trust_stats"

TRUST_STATS_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {TRUST_STATS_TABLE} (
    period TEXT PRIMARY KEY,
    total_evaluated INTEGER NOT NULL DEFAULT 0,
    winner_accuracy_percent REAL,
    interval_coverage_percent REAL,
    last_90_days_accuracy REAL,
    sample_size INTEGER NOT NULL DEFAULT 0,
    last_calculated TEXT NOT NULL
);
"""


def connect_readonly(db_path: str) -> sqlite3.Connection:
    """Open an existing store without write access; never creates the file."""
    uri = f"{Path(db_path).resolve().as_uri()}?mode=ro"
    con = sqlite3.connect(uri, uri=True)
    con.row_factory = sqlite3.Row
    return con
