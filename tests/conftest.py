"""
Shared fixtures: a writable trust stats store standing in for the evaluation job
"""

import sqlite3

import pytest

from src.trust.db import TRUST_STATS_SCHEMA, TRUST_STATS_TABLE


@pytest.fixture
def trust_db(tmp_path):
    """Empty trust stats store with the expected table"""
    db_path = tmp_path / "trust.db"
    con = sqlite3.connect(db_path)
    con.execute(TRUST_STATS_SCHEMA)
    con.commit()
    con.close()
    return str(db_path)


@pytest.fixture
def insert_trust_row():
    """Write one stats row the way the evaluation job would"""
    def _insert(db_path, period="alltime", **overrides):
        row = dict(
            period=period,
            total_evaluated=120,
            winner_accuracy_percent=71.5,
            interval_coverage_percent=82.0,
            last_90_days_accuracy=68.0,
            sample_size=120,
            last_calculated="2024-06-01T00:00:00",
        )
        row.update(overrides)
        con = sqlite3.connect(db_path)
        con.execute(
            f"INSERT INTO {TRUST_STATS_TABLE} ({', '.join(row)}) "
            f"VALUES ({', '.join('?' for _ in row)})",
            tuple(row.values()),
        )
        con.commit()
        con.close()

    return _insert
