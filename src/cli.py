# file: src/cli.py
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from src.forecasting.config import load_config
from src.forecasting.exceptions import SeriesValidationError
from src.forecasting.guardrails import GuardrailInputs
from src.forecasting.pack import build_forecast_pack
from src.patterns.analyzer import HistoricalPeak, analyze_pattern
from src.trust.stats import DEFAULT_PERIOD, TrustStatsRepository

logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
app = typer.Typer(add_completion=False)
console = Console()


def _write_json(payload: dict, path: Path) -> None:
    """Atomic JSON write: temp file in the same directory, then replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)
    os.replace(tmp, path)


def _kv_table(title: str, rows: dict) -> Table:
    table = Table(title=title)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for k, v in rows.items():
        table.add_row(str(k), str(v))
    return table


@app.command()
def forecast(
    csv_path: Path,
    horizon: Optional[int] = None,
    agreement_index: Optional[float] = None,
    category: Optional[str] = None,
    output: Optional[Path] = None,
):
    """Forecast two terms from a CSV with columns ds, value_a, value_b."""
    cfg = load_config()
    df = pd.read_csv(csv_path)

    try:
        pack = build_forecast_pack(
            df,
            horizon=horizon,
            config=cfg,
            guardrail_inputs=GuardrailInputs(agreement_index=agreement_index),
            category=category,
        )
    except SeriesValidationError as e:
        console.print(f"[red]Invalid series:[/red] {e}")
        raise typer.Exit(code=1)

    summary = {
        "data_hash": pack.data_hash,
        "computed_at": pack.computed_at,
        "horizon": pack.horizon,
        "model_a": pack.term_a.model.value,
        "model_b": pack.term_b.model.value,
        "confidence_a": pack.term_a.confidence_score,
        "confidence_b": pack.term_b.confidence_score,
        "winner_probability": f"{pack.head_to_head.winner_probability:.1f}",
        "expected_margin": f"{pack.head_to_head.expected_margin_points:.2f}",
        "lead_change_risk": pack.head_to_head.lead_change_risk.value,
        "show_forecast": pack.show_forecast,
        "suppression_reasons": ", ".join(pack.guardrail.reasons) or "-",
    }
    console.print(_kv_table("Forecast Pack", summary))

    points = Table(title="Forecast Points")
    for col in ("date", "A", "A 95%", "B", "B 95%"):
        points.add_column(col)
    for pa, pb in zip(pack.term_a.points, pack.term_b.points):
        points.add_row(
            pa.date.isoformat(),
            f"{pa.value:.1f}",
            f"[{pa.lower95:.1f}, {pa.upper95:.1f}]",
            f"{pb.value:.1f}",
            f"[{pb.lower95:.1f}, {pb.upper95:.1f}]",
        )
    console.print(points)

    if output is not None:
        _write_json(pack.to_dict(), output)
        console.print(f"Wrote {output}")


@app.command()
def patterns(
    csv_path: Path,
    keyword: str = typer.Option(..., help="Keyword whose peaks to analyze"),
    as_of: Optional[str] = None,
):
    """Analyze peak recurrence from a CSV with columns keyword, date, magnitude, value."""
    df = pd.read_csv(csv_path, parse_dates=["date"])
    peaks = [
        HistoricalPeak(
            keyword=str(row.keyword),
            date=row.date.date(),
            magnitude=float(row.magnitude),
            value=float(row.value),
        )
        for row in df.itertuples(index=False)
    ]

    analysis = analyze_pattern(keyword, peaks, as_of=as_of, thresholds=load_config().patterns)
    rows = analysis.to_dict()
    rows["historical_occurrences"] = len(analysis.historical_occurrences)
    console.print(_kv_table(f"Pattern: {keyword}", rows))


@app.command()
def trust(
    db_path: Path,
    period: str = DEFAULT_PERIOD,
):
    """Show the stored forecast trust record for a period."""
    stats = TrustStatsRepository(str(db_path)).get(period)
    if stats is None:
        console.print(f"No trust stats for period '{period}'")
        raise typer.Exit(code=1)

    console.print(_kv_table(f"Trust Stats ({period})", stats.to_dict()))


if __name__ == "__main__":
    app()
