"""
trendcast - Head-to-head trend forecasting with calibrated confidence

Modules:
- forecasting: Preprocessing, models, backtesting, intervals, head-to-head, guardrails
- patterns: Cyclical pattern detection over historical peaks
- trust: Read-only rolling forecast accuracy record
- cli: Typer CLI (forecast / patterns / trust)
"""
