"""
trendcast Test Suite

Tests organized by pipeline stage:
- test_preprocess.py - input validation and alignment (fail-loud)
- test_quality.py - quality flags
- test_models.py - naive / ets / arima forecasters
- test_backtesting.py - walk-forward splits and fold accounting
- test_evaluation.py - metrics (NaN handling) and confidence score
- test_intervals.py - 80/95 bands
- test_selection.py - selection policy and per-term forecasts
- test_head_to_head.py - win probability and lead-change risk
- test_guardrails.py - suppression policy
- test_patterns.py - recurring peak detection
- test_trust.py - read-only trust stats store
- test_pack.py - smoke test (synthetic data)
- test_config.py / test_cli.py - environment overrides and commands
"""
