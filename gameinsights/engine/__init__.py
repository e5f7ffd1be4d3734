"""
Game Insights predictive engine.

This package contains the forecasting models behind the retention and revenue
dashboards:

- Retention: geometric decay fitting, D30 from early signals, cohort LTV
- Revenue: trend plus day-of-week seasonality, period aggregates, what-if

Models are synchronous and CPU-bound. Each keeps one immutable state snapshot
that is replaced whole by train() or load() and persisted through an injected
key-value store.
"""
