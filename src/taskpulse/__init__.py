"""Daily team task report: tracker -> per-owner overdue stats -> day-over-day delta -> chat."""

__version__ = "0.1.0"
