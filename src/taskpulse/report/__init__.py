"""
Report computation.

- stats.py: per-employee overdue / no-deadline aggregation
- delta.py: day-over-day comparison
- snapshot_store.py: single-slot JSON store for the previous run
- render.py: deterministic and LLM-backed message rendering
"""
