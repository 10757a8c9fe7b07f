# src/taskpulse/report/delta.py

from __future__ import annotations

import math

from ..core.models import Delta, DeltaKind, Snapshot


def _percent(change: int, previous_total: int) -> int:
    # Relative change from zero is undefined; report 0 instead of dividing.
    if previous_total <= 0:
        return 0
    # Half-up rounding, so 12.5% reads as 13% rather than banker's 12%.
    return int(math.floor(100 * abs(change) / previous_total + 0.5))


def compare(current_total_overdue: int, previous: Snapshot | None) -> Delta:
    """
    Day-over-day comparison of the overdue total.

    change = previous - current, so a positive change is an improvement.
    """
    if previous is None:
        return Delta(kind=DeltaKind.NO_BASELINE)

    change = previous.total_overdue - current_total_overdue
    if change > 0:
        return Delta(
            kind=DeltaKind.IMPROVED,
            amount=change,
            percent=_percent(change, previous.total_overdue),
            previous_date=previous.date,
        )
    if change < 0:
        return Delta(
            kind=DeltaKind.WORSENED,
            amount=-change,
            percent=_percent(change, previous.total_overdue),
            previous_date=previous.date,
        )
    return Delta(kind=DeltaKind.UNCHANGED, previous_date=previous.date)
