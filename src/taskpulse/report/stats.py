# src/taskpulse/report/stats.py

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from ..core.models import EmployeeStat, Task, User

logger = logging.getLogger(__name__)


def parse_deadline(raw: str | None) -> datetime | None:
    """
    Parse a tracker deadline ("2025-12-02T20:59:59Z") into an aware datetime.

    Returns None for anything that is not an absolute timestamp: malformed strings
    and values without a timezone both count as "cannot tell".
    """
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None or parsed.utcoffset() is None:
        return None
    return parsed


def is_overdue(task: Task, now: datetime) -> bool:
    deadline = parse_deadline(task.deadline)
    return deadline is not None and deadline < now


def aggregate(users: Iterable[User], tasks: Iterable[Task], now: datetime) -> list[EmployeeStat]:
    """
    Per-user overdue / no-deadline counts, least overdue first.

    Only open tasks count (not finished, not deleted, at least one owner). A task with
    several owners counts once for each of them. The sort is stable, so users with
    equal counts keep their input order. `now` must be timezone-aware.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    open_tasks = [t for t in tasks if t.is_open]
    stats: list[EmployeeStat] = []

    for user in users:
        if not user.is_active:
            continue

        overdue = 0
        no_deadline = 0
        for task in open_tasks:
            if user.id not in task.owner_ids:
                continue
            if not task.deadline:
                no_deadline += 1
            elif is_overdue(task, now):
                overdue += 1

        stats.append(EmployeeStat(user=user, overdue_count=overdue, no_deadline_count=no_deadline))

    stats.sort(key=lambda s: s.overdue_count)
    logger.debug("Aggregated %d employees from %d open tasks", len(stats), len(open_tasks))
    return stats


def totals(stats: Iterable[EmployeeStat]) -> tuple[int, int]:
    """(total overdue, total without deadline) over the given stats."""
    overdue = 0
    no_deadline = 0
    for s in stats:
        overdue += s.overdue_count
        no_deadline += s.no_deadline_count
    return overdue, no_deadline
