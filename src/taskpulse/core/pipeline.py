# src/taskpulse/core/pipeline.py

from __future__ import annotations

"""
One report run.

collect users/tasks -> aggregate -> load previous snapshot -> compare -> save
-> render -> deliver (or print on dry runs).

Everything up to rendering degrades to empty/default values on failure; only
delivery is allowed to fail the run (DeliveryError propagates to the CLI).
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from ..report.delta import compare
from ..report.render import RenderFacts, Renderer
from ..report.snapshot_store import utc_now
from ..report.stats import aggregate, totals
from ..tracker.source import TaskSource
from .errors import DeliveryError
from .models import Delta, EmployeeStat, Snapshot
from .ports import Notifier, SnapshotRepo

logger = logging.getLogger(__name__)


class RunStatus(StrEnum):
    DELIVERED = "delivered"
    DRY_RUN = "dry_run"
    SKIPPED = "skipped"


@dataclass(slots=True)
class ReportOutcome:
    status: RunStatus
    stats: list[EmployeeStat] = field(default_factory=list)
    snapshot: Snapshot | None = None
    delta: Delta | None = None
    text: str = ""


async def run_report(
        *,
        source: TaskSource,
        store: SnapshotRepo,
        renderer: Renderer,
        notifier: Notifier | None,
        dry_run: bool = False,
        now: datetime | None = None,
        echo: Callable[[str], None] = print,
) -> ReportOutcome:
    now = now or utc_now()

    collected = await source.collect()
    users, tasks = collected.users, collected.tasks
    logger.info(
        "Collected %d trackable users and %d open tasks (directory %s)",
        len(users),
        len(tasks),
        "available" if collected.directory_available else "unavailable",
    )

    if not users:
        logger.warning("No users found. Nothing to report.")
        return ReportOutcome(status=RunStatus.SKIPPED)

    if collected.failed_requests and len(collected.failed_requests) == len(users):
        # An all-zero report (and baseline) here would only reflect the outage.
        logger.error("Task fetch failed for every user. Not reporting.")
        return ReportOutcome(status=RunStatus.SKIPPED)

    stats = aggregate(users, tasks, now)
    total_overdue, total_no_deadline = totals(stats)
    logger.info("Totals: overdue=%d no_deadline=%d", total_overdue, total_no_deadline)

    previous = store.load(now)
    delta = compare(total_overdue, previous)
    logger.info("Change since previous report: %s amount=%d percent=%d", delta.kind.value, delta.amount, delta.percent)

    snapshot = store.save(stats, now)

    facts = RenderFacts.build(stats, delta, now)
    text = await asyncio.to_thread(renderer.render, facts)

    if dry_run:
        logger.info("DRY RUN MODE. Printing the report instead of sending it.")
        echo("---")
        echo(text)
        echo("---")
        return ReportOutcome(status=RunStatus.DRY_RUN, stats=stats, snapshot=snapshot, delta=delta, text=text)

    if notifier is None:
        raise DeliveryError("No notifier configured")

    logger.info("Sending report...")
    await notifier.send_text(text=text)
    return ReportOutcome(status=RunStatus.DELIVERED, stats=stats, snapshot=snapshot, delta=delta, text=text)
