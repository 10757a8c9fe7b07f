# src/taskpulse/report/snapshot_store.py

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path

from ..core.models import EmployeeStat, Snapshot, SnapshotEmployee
from .stats import totals

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def day_key(now: datetime) -> str:
    """Calendar day (UTC) used to key snapshots: YYYY-MM-DD."""
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.date().isoformat()


def is_valid(snapshot: Snapshot, now: datetime) -> bool:
    """A snapshot from today is not a baseline: a re-run would compare against itself."""
    return snapshot.date != day_key(now)


def build_snapshot(stats: Iterable[EmployeeStat], now: datetime) -> Snapshot:
    stats = list(stats)
    total_overdue, total_no_deadline = totals(stats)
    return Snapshot(
        date=day_key(now),
        total_overdue=total_overdue,
        total_no_deadline=total_no_deadline,
        employees=[
            SnapshotEmployee(
                name=s.user.display_name,
                overdue=s.overdue_count,
                no_deadline=s.no_deadline_count,
            )
            for s in stats
        ],
    )


class SnapshotStore:
    """
    Single-slot JSON store for the latest run's aggregate.

    - load(): best-effort; missing/unreadable/malformed files and same-day snapshots -> None
    - save(): always overwrites the slot (last write wins); failures are logged, never raised

    There is no locking: runs are assumed not to overlap.
    """

    def __init__(self, path: str | Path, *, clock: Clock = utc_now) -> None:
        self._path = Path(path)
        self._clock = clock

    @property
    def path(self) -> Path:
        return self._path

    def load(self, now: datetime | None = None) -> Snapshot | None:
        if not self._path.exists():
            logger.info("No previous stats found at %s (first run?)", self._path)
            return None

        try:
            data = json.loads(self._path.read_text("utf-8"))
            snapshot = Snapshot.from_dict(data)
        except (OSError, ValueError) as e:
            # json.JSONDecodeError and UnicodeDecodeError are ValueErrors too.
            logger.warning("Ignoring unreadable stats file %s: %s", self._path, e)
            return None

        if not is_valid(snapshot, now or self._clock()):
            logger.info("Stored stats are from today (%s); not using them as a baseline", snapshot.date)
            return None

        logger.info("Loaded previous stats from %s", snapshot.date)
        return snapshot

    def save(self, stats: list[EmployeeStat], now: datetime | None = None) -> Snapshot:
        """
        Persist the aggregate and return the snapshot that was (or should have been) written.

        `now` dates the snapshot; the store's clock is used when it is omitted.
        """
        snapshot = build_snapshot(stats, now or self._clock())
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(".tmp")
            tmp.write_text(json.dumps(snapshot.to_dict(), ensure_ascii=False, indent=2), "utf-8")
            os.replace(tmp, self._path)
            logger.info("Saved stats to %s", self._path)
        except OSError:
            logger.exception("Failed to save stats to %s", self._path)
        return snapshot
