# tests/test_snapshot_store.py

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

from taskpulse.core.models import EmployeeStat, PlaceholderUser, ResolvedUser, Snapshot
from taskpulse.report.snapshot_store import SnapshotStore, day_key, is_valid


def _stats() -> list[EmployeeStat]:
    return [
        EmployeeStat(ResolvedUser("a", "Anna"), overdue_count=0, no_deadline_count=2),
        EmployeeStat(PlaceholderUser("p"), overdue_count=3, no_deadline_count=1),
    ]


def _write(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), "utf-8")


def test_missing_file_means_no_baseline(store: SnapshotStore) -> None:
    assert store.load() is None


def test_save_writes_totals_and_employees(store: SnapshotStore, snapshot_path: Path) -> None:
    snapshot = store.save(_stats())

    data = json.loads(snapshot_path.read_text("utf-8"))
    assert data == {
        "date": "2025-06-15",
        "totalOverdue": 3,
        "totalNoDeadline": 3,
        "employees": [
            {"name": "Anna", "overdue": 0, "noDeadline": 2},
            {"name": "Unknown User p", "overdue": 3, "noDeadline": 1},
        ],
    }
    assert snapshot.total_overdue == 3


def test_same_day_snapshot_is_not_a_baseline(store: SnapshotStore) -> None:
    store.save(_stats())
    assert store.load() is None


def test_previous_day_snapshot_is_loaded(snapshot_path: Path, now: datetime) -> None:
    yesterday = SnapshotStore(snapshot_path, clock=lambda: now - timedelta(days=1))
    yesterday.save(_stats())

    today = SnapshotStore(snapshot_path, clock=lambda: now)
    loaded = today.load()

    assert loaded is not None
    assert loaded.date == "2025-06-14"
    assert loaded.total_overdue == 3
    assert [e.name for e in loaded.employees] == ["Anna", "Unknown User p"]


def test_save_overwrites_the_single_slot(snapshot_path: Path, now: datetime) -> None:
    SnapshotStore(snapshot_path, clock=lambda: now - timedelta(days=3)).save(_stats())
    SnapshotStore(snapshot_path, clock=lambda: now - timedelta(days=1)).save(_stats()[:1])

    loaded = SnapshotStore(snapshot_path, clock=lambda: now).load()
    assert loaded is not None
    assert loaded.date == "2025-06-14"
    assert loaded.total_overdue == 0
    assert list(snapshot_path.parent.iterdir()) == [snapshot_path]


def test_unknown_fields_are_tolerated(store: SnapshotStore, snapshot_path: Path) -> None:
    _write(
        snapshot_path,
        {
            "date": "2025-06-10",
            "totalOverdue": 7,
            "totalNoDeadline": 2,
            "employees": [{"name": "Anna", "overdue": 7, "noDeadline": 2, "team": "ops"}],
            "generator": "v2",
        },
    )
    loaded = store.load()
    assert loaded is not None
    assert loaded.total_overdue == 7


def test_malformed_content_means_no_baseline(store: SnapshotStore, snapshot_path: Path) -> None:
    snapshot_path.parent.mkdir(parents=True, exist_ok=True)

    snapshot_path.write_text("{not json", "utf-8")
    assert store.load() is None

    for payload in (
        [],
        {"date": "2025-06-10"},
        {"date": "2025-06-10", "totalOverdue": "7"},
        {"date": "2025-06-10", "totalOverdue": -1},
        {"date": "2025-06-10", "totalOverdue": 1, "employees": "x"},
    ):
        _write(snapshot_path, payload)
        assert store.load() is None, payload


def test_unwritable_location_is_logged_not_raised(tmp_path: Path, now: datetime) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("a file where a directory should be", "utf-8")
    store = SnapshotStore(blocker / "stats" / "latest.json", clock=lambda: now)

    snapshot = store.save(_stats())

    assert snapshot.total_overdue == 3
    assert store.load() is None


def test_validity_predicate_uses_utc_calendar_day() -> None:
    late_evening_moscow = datetime(2025, 6, 15, 23, 30, tzinfo=timezone(timedelta(hours=3)))
    assert day_key(late_evening_moscow) == "2025-06-15"
    just_after_midnight_moscow = datetime(2025, 6, 16, 1, 0, tzinfo=timezone(timedelta(hours=3)))
    assert day_key(just_after_midnight_moscow) == "2025-06-15"

    snap = Snapshot(date="2025-06-15", total_overdue=0, total_no_deadline=0)
    assert is_valid(snap, datetime(2025, 6, 15, 12, tzinfo=timezone.utc)) is False
    assert is_valid(snap, datetime(2025, 6, 16, 0, 1, tzinfo=timezone.utc)) is True
