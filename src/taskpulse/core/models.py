# src/taskpulse/core/models.py

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeAlias


@dataclass(frozen=True, slots=True)
class ResolvedUser:
    """A user record that came back from the tracker's directory or profile lookup."""

    id: str
    display_name: str
    is_deleted: bool = False
    is_disabled: bool = False
    departure_date: str | None = None

    @property
    def is_active(self) -> bool:
        return not self.is_deleted and not self.is_disabled and not self.departure_date


@dataclass(frozen=True, slots=True)
class PlaceholderUser:
    """
    Stand-in for an owner id whose profile could not be resolved.

    Keeps the owner's tasks attributable in the report even when the lookup failed.
    """

    id: str

    @property
    def display_name(self) -> str:
        return f"Unknown User {self.id}"

    @property
    def is_active(self) -> bool:
        return True


User: TypeAlias = ResolvedUser | PlaceholderUser


@dataclass(frozen=True, slots=True)
class Task:
    id: int
    owner_ids: tuple[str, ...]
    # Raw ISO-8601 string as sent by the tracker; parsed at aggregation time.
    deadline: str | None = None
    is_finished: bool = False
    is_deleted: bool = False
    name: str = ""

    @property
    def is_open(self) -> bool:
        return not self.is_finished and not self.is_deleted and bool(self.owner_ids)


class TaskIndex:
    """
    Deduplicating Task.id -> Task mapping used while merging per-user listings.

    The same task shows up in the view of every owner; the index keeps exactly one
    entry per id (the latest copy, at the position where the id was first seen).
    """

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._by_id: dict[int, Task] = {}
        self.merge(tasks)

    def add(self, task: Task) -> bool:
        """Insert or replace; returns True if the id was not present before."""
        is_new = task.id not in self._by_id
        self._by_id[task.id] = task
        return is_new

    def merge(self, tasks: Iterable[Task]) -> int:
        """Add many tasks; returns how many new ids were seen."""
        return sum(1 for t in tasks if self.add(t))

    def tasks(self) -> list[Task]:
        return list(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._by_id

    def __iter__(self) -> Iterator[Task]:
        return iter(self._by_id.values())


@dataclass(frozen=True, slots=True)
class EmployeeStat:
    user: User
    overdue_count: int = 0
    no_deadline_count: int = 0


@dataclass(frozen=True, slots=True)
class SnapshotEmployee:
    name: str
    overdue: int
    no_deadline: int


@dataclass(frozen=True, slots=True)
class Snapshot:
    """
    Persisted aggregate of one run. Serialized with the field names of the first
    deployment (date, totalOverdue, totalNoDeadline, employees[name, overdue, noDeadline]).
    """

    date: str
    total_overdue: int
    total_no_deadline: int
    employees: list[SnapshotEmployee] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "totalOverdue": self.total_overdue,
            "totalNoDeadline": self.total_no_deadline,
            "employees": [
                {"name": e.name, "overdue": e.overdue, "noDeadline": e.no_deadline}
                for e in self.employees
            ],
        }

    @classmethod
    def from_dict(cls, data: Any) -> Snapshot:
        """Strict parse; unknown fields are ignored, wrong shapes raise ValueError."""
        if not isinstance(data, dict):
            raise ValueError("snapshot must be a JSON object")

        date = data.get("date")
        if not isinstance(date, str) or not date:
            raise ValueError("snapshot.date must be a non-empty string")

        total_overdue = _non_negative_int(data.get("totalOverdue"), "totalOverdue")
        total_no_deadline = _non_negative_int(data.get("totalNoDeadline", 0), "totalNoDeadline")

        raw_employees = data.get("employees", [])
        if not isinstance(raw_employees, list):
            raise ValueError("snapshot.employees must be a list")

        employees: list[SnapshotEmployee] = []
        for item in raw_employees:
            if not isinstance(item, dict):
                raise ValueError("snapshot.employees items must be objects")
            employees.append(
                SnapshotEmployee(
                    name=str(item.get("name", "")),
                    overdue=_non_negative_int(item.get("overdue", 0), "overdue"),
                    no_deadline=_non_negative_int(item.get("noDeadline", 0), "noDeadline"),
                )
            )

        return cls(
            date=date,
            total_overdue=total_overdue,
            total_no_deadline=total_no_deadline,
            employees=employees,
        )


def _non_negative_int(value: Any, name: str) -> int:
    # bool is an int subclass; a stray true/false in the file is not a count.
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer")
    return value


class DeltaKind(StrEnum):
    NO_BASELINE = "no_baseline"
    IMPROVED = "improved"
    WORSENED = "worsened"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class Delta:
    kind: DeltaKind
    amount: int = 0
    percent: int = 0
    previous_date: str | None = None
