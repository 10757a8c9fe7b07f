# src/taskpulse/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the report pipeline.

The pipeline depends on Protocols instead of concrete implementations.
This keeps the tracker, the LLM provider and the chat transport swappable
and makes testing easier.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Protocol

from .models import EmployeeStat, Snapshot


@dataclass(frozen=True, slots=True)
class TrackerResponse:
    """Envelope returned by every tracker endpoint: {"status": "...", "data": ...}."""

    status: str
    data: Any

    @property
    def ok(self) -> bool:
        return self.status == "success"


class TrackerClient(Protocol):
    """Raw access to the task tracker. Transport failures raise TrackerError."""

    def post(self, path: str, body: dict[str, Any]) -> Awaitable[TrackerResponse]: ...


class LLMClient(Protocol):
    """Text generation: one instruction block plus one input, one reply (may be empty)."""

    def generate(self, instructions: str, input_text: str) -> str: ...


class Notifier(Protocol):
    """
    Delivery port: how the finished report leaves the process.

    The connector decides how to interpret chat_id / thread_id; when they are None
    the connector's configured destination is used.
    """

    def send_text(
            self,
            *,
            text: str,
            chat_id: str | None = None,
            thread_id: str | int | None = None,
    ) -> Awaitable[None]: ...


class SnapshotRepo(Protocol):
    def load(self, now: datetime | None = None) -> Snapshot | None: ...
    def save(self, stats: list[EmployeeStat], now: datetime | None = None) -> Snapshot: ...
