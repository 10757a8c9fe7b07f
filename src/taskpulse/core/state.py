# src/taskpulse/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..config import Settings
from ..report.render import Renderer
from ..report.snapshot_store import SnapshotStore
from ..tracker.client import PlatrumClient
from ..tracker.source import TaskSource
from .ports import Notifier


@dataclass(slots=True)
class AppState:
    """Everything one run needs, wired once by the CLI bootstrap."""

    settings: Settings
    tracker: PlatrumClient
    source: TaskSource
    store: SnapshotStore
    renderer: Renderer
    notifier: Notifier | None
    dry_run: bool

    async def aclose(self) -> None:
        await self.tracker.aclose()
