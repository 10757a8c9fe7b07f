# tests/conftest.py

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

import pytest

from taskpulse.config import Settings
from taskpulse.report.snapshot_store import SnapshotStore

from .fakes import SleepRecorder

FIXED_NOW = datetime(2025, 6, 15, 0, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture()
def clock(now: datetime) -> Callable[[], datetime]:
    return lambda: now


@pytest.fixture()
def snapshot_path(tmp_path: Path) -> Path:
    return tmp_path / "stats" / "latest.json"


@pytest.fixture()
def store(snapshot_path: Path, clock: Callable[[], datetime]) -> SnapshotStore:
    return SnapshotStore(snapshot_path, clock=clock)


@pytest.fixture()
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Real Settings built from an explicit mapping.

    We never read os.environ here, to keep unit tests isolated from the developer's .env.
    """
    return Settings.from_env(
        {
            "TASKPULSE_DATA_DIR": str(tmp_path / "data"),
            "TASKPULSE_PLATRUM_HOST": "acme",
            "TASKPULSE_PLATRUM_API_KEY": "key",
            "TASKPULSE_TELEGRAM_BOT_TOKEN": "123:abc",
            "TASKPULSE_TELEGRAM_CHAT_ID": "-100",
        }
    )
