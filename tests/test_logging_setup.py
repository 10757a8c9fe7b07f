# tests/test_logging_setup.py

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from taskpulse.logging_setup import ProjectOnlyFilter, setup_logging


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.fixture()
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.captureWarnings(False)


@pytest.mark.parametrize(
    ("name", "level", "passes"),
    [
        ("taskpulse", logging.DEBUG, True),
        ("taskpulse.tracker.source", logging.INFO, True),
        ("taskpulseextra", logging.INFO, False),
        ("httpx", logging.WARNING, False),
        ("nio.crypto", logging.ERROR, True),
        ("py.warnings", logging.WARNING, False),
    ],
)
def test_console_filter(name: str, level: int, passes: bool) -> None:
    assert ProjectOnlyFilter().filter(_record(name, level)) is passes


def test_setup_logging_writes_everything_to_file(tmp_path: Path, restore_root_logger: None) -> None:
    log_file = setup_logging(log_dir=tmp_path / "logs", console_level=logging.WARNING)

    logging.getLogger("taskpulse.test").debug("debug line for the file")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_file == tmp_path / "logs" / "taskpulse.log"
    assert "debug line for the file" in log_file.read_text("utf-8")
    assert len(logging.getLogger().handlers) == 2
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_is_idempotent(tmp_path: Path, restore_root_logger: None) -> None:
    setup_logging(log_dir=tmp_path)
    setup_logging(log_dir=tmp_path)
    assert len(logging.getLogger().handlers) == 2
