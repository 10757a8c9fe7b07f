# src/taskpulse/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "taskpulse.log"
LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# One daily run writes a few hundred lines; keep roughly a month of history.
LOG_FILE_MAX_BYTES = 2_000_000
LOG_FILE_BACKUPS = 3

# HTTP, LLM and Matrix clients log every request at INFO/DEBUG.
QUIET_LIBRARIES = ("httpx", "httpcore", "openai", "nio")


class ProjectOnlyFilter(logging.Filter):
    """Pass every record from the `taskpulse` package; anything else only at ERROR and above."""

    def __init__(self, package: str = "taskpulse") -> None:
        super().__init__()
        self._package = package

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == self._package or record.name.startswith(self._package + "."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskpulse",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Route logs to stderr (filtered) and to `<log_dir>/taskpulse.log` (everything).

    stdout is left alone so a dry-run report can be piped. Replaces any handlers
    already on the root logger. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(formatter)
    console.addFilter(ProjectOnlyFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
