# src/taskpulse/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object per process, built once in the CLI and passed down explicitly.
- No secrets required at import time; nothing here reads the environment on import.
- Legacy variable names of the first deployment (PLATRUM_*, TELEGRAM_*, OPENAI_API_KEY,
  DRY_RUN) are still accepted as fallbacks.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "TASKPULSE"

# Operator-curated ids that never appear in the report (management, external staff).
DEFAULT_EXCLUDED_USER_IDS: tuple[str, ...] = (
    "d197eea0c734e56c35ffdf0079779a44",
    "7c8c51fe41165056dadbaa8aeb0bb8d1",
    "483f7ed3f1b1533a5ce37f47c6e01dc4",
    "bd068078cd7c0cd4e9469ff1d2e38de0",
    "f1f8573d51c1f96fb371d9dd92cf588a",
)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(env: Mapping[str, str], name: str, default: str = "") -> str:
    v = env.get(name)
    return default if v is None else v


def _first_env(env: Mapping[str, str], *names: str, default: str | None = None) -> str | None:
    for n in names:
        v = env.get(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(env: Mapping[str, str], *names: str, default: bool) -> bool:
    raw = _first_env(env, *names)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(env: Mapping[str, str], *names: str, default: int | None) -> int | None:
    raw = _first_env(env, *names)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer value for %s: %r", names[0], raw)
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _first_env(env, name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(env: Mapping[str, str], *names: str, default: Iterable[str]) -> list[str]:
    raw = _first_env(env, *names)
    if raw is None:
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(env: Mapping[str, str], name: str, default: Path) -> Path:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    dry_run: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    snapshot_path: Path

    # ---- Task tracker (Platrum) ----
    tracker_host: str
    tracker_base_url: str
    tracker_api_key: str
    tracker_timeout_seconds: float
    excluded_user_ids: tuple[str, ...]
    user_request_delay_seconds: float
    user_lookup_delay_seconds: float
    backlog_limit: int

    # ---- Delivery ----
    notifier: str
    telegram_bot_token: str
    telegram_chat_id: str
    telegram_thread_id: int | None
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_access_token: str
    matrix_room_id: str
    matrix_thread_event_id: str

    # ---- LLM (OpenAI-compatible) ----
    llm_enabled: bool
    llm_api_key: str | None
    llm_base_url: str
    llm_models: list[str]
    llm_connect_timeout_seconds: float
    llm_read_timeout_seconds: float

    @staticmethod
    def from_env(environ: Mapping[str, str] | None = None) -> "Settings":
        env: Mapping[str, str] = os.environ if environ is None else environ

        app_name = _first_env(env, _k("APP_NAME"), default="taskpulse") or "taskpulse"
        log_level = _env(env, _k("LOG_LEVEL"), "INFO")
        dry_run = _env_bool(env, _k("DRY_RUN"), "DRY_RUN", default=False)

        data_dir = _env_path(env, _k("DATA_DIR"), Path(".local/taskpulse"))
        snapshot_path = _env_path(env, _k("SNAPSHOT_PATH"), data_dir / "stats" / "latest.json")

        tracker_host = (_first_env(env, _k("PLATRUM_HOST"), "PLATRUM_HOST", default="") or "").strip()
        # A full base URL wins over the host shorthand (useful for staging / proxies).
        tracker_base_url = (_first_env(env, _k("PLATRUM_BASE_URL"), default="") or "").strip()
        if not tracker_base_url and tracker_host:
            tracker_base_url = f"https://{tracker_host}.platrum.ru"
        tracker_api_key = (_first_env(env, _k("PLATRUM_API_KEY"), "PLATRUM_API_KEY", default="") or "").strip()

        excluded_user_ids = tuple(
            _env_list(
                env,
                _k("USERS_NOT_TO_TRACK"),
                "PLATRUM_USERS_NOT_TO_TRACK",
                default=DEFAULT_EXCLUDED_USER_IDS,
            )
        )

        telegram_bot_token = (
            _first_env(env, _k("TELEGRAM_BOT_TOKEN"), "TELEGRAM_BOT_TOKEN", default="") or ""
        ).strip()
        telegram_chat_id = (_first_env(env, _k("TELEGRAM_CHAT_ID"), "TELEGRAM_CHAT_ID", default="") or "").strip()
        telegram_thread_id = _env_int(env, _k("TELEGRAM_THREAD_ID"), "TELEGRAM_THREAD_ID", default=None)

        llm_api_key = _first_env(env, _k("LLM_API_KEY"), "OPENAI_API_KEY", default=None)
        llm_enabled = _env_bool(env, _k("LLM_ENABLED"), default=llm_api_key is not None)

        backlog_limit = _env_int(env, _k("BACKLOG_LIMIT"), default=5000) or 5000

        return Settings(
            app_name=app_name,
            log_level=log_level,
            dry_run=dry_run,
            data_dir=data_dir,
            snapshot_path=snapshot_path,
            tracker_host=tracker_host,
            tracker_base_url=tracker_base_url,
            tracker_api_key=tracker_api_key,
            tracker_timeout_seconds=_env_float(env, _k("PLATRUM_TIMEOUT_SECONDS"), 30.0),
            excluded_user_ids=excluded_user_ids,
            user_request_delay_seconds=_env_float(env, _k("USER_REQUEST_DELAY_SECONDS"), 0.1),
            user_lookup_delay_seconds=_env_float(env, _k("USER_LOOKUP_DELAY_SECONDS"), 0.05),
            backlog_limit=backlog_limit,
            notifier=_env(env, _k("NOTIFIER"), "telegram").strip().lower(),
            telegram_bot_token=telegram_bot_token,
            telegram_chat_id=telegram_chat_id,
            telegram_thread_id=telegram_thread_id,
            matrix_homeserver=_env(env, _k("MATRIX_HOMESERVER")).strip(),
            matrix_user_id=_env(env, _k("MATRIX_USER_ID")).strip(),
            matrix_password=_env(env, _k("MATRIX_PASSWORD")).strip(),
            matrix_access_token=_env(env, _k("MATRIX_ACCESS_TOKEN")).strip(),
            matrix_room_id=_env(env, _k("MATRIX_ROOM_ID")).strip(),
            matrix_thread_event_id=_env(env, _k("MATRIX_THREAD_EVENT_ID")).strip(),
            llm_enabled=llm_enabled,
            llm_api_key=llm_api_key,
            llm_base_url=_env(env, _k("LLM_BASE_URL"), "https://api.openai.com/v1"),
            llm_models=_env_list(env, _k("LLM_MODELS"), default=["gpt-4o-mini"]),
            llm_connect_timeout_seconds=_env_float(env, _k("LLM_CONNECT_TIMEOUT_SECONDS"), 5.0),
            llm_read_timeout_seconds=_env_float(env, _k("LLM_READ_TIMEOUT_SECONDS"), 60.0),
        )

    def missing_required(self) -> list[str]:
        """Names of required variables that are empty, for the startup warning."""
        missing: list[str] = []
        if not self.tracker_base_url:
            missing.append(_k("PLATRUM_HOST"))
        if not self.tracker_api_key:
            missing.append(_k("PLATRUM_API_KEY"))

        if self.notifier == "matrix":
            if not self.matrix_homeserver:
                missing.append(_k("MATRIX_HOMESERVER"))
            if not self.matrix_room_id:
                missing.append(_k("MATRIX_ROOM_ID"))
            if not (self.matrix_access_token or self.matrix_password):
                missing.append(_k("MATRIX_ACCESS_TOKEN"))
        else:
            if not self.telegram_bot_token:
                missing.append(_k("TELEGRAM_BOT_TOKEN"))
            if not self.telegram_chat_id:
                missing.append(_k("TELEGRAM_CHAT_ID"))

        if self.llm_enabled and not self.llm_api_key:
            missing.append(_k("LLM_API_KEY"))
        return missing


def load_settings(*, dotenv: bool = True) -> Settings:
    """Build Settings from the process environment, reading a local .env first."""
    if dotenv:
        load_dotenv(override=False)
    settings = Settings.from_env()
    missing = settings.missing_required()
    if missing:
        logger.warning(
            "Some environment variables are missing: %s. Please check .env or secrets.",
            ", ".join(missing),
        )
    return settings
