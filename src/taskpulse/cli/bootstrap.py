# src/taskpulse/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- takes the Settings built once by the CLI,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (tracker, snapshot store, renderer, notifier).
"""

from __future__ import annotations

import logging

from ..config import Settings
from ..connectors.matrix_client import MatrixNotifier
from ..connectors.telegram import TelegramNotifier
from ..core.ports import Notifier
from ..core.state import AppState
from ..llm.client import OpenAICompatibleLLMClient
from ..report.render import DeterministicRenderer, GenerativeRenderer, Renderer
from ..report.snapshot_store import SnapshotStore
from ..tracker.client import PlatrumClient
from ..tracker.source import TaskSource

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.snapshot_path.parent.mkdir(parents=True, exist_ok=True)


def create_renderer(settings: Settings, *, use_llm: bool = True) -> Renderer:
    deterministic = DeterministicRenderer()
    if not (use_llm and settings.llm_enabled):
        logger.info("LLM rendering disabled; using the standard report format.")
        return deterministic

    try:
        llm = OpenAICompatibleLLMClient.from_settings(settings)
    except RuntimeError as e:
        logger.warning("LLM is not configured (%s); using the standard report format.", e)
        return deterministic
    return GenerativeRenderer(llm, fallback=deterministic)


def create_notifier(settings: Settings) -> Notifier:
    if settings.notifier == "matrix":
        return MatrixNotifier(
            homeserver=settings.matrix_homeserver,
            user_id=settings.matrix_user_id,
            room_id=settings.matrix_room_id,
            access_token=settings.matrix_access_token,
            password=settings.matrix_password,
            thread_event_id=settings.matrix_thread_event_id,
            session_path=settings.data_dir / "matrix_session.json",
            device_name=f"{settings.app_name} (Python)",
        )
    if settings.notifier != "telegram":
        raise ValueError(f"Unknown notifier {settings.notifier!r}: expected 'telegram' or 'matrix'")
    return TelegramNotifier(
        settings.telegram_bot_token,
        settings.telegram_chat_id,
        thread_id=settings.telegram_thread_id,
    )


def create_tracker(settings: Settings) -> PlatrumClient:
    return PlatrumClient(
        settings.tracker_base_url,
        settings.tracker_api_key,
        timeout_seconds=settings.tracker_timeout_seconds,
    )


def create_initial_state(settings: Settings, *, dry_run: bool | None = None, use_llm: bool = True) -> AppState:
    """
    Build AppState from explicit settings.

    The notifier is only constructed for real runs, so dry runs work without
    delivery credentials. Misconfiguration raises ValueError.
    """
    _ensure_local_dirs(settings)
    dry = settings.dry_run if dry_run is None else dry_run

    notifier = None if dry else create_notifier(settings)
    tracker = create_tracker(settings)
    source = TaskSource(
        tracker,
        excluded_user_ids=settings.excluded_user_ids,
        user_request_delay_seconds=settings.user_request_delay_seconds,
        user_lookup_delay_seconds=settings.user_lookup_delay_seconds,
        backlog_limit=settings.backlog_limit,
    )

    return AppState(
        settings=settings,
        tracker=tracker,
        source=source,
        store=SnapshotStore(settings.snapshot_path),
        renderer=create_renderer(settings, use_llm=use_llm),
        notifier=notifier,
        dry_run=dry,
    )
