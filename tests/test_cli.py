# tests/test_cli.py

from __future__ import annotations

from dataclasses import replace
from typing import Any

import pytest

from taskpulse.cli import main as cli_main
from taskpulse.cli.bootstrap import create_initial_state, create_notifier, create_renderer
from taskpulse.config import Settings
from taskpulse.connectors.matrix_client import MatrixNotifier
from taskpulse.connectors.telegram import TelegramNotifier
from taskpulse.core.errors import DeliveryError
from taskpulse.core.pipeline import ReportOutcome, RunStatus
from taskpulse.report.render import DeterministicRenderer, GenerativeRenderer


def test_renderer_is_deterministic_without_llm(settings: Settings) -> None:
    assert isinstance(create_renderer(settings), DeterministicRenderer)


def test_renderer_is_generative_with_llm(settings: Settings) -> None:
    s = replace(settings, llm_enabled=True, llm_api_key="sk-test")
    assert isinstance(create_renderer(s), GenerativeRenderer)
    assert isinstance(create_renderer(s, use_llm=False), DeterministicRenderer)


def test_enabled_llm_without_key_falls_back(settings: Settings) -> None:
    s = replace(settings, llm_enabled=True, llm_api_key=None)
    assert isinstance(create_renderer(s), DeterministicRenderer)


def test_notifier_selection(settings: Settings) -> None:
    assert isinstance(create_notifier(settings), TelegramNotifier)

    matrix = replace(
        settings,
        notifier="matrix",
        matrix_homeserver="https://matrix.example.org",
        matrix_room_id="!room:example.org",
        matrix_access_token="tok",
    )
    assert isinstance(create_notifier(matrix), MatrixNotifier)

    with pytest.raises(ValueError):
        create_notifier(replace(settings, notifier="slack"))


@pytest.mark.asyncio
async def test_dry_run_state_has_no_notifier(settings: Settings) -> None:
    state = create_initial_state(replace(settings, telegram_bot_token=""), dry_run=True)
    try:
        assert state.dry_run is True
        assert state.notifier is None
        assert settings.snapshot_path.parent.is_dir()
    finally:
        await state.aclose()


@pytest.fixture()
def cli(monkeypatch: pytest.MonkeyPatch, settings: Settings) -> dict[str, Any]:
    seen: dict[str, Any] = {}

    monkeypatch.setattr(cli_main, "load_settings", lambda: settings)
    monkeypatch.setattr(cli_main, "setup_logging", lambda **kw: None)

    async def fake_run_report(**kwargs: Any) -> ReportOutcome:
        seen.update(kwargs)
        if seen.get("raise"):
            raise seen["raise"]
        return ReportOutcome(status=RunStatus.DRY_RUN if kwargs["dry_run"] else RunStatus.DELIVERED)

    monkeypatch.setattr(cli_main, "run_report", fake_run_report)
    return seen


def test_main_dry_run_flag(cli: dict[str, Any]) -> None:
    assert cli_main.main(["run", "--dry-run", "--no-llm"]) == 0
    assert cli["dry_run"] is True
    assert cli["notifier"] is None
    assert isinstance(cli["renderer"], DeterministicRenderer)


def test_main_delivery_failure_exits_nonzero(cli: dict[str, Any]) -> None:
    cli["raise"] = DeliveryError("chat is down")
    assert cli_main.main([]) == 1


def test_main_misconfiguration_exits_nonzero(cli: dict[str, Any], monkeypatch: pytest.MonkeyPatch, settings: Settings) -> None:
    monkeypatch.setattr(cli_main, "load_settings", lambda: replace(settings, notifier="pigeon"))
    assert cli_main.main(["run"]) == 1
