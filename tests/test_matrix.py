# tests/test_matrix.py

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from nio import RoomSendResponse

from taskpulse.connectors import matrix_client
from taskpulse.connectors.matrix_client import MatrixNotifier, build_message_content
from taskpulse.core.errors import DeliveryError


class _FakeAsyncClient:
    """Stands in for nio.AsyncClient: records room_send calls, never touches the network."""

    instances: list["_FakeAsyncClient"] = []

    def __init__(self, homeserver: str, user: str = "") -> None:
        self.homeserver = homeserver
        self.user_id = user
        self.access_token = ""
        self.device_id = ""
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        _FakeAsyncClient.instances.append(self)

    async def login(self, password: str, device_name: str = "") -> Any:
        raise AssertionError("password login is not expected in these tests")

    async def room_send(self, **kwargs: Any) -> Any:
        self.sent.append(kwargs)
        return RoomSendResponse(event_id="$evt", room_id=kwargs["room_id"])

    async def close(self) -> None:
        self.closed = True


@pytest.fixture()
def fake_nio(monkeypatch: pytest.MonkeyPatch) -> type[_FakeAsyncClient]:
    _FakeAsyncClient.instances = []
    monkeypatch.setattr(matrix_client, "AsyncClient", _FakeAsyncClient)
    return _FakeAsyncClient


def test_plain_message_content() -> None:
    assert build_message_content("hello") == {"msgtype": "m.text", "body": "hello"}


def test_threaded_message_content() -> None:
    content = build_message_content("hello", thread_event_id="$root")
    assert content["m.relates_to"] == {
        "rel_type": "m.thread",
        "event_id": "$root",
        "is_falling_back": True,
        "m.in_reply_to": {"event_id": "$root"},
    }


@pytest.mark.asyncio
async def test_send_text_with_access_token(fake_nio: type[_FakeAsyncClient], tmp_path: Path) -> None:
    notifier = MatrixNotifier(
        homeserver="https://matrix.example.org",
        user_id="@bot:example.org",
        room_id="!room:example.org",
        access_token="tok",
        thread_event_id="$root",
        session_path=tmp_path / "session.json",
    )

    await notifier.send_text(text="📊 report")

    [client] = fake_nio.instances
    assert client.access_token == "tok"
    assert client.closed
    [call] = client.sent
    assert call["room_id"] == "!room:example.org"
    assert call["content"]["body"] == "📊 report"
    assert call["content"]["m.relates_to"]["event_id"] == "$root"


@pytest.mark.asyncio
async def test_session_file_is_reused(fake_nio: type[_FakeAsyncClient], tmp_path: Path) -> None:
    session = tmp_path / "session.json"
    session.write_text(json.dumps({"access_token": "saved", "user_id": "@bot:example.org", "device_id": "DEV"}), "utf-8")

    notifier = MatrixNotifier(
        homeserver="https://matrix.example.org",
        user_id="@bot:example.org",
        room_id="!room:example.org",
        session_path=session,
    )
    await notifier.send_text(text="hi")

    [client] = fake_nio.instances
    assert (client.access_token, client.device_id) == ("saved", "DEV")


@pytest.mark.asyncio
async def test_no_credentials_is_a_delivery_error(fake_nio: type[_FakeAsyncClient], tmp_path: Path) -> None:
    notifier = MatrixNotifier(
        homeserver="https://matrix.example.org",
        user_id="@bot:example.org",
        room_id="!room:example.org",
        session_path=tmp_path / "missing.json",
    )

    with pytest.raises(DeliveryError):
        await notifier.send_text(text="hi")
    assert fake_nio.instances[0].closed


def test_unconfigured_matrix_is_rejected() -> None:
    with pytest.raises(ValueError):
        MatrixNotifier(homeserver="", user_id="", room_id="")
