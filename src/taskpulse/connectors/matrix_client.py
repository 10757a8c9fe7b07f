# src/taskpulse/connectors/matrix_client.py

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from nio import AsyncClient, LoginResponse, RoomSendResponse

from ..core.errors import DeliveryError

logger = logging.getLogger(__name__)


def _load_json(path: Path) -> dict[str, Any]:
    raw = path.read_text("utf-8")
    val = json.loads(raw)
    if isinstance(val, dict):
        return val
    raise ValueError("Expected JSON object")


def _atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False), "utf-8")
    os.replace(tmp, path)
    try:
        os.chmod(path, 0o600)
    except OSError:
        # Not critical on Windows or restricted filesystems.
        logger.debug("chmod failed for %s", path, exc_info=True)


def build_message_content(text: str, *, thread_event_id: str | None = None) -> dict[str, Any]:
    content: dict[str, Any] = {"msgtype": "m.text", "body": text}
    if thread_event_id:
        content["m.relates_to"] = {
            "rel_type": "m.thread",
            "event_id": thread_event_id,
            # Clients without thread support render it as a reply to the root.
            "is_falling_back": True,
            "m.in_reply_to": {"event_id": thread_event_id},
        }
    return content


class MatrixNotifier:
    """
    Posts the report into a Matrix room (optionally inside a thread).

    Authentication, in order:
    - explicit access token
    - session file saved by an earlier password login
    - password login (the resulting session is saved for the next run)

    The session file holds an access token and must never be committed
    (it lives under the gitignored data dir).
    """

    def __init__(
        self,
        *,
        homeserver: str,
        user_id: str,
        room_id: str,
        access_token: str = "",
        password: str = "",
        thread_event_id: str = "",
        session_path: str | Path = ".local/taskpulse/matrix_session.json",
        device_name: str = "taskpulse",
    ) -> None:
        if not homeserver or not room_id:
            raise ValueError("Matrix is not configured: set TASKPULSE_MATRIX_HOMESERVER and TASKPULSE_MATRIX_ROOM_ID")
        self._homeserver = homeserver
        self._user_id = user_id
        self._room_id = room_id
        self._access_token = access_token
        self._password = password
        self._thread_event_id = thread_event_id
        self._session_path = Path(session_path)
        self._device_name = device_name

    async def _login(self, client: AsyncClient) -> None:
        if self._access_token:
            client.access_token = self._access_token
            if self._user_id:
                client.user_id = self._user_id
            return

        if self._session_path.exists():
            try:
                data = _load_json(self._session_path)
                access_token = data.get("access_token")
                if not access_token:
                    raise ValueError("session file is missing access_token")
                client.access_token = str(access_token)
                client.user_id = str(data.get("user_id") or self._user_id)
                client.device_id = str(data.get("device_id") or "")
                logger.info("Matrix session restored for %s", client.user_id)
                return
            except (OSError, ValueError) as e:
                logger.warning("Failed to restore Matrix session file, will try password login: %r", e)

        if not self._password:
            raise DeliveryError(
                "Matrix session not found and password is not set. "
                "Set TASKPULSE_MATRIX_ACCESS_TOKEN or TASKPULSE_MATRIX_PASSWORD."
            )

        resp = await client.login(password=self._password, device_name=self._device_name)
        if not isinstance(resp, LoginResponse):
            raise DeliveryError(f"Matrix login failed: {resp!r}")

        try:
            self._session_path.parent.mkdir(parents=True, exist_ok=True)
            _atomic_write_json(
                self._session_path,
                {"access_token": resp.access_token, "user_id": resp.user_id, "device_id": resp.device_id},
            )
            logger.info("Matrix session saved to %s (user=%s)", self._session_path, resp.user_id)
        except OSError:
            # Sending still works with the in-memory token; next run logs in again.
            logger.exception("Failed to write Matrix session file %s", self._session_path)

    async def send_text(
        self,
        *,
        text: str,
        chat_id: str | None = None,
        thread_id: str | int | None = None,
    ) -> None:
        room_id = chat_id or self._room_id
        thread = str(thread_id) if thread_id is not None else (self._thread_event_id or None)

        client = AsyncClient(self._homeserver, self._user_id)
        try:
            await self._login(client)
            resp = await client.room_send(
                room_id=room_id,
                message_type="m.room.message",
                content=build_message_content(text, thread_event_id=thread),
                ignore_unverified_devices=True,
            )
        except DeliveryError:
            raise
        except Exception as e:
            raise DeliveryError(f"Matrix send failed: {e.__class__.__name__}: {e}") from e
        finally:
            await client.close()

        if not isinstance(resp, RoomSendResponse):
            raise DeliveryError(f"Matrix rejected the message: {resp!r}")

        logger.info("Report sent successfully to Matrix room=%s event=%s", room_id, resp.event_id)
