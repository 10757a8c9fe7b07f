# src/taskpulse/connectors/telegram.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.errors import DeliveryError

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"
TELEGRAM_MAX_CHARS = 4096


def split_message(text: str, limit: int = TELEGRAM_MAX_CHARS) -> list[str]:
    """
    Cut `text` into chunks of at most `limit` characters, on line boundaries.

    Report lines are self-contained Markdown, so a chunk never opens an entity it
    does not close. A single line longer than `limit` is hard-cut.
    """
    if len(text) <= limit:
        return [text]

    chunks: list[str] = []
    current = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]

        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate

    if current.strip():
        chunks.append(current)
    return chunks


def _is_markup_error(status_code: int, description: str) -> bool:
    return status_code == 400 and "can't parse entities" in description.lower()


class TelegramNotifier:
    """
    Sends the report through the Telegram Bot API (sendMessage, Markdown parse mode).

    Long reports go out as several messages. A chunk that Telegram refuses to parse
    as Markdown is re-sent once as plain text.
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        *,
        thread_id: int | None = None,
        parse_mode: str | None = "Markdown",
        api_url: str = TELEGRAM_API_URL,
        timeout_seconds: float = 30.0,
        max_chars: int = TELEGRAM_MAX_CHARS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not bot_token or not chat_id:
            raise ValueError("Telegram is not configured: set TASKPULSE_TELEGRAM_BOT_TOKEN and TASKPULSE_TELEGRAM_CHAT_ID")
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._thread_id = thread_id
        self._parse_mode = parse_mode
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout_seconds
        self._max_chars = int(max_chars)
        self._transport = transport

    async def _post(self, http: httpx.AsyncClient, payload: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        # The token is part of the URL path; never log the URL itself.
        url = f"{self._api_url}/bot{self._bot_token}/sendMessage"
        try:
            resp = await http.post(url, json=payload)
        except httpx.HTTPError as e:
            raise DeliveryError(f"Telegram request failed: {e.__class__.__name__}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        return resp.status_code, body if isinstance(body, dict) else {}

    async def _send_chunk(self, http: httpx.AsyncClient, payload: dict[str, Any]) -> None:
        status_code, body = await self._post(http, payload)
        description = str(body.get("description") or "")

        if "parse_mode" in payload and _is_markup_error(status_code, description):
            logger.warning("Telegram could not parse the Markdown (%s); re-sending as plain text", description)
            payload = {k: v for k, v in payload.items() if k != "parse_mode"}
            status_code, body = await self._post(http, payload)
            description = str(body.get("description") or "")

        if status_code >= 400 or not body.get("ok"):
            raise DeliveryError(f"Telegram rejected the message (HTTP {status_code}): {description or 'no description'}")

    async def send_text(
        self,
        *,
        text: str,
        chat_id: str | None = None,
        thread_id: str | int | None = None,
    ) -> None:
        base: dict[str, Any] = {"chat_id": chat_id or self._chat_id}
        if self._parse_mode:
            base["parse_mode"] = self._parse_mode

        thread = thread_id if thread_id is not None else self._thread_id
        if thread is not None:
            base["message_thread_id"] = int(thread)

        chunks = split_message(text, self._max_chars)
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as http:
            for chunk in chunks:
                await self._send_chunk(http, {**base, "text": chunk})

        logger.info(
            "Report sent successfully to Telegram chat=%s thread=%s (%d message(s))",
            base["chat_id"],
            thread,
            len(chunks),
        )
