# src/taskpulse/tracker/client.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.errors import TrackerError
from ..core.ports import TrackerResponse

logger = logging.getLogger(__name__)

USER_LIST_PATH = "/user/api/profile/list"
USER_GET_PATH = "/user/api/profile/get"
TASK_LIST_PATH = "/tasks/api/task/list"
CALENDAR_PANEL_PATH = "/tasks/api/calendar/panel/tasks"


class PlatrumClient:
    """
    Thin async client for the Platrum REST API.

    Every endpoint is a POST with a JSON body and answers with
    {"status": "success" | ..., "data": ...}. This class only moves bytes:
    HTTP/transport failures and non-JSON bodies raise TrackerError, everything
    about the shape of `data` is the caller's business.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url.strip():
            raise ValueError("Tracker base URL is not set. Set TASKPULSE_PLATRUM_HOST in your .env.")

        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Api-key": api_key,
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout_seconds, connect=min(timeout_seconds, 10.0)),
            transport=transport,
        )

    async def __aenter__(self) -> PlatrumClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def post(self, path: str, body: dict[str, Any]) -> TrackerResponse:
        try:
            resp = await self._http.post(path, json=body)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TrackerError(f"POST {path} failed with HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise TrackerError(f"POST {path} failed: {e.__class__.__name__}: {e}") from e

        try:
            payload = resp.json()
        except ValueError as e:
            raise TrackerError(f"POST {path} returned a non-JSON body") from e

        if not isinstance(payload, dict):
            logger.debug("POST %s returned a non-object payload: %r", path, type(payload).__name__)
            return TrackerResponse(status="", data=None)

        status = payload.get("status")
        return TrackerResponse(
            status=status if isinstance(status, str) else "",
            data=payload.get("data"),
        )
