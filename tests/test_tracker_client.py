# tests/test_tracker_client.py

from __future__ import annotations

import json

import httpx
import pytest

from taskpulse.core.errors import TrackerError
from taskpulse.tracker.client import USER_LIST_PATH, PlatrumClient


def _client(handler) -> PlatrumClient:
    return PlatrumClient("https://acme.platrum.ru/", "secret", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_post_sends_api_key_and_json_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "success", "data": [{"user_id": "a"}]})

    async with _client(handler) as client:
        resp = await client.post(USER_LIST_PATH, {"x": 1})

    assert resp.ok
    assert resp.data == [{"user_id": "a"}]

    [request] = seen
    assert request.method == "POST"
    assert str(request.url) == "https://acme.platrum.ru/user/api/profile/list"
    assert request.headers["Api-key"] == "secret"
    assert json.loads(request.content) == {"x": 1}


@pytest.mark.asyncio
async def test_non_success_status_is_returned_not_raised() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "error", "data": None})

    async with _client(handler) as client:
        resp = await client.post(USER_LIST_PATH, {})

    assert not resp.ok
    assert resp.status == "error"


@pytest.mark.asyncio
async def test_non_object_payload_is_not_ok() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[1, 2, 3])

    async with _client(handler) as client:
        resp = await client.post(USER_LIST_PATH, {})

    assert not resp.ok
    assert resp.data is None


@pytest.mark.asyncio
async def test_http_error_raises_tracker_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    async with _client(handler) as client:
        with pytest.raises(TrackerError, match="HTTP 500"):
            await client.post(USER_LIST_PATH, {})


@pytest.mark.asyncio
async def test_transport_error_raises_tracker_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(TrackerError):
            await client.post(USER_LIST_PATH, {})


@pytest.mark.asyncio
async def test_non_json_body_raises_tracker_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    async with _client(handler) as client:
        with pytest.raises(TrackerError, match="non-JSON"):
            await client.post(USER_LIST_PATH, {})


def test_blank_base_url_is_rejected() -> None:
    with pytest.raises(ValueError):
        PlatrumClient("  ", "secret")
