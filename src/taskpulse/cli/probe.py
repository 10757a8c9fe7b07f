# src/taskpulse/cli/probe.py

"""
Tracker API probe.

Calls each endpoint the report depends on once and records what the response looks
like (status, payload shape, first record keys). Useful when the tracker changes its
API or a new installation is being configured. Never sends anything to the chat.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from ..core.errors import TrackerError
from ..core.ports import TrackerClient
from ..tracker.client import CALENDAR_PANEL_PATH, TASK_LIST_PATH, USER_GET_PATH, USER_LIST_PATH
from ..tracker.source import calendar_panel_request, unwrap_list, unwrap_user_list

logger = logging.getLogger(__name__)


def describe_payload(data: Any) -> str:
    if isinstance(data, list):
        head = data[0] if data else None
        keys = sorted(head.keys()) if isinstance(head, dict) else []
        return f"list[{len(data)}] first keys={keys}"
    if isinstance(data, dict):
        return f"object keys={sorted(data.keys())[:20]}"
    return type(data).__name__


class _Transcript:
    def __init__(self) -> None:
        self.lines: list[str] = []

    def add(self, text: str) -> None:
        logger.info("%s", text)
        self.lines.append(text)


async def _call(client: TrackerClient, out: _Transcript, path: str, body: dict[str, Any]) -> Any:
    out.add(f"POST {path} body={json.dumps(body, ensure_ascii=False)[:200]}")
    try:
        resp = await client.post(path, body)
    except TrackerError as e:
        out.add(f"  error: {e}")
        return None
    out.add(f"  status={resp.status!r} data={describe_payload(resp.data)}")
    return resp.data if resp.ok else None


async def run_probe(client: TrackerClient, *, output_path: str | Path | None = None) -> list[str]:
    out = _Transcript()

    users_data = await _call(client, out, USER_LIST_PATH, {})
    user_records = unwrap_user_list(users_data) if users_data is not None else None
    first_user_id: str | None = None
    if user_records:
        out.add(f"  users: {len(user_records)} records")
        first = user_records[0]
        if isinstance(first, dict):
            first_user_id = first.get("user_id") or first.get("id")

    if first_user_id:
        await _call(client, out, USER_GET_PATH, {"user_id": first_user_id})
        panel = await _call(client, out, CALENDAR_PANEL_PATH, calendar_panel_request(first_user_id, backlog_limit=5))
        if isinstance(panel, dict):
            for name, value in panel.items():
                out.add(f"  panel {name}: {describe_payload(value)}")
    else:
        out.add("No user id available; skipping per-user endpoints.")

    tasks_data = await _call(client, out, TASK_LIST_PATH, {"filter": [["is_finished", "=", False]]})
    task_records = unwrap_list(tasks_data) if tasks_data is not None else None
    if task_records is not None:
        out.add(f"  tasks: {len(task_records)} unfinished records")

    out.add("Probe complete.")

    if output_path is not None:
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(out.lines) + "\n", "utf-8")
        logger.info("Probe output saved to %s", path)

    return out.lines
