# src/taskpulse/tracker/source.py

from __future__ import annotations

"""
Task source adapter.

Turns the tracker's endpoints into two lists the report needs: active users and
their open tasks. The tracker has no reliable "all open tasks" view with server-side
filters, so the primary strategy walks every user's personal calendar panel and
merges the results into a TaskIndex. When the user directory is unavailable the
adapter falls back to the bulk task list and derives users from task ownership.

Every remote call is made one at a time with a short pause after it (the tracker
rate-limits aggressively). Failures are absorbed per user / per id: a broken call
contributes nothing instead of aborting the run.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import TrackerError
from ..core.models import PlaceholderUser, ResolvedUser, Task, TaskIndex, User
from ..core.ports import TrackerClient
from .client import CALENDAR_PANEL_PATH, TASK_LIST_PATH, USER_GET_PATH, USER_LIST_PATH

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


# ---- record mapping ----


def parse_user(raw: Any) -> ResolvedUser | None:
    """Map a tracker profile record to a ResolvedUser; None if it has no usable id."""
    if not isinstance(raw, dict):
        return None

    uid = raw.get("user_id") or raw.get("id")
    if not isinstance(uid, str) or not uid.strip():
        return None
    uid = uid.strip()

    name = raw.get("user_name") or raw.get("name")
    display_name = name.strip() if isinstance(name, str) and name.strip() else f"User {uid}"

    departure = raw.get("firing_date")
    return ResolvedUser(
        id=uid,
        display_name=display_name,
        is_deleted=bool(raw.get("is_deleted")),
        is_disabled=bool(raw.get("is_disabled")),
        departure_date=str(departure) if departure else None,
    )


def parse_task(raw: Any) -> Task | None:
    """Map a tracker task record to a Task; None if it has no integer id."""
    if not isinstance(raw, dict):
        return None

    raw_id = raw.get("id")
    if isinstance(raw_id, bool):
        return None
    if isinstance(raw_id, int):
        task_id = raw_id
    elif isinstance(raw_id, str) and raw_id.strip().isdigit():
        task_id = int(raw_id)
    else:
        return None

    raw_owners = raw.get("responsible_user_ids")
    owners: tuple[str, ...] = ()
    if isinstance(raw_owners, list):
        owners = tuple(dict.fromkeys(str(o).strip() for o in raw_owners if o is not None and str(o).strip()))

    deadline = raw.get("finish_date")
    name = raw.get("name")

    return Task(
        id=task_id,
        owner_ids=owners,
        # Non-string deadlines are kept verbatim; the aggregator treats them as unparseable.
        deadline=None if deadline in (None, "") else str(deadline),
        is_finished=bool(raw.get("is_finished")),
        is_deleted=bool(raw.get("deletion_date")) or bool(raw.get("is_deleted")),
        name=name if isinstance(name, str) else "",
    )


def unwrap_list(data: Any) -> list[Any] | None:
    """Accept both `[...]` and `{"list": [...]}` list payloads."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("list"), list):
        return data["list"]
    return None


def unwrap_user_list(data: Any) -> list[Any] | None:
    # The directory answers with an object keyed by user id; older builds sent a list.
    records = unwrap_list(data)
    if records is not None:
        return records
    if isinstance(data, dict):
        return list(data.values())
    return None


def calendar_panel_request(user_id: str, *, backlog_limit: int = 5000) -> dict[str, Any]:
    """Body for one user's calendar panel: only the backlog ("task queue") panel is fetched."""

    def _empty_panel() -> dict[str, Any]:
        return {"limit": 0, "offset": 0, "order": [], "filter": []}

    return {
        "user_id": user_id,
        "panel_limits": {
            "backlog_planner": {
                "limit": int(backlog_limit),
                "offset": 0,
                "order": [
                    {"column": "order.calendar_page_backlog_planner_none", "direction": "asc"},
                    {"column": "id", "direction": "desc"},
                ],
                "filter": [],
            },
            "assignment_unplanned": _empty_panel(),
            "assignment_planned": _empty_panel(),
            "assignment_finished": _empty_panel(),
        },
    }


@dataclass(slots=True)
class CollectedTasks:
    users: list[User]
    tasks: list[Task]
    directory_available: bool
    failed_requests: list[str] = field(default_factory=list)


class TaskSource:
    """
    Adapter over a TrackerClient.

    Exclusion policy (applied the same way whichever strategy produced the users):
    a user is trackable only if active (not deleted, not disabled, no departure date)
    and not in the operator-curated exclusion set.
    """

    def __init__(
        self,
        client: TrackerClient,
        *,
        excluded_user_ids: Iterable[str] = (),
        user_request_delay_seconds: float = 0.1,
        user_lookup_delay_seconds: float = 0.05,
        backlog_limit: int = 5000,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._client = client
        self._excluded = frozenset(str(x) for x in excluded_user_ids)
        self._request_delay = max(0.0, float(user_request_delay_seconds))
        self._lookup_delay = max(0.0, float(user_lookup_delay_seconds))
        self._backlog_limit = int(backlog_limit)
        self._sleep = sleep

    @property
    def excluded_user_ids(self) -> frozenset[str]:
        return self._excluded

    def trackable(self, users: Iterable[User]) -> list[User]:
        out: list[User] = []
        for user in users:
            if not user.is_active:
                logger.debug("Not trackable (inactive): %s", user.id)
                continue
            if user.id in self._excluded:
                logger.debug("Not trackable (excluded by configuration): %s", user.id)
                continue
            out.append(user)
        return out

    # ---- directory ----

    async def list_active_users(self) -> list[User]:
        """
        Active users from the directory.

        Fails soft: transport errors, a non-success status or an unexpected payload
        all yield [] ("directory unavailable").
        """
        try:
            resp = await self._client.post(USER_LIST_PATH, {})
        except TrackerError as e:
            logger.error("Failed to fetch users: %s", e)
            return []

        if not resp.ok:
            logger.warning("User directory answered with status=%r", resp.status)
            return []

        records = unwrap_user_list(resp.data)
        if records is None:
            logger.warning("User directory returned an unexpected payload: %s", type(resp.data).__name__)
            return []

        users: list[User] = []
        for raw in records:
            user = parse_user(raw)
            if user is None:
                logger.debug("Skipping unparseable user record")
                continue
            if user.is_active:
                users.append(user)

        logger.info("User directory: %d active of %d records", len(users), len(records))
        return users

    async def get_user(self, user_id: str) -> ResolvedUser | None:
        """Resolve one profile by id; None when the lookup fails for any reason."""
        try:
            resp = await self._client.post(USER_GET_PATH, {"user_id": user_id})
        except TrackerError as e:
            logger.warning("User lookup failed id=%s: %s", user_id, e)
            return None

        if not resp.ok:
            return None
        return parse_user(resp.data)

    # ---- strategy A: per-user calendar views ----

    async def list_open_tasks(self, users: Iterable[User]) -> list[Task]:
        index, _ = await self._merge_user_views(users)
        return index.tasks()

    async def _merge_user_views(self, users: Iterable[User]) -> tuple[TaskIndex, list[str]]:
        index = TaskIndex()
        failed: list[str] = []
        user_list = list(users)

        logger.info("Fetching calendar tasks for %d users...", len(user_list))
        for user in user_list:
            try:
                tasks = await self._fetch_user_backlog(user)
            except TrackerError as e:
                logger.error("Error fetching tasks for %s (%s): %s", user.display_name, user.id, e)
                failed.append(user.id)
            else:
                accepted = [t for t in tasks if not t.is_deleted and t.owner_ids]
                new = index.merge(accepted)
                logger.info(
                    "Found %d backlog tasks for %s (%d accepted, %d new)",
                    len(tasks),
                    user.display_name,
                    len(accepted),
                    new,
                )

            await self._sleep(self._request_delay)

        logger.info("Total unique tasks across all users: %d", len(index))
        return index, failed

    async def _fetch_user_backlog(self, user: User) -> list[Task]:
        """
        One user's backlog panel.

        A refused request or a payload without a backlog list raises TrackerError:
        "no answer" must not be mistaken for "no tasks".
        """
        resp = await self._client.post(
            CALENDAR_PANEL_PATH,
            calendar_panel_request(user.id, backlog_limit=self._backlog_limit),
        )
        if not resp.ok:
            raise TrackerError(f"calendar panel answered with status={resp.status!r}")

        backlog = resp.data.get("backlog_planner") if isinstance(resp.data, dict) else None
        if not isinstance(backlog, list):
            raise TrackerError(f"calendar panel payload has no backlog list ({type(resp.data).__name__})")

        tasks: list[Task] = []
        for raw in backlog:
            task = parse_task(raw)
            if task is None:
                logger.debug("Skipping unparseable task record for %s", user.id)
                continue
            tasks.append(task)
        return tasks

    # ---- strategy B: bulk list + owners ----

    async def list_open_tasks_bulk(self) -> list[Task]:
        """One bulk listing, filtered client-side to open tasks with owners."""
        try:
            resp = await self._client.post(TASK_LIST_PATH, {"filter": [["is_finished", "=", False]]})
        except TrackerError as e:
            logger.error("Bulk task listing failed: %s", e)
            return []

        if not resp.ok:
            logger.warning("Bulk task listing answered with status=%r", resp.status)
            return []

        records = unwrap_list(resp.data)
        if records is None:
            logger.warning("Bulk task listing returned an unexpected payload")
            return []

        index = TaskIndex(t for t in map(parse_task, records) if t is not None and t.is_open)
        logger.info("Bulk task listing: %d open of %d records", len(index), len(records))
        return index.tasks()

    async def derive_users_from_tasks(self, tasks: Iterable[Task]) -> list[User]:
        """
        Resolve every distinct owner id referenced by `tasks`.

        Resolved-but-inactive users are dropped; ids whose lookup fails become
        PlaceholderUser so their tasks stay attributable.
        """
        owner_ids: dict[str, None] = {}
        for task in tasks:
            for uid in task.owner_ids:
                owner_ids.setdefault(uid, None)

        logger.info("Extracting %d unique users from tasks...", len(owner_ids))

        users: list[User] = []
        for uid in owner_ids:
            await self._sleep(self._lookup_delay)
            user = await self.get_user(uid)
            if user is None:
                logger.warning("Could not resolve user %s, using a placeholder", uid)
                users.append(PlaceholderUser(uid))
            elif not user.is_active:
                logger.info("Skipping disabled/deleted user: %s", user.display_name)
            else:
                users.append(user)
        return users

    # ---- orchestration ----

    async def collect(self) -> CollectedTasks:
        """Pick a strategy based on directory availability and return trackable users + open tasks."""
        directory = await self.list_active_users()

        if directory:
            users = self.trackable(directory)
            index, failed = await self._merge_user_views(users)
            return CollectedTasks(
                users=users,
                tasks=index.tasks(),
                directory_available=True,
                failed_requests=failed,
            )

        logger.info("User directory unavailable. Falling back to bulk task listing and owner lookup...")
        tasks = await self.list_open_tasks_bulk()
        users = self.trackable(await self.derive_users_from_tasks(tasks))
        return CollectedTasks(users=users, tasks=tasks, directory_available=False)
