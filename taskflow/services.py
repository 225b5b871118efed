"""
Data-access layer: async CRUD for tasks and projects.

Each call runs the blocking table client in a worker thread, so store
operations can await it like any other suspending call. Records are mapped
to and from remote rows here; nothing above this layer sees a raw row.
"""
import asyncio
import logging
from typing import List, Dict, Any, Optional

from .remote import NoRowsError, EmptyResult, RemoteError
from .schema import (
    Task,
    TaskDraft,
    Project,
    ProjectDraft,
    DEFAULT_PROJECTS,
    task_fields_to_row,
)

logger = logging.getLogger(__name__)

TASKS_TABLE = "tasks"
PROJECTS_TABLE = "projects"


def _from_row(record_type, row: Dict[str, Any], table: str):
    """Map one remote row; a malformed row is reported as a RemoteError."""
    try:
        return record_type.from_row(row)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Malformed row from {table}: {row!r}")
        raise RemoteError(f"Malformed {table} row returned by the server: {e!r}") from e


# ── Tasks ────────────────────────────────────────────────────────────────────

async def fetch_tasks(client, user_id: str) -> List[Task]:
    """All tasks owned by user_id, newest-created first."""
    rows = await asyncio.to_thread(
        client.table(TASKS_TABLE).select,
        {"user_id": user_id},
        "created_at",
    )
    return [_from_row(Task, r, TASKS_TABLE) for r in rows]


async def create_task(client, draft: TaskDraft, user_id: str) -> Task:
    """Insert a task and return it with the server-assigned id and created_at."""
    row = await asyncio.to_thread(client.table(TASKS_TABLE).insert, draft.to_row(user_id))
    if not row:
        raise EmptyResult()
    return _from_row(Task, row, TASKS_TABLE)


async def update_task_by_id(client, task_id: str, fields: Dict[str, Any]) -> None:
    """Send only the given fields; ValueError on unknown field names."""
    row = task_fields_to_row(fields)
    if not row:
        return
    await asyncio.to_thread(client.table(TASKS_TABLE).update, task_id, row)


async def delete_task_by_id(client, task_id: str) -> None:
    await asyncio.to_thread(client.table(TASKS_TABLE).delete, task_id)


# ── Projects ─────────────────────────────────────────────────────────────────

async def _select_projects(client, user_id: str) -> List[Project]:
    try:
        rows = await asyncio.to_thread(
            client.table(PROJECTS_TABLE).select,
            {"user_id": user_id},
            "created_at",
            False,
        )
    except NoRowsError:
        return []
    return [_from_row(Project, r, PROJECTS_TABLE) for r in rows]


async def ensure_default_projects(
    client, user_id: str, defaults: Optional[List[Project]] = None
) -> bool:
    """
    Insert the bootstrap projects for a user who has none.

    Returns True when defaults were inserted, False when the user already had
    projects. Safe to call repeatedly.
    """
    if await _select_projects(client, user_id):
        return False

    table = client.table(PROJECTS_TABLE)
    for project in defaults if defaults is not None else DEFAULT_PROJECTS:
        draft = ProjectDraft(name=project.name, color=project.color)
        await asyncio.to_thread(table.insert, draft.to_row(user_id))
    logger.info(f"Created default projects for user {user_id}")
    return True


async def fetch_projects(
    client, user_id: str, defaults: Optional[List[Project]] = None
) -> List[Project]:
    """
    The user's projects in creation order.

    A user with no projects gets the bootstrap set first; the list is then
    re-read once so the returned projects carry their remote ids.
    """
    projects = await _select_projects(client, user_id)
    if projects:
        return projects
    await ensure_default_projects(client, user_id, defaults)
    return await _select_projects(client, user_id)


async def create_project(client, draft: ProjectDraft, user_id: str) -> Project:
    row = await asyncio.to_thread(client.table(PROJECTS_TABLE).insert, draft.to_row(user_id))
    if not row:
        raise EmptyResult()
    return _from_row(Project, row, PROJECTS_TABLE)


async def delete_project_by_id(client, project_id: str) -> None:
    await asyncio.to_thread(client.table(PROJECTS_TABLE).delete, project_id)

