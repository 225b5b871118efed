"""
Per-session task/project store.

Mirrors the signed-in user's remote tables into local lists. Every mutation
goes to the remote service first and touches the local lists only after the
call succeeded, so a failure leaves local state exactly as it was. Outcomes
are reported through the Notifier and returned as an OperationResult; no
operation raises to its caller.

Same-entity policy: while a mutation on a task or project is in flight, a
second mutation on that same id is rejected as BUSY instead of racing it.

A mutation that completes after its user signed out is not applied locally,
so a sign-out always leaves the signed-out view empty.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from . import services
from .notify import Notifier
from .remote import RemoteError, EmptyResult
from .schema import (
    Priority,
    Project,
    ProjectDraft,
    Task,
    TaskDraft,
    default_projects,
)

logger = logging.getLogger(__name__)


class ErrorKind(Enum):
    SIGNED_OUT = "signed_out"
    NOT_FOUND = "not_found"
    BUSY = "busy"
    INVALID = "invalid"
    REMOTE = "remote"
    EMPTY_RESULT = "empty_result"


@dataclass
class OperationResult:
    ok: bool
    value: Any = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, value: Any = None) -> "OperationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str = "") -> "OperationResult":
        return cls(ok=False, error=kind, message=message)


def _remote_failure(e: RemoteError) -> OperationResult:
    kind = ErrorKind.EMPTY_RESULT if isinstance(e, EmptyResult) else ErrorKind.REMOTE
    return OperationResult.failure(kind, str(e))


def normalize_task_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Coerce priority strings and completion flags; ValueError on a bad priority.

    Field names are checked once, when services maps the fields to a row.
    """
    out = dict(fields)
    if "priority" in out and not isinstance(out["priority"], Priority):
        out["priority"] = Priority(str(out["priority"]).lower())
    if "completed" in out:
        out["completed"] = bool(out["completed"])
    return out


class TaskStore:
    """Session state: tasks, projects, loading flag and the signed-in user."""

    def __init__(self, client, notifier: Optional[Notifier] = None,
                 defaults: Optional[List[Project]] = None):
        self.client = client
        self.notifier = notifier or Notifier()
        self.defaults = defaults
        self.tasks: List[Task] = []
        self.projects: List[Project] = default_projects()
        self.is_loading = False
        self.current_user = None
        self._in_flight: Set[Tuple[str, str]] = set()

    # ──────────────────────────────────────────
    # Session lifecycle
    # ──────────────────────────────────────────

    async def set_user(self, user) -> None:
        """Sign-in (user present) loads the user's data; sign-out (None) resets."""
        self.current_user = user
        if user is None:
            self.reset()
            return
        await self.load()

    def reset(self) -> None:
        """View-state reset on sign-out. Nothing is deleted remotely."""
        self.tasks = []
        self.projects = default_projects()
        self.is_loading = False
        self._in_flight.clear()

    async def load(self) -> None:
        """
        Fetch tasks and projects concurrently for the current user.

        Each half is applied independently: a failed fetch keeps the last-known
        collection and reports its own error, and the load always finishes with
        is_loading False.
        """
        user = self.current_user
        if user is None:
            return

        self.is_loading = True
        try:
            tasks, projects = await asyncio.gather(
                services.fetch_tasks(self.client, user.id),
                services.fetch_projects(self.client, user.id, self.defaults),
                return_exceptions=True,
            )
        finally:
            self.is_loading = False

        if self.current_user is not user:
            logger.info("Discarding load results for a user who signed out")
            return

        for label, result in (("tasks", tasks), ("projects", projects)):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception):
                logger.warning(f"Loading {label} failed: {result}")
                self.notifier.error(f"Error loading {label}", str(result))

        if not isinstance(tasks, Exception):
            self.tasks = tasks
        if not isinstance(projects, Exception):
            self.projects = projects
        logger.info(
            f"Loaded {len(self.tasks)} tasks and {len(self.projects)} projects "
            f"for user {user.id}"
        )

    # ──────────────────────────────────────────
    # In-flight guard
    # ──────────────────────────────────────────

    def _claim(self, kind: str, entity_id: str) -> bool:
        key = (kind, entity_id)
        if key in self._in_flight:
            logger.info(f"Skipping {kind} {entity_id}: another change is in flight")
            return False
        self._in_flight.add(key)
        return True

    def _release(self, kind: str, entity_id: str) -> None:
        self._in_flight.discard((kind, entity_id))

    def _session_changed(self, user, action: str) -> bool:
        """True when user signed out (or was replaced) while a remote call ran."""
        if self.current_user is user:
            return False
        logger.info(f"Not applying {action}: user {user.id} signed out while it was in flight")
        return True

    # ──────────────────────────────────────────
    # Task operations
    # ──────────────────────────────────────────

    async def add_task(self, draft: TaskDraft) -> OperationResult:
        user = self.current_user
        if user is None:
            return OperationResult.failure(ErrorKind.SIGNED_OUT)

        try:
            task = await services.create_task(self.client, draft, user.id)
        except RemoteError as e:
            logger.warning(f"Creating task {draft.title!r} failed: {e}")
            self.notifier.error("Error creating task", str(e))
            return _remote_failure(e)

        if self._session_changed(user, "new task"):
            return OperationResult.failure(ErrorKind.SIGNED_OUT)
        self.tasks = [task] + self.tasks
        self.notifier.success(
            "Task created", f'"{task.title}" has been added to your tasks.'
        )
        return OperationResult.success(task)

    async def update_task(self, task_id: str, fields: Dict[str, Any]) -> OperationResult:
        """Persist the given fields, then merge them into the local task."""
        user = self.current_user
        if user is None:
            return OperationResult.failure(ErrorKind.SIGNED_OUT)
        try:
            fields = normalize_task_fields(fields)
        except ValueError as e:
            return OperationResult.failure(ErrorKind.INVALID, str(e))
        if not self._claim("task", task_id):
            return OperationResult.failure(ErrorKind.BUSY)

        try:
            await services.update_task_by_id(self.client, task_id, fields)
        except ValueError as e:
            # Unknown field names are rejected before anything is sent
            return OperationResult.failure(ErrorKind.INVALID, str(e))
        except RemoteError as e:
            logger.warning(f"Updating task {task_id} failed: {e}")
            self.notifier.error("Error updating task", str(e))
            return _remote_failure(e)
        finally:
            self._release("task", task_id)

        if self._session_changed(user, f"update to task {task_id}"):
            return OperationResult.failure(ErrorKind.SIGNED_OUT)
        self.tasks = [t.merged(fields) if t.id == task_id else t for t in self.tasks]
        return OperationResult.success(self.get_task(task_id))

    async def toggle_task_completion(self, task_id: str) -> OperationResult:
        if self.current_user is None:
            return OperationResult.failure(ErrorKind.SIGNED_OUT)
        task = self.get_task(task_id)
        if task is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND)
        return await self.update_task(task_id, {"completed": not task.completed})

    async def delete_task(self, task_id: str) -> OperationResult:
        user = self.current_user
        if user is None:
            return OperationResult.failure(ErrorKind.SIGNED_OUT)
        task = self.get_task(task_id)
        if task is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND)
        if not self._claim("task", task_id):
            return OperationResult.failure(ErrorKind.BUSY)

        try:
            await services.delete_task_by_id(self.client, task_id)
        except RemoteError as e:
            logger.warning(f"Deleting task {task_id} failed: {e}")
            self.notifier.error("Error deleting task", str(e))
            return _remote_failure(e)
        finally:
            self._release("task", task_id)

        if self._session_changed(user, f"deletion of task {task_id}"):
            return OperationResult.failure(ErrorKind.SIGNED_OUT)
        self.tasks = [t for t in self.tasks if t.id != task_id]
        self.notifier.success("Task deleted", f'"{task.title}" has been removed.')
        return OperationResult.success(task)

    # ──────────────────────────────────────────
    # Project operations
    # ──────────────────────────────────────────

    async def add_project(self, draft: ProjectDraft) -> OperationResult:
        user = self.current_user
        if user is None:
            return OperationResult.failure(ErrorKind.SIGNED_OUT)

        try:
            project = await services.create_project(self.client, draft, user.id)
        except RemoteError as e:
            logger.warning(f"Creating project {draft.name!r} failed: {e}")
            self.notifier.error("Error creating project", str(e))
            return _remote_failure(e)

        if self._session_changed(user, "new project"):
            return OperationResult.failure(ErrorKind.SIGNED_OUT)
        self.projects = self.projects + [project]
        self.notifier.success(
            "Project created", f'"{project.name}" has been added to your projects.'
        )
        return OperationResult.success(project)

    async def delete_project(self, project_id: str) -> OperationResult:
        """Remove a project. Its tasks stay, orphaned."""
        user = self.current_user
        if user is None:
            return OperationResult.failure(ErrorKind.SIGNED_OUT)
        project = self.get_project(project_id)
        if project is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND)
        if not self._claim("project", project_id):
            return OperationResult.failure(ErrorKind.BUSY)

        try:
            await services.delete_project_by_id(self.client, project_id)
        except RemoteError as e:
            logger.warning(f"Deleting project {project_id} failed: {e}")
            self.notifier.error("Error deleting project", str(e))
            return _remote_failure(e)
        finally:
            self._release("project", project_id)

        if self._session_changed(user, f"deletion of project {project_id}"):
            return OperationResult.failure(ErrorKind.SIGNED_OUT)
        self.projects = [p for p in self.projects if p.id != project_id]
        self.notifier.success("Project deleted", f'"{project.name}" has been removed.')
        return OperationResult.success(project)

    # ──────────────────────────────────────────
    # Queries (pure reads)
    # ──────────────────────────────────────────

    def get_task(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def get_tasks_by_project(self, project_id: str) -> List[Task]:
        return [t for t in self.tasks if t.project_id == project_id]

    def get_tasks_by_priority(self, priority: Union[Priority, str]) -> List[Task]:
        if not isinstance(priority, Priority):
            try:
                priority = Priority(str(priority).lower())
            except ValueError:
                return []
        return [t for t in self.tasks if t.priority == priority]

    def get_project(self, project_id: str) -> Optional[Project]:
        return next((p for p in self.projects if p.id == project_id), None)
