"""
Task and project records, and their mapping to remote table rows.

Local names are Python attributes (project_id, due_date, created_at); remote
rows use the same snake_case column names, with dates carried as ISO-8601
strings. The JSON API exposes camelCase keys for the browser client.
"""
import re
from enum import Enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any


class Priority(Enum):
    """Urgency levels a task can carry. Ordering has no computed meaning."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "Priority":
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.LOW


_FRACTION = re.compile(r"\.(\d+)")

# Fields a caller may change on an existing task
UPDATABLE_TASK_FIELDS = ("title", "completed", "priority", "project_id", "due_date")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 column value; empty means absent."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    # PostgREST may emit a trailing Z
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    # Postgres trims trailing zeros from fractional seconds
    value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    return datetime.fromisoformat(value)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Project:
    """A named, colored bucket for tasks."""
    id: str
    name: str
    color: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Project":
        return cls(
            id=str(row["id"]),
            name=row.get("name", ""),
            color=row.get("color", ""),
        )

    def to_json(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color}


@dataclass
class ProjectDraft:
    """A project before the remote service has assigned its id."""
    name: str
    color: str

    def to_row(self, user_id: str) -> Dict[str, Any]:
        return {"name": self.name, "color": self.color, "user_id": user_id}


@dataclass
class Task:
    """A to-do item as held in the store."""
    id: str
    title: str
    project_id: str
    priority: Priority = Priority.LOW
    completed: bool = False
    due_date: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Task":
        """Build a task from a remote row (snake_case columns, ISO dates)."""
        return cls(
            id=str(row["id"]),
            title=row.get("title", ""),
            completed=bool(row.get("completed", False)),
            priority=Priority.from_str(row.get("priority")),
            project_id=str(row["project_id"]) if row.get("project_id") is not None else "",
            due_date=parse_timestamp(row.get("due_date")),
            created_at=parse_timestamp(row.get("created_at")) or utc_now(),
        )

    def merged(self, fields: Dict[str, Any]) -> "Task":
        """Return a copy with the given fields replaced; others are untouched."""
        return replace(self, **fields)

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "completed": self.completed,
            "priority": self.priority.value,
            "projectId": self.project_id,
            "dueDate": format_timestamp(self.due_date),
            "createdAt": format_timestamp(self.created_at),
        }


@dataclass
class TaskDraft:
    """A task before the remote service has assigned id and created_at."""
    title: str
    project_id: str
    priority: Priority = Priority.LOW
    due_date: Optional[datetime] = None
    completed: bool = False

    def to_row(self, user_id: str) -> Dict[str, Any]:
        return {
            "title": self.title,
            "completed": self.completed,
            "priority": self.priority.value,
            "project_id": self.project_id,
            "due_date": format_timestamp(self.due_date),
            "user_id": user_id,
        }


def task_fields_to_row(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a partial task update onto remote columns.

    Only the keys present are carried over. Unknown keys raise ValueError so a
    typo never turns into a silent no-op update.
    """
    unknown = set(fields) - set(UPDATABLE_TASK_FIELDS)
    if unknown:
        raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")

    row: Dict[str, Any] = {}
    if "title" in fields:
        row["title"] = fields["title"]
    if "completed" in fields:
        row["completed"] = bool(fields["completed"])
    if "priority" in fields:
        priority = fields["priority"]
        row["priority"] = priority.value if isinstance(priority, Priority) else str(priority)
    if "project_id" in fields:
        row["project_id"] = fields["project_id"]
    if "due_date" in fields:
        due = fields["due_date"]
        row["due_date"] = format_timestamp(due) if isinstance(due, datetime) else due
    return row


# ── Bootstrap data ───────────────────────────────────────────────────────────

DEFAULT_PROJECTS: List[Project] = [
    Project(id="1", name="Personal", color="#9b87f5"),
    Project(id="2", name="Work", color="#33C3F0"),
    Project(id="3", name="Shopping", color="#F97316"),
]


def default_projects() -> List[Project]:
    """Fresh copies of the bootstrap set, safe to hand to a store."""
    return [replace(p) for p in DEFAULT_PROJECTS]
