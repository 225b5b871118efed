"""
Dashboard view logic.

The selected view comes from the navigation fragment (#all, #today,
#upcoming, #project-<id>). Filtering is always local to the store's current
task list; switching views never calls the remote service.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, List, Dict, Any

from .schema import Task

ALL = "all"
TODAY = "today"
UPCOMING = "upcoming"
PROJECT = "project"

PROJECT_PREFIX = "project-"
UPCOMING_DAYS = 7


@dataclass(frozen=True)
class DashboardView:
    kind: str = ALL
    project_id: Optional[str] = None

    @property
    def fragment(self) -> str:
        if self.kind == PROJECT:
            return f"{PROJECT_PREFIX}{self.project_id}"
        return self.kind


def parse_fragment(fragment: Optional[str]) -> DashboardView:
    """Map a fragment to a view; anything unrecognized falls back to all."""
    value = (fragment or "").strip().lstrip("#")
    if value in (TODAY, UPCOMING, ALL):
        return DashboardView(kind=value)
    if value.startswith(PROJECT_PREFIX) and len(value) > len(PROJECT_PREFIX):
        return DashboardView(kind=PROJECT, project_id=value[len(PROJECT_PREFIX):])
    return DashboardView()


def calendar_day(value: datetime) -> date:
    """Truncate to the local calendar day; aware times are converted first."""
    if value.tzinfo is not None:
        value = value.astimezone()
    return value.date()


def today_tasks(tasks: List[Task], today: date) -> List[Task]:
    return [t for t in tasks if t.due_date and calendar_day(t.due_date) == today]


def upcoming_tasks(tasks: List[Task], today: date) -> List[Task]:
    """Due strictly after today and at most UPCOMING_DAYS days ahead."""
    horizon = today + timedelta(days=UPCOMING_DAYS)
    return [
        t for t in tasks
        if t.due_date and today < calendar_day(t.due_date) <= horizon
    ]


def select_tasks(store, view: DashboardView, today: Optional[date] = None) -> List[Task]:
    today = today or date.today()
    if view.kind == TODAY:
        return today_tasks(store.tasks, today)
    if view.kind == UPCOMING:
        return upcoming_tasks(store.tasks, today)
    if view.kind == PROJECT:
        return store.get_tasks_by_project(view.project_id)
    return list(store.tasks)


def view_title(store, view: DashboardView) -> str:
    if view.kind == TODAY:
        return "Today"
    if view.kind == UPCOMING:
        return "Upcoming"
    if view.kind == PROJECT:
        project = store.get_project(view.project_id)
        return project.name if project else "Project"
    return "All Tasks"


def sidebar(store) -> List[Dict[str, Any]]:
    """Projects with their task counts, in store order."""
    entries = []
    for project in store.projects:
        tasks = store.get_tasks_by_project(project.id)
        entries.append({
            **project.to_json(),
            "fragment": f"{PROJECT_PREFIX}{project.id}",
            "total": len(tasks),
            "open": sum(1 for t in tasks if not t.completed),
        })
    return entries


def dashboard(store, fragment: Optional[str], today: Optional[date] = None) -> Dict[str, Any]:
    """Everything the dashboard renders for one fragment."""
    today = today or date.today()
    view = parse_fragment(fragment)
    tasks = select_tasks(store, view, today)
    return {
        "view": view.fragment,
        "title": view_title(store, view),
        "date": today.isoformat(),
        "counts": {
            ALL: len(store.tasks),
            TODAY: len(today_tasks(store.tasks, today)),
            UPCOMING: len(upcoming_tasks(store.tasks, today)),
        },
        "tasks": [t.to_json() for t in tasks],
        "projects": sidebar(store),
        "isLoading": store.is_loading,
    }
