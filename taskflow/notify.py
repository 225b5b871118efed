"""
Notification sink: fire-and-forget user-facing messages.

Every store mutation reports its outcome here. Messages are logged, kept in a
bounded queue for the web UI to poll, and fanned out to subscribers.
"""
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Any, List

logger = logging.getLogger(__name__)


class Severity(Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class Notification:
    severity: Severity
    title: str
    description: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_json(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "timestamp": self.timestamp,
        }


class Notifier:
    """Collects notifications and routes them to subscribers."""

    def __init__(self, maxlen: int = 100):
        self.pending: deque = deque(maxlen=maxlen)
        self.subscribers: List[Callable[[Notification], None]] = []

    def subscribe(self, callback: Callable[[Notification], None]) -> None:
        self.subscribers.append(callback)

    def success(self, title: str, description: str = "") -> Notification:
        return self._emit(Notification(Severity.SUCCESS, title, description))

    def error(self, title: str, description: str = "") -> Notification:
        return self._emit(Notification(Severity.ERROR, title, description))

    def drain(self) -> List[Notification]:
        """Return pending notifications oldest first and clear the queue."""
        items = list(self.pending)
        self.pending.clear()
        return items

    def _emit(self, note: Notification) -> Notification:
        level = logging.INFO if note.severity is Severity.SUCCESS else logging.WARNING
        logger.log(level, "%s: %s", note.title, note.description)
        self.pending.append(note)
        for callback in self.subscribers:
            try:
                callback(note)
            except Exception as e:
                logger.error(f"Notification subscriber failed: {e}")
        return note
