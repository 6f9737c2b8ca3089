"""Non-blocking user notifications raised by the wizard steps.

Steps push a Notification instead of raising when a recoverable failure (or
a success) should be shown to the user. The UI layer drains the queue and
renders it however it likes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


class Notification(BaseModel):
    """A single toast-style message."""

    title: str
    description: str
    level: NotificationLevel = NotificationLevel.INFO
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationCenter:
    """In-memory queue of notifications for one wizard session."""

    def __init__(self) -> None:
        self._pending: list[Notification] = []

    def push(self, notification: Notification) -> None:
        self._pending.append(notification)
        logger.info(
            "notification.pushed",
            level=notification.level.value,
            title=notification.title,
        )

    def success(self, description: str, title: str = "Success!") -> None:
        self.push(Notification(title=title, description=description, level=NotificationLevel.SUCCESS))

    def error(self, description: str, title: str = "Error") -> None:
        self.push(Notification(title=title, description=description, level=NotificationLevel.ERROR))

    @property
    def pending(self) -> list[Notification]:
        return list(self._pending)

    def drain(self) -> list[Notification]:
        """Return and clear all pending notifications."""
        drained, self._pending = self._pending, []
        return drained
