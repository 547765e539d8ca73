"""
User-facing status events.

The core only produces these; rendering them is the caller's job.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Protocol

import structlog

from crowdchain.core.errors import CrowdchainError


class NotificationKind(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    WRONG_NETWORK = "wrongNetwork"
    TRANSACTION_PENDING = "transactionPending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    title: str
    message: str = ""
    error_category: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_error(cls, title: str, error: CrowdchainError) -> "Notification":
        return cls(
            kind=NotificationKind.ERROR,
            title=title,
            message=error.message,
            error_category=error.category.value,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "title": self.title,
            "message": self.message,
            "errorCategory": self.error_category,
            "createdAt": self.created_at.isoformat(),
        }


class NotificationSink(Protocol):
    def emit(self, notification: Notification) -> None:
        ...


class LoggingNotificationSink:
    """Writes notifications to the structured log."""

    def __init__(self, logger_name: str = "notifications"):
        self._logger = structlog.stdlib.get_logger(logger_name)

    def emit(self, notification: Notification) -> None:
        log = self._logger.warning if notification.kind == NotificationKind.ERROR else self._logger.info
        log(
            "notification",
            kind=notification.kind.value,
            title=notification.title,
            message=notification.message,
            error_category=notification.error_category,
        )


class BufferedNotificationSink:
    """Keeps the most recent notifications for a UI to drain, and forwards them."""

    def __init__(self, maxlen: int = 100, forward: Optional[NotificationSink] = None):
        self._buffer: Deque[Notification] = deque(maxlen=maxlen)
        self._forward = forward

    def emit(self, notification: Notification) -> None:
        self._buffer.append(notification)
        if self._forward is not None:
            self._forward.emit(notification)

    @property
    def notifications(self) -> List[Notification]:
        return list(self._buffer)

    def kinds(self) -> List[NotificationKind]:
        return [n.kind for n in self._buffer]

    def drain(self) -> List[Notification]:
        items = list(self._buffer)
        self._buffer.clear()
        return items
