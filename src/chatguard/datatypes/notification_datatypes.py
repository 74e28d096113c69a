"""
System notification and connection types.

Notifications are broadcast to ``notifications/{autoKey}`` when a user reports
a sender for flooding, and are also shown locally for a short time.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class NotificationType(Enum):
    VIRTEX = "virtex"

    def __str__(self) -> str:
        return self.value


class ConnectionStatus(Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Notification:
    """A system notification.

    Attributes:
        id: Client-side identifier, the local time in milliseconds at creation.
        type: Kind of notification.
        message: Text shown to users.
        timestamp: Store-assigned timestamp once persisted, else None.
    """

    id: int
    type: NotificationType
    message: str
    timestamp: float | None = None

    def to_payload(self) -> Dict[str, Any]:
        """Return the record pushed to the store; the store adds ``timestamp``."""
        return {"id": self.id, "type": self.type.value, "message": self.message}


@dataclass(frozen=True, slots=True)
class ConnectionProbe:
    """Result of a one-shot connectivity probe against the store."""

    status: ConnectionStatus
    tested_at: float
    server_time_offset: float | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED
