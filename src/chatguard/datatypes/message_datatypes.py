"""
Message types exchanged with the append-only log.

- `Message`: read-only projection of a record the store has accepted.
- `MessageRecord`: normalized outbound record handed to the log on acceptance.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from chatguard.util.constants import FIELD_TEXT, FIELD_TIMESTAMP, FIELD_USERNAME

MessageID = str
Timestamp = float


@dataclass(frozen=True, slots=True)
class Message:
    """A message as projected from a store snapshot.

    Attributes:
        id (MessageID): Store-assigned key, unique within the log.
        sender (str): Username the message was posted under.
        text (str): Message body, already censored by the sending client.
        created_at (Timestamp | None): Store-assigned timestamp, ``None`` until
            the store commits it.
    """

    id: MessageID
    sender: str
    text: str
    created_at: Timestamp | None = None

    @property
    def is_pending(self) -> bool:
        """True while the store has not committed a server timestamp yet."""
        return self.created_at is None

    @property
    def sort_key(self) -> tuple[Timestamp, MessageID]:
        return (self.created_at or 0, self.id)

    def to_fields(self) -> Dict[str, Any]:
        """Return the raw field mapping as the store persists it."""
        return {
            FIELD_USERNAME: self.sender,
            FIELD_TEXT: self.text,
            FIELD_TIMESTAMP: self.created_at,
        }


@dataclass(frozen=True, slots=True)
class MessageRecord:
    """Normalized record of an accepted submission.

    The store assigns both the key and the timestamp on append, so the
    payload carries neither.
    """

    sender: str
    text: str

    def to_payload(self) -> Dict[str, Any]:
        return {FIELD_USERNAME: self.sender, FIELD_TEXT: self.text}
