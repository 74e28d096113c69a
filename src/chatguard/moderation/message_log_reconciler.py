"""
Projection of raw log snapshots into an ordered message list.

The store delivers the whole ``messages`` mapping (key -> fields) on every
change. :class:`MessageLogReconciler` turns it into messages sorted by
``(created_at, key)``. A record whose server timestamp has not been committed
yet sorts as if stamped ``0`` and moves to its real place once a later
snapshot carries the timestamp.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Sequence

from chatguard.datatypes.message_datatypes import Message, MessageID
from chatguard.store.interfaces import RawSnapshot
from chatguard.util.constants import FIELD_TEXT, FIELD_TIMESTAMP, FIELD_USERNAME
from chatguard.util.logger import get_logger

logger = get_logger("message_log_reconciler")


class AnomalyKind(Enum):
    MALFORMED_ENTRY = "malformed_entry"
    MISSING_FIELD = "missing_field"
    MISSING_TIMESTAMP = "missing_timestamp"
    TIMESTAMP_SETTLED = "timestamp_settled"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ReconcileAnomaly:
    key: str
    kind: AnomalyKind
    detail: str = ""


def _coerce_timestamp(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_snapshot(messages: Sequence[Message]) -> Dict[str, Dict[str, Any]]:
    """Re-wrap projected messages as a raw snapshot mapping."""
    return {message.id: message.to_fields() for message in messages}


class MessageLogReconciler:
    """
    Folds raw snapshots into a stable, time-ordered view.

    Besides the ordered messages, each projection records the structural
    anomalies it met in :attr:`anomalies`: entries that are not mappings
    (skipped), entries missing a sender or text (kept with an empty string),
    entries still waiting for a server timestamp, and entries whose timestamp
    arrived since the previous projection.
    """

    def __init__(self) -> None:
        self._messages: List[Message] = []
        self._pending_ids: set[MessageID] = set()
        self.anomalies: List[ReconcileAnomaly] = []

    @property
    def messages(self) -> List[Message]:
        """The most recent projection."""
        return list(self._messages)

    @property
    def pending_ids(self) -> set[MessageID]:
        return set(self._pending_ids)

    def project(self, raw_snapshot: RawSnapshot) -> List[Message]:
        """Convert ``raw_snapshot`` into messages ordered by ``(created_at, key)``.

        ``None`` or an empty mapping yields an empty list. Equal snapshots
        always yield equal lists.
        """
        anomalies: List[ReconcileAnomaly] = []
        messages: List[Message] = []

        if raw_snapshot and not isinstance(raw_snapshot, Mapping):
            logger.warning("Ignoring snapshot of type %s", type(raw_snapshot).__name__)
            anomalies.append(ReconcileAnomaly("", AnomalyKind.MALFORMED_ENTRY, "snapshot is not a mapping"))
            raw_snapshot = None

        for key, fields in (raw_snapshot or {}).items():
            key = str(key)
            if not isinstance(fields, Mapping):
                anomalies.append(ReconcileAnomaly(key, AnomalyKind.MALFORMED_ENTRY, type(fields).__name__))
                continue
            message = self._build_message(key, fields, anomalies)
            messages.append(message)

        messages.sort(key=lambda m: m.sort_key)

        pending = {m.id for m in messages if m.is_pending}
        present = {m.id for m in messages}
        for message_id in sorted((self._pending_ids - pending) & present):
            anomalies.append(ReconcileAnomaly(message_id, AnomalyKind.TIMESTAMP_SETTLED))

        if anomalies:
            logger.debug("Projection of %d messages found %d anomalies", len(messages), len(anomalies))

        self._messages = messages
        self._pending_ids = pending
        self.anomalies = anomalies
        return list(messages)

    @staticmethod
    def _build_message(key: str, fields: Mapping[str, Any], anomalies: List[ReconcileAnomaly]) -> Message:
        for name in (FIELD_USERNAME, FIELD_TEXT):
            if fields.get(name) is None:
                anomalies.append(ReconcileAnomaly(key, AnomalyKind.MISSING_FIELD, name))

        created_at = _coerce_timestamp(fields.get(FIELD_TIMESTAMP))
        if created_at is None:
            anomalies.append(ReconcileAnomaly(key, AnomalyKind.MISSING_TIMESTAMP))

        return Message(
            id=key,
            sender=str(fields.get(FIELD_USERNAME) or ""),
            text=str(fields.get(FIELD_TEXT) or ""),
            created_at=created_at,
        )
