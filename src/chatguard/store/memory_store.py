"""In-process implementation of the ``AppendLog`` protocol.

Behaves like a small realtime document store: ``append`` assigns
lexicographically increasing push keys and millisecond server timestamps,
every write fans the new value of the path out to its subscribers, and the
store can be taken offline to exercise failure paths.
"""

from __future__ import annotations

import copy
import itertools
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Tuple

from chatguard.store.interfaces import (
    Clock,
    ErrorCallback,
    SnapshotCallback,
    StoreError,
    Unsubscribe,
)
from chatguard.util.clock import SystemClock
from chatguard.util.constants import CONNECTED_PATH, FIELD_TIMESTAMP, SERVER_TIME_OFFSET_PATH
from chatguard.util.logger import get_logger

logger = get_logger("memory_store")


class InMemoryAppendLog:
    """
    Dictionary-backed append-only log with change subscriptions.

    Args:
        clock: Source of server timestamps; defaults to the system clock.
        defer_timestamps: When True, appended records carry no timestamp until
            :meth:`commit_timestamps` is called, mimicking a store whose server
            timestamp arrives in a later snapshot.
    """

    def __init__(self, clock: Clock | None = None, *, defer_timestamps: bool = False) -> None:
        self._clock: Clock = clock or SystemClock()
        self._defer_timestamps = defer_timestamps
        self._data: Dict[str, Any] = {CONNECTED_PATH: True, SERVER_TIME_OFFSET_PATH: 0}
        self._subscribers: Dict[str, List[Tuple[int, SnapshotCallback, ErrorCallback]]] = defaultdict(list)
        self._subscription_ids = itertools.count(1)
        self._push_counter = itertools.count()
        self._pending: List[Tuple[str, str]] = []

    # ------------------------------------------------------------------
    # AppendLog protocol
    # ------------------------------------------------------------------

    async def append(self, path: str, record: Mapping[str, Any]) -> str:
        self._ensure_online("append", path)
        key = self._next_push_key()
        entry = dict(record)
        if self._defer_timestamps:
            entry[FIELD_TIMESTAMP] = None
            self._pending.append((path, key))
        else:
            entry[FIELD_TIMESTAMP] = self._server_timestamp()

        bucket = self._data.get(path)
        if not isinstance(bucket, dict):
            bucket = {}
            self._data[path] = bucket
        bucket[key] = entry
        logger.debug("Appended %s/%s", path, key)
        self._notify(path)
        return key

    async def delete_key(self, path: str, key: str) -> None:
        self._ensure_online("delete", path)
        bucket = self._data.get(path)
        if isinstance(bucket, dict) and bucket.pop(key, None) is not None:
            if not bucket:
                del self._data[path]
            logger.debug("Deleted %s/%s", path, key)
            self._notify(path)

    async def replace_all(self, path: str, value: Any) -> None:
        self._ensure_online("replace", path)
        if value is None:
            self._data.pop(path, None)
        else:
            self._data[path] = copy.deepcopy(value)
        logger.debug("Replaced %s (cleared=%s)", path, value is None)
        self._notify(path)

    async def read(self, path: str) -> Any:
        self._ensure_online("read", path)
        return copy.deepcopy(self._data.get(path))

    def subscribe(self, path: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        subscription_id = next(self._subscription_ids)
        self._subscribers[path].append((subscription_id, on_snapshot, on_error))
        logger.debug("Subscription %d opened on %s", subscription_id, path)
        self._deliver(on_snapshot, self._data.get(path))

        def unsubscribe() -> None:
            listeners = self._subscribers.get(path, [])
            listeners[:] = [entry for entry in listeners if entry[0] != subscription_id]

        return unsubscribe

    # ------------------------------------------------------------------
    # Test and simulation helpers
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return bool(self._data.get(CONNECTED_PATH))

    def set_connected(self, connected: bool) -> None:
        """Take the store offline or back online; offline writes and reads raise StoreError."""
        self._data[CONNECTED_PATH] = connected
        self._notify(CONNECTED_PATH)

    def fail_subscribers(self, path: str, error: Exception) -> None:
        """Report ``error`` to every subscriber of ``path``."""
        for _, _, on_error in list(self._subscribers.get(path, [])):
            on_error(error)

    def commit_timestamps(self) -> int:
        """Assign server timestamps to every deferred record; returns how many were committed."""
        committed = 0
        touched = set()
        for path, key in self._pending:
            bucket = self._data.get(path)
            if isinstance(bucket, dict) and key in bucket:
                bucket[key][FIELD_TIMESTAMP] = self._server_timestamp()
                committed += 1
                touched.add(path)
        self._pending.clear()
        for path in touched:
            self._notify(path)
        return committed

    def subscriber_count(self, path: str) -> int:
        return len(self._subscribers.get(path, []))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_online(self, operation: str, path: str) -> None:
        if not self.connected:
            raise StoreError(f"Client is offline, cannot {operation} {path}", operation=operation, path=path)

    def _server_timestamp(self) -> int:
        return int(self._clock.now() * 1000)

    def _next_push_key(self) -> str:
        return f"-{self._server_timestamp():013d}{next(self._push_counter):06d}"

    def _notify(self, path: str) -> None:
        value = self._data.get(path)
        for _, on_snapshot, _ in list(self._subscribers.get(path, [])):
            self._deliver(on_snapshot, value)

    @staticmethod
    def _deliver(on_snapshot: SnapshotCallback, value: Any) -> None:
        try:
            on_snapshot(copy.deepcopy(value))
        except Exception:
            logger.exception("Snapshot listener raised")
