"""
Collaborator protocols consumed by the chat core.

The realtime store, the local key-value storage and the clock live outside
chatguard; hosts plug in any object satisfying these protocols.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Protocol

RawSnapshot = Optional[Mapping[str, Any]]
SnapshotCallback = Callable[[Any], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]
CancelHandle = Callable[[], None]


class StoreError(Exception):
    """Failure reported by the store collaborator (append, delete, read, subscribe).

    Surfaced to callers unmodified; chatguard never retries on its own.

    Attributes:
        operation: Name of the store operation that failed.
        path: Logical path the operation targeted.
    """

    def __init__(self, message: str, *, operation: str = "", path: str = "") -> None:
        super().__init__(message)
        self.operation = operation
        self.path = path


class AppendLog(Protocol):
    """Realtime append-only document store."""

    async def append(self, path: str, record: Mapping[str, Any]) -> str:
        """Push ``record`` under ``path``; the store assigns the key and the timestamp."""
        ...

    async def delete_key(self, path: str, key: str) -> None:
        ...

    async def replace_all(self, path: str, value: Any) -> None:
        """Overwrite ``path`` with ``value``; ``None`` removes everything under it."""
        ...

    async def read(self, path: str) -> Any:
        """One-shot read of ``path``; ``None`` when nothing is stored there."""
        ...

    def subscribe(self, path: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        """Deliver the current value of ``path`` now and after every change."""
        ...


class LocalKV(Protocol):
    """Small persistent string storage local to the device."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class Clock(Protocol):
    """Time source; ``now`` is in seconds, ``after`` takes milliseconds."""

    def now(self) -> float:
        ...

    def after(self, ms: float, callback: Callable[[], None]) -> CancelHandle:
        ...
