"""``LocalKV`` implementations: a plain in-memory map and a JSON file."""

from __future__ import annotations

import fcntl
import json
from pathlib import Path
from typing import Dict

from chatguard.util.logger import get_logger

logger = get_logger("local_kv")


class MemoryKV:
    """Process-local key-value storage."""

    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKV:
    """Key-value storage persisted as a JSON object, guarded by fcntl locks.

    A missing or unreadable file reads as empty; the next ``set`` rewrites it.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> Dict[str, str]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    return self._parse(f.read())
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.error("[LOCAL KV] Failed to read %s: %s", self.path, exc)
            return {}

    def _parse(self, raw: str) -> Dict[str, str]:
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("[LOCAL KV] Failed to parse %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> str | None:
        value = self._load().get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        """Update one key; the read-modify-write runs under a single exclusive lock."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a+", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.seek(0)
                data = self._parse(f.read())
                data[key] = value
                f.seek(0)
                f.truncate()
                json.dump(data, f, indent=2)
                f.flush()
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
