"""
Pytest configuration and fixtures for chatguard tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to path so imports work without an installed package
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from chatguard.configuration.chat_limits import ChatLimits  # noqa: E402
from chatguard.store.local_kv import MemoryKV  # noqa: E402
from chatguard.store.memory_store import InMemoryAppendLog  # noqa: E402
from chatguard.util.clock import ManualClock  # noqa: E402


@pytest.fixture()
def limits() -> ChatLimits:
    return ChatLimits(
        {
            "max_message_length": 70,
            "virtex_length": 3500,
            "cooldown_seconds": 7,
            "spam_threshold": 3,
            "spam_penalty_seconds": 60,
            "username_min_length": 3,
            "username_max_length": 20,
            "max_username_changes": 3,
            "notification_ttl_seconds": 5,
        }
    )


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock(start=1000.0)


@pytest.fixture()
def store(clock: ManualClock) -> InMemoryAppendLog:
    return InMemoryAppendLog(clock=clock)


@pytest.fixture()
def kv() -> MemoryKV:
    return MemoryKV()
