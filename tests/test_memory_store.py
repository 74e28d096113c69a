"""Tests for the in-memory AppendLog."""

import pytest

from chatguard.store.interfaces import StoreError
from chatguard.store.memory_store import InMemoryAppendLog
from chatguard.util.clock import ManualClock


@pytest.mark.asyncio
async def test_append_assigns_increasing_keys_and_timestamps(store: InMemoryAppendLog, clock: ManualClock) -> None:
    first = await store.append("messages", {"username": "alice", "text": "a"})
    second = await store.append("messages", {"username": "bob", "text": "b"})
    clock.advance(1)
    third = await store.append("messages", {"username": "carol", "text": "c"})

    assert first < second < third
    data = await store.read("messages")
    assert data[first]["timestamp"] == 1_000_000
    assert data[third]["timestamp"] == 1_001_000


@pytest.mark.asyncio
async def test_subscribe_delivers_current_value_then_changes(store: InMemoryAppendLog) -> None:
    snapshots = []
    store.subscribe("messages", snapshots.append, lambda exc: None)

    key = await store.append("messages", {"username": "alice", "text": "hi"})
    await store.delete_key("messages", key)

    assert snapshots[0] is None
    assert list(snapshots[1].keys()) == [key]
    assert snapshots[2] is None


@pytest.mark.asyncio
async def test_snapshots_are_copies(store: InMemoryAppendLog) -> None:
    snapshots = []
    store.subscribe("messages", snapshots.append, lambda exc: None)
    key = await store.append("messages", {"username": "alice", "text": "hi"})

    snapshots[-1][key]["text"] = "tampered"

    assert (await store.read("messages"))[key]["text"] == "hi"


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery(store: InMemoryAppendLog) -> None:
    snapshots = []
    unsubscribe = store.subscribe("messages", snapshots.append, lambda exc: None)

    unsubscribe()
    unsubscribe()
    await store.append("messages", {"username": "alice", "text": "hi"})

    assert snapshots == [None]


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_others(store: InMemoryAppendLog) -> None:
    def broken(_snapshot):
        raise RuntimeError("listener bug")

    snapshots = []
    store.subscribe("messages", broken, lambda exc: None)
    store.subscribe("messages", snapshots.append, lambda exc: None)

    await store.append("messages", {"username": "alice", "text": "hi"})

    assert len(snapshots) == 2


@pytest.mark.asyncio
async def test_replace_all_with_none_clears_path(store: InMemoryAppendLog) -> None:
    await store.append("messages", {"username": "alice", "text": "hi"})

    await store.replace_all("messages", None)

    assert await store.read("messages") is None


@pytest.mark.asyncio
async def test_offline_operations_raise_store_error(store: InMemoryAppendLog) -> None:
    store.set_connected(False)

    with pytest.raises(StoreError) as excinfo:
        await store.append("messages", {"text": "hi"})
    assert excinfo.value.operation == "append"
    assert excinfo.value.path == "messages"

    for call in (store.read("messages"), store.delete_key("messages", "k"), store.replace_all("messages", None)):
        with pytest.raises(StoreError):
            await call


@pytest.mark.asyncio
async def test_deferred_timestamps(clock: ManualClock) -> None:
    store = InMemoryAppendLog(clock=clock, defer_timestamps=True)
    key = await store.append("messages", {"username": "alice", "text": "hi"})
    assert (await store.read("messages"))[key]["timestamp"] is None

    clock.advance(2)
    assert store.commit_timestamps() == 1

    assert (await store.read("messages"))[key]["timestamp"] == 1_002_000
    assert store.commit_timestamps() == 0
