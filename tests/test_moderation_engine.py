"""Tests for moderation_engine module."""

from unittest.mock import AsyncMock, Mock

import pytest

from chatguard.configuration.chat_limits import ChatLimits
from chatguard.datatypes.moderation_datatypes import (
    RejectionCategory,
    RejectionReason,
    SpamStatus,
    UsernameState,
)
from chatguard.moderation.moderation_engine import ModerationEngine
from chatguard.moderation.rate_limiter import RateLimiter
from chatguard.store.interfaces import StoreError
from chatguard.util.clock import ManualClock


@pytest.fixture()
def log() -> Mock:
    mock_log = Mock()
    mock_log.append = AsyncMock(return_value="-key1")
    mock_log.delete_key = AsyncMock(return_value=None)
    mock_log.replace_all = AsyncMock(return_value=None)
    return mock_log


@pytest.fixture()
def engine(log: Mock, clock: ManualClock, limits: ChatLimits) -> ModerationEngine:
    return ModerationEngine(log, clock, UsernameState(name="alice"), limits=limits)


class TestSubmit:
    """Tests for the submission pipeline."""

    def test_accepts_valid_message(self, engine: ModerationEngine) -> None:
        result = engine.submit("alice", "hello", now=0)

        assert result.accepted is True
        assert result.record.sender == "alice"
        assert result.record.text == "hello"
        assert result.reason is None

    @pytest.mark.parametrize("sender,text", [("", "hi"), ("   ", "hi"), ("alice", ""), ("alice", "  \n ")])
    def test_rejects_empty_input(self, engine: ModerationEngine, sender: str, text: str) -> None:
        result = engine.submit(sender, text, now=0)

        assert result.reason is RejectionReason.EMPTY_INPUT
        assert result.category is RejectionCategory.VALIDATION

    def test_too_long_does_not_touch_cooldown(self, engine: ModerationEngine) -> None:
        result = engine.submit("alice", "x" * 71, now=0)

        assert result.reason is RejectionReason.TOO_LONG
        assert "Maximum 70 characters" in result.message
        assert engine.cooldown_remaining("alice", now=0) == 0
        assert engine.submit("alice", "x" * 70, now=1).accepted is True

    def test_cooldown_scenario(self, engine: ModerationEngine) -> None:
        assert engine.submit("alice", "hi", now=0).accepted

        too_fast = engine.submit("alice", "there", now=3)
        assert too_fast.reason is RejectionReason.TOO_FAST
        assert too_fast.wait_seconds == 4
        assert too_fast.category is RejectionCategory.RATE_LIMIT
        assert "wait 4 seconds" in too_fast.message

        assert engine.submit("alice", "yo", now=8).accepted

    def test_repeated_violations_mute_then_decay(self, engine: ModerationEngine) -> None:
        assert engine.submit("alice", "hi", now=0).accepted
        for now in (1, 2, 3):
            assert engine.submit("alice", "spam", now=now).reason is RejectionReason.TOO_FAST

        muted = engine.submit("alice", "valid and late", now=30)
        assert muted.reason is RejectionReason.MUTED
        assert muted.wait_seconds == 33
        assert "muted" in muted.message

        assert engine.submit("alice", "back again", now=63).accepted

    def test_empty_input_is_not_a_rate_limit_attempt(self, engine: ModerationEngine) -> None:
        assert engine.submit("alice", "hi", now=0).accepted
        engine.submit("alice", "", now=1)
        assert engine.rate_limiter.spam_state("alice", 1) is None

    def test_virtex_ceiling_rejects_and_reverts_cooldown(self, log: Mock, clock: ManualClock) -> None:
        limits = ChatLimits({"max_message_length": None, "virtex_length": 10})
        engine = ModerationEngine(log, clock, UsernameState(name="alice"), limits=limits)

        result = engine.submit("alice", "x" * 11, now=0)

        assert result.reason is RejectionReason.ABUSE_TOO_LONG
        assert "Maximum 10 characters" in result.message
        assert engine.cooldown_remaining("alice", now=0) == 0
        assert engine.submit("alice", "short", now=0).accepted is True

    def test_rate_limit_is_checked_before_virtex_ceiling(self, log: Mock, clock: ManualClock) -> None:
        limits = ChatLimits({"max_message_length": None, "virtex_length": 10})
        engine = ModerationEngine(log, clock, UsernameState(name="alice"), limits=limits)
        assert engine.submit("alice", "short", now=0).accepted

        result = engine.submit("alice", "x" * 50, now=1)

        assert result.reason is RejectionReason.TOO_FAST

    def test_accepted_text_is_censored(self, engine: ModerationEngine) -> None:
        result = engine.submit("alice", "what the fuck", now=0)

        assert result.record.text == "what the ****"

    def test_uses_clock_when_now_is_omitted(self, engine: ModerationEngine, clock: ManualClock) -> None:
        assert engine.submit("alice", "hi").accepted
        clock.advance(2)
        assert engine.submit("alice", "again").wait_seconds == 5
        clock.advance(5)
        assert engine.submit("alice", "again").accepted


class TestPost:
    """Tests for posting accepted messages to the log."""

    @pytest.mark.asyncio
    async def test_post_appends_censored_record(self, engine: ModerationEngine, log: Mock) -> None:
        result = await engine.post("alice", "oh shit", now=0)

        assert result.accepted is True
        log.append.assert_awaited_once_with("messages", {"username": "alice", "text": "oh ****"})

    @pytest.mark.asyncio
    async def test_rejected_post_makes_no_append(self, engine: ModerationEngine, log: Mock) -> None:
        result = await engine.post("alice", "x" * 71, now=0)

        assert result.reason is RejectionReason.TOO_LONG
        log.append.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_error_propagates_and_keeps_optimistic_cooldown(
        self, engine: ModerationEngine, log: Mock
    ) -> None:
        error = StoreError("permission denied", operation="append", path="messages")
        log.append.side_effect = error

        with pytest.raises(StoreError) as excinfo:
            await engine.post("alice", "hi", now=0)

        assert excinfo.value is error
        assert log.append.await_count == 1
        assert engine.cooldown_remaining("alice", now=1) == 6


class TestRemoteUpdate:
    """Tests for on_remote_update decoration."""

    def test_decorates_with_spam_status(self, engine: ModerationEngine) -> None:
        engine.submit("bob", "hi", now=0)
        engine.submit("bob", "hi again", now=1)
        snapshot = {
            "-1": {"username": "bob", "text": "hi", "timestamp": 0},
            "-2": {"username": "carol", "text": "hey", "timestamp": 1},
        }

        displayed = engine.on_remote_update(snapshot, now=2)

        assert [d.id for d in displayed] == ["-1", "-2"]
        assert displayed[0].spam_status is SpamStatus.WARNED
        assert displayed[0].warning_count == 1
        assert displayed[1].spam_status is SpamStatus.IDLE
        assert displayed[1].warning_count == 0

    def test_does_not_mutate_limiter_state(self, log: Mock, clock: ManualClock, limits: ChatLimits) -> None:
        table = {}
        limiter = RateLimiter(7, 3, 60, spam_states=table)
        engine = ModerationEngine(log, clock, UsernameState(name="alice"), limits=limits, rate_limiter=limiter)
        engine.submit("bob", "hi", now=0)
        engine.submit("bob", "hi", now=1)

        engine.on_remote_update({"-1": {"username": "bob", "text": "hi", "timestamp": 0}}, now=1000)

        assert table["bob"].warning_count == 1

    def test_empty_snapshot(self, engine: ModerationEngine) -> None:
        assert engine.on_remote_update(None) == []


class TestAdministration:
    """Tests for administrative pass-through operations."""

    @pytest.mark.asyncio
    async def test_clear_all_messages(self, engine: ModerationEngine, log: Mock) -> None:
        await engine.clear_all_messages()
        log.replace_all.assert_awaited_once_with("messages", None)

    @pytest.mark.asyncio
    async def test_delete_message(self, engine: ModerationEngine, log: Mock) -> None:
        await engine.delete_message("-key1")
        log.delete_key.assert_awaited_once_with("messages", "-key1")

    @pytest.mark.asyncio
    async def test_delete_message_store_error_propagates(self, engine: ModerationEngine, log: Mock) -> None:
        log.delete_key.side_effect = StoreError("offline")
        with pytest.raises(StoreError, match="offline"):
            await engine.delete_message("-key1")

    def test_reset_spam_state(self, engine: ModerationEngine) -> None:
        for now in (0, 1, 2, 3):
            engine.submit("bob", "spam", now=now)
        assert engine.spam_status("bob", now=4) is SpamStatus.MUTED

        engine.reset_spam_state("bob")

        assert engine.spam_status("bob", now=4) is SpamStatus.IDLE
        assert engine.submit("bob", "hello", now=4).accepted

    def test_username_quota(self, log: Mock, clock: ManualClock, limits: ChatLimits) -> None:
        state = UsernameState(name="alice", max_changes=1)
        engine = ModerationEngine(log, clock, state, limits=limits)

        assert engine.change_username("alice_2").ok
        assert engine.change_username("alice_3").reason is RejectionReason.USERNAME_QUOTA_EXCEEDED

        engine.reset_username_quota()

        assert state.changes_used == 0
        assert engine.change_username("alice_3").ok
        assert engine.username_state.name == "alice_3"
