"""
Per-sender cooldown and spam escalation.

Each sender moves through four states:

- IDLE: no recent accepted message and no live warnings.
- COOLING: inside ``cooldown_seconds`` of the last accepted message.
- WARNED(n): ``0 < n < spam_threshold`` TOO_FAST violations not yet decayed.
- MUTED: the threshold was reached; every attempt is refused until
  ``spam_penalty_seconds`` after the violation that triggered the mute.

Decay is evaluated lazily whenever a sender is looked at, so a check made long
after the last event still sees the right state without any background timer.
Cooldown remaining is always derived from the last accepted message, never
counted down.
"""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Dict

from chatguard.configuration.chat_limits import ChatLimits
from chatguard.datatypes.moderation_datatypes import (
    Decision,
    RejectionReason,
    SenderSpamState,
    SessionRateState,
    SpamStatus,
)
from chatguard.util.logger import get_logger

logger = get_logger("rate_limiter")


class RateLimiter:
    """
    Cooldown gate and spam-escalation state machine.

    The state tables are owned by the instance (or injected by the host) and
    are mutated only by :meth:`check_and_record`, :meth:`revert`,
    :meth:`reset` and :meth:`reset_all`.

    Args:
        cooldown_seconds: Minimum interval between accepted messages of one sender.
        spam_threshold: TOO_FAST violations that trigger a mute.
        spam_penalty_seconds: Mute length, and the quiet period after which
            warnings decay to zero.
        spam_states: Optional pre-existing per-sender spam table.
        last_accepted: Optional pre-existing per-sender cooldown anchors.
    """

    def __init__(
        self,
        cooldown_seconds: float,
        spam_threshold: int,
        spam_penalty_seconds: float,
        *,
        spam_states: Dict[str, SenderSpamState] | None = None,
        last_accepted: Dict[str, float] | None = None,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self.spam_threshold = spam_threshold
        self.spam_penalty_seconds = spam_penalty_seconds
        self._spam_states: Dict[str, SenderSpamState] = spam_states if spam_states is not None else {}
        self._last_accepted: Dict[str, float] = last_accepted if last_accepted is not None else {}

    @classmethod
    def from_limits(cls, limits: ChatLimits) -> "RateLimiter":
        return cls(limits.cooldown_seconds, limits.spam_threshold, limits.spam_penalty_seconds)

    # ------------------------------------------------------------------
    # Decay
    # ------------------------------------------------------------------

    def _decayed(self, state: SenderSpamState, now: float) -> SenderSpamState:
        """Return ``state`` as it stands at ``now`` without touching the stored record."""
        if state.muted_until is not None:
            if now >= state.muted_until:
                return SenderSpamState()
            return replace(state)
        if (
            state.warning_count > 0
            and state.last_violation_at is not None
            and now - state.last_violation_at >= self.spam_penalty_seconds
        ):
            return SenderSpamState()
        return replace(state)

    def _apply_decay(self, sender: str, now: float) -> SenderSpamState | None:
        state = self._spam_states.get(sender)
        if state is None:
            return None
        current = self._decayed(state, now)
        if current.warning_count == 0 and current.muted_until is None:
            del self._spam_states[sender]
            logger.debug("Spam state of %s decayed to idle", sender)
            return None
        self._spam_states[sender] = current
        return current

    # ------------------------------------------------------------------
    # Gate
    # ------------------------------------------------------------------

    def check_and_record(self, sender: str, now: float) -> Decision:
        """Decide one submission attempt and record it.

        Precondition: call exactly once per submission attempt. The call is
        not read-only; an allowed attempt anchors the sender's cooldown at
        ``now`` and a refused one counts as a violation, so calling it twice
        for the same attempt double-counts.

        Returns:
            Decision: ``allow``, ``reject(TOO_FAST, wait)`` or ``reject(MUTED, wait)``.
        """
        state = self._apply_decay(sender, now)

        if state is not None and state.is_muted(now):
            wait = math.ceil(state.muted_until - now)
            logger.debug("%s is muted for another %ds", sender, wait)
            return Decision.reject(RejectionReason.MUTED, wait)

        last = self._last_accepted.get(sender)
        if last is not None:
            elapsed = max(0.0, now - last)
            if elapsed < self.cooldown_seconds:
                return self._record_violation(sender, state, now, elapsed)

        self._last_accepted[sender] = now
        return Decision.allow(previous_anchor=last)

    def _record_violation(
        self, sender: str, state: SenderSpamState | None, now: float, elapsed: float
    ) -> Decision:
        if state is None:
            state = SenderSpamState()
            self._spam_states[sender] = state

        state.warning_count += 1
        state.last_violation_at = now
        if state.warning_count >= self.spam_threshold:
            state.muted_until = now + self.spam_penalty_seconds
            logger.warning(
                "[RATE LIMITER] %s muted for %.0fs after %d violations",
                sender,
                self.spam_penalty_seconds,
                state.warning_count,
            )
        else:
            logger.info("[RATE LIMITER] %s warned (%d/%d)", sender, state.warning_count, self.spam_threshold)

        return Decision.reject(RejectionReason.TOO_FAST, math.ceil(self.cooldown_seconds - elapsed))

    def revert(self, sender: str, decision: Decision) -> None:
        """Undo the cooldown anchor moved by an allowed ``decision``.

        Used when a later pipeline stage refuses an attempt the limiter let
        through, so a refused message does not start a cooldown.
        """
        if not decision.allowed:
            return
        if decision.previous_anchor is None:
            self._last_accepted.pop(sender, None)
        else:
            self._last_accepted[sender] = decision.previous_anchor

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def reset(self, sender: str) -> None:
        """Return ``sender`` to IDLE: forget warnings, mute and cooldown."""
        self._spam_states.pop(sender, None)
        self._last_accepted.pop(sender, None)
        logger.info("[RATE LIMITER] Spam state of %s reset", sender)

    def reset_all(self) -> None:
        self._spam_states.clear()
        self._last_accepted.clear()
        logger.info("[RATE LIMITER] All spam state reset")

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    def spam_state(self, sender: str, now: float) -> SenderSpamState | None:
        """Return a decayed copy of the sender's spam record, or None when idle."""
        state = self._spam_states.get(sender)
        if state is None:
            return None
        current = self._decayed(state, now)
        if current.warning_count == 0 and current.muted_until is None:
            return None
        return current

    def session_state(self, sender: str, now: float) -> SessionRateState:
        last = self._last_accepted.get(sender)
        if last is None:
            return SessionRateState(last_message_at=None, cooldown_remaining=0.0)
        remaining = max(0.0, self.cooldown_seconds - max(0.0, now - last))
        return SessionRateState(last_message_at=last, cooldown_remaining=remaining)

    def cooldown_remaining(self, sender: str, now: float) -> float:
        return self.session_state(sender, now).cooldown_remaining

    def spam_status(self, sender: str, now: float) -> SpamStatus:
        state = self.spam_state(sender, now)
        if state is not None:
            return SpamStatus.MUTED if state.is_muted(now) else SpamStatus.WARNED
        if self.cooldown_remaining(sender, now) > 0:
            return SpamStatus.COOLING
        return SpamStatus.IDLE
