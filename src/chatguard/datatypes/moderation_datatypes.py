"""
Moderation decision and state types.

This module defines the rejection taxonomy, the rate limiter's decisions and
per-sender state, the engine's submission result, and username state.

Key Features:
- `RejectionReason`: Every way a submission or username change can be refused,
  grouped into validation and rate-limit categories.
- `Decision`: Outcome of a single rate limiter check.
- `SubmitResult`: Outcome of a full moderation pipeline run.
- `SenderSpamState` / `SessionRateState`: Rate limiter bookkeeping.
- `UsernameState`: Current name and change quota of the local user.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from chatguard.datatypes.message_datatypes import Message, MessageRecord


class RejectionCategory(Enum):
    """Coarse grouping of rejection reasons."""

    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"

    def __str__(self) -> str:
        return self.value


class RejectionReason(Enum):
    """Enumeration of every structured rejection."""

    EMPTY_INPUT = "empty_input"
    TOO_LONG = "too_long"
    ABUSE_TOO_LONG = "abuse_too_long"
    BAD_USERNAME = "bad_username"
    USERNAME_QUOTA_EXCEEDED = "username_quota_exceeded"
    TOO_FAST = "too_fast"
    MUTED = "muted"

    @property
    def category(self) -> RejectionCategory:
        if self in (RejectionReason.TOO_FAST, RejectionReason.MUTED):
            return RejectionCategory.RATE_LIMIT
        return RejectionCategory.VALIDATION

    def __str__(self) -> str:
        return self.value


class SpamStatus(Enum):
    """Display flag for a sender's rate limiter state."""

    IDLE = "idle"
    COOLING = "cooling"
    WARNED = "warned"
    MUTED = "muted"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Decision:
    """Result of :meth:`RateLimiter.check_and_record`.

    Attributes:
        allowed: True when the attempt passed the rate limiter.
        reason: ``TOO_FAST`` or ``MUTED`` for rejections, otherwise None.
        wait_seconds: Whole seconds the sender should wait before retrying.
        previous_anchor: Cooldown anchor before an allowed attempt moved it,
            used by :meth:`RateLimiter.revert`.
    """

    allowed: bool
    reason: RejectionReason | None = None
    wait_seconds: int = 0
    previous_anchor: float | None = None

    @classmethod
    def allow(cls, previous_anchor: float | None = None) -> "Decision":
        return cls(allowed=True, previous_anchor=previous_anchor)

    @classmethod
    def reject(cls, reason: RejectionReason, wait_seconds: int) -> "Decision":
        return cls(allowed=False, reason=reason, wait_seconds=max(0, wait_seconds))


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of a username check: ``Ok`` or ``Rejected{reason}``."""

    ok: bool
    reason: RejectionReason | None = None
    message: str = ""

    @classmethod
    def accept(cls) -> "ValidationResult":
        return cls(ok=True)

    @classmethod
    def rejected(cls, reason: RejectionReason, message: str) -> "ValidationResult":
        return cls(ok=False, reason=reason, message=message)


@dataclass(frozen=True, slots=True)
class SubmitResult:
    """Outcome of :meth:`ModerationEngine.submit`.

    Attributes:
        accepted: True when the message may be appended to the log.
        record: The censored record to append (accepted results only).
        reason: Why the submission was refused (rejected results only).
        wait_seconds: Retry hint for rate-limit rejections.
        message: Human-readable explanation suitable for an alert.
    """

    accepted: bool
    record: MessageRecord | None = None
    reason: RejectionReason | None = None
    wait_seconds: int = 0
    message: str = ""

    @classmethod
    def accept(cls, record: MessageRecord) -> "SubmitResult":
        return cls(accepted=True, record=record)

    @classmethod
    def rejected(cls, reason: RejectionReason, message: str, wait_seconds: int = 0) -> "SubmitResult":
        return cls(accepted=False, reason=reason, wait_seconds=wait_seconds, message=message)

    @property
    def category(self) -> RejectionCategory | None:
        return self.reason.category if self.reason else None


@dataclass(slots=True)
class SenderSpamState:
    """Spam escalation bookkeeping for one sender name.

    Created lazily on the sender's first rate-limit violation and kept only
    in the local session.

    Attributes:
        warning_count: Violations since the last reset or decay.
        muted_until: End of the current mute, if any.
        last_violation_at: Time of the most recent ``TOO_FAST`` violation.
    """

    warning_count: int = 0
    muted_until: float | None = None
    last_violation_at: float | None = None

    def is_muted(self, now: float) -> bool:
        return self.muted_until is not None and now < self.muted_until


@dataclass(frozen=True, slots=True)
class SessionRateState:
    """Cooldown view for one sender, derived on demand from the last accepted message."""

    last_message_at: float | None
    cooldown_remaining: float


@dataclass(slots=True)
class UsernameState:
    """Local user's name and change quota.

    Attributes:
        name: Current username.
        changes_used: Name changes consumed so far, never above ``max_changes``.
        max_changes: Maximum number of name changes allowed.
    """

    name: str
    changes_used: int = 0
    max_changes: int = 3

    @property
    def changes_left(self) -> int:
        return max(0, self.max_changes - self.changes_used)


@dataclass(frozen=True, slots=True)
class DisplayMessage:
    """A projected message decorated with its sender's current spam flag."""

    message: Message
    spam_status: SpamStatus = SpamStatus.IDLE
    warning_count: int = 0

    @property
    def id(self) -> str:
        return self.message.id

    @property
    def sender(self) -> str:
        return self.message.sender

    @property
    def text(self) -> str:
        return self.message.text
