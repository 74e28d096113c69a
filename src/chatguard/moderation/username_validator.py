"""Username format rules and change-quota enforcement."""

from __future__ import annotations

import re

from chatguard.configuration.chat_limits import ChatLimits
from chatguard.datatypes.moderation_datatypes import RejectionReason, UsernameState, ValidationResult
from chatguard.util.logger import get_logger

logger = get_logger("username_validator")

_ALLOWED_CHARS = re.compile(r"[A-Za-z0-9_]+")


class UsernameValidator:
    """
    Checks username format and guards the per-user change quota.

    Rules are checked in order and the first failure wins: length within
    ``[min_length, max_length]``, then only ASCII letters, digits and
    underscores.
    """

    def __init__(self, min_length: int, max_length: int) -> None:
        self.min_length = min_length
        self.max_length = max_length

    @classmethod
    def from_limits(cls, limits: ChatLimits) -> "UsernameValidator":
        return cls(limits.username_min_length, limits.username_max_length)

    def validate(self, name: str) -> ValidationResult:
        if not self.min_length <= len(name) <= self.max_length:
            return ValidationResult.rejected(
                RejectionReason.BAD_USERNAME,
                f"Username must be between {self.min_length} and {self.max_length} characters.",
            )
        if not _ALLOWED_CHARS.fullmatch(name):
            return ValidationResult.rejected(
                RejectionReason.BAD_USERNAME,
                "Username may only contain letters, digits and underscores.",
            )
        return ValidationResult.accept()

    @staticmethod
    def can_change_username(state: UsernameState) -> bool:
        return state.changes_used < state.max_changes

    def change_username(self, state: UsernameState, new_name: str) -> ValidationResult:
        """Rename ``state`` to ``new_name`` if the quota allows and the name is valid.

        The quota is checked first, so an exhausted quota rejects even a valid
        name. Only a successful change mutates ``state``.
        """
        if not self.can_change_username(state):
            logger.info("Username change to %r refused: quota of %d used", new_name, state.max_changes)
            return ValidationResult.rejected(
                RejectionReason.USERNAME_QUOTA_EXCEEDED,
                f"You have used all {state.max_changes} username changes.",
            )

        result = self.validate(new_name)
        if not result.ok:
            logger.debug("Username change to %r rejected: %s", new_name, result.message)
            return result

        state.name = new_name
        state.changes_used += 1
        logger.info("Username changed to %r (%d/%d changes used)", new_name, state.changes_used, state.max_changes)
        return result

    @staticmethod
    def reset_quota(state: UsernameState) -> None:
        state.changes_used = 0
