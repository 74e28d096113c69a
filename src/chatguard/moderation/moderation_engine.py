"""
Submission pipeline and remote-update projection for the chat core.

The engine composes the profanity filter, the username validator, the rate
limiter and the log reconciler. Every method runs to completion without
blocking; only the store calls of :meth:`ModerationEngine.post` and the
administrative operations are awaited.

Acceptance state is updated optimistically: the rate limiter anchors the
sender's cooldown when :meth:`ModerationEngine.submit` accepts, before the
append is acknowledged. A failed append therefore leaves the cooldown running
although the store never got the message.
"""

from __future__ import annotations

from typing import List

from chatguard.configuration.app_configuration import app_config
from chatguard.configuration.chat_limits import ChatLimits
from chatguard.datatypes.message_datatypes import MessageID, MessageRecord
from chatguard.datatypes.moderation_datatypes import (
    DisplayMessage,
    RejectionReason,
    SpamStatus,
    SubmitResult,
    UsernameState,
    ValidationResult,
)
from chatguard.moderation.message_log_reconciler import MessageLogReconciler
from chatguard.moderation.profanity_filter import ProfanityFilter
from chatguard.moderation.rate_limiter import RateLimiter
from chatguard.moderation.username_validator import UsernameValidator
from chatguard.store.interfaces import AppendLog, Clock, RawSnapshot, StoreError
from chatguard.util.constants import MESSAGES_PATH
from chatguard.util.logger import get_logger

logger = get_logger("moderation_engine")


class ModerationEngine:
    """
    Decides submissions and projects remote snapshots.

    Args:
        log: Append-only store the accepted messages go to.
        clock: Time source used when callers pass no explicit ``now``.
        username_state: The local user's name and change quota, supplied by the host.
        limits: Deployment limit set; defaults to the shared configuration.
        profanity_filter: Optional replacement filter.
        username_validator: Optional replacement validator.
        rate_limiter: Optional replacement limiter (e.g. one sharing a state table).
        reconciler: Optional replacement reconciler.
    """

    def __init__(
        self,
        log: AppendLog,
        clock: Clock,
        username_state: UsernameState,
        *,
        limits: ChatLimits | None = None,
        profanity_filter: ProfanityFilter | None = None,
        username_validator: UsernameValidator | None = None,
        rate_limiter: RateLimiter | None = None,
        reconciler: MessageLogReconciler | None = None,
    ) -> None:
        self._log = log
        self._clock = clock
        self._limits = limits or app_config.chat_limits
        self._username_state = username_state
        self._profanity_filter = profanity_filter or ProfanityFilter(self._limits.denylist)
        self._username_validator = username_validator or UsernameValidator.from_limits(self._limits)
        self._rate_limiter = rate_limiter or RateLimiter.from_limits(self._limits)
        self._reconciler = reconciler or MessageLogReconciler()

    @property
    def limits(self) -> ChatLimits:
        return self._limits

    @property
    def username_state(self) -> UsernameState:
        return self._username_state

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def reconciler(self) -> MessageLogReconciler:
        return self._reconciler

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, sender: str, text: str, now: float | None = None) -> SubmitResult:
        """
        Run one submission attempt through the moderation pipeline.

        Checks run in this order and the first failure wins:

        1. EMPTY_INPUT when the sender or the stripped text is empty.
        2. TOO_LONG when the text exceeds ``max_message_length``.
        3. TOO_FAST / MUTED from the rate limiter, which records the attempt.
        4. ABUSE_TOO_LONG when the text exceeds the ``virtex_length`` ceiling.
        5. Accepted, with the text censored.

        Args:
            sender: Username the message is posted under.
            text: Draft message text.
            now: Attempt time in seconds; defaults to the engine clock.

        Returns:
            SubmitResult: Accepted record or structured rejection.
        """
        now = self._clock.now() if now is None else now

        if not sender.strip() or not text.strip():
            return SubmitResult.rejected(RejectionReason.EMPTY_INPUT, "Empty message or username")

        max_length = self._limits.max_message_length
        if max_length is not None and len(text) > max_length:
            return SubmitResult.rejected(
                RejectionReason.TOO_LONG,
                f"Message is too long! Maximum {max_length} characters allowed.",
            )

        decision = self._rate_limiter.check_and_record(sender, now)
        if not decision.allowed:
            if decision.reason is RejectionReason.MUTED:
                message = f"You are muted for spamming. Try again in {decision.wait_seconds} seconds."
            else:
                message = f"Please wait {decision.wait_seconds} seconds before sending another message."
            return SubmitResult.rejected(decision.reason, message, decision.wait_seconds)

        virtex_length = self._limits.virtex_length
        if len(text) > virtex_length:
            self._rate_limiter.revert(sender, decision)
            logger.warning("[MODERATION] Refused %d-character message from %s", len(text), sender)
            return SubmitResult.rejected(
                RejectionReason.ABUSE_TOO_LONG,
                f"Message too long! Maximum {virtex_length} characters allowed to prevent spam.",
            )

        censored = self._profanity_filter.censor(text)
        if censored != text:
            logger.info("[MODERATION] Censored message from %s", sender)
        return SubmitResult.accept(MessageRecord(sender=sender, text=censored))

    async def post(self, sender: str, text: str, now: float | None = None) -> SubmitResult:
        """Submit a message and append it to the log when accepted.

        Raises:
            StoreError: The append failed. The error is passed through as-is
                and not retried; the optimistic cooldown stays in place.
        """
        result = self.submit(sender, text, now)
        if not result.accepted or result.record is None:
            logger.debug("Submission from %s rejected: %s", sender, result.reason)
            return result

        try:
            key = await self._log.append(MESSAGES_PATH, result.record.to_payload())
        except StoreError as exc:
            logger.error("Error sending message from %s: %s", sender, exc)
            raise
        logger.debug("Message from %s appended as %s", sender, key)
        return result

    # ------------------------------------------------------------------
    # Remote updates
    # ------------------------------------------------------------------

    def on_remote_update(self, raw_snapshot: RawSnapshot, now: float | None = None) -> List[DisplayMessage]:
        """Project ``raw_snapshot`` and flag each message with its sender's spam status.

        Read-only with respect to the rate limiter.
        """
        now = self._clock.now() if now is None else now
        decorated: List[DisplayMessage] = []
        for message in self._reconciler.project(raw_snapshot):
            state = self._rate_limiter.spam_state(message.sender, now)
            decorated.append(
                DisplayMessage(
                    message=message,
                    spam_status=self._rate_limiter.spam_status(message.sender, now),
                    warning_count=state.warning_count if state else 0,
                )
            )
        return decorated

    def spam_status(self, sender: str, now: float | None = None) -> SpamStatus:
        now = self._clock.now() if now is None else now
        return self._rate_limiter.spam_status(sender, now)

    def cooldown_remaining(self, sender: str, now: float | None = None) -> float:
        now = self._clock.now() if now is None else now
        return self._rate_limiter.cooldown_remaining(sender, now)

    # ------------------------------------------------------------------
    # Username
    # ------------------------------------------------------------------

    def change_username(self, new_name: str) -> ValidationResult:
        return self._username_validator.change_username(self._username_state, new_name)

    def validate_username(self, name: str) -> ValidationResult:
        return self._username_validator.validate(name)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def clear_all_messages(self) -> None:
        try:
            await self._log.replace_all(MESSAGES_PATH, None)
        except StoreError as exc:
            logger.error("Error clearing messages: %s", exc)
            raise
        logger.info("[ADMIN] Messages cleared")

    async def delete_message(self, message_id: MessageID) -> None:
        try:
            await self._log.delete_key(MESSAGES_PATH, message_id)
        except StoreError as exc:
            logger.error("Error deleting message %s: %s", message_id, exc)
            raise
        logger.info("[ADMIN] Message %s deleted", message_id)

    def reset_spam_state(self, sender: str) -> None:
        self._rate_limiter.reset(sender)

    def reset_username_quota(self) -> None:
        self._username_validator.reset_quota(self._username_state)
        logger.info("[ADMIN] Username quota of %s reset", self._username_state.name)
