"""Host-facing chat session wiring the moderation engine to its collaborators.

A UI shell creates one :class:`ChatSession` per client. The session owns the
local username (persisted in ``LocalKV``), keeps the projected message list
current through a store subscription, tracks connection status, queues
spam-report notifications that expire on their own, and probes the store on
demand.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Callable, Dict, List

from chatguard.configuration.app_configuration import app_config
from chatguard.configuration.chat_limits import ChatLimits
from chatguard.datatypes.message_datatypes import MessageID
from chatguard.datatypes.moderation_datatypes import (
    DisplayMessage,
    SubmitResult,
    UsernameState,
    ValidationResult,
)
from chatguard.datatypes.notification_datatypes import (
    ConnectionProbe,
    ConnectionStatus,
    Notification,
    NotificationType,
)
from chatguard.moderation.moderation_engine import ModerationEngine
from chatguard.store.interfaces import AppendLog, CancelHandle, Clock, LocalKV, StoreError, Unsubscribe
from chatguard.util.constants import (
    CONNECTED_PATH,
    MESSAGES_PATH,
    NOTIFICATIONS_PATH,
    SERVER_TIME_OFFSET_PATH,
    USERNAME_CHANGES_KEY,
    USERNAME_KEY,
)
from chatguard.util.logger import get_logger

logger = get_logger("chat_session")

MessagesListener = Callable[[List[DisplayMessage]], None]
NotificationsListener = Callable[[List[Notification]], None]
StatusListener = Callable[[ConnectionStatus], None]
ErrorListener = Callable[[Exception], None]


def load_username_state(kv: LocalKV, default_name: str, max_changes: int) -> UsernameState:
    """Build the local UsernameState from ``kv``, falling back to ``default_name``."""
    stored_name = kv.get(USERNAME_KEY)
    name = stored_name or default_name
    if name and not stored_name:
        kv.set(USERNAME_KEY, name)

    try:
        changes_used = int(kv.get(USERNAME_CHANGES_KEY) or 0)
    except ValueError:
        logger.warning("Ignoring corrupt username change counter")
        changes_used = 0
    changes_used = min(max(0, changes_used), max_changes)
    return UsernameState(name=name, changes_used=changes_used, max_changes=max_changes)


class ChatSession:
    """
    One client's view of the shared chat.

    Args:
        log: The realtime store.
        kv: Device-local storage for the username and its change counter.
        clock: Time source for cooldowns and notification expiry.
        default_username: Name used when ``kv`` holds none yet.
        limits: Deployment limits; defaults to the shared configuration.
        engine: Optional pre-built engine; built from the other arguments otherwise.
        on_messages: Called with the decorated message list after every snapshot.
        on_notifications: Called with the notification queue whenever it changes.
        on_status: Called when the connection status changes.
        on_error: Called with subscription errors.
    """

    def __init__(
        self,
        log: AppendLog,
        kv: LocalKV,
        clock: Clock,
        *,
        default_username: str = "",
        limits: ChatLimits | None = None,
        engine: ModerationEngine | None = None,
        on_messages: MessagesListener | None = None,
        on_notifications: NotificationsListener | None = None,
        on_status: StatusListener | None = None,
        on_error: ErrorListener | None = None,
    ) -> None:
        self._log = log
        self._kv = kv
        self._clock = clock
        limits = limits or (engine.limits if engine else app_config.chat_limits)
        if engine is None:
            username_state = load_username_state(kv, default_username, limits.max_username_changes)
            engine = ModerationEngine(log, clock, username_state, limits=limits)
        self._engine = engine
        self._limits = limits

        self._on_messages = on_messages
        self._on_notifications = on_notifications
        self._on_status = on_status
        self._on_error = on_error

        self._messages: List[DisplayMessage] = []
        self._notifications: List[Notification] = []
        self._expiry_handles: Dict[int, CancelHandle] = {}
        self._unsubscribers: List[Unsubscribe] = []
        self._active = False
        self._connection_status = ConnectionStatus.CONNECTING
        self.last_probe: ConnectionProbe | None = None
        self.last_error: Exception | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def engine(self) -> ModerationEngine:
        return self._engine

    @property
    def username(self) -> str:
        return self._engine.username_state.name

    @property
    def messages(self) -> List[DisplayMessage]:
        return list(self._messages)

    @property
    def notifications(self) -> List[Notification]:
        return list(self._notifications)

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._connection_status

    @property
    def active(self) -> bool:
        return self._active

    def cooldown_remaining(self) -> float:
        """Seconds until the local user may post again, re-derived on every call."""
        return self._engine.cooldown_remaining(self.username)

    def is_own_message(self, message: DisplayMessage) -> bool:
        return message.sender == self.username

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to the message log and the connection flag."""
        if self._active:
            logger.warning("Chat session already started")
            return
        self._active = True
        logger.info("Setting up store listeners")
        self._unsubscribers = [
            self._log.subscribe(MESSAGES_PATH, self._handle_messages, partial(self._handle_error, MESSAGES_PATH)),
            self._log.subscribe(CONNECTED_PATH, self._handle_connected, partial(self._handle_error, CONNECTED_PATH)),
        ]

    def stop(self) -> None:
        """Tear down subscriptions and pending notification timers.

        Snapshots delivered after this call are dropped. Queued notifications are
        discarded along with their expiry timers.
        """
        if not self._active:
            return
        self._active = False
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        for cancel in self._expiry_handles.values():
            cancel()
        self._expiry_handles.clear()
        if self._notifications:
            self._notifications.clear()
            self._publish_notifications()
        logger.info("Cleaned up store listeners")

    # ------------------------------------------------------------------
    # Store callbacks
    # ------------------------------------------------------------------

    def _handle_messages(self, raw_snapshot: Any) -> None:
        if not self._active:
            return
        self._messages = self._engine.on_remote_update(raw_snapshot)
        logger.debug("Messages updated: %d messages", len(self._messages))
        if self._on_messages:
            self._on_messages(self.messages)

    def _handle_connected(self, value: Any) -> None:
        if not self._active:
            return
        self._set_status(ConnectionStatus.CONNECTED if value else ConnectionStatus.DISCONNECTED)

    def _handle_error(self, path: str, error: Exception) -> None:
        if not self._active:
            return
        logger.error("Subscription error on %s: %s", path, error)
        self.last_error = error
        if self._on_error:
            self._on_error(error)

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._connection_status:
            return
        self._connection_status = status
        logger.info("Store connection status changed: %s", status)
        if self._on_status:
            self._on_status(status)

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    async def send(self, text: str) -> SubmitResult:
        """Post ``text`` as the session user.

        Raises:
            StoreError: The store refused the append.
        """
        return await self._engine.post(self.username, text)

    async def delete_message(self, message_id: MessageID) -> None:
        await self._engine.delete_message(message_id)

    async def clear_messages(self) -> None:
        await self._engine.clear_all_messages()

    async def report_virtex(self, message_id: MessageID, sender: str) -> Notification:
        """Delete a flooding message and broadcast a report about its sender.

        The deletion must succeed; a failed broadcast is logged and the
        notification is still queued locally.

        Raises:
            StoreError: The message could not be deleted.
        """
        await self._engine.delete_message(message_id)

        notification_id = int(self._clock.now() * 1000)
        while notification_id in self._expiry_handles:
            notification_id += 1
        notification = Notification(
            id=notification_id,
            type=NotificationType.VIRTEX,
            message=f"@{sender} has been reported for sending virtex. The message has been deleted.",
        )
        try:
            await self._log.append(NOTIFICATIONS_PATH, notification.to_payload())
        except StoreError as exc:
            logger.error("Error broadcasting virtex report for %s: %s", sender, exc)

        self._queue_notification(notification)
        logger.info("Reported %s for virtex, message %s deleted", sender, message_id)
        return notification

    def _queue_notification(self, notification: Notification) -> None:
        self._notifications.append(notification)
        ttl_ms = self._limits.notification_ttl_seconds * 1000
        self._expiry_handles[notification.id] = self._clock.after(ttl_ms, lambda: self._expire(notification))
        self._publish_notifications()

    def _expire(self, notification: Notification) -> None:
        self._expiry_handles.pop(notification.id, None)
        if notification in self._notifications:
            self._notifications.remove(notification)
            self._publish_notifications()

    def _publish_notifications(self) -> None:
        if self._on_notifications:
            self._on_notifications(self.notifications)

    # ------------------------------------------------------------------
    # Username
    # ------------------------------------------------------------------

    def change_username(self, new_name: str) -> ValidationResult:
        """Rename the local user, persisting the name and the change counter on success."""
        result = self._engine.change_username(new_name)
        if result.ok:
            self._persist_username()
        return result

    def reset_username_quota(self) -> None:
        self._engine.reset_username_quota()
        self._persist_username()

    def _persist_username(self) -> None:
        state = self._engine.username_state
        self._kv.set(USERNAME_KEY, state.name)
        self._kv.set(USERNAME_CHANGES_KEY, str(state.changes_used))

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    async def probe_connection(self) -> ConnectionProbe:
        """Read the server time offset once to test the store connection.

        Failures are reported in the returned probe rather than raised.
        """
        logger.info("Connection test initiated")
        self._set_status(ConnectionStatus.CONNECTING)
        tested_at = self._clock.now()
        try:
            offset = await self._log.read(SERVER_TIME_OFFSET_PATH)
        except StoreError as exc:
            logger.error("Connection test failed: %s", exc)
            probe = ConnectionProbe(ConnectionStatus.ERROR, tested_at, message=str(exc))
        else:
            if offset is None:
                logger.error("Connection test failed: No data returned")
                probe = ConnectionProbe(ConnectionStatus.ERROR, tested_at, message="No data returned from database")
            else:
                logger.info("Connection test successful")
                probe = ConnectionProbe(ConnectionStatus.CONNECTED, tested_at, server_time_offset=offset)

        self._set_status(ConnectionStatus.CONNECTED if probe.ok else ConnectionStatus.DISCONNECTED)
        self.last_probe = probe
        return probe
