from typing import Any, Dict, Tuple

from chatguard.util import constants


class ChatLimits:
    """Helper exposing typed accessors for the anti-abuse limit set.

    Deployments differ in their constants (message length, cooldown, spam
    thresholds), so every value is read from the ``chat_limits`` mapping of the
    configuration and falls back to the defaults in
    :mod:`chatguard.util.constants`.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        """Return the underlying mapping."""
        return self.data

    @property
    def max_message_length(self) -> int | None:
        """Soft length limit; ``None`` when the deployment configures no limit."""
        if "max_message_length" in self.data and self.data["max_message_length"] is None:
            return None
        return int(self.data.get("max_message_length", constants.DEFAULT_MAX_MESSAGE_LENGTH))

    @property
    def virtex_length(self) -> int:
        return int(self.data.get("virtex_length", constants.DEFAULT_VIRTEX_LENGTH))

    @property
    def cooldown_seconds(self) -> float:
        return float(self.data.get("cooldown_seconds", constants.DEFAULT_COOLDOWN_SECONDS))

    @property
    def spam_threshold(self) -> int:
        return max(1, int(self.data.get("spam_threshold", constants.DEFAULT_SPAM_THRESHOLD)))

    @property
    def spam_penalty_seconds(self) -> float:
        return float(self.data.get("spam_penalty_seconds", constants.DEFAULT_SPAM_PENALTY_SECONDS))

    @property
    def username_min_length(self) -> int:
        return int(self.data.get("username_min_length", constants.DEFAULT_USERNAME_MIN_LENGTH))

    @property
    def username_max_length(self) -> int:
        return int(self.data.get("username_max_length", constants.DEFAULT_USERNAME_MAX_LENGTH))

    @property
    def max_username_changes(self) -> int:
        return int(self.data.get("max_username_changes", constants.DEFAULT_MAX_USERNAME_CHANGES))

    @property
    def notification_ttl_seconds(self) -> float:
        return float(self.data.get("notification_ttl_seconds", constants.DEFAULT_NOTIFICATION_TTL_SECONDS))

    @property
    def denylist(self) -> Tuple[str, ...]:
        """Profanity denylist.

        A non-list value falls back to the built-in list; blank and non-string
        entries are dropped.
        """
        profanity = self.data.get("profanity", {})
        terms = profanity.get("denylist") if isinstance(profanity, dict) else None
        if not isinstance(terms, list):
            return constants.DEFAULT_DENYLIST
        return tuple(term for term in terms if isinstance(term, str) and term.strip())
