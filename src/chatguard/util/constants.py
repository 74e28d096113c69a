"""
Constants shared across chatguard: store paths, storage keys and the
default limit set used when the configuration file omits a value.
"""

# Logical paths at the AppendLog boundary
MESSAGES_PATH = "messages"
NOTIFICATIONS_PATH = "notifications"
CONNECTED_PATH = ".info/connected"
SERVER_TIME_OFFSET_PATH = ".info/serverTimeOffset"

# LocalKV keys holding the persisted username and its change counter
USERNAME_KEY = "chatUsername"
USERNAME_CHANGES_KEY = "chatUsernameChanges"

# Record field names as persisted by the store
FIELD_USERNAME = "username"
FIELD_TEXT = "text"
FIELD_TIMESTAMP = "timestamp"

DEFAULT_MAX_MESSAGE_LENGTH = 70
DEFAULT_VIRTEX_LENGTH = 3500
DEFAULT_COOLDOWN_SECONDS = 7.0
DEFAULT_SPAM_THRESHOLD = 3
DEFAULT_SPAM_PENALTY_SECONDS = 60.0
DEFAULT_USERNAME_MIN_LENGTH = 3
DEFAULT_USERNAME_MAX_LENGTH = 20
DEFAULT_MAX_USERNAME_CHANGES = 3
DEFAULT_NOTIFICATION_TTL_SECONDS = 5.0

DEFAULT_DENYLIST = (
    "fuck",
    "shit",
    "bitch",
    "bastard",
    "asshole",
    "cunt",
    "dick",
    "damn",
    "crap",
    "kys",
    "kill yourself",
)
