"""Constants specific to the Matrix protocol and client."""

__all__ = [
    "DEFAULT_MAX_MESSAGE_LENGTH",
    "DEFAULT_POLL_INTERVAL_MS",
    "DEFAULT_SYNC_TIMEOUT_MS",
    "DEFAULT_WAIT_FOR_RESPONSE_MS",
    "EVENT_ROOM_ENCRYPTION",
    "EVENT_ROOM_MEMBER",
    "EVENT_ROOM_MESSAGE",
    "EVENT_ROOM_NAME",
    "EVENT_ROOM_TOPIC",
    "LOGIN_TYPE_PASSWORD",
    "MATRIX_DEVICE_NAME",
    "MEMBERSHIP_INVITE",
    "MSGTYPE_IMAGE",
    "MSGTYPE_TEXT",
    "PRESET_TRUSTED_PRIVATE_CHAT",
    "RECEIPT_TYPE_READ",
    "TOKEN_REFRESH_MARGIN_MS",
    "USER_IDENTIFIER_TYPE",
]

# Timeouts and limits (in milliseconds / bytes)
DEFAULT_SYNC_TIMEOUT_MS = 5000
DEFAULT_WAIT_FOR_RESPONSE_MS = 1000
DEFAULT_POLL_INTERVAL_MS = 50
DEFAULT_MAX_MESSAGE_LENGTH = 65536

# Refresh this long before the server-announced expiry
TOKEN_REFRESH_MARGIN_MS = 10000

# Login
LOGIN_TYPE_PASSWORD = "m.login.password"
USER_IDENTIFIER_TYPE = "m.id.user"
MATRIX_DEVICE_NAME = "tinyclient"

# Event types
EVENT_ROOM_MESSAGE = "m.room.message"
EVENT_ROOM_NAME = "m.room.name"
EVENT_ROOM_TOPIC = "m.room.topic"
EVENT_ROOM_ENCRYPTION = "m.room.encryption"
EVENT_ROOM_MEMBER = "m.room.member"
MEMBERSHIP_INVITE = "invite"

# Message types
MSGTYPE_TEXT = "m.text"
MSGTYPE_IMAGE = "m.image"

# Room creation / receipts
PRESET_TRUSTED_PRIVATE_CHAT = "trusted_private_chat"
RECEIPT_TYPE_READ = "m.read"
