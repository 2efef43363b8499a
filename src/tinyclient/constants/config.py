"""Constants for configuration files, paths and environment variables."""

from pathlib import Path

from .app import APP_NAME

__all__ = [
    "CONFIG_DIR",
    "CONFIG_DIR_PERMISSIONS",
    "CONFIG_KEY_CLIENT",
    "CONFIG_KEY_LOGGING",
    "CONFIG_KEY_MATRIX",
    "CRED_KEY_ACCESS_TOKEN",
    "CRED_KEY_DEVICE_ID",
    "CRED_KEY_HOMESERVER",
    "CRED_KEY_REFRESH_TOKEN",
    "CRED_KEY_SYNC_CURSOR",
    "CRED_KEY_TOKEN_EXPIRES_AT",
    "CRED_KEY_USER_ID",
    "CREDENTIALS_FILE",
    "CREDENTIALS_FILE_PERMISSIONS",
    "DEFAULT_CONFIG_FILENAME",
    "DEFAULT_ENV_FILENAME",
    "DEVICE_ID_FILE",
    "ENV_MATRIX_DEFAULT_HOST",
    "ENV_MATRIX_PASSWORD",
    "ENV_MATRIX_USER",
    "SAMPLE_CONFIG_FILENAME",
]

# Configuration paths
CONFIG_DIR = Path.home() / ".config" / APP_NAME
CREDENTIALS_FILE = CONFIG_DIR / "credentials.json"
DEVICE_ID_FILE = CONFIG_DIR / "device_id"
DEFAULT_CONFIG_FILENAME = "config.yaml"
DEFAULT_ENV_FILENAME = ".env"
SAMPLE_CONFIG_FILENAME = "sample_config.yaml"

# File permissions
CONFIG_DIR_PERMISSIONS = 0o700
CREDENTIALS_FILE_PERMISSIONS = 0o600

# Configuration sections
CONFIG_KEY_MATRIX = "matrix"
CONFIG_KEY_CLIENT = "client"
CONFIG_KEY_LOGGING = "logging"

# Environment variable names
ENV_MATRIX_USER = "MATRIX_USER"
ENV_MATRIX_PASSWORD = "MATRIX_PASSWORD"  # nosec B105  # noqa: S105
ENV_MATRIX_DEFAULT_HOST = "MATRIX_DEFAULT_HOST"

# Credential keys
CRED_KEY_HOMESERVER = "homeserver"
CRED_KEY_USER_ID = "user_id"
CRED_KEY_ACCESS_TOKEN = "access_token"  # nosec B105  # noqa: S105
CRED_KEY_REFRESH_TOKEN = "refresh_token"  # nosec B105  # noqa: S105
CRED_KEY_DEVICE_ID = "device_id"
CRED_KEY_SYNC_CURSOR = "sync_cursor"
# Wall-clock epoch milliseconds; None when the token does not expire
CRED_KEY_TOKEN_EXPIRES_AT = "token_expires_at"  # nosec B105  # noqa: S105
