"""Constants for log messages, errors, and CLI output."""

__all__ = [
    "CLI_DESCRIPTION",
    "ERROR_MASTER_NOT_SET",
    "ERROR_NO_PASSWORD",
    "ERROR_NOT_AUTHENTICATED",
    "MSG_CONFIG_EXISTS",
    "MSG_DELETE_EXISTING",
    "MSG_GENERATED_CONFIG",
    "MSG_LOGIN_AGAIN",
    "MSG_SERVER_DISCOVERY_FAILED",
    "SUCCESS_CONFIG_GENERATED",
]

# Error messages
ERROR_NOT_AUTHENTICATED = "No access token; log in first"  # nosec B105  # noqa: S105
ERROR_MASTER_NOT_SET = "Master user has not been set yet"
ERROR_NO_PASSWORD = (
    "No password configured. Set matrix.password in config.yaml or MATRIX_PASSWORD"
)

# Auth messages
MSG_SERVER_DISCOVERY_FAILED = "Server discovery failed; using default host"
MSG_LOGIN_AGAIN = "You should log in again!"

# CLI messages
CLI_DESCRIPTION = "Matrix TinyClient - poll a Matrix account and send messages"
MSG_CONFIG_EXISTS = "A config file already exists at:"
MSG_DELETE_EXISTING = "If you want to regenerate it, delete the existing file first."
MSG_GENERATED_CONFIG = "Generated sample config file at: {}"
SUCCESS_CONFIG_GENERATED = "Configuration file generated successfully"
