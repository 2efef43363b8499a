"""Constants for logging configuration."""

__all__ = [
    "DEFAULT_LOG_BACKUP_COUNT",
    "DEFAULT_LOG_SIZE_MB",
    "LOG_FILENAME",
    "LOG_LEVELS",
    "LOG_SIZE_BYTES_MULTIPLIER",
]

# Default log settings
DEFAULT_LOG_SIZE_MB = 10
DEFAULT_LOG_BACKUP_COUNT = 5
LOG_SIZE_BYTES_MULTIPLIER = 1024 * 1024
LOG_FILENAME = "tinyclient.log"

# Log levels
LOG_LEVELS = ("critical", "error", "warning", "info", "debug")
