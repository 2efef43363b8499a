"""Application-level constants."""

__all__ = [
    "APP_NAME",
    "LOGGER_NAME",
    "EXECUTABLE_NAME",
    "FILE_ENCODING_UTF8",
    "USER_AGENT",
]

# Application constants
APP_NAME = "matrix-tinyclient"
LOGGER_NAME = "TinyClient"

EXECUTABLE_NAME = "tinyclient"

# File encoding
FILE_ENCODING_UTF8 = "utf-8"

# Sent on every request
USER_AGENT = "TinyClient"
