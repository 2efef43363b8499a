"""
Logging utilities for Matrix TinyClient.

Two layers live here:

- ``ClientLog``: the per-client log capability. Each ``MatrixClient`` holds
  one, wrapping an injected sink callable and a severity threshold, so the
  engine never touches process-wide logging state.
- ``get_logger`` / ``configure_logging``: application-side setup used by the
  CLI, giving rich console logging with timestamps and optional rotating
  file logging.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console
from rich.logging import RichHandler

from tinyclient.constants.app import LOGGER_NAME
from tinyclient.constants.logging import (
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_SIZE_MB,
    LOG_FILENAME,
    LOG_SIZE_BYTES_MULTIPLIER,
)

LogSink = Callable[[int, str], None]

# Initialize Rich console
console = Console()

# Global config variable that will be set from main
config = None


def default_log_sink(level: int, message: str) -> None:
    """Forward a client log record to the application's named logger."""
    logging.getLogger(LOGGER_NAME).log(level, message)


class ClientLog:
    """
    Severity-filtered log capability owned by a single client instance.

    Parameters:
        sink (LogSink | None): Callable taking ``(level, message)``; levels are the
            stdlib ``logging`` numbers (ERROR, INFO, DEBUG). Defaults to
            ``default_log_sink``.
        level (int): Records below this level are dropped before reaching the sink.
    """

    def __init__(self, sink: Optional[LogSink] = None, level: int = logging.INFO):
        self.sink = sink or default_log_sink
        self.level = level

    def set_level(self, level: int) -> None:
        self.level = level

    def log(self, level: int, message: str) -> None:
        if level < self.level:
            return
        self.sink(level, message)

    def error(self, message: str) -> None:
        self.log(logging.ERROR, message)

    def info(self, message: str) -> None:
        self.log(logging.INFO, message)

    def debug(self, message: str) -> None:
        self.log(logging.DEBUG, message)


def get_log_dir():
    """
    Return the default directory for application logs.

    This is the application's config directory with "logs" appended.

    Returns:
        pathlib.Path: Path to the logs directory (may not exist).
    """
    from tinyclient.auth import get_config_dir

    return get_config_dir() / "logs"


def get_logger(name):
    """
    Create and configure a logger with console output and optional file logging.

    The logger uses Rich for colorized console output with timestamps and supports
    optional rotating file logging.

    Parameters:
        name (str): The name of the logger to create.

    Returns:
        logging.Logger: The configured logger instance.
    """
    logger = logging.getLogger(name=name)

    # Default to INFO level
    log_level = logging.INFO
    color_enabled = True

    global config
    if config is not None and "logging" in config:
        if "level" in config["logging"]:
            try:
                log_level = getattr(logging, config["logging"]["level"].upper())
            except AttributeError:
                log_level = logging.INFO
        if "color_enabled" in config["logging"]:
            color_enabled = config["logging"]["color_enabled"]

    logger.setLevel(log_level)
    logger.propagate = False

    # Check if logger already has handlers to avoid duplicates
    if logger.handlers:
        return logger

    if color_enabled:
        console_handler = RichHandler(
            rich_tracebacks=True,
            console=console,
            show_time=True,
            show_level=True,
            show_path=False,
            markup=False,
            log_time_format="%Y-%m-%d %H:%M:%S",
            omit_repeated_times=False,
        )
        console_handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    else:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)s:%(name)s:%(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    logger.addHandler(console_handler)

    # File logging is opt-in unless the config asks for it
    log_to_file = False
    if config is not None:
        log_to_file = config.get("logging", {}).get("log_to_file", False)

    if log_to_file:
        if config.get("logging", {}).get("filename"):
            log_file = Path(config["logging"]["filename"])
        else:
            log_file = get_log_dir() / LOG_FILENAME

        log_file.parent.mkdir(parents=True, exist_ok=True)

        try:
            max_bytes = DEFAULT_LOG_SIZE_MB * LOG_SIZE_BYTES_MULTIPLIER
            backup_count = DEFAULT_LOG_BACKUP_COUNT

            # Accept MB (int/float) and bytes (str ending with 'B')
            val = config["logging"].get("max_log_size", None)
            if isinstance(val, (int, float)):
                max_bytes = int(val * LOG_SIZE_BYTES_MULTIPLIER)
            elif isinstance(val, str) and val.lower().endswith("b"):
                max_bytes = int(val[:-1])
            backup_count = config["logging"].get("backup_count", backup_count)

            file_handler = RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
            file_handler.setFormatter(
                logging.Formatter(
                    fmt="%(asctime)s %(levelname)s:%(name)s:%(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            logger.addHandler(file_handler)

        except (OSError, ValueError) as e:
            # If file logging fails, continue with console only
            console.print(
                f"[yellow]Warning: Could not create log file at {log_file}: {e}[/yellow]"
            )
            logging.getLogger(__name__).debug(
                "File logging setup failed", exc_info=True
            )

    return logger


def configure_logging(config_dict=None):
    """
    Set the module-wide logging configuration used by ``get_logger``.

    Parameters:
        config_dict (dict | None): Application configuration. Its ``"logging"``
            section may carry ``"level"``, ``"color_enabled"``, ``"log_to_file"``,
            ``"filename"``, ``"max_log_size"`` and ``"backup_count"``. None clears it.
    """
    global config
    config = config_dict
