"""Configuration loading: YAML config file, optional .env and environment overrides."""

import logging
import os
from dataclasses import dataclass

import yaml
from dotenv import load_dotenv

from .constants import (
    CONFIG_KEY_CLIENT,
    CONFIG_KEY_MATRIX,
    DEFAULT_ENV_FILENAME,
    DEFAULT_MAX_MESSAGE_LENGTH,
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_SYNC_TIMEOUT_MS,
    DEFAULT_WAIT_FOR_RESPONSE_MS,
    ENV_MATRIX_DEFAULT_HOST,
    ENV_MATRIX_PASSWORD,
    ENV_MATRIX_USER,
    FILE_ENCODING_UTF8,
    LOGGER_NAME,
)

logger = logging.getLogger(LOGGER_NAME)

# config key -> ClientSettings field
_CLIENT_KEYS = {
    "sync_timeout_ms": "sync_timeout_ms",
    "wait_for_response_ms": "wait_for_response_ms",
    "max_message_length": "max_message_length",
    "poll_interval_ms": "poll_interval_ms",
}


@dataclass
class ClientSettings:
    """Tunables of the transport and sync engine (milliseconds / bytes)."""

    sync_timeout_ms: int = DEFAULT_SYNC_TIMEOUT_MS
    wait_for_response_ms: int = DEFAULT_WAIT_FOR_RESPONSE_MS
    max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS


def _matrix_section(config) -> dict:
    if isinstance(config, dict) and isinstance(config.get(CONFIG_KEY_MATRIX), dict):
        return config[CONFIG_KEY_MATRIX]
    return {}


def load_config(config_file, log_loading=True):
    """
    Load and validate the client configuration from a YAML file.

    Requires ``matrix.user``; every value in the optional ``client`` section must
    be a non-negative integer.

    Parameters:
        config_file (str): Path to the YAML configuration file.
        log_loading (bool): Whether to log the "Loaded configuration" message.

    Returns:
        dict | None: Parsed configuration on success; None if the file cannot be
        read, is not valid YAML, or fails validation.
    """
    try:
        with open(config_file, "r", encoding=FILE_ENCODING_UTF8) as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        logger.exception(f"Error loading config from {config_file}")
        return None

    if not isinstance(config, dict):
        logger.error(f"Configuration in {config_file} must be a mapping")
        return None

    if not _matrix_section(config).get("user"):
        logger.error(f"Missing required configuration: matrix.user in {config_file}")
        return None

    client_section = config.get(CONFIG_KEY_CLIENT) or {}
    if not isinstance(client_section, dict):
        logger.error("'client' must be a mapping in config")
        return None
    for key, value in client_section.items():
        if key not in _CLIENT_KEYS:
            logger.warning(f"Ignoring unknown client setting: {key}")
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            logger.error(f"client.{key} must be a non-negative integer")
            return None

    if log_loading:
        logger.info(f"Loaded configuration from {config_file}")
    return config


def load_environment(config: dict, config_path: str):
    """
    Merge credentials from a ``.env`` file and the process environment into the
    config's ``matrix`` section.

    A ``.env`` next to ``config_path`` is preferred over one in the current working
    directory. ``MATRIX_USER``, ``MATRIX_PASSWORD`` and ``MATRIX_DEFAULT_HOST``
    take precedence over the file values.

    Returns:
        dict: The (mutated) ``matrix`` section.
    """
    env_paths_to_check = [
        os.path.join(os.path.dirname(config_path), DEFAULT_ENV_FILENAME),
        os.path.join(os.getcwd(), DEFAULT_ENV_FILENAME),
    ]
    for env_path in env_paths_to_check:
        if os.path.exists(env_path):
            load_dotenv(env_path)
            logger.debug(f"Loading environment variables from {env_path}")
            break
    else:
        logger.debug("No .env file found; using process environment")

    matrix = config.setdefault(CONFIG_KEY_MATRIX, {})
    for env_name, key in (
        (ENV_MATRIX_USER, "user"),
        (ENV_MATRIX_PASSWORD, "password"),
        (ENV_MATRIX_DEFAULT_HOST, "default_host"),
    ):
        value = os.getenv(env_name)
        if value:
            matrix[key] = value
    return matrix


def settings_from_config(config) -> ClientSettings:
    """Build ClientSettings from the ``client`` section, defaulting missing values."""
    settings = ClientSettings()
    section = (config or {}).get(CONFIG_KEY_CLIENT) or {}
    for key, field in _CLIENT_KEYS.items():
        if key in section:
            setattr(settings, field, section[key])
    return settings


def default_host_for(config) -> str:
    """Fallback homeserver host: ``matrix.default_host`` or the user's server part."""
    matrix = _matrix_section(config)
    if matrix.get("default_host"):
        return matrix["default_host"]
    _, _, server = str(matrix.get("user", "")).partition(":")
    return server
