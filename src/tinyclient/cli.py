#!/usr/bin/env python3
"""Command-line interface for TinyClient."""

import argparse
import asyncio
import getpass
import logging
import os
import sys
from typing import Awaitable, Optional, TypeVar

from . import __version__
from .auth import load_credentials, save_credentials
from .client import MatrixClient
from .config import (
    default_host_for,
    load_config,
    load_environment,
    settings_from_config,
)
from .constants import (
    CLI_DESCRIPTION,
    CONFIG_DIR,
    CONFIG_KEY_LOGGING,
    DEFAULT_CONFIG_FILENAME,
    EXECUTABLE_NAME,
    ERROR_NO_PASSWORD,
    LOG_LEVELS,
    LOGGER_NAME,
    MSG_CONFIG_EXISTS,
    MSG_DELETE_EXISTING,
    MSG_GENERATED_CONFIG,
    SUCCESS_CONFIG_GENERATED,
)
from .events import EventKind, RoomEvent
from .log_utils import configure_logging, get_logger
from .tools import copy_sample_config_to

logger = logging.getLogger(LOGGER_NAME)

DEFAULT_POLL_DELAY_SEC = 1.0

T = TypeVar("T")


def run_async(coro: Awaitable[T]) -> T:
    """Run a coroutine to completion (tests patch this)."""
    return asyncio.run(coro)


def get_default_config_path():
    return CONFIG_DIR / DEFAULT_CONFIG_FILENAME


def generate_config(config_path) -> bool:
    """
    Create a sample configuration file at config_path from the bundled template.

    Returns:
        bool: True if a new config file was created; False if one already existed.
    """
    if os.path.exists(config_path):
        print(MSG_CONFIG_EXISTS)
        print(f"  {config_path}")
        print(MSG_DELETE_EXISTING)
        return False

    written = copy_sample_config_to(str(config_path))
    # Owner read/write only; the file may hold a password
    os.chmod(written, 0o600)

    print(MSG_GENERATED_CONFIG.format(written))
    print("Edit it with your Matrix account details, then run 'tinyclient auth login'.")
    print(SUCCESS_CONFIG_GENERATED)
    return True


def build_client(config: dict) -> MatrixClient:
    """Create a MatrixClient from a loaded configuration."""
    matrix = config.get("matrix") or {}
    client = MatrixClient.from_settings(
        settings_from_config(config),
        log_level=logger.getEffectiveLevel(),
        device_id=matrix.get("device_id"),
    )
    if matrix.get("master_user_id"):
        client.set_master_user_id(matrix["master_user_id"])
    return client


async def login_and_save(client: MatrixClient, config: dict) -> bool:
    """Log in with the configured password and persist the new session."""
    matrix = config.get("matrix") or {}
    password = matrix.get("password")
    if not password:
        logger.error(ERROR_NO_PASSWORD)
        return False
    ok = await client.login(matrix["user"], password, default_host_for(config))
    if ok:
        save_credentials(client.snapshot_credentials())
    return ok


async def ensure_session(client: MatrixClient, config: dict) -> bool:
    """Restore saved credentials for the configured user, or log in."""
    matrix = config.get("matrix") or {}
    creds = load_credentials()
    if creds and creds.access_token and creds.user_id == matrix.get("user"):
        logger.info(f"Resuming saved session for {creds.user_id}")
        client.restore_session(creds)
        return True
    return await login_and_save(client, config)


def describe_event(event: RoomEvent) -> str:
    room = event.room_name or event.room_id
    if event.kind == EventKind.INVITATION:
        return f"Invitation to {room} from {event.sender or 'unknown'}"
    return f"[{room}] {event.sender}: {event.message_body}"


async def run_client(
    config: dict,
    auto_join: bool = False,
    delay: float = DEFAULT_POLL_DELAY_SEC,
    max_polls: Optional[int] = None,
    client: Optional[MatrixClient] = None,
) -> int:
    """
    Poll the homeserver, logging every received event.

    Stops after ``max_polls`` polls when given. The session (tokens and sync
    cursor) is saved on the way out so the next run resumes where this one
    stopped.

    Returns:
        int: Process exit code.
    """
    client = client or build_client(config)
    if not await ensure_session(client, config):
        return 1

    polls = 0
    try:
        while max_polls is None or polls < max_polls:
            polls += 1
            if not await client.sync():
                logger.warning("Sync failed; retrying")
            for event in client.drain_events():
                logger.info(describe_event(event))
                if event.kind == EventKind.INVITATION and auto_join:
                    if await client.join_room(event.room_id):
                        logger.info(f"Joined {event.room_id}")
            if max_polls is None or polls < max_polls:
                await asyncio.sleep(delay)
    finally:
        save_credentials(client.snapshot_credentials())
        await client.close()
    return 0


async def send_to_master(config: dict, message: str, msg_type: str) -> int:
    client = build_client(config)
    try:
        if not await ensure_session(client, config):
            return 1
        ok = await client.send_dm_to_master(message, msg_type)
        save_credentials(client.snapshot_credentials())
        return 0 if ok else 1
    finally:
        await client.close()


def _load_or_exit(config_path: str) -> dict:
    config = load_config(config_path)
    if not config:
        # load_config already logs the specific error.
        logger.error("Tip: run 'tinyclient config generate' to create a starter file.")
        sys.exit(1)
    load_environment(config, config_path)
    return config


def build_parser() -> argparse.ArgumentParser:
    default_config_path = get_default_config_path()
    parser = argparse.ArgumentParser(
        prog=EXECUTABLE_NAME,
        description=CLI_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tinyclient config generate        # Generate a sample config file
  tinyclient auth login             # Log in and save credentials
  tinyclient run --auto-join        # Poll for events, joining invitations
  tinyclient send "hello"           # Message the configured master user
        """,
    )
    parser.add_argument(
        "--config",
        default=str(default_config_path),
        help=f"Path to config file (default: {default_config_path})",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=None,
        help="Override the log level from the config file",
    )
    parser.add_argument(
        "--version", action="version", version=f"TinyClient {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(dest="config_action")
    config_subparsers.add_parser("generate", help="Generate a sample config file")
    config_subparsers.add_parser("validate", help="Validate the configuration file")

    auth_parser = subparsers.add_parser("auth", help="Authentication management")
    auth_subparsers = auth_parser.add_subparsers(dest="auth_action")
    login_parser = auth_subparsers.add_parser(
        "login", help="Log in to Matrix and save credentials"
    )
    login_parser.add_argument(
        "--prompt",
        action="store_true",
        help="Prompt for the password instead of reading it from config/env",
    )
    auth_subparsers.add_parser("status", help="Show saved session details")

    run_parser = subparsers.add_parser("run", help="Poll for new events")
    run_parser.add_argument(
        "--auto-join", action="store_true", help="Join rooms on invitation"
    )
    run_parser.add_argument(
        "--delay",
        type=float,
        default=DEFAULT_POLL_DELAY_SEC,
        help="Seconds to wait between polls",
    )
    run_parser.add_argument(
        "--max-polls", type=int, default=None, help="Stop after this many polls"
    )

    send_parser = subparsers.add_parser("send", help="Message the master user")
    send_parser.add_argument("message", help="Message text")
    send_parser.add_argument("--msgtype", default="m.text", help="Message type")

    return parser


def setup_logging(config: Optional[dict], log_level: Optional[str]) -> None:
    """Configure the application logger from the config file and CLI override."""
    merged = dict(config or {})
    if log_level:
        merged[CONFIG_KEY_LOGGING] = {
            **(merged.get(CONFIG_KEY_LOGGING) or {}),
            "level": log_level,
        }
    configure_logging(merged)
    get_logger(LOGGER_NAME)


def main(argv=None):
    """
    Run the TinyClient command-line interface.

    With no subcommand, behaves like ``run``.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "config":
        setup_logging(None, args.log_level)
        if args.config_action == "generate":
            generate_config(args.config)
            return
        if args.config_action == "validate":
            config = _load_or_exit(args.config)
            matrix = config.get("matrix") or {}
            settings = settings_from_config(config)
            print("✓ Configuration file is valid")
            print(f"  Config file: {args.config}")
            print(f"  Matrix user: {matrix.get('user')}")
            print(f"  Default host: {default_host_for(config)}")
            print(f"  Password configured: {'✓' if matrix.get('password') else '✗'}")
            print(f"  Sync timeout: {settings.sync_timeout_ms} ms")
            return
        parser.parse_args(["config", "--help"])
        return

    if args.command == "auth" and args.auth_action == "status":
        setup_logging(None, args.log_level)
        creds = load_credentials()
        if creds:
            print("🔑 Authentication Status: ✓ Logged in")
            print(f"  User: {creds.user_id}")
            print(f"  Homeserver: {creds.homeserver}")
            print(f"  Device: {creds.device_id}")
            print(f"  Refresh token: {'✓' if creds.refresh_token else '✗'}")
            print(f"  Sync cursor: {creds.sync_cursor or '(none)'}")
        else:
            print("🔑 Authentication Status: ✗ Not logged in")
            print("  Run 'tinyclient auth login' to authenticate")
        return

    if not os.path.exists(args.config):
        setup_logging(None, args.log_level)
        logger.error(f"Config file not found: {args.config}")
        logger.info("Tip: run 'tinyclient config generate' to create a starter file.")
        sys.exit(1)

    config = _load_or_exit(args.config)
    setup_logging(config, args.log_level)

    if args.command == "auth":
        if args.auth_action != "login":
            parser.parse_args(["auth", "--help"])
            return
        if args.prompt:
            try:
                config["matrix"]["password"] = getpass.getpass("Matrix password: ")
            except (EOFError, KeyboardInterrupt):
                logger.info("Login cancelled.")
                sys.exit(1)
        client = build_client(config)
        ok = run_async(login_and_save(client, config))
        sys.exit(0 if ok else 1)

    if args.command == "send":
        sys.exit(run_async(send_to_master(config, args.message, args.msgtype)))

    auto_join = getattr(args, "auto_join", False)
    delay = getattr(args, "delay", DEFAULT_POLL_DELAY_SEC)
    max_polls = getattr(args, "max_polls", None)
    try:
        code = run_async(run_client(config, auto_join, delay, max_polls))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
