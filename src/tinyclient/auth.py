"""Homeserver discovery, password login and credential persistence.

Persisted state lives in `~/.config/matrix-tinyclient/`: `credentials.json`
(the session snapshot written after login and on shutdown) and `device_id`
(created once, then reused so the server keeps seeing the same device).
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import envelope
from .constants import (
    CONFIG_DIR,
    CONFIG_DIR_PERMISSIONS,
    CRED_KEY_ACCESS_TOKEN,
    CRED_KEY_DEVICE_ID,
    CRED_KEY_HOMESERVER,
    CRED_KEY_REFRESH_TOKEN,
    CRED_KEY_SYNC_CURSOR,
    CRED_KEY_TOKEN_EXPIRES_AT,
    CRED_KEY_USER_ID,
    CREDENTIALS_FILE,
    CREDENTIALS_FILE_PERMISSIONS,
    DEVICE_ID_FILE,
    ENDPOINT_LOGIN,
    ENDPOINT_WELL_KNOWN,
    FILE_ENCODING_UTF8,
    LOGGER_NAME,
    LOGIN_TYPE_PASSWORD,
    MATRIX_DEVICE_NAME,
    METHOD_GET,
    METHOD_POST,
    MSG_SERVER_DISCOVERY_FAILED,
    URL_PREFIX_HTTPS,
    USER_IDENTIFIER_TYPE,
)
from .errors import LoginFailed, ParseError, TransportError
from .log_utils import ClientLog
from .session import Session, TokenManager

logger = logging.getLogger(LOGGER_NAME)


@dataclass
class Credentials:
    homeserver: str
    user_id: str
    access_token: str
    refresh_token: str = ""
    device_id: Optional[str] = None
    sync_cursor: str = ""
    token_expires_at: Optional[int] = None

    def to_dict(self) -> dict:
        """Return a JSON-serializable dict keyed by the credential key constants."""
        return {
            CRED_KEY_HOMESERVER: self.homeserver,
            CRED_KEY_USER_ID: self.user_id,
            CRED_KEY_ACCESS_TOKEN: self.access_token,
            CRED_KEY_REFRESH_TOKEN: self.refresh_token,
            CRED_KEY_DEVICE_ID: self.device_id,
            CRED_KEY_SYNC_CURSOR: self.sync_cursor,
            CRED_KEY_TOKEN_EXPIRES_AT: self.token_expires_at,
        }

    @staticmethod
    def from_dict(d: dict) -> "Credentials":
        """
        Create a Credentials instance from a dictionary.

        Missing string fields default to an empty string; device_id and
        token_expires_at may be None.
        """
        expires_at = d.get(CRED_KEY_TOKEN_EXPIRES_AT)
        if isinstance(expires_at, bool) or not isinstance(expires_at, int):
            expires_at = None
        return Credentials(
            homeserver=d.get(CRED_KEY_HOMESERVER, ""),
            user_id=d.get(CRED_KEY_USER_ID, ""),
            access_token=d.get(CRED_KEY_ACCESS_TOKEN, ""),
            refresh_token=d.get(CRED_KEY_REFRESH_TOKEN) or "",
            device_id=d.get(CRED_KEY_DEVICE_ID),
            sync_cursor=d.get(CRED_KEY_SYNC_CURSOR) or "",
            token_expires_at=expires_at,
        )


def get_config_dir() -> Path:
    """
    Ensure the application's configuration directory exists and return its Path.

    Attempts to restrict its permissions to CONFIG_DIR_PERMISSIONS; failure to do
    so is logged at debug level and otherwise ignored.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    try:
        os.chmod(CONFIG_DIR, CONFIG_DIR_PERMISSIONS)
    except OSError:
        logger.debug(
            f"Could not set config dir perms to {oct(CONFIG_DIR_PERMISSIONS)}",
            exc_info=True,
        )
    return CONFIG_DIR


def credentials_path() -> Path:
    """Return the credentials file path, creating the config directory if needed."""
    get_config_dir()
    return CREDENTIALS_FILE


def save_credentials(creds: Credentials) -> None:
    """
    Persist a Credentials object to the credentials file atomically.

    The JSON is written to a temporary file in the same directory, chmod'ed to
    CREDENTIALS_FILE_PERMISSIONS and moved into place. Errors are logged, not raised.
    """
    path = credentials_path()

    data = json.dumps(creds.to_dict(), indent=2)
    tmp = None
    tmp_name = None
    try:
        # Same directory so that os.replace is atomic
        tmp = tempfile.NamedTemporaryFile(
            "w", dir=str(path.parent), delete=False, encoding=FILE_ENCODING_UTF8
        )
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_name = tmp.name
    except OSError:
        logger.exception(f"Failed to write credentials to {path.parent}")
    finally:
        if tmp:
            try:
                tmp.close()
            except OSError as e:
                logger.debug(f"Failed to close temp file: {e}")

    if not tmp_name:
        logger.error("Failed to create temporary file for credentials.")
        if tmp:
            try:
                os.unlink(tmp.name)
            except OSError as e:
                logger.debug(f"Failed to clean up temp file: {e}")
        return

    try:
        os.chmod(tmp_name, CREDENTIALS_FILE_PERMISSIONS)
        os.replace(tmp_name, path)
        logger.info(f"Saved credentials to {path}")
    except OSError:
        logger.exception(f"Failed to save credentials to {path}")
        try:
            os.unlink(tmp_name)
        except OSError as e:
            logger.debug(f"Failed to clean up temp file: {e}")


def load_credentials() -> Optional[Credentials]:
    """
    Load persisted credentials, or None if the file is missing or unreadable.
    """
    path = credentials_path()
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding=FILE_ENCODING_UTF8)
        data = json.loads(text)
        return Credentials.from_dict(data)
    except (OSError, json.JSONDecodeError, AttributeError):
        logger.exception(f"Failed to read credentials from {path}")
        return None


def format_device_id(node: int) -> str:
    """Format a 48-bit hardware identifier as 12 upper-case hex digits."""
    return "%04X%08X" % ((node >> 32) & 0xFFFF, node & 0xFFFFFFFF)


def load_or_create_device_id() -> str:
    """
    Return the persisted device id, deriving and saving one on first use.

    The id is derived from :func:`uuid.getnode` so it is stable for the host.
    """
    path = get_config_dir() / DEVICE_ID_FILE.name
    try:
        existing = path.read_text(encoding=FILE_ENCODING_UTF8).strip()
        if existing:
            return existing
    except FileNotFoundError:
        pass
    except OSError:
        logger.debug(f"Could not read device id from {path}", exc_info=True)

    device_id = format_device_id(uuid.getnode())
    try:
        path.write_text(device_id, encoding=FILE_ENCODING_UTF8)
    except OSError:
        logger.warning(f"Could not persist device id to {path}", exc_info=True)
    return device_id


class Authenticator:
    """Resolves the homeserver for a user and performs password login."""

    def __init__(
        self,
        session: Session,
        transport,
        tokens: TokenManager,
        log: ClientLog,
        device_id: str,
    ):
        self.session = session
        self.transport = transport
        self.tokens = tokens
        self.log = log
        self.device_id = device_id

    async def discover(self, user_id: str) -> Optional[str]:
        """
        Look up ``m.homeserver.base_url`` via the well-known document of the
        user's server.

        Returns:
            str | None: The base URL without a trailing slash, or None when the
            user id has no server part or the lookup failed in any way.
        """
        _, sep, hostname = user_id.partition(":")
        if not sep or not hostname:
            self.log.error("Invalid Matrix ID")
            return None

        url = URL_PREFIX_HTTPS + hostname + ENDPOINT_WELL_KNOWN
        try:
            response = await self.transport.request(url, METHOD_GET, use_auth=False)
            doc = envelope.parse(response.body)
        except ParseError as e:
            self.log.error(f"Discovery response could not be decoded: {e}")
            self.log.error(f"responseBody: {e.body}")
            return None
        except TransportError as e:
            self.log.error(f"{MSG_SERVER_DISCOVERY_FAILED}: {e}")
            return None

        base_url = doc.get_str(("m.homeserver", "base_url"))
        if not base_url:
            self.log.error("No m.homeserver or base_url found in response")
            return None
        base_url = base_url.rstrip("/")
        self.log.debug(f"Discovered server URL: {base_url}")
        return base_url

    def build_login_payload(self, user_id: str, password: str) -> str:
        return envelope.dumps(
            {
                "type": LOGIN_TYPE_PASSWORD,
                "identifier": {"type": USER_IDENTIFIER_TYPE, "user": user_id},
                "password": password,
                "device_id": self.device_id,
                "initial_device_display_name": MATRIX_DEVICE_NAME,
                "refresh_token": True,
            }
        )

    async def login(self, user_id: str, password: str, fallback_host: str) -> None:
        """
        Discover the homeserver (falling back to ``https://<fallback_host>``),
        log in with a password and seed the session.

        Raises:
            LoginFailed: If the response cannot be decoded or has no access token.
            TransportError: If the login request itself could not be completed.
        """
        homeserver = await self.discover(user_id)
        if homeserver is None:
            homeserver = URL_PREFIX_HTTPS + fallback_host
            self.log.info(f"Using default server URL: {homeserver}")
        self.session.homeserver_url = homeserver

        response = await self.transport.request(
            homeserver + ENDPOINT_LOGIN,
            METHOD_POST,
            self.build_login_payload(user_id, password),
            use_auth=False,
        )
        try:
            doc = envelope.parse(response.body)
        except ParseError as e:
            raise LoginFailed(
                f"Login response could not be decoded: {e}", body=response.body
            ) from e

        access_token = doc.get_str("access_token")
        if not access_token:
            raise LoginFailed("No access token found in response", body=response.body)

        expires_in_ms = None
        if doc.has("expires_in_ms"):
            expires_in_ms = doc.get_int("expires_in_ms")
        self.tokens.seed(access_token, doc.get_str("refresh_token"), expires_in_ms)
        self.session.user_id = doc.get_str("user_id", user_id)
        self.session.device_id = doc.get_str("device_id", self.device_id)
        # A new login starts a new event stream
        self.session.sync_cursor = ""

        self.log.debug(f"Got the access token: {access_token}")
        if self.session.refresh_token:
            self.log.debug(f"Got the refresh token: {self.session.refresh_token}")
        if expires_in_ms is not None:
            self.log.debug(f"Access token expires in: {expires_in_ms} ms")
        self.log.info(f"Logged in to {homeserver} as {self.session.user_id}")
