"""Session state and access-token lifecycle."""

import time
from dataclasses import dataclass
from typing import Callable, Optional

from . import envelope
from .constants.api import ENDPOINT_REFRESH, METHOD_POST
from .constants.matrix import TOKEN_REFRESH_MARGIN_MS
from .constants.messages import ERROR_NOT_AUTHENTICATED, MSG_LOGIN_AGAIN
from .errors import NotAuthenticated, ParseError, RefreshFailed
from .log_utils import ClientLog

Clock = Callable[[], int]


def monotonic_ms() -> int:
    """Default clock: milliseconds from :func:`time.monotonic`."""
    return int(time.monotonic() * 1000)


def wall_clock_ms() -> int:
    """Milliseconds since the epoch, for expiries that outlive the process."""
    return int(time.time() * 1000)


@dataclass
class Session:
    """Mutable per-client session. ``token_expiry_at`` of None means no expiry."""

    homeserver_url: str = ""
    access_token: str = ""
    refresh_token: str = ""
    token_expiry_at: Optional[int] = None
    sync_cursor: str = ""
    user_id: str = ""
    device_id: str = ""
    master_user_id: str = ""
    master_room_id: str = ""

    def __repr__(self):
        # Keep bearer tokens out of reprs and tracebacks
        return (
            f"Session(homeserver_url={self.homeserver_url!r}, user_id={self.user_id!r}, "
            f"authenticated={bool(self.access_token)}, "
            f"token_expiry_at={self.token_expiry_at!r}, sync_cursor={self.sync_cursor!r})"
        )


class TokenManager:
    """
    Keeps the session's access token valid.

    ``ensure_valid_token`` is called before every authenticated request and
    refreshes proactively once the clock is within ``TOKEN_REFRESH_MARGIN_MS``
    of the announced expiry.
    """

    def __init__(self, session: Session, transport, clock: Clock, log: ClientLog):
        self.session = session
        self.transport = transport
        self.clock = clock
        self.log = log

    def seed(
        self,
        access_token: str,
        refresh_token: str = "",
        expires_in_ms: Optional[int] = None,
    ) -> None:
        """Install a freshly issued token set (login)."""
        self.session.access_token = access_token
        self.session.refresh_token = refresh_token
        self.session.token_expiry_at = (
            self.clock() + expires_in_ms if expires_in_ms is not None else None
        )

    def needs_refresh(self) -> bool:
        expiry = self.session.token_expiry_at
        return expiry is not None and self.clock() >= expiry - TOKEN_REFRESH_MARGIN_MS

    async def ensure_valid_token(self) -> None:
        """
        Raises:
            NotAuthenticated: If there is no access token.
            RefreshFailed: If a due refresh did not succeed.
        """
        if not self.session.access_token:
            raise NotAuthenticated(ERROR_NOT_AUTHENTICATED)
        if self.needs_refresh():
            self.log.info("Access token expired, refreshing...")
            await self.refresh()

    async def refresh(self) -> None:
        """
        Exchange the refresh token for a new access token.

        The server may omit a new refresh token or ``expires_in_ms``, in which
        case the current value is kept. On any failure the existing token set
        is left untouched.

        Raises:
            RefreshFailed: If there is no refresh token, the response cannot be
                decoded, or it carries no ``access_token``.
        """
        if not self.session.refresh_token:
            raise RefreshFailed(f"No refresh token available. {MSG_LOGIN_AGAIN}")

        payload = envelope.dumps({"refresh_token": self.session.refresh_token})
        response = await self.transport.request(
            self.session.homeserver_url + ENDPOINT_REFRESH,
            METHOD_POST,
            payload,
            use_auth=False,
        )
        try:
            doc = envelope.parse(response.body)
        except ParseError as e:
            raise RefreshFailed(
                f"Refresh response could not be decoded: {e}", body=response.body
            ) from e

        if not doc.get_str("access_token"):
            raise RefreshFailed(
                f"No access token found in refresh response. {MSG_LOGIN_AGAIN}",
                body=response.body,
            )

        self.session.access_token = doc.get_str("access_token")
        self.log.debug(f"Got the access token: {self.session.access_token}")
        if doc.get_str("refresh_token"):
            self.session.refresh_token = doc.get_str("refresh_token")
            self.log.debug(f"Got the refresh token: {self.session.refresh_token}")
        if doc.has("expires_in_ms"):
            expires_in_ms = doc.get_int("expires_in_ms")
            self.session.token_expiry_at = self.clock() + expires_in_ms
            self.log.debug(
                f"Access token refreshed. New expiry in: {expires_in_ms} ms"
            )
        else:
            self.log.debug("Access token refreshed. Expiry unchanged")
