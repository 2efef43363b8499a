"""
The public client.

``MatrixClient`` wires the session, transport, token manager, authenticator,
sync engine and room actions together and is the error boundary: every
public method reports plain success or failure (``bool`` or ``None``) and
logs the reason, attaching the raw response body when there is one.

Usage:
    client = MatrixClient(sync_timeout=5000)
    if await client.login("@bot:example.org", password, "example.org"):
        while True:
            await client.sync()
            for event in client.drain_events():
                ...
"""

import logging
from typing import List, Optional

from .auth import Authenticator, Credentials, load_or_create_device_id
from .config import ClientSettings
from .constants.matrix import (
    DEFAULT_MAX_MESSAGE_LENGTH,
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_SYNC_TIMEOUT_MS,
    DEFAULT_WAIT_FOR_RESPONSE_MS,
    MSGTYPE_TEXT,
)
from .errors import MatrixClientError
from .events import PendingEventQueue, RoomEvent
from .log_utils import ClientLog, LogSink
from .rooms import RoomActions
from .session import Clock, Session, TokenManager, monotonic_ms, wall_clock_ms
from .sync import SyncEngine
from .transport import Connection, TLSConnection, Transport


class MatrixClient:
    """
    Minimal Matrix client.

    Parameters:
        connection (Connection | None): Byte stream used for every request;
            defaults to a certifi-backed :class:`TLSConnection`.
        sync_timeout (int): Long-poll timeout sent to the server, in ms.
        wait_for_response (int): Extra grace on top of ``sync_timeout`` before a
            request is abandoned, in ms.
        max_message_length (int): Cap on buffered response body bytes.
        poll_interval (int): Read poll interval, in ms.
        log_sink (LogSink | None): Callable receiving ``(level, message)``.
        log_level (int): Minimum level forwarded to the sink.
        device_id (str | None): Stable device identifier; derived and persisted
            on first login when omitted.
        clock (Clock | None): Monotonic millisecond clock.
        wall_clock (Clock | None): Epoch millisecond clock, used only to carry
            the token expiry across saved sessions.
    """

    def __init__(
        self,
        connection: Optional[Connection] = None,
        sync_timeout: int = DEFAULT_SYNC_TIMEOUT_MS,
        wait_for_response: int = DEFAULT_WAIT_FOR_RESPONSE_MS,
        max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
        poll_interval: int = DEFAULT_POLL_INTERVAL_MS,
        log_sink: Optional[LogSink] = None,
        log_level: int = logging.INFO,
        device_id: Optional[str] = None,
        clock: Optional[Clock] = None,
        wall_clock: Optional[Clock] = None,
    ):
        self.settings = ClientSettings(
            sync_timeout_ms=sync_timeout,
            wait_for_response_ms=wait_for_response,
            max_message_length=max_message_length,
            poll_interval_ms=poll_interval,
        )
        self.log = ClientLog(log_sink, log_level)
        self.clock = clock or monotonic_ms
        self.wall_clock = wall_clock or wall_clock_ms
        self.session = Session()
        self.queue = PendingEventQueue()
        self._device_id = device_id

        self.transport = Transport(
            connection or TLSConnection(), self.session, self.settings, self.log
        )
        self.tokens = TokenManager(self.session, self.transport, self.clock, self.log)
        self.sync_engine = SyncEngine(
            self.session, self.transport, self.tokens, self.queue, self.settings, self.log
        )
        self.rooms = RoomActions(
            self.session, self.transport, self.tokens, self.clock, self.log
        )

    @classmethod
    def from_settings(cls, settings: ClientSettings, **kwargs) -> "MatrixClient":
        return cls(
            sync_timeout=settings.sync_timeout_ms,
            wait_for_response=settings.wait_for_response_ms,
            max_message_length=settings.max_message_length,
            poll_interval=settings.poll_interval_ms,
            **kwargs,
        )

    def __repr__(self):
        return f"MatrixClient({self.session!r})"

    def _fail(self, action: str, error: MatrixClientError) -> None:
        self.log.error(f"{action}: {type(error).__name__}: {error}")
        if error.body:
            self.log.error(f"responseBody: {error.body}")

    @property
    def device_id(self) -> str:
        if not self._device_id:
            self._device_id = load_or_create_device_id()
        return self._device_id

    # Configuration

    def set_log_level(self, level: int) -> None:
        self.log.set_level(level)

    def set_master_user_id(self, user_id: str) -> None:
        if user_id != self.session.master_user_id:
            self.session.master_room_id = ""
        self.session.master_user_id = user_id

    # Session

    async def login(self, user_id: str, password: str, default_server_host: str) -> bool:
        """Discover the homeserver, log in and seed the session."""
        authenticator = Authenticator(
            self.session, self.transport, self.tokens, self.log, self.device_id
        )
        try:
            await authenticator.login(user_id, password, default_server_host)
        except MatrixClientError as e:
            self._fail("Login failed", e)
            return False
        return True

    def restore_session(self, creds: Credentials) -> None:
        """
        Resume a persisted session.

        The saved wall-clock expiry is mapped onto this client's clock, so a
        token that lapsed while the process was down is refreshed before the
        first authenticated call.
        """
        self.session.homeserver_url = creds.homeserver.rstrip("/")
        self.session.user_id = creds.user_id
        self.session.access_token = creds.access_token
        self.session.refresh_token = creds.refresh_token
        if creds.token_expires_at is None:
            self.session.token_expiry_at = None
        else:
            remaining_ms = creds.token_expires_at - self.wall_clock()
            self.session.token_expiry_at = self.clock() + remaining_ms
        self.session.device_id = creds.device_id or ""
        self.sync_engine.set_cursor(creds.sync_cursor)
        if creds.device_id:
            self._device_id = creds.device_id

    def snapshot_credentials(self) -> Credentials:
        expires_at = None
        if self.session.token_expiry_at is not None:
            expires_at = self.wall_clock() + (
                self.session.token_expiry_at - self.clock()
            )
        return Credentials(
            homeserver=self.session.homeserver_url,
            user_id=self.session.user_id,
            access_token=self.session.access_token,
            refresh_token=self.session.refresh_token,
            device_id=self.session.device_id or None,
            sync_cursor=self.session.sync_cursor,
            token_expires_at=expires_at,
        )

    # Sync

    async def sync(self) -> bool:
        """
        Poll the server once.

        Returns True when the round trip completed, whether or not anything new
        arrived; inspect ``drain_events()`` for results.
        """
        try:
            await self.sync_engine.sync()
        except MatrixClientError as e:
            self._fail("Cannot sync", e)
            return False
        return True

    def drain_events(self) -> List[RoomEvent]:
        """Return every pending event exactly once and empty the queue."""
        return self.queue.drain()

    get_recent_events = drain_events

    # Rooms

    async def create_room(self, user_id: str) -> Optional[str]:
        try:
            return await self.rooms.create_room(user_id)
        except MatrixClientError as e:
            self._fail("Cannot create room", e)
            return None

    async def join_room(self, room_id: str) -> bool:
        try:
            await self.rooms.join_room(room_id)
        except MatrixClientError as e:
            self._fail("Cannot join room", e)
            return False
        return True

    async def send_read_receipt(self, room_id: str, event_id: str) -> bool:
        try:
            await self.rooms.send_read_receipt(room_id, event_id)
        except MatrixClientError as e:
            self._fail("Cannot send read receipt", e)
            return False
        return True

    async def send_message_to_room(
        self, room_id: str, message: str, msg_type: str = MSGTYPE_TEXT
    ) -> bool:
        try:
            await self.rooms.send_message_to_room(room_id, message, msg_type)
        except MatrixClientError as e:
            self._fail("Cannot send message", e)
            return False
        return True

    async def upload_media(
        self, file_name: str, content_type: str, data: bytes
    ) -> Optional[str]:
        try:
            return await self.rooms.upload_media(file_name, content_type, data)
        except MatrixClientError as e:
            self._fail("Media upload failed", e)
            return None

    async def send_media_to_room(
        self, room_id: str, file_name: str, content_type: str, data: bytes
    ) -> bool:
        try:
            await self.rooms.send_media_to_room(room_id, file_name, content_type, data)
        except MatrixClientError as e:
            self._fail("Cannot send media", e)
            return False
        return True

    async def send_dm_to_master(self, message: str, msg_type: str = MSGTYPE_TEXT) -> bool:
        try:
            await self.rooms.send_dm_to_master(message, msg_type)
        except MatrixClientError as e:
            self._fail("Cannot message master user", e)
            return False
        return True

    async def close(self) -> None:
        """Close the underlying connection if one is still open."""
        await self.transport.connection.close()
