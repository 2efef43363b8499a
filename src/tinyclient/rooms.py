"""Room actions: create, join, send, upload and read receipts."""

import itertools
from urllib.parse import quote

from . import envelope
from .constants.api import (
    ENDPOINT_CREATE_ROOM,
    ENDPOINT_JOIN,
    ENDPOINT_MEDIA_UPLOAD,
    ENDPOINT_ROOMS,
    METHOD_POST,
    METHOD_PUT,
)
from .constants.matrix import (
    EVENT_ROOM_MESSAGE,
    MSGTYPE_IMAGE,
    MSGTYPE_TEXT,
    PRESET_TRUSTED_PRIVATE_CHAT,
    RECEIPT_TYPE_READ,
)
from .constants.messages import ERROR_MASTER_NOT_SET
from .errors import CreateRoomFailed, ParseError, SendMessageFailed
from .log_utils import ClientLog
from .session import Clock, Session, TokenManager


def _segment(value: str) -> str:
    return quote(value, safe="")


class RoomActions:
    """Authenticated room operations. Each one validates the token first."""

    def __init__(
        self,
        session: Session,
        transport,
        tokens: TokenManager,
        clock: Clock,
        log: ClientLog,
    ):
        self.session = session
        self.transport = transport
        self.tokens = tokens
        self.clock = clock
        self.log = log
        self._txn_counter = itertools.count()

    def _room_url(self, room_id: str, *parts: str) -> str:
        path = "/".join([_segment(room_id), *parts])
        return f"{self.session.homeserver_url}{ENDPOINT_ROOMS}/{path}"

    def next_transaction_id(self) -> str:
        """Clock-derived id, unique within this client's lifetime."""
        return f"{self.clock()}.{next(self._txn_counter)}"

    async def create_room(self, user_id: str) -> str:
        """
        Create a direct-message room inviting ``user_id``.

        Returns:
            str: The new room id.

        Raises:
            CreateRoomFailed: If the response has no ``room_id``.
        """
        await self.tokens.ensure_valid_token()
        payload = envelope.dumps(
            {
                "invite": [user_id],
                "is_direct": True,
                "preset": PRESET_TRUSTED_PRIVATE_CHAT,
            }
        )
        response = await self.transport.request(
            self.session.homeserver_url + ENDPOINT_CREATE_ROOM, METHOD_POST, payload
        )
        try:
            doc = envelope.parse(response.body)
        except ParseError as e:
            raise CreateRoomFailed(
                f"createRoom response could not be decoded: {e}", body=response.body
            ) from e
        room_id = doc.get_str("room_id")
        if not room_id:
            raise CreateRoomFailed("No room_id found in response", body=response.body)
        self.log.debug(f"Room created: {room_id}")
        return room_id

    async def _send_content(self, room_id: str, content: dict) -> str:
        url = self._room_url(
            room_id, "send", EVENT_ROOM_MESSAGE, self.next_transaction_id()
        )
        response = await self.transport.request(
            url, METHOD_PUT, envelope.dumps(content)
        )
        try:
            doc = envelope.parse(response.body)
        except ParseError as e:
            raise SendMessageFailed(
                f"send response could not be decoded: {e}", body=response.body
            ) from e
        event_id = doc.get_str("event_id")
        if not event_id:
            raise SendMessageFailed("No event_id found in response", body=response.body)
        return event_id

    async def send_message_to_room(
        self, room_id: str, message: str, msg_type: str = MSGTYPE_TEXT
    ) -> str:
        """
        Send a message event.

        Returns:
            str: The event id assigned by the server.

        Raises:
            SendMessageFailed: If the response has no ``event_id``.
        """
        await self.tokens.ensure_valid_token()
        event_id = await self._send_content(
            room_id, {"msgtype": msg_type, "body": message}
        )
        self.log.info(f"Message sent to room: {room_id}")
        return event_id

    async def upload_media(self, file_name: str, content_type: str, data: bytes) -> str:
        """
        Upload raw bytes to the media repository.

        Returns:
            str: The ``mxc://`` content URI.

        Raises:
            SendMessageFailed: If the response has no ``content_uri``.
        """
        await self.tokens.ensure_valid_token()
        url = (
            f"{self.session.homeserver_url}{ENDPOINT_MEDIA_UPLOAD}"
            f"?filename={_segment(file_name)}"
        )
        response = await self.transport.request(
            url, METHOD_POST, data, content_type=content_type
        )
        self.log.debug(f"Media upload response: {response.body}")
        try:
            doc = envelope.parse(response.body)
        except ParseError as e:
            raise SendMessageFailed(
                f"upload response could not be decoded: {e}", body=response.body
            ) from e
        content_uri = doc.get_str("content_uri")
        if not content_uri:
            raise SendMessageFailed(
                "No content_uri found in response", body=response.body
            )
        return content_uri

    async def send_media_to_room(
        self, room_id: str, file_name: str, content_type: str, data: bytes
    ) -> str:
        """Upload ``data`` and post it to the room as an image message."""
        content_uri = await self.upload_media(file_name, content_type, data)
        self.log.debug(f"Media uploaded. URL: {content_uri}")
        await self.tokens.ensure_valid_token()
        event_id = await self._send_content(
            room_id, {"msgtype": MSGTYPE_IMAGE, "body": file_name, "url": content_uri}
        )
        self.log.debug(f"Media sent to room: {room_id}, {content_uri}")
        return event_id

    async def join_room(self, room_id: str) -> None:
        """Join a room. The response content is not inspected."""
        await self.tokens.ensure_valid_token()
        url = f"{self.session.homeserver_url}{ENDPOINT_JOIN}/{_segment(room_id)}"
        await self.transport.request(url, METHOD_POST, "")

    async def send_read_receipt(self, room_id: str, event_id: str) -> None:
        """Mark ``event_id`` as read. The response content is not inspected."""
        await self.tokens.ensure_valid_token()
        url = self._room_url(room_id, "receipt", RECEIPT_TYPE_READ, _segment(event_id))
        await self.transport.request(url, METHOD_POST, "")

    async def send_dm_to_master(self, message: str, msg_type: str = MSGTYPE_TEXT) -> str:
        """
        Send a direct message to the configured master user, creating the
        DM room on first use and reusing it afterwards.

        Raises:
            CreateRoomFailed: If no master user is set or the room cannot be created.
            SendMessageFailed: If the message is rejected.
        """
        if not self.session.master_user_id:
            raise CreateRoomFailed(ERROR_MASTER_NOT_SET)
        if not self.session.master_room_id:
            self.session.master_room_id = await self.create_room(
                self.session.master_user_id
            )
        return await self.send_message_to_room(
            self.session.master_room_id, message, msg_type
        )
