"""Tests for room actions."""

import pytest

from tinyclient.errors import CreateRoomFailed, NotAuthenticated, SendMessageFailed
from tinyclient.rooms import RoomActions

from tests.helpers import http_response


@pytest.fixture
def rooms(session, transport, tokens, clock, client_log):
    return RoomActions(session, transport, tokens, clock, client_log)


class TestCreateRoom:
    """Test direct-message room creation."""

    @pytest.mark.asyncio
    async def test_create_room(self, rooms, connection):
        connection.queue(http_response({"room_id": "!new:example.org"}))

        assert await rooms.create_room("@alice:example.org") == "!new:example.org"
        assert connection.request_line() == "POST /_matrix/client/v3/createRoom HTTP/1.1"
        assert connection.request_json() == {
            "invite": ["@alice:example.org"],
            "is_direct": True,
            "preset": "trusted_private_chat",
        }

    @pytest.mark.asyncio
    async def test_missing_room_id(self, rooms, connection):
        connection.queue(http_response({"errcode": "M_FORBIDDEN"}))
        with pytest.raises(CreateRoomFailed) as exc_info:
            await rooms.create_room("@alice:example.org")
        assert "M_FORBIDDEN" in exc_info.value.body


class TestSendMessage:
    """Test sending message events."""

    @pytest.mark.asyncio
    async def test_send_message(self, rooms, clock, connection):
        connection.queue(http_response({"event_id": "$sent"}))

        assert await rooms.send_message_to_room("!r:example.org", "hello") == "$sent"

        assert connection.request_line() == (
            f"PUT /_matrix/client/v3/rooms/%21r%3Aexample.org/send/m.room.message/"
            f"{clock.now}.0 HTTP/1.1"
        )
        assert connection.request_json() == {"msgtype": "m.text", "body": "hello"}

    @pytest.mark.asyncio
    async def test_missing_event_id(self, rooms, connection):
        connection.queue(http_response({}))
        with pytest.raises(SendMessageFailed):
            await rooms.send_message_to_room("!r:x", "hello")

    @pytest.mark.asyncio
    async def test_requires_token(self, rooms, session, connection):
        session.access_token = ""
        with pytest.raises(NotAuthenticated):
            await rooms.send_message_to_room("!r:x", "hello")
        assert connection.connects == []

    def test_transaction_ids_are_unique(self, rooms, clock):
        first = rooms.next_transaction_id()
        second = rooms.next_transaction_id()
        assert first != second
        assert first.startswith(f"{clock.now}.")


class TestMedia:
    """Test media upload and image messages."""

    @pytest.mark.asyncio
    async def test_upload(self, rooms, connection):
        connection.queue(http_response({"content_uri": "mxc://example.org/abc"}))

        uri = await rooms.upload_media("cat pic.png", "image/png", b"\x89PNG\r\n")

        assert uri == "mxc://example.org/abc"
        assert connection.request_line() == (
            "POST /_matrix/media/v3/upload?filename=cat%20pic.png HTTP/1.1"
        )
        text = connection.request_text()
        assert "Content-Type: image/png" in text
        assert "Content-Length: 6" in text
        assert connection.requests[-1].endswith(b"\r\n\r\n\x89PNG\r\n")

    @pytest.mark.asyncio
    async def test_upload_without_content_uri(self, rooms, connection):
        connection.queue(http_response({"errcode": "M_TOO_LARGE"}))
        with pytest.raises(SendMessageFailed):
            await rooms.upload_media("a.png", "image/png", b"x")

    @pytest.mark.asyncio
    async def test_send_media(self, rooms, connection):
        connection.queue(
            http_response({"content_uri": "mxc://example.org/abc"}),
            http_response({"event_id": "$img"}),
        )

        assert await rooms.send_media_to_room("!r:x", "a.png", "image/png", b"x") == "$img"
        assert connection.request_json() == {
            "msgtype": "m.image",
            "body": "a.png",
            "url": "mxc://example.org/abc",
        }


class TestJoinAndReceipts:
    """Test the calls whose responses are not inspected."""

    @pytest.mark.asyncio
    async def test_join(self, rooms, connection):
        connection.queue(http_response({"errcode": "M_FORBIDDEN"}))
        await rooms.join_room("!r:example.org")
        assert connection.request_line() == (
            "POST /_matrix/client/v3/join/%21r%3Aexample.org HTTP/1.1"
        )
        assert "Content-Length: 0" in connection.request_text()

    @pytest.mark.asyncio
    async def test_read_receipt(self, rooms, connection):
        connection.queue(http_response({}))
        await rooms.send_read_receipt("!r:x", "$ev/1")
        assert connection.request_line() == (
            "POST /_matrix/client/v3/rooms/%21r%3Ax/receipt/m.read/%24ev%2F1 HTTP/1.1"
        )


class TestDirectMessageToMaster:
    """Test the cached direct-message room."""

    @pytest.mark.asyncio
    async def test_requires_master(self, rooms, connection):
        with pytest.raises(CreateRoomFailed):
            await rooms.send_dm_to_master("hi")
        assert connection.connects == []

    @pytest.mark.asyncio
    async def test_room_created_once(self, rooms, session, connection):
        session.master_user_id = "@boss:example.org"
        connection.queue(
            http_response({"room_id": "!dm:x"}),
            http_response({"event_id": "$1"}),
            http_response({"event_id": "$2"}),
        )

        await rooms.send_dm_to_master("first")
        await rooms.send_dm_to_master("second")

        assert session.master_room_id == "!dm:x"
        assert len(connection.connects) == 3
        assert "/rooms/%21dm%3Ax/send/" in connection.request_line()
