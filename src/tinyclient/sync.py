"""
Long-poll sync engine.

Each ``sync()`` call is one poll: it is driven by the caller, never by an
internal loop. The response body is read in two independent passes:

1. ``extract_next_batch`` pulls the cursor out of the raw text with a regex,
   so the cursor still advances when the rest of the payload is malformed or
   was truncated by the response length cap.
2. A full JSON parse, from which room events are built. A failure here only
   means "no events this round".

The very first sync (empty cursor) only establishes the cursor; its payload
is the account's backlog and is never turned into events.
"""

import re
from typing import Iterator, Optional
from urllib.parse import quote

from . import envelope
from .constants.api import ENDPOINT_SYNC, METHOD_GET
from .constants.matrix import (
    EVENT_ROOM_ENCRYPTION,
    EVENT_ROOM_MEMBER,
    EVENT_ROOM_MESSAGE,
    EVENT_ROOM_NAME,
    EVENT_ROOM_TOPIC,
    MEMBERSHIP_INVITE,
)
from .envelope import Document
from .errors import ParseError
from .events import EventKind, PendingEventQueue, RoomEvent
from .log_utils import ClientLog
from .session import Session, TokenManager

NEXT_BATCH_PATTERN = re.compile(r'"next_batch"\s*:\s*"([^"]*)"')


def extract_next_batch(body: str) -> Optional[str]:
    """Return the ``next_batch`` value found in ``body``, or None if absent or empty."""
    match = NEXT_BATCH_PATTERN.search(body)
    if match and match.group(1):
        return match.group(1)
    return None


def _state_summary(events, room_name="", room_topic="", encrypted=False):
    """Fold name/topic/encryption state events over the given defaults, last wins."""
    for raw in events:
        if not isinstance(raw, dict):
            continue
        event = Document(raw)
        event_type = event.get_str("type")
        if event_type == EVENT_ROOM_NAME:
            room_name = event.get_str("content.name")
        elif event_type == EVENT_ROOM_TOPIC:
            room_topic = event.get_str("content.topic")
        elif event_type == EVENT_ROOM_ENCRYPTION:
            encrypted = True
    return room_name, room_topic, encrypted


def joined_room_events(room_id: str, room: Document) -> Iterator[RoomEvent]:
    """Yield a message event for every ``m.room.message`` in a joined room's timeline."""
    timeline = room.get_list("timeline.events")
    room_name, room_topic, encrypted = _state_summary(
        room.get_list("state.events") + timeline
    )
    # Explicit room-level fields win over state events
    room_name = room.get_str("name", room_name)
    room_topic = room.get_str("topic", room_topic)
    encrypted = encrypted or room.has("encrypted")

    for raw in timeline:
        if not isinstance(raw, dict):
            continue
        event = Document(raw)
        if event.get_str("type") != EVENT_ROOM_MESSAGE:
            continue
        yield RoomEvent(
            kind=EventKind.MESSAGE,
            room_id=room_id,
            event_id=event.get_str("event_id"),
            sender=event.get_str("sender"),
            room_name=room_name,
            room_topic=room_topic,
            is_encrypted=encrypted,
            message_type=event.get_str("content.msgtype"),
            message_body=event.get_str("content.body"),
        )


def invitation_event(room_id: str, room: Document) -> RoomEvent:
    """Summarize an invited room's stripped state as a single invitation event."""
    events = room.get_list("invite_state.events")
    room_name, room_topic, encrypted = _state_summary(events)
    event_id = sender = ""
    for raw in events:
        if not isinstance(raw, dict):
            continue
        event = Document(raw)
        if (
            event.get_str("type") == EVENT_ROOM_MEMBER
            and event.get_str("content.membership") == MEMBERSHIP_INVITE
        ):
            event_id = event.get_str("event_id")
            sender = event.get_str("sender")
    return RoomEvent(
        kind=EventKind.INVITATION,
        room_id=room_id,
        event_id=event_id,
        sender=sender,
        room_name=room_name,
        room_topic=room_topic,
        is_encrypted=encrypted,
    )


class SyncEngine:
    """Polls ``/sync`` and appends new room events to the pending queue."""

    def __init__(
        self,
        session: Session,
        transport,
        tokens: TokenManager,
        queue: PendingEventQueue,
        settings,
        log: ClientLog,
    ):
        self.session = session
        self.transport = transport
        self.tokens = tokens
        self.queue = queue
        self.settings = settings
        self.log = log

    @property
    def is_streaming(self) -> bool:
        return bool(self.session.sync_cursor)

    def set_cursor(self, cursor: str) -> None:
        """Resume from a previously saved cursor."""
        self.session.sync_cursor = cursor

    def build_sync_url(self) -> str:
        url = self.session.homeserver_url + ENDPOINT_SYNC
        if self.session.sync_cursor:
            url += "?since=" + quote(self.session.sync_cursor, safe="")
            if self.settings.sync_timeout_ms > 0:
                url += f"&timeout={self.settings.sync_timeout_ms}"
        return url

    async def sync(self) -> None:
        """
        Perform one sync round trip.

        Raises:
            NotAuthenticated, RefreshFailed: If no valid token is available.
            TransportError: If the round trip itself failed.

        A response body that is not valid JSON is logged and otherwise ignored.
        """
        await self.tokens.ensure_valid_token()

        was_initial = not self.session.sync_cursor
        response = await self.transport.request(self.build_sync_url(), METHOD_GET)

        next_batch = extract_next_batch(response.body)
        if next_batch is None:
            self.log.debug("Next batch not found - sync")
        else:
            self.session.sync_cursor = next_batch

        try:
            doc = envelope.parse(response.body)
        except ParseError as e:
            self.log.error(f"sync response could not be decoded: {e}")
            self.log.error(f"sync responseBody: {response.body}")
            return

        if was_initial:
            # The first snapshot is history, not news
            return

        self.process(doc)

    def process(self, doc: Document) -> int:
        """Queue events from a decoded sync payload; returns how many were queued."""
        before = len(self.queue)
        for room_id, room in doc.items(("rooms", "join")):
            for event in joined_room_events(room_id, room):
                self.queue.append(event)
        for room_id, room in doc.items(("rooms", "invite")):
            self.queue.append(invitation_event(room_id, room))
        queued = len(self.queue) - before
        if queued:
            self.log.debug(f"Queued {queued} new event(s)")
        return queued
