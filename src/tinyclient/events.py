"""Room events produced by sync and the queue that buffers them."""

from dataclasses import dataclass
from enum import Enum
from typing import List


class EventKind(str, Enum):
    MESSAGE = "message"
    INVITATION = "invitation"


@dataclass(frozen=True)
class RoomEvent:
    """A message seen in a joined room, or a summary of a room invitation."""

    kind: EventKind
    room_id: str
    event_id: str = ""
    sender: str = ""
    room_name: str = ""
    room_topic: str = ""
    is_encrypted: bool = False
    message_type: str = ""
    message_body: str = ""


class PendingEventQueue:
    """Append-only buffer of events, emptied only by :meth:`drain`."""

    def __init__(self):
        self._events: List[RoomEvent] = []

    def __len__(self):
        return len(self._events)

    def append(self, event: RoomEvent) -> None:
        self._events.append(event)

    def drain(self) -> List[RoomEvent]:
        """Hand over every stored event in append order and reset the buffer."""
        events, self._events = self._events, []
        return events
