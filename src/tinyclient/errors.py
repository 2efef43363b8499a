"""Exception taxonomy for the client.

Internal components raise these; the public :class:`~tinyclient.client.MatrixClient`
catches them, logs them and reports plain success or failure.
"""

from typing import Optional


class MatrixClientError(Exception):
    """Base class for all client errors.

    ``body`` holds the raw response body when the error was caused by a
    server response, for diagnostics.
    """

    def __init__(self, message: str = "", body: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.body = body


# Transport
class TransportError(MatrixClientError):
    """Raised when a request/response exchange could not be completed."""


class InvalidUrl(TransportError):
    """Raised when a URL is not of the form ``scheme://host/path``."""


class ConnectionFailed(TransportError):
    """Raised when the connection to the host cannot be established."""


class NoResponse(TransportError):
    """Raised when no response bytes arrived before the read deadline."""


# Envelope
class ParseError(MatrixClientError):
    """Raised when a response body is not a JSON object."""


# Session
class SessionError(MatrixClientError):
    """Base class for authentication and token failures."""


class NotAuthenticated(SessionError):
    """Raised when an authenticated call is attempted without an access token."""


class RefreshFailed(SessionError):
    """Raised when the access token could not be refreshed."""


class LoginFailed(SessionError):
    """Raised when password login did not yield an access token."""


# Room actions
class RoomActionError(MatrixClientError):
    """Base class for room action failures."""


class CreateRoomFailed(RoomActionError):
    """Raised when the createRoom response lacks a ``room_id``."""


class SendMessageFailed(RoomActionError):
    """Raised when a send or upload response lacks the expected field."""
