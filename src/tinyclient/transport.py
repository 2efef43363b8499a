"""
Minimal HTTP/1.1 request framing over an injected byte-stream connection.

Only what the Matrix client-server API needs is supported: one request per
connection, no redirects, no chunked transfer-encoding, no compression. The
end of a response is detected heuristically: once bytes have arrived, a full
poll interval without further bytes (or the peer closing) ends the read.
"""

import asyncio
import ssl
from typing import NamedTuple, Optional, Protocol, Tuple, Union

import certifi

from .constants.api import (
    CONTENT_TYPE_JSON,
    HTTP_VERSION,
    HTTPS_PORT,
    METHOD_GET,
    READ_CHUNK_SIZE,
    URL_SCHEME_SEPARATOR,
    WRITE_CHUNK_SIZE,
)
from .constants.app import FILE_ENCODING_UTF8, USER_AGENT
from .errors import ConnectionFailed, InvalidUrl, NoResponse
from .log_utils import ClientLog

CRLF = "\r\n"


class Connection(Protocol):
    """The secure byte stream the transport drives. One exchange per connect."""

    async def connect(self, host: str, port: int) -> bool: ...

    async def write(self, data: bytes) -> None: ...

    async def read_available(self, timeout: float) -> bytes:
        """Return bytes that arrive within ``timeout`` seconds, or ``b""``."""
        ...

    def at_eof(self) -> bool: ...

    async def close(self) -> None: ...


def create_ssl_context() -> ssl.SSLContext:
    """Return an SSLContext trusting certifi's CA bundle."""
    return ssl.create_default_context(cafile=certifi.where())


class TLSConnection:
    """Default :class:`Connection` built on asyncio streams."""

    def __init__(self, ssl_context: Optional[ssl.SSLContext] = None):
        self.ssl_context = ssl_context or create_ssl_context()
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    async def connect(self, host: str, port: int) -> bool:
        try:
            self._reader, self._writer = await asyncio.open_connection(
                host, port, ssl=self.ssl_context, server_hostname=host
            )
        except (OSError, ssl.SSLError, asyncio.TimeoutError):
            self._reader = self._writer = None
            return False
        return True

    async def write(self, data: bytes) -> None:
        if self._writer is None:
            raise ConnectionFailed("Write on a closed connection")
        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as e:
            raise ConnectionFailed(f"Connection dropped while writing: {e}") from e

    async def read_available(self, timeout: float) -> bytes:
        if self._reader is None:
            return b""
        try:
            return await asyncio.wait_for(self._reader.read(READ_CHUNK_SIZE), timeout)
        except asyncio.TimeoutError:
            return b""
        except OSError:
            # A reset peer ends the stream; at_eof() now reports True
            self._reader = None
            return b""

    def at_eof(self) -> bool:
        return self._reader is None or self._reader.at_eof()

    async def close(self) -> None:
        writer, self._reader, self._writer = self._writer, None, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except (OSError, ssl.SSLError):
            # TLS close_notify is often skipped by servers
            pass


class HTTPResponse(NamedTuple):
    headers: str
    body: str

    @property
    def status_code(self) -> int:
        """Status code from the status line, or 0 when it cannot be read."""
        parts = self.headers.split(" ", 2)
        if len(parts) < 2 or not parts[1][:3].isdigit():
            return 0
        return int(parts[1][:3])


def split_url(url: str) -> Tuple[str, str]:
    """
    Split an absolute ``scheme://host/path`` URL into ``(host, path)``.

    The scheme is ignored. ``path`` keeps its leading ``/`` and any query.

    Raises:
        InvalidUrl: If there is no ``://`` or no ``/`` after the host.
    """
    index = url.find(URL_SCHEME_SEPARATOR)
    if index == -1:
        raise InvalidUrl(f"Invalid URL: {url}")
    remainder = url[index + len(URL_SCHEME_SEPARATOR) :]
    index = remainder.find("/")
    if index == -1:
        raise InvalidUrl(f"Invalid URL: {url}")
    return remainder[:index], remainder[index:]


def extract_json_body(text: str) -> str:
    """Return ``text`` from its first ``{`` to its last ``}``, or unchanged."""
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and start < end:
        return text[start : end + 1]
    return text


class ResponseBuffer:
    """Incrementally splits response bytes into headers and a capped body."""

    def __init__(self, max_length: int):
        self.max_length = max_length
        self.headers = bytearray()
        self.body = bytearray()
        self.finished_headers = False
        self._line_is_blank = True

    def feed(self, data: bytes) -> None:
        if self.finished_headers:
            self._append_body(data)
            return
        for offset, byte in enumerate(data):
            if byte == 0x0A and self._line_is_blank:
                self.finished_headers = True
                self._append_body(data[offset + 1 :])
                return
            self.headers.append(byte)
            if byte == 0x0A:
                self._line_is_blank = True
            elif byte != 0x0D:
                self._line_is_blank = False

    def _append_body(self, data: bytes) -> None:
        room = self.max_length - len(self.body)
        if room > 0:
            self.body += data[:room]

    def result(self) -> HTTPResponse:
        headers = self.headers.decode(FILE_ENCODING_UTF8, errors="replace").rstrip()
        body = self.body.decode(FILE_ENCODING_UTF8, errors="replace")
        return HTTPResponse(headers, extract_json_body(body))


def parse_raw(raw: bytes, max_length: int) -> HTTPResponse:
    """Split a complete raw response into headers and an envelope-extracted body."""
    buffer = ResponseBuffer(max_length)
    buffer.feed(raw)
    return buffer.result()


class Transport:
    """
    Issues one framed request per connection and reads the response.

    Parameters:
        connection (Connection): Byte stream, reused sequentially across calls.
        session: Object exposing ``access_token`` for the Authorization header.
        settings: Object exposing ``sync_timeout_ms``, ``wait_for_response_ms``,
            ``max_message_length`` and ``poll_interval_ms``.
        log (ClientLog): Client log capability.
    """

    def __init__(self, connection: Connection, session, settings, log: ClientLog):
        self.connection = connection
        self.session = session
        self.settings = settings
        self.log = log

    def build_request_head(
        self,
        host: str,
        path: str,
        method: str,
        content_length: int,
        use_auth: bool,
        content_type: str = CONTENT_TYPE_JSON,
    ) -> bytes:
        lines = [
            f"{method} {path} {HTTP_VERSION}",
            f"Host: {host}",
            f"User-Agent: {USER_AGENT}",
            f"Content-Type: {content_type}",
        ]
        if use_auth:
            lines.append(f"Authorization: Bearer {self.session.access_token}")
        if method != METHOD_GET:
            lines.append(f"Content-Length: {content_length}")
        return (CRLF.join(lines) + CRLF + CRLF).encode(FILE_ENCODING_UTF8)

    async def request(
        self,
        url: str,
        method: str,
        body: Union[str, bytes] = "",
        use_auth: bool = True,
        content_type: str = CONTENT_TYPE_JSON,
    ) -> HTTPResponse:
        """
        Perform one request/response exchange.

        Raises:
            InvalidUrl: If ``url`` is malformed.
            ConnectionFailed: If the connection cannot be opened or drops
                mid-exchange.
            NoResponse: If nothing arrived before the read deadline.
        """
        host, path = split_url(url)
        payload = body.encode(FILE_ENCODING_UTF8) if isinstance(body, str) else body

        if not await self.connection.connect(host, HTTPS_PORT):
            raise ConnectionFailed(f"Connection to {host} failed")

        try:
            await self.connection.write(
                self.build_request_head(
                    host, path, method, len(payload), use_auth, content_type
                )
            )
            if method != METHOD_GET:
                for n in range(0, len(payload), WRITE_CHUNK_SIZE):
                    await self.connection.write(payload[n : n + WRITE_CHUNK_SIZE])
            response = await self.read_response()
        except OSError as e:
            # ssl.SSLError is an OSError too
            raise ConnectionFailed(f"Connection to {host} dropped: {e}") from e
        finally:
            await self.connection.close()

        self.log.debug(
            f"HTTP {method} request to {url} completed with response: {response.body}"
        )
        return response

    async def read_response(self) -> HTTPResponse:
        """Poll the connection until the response goes idle or the deadline passes."""
        loop = asyncio.get_running_loop()
        budget_ms = self.settings.sync_timeout_ms + self.settings.wait_for_response_ms
        deadline = loop.time() + budget_ms / 1000
        poll_interval = self.settings.poll_interval_ms / 1000
        buffer = ResponseBuffer(self.settings.max_message_length)
        received = False

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            chunk = await self.connection.read_available(min(poll_interval, remaining))
            if chunk:
                received = True
                buffer.feed(chunk)
                continue
            if received or self.connection.at_eof():
                break

        if not received:
            raise NoResponse(f"No response within {budget_ms} ms")
        return buffer.result()
