"""Scripted network doubles shared by the test suite."""

import asyncio
import json

HOMESERVER = "https://hs.example.org"


def http_response(body, status="200 OK", line_ending="\r\n"):
    """
    Build raw HTTP/1.1 response bytes.

    Parameters:
        body (str | dict | list): Response body; dicts and lists are JSON-encoded.
        status (str): Status code and reason phrase.
        line_ending (str): Line terminator used in the header block.

    Returns:
        bytes: Status line, a Content-Type header, a blank line and the body.
    """
    if not isinstance(body, str):
        body = json.dumps(body)
    head = line_ending.join(
        [f"HTTP/1.1 {status}", "Content-Type: application/json", "", ""]
    )
    return (head + body).encode("utf-8")


class FakeConnection:
    """
    Scripted in-memory Connection.

    Every ``connect`` starts a new exchange and takes the next queued response.
    A queued response is raw bytes, a list of byte chunks delivered one per
    read, or None for a server that never answers. Everything written during
    an exchange is recorded in ``requests``.
    """

    def __init__(self, *responses, connect_ok=True, eof_after_response=False):
        self.responses = list(responses)
        self.connect_ok = connect_ok
        self.eof_after_response = eof_after_response
        self.connects = []
        self.requests = []
        self.writes = []
        self.closes = 0
        self._chunks = []

    def queue(self, *responses):
        self.responses.extend(responses)

    async def connect(self, host, port):
        self.connects.append((host, port))
        if not self.connect_ok:
            return False
        self.requests.append(bytearray())
        response = self.responses.pop(0) if self.responses else None
        if response is None:
            self._chunks = []
        elif isinstance(response, (bytes, bytearray)):
            self._chunks = [bytes(response)]
        else:
            self._chunks = list(response)
        return True

    async def write(self, data):
        self.writes.append(bytes(data))
        self.requests[-1] += data

    async def read_available(self, timeout):
        if self._chunks:
            return self._chunks.pop(0)
        await asyncio.sleep(timeout)
        return b""

    def at_eof(self):
        return self.eof_after_response and not self._chunks

    async def close(self):
        self.closes += 1
        self._chunks = []

    def request_text(self, index=-1):
        return self.requests[index].decode("utf-8", errors="replace")

    def request_line(self, index=-1):
        return self.request_text(index).split("\r\n", 1)[0]

    def request_body(self, index=-1):
        return self.request_text(index).split("\r\n\r\n", 1)[1]

    def request_json(self, index=-1):
        return json.loads(self.request_body(index))


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now=1_000_000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


