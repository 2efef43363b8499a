import logging
import sys
from pathlib import Path

import pytest

# Ensure src/ is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from tinyclient.client import MatrixClient  # noqa: E402
from tinyclient.config import ClientSettings  # noqa: E402
from tinyclient.log_utils import ClientLog  # noqa: E402
from tinyclient.session import Session, TokenManager  # noqa: E402
from tinyclient.transport import Transport  # noqa: E402

from tests.helpers import HOMESERVER, FakeClock, FakeConnection  # noqa: E402


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def wall_clock():
    """Epoch clock, far from the monotonic one so mix-ups show."""
    return FakeClock(now=1_700_000_000_000)


@pytest.fixture
def log_records():
    """Records ``(level, message)`` pairs emitted through the client log sink."""
    return []


@pytest.fixture
def client_log(log_records):
    return ClientLog(
        lambda level, message: log_records.append((level, message)), logging.DEBUG
    )


@pytest.fixture
def settings():
    """Fast settings: a 50 ms read budget polled every millisecond."""
    return ClientSettings(
        sync_timeout_ms=0,
        wait_for_response_ms=50,
        max_message_length=65536,
        poll_interval_ms=1,
    )


@pytest.fixture
def session():
    return Session(homeserver_url=HOMESERVER, access_token="T0")


@pytest.fixture
def transport(connection, session, settings, client_log):
    return Transport(connection, session, settings, client_log)


@pytest.fixture
def tokens(session, transport, clock, client_log):
    return TokenManager(session, transport, clock, client_log)


@pytest.fixture
def client(connection, clock, wall_clock, log_records):
    """A MatrixClient wired to the fake connection and clock, not logged in."""
    return MatrixClient(
        connection=connection,
        sync_timeout=0,
        wait_for_response=50,
        poll_interval=1,
        log_sink=lambda level, message: log_records.append((level, message)),
        log_level=logging.DEBUG,
        device_id="DEVICE0001",
        clock=clock,
        wall_clock=wall_clock,
    )


@pytest.fixture
def logged_in_client(client):
    """A client with a non-expiring session on HOMESERVER and a streaming cursor."""
    client.session.homeserver_url = HOMESERVER
    client.session.user_id = "@bot:example.org"
    client.session.access_token = "T0"
    client.session.refresh_token = "R0"
    client.session.token_expiry_at = None
    client.session.sync_cursor = "s0"
    return client
