"""Tests for the CLI module."""

import asyncio
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml

from tinyclient import cli
from tinyclient.auth import Credentials
from tinyclient.events import EventKind, RoomEvent

from tests.helpers import HOMESERVER, http_response


def _consume_coroutine(coro):
    """
    Execute a coroutine to completion on a fresh event loop, or return the input unchanged.

    Mirrors asyncio.run for code paths that call ``cli.run_async``.
    """
    if asyncio.iscoroutine(coro):
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()
    return coro


@pytest.fixture
def config_file(tmp_path):
    """Write a minimal valid config file and return its path as a string."""
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "matrix": {
                    "user": "@bot:example.org",
                    "password": "pw",
                    "master_user_id": "@boss:example.org",
                },
                "client": {"sync_timeout_ms": 0},
            }
        )
    )
    return str(path)


@pytest.fixture
def config():
    return {"matrix": {"user": "@bot:example.org", "password": "pw"}}


def saved_creds(**overrides):
    values = {
        "homeserver": HOMESERVER,
        "user_id": "@bot:example.org",
        "access_token": "T0",
        "refresh_token": "R0",
        "device_id": "DEVICE0001",
        "sync_cursor": "s0",
    }
    values.update(overrides)
    return Credentials(**values)


class TestGenerateConfig:
    """Test config file generation."""

    def test_generate_config_success(self, tmp_path, capsys):
        config_path = tmp_path / "config.yaml"

        assert cli.generate_config(str(config_path)) is True

        assert config_path.exists()
        assert oct(config_path.stat().st_mode & 0o777) == oct(0o600)
        assert "Generated sample config file at:" in capsys.readouterr().out

    def test_generate_config_exists(self, tmp_path, capsys):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("existing config")

        assert cli.generate_config(str(config_path)) is False

        captured = capsys.readouterr()
        assert "A config file already exists at:" in captured.out
        assert str(config_path) in captured.out
        assert config_path.read_text() == "existing config"

    def test_get_default_config_path(self):
        path = cli.get_default_config_path()
        assert path.name == "config.yaml"
        assert "matrix-tinyclient" in str(path)


class TestDescribeEvent:
    """Test the one-line event summaries."""

    def test_message(self):
        event = RoomEvent(
            EventKind.MESSAGE, "!r:x", sender="@a:x", room_name="Lobby", message_body="hi"
        )
        assert cli.describe_event(event) == "[Lobby] @a:x: hi"

    def test_invitation(self):
        event = RoomEvent(EventKind.INVITATION, "!r:x")
        assert cli.describe_event(event) == "Invitation to !r:x from unknown"


class TestEnsureSession:
    """Test resuming or creating a session."""

    @pytest.mark.asyncio
    async def test_resumes_saved_session(self, client, config, connection):
        with patch.object(cli, "load_credentials", return_value=saved_creds()):
            assert await cli.ensure_session(client, config) is True
        assert client.session.access_token == "T0"
        assert client.session.sync_cursor == "s0"
        assert connection.connects == []

    @pytest.mark.asyncio
    async def test_other_user_logs_in(self, client, config, connection):
        connection.queue(
            http_response({"m.homeserver": {"base_url": HOMESERVER}}),
            http_response({"access_token": "T1"}),
        )
        with patch.object(
            cli, "load_credentials", return_value=saved_creds(user_id="@old:x")
        ):
            with patch.object(cli, "save_credentials") as mock_save:
                assert await cli.ensure_session(client, config) is True
        assert client.session.access_token == "T1"
        mock_save.assert_called_once()

    @pytest.mark.asyncio
    async def test_no_password(self, client, connection):
        with patch.object(cli, "load_credentials", return_value=None):
            assert await cli.ensure_session(client, {"matrix": {"user": "@b:x"}}) is False
        assert connection.connects == []


class TestRunClient:
    """Test the polling loop."""

    @pytest.mark.asyncio
    async def test_polls_joins_and_saves(self, client, config, connection):
        connection.queue(
            http_response(
                {
                    "next_batch": "s1",
                    "rooms": {"invite": {"!new:x": {"invite_state": {"events": []}}}},
                }
            ),
            http_response({}),
            http_response({"next_batch": "s2"}),
        )

        with patch.object(cli, "load_credentials", return_value=saved_creds()):
            with patch.object(cli, "save_credentials") as mock_save:
                code = await cli.run_client(
                    config, auto_join=True, delay=0, max_polls=2, client=client
                )

        assert code == 0
        assert connection.request_line(1) == (
            "POST /_matrix/client/v3/join/%21new%3Ax HTTP/1.1"
        )
        assert len(connection.connects) == 3
        saved = mock_save.call_args[0][0]
        assert saved.sync_cursor == "s2"
        assert saved.access_token == "T0"

    @pytest.mark.asyncio
    async def test_without_auto_join(self, client, config, connection):
        connection.queue(
            http_response(
                {
                    "next_batch": "s1",
                    "rooms": {"invite": {"!new:x": {"invite_state": {"events": []}}}},
                }
            )
        )
        with patch.object(cli, "load_credentials", return_value=saved_creds()):
            with patch.object(cli, "save_credentials"):
                await cli.run_client(config, delay=0, max_polls=1, client=client)
        assert len(connection.connects) == 1

    @pytest.mark.asyncio
    async def test_failed_session(self, client, connection):
        with patch.object(cli, "load_credentials", return_value=None):
            with patch.object(cli, "save_credentials") as mock_save:
                code = await cli.run_client(
                    {"matrix": {"user": "@b:x"}}, max_polls=1, client=client
                )
        assert code == 1
        mock_save.assert_not_called()


class TestSendToMaster:
    """Test the send command."""

    @pytest.mark.asyncio
    async def test_send(self, client, config, connection):
        client.set_master_user_id("@boss:x")
        connection.queue(
            http_response({"room_id": "!dm:x"}), http_response({"event_id": "$1"})
        )
        with patch.object(cli, "build_client", return_value=client):
            with patch.object(cli, "load_credentials", return_value=saved_creds()):
                with patch.object(cli, "save_credentials"):
                    assert await cli.send_to_master(config, "hello", "m.text") == 0
        assert connection.request_json() == {"msgtype": "m.text", "body": "hello"}


class TestMain:
    """Test argument handling in main()."""

    def test_version_flag(self):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--version"])
        assert exc_info.value.code == 0

    @patch.object(cli, "generate_config")
    def test_config_generate(self, mock_generate, tmp_path):
        target = str(tmp_path / "c.yaml")
        cli.main(["--config", target, "config", "generate"])
        mock_generate.assert_called_once_with(target)

    def test_config_validate(self, config_file, capsys):
        with patch.dict(os.environ, {}, clear=False):
            cli.main(["--config", config_file, "config", "validate"])
        out = capsys.readouterr().out
        assert "Configuration file is valid" in out
        assert "@bot:example.org" in out
        assert "Sync timeout: 0 ms" in out

    def test_config_validate_invalid(self, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("matrix: {}\n")
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", str(bad), "config", "validate"])
        assert exc_info.value.code == 1

    def test_auth_status_logged_in(self, capsys):
        with patch.object(cli, "load_credentials", return_value=saved_creds()):
            cli.main(["auth", "status"])
        out = capsys.readouterr().out
        assert "Logged in" in out
        assert "@bot:example.org" in out

    def test_auth_status_not_logged_in(self, capsys):
        with patch.object(cli, "load_credentials", return_value=None):
            cli.main(["auth", "status"])
        assert "Not logged in" in capsys.readouterr().out

    def test_missing_config_exits(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", str(tmp_path / "missing.yaml"), "run"])
        assert exc_info.value.code == 1

    @patch.object(cli, "run_async", side_effect=_consume_coroutine)
    @patch.object(cli, "login_and_save", new_callable=AsyncMock, return_value=True)
    def test_auth_login(self, mock_login, mock_run, config_file):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", config_file, "auth", "login"])
        assert exc_info.value.code == 0
        client, config = mock_login.call_args[0]
        assert config["matrix"]["user"] == "@bot:example.org"
        assert client.session.master_user_id == "@boss:example.org"

    @patch.object(cli, "run_async", side_effect=_consume_coroutine)
    @patch.object(cli, "login_and_save", new_callable=AsyncMock, return_value=True)
    @patch.object(cli.getpass, "getpass", return_value="typed")
    def test_auth_login_prompt(self, mock_getpass, mock_login, mock_run, config_file):
        with pytest.raises(SystemExit):
            cli.main(["--config", config_file, "auth", "login", "--prompt"])
        assert mock_login.call_args[0][1]["matrix"]["password"] == "typed"

    @patch.object(cli, "run_async", side_effect=_consume_coroutine)
    @patch.object(cli, "run_client", new_callable=AsyncMock, return_value=0)
    def test_run(self, mock_run_client, mock_run, config_file):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(
                ["--config", config_file, "run", "--auto-join", "--max-polls", "3"]
            )
        assert exc_info.value.code == 0
        _, auto_join, _, max_polls = mock_run_client.call_args[0]
        assert auto_join is True
        assert max_polls == 3

    @patch.object(cli, "run_async", side_effect=KeyboardInterrupt)
    def test_run_interrupted(self, mock_run, config_file):
        with patch.object(cli, "run_client", new=MagicMock()):
            with pytest.raises(SystemExit) as exc_info:
                cli.main(["--config", config_file])
        assert exc_info.value.code == 0

    @patch.object(cli, "run_async", side_effect=_consume_coroutine)
    @patch.object(cli, "send_to_master", new_callable=AsyncMock, return_value=1)
    def test_send(self, mock_send, mock_run, config_file):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", config_file, "send", "hi there"])
        assert exc_info.value.code == 1
        assert mock_send.call_args[0][1:] == ("hi there", "m.text")
