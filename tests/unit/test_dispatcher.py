"""Unit tests for command dispatch and the room state machine."""

import io
from typing import Any

import pytest

from apexlink.client import ApexLinkClient
from apexlink.daemon.supervisor import DaemonSupervisor
from apexlink.dispatcher import USAGE


@pytest.fixture
def daemon_up(monkeypatch: pytest.MonkeyPatch) -> None:
    """Report the daemon as running without spawning one."""
    monkeypatch.setattr(DaemonSupervisor, "is_running", property(lambda self: True))


class TestRoomCommands:
    """Tests for create, join, rejoin and leave."""

    def test_create(self, connected_client: ApexLinkClient, pipe: Any, daemon_up: None) -> None:
        """create should announce the display name and color."""
        connected_client.command(["create"])
        assert pipe.commands() == [{"cmd": "create", "name": "alice", "color": "#00ffff"}]

    def test_join_uppercases_code(
        self, connected_client: ApexLinkClient, pipe: Any, daemon_up: None
    ) -> None:
        """join should uppercase the room code."""
        connected_client.command(["join", "abcd1234"])
        assert pipe.commands() == [
            {"cmd": "join", "code": "ABCD1234", "name": "alice", "color": "#00ffff"}
        ]

    def test_join_prompts_for_code(
        self, connected_client: ApexLinkClient, pipe: Any, daemon_up: None
    ) -> None:
        """join without a code should prompt, then join with the answer."""
        editor = connected_client.editor
        connected_client.command(["join"])

        assert editor.pending_prompt == "Room code: "  # type: ignore[attr-defined]
        assert pipe.commands() == []

        editor.answer_prompt(" wxyz9876 ")  # type: ignore[attr-defined]
        assert pipe.commands("join")[0]["code"] == "WXYZ9876"

    def test_join_prompt_cancelled(
        self, connected_client: ApexLinkClient, pipe: Any, daemon_up: None
    ) -> None:
        """A cancelled or empty prompt should not join."""
        connected_client.command(["join"])
        connected_client.editor.answer_prompt(None)  # type: ignore[attr-defined]
        connected_client.command(["join"])
        connected_client.editor.answer_prompt("   ")  # type: ignore[attr-defined]
        assert pipe.commands() == []

    def test_leave(self, room_client: ApexLinkClient, pipe: Any) -> None:
        """leave should clear the room optimistically and keep the rejoin code."""
        room_client.timer.start()

        room_client.command(["leave"])

        assert pipe.commands() == [{"cmd": "leave"}]
        assert room_client.session.room_code is None
        assert room_client.session.last_room_code == "ABCD1234"
        assert not room_client.timer.is_active

    def test_leave_then_rejoin(
        self, room_client: ApexLinkClient, pipe: Any, daemon_up: None
    ) -> None:
        """rejoin after leave should join the last room."""
        room_client.command(["leave"])
        room_client.command(["rejoin"])

        assert pipe.commands("join") == [
            {"cmd": "join", "code": "ABCD1234", "name": "alice", "color": "#00ffff"}
        ]

    def test_rejoin_without_history(
        self, connected_client: ApexLinkClient, pipe: Any, console_output: io.StringIO
    ) -> None:
        """rejoin with no previous room should warn."""
        assert not connected_client.dispatcher.rejoin()
        assert "No previous room to rejoin" in console_output.getvalue()
        assert pipe.commands() == []

    def test_rejoin_while_in_room(
        self, room_client: ApexLinkClient, pipe: Any, console_output: io.StringIO
    ) -> None:
        """rejoin inside a room should warn."""
        assert not room_client.dispatcher.rejoin()
        assert "Already in a room" in console_output.getvalue()
        assert pipe.commands() == []


class TestDaemonCommands:
    """Tests for status, stop and send."""

    def test_status_not_running(
        self, connected_client: ApexLinkClient, pipe: Any, console_output: io.StringIO
    ) -> None:
        """status without a daemon should only report that."""
        connected_client.command(["status"])
        assert "Daemon not running" in console_output.getvalue()
        assert pipe.commands() == []

    def test_status_running(
        self, connected_client: ApexLinkClient, pipe: Any, daemon_up: None
    ) -> None:
        """status with a daemon should ask it."""
        connected_client.command(["status"])
        assert pipe.commands() == [{"cmd": "status"}]

    def test_stop_resets_session(self, room_client: ApexLinkClient) -> None:
        """stop should stop the timer and forget the room but not the rejoin code."""
        room_client.timer.start()

        room_client.command(["stop"])

        assert not room_client.timer.is_active
        assert not room_client.session.connected
        assert not room_client.session.in_room
        assert room_client.session.last_room_code == "ABCD1234"

    def test_send(self, connected_client: ApexLinkClient, pipe: Any) -> None:
        """send should broadcast arbitrary data."""
        assert connected_client.send({"cursor": [1, 2]})
        assert pipe.commands() == [{"cmd": "send", "data": {"cursor": [1, 2]}}]

    def test_create_without_daemon(
        self, client: ApexLinkClient, console_output: io.StringIO, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """create should report a missing daemon binary."""
        monkeypatch.setattr("apexlink.daemon.supervisor.daemon_candidates", lambda: [])
        monkeypatch.setattr("apexlink.daemon.supervisor.shutil.which", lambda name: None)

        assert not client.dispatcher.create()
        assert "Cannot find apexlink-daemon binary" in console_output.getvalue()


class TestExecute:
    """Tests for subaction routing."""

    @pytest.mark.parametrize("args", [[], ["bogus"]])
    def test_usage(
        self, client: ApexLinkClient, console_output: io.StringIO, args: list[str]
    ) -> None:
        """Unknown subactions should print usage."""
        client.command(args)
        assert USAGE in console_output.getvalue()

    def test_buffer_subactions(
        self, room_client: ApexLinkClient, sample_file: Any, pipe: Any,
        console_output: io.StringIO,
    ) -> None:
        """sync, buffers and unsync should route to the relay."""
        room_client.editor.open(sample_file)  # type: ignore[attr-defined]

        room_client.command(["sync"])
        room_client.command(["buffers"])
        room_client.command(["unsync"])

        assert "Syncing: a.txt" in console_output.getvalue()
        assert "Stopped syncing: a.txt" in console_output.getvalue()
        assert [c["cmd"] for c in pipe.commands()] == [
            "buf_open",
            "buf_set",
            "buf_sync",
            "buf_close",
        ]
