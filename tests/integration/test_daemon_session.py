"""Integration tests running the client against a fake daemon process."""

import io
from collections.abc import Callable
from pathlib import Path
from typing import Any

from apexlink.client import ApexLinkClient

LoggedCommands = Callable[[], list[dict[str, Any]]]


def _create_room(client: ApexLinkClient, pump: Callable[..., bool]) -> None:
    client.command(["create"])
    assert pump(client.queue, lambda: client.session.room_code == "ABCD1234")


class TestDaemonLifecycle:
    """Tests for starting and stopping the daemon."""

    def test_start_twice_single_process(
        self, daemon_client: ApexLinkClient, console_output: io.StringIO
    ) -> None:
        """A second start should keep the running process."""
        assert daemon_client.supervisor.start()
        pid = daemon_client.supervisor.pid

        assert daemon_client.supervisor.start()

        assert daemon_client.supervisor.pid == pid
        assert "Daemon already running" in console_output.getvalue()

    def test_command_line(
        self,
        daemon_client: ApexLinkClient,
        fake_daemon: Path,
        daemon_log: Path,
        pump: Callable[..., bool],
    ) -> None:
        """The daemon should run in nvim mode against the configured server."""
        daemon_client.supervisor.start()
        assert pump(
            daemon_client.queue,
            lambda: daemon_log.exists() and daemon_log.read_text(encoding="utf-8").endswith("\n"),
        )

        first = daemon_log.read_text(encoding="utf-8").splitlines()[0]
        assert first == '{"argv": ["nvim", "--server", "ws://localhost:8765"]}'

    def test_ready_connected_and_stderr(
        self,
        daemon_client: ApexLinkClient,
        console_output: io.StringIO,
        pump: Callable[..., bool],
    ) -> None:
        """Startup events and stderr lines should be delivered."""
        daemon_client.supervisor.start()

        assert pump(daemon_client.queue, lambda: daemon_client.session.connected)
        assert pump(
            daemon_client.queue,
            lambda: "fake daemon starting" in console_output.getvalue(),
        )
        assert "Daemon ready" in console_output.getvalue()

    def test_stop(
        self,
        daemon_client: ApexLinkClient,
        console_output: io.StringIO,
        pump: Callable[..., bool],
    ) -> None:
        """stop should end the process without reporting an unexpected exit."""
        daemon_client.supervisor.start()

        assert daemon_client.supervisor.stop()
        assert not daemon_client.supervisor.is_running
        assert not daemon_client.supervisor.stop()

        pump(daemon_client.queue, lambda: False, timeout=0.5)
        assert "Daemon stopped" in console_output.getvalue()
        assert "exited with code" not in console_output.getvalue()

    def test_unexpected_exit(
        self,
        daemon_client: ApexLinkClient,
        console_output: io.StringIO,
        pump: Callable[..., bool],
    ) -> None:
        """A crash should reset the session but keep the rejoin code."""
        _create_room(daemon_client, pump)
        assert daemon_client.timer.is_active

        daemon_client.send("crash")

        assert pump(daemon_client.queue, lambda: not daemon_client.supervisor.is_running)
        assert "Daemon exited with code 3" in console_output.getvalue()
        assert not daemon_client.session.in_room
        assert not daemon_client.session.connected
        assert daemon_client.session.last_room_code == "ABCD1234"
        assert not daemon_client.timer.is_active

    def test_events_before_crash_handled_before_reset(
        self, daemon_client: ApexLinkClient, pump: Callable[..., bool]
    ) -> None:
        """A room event written just before a crash should not outlive the reset."""
        daemon_client.supervisor.start()
        assert pump(daemon_client.queue, lambda: daemon_client.session.connected)

        daemon_client.send("create-then-crash")

        assert pump(daemon_client.queue, lambda: not daemon_client.supervisor.is_running)
        pump(daemon_client.queue, lambda: False, timeout=0.3)
        assert daemon_client.session.last_room_code == "CRASH123"
        assert not daemon_client.session.in_room
        assert not daemon_client.timer.is_active

    def test_stop_resets_session(
        self, daemon_client: ApexLinkClient, pump: Callable[..., bool]
    ) -> None:
        """Stopping the supervisor directly should leave the room and stop the timer."""
        _create_room(daemon_client, pump)

        assert daemon_client.supervisor.stop()
        pump(daemon_client.queue, lambda: False, timeout=0.3)

        assert not daemon_client.session.in_room
        assert not daemon_client.session.connected
        assert daemon_client.session.last_room_code == "ABCD1234"
        assert not daemon_client.timer.is_active

    def test_restart_after_exit(
        self, daemon_client: ApexLinkClient, pump: Callable[..., bool]
    ) -> None:
        """A new command after a crash should spawn a new daemon."""
        daemon_client.supervisor.start()
        first_pid = daemon_client.supervisor.pid
        daemon_client.send("crash")
        assert pump(daemon_client.queue, lambda: not daemon_client.supervisor.is_running)

        _create_room(daemon_client, pump)

        assert daemon_client.supervisor.pid != first_pid


class TestRoomFlow:
    """Tests for room commands against the daemon."""

    def test_create(
        self,
        daemon_client: ApexLinkClient,
        clipboard: list[str],
        logged_commands: LoggedCommands,
        pump: Callable[..., bool],
    ) -> None:
        """create should start the daemon and enter the reported room."""
        _create_room(daemon_client, pump)

        assert clipboard == ["ABCD1234"]
        assert daemon_client.timer.is_active
        assert logged_commands() == [{"cmd": "create", "name": "alice", "color": "#00ffff"}]

    def test_leave_and_rejoin(
        self,
        daemon_client: ApexLinkClient,
        logged_commands: LoggedCommands,
        pump: Callable[..., bool],
    ) -> None:
        """Leaving and rejoining should join the same room with its roster."""
        _create_room(daemon_client, pump)

        daemon_client.command(["leave"])
        assert not daemon_client.session.in_room

        daemon_client.command(["rejoin"])
        assert pump(daemon_client.queue, lambda: daemon_client.session.in_room)

        assert [p.id for p in daemon_client.session.peers] == ["peer-2"]
        assert [c["cmd"] for c in logged_commands()] == ["create", "leave", "join"]

    def test_status(
        self,
        daemon_client: ApexLinkClient,
        console_output: io.StringIO,
        pump: Callable[..., bool],
    ) -> None:
        """status should be answered with the local summary."""
        _create_room(daemon_client, pump)

        daemon_client.command(["status"])

        assert pump(
            daemon_client.queue,
            lambda: "Connected | Room: ABCD1234 | Peers: 0" in console_output.getvalue(),
        )


class TestBufferFlow:
    """Tests for buffer sync against the daemon."""

    def test_sync_applies_peer_content_without_echo(
        self,
        daemon_client: ApexLinkClient,
        sample_file: Path,
        console_output: io.StringIO,
        logged_commands: LoggedCommands,
        pump: Callable[..., bool],
    ) -> None:
        """Peer content sent in answer to buf_sync should not be echoed back."""
        _create_room(daemon_client, pump)
        handle = daemon_client.editor.open(sample_file)  # type: ignore[attr-defined]

        daemon_client.command(["sync"])
        assert pump(
            daemon_client.queue,
            lambda: daemon_client.editor.get_lines(handle) == ["from", "peer"],
        )

        daemon_client.command(["status"])
        assert pump(daemon_client.queue, lambda: "Peers: 0" in console_output.getvalue())

        cmds = [c["cmd"] for c in logged_commands()]
        assert cmds == ["create", "buf_open", "buf_set", "buf_sync", "status"]

    def test_local_edit_and_unsync(
        self,
        daemon_client: ApexLinkClient,
        sample_file: Path,
        logged_commands: LoggedCommands,
        pump: Callable[..., bool],
    ) -> None:
        """Local edits should be sent until the buffer is unsynced."""
        _create_room(daemon_client, pump)
        editor = daemon_client.editor
        handle = editor.open(sample_file)  # type: ignore[attr-defined]
        daemon_client.command(["sync"])
        assert pump(daemon_client.queue, lambda: editor.get_lines(handle) == ["from", "peer"])

        editor.edit(handle, ["mine"])  # type: ignore[attr-defined]
        daemon_client.command(["unsync"])
        editor.edit(handle, ["not sent"])  # type: ignore[attr-defined]
        daemon_client.command(["status"])
        assert pump(
            daemon_client.queue, lambda: logged_commands()[-1:] == [{"cmd": "status"}]
        )

        cmds = logged_commands()
        sets = [c for c in cmds if c["cmd"] == "buf_set"]
        assert sets[-1]["content"] == "mine"
        assert [c["cmd"] for c in cmds][-2:] == ["buf_close", "status"]
