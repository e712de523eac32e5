"""Pytest fixtures for ApexLink tests."""

import io
import json
import os
import sys
import time
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from apexlink.client import ApexLinkClient
from apexlink.config import ApexLinkConfig
from apexlink.editor.files import FileEditor
from apexlink.notify import Notifier
from apexlink.scheduler import EditorQueue

FAKE_DAEMON_SOURCE = '''
import json
import os
import sys

log_path = os.environ.get("FAKE_DAEMON_LOG")


def log(entry):
    if log_path:
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\\n")


def emit(event):
    sys.stdout.write(json.dumps(event) + "\\n")
    sys.stdout.flush()


log({"argv": sys.argv[1:]})
sys.stderr.write("fake daemon starting\\n")
sys.stderr.flush()
emit({"event": "ready"})
emit({"event": "connected", "peer_id": "peer-self"})

for line in sys.stdin:
    command = json.loads(line)
    log(command)
    cmd = command.get("cmd")
    if cmd == "create":
        emit({"event": "room_created", "code": "ABCD1234"})
    elif cmd == "join":
        emit({
            "event": "room_joined",
            "code": command["code"],
            "peers": [{"id": "peer-2", "name": "bob", "color": "#ff0000"}],
        })
    elif cmd == "status":
        emit({"event": "status"})
    elif cmd == "buf_sync":
        emit({"event": "buf_changed", "path": command["path"], "content": "from\\npeer"})
    elif cmd == "send" and command.get("data") == "crash":
        sys.exit(3)
    elif cmd == "send" and command.get("data") == "create-then-crash":
        emit({"event": "room_created", "code": "CRASH123"})
        sys.exit(3)
'''


class RecordingPipe:
    """Stands in for the daemon's stdin, recording written commands."""

    def __init__(self) -> None:
        self.data = bytearray()
        self.closed = False

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("write to closed pipe")
        self.data.extend(data)
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    def commands(self, cmd: str | None = None) -> list[dict[str, Any]]:
        """Decode the written commands, optionally filtered by name."""
        decoded = [json.loads(line) for line in self.data.decode("utf-8").splitlines()]
        if cmd is None:
            return decoded
        return [c for c in decoded if c["cmd"] == cmd]


def _pump(editor_queue: EditorQueue, predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Run queued callbacks until predicate holds or the timeout passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        editor_queue.run_pending()
        if predicate():
            return True
        time.sleep(0.01)
    editor_queue.run_pending()
    return predicate()


def _read_log(path: Path) -> list[dict[str, Any]]:
    """Read the entries the fake daemon logged."""
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


@pytest.fixture
def console_output() -> io.StringIO:
    """Buffer receiving console output."""
    return io.StringIO()


@pytest.fixture
def notifier(console_output: io.StringIO) -> Notifier:
    """Notifier printing to console_output."""
    return Notifier(Console(file=console_output, width=200))


@pytest.fixture
def config() -> ApexLinkConfig:
    """Configuration with a fast sync interval."""
    return ApexLinkConfig(username="alice", color="#00ffff", sync_interval=50)


@pytest.fixture
def clipboard() -> list[str]:
    """Texts copied to the clipboard."""
    return []


@pytest.fixture
def host_messages() -> list[tuple[str, dict[str, Any]]]:
    """Structured notifications forwarded to the host UI."""
    return []


@pytest.fixture
def editor(
    clipboard: list[str], host_messages: list[tuple[str, dict[str, Any]]]
) -> FileEditor:
    """File-backed editor with a recording clipboard and host channel."""
    return FileEditor(
        clipboard=clipboard.append,
        host_channel=lambda name, payload: host_messages.append((name, payload)),
    )


@pytest.fixture
def client(config: ApexLinkConfig, editor: FileEditor, notifier: Notifier) -> ApexLinkClient:
    """Client with no daemon attached."""
    return ApexLinkClient(config, editor, notifier)


@pytest.fixture
def pipe() -> RecordingPipe:
    """Recording stand-in for the daemon's stdin."""
    return RecordingPipe()


@pytest.fixture
def connected_client(client: ApexLinkClient, pipe: RecordingPipe) -> ApexLinkClient:
    """Client whose transport writes into a RecordingPipe."""
    client.transport.connect(pipe)
    return client


@pytest.fixture
def room_client(connected_client: ApexLinkClient) -> ApexLinkClient:
    """Connected client that is inside room ABCD1234."""
    connected_client.session.connected = True
    connected_client.session.enter_room("ABCD1234")
    return connected_client


@pytest.fixture
def sample_file(tmp_path: Path) -> Path:
    """A small text file to open in buffers."""
    path = tmp_path / "a.txt"
    path.write_text("hello\nworld\n", encoding="utf-8")
    return path


@pytest.fixture
def fake_daemon(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Executable fake daemon speaking the line protocol.

    Received commands are logged to tmp_path/daemon.log.
    """
    script = tmp_path / "apexlink-daemon"
    script.write_text(f"#!{sys.executable}\n{FAKE_DAEMON_SOURCE}", encoding="utf-8")
    script.chmod(0o755)
    monkeypatch.setenv("FAKE_DAEMON_LOG", str(tmp_path / "daemon.log"))
    return script


@pytest.fixture
def daemon_log(tmp_path: Path) -> Path:
    """Where the fake daemon logs received commands."""
    return tmp_path / "daemon.log"


@pytest.fixture
def daemon_client(
    fake_daemon: Path,
    editor: FileEditor,
    notifier: Notifier,
) -> Iterator[ApexLinkClient]:
    """Client configured to launch the fake daemon; shut down after the test."""
    cfg = ApexLinkConfig(username="alice", sync_interval=50, daemon_path=fake_daemon)
    client = ApexLinkClient(cfg, editor, notifier)
    yield client
    client.shutdown()


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME and the config lookup at a temporary directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("APEXLINK_CONFIG", raising=False)
    monkeypatch.setenv("USER", os.environ.get("USER", "tester"))
    return home


@pytest.fixture
def pump() -> Callable[..., bool]:
    """Helper running a client's queue until a condition holds."""
    return _pump


@pytest.fixture
def logged_commands(daemon_log: Path) -> Callable[[], list[dict[str, Any]]]:
    """Helper returning the commands the fake daemon has received so far."""
    return lambda: [entry for entry in _read_log(daemon_log) if "cmd" in entry]
