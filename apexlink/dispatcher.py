"""User actions mapped onto protocol commands and local state."""

import logging
from typing import Any

from apexlink.config import ApexLinkConfig
from apexlink.daemon.protocol import CreateRoom, JoinRoom, LeaveRoom, RequestStatus, SendData
from apexlink.daemon.supervisor import DaemonSupervisor
from apexlink.daemon.transport import ProtocolTransport
from apexlink.editor.base import EditorHost
from apexlink.notify import Notifier
from apexlink.session import Session
from apexlink.sync.relay import ChangeRelay
from apexlink.sync.timer import SyncTimer

logger = logging.getLogger(__name__)

SUBCOMMANDS = ("create", "join", "rejoin", "leave", "status", "stop", "sync", "unsync", "buffers")
USAGE = f"Usage: ApexLink <{'|'.join(SUBCOMMANDS)}>"


class CommandDispatcher:
    """State machine over create/join/rejoin/leave/status/stop and buffer sync."""

    def __init__(
        self,
        config: ApexLinkConfig,
        session: Session,
        editor: EditorHost,
        supervisor: DaemonSupervisor,
        transport: ProtocolTransport,
        relay: ChangeRelay,
        timer: SyncTimer,
        notifier: Notifier,
    ) -> None:
        self._config = config
        self._session = session
        self._editor = editor
        self._supervisor = supervisor
        self._transport = transport
        self._relay = relay
        self._timer = timer
        self._notifier = notifier

    def ensure_daemon(self) -> bool:
        """Start the daemon unless it is already running."""
        return self._supervisor.is_running or self._supervisor.start()

    def create(self) -> bool:
        """Create a new room."""
        if not self.ensure_daemon():
            return False
        return self._transport.send(
            CreateRoom(name=self._config.display_name(), color=self._config.color)
        )

    def join(self, code: str | None = None) -> bool:
        """Join a room, prompting for the code when none is given.

        Returns:
            True if a join command was sent. A prompt returns False; the join
            is sent once the user answers.
        """
        if not code:
            self._editor.prompt("Room code: ", self._on_code_entered)
            return False

        if not self.ensure_daemon():
            return False
        return self._transport.send(
            JoinRoom(
                code=code.upper(),
                name=self._config.display_name(),
                color=self._config.color,
            )
        )

    def rejoin(self) -> bool:
        """Join the last room again."""
        code = self._session.last_room_code
        if not code:
            self._notifier.warning("No previous room to rejoin")
            return False

        if self._session.in_room:
            self._notifier.warning("Already in a room. Leave first with: ApexLink leave")
            return False

        self._notifier.info(f"Rejoining room: {code}")
        return self.join(code)

    def leave(self) -> None:
        """Leave the room without waiting for the daemon to acknowledge."""
        self._transport.send(LeaveRoom())
        self._timer.stop()
        self._session.leave_room()
        self._notifier.info("Left room")

    def status(self) -> None:
        """Ask the daemon for status, or report that it is not running."""
        if self._supervisor.is_running:
            self._transport.send(RequestStatus())
        else:
            self._notifier.info("Daemon not running")

    def stop(self) -> None:
        """Stop the sync timer and the daemon."""
        self._timer.stop()
        self._supervisor.stop()
        self._session.reset()

    def send(self, data: Any) -> bool:
        """Broadcast an arbitrary payload to peers."""
        return self._transport.send(SendData(data=data))

    def sync(self) -> bool:
        """Sync the current buffer."""
        return self._relay.sync_buffer()

    def unsync(self) -> bool:
        """Unsync the current buffer."""
        return self._relay.unsync_buffer()

    def buffers(self) -> list[str]:
        """List synced buffers."""
        return self._relay.list_synced()

    def execute(self, args: list[str]) -> None:
        """Run one subaction from the editor command surface.

        Args:
            args: Subaction name followed by its arguments, e.g. ["join", "abcd1234"].
        """
        subcommand = args[0] if args else ""
        match subcommand:
            case "create":
                self.create()
            case "join":
                self.join(args[1] if len(args) > 1 else None)
            case "rejoin":
                self.rejoin()
            case "leave":
                self.leave()
            case "status":
                self.status()
            case "stop":
                self.stop()
            case "sync":
                self.sync()
            case "unsync":
                self.unsync()
            case "buffers":
                self.buffers()
            case _:
                self._notifier.info(USAGE)

    def _on_code_entered(self, answer: str | None) -> None:
        if answer and answer.strip():
            self.join(answer.strip().upper())
