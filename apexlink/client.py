"""Composition root for one ApexLink session.

ApexLinkClient holds every piece of per-editor state. Nothing lives in
module globals, so independent clients (one per window, one per test) can
coexist in a process.
"""

import logging
from typing import Any

from apexlink.config import ApexLinkConfig
from apexlink.daemon.protocol import Event
from apexlink.daemon.supervisor import DaemonSupervisor
from apexlink.daemon.transport import ProtocolTransport
from apexlink.dispatcher import CommandDispatcher
from apexlink.editor.base import EditorHost
from apexlink.handlers import DataCallback, EventHandler
from apexlink.notify import Notifier
from apexlink.scheduler import EditorQueue
from apexlink.session import Session
from apexlink.sync.registry import BufferSyncRegistry, RemoteApplyGuard
from apexlink.sync.relay import ChangeRelay
from apexlink.sync.timer import SyncTimer

logger = logging.getLogger(__name__)


class ApexLinkClient:
    """Editor-side collaboration client.

    Example:
        client = ApexLinkClient(config, FileEditor())
        client.command(["create"])
        client.queue.run_forever()
    """

    def __init__(
        self,
        config: ApexLinkConfig,
        editor: EditorHost,
        notifier: Notifier | None = None,
        editor_queue: EditorQueue | None = None,
    ) -> None:
        """Wire up the session context.

        Args:
            config: Client configuration.
            editor: The editor host.
            notifier: Notification sink. Defaults to a console notifier
                honoring config.auto_notify.
            editor_queue: Serialized execution context. Defaults to a new queue.
        """
        self.config = config
        self.editor = editor
        self.notifier = notifier or Notifier(enabled=config.auto_notify)
        self.queue = editor_queue or EditorQueue()

        self.session = Session()
        self.registry = BufferSyncRegistry()
        self.guard = RemoteApplyGuard()

        self.transport = ProtocolTransport(self.queue, self._handle_event, self.notifier)
        self.supervisor = DaemonSupervisor(
            config, self.transport, self.queue, self.notifier, self._on_daemon_exit
        )
        self.timer = SyncTimer(config, self.session, editor, self.queue)
        self.relay = ChangeRelay(
            editor, self.session, self.registry, self.guard, self.transport, self.notifier
        )
        self.events = EventHandler(self.session, editor, self.relay, self.timer, self.notifier)
        self.dispatcher = CommandDispatcher(
            config,
            self.session,
            editor,
            self.supervisor,
            self.transport,
            self.relay,
            self.timer,
            self.notifier,
        )

    def command(self, args: list[str]) -> None:
        """Run one editor command subaction, e.g. ["join", "ABCD1234"]."""
        self.dispatcher.execute(args)

    def send(self, data: Any) -> bool:
        """Broadcast an arbitrary payload to peers."""
        return self.dispatcher.send(data)

    def on_data(self, callback: DataCallback) -> None:
        """Register a callback for data events."""
        self.events.on_data(callback)

    def shutdown(self) -> None:
        """Release the timer and the daemon when the editor exits."""
        self.dispatcher.stop()

    def _handle_event(self, event: Event) -> None:
        self.events.handle(event)

    def _on_daemon_exit(self, code: int) -> None:
        self.timer.stop()
        self.session.reset()
        logger.debug("Session reset, daemon ended with code %d", code)
