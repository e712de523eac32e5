"""Handlers for events emitted by the daemon.

Events are applied to Session, the buffer registry and the editor. The
handler runs on the EditorQueue consumer only.
"""

import logging
from collections.abc import Callable
from typing import Any, assert_never

from apexlink.daemon.protocol import (
    BufferChangedEvent,
    ConnectedEvent,
    DataEvent,
    ErrorEvent,
    Event,
    P2PConnectedEvent,
    PeerJoinedEvent,
    PeerLeftEvent,
    ReadyEvent,
    RoomCreatedEvent,
    RoomJoinedEvent,
    StatusEvent,
)
from apexlink.editor.base import EditorHost
from apexlink.notify import Notifier
from apexlink.session import Session
from apexlink.sync.relay import ChangeRelay
from apexlink.sync.timer import SyncTimer

logger = logging.getLogger(__name__)

DataCallback = Callable[[str, Any], None]


class EventHandler:
    """Applies daemon events to local state."""

    def __init__(
        self,
        session: Session,
        editor: EditorHost,
        relay: ChangeRelay,
        timer: SyncTimer,
        notifier: Notifier,
    ) -> None:
        self._session = session
        self._editor = editor
        self._relay = relay
        self._timer = timer
        self._notifier = notifier
        self._data_callbacks: list[DataCallback] = []

    def on_data(self, callback: DataCallback) -> None:
        """Register a callback for data events.

        Args:
            callback: Called with (peer_id, data) for every data event.
        """
        self._data_callbacks.append(callback)

    def handle(self, event: Event) -> None:
        """Apply one event."""
        logger.debug("Handling %s event", event.event)

        match event:
            case ReadyEvent():
                self._notifier.info("Daemon ready")
            case ConnectedEvent():
                self._session.connected = True
                self._notifier.info(f"Connected as {event.peer_id}")
            case RoomCreatedEvent():
                self._room_created(event)
            case RoomJoinedEvent():
                self._room_joined(event)
            case PeerJoinedEvent():
                self._session.add_peer(event.to_peer())
                self._notifier.info(f"{event.name} joined")
                self._editor.host_notify(
                    "apexlink:peer_joined", {"peer_id": event.peer_id, "name": event.name}
                )
            case PeerLeftEvent():
                peer = self._session.remove_peer(event.peer_id)
                if peer is not None:
                    self._notifier.info(f"{peer.name} left")
                self._editor.host_notify("apexlink:peer_left", {"peer_id": event.peer_id})
            case P2PConnectedEvent():
                self._notifier.info(f"P2P connected with {event.peer_id}")
            case DataEvent():
                self._dispatch_data(event)
            case StatusEvent():
                self._notifier.info(self._session.summary())
            case BufferChangedEvent():
                self._relay.apply_remote(event.path, event.content)
            case ErrorEvent():
                self._notifier.error(event.message)
            case _:
                assert_never(event)

    def _room_created(self, event: RoomCreatedEvent) -> None:
        self._session.enter_room(event.code)
        self._editor.set_clipboard(event.code)
        self._notifier.success(f"Room created: {event.code} (copied to clipboard)")
        self._timer.start()
        self._editor.host_notify("apexlink:room_created", {"code": event.code})

    def _room_joined(self, event: RoomJoinedEvent) -> None:
        self._session.enter_room(event.code, event.peers)
        self._editor.set_clipboard(event.code)
        self._notifier.success(f"Joined room: {event.code} ({len(self._session.peers)} peers)")
        self._timer.start()
        self._editor.host_notify(
            "apexlink:room_joined",
            {
                "code": event.code,
                "peers": [peer.model_dump() for peer in self._session.peers],
            },
        )

    def _dispatch_data(self, event: DataEvent) -> None:
        for callback in list(self._data_callbacks):
            try:
                callback(event.peer_id, event.data)
            except Exception as e:
                logger.error("Error in data callback: %s", e)
