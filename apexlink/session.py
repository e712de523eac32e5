"""Room membership state mirrored from daemon events."""

from dataclasses import dataclass, field

from pydantic import AliasChoices, BaseModel, Field


class Peer(BaseModel):
    """Another participant in the same room."""

    id: str = Field(validation_alias=AliasChoices("id", "peer_id"))
    name: str = ""
    color: str = ""

    class Config:
        populate_by_name = True


@dataclass
class Session:
    """Client-side mirror of the daemon's room membership.

    ``last_room_code`` is only ever overwritten, never cleared, so a room can
    be rejoined after leaving it.
    """

    room_code: str | None = None
    last_room_code: str | None = None
    connected: bool = False
    peers: list[Peer] = field(default_factory=list)

    @property
    def in_room(self) -> bool:
        """Check if a room is currently active."""
        return bool(self.room_code)

    def enter_room(self, code: str, peers: list[Peer] | None = None) -> None:
        """Record a created or joined room.

        Args:
            code: The room code.
            peers: Roster reported on join. None keeps the current roster.
        """
        self.room_code = code
        self.last_room_code = code
        if peers is not None:
            self.peers = []
            for peer in peers:
                self.add_peer(peer)

    def leave_room(self) -> None:
        """Forget the active room and its roster."""
        self.room_code = None
        self.peers = []

    def reset(self) -> None:
        """Return to the unconnected state, keeping the rejoin code."""
        self.connected = False
        self.leave_room()

    def add_peer(self, peer: Peer) -> None:
        """Append a peer, replacing any entry with the same id."""
        self.remove_peer(peer.id)
        self.peers.append(peer)

    def remove_peer(self, peer_id: str) -> Peer | None:
        """Remove the first peer with the given id.

        Returns:
            The removed peer, or None if no peer matched.
        """
        for i, peer in enumerate(self.peers):
            if peer.id == peer_id:
                return self.peers.pop(i)
        return None

    def summary(self) -> str:
        """Compose a human-readable status line."""
        parts = ["Connected" if self.connected else "Disconnected"]
        if self.room_code:
            parts.append(f"Room: {self.room_code}")
        parts.append(f"Peers: {len(self.peers)}")
        return " | ".join(parts)
