"""Line-delimited JSON protocol spoken with apexlink-daemon.

Outbound commands are single JSON objects with a ``cmd`` discriminator, one
per line. Inbound events are JSON objects with an ``event`` discriminator;
each known discriminator maps to exactly one Event model.
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Annotated, Any, ClassVar, Literal, Union, get_args

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from apexlink.session import Peer

logger = logging.getLogger(__name__)


# Outbound commands


@dataclass
class _Command:
    cmd: ClassVar[str]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"cmd": self.cmd, **asdict(self)}


@dataclass
class CreateRoom(_Command):
    cmd: ClassVar[str] = "create"

    name: str
    color: str


@dataclass
class JoinRoom(_Command):
    cmd: ClassVar[str] = "join"

    code: str
    name: str
    color: str


@dataclass
class LeaveRoom(_Command):
    cmd: ClassVar[str] = "leave"


@dataclass
class RequestStatus(_Command):
    cmd: ClassVar[str] = "status"


@dataclass
class SendData(_Command):
    cmd: ClassVar[str] = "send"

    data: Any


@dataclass
class BufferOpen(_Command):
    cmd: ClassVar[str] = "buf_open"

    path: str


@dataclass
class BufferSet(_Command):
    cmd: ClassVar[str] = "buf_set"

    path: str
    content: str


@dataclass
class BufferSync(_Command):
    cmd: ClassVar[str] = "buf_sync"

    path: str


@dataclass
class BufferClose(_Command):
    cmd: ClassVar[str] = "buf_close"

    path: str


Command = Union[
    CreateRoom,
    JoinRoom,
    LeaveRoom,
    RequestStatus,
    SendData,
    BufferOpen,
    BufferSet,
    BufferSync,
    BufferClose,
]


def encode_command(command: Command) -> bytes:
    """Serialize a command to one newline-terminated JSON line.

    Args:
        command: The command to encode.

    Returns:
        UTF-8 encoded JSON bytes ending in a newline.
    """
    return json.dumps(command.to_dict()).encode("utf-8") + b"\n"


# Inbound events


class ReadyEvent(BaseModel):
    event: Literal["ready"]


class ConnectedEvent(BaseModel):
    event: Literal["connected"]
    peer_id: str


class RoomCreatedEvent(BaseModel):
    event: Literal["room_created"]
    code: str


class RoomJoinedEvent(BaseModel):
    event: Literal["room_joined"]
    code: str
    peers: list[Peer] = Field(default_factory=list)


class PeerJoinedEvent(BaseModel):
    event: Literal["peer_joined"]
    peer_id: str
    name: str
    color: str

    def to_peer(self) -> Peer:
        """Build the roster entry for this peer."""
        return Peer(id=self.peer_id, name=self.name, color=self.color)


class PeerLeftEvent(BaseModel):
    event: Literal["peer_left"]
    peer_id: str


class P2PConnectedEvent(BaseModel):
    event: Literal["p2p_connected"]
    peer_id: str


class DataEvent(BaseModel):
    event: Literal["data"]
    peer_id: str
    data: Any


class StatusEvent(BaseModel):
    event: Literal["status"]


class BufferChangedEvent(BaseModel):
    event: Literal["buf_changed"]
    path: str
    content: str


class ErrorEvent(BaseModel):
    event: Literal["error"]
    message: str


Event = Annotated[
    Union[
        ReadyEvent,
        ConnectedEvent,
        RoomCreatedEvent,
        RoomJoinedEvent,
        PeerJoinedEvent,
        PeerLeftEvent,
        P2PConnectedEvent,
        DataEvent,
        StatusEvent,
        BufferChangedEvent,
        ErrorEvent,
    ],
    Field(discriminator="event"),
]

_event_adapter: TypeAdapter[Event] = TypeAdapter(Event)

EVENT_MODELS: tuple[type[BaseModel], ...] = get_args(get_args(Event)[0])

EVENT_NAMES: frozenset[str] = frozenset(
    get_args(model.model_fields["event"].annotation)[0] for model in EVENT_MODELS
)


def decode_event(line: bytes | str) -> Event | None:
    """Parse one protocol line into an event.

    Malformed JSON, non-object payloads, unknown discriminators and events
    missing required fields are dropped.

    Args:
        line: One line from the daemon's stdout, without the newline.

    Returns:
        The parsed event, or None if the line was dropped.
    """
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    line = line.strip()
    if not line:
        return None

    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("Dropping non-JSON line: %r", line)
        return None

    if not isinstance(data, dict):
        logger.debug("Dropping non-object line: %r", line)
        return None

    if data.get("event") not in EVENT_NAMES:
        logger.debug("Ignoring unknown event %r", data.get("event"))
        return None

    try:
        return _event_adapter.validate_python(data)
    except ValidationError as e:
        logger.debug("Dropping malformed %s event: %s", data.get("event"), e)
        return None
