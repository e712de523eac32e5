"""Daemon process supervision and the stdio protocol."""

from apexlink.daemon.protocol import Command, Event, decode_event, encode_command
from apexlink.daemon.supervisor import DaemonSupervisor, find_daemon
from apexlink.daemon.transport import LineBuffer, ProtocolTransport

__all__ = [
    "Command",
    "DaemonSupervisor",
    "Event",
    "LineBuffer",
    "ProtocolTransport",
    "decode_event",
    "encode_command",
    "find_daemon",
]
