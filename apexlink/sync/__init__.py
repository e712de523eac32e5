"""Buffer synchronization: registry, change relay and sync timer."""

from apexlink.sync.registry import BufferSyncRegistry, RemoteApplyGuard, SyncedBuffer
from apexlink.sync.relay import ChangeRelay
from apexlink.sync.timer import SyncTimer

__all__ = [
    "BufferSyncRegistry",
    "ChangeRelay",
    "RemoteApplyGuard",
    "SyncedBuffer",
    "SyncTimer",
]
