"""Hot Module Replacement — dependency snapshots, diffing and update delivery.

Connects file changes to code updates pushed over a WebSocket, through the
dependency snapshot, the per-connection session and the update channel.
"""

from hotline.hmr.channel import UpdateChannel, serialize_error
from hotline.hmr.server import HMRServer
from hotline.hmr.session import HMRSession, UpdateBatch, order_update
from hotline.hmr.snapshot import DependencySnapshot, build_snapshot

__all__ = [
    "DependencySnapshot",
    "HMRServer",
    "HMRSession",
    "UpdateBatch",
    "UpdateChannel",
    "build_snapshot",
    "order_update",
    "serialize_error",
]
