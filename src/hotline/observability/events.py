"""Event model for hotline observability.

Defines event types for the HMR pipeline and the debugger proxy.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal, TypeAlias


# ---------------------------------------------------------------------------
# HMR pipeline events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SnapshotBuilt:
    """A full dependency snapshot was built for an entry point.

    Attributes:
        entry_file: Bundle entry the snapshot was resolved from.
        platform: Target platform.
        module_count: Number of files in the snapshot.
        duration_ms: Time spent resolving in milliseconds.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    entry_file: str
    platform: str
    module_count: int
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class UpdateSent:
    """An ``update`` message was delivered to an HMR client.

    Attributes:
        path: The changed file that triggered the update.
        kind: ``shallow`` (dependencies unchanged) or ``structural``.
        modules_count: Number of modules in the update.
        duration_ms: Time from change detection to send.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    path: str
    kind: Literal["shallow", "structural"]
    modules_count: int
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class UpdateFailed:
    """A change cycle ended with an ``error`` message.

    Attributes:
        path: The changed file.
        error_type: Error kind sent to the client.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    path: str
    error_type: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Debugger proxy events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BrokerEvent:
    """A role transition on the debugger proxy.

    Attributes:
        role: ``debugger`` or ``client``.
        action: What happened to the connection.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    role: Literal["debugger", "client"]
    action: Literal["attached", "rejected", "superseded", "detached"]
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

StackEvent: TypeAlias = SnapshotBuilt | UpdateSent | UpdateFailed | BrokerEvent


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
