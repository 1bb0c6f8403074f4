"""Stack collector — records HMR and debugger proxy events.

Thin recording façade in front of ``EventLog`` so call sites stay one line.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.

"""

from __future__ import annotations

from typing import TYPE_CHECKING

from hotline.observability.events import (
    BrokerEvent,
    SnapshotBuilt,
    UpdateFailed,
    UpdateSent,
    now_ns,
)
from hotline.observability.log import EventLog

if TYPE_CHECKING:
    from hotline._types import Role, UpdateKind


class StackCollector:
    """Event collector shared by the HMR server and the connection broker.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log",)

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    # ----- HMR events -----

    def record_snapshot(
        self,
        entry_file: str,
        platform: str,
        *,
        module_count: int = 0,
        duration_ms: float = 0.0,
    ) -> None:
        """Record a full dependency snapshot build."""
        self._log.append(
            SnapshotBuilt(
                entry_file=entry_file,
                platform=platform,
                module_count=module_count,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_update(
        self,
        path: str,
        *,
        kind: UpdateKind = "shallow",
        modules_count: int = 0,
        duration_ms: float = 0.0,
    ) -> None:
        """Record an update delivered to a client."""
        self._log.append(
            UpdateSent(
                path=path,
                kind=kind,
                modules_count=modules_count,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_error(self, path: str, error_type: str) -> None:
        """Record a change cycle that ended in an error message."""
        self._log.append(
            UpdateFailed(path=path, error_type=error_type, timestamp_ns=now_ns())
        )

    # ----- Debugger proxy events -----

    def record_broker(self, role: Role, action: str) -> None:
        """Record a role transition on the debugger proxy."""
        self._log.append(
            BrokerEvent(
                role=role,
                action=action,  # type: ignore[arg-type]
                timestamp_ns=now_ns(),
            )
        )
