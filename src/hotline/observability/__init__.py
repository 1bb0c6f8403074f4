"""Observability — structured events for the HMR pipeline and debugger proxy.

Quick Start:
    >>> from hotline.observability import StackCollector, EventLog
    >>> log = EventLog()
    >>> collector = StackCollector(log)
    >>> collector.record_broker("debugger", "attached")

"""

from hotline.observability.collector import StackCollector
from hotline.observability.events import (
    BrokerEvent,
    SnapshotBuilt,
    StackEvent,
    UpdateFailed,
    UpdateSent,
    now_ns,
)
from hotline.observability.log import EventLog, event_to_dict

__all__ = [
    "BrokerEvent",
    "EventLog",
    "SnapshotBuilt",
    "StackCollector",
    "StackEvent",
    "UpdateFailed",
    "UpdateSent",
    "event_to_dict",
    "now_ns",
]
