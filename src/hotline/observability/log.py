"""Event log — bounded store behind the ``/__hotline/stats`` endpoint.

Keeps the most recent events for display and per-type counters over the
whole lifetime of the server, so totals stay accurate after old events
have been evicted.

Thread Safety:
    All methods take a ``threading.Lock``.  Events are recorded from the
    event loop and read by the stats handler.

"""

import threading
from collections import Counter, deque
from dataclasses import asdict
from typing import Any

from hotline.observability.events import StackEvent


def event_to_dict(event: StackEvent) -> dict[str, Any]:
    """JSON-ready form of an event, tagged with its type name."""
    return {"event": type(event).__name__, **asdict(event)}


class EventLog:
    """Ring buffer of recent events plus lifetime counters.

    Args:
        max_events: How many recent events to retain.

    """

    __slots__ = ("_counts", "_events", "_lock")

    def __init__(self, max_events: int = 1_000) -> None:
        self._events: deque[StackEvent] = deque(maxlen=max_events)
        self._counts: Counter[str] = Counter()
        self._lock = threading.Lock()

    def append(self, event: StackEvent) -> None:
        with self._lock:
            self._events.append(event)
            self._counts[type(event).__name__] += 1

    def recent(self, n: int = 20, *, event_type: type | None = None) -> list[StackEvent]:
        """Up to *n* retained events, most recent first, optionally of one type."""
        with self._lock:
            events = list(self._events)
        matched = [
            event for event in reversed(events)
            if event_type is None or isinstance(event, event_type)
        ]
        return matched[:n]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def stats(self, *, recent: int = 10) -> dict[str, Any]:
        """Lifetime counts by event type and the latest *recent* events."""
        with self._lock:
            counts = dict(self._counts)
            retained = len(self._events)
        return {
            "total": sum(counts.values()),
            "retained": retained,
            "by_type": counts,
            "recent": [event_to_dict(event) for event in self.recent(recent)],
        }
