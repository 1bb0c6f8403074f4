"""File watcher — feeds source changes to HMR sessions.

Monitors the project root and publishes every change to a watched source
file into a ``ChangeHub``.  Only used when the packager does not supply
its own change subscription.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from watchfiles import Change, DefaultFilter, awatch

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from hotline.config import HotlineConfig
    from hotline.packager import ChangeHub


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A file change detected by the watcher.

    Attributes:
        path: Absolute path to the changed file.
        kind: Type of filesystem change.

    """

    path: Path
    kind: Literal["created", "modified", "deleted"]


# Mapping from watchfiles Change enum to our kind literals.
_CHANGE_KIND_MAP: dict[Change, Literal["created", "modified", "deleted"]] = {
    Change.added: "created",
    Change.modified: "modified",
    Change.deleted: "deleted",
}


def is_watched(path: Path, config: HotlineConfig) -> bool:
    """Whether a change to *path* should reach HMR sessions.

    The file must live under the project root and carry one of the
    configured source extensions.

    """
    try:
        path.relative_to(config.root)
    except ValueError:
        return False
    return path.suffix in config.watch_extensions


class FileWatcher:
    """Watches the project root and yields source file changes.

    Uses watchfiles' ``awatch`` with its default filter, which already
    skips ``node_modules``, VCS directories and editor swap files.

    """

    def __init__(self, config: HotlineConfig) -> None:
        self._config = config
        self._stop_event = asyncio.Event()

    def stop(self) -> None:
        """Signal the watcher to stop after the current batch."""
        self._stop_event.set()

    async def changes(self) -> AsyncIterator[ChangeEvent]:
        """Async iterator of ChangeEvent objects, until ``stop()`` is called."""
        async for raw_changes in awatch(
            self._config.root,
            watch_filter=DefaultFilter(),
            debounce=self._config.watch_debounce_ms,
            stop_event=self._stop_event,
        ):
            for change_type, path_str in sorted(raw_changes, key=lambda c: c[1]):
                path = Path(path_str)
                if not is_watched(path, self._config):
                    continue
                yield ChangeEvent(path=path, kind=_CHANGE_KIND_MAP.get(change_type, "modified"))

    async def feed(self, hub: ChangeHub) -> None:
        """Publish every change into *hub* until stopped."""
        async for event in self.changes():
            hub.publish(str(event.path))
