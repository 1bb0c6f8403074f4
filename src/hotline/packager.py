"""Packager contract — the narrow interface hotline consumes.

Hotline does not resolve modules or transform code itself.  Whatever
bundler drives the project plugs in by implementing ``Packager`` (and,
optionally, ``ChangeSource`` if it already watches files).  The protocols
are duck-typed; the packager never has to import hotline.

``ChangeHub`` is the stock ``ChangeSource``: the app feeds it file events
from ``FileWatcher`` and it fans each change out to every HMR session.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from hotline._types import ChangeListener, FilePath, ModuleName, Platform


class Module(Protocol):
    """An opaque module handle owned by the packager."""

    path: FilePath

    async def get_name(self) -> ModuleName: ...

    def is_asset(self) -> bool: ...

    def is_json(self) -> bool: ...


class ResolutionResponse(Protocol):
    """Result of resolving an entry point, reusable for partial rebuilds."""

    @property
    def dependencies(self) -> Sequence[Module]: ...

    def copy(self, *, dependencies: Sequence[Module]) -> ResolutionResponse: ...

    def get_resolved_dependency_pairs(self, module: Module) -> Sequence[tuple[str, Module]]: ...


class HMRBundle(Protocol):
    """Bundle code materialized for a set of updated modules."""

    def is_empty(self) -> bool: ...

    def get_modules_names_and_code(self) -> Sequence[tuple[ModuleName, str]]: ...

    def get_source_urls(self) -> Sequence[str]: ...

    def get_source_mapping_urls(self) -> Sequence[str]: ...


@runtime_checkable
class Packager(Protocol):
    """Resolver and bundler collaborator."""

    async def get_dependencies(
        self,
        *,
        platform: Platform,
        entry_file: FilePath,
        dev: bool = True,
        recursive: bool = True,
    ) -> ResolutionResponse: ...

    async def get_shallow_dependencies(self, path: FilePath) -> Sequence[str]: ...

    def get_module_for_path(self, path: FilePath) -> Module: ...

    async def build_bundle_for_hmr(
        self,
        *,
        entry_file: FilePath,
        platform: Platform,
        resolution_response: ResolutionResponse,
        host: str,
        port: int,
    ) -> HMRBundle: ...


@runtime_checkable
class ChangeSource(Protocol):
    """File change subscription.

    Listeners receive ``(filename, change)``.  ``change`` raising
    any exception or resolving to ``None`` means the file was deleted.
    """

    def add_change_listener(self, listener: ChangeListener) -> None: ...

    def remove_change_listener(self, listener: ChangeListener) -> None: ...


async def _stat(path: FilePath) -> os.stat_result:
    return await asyncio.to_thread(os.stat, path)


class ChangeHub:
    """Fans file changes out to every registered listener.

    Each listener runs in its own task so one slow HMR session never
    holds up another, and two changes to the same file are not
    serialized against each other.  All listeners of one change share a
    single stat task, which raises ``FileNotFoundError`` for deletions.

    """

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add_change_listener(self, listener: ChangeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, filename: FilePath) -> list[asyncio.Task[None]]:
        """Dispatch a change of *filename* to all listeners.

        Returns the spawned listener tasks (mostly useful in tests).

        """
        if not self._listeners:
            return []

        change = asyncio.ensure_future(_stat(filename))
        # Deleted files leave the stat task failed; mark it retrieved.
        change.add_done_callback(lambda t: t.cancelled() or t.exception())

        spawned: list[asyncio.Task[None]] = []
        for listener in tuple(self._listeners):
            task = asyncio.create_task(listener(filename, change))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            spawned.append(task)
        return spawned

    async def drain(self) -> None:
        """Wait for all in-flight listener tasks."""
        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)
