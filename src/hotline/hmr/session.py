"""HMR session — per-connection change-diffing state machine.

Each connected client owns one ``HMRSession``.  On a file change the
session decides between two paths:

- **Shallow-equivalent**: the file still requires exactly what it did
  before.  Only the file itself is re-bundled, from a non-recursive
  resolution scoped to that file.
- **Structural**: the require list changed.  The whole graph is
  re-resolved, modules that were not known before are collected, and the
  update is ordered by ``order_update``.

Concurrency:
    Cycles are not serialized.  Between suspension points another cycle
    may have replaced ``snapshot``, or the connection may have gone away.
    ``active`` and ``tracks()`` are re-checked after every await.  A
    structural rebuild installs its snapshot only when no rebuild that
    started later has installed one already.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from hotline.hmr.snapshot import DependencySnapshot, build_snapshot

if TYPE_CHECKING:
    from hotline._types import FilePath, Platform, UpdateKind
    from hotline.observability.collector import StackCollector
    from hotline.packager import Module, Packager, ResolutionResponse


@dataclass(frozen=True, slots=True)
class UpdateBatch:
    """Modules to re-send for one file change, in application order.

    Attributes:
        filename: The changed file.
        kind: Which diffing path produced the batch.
        ordered_modules: Module handles, leaf-first, changed file last.
        inverse_deps: Inverse dependency map to ship with the update.
        resolution: Resolver response narrowed to ``ordered_modules``.

    """

    filename: FilePath
    kind: UpdateKind
    ordered_modules: tuple[Module, ...]
    inverse_deps: Mapping[FilePath, frozenset[FilePath]]
    resolution: ResolutionResponse


def shallow_equal(fresh: Sequence[str], cached: Sequence[str] | None) -> bool:
    """Compare two require lists as ordered sequences.

    A missing cache entry never matches, so an untracked file always
    takes the structural path.

    """
    if cached is None:
        return False
    return len(fresh) == len(cached) and all(a == b for a, b in zip(fresh, cached))


def order_update(changed: Module, discovered: Sequence[Module]) -> tuple[Module, ...]:
    """Order a structural update: ``reverse([changed] + discovered)``.

    The resolver reports newly discovered modules breadth-first, moving
    outward from the changed file.  Clients must define leaves before
    the modules that require them, and the changed file re-executes last
    so that everything it requires is already defined.

    """
    return tuple(reversed([changed, *discovered]))


def newly_discovered(
    previous: DependencySnapshot,
    current: DependencySnapshot,
    *,
    exclude: FilePath,
) -> list[Module]:
    """Modules whose names appear in *current* but not in *previous*.

    Kept in *current*'s module index order.  The module at *exclude* is
    left out since it heads the update anyway.

    """
    return [
        module
        for name, module in current.module_index.items()
        if name not in previous.module_index and module.path != exclude
    ]


@dataclass(eq=False, slots=True)
class HMRSession:
    """State held for one HMR connection.

    Attributes:
        connection: The WebSocket connection updates are sent on.
        platform: Bundle platform requested at connect time.
        entry_file: Bundle entry requested at connect time.
        snapshot: Latest installed dependency snapshot.
        inverse_deps: Inverse dependency map captured when the session was
            created.  Updates always carry this map.
        active: False once the connection has gone away.

    """

    connection: Any
    platform: Platform
    entry_file: FilePath
    snapshot: DependencySnapshot
    inverse_deps: Mapping[FilePath, frozenset[FilePath]] = field(init=False)
    active: bool = True
    _issued: int = field(default=0, init=False, repr=False)
    _installed: int = field(default=0, init=False, repr=False)

    def __post_init__(self) -> None:
        self.inverse_deps = self.snapshot.inverse_deps

    def tracks(self, filename: FilePath) -> bool:
        """Whether the session is alive and *filename* is in its snapshot."""
        return self.active and self.snapshot.tracks(filename)

    def close(self) -> None:
        """Mark the session dead; in-flight cycles will emit nothing more."""
        self.active = False

    async def compute_update(
        self,
        packager: Packager,
        filename: FilePath,
        *,
        collector: StackCollector | None = None,
    ) -> UpdateBatch | None:
        """Diff *filename* against the cached graph and build an update.

        Returns ``None`` when nothing should be sent: the session closed
        meanwhile, or *filename* is not part of the bundle.

        Raises:
            Exception: Whatever the packager raises; the update channel
                turns it into an ``error`` message.

        """
        fresh = tuple(await packager.get_shallow_dependencies(filename))
        if not self.active:
            return None

        if shallow_equal(fresh, self.snapshot.shallow_deps.get(filename)):
            batch = await self._shallow_update(packager, filename)
        else:
            batch = await self._structural_update(packager, filename, collector)

        if batch is None or not self.tracks(filename):
            return None
        return batch

    async def _shallow_update(self, packager: Packager, filename: FilePath) -> UpdateBatch:
        response = await packager.get_dependencies(
            platform=self.platform,
            entry_file=filename,
            dev=True,
            recursive=False,
        )
        module = packager.get_module_for_path(filename)
        return UpdateBatch(
            filename=filename,
            kind="shallow",
            ordered_modules=(module,),
            inverse_deps=self.inverse_deps,
            resolution=response.copy(dependencies=[module]),
        )

    async def _structural_update(
        self,
        packager: Packager,
        filename: FilePath,
        collector: StackCollector | None,
    ) -> UpdateBatch | None:
        previous = self.snapshot
        self._issued += 1
        ticket = self._issued

        snapshot = await build_snapshot(
            packager, self.platform, self.entry_file, collector=collector,
        )
        if not self.active:
            return None

        changed = packager.get_module_for_path(filename)
        ordered = order_update(changed, newly_discovered(previous, snapshot, exclude=filename))

        if ticket > self._installed:
            self.snapshot = snapshot
            self._installed = ticket

        return UpdateBatch(
            filename=filename,
            kind="structural",
            ordered_modules=ordered,
            inverse_deps=self.inverse_deps,
            resolution=snapshot.resolution.copy(dependencies=list(ordered)),
        )
