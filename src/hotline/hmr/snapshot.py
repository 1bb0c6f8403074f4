"""Dependency snapshots — a self-consistent picture of one bundle's graph.

A snapshot answers three questions the HMR session needs after a file
change:

- Which files does the bundle contain, and what does each one require?
- Which module names were already known (to spot newly discovered ones)?
- Which files depend on a given file (sent to the client for re-execution)?

Every call to ``build_snapshot`` resolves the graph from scratch and
returns fresh containers; earlier snapshots are never touched.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hotline._types import FilePath, ModuleName, Platform
    from hotline.observability.collector import StackCollector
    from hotline.packager import Module, Packager, ResolutionResponse


@dataclass(frozen=True, slots=True)
class DependencySnapshot:
    """Dependency graph of a bundle entry at one point in time.

    Attributes:
        file_list: Every file in the bundle, in resolver order.
        shallow_deps: File path -> its direct require specifiers, in source
            order.  Keys are exactly the paths of ``file_list``.
        module_index: Module name -> module handle, in resolver (BFS) order.
        inverse_deps: File path -> paths of the files that require it.
        resolution: The resolver response, reusable for partial rebuilds.

    """

    file_list: tuple[FilePath, ...]
    shallow_deps: Mapping[FilePath, tuple[str, ...]]
    module_index: Mapping[ModuleName, Module]
    inverse_deps: Mapping[FilePath, frozenset[FilePath]]
    resolution: ResolutionResponse

    def tracks(self, path: FilePath) -> bool:
        """Whether *path* is part of this snapshot."""
        return path in self.shallow_deps


def invert_dependencies(
    shallow_deps: Mapping[FilePath, tuple[str, ...]],
    resolve: Callable[[FilePath, str], FilePath | None],
) -> dict[FilePath, frozenset[FilePath]]:
    """Invert a shallow dependency map into dependency -> dependents.

    Args:
        shallow_deps: File path -> require specifiers.
        resolve: Maps ``(requiring file, specifier)`` to the required file's
            path, or ``None`` when the specifier did not resolve.

    """
    inverse: dict[FilePath, set[FilePath]] = {}
    for path, specifiers in shallow_deps.items():
        for specifier in specifiers:
            target = resolve(path, specifier)
            if target is None:
                continue
            inverse.setdefault(target, set()).add(path)
    return {target: frozenset(dependents) for target, dependents in inverse.items()}


async def _shallow_dependencies(packager: Packager, module: Module) -> tuple[str, ...]:
    # Assets and JSON never require anything.
    if module.is_asset() or module.is_json():
        return ()
    return tuple(await packager.get_shallow_dependencies(module.path))


async def build_snapshot(
    packager: Packager,
    platform: Platform,
    entry_file: FilePath,
    *,
    collector: StackCollector | None = None,
) -> DependencySnapshot:
    """Resolve *entry_file* for *platform* and build a full snapshot.

    Shallow dependencies are requested once per file, concurrently.

    """
    started = time.perf_counter()
    response = await packager.get_dependencies(
        platform=platform, entry_file=entry_file, dev=True,
    )
    modules = list(response.dependencies)

    names, deps = await asyncio.gather(
        asyncio.gather(*(module.get_name() for module in modules)),
        asyncio.gather(*(_shallow_dependencies(packager, module) for module in modules)),
    )

    file_list = tuple(module.path for module in modules)
    shallow_deps = dict(zip(file_list, deps, strict=True))
    module_index: dict[ModuleName, Module] = {}
    for name, module in zip(names, modules, strict=True):
        module_index.setdefault(name, module)

    resolved: dict[tuple[FilePath, str], FilePath] = {}
    for module in modules:
        for specifier, dependency in response.get_resolved_dependency_pairs(module):
            resolved[(module.path, specifier)] = dependency.path

    inverse_deps = invert_dependencies(
        shallow_deps, lambda path, specifier: resolved.get((path, specifier))
    )

    if collector is not None:
        collector.record_snapshot(
            entry_file,
            platform,
            module_count=len(file_list),
            duration_ms=(time.perf_counter() - started) * 1000,
        )

    return DependencySnapshot(
        file_list=file_list,
        shallow_deps=shallow_deps,
        module_index=module_index,
        inverse_deps=inverse_deps,
        resolution=response,
    )
