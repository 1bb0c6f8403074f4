"""Shared test fixtures for hotline.

Provides in-memory stand-ins for the packager collaborator and for
WebSocket connections, so the HMR pipeline and the debugger proxy can be
driven without a real bundler or network.
"""

from __future__ import annotations

import asyncio
import json
from collections import deque
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any

import pytest
from websockets.exceptions import ConnectionClosedOK

_CLOSED = object()


# ---------------------------------------------------------------------------
# Packager fakes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FakeModule:
    """Module handle named after its path."""

    path: str
    asset: bool = False

    async def get_name(self) -> str:
        return self.path

    def is_asset(self) -> bool:
        return self.asset

    def is_json(self) -> bool:
        return self.path.endswith(".json")


@dataclass(slots=True)
class FakeResolution:
    dependencies: list[FakeModule]
    pairs: dict[str, list[tuple[str, FakeModule]]] = field(default_factory=dict)

    def copy(self, *, dependencies: Any) -> FakeResolution:
        return FakeResolution(list(dependencies), self.pairs)

    def get_resolved_dependency_pairs(self, module: FakeModule) -> list[tuple[str, FakeModule]]:
        return self.pairs.get(module.path, [])


@dataclass(slots=True)
class FakeBundle:
    modules: list[tuple[str, str]]

    def is_empty(self) -> bool:
        return not self.modules

    def get_modules_names_and_code(self) -> list[tuple[str, str]]:
        return self.modules

    def get_source_urls(self) -> list[str]:
        return [f"http://bundle/{name}" for name, _ in self.modules]

    def get_source_mapping_urls(self) -> list[str]:
        return [f"http://bundle/{name}.map" for name, _ in self.modules]


class FakePackager:
    """Packager over an in-memory graph of ``path -> [required paths]``.

    Require specifiers are the required file paths themselves, and module
    names are file paths, so expectations read naturally in tests.
    """

    def __init__(self, graph: dict[str, list[str]], *, assets: frozenset[str] = frozenset()) -> None:
        self.graph = {path: list(deps) for path, deps in graph.items()}
        self.assets = assets
        self.full_resolutions = 0
        self.partial_resolutions = 0
        self.shallow_calls: list[str] = []
        self.bundle_requests: list[dict[str, Any]] = []
        self.shallow_error: Exception | None = None
        self.bundle_error: Exception | None = None
        self.resolve_error: Exception | None = None
        self.empty_bundles = False

    def get_module_for_path(self, path: str) -> FakeModule:
        return FakeModule(path, asset=path in self.assets)

    async def get_shallow_dependencies(self, path: str) -> list[str]:
        self.shallow_calls.append(path)
        if self.shallow_error is not None:
            raise self.shallow_error
        return list(self.graph.get(path, []))

    async def get_dependencies(
        self,
        *,
        platform: str,
        entry_file: str,
        dev: bool = True,
        recursive: bool = True,
    ) -> FakeResolution:
        if self.resolve_error is not None:
            raise self.resolve_error
        if not recursive:
            self.partial_resolutions += 1
            return FakeResolution([self.get_module_for_path(entry_file)])

        self.full_resolutions += 1
        ordered: list[FakeModule] = []
        pairs: dict[str, list[tuple[str, FakeModule]]] = {}
        seen = {entry_file}
        queue = deque([entry_file])
        while queue:
            path = queue.popleft()
            ordered.append(self.get_module_for_path(path))
            deps = self.graph.get(path, [])
            pairs[path] = [(dep, self.get_module_for_path(dep)) for dep in deps]
            for dep in deps:
                if dep not in seen:
                    seen.add(dep)
                    queue.append(dep)
        return FakeResolution(ordered, pairs)

    async def build_bundle_for_hmr(
        self,
        *,
        entry_file: str,
        platform: str,
        resolution_response: FakeResolution,
        host: str,
        port: int,
    ) -> FakeBundle:
        self.bundle_requests.append({
            "entry_file": entry_file,
            "platform": platform,
            "modules": [m.path for m in resolution_response.dependencies],
            "host": host,
            "port": port,
        })
        if self.bundle_error is not None:
            raise self.bundle_error
        if self.empty_bundles:
            return FakeBundle([])
        return FakeBundle([(m.path, f"code:{m.path}") for m in resolution_response.dependencies])


# ---------------------------------------------------------------------------
# Connection fake
# ---------------------------------------------------------------------------


class FakeConnection:
    """Duck-typed stand-in for ``websockets.asyncio.server.ServerConnection``."""

    def __init__(self, path: str = "/") -> None:
        self.request = SimpleNamespace(path=path)
        self.sent: list[str] = []
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()

    @property
    def closed(self) -> bool:
        return self.close_code is not None

    @property
    def messages(self) -> list[Any]:
        """Sent frames, JSON-decoded where possible."""
        decoded = []
        for frame in self.sent:
            try:
                decoded.append(json.loads(frame))
            except ValueError:
                decoded.append(frame)
        return decoded

    @property
    def types(self) -> list[str]:
        return [m["type"] for m in self.messages if isinstance(m, dict) and "type" in m]

    async def send(self, message: Any) -> None:
        if self.closed:
            raise ConnectionClosedOK(None, None)
        self.sent.append(message)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed:
            return
        self.close_code = code
        self.close_reason = reason
        self._incoming.put_nowait(_CLOSED)

    def feed(self, message: Any) -> None:
        """Queue a frame as if the peer had sent it."""
        self._incoming.put_nowait(message)

    def __aiter__(self) -> FakeConnection:
        return self

    async def __anext__(self) -> Any:
        item = await self._incoming.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def settle(rounds: int = 5) -> None:
    """Let pending tasks run a few event-loop turns."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def resolved(value: object = True) -> asyncio.Future[object]:
    """A change future that already settled (file still exists)."""
    future: asyncio.Future[object] = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future


def deleted() -> asyncio.Future[object]:
    """A change future that signals the file was removed."""
    future: asyncio.Future[object] = asyncio.get_running_loop().create_future()
    future.set_exception(FileNotFoundError("gone"))
    return future


@pytest.fixture
def packager() -> FakePackager:
    """Entry ``A.js`` requires ``B.js``; ``C.js`` exists but is unused."""
    return FakePackager({"A.js": ["B.js"], "B.js": [], "C.js": []})
