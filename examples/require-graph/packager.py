"""A minimal packager for hotline: CommonJS ``require()`` graph over local files.

Run from this directory::

    hotline dev . --packager packager:create

then connect a client to ``ws://127.0.0.1:8081/hot?platform=web&bundleEntry=src/index.js``
and edit files under ``src/``.
"""

from __future__ import annotations

import json
import re
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path

from hotline._errors import NotFoundError, UnableToResolveError

REQUIRE_RE = re.compile(r"""require\(\s*['"]([^'"]+)['"]\s*\)""")
_SOURCE_SUFFIXES = (".js", ".json")


@dataclass(frozen=True, slots=True)
class FileModule:
    path: str
    name: str

    async def get_name(self) -> str:
        return self.name

    def is_asset(self) -> bool:
        return Path(self.path).suffix not in _SOURCE_SUFFIXES

    def is_json(self) -> bool:
        return self.path.endswith(".json")


@dataclass(slots=True)
class Resolution:
    dependencies: list[FileModule]
    pairs: dict[str, list[tuple[str, FileModule]]] = field(default_factory=dict)

    def copy(self, *, dependencies: list[FileModule]) -> Resolution:
        return Resolution(list(dependencies), self.pairs)

    def get_resolved_dependency_pairs(self, module: FileModule) -> list[tuple[str, FileModule]]:
        return self.pairs.get(module.path, [])


@dataclass(slots=True)
class Bundle:
    modules: list[tuple[str, str]]
    source_urls: list[str]
    source_mapping_urls: list[str]

    def is_empty(self) -> bool:
        return not self.modules

    def get_modules_names_and_code(self) -> list[tuple[str, str]]:
        return self.modules

    def get_source_urls(self) -> list[str]:
        return self.source_urls

    def get_source_mapping_urls(self) -> list[str]:
        return self.source_mapping_urls


class RequireGraphPackager:
    """Resolves relative ``require()`` calls; modules are named by root-relative path."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def get_module_for_path(self, path: str) -> FileModule:
        rel = Path(path).relative_to(self.root).with_suffix("")
        return FileModule(path=path, name=rel.as_posix())

    async def get_shallow_dependencies(self, path: str) -> list[str]:
        if Path(path).suffix != ".js":
            return []
        try:
            source = Path(path).read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise NotFoundError(f"File not found: {path}", filename=path) from exc
        return REQUIRE_RE.findall(source)

    async def get_dependencies(
        self,
        *,
        platform: str,
        entry_file: str,
        dev: bool = True,
        recursive: bool = True,
    ) -> Resolution:
        entry = self._absolute(entry_file)
        if not Path(entry).is_file():
            raise NotFoundError(f"Entry file not found: {entry_file}", filename=entry_file)

        ordered: list[FileModule] = []
        pairs: dict[str, list[tuple[str, FileModule]]] = {}
        seen = {entry}
        queue = deque([entry])
        while queue:
            path = queue.popleft()
            module = self.get_module_for_path(path)
            ordered.append(module)
            resolved = []
            for specifier in await self.get_shallow_dependencies(path):
                target = self._resolve(path, specifier)
                resolved.append((specifier, self.get_module_for_path(target)))
                if recursive and target not in seen:
                    seen.add(target)
                    queue.append(target)
            pairs[path] = resolved
        return Resolution(ordered, pairs)

    async def build_bundle_for_hmr(
        self,
        *,
        entry_file: str,
        platform: str,
        resolution_response: Resolution,
        host: str,
        port: int,
    ) -> Bundle:
        modules, source_urls, map_urls = [], [], []
        for module in resolution_response.dependencies:
            source = Path(module.path).read_text(encoding="utf-8")
            if module.is_json():
                source = f"module.exports = {json.dumps(json.loads(source))};"
            code = f"__d({json.dumps(module.name)}, function(require, module, exports) {{\n{source}\n}});"
            modules.append((module.name, code))
            url = f"http://{host}:{port}/{module.name}.bundle?platform={platform}"
            source_urls.append(url)
            map_urls.append(url.replace(".bundle", ".map", 1))
        return Bundle(modules, source_urls, map_urls)

    def _absolute(self, path: str) -> str:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        return str(candidate.resolve())

    def _resolve(self, from_path: str, specifier: str) -> str:
        base = (Path(from_path).parent / specifier).resolve()
        for candidate in (base, base.with_suffix(".js"), base / "index.js"):
            if candidate.is_file():
                return str(candidate)
        raise UnableToResolveError(
            f"Unable to resolve module {specifier!r} from {from_path}",
            filename=from_path,
        )


def create(config: object) -> RequireGraphPackager:
    return RequireGraphPackager(Path(config.root).resolve())  # type: ignore[attr-defined]
