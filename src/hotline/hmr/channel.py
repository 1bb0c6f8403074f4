"""Update channel — the four-message HMR protocol.

Every change cycle is framed the same way on the wire::

    {"type": "update-start"}
    {"type": "update", "body": {...}}   # or {"type": "error", ...}, or nothing
    {"type": "update-done"}

``update-start`` goes out as soon as the change is seen; ``update-done``
always closes the cycle unless the connection is gone.  Any failure in
between becomes a single ``error`` message; it never ends the session.
"""

from __future__ import annotations

import json
import sys
import time
import traceback
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from websockets.exceptions import ConnectionClosed

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from hotline._types import FilePath
    from hotline.hmr.session import HMRSession
    from hotline.observability.collector import StackCollector
    from hotline.packager import HMRBundle, Packager


PASS_THROUGH_ERRORS = frozenset({"TransformError", "NotFoundError", "UnableToResolveError"})

INTERNAL_ERROR_DESCRIPTION = (
    "hotline has encountered an internal error, "
    "please check your terminal error output for more details"
)

_WILDCARD_HOSTS = frozenset({"", "::", "0.0.0.0"})


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


def update_start_message() -> str:
    return json.dumps({"type": "update-start"})


def update_done_message() -> str:
    return json.dumps({"type": "update-done"})


def update_message(
    bundle: HMRBundle,
    inverse_deps: Mapping[FilePath, frozenset[FilePath]],
) -> str:
    """Serialize a materialized bundle into an ``update`` message."""
    return json.dumps({
        "type": "update",
        "body": {
            "modules": [[name, code] for name, code in bundle.get_modules_names_and_code()],
            "inverseDependencies": {
                path: sorted(dependents) for path, dependents in sorted(inverse_deps.items())
            },
            "sourceURLs": list(bundle.get_source_urls()),
            "sourceMappingURLs": list(bundle.get_source_mapping_urls()),
        },
    })


def error_message(body: Mapping[str, Any]) -> str:
    return json.dumps({"type": "error", "body": dict(body)})


def serialize_error(exc: BaseException) -> dict[str, Any]:
    """Map an exception onto the client-facing error taxonomy.

    Packager errors of a known kind pass ``description``, ``filename`` and
    ``lineNumber`` through verbatim.  Anything else is an ``InternalError``:
    the traceback goes to stderr and the client only sees a generic text.

    """
    kind = getattr(exc, "type", None)
    if isinstance(kind, str) and kind in PASS_THROUGH_ERRORS:
        body: dict[str, Any] = {
            "type": kind,
            "description": getattr(exc, "description", None) or str(exc),
        }
        filename = getattr(exc, "filename", None)
        if filename is not None:
            body["filename"] = filename
        line_number = getattr(exc, "line_number", None)
        if line_number is None:
            line_number = getattr(exc, "lineNumber", None)
        if line_number is not None:
            body["lineNumber"] = line_number
        return body

    print("  HMR: internal error", file=sys.stderr)
    traceback.print_exception(exc, file=sys.stderr)
    return {"type": "InternalError", "description": INTERNAL_ERROR_DESCRIPTION}


def sanitize_host(address: str | None) -> str:
    """Host the client should use for follow-up fetches.

    Wildcard or empty bind addresses are not reachable; use loopback.
    IPv6 literals are bracketed so they can be embedded in URLs.

    """
    if not address or address in _WILDCARD_HOSTS:
        return "localhost"
    if ":" in address and not address.startswith("["):
        return f"[{address}]"
    return address


async def _was_deleted(change: Awaitable[object]) -> bool:
    # A change that fails to settle for any reason counts as a deletion.
    try:
        result = await change
    except Exception:
        return True
    return result is None


# ---------------------------------------------------------------------------
# Channel
# ---------------------------------------------------------------------------


class UpdateChannel:
    """Runs change cycles for HMR sessions and frames their output.

    Args:
        packager: Collaborator used to diff and materialize updates.
        address: Returns the ``(host, port)`` the server is bound to.
        collector: Optional observability sink.

    """

    def __init__(
        self,
        packager: Packager,
        *,
        address: Callable[[], tuple[str, int]],
        collector: StackCollector | None = None,
    ) -> None:
        self._packager = packager
        self._address = address
        self._collector = collector

    async def run_cycle(
        self,
        session: HMRSession,
        filename: FilePath,
        change: Awaitable[object],
    ) -> None:
        """Process one file change for *session*."""
        if not session.active:
            return

        started = time.perf_counter()
        print(f"  HMR: change detected: {filename}", file=sys.stderr)
        await self._send(session, update_start_message())

        if not await _was_deleted(change):
            message = await self._build_message(session, filename, started)
            if message is not None:
                await self._send(session, message)

        await self._send(session, update_done_message())

    async def _build_message(
        self,
        session: HMRSession,
        filename: FilePath,
        started: float,
    ) -> str | None:
        try:
            batch = await session.compute_update(
                self._packager, filename, collector=self._collector,
            )
            if batch is None:
                return None

            host, port = self._address()
            bundle = await self._packager.build_bundle_for_hmr(
                entry_file=session.entry_file,
                platform=session.platform,
                resolution_response=batch.resolution,
                host=sanitize_host(host),
                port=port,
            )
            if not session.active or bundle is None or bundle.is_empty():
                return None

            message = update_message(bundle, batch.inverse_deps)
        except Exception as exc:
            body = serialize_error(exc)
            if self._collector is not None:
                self._collector.record_error(filename, body["type"])
            return error_message(body)

        duration_ms = (time.perf_counter() - started) * 1000
        print(
            f"  HMR: sending {batch.kind} update for {filename} "
            f"({len(batch.ordered_modules)} module(s), {duration_ms:.0f}ms)",
            file=sys.stderr,
        )
        if self._collector is not None:
            self._collector.record_update(
                filename,
                kind=batch.kind,
                modules_count=len(batch.ordered_modules),
                duration_ms=duration_ms,
            )
        return message

    async def _send(self, session: HMRSession, message: str) -> None:
        if not session.active:
            return
        try:
            await session.connection.send(message)
        except ConnectionClosed:
            session.close()
