"""Hotline configuration.

HotlineConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_WATCH_EXTENSIONS: tuple[str, ...] = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".json")


@dataclass(frozen=True, slots=True)
class HotlineConfig:
    """Configuration for a Hotline dev server.

    Attributes:
        root: Project root watched for changes. Always resolved to an
              absolute path on construction.
        host: Bind address for the WebSocket server.
        port: Bind port for the WebSocket server (0 picks a free port).
        hmr_path: URL path of the Hot Module Replacement endpoint.
        debugger_path: URL path of the debugger proxy endpoint.
        packager: ``module:attr`` reference to the packager object or factory,
            e.g. ``packager:create`` for ``<root>/packager.py``.
        watch_extensions: File suffixes forwarded to HMR sessions.
        watch_debounce_ms: Debounce window for the file watcher.
        close_client_on_debugger_exit: Close the active client when the
            debugger disconnects.

    """

    root: Path = field(default_factory=Path.cwd)
    host: str = "127.0.0.1"
    port: int = 8081
    hmr_path: str = "/hot"
    debugger_path: str = "/debugger-proxy"
    packager: str | None = None
    watch_extensions: tuple[str, ...] = DEFAULT_WATCH_EXTENSIONS
    watch_debounce_ms: int = 50
    close_client_on_debugger_exit: bool = False

    def __post_init__(self) -> None:
        # watchfiles reports absolute paths; keep root comparable to them.
        if not self.root.is_absolute():
            object.__setattr__(self, "root", self.root.resolve())
        if not isinstance(self.watch_extensions, tuple):
            object.__setattr__(self, "watch_extensions", tuple(self.watch_extensions))

    @property
    def hmr_url(self) -> str:
        """WebSocket URL of the HMR endpoint."""
        return f"ws://{self.host}:{self.port}{self.hmr_path}"

    @property
    def debugger_url(self) -> str:
        """WebSocket URL of the debugger proxy endpoint."""
        return f"ws://{self.host}:{self.port}{self.debugger_path}"
