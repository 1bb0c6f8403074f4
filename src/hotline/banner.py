"""Startup banner — endpoint summary on stderr.

Detects ``NO_COLOR`` / ``TERM`` for safe fallback.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hotline.config import HotlineConfig


# ---------------------------------------------------------------------------
# ANSI helpers; respect NO_COLOR (https://no-color.org)
# ---------------------------------------------------------------------------

def _supports_color() -> bool:
    """Return True if the terminal supports ANSI colors."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


_COLOR = _supports_color()

_RESET = "\033[0m" if _COLOR else ""
_BOLD = "\033[1m" if _COLOR else ""
_DIM = "\033[2m" if _COLOR else ""
_CYAN = "\033[36m" if _COLOR else ""
_GREEN = "\033[32m" if _COLOR else ""
_ORANGE = "\033[38;5;214m" if _COLOR else ""


def print_banner(
    config: HotlineConfig,
    *,
    port: int | None = None,
    watching: bool = False,
    load_ms: float = 0.0,
) -> None:
    """Print the Hotline startup banner to stderr.

    Args:
        config: Resolved HotlineConfig.
        port: Port actually bound (differs from ``config.port`` when it is 0).
        watching: Whether the bundled file watcher is running.
        load_ms: Time spent loading the packager in milliseconds.

    """
    from hotline import __version__

    bound = port if port is not None else config.port
    base = f"ws://{config.host}:{bound}"
    timing = f" {_DIM}in {load_ms:.0f}ms{_RESET}" if load_ms > 0 else ""

    lines: list[str] = [
        "",
        f"  {_ORANGE}{_BOLD}~>{_RESET}  Hotline {_DIM}v{__version__}{_RESET}  {_GREEN}[dev]{_RESET}",
        f"  {_DIM}{'─' * 43}{_RESET}",
        f"  {_DIM}├─{_RESET} packager: {config.packager}{timing}",
        f"  {_DIM}├─{_RESET} hmr:      {_BOLD}{_CYAN}{base}{config.hmr_path}{_RESET}",
        f"  {_DIM}└─{_RESET} debugger: {_BOLD}{_CYAN}{base}{config.debugger_path}{_RESET}",
    ]

    if watching:
        lines.append("")
        lines.append(f"  {_DIM}Watching {config.root} for changes...{_RESET}")

    lines.append("")

    print("\n".join(lines), file=sys.stderr)
