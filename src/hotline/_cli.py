"""Hotline CLI — hotline dev.

Entry point for the ``hotline`` command-line interface.
"""

from __future__ import annotations

import argparse
import sys


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the hotline CLI."""
    parser = argparse.ArgumentParser(
        prog="hotline",
        description="Hot Module Replacement server and debugger proxy for JavaScript bundlers.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # hotline dev
    dev_parser = subparsers.add_parser(
        "dev",
        help="Start the HMR server and debugger proxy",
    )
    dev_parser.add_argument("root", nargs="?", default=".", help="Project root directory")
    dev_parser.add_argument("--host", default=None, help="Bind address (default 127.0.0.1)")
    dev_parser.add_argument("--port", type=int, default=None, help="Bind port (default 8081)")
    dev_parser.add_argument(
        "--packager", default=None, help="Packager as module:attr (e.g. packager:create)",
    )
    dev_parser.add_argument("--hmr-path", default=None, help="HMR endpoint path")
    dev_parser.add_argument("--debugger-path", default=None, help="Debugger proxy path")
    dev_parser.add_argument(
        "--close-client-on-debugger-exit",
        action="store_true",
        default=None,
        help="Close the running app's connection when the debugger disconnects",
    )

    return parser


def _get_version() -> str:
    """Get the package version."""
    from hotline import __version__

    return __version__


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from hotline._errors import ConfigError
    from hotline.app import dev

    if args.command == "dev":
        try:
            dev(
                root=args.root,
                host=args.host,
                port=args.port,
                packager=args.packager,
                hmr_path=args.hmr_path,
                debugger_path=args.debugger_path,
                close_client_on_debugger_exit=args.close_client_on_debugger_exit,
            )
        except ConfigError as exc:
            print(f"  Config error: {exc}", file=sys.stderr)
            sys.exit(2)


if __name__ == "__main__":
    main()
