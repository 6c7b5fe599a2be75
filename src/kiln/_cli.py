"""Kiln CLI — kiln dev / kiln build.

Entry point for the ``kiln`` command-line interface.  Running ``kiln``
without a command starts the dev loop.
"""

from __future__ import annotations

import argparse
import sys

from kiln._console import log_error
from kiln._errors import KilnError


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the kiln CLI."""
    parser = argparse.ArgumentParser(
        prog="kiln",
        description="Front-end asset builds with a watch / rebuild / reload loop.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # kiln dev
    dev_parser = subparsers.add_parser(
        "dev",
        help="Watch sources, rebuild on change, live-reload the browser",
    )
    dev_parser.add_argument("root", nargs="?", default=".", help="Project root directory")
    dev_parser.add_argument("--host", default=None, help="Bind address")
    dev_parser.add_argument("--port", type=int, default=None, help="Bind port (0 = any free port)")
    dev_parser.add_argument(
        "--notify", action="store_true", default=None, help="Desktop notification on errors",
    )
    dev_parser.add_argument(
        "--open", dest="open_browser", action="store_true", default=None,
        help="Open the browser on startup",
    )

    # kiln build
    build_parser = subparsers.add_parser(
        "build",
        help="Run the production asset build once",
    )
    build_parser.add_argument("root", nargs="?", default=".", help="Project root directory")

    return parser


def _get_version() -> str:
    """Get the package version."""
    from kiln import __version__

    return __version__


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    from kiln.app import build, dev

    try:
        if args.command == "build":
            report = build(root=args.root)
            if not report.ok:
                sys.exit(1)
        elif args.command == "dev":
            dev(
                root=args.root,
                host=args.host,
                port=args.port,
                notify=args.notify,
                open_browser=args.open_browser,
            )
        else:
            dev(root=".")
    except KilnError as exc:
        log_error(str(exc))
        sys.exit(1)


if __name__ == "__main__":
    main()
