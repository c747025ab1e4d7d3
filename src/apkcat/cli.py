"""apkcat CLI - APK repository catalog manager.

Usage:
    apkcat update               # Fetch the index of every enabled repository
    apkcat status               # Show repositories and cache state
    apkcat search <term...>     # Search available apps
    apkcat show <id...>         # Show detailed info about apps
    apkcat list categories      # List all categories
    apkcat suggest <id...>      # Show the package that would be installed
    apkcat upgrades --installed installed.json
    apkcat download <id...>     # Download package files
    apkcat repo [add|remove|enable|disable] ...
    apkcat clean [index|cache]
"""

from __future__ import annotations

import argparse
import logging

from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .commands import add_commands, run_command

console = Console(stderr=True)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="apkcat",
        description="apkcat: local catalog manager for APK repositories",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("--version", action="version", version=f"apkcat {__version__}")

    sub = parser.add_subparsers(dest="subcmd")
    add_commands(sub)

    args = parser.parse_args()
    setup_logging(args.verbose)

    result = run_command(args)
    if result == -1:
        parser.print_help()
        raise SystemExit(2)
    raise SystemExit(result)


if __name__ == "__main__":
    main()
