"""Command-line options of the agent."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from dataclasses import dataclass

VERSION = "0.0.2"


@dataclass(frozen=True)
class Args:
    """Parsed command-line options."""

    server: str
    password: str
    debug: bool = False
    tls: bool = False


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the agent command."""
    parser = argparse.ArgumentParser(prog="nezha-agent", description="Nezha Agent")
    parser.add_argument("-s", "--server", required=True, help="Frontend Server Address")
    parser.add_argument("-p", "--password", required=True, help="Token Setting")
    parser.add_argument("--debug", action="store_true", help="Enable Debug Log")
    parser.add_argument("--tls", action="store_true", help="Enable Tls Connect")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> Args:
    """Parse ``argv`` (or the process arguments) into :class:`Args`."""
    namespace = build_parser().parse_args(argv)
    return Args(
        server=namespace.server,
        password=namespace.password,
        debug=namespace.debug,
        tls=namespace.tls,
    )