"""
Entry point for the roxy CLI.
"""
from __future__ import annotations

import argparse

from ..core.config import load_settings
from ..core.errors import ConfigError
from ..core.logging_utils import setup_logging
from . import commands


def main(argv=None):
    parser = argparse.ArgumentParser(prog="roxy")
    subparsers = parser.add_subparsers(dest="command")
    commands.register(subparsers)
    args = parser.parse_args(argv)
    try:
        settings = load_settings()
    except ConfigError as exc:
        raise SystemExit(f"Configuration error: {exc}")
    setup_logging(settings)
    commands.dispatch(args, settings)


if __name__ == "__main__":
    main()
