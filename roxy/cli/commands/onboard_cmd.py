from __future__ import annotations

from ...core.colors import success
from ...core.config import WORKSPACE_FILES, init_config


def add_onboard(subparsers):
    parser = subparsers.add_parser("onboard", help="Create the config file and seed the workspace")
    parser.set_defaults(func=run_onboard)


def run_onboard(args, settings):
    path = init_config(workspace=settings.workspace)
    print(success(f"Config: {path}"))
    for name in WORKSPACE_FILES:
        print(f"  {settings.workspace / name}")
    print("Set api_key under [providers.<name>] before running 'roxy agent'.")
