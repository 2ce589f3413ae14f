from __future__ import annotations

from .agent_cmd import add_agent
from .onboard_cmd import add_onboard
from .sessions_cmd import add_sessions
from .web_cmd import add_web


def register(subparsers):
    add_agent(subparsers)
    add_onboard(subparsers)
    add_sessions(subparsers)
    add_web(subparsers)


def dispatch(args, settings):
    if not hasattr(args, "func"):
        raise SystemExit("No command provided")
    args.func(args, settings)
