from __future__ import annotations

from ...core.session import SessionManager


def add_sessions(subparsers):
    parser = subparsers.add_parser("sessions", help="List stored sessions")
    parser.add_argument("--delete", metavar="KEY", help="Delete the session with this key")
    parser.set_defaults(func=run_sessions)


def run_sessions(args, settings):
    manager = SessionManager(settings.session_dir)
    if args.delete:
        if manager.delete(args.delete):
            print(f"Deleted {args.delete}")
        else:
            print(f"No session named {args.delete}")
        return
    keys = manager.list_keys()
    if not keys:
        print(f"No sessions found in {settings.session_dir}")
        return
    print(f"Sessions in {settings.session_dir}:")
    for key in keys:
        print(f"- {key}")
