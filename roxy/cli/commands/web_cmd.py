from __future__ import annotations

import os

import uvicorn

from ...core.colors import success
from ...web.server import create_app


def add_web(subparsers):
    parser = subparsers.add_parser("web", help="Start the WebSocket chat server")
    parser.add_argument("-p", "--port", type=int, default=int(os.getenv("PORT", "3000")), help="Port to listen on (default 3000)")
    parser.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"), help="Host to bind (default 127.0.0.1)")
    parser.set_defaults(func=run_web)


def run_web(args, settings):
    app = create_app(settings)
    print(success(f"Roxy web server listening on http://{args.host}:{args.port}"))
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
