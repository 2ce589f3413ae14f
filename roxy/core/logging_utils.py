"""
Logging setup for roxy.
Creates console and file handlers with structured format.
"""
from __future__ import annotations

import logging

from .config import Settings


def setup_logging(settings: Settings):
    log_dir = settings.data_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "roxy.log"

    fmt = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    console = logging.StreamHandler()
    # console: warnings only; file: everything at log_level
    console.setLevel(logging.WARNING)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=fmt,
        handlers=[
            console,
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger(__name__).info("Logging initialized at %s", log_file)
