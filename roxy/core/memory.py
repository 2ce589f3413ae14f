"""
Long-term memory stored as MEMORY.md in the workspace.
"""
from __future__ import annotations

import logging
from pathlib import Path


MEMORY_FILENAME = "MEMORY.md"


class Memory:
    def __init__(self, workspace: Path):
        self.path = workspace / MEMORY_FILENAME
        self.logger = logging.getLogger(__name__)

    def get(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as exc:
            self.logger.warning("Could not read memory file %s, using empty memory: %s", self.path, exc)
            return ""
