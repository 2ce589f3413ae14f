"""
Safety and sandbox checks for tool execution.
"""
from __future__ import annotations

import re
from pathlib import Path


SENSITIVE_PATHS = ("/etc", "/var", "/usr", "/root", "/home/root", "/proc", "/sys", "/boot", "/dev")


class Safety:
    def __init__(self, workspace: Path, strict: bool = True):
        self.workspace = workspace.resolve()
        self.strict = strict
        self.block_patterns = [
            r"rm -rf /",
            r":\s*>/dev/sd",
            r"\bmkfs\b",
            r":\(\)\s*\{",
        ]

    def resolve(self, relative: str | Path) -> Path:
        """Resolve a workspace-relative path and check it."""
        path = (self.workspace / relative).resolve()
        self.check_path(path)
        return path

    def check_path(self, path: Path):
        path = path.resolve()
        if not self.strict:
            return
        if not path.is_relative_to(self.workspace):
            raise PermissionError(f"Access denied: path {path} is outside workspace {self.workspace}")
        if is_sensitive(path) and not is_sensitive(self.workspace):
            raise PermissionError(f"Access denied: {path} is a sensitive system directory")

    def check_workspace(self):
        if self.strict and is_sensitive(self.workspace):
            raise PermissionError(f"Access denied: refusing to run commands in {self.workspace}")

    def check_command(self, cmd: str):
        for pat in self.block_patterns:
            if re.search(pat, cmd):
                raise PermissionError(f"Command blocked by safety rule: {pat}")


def is_sensitive(path: Path) -> bool:
    text = path.as_posix()
    return any(text == p or text.startswith(p + "/") for p in SENSITIVE_PATHS)
