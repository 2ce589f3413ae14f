from __future__ import annotations

from pathlib import Path
from typing import List

from ..core.safety import Safety
from .registry import Tool


def make(safety: Safety) -> List[Tool]:
    def read_file(args: dict, workspace: Path) -> dict:
        path = safety.resolve(args["filePath"])
        return {"success": True, "content": path.read_text(encoding="utf-8")}

    def write_file(args: dict, workspace: Path) -> dict:
        path = safety.resolve(args["filePath"])
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(args["content"], encoding="utf-8")
        return {"success": True, "path": path.relative_to(safety.workspace).as_posix()}

    def list_dir(args: dict, workspace: Path) -> dict:
        path = safety.resolve(args.get("dirPath") or ".")
        return {"success": True, "files": sorted(p.name for p in path.iterdir())}

    def get_workspace(args: dict, workspace: Path) -> dict:
        return {"success": True, "workspace": str(workspace)}

    return [
        Tool(
            name="readFile",
            description="Read content from a file in the workspace",
            parameters={
                "type": "object",
                "properties": {
                    "filePath": {"type": "string", "description": "Path to the file to read (relative to workspace)"},
                },
                "required": ["filePath"],
            },
            execute=read_file,
        ),
        Tool(
            name="writeFile",
            description="Write content to a file in the workspace",
            parameters={
                "type": "object",
                "properties": {
                    "filePath": {"type": "string", "description": "Path to the file to write (relative to workspace)"},
                    "content": {"type": "string", "description": "Content to write to the file"},
                },
                "required": ["filePath", "content"],
            },
            execute=write_file,
        ),
        Tool(
            name="listDir",
            description="List contents of a directory in the workspace",
            parameters={
                "type": "object",
                "properties": {
                    "dirPath": {
                        "type": "string",
                        "description": "Directory to list, relative to the workspace (defaults to the workspace root)",
                    },
                },
                "required": [],
            },
            execute=list_dir,
        ),
        Tool(
            name="getWorkspace",
            description="Get the current workspace path",
            parameters={"type": "object", "properties": {}, "required": []},
            execute=get_workspace,
        ),
    ]
