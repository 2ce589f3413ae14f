from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import List, Sequence, Tuple, Union

from ..core.safety import Safety
from .registry import Tool


logger = logging.getLogger(__name__)

OPTIONS_SCHEMA = {
    "type": "object",
    "properties": {
        "timeout": {"type": "number", "description": "Timeout in milliseconds (default: 10000)"},
        "maxBuffer": {"type": "number", "description": "Max output size in bytes (default: 1048576)"},
    },
    "description": "Additional options for command execution",
}


def call_options(args: dict, timeout: float, max_output: int) -> Tuple[float, int]:
    """Per-call overrides: options.timeout in milliseconds, options.maxBuffer in bytes."""
    options = args.get("options") or {}
    if not isinstance(options, dict):
        raise ValueError("options must be an object")
    if options.get("timeout") is not None:
        value = options["timeout"]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValueError("options.timeout must be a positive number of milliseconds")
        timeout = value / 1000
    if options.get("maxBuffer") is not None:
        value = options["maxBuffer"]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValueError("options.maxBuffer must be a positive number of bytes")
        max_output = int(value)
    return timeout, max_output


def run_process(cmd: Union[str, Sequence[str]], cwd: Path, timeout: float, max_output: int) -> dict:
    shell = isinstance(cmd, str)
    label = cmd if shell else shlex.join(cmd)
    try:
        result = subprocess.run(
            cmd,
            shell=shell,
            cwd=cwd,
            capture_output=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.info("Command timed out after %ss: %s", timeout, label)
        return {"success": False, "error": f"Command timed out after {timeout}s"}
    output = (result.stdout + result.stderr)[:max_output].decode("utf-8", errors="replace")
    logger.info("Command exit=%s: %s", result.returncode, label)
    if result.returncode != 0:
        return {"success": False, "error": f"Command failed with exit code {result.returncode}: {output}"}
    return {"success": True, "output": output}


def make(safety: Safety, timeout: float = 10.0, max_output: int = 1024 * 1024) -> List[Tool]:
    def run_command(args: dict, workspace: Path) -> dict:
        cmd = args["command"]
        call_timeout, call_max = call_options(args, timeout, max_output)
        safety.check_workspace()
        safety.check_command(cmd)
        return run_process(cmd, safety.workspace, call_timeout, call_max)

    def execute_command(args: dict, workspace: Path) -> dict:
        command = args["command"]
        argv = args.get("args") or []
        if not isinstance(command, str) or not command:
            raise ValueError("command must be a non-empty string")
        if not isinstance(argv, list) or not all(isinstance(a, str) for a in argv):
            raise ValueError("args must be a list of strings")
        call_timeout, call_max = call_options(args, timeout, max_output)
        safety.check_workspace()
        safety.check_command(shlex.join([command, *argv]))
        return run_process([command, *argv], safety.workspace, call_timeout, call_max)

    return [
        Tool(
            name="runCommand",
            description="Run a shell command in the workspace directory and return its combined output",
            parameters={
                "type": "object",
                "properties": {
                    "command": {"type": "string", "description": "Shell command line to execute (pipes and redirects allowed)"},
                    "options": OPTIONS_SCHEMA,
                },
                "required": ["command"],
            },
            execute=run_command,
        ),
        Tool(
            name="executeCommand",
            description="Execute a program with an argument list in the workspace, without a shell",
            parameters={
                "type": "object",
                "properties": {
                    "command": {"type": "string", "description": "Program to execute"},
                    "args": {"type": "array", "items": {"type": "string"}, "description": "Arguments for the program"},
                    "options": OPTIONS_SCHEMA,
                },
                "required": ["command", "args"],
            },
            execute=execute_command,
        ),
    ]
