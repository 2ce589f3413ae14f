"""
Tool registry with JSON-schema metadata and isolated, concurrent dispatch.
"""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..core.errors import ToolRegistrationError
from ..core.messages import ToolInvocation, ToolResult


TOOL_NAME_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
SUCCESS_MARKER = "success"


@dataclass(frozen=True)
class Tool:
    """A capability the model may invoke.

    ``execute`` receives the parsed arguments dict and the workspace path; it may be a
    plain function (run in a worker thread) or a coroutine function.
    """

    name: str
    description: str
    parameters: Dict[str, Any]
    execute: Callable[[Dict[str, Any], Path], Any]

    def definition(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


def new_call_id() -> str:
    return f"call_{uuid.uuid4()}"


def format_tool_output(output: Any) -> str:
    if output is None:
        return ""
    if isinstance(output, str):
        return output
    if isinstance(output, (dict, list)):
        return json.dumps(output, indent=2, ensure_ascii=False, default=str)
    return str(output)


def failure(error: str) -> Dict[str, Any]:
    return {"success": False, "error": error}


class ToolRegistry:
    def __init__(self, workspace: Path, tools: Iterable[Tool] = ()):
        self.workspace = workspace
        self.tools: Dict[str, Tool] = {}
        self.logger = logging.getLogger(__name__)
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool):
        validate_tool(tool)
        if tool.name in self.tools:
            raise ToolRegistrationError(f"Tool {tool.name!r} is already registered")
        self.tools[tool.name] = tool
        self.logger.debug("Registered tool %s", tool.name)

    def unregister(self, name: str) -> bool:
        return self.tools.pop(name, None) is not None

    def names(self) -> List[str]:
        return list(self.tools)

    def get_definitions(self) -> List[Dict[str, Any]]:
        return [tool.definition() for tool in self.tools.values()]

    async def execute(self, name: str, arguments: Dict[str, Any], id: Optional[str] = None) -> ToolResult:
        """Run one tool; every failure becomes a failed ToolResult."""
        call_id = id or new_call_id()
        tool = self.tools.get(name)
        if tool is None:
            self.logger.warning("Tool %s not found", name)
            return ToolResult(name, call_id, failure(f"Tool '{name}' not found"), ok=False)

        self.logger.info("Executing tool %s (%s)", name, call_id)
        try:
            if inspect.iscoroutinefunction(tool.execute):
                output = await tool.execute(arguments, self.workspace)
            else:
                output = await asyncio.to_thread(tool.execute, arguments, self.workspace)
        except Exception as exc:
            self.logger.warning("Tool %s failed: %s", name, exc)
            return ToolResult(name, call_id, failure(str(exc) or exc.__class__.__name__), ok=False)
        return self._normalize(name, call_id, output)

    async def execute_many(self, invocations: List[ToolInvocation]) -> List[ToolResult]:
        """Run invocations concurrently; results keep the input order."""
        return list(await asyncio.gather(*(self._run_invocation(inv) for inv in invocations)))

    async def _run_invocation(self, invocation: ToolInvocation) -> ToolResult:
        call_id = invocation.id or new_call_id()
        if invocation.parse_error is not None:
            return ToolResult(
                invocation.name,
                call_id,
                failure(f"Invalid arguments for tool '{invocation.name}': {invocation.parse_error}"),
                ok=False,
            )
        try:
            args = json.loads(invocation.arguments or "{}")
            if not isinstance(args, dict):
                raise ValueError("arguments must be a JSON object")
        except ValueError as exc:
            return ToolResult(
                invocation.name,
                call_id,
                failure(f"Invalid arguments for tool '{invocation.name}': {exc}"),
                ok=False,
            )
        return await self.execute(invocation.name, args, call_id)

    @staticmethod
    def _normalize(name: str, call_id: str, output: Any) -> ToolResult:
        if not isinstance(output, dict):
            return ToolResult(name, call_id, format_tool_output(output))
        if output.get("success") is False:
            return ToolResult(name, call_id, failure(str(output.get("error", "tool reported failure"))), ok=False)
        rest = {k: v for k, v in output.items() if k != "success"}
        if len(rest) == 1:
            return ToolResult(name, call_id, format_tool_output(next(iter(rest.values()))))
        return ToolResult(name, call_id, SUCCESS_MARKER)


def validate_tool(tool: Any):
    """Structural check of a tool descriptor, run once at registration."""
    if not isinstance(tool, Tool):
        raise ToolRegistrationError(f"Expected a Tool descriptor, got {type(tool).__name__}")
    if not isinstance(tool.name, str) or not TOOL_NAME_RE.match(tool.name):
        raise ToolRegistrationError(f"Invalid tool name {tool.name!r}")
    if not isinstance(tool.description, str):
        raise ToolRegistrationError(f"Tool {tool.name!r}: description must be a string")
    params = tool.parameters
    if not isinstance(params, dict) or params.get("type") != "object":
        raise ToolRegistrationError(f"Tool {tool.name!r}: parameters must be a JSON schema object")
    if not isinstance(params.get("properties", {}), dict):
        raise ToolRegistrationError(f"Tool {tool.name!r}: parameters.properties must be a mapping")
    if not callable(tool.execute):
        raise ToolRegistrationError(f"Tool {tool.name!r}: execute must be callable")
