"""
Conversation data model: messages, tool calls, tool invocations and results.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .errors import HistoryInvariantError


SYSTEM_ROLE = "system"
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
TOOL_ROLE = "tool"

ROLES = (SYSTEM_ROLE, USER_ROLE, ASSISTANT_ROLE, TOOL_ROLE)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class FunctionCall:
    name: str = ""
    arguments: str = ""


@dataclass
class ToolCall:
    id: str = ""
    function: FunctionCall = field(default_factory=FunctionCall)

    @property
    def name(self) -> str:
        return self.function.name

    @property
    def arguments(self) -> str:
        return self.function.arguments

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.function.name, "arguments": self.function.arguments},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCall":
        fn = data.get("function") or {}
        return cls(
            id=data.get("id") or "",
            function=FunctionCall(name=fn.get("name") or "", arguments=fn.get("arguments") or ""),
        )


@dataclass
class Message:
    role: str
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None
    timestamp: str = field(default_factory=_now)

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role {self.role!r}")
        if self.role == TOOL_ROLE and not self.tool_call_id:
            raise ValueError("Tool messages require a tool_call_id")

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(SYSTEM_ROLE, content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(USER_ROLE, content)

    @classmethod
    def assistant(cls, content: Optional[str], tool_calls: Optional[List[ToolCall]] = None) -> "Message":
        return cls(ASSISTANT_ROLE, content, tool_calls=list(tool_calls) if tool_calls else None)

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "Message":
        return cls(TOOL_ROLE, content, tool_call_id=tool_call_id)

    def to_api(self) -> Dict[str, Any]:
        """Wire form sent to the completion endpoint."""
        msg: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            msg["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id:
            msg["tool_call_id"] = self.tool_call_id
        return msg

    def to_record(self) -> Dict[str, Any]:
        record = self.to_api()
        record["timestamp"] = self.timestamp
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Message":
        calls = record.get("tool_calls")
        return cls(
            role=record["role"],
            content=record.get("content"),
            tool_calls=[ToolCall.from_dict(c) for c in calls] if calls else None,
            tool_call_id=record.get("tool_call_id"),
            timestamp=record.get("timestamp") or _now(),
        )


@dataclass
class ToolInvocation:
    name: str
    arguments: str = "{}"
    id: Optional[str] = None
    # set when the caller already failed to parse the original arguments
    parse_error: Optional[str] = None


@dataclass
class ToolResult:
    name: str
    tool_call_id: str
    result: Any
    ok: bool = True

    def to_content(self) -> str:
        """Stringified payload for the tool message fed back to the model."""
        if isinstance(self.result, str):
            return self.result
        return json.dumps(self.result, ensure_ascii=False)


def check_tool_pairing(messages: Iterable[Message]) -> None:
    """Raise HistoryInvariantError unless every tool message answers a call of the
    nearest preceding assistant message."""
    open_ids: set[str] | None = None
    for position, msg in enumerate(messages):
        if msg.role == ASSISTANT_ROLE:
            open_ids = {call.id for call in msg.tool_calls or []}
        elif msg.role == TOOL_ROLE:
            if open_ids is None or msg.tool_call_id not in open_ids:
                raise HistoryInvariantError(
                    f"tool message at position {position} has tool_call_id {msg.tool_call_id!r} "
                    "with no matching call in the preceding assistant message"
                )
