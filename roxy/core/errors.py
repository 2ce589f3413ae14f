"""
Exception hierarchy and failure records for the agent core.
"""
from __future__ import annotations

from dataclasses import dataclass


class RoxyError(Exception):
    """Base class for all roxy errors."""


class ConfigError(RoxyError):
    pass


class TransportFailure(RoxyError):
    """The completion exchange failed; the current turn is aborted."""


class RequestFailure(TransportFailure):
    def __init__(self, status_code: int, body: str | None = None):
        message = f"Completion request failed with HTTP {status_code}"
        if body:
            message = f"{message}: {body}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class StreamFailure(TransportFailure):
    """Reading the event stream failed before it finalized."""


class ToolRegistrationError(RoxyError):
    pass


class HistoryInvariantError(RoxyError):
    """A tool message is not paired with a tool call of the preceding assistant message."""


@dataclass(frozen=True)
class ArgumentParseFailure:
    """A tool call whose arguments string could not be parsed into a JSON object."""

    tool_call_id: str
    name: str
    raw_arguments: str
    reason: str

    def __str__(self) -> str:
        return f"Invalid arguments for tool '{self.name}': {self.reason}"
