"""
Turn orchestration: alternates model completions with concurrent tool execution until
the model answers without tool calls or the iteration bound is reached.
"""
from __future__ import annotations

import enum
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .context import ContextBuilder
from .errors import ArgumentParseFailure
from .llm_client import CompletionClient
from .messages import Message, ToolCall, ToolInvocation, ToolResult, check_tool_pairing
from .session import Session
from ..tools.registry import ToolRegistry, new_call_id


DEFAULT_MAX_ITERATIONS = 7
LIMIT_NOTICE = (
    "I stopped after {limit} rounds of tool calls without reaching a final answer. "
    "Ask me to continue if you want me to keep going."
)


class TurnState(enum.Enum):
    REQUESTING = "requesting"
    EXECUTING = "executing"
    DONE = "done"
    LIMIT_REACHED = "limit_reached"


@dataclass
class TurnOutcome:
    state: TurnState
    iterations: int
    reply: Optional[Message] = None


class TurnOrchestrator:
    def __init__(
        self,
        client: CompletionClient,
        tools: ToolRegistry,
        context: ContextBuilder,
        session: Session,
        model: Optional[str] = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        stream: Optional[bool] = None,
        on_delta: Optional[Callable[[str], None]] = None,
        on_tool_call: Optional[Callable[[ToolInvocation], None]] = None,
        on_tool_error: Optional[Callable[[ArgumentParseFailure], None]] = None,
        on_tool_result: Optional[Callable[[ToolResult], None]] = None,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.client = client
        self.tools = tools
        self.context = context
        self.session = session
        self.model = model
        self.max_iterations = max_iterations
        self.stream = stream
        self.on_delta = on_delta
        self.on_tool_call = on_tool_call
        self.on_tool_error = on_tool_error
        self.on_tool_result = on_tool_result
        self.state = TurnState.DONE
        self.logger = logging.getLogger(__name__)

    async def run_turn(self, user_input: str) -> TurnOutcome:
        """Append the user message and drive the turn to completion."""
        self.session.append(Message.user(user_input))
        return await self._drive()

    async def retry_turn(self) -> TurnOutcome:
        """Drive the turn again from the current history, e.g. after a transport failure."""
        if self.session.last_user_message() is None:
            raise ValueError("No user message to retry")
        return await self._drive()

    async def _drive(self) -> TurnOutcome:
        for iteration in range(1, self.max_iterations + 1):
            self.state = TurnState.REQUESTING
            self.logger.debug("Turn iteration %d with %d history messages", iteration, len(self.session.messages))
            reply = await self.client.complete(
                await self._build_context(),
                model=self.model,
                tools=self.tools.get_definitions() or None,
                tool_choice="auto",
                stream=self.stream,
                on_delta=self.on_delta,
            )

            if not reply.tool_calls:
                if reply.content:
                    self.session.append(reply)
                self.state = TurnState.DONE
                return TurnOutcome(self.state, iteration, reply)

            self.state = TurnState.EXECUTING
            invocations = [self._prepare(call) for call in reply.tool_calls]
            if self.on_tool_call:
                for invocation in invocations:
                    if invocation.parse_error is None:
                        self.on_tool_call(invocation)
            results = await self.tools.execute_many(invocations)

            self.session.append(Message.assistant(reply.content, reply.tool_calls))
            for result in results:
                self.session.append(Message.tool(result.tool_call_id, result.to_content()))
                if self.on_tool_result:
                    self.on_tool_result(result)

        self.logger.warning("Turn stopped after reaching the limit of %d iterations", self.max_iterations)
        notice = Message.assistant(LIMIT_NOTICE.format(limit=self.max_iterations))
        self.session.append(notice)
        self.state = TurnState.LIMIT_REACHED
        return TurnOutcome(self.state, self.max_iterations, notice)

    async def _build_context(self) -> List[Message]:
        built = self.context.build(self.session.messages)
        if inspect.isawaitable(built):
            built = await built
        messages = list(built)
        check_tool_pairing(messages)
        return messages

    def _prepare(self, call: ToolCall) -> ToolInvocation:
        # ids are assigned up front so assistant tool_calls and tool messages always pair
        if not call.id:
            call.id = new_call_id()
        raw = call.function.arguments
        try:
            parsed = json.loads(raw) if raw.strip() else {}
            if not isinstance(parsed, dict):
                raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
        except ValueError as exc:
            failure = ArgumentParseFailure(call.id, call.function.name, raw, str(exc))
            self.logger.warning("%s", failure)
            if self.on_tool_error:
                self.on_tool_error(failure)
            return ToolInvocation(call.function.name, "{}", call.id, parse_error=str(exc))
        return ToolInvocation(call.function.name, json.dumps(parsed), call.id)
