"""
Server-sent-event decoder for streamed chat completions.

Turns an arbitrarily chunked ``data: <json>`` event stream into one finalized assistant
Message, merging content deltas and index-keyed tool-call fragments as they arrive.
"""
from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterable, Callable, Dict, Iterable, List, Optional, Union

from .messages import FunctionCall, Message, ToolCall


DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"

Chunk = Union[bytes, str]
DeltaCallback = Callable[[str], None]

logger = logging.getLogger(__name__)


class StreamDecoder:
    """Incremental decoder; one instance per streamed response."""

    def __init__(self, on_delta: Optional[DeltaCallback] = None):
        self.on_delta = on_delta
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._content: List[str] = []
        self._slots: Dict[int, ToolCall] = {}
        self.terminal = False

    async def decode(self, chunks: AsyncIterable[Chunk]) -> Message:
        """Consume an async chunk source until the done marker or its end."""
        async for chunk in chunks:
            if self.feed(chunk):
                break
        return self.finish()

    def decode_sync(self, chunks: Iterable[Chunk]) -> Message:
        for chunk in chunks:
            if self.feed(chunk):
                break
        return self.finish()

    def feed(self, chunk: Chunk) -> bool:
        """Add one chunk; returns True once the done marker has been seen."""
        if self.terminal:
            return True
        text = self._utf8.decode(chunk) if isinstance(chunk, (bytes, bytearray)) else chunk
        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")
        for line in lines:
            self._process_line(line)
            if self.terminal:
                break
        return self.terminal

    def finish(self) -> Message:
        if not self.terminal:
            # stream ended without the done marker; flush whatever is left
            self._buffer += self._utf8.decode(b"", final=True)
            if self._buffer:
                self._process_line(self._buffer)
            self._buffer = ""
            self.terminal = True
        content = "".join(self._content)
        tool_calls = [self._slots[index] for index in sorted(self._slots)]
        if not any(call.function.name for call in tool_calls):
            tool_calls = []
        return Message.assistant(content or None, tool_calls or None)

    def _process_line(self, line: str) -> None:
        line = line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return
        payload = line[len(DATA_PREFIX):]
        if payload.startswith(" "):
            payload = payload[1:]
        if payload.strip() == DONE_MARKER:
            self.terminal = True
            return
        if not payload.strip():
            return
        try:
            event = json.loads(payload)
        except json.JSONDecodeError as exc:
            logger.warning("Skipping malformed stream payload (%s): %.200s", exc, payload)
            return
        self._merge(event)

    def _merge(self, event: Any) -> None:
        if not isinstance(event, dict):
            return
        choices = event.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return
        delta = choices[0].get("delta") or {}
        if not isinstance(delta, dict):
            logger.warning("Skipping stream payload with a non-object delta: %.200s", delta)
            return

        fragment = delta.get("content")
        if isinstance(fragment, str) and fragment:
            self._content.append(fragment)
            if self.on_delta:
                self.on_delta(fragment)

        tool_calls = delta.get("tool_calls") or []
        if not isinstance(tool_calls, list):
            logger.warning("Skipping non-list tool_calls delta: %.200s", tool_calls)
            return
        for call_delta in tool_calls:
            if not isinstance(call_delta, dict):
                logger.warning("Skipping non-object tool call delta: %.200s", call_delta)
                continue
            self._merge_tool_call(call_delta)

    def _merge_tool_call(self, call_delta: Dict[str, Any]) -> None:
        index = call_delta.get("index", 0)
        fn = call_delta.get("function") or {}
        if not isinstance(index, int) or not isinstance(fn, dict):
            logger.warning("Skipping malformed tool call delta: %.200s", call_delta)
            return
        slot = self._slots.get(index)
        if slot is None:
            slot = self._slots[index] = ToolCall(function=FunctionCall())
        if isinstance(call_delta.get("id"), str) and call_delta["id"] and not slot.id:
            slot.id = call_delta["id"]
        if isinstance(fn.get("name"), str):
            slot.function.name += fn["name"]
        if isinstance(fn.get("arguments"), str):
            slot.function.arguments += fn["arguments"]
