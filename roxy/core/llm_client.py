"""
Client for OpenAI-compatible chat completion endpoints.
Performs one completion exchange per call, streaming or not, and normalizes both
paths to a single assistant Message.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import Settings
from .errors import RequestFailure, StreamFailure, TransportFailure
from .messages import Message, ToolCall
from .stream import DeltaCallback, StreamDecoder


COMPLETIONS_PATH = "/chat/completions"


def completions_url(base_url: str) -> str:
    base = base_url.rstrip("/")
    if base.endswith(COMPLETIONS_PATH):
        return base
    return base + COMPLETIONS_PATH


def message_from_choice(data: Dict[str, Any]) -> Message:
    """Build an assistant Message from a non-streamed response body."""
    try:
        raw = data["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as exc:
        raise TransportFailure(f"Malformed completion response: missing choices[0].message ({exc})") from exc
    calls = [ToolCall.from_dict(c) for c in raw.get("tool_calls") or []]
    if not any(call.function.name for call in calls):
        calls = []
    return Message.assistant(raw.get("content") or None, calls or None)


class CompletionClient:
    def __init__(self, settings: Settings, http: Optional[httpx.AsyncClient] = None, timeout: float | None = None):
        self.settings = settings
        self.url = completions_url(settings.base_url)
        # no read timeout: a stream may legitimately stay open for a long generation
        self.http = http or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))
        self.logger = logging.getLogger(__name__)
        self.logger.info("CompletionClient initialized with url=%s model=%s", self.url, settings.model)

    async def aclose(self):
        await self.http.aclose()

    def build_request(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        tools: Optional[List[dict]] = None,
        tool_choice: Optional[str] = None,
        stream: bool = True,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "messages": [m.to_api() for m in messages],
            "model": model or self.settings.model,
            "stream": stream,
        }
        if tools:
            body["tools"] = tools
            if tool_choice:
                body["tool_choice"] = tool_choice
        return body

    async def complete(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        tools: Optional[List[dict]] = None,
        tool_choice: Optional[str] = None,
        stream: Optional[bool] = None,
        on_delta: Optional[DeltaCallback] = None,
    ) -> Message:
        """Send one chat completion request and return the finalized assistant message."""
        stream = self.settings.stream if stream is None else stream
        body = self.build_request(messages, model, tools, tool_choice, stream)
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Accept": "text/event-stream" if stream else "application/json",
        }
        self.logger.debug("Sending completion with %d messages (stream=%s)", len(messages), stream)
        try:
            async with self.http.stream("POST", self.url, json=body, headers=headers) as resp:
                if not resp.is_success:
                    detail = await self._read_error_body(resp)
                    self.logger.error("Completion request failed: HTTP %s", resp.status_code)
                    raise RequestFailure(resp.status_code, detail)
                if stream:
                    return await self._read_stream(resp, on_delta)
                return await self._read_json(resp)
        except httpx.HTTPError as exc:
            raise TransportFailure(f"Completion request failed: {exc}") from exc

    async def _read_stream(self, resp: httpx.Response, on_delta: Optional[DeltaCallback]) -> Message:
        decoder = StreamDecoder(on_delta)
        try:
            return await decoder.decode(resp.aiter_bytes())
        except httpx.HTTPError as exc:
            self.logger.error("Event stream read failed: %s", exc)
            raise StreamFailure(f"Event stream read failed: {exc}") from exc

    async def _read_json(self, resp: httpx.Response) -> Message:
        raw = await resp.aread()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise TransportFailure(f"Completion response is not JSON: {exc}") from exc
        return message_from_choice(data)

    @staticmethod
    async def _read_error_body(resp: httpx.Response) -> str | None:
        try:
            raw = await resp.aread()
        except httpx.HTTPError:
            return None
        return raw.decode("utf-8", errors="replace").strip() or None
