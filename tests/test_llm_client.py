"""
Tests for the completion client against a mocked HTTP transport
"""

import json

import httpx
import pytest

from roxy.core.errors import RequestFailure, StreamFailure, TransportFailure
from roxy.core.llm_client import CompletionClient, completions_url
from roxy.core.messages import Message
from tests.fakes import content_delta, sse, tool_delta


class ChunkedBody(httpx.AsyncByteStream):
    """Response body delivered in fixed chunks, optionally failing afterwards."""

    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error


def make_client(settings, handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CompletionClient(settings, http=http)


TOOLS = [{"type": "function", "function": {"name": "listDir", "description": "list", "parameters": {"type": "object", "properties": {}}}}]


class TestCompletionsUrl:
    def test_appends_path(self):
        assert completions_url("https://api.deepseek.com") == "https://api.deepseek.com/chat/completions"
        assert completions_url("http://localhost:11434/v1/") == "http://localhost:11434/v1/chat/completions"

    def test_keeps_full_endpoint(self):
        url = "https://proxy.test/v1/chat/completions"
        assert completions_url(url) == url


class TestCompletionClient:
    """Test CompletionClient"""

    @pytest.mark.asyncio
    async def test_request_shape(self, settings):
        captured = {}

        def handler(request):
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "hi"}}]})

        client = make_client(settings, handler)
        await client.complete([Message.user("hello")], tools=TOOLS, tool_choice="auto", stream=False)

        assert captured["url"] == "https://llm.test/v1/chat/completions"
        assert captured["auth"] == "Bearer sk-test"
        body = captured["body"]
        assert body["model"] == "test-model"
        assert body["stream"] is False
        assert body["messages"] == [{"role": "user", "content": "hello"}]
        assert body["tools"] == TOOLS
        assert body["tool_choice"] == "auto"

    @pytest.mark.asyncio
    async def test_tools_omitted_when_absent(self, settings):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "hi"}}]})

        client = make_client(settings, handler)
        await client.complete([Message.user("hello")], tool_choice="auto", stream=False)
        assert "tools" not in captured["body"]
        assert "tool_choice" not in captured["body"]

    @pytest.mark.asyncio
    async def test_streaming_forwards_deltas(self, settings):
        body = sse(content_delta("Hel"), content_delta("lo")).encode()

        def handler(request):
            return httpx.Response(200, stream=ChunkedBody([body[:7], body[7:20], body[20:]]))

        seen = []
        client = make_client(settings, handler)
        message = await client.complete([Message.user("hi")], stream=True, on_delta=seen.append)
        assert message.content == "Hello"
        assert seen == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_streaming_and_plain_paths_agree(self, settings):
        streamed = sse(
            content_delta("Checking."),
            tool_delta(0, id="call_1", name="listDir", arguments=""),
            tool_delta(0, arguments='{"dirPath":"."}'),
        ).encode()
        plain = {
            "choices": [{
                "message": {
                    "role": "assistant",
                    "content": "Checking.",
                    "tool_calls": [{
                        "id": "call_1",
                        "type": "function",
                        "function": {"name": "listDir", "arguments": '{"dirPath":"."}'},
                    }],
                },
            }],
        }

        def handler(request):
            if json.loads(request.content)["stream"]:
                return httpx.Response(200, stream=ChunkedBody([streamed]))
            return httpx.Response(200, json=plain)

        client = make_client(settings, handler)
        a = await client.complete([Message.user("list")], stream=True)
        b = await client.complete([Message.user("list")], stream=False)
        assert a.to_api() == b.to_api()

    @pytest.mark.asyncio
    async def test_plain_empty_content_is_none(self, settings):
        def handler(request):
            return httpx.Response(200, json={"choices": [{"message": {"content": ""}}]})

        message = await make_client(settings, handler).complete([Message.user("x")], stream=False)
        assert message.content is None
        assert message.tool_calls is None

    @pytest.mark.asyncio
    async def test_non_2xx_raises_request_failure_with_body(self, settings):
        def handler(request):
            return httpx.Response(401, text='{"error": "invalid api key"}')

        client = make_client(settings, handler)
        with pytest.raises(RequestFailure) as excinfo:
            await client.complete([Message.user("x")], stream=True)
        assert excinfo.value.status_code == 401
        assert "invalid api key" in excinfo.value.body
        assert "401" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_read_error_mid_stream_is_fatal(self, settings):
        partial = sse(content_delta("half"), done=False).encode()

        def handler(request):
            return httpx.Response(200, stream=ChunkedBody([partial], error=httpx.ReadError("connection reset")))

        client = make_client(settings, handler)
        with pytest.raises(StreamFailure):
            await client.complete([Message.user("x")], stream=True)

    @pytest.mark.asyncio
    async def test_connect_error_is_transport_failure(self, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        client = make_client(settings, handler)
        with pytest.raises(TransportFailure):
            await client.complete([Message.user("x")], stream=False)

    @pytest.mark.asyncio
    async def test_malformed_json_body(self, settings):
        def handler(request):
            return httpx.Response(200, text="<html>gateway</html>")

        client = make_client(settings, handler)
        with pytest.raises(TransportFailure):
            await client.complete([Message.user("x")], stream=False)

    @pytest.mark.asyncio
    async def test_stream_flag_defaults_to_settings(self, settings):
        captured = {}
        settings.stream = False

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

        await make_client(settings, handler).complete([Message.user("x")])
        assert captured["body"]["stream"] is False
