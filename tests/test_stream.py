"""
Tests for the event-stream decoder
"""

import json

import pytest

from roxy.core.stream import StreamDecoder
from tests.fakes import content_delta, sse, tool_delta


async def chunks_of(*parts):
    for part in parts:
        yield part


def split_every(data: bytes, size: int):
    return [data[i:i + size] for i in range(0, len(data), size)]


LIST_FILES_STREAM = sse(
    content_delta("Let me "),
    content_delta("look — ok ✓"),
    tool_delta(0, id="call_1", name="listDir", arguments=""),
    tool_delta(0, arguments='{"dirPath":'),
    tool_delta(0, arguments='"."}'),
    tool_delta(1, id="call_2", name="read", arguments='{"filePath"'),
    tool_delta(1, name="File", arguments=': "a.txt"}'),
).encode("utf-8")


def snapshot(message):
    return message.to_api()


class TestStreamDecoder:
    """Test StreamDecoder"""

    @pytest.mark.asyncio
    async def test_content_only(self):
        body = sse(content_delta("Hello"), content_delta(", world"))
        message = await StreamDecoder().decode(chunks_of(body))
        assert message.role == "assistant"
        assert message.content == "Hello, world"
        assert message.tool_calls is None

    @pytest.mark.asyncio
    async def test_list_files_scenario(self):
        body = sse(
            tool_delta(0, id="call_1", name="listDir", arguments=""),
            tool_delta(0, arguments='{"dirPath":"."}'),
        )
        message = await StreamDecoder().decode(chunks_of(body.encode()))
        assert message.content is None
        assert len(message.tool_calls) == 1
        call = message.tool_calls[0]
        assert call.id == "call_1"
        assert call.function.name == "listDir"
        assert call.function.arguments == '{"dirPath":"."}'

    @pytest.mark.parametrize("size", [1, 2, 3, 5, 7, 16, 64, 1000])
    def test_split_at_arbitrary_byte_boundaries(self, size):
        whole = StreamDecoder().decode_sync([LIST_FILES_STREAM])
        split = StreamDecoder().decode_sync(split_every(LIST_FILES_STREAM, size))
        assert snapshot(split) == snapshot(whole)
        assert split.content == "Let me look — ok ✓"

    def test_every_two_way_split_matches_single_chunk(self):
        expected = snapshot(StreamDecoder().decode_sync([LIST_FILES_STREAM]))
        for cut in range(1, len(LIST_FILES_STREAM)):
            parts = [LIST_FILES_STREAM[:cut], LIST_FILES_STREAM[cut:]]
            assert snapshot(StreamDecoder().decode_sync(parts)) == expected, cut

    @pytest.mark.parametrize("pieces", [1, 2, 3, 5, 10])
    def test_arguments_across_n_deltas_concatenate(self, pieces):
        arguments = json.dumps({"filePath": "notes/today.md", "content": "line one\nline two"})
        step = -(-len(arguments) // pieces)
        fragments = [arguments[i:i + step] for i in range(0, len(arguments), step)]
        events = [tool_delta(0, id="call_9", name="writeFile", arguments=fragments[0])]
        events += [tool_delta(0, arguments=f) for f in fragments[1:]]
        message = StreamDecoder().decode_sync([sse(*events)])
        assert message.tool_calls[0].function.arguments == arguments

    def test_tool_calls_ordered_by_index(self):
        body = sse(
            tool_delta(2, id="c", name="third", arguments="{}"),
            tool_delta(0, id="a", name="first", arguments="{}"),
            tool_delta(1, id="b", name="second", arguments="{}"),
        )
        message = StreamDecoder().decode_sync([body])
        assert [c.id for c in message.tool_calls] == ["a", "b", "c"]

    def test_id_is_set_once(self):
        body = sse(
            tool_delta(0, id="call_first", name="listDir"),
            tool_delta(0, id="call_second", arguments="{}"),
        )
        message = StreamDecoder().decode_sync([body])
        assert message.tool_calls[0].id == "call_first"

    def test_name_fragments_are_appended(self):
        body = sse(tool_delta(0, id="x", name="list"), tool_delta(0, name="Dir"))
        message = StreamDecoder().decode_sync([body])
        assert message.tool_calls[0].function.name == "listDir"

    def test_slots_without_names_are_omitted(self):
        body = sse(content_delta("hi"), tool_delta(0, id="x", arguments="{}"))
        message = StreamDecoder().decode_sync([body])
        assert message.tool_calls is None
        assert message.content == "hi"

    def test_malformed_payload_is_skipped(self, caplog):
        body = "data: {not json\n\n" + sse(content_delta("still here"))
        message = StreamDecoder().decode_sync([body])
        assert message.content == "still here"
        assert "malformed" in caplog.text

    def test_done_marker_stops_decoding(self):
        body = sse(content_delta("before")) + sse(content_delta("after"), done=False)
        message = StreamDecoder().decode_sync([body])
        assert message.content == "before"

    @pytest.mark.asyncio
    async def test_done_marker_stops_consuming_source(self):
        consumed = []

        async def source():
            for part in [sse(content_delta("a")), "data: never\n"]:
                consumed.append(part)
                yield part

        message = await StreamDecoder().decode(source())
        assert message.content == "a"
        assert len(consumed) == 1

    def test_missing_done_marker_finalizes(self):
        body = sse(content_delta("partial"), tool_delta(0, id="c1", name="listDir", arguments="{}"), done=False)
        message = StreamDecoder().decode_sync([body])
        assert message.content == "partial"
        assert message.tool_calls[0].id == "c1"

    def test_unterminated_last_line_is_processed(self):
        body = "data: " + json.dumps(content_delta("tail"))
        message = StreamDecoder().decode_sync([body])
        assert message.content == "tail"

    def test_non_data_lines_ignored(self):
        body = ": keep-alive\nevent: message\nid: 4\n\r\n" + sse(content_delta("ok")).replace("\n", "\r\n")
        message = StreamDecoder().decode_sync([body])
        assert message.content == "ok"

    def test_payload_without_choices_ignored(self):
        body = sse({"usage": {"total_tokens": 3}}, {"choices": []}, content_delta("x"))
        assert StreamDecoder().decode_sync([body]).content == "x"

    def test_delta_callback_receives_each_fragment_once_in_order(self):
        seen = []
        body = sse(content_delta("a"), content_delta(""), content_delta("b"), content_delta("c")).encode()
        message = StreamDecoder(seen.append).decode_sync(split_every(body, 3))
        assert seen == ["a", "b", "c"]
        assert message.content == "abc"

    @pytest.mark.asyncio
    async def test_source_error_propagates(self):
        async def broken():
            yield sse(content_delta("half"), done=False)
            raise ConnectionResetError("peer went away")

        with pytest.raises(ConnectionResetError):
            await StreamDecoder().decode(broken())

    @pytest.mark.parametrize(
        "payload",
        [
            {"choices": [{"delta": "oops"}]},
            {"choices": [{"delta": {"tool_calls": "oops"}}]},
            {"choices": [{"delta": {"tool_calls": ["oops", 3]}}]},
            {"choices": [{"delta": {"tool_calls": [{"index": "0", "function": {"name": "x"}}]}}]},
            {"choices": [{"delta": {"tool_calls": [{"index": 0, "function": "listDir"}]}}]},
            {"choices": [{"delta": {"content": 42}}]},
        ],
    )
    def test_wrong_shaped_payload_is_skipped(self, payload, caplog):
        body = "data: " + json.dumps(payload) + "\n\n" + sse(content_delta("ok"))
        message = StreamDecoder().decode_sync([body])
        assert message.content == "ok"
        assert message.tool_calls is None

    def test_non_object_delta_is_logged(self, caplog):
        StreamDecoder().decode_sync(['data: {"choices":[{"delta":"oops"}]}\n\n' + sse(content_delta("ok"))])
        assert "non-object delta" in caplog.text

    def test_wrong_shaped_tool_call_keeps_siblings(self):
        body = sse({
            "choices": [{
                "delta": {
                    "tool_calls": [
                        "garbage",
                        {"index": 1, "id": "call_1", "function": {"name": "listDir", "arguments": "{}"}},
                    ],
                },
            }],
        })
        message = StreamDecoder().decode_sync([body])
        assert [c.id for c in message.tool_calls] == ["call_1"]
