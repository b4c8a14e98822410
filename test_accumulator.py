"""
Tests for folding streamed chunks back into a complete response.
"""

import pytest

from src.llm.models import ChatCompletionChunk
from src.llm.streaming import ChunkAccumulator, MessageConsumer, StreamOrchestrator


def chunk(choices=None, **fields) -> ChatCompletionChunk:
    data = {"id": "chatcmpl-7", "model": "doubao-pro-32k", "created": 1718000000}
    data.update(fields)
    data["choices"] = choices if choices is not None else []
    return ChatCompletionChunk.model_validate(data)


def delta(index=0, finish_reason=None, **delta_fields) -> dict:
    return {"index": index, "delta": delta_fields, "finish_reason": finish_reason}


class TestContent:
    """Content deltas concatenate per choice."""

    def test_concatenates_content(self):
        acc = ChunkAccumulator()
        acc.on_message(chunk([delta(role="assistant", content="Hel")]))
        acc.on_message(chunk([delta(content="lo")]))
        acc.on_message(chunk([delta(finish_reason="stop")]))
        acc.on_end()

        response = acc.to_response()
        assert acc.content == "Hello"
        assert response.id == "chatcmpl-7"
        assert response.model == "doubao-pro-32k"
        assert response.choices[0].message.role == "assistant"
        assert response.choices[0].message.content == "Hello"
        assert response.choices[0].finish_reason == "stop"
        assert acc.chunk_count == 3

    def test_multiple_choices_are_kept_apart(self):
        acc = ChunkAccumulator()
        acc.on_message(chunk([delta(0, content="a"), delta(1, content="x")]))
        acc.on_message(chunk([delta(1, content="y"), delta(0, content="b")]))
        acc.on_end()

        response = acc.to_response()
        assert [c.index for c in response.choices] == [0, 1]
        assert response.choices[0].message.content == "ab"
        assert response.choices[1].message.content == "xy"

    def test_usage_chunk(self):
        acc = ChunkAccumulator()
        acc.on_message(chunk([delta(content="hi")]))
        acc.on_message(chunk(usage={
            "prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4,
        }))
        acc.on_end()

        assert acc.usage.total_tokens == 4
        assert acc.to_response().usage.prompt_tokens == 3

    def test_empty_content_is_none(self):
        acc = ChunkAccumulator()
        acc.on_message(chunk([delta(role="assistant")]))
        acc.on_end()
        assert acc.to_response().choices[0].message.content is None

    def test_partial_response_is_refused(self):
        acc = ChunkAccumulator()
        acc.on_message(chunk([delta(content="half")]))
        with pytest.raises(RuntimeError):
            acc.to_response()


class TestToolCalls:
    """Tool call fragments are rebuilt by index."""

    def test_reconstructs_tool_calls(self):
        acc = ChunkAccumulator()
        acc.on_message(chunk([delta(role="assistant", tool_calls=[
            {"index": 0, "id": "call_1", "type": "function",
             "function": {"name": "get_weather", "arguments": ""}},
        ])]))
        acc.on_message(chunk([delta(tool_calls=[
            {"index": 0, "function": {"arguments": '{"city": '}},
        ])]))
        acc.on_message(chunk([delta(tool_calls=[
            {"index": 1, "id": "call_2", "function": {"name": "get_time", "arguments": "{}"}},
            {"index": 0, "function": {"arguments": '"Beijing"}'}},
        ])]))
        acc.on_message(chunk([delta(finish_reason="tool_calls")]))
        acc.on_end()

        message = acc.to_response().choices[0].message
        assert message.content is None
        assert [call.id for call in message.tool_calls] == ["call_1", "call_2"]
        assert message.tool_calls[0].function.name == "get_weather"
        assert message.tool_calls[0].function.arguments == '{"city": "Beijing"}'
        assert message.tool_calls[1].function.name == "get_time"
        assert acc.to_response().choices[0].finish_reason == "tool_calls"


class TestWithOrchestrator:
    """The accumulator plugs straight into a stream."""

    def test_is_a_message_consumer(self):
        assert isinstance(ChunkAccumulator(), MessageConsumer)

    @pytest.mark.asyncio
    async def test_end_to_end(self):
        wire = (
            b'data: {"id":"c1","model":"m","created":1,'
            b'"choices":[{"index":0,"delta":{"role":"assistant","content":"\xe4\xbd\xa0"}}]}\n\n'
            b'data: {"id":"c1","choices":[{"index":0,"delta":{"content":"\xe5\xa5\xbd"},'
            b'"finish_reason":"stop"}]}\n\n'
            b'data: {"id":"c1","choices":[],"usage":{"prompt_tokens":2,'
            b'"completion_tokens":2,"total_tokens":4}}\n\n'
            b"data: [DONE]\n\n"
        )

        async def transport():
            for i in range(0, len(wire), 7):
                yield wire[i:i + 7]

        acc = ChunkAccumulator()
        await StreamOrchestrator().run(transport(), acc)

        response = acc.to_response()
        assert response.choices[0].message.content == "你好"
        assert response.usage.total_tokens == 4
