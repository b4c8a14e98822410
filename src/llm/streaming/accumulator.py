"""
Chunk accumulation: folds streamed deltas back into a complete response.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..models import (
    ChatCompletionChunk,
    ChatCompletionResponse,
    Choice,
    ChoiceDeltaToolCall,
    FunctionCall,
    Message,
    MessageToolCall,
    Usage,
)


@dataclass
class ToolCallState:
    """Tool call assembled from fragments sharing one ``index``."""
    id: str = ""
    name: str = ""
    arguments: str = ""


@dataclass
class ChoiceState:
    """Mutable per-choice accumulation state."""
    role: str | None = None
    content: str = ""
    tool_calls: dict[int, ToolCallState] = field(default_factory=dict)
    finish_reason: str | None = None


class ChunkAccumulator:
    """
    Message consumer that reconstructs the full assistant message.

    Content fragments are concatenated per choice, tool calls are rebuilt from
    their ``index``-keyed fragments and the trailing usage chunk is kept.
    Once ``on_end`` has been called, ``to_response()`` returns the same shape
    a non-streaming call would have produced.
    """

    def __init__(self):
        self.id: str | None = None
        self.model: str | None = None
        self.created: int | None = None
        self.usage: Usage | None = None
        self.choices: dict[int, ChoiceState] = {}
        self.chunk_count = 0
        self.finished = False

    def on_message(self, chunk: ChatCompletionChunk) -> None:
        self.chunk_count += 1
        self.id = self.id or chunk.id
        self.model = self.model or chunk.model
        self.created = self.created or chunk.created
        if chunk.usage is not None:
            self.usage = chunk.usage

        for choice in chunk.choices:
            state = self.choices.setdefault(choice.index, ChoiceState())
            delta = choice.delta
            if delta.role and state.role is None:
                state.role = delta.role
            if delta.content:
                state.content += delta.content
            if delta.tool_calls:
                self._accumulate_tool_calls(state, delta.tool_calls)
            if choice.finish_reason:
                state.finish_reason = choice.finish_reason

    def on_end(self) -> None:
        self.finished = True

    @property
    def content(self) -> str:
        """Accumulated content of the first choice."""
        state = self.choices.get(0)
        return state.content if state else ""

    def to_response(self) -> ChatCompletionResponse:
        """Build the complete response; only valid after ``on_end``."""
        if not self.finished:
            raise RuntimeError("Stream has not completed; response is partial")

        choices = []
        for index in sorted(self.choices):
            state = self.choices[index]
            tool_calls = [
                MessageToolCall(
                    id=call.id,
                    function=FunctionCall(name=call.name, arguments=call.arguments),
                )
                for _, call in sorted(state.tool_calls.items())
            ]
            choices.append(Choice(
                index=index,
                finish_reason=state.finish_reason,
                message=Message(
                    role=state.role or "assistant",
                    content=state.content or None,
                    tool_calls=tool_calls or None,
                ),
            ))

        return ChatCompletionResponse(
            id=self.id or "",
            model=self.model or "",
            created=self.created or 0,
            choices=choices,
            usage=self.usage,
        )

    def _accumulate_tool_calls(
        self, state: ChoiceState, tool_calls_delta: list[ChoiceDeltaToolCall]
    ) -> None:
        for tool_call_delta in tool_calls_delta:
            call = state.tool_calls.setdefault(tool_call_delta.index, ToolCallState())

            if tool_call_delta.id:
                call.id += tool_call_delta.id

            function = tool_call_delta.function
            if function is not None:
                if function.name:
                    call.name += function.name
                if function.arguments:
                    call.arguments += function.arguments
