"""
Streaming-specific dataclasses: frames, decoded events and stream state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from ..models import ChatCompletionChunk

SENTINEL = b"[DONE]"


class StreamState(Enum):
    """Lifecycle of a single stream; COMPLETED and FAILED are terminal."""
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (StreamState.COMPLETED, StreamState.FAILED)


@dataclass(frozen=True)
class Frame:
    """One delimiter-terminated SSE block with field markers stripped."""
    payload: bytes
    event: str | None = None
    id: str | None = None

    @property
    def is_sentinel(self) -> bool:
        return self.payload.strip() == SENTINEL


@dataclass(frozen=True)
class Chunk:
    """A frame whose payload decoded into a chat completion chunk."""
    payload: ChatCompletionChunk


@dataclass(frozen=True)
class Done:
    """The ``[DONE]`` sentinel frame."""


@dataclass(frozen=True)
class Malformed:
    """A frame whose payload failed to parse."""
    raw: bytes
    cause: str


StreamEvent = Chunk | Done | Malformed


@runtime_checkable
class MessageConsumer(Protocol):
    """Receives decoded chunks in arrival order.

    ``on_message`` is called once per chunk; ``on_end`` exactly once, and only
    when the stream terminated with the sentinel.
    """

    def on_message(self, chunk: ChatCompletionChunk) -> None: ...

    def on_end(self) -> None: ...
