"""
Incremental decoding of ``text/event-stream`` chat completion responses.

This package contains:
- FrameDecoder: byte chunks -> delimiter-terminated frames
- FrameInterpreter: frames -> Chunk / Done / Malformed events
- StreamOrchestrator: read loop, state machine and consumer dispatch
- ChunkAccumulator: consumer rebuilding the complete message
"""

from __future__ import annotations

from .accumulator import ChunkAccumulator
from .decoder import FrameDecoder
from .interpreter import FrameInterpreter
from .models import (
    Chunk,
    Done,
    Frame,
    Malformed,
    MessageConsumer,
    StreamEvent,
    StreamState,
)
from .orchestrator import StreamOrchestrator

__all__ = [
    "Chunk",
    "ChunkAccumulator",
    "Done",
    "Frame",
    "FrameDecoder",
    "FrameInterpreter",
    "Malformed",
    "MessageConsumer",
    "StreamEvent",
    "StreamOrchestrator",
    "StreamState",
]
