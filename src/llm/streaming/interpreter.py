"""
Classification of decoded frames into stream events.
"""

from __future__ import annotations

from pydantic import ValidationError

from ..models import ChatCompletionChunk
from .models import Chunk, Done, Frame, Malformed, StreamEvent

MAX_CAUSE_LENGTH = 500


class FrameInterpreter:
    """Maps each frame to ``Done``, ``Chunk`` or ``Malformed``.

    Interpretation never raises; deciding what a malformed frame means for
    the stream is left to the caller.
    """

    def interpret(self, frame: Frame) -> StreamEvent:
        if frame.is_sentinel:
            return Done()

        try:
            chunk = ChatCompletionChunk.model_validate_json(frame.payload)
        except ValidationError as e:
            return Malformed(raw=frame.payload, cause=_describe(e))

        return Chunk(payload=chunk)


def _describe(error: ValidationError) -> str:
    """Condense a validation error into a one-line diagnostic."""
    parts = []
    for detail in error.errors(include_url=False):
        location = ".".join(str(item) for item in detail.get("loc", ())) or "<root>"
        parts.append(f"{location}: {detail.get('msg', 'invalid')}")
    cause = "; ".join(parts) or str(error)
    return cause[:MAX_CAUSE_LENGTH]
