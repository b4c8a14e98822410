"""
Incremental SSE frame decoder.

Turns an arbitrary sequence of byte chunks into complete frames. Chunk
boundaries carry no meaning: a read may end inside a frame, inside the
blank-line delimiter or inside a multi-byte UTF-8 character. Bytes are kept
undecoded in the buffer until a whole frame is available.
"""

from __future__ import annotations

from ..exceptions import FrameTruncationError
from .models import Frame

# Earliest match wins when both styles appear in the buffer
FRAME_DELIMITERS = (b"\n\n", b"\r\n\r\n")

DATA_FIELD = b"data:"
EVENT_FIELD = b"event:"
ID_FIELD = b"id:"
RETRY_FIELD = b"retry:"


def _field_value(line: bytes, field: bytes) -> bytes:
    value = line[len(field):]
    if value.startswith(b" "):
        value = value[1:]
    return value


def build_frame(block: bytes) -> Frame | None:
    """Build a frame from the bytes preceding a delimiter.

    Returns ``None`` for blocks without data: blank, comment-only, or only
    ``event:``/``id:``/``retry:`` fields such as keep-alive pings.
    Lines that are neither a known field nor a comment are kept as payload,
    so a server that forgets the ``data:`` marker surfaces as a malformed
    payload rather than silently losing data.
    """
    data_lines: list[bytes] = []
    event: str | None = None
    frame_id: str | None = None

    for raw_line in block.splitlines():
        # Field names start at column 0; leading whitespace makes an unknown line
        line = raw_line.rstrip()
        if not line or line.startswith(b":"):
            continue
        if line.startswith(DATA_FIELD):
            data_lines.append(_field_value(line, DATA_FIELD))
        elif line.startswith(EVENT_FIELD):
            event = _field_value(line, EVENT_FIELD).decode("utf-8", "replace")
        elif line.startswith(ID_FIELD):
            frame_id = _field_value(line, ID_FIELD).decode("utf-8", "replace")
        elif line.startswith(RETRY_FIELD):
            continue
        else:
            data_lines.append(line)

    if not data_lines:
        return None
    payload = b"\n".join(data_lines).strip()
    return Frame(payload=payload, event=event, id=frame_id)


class FrameDecoder:
    """Stateful scanner extracting delimiter-terminated frames from bytes."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        self.stats = {
            'bytes_received': 0,
            'frames_decoded': 0,
        }

    @property
    def pending(self) -> bytes:
        """Bytes buffered after the last complete frame."""
        return bytes(self._buffer)

    def feed(self, chunk: bytes) -> list[Frame]:
        """Append ``chunk`` and return every frame it completed, in order."""
        self._buffer += chunk
        self.stats['bytes_received'] += len(chunk)

        frames: list[Frame] = []
        while (boundary := self._find_delimiter()) is not None:
            position, length = boundary
            block = bytes(self._buffer[:position])
            del self._buffer[:position + length]

            frame = build_frame(block)
            if frame is not None:
                self.stats['frames_decoded'] += 1
                frames.append(frame)

        return frames

    def finalize(self) -> None:
        """Check the buffer once the transport reports end-of-body.

        Raises:
            FrameTruncationError: If a non-empty partial frame is left over.
        """
        remainder = bytes(self._buffer).strip()
        self._buffer.clear()
        if remainder:
            raise FrameTruncationError(
                f"Stream ended mid-frame with {len(remainder)} unterminated bytes",
                partial=remainder,
            )

    def reset(self) -> None:
        """Drop any buffered partial frame."""
        self._buffer.clear()

    def get_stats(self) -> dict[str, int]:
        return self.stats.copy()

    def _find_delimiter(self) -> tuple[int, int] | None:
        # Always search the whole buffer: a delimiter may straddle the
        # boundary between the previous and the current chunk.
        earliest: tuple[int, int] | None = None
        for delimiter in FRAME_DELIMITERS:
            position = self._buffer.find(delimiter)
            if position != -1 and (earliest is None or position < earliest[0]):
                earliest = (position, len(delimiter))
        return earliest
