"""
Read loop and lifecycle state machine for one streaming response.

    IDLE -> STREAMING -> COMPLETED | FAILED

Chunks are pulled from the transport one at a time, decoded into frames,
interpreted and dispatched before the next read, so consumers observe chunks
in exactly the order the server produced them. The transport read is the
only suspension point.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterable, AsyncIterator
from contextlib import aclosing

from src.logging_utils import ContextualLogger, LLMErrorHandler

from ..exceptions import (
    FrameTruncationError,
    PayloadDecodeError,
    ProtocolViolationError,
    TransportError,
)
from ..models import ChatCompletionChunk
from .decoder import FrameDecoder
from .interpreter import FrameInterpreter
from .models import Chunk, Done, Malformed, MessageConsumer, StreamState

MAX_LOGGED_PAYLOAD = 200


class StreamOrchestrator:
    """Drives a single stream from transport bytes to consumer callbacks.

    Instances are single-use: a failed stream is restarted by the caller
    with a fresh orchestrator, partial progress is never resumed.
    """

    def __init__(
        self,
        decoder: FrameDecoder | None = None,
        interpreter: FrameInterpreter | None = None,
        *,
        provider: str = "unknown",
        model: str = "unknown",
    ):
        self.decoder = decoder or FrameDecoder()
        self.interpreter = interpreter or FrameInterpreter()
        self.provider = provider
        self.model = model
        self.state = StreamState.IDLE
        self.error: BaseException | None = None
        self.stream_id = uuid.uuid4().hex[:12]
        self.stats = {'messages_dispatched': 0}
        self._log = ContextualLogger({
            "stream_id": self.stream_id,
            "provider": provider,
            "model": model,
        })

    async def run(
        self, transport: AsyncIterable[bytes], consumer: MessageConsumer
    ) -> None:
        """
        Consume ``transport`` and dispatch every chunk to ``consumer``.

        ``on_message`` is invoked once per decoded chunk in arrival order and
        ``on_end`` once when the sentinel arrives. On failure the error is
        raised and ``on_end`` is never called.

        Raises:
            TransportError: Reading from the transport failed.
            FrameTruncationError: The body ended inside a frame.
            PayloadDecodeError: A frame payload was not a valid chunk.
            ProtocolViolationError: The body ended without the sentinel.
        """
        self._begin()
        try:
            async with aclosing(self._events(transport)) as events:
                async for event in events:
                    match event:
                        case Chunk(payload=chunk):
                            consumer.on_message(chunk)
                            self.stats['messages_dispatched'] += 1
                        case Done():
                            consumer.on_end()
                            self._complete()
        except Exception as e:
            # Consumer callbacks may raise too; the stream is void either way
            if not self.state.is_terminal:
                self._fail(e)
            raise

    def iter_messages(
        self, transport: AsyncIterable[bytes]
    ) -> AsyncIterator[ChatCompletionChunk]:
        """Async-iterator form of ``run``.

        The orchestrator is claimed on call, not on first iteration, so a
        second call raises ``RuntimeError`` immediately. The iterator yields
        chunks in arrival order and finishes normally only after the
        sentinel; it raises the same errors as ``run`` otherwise.
        """
        self._begin()
        return self._iter_messages(transport)

    async def _iter_messages(
        self, transport: AsyncIterable[bytes]
    ) -> AsyncIterator[ChatCompletionChunk]:
        async with aclosing(self._events(transport)) as events:
            async for event in events:
                match event:
                    case Chunk(payload=chunk):
                        self.stats['messages_dispatched'] += 1
                        yield chunk
                    case Done():
                        self._complete()

    def get_stats(self) -> dict[str, int | str]:
        """Stream counters for monitoring."""
        return {
            "state": self.state.value,
            **self.decoder.get_stats(),
            **self.stats,
        }

    async def _events(
        self, transport: AsyncIterable[bytes]
    ) -> AsyncIterator[Chunk | Done]:
        chunks = aiter(transport)
        try:
            while True:
                try:
                    data = await anext(chunks)
                except StopAsyncIteration:
                    break
                except Exception as e:
                    raise self._fail(TransportError(
                        f"Failed to read stream chunk: {e}",
                        provider=self.provider,
                        model=self.model,
                    )) from e

                for frame in self.decoder.feed(data):
                    event = self.interpreter.interpret(frame)
                    match event:
                        case Chunk():
                            yield event
                        case Done():
                            # Anything after the sentinel is never interpreted
                            yield event
                            return
                        case Malformed(raw=raw, cause=cause):
                            raise self._fail(PayloadDecodeError(
                                f"Malformed stream frame: {cause}",
                                raw=raw,
                                cause=cause,
                                provider=self.provider,
                                model=self.model,
                            ))

            self._end_of_body()
        finally:
            if not self.state.is_terminal:
                # Abandoned or cancelled mid-stream: drop the partial frame
                self.decoder.reset()

    def _end_of_body(self) -> None:
        try:
            self.decoder.finalize()
        except FrameTruncationError as e:
            e.provider, e.model = self.provider, self.model
            self._fail(e)
            raise
        raise self._fail(ProtocolViolationError(
            "Stream ended without the [DONE] sentinel",
            provider=self.provider,
            model=self.model,
        ))

    def _begin(self) -> None:
        if self.state is not StreamState.IDLE:
            raise RuntimeError(
                f"Stream {self.stream_id} already {self.state.value}; "
                "use a new StreamOrchestrator for each stream"
            )
        self.state = StreamState.STREAMING
        self._log.debug("Stream started")

    def _complete(self) -> None:
        self.state = StreamState.COMPLETED
        self._log.info("Stream completed", **self.get_stats())

    def _fail(self, error: BaseException) -> BaseException:
        self.state = StreamState.FAILED
        self.error = error
        log_data = LLMErrorHandler.error_context(error)
        raw = getattr(error, "raw", None) or getattr(error, "partial", None)
        if raw:
            log_data["payload"] = raw[:MAX_LOGGED_PAYLOAD].decode("utf-8", "replace")
        self._log.error("Stream failed", **log_data, **self.get_stats())
        return error
