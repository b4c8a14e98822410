"""
Error hierarchy for Ark SDK operations.

Every error carries the provider/model it happened against. Streaming
failures share the ``StreamingError`` base and come in exactly four kinds:
- TransportError: reading the response body failed
- FrameTruncationError: the body ended in the middle of a frame
- PayloadDecodeError: a frame's payload did not parse as a chunk
- ProtocolViolationError: the body ended cleanly without the [DONE] sentinel

All four are terminal for the stream; none of them is retried.
"""

from __future__ import annotations


class LLMError(Exception):
    """Base SDK error with rich context."""

    category = "llm_error"

    def __init__(
        self,
        message: str,
        provider: str,
        model: str,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.response_data = response_data or {}


class APIError(LLMError):
    """The API answered with a 4xx/5xx status."""

    category = "api_error"

    def __init__(
        self,
        message: str,
        status_code: int,
        body: str = "",
        provider: str = "unknown",
        model: str = "unknown",
    ):
        super().__init__(
            message,
            provider,
            model,
            status_code=status_code,
            response_data={"body": body},
        )
        self.body = body


class ResponseFormatError(LLMError):
    """A non-streaming response body did not match the expected schema."""

    category = "response_format"

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        model: str = "unknown",
        **kwargs,
    ):
        super().__init__(message, provider, model, **kwargs)


class StreamingError(LLMError):
    """Streaming-specific errors."""

    category = "streaming_error"

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        model: str = "unknown",
        **kwargs,
    ):
        super().__init__(message, provider, model, **kwargs)


class TransportError(StreamingError):
    """Reading the next chunk from the transport failed."""
    category = "transport_error"


class FrameTruncationError(StreamingError):
    """The body ended while a frame was still incomplete."""

    category = "frame_truncation"

    def __init__(self, message: str, partial: bytes = b"", **kwargs):
        super().__init__(message, **kwargs)
        self.partial = partial


class PayloadDecodeError(StreamingError):
    """A frame payload failed chunk schema parsing."""

    category = "payload_decode"

    def __init__(self, message: str, raw: bytes = b"", cause: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.raw = raw
        self.cause = cause


class ProtocolViolationError(StreamingError):
    """The stream broke the framing protocol, e.g. no sentinel before EOF."""
    category = "protocol_violation"
