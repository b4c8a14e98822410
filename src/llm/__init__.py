"""
Ark chat completion SDK.

This package provides:
- Typed pydantic request/response models (chat, vision, embeddings)
- An async httpx client for the non-streaming and streaming calls
- Incremental SSE decoding with strict in-order chunk delivery
- A single error hierarchy rooted at ``LLMError``
"""

from __future__ import annotations

from .client import ArkClient
from .exceptions import (
    APIError,
    FrameTruncationError,
    LLMError,
    PayloadDecodeError,
    ProtocolViolationError,
    ResponseFormatError,
    StreamingError,
    TransportError,
)
from .models import (
    AssistantMessage,
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ClientConfig,
    EmbeddingsRequest,
    EmbeddingsResponse,
    FinishReason,
    FunctionDefinition,
    ImagePart,
    ImageUrl,
    ProviderType,
    StreamOptions,
    SystemMessage,
    TextPart,
    ToolMessage,
    ToolParam,
    Usage,
    UserMessage,
    VisionRequest,
    VisionResponse,
)
from .streaming import ChunkAccumulator, MessageConsumer, StreamOrchestrator, StreamState

__all__ = [
    # Errors
    "APIError",
    # Client
    "ArkClient",
    # Core models
    "AssistantMessage",
    "ChatCompletionChunk",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    # Streaming
    "ChunkAccumulator",
    "ClientConfig",
    "EmbeddingsRequest",
    "EmbeddingsResponse",
    "FinishReason",
    "FrameTruncationError",
    "FunctionDefinition",
    "ImagePart",
    "ImageUrl",
    "LLMError",
    "MessageConsumer",
    "PayloadDecodeError",
    "ProtocolViolationError",
    "ProviderType",
    "ResponseFormatError",
    "StreamOptions",
    "StreamOrchestrator",
    "StreamState",
    "StreamingError",
    "SystemMessage",
    "TextPart",
    "ToolMessage",
    "ToolParam",
    "TransportError",
    "Usage",
    "UserMessage",
    "VisionRequest",
    "VisionResponse",
]
