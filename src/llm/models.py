"""
Request, response and streaming-chunk schemas for the Ark chat API.

This module provides:
- Client configuration (frozen dataclass)
- Message structures as a tagged union on ``role``
- Request models for chat, vision and embeddings
- Response models for the non-streaming calls
- The incremental ``ChatCompletionChunk`` delivered by streaming calls
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

if TYPE_CHECKING:
    from src.config import Configuration

DEFAULT_BASE_URL = "https://ark.cn-beijing.volces.com/api/v3"
DEFAULT_TIMEOUT = 60.0


class ProviderType(Enum):
    """Supported OpenAI-compatible providers."""
    ARK = "ark"
    OPENAI = "openai"


class FinishReason(str, Enum):
    """Reasons the model stopped generating."""
    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    TOOL_CALLS = "tool_calls"


@dataclass(frozen=True)
class ClientConfig:
    """Connection settings for ``ArkClient``."""
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    model: str | None = None
    # Endpoints for image input and for embeddings
    vision_model: str | None = None
    embedding_model: str | None = None
    provider: ProviderType = ProviderType.ARK

    connect_timeout: float = 10.0
    read_timeout: float = DEFAULT_TIMEOUT
    write_timeout: float = 10.0
    pool_timeout: float = 10.0

    # Ask for a trailing usage chunk on streaming calls
    include_usage: bool = False

    @classmethod
    def from_configuration(cls, configuration: Configuration) -> ClientConfig:
        """Build client settings from the YAML/env configuration."""
        llm_config = configuration.get_llm_config()
        http_config = configuration.get_http_client_config()
        streaming_config = configuration.get_streaming_config()
        return cls(
            api_key=configuration.llm_api_key,
            base_url=llm_config["base_url"],
            model=llm_config["model"],
            vision_model=llm_config.get("vision_model"),
            embedding_model=llm_config.get("embedding_model"),
            provider=ProviderType(configuration.active_provider),
            connect_timeout=http_config["connect_timeout"],
            read_timeout=http_config["read_timeout"],
            write_timeout=http_config["write_timeout"],
            pool_timeout=http_config["pool_timeout"],
            include_usage=streaming_config.get("include_usage", False),
        )


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

class FunctionCall(BaseModel):
    """Function name and JSON-encoded arguments chosen by the model."""
    name: str
    arguments: str


class MessageToolCall(BaseModel):
    id: str
    type: Literal["function"] = "function"
    function: FunctionCall


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageUrl(BaseModel):
    url: str
    detail: Literal["auto", "low", "high"] | None = None


class ImagePart(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl


ContentPart = Annotated[TextPart | ImagePart, Field(discriminator="type")]


class SystemMessage(BaseModel):
    role: Literal["system"] = "system"
    content: str


class UserMessage(BaseModel):
    role: Literal["user"] = "user"
    content: str | list[ContentPart]


class AssistantMessage(BaseModel):
    """Prior assistant turn; ``content`` or ``tool_calls`` carries the reply."""
    role: Literal["assistant"] = "assistant"
    content: str | None = None
    tool_calls: list[MessageToolCall] | None = None


class ToolMessage(BaseModel):
    """Result of a tool call, answering ``tool_call_id``."""
    role: Literal["tool"] = "tool"
    content: str
    tool_call_id: str


ChatMessage = Annotated[
    SystemMessage | UserMessage | AssistantMessage | ToolMessage,
    Field(discriminator="role"),
]
VisionMessage = Annotated[
    SystemMessage | UserMessage | AssistantMessage,
    Field(discriminator="role"),
]


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class FunctionDefinition(BaseModel):
    name: str
    description: str | None = None
    # JSON Schema describing the function arguments
    parameters: dict[str, Any] | None = None


class ToolParam(BaseModel):
    type: Literal["function"] = "function"
    function: FunctionDefinition


class StreamOptions(BaseModel):
    """When ``include_usage`` is set, a usage chunk precedes ``[DONE]``."""
    include_usage: bool | None = None


class _CompletionParams(BaseModel):
    """Optional generation parameters shared by chat and vision requests.

    Every optional field defaults to ``None`` and is left out of the request
    body when unset, so the server-side default applies. Numeric ranges are
    not checked here; the API reports out-of-range values itself.
    """
    model: str
    stream: bool | None = None
    stream_options: StreamOptions | None = None
    max_tokens: int | None = None
    stop: list[str] | None = None
    frequency_penalty: float | None = None
    temperature: float | None = None
    top_p: float | None = None
    logprobs: bool | None = None
    top_logprobs: int | None = None
    logit_bias: dict[str, int] | None = None

    @model_validator(mode="after")
    def _check_option_dependencies(self) -> _CompletionParams:
        if not self.messages:
            raise ValueError("messages must contain at least one message")
        if self.stream_options is not None and not self.stream:
            raise ValueError("stream_options is only allowed when stream is true")
        if self.top_logprobs is not None and not self.logprobs:
            raise ValueError("top_logprobs requires logprobs to be true")
        return self

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the JSON request body, omitting unset fields."""
        return self.model_dump(mode="json", exclude_none=True)

    def as_stream(self, include_usage: bool = False) -> _CompletionParams:
        """Return a copy with streaming switched on."""
        update: dict[str, Any] = {"stream": True}
        if include_usage and self.stream_options is None:
            update["stream_options"] = StreamOptions(include_usage=True)
        return self.model_copy(update=update)


class ChatCompletionRequest(_CompletionParams):
    messages: list[ChatMessage]
    tools: list[ToolParam] | None = None


class VisionRequest(_CompletionParams):
    messages: list[VisionMessage]


class EmbeddingsRequest(BaseModel):
    model: str
    input: list[str]
    encoding_format: Literal["float", "base64"] | None = None

    @field_validator("input")
    @classmethod
    def _check_input(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("input must contain at least one text")
        if any(text == "" for text in value):
            raise ValueError("input texts must not be empty strings")
        return value

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class TopLogprob(BaseModel):
    token: str
    # UTF-8 bytes of the token, absent when the token has none
    bytes: list[int] | None = None
    logprob: float


class TokenLogprob(TopLogprob):
    top_logprobs: list[TopLogprob] | None = None


class ChoiceLogprobs(BaseModel):
    content: list[TokenLogprob] | None = None


class Usage(BaseModel):
    """Token usage statistics."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class Message(BaseModel):
    role: str = "assistant"
    content: str | None = None
    tool_calls: list[MessageToolCall] | None = None


class Choice(BaseModel):
    index: int
    finish_reason: str | None = None
    message: Message
    logprobs: ChoiceLogprobs | None = None


class ChatCompletionResponse(BaseModel):
    """Complete (non-streaming) chat completion."""
    id: str
    model: str
    object: str = "chat.completion"
    created: int
    choices: list[Choice]
    usage: Usage | None = None


class VisionResponse(ChatCompletionResponse):
    usage: Usage


class Embedding(BaseModel):
    index: int
    # A base64 string when encoding_format="base64"
    embedding: list[float] | str
    object: str = "embedding"


class EmbeddingUsage(BaseModel):
    prompt_tokens: int = 0
    total_tokens: int = 0


class EmbeddingsResponse(BaseModel):
    id: str | None = None
    model: str
    created: int | None = None
    object: str = "list"
    data: list[Embedding]
    usage: EmbeddingUsage | None = None


# ---------------------------------------------------------------------------
# Streaming chunks
# ---------------------------------------------------------------------------

class FunctionDelta(BaseModel):
    name: str | None = None
    arguments: str | None = None


class ChoiceDeltaToolCall(BaseModel):
    """Fragment of a tool call; fragments sharing ``index`` concatenate."""
    index: int = 0
    id: str | None = None
    type: str | None = None
    function: FunctionDelta | None = None


class ChoiceDelta(BaseModel):
    role: str | None = None
    content: str | None = None
    tool_calls: list[ChoiceDeltaToolCall] | None = None


class StreamChoice(BaseModel):
    index: int = 0
    delta: ChoiceDelta = Field(default_factory=ChoiceDelta)
    finish_reason: str | None = None
    logprobs: ChoiceLogprobs | None = None

    @field_validator("delta", mode="before")
    @classmethod
    def _null_delta_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class ChatCompletionChunk(BaseModel):
    """One incremental ``chat.completion.chunk`` from a streaming call.

    ``usage`` is only populated on the final chunk before ``[DONE]`` when the
    request asked for ``stream_options.include_usage``; that chunk carries an
    empty ``choices`` list.
    """
    id: str
    model: str | None = None
    object: str = "chat.completion.chunk"
    created: int | None = None
    choices: list[StreamChoice] = Field(default_factory=list)
    usage: Usage | None = None

    @model_validator(mode="before")
    @classmethod
    def _unwrap_data_envelope(cls, data: Any) -> Any:
        # Doubao endpoints may wrap the chunk as {"data": {...}}
        if isinstance(data, dict) and "id" not in data:
            inner = data.get("data")
            if isinstance(inner, dict):
                return inner
        return data
