"""
Async HTTP client for the Ark chat, vision and embeddings APIs.

Non-streaming calls are a single JSON request/response exchange. Streaming
calls hand the response body to a ``StreamOrchestrator``, which decodes the
``text/event-stream`` frames and dispatches chunks in arrival order.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from src.logging_utils import log_operation, operation_context

from .exceptions import (
    APIError,
    LLMError,
    ProtocolViolationError,
    ResponseFormatError,
    TransportError,
)
from .models import (
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ClientConfig,
    EmbeddingsRequest,
    EmbeddingsResponse,
    VisionRequest,
    VisionResponse,
)
from .streaming.models import MessageConsumer
from .streaming.orchestrator import StreamOrchestrator

CHAT_COMPLETIONS_PATH = "/chat/completions"
EMBEDDINGS_PATH = "/embeddings"
EVENT_STREAM_CONTENT_TYPE = "text/event-stream"
USER_AGENT = "ark-llm-sdk/0.1"
HTTP_ERROR_THRESHOLD = 400

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class ArkClient:
    """
    Client for an OpenAI-compatible chat completion endpoint.

    Usage:
        async with ArkClient(ClientConfig(api_key=key)) as client:
            response = await client.chat_completion(request)
            await client.chat_completion_stream(request, consumer)
    """

    def __init__(
        self,
        config: ClientConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Create the client; a supplied ``http_client`` is not closed by us."""
        self.config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=self._get_timeout(),
        )

    @classmethod
    def from_configuration(cls, configuration) -> ArkClient:
        """Create a client from a loaded ``src.config.Configuration``."""
        return cls(ClientConfig.from_configuration(configuration))

    @property
    def provider(self) -> str:
        return self.config.provider.value

    def _get_headers(self) -> dict[str, str]:
        headers = {"User-Agent": USER_AGENT}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _get_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self.config.connect_timeout,
            read=self.config.read_timeout,
            write=self.config.write_timeout,
            pool=self.config.pool_timeout,
        )

    @log_operation("chat_completion")
    async def chat_completion(
        self, request: ChatCompletionRequest
    ) -> ChatCompletionResponse:
        """Send a non-streaming chat completion request."""
        data = await self._post_json(
            CHAT_COMPLETIONS_PATH, request.to_payload(), request.model
        )
        return self._parse(ChatCompletionResponse, data, request.model)

    @log_operation("vision_completion")
    async def vision_completion(self, request: VisionRequest) -> VisionResponse:
        """Send a chat completion whose user messages may contain images."""
        data = await self._post_json(
            CHAT_COMPLETIONS_PATH, request.to_payload(), request.model
        )
        return self._parse(VisionResponse, data, request.model)

    @log_operation("embeddings")
    async def embeddings(self, request: EmbeddingsRequest) -> EmbeddingsResponse:
        """Vectorize ``request.input``; results keep the input order."""
        data = await self._post_json(
            EMBEDDINGS_PATH, request.to_payload(), request.model
        )
        return self._parse(EmbeddingsResponse, data, request.model)

    async def chat_completion_stream(
        self,
        request: ChatCompletionRequest | VisionRequest,
        consumer: MessageConsumer,
    ) -> None:
        """
        Stream a chat completion into ``consumer``.

        ``consumer.on_message`` receives each chunk in order and
        ``consumer.on_end`` is called once the server sends ``[DONE]``.

        Raises:
            APIError: The server answered with a 4xx/5xx status.
            StreamingError: One of the four terminal stream errors.
        """
        async with operation_context(
            "chat_completion_stream", context={"model": request.model}
        ) as op_logger:
            async with self._open_stream(request) as response:
                orchestrator = self._new_orchestrator(request.model)
                await orchestrator.run(response.aiter_bytes(), consumer)
                op_logger.debug("Stream statistics", **orchestrator.get_stats())

    async def stream_chat_completion(
        self, request: ChatCompletionRequest | VisionRequest
    ) -> AsyncIterator[ChatCompletionChunk]:
        """Iterator form of ``chat_completion_stream``."""
        async with self._open_stream(request) as response:
            orchestrator = self._new_orchestrator(request.model)
            async with aclosing(
                orchestrator.iter_messages(response.aiter_bytes())
            ) as chunks:
                async for chunk in chunks:
                    yield chunk

    def _new_orchestrator(self, model: str) -> StreamOrchestrator:
        return StreamOrchestrator(provider=self.provider, model=model)

    @asynccontextmanager
    async def _open_stream(
        self, request: ChatCompletionRequest | VisionRequest
    ) -> AsyncIterator[httpx.Response]:
        payload = request.as_stream(self.config.include_usage).to_payload()
        try:
            async with self._client.stream(
                "POST",
                CHAT_COMPLETIONS_PATH,
                json=payload,
                headers=self._get_headers(),
            ) as response:
                await self._raise_for_status(response, request.model)

                # FAIL FAST: anything but an event stream cannot be decoded
                content_type = response.headers.get("content-type", "")
                if EVENT_STREAM_CONTENT_TYPE not in content_type:
                    raise ProtocolViolationError(
                        "Expected streaming response, got content-type: "
                        f"{content_type!r}",
                        provider=self.provider,
                        model=request.model,
                    )

                yield response
        except httpx.HTTPError as e:
            # Body reads are wrapped by the orchestrator; this covers
            # connecting, sending the request and reading error bodies.
            raise TransportError(
                f"HTTP error during streaming: {e!s}",
                provider=self.provider,
                model=request.model,
            ) from e

    async def _post_json(
        self, path: str, payload: dict[str, Any], model: str
    ) -> Any:
        try:
            response = await self._client.post(
                path, json=payload, headers=self._get_headers()
            )
        except httpx.HTTPError as e:
            raise LLMError(
                f"HTTP error: {e!s}", provider=self.provider, model=model
            ) from e

        await self._raise_for_status(response, model)

        try:
            return response.json()
        except ValueError as e:
            raise ResponseFormatError(
                f"Response body is not JSON: {e}",
                provider=self.provider,
                model=model,
                status_code=response.status_code,
            ) from e

    async def _raise_for_status(self, response: httpx.Response, model: str) -> None:
        if response.status_code < HTTP_ERROR_THRESHOLD:
            return
        body = (await response.aread()).decode("utf-8", "replace")
        raise APIError(
            f"API failed: {response.status_code} {body}",
            status_code=response.status_code,
            body=body,
            provider=self.provider,
            model=model,
        )

    def _parse(self, model_cls: type[ResponseT], data: Any, model: str) -> ResponseT:
        try:
            return model_cls.model_validate(data)
        except ValidationError as e:
            raise ResponseFormatError(
                f"Unexpected response format: {e}",
                provider=self.provider,
                model=model,
            ) from e

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> ArkClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
