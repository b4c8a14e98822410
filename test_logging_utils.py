#!/usr/bin/env python3
"""
Test script for logging utilities.

This validates that error classification and the logging helpers work with
the SDK error hierarchy.
"""

from types import SimpleNamespace

import httpx
import pytest
from pydantic import ValidationError

from src.llm.exceptions import (
    APIError,
    FrameTruncationError,
    LLMError,
    PayloadDecodeError,
    ProtocolViolationError,
    ResponseFormatError,
    TransportError,
)
from src.llm.models import ChatCompletionRequest, Usage, UserMessage
from src.logging_utils import (
    ContextualLogger,
    LLMErrorHandler,
    log_operation,
    operation_context,
)


class TestLLMErrorHandler:
    """Test the LLMErrorHandler class."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (TransportError("reset"), "transport_error"),
            (FrameTruncationError("cut", partial=b"data: {"), "frame_truncation"),
            (PayloadDecodeError("bad", raw=b"{", cause="json"), "payload_decode"),
            (ProtocolViolationError("no sentinel"), "protocol_violation"),
            (APIError("API failed: 429", status_code=429), "api_error"),
            (ResponseFormatError("not json"), "response_format"),
            (LLMError("generic", provider="ark", model="ep"), "llm_error"),
        ],
    )
    def test_classify_sdk_errors(self, error, expected):
        """SDK errors report their own category."""
        assert LLMErrorHandler.classify_error(error) == expected

    def test_classify_validation_error(self):
        """Test classification of ValidationError."""
        validation_error = ValidationError.from_exception_data(
            "ValidationError", [{"type": "missing", "loc": ("field",), "input": {}}]
        )
        assert LLMErrorHandler.classify_error(validation_error) == "validation_error"

    def test_classify_timeout_error(self):
        assert LLMErrorHandler.classify_error(TimeoutError()) == "timeout_error"
        assert (
            LLMErrorHandler.classify_error(httpx.ReadTimeout("slow"))
            == "timeout_error"
        )

    def test_classify_connection_error(self):
        """Test classification of ConnectionError."""
        assert (
            LLMErrorHandler.classify_error(ConnectionError("Network unreachable"))
            == "connection_error"
        )
        assert (
            LLMErrorHandler.classify_error(httpx.ConnectError("refused"))
            == "connection_error"
        )

    def test_classify_value_error(self):
        """Test classification of ValueError."""
        assert (
            LLMErrorHandler.classify_error(ValueError("Invalid parameter"))
            == "parameter_error"
        )

    def test_classify_unknown_error(self):
        """Test classification of unknown error type."""
        assert (
            LLMErrorHandler.classify_error(RuntimeError("Unknown error"))
            == "unknown_error"
        )

    def test_error_context_with_status(self):
        error = APIError("API failed: 503 busy", status_code=503, body="busy")
        context = LLMErrorHandler.error_context(error)

        assert context["error_type"] == "APIError"
        assert context["error_category"] == "api_error"
        assert context["status_code"] == 503
        assert "503" in context["error_message"]

    def test_error_context_without_status(self):
        context = LLMErrorHandler.error_context(ValueError("Test error"))
        assert context["error_category"] == "parameter_error"
        assert "status_code" not in context


class TestDecorators:
    """Test logging decorators."""

    @pytest.mark.asyncio
    async def test_log_operation_success(self):
        """Test log_operation decorator with successful function."""

        @log_operation("test_operation", log_timing=True)
        async def successful_function():
            return "success"

        result = await successful_function()
        assert result == "success"

    @pytest.mark.asyncio
    async def test_log_operation_with_error(self):
        """Test log_operation decorator with function that raises error."""

        @log_operation("test_operation", log_timing=True)
        async def failing_function():
            raise ValueError("Test error")

        with pytest.raises(ValueError, match="Test error"):
            await failing_function()

    @pytest.mark.asyncio
    async def test_log_operation_reraises_sdk_error_unchanged(self):
        original = APIError("API failed: 401", status_code=401, body="unauthorized")

        @log_operation("test_operation", log_timing=False)
        async def failing_function(value):
            raise original

        with pytest.raises(APIError) as exc_info:
            await failing_function("x")

        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_log_operation_with_request_and_usage(self):
        request = ChatCompletionRequest(model="ep", messages=[UserMessage(content="hi")])

        @log_operation("test_operation", context={"model": "override"})
        async def call(req):
            return SimpleNamespace(usage=Usage(total_tokens=3))

        result = await call(request)
        assert result.usage.total_tokens == 3

    @pytest.mark.asyncio
    async def test_log_operation_preserves_metadata(self):
        @log_operation("test_operation")
        async def documented():
            """Docstring survives wrapping."""

        assert documented.__name__ == "documented"
        assert documented.__doc__ == "Docstring survives wrapping."


class TestContextManager:
    """Test operation context manager."""

    @pytest.mark.asyncio
    async def test_operation_context_success(self):
        """Test operation context manager with successful operation."""

        async with operation_context(
            "test_operation", context={"model": "ep"}, log_timing=True
        ) as logger:
            assert logger is not None

    @pytest.mark.asyncio
    async def test_operation_context_with_error(self):
        """Test operation context manager with failing operation."""

        with pytest.raises(ProtocolViolationError, match="sentinel"):
            async with operation_context("test_operation", log_timing=True):
                raise ProtocolViolationError("Stream ended without the [DONE] sentinel")


class TestContextualLogger:
    """Test ContextualLogger class."""

    def test_contextual_logger_initialization(self):
        """Test ContextualLogger initialization."""
        context = {"stream_id": "abc123", "model": "ep"}
        logger = ContextualLogger(context)
        assert logger.base_context == context

    def test_contextual_logger_bind(self):
        """Test ContextualLogger bind method."""
        logger = ContextualLogger({"stream_id": "abc123"})

        bound_logger = logger.bind(provider="ark", model="ep")
        assert bound_logger.base_context == {
            "stream_id": "abc123",
            "provider": "ark",
            "model": "ep",
        }
        assert logger.base_context == {"stream_id": "abc123"}

    def test_contextual_logger_methods(self):
        """Test ContextualLogger logging methods don't raise exceptions."""
        logger = ContextualLogger({"stream_id": "test"})

        logger.info("Test info message", extra="data")
        logger.warning("Test warning message", extra="data")
        logger.error("Test error message", extra="data")
        logger.debug("Test debug message", extra="data")
