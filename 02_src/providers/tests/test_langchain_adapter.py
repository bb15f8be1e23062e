"""
Unit tests for LangchainProviderAdapter.

Clients are injected through client_factory; no real API calls.
"""
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from langchain_core.messages import AIMessage, AIMessageChunk

from ai_gateway.errors import ErrorKind, GatewayError
from ai_gateway.models import GenerationConfig, Message, StreamCompletion, TextDelta
from providers.langchain_adapter import LangchainProviderAdapter, _text_of

MESSAGES = [
    Message(role="system", content="Be brief."),
    Message(role="user", content="Hello"),
]
OPENAI = GenerationConfig(provider="openai", model="gpt-4o", max_tokens=100, temperature=0.1)
CLAUDE = GenerationConfig(provider="claude", model="claude-3-5-sonnet-20241022")


def client_returning(message):
    client = MagicMock()
    client.ainvoke = AsyncMock(return_value=message)
    return client


def streaming_client(chunks, error=None):
    async def astream(_messages):
        for chunk in chunks:
            yield chunk
        if error is not None:
            raise error

    client = MagicMock()
    client.astream = astream
    return client


async def collect(adapter, config):
    return [chunk async for chunk in adapter.stream(MESSAGES, config)]


class TestInit:
    def test_unsupported_provider_raises(self):
        with pytest.raises(ValueError, match="Unsupported provider"):
            LangchainProviderAdapter("gemini")

    def test_name_and_streaming_support(self):
        adapter = LangchainProviderAdapter("claude", api_key="test-key")

        assert adapter.name == "claude"
        assert adapter.supports_streaming is True


class TestComplete:
    """Tests for non-streaming completion."""

    @pytest.mark.asyncio
    async def test_openai_response_mapping(self):
        message = AIMessage(
            content="Hi there!",
            usage_metadata={"input_tokens": 12, "output_tokens": 4, "total_tokens": 16},
            response_metadata={"finish_reason": "stop", "id": "chatcmpl-1"},
        )
        client = client_returning(message)
        adapter = LangchainProviderAdapter("openai", client_factory=lambda config: client)

        response = await adapter.complete(MESSAGES, OPENAI)

        assert response.content == "Hi there!"
        assert response.provider == "openai"
        assert response.model == "gpt-4o"
        assert response.usage.prompt_tokens == 12
        assert response.usage.completion_tokens == 4
        assert response.usage.total_tokens == 16
        assert response.confidence == 0.95
        assert response.metadata["stop_reason"] == "stop"
        assert response.metadata["response_id"] == "chatcmpl-1"

        client.ainvoke.assert_awaited_once_with([("system", "Be brief."), ("user", "Hello")])

    @pytest.mark.asyncio
    async def test_openai_length_stop_lowers_confidence(self):
        message = AIMessage(content="Truncated", response_metadata={"finish_reason": "length"})
        adapter = LangchainProviderAdapter("openai", client_factory=lambda config: client_returning(message))

        response = await adapter.complete(MESSAGES, OPENAI)

        assert response.confidence == 0.85

    @pytest.mark.asyncio
    async def test_claude_content_blocks(self):
        message = AIMessage(
            content=[{"type": "text", "text": "Hello "}, {"type": "text", "text": "from Claude"}],
            usage_metadata={"input_tokens": 3, "output_tokens": 5, "total_tokens": 8},
            response_metadata={"stop_reason": "end_turn"},
        )
        adapter = LangchainProviderAdapter("claude", client_factory=lambda config: client_returning(message))

        response = await adapter.complete(MESSAGES, CLAUDE)

        assert response.content == "Hello from Claude"
        assert response.confidence == 0.95
        assert response.metadata["stop_reason"] == "end_turn"

    @pytest.mark.asyncio
    async def test_empty_content_is_api_error(self):
        adapter = LangchainProviderAdapter(
            "openai", client_factory=lambda config: client_returning(AIMessage(content=""))
        )

        with pytest.raises(GatewayError) as exc_info:
            await adapter.complete(MESSAGES, OPENAI)

        assert exc_info.value.kind is ErrorKind.API_ERROR

    @pytest.mark.asyncio
    async def test_vendor_error_is_classified(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        error = httpx.HTTPStatusError(
            "Too Many Requests", request=request, response=httpx.Response(429, request=request)
        )
        client = MagicMock()
        client.ainvoke = AsyncMock(side_effect=error)
        adapter = LangchainProviderAdapter("openai", client_factory=lambda config: client)

        with pytest.raises(GatewayError) as exc_info:
            await adapter.complete(MESSAGES, OPENAI)

        assert exc_info.value.kind is ErrorKind.RATE_LIMIT
        assert exc_info.value.provider == "openai"

    @pytest.mark.asyncio
    async def test_client_reused_per_config(self):
        factory = MagicMock(return_value=client_returning(AIMessage(content="ok")))
        adapter = LangchainProviderAdapter("openai", client_factory=factory)

        await adapter.complete(MESSAGES, OPENAI)
        await adapter.complete(MESSAGES, OPENAI)
        await adapter.complete(MESSAGES, GenerationConfig(provider="openai", model="gpt-4o-mini"))

        assert factory.call_count == 2

    @pytest.mark.asyncio
    async def test_client_cache_evicts_least_recently_used(self):
        factory = MagicMock(side_effect=lambda config: client_returning(AIMessage(content="ok")))
        adapter = LangchainProviderAdapter("openai", client_factory=factory)
        adapter.MAX_CACHED_CLIENTS = 2
        configs = [GenerationConfig(provider="openai", model="gpt-4o", max_tokens=n) for n in (10, 20, 30)]

        await adapter.complete(MESSAGES, configs[0])
        await adapter.complete(MESSAGES, configs[1])
        await adapter.complete(MESSAGES, configs[0])  # configs[1] is now oldest
        await adapter.complete(MESSAGES, configs[2])
        assert factory.call_count == 3
        assert len(adapter._clients) == 2

        await adapter.complete(MESSAGES, configs[0])
        assert factory.call_count == 3

        await adapter.complete(MESSAGES, configs[1])
        assert factory.call_count == 4


class TestStream:
    """Tests for streaming."""

    @pytest.mark.asyncio
    async def test_openai_stream(self):
        chunks = [
            AIMessageChunk(content="Hel"),
            AIMessageChunk(content="lo"),
            AIMessageChunk(
                content="",
                usage_metadata={"input_tokens": 7, "output_tokens": 2, "total_tokens": 9},
                response_metadata={"finish_reason": "stop"},
            ),
        ]
        adapter = LangchainProviderAdapter("openai", client_factory=lambda config: streaming_client(chunks))

        result = await collect(adapter, OPENAI)

        assert result[:2] == [TextDelta("Hel"), TextDelta("lo")]
        completion = result[-1]
        assert isinstance(completion, StreamCompletion)
        assert completion.usage.total_tokens == 9
        assert completion.stop_reason == "stop"

    @pytest.mark.asyncio
    async def test_claude_usage_split_across_chunks(self):
        """Input and output token counts arriving separately are summed."""
        chunks = [
            AIMessageChunk(
                content="", usage_metadata={"input_tokens": 20, "output_tokens": 0, "total_tokens": 20}
            ),
            AIMessageChunk(content=[{"type": "text_delta", "text": "Hi", "index": 0}]),
            AIMessageChunk(
                content="",
                usage_metadata={"input_tokens": 0, "output_tokens": 6, "total_tokens": 6},
                response_metadata={"stop_reason": "end_turn"},
            ),
        ]
        adapter = LangchainProviderAdapter("claude", client_factory=lambda config: streaming_client(chunks))

        result = await collect(adapter, CLAUDE)

        assert result[0] == TextDelta("Hi")
        assert result[-1].usage.prompt_tokens == 20
        assert result[-1].usage.completion_tokens == 6
        assert result[-1].usage.total_tokens == 26

    @pytest.mark.asyncio
    async def test_stream_without_usage(self):
        chunks = [AIMessageChunk(content="text")]
        adapter = LangchainProviderAdapter("openai", client_factory=lambda config: streaming_client(chunks))

        result = await collect(adapter, OPENAI)

        assert result[-1].usage is None

    @pytest.mark.asyncio
    async def test_stream_error_is_classified(self):
        chunks = [AIMessageChunk(content="partial")]
        adapter = LangchainProviderAdapter(
            "openai",
            client_factory=lambda config: streaming_client(chunks, error=httpx.ReadTimeout("timed out")),
        )

        received = []
        with pytest.raises(GatewayError) as exc_info:
            async for chunk in adapter.stream(MESSAGES, OPENAI):
                received.append(chunk)

        assert received == [TextDelta("partial")]
        assert exc_info.value.kind is ErrorKind.NETWORK_ERROR


class TestTextOf:
    def test_string(self):
        assert _text_of("abc") == "abc"

    def test_skips_non_text_blocks(self):
        content = [{"type": "tool_use", "id": "x"}, {"type": "text", "text": "ok"}, "raw"]
        assert _text_of(content) == "okraw"

    def test_unknown_type(self):
        assert _text_of(None) == ""
