"""
Unit tests for provider adapter factories.
"""
import sys
from unittest.mock import MagicMock, patch

import pytest

from ai_gateway.config import GatewayConfig
from ai_gateway.models import GenerationConfig
from providers import LangchainProviderAdapter, create_adapter, create_adapters


class TestCreateAdapter:
    def test_creates_langchain_adapter(self):
        adapter = create_adapter("OpenAI", api_key="sk-test")

        assert isinstance(adapter, LangchainProviderAdapter)
        assert adapter.name == "openai"
        assert adapter.api_key == "sk-test"

    def test_unknown_provider_raises(self):
        with pytest.raises(ValueError):
            create_adapter("gemini")


class TestCreateAdapters:
    def test_only_providers_with_keys(self):
        config = GatewayConfig(openai_api_key="sk-test", anthropic_api_key=None)

        adapters = create_adapters(config)

        assert list(adapters) == ["openai"]

    def test_both_providers(self):
        config = GatewayConfig(openai_api_key="sk-test", anthropic_api_key="ant-test")

        adapters = create_adapters(config)

        assert set(adapters) == {"openai", "claude"}
        assert adapters["claude"].api_key == "ant-test"

    def test_no_keys_no_adapters(self):
        assert create_adapters(GatewayConfig()) == {}


class TestClientCreation:
    """Langchain client construction with the vendor classes mocked."""

    def test_openai_client_receives_sampling_parameters(self):
        chat_openai = MagicMock()
        openai_module = MagicMock(ChatOpenAI=chat_openai)

        with patch.dict(sys.modules, {"langchain_openai": openai_module, "langchain_anthropic": MagicMock()}):
            adapter = LangchainProviderAdapter("openai", api_key="sk-test")
            adapter._create_client(
                GenerationConfig(
                    provider="openai",
                    model="gpt-4-turbo-preview",
                    max_tokens=1500,
                    temperature=0.3,
                    top_p=0.9,
                    frequency_penalty=0.1,
                    presence_penalty=0.1,
                )
            )

        kwargs = chat_openai.call_args.kwargs
        assert kwargs["model"] == "gpt-4-turbo-preview"
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["max_tokens"] == 1500
        assert kwargs["top_p"] == 0.9
        assert kwargs["frequency_penalty"] == 0.1
        assert kwargs["presence_penalty"] == 0.1

    def test_claude_client_omits_penalties(self):
        chat_anthropic = MagicMock()
        anthropic_module = MagicMock(ChatAnthropic=chat_anthropic)

        with patch.dict(sys.modules, {"langchain_anthropic": anthropic_module, "langchain_openai": MagicMock()}):
            adapter = LangchainProviderAdapter("claude", api_key="ant-test")
            adapter._create_client(
                GenerationConfig(
                    provider="claude",
                    model="claude-3-5-sonnet-20241022",
                    top_p=0.8,
                    frequency_penalty=0.5,
                )
            )

        kwargs = chat_anthropic.call_args.kwargs
        assert kwargs["model"] == "claude-3-5-sonnet-20241022"
        assert kwargs["top_p"] == 0.8
        assert "frequency_penalty" not in kwargs
