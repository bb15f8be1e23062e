"""
Langchain-backed provider adapters.

Provides OpenAI and Claude access through langchain chat models.
"""
import logging
from collections import OrderedDict
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple

from ai_gateway.errors import ErrorKind, GatewayError, classify_error
from ai_gateway.models import (
    GenerationConfig,
    Message,
    Provider,
    Response,
    StreamChunk,
    StreamCompletion,
    TextDelta,
    TokenUsage,
)
from ai_gateway.provider_adapter import ProviderAdapter

logger = logging.getLogger(__name__)

ClientFactory = Callable[[GenerationConfig], Any]


def _text_of(content: Any) -> str:
    """
    Extract plain text from langchain message content.

    Content is a string for OpenAI and may be a list of blocks for Claude.
    """
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type", "text") in ("text", "text_delta"):
                parts.append(block.get("text", ""))
        return "".join(parts)

    return ""


def _usage_of(message: Any) -> Optional[TokenUsage]:
    """Read langchain usage_metadata into TokenUsage."""
    usage = getattr(message, "usage_metadata", None)
    if not usage:
        return None

    prompt_tokens = usage.get("input_tokens", 0)
    completion_tokens = usage.get("output_tokens", 0)
    return TokenUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=usage.get("total_tokens", prompt_tokens + completion_tokens),
    )


class LangchainProviderAdapter(ProviderAdapter):
    """
    Adapter for one provider via a langchain chat model.

    Features:
    - A client per generation config (model and sampling parameters), the
      most recently used MAX_CACHED_CLIENTS kept
    - Usage from usage_metadata, stop reason from response_metadata
    - Vendor errors translated into GatewayError
    """

    REQUEST_TIMEOUT_SECONDS: float = 60.0
    MAX_CACHED_CLIENTS: int = 8

    def __init__(
        self,
        provider: str,
        api_key: Optional[str] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        """
        Args:
            provider: "openai" or "claude"
            api_key: Vendor API key
            client_factory: Optional factory replacing langchain client creation

        Raises:
            ValueError: If provider is not supported
        """
        if provider not in (Provider.OPENAI.value, Provider.CLAUDE.value):
            raise ValueError(f"Unsupported provider: {provider}")

        self.name = provider
        self.api_key = api_key
        self._client_factory = client_factory or self._create_client
        self._clients: "OrderedDict[Tuple, Any]" = OrderedDict()

    def _create_client(self, config: GenerationConfig) -> Any:
        """
        Create Langchain client for the config.

        Args:
            config: GenerationConfig

        Returns:
            Langchain client (ChatAnthropic or ChatOpenAI)
        """
        from langchain_anthropic import ChatAnthropic
        from langchain_openai import ChatOpenAI

        if self.name == Provider.OPENAI.value:
            kwargs: Dict[str, Any] = {
                "model": config.model,
                "api_key": self.api_key,
                "temperature": config.temperature,
                "max_tokens": config.max_tokens,
                "timeout": self.REQUEST_TIMEOUT_SECONDS,
                "stream_usage": True,
            }
            if config.top_p is not None:
                kwargs["top_p"] = config.top_p
            if config.frequency_penalty is not None:
                kwargs["frequency_penalty"] = config.frequency_penalty
            if config.presence_penalty is not None:
                kwargs["presence_penalty"] = config.presence_penalty
            return ChatOpenAI(**kwargs)

        kwargs = {
            "model": config.model,
            "api_key": self.api_key,
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "timeout": self.REQUEST_TIMEOUT_SECONDS,
        }
        if config.top_p is not None:
            kwargs["top_p"] = config.top_p
        return ChatAnthropic(**kwargs)

    def _client_for(self, config: GenerationConfig) -> Any:
        key = (
            config.model,
            config.max_tokens,
            config.temperature,
            config.top_p,
            config.frequency_penalty,
            config.presence_penalty,
        )
        client = self._clients.get(key)
        if client is not None:
            self._clients.move_to_end(key)
            return client

        client = self._client_factory(config)
        self._clients[key] = client
        while len(self._clients) > self.MAX_CACHED_CLIENTS:
            self._clients.popitem(last=False)
        return client

    @staticmethod
    def _convert_messages(messages: List[Message]) -> List[Tuple[str, str]]:
        """Convert Message objects to langchain (role, content) tuples."""
        return [(msg.role, msg.content) for msg in messages]

    def _stop_reason(self, metadata: Dict[str, Any]) -> Optional[str]:
        return metadata.get("finish_reason") or metadata.get("stop_reason")

    def _estimate_confidence(self, stop_reason: Optional[str]) -> float:
        """
        Confidence estimate from the stop reason.

        OpenAI: stop -> 0.95, length -> 0.85, otherwise 0.75.
        Claude does not expose a comparable signal: 0.95.
        """
        if self.name == Provider.CLAUDE.value:
            return 0.95
        if stop_reason == "stop":
            return 0.95
        if stop_reason == "length":
            return 0.85
        return 0.75

    async def complete(self, messages: List[Message], config: GenerationConfig) -> Response:
        try:
            client = self._client_for(config)
            lc_response = await client.ainvoke(self._convert_messages(messages))
        except Exception as e:
            raise classify_error(e, self.name) from e

        content = _text_of(getattr(lc_response, "content", ""))
        if not content:
            raise GatewayError(ErrorKind.API_ERROR, f"No response content from {self.name}", self.name)

        metadata = dict(getattr(lc_response, "response_metadata", None) or {})
        stop_reason = self._stop_reason(metadata)

        return Response(
            content=content,
            usage=_usage_of(lc_response) or TokenUsage(),
            provider=self.name,
            model=config.model,
            confidence=self._estimate_confidence(stop_reason),
            metadata={
                "stop_reason": stop_reason,
                "response_id": metadata.get("id") or getattr(lc_response, "id", None),
            },
        )

    async def stream(self, messages: List[Message], config: GenerationConfig) -> AsyncIterator[StreamChunk]:
        usage: Optional[TokenUsage] = None
        stop_reason: Optional[str] = None

        try:
            client = self._client_for(config)
            async for chunk in client.astream(self._convert_messages(messages)):
                text = _text_of(getattr(chunk, "content", ""))
                if text:
                    yield TextDelta(text)

                # Claude reports input and output tokens on different chunks
                chunk_usage = _usage_of(chunk)
                if chunk_usage:
                    usage = chunk_usage if usage is None else TokenUsage(
                        prompt_tokens=usage.prompt_tokens + chunk_usage.prompt_tokens,
                        completion_tokens=usage.completion_tokens + chunk_usage.completion_tokens,
                        total_tokens=usage.total_tokens + chunk_usage.total_tokens,
                    )

                metadata = getattr(chunk, "response_metadata", None) or {}
                stop_reason = self._stop_reason(metadata) or stop_reason
        except GatewayError:
            raise
        except Exception as e:
            raise classify_error(e, self.name) from e

        yield StreamCompletion(usage=usage, stop_reason=stop_reason, metadata={"provider": self.name})
