"""
Provider adapter contract.

One adapter per vendor translates the canonical request/response shape to that
vendor's call semantics. The orchestrator and the streaming manager depend on
this contract only.
"""
from abc import ABC, abstractmethod
from typing import AsyncIterator, List

from .models import GenerationConfig, Message, Response, StreamChunk


class ProviderAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Implementations must raise GatewayError (see errors.classify_error)
    instead of vendor-specific exceptions.
    """

    name: str = ""
    supports_streaming: bool = True

    @abstractmethod
    async def complete(self, messages: List[Message], config: GenerationConfig) -> Response:
        """
        Single-call completion.

        Args:
            messages: Conversation messages
            config: Generation config

        Returns:
            Response

        Raises:
            GatewayError: On any provider failure
        """
        pass

    @abstractmethod
    def stream(self, messages: List[Message], config: GenerationConfig) -> AsyncIterator[StreamChunk]:
        """
        Chunked completion.

        Yields TextDelta chunks followed by exactly one StreamCompletion, or a
        StreamFailure / GatewayError on failure.

        Args:
            messages: Conversation messages
            config: Generation config

        Returns:
            Async iterator of StreamChunk
        """
        pass
