"""
Data models for the AI gateway.

Defines messages, generation configs, responses, stream chunks and events.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

VALID_ROLES = ("system", "user", "assistant")


class Provider(str, Enum):
    """Supported AI providers."""

    OPENAI = "openai"
    CLAUDE = "claude"


@dataclass(frozen=True)
class Message:
    """Message in chat API format."""

    role: str  # "system" | "user" | "assistant"
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class GenerationConfig:
    """Provider, model and sampling parameters for one request."""

    provider: str
    model: str
    max_tokens: int = 1024
    temperature: float = 0.7
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None

    def with_provider(self, provider: str, model: str) -> "GenerationConfig":
        """
        Copy of this config targeting another provider.

        Args:
            provider: Provider identifier
            model: Model identifier valid for that provider

        Returns:
            New GenerationConfig with the same sampling parameters
        """
        return replace(self, provider=provider, model=model)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "frequency_penalty": self.frequency_penalty,
            "presence_penalty": self.presence_penalty,
        }


@dataclass(frozen=True)
class TokenUsage:
    """Token usage breakdown."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def of(cls, prompt_tokens: int, completion_tokens: int) -> "TokenUsage":
        return cls(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class Response:
    """Complete response from a provider."""

    content: str
    usage: TokenUsage
    provider: str
    model: str
    confidence: float = 0.0
    processing_time_ms: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def evolve(self, **changes: Any) -> "Response":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


# ---------------------------------------------------------------------------
# Stream chunks produced by provider adapters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextDelta:
    """Incremental piece of generated text."""

    text: str


@dataclass(frozen=True)
class StreamCompletion:
    """Completion marker with final usage and stop reason."""

    usage: Optional[TokenUsage] = None
    stop_reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StreamFailure:
    """Provider-side failure reported in-band."""

    error: Exception


StreamChunk = Union[TextDelta, StreamCompletion, StreamFailure]


# ---------------------------------------------------------------------------
# Events delivered to streaming callers
# ---------------------------------------------------------------------------


class StreamEventType(str, Enum):
    """Kinds of events delivered to streaming callers."""

    PARTIAL = "partial"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class StreamEvent:
    """Event delivered to a streaming caller."""

    session_id: str
    type: StreamEventType
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def is_terminal(self) -> bool:
        return self.type is not StreamEventType.PARTIAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.session_id,
            "type": self.type.value,
            "content": self.content,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }
