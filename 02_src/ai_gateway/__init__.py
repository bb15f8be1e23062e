"""
AI Gateway module.

Provides multi-provider model access with rate limiting, response caching,
single-hop fallback, cancellable streaming and usage monitoring.
"""
from .cache import ResponseCache
from .config import AGENT_PRESETS, GatewayConfig, load_gateway_config, setup_logging
from .errors import ErrorKind, GatewayError, classify_error
from .fallback_policy import FallbackPolicy
from .gateway import Gateway, create_gateway
from .models import (
    GenerationConfig,
    Message,
    Provider,
    Response,
    StreamChunk,
    StreamCompletion,
    StreamEvent,
    StreamEventType,
    StreamFailure,
    TextDelta,
    TokenUsage,
)
from .orchestrator import RequestOrchestrator, fingerprint
from .provider_adapter import ProviderAdapter
from .rate_limiter import RateDecision, RateLimiter
from .streaming import StreamingSession, StreamingSessionManager
from .token_counter import TokenCounter

__all__ = [
    "Gateway",
    "create_gateway",
    "GatewayConfig",
    "load_gateway_config",
    "setup_logging",
    "AGENT_PRESETS",
    "RequestOrchestrator",
    "fingerprint",
    "StreamingSessionManager",
    "StreamingSession",
    "RateLimiter",
    "RateDecision",
    "ResponseCache",
    "FallbackPolicy",
    "TokenCounter",
    "ProviderAdapter",
    "ErrorKind",
    "GatewayError",
    "classify_error",
    "Message",
    "GenerationConfig",
    "Provider",
    "Response",
    "TokenUsage",
    "StreamChunk",
    "TextDelta",
    "StreamCompletion",
    "StreamFailure",
    "StreamEvent",
    "StreamEventType",
]
