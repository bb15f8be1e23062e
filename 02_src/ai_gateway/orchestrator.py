"""
Request Orchestrator.

Serves responses from the cache, enforces per-provider rate limits, calls the
primary provider with a single fallback hop, and feeds the cost monitor.
"""
import hashlib
import json
import logging
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from monitoring import CostMonitor

from .cache import ResponseCache
from .errors import ErrorKind, GatewayError, classify_error
from .fallback_policy import FallbackPolicy
from .models import VALID_ROLES, GenerationConfig, Message, Response
from .provider_adapter import ProviderAdapter
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def fingerprint(messages: List[Message], config: GenerationConfig) -> str:
    """
    Deterministic cache key for a request.

    Args:
        messages: Conversation messages
        config: Generation config

    Returns:
        SHA-256 hex digest of the canonical JSON of messages and config
    """
    payload = {
        "messages": [msg.to_dict() for msg in messages],
        "config": config.to_dict(),
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def validate_messages(messages: List[Message], provider: Optional[str] = None):
    """
    Reject malformed input before any provider is called.

    Raises:
        GatewayError: INVALID_REQUEST for empty input or unknown roles
    """
    if not messages:
        raise GatewayError(ErrorKind.INVALID_REQUEST, "At least one message is required", provider)

    for msg in messages:
        if msg.role not in VALID_ROLES:
            raise GatewayError(ErrorKind.INVALID_REQUEST, f"Invalid message role: {msg.role}", provider)


class RequestOrchestrator:
    """
    Facade over cache, rate limiter, provider adapters and cost monitor.

    Flow for generate():
    1. Cache hit -> return immediately
    2. Rate limiter denial -> RATE_LIMIT, no provider call
    3. Primary provider call
    4. Success -> track, cache, return
    5. Failure -> track, one fallback attempt if the policy allows it,
       otherwise raise the translated primary error
    """

    def __init__(
        self,
        adapters: Mapping[str, ProviderAdapter],
        rate_limiter: RateLimiter,
        cache: ResponseCache,
        monitor: CostMonitor,
        fallback_policy: Optional[FallbackPolicy] = None,
        log_dir: Optional[str] = None,
    ):
        """
        Args:
            adapters: Dict {provider: ProviderAdapter}
            rate_limiter: Shared RateLimiter
            cache: Shared ResponseCache
            monitor: Shared CostMonitor
            fallback_policy: Fallback route (default: openai -> claude)
            log_dir: Directory for JSONL logs (optional)
        """
        self.adapters = dict(adapters)
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.monitor = monitor
        self.fallback_policy = fallback_policy or FallbackPolicy()
        self.log_dir = log_dir

    async def generate(
        self,
        messages: List[Message],
        config: GenerationConfig,
        context: Optional[Dict[str, Any]] = None,
    ) -> Response:
        """
        Produce a complete response for messages.

        Args:
            messages: Conversation messages
            config: Generation config
            context: Optional agent/session data, used only for log correlation

        Returns:
            Response

        Raises:
            GatewayError: RATE_LIMIT on local denial, otherwise the translated
                error of the primary provider
        """
        context = dict(context or {})
        context.setdefault("request_id", uuid.uuid4().hex)
        start = time.monotonic()

        validate_messages(messages, config.provider)

        key = fingerprint(messages, config)
        cached = self.cache.get(key)
        if cached is not None:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.debug(f"Cache hit for {config.provider}:{config.model} ({context['request_id']})")
            return cached.evolve(
                processing_time_ms=elapsed_ms,
                metadata={**cached.metadata, "cached": True},
            )

        decision = self.rate_limiter.admit(config.provider)
        if not decision.allowed:
            raise GatewayError(
                ErrorKind.RATE_LIMIT,
                f"Rate limit exceeded for {config.provider}. "
                f"Please try again in {decision.retry_after_seconds} seconds.",
                config.provider,
                retry_after=decision.retry_after_seconds,
            )

        adapter = self.adapters.get(config.provider)
        if adapter is None:
            raise GatewayError(
                ErrorKind.INVALID_REQUEST, f"Unsupported AI provider: {config.provider}", config.provider
            )

        try:
            response = await self._call(adapter, messages, config)
        except GatewayError as error:
            latency_ms = (time.monotonic() - start) * 1000
            self.monitor.track(config.provider, config.model, False, 0, 0, latency_ms, error=error.message)
            self._log_error(config, context, error)

            fallback_response = await self._try_fallback(messages, config, context, error)
            if fallback_response is not None:
                return fallback_response
            raise error

        self.monitor.track(
            config.provider,
            config.model,
            True,
            response.usage.prompt_tokens,
            response.usage.completion_tokens,
            response.processing_time_ms,
        )
        self.cache.put(key, response)
        self._log_success(config, context, response)
        return response

    async def _call(
        self, adapter: ProviderAdapter, messages: List[Message], config: GenerationConfig
    ) -> Response:
        """
        Invoke one adapter and stamp the processing time.

        Raises:
            GatewayError: Any adapter failure, translated
        """
        start = time.monotonic()
        try:
            response = await adapter.complete(messages, config)
        except Exception as e:
            raise classify_error(e, config.provider) from e

        return response.evolve(processing_time_ms=int((time.monotonic() - start) * 1000))

    async def _try_fallback(
        self,
        messages: List[Message],
        config: GenerationConfig,
        context: Dict[str, Any],
        primary_error: GatewayError,
    ) -> Optional[Response]:
        """
        Single fallback attempt after a primary failure.

        Returns:
            Fallback Response, or None if no fallback applies or it failed
        """
        fallback_config = self.fallback_policy.fallback_config(config)
        if fallback_config is None:
            return None

        adapter = self.adapters.get(fallback_config.provider)
        if adapter is None:
            logger.warning(f"Fallback provider {fallback_config.provider} has no adapter registered")
            return None

        logger.info(
            f"Falling back from {config.provider} to {fallback_config.provider} "
            f"after {primary_error.kind.value} ({context['request_id']})"
        )
        start = time.monotonic()

        try:
            response = await self._call(adapter, messages, fallback_config)
        except GatewayError as fallback_error:
            latency_ms = (time.monotonic() - start) * 1000
            self.monitor.track(
                fallback_config.provider,
                fallback_config.model,
                False,
                0,
                0,
                latency_ms,
                error=fallback_error.message,
            )
            logger.error(f"Fallback provider also failed: {fallback_error.message}")
            self._log_fallback(config, fallback_config, context, fallback_error)
            return None

        self.monitor.track(
            fallback_config.provider,
            fallback_config.model,
            True,
            response.usage.prompt_tokens,
            response.usage.completion_tokens,
            response.processing_time_ms,
        )
        self._log_fallback(config, fallback_config, context, None)
        return response.evolve(metadata={**response.metadata, "fallback": True})

    def _log_success(self, config: GenerationConfig, context: Dict[str, Any], response: Response):
        """Log successful request."""
        self._write_log(
            "requests.jsonl",
            {
                "timestamp": datetime.now().isoformat(),
                "provider": config.provider,
                "model": config.model,
                "request_id": context.get("request_id"),
                "agent_id": context.get("agent_id"),
                "session_id": context.get("session_id"),
                "latency_ms": response.processing_time_ms,
                "total_tokens": response.usage.total_tokens,
                "status": "success",
            },
        )

    def _log_error(self, config: GenerationConfig, context: Dict[str, Any], error: GatewayError):
        """Log failed provider call."""
        logger.error(f"AI service error from {config.provider}:{config.model}: {error.message}")
        self._write_log(
            "errors.jsonl",
            {
                "timestamp": datetime.now().isoformat(),
                "provider": config.provider,
                "model": config.model,
                "request_id": context.get("request_id"),
                "agent_id": context.get("agent_id"),
                "error": error.message,
                "error_type": error.kind.value,
                "status": "error",
            },
        )

    def _log_fallback(
        self,
        config: GenerationConfig,
        fallback_config: GenerationConfig,
        context: Dict[str, Any],
        error: Optional[GatewayError],
    ):
        """Log fallback attempt."""
        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "from_provider": config.provider,
            "from_model": config.model,
            "to_provider": fallback_config.provider,
            "to_model": fallback_config.model,
            "request_id": context.get("request_id"),
            "status": "success" if error is None else "error",
        }
        if error is not None:
            log_entry["error"] = error.message
            log_entry["error_type"] = error.kind.value

        self._write_log("fallbacks.jsonl", log_entry)

    def _write_log(self, filename: str, log_entry: Dict[str, Any]):
        if not self.log_dir:
            return

        log_path = Path(self.log_dir) / "gateway" / filename
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(log_entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error(f"Failed to write log: {e}")
