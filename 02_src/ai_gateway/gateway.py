"""
Gateway composition root.

Builds one rate limiter, cache, monitor, orchestrator and streaming manager
per process and exposes the inbound call contract.
"""
import logging
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

from monitoring import AlertThresholds, CostMonitor, JsonlTelemetrySink, Pricing, TelemetrySink

from .cache import ResponseCache
from .config import GatewayConfig
from .fallback_policy import FallbackPolicy
from .models import GenerationConfig, Message, Response, StreamEvent
from .orchestrator import RequestOrchestrator
from .provider_adapter import ProviderAdapter
from .rate_limiter import RateLimiter
from .streaming import ChunkCallback, StreamingSessionManager

logger = logging.getLogger(__name__)


class Gateway:
    """
    Multi-provider AI request gateway.

    Services are constructed explicitly and shared by reference; the lifetime
    is owned by the caller through start()/stop().
    """

    def __init__(
        self,
        orchestrator: RequestOrchestrator,
        streaming: StreamingSessionManager,
    ):
        self.orchestrator = orchestrator
        self.streaming = streaming

    @property
    def monitor(self) -> CostMonitor:
        return self.orchestrator.monitor

    @property
    def cache(self) -> ResponseCache:
        return self.orchestrator.cache

    @property
    def rate_limiter(self) -> RateLimiter:
        return self.orchestrator.rate_limiter

    async def start(self):
        """Start background maintenance (stale stream sweep)."""
        await self.streaming.start()

    async def stop(self):
        """Stop background maintenance and cancel live streams."""
        await self.streaming.stop()

    async def generate(
        self,
        messages: List[Message],
        config: GenerationConfig,
        context: Optional[Dict[str, Any]] = None,
    ) -> Response:
        return await self.orchestrator.generate(messages, config, context)

    async def open(
        self,
        messages: List[Message],
        config: GenerationConfig,
        on_chunk: ChunkCallback,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        return await self.streaming.open(messages, config, on_chunk, context)

    def open_stream(
        self,
        messages: List[Message],
        config: GenerationConfig,
        context: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[StreamEvent]:
        return self.streaming.open_stream(messages, config, context)

    def cancel(self, session_id: str) -> bool:
        return self.streaming.cancel(session_id)

    def reset_daily_costs(self):
        """Reset hook for the external daily scheduler."""
        self.monitor.reset_daily()

    def usage_report(self):
        return self.monitor.get_usage_report()


def create_gateway(
    config: GatewayConfig,
    adapters: Optional[Mapping[str, ProviderAdapter]] = None,
    sink: Optional[TelemetrySink] = None,
    pricing: Optional[Pricing] = None,
) -> Gateway:
    """
    Build a Gateway from configuration.

    Args:
        config: GatewayConfig
        adapters: Dict {provider: ProviderAdapter}; defaults to langchain
            adapters for every provider with an API key
        sink: Telemetry sink; defaults to JSONL files when log_dir is set
        pricing: Rate table override

    Returns:
        Gateway
    """
    if adapters is None:
        # Import here to avoid circular deps
        from providers import create_adapters

        adapters = create_adapters(config)

    if not adapters:
        logger.warning("No provider adapters configured; every request will be rejected")

    if sink is None and config.log_dir:
        sink = JsonlTelemetrySink(config.log_dir)

    rate_limiter = RateLimiter(config.rate_limits, window_seconds=config.rate_window_seconds)
    cache = ResponseCache(ttl_seconds=config.cache_ttl_seconds, max_entries=config.cache_max_entries)
    monitor = CostMonitor(
        thresholds=AlertThresholds(
            daily_cost_limit=config.daily_cost_limit,
            error_rate_threshold=config.error_rate_threshold,
            error_rate_critical_threshold=config.error_rate_critical_threshold,
            latency_threshold_ms=config.latency_threshold_ms,
        ),
        pricing=pricing,
        sink=sink,
    )
    fallback_policy = FallbackPolicy(
        primary_provider=config.primary_provider,
        fallback_provider=config.fallback_provider,
        fallback_model=config.fallback_model,
    )

    orchestrator = RequestOrchestrator(
        adapters,
        rate_limiter,
        cache,
        monitor,
        fallback_policy=fallback_policy,
        log_dir=config.log_dir,
    )
    streaming = StreamingSessionManager(
        adapters,
        rate_limiter,
        monitor,
        stale_after_seconds=config.stream_stale_seconds,
        sweep_interval_seconds=config.stream_sweep_interval_seconds,
    )
    return Gateway(orchestrator, streaming)
