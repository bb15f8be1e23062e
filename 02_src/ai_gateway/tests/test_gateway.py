"""
Integration tests for the Gateway composition root.

Uses mock adapters; no real API calls.
"""
import json
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from ai_gateway.config import GatewayConfig
from ai_gateway.errors import ErrorKind, GatewayError
from ai_gateway.gateway import Gateway, create_gateway
from ai_gateway.models import GenerationConfig, Message, StreamEventType
from ai_gateway.tests.mock_provider import MockProviderAdapter
from monitoring import JsonlTelemetrySink, Pricing, TokenRate

MESSAGES = [Message(role="user", content="Summarize today's alerts")]
OPENAI = GenerationConfig(provider="openai", model="gpt-4o")


def mock_adapters(**overrides):
    adapters = {
        "openai": MockProviderAdapter("openai"),
        "claude": MockProviderAdapter("claude"),
    }
    adapters.update(overrides)
    return adapters


class TestCreateGateway:
    """Tests for create_gateway wiring."""

    def test_services_are_shared(self):
        gateway = create_gateway(GatewayConfig(), adapters=mock_adapters())

        assert isinstance(gateway, Gateway)
        assert gateway.orchestrator.rate_limiter is gateway.streaming.rate_limiter
        assert gateway.orchestrator.monitor is gateway.streaming.monitor

    def test_config_values_applied(self):
        config = GatewayConfig(
            rate_limits={"openai": 7},
            cache_ttl_seconds=5,
            daily_cost_limit=3.0,
            fallback_provider=None,
            fallback_model=None,
        )
        gateway = create_gateway(config, adapters=mock_adapters())

        assert gateway.rate_limiter.usage("openai")["limit"] == 7
        assert gateway.cache.ttl_seconds == 5
        assert gateway.monitor.thresholds.daily_cost_limit == 3.0
        assert gateway.orchestrator.fallback_policy.enabled is False

    def test_jsonl_sink_when_log_dir_set(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway = create_gateway(GatewayConfig(log_dir=tmpdir), adapters=mock_adapters())
            assert isinstance(gateway.monitor.sink, JsonlTelemetrySink)

    def test_default_adapters_from_providers_package(self):
        sentinel = {"openai": MockProviderAdapter("openai")}

        with patch("providers.create_adapters", return_value=sentinel) as factory:
            gateway = create_gateway(GatewayConfig(openai_api_key="sk-test"))

        factory.assert_called_once()
        assert gateway.orchestrator.adapters == sentinel


class TestGatewayFlows:
    """End-to-end flows through the public surface."""

    @pytest.mark.asyncio
    async def test_generate_then_cached(self):
        adapters = mock_adapters()
        gateway = create_gateway(GatewayConfig(), adapters=adapters)

        first = await gateway.generate(MESSAGES, OPENAI)
        second = await gateway.generate(MESSAGES, OPENAI)

        assert first.content == "Mock response"
        assert second.metadata["cached"] is True
        assert len(adapters["openai"].calls) == 1

    @pytest.mark.asyncio
    async def test_generate_and_stream_share_rate_budget(self):
        gateway = create_gateway(GatewayConfig(rate_limits={"openai": 1}), adapters=mock_adapters())

        await gateway.generate(MESSAGES, OPENAI)

        with pytest.raises(GatewayError) as exc_info:
            await gateway.open(MESSAGES, OPENAI, lambda event: None)

        assert exc_info.value.kind is ErrorKind.RATE_LIMIT

    @pytest.mark.asyncio
    async def test_open_stream_and_usage_report(self):
        gateway = create_gateway(GatewayConfig(), adapters=mock_adapters())
        await gateway.start()

        try:
            events = [event async for event in gateway.open_stream(MESSAGES, OPENAI)]
        finally:
            await gateway.stop()

        assert events[-1].type is StreamEventType.COMPLETE

        report = gateway.usage_report()
        assert report.summary.total_requests == 1
        assert "openai:gpt-4o" in report.by_provider

    @pytest.mark.asyncio
    async def test_cancel_unknown_stream(self):
        gateway = create_gateway(GatewayConfig(), adapters=mock_adapters())
        assert gateway.cancel("stream_nope") is False

    @pytest.mark.asyncio
    async def test_reset_daily_costs_keeps_totals(self):
        pricing = Pricing({"openai:gpt-4o": TokenRate(input=0.01, output=0.01)})
        gateway = create_gateway(GatewayConfig(), adapters=mock_adapters(), pricing=pricing)

        await gateway.generate(MESSAGES, OPENAI)
        assert gateway.monitor.get_daily_cost("openai", "gpt-4o") == pytest.approx(0.30)

        gateway.reset_daily_costs()

        assert gateway.monitor.get_daily_cost("openai", "gpt-4o") == 0.0
        assert gateway.monitor.get_metrics("openai")[0].total_cost == pytest.approx(0.30)

    @pytest.mark.asyncio
    async def test_alerts_reach_jsonl_sink(self):
        pricing = Pricing({"openai:gpt-4o": TokenRate(input=1.0, output=1.0)})

        with tempfile.TemporaryDirectory() as tmpdir:
            config = GatewayConfig(daily_cost_limit=20.0, log_dir=tmpdir)
            gateway = create_gateway(config, adapters=mock_adapters(), pricing=pricing)

            await gateway.generate(MESSAGES, OPENAI)

            alerts_file = Path(tmpdir) / "monitoring" / "alerts.jsonl"
            [entry] = [json.loads(line) for line in alerts_file.read_text().splitlines()]
            assert entry["type"] == "COST_THRESHOLD"
            assert entry["severity"] == "CRITICAL"

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_fail_request(self):
        sink = MagicMock()
        sink.record_metrics.side_effect = OSError("disk full")
        gateway = create_gateway(GatewayConfig(), adapters=mock_adapters(), sink=sink)

        response = await gateway.generate(MESSAGES, OPENAI)

        assert response.content == "Mock response"
        sink.record_metrics.assert_called_once()
