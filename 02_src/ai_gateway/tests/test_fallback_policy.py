"""
Unit tests for FallbackPolicy.
"""
from ai_gateway.fallback_policy import FallbackPolicy
from ai_gateway.models import GenerationConfig


class TestFallbackPolicy:
    """Test suite for FallbackPolicy."""

    def test_default_route_openai_to_claude(self):
        """Default policy routes openai failures to claude sonnet."""
        policy = FallbackPolicy()
        config = GenerationConfig(provider="openai", model="gpt-4o", max_tokens=500, temperature=0.2)

        fallback = policy.fallback_config(config)

        assert fallback.provider == "claude"
        assert fallback.model == "claude-3-5-sonnet-20241022"
        assert fallback.max_tokens == 500
        assert fallback.temperature == 0.2

    def test_fallback_provider_never_falls_back(self):
        """A failed fallback call gets no further hop."""
        policy = FallbackPolicy()
        config = GenerationConfig(provider="claude", model="claude-3-5-sonnet-20241022")

        assert policy.should_fallback("claude") is False
        assert policy.fallback_config(config) is None

    def test_other_providers_do_not_fall_back(self):
        policy = FallbackPolicy()
        assert policy.should_fallback("local") is False

    def test_disabled_policy(self):
        policy = FallbackPolicy.disabled()
        config = GenerationConfig(provider="openai", model="gpt-4o")

        assert policy.enabled is False
        assert policy.fallback_config(config) is None

    def test_primary_equal_to_fallback_never_loops(self):
        policy = FallbackPolicy(primary_provider="claude", fallback_provider="claude", fallback_model="x")
        assert policy.should_fallback("claude") is False

    def test_custom_route(self):
        policy = FallbackPolicy(
            primary_provider="claude", fallback_provider="openai", fallback_model="gpt-4o-mini"
        )
        config = GenerationConfig(provider="claude", model="claude-3-haiku-20240307")

        fallback = policy.fallback_config(config)

        assert (fallback.provider, fallback.model) == ("openai", "gpt-4o-mini")
