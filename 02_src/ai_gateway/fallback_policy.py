"""
Fallback policy for the request orchestrator.

A failed call to the primary provider is retried exactly once against a
configured fallback provider. Fallback failures are never retried.
"""
from dataclasses import dataclass
from typing import Optional

from .models import GenerationConfig


@dataclass(frozen=True)
class FallbackPolicy:
    """
    Single-hop fallback from the primary provider.

    Strategy: at most two provider round-trips per request, so an outage on
    one vendor cannot cascade into retry storms.
    """

    primary_provider: str = "openai"
    fallback_provider: Optional[str] = "claude"
    fallback_model: Optional[str] = "claude-3-5-sonnet-20241022"

    @property
    def enabled(self) -> bool:
        return bool(self.fallback_provider and self.fallback_model)

    def should_fallback(self, provider: str) -> bool:
        """
        Determine if a failed call to provider gets a fallback attempt.

        Args:
            provider: Provider whose call failed

        Returns:
            True only for the primary provider when a fallback is configured
        """
        return self.enabled and provider == self.primary_provider and provider != self.fallback_provider

    def fallback_config(self, config: GenerationConfig) -> Optional[GenerationConfig]:
        """
        Build the adjusted config for the fallback attempt.

        Args:
            config: Config of the failed primary call

        Returns:
            Config targeting the fallback provider, or None if no fallback applies
        """
        if not self.should_fallback(config.provider):
            return None
        return config.with_provider(self.fallback_provider, self.fallback_model)

    @classmethod
    def disabled(cls, primary_provider: str = "openai") -> "FallbackPolicy":
        """Policy that never falls back."""
        return cls(primary_provider=primary_provider, fallback_provider=None, fallback_model=None)
