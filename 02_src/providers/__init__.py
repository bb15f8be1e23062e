"""
Provider adapters module.

Provides vendor adapters implementing ai_gateway.provider_adapter.ProviderAdapter.
"""
from typing import Dict, Optional

from ai_gateway.config import GatewayConfig
from ai_gateway.provider_adapter import ProviderAdapter

from .langchain_adapter import LangchainProviderAdapter


def create_adapter(provider: str, api_key: Optional[str] = None) -> ProviderAdapter:
    """
    Create an adapter instance by provider name.

    Args:
        provider: "openai" or "claude"
        api_key: Vendor API key

    Returns:
        ProviderAdapter

    Raises:
        ValueError: If provider is not supported
    """
    return LangchainProviderAdapter(provider.lower(), api_key=api_key)


def create_adapters(config: GatewayConfig) -> Dict[str, ProviderAdapter]:
    """
    Create adapters for every provider that has an API key configured.

    Args:
        config: GatewayConfig

    Returns:
        Dict {provider: ProviderAdapter}
    """
    adapters: Dict[str, ProviderAdapter] = {}
    for provider in ("openai", "claude"):
        api_key = config.api_key_for(provider)
        if api_key:
            adapters[provider] = create_adapter(provider, api_key)
    return adapters


__all__ = ["LangchainProviderAdapter", "create_adapter", "create_adapters"]
