"""
Pricing calculations.

Per-token rates for each (provider, model) pair, with a conservative blended
default for pairs that are not listed.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenRate:
    """Per-token pricing for a specific model (dollars per token)."""

    input: float
    output: float


# Blended rate applied to prompt and completion tokens of unknown models
DEFAULT_RATE = TokenRate(input=0.00002, output=0.00002)


PRICING_TABLE: Dict[str, TokenRate] = {
    "openai:gpt-4-turbo-preview": TokenRate(input=0.00001, output=0.00003),
    "openai:gpt-4o": TokenRate(input=0.0000025, output=0.00001),
    "openai:gpt-4o-mini": TokenRate(input=0.00000015, output=0.0000006),
    "openai:gpt-3.5-turbo": TokenRate(input=0.0000005, output=0.0000015),
    "claude:claude-3-5-sonnet-20241022": TokenRate(input=0.000003, output=0.000015),
    "claude:claude-3-opus-20240229": TokenRate(input=0.000015, output=0.000075),
    "claude:claude-3-haiku-20240307": TokenRate(input=0.00000025, output=0.00000125),
}


class Pricing:
    """Cost lookup over a static rate table."""

    def __init__(self, table: Optional[Dict[str, TokenRate]] = None, default: TokenRate = DEFAULT_RATE):
        """
        Args:
            table: Dict {"provider:model": TokenRate}; defaults to PRICING_TABLE
            default: Rate for pairs missing from the table
        """
        self.table = dict(PRICING_TABLE if table is None else table)
        self.default = default
        self._warned = set()

    def rate_for(self, provider: str, model: str) -> TokenRate:
        key = f"{provider}:{model}"
        rate = self.table.get(key)
        if rate is None:
            if key not in self._warned:
                logger.warning(f"No cost data for {key}, using default rates")
                self._warned.add(key)
            return self.default
        return rate

    def calculate_cost(self, provider: str, model: str, prompt_tokens: int, completion_tokens: int) -> float:
        """
        Calculate cost of one call.

        Args:
            provider: Provider identifier
            model: Model identifier
            prompt_tokens: Input tokens
            completion_tokens: Output tokens

        Returns:
            Cost in dollars
        """
        rate = self.rate_for(provider, model)
        return prompt_tokens * rate.input + completion_tokens * rate.output
