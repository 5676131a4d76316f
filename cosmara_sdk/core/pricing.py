"""
Pricing calculations for native provider models.

Used to attach a cost estimate to every normalized response.
"""

from dataclasses import dataclass
from decimal import ROUND_UP, Decimal
from typing import Dict, Optional

from .types import TokenUsage


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    prompt_cost_per_1k: Decimal  # Cost per 1K prompt tokens
    completion_cost_per_1k: Decimal  # Cost per 1K completion tokens


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table keyed by native model name."""
    prices: Dict[str, ModelPricing]

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a specific model.

        Args:
            model: Native model identifier

        Returns:
            ModelPricing for the model

        Raises:
            ValueError: If model is not supported
        """
        if model not in self.prices:
            raise ValueError(f"Unsupported model: {model}")
        return self.prices[model]


def _price(prompt: str, completion: str) -> ModelPricing:
    return ModelPricing(prompt_cost_per_1k=Decimal(prompt), completion_cost_per_1k=Decimal(completion))


# Fixed pricing table - no dynamic fetching
PRICING_TABLE = PricingTable({
    "gpt-4o": _price("0.0025", "0.01"),
    "gpt-4o-mini": _price("0.00015", "0.0006"),
    "gpt-4-turbo": _price("0.01", "0.03"),
    "gpt-3.5-turbo": _price("0.0005", "0.0015"),
    "claude-3-5-sonnet-20241022": _price("0.003", "0.015"),
    "claude-3-5-haiku-20241022": _price("0.0008", "0.004"),
    "claude-3-haiku-20240307": _price("0.00025", "0.00125"),
    "claude-3-opus-20240229": _price("0.015", "0.075"),
    "gemini-1.5-pro": _price("0.00125", "0.005"),
    "gemini-1.5-flash": _price("0.000075", "0.0003"),
    "gemini-1.5-flash-8b": _price("0.0000375", "0.00015"),
})


def calculate_cost(model: str, usage: TokenUsage, table: PricingTable = PRICING_TABLE) -> float:
    """Calculate total cost for model usage with conservative rounding.

    Args:
        model: Native model identifier
        usage: Token usage data
        table: Pricing table to use

    Returns:
        Total cost in USD rounded UP to 6 decimal places

    Raises:
        ValueError: If model is not supported
    """
    pricing = table.get_pricing(model)

    prompt_cost = (Decimal(usage.prompt_tokens) / Decimal("1000")) * pricing.prompt_cost_per_1k
    completion_cost = (Decimal(usage.completion_tokens) / Decimal("1000")) * pricing.completion_cost_per_1k

    total_cost = prompt_cost + completion_cost
    return float(total_cost.quantize(Decimal("0.000001"), rounding=ROUND_UP))


def estimate_cost(model: str, usage: TokenUsage, table: PricingTable = PRICING_TABLE) -> Optional[float]:
    """Like calculate_cost, but None for models without a price."""
    if model not in table.prices:
        return None
    return calculate_cost(model, usage, table)
