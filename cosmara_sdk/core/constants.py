"""
Static configuration tables.

Model equivalents, tier limits and thresholds. These are injected into
adapters and the usage tracker at construction time; the values here are
only the defaults.
"""

from types import MappingProxyType
from typing import Mapping

from .types import APIProvider, UsageLimits

# Canonical model -> native model name per provider.
# A missing provider entry means the model cannot be served by that provider.
MODEL_EQUIVALENTS: Mapping[str, Mapping[APIProvider, str]] = MappingProxyType({
    "gpt-4o": MappingProxyType({
        APIProvider.OPENAI: "gpt-4o",
        APIProvider.ANTHROPIC: "claude-3-5-sonnet-20241022",
        APIProvider.GOOGLE: "gemini-1.5-pro",
    }),
    "gpt-4o-mini": MappingProxyType({
        APIProvider.OPENAI: "gpt-4o-mini",
        APIProvider.ANTHROPIC: "claude-3-5-haiku-20241022",
        APIProvider.GOOGLE: "gemini-1.5-flash",
    }),
    "gpt-3.5-turbo": MappingProxyType({
        APIProvider.OPENAI: "gpt-3.5-turbo",
        APIProvider.ANTHROPIC: "claude-3-haiku-20240307",
        APIProvider.GOOGLE: "gemini-1.5-flash-8b",
    }),
    "gpt-4-turbo": MappingProxyType({
        APIProvider.OPENAI: "gpt-4-turbo",
        APIProvider.ANTHROPIC: "claude-3-opus-20240229",
    }),
    "claude-3-5-sonnet": MappingProxyType({
        APIProvider.ANTHROPIC: "claude-3-5-sonnet-20241022",
        APIProvider.OPENAI: "gpt-4o",
        APIProvider.GOOGLE: "gemini-1.5-pro",
    }),
    "claude-3-5-haiku": MappingProxyType({
        APIProvider.ANTHROPIC: "claude-3-5-haiku-20241022",
        APIProvider.OPENAI: "gpt-4o-mini",
        APIProvider.GOOGLE: "gemini-1.5-flash",
    }),
    "gemini-1.5-pro": MappingProxyType({
        APIProvider.GOOGLE: "gemini-1.5-pro",
        APIProvider.OPENAI: "gpt-4o",
        APIProvider.ANTHROPIC: "claude-3-5-sonnet-20241022",
    }),
    "gemini-1.5-flash": MappingProxyType({
        APIProvider.GOOGLE: "gemini-1.5-flash",
        APIProvider.OPENAI: "gpt-4o-mini",
        APIProvider.ANTHROPIC: "claude-3-5-haiku-20241022",
    }),
})

COMMUNITY_LIMITS = UsageLimits(per_minute=10, per_day=100, per_month=1000)

# Published limits for every edition. Only Community is usable in this SDK.
TIER_LIMITS: Mapping[str, UsageLimits] = MappingProxyType({
    "community": COMMUNITY_LIMITS,
    "developer": UsageLimits(per_minute=100, per_day=2_000, per_month=50_000),
    "professional": UsageLimits(per_minute=1_000, per_day=20_000, per_month=500_000),
})

PERFORMANCE_TARGETS: Mapping[str, int] = MappingProxyType({
    "max_latency_ms": 10_000,      # Responses slower than this are logged
    "max_first_chunk_ms": 2_000,   # Time to open a stream
})

# Per-request cost levels in USD
COST_THRESHOLDS: Mapping[str, float] = MappingProxyType({
    "low": 0.01,
    "medium": 0.10,
    "high": 1.00,
})

UPGRADE_MESSAGES: Mapping[str, str] = MappingProxyType({
    "minute": (
        "Community edition allows 10 requests per minute. "
        "Upgrade to Developer tier for higher limits: https://cosmara.dev/pricing"
    ),
    "day": (
        "Community edition allows 100 requests per day. "
        "Upgrade to Developer tier for higher limits: https://cosmara.dev/pricing"
    ),
    "month": (
        "Community edition allows 1,000 requests per month. "
        "Developer tier includes 50,000 requests/month: https://cosmara.dev/pricing"
    ),
    "edition": (
        "This SDK is the Community edition. Developer and Professional tiers "
        "require the commercial SDK: https://cosmara.dev/pricing"
    ),
})
