"""
COSMARA Community SDK.

Multi-provider AI client for OpenAI, Anthropic and Google with a unified
request/response shape and Community-tier usage limits.
"""

from .banner import EDITION, UPGRADE_INFO, VERSION, print_welcome_banner
from .client import CommunityClient, create_client
from .config.loader import CommunityConfig, load_config
from .core.constants import (
    COMMUNITY_LIMITS,
    COST_THRESHOLDS,
    MODEL_EQUIVALENTS,
    PERFORMANCE_TARGETS,
    TIER_LIMITS,
    UPGRADE_MESSAGES,
)
from .core.errors import AIError, ErrorKind, QuotaExceededError
from .core.license import Edition, LicenseResult, LicenseValidator
from .core.streaming import AIStream, StreamState
from .core.types import (
    AIMessage,
    AIModel,
    AIRequest,
    AIResponse,
    AIStreamChunk,
    APIProvider,
    GenerationParameters,
    MessageRole,
    ModelInfo,
    TokenUsage,
    UsageLimits,
    UsageRecord,
)
from .core.usage import QuotaWindow, UsageStats, UsageTracker
from .providers import AnthropicProvider, GoogleProvider, OpenAIProvider, Provider

__all__ = [
    "AIError",
    "AIMessage",
    "AIModel",
    "AIRequest",
    "AIResponse",
    "AIStream",
    "AIStreamChunk",
    "APIProvider",
    "AnthropicProvider",
    "COMMUNITY_LIMITS",
    "COST_THRESHOLDS",
    "CommunityClient",
    "CommunityConfig",
    "EDITION",
    "Edition",
    "ErrorKind",
    "GenerationParameters",
    "GoogleProvider",
    "LicenseResult",
    "LicenseValidator",
    "MODEL_EQUIVALENTS",
    "MessageRole",
    "ModelInfo",
    "OpenAIProvider",
    "PERFORMANCE_TARGETS",
    "Provider",
    "QuotaExceededError",
    "QuotaWindow",
    "StreamState",
    "TIER_LIMITS",
    "TokenUsage",
    "UPGRADE_INFO",
    "UPGRADE_MESSAGES",
    "UsageLimits",
    "UsageRecord",
    "UsageStats",
    "UsageTracker",
    "VERSION",
    "create_client",
    "load_config",
    "print_welcome_banner",
]
