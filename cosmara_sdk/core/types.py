"""
Canonical data model.

Provider-agnostic shapes for requests, responses, stream chunks and usage.
Every provider adapter consumes and produces these.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence, Tuple

from .errors import invalid_request

# Canonical model identifier, a key of MODEL_EQUIVALENTS
AIModel = str


class APIProvider(str, Enum):
    """Supported completion providers."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


class MessageRole(str, Enum):
    """Message role in a conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class AIMessage:
    """A single message in a conversation."""
    role: MessageRole
    content: str

    def __post_init__(self):
        try:
            object.__setattr__(self, "role", MessageRole(self.role))
        except ValueError:
            raise invalid_request(f"Unsupported message role: {self.role!r}")
        if not isinstance(self.content, str):
            raise invalid_request("Message content must be a string")


@dataclass(frozen=True)
class GenerationParameters:
    """Optional generation controls shared by all providers."""
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    stop: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        """Validate parameter ranges."""
        if self.temperature is not None and not 0 <= self.temperature <= 2:
            raise invalid_request("temperature must be between 0 and 2")
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise invalid_request("max_tokens must be > 0")
        if self.top_p is not None and not 0 <= self.top_p <= 1:
            raise invalid_request("top_p must be between 0 and 1")
        if self.stop is not None:
            object.__setattr__(self, "stop", tuple(self.stop))


@dataclass(frozen=True)
class AIRequest:
    """Provider-agnostic completion request.

    Created per call by the caller and never mutated. ``provider`` overrides
    the client's default provider for this call only.
    """
    model: AIModel
    messages: Sequence[AIMessage]
    parameters: GenerationParameters = field(default_factory=GenerationParameters)
    provider: Optional[APIProvider] = None

    def __post_init__(self):
        if not self.model or not str(self.model).strip():
            raise invalid_request("model is required and cannot be empty")
        if not self.messages:
            raise invalid_request("messages is required and cannot be empty")
        object.__setattr__(self, "messages", tuple(self.messages))
        if self.provider is not None:
            try:
                object.__setattr__(self, "provider", APIProvider(self.provider))
            except ValueError:
                raise invalid_request(f"Unknown provider: {self.provider!r}")


@dataclass(frozen=True)
class TokenUsage:
    """Token usage reported for a completed call."""
    prompt_tokens: int
    completion_tokens: int

    def __post_init__(self):
        object.__setattr__(self, "prompt_tokens", max(int(self.prompt_tokens or 0), 0))
        object.__setattr__(self, "completion_tokens", max(int(self.completion_tokens or 0), 0))

    @property
    def total_tokens(self) -> int:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True)
class AIResponse:
    """Normalized completion result.

    ``model`` is the canonical model from the request; ``provider_model``
    is the native name the provider actually served.
    """
    content: str
    model: AIModel
    provider: APIProvider
    usage: TokenUsage
    latency_ms: int
    provider_model: Optional[str] = None
    finish_reason: Optional[str] = None
    cost: Optional[float] = None
    request_id: Optional[str] = None


@dataclass(frozen=True)
class AIStreamChunk:
    """Partial text from a streaming call; the last chunk has done=True."""
    delta: str
    done: bool = False
    usage: Optional[TokenUsage] = None


@dataclass(frozen=True)
class ModelInfo:
    """Catalogue entry returned by a provider's list_models."""
    id: AIModel
    provider: APIProvider
    provider_model: str


@dataclass(frozen=True)
class UsageRecord:
    """Immutable record of one completed call.

    Append-only; kept only as long as the longest quota window needs it.
    """
    timestamp: datetime
    provider: APIProvider
    tokens_consumed: int = 0
    model: Optional[AIModel] = None
    request_id: Optional[str] = None


@dataclass(frozen=True)
class UsageLimits:
    """Request limits per rolling window."""
    per_minute: int
    per_day: int
    per_month: int

    def __post_init__(self):
        """Validate limits are positive."""
        for name in ("per_minute", "per_day", "per_month"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
