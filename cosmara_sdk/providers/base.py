"""
Provider capability set and shared translation helpers.

Adapters are plain classes satisfying the Provider protocol; the client
selects one through an explicit provider -> adapter dispatch table.
"""

import time
from typing import FrozenSet, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

from ..core.errors import auth_error, invalid_request
from ..core.streaming import AIStream
from ..core.types import AIMessage, AIModel, AIRequest, AIResponse, APIProvider, MessageRole, ModelInfo


@runtime_checkable
class Provider(Protocol):
    """Capability set every provider adapter implements."""

    provider: APIProvider

    async def send(self, request: AIRequest) -> AIResponse:
        ...

    async def stream(self, request: AIRequest) -> AIStream:
        ...

    def list_models(self) -> FrozenSet[ModelInfo]:
        ...


def resolve_model(
    model: AIModel,
    provider: APIProvider,
    equivalents: Mapping[str, Mapping[APIProvider, str]],
) -> str:
    """Translate a canonical model into the provider's native name.

    Raises:
        AIError: INVALID_REQUEST if the provider has no equivalent
    """
    native = equivalents.get(model, {}).get(provider)
    if native is None:
        raise invalid_request(
            f"Model '{model}' has no {provider.value} equivalent", provider.value
        )
    return native


def catalogue(
    provider: APIProvider,
    equivalents: Mapping[str, Mapping[APIProvider, str]],
) -> FrozenSet[ModelInfo]:
    """Every canonical model the provider can serve."""
    return frozenset(
        ModelInfo(id=model, provider=provider, provider_model=natives[provider])
        for model, natives in equivalents.items()
        if provider in natives
    )


def require_api_key(api_key: Optional[str], provider: APIProvider) -> str:
    """Raise AUTH_ERROR when no key is available for the provider."""
    if not api_key:
        raise auth_error(f"No API key configured for {provider.value}", provider.value)
    return api_key


def split_system(messages: Tuple[AIMessage, ...], provider: APIProvider) -> Tuple[Optional[str], List[AIMessage]]:
    """Separate leading system messages from the conversation.

    For providers that take the system prompt as a top-level field. A
    system message after the conversation has started cannot be
    represented there.

    Returns:
        Tuple of (system_content, remaining_messages)

    Raises:
        AIError: INVALID_REQUEST for a late system message or an empty conversation
    """
    system_parts: List[str] = []
    conversation: List[AIMessage] = []

    for msg in messages:
        if msg.role == MessageRole.SYSTEM:
            if conversation:
                raise invalid_request(
                    f"{provider.value} does not accept a system message after the conversation starts",
                    provider.value,
                )
            system_parts.append(msg.content)
        else:
            conversation.append(msg)

    if not conversation:
        raise invalid_request(
            f"{provider.value} requires at least one user or assistant message", provider.value
        )

    return ("\n\n".join(system_parts) if system_parts else None), conversation


def elapsed_ms(start_time: float) -> int:
    return int((time.monotonic() - start_time) * 1000)
