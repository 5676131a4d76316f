"""
Anthropic provider adapter.

Translates canonical requests into Messages API calls through the
anthropic SDK. System messages move to the top-level ``system`` field.
"""

import logging
import time
from typing import Any, AsyncIterator, Dict, FrozenSet, Mapping, Optional

import anthropic
from anthropic import AsyncAnthropic

from ..core.constants import MODEL_EQUIVALENTS
from ..core.errors import AIError, ErrorKind, from_status, invalid_request
from ..core.pricing import estimate_cost
from ..core.streaming import AIStream
from ..core.types import AIRequest, AIResponse, AIStreamChunk, APIProvider, ModelInfo, TokenUsage
from .base import catalogue, elapsed_ms, require_api_key, resolve_model, split_system

lib_logger = logging.getLogger("cosmara_sdk")

# The Messages API requires max_tokens
DEFAULT_MAX_TOKENS = 4096


class AnthropicProvider:
    """Adapter for Anthropic-compatible message endpoints."""

    provider = APIProvider.ANTHROPIC

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model_equivalents: Mapping[str, Mapping[APIProvider, str]] = MODEL_EQUIVALENTS,
        timeout: float = 60.0,
        base_url: Optional[str] = None,
        client: Optional[AsyncAnthropic] = None,
    ):
        self.api_key = api_key
        self.model_equivalents = model_equivalents
        self.timeout = timeout
        self.base_url = base_url
        self._client = client
        self._owns_client = client is None

    def list_models(self) -> FrozenSet[ModelInfo]:
        return catalogue(self.provider, self.model_equivalents)

    async def send(self, request: AIRequest) -> AIResponse:
        """Create a message.

        Raises:
            AIError: INVALID_REQUEST, AUTH_ERROR, RATE_LIMITED or PROVIDER_ERROR
        """
        kwargs = self._build_kwargs(request)
        client = self._get_client()

        lib_logger.debug(f"anthropic: sending {request.model} as {kwargs['model']}")
        start_time = time.monotonic()
        try:
            response = await client.messages.create(**kwargs)
        except anthropic.AnthropicError as e:
            raise _translate_error(e) from e

        return self._parse_response(response, request, kwargs["model"], start_time)

    async def stream(self, request: AIRequest) -> AIStream:
        """Open a streaming message."""
        kwargs = self._build_kwargs(request)
        client = self._get_client()

        lib_logger.debug(f"anthropic: streaming {request.model} as {kwargs['model']}")
        try:
            native_stream = await client.messages.create(**kwargs, stream=True)
        except anthropic.AnthropicError as e:
            raise _translate_error(e) from e

        return AIStream(
            _iter_chunks(native_stream),
            native_stream.close,
            model=request.model,
            provider=self.provider,
            provider_model=kwargs["model"],
        )

    def _get_client(self) -> AsyncAnthropic:
        api_key = require_api_key(self.api_key, self.provider)
        if self._client is None:
            self._client = AsyncAnthropic(
                api_key=api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    def _build_kwargs(self, request: AIRequest) -> Dict[str, Any]:
        """Translate a canonical request into messages.create() arguments."""
        native_model = resolve_model(request.model, self.provider, self.model_equivalents)
        system_content, conversation = split_system(request.messages, self.provider)

        params = request.parameters
        kwargs: Dict[str, Any] = {
            "model": native_model,
            "messages": [
                {"role": msg.role.value, "content": msg.content}
                for msg in conversation
            ],
            "max_tokens": params.max_tokens or DEFAULT_MAX_TOKENS,
        }

        if system_content:
            kwargs["system"] = system_content
        if params.temperature is not None:
            if params.temperature > 1.0:
                raise invalid_request(
                    "anthropic temperature must be between 0 and 1", self.provider.value
                )
            kwargs["temperature"] = params.temperature
        if params.top_p is not None:
            kwargs["top_p"] = params.top_p
        if params.stop:
            kwargs["stop_sequences"] = list(params.stop)

        return kwargs

    def _parse_response(
        self,
        response: Any,
        request: AIRequest,
        native_model: str,
        start_time: float,
    ) -> AIResponse:
        """Normalize a Message object."""
        blocks = getattr(response, "content", None)
        if blocks is None:
            raise AIError(
                ErrorKind.PROVIDER_ERROR,
                "anthropic response contained no content",
                self.provider.value,
            )

        content = "".join(getattr(block, "text", "") for block in blocks)
        raw_usage = getattr(response, "usage", None)
        usage = TokenUsage(
            prompt_tokens=getattr(raw_usage, "input_tokens", 0) or 0,
            completion_tokens=getattr(raw_usage, "output_tokens", 0) or 0,
        )

        return AIResponse(
            content=content,
            model=request.model,
            provider=self.provider,
            usage=usage,
            latency_ms=elapsed_ms(start_time),
            provider_model=getattr(response, "model", None) or native_model,
            finish_reason=getattr(response, "stop_reason", None),
            cost=estimate_cost(native_model, usage),
            request_id=getattr(response, "id", None),
        )


async def _iter_chunks(native_stream: Any) -> AsyncIterator[AIStreamChunk]:
    """Map Messages API stream events to canonical chunks."""
    prompt_tokens = 0
    completion_tokens = 0
    try:
        async for event in native_stream:
            event_type = getattr(event, "type", None)
            if event_type == "message_start":
                usage = getattr(event.message, "usage", None)
                prompt_tokens = getattr(usage, "input_tokens", 0) or 0
            elif event_type == "content_block_delta":
                if getattr(event.delta, "type", None) == "text_delta" and event.delta.text:
                    yield AIStreamChunk(delta=event.delta.text)
            elif event_type == "message_delta":
                usage = getattr(event, "usage", None)
                completion_tokens = getattr(usage, "output_tokens", 0) or completion_tokens
            elif event_type == "message_stop":
                break
    except anthropic.AnthropicError as e:
        raise _translate_error(e) from e

    yield AIStreamChunk(
        delta="",
        done=True,
        usage=TokenUsage(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


def _translate_error(error: Exception) -> AIError:
    """Convert an anthropic SDK exception into an AIError."""
    if isinstance(error, anthropic.APIStatusError):
        return from_status(error.status_code, error.message, APIProvider.ANTHROPIC.value, error.body)
    return AIError(
        ErrorKind.PROVIDER_ERROR,
        f"anthropic request failed: {error}",
        APIProvider.ANTHROPIC.value,
        {"error_type": type(error).__name__},
    )
