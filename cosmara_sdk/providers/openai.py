"""
OpenAI provider adapter.

Translates canonical requests into Chat Completions calls through the
openai SDK and normalizes responses, streams and errors.
"""

import logging
import time
from typing import Any, AsyncIterator, Dict, FrozenSet, Mapping, Optional

import openai
from openai import AsyncOpenAI

from ..core.constants import MODEL_EQUIVALENTS
from ..core.errors import AIError, ErrorKind, from_status
from ..core.pricing import estimate_cost
from ..core.streaming import AIStream
from ..core.types import AIRequest, AIResponse, AIStreamChunk, APIProvider, ModelInfo, TokenUsage
from .base import catalogue, elapsed_ms, require_api_key, resolve_model

lib_logger = logging.getLogger("cosmara_sdk")


class OpenAIProvider:
    """Adapter for OpenAI-compatible chat completion endpoints."""

    provider = APIProvider.OPENAI

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model_equivalents: Mapping[str, Mapping[APIProvider, str]] = MODEL_EQUIVALENTS,
        timeout: float = 60.0,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        """Initialize OpenAI adapter.

        Args:
            api_key: OpenAI API key; checked only when a call is made
            model_equivalents: Canonical -> native model table
            timeout: Request timeout in seconds
            base_url: Override for OpenAI-compatible endpoints
            client: Pre-built SDK client (mainly for tests)
        """
        self.api_key = api_key
        self.model_equivalents = model_equivalents
        self.timeout = timeout
        self.base_url = base_url
        self._client = client
        self._owns_client = client is None

    def list_models(self) -> FrozenSet[ModelInfo]:
        return catalogue(self.provider, self.model_equivalents)

    async def send(self, request: AIRequest) -> AIResponse:
        """Create a chat completion.

        Raises:
            AIError: INVALID_REQUEST, AUTH_ERROR, RATE_LIMITED or PROVIDER_ERROR
        """
        kwargs = self._build_kwargs(request)
        client = self._get_client()

        lib_logger.debug(f"openai: sending {request.model} as {kwargs['model']}")
        start_time = time.monotonic()
        try:
            response = await client.chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            raise _translate_error(e) from e

        return self._parse_response(response, request, kwargs["model"], start_time)

    async def stream(self, request: AIRequest) -> AIStream:
        """Open a streaming chat completion.

        Errors detectable before the first chunk are raised here.
        """
        kwargs = self._build_kwargs(request)
        client = self._get_client()

        lib_logger.debug(f"openai: streaming {request.model} as {kwargs['model']}")
        try:
            native_stream = await client.chat.completions.create(
                **kwargs,
                stream=True,
                stream_options={"include_usage": True},
            )
        except openai.OpenAIError as e:
            raise _translate_error(e) from e

        return AIStream(
            _iter_chunks(native_stream),
            native_stream.close,
            model=request.model,
            provider=self.provider,
            provider_model=kwargs["model"],
        )

    def _get_client(self) -> AsyncOpenAI:
        api_key = require_api_key(self.api_key, self.provider)
        if self._client is None:
            # Retries are out of scope; failures surface immediately
            self._client = AsyncOpenAI(
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
        """Translate a canonical request into create() arguments."""
        kwargs: Dict[str, Any] = {
            "model": resolve_model(request.model, self.provider, self.model_equivalents),
            "messages": [
                {"role": msg.role.value, "content": msg.content}
                for msg in request.messages
            ],
        }

        params = request.parameters
        if params.temperature is not None:
            kwargs["temperature"] = params.temperature
        if params.max_tokens is not None:
            kwargs["max_tokens"] = params.max_tokens
        if params.top_p is not None:
            kwargs["top_p"] = params.top_p
        if params.stop:
            kwargs["stop"] = list(params.stop)

        return kwargs

    def _parse_response(
        self,
        response: Any,
        request: AIRequest,
        native_model: str,
        start_time: float,
    ) -> AIResponse:
        """Normalize a ChatCompletion object."""
        if not getattr(response, "choices", None):
            raise AIError(
                ErrorKind.PROVIDER_ERROR,
                "openai response contained no choices",
                self.provider.value,
            )

        choice = response.choices[0]
        content = getattr(choice.message, "content", None) or ""
        usage = _usage_from(getattr(response, "usage", None))

        return AIResponse(
            content=content,
            model=request.model,
            provider=self.provider,
            usage=usage,
            latency_ms=elapsed_ms(start_time),
            provider_model=getattr(response, "model", None) or native_model,
            finish_reason=getattr(choice, "finish_reason", None),
            cost=estimate_cost(native_model, usage),
            request_id=getattr(response, "id", None),
        )


async def _iter_chunks(native_stream: Any) -> AsyncIterator[AIStreamChunk]:
    """Map ChatCompletionChunk events to canonical chunks."""
    usage = None
    try:
        async for event in native_stream:
            if getattr(event, "usage", None):
                usage = _usage_from(event.usage)
            if not event.choices:
                continue
            delta = event.choices[0].delta
            text = getattr(delta, "content", None) if delta is not None else None
            if text:
                yield AIStreamChunk(delta=text)
    except openai.OpenAIError as e:
        raise _translate_error(e) from e

    yield AIStreamChunk(delta="", done=True, usage=usage)


def _usage_from(usage: Any) -> TokenUsage:
    if usage is None:
        return TokenUsage(prompt_tokens=0, completion_tokens=0)
    return TokenUsage(
        prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
    )


def _translate_error(error: Exception) -> AIError:
    """Convert an openai SDK exception into an AIError."""
    if isinstance(error, openai.APIStatusError):
        return from_status(error.status_code, error.message, APIProvider.OPENAI.value, error.body)
    return AIError(
        ErrorKind.PROVIDER_ERROR,
        f"openai request failed: {error}",
        APIProvider.OPENAI.value,
        {"error_type": type(error).__name__},
    )
