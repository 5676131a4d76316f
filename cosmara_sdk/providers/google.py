"""
Google Gemini provider adapter.

Talks to the Generative Language REST API with httpx. Gemini names the
assistant role ``model`` and takes system prompts as ``systemInstruction``.
"""

import json
import logging
import time
from typing import Any, AsyncIterator, Dict, FrozenSet, Mapping, Optional

import httpx

from ..core.constants import MODEL_EQUIVALENTS
from ..core.errors import AIError, ErrorKind, from_status
from ..core.pricing import estimate_cost
from ..core.streaming import AIStream
from ..core.types import AIRequest, AIResponse, AIStreamChunk, APIProvider, MessageRole, ModelInfo, TokenUsage
from .base import catalogue, elapsed_ms, require_api_key, resolve_model, split_system

lib_logger = logging.getLogger("cosmara_sdk")

GOOGLE_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

_ROLE_NAMES = {
    MessageRole.USER: "user",
    MessageRole.ASSISTANT: "model",
}


class GoogleProvider:
    """Adapter for the Gemini generateContent endpoints."""

    provider = APIProvider.GOOGLE

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model_equivalents: Mapping[str, Mapping[APIProvider, str]] = MODEL_EQUIVALENTS,
        timeout: float = 60.0,
        base_url: str = GOOGLE_API_BASE,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.model_equivalents = model_equivalents
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None

    def list_models(self) -> FrozenSet[ModelInfo]:
        return catalogue(self.provider, self.model_equivalents)

    async def send(self, request: AIRequest) -> AIResponse:
        """Call models/{model}:generateContent.

        Raises:
            AIError: INVALID_REQUEST, AUTH_ERROR, RATE_LIMITED or PROVIDER_ERROR
        """
        native_model = resolve_model(request.model, self.provider, self.model_equivalents)
        body = self._build_body(request)
        api_key = require_api_key(self.api_key, self.provider)
        client = self._get_client()

        lib_logger.debug(f"google: sending {request.model} as {native_model}")
        start_time = time.monotonic()
        try:
            response = await client.post(
                f"{self.base_url}/models/{native_model}:generateContent",
                json=body,
                headers={"x-goog-api-key": api_key},
            )
        except httpx.HTTPError as e:
            raise _transport_error(e) from e

        if not response.is_success:
            raise _status_error(response.status_code, _json_or_text(response))

        try:
            payload = response.json()
        except ValueError as e:
            raise AIError(
                ErrorKind.PROVIDER_ERROR,
                "google returned a malformed response body",
                self.provider.value,
                {"body": response.text},
            ) from e

        return self._parse_response(payload, request, native_model, start_time)

    async def stream(self, request: AIRequest) -> AIStream:
        """Open models/{model}:streamGenerateContent as server-sent events."""
        native_model = resolve_model(request.model, self.provider, self.model_equivalents)
        body = self._build_body(request)
        api_key = require_api_key(self.api_key, self.provider)
        client = self._get_client()

        lib_logger.debug(f"google: streaming {request.model} as {native_model}")
        http_request = client.build_request(
            "POST",
            f"{self.base_url}/models/{native_model}:streamGenerateContent",
            params={"alt": "sse"},
            json=body,
            headers={"x-goog-api-key": api_key},
        )
        try:
            response = await client.send(http_request, stream=True)
        except httpx.HTTPError as e:
            raise _transport_error(e) from e

        if not response.is_success:
            try:
                await response.aread()
                detail = _json_or_text(response)
            finally:
                await response.aclose()
            raise _status_error(response.status_code, detail)

        return AIStream(
            _iter_chunks(response),
            response.aclose,
            model=request.model,
            provider=self.provider,
            provider_model=native_model,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_body(self, request: AIRequest) -> Dict[str, Any]:
        """Translate a canonical request into a generateContent body."""
        system_content, conversation = split_system(request.messages, self.provider)

        body: Dict[str, Any] = {
            "contents": [
                {"role": _ROLE_NAMES[msg.role], "parts": [{"text": msg.content}]}
                for msg in conversation
            ],
        }
        if system_content:
            body["systemInstruction"] = {"parts": [{"text": system_content}]}

        params = request.parameters
        generation_config: Dict[str, Any] = {}
        if params.temperature is not None:
            generation_config["temperature"] = params.temperature
        if params.max_tokens is not None:
            generation_config["maxOutputTokens"] = params.max_tokens
        if params.top_p is not None:
            generation_config["topP"] = params.top_p
        if params.stop:
            generation_config["stopSequences"] = list(params.stop)
        if generation_config:
            body["generationConfig"] = generation_config

        return body

    def _parse_response(
        self,
        payload: Dict[str, Any],
        request: AIRequest,
        native_model: str,
        start_time: float,
    ) -> AIResponse:
        """Normalize a GenerateContentResponse payload."""
        candidates = payload.get("candidates") if isinstance(payload, dict) else None
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            raise AIError(
                ErrorKind.PROVIDER_ERROR,
                "google response contained no candidates",
                self.provider.value,
                {"body": payload},
            )

        candidate = candidates[0]
        usage = _usage_from(payload.get("usageMetadata"))

        return AIResponse(
            content=_candidate_text(candidate),
            model=request.model,
            provider=self.provider,
            usage=usage,
            latency_ms=elapsed_ms(start_time),
            provider_model=payload.get("modelVersion") or native_model,
            finish_reason=candidate.get("finishReason"),
            cost=estimate_cost(native_model, usage),
            request_id=payload.get("responseId"),
        )


async def _iter_chunks(response: httpx.Response) -> AsyncIterator[AIStreamChunk]:
    """Parse ``data:`` lines of the SSE stream into canonical chunks."""
    usage = None
    try:
        async for line in response.aiter_lines():
            if not line.startswith("data:"):
                continue
            try:
                payload = json.loads(line[len("data:"):].strip())
            except ValueError as e:
                raise AIError(
                    ErrorKind.PROVIDER_ERROR,
                    "google sent a malformed stream event",
                    APIProvider.GOOGLE.value,
                    {"line": line},
                ) from e

            if not isinstance(payload, dict):
                raise AIError(
                    ErrorKind.PROVIDER_ERROR,
                    "google sent a stream event that is not an object",
                    APIProvider.GOOGLE.value,
                    {"line": line},
                )

            if "error" in payload:
                error = payload["error"]
                if not isinstance(error, dict):
                    raise AIError(
                        ErrorKind.PROVIDER_ERROR,
                        f"google stream failed: {error}",
                        APIProvider.GOOGLE.value,
                        {"body": payload},
                    )
                raise _status_error(error.get("code", 500), payload)

            if payload.get("usageMetadata"):
                usage = _usage_from(payload["usageMetadata"])
            for candidate in payload.get("candidates") or []:
                text = _candidate_text(candidate)
                if text:
                    yield AIStreamChunk(delta=text)
                break
    except httpx.HTTPError as e:
        raise _transport_error(e) from e

    yield AIStreamChunk(delta="", done=True, usage=usage)


def _candidate_text(candidate: Dict[str, Any]) -> str:
    parts = (candidate.get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


def _usage_from(metadata: Optional[Dict[str, Any]]) -> TokenUsage:
    metadata = metadata or {}
    return TokenUsage(
        prompt_tokens=metadata.get("promptTokenCount", 0),
        completion_tokens=metadata.get("candidatesTokenCount", 0),
    )


def _json_or_text(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _status_error(status_code: int, body: Any) -> AIError:
    """Build an AIError, treating Google's invalid-key 400 as an auth failure."""
    message = "request failed"
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error = body["error"]
        message = error.get("message", message)
        reasons = {d.get("reason") for d in error.get("details") or [] if isinstance(d, dict)}
        if "API_KEY_INVALID" in reasons:
            return AIError(
                ErrorKind.AUTH_ERROR,
                f"google rejected the API key: {message}",
                APIProvider.GOOGLE.value,
                {"status_code": status_code, "body": body},
            )
    return from_status(status_code, message, APIProvider.GOOGLE.value, body)


def _transport_error(error: httpx.HTTPError) -> AIError:
    return AIError(
        ErrorKind.PROVIDER_ERROR,
        f"google request failed: {error}",
        APIProvider.GOOGLE.value,
        {"error_type": type(error).__name__},
    )
