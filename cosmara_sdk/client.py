"""
Community client facade.

Owns configuration, license validation and usage tracking, and
dispatches canonical requests to the selected provider adapter.
"""

import logging
import time
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Mapping, Optional

from .config.loader import CommunityConfig
from .core.constants import COMMUNITY_LIMITS, COST_THRESHOLDS, MODEL_EQUIVALENTS, PERFORMANCE_TARGETS
from .core.license import LicenseValidator
from .core.streaming import AIStream
from .core.types import AIRequest, AIResponse, APIProvider, ModelInfo, UsageRecord
from .core.usage import Reservation, UsageStats, UsageTracker
from .providers import AnthropicProvider, GoogleProvider, OpenAIProvider, Provider
from .providers.base import elapsed_ms

lib_logger = logging.getLogger("cosmara_sdk")

# Provider -> adapter constructor
ADAPTER_FACTORIES: Mapping[APIProvider, Callable[..., Provider]] = {
    APIProvider.OPENAI: OpenAIProvider,
    APIProvider.ANTHROPIC: AnthropicProvider,
    APIProvider.GOOGLE: GoogleProvider,
}


class CommunityClient:
    """Unified client for OpenAI, Anthropic and Google completions.

    Every call runs validator -> admission -> adapter -> record, in that
    order. A failure at any step stops the call and is raised as an
    AIError; failed calls are never recorded.
    """

    def __init__(
        self,
        config: CommunityConfig,
        *,
        tracker: Optional[UsageTracker] = None,
        validator: Optional[LicenseValidator] = None,
        adapters: Optional[Mapping[APIProvider, Provider]] = None,
        model_equivalents: Mapping[str, Mapping[APIProvider, str]] = MODEL_EQUIVALENTS,
        clock: Optional[Callable[[], datetime]] = None,
        cost_thresholds: Mapping[str, float] = COST_THRESHOLDS,
        performance_targets: Mapping[str, int] = PERFORMANCE_TARGETS,
    ):
        """Initialize client.

        Args:
            config: Client configuration
            tracker: Usage tracker (defaults to Community limits)
            validator: License validator
            adapters: Pre-built adapters by provider; others are built lazily
            model_equivalents: Canonical -> native model table for built adapters
            clock: Returns the current time
            cost_thresholds: Per-request cost levels used for warnings
            performance_targets: Latency targets used for warnings
        """
        self.config = config
        self._clock = clock or datetime.now
        self.validator = validator or LicenseValidator()
        self.tracker = tracker or UsageTracker(COMMUNITY_LIMITS, clock=self._clock)
        self.model_equivalents = model_equivalents
        self.cost_thresholds = cost_thresholds
        self.performance_targets = performance_targets
        self._adapters: Dict[APIProvider, Provider] = dict(adapters or {})

    @property
    def limits(self):
        return self.tracker.limits

    def adapter_for(self, provider: APIProvider) -> Provider:
        """Adapter for a provider, built on first use."""
        provider = APIProvider(provider)
        if provider not in self._adapters:
            factory = ADAPTER_FACTORIES[provider]
            self._adapters[provider] = factory(
                self.config.api_key_for(provider),
                model_equivalents=self.model_equivalents,
                timeout=self.config.timeout,
            )
        return self._adapters[provider]

    async def send(self, request: AIRequest) -> AIResponse:
        """Send a completion request.

        Args:
            request: Canonical request

        Returns:
            Normalized response

        Raises:
            AIError: AUTH_ERROR from validation, QUOTA_EXCEEDED from
                admission, or any kind raised by the adapter
        """
        self.validator.validate(self.config)
        provider = request.provider or self.config.default_provider
        reservation = self.tracker.reserve()

        try:
            response = await self.adapter_for(provider).send(request)
        except BaseException:
            self.tracker.release(reservation)
            raise

        self.tracker.commit(reservation, UsageRecord(
            timestamp=self._clock(),
            provider=provider,
            tokens_consumed=response.usage.total_tokens,
            model=request.model,
            request_id=response.request_id,
        ))
        self._check_thresholds(response)
        return response

    async def stream(self, request: AIRequest) -> AIStream:
        """Open a streaming completion.

        Admission happens once, before the stream opens. The admitted unit
        is recorded when the stream ends, whether it completed, failed
        mid-way or was cancelled.
        """
        self.validator.validate(self.config)
        provider = request.provider or self.config.default_provider
        reservation = self.tracker.reserve()

        start_time = time.monotonic()
        try:
            stream = await self.adapter_for(provider).stream(request)
        except BaseException:
            self.tracker.release(reservation)
            raise

        stream.on_finish(lambda finished: self._settle_stream(reservation, finished))

        open_ms = elapsed_ms(start_time)
        max_open = self.performance_targets.get("max_first_chunk_ms")
        if max_open is not None and open_ms > max_open:
            lib_logger.warning(
                f"{stream.provider.value} took {open_ms}ms to open a stream for {request.model} "
                f"(target {max_open}ms)"
            )
        return stream

    def list_models(self, provider: Optional[APIProvider] = None) -> FrozenSet[ModelInfo]:
        """Models available from one provider, or from all of them."""
        if provider is not None:
            return self.adapter_for(provider).list_models()
        models: FrozenSet[ModelInfo] = frozenset()
        for each in APIProvider:
            models |= self.adapter_for(each).list_models()
        return models

    def usage_stats(self) -> UsageStats:
        return self.tracker.usage_stats()

    async def aclose(self) -> None:
        """Close provider connections held by built adapters."""
        for adapter in self._adapters.values():
            close = getattr(adapter, "aclose", None)
            if close is not None:
                await close()

    async def __aenter__(self) -> "CommunityClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _settle_stream(self, reservation: Reservation, stream: AIStream) -> None:
        record = UsageRecord(
            timestamp=self._clock(),
            provider=stream.provider,
            tokens_consumed=stream.usage.total_tokens if stream.usage else 0,
            model=stream.model,
        )
        try:
            self.tracker.commit(reservation, record)
        except ValueError:
            # Reservation outlived the month window and was pruned
            lib_logger.debug(f"Stream reservation {reservation.id} expired; recording directly")
            self.tracker.record(record)

    def _check_thresholds(self, response: AIResponse) -> None:
        high_cost = self.cost_thresholds.get("high")
        if response.cost is not None and high_cost is not None and response.cost > high_cost:
            lib_logger.warning(
                f"Request cost ${response.cost:.4f} for {response.model} exceeds ${high_cost:.2f}"
            )
        max_latency = self.performance_targets.get("max_latency_ms")
        if max_latency is not None and response.latency_ms > max_latency:
            lib_logger.warning(
                f"{response.provider.value} took {response.latency_ms}ms for {response.model} "
                f"(target {max_latency}ms)"
            )


def create_client(config: Optional[CommunityConfig] = None, **kwargs) -> CommunityClient:
    """Create a client; defaults to keys from the environment."""
    return CommunityClient(config or CommunityConfig(), **kwargs)
