"""
Cancellable stream of normalized chunks.

Wraps a provider chunk iterator so that cancellation closes the provider
connection and no chunk is produced afterwards.
"""

import logging
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from .errors import AIError, ErrorKind
from .types import AIModel, AIStreamChunk, APIProvider, TokenUsage

lib_logger = logging.getLogger("cosmara_sdk")


class StreamState(Enum):
    """Lifecycle of a stream."""
    OPEN = "open"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class AIStream:
    """Lazy, finite, non-restartable sequence of AIStreamChunk.

    Iterate with ``async for``. Stopping early with ``cancel()``,
    ``aclose()`` or by leaving an ``async with`` block ends the stream
    in the CANCELLED state and releases the provider connection.
    A provider fault mid-stream raises AIError and ends in FAILED; any
    other exception from the chunk source is wrapped as PROVIDER_ERROR.
    """

    def __init__(
        self,
        chunks: AsyncIterator[AIStreamChunk],
        close: Optional[Callable[[], Awaitable[None]]] = None,
        *,
        model: AIModel,
        provider: APIProvider,
        provider_model: Optional[str] = None,
    ):
        """Initialize stream.

        Args:
            chunks: Provider chunk iterator, already connected
            close: Releases the underlying provider connection
            model: Canonical model of the request
            provider: Provider serving the stream
            provider_model: Native model name
        """
        self.model = model
        self.provider = provider
        self.provider_model = provider_model
        self.state = StreamState.OPEN
        self.error: Optional[AIError] = None
        self.usage: Optional[TokenUsage] = None
        self._chunks = chunks
        self._close = close
        self._deltas: List[str] = []
        self._finish_callbacks: List[Callable[["AIStream"], None]] = []

    @property
    def content(self) -> str:
        """Text received so far."""
        return "".join(self._deltas)

    @property
    def finished(self) -> bool:
        return self.state != StreamState.OPEN

    def on_finish(self, callback: Callable[["AIStream"], None]) -> None:
        """Register a callback run once when the stream ends for any reason."""
        if self.finished:
            callback(self)
        else:
            self._finish_callbacks.append(callback)

    def __aiter__(self) -> "AIStream":
        return self

    async def __anext__(self) -> AIStreamChunk:
        if self.finished:
            raise StopAsyncIteration
        try:
            chunk = await self._chunks.__anext__()
        except StopAsyncIteration:
            await self._finish(StreamState.COMPLETED)
            raise
        except AIError as e:
            self.error = e
            await self._finish(StreamState.FAILED)
            raise
        except Exception as e:
            self.error = AIError(
                ErrorKind.PROVIDER_ERROR,
                f"{self.provider.value} stream failed: {e}",
                self.provider.value,
                {"error_type": type(e).__name__},
            )
            await self._finish(StreamState.FAILED)
            raise self.error from e
        except BaseException:
            # Task cancellation or interpreter shutdown while waiting for a chunk
            await self._finish(StreamState.CANCELLED)
            raise

        if chunk.delta:
            self._deltas.append(chunk.delta)
        if chunk.usage is not None:
            self.usage = chunk.usage
        if chunk.done:
            await self._finish(StreamState.COMPLETED)
        return chunk

    async def cancel(self) -> None:
        """Stop producing chunks and release the provider connection."""
        if not self.finished:
            await self._finish(StreamState.CANCELLED)

    async def aclose(self) -> None:
        await self.cancel()

    async def collect(self) -> str:
        """Consume the remaining chunks and return the full text."""
        async for _ in self:
            pass
        return self.content

    async def __aenter__(self) -> "AIStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.cancel()

    async def _finish(self, state: StreamState) -> None:
        self.state = state
        try:
            aclose = getattr(self._chunks, "aclose", None)
            if aclose is not None:
                await aclose()
            if self._close is not None:
                await self._close()
        finally:
            lib_logger.debug(f"Stream {self.provider.value}/{self.model} ended: {state.value}")
            callbacks, self._finish_callbacks = self._finish_callbacks, []
            for callback in callbacks:
                callback(self)
