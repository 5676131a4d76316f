"""
Tests for AIStream lifecycle: completion, cancellation and failure.
"""

import asyncio

import pytest

from cosmara_sdk.core.errors import AIError, ErrorKind
from cosmara_sdk.core.streaming import AIStream, StreamState
from cosmara_sdk.core.types import AIStreamChunk, APIProvider, TokenUsage


class FakeSource:
    """Provider chunk source that counts what it produced."""

    def __init__(self, deltas, usage=None, error_after=None):
        self.deltas = deltas
        self.usage = usage
        self.error_after = error_after
        self.produced = 0
        self.closed = False

    async def chunks(self):
        for i, delta in enumerate(self.deltas):
            if self.error_after is not None and i == self.error_after:
                raise AIError(ErrorKind.PROVIDER_ERROR, "connection reset", "openai")
            self.produced += 1
            yield AIStreamChunk(delta=delta)
        yield AIStreamChunk(delta="", done=True, usage=self.usage)

    async def close(self):
        self.closed = True


def _stream(source: FakeSource) -> AIStream:
    return AIStream(source.chunks(), source.close, model="gpt-4o", provider=APIProvider.OPENAI)


class TestAIStream:
    """Test AIStream."""

    def test_full_consumption_completes(self):
        source = FakeSource(["a", "b", "c"], usage=TokenUsage(prompt_tokens=4, completion_tokens=3))
        stream = _stream(source)

        content = asyncio.run(stream.collect())

        assert content == "abc"
        assert stream.state == StreamState.COMPLETED
        assert stream.usage.total_tokens == 7
        assert source.closed is True

    def test_cancel_stops_production(self):
        """Verify no chunk is produced after cancel."""
        source = FakeSource(["1", "2", "3", "4", "5"])
        stream = _stream(source)

        async def run():
            received = []
            async for chunk in stream:
                received.append(chunk.delta)
                if len(received) == 2:
                    await stream.cancel()
            with pytest.raises(StopAsyncIteration):
                await stream.__anext__()
            return received

        received = asyncio.run(run())

        assert received == ["1", "2"]
        assert source.produced == 2
        assert stream.state == StreamState.CANCELLED
        assert source.closed is True
        assert stream.content == "12"

    def test_cancel_is_idempotent(self):
        source = FakeSource(["x"])
        stream = _stream(source)
        calls = []
        stream.on_finish(calls.append)

        async def run():
            await stream.cancel()
            await stream.cancel()
            await stream.aclose()

        asyncio.run(run())

        assert calls == [stream]
        assert stream.state == StreamState.CANCELLED

    def test_cancel_after_completion_keeps_completed(self):
        stream = _stream(FakeSource(["x"]))

        async def run():
            await stream.collect()
            await stream.cancel()

        asyncio.run(run())

        assert stream.state == StreamState.COMPLETED

    def test_async_with_cancels_on_exit(self):
        source = FakeSource(["1", "2", "3"])

        async def run():
            async with _stream(source) as stream:
                await stream.__anext__()
            return stream

        stream = asyncio.run(run())

        assert stream.state == StreamState.CANCELLED
        assert source.produced == 1

    def test_provider_fault_fails_stream(self):
        source = FakeSource(["1", "2", "3"], error_after=1)
        stream = _stream(source)

        async def run():
            received = []
            with pytest.raises(AIError, match="connection reset"):
                async for chunk in stream:
                    received.append(chunk.delta)
            return received

        received = asyncio.run(run())

        assert received == ["1"]
        assert stream.state == StreamState.FAILED
        assert stream.error.kind == ErrorKind.PROVIDER_ERROR
        assert source.closed is True

    def test_on_finish_runs_once_with_final_state(self):
        stream = _stream(FakeSource(["a"]))
        states = []
        stream.on_finish(lambda s: states.append(s.state))

        asyncio.run(stream.collect())

        assert states == [StreamState.COMPLETED]

    def test_on_finish_after_end_runs_immediately(self):
        stream = _stream(FakeSource([]))
        asyncio.run(stream.collect())
        states = []

        stream.on_finish(lambda s: states.append(s.state))

        assert states == [StreamState.COMPLETED]

    def test_unexpected_source_error_is_wrapped(self):
        """Verify a non-AIError from the source still ends the stream."""
        async def broken_chunks():
            yield AIStreamChunk(delta="ok")
            raise TypeError("argument of type 'NoneType' is not iterable")

        source = FakeSource([])
        stream = AIStream(broken_chunks(), source.close, model="gemini-1.5-pro", provider=APIProvider.GOOGLE)
        states = []
        stream.on_finish(lambda s: states.append(s.state))

        async def run():
            received = []
            with pytest.raises(AIError) as excinfo:
                async for chunk in stream:
                    received.append(chunk.delta)
            return received, excinfo.value

        received, error = asyncio.run(run())

        assert received == ["ok"]
        assert error.kind == ErrorKind.PROVIDER_ERROR
        assert error.provider == "google"
        assert error.provider_detail["error_type"] == "TypeError"
        assert isinstance(error.__cause__, TypeError)
        assert stream.state == StreamState.FAILED
        assert stream.error is error
        assert states == [StreamState.FAILED]
        assert source.closed is True
