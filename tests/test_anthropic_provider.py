"""
Unit tests for the Anthropic adapter.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import anthropic
import httpx
import pytest

from cosmara_sdk.core.errors import AIError, ErrorKind
from cosmara_sdk.core.streaming import StreamState
from cosmara_sdk.core.types import AIMessage, AIRequest, APIProvider, GenerationParameters
from cosmara_sdk.providers.anthropic import DEFAULT_MAX_TOKENS, AnthropicProvider

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"


def _status_error(cls, status_code: int, message: str = "error"):
    response = httpx.Response(status_code, request=httpx.Request("POST", ANTHROPIC_URL))
    return cls(message, response=response, body={"type": "error", "error": {"message": message}})


class FakeEventStream:
    """Stands in for anthropic.AsyncStream."""

    def __init__(self, events):
        self.events = events
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self.events:
            yield event

    async def close(self):
        self.closed = True


def _text_delta(text):
    return SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text=text))


class TestAnthropicProvider:
    """Test AnthropicProvider."""

    def setup_method(self):
        self.client = Mock()
        self.client.messages.create = AsyncMock()
        self.provider = AnthropicProvider("sk-ant-test", client=self.client)

    def _message(self, text="Hello back"):
        return SimpleNamespace(
            id="msg_01",
            model="claude-3-5-sonnet-20241022",
            content=[SimpleNamespace(type="text", text=text)],
            stop_reason="end_turn",
            usage=SimpleNamespace(input_tokens=20, output_tokens=7),
        )

    def test_system_message_moves_to_top_level(self):
        self.client.messages.create.return_value = self._message()
        request = AIRequest(
            model="claude-3-5-sonnet",
            messages=[
                AIMessage(role="system", content="You are terse."),
                AIMessage(role="user", content="Hi"),
                AIMessage(role="assistant", content="Hello"),
                AIMessage(role="user", content="Bye"),
            ],
        )

        asyncio.run(self.provider.send(request))

        kwargs = self.client.messages.create.await_args.kwargs
        assert kwargs["system"] == "You are terse."
        assert kwargs["messages"] == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
            {"role": "user", "content": "Bye"},
        ]
        assert kwargs["model"] == "claude-3-5-sonnet-20241022"
        assert kwargs["max_tokens"] == DEFAULT_MAX_TOKENS

    def test_parameters_translated(self):
        self.client.messages.create.return_value = self._message()
        request = AIRequest(
            model="claude-3-5-haiku",
            messages=[AIMessage(role="user", content="Hi")],
            parameters=GenerationParameters(temperature=0.7, max_tokens=100, top_p=0.9, stop=["END"]),
        )

        asyncio.run(self.provider.send(request))

        kwargs = self.client.messages.create.await_args.kwargs
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 100
        assert kwargs["top_p"] == 0.9
        assert kwargs["stop_sequences"] == ["END"]
        assert "system" not in kwargs

    def test_response_normalized(self):
        self.client.messages.create.return_value = self._message()
        request = AIRequest(model="claude-3-5-sonnet", messages=[AIMessage(role="user", content="Hi")])

        response = asyncio.run(self.provider.send(request))

        assert response.content == "Hello back"
        assert response.model == "claude-3-5-sonnet"
        assert response.provider == APIProvider.ANTHROPIC
        assert response.usage.prompt_tokens == 20
        assert response.usage.completion_tokens == 7
        assert response.finish_reason == "end_turn"
        assert response.request_id == "msg_01"

    def test_temperature_above_one_rejected(self):
        """Verify a temperature Anthropic cannot accept is not rewritten."""
        request = AIRequest(
            model="claude-3-5-sonnet",
            messages=[AIMessage(role="user", content="Hi")],
            parameters=GenerationParameters(temperature=1.5),
        )

        with pytest.raises(AIError, match="temperature must be between 0 and 1") as excinfo:
            asyncio.run(self.provider.send(request))

        assert excinfo.value.kind == ErrorKind.INVALID_REQUEST
        self.client.messages.create.assert_not_awaited()

    def test_late_system_message_rejected(self):
        request = AIRequest(
            model="claude-3-5-sonnet",
            messages=[
                AIMessage(role="user", content="Hi"),
                AIMessage(role="system", content="Change of plan"),
            ],
        )

        with pytest.raises(AIError) as excinfo:
            asyncio.run(self.provider.send(request))

        assert excinfo.value.kind == ErrorKind.INVALID_REQUEST
        self.client.messages.create.assert_not_awaited()

    def test_system_only_request_rejected(self):
        request = AIRequest(model="claude-3-5-sonnet", messages=[AIMessage(role="system", content="Rules")])

        with pytest.raises(AIError, match="at least one user or assistant message"):
            asyncio.run(self.provider.send(request))

    @patch('cosmara_sdk.providers.anthropic.AsyncAnthropic')
    def test_missing_key_is_auth_error(self, mock_anthropic_class):
        provider = AnthropicProvider(None)
        request = AIRequest(model="claude-3-5-sonnet", messages=[AIMessage(role="user", content="Hi")])

        with pytest.raises(AIError) as excinfo:
            asyncio.run(provider.send(request))

        assert excinfo.value.kind == ErrorKind.AUTH_ERROR
        mock_anthropic_class.assert_not_called()

    @pytest.mark.parametrize("error_cls,status_code,kind", [
        (anthropic.AuthenticationError, 401, ErrorKind.AUTH_ERROR),
        (anthropic.RateLimitError, 429, ErrorKind.RATE_LIMITED),
        (anthropic.InternalServerError, 529, ErrorKind.PROVIDER_ERROR),
    ])
    def test_status_errors_are_translated(self, error_cls, status_code, kind):
        self.client.messages.create.side_effect = _status_error(error_cls, status_code)
        request = AIRequest(model="claude-3-5-sonnet", messages=[AIMessage(role="user", content="Hi")])

        with pytest.raises(AIError) as excinfo:
            asyncio.run(self.provider.send(request))

        assert excinfo.value.kind == kind
        assert excinfo.value.provider == "anthropic"

    def test_timeout_is_provider_error(self):
        self.client.messages.create.side_effect = anthropic.APITimeoutError(
            request=httpx.Request("POST", ANTHROPIC_URL)
        )
        request = AIRequest(model="claude-3-5-sonnet", messages=[AIMessage(role="user", content="Hi")])

        with pytest.raises(AIError) as excinfo:
            asyncio.run(self.provider.send(request))

        assert excinfo.value.kind == ErrorKind.PROVIDER_ERROR


class TestAnthropicStreaming:
    """Test AnthropicProvider.stream."""

    def test_stream_events_mapped(self):
        native = FakeEventStream([
            SimpleNamespace(type="message_start", message=SimpleNamespace(usage=SimpleNamespace(input_tokens=9))),
            SimpleNamespace(type="content_block_start"),
            _text_delta("Bon"),
            _text_delta("jour"),
            SimpleNamespace(type="content_block_stop"),
            SimpleNamespace(type="message_delta", usage=SimpleNamespace(output_tokens=4)),
            SimpleNamespace(type="message_stop"),
        ])
        client = Mock()
        client.messages.create = AsyncMock(return_value=native)
        provider = AnthropicProvider("sk-ant-test", client=client)
        request = AIRequest(model="claude-3-5-haiku", messages=[AIMessage(role="user", content="Hi")])

        async def run():
            stream = await provider.stream(request)
            chunks = [chunk async for chunk in stream]
            return stream, chunks

        stream, chunks = asyncio.run(run())

        assert [c.delta for c in chunks] == ["Bon", "jour", ""]
        assert chunks[-1].usage.prompt_tokens == 9
        assert chunks[-1].usage.completion_tokens == 4
        assert stream.content == "Bonjour"
        assert stream.state == StreamState.COMPLETED
        assert native.closed is True
        assert client.messages.create.await_args.kwargs["stream"] is True
