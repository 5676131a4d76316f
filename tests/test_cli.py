"""
Tests for the CLI interface.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from rich.console import Console
from typer.testing import CliRunner

from cosmara_sdk.cli.main import app, EXIT_CODE_PASS, EXIT_CODE_FAIL
from cosmara_sdk.core.errors import AIError, ErrorKind, QuotaExceededError
from cosmara_sdk.core.types import AIResponse, APIProvider, TokenUsage

runner = CliRunner()


@pytest.fixture(autouse=True)
def wide_console():
    """Render rich output without wrapping."""
    with patch('cosmara_sdk.cli.main.console', Console(width=200)):
        yield


@pytest.fixture
def mock_client():
    """Replace create_client with an async context manager mock."""
    with patch('cosmara_sdk.cli.main.create_client') as mock_create:
        client = MagicMock()
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=False)
        client.send = AsyncMock()
        mock_create.return_value = client
        yield client


def _response(content="Paris is the capital of France."):
    return AIResponse(
        content=content,
        model="gpt-4o-mini",
        provider=APIProvider.OPENAI,
        usage=TokenUsage(prompt_tokens=14, completion_tokens=8),
        latency_ms=350,
    )


class TestCLI:
    """Test CLI commands."""

    def test_chat_prints_reply(self, mock_client):
        mock_client.send.return_value = _response()

        result = runner.invoke(app, ["--quiet", "chat", "What is the capital of France?"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Paris is the capital of France." in result.output
        assert "14 prompt + 8 completion tokens" in result.output

    def test_chat_builds_request(self, mock_client):
        mock_client.send.return_value = _response()

        runner.invoke(app, [
            "--quiet", "chat", "Hi",
            "--model", "claude-3-5-haiku",
            "--provider", "Anthropic",
            "--system", "Be terse",
            "--max-tokens", "20",
        ])

        request = mock_client.send.await_args.args[0]
        assert request.model == "claude-3-5-haiku"
        assert request.provider == APIProvider.ANTHROPIC
        assert [m.content for m in request.messages] == ["Be terse", "Hi"]
        assert request.parameters.max_tokens == 20

    def test_reply_is_not_rendered_as_markup(self, mock_client):
        mock_client.send.return_value = _response("Use [bold]tags[/bold] literally")

        result = runner.invoke(app, ["--quiet", "chat", "Hi"])

        assert "Use [bold]tags[/bold] literally" in result.output

    def test_quota_exceeded_exits_with_failure(self, mock_client):
        mock_client.send.side_effect = QuotaExceededError(
            "minute", 10, 10, 42.0, "Quota exceeded for the minute window (10/10 requests)."
        )

        result = runner.invoke(app, ["--quiet", "chat", "Hi"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Quota exceeded (minute)" in result.output
        assert "Retry in 42s" in result.output

    def test_provider_error_exits_with_failure(self, mock_client):
        mock_client.send.side_effect = AIError(ErrorKind.AUTH_ERROR, "No API key configured for openai", "openai")

        result = runner.invoke(app, ["--quiet", "chat", "Hi"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "AUTH_ERROR" in result.output
        assert "No API key configured" in result.output

    def test_unknown_provider_exits_with_failure(self, mock_client):
        result = runner.invoke(app, ["--quiet", "chat", "Hi", "--provider", "cohere"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Error:" in result.output
        mock_client.send.assert_not_awaited()

    def test_missing_config_file_exits_with_failure(self, mock_client):
        result = runner.invoke(app, ["--quiet", "chat", "Hi", "--config", "/nonexistent/cosmara.yaml"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Config file not found" in result.output

    def test_banner_shown_by_default(self):
        result = runner.invoke(app, ["limits"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "COSMARA Community SDK" in result.output
        assert "cosmara.dev/pricing" in result.output

    def test_quiet_suppresses_banner(self):
        result = runner.invoke(app, ["--quiet", "limits"])

        assert "🚀" not in result.output

    def test_limits_lists_every_edition(self):
        result = runner.invoke(app, ["--quiet", "limits"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "community" in result.output
        assert "1,000" in result.output
        assert "professional" in result.output
        assert "500,000" in result.output

    def test_models_lists_equivalents(self):
        result = runner.invoke(app, ["--quiet", "models"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "gpt-4-turbo" in result.output
        assert "claude-3-5-haiku-20241022" in result.output

    def test_models_filtered_by_provider(self):
        result = runner.invoke(app, ["--quiet", "models", "--provider", "google"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "gpt-4-turbo" not in result.output
        assert "gemini-1.5-flash" in result.output

    def test_models_unknown_provider(self):
        result = runner.invoke(app, ["--quiet", "models", "--provider", "cohere"])

        assert result.exit_code == EXIT_CODE_FAIL
