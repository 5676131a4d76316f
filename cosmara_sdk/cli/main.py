"""
CLI interface for the COSMARA Community SDK.

Sends prompts through the unified client and shows models and limits.
"""

import asyncio
import logging
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..banner import print_welcome_banner
from ..client import create_client
from ..config.loader import CommunityConfig, load_config
from ..core.constants import MODEL_EQUIVALENTS, TIER_LIMITS
from ..core.errors import AIError, QuotaExceededError
from ..core.types import AIMessage, AIRequest, APIProvider, GenerationParameters, MessageRole, TokenUsage

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not print the welcome banner"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """COSMARA Community SDK CLI."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )
    if not quiet:
        print_welcome_banner(console)
    if ctx.invoked_subcommand is None:
        console.print("COSMARA Community SDK - Use --help to see available commands")


@app.command()
def chat(
    prompt: str = typer.Argument(..., help="User message to send"),
    model: str = typer.Option("gpt-4o-mini", "--model", "-m", help="Canonical model name"),
    provider: Optional[str] = typer.Option(
        None,
        "--provider",
        "-p",
        help="Provider to use (openai, anthropic, google)"
    ),
    system: Optional[str] = typer.Option(None, "--system", "-s", help="System prompt"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", help="Maximum tokens to generate"),
    temperature: Optional[float] = typer.Option(None, "--temperature", "-t", help="Sampling temperature"),
    stream: bool = typer.Option(False, "--stream", help="Print the reply as it arrives"),
):
    """Send a single prompt and print the reply."""
    try:
        config = load_config(config_path) if config_path else CommunityConfig()

        messages = []
        if system:
            messages.append(AIMessage(role=MessageRole.SYSTEM, content=system))
        messages.append(AIMessage(role=MessageRole.USER, content=prompt))

        request = AIRequest(
            model=model,
            messages=messages,
            parameters=GenerationParameters(temperature=temperature, max_tokens=max_tokens),
            provider=APIProvider(provider.lower()) if provider else None,
        )

        usage = asyncio.run(_run_chat(config, request, stream))
        console.print(
            f"[dim]{usage.prompt_tokens} prompt + {usage.completion_tokens} completion tokens[/]"
        )
        sys.exit(EXIT_CODE_PASS)
    except QuotaExceededError as e:
        console.print(f"[red]Quota exceeded ({e.window}):[/] {e.message}")
        console.print(f"Retry in {e.retry_after:.0f}s")
        sys.exit(EXIT_CODE_FAIL)
    except AIError as e:
        console.print(f"[red]{e.kind.name}:[/] {e.message}")
        sys.exit(EXIT_CODE_FAIL)
    except (ValueError, FileNotFoundError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


async def _run_chat(config: CommunityConfig, request: AIRequest, stream: bool) -> TokenUsage:
    async with create_client(config) as client:
        if not stream:
            response = await client.send(request)
            console.print(response.content, markup=False, highlight=False)
            return response.usage

        ai_stream = await client.stream(request)
        async with ai_stream:
            async for chunk in ai_stream:
                console.print(chunk.delta, end="", markup=False, highlight=False)
        console.print()
        return ai_stream.usage or TokenUsage(prompt_tokens=0, completion_tokens=0)


@app.command()
def models(
    provider: Optional[str] = typer.Option(
        None,
        "--provider",
        "-p",
        help="Only show models available from this provider"
    ),
):
    """List canonical models and their provider equivalents."""
    try:
        selected = APIProvider(provider.lower()) if provider else None
    except ValueError:
        console.print(f"[red]Error:[/] unknown provider '{provider}'")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title="Model equivalents")
    table.add_column("Model", style="bold", overflow="fold")
    for each in APIProvider:
        table.add_column(each.value, overflow="fold")

    for model, natives in MODEL_EQUIVALENTS.items():
        if selected is not None and selected not in natives:
            continue
        table.add_row(model, *(natives.get(each, "-") for each in APIProvider))

    console.print(table)


@app.command()
def limits():
    """Show request limits for every edition."""
    table = Table(title="Request limits")
    table.add_column("Edition", style="bold")
    table.add_column("Per minute", justify="right")
    table.add_column("Per day", justify="right")
    table.add_column("Per month", justify="right")

    for edition, tier in TIER_LIMITS.items():
        table.add_row(edition, f"{tier.per_minute:,}", f"{tier.per_day:,}", f"{tier.per_month:,}")

    console.print(table)
    console.print("[dim]This SDK runs the community edition.[/]")


if __name__ == "__main__":
    app()
