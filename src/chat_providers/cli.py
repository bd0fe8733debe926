"""Command-line front-end: list models and ask a question."""

from __future__ import annotations

import asyncio
import logging

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from chat_providers.config import AIConfig, ConfigError, load_config
from chat_providers.llm.errors import AIError, ChatProvidersError, ModelNotFoundError
from chat_providers.llm.factory import build_registry
from chat_providers.llm.registry import ProviderRegistry
from chat_providers.llm.response_parser import split_reasoning
from chat_providers.settings import InMemoryChatSettings
from chat_providers.tools import Tool, build_default_catalog
from chat_providers.types import ROLE_USER, Message, ModelInfo

console = Console()


def _make_registry(config: AIConfig) -> ProviderRegistry:
    return build_registry(config, InMemoryChatSettings(config))


def _select_tools(config: AIConfig) -> list[Tool] | None:
    if not config.tools.enabled:
        return None
    catalog = build_default_catalog(telegram_enabled=config.tools.telegram)
    return catalog.available(config.tools.allowed, config.tools.excluded) or None


def _print_ai_error(err: AIError) -> None:
    retry = "retryable" if err.is_retryable() else "not retryable"
    console.print(f"[red]Error ({err.error_type.value}, {retry}): {escape(str(err))}[/red]")


# ---------------------------------------------------------------------------
# Command implementations
# ---------------------------------------------------------------------------

async def _list_models(
    config: AIConfig, provider_name: str, only_free: bool, fresh: bool,
) -> dict[str, list[ModelInfo]]:
    registry = _make_registry(config)
    try:
        if provider_name:
            models = await registry.get_provider(provider_name).get_models(only_free, fresh)
            return {provider_name: list(models.values())}
        return await registry.get_all_models(only_free, fresh)
    finally:
        await registry.aclose()


async def _resolve_cli_model(registry: ProviderRegistry, spec: str) -> ModelInfo | None:
    if not spec:
        return None
    try:
        return await registry.get_formatted_model(spec)
    except ModelNotFoundError as exc:
        if not exc.placeholder.provider:
            raise
        return exc.placeholder


async def _ask(
    config: AIConfig,
    prompt: str,
    model_spec: str,
    stream: bool,
    web_search: bool,
    chat_id: int,
) -> None:
    registry = _make_registry(config)
    try:
        model = await _resolve_cli_model(registry, model_spec)
        messages = [Message(role=ROLE_USER, text=prompt)]
        tools = _select_tools(config)

        if not stream:
            result = await registry.ask(
                messages, tools, model, chat_id=chat_id, web_search=web_search,
            )
            content, reasoning = result.content, result.reasoning
            if not reasoning:
                content, reasoning = split_reasoning(content)
            if reasoning:
                console.print(f"[dim]{escape(reasoning)}[/dim]\n")
            console.print(content, markup=False, highlight=False)
            if result.response is not None:
                for choice in result.response.choices[:1]:
                    for call in choice.tool_calls:
                        console.print(f"[yellow]tool call: {call.function.name}({escape(call.function.arguments)})[/yellow]")
            return

        chunks = await registry.ask_stream(
            messages, tools, model, chat_id=chat_id, web_search=web_search,
        )
        async with chunks:
            if chunks.model is not None:
                console.print(f"[dim]{chunks.model.full_name}[/dim]")
            async for chunk in chunks:
                if chunk.error is not None:
                    raise chunk.error
                if chunk.reasoning:
                    console.print(chunk.reasoning, style="dim", end="", markup=False, highlight=False)
                if chunk.content:
                    console.print(chunk.content, end="", markup=False, highlight=False)
                for call in chunk.tool_calls:
                    console.print(f"\n[yellow]tool call: {call.function.name}({escape(call.function.arguments)})[/yellow]")
                if chunk.usage is not None and chunk.usage.total_tokens:
                    console.print(f"\n[dim]tokens: {chunk.usage.total_tokens}[/dim]", end="")
        console.print()
    finally:
        await registry.aclose()


# ---------------------------------------------------------------------------
# click entry points
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", "-c", "config_path", default=None,
              help="Path to chat_providers.yaml (auto-detected from CWD or ~/.config/chat-providers/)")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool):
    """chat-providers - ask any OpenAI-style chat backend."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    try:
        ctx.obj = load_config(config_path)
    except ConfigError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        ctx.exit(1)


@main.command()
@click.option("--provider", "-p", "provider_name", default="", help="Only this provider")
@click.option("--free", "only_free", is_flag=True, help="Only free models")
@click.option("--fresh", is_flag=True, help="Bypass the model cache")
@click.pass_obj
def models(config: AIConfig, provider_name: str, only_free: bool, fresh: bool):
    """List available models."""
    try:
        catalog = asyncio.run(_list_models(config, provider_name, only_free, fresh))
    except AIError as exc:
        _print_ai_error(exc)
        raise SystemExit(1)
    except ChatProvidersError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise SystemExit(1)

    if not catalog:
        console.print("[dim]No models available.[/dim]")
        return

    table = Table(title="Models", show_lines=False, border_style="dim")
    table.add_column("Model", style="bold")
    table.add_column("Modalities")
    table.add_column("Created", width=10)
    for name, entries in catalog.items():
        for model in sorted(entries, key=lambda m: m.id):
            created = model.created_at.strftime("%Y-%m-%d") if model.created_at else ""
            table.add_row(f"{name}:{model.id}", model.formatted_modalities(), created)
    console.print(table)


@main.command()
@click.argument("prompt")
@click.option("--model", "-m", "model_spec", default="", help="provider:model, alias or model id")
@click.option("--no-stream", "no_stream", is_flag=True, help="Wait for the full answer")
@click.option("--web-search", is_flag=True, help="Enable the web search plugin")
@click.option("--chat-id", default=0, type=int, help="Chat whose settings apply")
@click.pass_obj
def ask(config: AIConfig, prompt: str, model_spec: str, no_stream: bool,
        web_search: bool, chat_id: int):
    """Ask PROMPT and print the answer."""
    try:
        asyncio.run(_ask(config, prompt, model_spec, not no_stream, web_search, chat_id))
    except AIError as exc:
        console.print()
        _print_ai_error(exc)
        raise SystemExit(1)
    except ChatProvidersError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
