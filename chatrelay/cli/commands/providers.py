"""Provider inspection commands."""

import typer
from rich.table import Table

from chatrelay.adapters.llm import OpenAICompatibleAdapter
from chatrelay.cli import utils
from chatrelay.cli.utils import console, run_async
from chatrelay.core.exceptions import InvalidApiKeyError, ProviderError


def providers():
    """List providers and whether an API key is configured."""
    registry = utils.build_registry()

    table = Table(title="Providers")
    table.add_column("Identifier", style="cyan")
    table.add_column("Name")
    table.add_column("API key")
    table.add_column("Models", justify="right")

    for provider in registry.all():
        table.add_row(
            provider.identifier,
            provider.name,
            "[green]configured[/green]" if provider.has_api_key() else "[red]missing[/red]",
            str(len(provider.get_available_models())),
        )

    console.print(table)


def models(
    provider: str = typer.Argument(..., help="Provider identifier (openai, anthropic, ...)"),
    live: bool = typer.Option(False, "--live", help="Fetch the model list from the vendor"),
):
    """List the models of a provider."""
    registry = utils.build_registry()
    try:
        adapter = registry.get(provider)
    except ProviderError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    if live:
        if isinstance(adapter, OpenAICompatibleAdapter):
            available = run_async(adapter.fetch_available_models())
        else:
            console.print(f"[yellow]{adapter.name} has no live model listing, showing built-in models[/yellow]")
            available = adapter.get_available_models()
    else:
        available = adapter.get_available_models()

    table = Table(title=f"{adapter.name} models")
    table.add_column("Model", style="cyan")
    table.add_column("Name")
    for model_id, label in available.items():
        table.add_row(model_id, label)

    console.print(table)


def validate_key(
    provider: str = typer.Argument(..., help="Provider identifier"),
    key: str = typer.Argument(..., help="Candidate API key"),
):
    """Check a candidate API key against the vendor."""
    registry = utils.build_registry()
    try:
        adapter = registry.get(provider)
        run_async(adapter.validate_api_key(key))
    except InvalidApiKeyError as e:
        console.print(f"[red]INVALID:[/red] {e.message}")
        raise typer.Exit(1)
    except ProviderError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    console.print(f"[green]VALID:[/green] {adapter.name} accepted the key")
