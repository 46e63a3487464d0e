"""CLI interface for Gramps Web Agents."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TypeVar

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from .config import ConfigError, GrampsConfig
from .gramps.client import GrampsWebClient
from .gramps.errors import GrampsAPIError, format_error
from .gramps.lineage import MAX_GENERATIONS, LineageResult, LineageTraversal
from .sk.plugins.gramps import GrampsPlugin

app = typer.Typer(
    name="gramps-agents",
    help="Genealogy tools for a Gramps Web family tree",
    add_completion=False,
)
console = Console()

T = TypeVar("T")


def get_config() -> GrampsConfig:
    """Load configuration from environment."""
    try:
        return GrampsConfig.from_env()
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)


def _run(config: GrampsConfig, operation: Callable[[GrampsWebClient], Awaitable[T]]) -> T:
    """Run one async operation against a fresh client."""

    async def run():
        async with GrampsWebClient(config) as client:
            return await operation(client)

    try:
        return asyncio.run(run())
    except GrampsAPIError as e:
        console.print(f"[red]Error: {format_error(e)}[/red]")
        raise typer.Exit(1)


def _print_tool_result(text: str) -> None:
    if text.startswith("Error:"):
        console.print(f"[red]{text}[/red]")
        raise typer.Exit(1)
    console.print(Markdown(text))


@app.command("check-auth")
def check_auth():
    """Verify credentials by requesting an access token."""
    config = get_config()

    async def authenticate(client: GrampsWebClient) -> float:
        await client.tokens.get_token()
        return client.tokens.expiry

    expiry = _run(config, authenticate)
    expires = datetime.fromtimestamp(expiry, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    console.print(f"[green]Authenticated with {config.api_url}[/green]")
    console.print(f"[dim]Token valid until {expires}[/dim]")


@app.command()
def ancestors(
    handle: str = typer.Argument(..., help="Handle of the starting person"),
    generations: int = typer.Option(
        3, "--generations", "-g", min=1, max=MAX_GENERATIONS, help="Generations to retrieve"
    ),
):
    """Show ancestors of a person, generation by generation."""
    config = get_config()
    result = _run(config, lambda client: LineageTraversal(client).ancestors_of(handle, generations))
    _display_lineage(result, "Ancestors")


@app.command()
def descendants(
    handle: str = typer.Argument(..., help="Handle of the starting person"),
    generations: int = typer.Option(
        3, "--generations", "-g", min=1, max=MAX_GENERATIONS, help="Generations to retrieve"
    ),
):
    """Show descendants of a person, generation by generation."""
    config = get_config()
    result = _run(config, lambda client: LineageTraversal(client).descendants_of(handle, generations))
    _display_lineage(result, "Descendants")


@app.command()
def stats():
    """Show record counts for the family tree."""
    config = get_config()
    _print_tool_result(_run(config, lambda client: GrampsPlugin(client).tree_stats()))


@app.command()
def recent(
    limit: int = typer.Option(20, "--limit", "-l", min=1, max=100, help="Maximum results"),
):
    """Show recently changed records."""
    config = get_config()
    _print_tool_result(
        _run(config, lambda client: GrampsPlugin(client).recent_changes(pagesize=limit))
    )


@app.command()
def find(
    query: str = typer.Argument(..., help="Full-text search query"),
    limit: int = typer.Option(20, "--limit", "-l", min=1, max=100, help="Maximum results"),
):
    """Full-text search across all record types."""
    config = get_config()
    _print_tool_result(
        _run(config, lambda client: GrampsPlugin(client).find(query, pagesize=limit))
    )


@app.command()
def get(
    entity_type: str = typer.Argument(..., help="Entity type, e.g. people or families"),
    handle: str = typer.Argument(..., help="Handle or Gramps ID"),
):
    """Show one record by handle or Gramps ID."""
    config = get_config()
    _print_tool_result(_run(config, lambda client: GrampsPlugin(client).get(entity_type, handle)))


def _display_lineage(result: LineageResult, title: str) -> None:
    """Display a lineage result as a table."""
    if result.is_empty:
        console.print(f"[yellow]No person found with handle '{result.root_handle}'[/yellow]")
        return

    table = Table(title=f"{title} of {result.root_handle}")
    table.add_column("Gen", justify="right")
    table.add_column("Relationship")
    table.add_column("Name")
    table.add_column("Gramps ID", style="dim")
    table.add_column("Handle", style="dim")

    for entry in result.entries():
        table.add_row(
            str(entry.generation),
            entry.relationship,
            entry.name,
            entry.gramps_id,
            entry.handle,
        )

    console.print(table)
    console.print(f"[dim]{result.total_count} people across {result.generations_retrieved} generation(s)[/dim]")


if __name__ == "__main__":
    app()
