import asyncio

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from nestfind.catalog import Catalog
from nestfind.config import PROVIDER_KEYS, Config
from nestfind.logging import configure_logging, uvicorn_log_config

console = Console()


@click.group(invoke_without_command=True)
@click.pass_context
def main(ctx):
    """nestfind - hybrid semantic housing search"""
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = Config()
    except ValidationError as e:
        # Only fail if we're running a command that needs config
        ctx.obj["config_error"] = str(e)

    if ctx.invoked_subcommand is None:
        console.print("[bold]nestfind[/bold] - hybrid semantic housing search\n")
        console.print("Run [cyan]nestfind serve[/cyan] to start the server.")
        console.print("\nUse [cyan]nestfind --help[/cyan] for all commands.")


def _require_config(ctx) -> Config:
    if "config_error" in ctx.obj:
        console.print(f"[red]Error:[/red] {ctx.obj['config_error']}")
        raise SystemExit(1)
    return ctx.obj["config"]


@main.command()
@click.pass_context
def status(ctx):
    """Show configuration, catalog and vector store state."""
    if "config_error" in ctx.obj:
        console.print(f"[red]Error:[/red] {ctx.obj['config_error']}")
        console.print()
        console.print("[bold]Optional environment variables:[/bold]")
        console.print("  GEMINI_API_KEY, OPENAI_API_KEY, ANTHROPIC_API_KEY - language service keys")
        console.print("  NESTFIND_LLM_MODEL, NESTFIND_EMBEDDING_MODEL - model ids")
        raise SystemExit(1)

    asyncio.run(_status(ctx.obj["config"]))


async def _status(config: Config):
    console.print("[bold]nestfind status[/bold]")
    console.print()
    console.print(f"Data dir: [cyan]{config.data_dir}[/cyan]")

    catalog = Catalog.load(config.catalog_path)
    console.print(f"Catalog: {config.catalog_path or 'bundled'} ({len(catalog.listings)} listings)")

    if config.language_configured:
        console.print(f"Language model: {config.llm_model}")
    else:
        console.print("Language model: [yellow]not configured[/yellow] (local parser)")
    embedding_key = "key set" if config.embedding.api_key else "[yellow]no key[/yellow]"
    console.print(f"Embedding model: {config.embedding_model} ({config.embedding_dim}d, {embedding_key})")
    console.print(f"Hybrid weights: semantic={config.semantic_weight} fields={config.field_weight}")
    providers = [provider for provider, attr in PROVIDER_KEYS.items() if getattr(config, attr)]
    console.print(f"Provider keys: {', '.join(providers) or 'none'}")
    console.print()

    if not config.search_db_path.exists():
        console.print("Vector store: [yellow]not built[/yellow] (run [cyan]nestfind index[/cyan])")
        return

    from nestfind import database
    from nestfind.search.store import VectorStore

    conn = await database.connect(config.search_db_path, vec=True)
    try:
        store = VectorStore(conn, config.embedding_dim)
        await store.init_schema()
        stats = await store.get_stats()
    finally:
        await conn.close()

    table = Table(title="Vector store")
    table.add_column("table")
    table.add_column("rows", justify="right")
    table.add_row("listings", f"{stats['listings']}/{len(catalog.listings)}")
    table.add_row("past queries", str(stats["past_queries"]))
    console.print(table)


@main.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8000, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.pass_context
def serve(ctx, host: str, port: int, reload: bool):
    """Start the nestfind API server."""
    config = _require_config(ctx)

    import uvicorn

    console.print(f"[bold]nestfind server[/bold] starting on http://{host}:{port}")
    console.print("[dim]Press Ctrl+C to stop[/dim]")
    console.print()

    uvicorn.run(
        "nestfind.server.app:app",
        host=host,
        port=port,
        reload=reload,
        log_config=uvicorn_log_config(config.log_level),
    )


@main.command()
@click.argument("query", required=False, default="")
@click.option("--limit", default=10, help="Rows to display")
@click.pass_context
def search(ctx, query: str, limit: int):
    """Run one search (headless) and print the ranked listings."""
    config = _require_config(ctx)
    configure_logging(config.log_level)
    asyncio.run(_search(config, query, limit))


async def _search(config: Config, query: str, limit: int):
    from nestfind.server.runtime import Runtime

    runtime = Runtime(config=config)
    await runtime.connect()
    try:
        result = await runtime.orchestrator.search(query)
    finally:
        await runtime.close()

    meta = result.metadata
    console.print(
        f"[bold]{meta.total_results}[/bold] results in {meta.search_time_ms}ms "
        f"(confidence {meta.confidence:.2f}, session {result.session_id})"
    )
    table = Table()
    for column in ("id", "title", "price", "beds", "neighborhood"):
        table.add_column(column)
    for listing in result.listings[:limit]:
        table.add_row(listing.id, listing.title, f"${listing.price}", str(listing.bedrooms), listing.neighborhood)
    console.print(table)


@main.command()
@click.option("--seed/--no-seed", default=True, help="Store the sample past queries too")
@click.pass_context
def index(ctx, seed: bool):
    """Embed the catalog into the vector store."""
    config = _require_config(ctx)
    configure_logging(config.log_level)
    asyncio.run(_index(config, seed))


async def _index(config: Config, seed: bool):
    from nestfind.server.runtime import Runtime

    runtime = Runtime(config=config)
    await runtime.connect()
    try:
        if runtime.indexer is None:
            console.print("[red]Error:[/red] vector store unavailable")
            raise SystemExit(1)
        if seed:
            stored = await runtime.seed_past_queries()
            console.print(f"Stored {stored} sample past queries")
        result = await runtime.indexer.run(list(runtime.catalog.listings))
    finally:
        await runtime.close()

    console.print(
        f"Indexed [bold]{result.indexed}[/bold]/{result.total} listings in {result.duration_ms}ms"
        + (f" ([red]{result.failed} failed[/red])" if result.failed else "")
    )
    for error in result.errors:
        console.print(f"  [dim]{error}[/dim]")
