"""Command-line access to the local buffer, sync and status.

\b
Example:
    focus-logger set-key sk_live_...
    focus-logger status --check
    focus-logger sync
    focus-logger serve --port 3000
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from focus_logger import __version__
from focus_logger.app import FocusLogger
from focus_logger.config import Settings
from focus_logger.exceptions import FocusLoggerError, TransientSyncError

console = Console()


def _format_duration(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"
    return f"{seconds // 60}m {seconds % 60}s"


def _settings(ctx: click.Context) -> Settings:
    overrides = {}
    if ctx.obj.get("data_dir"):
        overrides["data_dir"] = ctx.obj["data_dir"]
    if ctx.obj.get("api_url"):
        overrides["api_url"] = ctx.obj["api_url"]
    try:
        return Settings.from_env(**overrides)
    except FocusLoggerError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(__version__, prog_name="focus-logger")
@click.option("--data-dir", type=click.Path(path_type=Path), help="Local store directory")
@click.option("--api-url", help="Ingestion API base URL")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def main(ctx: click.Context, data_dir: Path | None, api_url: str | None, verbose: bool) -> None:
    """Inspect and sync the focus-logger buffer."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir
    ctx.obj["api_url"] = api_url


@main.command()
@click.option("--check", is_flag=True, help="Also ping the ingestion API")
@click.pass_context
def status(ctx: click.Context, check: bool) -> None:
    """Show buffer size and sync counters."""
    asyncio.run(_status(_settings(ctx), check))


async def _status(settings: Settings, check: bool) -> None:
    app = FocusLogger(settings)
    try:
        info = await app.status()
        table = Table(title="focus-logger status", show_header=False)
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        table.add_row("API URL", settings.api_url)
        table.add_row("API key", "set" if info["api_key_set"] else "[red]missing[/red]")
        table.add_row("Buffered logs", str(info["buffered"]))
        table.add_row("Retry attempt", str(info["retry_attempt"]))
        table.add_row("Errors", str(info["error_count"]))
        if check:
            try:
                remote = await app.engine.check_connection()
                table.add_row("Server", f"[green]{remote.get('status', '?')}[/green] v{remote.get('version', '?')}")
            except TransientSyncError:
                table.add_row("Server", "[red]unreachable[/red]")
        console.print(table)
    finally:
        await app.stop()


@main.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Run a sync pass now."""
    asyncio.run(_sync(_settings(ctx)))


async def _sync(settings: Settings) -> None:
    app = FocusLogger(settings)
    try:
        result = await app.force_sync()
    finally:
        await app.stop()

    if result.skipped:
        console.print(f"[yellow]Sync skipped:[/yellow] {result.skipped_reason}")
        return
    console.print(
        f"[green]Synced {result.synced}[/green], dropped {result.dropped}, "
        f"{result.remaining} remaining"
    )
    if result.transient_failure:
        console.print("[yellow]Server unavailable; remaining logs kept for the next sync.[/yellow]")
    if result.storage_error:
        console.print("[red]Could not update the local buffer; delivered logs may be sent again.[/red]")


@main.command()
@click.option("--limit", default=20, help="Most recent entries to show")
@click.pass_context
def logs(ctx: click.Context, limit: int) -> None:
    """List buffered entries, newest first."""
    asyncio.run(_logs(_settings(ctx), limit))


async def _logs(settings: Settings, limit: int) -> None:
    app = FocusLogger(settings)
    try:
        entries = await app.buffer.list()
    finally:
        await app.stop()

    if not entries:
        console.print("[dim]No logs buffered.[/dim]")
        return
    table = Table(title=f"Buffered logs ({len(entries)})")
    table.add_column("Title")
    table.add_column("Domain", style="cyan")
    table.add_column("Time", justify="right")
    for entry in reversed(entries[-limit:]):
        title = entry.title or entry.domain
        table.add_row(title[:40] + ("..." if len(title) > 40 else ""), entry.domain, _format_duration(entry.duration))
    console.print(table)


@main.command()
@click.confirmation_option(prompt="Discard all buffered logs?")
@click.pass_context
def clear(ctx: click.Context) -> None:
    """Discard all buffered logs."""
    asyncio.run(_clear(_settings(ctx)))


async def _clear(settings: Settings) -> None:
    app = FocusLogger(settings)
    try:
        await app.buffer.clear()
    finally:
        await app.stop()
    console.print("Buffer cleared.")


@main.command(name="set-key")
@click.argument("api_key")
@click.pass_context
def set_key(ctx: click.Context, api_key: str) -> None:
    """Store the bearer token used for sync."""
    asyncio.run(_set_key(_settings(ctx), api_key))


async def _set_key(settings: Settings, api_key: str) -> None:
    app = FocusLogger(settings)
    try:
        app.state.api_key = api_key
    finally:
        await app.stop()
    console.print("API key saved.")


@main.command()
@click.option("--host", default="127.0.0.1")
@click.option("--port", default=3000)
@click.option("--require-auth", is_flag=True, help="Reject requests without a bearer token")
def serve(host: str, port: int, require_auth: bool) -> None:
    """Run the development ingestion server."""
    import uvicorn

    from focus_logger.devserver import create_app

    logging.getLogger("focus_logger").setLevel(logging.INFO)
    console.print(f"Dev ingestion server on http://{host}:{port}")
    uvicorn.run(create_app(require_auth=require_auth), host=host, port=port)


if __name__ == "__main__":
    main()
