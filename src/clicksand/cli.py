#!/usr/bin/env python3
"""Clicksand command line.

Usage:
    clicksand serve --port 3000
    clicksand stats alice --view weekly
    clicksand rules alice
    clicksand reset alice
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .categories import get_category
from .config import Settings
from .service import TimeTrackingService
from .store import SnapshotStore
from .tracker import VIEWS

console = Console()


def format_seconds(seconds: float) -> str:
    """Format seconds as H:MM:SS or MM:SS."""
    total = int(seconds or 0)
    if total <= 0:
        return "00:00"
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


async def _open_service(settings: Settings) -> TimeTrackingService:
    store = SnapshotStore(settings.db_path)
    await store.init()
    return TimeTrackingService(store, settings)


def build_stats_table(result: dict, overrides: dict[str, str] | None = None) -> Table:
    stats = dict(result.get("stats") or {})
    browser_time = stats.pop("browser_time", 0)

    table = Table(
        title=f"{result.get('view', 'today')} ({result.get('currentDate')})",
        show_header=True,
        header_style="bold cyan",
        border_style="blue",
        expand=False,
    )
    table.add_column("Domain", style="white")
    table.add_column("Active", justify="right")
    table.add_column("Video", justify="right", style="magenta")
    table.add_column("Sessions", justify="right", style="dim")
    table.add_column("Category", style="yellow")

    ordered = sorted(stats.items(), key=lambda item: item[1].get("activeTime", 0), reverse=True)
    for domain, entry in ordered:
        table.add_row(
            domain,
            format_seconds(entry.get("activeTime", 0)),
            format_seconds(entry.get("videoTime", 0)),
            str(entry.get("sessionCount", 0)),
            get_category(domain, overrides),
        )
    table.caption = f"Browser open: {format_seconds(browser_time)}"
    return table


@click.group()
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Snapshot database (defaults to CLICKSAND_DB or ~/.clicksand/clicksand.db)",
)
@click.pass_context
def main(ctx, db_path):
    """Clicksand - attention tracking service and stats viewer."""
    load_dotenv(Path.cwd() / ".env")
    settings = Settings.from_env()
    if db_path is not None:
        settings.db_path = db_path
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@main.command()
@click.option("--host", default=None, help="Bind address")
@click.option("--port", type=int, default=None, help="Bind port")
@click.pass_context
def serve(ctx, host, port):
    """Run the HTTP / WebSocket server."""
    import uvicorn

    from .api import create_app

    settings: Settings = ctx.obj["settings"]
    if host:
        settings.host = host
    if port:
        settings.port = port
    console.print(f"[cyan]Starting Clicksand API[/cyan] on {settings.host}:{settings.port}")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


@main.command()
@click.argument("user_id")
@click.option("--view", type=click.Choice(list(VIEWS)), default="today", show_default=True)
@click.pass_context
def stats(ctx, user_id, view):
    """Show per-domain time for a user."""
    settings: Settings = ctx.obj["settings"]

    async def run():
        service = await _open_service(settings)
        result = await service.query(user_id, view)
        overrides = await service.get_categories(user_id)
        await service.flush_all()
        return result, overrides

    result, overrides = asyncio.run(run())
    if not result["stats"]:
        console.print(f"[dim]No activity recorded for {user_id}[/dim]")
        return
    console.print(build_stats_table(result, overrides))


@main.command()
@click.argument("user_id")
@click.pass_context
def rules(ctx, user_id):
    """List a user's achievement rules."""
    settings: Settings = ctx.obj["settings"]

    async def run():
        service = await _open_service(settings)
        return await service.get_achievement_rules(user_id)

    achievement_rules = asyncio.run(run())
    if not achievement_rules:
        console.print("[dim]No achievement rules[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan", border_style="blue")
    table.add_column("Pattern", style="white")
    table.add_column("Limit", justify="right")
    table.add_column("Interval", justify="right")
    table.add_column("Message", style="dim")
    for pattern, rule in achievement_rules.items():
        table.add_row(
            pattern,
            format_seconds(rule.limit_seconds),
            format_seconds(rule.interval_seconds) if rule.interval_seconds else "-",
            rule.message,
        )
    console.print(table)


@main.command()
@click.argument("user_id")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def reset(ctx, user_id, yes):
    """Clear today's counters and history for a user. Rules are kept."""
    settings: Settings = ctx.obj["settings"]
    if not yes:
        click.confirm(f"Reset all stats for {user_id}?", abort=True)

    async def run():
        service = await _open_service(settings)
        await service.reset(user_id)
        return await service.flush(user_id)

    if asyncio.run(run()):
        console.print(f"[green]v[/green] Reset stats for {user_id}")
    else:
        raise click.ClickException(f"Could not save reset for {user_id}")


if __name__ == "__main__":
    main()
