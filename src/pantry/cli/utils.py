"""Shared helpers for CLI commands."""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

import typer
from rich.console import Console
from rich.table import Table

from src.pantry.client import (
    CachedProduct,
    NotFoundError,
    SyncCoordinator,
    SyncReport,
    ValidationError,
    build_coordinator,
)

T = TypeVar("T")

console = Console()


@asynccontextmanager
async def open_coordinator() -> AsyncIterator[SyncCoordinator]:
    """Build a coordinator from config and probe the API once.

    The coordinator starts offline, so a reachable API counts as restored
    connectivity and replays anything queued by earlier runs.
    """
    coordinator = await build_coordinator(online=False)
    try:
        report = await coordinator.connectivity_changed(await coordinator.remote.ping())
        if report is not None and (report.synced or report.failed):
            print_report(report)
        yield coordinator
    finally:
        await coordinator.aclose()


def run_with_coordinator(action: Callable[[SyncCoordinator], Awaitable[T]]) -> T:
    """Run ``action`` against a fresh coordinator, mapping client errors to exit codes."""

    async def _run() -> T:
        async with open_coordinator() as coordinator:
            result = await action(coordinator)
            await print_status(coordinator)
            return result

    try:
        return asyncio.run(_run())
    except ValidationError as e:
        for message in e.errors:
            console.print(f"[red]❌ {message}[/red]")
        raise typer.Exit(code=1) from e
    except NotFoundError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1) from e


async def print_status(coordinator: SyncCoordinator) -> None:
    pending = await coordinator.outbox.size()
    if coordinator.is_online:
        state = "[green]● online[/green]"
    else:
        state = "[yellow]● offline[/yellow]"
    console.print(f"{state}  [dim]{pending} pending operation(s)[/dim]")


def product_table(products: list[CachedProduct], title: str = "Products") -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Name", style="green")
    table.add_column("Quantity", justify="right")
    table.add_column("Unit", style="magenta")
    table.add_column("Expiry date", style="yellow")
    table.add_column("Offline", justify="center")

    for product in products:
        table.add_row(
            str(product.id),
            product.name,
            str(product.quantity),
            product.unit,
            product.expiry_date or "-",
            "📴" if product.offline else "",
        )
    return table


def print_report(report: SyncReport) -> None:
    if report.skipped:
        console.print("[yellow]Sync already in progress, nothing replayed[/yellow]")
        return
    console.print(f"[green]✅ Synced {len(report.synced)} operation(s)[/green]")
    for entry in report.failed:
        console.print(
            f"[red]❌ Dropped {entry.kind.value} {entry.target_id}: {entry.last_error}[/red]"
        )
    for entry in report.stalled:
        console.print(
            f"[yellow]⚠️  {entry.kind.value} {entry.target_id} failed "
            f"{entry.attempts} times: {entry.last_error}[/yellow]"
        )
    if report.remaining:
        console.print(f"[yellow]{report.remaining} operation(s) still pending[/yellow]")
