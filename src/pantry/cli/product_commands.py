"""Product CLI commands, driven through the sync coordinator."""

import typer
from rich.table import Table

from src.pantry.client import SyncCoordinator
from src.pantry.entities.service.product import KNOWN_UNITS, ExpiryFilter

from .utils import console, print_report, product_table, run_with_coordinator

products_app = typer.Typer(
    help="📦 Manage products (works offline; changes sync when the API is back)"
)

_FILTER_HELP = "Expiry filter: " + ", ".join(member.value for member in ExpiryFilter)
_UNIT_HELP = "Unit of measure, e.g. " + ", ".join(KNOWN_UNITS)


@products_app.command("list")
def list_products(
    filter: str | None = typer.Option(None, "--filter", "-f", help=_FILTER_HELP),
    sort: str | None = typer.Option(None, "--sort", "-s", help="asc or desc"),
) -> None:
    """List products, from the API when reachable or from the local cache."""

    async def action(coordinator: SyncCoordinator) -> None:
        products = await coordinator.list(filter, sort)
        if not products:
            console.print("[yellow]No products found[/yellow]")
            return
        console.print(product_table(products))

    run_with_coordinator(action)


@products_app.command("add")
def add_product(
    name: str = typer.Argument(..., help="Product name"),
    quantity: int = typer.Argument(..., help="Quantity on hand"),
    unit: str = typer.Argument(..., help=_UNIT_HELP),
    expiry: str | None = typer.Option(
        None, "--expiry", "-e", help="Expiry date (yyyy-MM-dd)"
    ),
) -> None:
    """Add a product."""

    async def action(coordinator: SyncCoordinator) -> None:
        product = await coordinator.create(
            {"name": name, "quantity": quantity, "unit": unit, "expiry_date": expiry}
        )
        suffix = " [yellow](saved offline)[/yellow]" if product.offline else ""
        console.print(f"[green]✅ Added {product.name} with id {product.id}[/green]{suffix}")

    run_with_coordinator(action)


@products_app.command("update")
def update_product(
    product_id: int = typer.Argument(..., help="Product id (use -- before negative ids)"),
    name: str | None = typer.Option(None, "--name", "-n", help="New name"),
    quantity: int | None = typer.Option(None, "--quantity", "-q", help="New quantity"),
    unit: str | None = typer.Option(None, "--unit", "-u", help=_UNIT_HELP),
    expiry: str | None = typer.Option(
        None, "--expiry", "-e", help="New expiry date (yyyy-MM-dd, empty to clear)"
    ),
) -> None:
    """Change some fields of a product."""
    changes = {
        field: value
        for field, value in (
            ("name", name),
            ("quantity", quantity),
            ("unit", unit),
            ("expiry_date", expiry),
        )
        if value is not None
    }
    if not changes:
        console.print("[yellow]Nothing to update[/yellow]")
        raise typer.Exit(code=1)

    async def action(coordinator: SyncCoordinator) -> None:
        product = await coordinator.update(product_id, changes)
        console.print(f"[green]✅ Updated {product.name} ({product.id})[/green]")

    run_with_coordinator(action)


@products_app.command("delete")
def delete_product(
    product_id: int = typer.Argument(..., help="Product id (use -- before negative ids)"),
) -> None:
    """Delete a product."""

    async def action(coordinator: SyncCoordinator) -> None:
        if await coordinator.delete(product_id):
            console.print(f"[green]✅ Deleted product {product_id}[/green]")
        else:
            console.print(f"[yellow]Product {product_id} was not cached locally[/yellow]")

    run_with_coordinator(action)


@products_app.command("sync")
def sync_products() -> None:
    """Replay pending operations against the API."""

    async def action(coordinator: SyncCoordinator) -> None:
        if not coordinator.is_online:
            console.print("[yellow]API unreachable, operations stay queued[/yellow]")
            return
        print_report(await coordinator.sync_pending())

    run_with_coordinator(action)


@products_app.command("pending")
def pending_operations() -> None:
    """Show operations waiting to be synced."""

    async def action(coordinator: SyncCoordinator) -> None:
        entries = await coordinator.outbox.entries()
        if not entries:
            console.print("[green]Nothing pending[/green]")
            return

        table = Table(title="Pending operations")
        table.add_column("Queued at", style="dim")
        table.add_column("Operation", style="cyan")
        table.add_column("Product", justify="right")
        table.add_column("Attempts", justify="right")
        table.add_column("Last error", style="red")
        for entry in entries:
            table.add_row(
                entry.enqueued_at,
                entry.kind.value,
                str(entry.target_id),
                str(entry.attempts),
                entry.last_error or "",
            )
        console.print(table)

    run_with_coordinator(action)


@products_app.command("status")
def status() -> None:
    """Show connectivity and local storage state."""

    async def action(coordinator: SyncCoordinator) -> None:
        cached = await coordinator.cache.get_all()
        offline = sum(1 for product in cached if product.offline)
        console.print(f"API: [blue]{coordinator.remote.base_url}[/blue]")
        console.print(f"Cached products: {len(cached)} ({offline} not yet synced)")
        console.print(f"Conflict policy: {coordinator.policy.value}")
        if coordinator.cache.degraded or coordinator.outbox.degraded:
            console.print("[red]Local storage unavailable, changes kept in memory only[/red]")

    run_with_coordinator(action)
