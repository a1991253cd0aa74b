"""Main CLI application module."""

import typer

from src.pantry.api.utils.app_startup import configure_logging

from .product_commands import products_app
from .server_commands import init_database, serve

# Create the main CLI application
app = typer.Typer(
    help="🥫 Pantry CLI - product inventory with offline sync",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command(name="serve")(serve)
app.command(name="init-db")(init_database)
app.add_typer(products_app, name="products")


@app.callback()
def setup(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Configure logging before any command runs."""
    configure_logging("DEBUG" if verbose else "WARNING")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
