"""Server CLI commands."""

import typer
import uvicorn
from rich.panel import Panel

from src.pantry.runtime.context import get_config

from .utils import console


def serve(
    host: str | None = typer.Option(None, help="Host to bind (default: app.host)"),
    port: int | None = typer.Option(None, help="Port to bind (default: app.port)"),
    reload: bool = typer.Option(False, help="Enable auto-reload on code changes"),
    log_level: str = typer.Option(
        "info", help="Log level (debug, info, warning, error, critical)"
    ),
) -> None:
    """Start the product API."""
    app_config = get_config().app
    host = host or app_config.host
    port = port or app_config.port

    console.print(
        Panel.fit("[bold green]Starting Product API[/bold green]", border_style="green")
    )
    console.print(f"[blue]Server will be available at:[/blue] http://{host}:{port}")
    console.print("[dim]Press Ctrl+C to stop the server[/dim]")

    uvicorn.run(
        "src.pantry.api.http.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


def init_database() -> None:
    """Create the database tables."""
    from src.pantry.runtime.init_db import init_db

    init_db()
    console.print("[green]✅ Database tables created[/green]")
