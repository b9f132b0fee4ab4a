from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

console = Console()


def serve(
    host: Annotated[str, typer.Option(help="Interface to bind")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port to listen on")] = 8000,
) -> None:
    """Run the JSON web API."""
    try:
        from bicepforge_web.app import serve as run_server
    except ImportError:
        console.print(
            "[red]Error:[/red] bicepforge web is not installed.\nInstall it with: pip install 'bicepforge[web]'"
        )
        raise typer.Exit(1)

    console.print(f"[cyan]Serving bicepforge API on http://{host}:{port}[/cyan]")
    run_server(host=host, port=port)
