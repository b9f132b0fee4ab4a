from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from bicepforge.exporter import export_schema
from bicepforge.templates import starter_schema, starter_template
from rich.console import Console

from bicepforge_cli.utils import handle_error

console = Console()


def new(
    ctx: typer.Context,
    resource_type: Annotated[
        str | None, typer.Argument(help="Resource type or short name (storage, vm, webapp, keyvault)")
    ] = None,
    template: Annotated[bool, typer.Option("--template", help="Start an empty deployment template instead")] = False,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Write the starter document here")] = None,
    fmt: Annotated[str, typer.Option("--format", "-f", help="Output format: json or yaml")] = "json",
) -> None:
    """Print or write a starter resource schema or deployment template."""
    try:
        if template:
            doc = starter_template()
        elif resource_type:
            doc = starter_schema(resource_type)
        else:
            console.print("[yellow]Specify a resource type or --template.[/yellow]")
            raise typer.Exit(1)

        content = export_schema(doc, fmt)
        if output:
            output.write_text(content)
            if not (ctx.obj and ctx.obj.get("json")):
                console.print(f"[green]Written to {output}[/green]")
                return
        print(content, end="")
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
