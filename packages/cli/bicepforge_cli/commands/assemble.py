from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from bicepforge.assembler import assemble as assemble_resources
from bicepforge.assembler import load_catalog
from bicepforge.exporter import write_package
from rich.console import Console

from bicepforge_cli.utils import handle_error, load_config, read_mapping, write_or_print

console = Console()


def assemble(
    ctx: typer.Context,
    resources: Annotated[
        list[str] | None, typer.Argument(help="Catalog resource ids (storage, webapp, vm, ...)")
    ] = None,
    output_dir: Annotated[
        Path | None, typer.Option("--output-dir", "-o", help="Write a deployment package into this directory")
    ] = None,
    config: Annotated[Path | None, typer.Option("--config", "-c", help="Generation config (JSON or YAML)")] = None,
    resource_config: Annotated[
        Path | None,
        typer.Option("--resource-config", help="Per-resource properties keyed by resource id (JSON or YAML)"),
    ] = None,
    modules: Annotated[bool | None, typer.Option("--modules/--inline", help="Emit one module per resource")] = None,
    dependencies: Annotated[
        bool | None, typer.Option("--dependencies/--no-dependencies", help="Infer dependsOn links")
    ] = None,
    outputs: Annotated[bool | None, typer.Option("--outputs/--no-outputs", help="Emit outputs")] = None,
    parameters: Annotated[
        bool | None, typer.Option("--parameters/--no-parameters", help="Emit parameters and a parameters file")
    ] = None,
    list_resources: Annotated[bool, typer.Option("--list", help="List catalog resource ids and exit")] = False,
) -> None:
    """Assemble several catalog resources into one Bicep deployment."""
    try:
        if list_resources:
            catalog = load_catalog()
            if ctx.obj and ctx.obj.get("json"):
                print(json.dumps({rid: entry.name for rid, entry in catalog.items()}))
                return
            for rid, entry in catalog.items():
                console.print(f"[cyan]{rid:<12}[/cyan] {entry.name}")
            return

        gen_config = load_config(
            config,
            generate_modules=modules,
            include_dependencies=dependencies,
            include_outputs=outputs,
            include_parameters=parameters,
        )
        per_resource = read_mapping(resource_config) if resource_config else None
        result = assemble_resources(resources or [], per_resource, gen_config)

        written = write_package(result, output_dir) if output_dir else []

        if ctx.obj and ctx.obj.get("json"):
            payload = result.to_dict()
            payload["files"] = [str(p) for p in written]
            print(json.dumps(payload))
            return

        for warning in result.warnings:
            console.print(f"[yellow]Warning:[/yellow] {warning}")
        if written:
            for path in written:
                console.print(f"[green]Written to {path}[/green]")
        else:
            write_or_print(console, result.text, None)
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
