from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from bicepforge.metadata import AzureResourceGraphProvider, check_resource_type
from bicepforge.registry import get_registry
from rich.console import Console
from rich.table import Table

from bicepforge_cli.utils import handle_error, read_mapping

console = Console()

registry_app = typer.Typer(
    name="registry",
    help="Inspect the resource type registry.",
    no_args_is_help=True,
)


@registry_app.callback(invoke_without_command=True)
def registry_callback(ctx: typer.Context) -> None:
    if ctx.obj is None:
        ctx.ensure_object(dict)


@registry_app.command("list")
def registry_list(
    ctx: typer.Context,
    category: Annotated[str | None, typer.Option(help="Only list one category")] = None,
) -> None:
    """List registered resource types."""
    registry = get_registry()
    types = registry.list_types(category)

    if ctx.obj and ctx.obj.get("json"):
        print(json.dumps({"types": [info.to_dict() for info in types], "stats": registry.stats()}))
        return

    table = Table(title=f"Resource Types ({category})" if category else "Resource Types")
    table.add_column("Type", style="cyan")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Preferred API", justify="right")
    table.add_column("Location/Tags")
    for info in types:
        table.add_row(
            info.resource_type,
            info.display_name,
            info.category,
            info.preferred_api_version or "-",
            "yes" if info.supports_location_and_tags else "no",
        )
    console.print(table)


@registry_app.command("show")
def registry_show(
    ctx: typer.Context,
    resource_type: Annotated[str, typer.Argument(help="Resource type, e.g. Microsoft.Storage/storageAccounts")],
    scope: Annotated[str, typer.Option(help="Deployment scope")] = "resourceGroup",
) -> None:
    """Show the registry entry for a resource type."""
    registry = get_registry()
    info = registry.lookup(resource_type, scope)
    selected = registry.select_api_version(None, resource_type)
    similar = [] if info.known else registry.similar_types(resource_type)

    if ctx.obj and ctx.obj.get("json"):
        print(json.dumps({**info.to_dict(), "selected_api_version": selected, "similar_types": similar}))
        return

    if not info.known:
        console.print(f"[yellow]{resource_type} is not in the registry; using defaults.[/yellow]")
        if similar:
            console.print(f"Did you mean: {', '.join(similar)}")
    console.print(f"[bold]{info.display_name}[/bold] ({info.resource_type})")
    console.print(f"  Profile:        {info.profile}")
    console.print(f"  Location/tags:  {'yes' if info.supports_location_and_tags else 'no'} at {scope}")
    console.print(f"  API versions:   {', '.join(info.api_versions) or '-'}")
    console.print(f"  Selected API:   {selected}")
    if info.auxiliary_resources:
        console.print(f"  Auxiliary:      {', '.join(info.auxiliary_resources)}")


@registry_app.command("check")
def registry_check(
    ctx: typer.Context,
    resource_type: Annotated[str, typer.Argument(help="Resource type to check")],
    schema: Annotated[
        Path | None, typer.Option("--schema", help="Schema whose API versions to check", exists=True)
    ] = None,
    token: Annotated[
        str | None,
        typer.Option("--token", envvar="AZURE_ACCESS_TOKEN", help="Bearer token for a live check against Azure"),
    ] = None,
) -> None:
    """Check a resource type (and a schema's API versions) offline or against Azure."""
    try:
        schema_data = read_mapping(schema) if schema else None
        provider = AzureResourceGraphProvider(access_token=token) if token else None
        check = check_resource_type(resource_type, schema_data, provider)

        if ctx.obj and ctx.obj.get("json"):
            print(json.dumps(check.to_dict()))
            return

        status = "[green]valid[/green]" if check.resource_type_valid else "[red]not recognised[/red]"
        console.print(f"{resource_type}: {status} ({check.source})")
        if check.available_api_versions:
            console.print(f"  Available API versions: {', '.join(check.available_api_versions)}")
        if check.invalid_api_versions:
            console.print(f"  [yellow]Invalid API versions:[/yellow] {', '.join(check.invalid_api_versions)}")
        if check.suggested_api_version:
            console.print(f"  Suggested API version: {check.suggested_api_version}")
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
