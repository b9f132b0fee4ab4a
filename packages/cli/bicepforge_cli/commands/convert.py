from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from bicepforge.converter import ArmConverter
from bicepforge.dialect import DocumentKind, classify_text
from bicepforge.errors import UsageError
from rich.console import Console
from rich.table import Table

from bicepforge_cli.utils import handle_error, load_config, write_or_print

console = Console()


def convert(
    ctx: typer.Context,
    template: Annotated[Path, typer.Argument(help="Deployment template (JSON)", exists=True)],
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Write the Bicep file here")] = None,
    config: Annotated[Path | None, typer.Option("--config", "-c", help="Generation config (JSON or YAML)")] = None,
    network_mode: Annotated[str | None, typer.Option("--network-mode", help="create-new or existing")] = None,
    vnet_name: Annotated[str | None, typer.Option("--vnet-name", help="Existing VNet name")] = None,
    subnet_name: Annotated[str | None, typer.Option("--subnet-name", help="Existing subnet name")] = None,
    vnet_resource_group: Annotated[
        str | None, typer.Option("--vnet-resource-group", help="Resource group of the existing VNet")
    ] = None,
    os_type: Annotated[str | None, typer.Option("--os-type", help="Linux or Windows")] = None,
    location: Annotated[str | None, typer.Option(help="Default location")] = None,
    public_ip: Annotated[bool | None, typer.Option("--public-ip/--no-public-ip", help="Add a public IP")] = None,
    nsg: Annotated[bool | None, typer.Option("--nsg/--no-nsg", help="Add a network security group")] = None,
) -> None:
    """Convert a deployment template into a standalone VM deployment in Bicep."""
    try:
        gen_config = load_config(
            config,
            network_mode=network_mode,
            existing_vnet_name=vnet_name,
            existing_subnet_name=subnet_name,
            existing_vnet_resource_group=vnet_resource_group,
            os_type=os_type,
            location=location,
            include_public_ip=public_ip,
            include_nsg=nsg,
        )
        doc = classify_text(template.read_text())
        if doc.kind is not DocumentKind.DEPLOYMENT_TEMPLATE:
            raise UsageError("Input is not a deployment template (needs $schema and resources)")

        converter = ArmConverter()
        analysis = converter.analyze(doc.data)
        result = converter.convert(gen_config)

        if ctx.obj and ctx.obj.get("json"):
            print(json.dumps({"analysis": analysis.to_dict(), "conversion": result.to_dict()}))
            if output:
                output.write_text(result.text)
            return

        table = Table(title="Template Analysis")
        table.add_column("Missing dependency", style="cyan")
        table.add_column("Reason")
        for dep in analysis.missing_dependencies:
            table.add_row(dep.type, dep.reason + (" (baseline)" if dep.baseline else ""))
        console.print(f"Resource types: {', '.join(analysis.resource_types) or 'none'}")
        if analysis.missing_dependencies:
            console.print(table)
        for warning in result.warnings:
            console.print(f"[yellow]Warning:[/yellow] {warning}")

        write_or_print(console, result.text, output)
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
