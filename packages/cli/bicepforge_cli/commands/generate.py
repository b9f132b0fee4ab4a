from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from bicepforge.dialect import DocumentKind, classify_text
from bicepforge.errors import UsageError
from bicepforge.exporter import export_document
from bicepforge.generator import generate as generate_document
from bicepforge.generator import generate_from_template_entry
from rich.console import Console

from bicepforge_cli.utils import handle_error, load_config, write_or_print

console = Console()


def generate(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="Resource schema or deployment template (JSON)", exists=True)],
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Write the Bicep file here")] = None,
    config: Annotated[Path | None, typer.Option("--config", "-c", help="Generation config (JSON or YAML)")] = None,
    index: Annotated[int, typer.Option("--index", help="Template resource to generate from")] = 0,
    location: Annotated[str | None, typer.Option(help="Default location")] = None,
    environment: Annotated[str | None, typer.Option(help="Default environment name")] = None,
    outputs: Annotated[bool | None, typer.Option("--outputs/--no-outputs", help="Emit outputs")] = None,
    parameters_file: Annotated[
        bool, typer.Option("--parameters-file", help="Also write <output>.parameters.json")
    ] = False,
) -> None:
    """Generate Bicep from a resource schema or one resource of a deployment template."""
    try:
        gen_config = load_config(config, location=location, environment=environment, include_outputs=outputs)
        doc = classify_text(file.read_text())
        if doc.kind is DocumentKind.BICEP:
            raise UsageError("Input is already Bicep; provide a resource schema or deployment template")

        if doc.kind is DocumentKind.DEPLOYMENT_TEMPLATE:
            resources = doc.data.get("resources") or []
            if not 0 <= index < len(resources):
                raise UsageError(f"Template has {len(resources)} resource(s); --index {index} is out of range")
            generated = generate_from_template_entry(resources[index], gen_config)
        else:
            generated = generate_document(doc.data, gen_config)

        text = export_document(generated)
        params_text = export_document(generated, "parameters") if parameters_file else None

        if ctx.obj and ctx.obj.get("json"):
            payload = {"resource_type": generated.resource_type, "api_version": generated.api_version, "bicep": text}
            if params_text is not None:
                payload["parameters"] = json.loads(params_text)
            print(json.dumps(payload))
            if output:
                output.write_text(text)
            return

        write_or_print(console, text, output)
        if params_text is not None:
            if output:
                params_path = output.with_suffix(".parameters.json")
                params_path.write_text(params_text)
                console.print(f"[green]Written to {params_path}[/green]")
            else:
                write_or_print(console, params_text, None, "json")
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
