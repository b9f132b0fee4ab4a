from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from bicepforge.exporter import export_schema
from bicepforge.templates import enhance_schema
from rich.console import Console

from bicepforge_cli.utils import handle_error, read_mapping, write_or_print

console = Console()


def _property_names(schema: dict) -> list[str]:
    props = schema.get("properties")
    return list(props) if isinstance(props, dict) else []


def enhance(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="Resource schema (JSON or YAML)", exists=True)],
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Write the enhanced schema here")] = None,
    fmt: Annotated[str, typer.Option("--format", "-f", help="Output format: json or yaml")] = "json",
) -> None:
    """Fill in missing $schema, title and core resource properties of a schema."""
    try:
        schema = read_mapping(file)
        enhanced = enhance_schema(schema)
        content = export_schema(enhanced, fmt)
        added = sorted(set(_property_names(enhanced)) - set(_property_names(schema)))

        if ctx.obj and ctx.obj.get("json"):
            if output:
                output.write_text(content)
            print(json.dumps({"schema": enhanced, "added_properties": added}))
            return

        write_or_print(console, content, output, "yaml" if fmt.lower().strip() in ("yaml", "yml") else "json")
        if added and output:
            console.print(f"Added properties: {', '.join(added)}")
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
