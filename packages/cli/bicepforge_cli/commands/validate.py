from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from bicepforge.dialect import classify_text, validate_classified
from bicepforge.validator import run_checks
from rich.console import Console
from rich.text import Text

from bicepforge_cli.utils import handle_error

console = Console()

_DIALECT_TITLES = {
    "resource_schema": "Resource Schema",
    "deployment_template": "Deployment Template",
    "bicep": "Bicep",
}


def validate(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="Schema, deployment template or Bicep file", exists=True)],
    checks: Annotated[bool, typer.Option("--checks", help="Also run the named pass/fail checks")] = False,
) -> None:
    """Validate a resource schema, deployment template or Bicep file."""
    try:
        doc = classify_text(file.read_text())
        result = validate_classified(doc)
        check_results = run_checks(doc.text, doc.kind.value) if checks else []

        if ctx.obj and ctx.obj.get("json"):
            payload = result.to_dict()
            if checks:
                payload["checks"] = [c.model_dump() for c in check_results]
            print(json.dumps(payload))
            if not result.is_valid:
                raise typer.Exit(1)
            return

        title = _DIALECT_TITLES.get(result.dialect, result.dialect)
        if result.is_valid:
            console.print(f"[green]{title} is valid[/green]")
        else:
            console.print(f"[red]{title} has {len(result.errors)} error(s)[/red]")

        for error in result.errors:
            console.print(f"  [red]error[/red]   {error}")
        for warning in result.warnings:
            console.print(f"  [yellow]warning[/yellow] {warning}")
        for info in result.info:
            console.print(f"  [dim]info    {info}[/dim]")

        for check in check_results:
            line = Text()
            line.append_text(Text("[PASS]", style="green") if check.passed else Text("[FAIL]", style="red"))
            line.append(f" {check.name}")
            if check.detail:
                line.append(f" - {check.detail}", style="dim")
            console.print(line)

        if not result.is_valid:
            raise typer.Exit(1)
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
