from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
import yaml
from bicepforge.models import GenerationConfig
from pydantic import ValidationError
from rich.console import Console

_err_console = Console(stderr=True)


def handle_error(ctx: typer.Context, e: Exception) -> None:
    """Print a clean error message and exit 1."""
    verbose = ctx.obj.get("verbose", False) if ctx.obj else False
    json_mode = ctx.obj.get("json", False) if ctx.obj else False

    if isinstance(e, FileNotFoundError):
        msg = f"File not found: {e}"
    elif isinstance(e, yaml.YAMLError):
        msg = f"Invalid YAML: {e}"
    elif isinstance(e, ValidationError):
        msg = f"Invalid configuration: {e}"
    elif isinstance(e, ValueError):
        msg = str(e)
    else:
        msg = f"Error: {e}"

    if json_mode:
        print(json.dumps({"error": msg}))
    else:
        _err_console.print(f"[red]Error:[/red] {msg}")

    if verbose:
        _err_console.print_exception()

    raise typer.Exit(1)


def read_mapping(path: Path) -> dict[str, Any]:
    """Load a JSON or YAML file that must contain a mapping."""
    data = yaml.safe_load(path.read_text())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def load_config(path: Path | None = None, **overrides: Any) -> GenerationConfig:
    """Build a GenerationConfig from an optional config file plus CLI overrides.

    Overrides use field names; ``None`` means the option was not given.
    """
    base = GenerationConfig.from_mapping(read_mapping(path) if path else None)
    data = base.model_dump()
    data.update({k: v for k, v in overrides.items() if v is not None})
    return GenerationConfig.model_validate(data)


def write_or_print(console: Console, content: str, output: Path | None, lexer: str = "text") -> None:
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(content)
        console.print(f"[green]Written to {output}[/green]")
        return
    from rich.syntax import Syntax

    console.print(Syntax(content, lexer, theme="monokai", word_wrap=True))
