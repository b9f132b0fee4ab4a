"""Companion ``*.parameters.json`` files for generated documents."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from bicepforge.declarations import GeneratedDocument

PARAMETERS_SCHEMA = "https://schema.management.azure.com/schemas/2019-04-01/deploymentParameters.json#"


def _is_literal(value: Any) -> bool:
    """True when a value is plain JSON data with no Bicep expressions inside."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return True
    if isinstance(value, (list, tuple)):
        return all(_is_literal(v) for v in value)
    if isinstance(value, dict):
        return all(_is_literal(v) for v in value.values())
    return False


def parameters_file(doc: GeneratedDocument, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build a deployment parameters document for ``doc``.

    Every non-secure parameter with a literal default is listed with that
    default; ``overrides`` replaces values for parameters the document
    declares and is ignored for anything else.
    """
    overrides = overrides or {}
    values: dict[str, Any] = {}
    for param in doc.parameters:
        if param.secure:
            continue
        if param.name in overrides:
            values[param.name] = {"value": overrides[param.name]}
        elif param.default is not None and _is_literal(param.default):
            default = list(param.default) if isinstance(param.default, tuple) else param.default
            values[param.name] = {"value": default}
    return {"$schema": PARAMETERS_SCHEMA, "contentVersion": "1.0.0.0", "parameters": values}


def render(doc: GeneratedDocument, overrides: dict[str, Any] | None = None) -> str:
    return json.dumps(parameters_file(doc, overrides), indent=2) + "\n"
