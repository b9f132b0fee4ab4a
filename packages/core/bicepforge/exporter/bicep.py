"""Bicep text renderer for GeneratedDocument."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from bicepforge.declarations import Call, Expr, ForExpr, Interp, Module, Output, Param, Resource, Ternary, Variable

if TYPE_CHECKING:
    from bicepforge.declarations import GeneratedDocument

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_INDENT = "  "

_SECTION_BANNERS = (
    ("parameters", "// === PARAMETERS ==="),
    ("variables", "// === VARIABLES ==="),
    ("resources", "// === RESOURCES ==="),
    ("outputs", "// === OUTPUTS ==="),
)


def bicep_string(value: str, interpolate: bool = False) -> str:
    """Quote a string for Bicep. Unless ``interpolate`` is set, ``${`` stays literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    if not interpolate:
        escaped = escaped.replace("${", "\\${")
    return f"'{escaped}'"


def _key(name: str) -> str:
    return name if _IDENTIFIER.match(name) else bicep_string(name)


def render_value(value: Any, indent: int = 0) -> str:
    """Render a declaration value as Bicep. Nested lines are indented from ``indent``."""
    pad = _INDENT * indent
    if isinstance(value, Expr):
        return value.text
    if isinstance(value, Interp):
        return bicep_string(value.text, interpolate=True)
    if isinstance(value, Ternary):
        return (
            f"{value.condition} ? {render_value(value.when_true, indent)} : {render_value(value.when_false, indent)}"
        )
    if isinstance(value, Call):
        return f"{value.name}(" + ", ".join(render_value(arg, indent) for arg in value.args) + ")"
    if isinstance(value, ForExpr):
        return f"[for {value.item} in {value.source}: {render_value(value.body, indent)}]"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return bicep_string(value)
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        lines = ["["]
        lines += [f"{pad}{_INDENT}{render_value(item, indent + 1)}" for item in value]
        lines.append(f"{pad}]")
        return "\n".join(lines)
    if isinstance(value, dict):
        if not value:
            return "{}"
        lines = ["{"]
        lines += [f"{pad}{_INDENT}{_key(str(k))}: {render_value(v, indent + 1)}" for k, v in value.items()]
        lines.append(f"{pad}}}")
        return "\n".join(lines)
    raise TypeError(f"Cannot render {type(value).__name__} as Bicep")


def _inline_list(values: tuple[Any, ...]) -> str:
    return "[" + ", ".join(render_value(v) for v in values) + "]"


def render_param(p: Param) -> str:
    lines = [f"// {c}" for c in p.comments]
    lines.append(f"@description({bicep_string(p.description or f'Parameter for {p.name}')})")
    if p.secure:
        lines.append("@secure()")
    if p.min_length is not None:
        lines.append(f"@minLength({p.min_length})")
    if p.max_length is not None:
        lines.append(f"@maxLength({p.max_length})")
    if p.min_value is not None:
        lines.append(f"@minValue({p.min_value})")
    if p.max_value is not None:
        lines.append(f"@maxValue({p.max_value})")
    if p.allowed:
        lines.append(f"@allowed({_inline_list(p.allowed)})")
    decl = f"param {p.name} {p.type}"
    if p.default is not None:
        decl += f" = {render_value(p.default)}"
    lines.append(decl)
    return "\n".join(lines)


def render_variable(v: Variable) -> str:
    lines = []
    if v.description:
        lines.append(f"@description({bicep_string(v.description)})")
    lines.append(f"var {v.name} = {render_value(v.value)}")
    return "\n".join(lines)


def _with_depends_on(body: dict[str, Any], depends_on: tuple[str, ...]) -> dict[str, Any]:
    if not depends_on:
        return body
    merged = dict(body)
    merged["dependsOn"] = [Expr(symbol) for symbol in depends_on]
    return merged


def render_resource(r: Resource) -> str:
    lines = [f"// {c}" for c in r.comments]
    head = f"resource {r.symbol} {bicep_string(r.type_reference)}"
    if r.existing:
        head += " existing"
    head += " ="
    lines.append(f"{head} {render_value(_with_depends_on(r.body, r.depends_on))}")
    return "\n".join(lines)


def render_module(m: Module) -> str:
    lines = [f"// {c}" for c in m.comments]
    body: dict[str, Any] = {"name": m.name}
    if m.params:
        body["params"] = m.params
    lines.append(f"module {m.symbol} {bicep_string(m.path)} = {render_value(_with_depends_on(body, m.depends_on))}")
    return "\n".join(lines)


def render_output(o: Output) -> str:
    lines = []
    if o.description:
        lines.append(f"@description({bicep_string(o.description)})")
    lines.append(f"output {o.name} {o.type} = {render_value(o.value)}")
    return "\n".join(lines)


def _render_block(block: Any) -> str:
    if isinstance(block, Param):
        return render_param(block)
    if isinstance(block, Variable):
        return render_variable(block)
    if isinstance(block, Resource):
        return render_resource(block)
    if isinstance(block, Module):
        return render_module(block)
    if isinstance(block, Output):
        return render_output(block)
    raise TypeError(f"Unknown declaration: {type(block).__name__}")


def render_document(doc: GeneratedDocument) -> str:
    """Render the document: header, scope, metadata, then each non-empty section in order."""
    parts: list[str] = []

    parts.extend(f"// {line}" if line else "//" for line in doc.header)
    if doc.header:
        parts.append("")

    parts.append(f"targetScope = {bicep_string(doc.target_scope)}")
    parts.append("")

    if doc.metadata:
        parts.extend(f"metadata {key} = {bicep_string(value)}" for key, value in doc.metadata)
        parts.append("")

    for section, banner in _SECTION_BANNERS:
        blocks = getattr(doc, section)
        if not blocks:
            continue
        parts.append(banner)
        parts.append("")
        for block in blocks:
            parts.append(_render_block(block))
            parts.append("")

    return "\n".join(parts).rstrip("\n") + "\n"
