"""Structured Bicep declarations.

Generators build these immutable pieces section by section; the text is
produced once, at the end, by ``bicepforge.exporter.bicep``. Values inside a
declaration are plain Python data (str, bool, int, list, dict, None) or one of
the expression types below. A plain ``str`` renders as a quoted Bicep string
with ``${`` escaped; ``Interp`` keeps ``${...}`` interpolation live; ``Expr`` is
emitted verbatim (references, function calls, operators).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Expr:
    """A raw Bicep expression, emitted verbatim."""

    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Interp:
    """A quoted Bicep string whose ``${...}`` segments are interpolated."""

    text: str


@dataclass(frozen=True)
class Ternary:
    """``condition ? when_true : when_false``"""

    condition: str
    when_true: Any
    when_false: Any = None


@dataclass(frozen=True)
class Call:
    """``name(arg, ...)``; arguments render like any other value."""

    name: str
    args: tuple[Any, ...] = ()


@dataclass(frozen=True)
class ForExpr:
    """``[for item in source: body]``"""

    item: str
    source: str
    body: Any


def ref(symbol: str, *path: str) -> Expr:
    """Reference a symbol, optionally dotted into its properties."""
    return Expr(".".join((symbol,) + path))


@dataclass(frozen=True)
class Param:
    name: str
    type: str = "string"
    description: str = ""
    default: Any = None
    allowed: tuple[Any, ...] | None = None
    min_length: int | None = None
    max_length: int | None = None
    min_value: int | float | None = None
    max_value: int | float | None = None
    secure: bool = False
    comments: tuple[str, ...] = ()


@dataclass(frozen=True)
class Variable:
    name: str
    value: Any
    description: str = ""


@dataclass(frozen=True)
class Resource:
    """A ``resource`` block. ``body`` holds the top-level properties in order."""

    symbol: str
    resource_type: str
    api_version: str
    body: dict[str, Any] = field(default_factory=dict)
    depends_on: tuple[str, ...] = ()
    existing: bool = False
    comments: tuple[str, ...] = ()

    @property
    def type_reference(self) -> str:
        return f"{self.resource_type}@{self.api_version}"


@dataclass(frozen=True)
class Module:
    symbol: str
    path: str
    name: Any
    params: dict[str, Any] = field(default_factory=dict)
    depends_on: tuple[str, ...] = ()
    comments: tuple[str, ...] = ()


@dataclass(frozen=True)
class Output:
    name: str
    type: str
    value: Any
    description: str = ""


@dataclass(frozen=True)
class GeneratedDocument:
    """A complete Bicep document. Never mutated after it is built."""

    header: tuple[str, ...] = ()
    target_scope: str = "resourceGroup"
    metadata: tuple[tuple[str, str], ...] = ()
    parameters: tuple[Param, ...] = ()
    variables: tuple[Variable, ...] = ()
    resources: tuple[Resource | Module, ...] = ()
    outputs: tuple[Output, ...] = ()
    resource_type: str = ""
    symbol: str = ""
    api_version: str = ""

    def render(self) -> str:
        from bicepforge.exporter.bicep import render_document

        return render_document(self)

    def parameter_names(self) -> list[str]:
        return [p.name for p in self.parameters]

    def output_names(self) -> list[str]:
        return [o.name for o in self.outputs]

    def find_resource(self, symbol: str) -> Resource | Module | None:
        for block in self.resources:
            if block.symbol == symbol:
                return block
        return None
