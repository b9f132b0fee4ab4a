"""Bicep generation from a resource schema or a single deployment template entry.

Sections are built in a fixed order (parameters, variables, resource blocks,
outputs) from the resource type's registry entry and profile, then frozen into
a GeneratedDocument. Output is deterministic apart from the header timestamp,
which comes from the context clock.
"""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Any

from bicepforge.context import GenerationContext
from bicepforge.declarations import Call, Expr, GeneratedDocument, Output, Param, Resource, Variable, ref
from bicepforge.models import GenerationConfig
from bicepforge.profiles import Target, auxiliary_resources, get_profile, symbol_for
from bicepforge.registry import DEFAULT_RESOURCE_TYPE, schema_resource_type

ENVIRONMENTS = ("dev", "test", "staging", "prod")
TOOL_NAME = "bicepforge"

_API_VERSION = re.compile(r"^\d{4}-\d{2}-\d{2}(-preview)?$")

_JSON_TYPES = {bool: "boolean", int: "integer", float: "number", list: "array", dict: "object"}


def common_parameters(target: Target) -> list[Param]:
    """resourceName, location, environment and tags, minus what the type cannot take."""
    config = target.config
    params = [Param("resourceName", description="The name of the resource", min_length=1, max_length=80)]
    if target.supports_location:
        location_default: Any = config.location if config.location else Expr("resourceGroup().location")
        params.append(Param("location", description="The location for the resource", default=location_default))
    environments = ENVIRONMENTS if config.environment in ENVIRONMENTS else ENVIRONMENTS + (config.environment,)
    params.append(
        Param(
            "environment",
            description="Environment name (e.g., dev, test, prod)",
            default=config.environment,
            allowed=environments,
        )
    )
    if target.supports_location:
        params.append(
            Param(
                "tags",
                "object",
                "Resource tags",
                default={
                    "Environment": Expr("environment"),
                    "CreatedBy": TOOL_NAME,
                    "CreatedDate": Expr("utcNow('yyyy-MM-dd')"),
                },
            )
        )
    return params


def common_variables(target: Target) -> list[Variable]:
    variables = [Variable("resourceNameFormatted", Expr("toLower(replace(resourceName, ' ', '-'))"))]
    if target.supports_location:
        variables.append(
            Variable(
                "commonTags",
                Call("union", (Expr("tags"), {"ResourceType": target.resource_type, "DeployedBy": TOOL_NAME})),
            )
        )
    return variables


def common_outputs(target: Target) -> list[Output]:
    s = target.symbol
    outputs = [
        Output("resourceId", "string", ref(s, "id"), "Resource ID of the created resource"),
        Output("resourceName", "string", ref(s, "name"), "Name of the created resource"),
    ]
    if target.supports_location:
        outputs.append(Output("location", "string", ref(s, "location"), "Location of the created resource"))
    return outputs


def _build(
    schema: dict[str, Any],
    resource_type: str,
    api_version: str,
    config: GenerationConfig,
    context: GenerationContext,
    source_label: str,
) -> GeneratedDocument:
    registry = context.registry
    info = registry.lookup(resource_type, config.target_scope)
    target = Target(
        resource_type=resource_type,
        symbol=symbol_for(resource_type),
        api_version=api_version,
        info=info,
        config=config,
        registry=registry,
        schema=schema,
    )
    profile = get_profile(info.profile)

    parameters = common_parameters(target)
    declared = {p.name for p in parameters}
    target = replace(target, common_names=frozenset(declared))
    parameters += profile.parameters(target, declared)

    variables = common_variables(target) + profile.variables(target)

    resources: list[Resource] = auxiliary_resources(target)
    resources.append(
        Resource(
            symbol=target.symbol,
            resource_type=resource_type,
            api_version=api_version,
            body=profile.resource_body(target),
            comments=(f"{info.display_name} resource",),
        )
    )

    outputs: list[Output] = []
    if config.include_outputs:
        outputs = common_outputs(target) + profile.outputs(target)

    return GeneratedDocument(
        header=(
            f"Generated Bicep template from {source_label}",
            f"Resource Type: {resource_type}",
            f"Generated on: {context.timestamp()}",
        ),
        target_scope=config.target_scope,
        metadata=(
            ("description", f"Bicep template for {resource_type}"),
            ("author", TOOL_NAME),
            ("version", "1.0.0"),
        ),
        parameters=tuple(parameters),
        variables=tuple(variables),
        resources=tuple(resources),
        outputs=tuple(outputs),
        resource_type=resource_type,
        symbol=target.symbol,
        api_version=api_version,
    )


def generate(
    schema: dict[str, Any],
    config: GenerationConfig | None = None,
    context: GenerationContext | None = None,
) -> GeneratedDocument:
    """Generate a Bicep document from a JSON Schema resource definition."""
    config = config or GenerationConfig()
    context = context or GenerationContext()
    schema = schema if isinstance(schema, dict) else {}
    resource_type = schema_resource_type(schema) or DEFAULT_RESOURCE_TYPE
    api_version = context.registry.select_api_version(schema, resource_type)
    return _build(schema, resource_type, api_version, config, context, "JSON Schema")


def _schema_for_value(value: Any) -> dict[str, Any]:
    prop: dict[str, Any] = {"type": _JSON_TYPES.get(type(value), "string")}
    # ARM expressions such as "[parameters('x')]" cannot become Bicep defaults.
    if not (isinstance(value, str) and value.startswith("[")):
        prop["default"] = value
    return prop


def entry_schema(entry: dict[str, Any]) -> dict[str, Any]:
    """Describe a deployment template resource entry as a resource schema.

    Concrete values in the entry become parameter defaults.
    """
    props: dict[str, Any] = {}
    if entry.get("type"):
        props["type"] = {"type": "string", "const": entry["type"]}
    if entry.get("apiVersion"):
        props["apiVersion"] = {"type": "string", "enum": [str(entry["apiVersion"])]}
    for key in ("sku", "kind", "identity", "zones", "plan"):
        if key in entry:
            props[key] = _schema_for_value(entry[key])
    inner = entry.get("properties")
    if isinstance(inner, dict) and inner:
        props["properties"] = {
            "type": "object",
            "properties": {k: _schema_for_value(v) for k, v in inner.items()},
        }
    return {"type": "object", "properties": props}


def generate_from_template_entry(
    entry: dict[str, Any],
    config: GenerationConfig | None = None,
    context: GenerationContext | None = None,
) -> GeneratedDocument:
    """Generate a Bicep document from one ``resources[]`` entry of a deployment template."""
    config = config or GenerationConfig()
    context = context or GenerationContext()
    entry = entry if isinstance(entry, dict) else {}
    resource_type = str(entry.get("type") or DEFAULT_RESOURCE_TYPE)
    schema = entry_schema(entry)
    literal_version = str(entry.get("apiVersion") or "")
    if _API_VERSION.match(literal_version):
        api_version = literal_version
    else:
        api_version = context.registry.select_api_version(None, resource_type)
    return _build(schema, resource_type, api_version, config, context, "deployment template resource")
