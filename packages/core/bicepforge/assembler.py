"""Multi-resource assembly: several catalog resources in one Bicep deployment.

Schemas are loaded one at a time through the context's schema source and
checked against the metadata provider. A resource whose schema cannot be
loaded is skipped with a warning; the rest of the batch carries on.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from bicepforge.context import GenerationContext
from bicepforge.declarations import Expr, GeneratedDocument, Interp, Module, Output, Param, Resource, Variable, ref
from bicepforge.errors import SchemaLoadError, UsageError
from bicepforge.exporter.parameters import parameters_file
from bicepforge.metadata import check_resource_type
from bicepforge.models import GenerationConfig, ResourceTypeCheck
from bicepforge.profiles import bind_parameters, derive_parameters, get_profile
from bicepforge.registry import DEFAULT_RESOURCE_TYPE, ResourceTypeInfo, schema_resource_type

log = logging.getLogger(__name__)

_CATALOG_PATH = Path(__file__).parent / "data" / "catalog.yaml"
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")

TOOL_NAME = "bicepforge"

_cached_catalog: dict[str, CatalogEntry] | None = None


@dataclass(frozen=True)
class CatalogEntry:
    id: str
    name: str
    schema: str
    depends_on: tuple[str, ...] = ()


def load_catalog(path: str | Path | None = None) -> dict[str, CatalogEntry]:
    """Read the assembler catalog; the bundled one is cached after the first read."""
    global _cached_catalog
    if path is None and _cached_catalog is not None:
        return _cached_catalog

    with open(path or _CATALOG_PATH) as f:
        data = yaml.safe_load(f) or {}
    catalog = {
        resource_id: CatalogEntry(
            id=resource_id,
            name=str(entry.get("name", resource_id)),
            schema=str(entry.get("schema", resource_id)),
            depends_on=tuple(entry.get("depends_on") or ()),
        )
        for resource_id, entry in (data.get("resources") or {}).items()
    }
    if path is None:
        _cached_catalog = catalog
    return catalog


def resource_symbol(resource_id: str) -> str:
    return _NON_ALNUM.sub("", resource_id)


@dataclass
class AssemblyTarget:
    """One selected resource whose schema loaded."""

    entry: CatalogEntry
    schema: dict[str, Any]
    resource_type: str
    api_version: str
    info: ResourceTypeInfo
    check: ResourceTypeCheck

    @property
    def symbol(self) -> str:
        return resource_symbol(self.entry.id)


@dataclass
class AssemblyResult:
    main: GeneratedDocument
    modules: dict[str, GeneratedDocument] = field(default_factory=dict)
    parameters: dict[str, Any] | None = None
    warnings: list[str] = field(default_factory=list)
    checks: dict[str, ResourceTypeCheck] = field(default_factory=dict)
    resources: list[str] = field(default_factory=list)
    resource_names: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return self.main.render()

    def to_dict(self) -> dict[str, Any]:
        return {
            "bicep": self.text,
            "modules": {rid: doc.render() for rid, doc in self.modules.items()},
            "parameters": self.parameters,
            "warnings": list(self.warnings),
            "checks": {rid: check.to_dict() for rid, check in self.checks.items()},
            "resources": list(self.resources),
            "skipped": list(self.skipped),
        }


def _common_parameters(config: GenerationConfig) -> list[Param]:
    location: Any = config.location if config.location else Expr("resourceGroup().location")
    return [
        Param("location", description="The location for all resources", default=location),
        Param("environment", description="Environment name (e.g., dev, test, prod)", default=config.environment),
        Param("resourcePrefix", description="Common resource prefix", default=config.resource_prefix),
    ]


def _module_parameters() -> list[Param]:
    return [
        Param("location", description="The location for the resource"),
        Param("environment", description="Environment name"),
        Param("resourcePrefix", description="Resource prefix"),
    ]


def _kind(schema: dict[str, Any]) -> str | None:
    kind = (schema.get("properties") or {}).get("kind")
    if not isinstance(kind, dict):
        return None
    value = kind.get("const") or kind.get("default")
    return str(value) if value else None


def _load_targets(
    selected_ids: list[str],
    catalog: dict[str, CatalogEntry],
    context: GenerationContext,
    config: GenerationConfig,
    result: AssemblyResult,
) -> list[AssemblyTarget]:
    registry = context.registry
    targets: list[AssemblyTarget] = []
    seen: set[str] = set()
    for resource_id in selected_ids:
        if resource_id in seen:
            continue
        seen.add(resource_id)
        entry = catalog.get(resource_id)
        if entry is None:
            result.warnings.append(f"{resource_id}: Unknown resource")
            result.skipped.append(resource_id)
            continue

        try:
            schema = context.schema_source.load(entry.schema)
        except SchemaLoadError as e:
            log.warning("Failed to load schema for %s: %s", entry.name, e)
            result.warnings.append(f"{entry.name}: Failed to load schema")
            result.skipped.append(resource_id)
            continue
        schema = copy.deepcopy(schema)

        resource_type = schema_resource_type(schema) or DEFAULT_RESOURCE_TYPE
        check = check_resource_type(resource_type, schema, context.metadata_provider, registry)
        result.checks[resource_id] = check
        if not check.resource_type_valid:
            result.warnings.append(f"{entry.name}: Resource type may not be valid")

        api_version = registry.select_api_version(schema, resource_type)
        invalid = check.invalid_api_versions
        if check.schema_api_versions and invalid:
            result.warnings.append(f"{entry.name}: API versions {', '.join(invalid)} may be invalid")
            if check.suggested_api_version:
                api_version = check.suggested_api_version
                api_prop = schema.get("properties", {}).get("apiVersion")
                if isinstance(api_prop, dict) and "enum" in api_prop:
                    api_prop["enum"] = [api_version]
                result.warnings.append(f"{entry.name}: Auto-corrected to use API version {api_version}")

        targets.append(
            AssemblyTarget(
                entry=entry,
                schema=schema,
                resource_type=resource_type,
                api_version=api_version,
                info=registry.lookup(resource_type, config.target_scope),
                check=check,
            )
        )
        result.resources.append(resource_id)
        result.resource_names.append(entry.name)
    return targets


def _resource_properties(
    target: AssemblyTarget,
    overrides: dict[str, Any] | None,
    config: GenerationConfig,
    loaded: set[str],
    declared: set[str],
    module_mode: bool,
) -> tuple[dict[str, Any], list[Param]]:
    """Body fragment for one resource plus any parameters it introduces."""
    if overrides:
        return {"properties": copy.deepcopy(overrides)}, []

    if target.info.profile != "generic":
        body = get_profile(target.info.profile).default_properties(config)
        kind = _kind(target.schema)
        if kind and "kind" not in body:
            body = {"kind": kind, **body}
        if not module_mode and target.resource_type.lower() == "microsoft.web/sites" and "appplan" in loaded:
            body["properties"] = {"serverFarmId": ref(resource_symbol("appplan"), "id"), **body.get("properties", {})}
        return body, []

    if not config.include_parameters:
        return {"properties": {}}, []

    derived = derive_parameters(target.schema, declared, prefix=f"{target.entry.id}_")
    if module_mode:
        # Module parameters are not passed from main, so each needs its own default.
        derived = [(prop, param) for prop, param in derived if param.default is not None]
    return bind_parameters(derived), [param for _, param in derived]


def _resource_block(
    target: AssemblyTarget,
    properties: dict[str, Any],
    depends_on: tuple[str, ...],
    with_tags: bool,
) -> Resource:
    body: dict[str, Any] = {"name": Interp(f"${{resourcePrefix}}-{target.entry.id}-${{environment}}")}
    if target.info.supports_location_and_tags:
        body["location"] = Expr("location")
        if with_tags:
            body["tags"] = Expr("commonTags")
    body.update(properties)
    return Resource(
        symbol=target.symbol,
        resource_type=target.resource_type,
        api_version=target.api_version,
        body=body,
        depends_on=depends_on,
        comments=(target.entry.name,),
    )


def _dependencies(target: AssemblyTarget, loaded: set[str], config: GenerationConfig) -> list[str]:
    if not config.include_dependencies:
        return []
    return [dep for dep in target.entry.depends_on if dep in loaded]


def _module_document(
    target: AssemblyTarget,
    overrides: dict[str, Any] | None,
    config: GenerationConfig,
    loaded: set[str],
) -> GeneratedDocument:
    params = _module_parameters()
    declared = {p.name for p in params}
    properties, extra = _resource_properties(target, overrides, config, loaded, declared, module_mode=True)
    return GeneratedDocument(
        header=(f"{target.entry.id} module",),
        target_scope=config.target_scope,
        parameters=tuple(params + extra),
        resources=(_resource_block(target, properties, (), with_tags=False),),
        outputs=(
            Output("resourceId", "string", ref(target.symbol, "id")),
            Output("resourceName", "string", ref(target.symbol, "name")),
        ),
        resource_type=target.resource_type,
        symbol=target.symbol,
        api_version=target.api_version,
    )


def assemble(
    selected_ids: list[str],
    per_resource_config: dict[str, dict[str, Any]] | None = None,
    global_config: GenerationConfig | None = None,
    context: GenerationContext | None = None,
) -> AssemblyResult:
    """Assemble the selected catalog resources into one deployment.

    Raises UsageError for an empty selection. Unknown ids and schemas that
    fail to load become warnings on the result.
    """
    if not selected_ids:
        raise UsageError("Please select at least one resource to assemble")
    config = global_config or GenerationConfig()
    context = context or GenerationContext()
    per_resource_config = per_resource_config or {}
    catalog = load_catalog()

    result = AssemblyResult(main=GeneratedDocument())
    targets = _load_targets(list(selected_ids), catalog, context, config, result)
    loaded = {t.entry.id for t in targets}
    for warning in result.warnings:
        log.warning(warning)

    parameters = _common_parameters(config)
    declared = {p.name for p in parameters}
    variables: list[Variable] = []
    blocks: list[Resource | Module] = []
    outputs: list[Output] = []

    if config.generate_modules:
        for target in targets:
            result.modules[target.entry.id] = _module_document(
                target, per_resource_config.get(target.entry.id), config, loaded
            )
            blocks.append(
                Module(
                    symbol=f"{target.entry.id}Module",
                    path=f"modules/{target.entry.id}.bicep",
                    name=f"{target.entry.id}-deployment",
                    params={
                        "location": Expr("location"),
                        "environment": Expr("environment"),
                        "resourcePrefix": Expr("resourcePrefix"),
                    },
                    depends_on=tuple(f"{dep}Module" for dep in _dependencies(target, loaded, config)),
                )
            )
            if config.include_outputs:
                module = f"{target.entry.id}Module"
                outputs.append(Output(f"{target.entry.id}Id", "string", ref(module, "outputs", "resourceId")))
                outputs.append(Output(f"{target.entry.id}Name", "string", ref(module, "outputs", "resourceName")))
    else:
        with_tags = any(t.info.supports_location_and_tags for t in targets)
        if with_tags:
            variables.append(
                Variable("commonTags", {"Environment": Expr("environment"), "DeployedBy": TOOL_NAME})
            )
        for target in targets:
            properties, extra = _resource_properties(
                target, per_resource_config.get(target.entry.id), config, loaded, declared, module_mode=False
            )
            parameters += extra
            depends_on = tuple(resource_symbol(dep) for dep in _dependencies(target, loaded, config))
            blocks.append(_resource_block(target, properties, depends_on, with_tags))
            if config.include_outputs:
                outputs.append(Output(f"{target.entry.id}Id", "string", ref(target.symbol, "id")))
                outputs.append(Output(f"{target.entry.id}Name", "string", ref(target.symbol, "name")))

    header = [
        "Multi-Resource Azure Deployment Template",
        f"Generated by {TOOL_NAME}",
        f"Resources: {', '.join(result.resource_names)}",
        f"Generated on: {context.timestamp()}",
    ]
    if result.warnings:
        header += ["", "Validation Warnings:"] + result.warnings

    result.main = GeneratedDocument(
        header=tuple(header),
        target_scope=config.target_scope,
        parameters=tuple(parameters),
        variables=tuple(variables),
        resources=tuple(blocks),
        outputs=tuple(outputs),
    )
    if config.include_parameters:
        overrides = {"location": config.location} if config.location else None
        result.parameters = parameters_file(result.main, overrides)
    return result
