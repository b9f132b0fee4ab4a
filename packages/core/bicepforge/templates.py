"""Starter documents a user can load and edit, and schema enhancement."""

from __future__ import annotations

import copy
from typing import Any

from bicepforge.profiles import DEPLOYMENT_TEMPLATE_SCHEMA
from bicepforge.registry import FALLBACK_API_VERSION, ResourceTypeRegistry, get_registry
from bicepforge.sources import DirectorySchemaSource, SchemaSource

JSON_SCHEMA_DRAFT = "http://json-schema.org/draft-07/schema#"

# Resource types with a hand-written starter in the bundled schema directory.
DEDICATED_SCHEMAS = {
    "microsoft.storage/storageaccounts": "storageAccount",
    "microsoft.compute/virtualmachines": "virtualMachine",
    "microsoft.web/sites": "webApp",
    "microsoft.keyvault/vaults": "keyVault",
}

# Short names accepted in place of a full resource type.
ALIASES = {
    "storage": "Microsoft.Storage/storageAccounts",
    "vm": "Microsoft.Compute/virtualMachines",
    "webapp": "Microsoft.Web/sites",
    "keyvault": "Microsoft.KeyVault/vaults",
}


def _generic_schema(resource_type: str, registry: ResourceTypeRegistry) -> dict[str, Any]:
    info = registry.lookup(resource_type)
    versions = registry.known_api_versions(resource_type) or [FALLBACK_API_VERSION]
    properties: dict[str, Any] = {
        "apiVersion": {"type": "string", "enum": list(versions)},
        "type": {"type": "string", "const": resource_type},
        "name": {"type": "string", "minLength": 1, "maxLength": 80},
    }
    required = ["apiVersion", "type", "name"]
    if info.supports_location_and_tags:
        properties["location"] = {"type": "string"}
        properties["tags"] = {"type": "object"}
        required.append("location")
    properties["properties"] = {"type": "object", "properties": {}}
    return {
        "$schema": JSON_SCHEMA_DRAFT,
        "type": "object",
        "title": f"{info.display_name} Schema",
        "description": f"Schema for {resource_type}",
        "properties": properties,
        "required": required,
    }


def starter_schema(
    resource_type: str,
    registry: ResourceTypeRegistry | None = None,
    source: SchemaSource | None = None,
) -> dict[str, Any]:
    """Return an editable resource schema for ``resource_type`` (or a short alias)."""
    resource_type = ALIASES.get(resource_type.lower(), resource_type)
    name = DEDICATED_SCHEMAS.get(resource_type.lower())
    if name:
        return (source or DirectorySchemaSource()).load(name)
    return _generic_schema(resource_type, registry or get_registry())


def starter_template() -> dict[str, Any]:
    """An empty deployment template."""
    return {
        "$schema": DEPLOYMENT_TEMPLATE_SCHEMA,
        "contentVersion": "1.0.0.0",
        "parameters": {},
        "variables": {},
        "resources": [],
        "outputs": {},
    }


_RESOURCE_MARKERS = ("apiVersion", "type", "name", "location")

_RESOURCE_DEFAULTS = {
    "apiVersion": {"type": "string", "description": "The API version for the resource"},
    "type": {"type": "string", "description": "The resource type"},
    "name": {"type": "string", "description": "The name of the resource"},
}


def looks_like_resource(schema: dict[str, Any]) -> bool:
    """True when a schema has resource-shaped properties or a Bicep title."""
    props = schema.get("properties")
    if not isinstance(props, dict):
        return False
    if any(props.get(name) for name in _RESOURCE_MARKERS):
        return True
    return "bicep" in str(schema.get("title") or "").lower()


def enhance_schema(schema: dict[str, Any], registry: ResourceTypeRegistry | None = None) -> dict[str, Any]:
    """Return a copy of ``schema`` with the usual resource-schema boilerplate filled in.

    Adds a draft-07 ``$schema`` when it is missing, a title taken from the
    registry display name of ``properties.type.const``, and, for resource-shaped
    schemas, the ``apiVersion``/``type``/``name`` properties and their
    ``required`` entries. Existing values are never overwritten.
    """
    enhanced = copy.deepcopy(schema)
    if not enhanced.get("$schema"):
        enhanced["$schema"] = JSON_SCHEMA_DRAFT

    props = enhanced.get("properties")
    if not enhanced.get("title") and isinstance(props, dict):
        type_prop = props.get("type")
        const = type_prop.get("const") if isinstance(type_prop, dict) else None
        info = (registry or get_registry()).get(str(const)) if const else None
        if info is not None:
            enhanced["title"] = f"{info.display_name} Schema"

    if looks_like_resource(enhanced):
        for name, default in _RESOURCE_DEFAULTS.items():
            if not props.get(name):
                props[name] = dict(default)
        required = enhanced.get("required")
        if not isinstance(required, list):
            required = enhanced["required"] = []
        required.extend([name for name in _RESOURCE_DEFAULTS if name not in required])
    return enhanced
