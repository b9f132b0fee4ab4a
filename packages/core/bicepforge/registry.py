"""Resource type registry. Loads YAML category definitions for Azure resource types.

Answers the questions the generators ask about a resource type: does it accept
``location`` and ``tags`` at a given scope, which API version should be
emitted, which auxiliary resources accompany it and which generation profile
renders it. Registry data lives in data/registry/*.yaml; one file per
provider category.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

log = logging.getLogger(__name__)

_REGISTRY_DIR = Path(__file__).parent / "data" / "registry"

DEFAULT_RESOURCE_TYPE = "Microsoft.Resources/deployments"
FALLBACK_API_VERSION = "2022-01-01"
DEFAULT_SCOPE = "resourceGroup"


class ResourceTypeInfo:
    """A single resource type definition."""

    __slots__ = (
        "resource_type",
        "display_name",
        "category",
        "supports_location_and_tags",
        "excluded_scopes",
        "preferred_api_version",
        "api_versions",
        "auxiliary_resources",
        "profile",
        "known",
    )

    def __init__(
        self,
        resource_type: str,
        display_name: str = "",
        category: str = "",
        supports_location_and_tags: bool = True,
        excluded_scopes: list[str] | None = None,
        preferred_api_version: str | None = None,
        api_versions: list[str] | None = None,
        auxiliary_resources: list[str] | None = None,
        profile: str = "generic",
        known: bool = True,
    ):
        self.resource_type = resource_type
        self.display_name = display_name or resource_type.rsplit("/", 1)[-1]
        self.category = category
        self.supports_location_and_tags = supports_location_and_tags
        self.excluded_scopes = list(excluded_scopes or [])
        self.preferred_api_version = preferred_api_version
        self.api_versions = list(api_versions or [])
        self.auxiliary_resources = list(auxiliary_resources or [])
        self.profile = profile or "generic"
        self.known = known

    def supports_location_at(self, scope: str = DEFAULT_SCOPE) -> bool:
        if not self.supports_location_and_tags:
            return False
        return scope not in self.excluded_scopes

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_type": self.resource_type,
            "display_name": self.display_name,
            "category": self.category,
            "supports_location_and_tags": self.supports_location_and_tags,
            "excluded_scopes": list(self.excluded_scopes),
            "preferred_api_version": self.preferred_api_version,
            "api_versions": list(self.api_versions),
            "auxiliary_resources": list(self.auxiliary_resources),
            "profile": self.profile,
            "known": self.known,
        }


class ResourceTypeRegistry:
    """Registry of Azure resource types loaded from YAML category files.

    Resource type ids are matched case-insensitively, as Azure does. Lookup
    never fails: unknown ids get a default entry with the generic profile.
    Read-only after load.
    """

    def __init__(self, registry_dir: str | Path | None = None):
        if registry_dir is None:
            registry_dir = os.environ.get("BICEPFORGE_REGISTRY_DIR") or _REGISTRY_DIR
        self._dir = Path(registry_dir)
        # lowercased resource type -> ResourceTypeInfo
        self._types: dict[str, ResourceTypeInfo] = {}
        self._by_category: dict[str, list[ResourceTypeInfo]] = {}
        self._load()

    def _load(self) -> None:
        for yaml_path in sorted(self._dir.glob("*.yaml")):
            data = yaml.safe_load(yaml_path.read_text()) or {}
            category = data.get("category", yaml_path.stem)
            for resource_type, entry in (data.get("resource_types") or {}).items():
                entry = entry or {}
                preferred = entry.get("preferred_api_version")
                info = ResourceTypeInfo(
                    resource_type=resource_type,
                    display_name=entry.get("name", ""),
                    category=category,
                    supports_location_and_tags=entry.get("supports_location_and_tags", True),
                    excluded_scopes=entry.get("excluded_scopes"),
                    preferred_api_version=str(preferred) if preferred else None,
                    api_versions=[str(v) for v in entry.get("api_versions") or []],
                    auxiliary_resources=entry.get("auxiliary_resources"),
                    profile=entry.get("profile", "generic"),
                )
                self._types[resource_type.lower()] = info
                self._by_category.setdefault(category, []).append(info)
        log.debug("Loaded %d resource types from %s", len(self._types), self._dir)

    def get(self, resource_type: str) -> ResourceTypeInfo | None:
        """Return the registered definition or None if the type is unknown."""
        return self._types.get((resource_type or "").lower())

    def lookup(self, resource_type: str, scope: str = DEFAULT_SCOPE) -> ResourceTypeInfo:
        """Return the entry for a type, resolved for the deployment scope.

        Unknown types get a default entry that supports location and tags,
        has no auxiliaries and renders with the generic profile.
        """
        info = self.get(resource_type)
        if info is None:
            return ResourceTypeInfo(resource_type=resource_type, known=False)
        if info.supports_location_at(scope) == info.supports_location_and_tags:
            return info
        return ResourceTypeInfo(
            resource_type=info.resource_type,
            display_name=info.display_name,
            category=info.category,
            supports_location_and_tags=False,
            excluded_scopes=info.excluded_scopes,
            preferred_api_version=info.preferred_api_version,
            api_versions=info.api_versions,
            auxiliary_resources=info.auxiliary_resources,
            profile=info.profile,
        )

    def is_known(self, resource_type: str) -> bool:
        return self.get(resource_type) is not None

    def known_api_versions(self, resource_type: str) -> list[str]:
        info = self.get(resource_type)
        return list(info.api_versions) if info else []

    def select_api_version(self, schema: dict[str, Any] | None, resource_type: str) -> str:
        """Pick the API version to emit for a resource type.

        Order: the registry's preferred version, then the newest non-preview
        candidate declared by the schema, then the newest candidate of any
        kind, then a fixed fallback.
        """
        info = self.get(resource_type)
        if info and info.preferred_api_version:
            return info.preferred_api_version

        candidates = schema_api_versions(schema)
        stable = sorted(v for v in candidates if "preview" not in v)
        if stable:
            return stable[-1]
        if candidates:
            return sorted(candidates)[-1]
        return FALLBACK_API_VERSION

    def list_types(self, category: str | None = None) -> list[ResourceTypeInfo]:
        """All registered types, optionally restricted to one category."""
        if category is not None:
            return list(self._by_category.get(category, []))
        return sorted(self._types.values(), key=lambda info: info.resource_type.lower())

    def list_categories(self) -> list[str]:
        return sorted(self._by_category.keys())

    def similar_types(self, resource_type: str, limit: int = 3) -> list[str]:
        """Suggest registered types whose kind segment overlaps the given one."""
        kind = (resource_type or "").rsplit("/", 1)[-1].lower()
        if not kind:
            return []
        matches = []
        for info in self.list_types():
            known_kind = info.resource_type.rsplit("/", 1)[-1].lower()
            if kind in known_kind or known_kind in kind:
                matches.append(info.resource_type)
        return matches[:limit]

    def stats(self) -> dict[str, Any]:
        """Summary counts for the loaded registry."""
        return {
            "total_types": len(self._types),
            "categories": len(self._by_category),
            "with_profile": sum(1 for info in self._types.values() if info.profile != "generic"),
            "api_versions": sum(len(info.api_versions) for info in self._types.values()),
        }


def schema_api_versions(schema: dict[str, Any] | None) -> list[str]:
    """Candidate API versions declared by a resource schema (``enum`` or ``const``)."""
    if not isinstance(schema, dict):
        return []
    props = schema.get("properties")
    if not isinstance(props, dict):
        return []
    api = props.get("apiVersion")
    if not isinstance(api, dict):
        return []
    if isinstance(api.get("enum"), list):
        return [str(v) for v in api["enum"]]
    if api.get("const"):
        return [str(api["const"])]
    return []


def schema_resource_type(schema: dict[str, Any] | None) -> str | None:
    """Resource type id declared by ``properties.type.const`` or ``enum[0]``."""
    if not isinstance(schema, dict):
        return None
    props = schema.get("properties")
    if not isinstance(props, dict):
        return None
    type_prop = props.get("type")
    if not isinstance(type_prop, dict):
        return None
    if type_prop.get("const"):
        return str(type_prop["const"])
    enum = type_prop.get("enum")
    if isinstance(enum, list) and enum:
        return str(enum[0])
    return None


# Module-level singleton, loaded lazily on first access
_registry: ResourceTypeRegistry | None = None


def get_registry() -> ResourceTypeRegistry:
    """Return the shared registry singleton, loading from disk if needed."""
    global _registry
    if _registry is None:
        _registry = ResourceTypeRegistry()
    return _registry


def reload_registry(registry_dir: str | Path | None = None) -> ResourceTypeRegistry:
    """Force-reload the registry (useful in tests or after YAML changes)."""
    global _registry
    _registry = ResourceTypeRegistry(registry_dir)
    return _registry
