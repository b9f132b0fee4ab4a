"""Resource type metadata: offline registry provider, cache, and type checks.

``check_resource_type`` is the one entry point callers use. It asks a live
provider when one is configured and authenticated, falls back to the offline
registry when it is not (or when the live query fails), and records which
source answered.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from bicepforge.adapters import MetadataProvider
from bicepforge.adapters.azure import AzureResourceGraphProvider
from bicepforge.errors import MetadataProviderError
from bicepforge.models import ResourceTypeCheck
from bicepforge.registry import get_registry, schema_api_versions

if TYPE_CHECKING:
    from bicepforge.registry import ResourceTypeRegistry

log = logging.getLogger(__name__)

CACHE_TTL = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StaticMetadataProvider(MetadataProvider):
    """Offline provider backed by the bundled resource type registry."""

    source = "offline"

    def __init__(self, registry: ResourceTypeRegistry | None = None):
        self._registry = registry or get_registry()

    def is_authenticated(self) -> bool:
        return True

    def get_resource_types(self) -> list[str]:
        return [info.resource_type for info in self._registry.list_types()]

    def get_api_versions(self, resource_type: str) -> list[str]:
        return self._registry.known_api_versions(resource_type)

    def validate_resource_type(self, resource_type: str) -> bool:
        return self._registry.is_known(resource_type)


class ResourceTypeCache:
    """JSON-file cache of the live resource type listing.

    Entries older than ``ttl`` are stale; a stale cache is still readable so a
    caller can decide to refresh.
    """

    def __init__(
        self,
        path: str | Path,
        clock: Callable[[], datetime] = _utcnow,
        ttl: timedelta = CACHE_TTL,
    ):
        self.path = Path(path)
        self._clock = clock
        self._ttl = ttl

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            log.warning("Ignoring unreadable resource type cache %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    @property
    def last_update(self) -> datetime | None:
        stamp = self._read().get("last_update")
        if not stamp:
            return None
        try:
            return datetime.fromisoformat(stamp)
        except ValueError:
            return None

    def is_stale(self) -> bool:
        last = self.last_update
        if last is None:
            return True
        return self._clock() - last > self._ttl

    def resource_types(self) -> list[str]:
        types = self._read().get("resource_types", [])
        return [str(t) for t in types] if isinstance(types, list) else []

    def store(self, resource_types: list[str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"last_update": self._clock().isoformat(), "resource_types": list(resource_types)}
        self.path.write_text(json.dumps(payload, indent=2))
        log.debug("Cached %d resource types at %s", len(resource_types), self.path)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


def _offline_check(
    resource_type: str, schema: dict[str, Any] | None, registry: ResourceTypeRegistry
) -> ResourceTypeCheck:
    return ResourceTypeCheck(
        resource_type=resource_type,
        resource_type_valid=registry.is_known(resource_type),
        available_api_versions=registry.known_api_versions(resource_type),
        schema_api_versions=schema_api_versions(schema),
        source="offline",
    )


def check_resource_type(
    resource_type: str,
    schema: dict[str, Any] | None = None,
    provider: MetadataProvider | None = None,
    registry: ResourceTypeRegistry | None = None,
) -> ResourceTypeCheck:
    """Check a resource type and the schema's API versions against a metadata source."""
    registry = registry or get_registry()
    if provider is None or provider.source != "live" or not provider.is_authenticated():
        return _offline_check(resource_type, schema, registry)

    try:
        valid = provider.validate_resource_type(resource_type)
        versions = provider.get_api_versions(resource_type)
    except MetadataProviderError as e:
        log.warning("Live validation of %s failed, falling back to offline: %s", resource_type, e)
        return _offline_check(resource_type, schema, registry)

    return ResourceTypeCheck(
        resource_type=resource_type,
        resource_type_valid=valid,
        available_api_versions=versions,
        schema_api_versions=schema_api_versions(schema),
        source="live",
    )


__all__ = [
    "AzureResourceGraphProvider",
    "MetadataProvider",
    "ResourceTypeCache",
    "StaticMetadataProvider",
    "check_resource_type",
]
