"""Cloud metadata adapters. Query Azure for resource types and API versions."""

from __future__ import annotations

import ssl
import urllib.request
from abc import ABC, abstractmethod

import certifi


def _ssl_context() -> ssl.SSLContext:
    """Create an SSL context using the certifi CA bundle."""
    return ssl.create_default_context(cafile=certifi.where())


def urlopen_safe(req: urllib.request.Request, timeout: int = 30) -> bytes:
    """urlopen with certifi SSL. Use this instead of raw urllib.request.urlopen."""
    ctx = _ssl_context()
    with urllib.request.urlopen(req, timeout=timeout, context=ctx) as resp:
        return resp.read()


# Regions returned when a provider cannot list locations for a type.
DEFAULT_LOCATIONS = (
    "eastus",
    "eastus2",
    "westus",
    "westus2",
    "westus3",
    "centralus",
    "southcentralus",
    "northcentralus",
    "westeurope",
    "northeurope",
    "uksouth",
    "ukwest",
    "francecentral",
    "germanywestcentral",
    "norwayeast",
    "switzerlandnorth",
    "swedencentral",
)


class MetadataProvider(ABC):
    """Abstract base for cloud resource-type metadata sources.

    A provider answers which resource types exist, which API versions and
    locations each supports. Live providers raise MetadataProviderError on
    failure; callers fall back to the offline registry.
    """

    source: str  # "offline" | "live"

    @abstractmethod
    def is_authenticated(self) -> bool:
        """True when the provider can answer queries."""

    @abstractmethod
    def get_resource_types(self) -> list[str]:
        """All resource type ids the provider knows about."""

    @abstractmethod
    def get_api_versions(self, resource_type: str) -> list[str]:
        """API versions available for a resource type, oldest first."""

    def get_resource_locations(self, resource_type: str) -> list[str]:
        """Locations where a resource type is deployed or offered."""
        return list(DEFAULT_LOCATIONS)

    def validate_resource_type(self, resource_type: str) -> bool:
        wanted = resource_type.lower()
        return any(t.lower() == wanted for t in self.get_resource_types())


__all__ = ["DEFAULT_LOCATIONS", "MetadataProvider", "urlopen_safe"]
