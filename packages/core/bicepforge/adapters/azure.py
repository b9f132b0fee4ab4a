"""Azure Resource Graph / Resource Manager metadata adapter.

Queries https://management.azure.com with a bearer token:
  - resource types via a Resource Graph KQL query
  - API versions via the provider's resourceTypes listing

Resource type listings are kept in a ResourceTypeCache when one is supplied.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import TYPE_CHECKING, Any

from bicepforge.adapters import DEFAULT_LOCATIONS, MetadataProvider, urlopen_safe
from bicepforge.errors import MetadataProviderError

if TYPE_CHECKING:
    from bicepforge.metadata import ResourceTypeCache

log = logging.getLogger(__name__)

_BASE_URL = "https://management.azure.com"
_GRAPH_API_VERSION = "2021-03-01"
_PROVIDERS_API_VERSION = "2021-04-01"
_TIMEOUT = 30  # seconds

_RESOURCE_TYPES_QUERY = """
Resources
| distinct type
| where type startswith "Microsoft."
| order by type asc
| limit 1000
"""


class AzureResourceGraphProvider(MetadataProvider):
    """Live metadata from Azure, authenticated with a bearer access token."""

    source = "live"

    def __init__(
        self,
        access_token: str | None = None,
        cache: ResourceTypeCache | None = None,
        base_url: str = _BASE_URL,
        timeout: int = _TIMEOUT,
    ):
        self._token = access_token
        self._cache = cache
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._resource_types: list[str] | None = None

    def is_authenticated(self) -> bool:
        return bool(self._token)

    def clear_auth(self) -> None:
        self._token = None
        self._resource_types = None
        if self._cache is not None:
            self._cache.clear()

    # HTTP

    def _request(self, url: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self._token:
            raise MetadataProviderError("Azure access token required. Please authenticate first.")
        headers = {"Authorization": f"Bearer {self._token}"}
        data = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(body).encode()
        req = urllib.request.Request(url, data=data, headers=headers, method="POST" if data else "GET")
        try:
            raw = urlopen_safe(req, timeout=self._timeout)
        except urllib.error.HTTPError as e:
            raise MetadataProviderError(f"Azure request failed: {e.code} {e.reason}") from e
        except (urllib.error.URLError, OSError) as e:
            raise MetadataProviderError(f"Azure request failed: {e}") from e
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise MetadataProviderError(f"Azure returned invalid JSON: {e}") from e

    def query(self, kql: str) -> list[dict[str, Any]]:
        """Run a Resource Graph query across all accessible subscriptions."""
        url = f"{self._base_url}/providers/Microsoft.ResourceGraph/resources?api-version={_GRAPH_API_VERSION}"
        result = self._request(url, {"query": kql, "subscriptions": []})
        rows = result.get("data", [])
        return rows if isinstance(rows, list) else []

    # MetadataProvider

    def get_resource_types(self) -> list[str]:
        if self._resource_types is not None:
            return list(self._resource_types)
        if self._cache is not None and not self._cache.is_stale():
            cached = self._cache.resource_types()
            if cached:
                log.debug("Using %d cached resource types", len(cached))
                self._resource_types = cached
                return list(cached)

        rows = self.query(_RESOURCE_TYPES_QUERY)
        types = [row["type"] for row in rows if isinstance(row, dict) and row.get("type")]
        self._resource_types = types
        if self._cache is not None:
            self._cache.store(types)
        return list(types)

    def get_api_versions(self, resource_type: str) -> list[str]:
        provider, _, kind = resource_type.partition("/")
        url = f"{self._base_url}/providers/{provider}?api-version={_PROVIDERS_API_VERSION}"
        data = self._request(url)
        for entry in data.get("resourceTypes") or []:
            if str(entry.get("resourceType", "")).lower() == kind.lower():
                return sorted(entry.get("apiVersions") or [])
        return []

    def get_resource_locations(self, resource_type: str) -> list[str]:
        kql = (
            f'Resources | where type =~ "{resource_type}" | distinct location '
            "| where isnotempty(location) | order by location asc"
        )
        try:
            rows = self.query(kql)
        except MetadataProviderError as e:
            log.warning("Failed to fetch locations for %s: %s", resource_type, e)
            return list(DEFAULT_LOCATIONS)
        return [row["location"] for row in rows if isinstance(row, dict) and row.get("location")]
