"""Schema sources: where named resource schemas come from.

The assembler asks a source for schemas by catalog name (``storageAccount``,
``virtualMachine``...). Every failure surfaces as SchemaLoadError so batch
callers can turn it into a warning and keep going.
"""

from __future__ import annotations

import json
import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from bicepforge.adapters import urlopen_safe
from bicepforge.errors import SchemaLoadError

log = logging.getLogger(__name__)

_SCHEMA_DIR = Path(__file__).parent / "data" / "schemas"


def _parse(name: str, text: str | bytes) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaLoadError(name, f"invalid JSON ({e})") from e
    if not isinstance(data, dict):
        raise SchemaLoadError(name, "schema is not a JSON object")
    return data


class SchemaSource(ABC):
    """Abstract base for named schema providers."""

    @abstractmethod
    def load(self, name: str) -> dict[str, Any]:
        """Return a fresh copy of the named schema or raise SchemaLoadError."""

    def names(self) -> list[str]:
        """Schema names this source can list (may be empty for remote sources)."""
        return []


class DirectorySchemaSource(SchemaSource):
    """Schemas stored as ``<name>.json`` files in a directory."""

    def __init__(self, directory: str | Path | None = None):
        if directory is None:
            directory = os.environ.get("BICEPFORGE_SCHEMA_DIR") or _SCHEMA_DIR
        self.directory = Path(directory)

    def load(self, name: str) -> dict[str, Any]:
        path = self.directory / f"{name}.json"
        if not path.is_file():
            raise SchemaLoadError(name, f"no such file {path}")
        try:
            text = path.read_text()
        except OSError as e:
            raise SchemaLoadError(name, str(e)) from e
        log.debug("Loaded schema %s from %s", name, path)
        return _parse(name, text)

    def names(self) -> list[str]:
        return sorted(p.stem for p in self.directory.glob("*.json"))


class HttpSchemaSource(SchemaSource):
    """Schemas fetched from ``<base_url>/<name>.json``."""

    def __init__(self, base_url: str, timeout: int = 30):
        self.base_url = base_url.rstrip("/") + "/"
        self._timeout = timeout

    def load(self, name: str) -> dict[str, Any]:
        url = urllib.parse.urljoin(self.base_url, f"{urllib.parse.quote(name)}.json")
        req = urllib.request.Request(url, headers={"Accept": "application/json"})
        try:
            raw = urlopen_safe(req, timeout=self._timeout)
        except urllib.error.HTTPError as e:
            raise SchemaLoadError(name, f"HTTP {e.code} from {url}") from e
        except (urllib.error.URLError, OSError) as e:
            raise SchemaLoadError(name, f"request to {url} failed ({e})") from e
        return _parse(name, raw)


class InMemorySchemaSource(SchemaSource):
    """Schemas held in a dict; handy for tests and embedding."""

    def __init__(self, schemas: dict[str, dict[str, Any]] | None = None):
        self._schemas = {k: json.dumps(v) for k, v in (schemas or {}).items()}

    def add(self, name: str, schema: dict[str, Any]) -> None:
        self._schemas[name] = json.dumps(schema)

    def load(self, name: str) -> dict[str, Any]:
        if name not in self._schemas:
            raise SchemaLoadError(name, "not registered")
        return _parse(name, self._schemas[name])

    def names(self) -> list[str]:
        return sorted(self._schemas)
