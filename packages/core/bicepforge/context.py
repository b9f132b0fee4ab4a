"""Generation context: the collaborators every generator call shares."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from bicepforge.adapters import MetadataProvider
from bicepforge.metadata import StaticMetadataProvider
from bicepforge.registry import ResourceTypeRegistry, get_registry
from bicepforge.sources import DirectorySchemaSource, SchemaSource


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GenerationContext:
    """Registry, clock, schema source and metadata provider for one session.

    Defaults check metadata offline against the bundled data. Tests pin the
    clock to get byte-identical output.
    """

    registry: ResourceTypeRegistry = field(default_factory=get_registry)
    clock: Callable[[], datetime] = utc_now
    schema_source: SchemaSource = field(default_factory=DirectorySchemaSource)
    metadata_provider: MetadataProvider | None = None

    def __post_init__(self) -> None:
        if self.metadata_provider is None:
            self.metadata_provider = StaticMetadataProvider(self.registry)

    def timestamp(self) -> str:
        return self.clock().isoformat()
