"""Boundary data models for bicepforge.

Validation results, offline/live resource type checks and the generation
configuration cross the boundary to the CLI and web backend, so they are
pydantic models serialised with the camelCase keys the browser tool used.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from bicepforge.errors import ConfigurationError

Dialect = Literal["resource_schema", "deployment_template", "bicep"]
ValidationSource = Literal["offline", "live"]

_EXISTING_NETWORK_MODES = ("existing", "use-existing")


class ValidationResult(BaseModel):
    """Outcome of a structural check. Validity is derived from errors only."""

    model_config = ConfigDict(populate_by_name=True)

    dialect: Dialect = "resource_schema"
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    info: list[str] = Field(default_factory=list)

    @computed_field(alias="isValid")  # type: ignore[prop-decorator]
    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ValidationCheck(BaseModel):
    """A single named pass/fail check from the test-suite runner."""

    name: str
    description: str
    passed: bool
    detail: str = ""


class ResourceTypeCheck(BaseModel):
    """Result of checking a schema's resource type against a metadata source."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    resource_type: str
    resource_type_valid: bool
    available_api_versions: list[str] = Field(default_factory=list)
    schema_api_versions: list[str] = Field(default_factory=list)
    source: ValidationSource = "offline"

    @computed_field(alias="invalidApiVersions")  # type: ignore[prop-decorator]
    @property
    def invalid_api_versions(self) -> list[str]:
        if not self.available_api_versions:
            return list(self.schema_api_versions)
        return [v for v in self.schema_api_versions if v not in self.available_api_versions]

    @computed_field(alias="suggestedApiVersion")  # type: ignore[prop-decorator]
    @property
    def suggested_api_version(self) -> str | None:
        if not self.available_api_versions:
            return None
        return max(self.available_api_versions)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class GenerationConfig(BaseModel):
    """User-supplied generation options.

    Keys follow the browser tool's camelCase names (``includeNSG``,
    ``existingVnetName``...) and are also accepted in snake_case.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    location: str | None = None
    network_mode: str = "create-new"
    vnet_address_space: str = "10.0.0.0/16"
    subnet_address_space: str = "10.0.1.0/24"
    existing_vnet_name: str = ""
    existing_subnet_name: str = ""
    existing_vnet_resource_group: str = ""
    vm_size: str = "Standard_B2s"
    os_type: str = "Linux"
    admin_username: str = "azureuser"
    environment: str = "dev"
    resource_prefix: str = "bicep"
    target_scope: str = "resourceGroup"

    include_parameters: bool = True
    include_dependencies: bool = True
    include_outputs: bool = True
    generate_modules: bool = False
    include_nsg: bool = Field(default=True, alias="includeNSG")
    include_boot_diagnostics: bool = True
    include_public_ip: bool = Field(default=False, alias="includePublicIP")

    @field_validator("network_mode")
    @classmethod
    def normalize_network_mode(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if v in _EXISTING_NETWORK_MODES:
            return "existing"
        return v or "create-new"

    @field_validator("os_type")
    @classmethod
    def normalize_os_type(cls, v: str) -> str:
        return "Windows" if v.strip().lower() == "windows" else "Linux"

    @property
    def uses_existing_network(self) -> bool:
        return self.network_mode == "existing"

    def missing_network_fields(self) -> list[str]:
        """Names of the fields existing-network mode needs but did not get."""
        if not self.uses_existing_network:
            return []
        missing = []
        if not self.existing_vnet_name.strip():
            missing.append("existingVnetName")
        if not self.existing_subnet_name.strip():
            missing.append("existingSubnetName")
        return missing

    def require_network_fields(self) -> None:
        missing = self.missing_network_fields()
        if missing:
            raise ConfigurationError(
                "Existing network mode requires existingVnetName and existingSubnetName "
                f"(missing: {', '.join(missing)})",
                missing=missing,
            )

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> GenerationConfig:
        return cls.model_validate(data or {})

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
