"""Per-resource-type generation profiles.

A profile contributes the type-specific parameters, variables, resource
blocks and outputs of a generated document. The registry names the profile
for each resource type; anything without one renders with the base ``Profile``,
which derives parameters from the schema's own properties.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from bicepforge.declarations import Expr, ForExpr, Interp, Output, Param, Resource, Ternary, Variable, ref

if TYPE_CHECKING:
    from bicepforge.models import GenerationConfig
    from bicepforge.registry import ResourceTypeInfo, ResourceTypeRegistry

DEPLOYMENT_TEMPLATE_SCHEMA = "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#"

# Schema properties that the common parameters already cover.
RESERVED_PROPERTIES = frozenset({"apiVersion", "type", "name", "location", "properties", "tags"})

# ARM resource properties that sit beside ``properties`` rather than inside it.
TOP_LEVEL_PROPERTIES = frozenset({"sku", "kind", "identity", "zones", "plan", "extendedLocation", "managedBy"})

SENSITIVE_MARKERS = ("password", "secret", "key", "token", "connectionstring")

_NON_IDENTIFIER = re.compile(r"[^A-Za-z0-9_]")

WINDOWS_IMAGE = {
    "publisher": "MicrosoftWindowsServer",
    "offer": "WindowsServer",
    "sku": "2022-Datacenter",
    "version": "latest",
}
LINUX_IMAGE = {
    "publisher": "Canonical",
    "offer": "0001-com-ubuntu-server-jammy",
    "sku": "22_04-lts-gen2",
    "version": "latest",
}

STORAGE_SKUS = ("Standard_LRS", "Standard_GRS", "Standard_RAGRS", "Standard_ZRS", "Premium_LRS", "Premium_ZRS")

VM_SIZES = (
    "Standard_B1s",
    "Standard_B1ms",
    "Standard_B2s",
    "Standard_B2ms",
    "Standard_D2s_v3",
    "Standard_D4s_v3",
    "Standard_D8s_v3",
)


@dataclass(frozen=True)
class Target:
    """Everything a profile needs to know about the resource being generated."""

    resource_type: str
    symbol: str
    api_version: str
    info: ResourceTypeInfo
    config: GenerationConfig
    registry: ResourceTypeRegistry
    schema: dict[str, Any] = field(default_factory=dict)
    common_names: frozenset[str] = frozenset()

    @property
    def supports_location(self) -> bool:
        return self.info.supports_location_and_tags


def symbol_for(resource_type: str) -> str:
    """``Microsoft.Storage/storageAccounts`` -> ``storageAccounts``."""
    kind = resource_type.rsplit("/", 1)[-1]
    kind = re.sub(r"[^A-Za-z0-9]", "", kind)
    if not kind:
        return "resource"
    symbol = kind[0].lower() + kind[1:]
    return symbol if not symbol[0].isdigit() else f"r{symbol}"


def param_identifier(name: str) -> str:
    """Turn a property name into a Bicep parameter name."""
    ident = _NON_IDENTIFIER.sub("_", name)
    if not ident or ident[0].isdigit():
        return f"p{ident}"
    return ident


def bicep_type(prop_schema: dict[str, Any]) -> str:
    t = prop_schema.get("type")
    if t in ("integer", "number"):
        return "int"
    if t == "boolean":
        return "bool"
    if t in ("array", "object"):
        return t
    return "string"


def is_sensitive(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in SENSITIVE_MARKERS)


def parameter_from_property(name: str, prop_schema: dict[str, Any], param_name: str | None = None) -> Param:
    """Build a parameter declaration from one JSON Schema property."""
    comments: tuple[str, ...] = ()
    if prop_schema.get("pattern"):
        comments = (f"Pattern validation: {prop_schema['pattern']}",)
    enum = prop_schema.get("enum")
    return Param(
        name=param_name or name,
        type=bicep_type(prop_schema),
        description=prop_schema.get("description") or f"Parameter for {name}",
        default=prop_schema.get("default"),
        allowed=tuple(enum) if isinstance(enum, list) and enum else None,
        min_length=prop_schema.get("minLength"),
        max_length=prop_schema.get("maxLength"),
        min_value=prop_schema.get("minimum"),
        max_value=prop_schema.get("maximum"),
        secure=is_sensitive(name),
        comments=comments,
    )


def derive_parameters(schema: dict[str, Any], declared: set[str], prefix: str = "") -> list[tuple[str, Param]]:
    """One parameter per schema property, top-level first, then nested ``properties``.

    Returns ``(property_name, param)`` pairs so callers can bind each parameter
    back to the property it came from. Names in ``declared`` are skipped and the
    set is updated in place.
    """
    props = schema.get("properties") if isinstance(schema, dict) else None
    if not isinstance(props, dict):
        return []

    candidates: list[tuple[str, Any]] = [(k, v) for k, v in props.items() if k not in RESERVED_PROPERTIES]
    nested = props.get("properties")
    if isinstance(nested, dict) and isinstance(nested.get("properties"), dict):
        candidates += [(k, v) for k, v in nested["properties"].items() if k not in RESERVED_PROPERTIES]

    derived = []
    for prop_name, prop_schema in candidates:
        if not isinstance(prop_schema, dict):
            continue
        param_name = param_identifier(f"{prefix}{prop_name}")
        if param_name in declared:
            continue
        declared.add(param_name)
        derived.append((prop_name, parameter_from_property(prop_name, prop_schema, param_name)))
    return derived


def bind_parameters(derived: list[tuple[str, Param]]) -> dict[str, Any]:
    """Resource body fragment binding derived parameters to their properties."""
    top: dict[str, Any] = {}
    inner: dict[str, Any] = {}
    for prop_name, param in derived:
        target = top if prop_name in TOP_LEVEL_PROPERTIES else inner
        target[prop_name] = Expr(param.name)
    top["properties"] = inner
    return top


def placement(target: Target) -> dict[str, Any]:
    if not target.supports_location:
        return {}
    return {"location": Expr("location"), "tags": Expr("commonTags")}


class Profile:
    """Generic generation routines; subclasses override per resource type."""

    name = "generic"

    def parameters(self, target: Target, declared: set[str]) -> list[Param]:
        return [param for _, param in derive_parameters(target.schema, declared)]

    def variables(self, target: Target) -> list[Variable]:
        return []

    def resource_body(self, target: Target) -> dict[str, Any]:
        derived = derive_parameters(target.schema, set(target.common_names))
        return {"name": Expr("resourceNameFormatted"), **placement(target), **bind_parameters(derived)}

    def outputs(self, target: Target) -> list[Output]:
        return []

    def default_properties(self, config: GenerationConfig) -> dict[str, Any]:
        """Literal body fragment used when a resource is assembled without configuration."""
        return {"properties": {}}


class VirtualNetworkProfile(Profile):
    name = "virtual_network"

    def parameters(self, target: Target, declared: set[str]) -> list[Param]:
        return [
            Param(
                "addressSpaces",
                "array",
                "Address space for the virtual network",
                default=[target.config.vnet_address_space],
            ),
            Param(
                "subnets",
                "array",
                "Subnets configuration",
                default=[
                    {
                        "name": "default",
                        "addressPrefix": target.config.subnet_address_space,
                        "networkSecurityGroup": None,
                        "routeTable": None,
                    }
                ],
            ),
            Param("enableDdosProtection", "bool", "Enable DDoS protection", default=False),
            Param("enableVmProtection", "bool", "Enable VM protection", default=False),
        ]

    def variables(self, target: Target) -> list[Variable]:
        subnet_body = {
            "name": Expr("subnet.name"),
            "properties": {
                "addressPrefix": Expr("subnet.addressPrefix"),
                "networkSecurityGroup": Ternary(
                    "subnet.networkSecurityGroup != null", {"id": Expr("subnet.networkSecurityGroup")}
                ),
                "routeTable": Ternary("subnet.routeTable != null", {"id": Expr("subnet.routeTable")}),
            },
        }
        return [Variable("subnetsFormatted", ForExpr("(subnet, i)", "subnets", subnet_body))]

    def resource_body(self, target: Target) -> dict[str, Any]:
        return {
            "name": Expr("resourceNameFormatted"),
            **placement(target),
            "properties": {
                "addressSpace": {"addressPrefixes": Expr("addressSpaces")},
                "subnets": Expr("subnetsFormatted"),
                "enableDdosProtection": Expr("enableDdosProtection"),
                "enableVmProtection": Expr("enableVmProtection"),
            },
        }

    def outputs(self, target: Target) -> list[Output]:
        s = target.symbol
        return [
            Output(
                "addressSpace",
                "array",
                ref(s, "properties", "addressSpace", "addressPrefixes"),
                "Address space of the virtual network",
            ),
            Output(
                "subnets",
                "array",
                ForExpr(
                    "(subnet, i)",
                    f"{s}.properties.subnets",
                    {
                        "name": Expr("subnet.name"),
                        "id": Expr("subnet.id"),
                        "addressPrefix": Expr("subnet.properties.addressPrefix"),
                    },
                ),
                "Subnets in the virtual network",
            ),
        ]

    def default_properties(self, config: GenerationConfig) -> dict[str, Any]:
        return {
            "properties": {
                "addressSpace": {"addressPrefixes": [config.vnet_address_space]},
                "subnets": [{"name": "default", "properties": {"addressPrefix": config.subnet_address_space}}],
            }
        }


class StorageAccountProfile(Profile):
    name = "storage_account"

    def parameters(self, target: Target, declared: set[str]) -> list[Param]:
        return [
            Param(
                "skuName",
                description="Storage account SKU",
                default="Standard_LRS",
                allowed=STORAGE_SKUS,
            ),
            Param(
                "kind",
                description="Storage account kind",
                default="StorageV2",
                allowed=("Storage", "StorageV2", "BlobStorage", "FileStorage", "BlockBlobStorage"),
            ),
            Param("accessTier", description="Access tier for blob storage", default="Hot", allowed=("Hot", "Cool")),
            Param("allowBlobPublicAccess", "bool", "Allow blob public access", default=False),
            Param("supportsHttpsTrafficOnly", "bool", "Require secure transfer", default=True),
        ]

    def variables(self, target: Target) -> list[Variable]:
        return [
            Variable("storageAccountName", Expr("replace(resourceNameFormatted, '-', '')")),
            Variable("networkAcls", {"defaultAction": "Allow", "bypass": "AzureServices"}),
        ]

    def resource_body(self, target: Target) -> dict[str, Any]:
        encryption_service = {"keyType": "Account", "enabled": True}
        return {
            "name": Expr("storageAccountName"),
            **placement(target),
            "sku": {"name": Expr("skuName")},
            "kind": Expr("kind"),
            "properties": {
                "accessTier": Expr("accessTier"),
                "allowBlobPublicAccess": Expr("allowBlobPublicAccess"),
                "supportsHttpsTrafficOnly": Expr("supportsHttpsTrafficOnly"),
                "networkAcls": Expr("networkAcls"),
                "encryption": {
                    "services": {"file": encryption_service, "blob": encryption_service},
                    "keySource": "Microsoft.Storage",
                },
            },
        }

    def outputs(self, target: Target) -> list[Output]:
        s = target.symbol
        key = f"{s}.listKeys().keys[0].value"
        return [
            Output(
                "primaryEndpoints",
                "object",
                ref(s, "properties", "primaryEndpoints"),
                "Primary endpoints of the storage account",
            ),
            Output("primaryKey", "string", Expr(key), "Primary access key of the storage account"),
            Output(
                "connectionString",
                "string",
                Interp(
                    f"DefaultEndpointsProtocol=https;AccountName=${{{s}.name}};AccountKey=${{{key}}};"
                    "EndpointSuffix=core.windows.net"
                ),
                "Connection string for the storage account",
            ),
        ]

    def default_properties(self, config: GenerationConfig) -> dict[str, Any]:
        return {
            "sku": {"name": "Standard_LRS"},
            "kind": "StorageV2",
            "properties": {
                "accessTier": "Hot",
                "allowBlobPublicAccess": False,
                "supportsHttpsTrafficOnly": True,
            },
        }


class WebAppProfile(Profile):
    name = "web_app"

    def parameters(self, target: Target, declared: set[str]) -> list[Param]:
        return [
            Param("appServicePlanId", description="App Service Plan resource ID"),
            Param("appSettings", "array", "Application settings", default=[]),
            Param("connectionStrings", "array", "Connection strings", default=[]),
            Param("httpsOnly", "bool", "Enable HTTPS only", default=True),
            Param(
                "runtimeStack",
                description="Runtime stack",
                default="dotnet",
                allowed=("dotnet", "node", "python", "java", "php"),
            ),
        ]

    def variables(self, target: Target) -> list[Variable]:
        return [
            Variable(
                "appSettingsFormatted",
                ForExpr("setting", "appSettings", {"name": Expr("setting.name"), "value": Expr("setting.value")}),
            ),
            Variable(
                "connectionStringsFormatted",
                ForExpr(
                    "conn",
                    "connectionStrings",
                    {
                        "name": Expr("conn.name"),
                        "connectionString": Expr("conn.connectionString"),
                        "type": Expr("conn.type"),
                    },
                ),
            ),
        ]

    def resource_body(self, target: Target) -> dict[str, Any]:
        return {
            "name": Expr("resourceNameFormatted"),
            **placement(target),
            "properties": {
                "serverFarmId": Expr("appServicePlanId"),
                "httpsOnly": Expr("httpsOnly"),
                "siteConfig": {
                    "appSettings": Expr("appSettingsFormatted"),
                    "connectionStrings": Expr("connectionStringsFormatted"),
                    "metadata": [{"name": "CURRENT_STACK", "value": Expr("runtimeStack")}],
                },
            },
        }

    def outputs(self, target: Target) -> list[Output]:
        s = target.symbol
        return [
            Output(
                "defaultHostName", "string", ref(s, "properties", "defaultHostName"), "Default hostname of the web app"
            ),
            Output(
                "outboundIpAddresses", "string", ref(s, "properties", "outboundIpAddresses"), "Outbound IP addresses"
            ),
            Output("siteUrl", "string", Interp(f"https://${{{s}.properties.defaultHostName}}"), "Site URL"),
        ]

    def default_properties(self, config: GenerationConfig) -> dict[str, Any]:
        return {"properties": {"httpsOnly": True, "siteConfig": {"appSettings": []}}}


class VirtualMachineProfile(Profile):
    name = "virtual_machine"

    def parameters(self, target: Target, declared: set[str]) -> list[Param]:
        config = target.config
        sizes = VM_SIZES if config.vm_size in VM_SIZES else VM_SIZES + (config.vm_size,)
        image = WINDOWS_IMAGE if config.os_type == "Windows" else LINUX_IMAGE
        return [
            Param("vmSize", description="Virtual machine size", default=config.vm_size, allowed=sizes),
            Param(
                "adminUsername",
                description="Admin username for the VM",
                default=config.admin_username or None,
                min_length=3,
                max_length=20,
            ),
            Param("adminPassword", description="Admin password for the VM", secure=True, min_length=8),
            Param(
                "osType",
                description="Operating system type",
                default=config.os_type,
                allowed=("Windows", "Linux"),
            ),
            Param(
                "osDiskType",
                description="OS disk type",
                default="StandardSSD_LRS",
                allowed=("Standard_LRS", "StandardSSD_LRS", "Premium_LRS"),
            ),
            Param("subnetId", description="Subnet resource ID for the VM network interface"),
            Param("enableAcceleratedNetworking", "bool", "Enable accelerated networking", default=False),
            Param("imageReference", "object", "VM image configuration", default=dict(image)),
        ]

    def resource_body(self, target: Target) -> dict[str, Any]:
        properties: dict[str, Any] = {
            "hardwareProfile": {"vmSize": Expr("vmSize")},
            "osProfile": {
                "computerName": Expr("take(resourceNameFormatted, 15)"),
                "adminUsername": Expr("adminUsername"),
                "adminPassword": Expr("adminPassword"),
                "windowsConfiguration": Ternary(
                    "osType == 'Windows'",
                    {
                        "enableAutomaticUpdates": True,
                        "provisionVMAgent": True,
                        "patchSettings": {"patchMode": "AutomaticByOS"},
                    },
                ),
                "linuxConfiguration": Ternary(
                    "osType == 'Linux'",
                    {"disablePasswordAuthentication": False, "provisionVMAgent": True},
                ),
            },
            "storageProfile": {
                "imageReference": Expr("imageReference"),
                "osDisk": {
                    "name": Interp("${resourceNameFormatted}-osdisk"),
                    "createOption": "FromImage",
                    "caching": "ReadWrite",
                    "managedDisk": {"storageAccountType": Expr("osDiskType")},
                    "diskSizeGB": 128,
                },
            },
            "networkProfile": {
                "networkInterfaces": [
                    {"id": ref(f"{target.symbol}NetworkInterface", "id"), "properties": {"primary": True}}
                ]
            },
        }
        if target.config.include_boot_diagnostics:
            properties["diagnosticsProfile"] = {"bootDiagnostics": {"enabled": True}}
        return {"name": Expr("resourceNameFormatted"), **placement(target), "properties": properties}

    def outputs(self, target: Target) -> list[Output]:
        s = target.symbol
        nic = f"{s}NetworkInterface"
        return [
            Output(
                "privateIPAddress",
                "string",
                Expr(f"{nic}.properties.ipConfigurations[0].properties.privateIPAddress"),
                "Private IP address of the virtual machine",
            ),
            Output("networkInterfaceId", "string", ref(nic, "id"), "Network interface resource ID"),
            Output("vmSize", "string", ref(s, "properties", "hardwareProfile", "vmSize"), "Virtual machine size"),
            Output("osType", "string", Expr("osType"), "Operating system type"),
            Output("computerName", "string", ref(s, "properties", "osProfile", "computerName"), "Computer name"),
        ]

    def default_properties(self, config: GenerationConfig) -> dict[str, Any]:
        image = WINDOWS_IMAGE if config.os_type == "Windows" else LINUX_IMAGE
        return {
            "properties": {
                "hardwareProfile": {"vmSize": config.vm_size},
                "osProfile": {"adminUsername": config.admin_username},
                "storageProfile": {"imageReference": dict(image)},
            }
        }


class NestedDeploymentProfile(Profile):
    name = "nested_deployment"

    def parameters(self, target: Target, declared: set[str]) -> list[Param]:
        return []

    def resource_body(self, target: Target) -> dict[str, Any]:
        body: dict[str, Any] = {"name": Expr("resourceNameFormatted")}
        if target.supports_location:
            body["location"] = Expr("location")
        body.update(self.default_properties(target.config))
        return body

    def default_properties(self, config: GenerationConfig) -> dict[str, Any]:
        return {
            "properties": {
                "mode": "Incremental",
                "template": {
                    "$schema": DEPLOYMENT_TEMPLATE_SCHEMA,
                    "contentVersion": "1.0.0.0",
                    "resources": [],
                },
            }
        }


def network_interface(target: Target, api_version: str) -> Resource:
    """The NIC a virtual machine needs before it can be declared."""
    return Resource(
        symbol=f"{target.symbol}NetworkInterface",
        resource_type="Microsoft.Network/networkInterfaces",
        api_version=api_version,
        comments=("Network Interface for the Virtual Machine",),
        body={
            "name": Interp("${resourceNameFormatted}-nic"),
            **placement(target),
            "properties": {
                "ipConfigurations": [
                    {
                        "name": "ipconfig1",
                        "properties": {
                            "privateIPAllocationMethod": "Dynamic",
                            "subnet": {"id": Expr("subnetId")},
                        },
                    }
                ],
                "enableAcceleratedNetworking": Expr("enableAcceleratedNetworking"),
            },
        },
    )


AUXILIARY_BUILDERS = {
    "microsoft.network/networkinterfaces": network_interface,
}

PROFILES: dict[str, Profile] = {
    p.name: p
    for p in (
        Profile(),
        VirtualNetworkProfile(),
        StorageAccountProfile(),
        WebAppProfile(),
        VirtualMachineProfile(),
        NestedDeploymentProfile(),
    )
}


def get_profile(name: str | None) -> Profile:
    """Return the named profile, falling back to the generic one."""
    return PROFILES.get(name or "generic", PROFILES["generic"])


def auxiliary_resources(target: Target) -> list[Resource]:
    """Blocks for the auxiliary resources the registry lists for this type, in order."""
    blocks = []
    for aux_type in target.info.auxiliary_resources:
        builder = AUXILIARY_BUILDERS.get(aux_type.lower())
        if builder is None:
            continue
        api_version = target.registry.select_api_version(None, aux_type)
        blocks.append(builder(target, api_version))
    return blocks
