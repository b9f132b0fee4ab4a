"""Deployment template analysis and VM-centric conversion to Bicep.

``analyze`` inspects a deployment template and lists the infrastructure a
virtual machine in it will need. ``convert`` turns the analysed template into a
self-contained Bicep deployment that either creates a new network or binds to
an existing VNet and subnet.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from bicepforge.context import GenerationContext
from bicepforge.declarations import Expr, GeneratedDocument, Interp, Output, Param, Resource, Variable, ref
from bicepforge.errors import UsageError
from bicepforge.models import GenerationConfig
from bicepforge.profiles import LINUX_IMAGE

log = logging.getLogger(__name__)

VM_TYPE = "Microsoft.Compute/virtualMachines"
NETWORK_API_VERSION = "2023-05-01"
VM_API_VERSION = "2024-11-01"
DEFAULT_VM_NAME = "myvm"

WINDOWS_SERVER_IMAGE = {
    "publisher": "MicrosoftWindowsServer",
    "offer": "WindowsServer",
    "sku": "2022-datacenter-azure-edition",
    "version": "latest",
}

# Types the converter regenerates itself; anything else in the template is reported as not converted.
_REGENERATED_TYPES = frozenset(
    t.lower()
    for t in (
        VM_TYPE,
        "Microsoft.Network/networkInterfaces",
        "Microsoft.Network/virtualNetworks",
        "Microsoft.Network/virtualNetworks/subnets",
        "Microsoft.Network/networkSecurityGroups",
        "Microsoft.Network/publicIPAddresses",
        "Microsoft.Compute/disks",
    )
)

# Added for every VM regardless of what the template already declares.
_VM_BASELINE = (
    ("Microsoft.Network/virtualNetworks", "Required for VM deployment"),
    ("Microsoft.Network/networkSecurityGroups", "Security best practice"),
    ("Microsoft.Network/publicIPAddresses", "Optional - for external access"),
)

_PARAMETER_REF = re.compile(r"parameters\('([^']+)'\)")


@dataclass
class MissingDependency:
    type: str
    reason: str
    baseline: bool = False  # part of the fixed per-VM list, not found in the template


@dataclass
class TemplateAnalysis:
    resources: list[dict[str, Any]] = field(default_factory=list)
    parameters: dict[str, Any] = field(default_factory=dict)
    variables: dict[str, Any] = field(default_factory=dict)
    resource_types: list[str] = field(default_factory=list)
    missing_dependencies: list[MissingDependency] = field(default_factory=list)

    @property
    def virtual_machines(self) -> list[dict[str, Any]]:
        return [r for r in self.resources if str(r.get("type", "")).lower() == VM_TYPE.lower()]

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_count": len(self.resources),
            "parameter_count": len(self.parameters),
            "variable_count": len(self.variables),
            "resource_types": list(self.resource_types),
            "missing_dependencies": [
                {"type": d.type, "reason": d.reason, "baseline": d.baseline} for d in self.missing_dependencies
            ],
        }


@dataclass
class ConversionResult:
    document: GeneratedDocument
    vm_name: str
    network_mode: str
    warnings: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return self.document.render()

    def to_dict(self) -> dict[str, Any]:
        return {
            "bicep": self.text,
            "vm_name": self.vm_name,
            "network_mode": self.network_mode,
            "warnings": list(self.warnings),
        }


def _vm_dependencies(vm: dict[str, Any]) -> list[MissingDependency]:
    found: list[MissingDependency] = []
    props = vm.get("properties") or {}

    network_profile = props.get("networkProfile") or {}
    for nic in network_profile.get("networkInterfaces") or []:
        if isinstance(nic, dict) and "parameters(" in str(nic.get("id", "")):
            found.append(
                MissingDependency(
                    "Microsoft.Network/networkInterfaces", "External reference - will create new NIC with subnet"
                )
            )

    os_disk = (props.get("storageProfile") or {}).get("osDisk") or {}
    disk_id = (os_disk.get("managedDisk") or {}).get("id")
    if disk_id and "parameters(" in str(disk_id):
        found.append(MissingDependency("Microsoft.Compute/disks", "External reference - will create new managed disk"))

    found.extend(MissingDependency(t, reason, baseline=True) for t, reason in _VM_BASELINE)
    return found


def analyze(template: dict[str, Any]) -> TemplateAnalysis:
    """List resource types and the dependencies each virtual machine will need."""
    if not isinstance(template, dict):
        raise UsageError("Template must be a JSON object")

    resources = [r for r in template.get("resources") or [] if isinstance(r, dict)]
    analysis = TemplateAnalysis(
        resources=resources,
        parameters=dict(template.get("parameters") or {}),
        variables=dict(template.get("variables") or {}),
    )
    for resource in resources:
        resource_type = str(resource.get("type", ""))
        if resource_type and resource_type not in analysis.resource_types:
            analysis.resource_types.append(resource_type)
        if resource_type.lower() == VM_TYPE.lower():
            analysis.missing_dependencies.extend(_vm_dependencies(resource))
    log.debug(
        "Analysed template: %d resources, %d missing dependencies",
        len(resources),
        len(analysis.missing_dependencies),
    )
    return analysis


def extract_vm_name(name_expression: Any) -> str:
    """``[parameters('web01_name')]`` -> ``web01``; plain names pass through."""
    if not isinstance(name_expression, str) or not name_expression:
        return DEFAULT_VM_NAME
    match = _PARAMETER_REF.search(name_expression)
    if match:
        return re.sub(r"_name$", "", match.group(1))
    if name_expression.startswith("["):
        return DEFAULT_VM_NAME
    return name_expression


def _nsg(os_type: str) -> Resource:
    rule_name, port = ("SSH", "22") if os_type == "Linux" else ("RDP", "3389")
    return Resource(
        symbol="networkSecurityGroup",
        resource_type="Microsoft.Network/networkSecurityGroups",
        api_version=NETWORK_API_VERSION,
        comments=("Network Security Group for the VM",),
        body={
            "name": Expr("networkSecurityGroupName"),
            "location": Expr("location"),
            "properties": {
                "securityRules": [
                    {
                        "name": rule_name,
                        "properties": {
                            "priority": 1001,
                            "access": "Allow",
                            "direction": "Inbound",
                            "destinationPortRange": port,
                            "protocol": "Tcp",
                            "sourcePortRange": "*",
                            "sourceAddressPrefix": "*",
                            "destinationAddressPrefix": "*",
                        },
                    }
                ]
            },
        },
    )


def _public_ip() -> Resource:
    return Resource(
        symbol="publicIPAddress",
        resource_type="Microsoft.Network/publicIPAddresses",
        api_version=NETWORK_API_VERSION,
        comments=("Public IP Address",),
        body={
            "name": Expr("publicIPAddressName"),
            "location": Expr("location"),
            "sku": {"name": "Standard"},
            "properties": {
                "publicIPAllocationMethod": "Static",
                "dnsSettings": {"domainNameLabel": Expr("vmNameClean")},
            },
        },
    )


def _network_interface(subnet_id: Expr, config: GenerationConfig, attach_nsg: bool) -> Resource:
    ip_properties: dict[str, Any] = {"privateIPAllocationMethod": "Dynamic", "subnet": {"id": subnet_id}}
    if config.include_public_ip:
        ip_properties["publicIPAddress"] = {"id": ref("publicIPAddress", "id")}
    properties: dict[str, Any] = {"ipConfigurations": [{"name": "ipconfig1", "properties": ip_properties}]}
    if attach_nsg:
        properties["networkSecurityGroup"] = {"id": ref("networkSecurityGroup", "id")}
    return Resource(
        symbol="networkInterface",
        resource_type="Microsoft.Network/networkInterfaces",
        api_version=NETWORK_API_VERSION,
        comments=("Network Interface",),
        body={"name": Expr("networkInterfaceName"), "location": Expr("location"), "properties": properties},
    )


def _virtual_machine(config: GenerationConfig) -> Resource:
    linux = config.os_type == "Linux"
    os_profile: dict[str, Any] = {
        "computerName": Expr("vmName"),
        "adminUsername": Expr("adminUsername"),
        "adminPassword": Expr("adminPasswordOrKey"),
    }
    if linux:
        os_profile["linuxConfiguration"] = {"disablePasswordAuthentication": False}
    else:
        os_profile["windowsConfiguration"] = {"enableAutomaticUpdates": True}

    properties: dict[str, Any] = {
        "hardwareProfile": {"vmSize": Expr("vmSize")},
        "osProfile": os_profile,
        "storageProfile": {
            "imageReference": dict(LINUX_IMAGE if linux else WINDOWS_SERVER_IMAGE),
            "osDisk": {
                "name": Expr("osDiskName"),
                "caching": "ReadWrite",
                "createOption": "FromImage",
                "managedDisk": {"storageAccountType": "Premium_LRS"},
            },
        },
        "networkProfile": {"networkInterfaces": [{"id": ref("networkInterface", "id")}]},
    }
    if config.include_boot_diagnostics:
        properties["diagnosticsProfile"] = {"bootDiagnostics": {"enabled": True}}
    return Resource(
        symbol="virtualMachine",
        resource_type=VM_TYPE,
        api_version=VM_API_VERSION,
        comments=("Virtual Machine",),
        body={"name": Expr("vmName"), "location": Expr("location"), "properties": properties},
    )


def _parameters(vm_name: str, config: GenerationConfig) -> list[Param]:
    location: Any = config.location if config.location else Expr("resourceGroup().location")
    params = [
        Param("vmName", description="Virtual Machine name", default=vm_name),
        Param("location", description="Location for VM resources", default=location),
    ]
    if config.uses_existing_network:
        params += [
            Param("existingVnetName", description="Existing Virtual Network name", default=config.existing_vnet_name),
            Param("existingSubnetName", description="Existing Subnet name", default=config.existing_subnet_name),
        ]
        if config.existing_vnet_resource_group:
            params.append(
                Param(
                    "vnetResourceGroupName",
                    description="Resource Group containing the VNet",
                    default=config.existing_vnet_resource_group,
                )
            )
    params += [
        Param("adminUsername", description="Administrator username", default=config.admin_username),
        Param("adminPasswordOrKey", description="Administrator password or SSH key", secure=True),
        Param("vmSize", description="Virtual Machine size", default=config.vm_size),
        Param("osType", description="OS Type", default=config.os_type, allowed=("Linux", "Windows")),
    ]
    if not config.uses_existing_network:
        params.append(Param("environment", description="Environment tag", default=config.environment))
    return params


def _variables(config: GenerationConfig) -> list[Variable]:
    variables = [Variable("vmNameClean", Expr("toLower(replace(vmName, ' ', '-'))"))]
    if config.include_nsg:
        variables.append(Variable("networkSecurityGroupName", Interp("${vmNameClean}-nsg")))
    if not config.uses_existing_network:
        variables.append(Variable("virtualNetworkName", Interp("${vmNameClean}-vnet")))
        variables.append(Variable("subnetName", "default"))
    variables.append(Variable("networkInterfaceName", Interp("${vmNameClean}-nic")))
    variables.append(Variable("osDiskName", Interp("${vmNameClean}-osdisk")))
    if config.include_public_ip:
        variables.append(Variable("publicIPAddressName", Interp("${vmNameClean}-pip")))
    if not config.uses_existing_network:
        variables.append(Variable("vnetAddressSpace", config.vnet_address_space))
        variables.append(Variable("subnetAddressSpace", config.subnet_address_space))
    return variables


def _existing_network(config: GenerationConfig) -> list[Resource]:
    vnet_body: dict[str, Any] = {"name": Expr("existingVnetName")}
    comment = "Reference existing VNet in same resource group"
    if config.existing_vnet_resource_group:
        vnet_body["scope"] = Expr("resourceGroup(vnetResourceGroupName)")
        comment = "Reference existing VNet in different resource group"
    return [
        Resource(
            symbol="existingVnet",
            resource_type="Microsoft.Network/virtualNetworks",
            api_version=NETWORK_API_VERSION,
            body=vnet_body,
            existing=True,
            comments=(comment,),
        ),
        Resource(
            symbol="existingSubnet",
            resource_type="Microsoft.Network/virtualNetworks/subnets",
            api_version=NETWORK_API_VERSION,
            body={"parent": Expr("existingVnet"), "name": Expr("existingSubnetName")},
            existing=True,
        ),
    ]


def _new_network(config: GenerationConfig) -> Resource:
    subnet_properties: dict[str, Any] = {"addressPrefix": Expr("subnetAddressSpace")}
    if config.include_nsg:
        subnet_properties["networkSecurityGroup"] = {"id": ref("networkSecurityGroup", "id")}
    return Resource(
        symbol="virtualNetwork",
        resource_type="Microsoft.Network/virtualNetworks",
        api_version=NETWORK_API_VERSION,
        comments=("Virtual Network",),
        body={
            "name": Expr("virtualNetworkName"),
            "location": Expr("location"),
            "properties": {
                "addressSpace": {"addressPrefixes": [Expr("vnetAddressSpace")]},
                "subnets": [{"name": Expr("subnetName"), "properties": subnet_properties}],
            },
        },
    )


def _connection_command(config: GenerationConfig) -> Interp:
    if config.include_public_ip:
        host = "${publicIPAddress.properties.dnsSettings.fqdn}"
    else:
        host = "${networkInterface.properties.ipConfigurations[0].properties.privateIPAddress}"
    if config.os_type == "Linux":
        return Interp(f"ssh ${{adminUsername}}@{host}")
    return Interp(f"mstsc /v:{host}")


def _outputs(config: GenerationConfig) -> list[Output]:
    outputs = [
        Output("vmId", "string", ref("virtualMachine", "id")),
        Output("vmName", "string", ref("virtualMachine", "name")),
    ]
    if config.uses_existing_network:
        outputs.append(Output("existingVnetUsed", "string", ref("existingVnet", "name")))
        outputs.append(Output("existingSubnetUsed", "string", ref("existingSubnet", "name")))
    if config.include_public_ip:
        outputs.append(Output("publicIPAddress", "string", ref("publicIPAddress", "properties", "ipAddress")))
    outputs.append(
        Output(
            "privateIPAddress",
            "string",
            Expr("networkInterface.properties.ipConfigurations[0].properties.privateIPAddress"),
        )
    )
    outputs.append(Output("connectionCommand", "string", _connection_command(config)))
    return outputs


def convert(
    template: dict[str, Any],
    analysis: TemplateAnalysis | None,
    config: GenerationConfig | None = None,
    context: GenerationContext | None = None,
) -> ConversionResult:
    """Build a standalone VM deployment from an analysed template.

    Raises UsageError when the template has not been analysed and
    ConfigurationError when existing-network mode lacks the VNet or subnet name.
    """
    if analysis is None:
        raise UsageError("Please analyze the template before converting it")
    config = config or GenerationConfig()
    config.require_network_fields()
    context = context or GenerationContext()

    warnings: list[str] = []
    vms = analysis.virtual_machines
    if vms:
        vm_name = extract_vm_name(vms[0].get("name"))
        if len(vms) > 1:
            warnings.append(f"Template declares {len(vms)} virtual machines; only the first is converted")
    else:
        vm_name = DEFAULT_VM_NAME
        warnings.append(f"Template has no virtual machine; generated a '{DEFAULT_VM_NAME}' scaffold")
    for resource_type in analysis.resource_types:
        if resource_type.lower() not in _REGENERATED_TYPES:
            warnings.append(f"{resource_type} is not converted")

    resources: list[Resource] = []
    if config.uses_existing_network:
        resources += _existing_network(config)
        subnet_id = ref("existingSubnet", "id")
    if config.include_nsg:
        resources.append(_nsg(config.os_type))
    if not config.uses_existing_network:
        resources.append(_new_network(config))
        subnet_id = Expr("virtualNetwork.properties.subnets[0].id")
    if config.include_public_ip:
        resources.append(_public_ip())
    attach_nsg = config.uses_existing_network and config.include_nsg
    resources.append(_network_interface(subnet_id, config, attach_nsg))
    resources.append(_virtual_machine(config))

    if config.uses_existing_network:
        header = (
            "VM Deployment using Existing VNet/Subnet - Converted from deployment template",
            f"Generated on: {context.timestamp()}",
            "Uses existing network infrastructure",
            f"VM Name: {vm_name}",
        )
        description = "VM deployment using existing VNet and subnet"
    else:
        header = (
            "Complete VM Deployment - Converted from deployment template",
            f"Generated on: {context.timestamp()}",
            "Includes all dependencies for standalone deployment",
            f"VM Name: {vm_name}",
        )
        description = "Complete VM deployment with all dependencies"

    document = GeneratedDocument(
        header=header,
        target_scope="resourceGroup",
        metadata=(("description", description), ("author", "bicepforge converter"), ("version", "1.0.0")),
        parameters=tuple(_parameters(vm_name, config)),
        variables=tuple(_variables(config)),
        resources=tuple(resources),
        outputs=tuple(_outputs(config)),
        resource_type=VM_TYPE,
        symbol="virtualMachine",
        api_version=VM_API_VERSION,
    )
    for warning in warnings:
        log.warning(warning)
    return ConversionResult(document=document, vm_name=vm_name, network_mode=config.network_mode, warnings=warnings)


class ArmConverter:
    """Two-step facade: analyse a template, then convert it with a configuration."""

    def __init__(self, context: GenerationContext | None = None):
        self._context = context
        self._template: dict[str, Any] | None = None
        self.analysis: TemplateAnalysis | None = None

    def analyze(self, template: dict[str, Any]) -> TemplateAnalysis:
        self.analysis = analyze(template)
        self._template = template
        return self.analysis

    def convert(self, config: GenerationConfig | None = None) -> ConversionResult:
        if self._template is None or self.analysis is None:
            raise UsageError("Please analyze the template before converting it")
        return convert(self._template, self.analysis, config, self._context)

    def reset(self) -> None:
        self._template = None
        self.analysis = None
