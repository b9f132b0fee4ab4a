"""Shared fixtures for core tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from bicepforge.context import GenerationContext
from bicepforge.registry import get_registry
from bicepforge.sources import DirectorySchemaSource

FIXED_NOW = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)

DEPLOYMENT_TEMPLATE_SCHEMA = "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#"


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture
def registry():
    return get_registry()


@pytest.fixture
def context(registry) -> GenerationContext:
    """Offline context over the bundled data with a pinned clock."""
    return GenerationContext(registry=registry, clock=fixed_clock)


@pytest.fixture
def storage_schema() -> dict:
    return DirectorySchemaSource().load("storageAccount")


@pytest.fixture
def vm_template() -> dict:
    """A deployment template with one VM wired to external NIC and disk ids, plus a storage account."""
    return {
        "$schema": DEPLOYMENT_TEMPLATE_SCHEMA,
        "contentVersion": "1.0.0.0",
        "parameters": {
            "web01_name": {"type": "string"},
            "nic_id": {"type": "string"},
            "disk_id": {"type": "string"},
        },
        "variables": {"diagName": "diag01"},
        "resources": [
            {
                "type": "Microsoft.Compute/virtualMachines",
                "apiVersion": "2022-03-01",
                "name": "[parameters('web01_name')]",
                "location": "eastus",
                "properties": {
                    "hardwareProfile": {"vmSize": "Standard_B2s"},
                    "networkProfile": {"networkInterfaces": [{"id": "[parameters('nic_id')]"}]},
                    "storageProfile": {"osDisk": {"managedDisk": {"id": "[parameters('disk_id')]"}}},
                },
            },
            {
                "type": "Microsoft.Storage/storageAccounts",
                "apiVersion": "2022-05-01",
                "name": "[variables('diagName')]",
                "location": "eastus",
                "sku": {"name": "Standard_LRS"},
                "kind": "StorageV2",
            },
        ],
        "outputs": {},
    }
