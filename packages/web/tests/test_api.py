"""Backend API tests for the bicepforge FastAPI app."""

from __future__ import annotations

import json

import pytest


@pytest.fixture
def client():
    from bicepforge_web.app import app
    from fastapi.testclient import TestClient

    return TestClient(app)


@pytest.fixture
def storage_schema():
    from bicepforge.templates import starter_schema

    return starter_schema("storage")


@pytest.fixture
def vm_template():
    return {
        "$schema": "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#",
        "contentVersion": "1.0.0.0",
        "resources": [
            {
                "type": "Microsoft.Compute/virtualMachines",
                "apiVersion": "2022-03-01",
                "name": "[parameters('web01_name')]",
                "properties": {},
            }
        ],
    }


class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["registry"]["total_types"] > 0


class TestValidate:
    def test_schema(self, client, storage_schema):
        resp = client.post("/api/validate", json={"content": json.dumps(storage_schema)})
        assert resp.status_code == 200
        data = resp.json()
        assert data["isValid"] is True
        assert data["dialect"] == "resource_schema"
        assert "checks" not in data

    def test_invalid_schema_is_not_an_http_error(self, client):
        resp = client.post("/api/validate", json={"content": '{"title": "X"}'})
        assert resp.status_code == 200
        assert resp.json()["errors"] == ['Missing required "type" property']

    def test_bicep_with_checks(self, client):
        code = "resource sa 'Microsoft.Storage/storageAccounts@2022-05-01' = {\n  name: 'sa'\n}\n"
        resp = client.post("/api/validate", json={"content": code, "checks": True})
        data = resp.json()
        assert data["dialect"] == "bicep"
        assert {c["name"] for c in data["checks"]} >= {"Syntax Validation", "Resource Declaration"}

    def test_unparseable(self, client):
        resp = client.post("/api/validate", json={"content": "hello world"})
        assert resp.status_code == 400
        assert "Unsupported content" in resp.json()["detail"]

    def test_empty(self, client):
        resp = client.post("/api/validate", json={"content": "  "})
        assert resp.status_code == 400


class TestGenerate:
    def test_from_schema(self, client, storage_schema):
        resp = client.post("/api/generate", json={"schema": storage_schema, "config": {"environment": "prod"}})
        assert resp.status_code == 200
        data = resp.json()
        assert data["resource_type"] == "Microsoft.Storage/storageAccounts"
        assert data["api_version"] == "2022-05-01"
        assert data["bicep"].startswith("// Generated Bicep template from JSON Schema\n")
        assert data["parameters"]["parameters"]["environment"] == {"value": "prod"}

    def test_from_template_entry(self, client):
        entry = {
            "type": "Microsoft.Storage/storageAccounts",
            "apiVersion": "2022-05-01",
            "name": "diag01",
            "sku": {"name": "Standard_LRS"},
        }
        resp = client.post("/api/generate", json={"template_entry": entry})
        assert resp.status_code == 200
        assert resp.json()["resource_type"] == "Microsoft.Storage/storageAccounts"

    def test_requires_input(self, client):
        resp = client.post("/api/generate", json={})
        assert resp.status_code == 400

    def test_bad_config(self, client, storage_schema):
        resp = client.post("/api/generate", json={"schema": storage_schema, "config": {"includeOutputs": "maybe"}})
        assert resp.status_code == 422


class TestConvert:
    def test_analyze(self, client, vm_template):
        resp = client.post("/api/analyze", json={"template": vm_template})
        assert resp.status_code == 200
        data = resp.json()
        assert data["resource_count"] == 1
        assert data["resource_types"] == ["Microsoft.Compute/virtualMachines"]
        assert data["missing_dependencies"]

    def test_convert(self, client, vm_template):
        resp = client.post("/api/convert", json={"template": vm_template, "config": {"includePublicIP": True}})
        assert resp.status_code == 200
        conversion = resp.json()["conversion"]
        assert conversion["vm_name"] == "web01"
        assert conversion["network_mode"] == "create-new"
        assert "Microsoft.Network/publicIPAddresses" in conversion["bicep"]

    def test_existing_network_missing_fields(self, client, vm_template):
        config = {"networkMode": "use-existing", "existingVnetName": "hub"}
        resp = client.post("/api/convert", json={"template": vm_template, "config": config})
        assert resp.status_code == 422
        assert resp.json()["detail"]["missing"] == ["existingSubnetName"]

    def test_existing_network(self, client, vm_template):
        config = {"networkMode": "existing", "existingVnetName": "hub", "existingSubnetName": "apps"}
        resp = client.post("/api/convert", json={"template": vm_template, "config": config})
        assert resp.status_code == 200
        assert resp.json()["conversion"]["network_mode"] == "existing"


class TestAssemble:
    def test_assemble(self, client):
        resp = client.post("/api/assemble", json={"resources": ["storage", "keyvault"]})
        assert resp.status_code == 200
        data = resp.json()
        assert data["resources"] == ["storage", "keyvault"]
        assert "Key Vault: Auto-corrected to use API version 2023-02-01" in data["warnings"]
        assert set(data["files"]) == {"main.bicep", "main.parameters.json", "README.md", "deploy.ps1"}

    def test_modules(self, client):
        body = {"resources": ["appplan", "webapp"], "config": {"generateModules": True}}
        data = client.post("/api/assemble", json=body).json()
        assert "modules/appplan.bicep" in data["files"]
        assert "modules/webapp.bicep" in data["files"]

    def test_resource_config(self, client):
        body = {"resources": ["storage"], "resource_config": {"storage": {"accessTier": "Hot"}}}
        data = client.post("/api/assemble", json=body).json()
        assert "accessTier: 'Hot'" in data["bicep"]

    def test_empty_selection(self, client):
        resp = client.post("/api/assemble", json={"resources": []})
        assert resp.status_code == 400
        assert "at least one resource" in resp.json()["detail"]


class TestCatalogAndRegistry:
    def test_catalog(self, client):
        resources = {r["id"]: r for r in client.get("/api/catalog").json()["resources"]}
        assert resources["functions"]["depends_on"] == ["appplan", "storage"]
        assert resources["keyvault"]["schema"] == "keyVault"

    def test_registry_types(self, client):
        data = client.get("/api/registry/types", params={"category": "storage"}).json()
        assert "storage" in data["categories"]
        assert all(t["category"] == "storage" for t in data["types"])

    def test_registry_lookup(self, client):
        data = client.get("/api/registry/lookup", params={"resource_type": "Microsoft.KeyVault/vaults"}).json()
        assert data["known"] is True
        assert data["selected_api_version"] == "2022-07-01"

    def test_registry_lookup_unknown(self, client):
        data = client.get("/api/registry/lookup", params={"resource_type": "Contoso.Widgets/gadgets"}).json()
        assert data["known"] is False
        assert data["similar_types"] == []


class TestStarter:
    def test_template(self, client):
        data = client.get("/api/starter").json()
        assert data["resources"] == []
        assert data["contentVersion"] == "1.0.0.0"

    def test_schema(self, client):
        data = client.get("/api/starter", params={"resource_type": "vm"}).json()
        assert data["title"] == "Virtual Machine Schema"


class TestEnhance:
    def test_enhance_as_yaml(self, client):
        schema = {"type": "object", "properties": {"type": {"const": "Microsoft.Storage/storageAccounts"}}}
        resp = client.post("/api/enhance", json={"schema": schema, "format": "yaml"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["schema"]["title"] == "Storage Account Schema"
        assert data["schema"]["required"] == ["apiVersion", "type", "name"]
        assert data["content"].startswith("type: object\n")
        assert "$schema: http" in data["content"]

    def test_default_format_is_json(self, client):
        resp = client.post("/api/enhance", json={"schema": {"type": "object"}})
        assert json.loads(resp.json()["content"]) == {
            "type": "object",
            "$schema": "http://json-schema.org/draft-07/schema#",
        }

    def test_unknown_format(self, client):
        resp = client.post("/api/enhance", json={"schema": {"type": "object"}, "format": "toml"})
        assert resp.status_code == 422
