"""Tests for multi-resource assembly."""

from __future__ import annotations

from dataclasses import replace

import pytest
from bicepforge.adapters import MetadataProvider
from bicepforge.assembler import assemble, load_catalog, resource_symbol
from bicepforge.declarations import Expr
from bicepforge.errors import MetadataProviderError, UsageError
from bicepforge.models import GenerationConfig
from bicepforge.sources import DirectorySchemaSource, InMemorySchemaSource
from bicepforge.validator import validate_bicep


class FakeLiveProvider(MetadataProvider):
    source = "live"

    def __init__(self, types=None, versions=None, fail=False):
        self.types = types or []
        self.versions = versions or {}
        self.fail = fail

    def is_authenticated(self) -> bool:
        return True

    def get_resource_types(self) -> list[str]:
        if self.fail:
            raise MetadataProviderError("boom")
        return list(self.types)

    def get_api_versions(self, resource_type: str) -> list[str]:
        return list(self.versions.get(resource_type, []))


def _storage_only(context):
    storage = DirectorySchemaSource().load("storageAccount")
    return replace(context, schema_source=InMemorySchemaSource({"storageAccount": storage}))


class TestCatalog:
    def test_bundled_catalog(self):
        catalog = load_catalog()
        assert set(catalog) == {"storage", "webapp", "vm", "keyvault", "sqldatabase", "functions", "appplan", "vnet"}
        assert catalog["functions"].depends_on == ("appplan", "storage")
        assert catalog["keyvault"].schema == "keyVault"

    def test_custom_catalog(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text("resources:\n  cache:\n    name: Redis Cache\n")
        catalog = load_catalog(path)
        assert catalog["cache"].schema == "cache"
        assert catalog["cache"].depends_on == ()
        assert "storage" in load_catalog()

    def test_resource_symbol(self):
        assert resource_symbol("sql-database_1") == "sqldatabase1"


class TestInlineAssembly:
    def test_empty_selection(self, context):
        with pytest.raises(UsageError, match="at least one resource"):
            assemble([], context=context)

    def test_storage(self, context):
        result = assemble(["storage"], context=context)
        text = result.text
        assert result.resources == ["storage"]
        assert result.warnings == []
        assert text.startswith("// Multi-Resource Azure Deployment Template\n// Generated by bicepforge\n")
        assert "// Resources: Storage Account" in text
        assert "// Generated on: 2024-01-15T09:30:00+00:00" in text
        assert "param resourcePrefix string = 'bicep'" in text
        assert "var commonTags = {\n  Environment: environment\n  DeployedBy: 'bicepforge'\n}" in text
        assert "resource storage 'Microsoft.Storage/storageAccounts@2022-05-01' = {" in text
        assert "  name: '${resourcePrefix}-storage-${environment}'" in text
        assert "  tags: commonTags" in text
        assert "output storageId string = storage.id" in text
        assert "output storageName string = storage.name" in text
        assert validate_bicep(text).is_valid

    def test_parameters_file(self, context):
        result = assemble(["storage"], context=context)
        assert result.parameters["parameters"] == {
            "environment": {"value": "dev"},
            "resourcePrefix": {"value": "bicep"},
        }

    def test_parameters_file_with_location(self, context):
        result = assemble(["storage"], global_config=GenerationConfig(location="westeurope"), context=context)
        assert result.parameters["parameters"]["location"] == {"value": "westeurope"}
        assert "param location string = 'westeurope'" in result.text

    def test_web_app_wired_to_plan(self, context):
        result = assemble(["webapp", "appplan"], context=context)
        webapp = result.main.find_resource("webapp")
        assert webapp.depends_on == ("appplan",)
        assert webapp.body["kind"] == "app"
        assert webapp.body["properties"]["serverFarmId"] == Expr("appplan.id")
        text = result.text
        assert "param appplan_skuName string = 'B1'" in text
        assert "  properties: {\n    skuName: appplan_skuName\n  }" in text
        assert "  dependsOn: [\n    appplan\n  ]" in text

    def test_web_app_without_plan(self, context):
        webapp = assemble(["webapp"], context=context).main.find_resource("webapp")
        assert webapp.depends_on == ()
        assert "serverFarmId" not in webapp.body["properties"]

    def test_function_app_kind_and_dependencies(self, context):
        result = assemble(["functions", "storage", "appplan"], context=context)
        functions = result.main.find_resource("functions")
        assert functions.body["kind"] == "functionapp"
        assert functions.depends_on == ("appplan", "storage")

    def test_dependencies_disabled(self, context):
        config = GenerationConfig(include_dependencies=False)
        webapp = assemble(["webapp", "appplan"], global_config=config, context=context).main.find_resource("webapp")
        assert webapp.depends_on == ()

    def test_outputs_disabled(self, context):
        result = assemble(["storage"], global_config=GenerationConfig(include_outputs=False), context=context)
        assert result.main.outputs == ()

    def test_parameters_disabled(self, context):
        config = GenerationConfig(include_parameters=False)
        result = assemble(["appplan"], global_config=config, context=context)
        assert result.parameters is None
        assert result.main.find_resource("appplan").body["properties"] == {}
        assert "appplan_skuName" not in result.main.parameter_names()

    def test_secure_parameters_left_out_of_parameters_file(self, context):
        result = assemble(["sqldatabase"], context=context)
        assert "sqldatabase_administratorLoginPassword" in result.main.parameter_names()
        assert "@secure()\n@minLength(8)\nparam sqldatabase_administratorLoginPassword string" in result.text
        assert "sqldatabase_administratorLoginPassword" not in result.parameters["parameters"]

    def test_resource_overrides(self, context):
        result = assemble(["storage"], {"storage": {"accessTier": "Cool"}}, context=context)
        storage = result.main.find_resource("storage")
        assert storage.body["properties"] == {"accessTier": "Cool"}
        assert "sku" not in storage.body

    def test_vm_default_properties(self, context):
        vm = assemble(["vm", "vnet"], context=context).main.find_resource("vm")
        assert vm.depends_on == ("vnet",)
        assert vm.body["properties"]["hardwareProfile"] == {"vmSize": "Standard_B2s"}

    def test_deterministic(self, context):
        assert assemble(["storage", "vm"], context=context).text == assemble(["storage", "vm"], context=context).text


class TestAssemblyWarnings:
    def test_key_vault_auto_corrected(self, context):
        result = assemble(["keyvault"], context=context)
        assert result.warnings == [
            "Key Vault: API versions 2019-09-01, 2021-04-01-preview may be invalid",
            "Key Vault: Auto-corrected to use API version 2023-02-01",
        ]
        assert result.main.find_resource("keyvault").api_version == "2023-02-01"
        assert "//\n// Validation Warnings:\n// Key Vault: API versions" in result.text
        assert result.checks["keyvault"].source == "offline"

    def test_unknown_and_duplicate_ids(self, context):
        result = assemble(["storage", "bogus", "storage"], context=context)
        assert result.resources == ["storage"]
        assert result.skipped == ["bogus"]
        assert result.warnings == ["bogus: Unknown resource"]

    def test_schema_load_failure_skips_resource(self, context):
        result = assemble(["storage", "keyvault"], context=_storage_only(context))
        assert result.resources == ["storage"]
        assert result.skipped == ["keyvault"]
        assert result.warnings == ["Key Vault: Failed to load schema"]
        assert result.main.find_resource("keyvault") is None

    def test_every_schema_fails(self, context):
        result = assemble(["keyvault"], context=_storage_only(context))
        assert result.main.resources == ()
        assert result.main.variables == ()
        assert result.main.parameter_names() == ["location", "environment", "resourcePrefix"]

    def test_live_provider_corrects_api_version(self, context):
        provider = FakeLiveProvider(
            types=["Microsoft.Storage/storageAccounts"],
            versions={"Microsoft.Storage/storageAccounts": ["2021-04-01", "2023-01-01"]},
        )
        result = assemble(["storage"], context=replace(context, metadata_provider=provider))
        assert result.checks["storage"].source == "live"
        assert result.warnings == [
            "Storage Account: API versions 2021-06-01, 2021-08-01, 2022-05-01 may be invalid",
            "Storage Account: Auto-corrected to use API version 2023-01-01",
        ]
        assert result.main.find_resource("storage").api_version == "2023-01-01"

    def test_live_provider_rejects_type(self, context):
        provider = FakeLiveProvider(types=[], versions={})
        result = assemble(["storage"], context=replace(context, metadata_provider=provider))
        assert result.warnings[0] == "Storage Account: Resource type may not be valid"
        assert result.resources == ["storage"]

    def test_live_failure_falls_back_offline(self, context):
        provider = FakeLiveProvider(fail=True)
        result = assemble(["storage"], context=replace(context, metadata_provider=provider))
        assert result.checks["storage"].source == "offline"
        assert result.warnings == []


class TestModuleAssembly:
    @pytest.fixture
    def result(self, context):
        config = GenerationConfig(generate_modules=True)
        return assemble(["appplan", "webapp", "sqldatabase"], global_config=config, context=context)

    def test_main_declares_modules(self, result):
        text = result.text
        assert "module appplanModule 'modules/appplan.bicep' = {" in text
        assert "  name: 'appplan-deployment'" in text
        assert "    resourcePrefix: resourcePrefix" in text
        assert "  dependsOn: [\n    appplanModule\n  ]" in text
        assert "output webappId string = webappModule.outputs.resourceId" in text
        assert "commonTags" not in text

    def test_module_documents(self, result):
        assert list(result.modules) == ["appplan", "webapp", "sqldatabase"]
        plan = result.modules["appplan"]
        assert plan.parameter_names() == ["location", "environment", "resourcePrefix", "appplan_skuName"]
        text = plan.render()
        assert text.startswith("// appplan module\n")
        assert "param location string\n" in text
        assert "output resourceId string = appplan.id" in text
        assert "tags" not in text

    def test_module_drops_parameters_without_defaults(self, result):
        sql = result.modules["sqldatabase"]
        assert sql.parameter_names() == ["location", "environment", "resourcePrefix"]
        assert sql.find_resource("sqldatabase").body["properties"] == {}

    def test_web_app_module_has_no_plan_reference(self, result):
        webapp = result.modules["webapp"].find_resource("webapp")
        assert "serverFarmId" not in webapp.body["properties"]

    def test_to_dict(self, result):
        data = result.to_dict()
        assert set(data["modules"]) == {"appplan", "webapp", "sqldatabase"}
        assert data["resources"] == ["appplan", "webapp", "sqldatabase"]
        assert data["checks"]["appplan"]["resourceTypeValid"] is True
