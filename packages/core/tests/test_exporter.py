"""Tests for the Bicep renderer, parameters files and deployment packages."""

from __future__ import annotations

import json

import pytest
import yaml
from bicepforge.assembler import assemble
from bicepforge.declarations import (
    Call,
    Expr,
    ForExpr,
    GeneratedDocument,
    Interp,
    Module,
    Output,
    Param,
    Resource,
    Ternary,
    Variable,
)
from bicepforge.exporter import FORMATS, SCHEMA_FORMATS, export_document, export_schema, package_files, write_package
from bicepforge.exporter.bicep import bicep_string, render_document, render_param, render_value
from bicepforge.exporter.parameters import PARAMETERS_SCHEMA, parameters_file
from bicepforge.models import GenerationConfig


@pytest.fixture
def small_doc() -> GeneratedDocument:
    return GeneratedDocument(
        header=("Small document", ""),
        metadata=(("author", "tests"),),
        parameters=(
            Param("location", default=Expr("resourceGroup().location")),
            Param("sku", default="Standard_LRS", allowed=("Standard_LRS", "Premium_LRS")),
            Param("count", "int", default=2),
            Param("subnets", "array", default=("a", "b")),
            Param("adminPassword", secure=True),
        ),
        variables=(Variable("prefix", "app"),),
        resources=(
            Resource(
                symbol="sa",
                resource_type="Microsoft.Storage/storageAccounts",
                api_version="2022-05-01",
                body={"name": Interp("${prefix}sa"), "location": Expr("location")},
                depends_on=("plan",),
            ),
        ),
        outputs=(Output("saId", "string", Expr("sa.id"), "Storage id"),),
    )


class TestRenderValue:
    def test_scalars(self):
        assert render_value(None) == "null"
        assert render_value(True) == "true"
        assert render_value(3) == "3"
        assert render_value("it's") == "'it\\'s'"

    def test_expression_verbatim(self):
        assert render_value(Expr("resourceGroup().location")) == "resourceGroup().location"

    def test_nested_dict(self):
        value = {"sku": {"name": "Standard_LRS"}, "tags": {}, "zones": []}
        assert render_value(value) == "{\n  sku: {\n    name: 'Standard_LRS'\n  }\n  tags: {}\n  zones: []\n}"

    def test_quoted_keys(self):
        assert render_value({"$schema": "x"}) == "{\n  '$schema': 'x'\n}"

    def test_list(self):
        assert render_value(["a", 1]) == "[\n  'a'\n  1\n]"

    def test_call_and_ternary(self):
        assert render_value(Call("union", (Expr("tags"), {"a": "b"}))) == "union(tags, {\n  a: 'b'\n})"
        assert render_value(Ternary("x", "y")) == "x ? 'y' : null"

    def test_for_expression(self):
        assert render_value(ForExpr("item", "items", Expr("item.id"))) == "[for item in items: item.id]"

    def test_unsupported(self):
        with pytest.raises(TypeError):
            render_value(object())

    def test_bicep_string_escapes(self):
        assert bicep_string("a\\b\nc") == "'a\\\\b\\nc'"

    def test_literal_interpolation_is_escaped(self):
        assert render_value("${secret}") == "'\\${secret}'"
        assert bicep_string("cost: ${0}") == "'cost: \\${0}'"

    def test_interp_keeps_interpolation(self):
        assert render_value(Interp("${prefix}-'x'")) == "'${prefix}-\\'x\\''"


class TestRenderDocument:
    def test_header_and_scope(self, small_doc):
        text = render_document(small_doc)
        assert text.startswith("// Small document\n//\n\ntargetScope = 'resourceGroup'\n\nmetadata author = 'tests'\n")
        assert text.endswith("output saId string = sa.id\n")

    def test_param_decorators(self):
        text = render_param(Param("sku", description="SKU", default="B1", allowed=("B1", "S1"), min_length=2))
        assert text == "@description('SKU')\n@minLength(2)\n@allowed(['B1', 'S1'])\nparam sku string = 'B1'"

    def test_param_default_description(self):
        assert render_param(Param("x")).startswith("@description('Parameter for x')")

    def test_resource_with_depends_on(self, small_doc):
        text = render_document(small_doc)
        assert (
            "resource sa 'Microsoft.Storage/storageAccounts@2022-05-01' = {\n"
            "  name: '${prefix}sa'\n"
            "  location: location\n"
            "  dependsOn: [\n"
            "    plan\n"
            "  ]\n"
            "}"
        ) in text

    def test_existing_resource(self):
        doc = GeneratedDocument(
            resources=(
                Resource("vnet", "Microsoft.Network/virtualNetworks", "2023-05-01", {"name": "hub"}, existing=True),
            )
        )
        assert "resource vnet 'Microsoft.Network/virtualNetworks@2023-05-01' existing = {" in doc.render()

    def test_module(self):
        doc = GeneratedDocument(
            resources=(
                Module("storageModule", "modules/storage.bicep", "storage-deployment", {"location": Expr("location")}),
            )
        )
        assert (
            "module storageModule 'modules/storage.bicep' = {\n"
            "  name: 'storage-deployment'\n"
            "  params: {\n"
            "    location: location\n"
            "  }\n"
            "}"
        ) in doc.render()

    def test_empty_sections_skipped(self):
        text = GeneratedDocument().render()
        assert text == "targetScope = 'resourceGroup'\n"


class TestParametersFile:
    def test_literal_defaults_only(self, small_doc):
        data = parameters_file(small_doc)
        assert data["$schema"] == PARAMETERS_SCHEMA
        assert data["contentVersion"] == "1.0.0.0"
        assert data["parameters"] == {
            "sku": {"value": "Standard_LRS"},
            "count": {"value": 2},
            "subnets": {"value": ["a", "b"]},
        }

    def test_overrides_for_declared_parameters(self, small_doc):
        data = parameters_file(small_doc, {"location": "westeurope", "unknown": 1, "adminPassword": "x"})
        assert data["parameters"]["location"] == {"value": "westeurope"}
        assert "unknown" not in data["parameters"]
        assert "adminPassword" not in data["parameters"]

    def test_expression_inside_object_is_not_literal(self):
        doc = GeneratedDocument(parameters=(Param("tags", "object", default={"env": Expr("environment")}),))
        assert parameters_file(doc)["parameters"] == {}


class TestExportDocument:
    def test_bicep(self, small_doc):
        assert export_document(small_doc) == small_doc.render()

    def test_parameters_alias(self, small_doc):
        data = json.loads(export_document(small_doc, "params"))
        assert "sku" in data["parameters"]

    def test_writes_output(self, small_doc, tmp_path):
        out = tmp_path / "main.bicep"
        content = export_document(small_doc, "BICEP", str(out))
        assert out.read_text() == content

    def test_unknown_format(self, small_doc):
        with pytest.raises(ValueError, match="Unknown export format"):
            export_document(small_doc, "terraform")

    def test_formats(self):
        assert FORMATS == ("bicep", "parameters")


class TestExportSchema:
    def test_json(self, storage_schema):
        text = export_schema(storage_schema)
        assert text.endswith("}\n")
        assert json.loads(text) == storage_schema

    def test_yaml_keeps_key_order(self, storage_schema):
        text = export_schema(storage_schema, "yaml")
        assert text.startswith("$schema: ")
        assert yaml.safe_load(text) == storage_schema
        assert list(yaml.safe_load(text)) == list(storage_schema)

    def test_yaml_to_file(self, storage_schema, tmp_path):
        out = tmp_path / "bicep-schema.yaml"
        content = export_schema(storage_schema, "YML", str(out))
        assert out.read_text() == content

    def test_unknown_format(self, storage_schema):
        with pytest.raises(ValueError, match="Unknown schema format"):
            export_schema(storage_schema, "toml")

    def test_formats(self):
        assert SCHEMA_FORMATS == ("json", "yaml")


class TestPackage:
    def test_inline_package_files(self, context):
        result = assemble(["storage", "keyvault"], context=context)
        files = package_files(result)
        assert list(files) == ["main.bicep", "main.parameters.json", "README.md", "deploy.ps1"]
        assert "- Storage Account\n- Key Vault" in files["README.md"]
        assert files["README.md"].rstrip().endswith("Generated by bicepforge")
        assert "New-AzResourceGroupDeployment" in files["deploy.ps1"]
        assert json.loads(files["main.parameters.json"]) == result.parameters

    def test_package_without_parameters(self, context):
        result = assemble(["storage"], global_config=GenerationConfig(include_parameters=False), context=context)
        assert "main.parameters.json" not in package_files(result)

    def test_write_module_package(self, context, tmp_path):
        config = GenerationConfig(generate_modules=True)
        result = assemble(["appplan", "webapp"], global_config=config, context=context)
        written = write_package(result, tmp_path / "out")
        names = sorted(p.relative_to(tmp_path / "out").as_posix() for p in written)
        assert names == [
            "README.md",
            "deploy.ps1",
            "main.bicep",
            "main.parameters.json",
            "modules/appplan.bicep",
            "modules/webapp.bicep",
        ]
        assert (tmp_path / "out" / "modules" / "webapp.bicep").read_text() == result.modules["webapp"].render()
