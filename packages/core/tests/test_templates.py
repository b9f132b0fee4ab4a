"""Tests for starter schemas, templates and schema enhancement."""

from __future__ import annotations

import json

import pytest
from bicepforge.dialect import DocumentKind, classify_text
from bicepforge.errors import SchemaLoadError
from bicepforge.sources import InMemorySchemaSource
from bicepforge.templates import enhance_schema, looks_like_resource, starter_schema, starter_template
from bicepforge.validator import validate_resource_schema, validate_template


class TestStarterSchema:
    @pytest.mark.parametrize("alias,title", [("storage", "Storage Account Schema"), ("vm", "Virtual Machine Schema")])
    def test_aliases_load_dedicated_schema(self, alias, title):
        assert starter_schema(alias)["title"] == title

    def test_full_type_is_case_insensitive(self):
        schema = starter_schema("microsoft.keyvault/VAULTS")
        assert schema["properties"]["type"]["const"] == "Microsoft.KeyVault/vaults"

    def test_generic_known_type(self):
        schema = starter_schema("Microsoft.ContainerRegistry/registries")
        assert schema["title"] == "Container Registry Schema"
        assert schema["properties"]["apiVersion"]["enum"] == ["2021-09-01", "2022-12-01", "2023-07-01"]
        assert "location" in schema["required"]
        assert validate_resource_schema(schema).warnings == []

    def test_generic_type_without_location(self):
        schema = starter_schema("Microsoft.Authorization/roleAssignments")
        assert "location" not in schema["properties"]
        assert "tags" not in schema["properties"]
        assert schema["required"] == ["apiVersion", "type", "name"]

    def test_unknown_type_uses_fallback_version(self):
        schema = starter_schema("Contoso.Widgets/gadgets")
        assert schema["properties"]["apiVersion"]["enum"] == ["2022-01-01"]
        assert schema["title"] == "gadgets Schema"

    def test_custom_source(self):
        source = InMemorySchemaSource({"webApp": {"type": "object", "title": "Custom"}})
        assert starter_schema("webapp", source=source)["title"] == "Custom"

    def test_custom_source_missing(self):
        with pytest.raises(SchemaLoadError):
            starter_schema("storage", source=InMemorySchemaSource())


class TestStarterTemplate:
    def test_is_valid_template(self):
        template = starter_template()
        result = validate_template(template)
        assert result.is_valid
        assert result.warnings == []

    def test_classifies_as_template(self):
        assert classify_text(json.dumps(starter_template())).kind is DocumentKind.DEPLOYMENT_TEMPLATE

    def test_fresh_copy(self):
        first = starter_template()
        first["resources"].append({})
        assert starter_template()["resources"] == []


class TestEnhanceSchema:
    def test_fills_resource_boilerplate(self, registry):
        schema = {
            "type": "object",
            "properties": {"type": {"type": "string", "const": "Microsoft.KeyVault/vaults"}},
        }
        enhanced = enhance_schema(schema, registry)
        assert enhanced["$schema"] == "http://json-schema.org/draft-07/schema#"
        assert enhanced["title"] == "Key Vault Schema"
        assert list(enhanced["properties"]) == ["type", "apiVersion", "name"]
        assert enhanced["properties"]["apiVersion"] == {
            "type": "string",
            "description": "The API version for the resource",
        }
        assert enhanced["properties"]["type"] == {"type": "string", "const": "Microsoft.KeyVault/vaults"}
        assert enhanced["required"] == ["apiVersion", "type", "name"]
        assert validate_resource_schema(enhanced).is_valid

    def test_input_is_not_mutated(self, registry):
        schema = {"type": "object", "properties": {"name": {"type": "string"}}}
        enhance_schema(schema, registry)
        assert schema == {"type": "object", "properties": {"name": {"type": "string"}}}

    def test_existing_values_kept(self, registry):
        schema = {
            "$schema": "https://example.com/schema",
            "title": "Mine",
            "type": "object",
            "properties": {"name": {"type": "string", "minLength": 3}},
            "required": ["name", "location"],
        }
        enhanced = enhance_schema(schema, registry)
        assert enhanced["$schema"] == "https://example.com/schema"
        assert enhanced["title"] == "Mine"
        assert enhanced["properties"]["name"] == {"type": "string", "minLength": 3}
        assert enhanced["required"] == ["name", "location", "apiVersion", "type"]

    def test_unknown_type_gets_no_title(self, registry):
        schema = {"type": "object", "properties": {"type": {"const": "Contoso.Widgets/gadgets"}}}
        assert "title" not in enhance_schema(schema, registry)

    def test_plain_schema_only_gets_schema_url(self, registry):
        schema = {"type": "object", "title": "Settings", "properties": {"retries": {"type": "integer"}}}
        enhanced = enhance_schema(schema, registry)
        assert enhanced == {**schema, "$schema": "http://json-schema.org/draft-07/schema#"}

    def test_bicep_title_marks_a_resource(self):
        assert looks_like_resource({"title": "My Bicep resource", "properties": {}})
        assert not looks_like_resource({"title": "My Bicep resource"})
        assert not looks_like_resource({"properties": {"retries": {"type": "integer"}}})
