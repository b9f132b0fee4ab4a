"""Tests for dialect classification."""

from __future__ import annotations

import json

import pytest
from bicepforge.dialect import DocumentKind, classify_text, validate_document
from bicepforge.errors import DocumentParseError


class TestClassify:
    def test_template(self, vm_template):
        doc = classify_text(json.dumps(vm_template))
        assert doc.kind is DocumentKind.DEPLOYMENT_TEMPLATE
        assert doc.data["contentVersion"] == "1.0.0.0"

    def test_schema(self, storage_schema):
        assert classify_text(json.dumps(storage_schema)).kind is DocumentKind.RESOURCE_SCHEMA

    def test_schema_with_resources_but_no_schema_url(self):
        assert classify_text('{"resources": []}').kind is DocumentKind.RESOURCE_SCHEMA

    def test_bicep(self):
        doc = classify_text("  param location string = 'eastus'\n")
        assert doc.kind is DocumentKind.BICEP
        assert doc.data is None
        assert doc.text == "param location string = 'eastus'"

    @pytest.mark.parametrize("text", ["", "   \n"])
    def test_empty(self, text):
        with pytest.raises(DocumentParseError, match="Please provide"):
            classify_text(text)

    def test_broken_template_json(self):
        with pytest.raises(DocumentParseError, match="deployment template syntax") as exc:
            classify_text('{"$schema": "x", "resources": [')
        assert exc.value.parser_message

    def test_unsupported_text(self):
        with pytest.raises(DocumentParseError, match="Unsupported content"):
            classify_text("hello world")

    def test_json_array(self):
        with pytest.raises(DocumentParseError, match="Expected a JSON object, got list"):
            classify_text("[1, 2]")


class TestValidateDocument:
    def test_routes_to_template_validator(self, vm_template):
        assert validate_document(json.dumps(vm_template)).dialect == "deployment_template"

    def test_routes_to_bicep_validator(self):
        result = validate_document("resource sa 'A.B/c@2022-01-01' = {\n}\n")
        assert result.dialect == "bicep"
        assert result.is_valid

    def test_routes_to_schema_validator(self):
        result = validate_document('{"type": "object"}')
        assert result.dialect == "resource_schema"
        assert len(result.warnings) == 2
