"""Tests for schema sources."""

from __future__ import annotations

import urllib.error

import pytest
from bicepforge import sources
from bicepforge.errors import SchemaLoadError
from bicepforge.sources import DirectorySchemaSource, HttpSchemaSource, InMemorySchemaSource


class TestDirectorySource:
    def test_bundled_names(self):
        names = DirectorySchemaSource().names()
        assert "storageAccount" in names
        assert names == sorted(names)

    def test_load_returns_fresh_copy(self):
        source = DirectorySchemaSource()
        first = source.load("keyVault")
        first["title"] = "changed"
        assert source.load("keyVault")["title"] == "Key Vault Schema"

    def test_missing_file(self, tmp_path):
        with pytest.raises(SchemaLoadError) as exc:
            DirectorySchemaSource(tmp_path).load("nope")
        assert exc.value.name == "nope"

    def test_invalid_json(self, tmp_path):
        (tmp_path / "broken.json").write_text("{nope")
        with pytest.raises(SchemaLoadError, match="invalid JSON"):
            DirectorySchemaSource(tmp_path).load("broken")

    def test_not_an_object(self, tmp_path):
        (tmp_path / "list.json").write_text("[1, 2]")
        with pytest.raises(SchemaLoadError, match="not a JSON object"):
            DirectorySchemaSource(tmp_path).load("list")

    def test_env_override(self, tmp_path, monkeypatch):
        (tmp_path / "custom.json").write_text('{"type": "object"}')
        monkeypatch.setenv("BICEPFORGE_SCHEMA_DIR", str(tmp_path))
        assert DirectorySchemaSource().names() == ["custom"]


class TestHttpSource:
    def test_load(self, monkeypatch):
        seen = {}

        def fake_urlopen(req, timeout=30):
            seen["url"] = req.full_url
            return b'{"type": "object"}'

        monkeypatch.setattr(sources, "urlopen_safe", fake_urlopen)
        schema = HttpSchemaSource("https://schemas.example.com/azure").load("storageAccount")
        assert schema == {"type": "object"}
        assert seen["url"] == "https://schemas.example.com/azure/storageAccount.json"

    def test_http_error(self, monkeypatch):
        def fake_urlopen(req, timeout=30):
            raise urllib.error.HTTPError(req.full_url, 404, "Not Found", {}, None)

        monkeypatch.setattr(sources, "urlopen_safe", fake_urlopen)
        with pytest.raises(SchemaLoadError, match="HTTP 404"):
            HttpSchemaSource("https://schemas.example.com").load("storageAccount")

    def test_network_error(self, monkeypatch):
        def fake_urlopen(req, timeout=30):
            raise urllib.error.URLError("no route")

        monkeypatch.setattr(sources, "urlopen_safe", fake_urlopen)
        with pytest.raises(SchemaLoadError, match="failed"):
            HttpSchemaSource("https://schemas.example.com").load("storageAccount")


class TestInMemorySource:
    def test_add_and_load(self):
        source = InMemorySchemaSource()
        source.add("a", {"type": "object"})
        assert source.load("a") == {"type": "object"}
        assert source.names() == ["a"]

    def test_isolated_from_caller(self):
        schema = {"type": "object"}
        source = InMemorySchemaSource({"a": schema})
        schema["type"] = "array"
        loaded = source.load("a")
        loaded["type"] = "string"
        assert source.load("a") == {"type": "object"}

    def test_missing(self):
        with pytest.raises(SchemaLoadError, match="not registered"):
            InMemorySchemaSource().load("a")
