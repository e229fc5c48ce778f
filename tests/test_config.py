"""Tests for the shipped data bundle loaders."""

import json

import pytest

pytestmark = pytest.mark.integration

from aquatrack.config import (
    DATA_DIR,
    ENGINE_PACKAGE_PATH,
    PRODUCT_CATALOG_PATH,
    PROTOCOL_RULESET_PATH,
    load_engine_package,
    load_json,
    load_product_catalog,
    load_protocol_ruleset,
)
from aquatrack.schemas import EnginePackage, ProductCatalog


class TestBundle:
    """Test the shipped JSON documents."""

    def test_files_present(self):
        """All three documents live in the data directory."""
        for path in (ENGINE_PACKAGE_PATH, PRODUCT_CATALOG_PATH, PROTOCOL_RULESET_PATH):
            assert path.parent == DATA_DIR
            assert path.exists()

    def test_loaders_validate(self):
        """Package and catalog load as validated models."""
        assert isinstance(load_engine_package(), EnginePackage)
        assert isinstance(load_product_catalog(), ProductCatalog)
        assert "phases" in load_protocol_ruleset()

    def test_custom_path(self, tmp_path):
        """A caller-supplied path replaces the shipped document."""
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"catalog_id": "mine", "products": []}), encoding="utf-8")
        catalog = load_product_catalog(path)
        assert catalog.catalog_id == "mine"
        assert catalog.products == []


class TestLoadJson:
    """Test raw JSON loading."""

    def test_missing_file(self, tmp_path):
        """A missing file raises FileNotFoundError naming it."""
        with pytest.raises(FileNotFoundError, match="absent.json"):
            load_json(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path):
        """Malformed JSON raises a decode error."""
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(json.JSONDecodeError):
            load_json(path)

    def test_string_path(self, tmp_path):
        """String paths are accepted."""
        path = tmp_path / "doc.json"
        path.write_text('{"a": 1}', encoding="utf-8")
        assert load_json(str(path)) == {"a": 1}
