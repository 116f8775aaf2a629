"""Tests for the module catalog repository."""
import pytest


class TestModuleCatalog:

    def test_default_catalog_has_all_modules(self):
        from dayhoff.module_catalog import get_default_catalog
        catalog = get_default_catalog()
        assert catalog.ids == [
            "rfdiffusion", "proteinmpnn", "alphafold2", "esmfold",
            "evoprotgrad", "rfantibody", "temstapro", "geodock",
        ]
        assert len(catalog) == 8

    def test_lookup_by_id(self):
        from dayhoff.module_catalog import get_module_by_id, ModuleCategory
        module = get_module_by_id("proteinmpnn")
        assert module.display_name == "ProteinMPNN"
        assert module.input_formats == ("PDB",)
        assert module.output_formats == ("FASTA",)
        assert module.category == ModuleCategory.PROTEIN
        assert module.requires_gpu is False

    def test_unknown_id_returns_none(self):
        from dayhoff.module_catalog import get_module_by_id
        assert get_module_by_id("not-a-module") is None

    def test_contains(self):
        from dayhoff.module_catalog import get_default_catalog
        catalog = get_default_catalog()
        assert "geodock" in catalog
        assert "GeoDock" not in catalog

    def test_duplicate_ids_rejected(self):
        from dayhoff.module_catalog import MODULE_CATALOG, ModuleCatalog
        with pytest.raises(ValueError, match="Duplicate module id"):
            ModuleCatalog((MODULE_CATALOG[0], MODULE_CATALOG[0]))

    def test_descriptors_are_immutable(self):
        from dataclasses import FrozenInstanceError
        from dayhoff.module_catalog import get_module_by_id
        module = get_module_by_id("rfdiffusion")
        with pytest.raises(FrozenInstanceError):
            module.display_name = "Changed"

    def test_summary_shape(self):
        from dayhoff.module_catalog import get_module_by_id
        summary = get_module_by_id("rfantibody").to_summary()
        assert summary["id"] == "rfantibody"
        assert summary["category"] == "antibody"
        assert summary["outputFormats"] == ["PDB", "FASTA"]
        assert summary["gpu"] is True
