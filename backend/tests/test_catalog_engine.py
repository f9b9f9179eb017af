"""
test_catalog_engine.py — BOQ catalog lookup, search and CSV loading.
"""

import pytest

from app.services.catalog_engine import CatalogEngine


class TestDefaultCatalog:

    def test_three_sample_items(self, catalog):
        assert len(catalog) == 3
        assert "A002" in catalog

    def test_lookup_hit(self, catalog):
        entry = catalog.lookup("A003")
        assert entry.description == "LED street light"
        assert entry.unit == "NR"
        assert entry.rate == 850.0

    def test_lookup_miss(self, catalog):
        assert catalog.lookup("Z404") is None
        assert catalog.lookup("") is None
        assert catalog.lookup(None) is None

    def test_search_by_description(self, catalog):
        assert [e.reference_code for e in catalog.search("drain")] == ["A002"]

    def test_search_by_ref_case_insensitive(self, catalog):
        assert [e.reference_code for e in catalog.search("a00")] == ["A001", "A002", "A003"]

    def test_blank_search_lists_all(self, catalog):
        assert len(catalog.search("  ")) == 3


class TestCatalogCsv:

    def test_from_bytes(self):
        csv = (
            "BOQ Ref,Description,Unit,Rate,Asset\n"
            "B100,Concrete kerb,m,32.5,Roads\n"
            "B200,Gully pot,NR,,Drainage\n"
            ",Orphan row,m,1,\n"
        ).encode("utf-8")
        catalog = CatalogEngine.from_csv(csv)
        assert len(catalog) == 2
        assert catalog.lookup("B100").rate == 32.5
        assert catalog.lookup("B100").asset == "Roads"
        assert catalog.lookup("B200").rate is None

    def test_from_path(self, tmp_path):
        path = tmp_path / "catalog.csv"
        path.write_text("BOQ Ref,Description,Unit,Rate\nC1,Fence,m,12\n", encoding="utf-8")
        assert CatalogEngine.from_csv(str(path)).lookup("C1").rate == 12.0

    def test_missing_ref_column(self):
        with pytest.raises(ValueError, match="BOQ Ref"):
            CatalogEngine.from_csv(b"Code,Description\nX,Y\n")
