"""
test_export_engine.py — CSV / KML / project JSON exports and imports.
"""

import io
import json

import pandas as pd
import pytest

from app.services import export_engine
from app.services.ledger_engine import ValidationError


class TestCsvExports:

    def test_cost_csv_columns_and_values(self, cost_ledger):
        cost_ledger.add_item(reference_code="A001", count=2, length=3, width=4, remarks="lane 2")
        df = pd.read_csv(io.StringIO(export_engine.cost_csv(cost_ledger)), dtype=str, keep_default_na=False)
        assert list(df.columns) == export_engine.COST_COLUMNS
        row = df.iloc[0]
        assert row["BOQ Ref"] == "A001"
        assert row["Total Qty"] == "24.000"
        assert row["Amount"] == "1092.00"
        assert row["Height"] == ""

    def test_inspection_csv(self, inspection_ledger):
        inspection_ledger.add_item(description="Lamp post", status="Damaged",
                                   remarks="Replace", attachments=["a.jpg", "b.jpg"])
        df = pd.read_csv(io.StringIO(export_engine.inspection_csv(inspection_ledger)),
                         dtype=str, keep_default_na=False)
        assert list(df.columns) == export_engine.INSPECTION_COLUMNS
        row = df.iloc[0]
        assert row["ID"] == "1"
        assert row["Photos"] == "2"
        assert row["Latitude"] == "25.285400"

    def test_empty_ledger_has_header_only(self, cost_ledger):
        assert export_engine.cost_csv(cost_ledger).strip() == ",".join(export_engine.COST_COLUMNS)

    def test_template_header(self):
        assert export_engine.boq_template_csv().startswith("BOQ Ref,Description,Unit,NR,Length (m)")


class TestBoqImport:

    def test_imports_valid_rows_and_recomputes(self, cost_ledger, tracker, boq_csv_bytes):
        result = export_engine.import_boq_csv(cost_ledger, boq_csv_bytes)
        assert result == {"imported": 2, "skipped": 1}
        first, second = cost_ledger.items
        assert first.description == "Asphalt overlay"
        assert first.derived_quantity == pytest.approx(24.0)
        assert first.amount == pytest.approx(1092.0)
        assert second.amount == pytest.approx(375.0)
        assert tracker.as_dict() == {}

    def test_empty_file(self, cost_ledger):
        assert export_engine.import_boq_csv(cost_ledger, b"") == {"imported": 0, "skipped": 0}


class TestKml:

    def test_located_rows_only(self, inspection_ledger, id_factory):
        from app.services.ledger_engine import Ledger
        inspection_ledger.add_item(description="Light 1")
        unlocated = Ledger("inspection", id_factory=id_factory)
        unlocated.add_item(description="No fix")
        kml = export_engine.inspection_kml(inspection_ledger)
        assert kml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert "<name>Light 1</name>" in kml
        assert "51.531000,25.285400,0" in kml
        assert "<Placemark>" not in export_engine.inspection_kml(unlocated)

    def test_kml_round_trips_through_marker_import(self, inspection_ledger):
        inspection_ledger.add_item(description="Light 1")
        markers = export_engine.parse_markers("site.kml", export_engine.inspection_kml(inspection_ledger))
        assert len(markers) == 1
        assert markers[0].name == "Light 1"
        assert markers[0].latitude == pytest.approx(25.2854)


class TestMarkers:

    def test_csv_markers(self):
        payload = b"name,latitude,longitude\nGate,25.1,51.2\nBad,abc,51\nFar,95,0\n"
        markers = export_engine.parse_markers("points.CSV", payload)
        assert [(m.name, m.latitude, m.longitude) for m in markers] == [("Gate", 25.1, 51.2)]

    def test_unsupported_extension(self):
        with pytest.raises(ValueError, match="Unsupported"):
            export_engine.parse_markers("points.gpx", b"")

    def test_malformed_kml(self):
        with pytest.raises(ValueError):
            export_engine.parse_markers("x.kml", b"<kml><Document>")


class TestProjectJson:

    def test_export_then_import(self, registry, workspace):
        workspace.cost.add_item(reference_code="A002", length=4)
        workspace.inspection.add_item(description="Culvert")
        document = export_engine.export_project(workspace)
        assert json.loads(document)["name"].startswith("Project_")

        other = registry.get("site-b")
        result = export_engine.import_project(other, document)
        assert result == {"inspection_items": 1, "cost_items": 1}
        assert other.cost.total == pytest.approx(500.0)

    def test_bad_json(self, workspace):
        with pytest.raises(ValidationError):
            export_engine.import_project(workspace, "{nope")

    def test_not_an_object(self, workspace):
        with pytest.raises(ValidationError):
            export_engine.import_project(workspace, "[]")

    def test_wrong_section_shape(self, workspace):
        with pytest.raises(ValidationError):
            export_engine.import_project(workspace, json.dumps({"cost": ["x"]}))

    def test_non_numeric_location_is_validation_error(self, workspace):
        payload = json.dumps({"location": {"latitude": "abc", "longitude": 1}})
        with pytest.raises(ValidationError, match="Error importing project"):
            export_engine.import_project(workspace, payload)

    def test_duplicate_cost_ids_keep_existing_rows(self, workspace):
        workspace.inspection.add_item(description="Original row")
        payload = json.dumps({
            "inspection": {"items": [{"id": "n1", "description": "Imported"}]},
            "cost": {"items": [{"id": "d"}, {"id": "d"}]},
        })
        with pytest.raises(ValidationError):
            export_engine.import_project(workspace, payload)
        assert [i.description for i in workspace.inspection] == ["Original row"]

    def test_non_object_rows_rejected(self, workspace):
        with pytest.raises(ValidationError):
            export_engine.import_project(workspace, json.dumps({"cost": {"items": ["x"]}}))
