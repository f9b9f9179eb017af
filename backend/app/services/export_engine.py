"""
Export / import sinks for ledger content.

Outputs:
  - Inspection CSV, cost-estimation CSV, blank BOQ template CSV (pandas)
  - Inspection KML placemarks (KML 2.2)
  - Project JSON document (both ledgers + current location)

Inputs:
  - BOQ CSV in the template layout, appended to a cost ledger
  - Map markers from CSV (lat/lng columns) or KML placemarks
  - Project JSON document

Ledgers are only read here; imports go through Ledger.add_item /
ProjectWorkspace.load_snapshot so derived quantities are always recomputed.
"""
import io
import json
import logging
import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Union

import pandas as pd

from app.services.ledger_engine import Ledger, ValidationError
from app.services.quantity_engine import format_money, format_quantity

logger = logging.getLogger("sitebook-export")

KML_NS = "http://www.opengis.net/kml/2.2"

INSPECTION_COLUMNS = ["ID", "Asset", "Status", "Recommendation", "Quantity", "Photos", "Latitude", "Longitude"]
COST_COLUMNS = ["BOQ Ref", "Description", "Unit", "NR", "Length", "Width", "Height",
                "Total Qty", "Rate", "Amount", "Remarks"]
BOQ_TEMPLATE_COLUMNS = ["BOQ Ref", "Description", "Unit", "NR", "Length (m)", "Width (m)",
                        "Height (m)", "Total Qty", "Rate", "Amount", "Remarks"]


@dataclass
class MapMarker:
    name: str
    latitude: float
    longitude: float


def _blank(value: Any) -> Any:
    return "" if value is None else value


def _coord(value: Any) -> str:
    return "" if value is None else f"{value:.6f}"


# ── CSV ───────────────────────────────────────────────────────────────────────

def inspection_csv(ledger: Ledger) -> str:
    rows = []
    for index, item in enumerate(ledger, start=1):
        rows.append({
            "ID": index,
            "Asset": item.description,
            "Status": item.status,
            "Recommendation": item.remarks,
            "Quantity": format_quantity(item.derived_quantity),
            "Photos": len(item.attachments),
            "Latitude": _coord(item.location.latitude if item.location else None),
            "Longitude": _coord(item.location.longitude if item.location else None),
        })
    return pd.DataFrame(rows, columns=INSPECTION_COLUMNS).to_csv(index=False)


def cost_csv(ledger: Ledger) -> str:
    rows = []
    for item in ledger:
        dims = item.dimensions
        rows.append({
            "BOQ Ref": item.reference_code or "",
            "Description": item.description,
            "Unit": item.unit,
            "NR": dims.count,
            "Length": _blank(dims.length),
            "Width": _blank(dims.width),
            "Height": _blank(dims.height),
            "Total Qty": format_quantity(item.derived_quantity),
            "Rate": _blank(item.rate),
            "Amount": format_money(item.amount),
            "Remarks": item.remarks,
        })
    return pd.DataFrame(rows, columns=COST_COLUMNS).to_csv(index=False)


def boq_template_csv() -> str:
    return ",".join(BOQ_TEMPLATE_COLUMNS) + "\n"


def _read_csv(source: Union[str, bytes]) -> pd.DataFrame:
    if isinstance(source, bytes):
        source = source.decode("utf-8-sig")
    try:
        df = pd.read_csv(io.StringIO(source), dtype=str, keep_default_na=False, skip_blank_lines=True)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    df.columns = df.columns.str.strip()
    return df


def import_boq_csv(ledger: Ledger, source: Union[str, bytes]) -> Dict[str, int]:
    """
    Append every valid row of a template-layout CSV to ``ledger``. The
    stored Total Qty / Amount columns are ignored; they are recomputed.
    Imported rows do not count towards most-used usage.
    """
    df = _read_csv(source)

    def col(row, *names):
        for name in names:
            if name in row and str(row[name]).strip():
                return str(row[name]).strip()
        return ""

    imported = skipped = 0
    for _, row in df.iterrows():
        try:
            ledger.add_item(
                reference_code=col(row, "BOQ Ref"),
                description=col(row, "Description"),
                unit=col(row, "Unit"),
                count=col(row, "NR"),
                length=col(row, "Length (m)", "Length"),
                width=col(row, "Width (m)", "Width"),
                height=col(row, "Height (m)", "Height"),
                rate=col(row, "Rate"),
                remarks=col(row, "Remarks"),
                record_usage=False,
            )
            imported += 1
        except ValidationError as e:
            skipped += 1
            logger.info(f"BOQ CSV row skipped: {e}")
    return {"imported": imported, "skipped": skipped}


# ── KML ───────────────────────────────────────────────────────────────────────

def inspection_kml(ledger: Ledger, document_name: str = "Inspection Report") -> str:
    """One Placemark per located inspection row; unlocated rows are left out."""
    ET.register_namespace("", KML_NS)
    kml = ET.Element(f"{{{KML_NS}}}kml")
    doc = ET.SubElement(kml, f"{{{KML_NS}}}Document")
    ET.SubElement(doc, f"{{{KML_NS}}}name").text = document_name

    for item in ledger:
        if item.location is None:
            continue
        pm = ET.SubElement(doc, f"{{{KML_NS}}}Placemark")
        ET.SubElement(pm, f"{{{KML_NS}}}name").text = item.description
        ET.SubElement(pm, f"{{{KML_NS}}}description").text = (
            f"Status: {item.status}\n"
            f"Recommendation: {item.remarks}\n"
            f"Quantity: {format_quantity(item.derived_quantity)}"
        )
        point = ET.SubElement(pm, f"{{{KML_NS}}}Point")
        ET.SubElement(point, f"{{{KML_NS}}}coordinates").text = (
            f"{item.location.longitude:.6f},{item.location.latitude:.6f},0"
        )

    body = ET.tostring(kml, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body


def _marker(name: Any, lat: Any, lng: Any) -> Union[MapMarker, None]:
    try:
        latitude, longitude = float(lat), float(lng)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return None
    if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        return None
    return MapMarker(str(name).strip() or "Marker", latitude, longitude)


def parse_markers(filename: str, payload: Union[str, bytes]) -> List[MapMarker]:
    """Map-data import from .csv or .kml; rows without usable coordinates are skipped."""
    lower = (filename or "").lower()
    if lower.endswith(".csv"):
        return _markers_from_csv(payload)
    if lower.endswith(".kml"):
        return _markers_from_kml(payload)
    raise ValueError("Unsupported map file; upload .csv or .kml")


def _markers_from_csv(payload: Union[str, bytes]) -> List[MapMarker]:
    df = _read_csv(payload)

    def first(row, *names):
        for name in names:
            if name in row and str(row[name]).strip():
                return row[name]
        return None

    markers = []
    for _, row in df.iterrows():
        m = _marker(
            first(row, "name", "Name", "asset", "Asset") or "Marker",
            first(row, "latitude", "Latitude", "lat"),
            first(row, "longitude", "Longitude", "lng"),
        )
        if m is not None:
            markers.append(m)
    return markers


def _markers_from_kml(payload: Union[str, bytes]) -> List[MapMarker]:
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as e:
        raise ValueError(f"Error importing file: {e}")
    markers = []
    for placemark in root.iter():
        if not placemark.tag.endswith("Placemark"):
            continue
        name, coords = "Marker", None
        for child in placemark.iter():
            if child.tag.endswith("name") and child.text:
                name = child.text
            elif child.tag.endswith("coordinates") and child.text:
                coords = child.text.strip().split(",")
        if not coords or len(coords) < 2:
            continue
        m = _marker(name, coords[1], coords[0])
        if m is not None:
            markers.append(m)
    return markers


# ── Project JSON ──────────────────────────────────────────────────────────────

def export_project(workspace) -> str:
    now = datetime.now(timezone.utc)
    snapshot = workspace.to_snapshot()
    document = {
        "name": f"Project_{now.date().isoformat()}",
        "date": now.isoformat(),
        "project_key": workspace.project_key,
        "location": snapshot["location"],
        "inspection": snapshot["inspection"],
        "cost": snapshot["cost"],
    }
    return json.dumps(document, indent=2)


def import_project(workspace, payload: Union[str, bytes]) -> Dict[str, int]:
    """Replace the workspace ledgers from an exported project document."""
    try:
        document = json.loads(payload)
    except ValueError as e:
        raise ValidationError(f"Error importing project: {e}")
    if not isinstance(document, dict):
        raise ValidationError("Error importing project: not a project document")
    try:
        workspace.load_snapshot(document)
    except (AttributeError, TypeError, ValueError) as e:
        raise ValidationError(f"Error importing project: {e}")
    return {
        "inspection_items": len(workspace.inspection),
        "cost_items": len(workspace.cost),
    }
