"""
Ledger API routes — inspection / cost rows, quantity calculator, BOQ catalog,
most-used shortcuts, exports and imports for one project workspace.

    GET    /api/workspaces/{key}/ledgers/{kind}                 — rows + total
    POST   /api/workspaces/{key}/ledgers/{kind}/items           — add a row
    DELETE /api/workspaces/{key}/ledgers/{kind}/items/{item_id} — remove (confirm=true)
    POST   /api/workspaces/{key}/quantity                       — calculator preview
    PUT    /api/workspaces/{key}/location                       — current position
    GET    /api/workspaces/{key}/export/...                     — CSV / KML / JSON / PDF / XLSX
    POST   /api/workspaces/{key}/import/...                     — BOQ CSV / project / map markers
    GET    /api/catalog, /api/catalog/{ref}, /api/most-used, /api/boq-template.csv
"""
import logging
import os
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile
from fastapi.responses import FileResponse

from app import config
from app.api.deps import (
    get_catalog,
    get_registry,
    get_report_engine,
    get_tracker,
    get_workspace,
    valid_kind,
)
from app.models.ledger_schema import (
    CatalogEntryOut,
    GeoPointIn,
    LedgerOut,
    LineItemCreate,
    LineItemOut,
    MarkerOut,
    QuantityRequest,
    QuantityResponse,
    UsageEntry,
)
from app.services import export_engine
from app.services.catalog_engine import CatalogEngine
from app.services.ledger_engine import Ledger, ValidationError, confirm_and_remove
from app.services.quantity_engine import (
    compute_amount,
    format_money,
    format_quantity,
    resolve_quantity,
    round_money,
    round_quantity,
)
from app.services.report_engine import ReportEngine, slugify
from app.services.usage_tracker import UsageTracker
from app.services.workspace_engine import ProjectWorkspace, WorkspaceRegistry

router = APIRouter(tags=["Ledgers"])
logger = logging.getLogger("sitebook-ledger-routes")

WS = "/api/workspaces/{project_key}"


def _ledger_out(ledger: Ledger) -> LedgerOut:
    total = ledger.recompute_total()
    return LedgerOut(
        kind=ledger.kind,
        state=ledger.state,
        items=[LineItemOut(**item.to_dict()) for item in ledger],
        total=round_money(total),
        total_display=f"{config.CURRENCY} {format_money(total)}",
    )


def _download(content: str, filename: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ── Ledger rows ───────────────────────────────────────────────────────────────

@router.get(WS + "/ledgers/{kind}", response_model=LedgerOut)
async def get_ledger(
    kind: str = Depends(valid_kind),
    ws: ProjectWorkspace = Depends(get_workspace),
):
    return _ledger_out(ws.ledger(kind))


@router.post(WS + "/ledgers/{kind}/items", response_model=LineItemOut, status_code=201)
async def add_line_item(
    req: LineItemCreate,
    kind: str = Depends(valid_kind),
    ws: ProjectWorkspace = Depends(get_workspace),
):
    fields = req.model_dump()
    if req.location is None:
        fields.pop("location")
    try:
        item = ws.ledger(kind).add_item(**fields)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(
        f"{kind} row {item.id} added",
        extra={"project_key": ws.project_key},
    )
    return LineItemOut(**item.to_dict())


@router.delete(WS + "/ledgers/{kind}/items/{item_id}", status_code=204)
async def remove_line_item(
    item_id: str,
    confirm: bool = Query(False, description="Explicit user confirmation of the delete"),
    kind: str = Depends(valid_kind),
    ws: ProjectWorkspace = Depends(get_workspace),
):
    """Unknown ids are a silent no-op; only a missing confirmation is refused."""
    if not confirm:
        raise HTTPException(status_code=409, detail="Confirmation required to delete this row")
    confirm_and_remove(ws.ledger(kind), item_id, lambda _item: confirm)
    return Response(status_code=204)


# ── Calculator / location ─────────────────────────────────────────────────────

@router.post(WS + "/quantity", response_model=QuantityResponse)
async def preview_quantity(req: QuantityRequest):
    quantity = resolve_quantity(req.count, req.length, req.width, req.height)
    amount = compute_amount(quantity, req.rate)
    return QuantityResponse(
        quantity=round_quantity(quantity),
        amount=round_money(amount),
        quantity_display=format_quantity(quantity),
        amount_display=format_money(amount),
    )


@router.put(WS + "/location", response_model=GeoPointIn)
async def set_location(
    req: GeoPointIn,
    ws: ProjectWorkspace = Depends(get_workspace),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    """Rows added afterwards snapshot this position; existing rows keep theirs."""
    pos = ws.location.update(req.latitude, req.longitude)
    registry.save(ws)
    return GeoPointIn(latitude=pos.latitude, longitude=pos.longitude)


# ── Catalog / most used ───────────────────────────────────────────────────────

@router.get("/api/catalog", response_model=List[CatalogEntryOut])
async def search_catalog(q: str = "", catalog: CatalogEngine = Depends(get_catalog)):
    return [CatalogEntryOut(**e.to_dict()) for e in catalog.search(q)]


@router.get("/api/catalog/{reference_code}", response_model=CatalogEntryOut)
async def get_catalog_entry(reference_code: str, catalog: CatalogEngine = Depends(get_catalog)):
    entry = catalog.lookup(reference_code)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"BOQ item {reference_code} not found")
    return CatalogEntryOut(**entry.to_dict())


@router.get("/api/most-used", response_model=List[UsageEntry])
async def most_used(
    n: int = Query(config.MOST_USED_LIMIT, ge=0, le=100),
    tracker: UsageTracker = Depends(get_tracker),
):
    return [UsageEntry(reference_code=ref, count=count) for ref, count in tracker.top_n(n)]


@router.get("/api/boq-template.csv")
async def boq_template():
    return _download(export_engine.boq_template_csv(), "boq_template.csv", "text/csv")


# ── Exports ───────────────────────────────────────────────────────────────────

def _require_rows(ledger: Ledger, label: str) -> None:
    if ledger.is_empty:
        raise HTTPException(status_code=404, detail=f"No {label} data to export")


@router.get(WS + "/export/inspection.csv")
async def export_inspection_csv(ws: ProjectWorkspace = Depends(get_workspace)):
    _require_rows(ws.inspection, "inspection")
    return _download(export_engine.inspection_csv(ws.inspection), "inspection_report.csv", "text/csv")


@router.get(WS + "/export/cost.csv")
async def export_cost_csv(ws: ProjectWorkspace = Depends(get_workspace)):
    _require_rows(ws.cost, "cost estimation")
    return _download(export_engine.cost_csv(ws.cost), "cost_estimation.csv", "text/csv")


@router.get(WS + "/export/inspection.kml")
async def export_inspection_kml(ws: ProjectWorkspace = Depends(get_workspace)):
    _require_rows(ws.inspection, "inspection")
    return _download(
        export_engine.inspection_kml(ws.inspection),
        "inspection_locations.kml",
        "application/vnd.google-earth.kml+xml",
    )


@router.get(WS + "/export/project.json")
async def export_project(ws: ProjectWorkspace = Depends(get_workspace)):
    return _download(export_engine.export_project(ws), f"{slugify(ws.project_key)}.json", "application/json")


@router.get(WS + "/export/cost.pdf")
async def export_cost_pdf(
    ws: ProjectWorkspace = Depends(get_workspace),
    reports: ReportEngine = Depends(get_report_engine),
):
    try:
        path = reports.cost_pdf(ws.cost, project_name=ws.project_key)
    except Exception as e:
        logger.error(f"Cost PDF failed for {ws.project_key}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Report generation failed")
    return FileResponse(path, media_type="application/pdf", filename=os.path.basename(path))


@router.get(WS + "/export/inspection.pdf")
async def export_inspection_pdf(
    ws: ProjectWorkspace = Depends(get_workspace),
    reports: ReportEngine = Depends(get_report_engine),
):
    try:
        path = reports.inspection_pdf(ws.inspection, project_name=ws.project_key)
    except Exception as e:
        logger.error(f"Inspection PDF failed for {ws.project_key}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Report generation failed")
    return FileResponse(path, media_type="application/pdf", filename=os.path.basename(path))


@router.get(WS + "/export/ledgers.xlsx")
async def export_ledgers_excel(
    ws: ProjectWorkspace = Depends(get_workspace),
    reports: ReportEngine = Depends(get_report_engine),
):
    try:
        path = reports.ledgers_excel(ws.cost, ws.inspection, project_name=ws.project_key)
    except Exception as e:
        logger.error(f"Ledger Excel failed for {ws.project_key}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Report generation failed")
    return FileResponse(
        path,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename=os.path.basename(path),
    )


# ── Imports ───────────────────────────────────────────────────────────────────

@router.post(WS + "/import/boq-csv")
async def import_boq_csv(
    file: UploadFile = File(...),
    ws: ProjectWorkspace = Depends(get_workspace),
):
    contents = await file.read()
    try:
        result = export_engine.import_boq_csv(ws.cost, contents)
    except (ValueError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=400, detail=f"Error parsing CSV file: {e}")
    return {"status": "success", **result, "total": round_money(ws.cost.recompute_total())}


@router.post(WS + "/import/project")
async def import_project(
    file: UploadFile = File(...),
    ws: ProjectWorkspace = Depends(get_workspace),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    contents = await file.read()
    try:
        result = export_engine.import_project(ws, contents)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    registry.save(ws)
    return {"status": "success", **result}


@router.post(WS + "/import/markers", response_model=List[MarkerOut])
async def import_markers(file: UploadFile = File(...)):
    contents = await file.read()
    try:
        markers = export_engine.parse_markers(file.filename or "", contents)
    except (ValueError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [MarkerOut(name=m.name, latitude=m.latitude, longitude=m.longitude) for m in markers]
