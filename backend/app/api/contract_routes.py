"""
Contract / project / inspection records and contract file upload.

Thin CRUD over the SQLAlchemy models; the ledgers themselves live in the
key-value store (see ledger_routes).
"""
import logging
import os
import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app import config
from app.api.deps import get_defect_analyzer
from app.db import get_db
from app.models.orm_models import CONTRACT_STATUSES, Contract, ContractFile, Inspection, Project
from app.services.defect_analysis import DefectAnalyzer

router = APIRouter(prefix="/api", tags=["Contracts"])
logger = logging.getLogger("sitebook-contracts")

_STATUS_PATTERN = "^(" + "|".join(CONTRACT_STATUSES) + ")$"


# ── Schemas ───────────────────────────────────────────────────────────────────

class ContractCreate(BaseModel):
    contract_number: str = Field(..., min_length=1, max_length=100)
    client_name: str = Field(..., min_length=1, max_length=255)
    project_name: str = Field(..., min_length=1, max_length=255)
    start_date: datetime
    end_date: datetime
    contract_value: Decimal = Field(..., ge=0)
    status: str = Field("planning", pattern=_STATUS_PATTERN)
    description: Optional[str] = None


class ContractOut(ContractCreate):
    model_config = ConfigDict(from_attributes=True)
    id: int
    created_at: Optional[datetime] = None


class ProjectCreate(BaseModel):
    contract_id: int
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: str = Field("planning", pattern=_STATUS_PATTERN)
    progress: int = Field(0, ge=0, le=100)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    coordinates: Optional[dict] = None


class ProjectOut(ProjectCreate):
    model_config = ConfigDict(from_attributes=True)
    id: int
    created_at: Optional[datetime] = None


class InspectionCreate(BaseModel):
    contract_id: int
    project_id: Optional[int] = None
    image_path: str = Field(..., min_length=1)
    analysis_results: Optional[dict] = None
    defects_found: Optional[bool] = None
    confidence: Optional[Decimal] = Field(None, ge=0, le=1)
    notes: Optional[str] = None


class InspectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    contract_id: int
    project_id: Optional[int] = None
    image_path: str
    analysis_results: Optional[dict] = None
    defects_found: bool = False
    confidence: Optional[Decimal] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class UploadedFileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: Optional[int] = None
    contract_id: Optional[int] = None
    file_name: str
    file_path: str
    file_size: int
    file_type: str


# ── Contracts ─────────────────────────────────────────────────────────────────

@router.get("/contracts", response_model=List[ContractOut])
async def list_contracts(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Contract).order_by(Contract.created_at.desc()))
    return result.scalars().all()


@router.get("/contracts/{contract_id}", response_model=ContractOut)
async def get_contract(contract_id: int, db: AsyncSession = Depends(get_db)):
    contract = await db.get(Contract, contract_id)
    if not contract:
        raise HTTPException(status_code=404, detail="Contract not found")
    return contract


@router.post("/contracts", response_model=ContractOut, status_code=201)
async def create_contract(req: ContractCreate, db: AsyncSession = Depends(get_db)):
    if req.end_date < req.start_date:
        raise HTTPException(status_code=400, detail="Invalid contract data: end_date before start_date")
    contract = Contract(**req.model_dump())
    db.add(contract)
    try:
        await db.flush()
    except IntegrityError:
        raise HTTPException(status_code=409, detail=f"Contract {req.contract_number} already exists")
    await db.refresh(contract)
    logger.info(f"Contract {contract.contract_number} created (id={contract.id})")
    return contract


# ── Projects ──────────────────────────────────────────────────────────────────

@router.get("/projects", response_model=List[ProjectOut])
async def list_projects(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Project).order_by(Project.created_at.desc()))
    return result.scalars().all()


@router.post("/projects", response_model=ProjectOut, status_code=201)
async def create_project(req: ProjectCreate, db: AsyncSession = Depends(get_db)):
    if not await db.get(Contract, req.contract_id):
        raise HTTPException(status_code=400, detail="Invalid project data: unknown contract")
    project = Project(**req.model_dump())
    db.add(project)
    await db.flush()
    await db.refresh(project)
    return project


# ── Inspections ───────────────────────────────────────────────────────────────

@router.get("/inspections", response_model=List[InspectionOut])
async def list_inspections(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Inspection).order_by(Inspection.created_at.desc()))
    return result.scalars().all()


@router.post("/inspections", response_model=InspectionOut, status_code=201)
async def create_inspection(
    req: InspectionCreate,
    db: AsyncSession = Depends(get_db),
    analyzer: DefectAnalyzer = Depends(get_defect_analyzer),
):
    """Runs the simulated defect analysis when the caller sends no results."""
    if not await db.get(Contract, req.contract_id):
        raise HTTPException(status_code=400, detail="Invalid inspection data: unknown contract")
    data = req.model_dump()
    if req.analysis_results is None:
        report = await analyzer.analyze_async(os.path.basename(req.image_path))
        data["analysis_results"] = report.analysis_results()
        data["confidence"] = Decimal(str(report.confidence))
        if req.defects_found is None:
            data["defects_found"] = report.defects_found
    if data["defects_found"] is None:
        data["defects_found"] = False
    inspection = Inspection(**data)
    db.add(inspection)
    await db.flush()
    await db.refresh(inspection)
    return inspection


# ── File upload ───────────────────────────────────────────────────────────────

def _save_upload(contents: bytes, filename: str, dest_dir: str) -> str:
    ext = os.path.splitext(filename)[-1].lower()
    path = os.path.join(dest_dir, f"{uuid.uuid4().hex}{ext}")
    os.makedirs(dest_dir, exist_ok=True)
    with open(path, "wb") as fh:
        fh.write(contents)
    return path


@router.post("/files/upload", response_model=UploadedFileOut, status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    contract_id: Optional[int] = Form(None),
    db: AsyncSession = Depends(get_db),
):
    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if len(contents) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail=f"File exceeds the {config.MAX_UPLOAD_BYTES // (1024 * 1024)} MB upload limit")

    if contract_id is not None and not await db.get(Contract, contract_id):
        raise HTTPException(status_code=404, detail="Contract not found")

    filename = file.filename or "upload"
    info = {
        "file_name": filename,
        "file_path": _save_upload(contents, filename, config.UPLOAD_DIR),
        "file_size": len(contents),
        "file_type": file.content_type or "application/octet-stream",
    }
    if contract_id is None:
        return UploadedFileOut(**info)

    record = ContractFile(contract_id=contract_id, **info)
    db.add(record)
    await db.flush()
    await db.refresh(record)
    logger.info(f"File {filename} ({len(contents)} bytes) attached to contract {contract_id}")
    return record
