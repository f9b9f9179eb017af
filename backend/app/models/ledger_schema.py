"""Request / response schemas for the ledger API."""
from typing import List, Optional, Union

from pydantic import BaseModel, Field

# Form fields arrive as numbers or as raw strings from the browser inputs;
# coercion to "provided / not provided" happens in quantity_engine.
NumericInput = Optional[Union[float, str]]


class GeoPointIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class GeoPointOut(BaseModel):
    latitude: float
    longitude: float


class LineItemCreate(BaseModel):
    reference_code: Optional[str] = None
    description: str = ""
    unit: str = ""
    count: NumericInput = 1
    length: NumericInput = None
    width: NumericInput = None
    height: NumericInput = None
    rate: NumericInput = None
    remarks: str = ""
    status: str = "Good"
    attachments: List[str] = Field(default_factory=list)
    location: Optional[GeoPointIn] = None


class LineItemOut(BaseModel):
    id: str
    reference_code: Optional[str] = None
    description: str
    unit: str
    count: float
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    derived_quantity: float
    rate: Optional[float] = None
    amount: float
    remarks: str
    status: str
    attachments: List[str]
    location: Optional[GeoPointOut] = None
    created_at: str


class LedgerOut(BaseModel):
    kind: str
    state: str
    items: List[LineItemOut]
    total: float
    total_display: str


class QuantityRequest(BaseModel):
    count: NumericInput = 1
    length: NumericInput = None
    width: NumericInput = None
    height: NumericInput = None
    rate: NumericInput = None


class QuantityResponse(BaseModel):
    quantity: float
    amount: float
    quantity_display: str
    amount_display: str


class UsageEntry(BaseModel):
    reference_code: str
    count: int


class CatalogEntryOut(BaseModel):
    reference_code: str
    description: str
    unit: str
    rate: Optional[float] = None
    asset: str = ""


class MarkerOut(BaseModel):
    name: str
    latitude: float
    longitude: float
