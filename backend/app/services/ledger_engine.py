"""
ledger_engine.py — Line-item ledgers for inspection, BOQ and cost-estimation screens.

Covers:
  - LineItem with derived quantity / amount (always recomputed, never stored)
  - Ledger: ordered add / remove / total with "ledger changed" events
  - Confirmation-gated removal helper
  - LineItemForm: the transient input-staging fields behind the BOQ entry form
  - Snapshot round-trip for durable storage and project import/export

Ledger mutations run to completion on the caller's thread; no locking.
"""

import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Literal, Optional, Tuple

from app.services.catalog_engine import CatalogEngine, CatalogEntry
from app.services.quantity_engine import (
    DEFAULT_COUNT,
    coerce_count,
    coerce_positive,
    coerce_rate,
    compute_amount,
    resolve_quantity,
    round_money,
    round_quantity,
)

logger = logging.getLogger("sitebook-ledger")

LedgerKind = Literal["inspection", "cost"]
LEDGER_KINDS: Tuple[str, ...] = ("inspection", "cost")

DEFAULT_STATUS = "Good"

# Listener signature: (event, ledger, item) with event in {"added", "removed", "replaced"}
LedgerListener = Callable[[str, "Ledger", Optional["LineItem"]], None]


class ValidationError(ValueError):
    """Caller input incomplete; reported to the user, ledger left unchanged."""


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass
class Dimensions:
    count: float = DEFAULT_COUNT
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None

    @classmethod
    def from_raw(cls, count: Any = None, length: Any = None,
                 width: Any = None, height: Any = None) -> "Dimensions":
        return cls(
            count=coerce_count(count),
            length=coerce_positive(length),
            width=coerce_positive(width),
            height=coerce_positive(height),
        )

    def quantity(self) -> float:
        return resolve_quantity(self.count, self.length, self.width, self.height)


@dataclass
class LineItem:
    id: str
    description: str = ""
    reference_code: Optional[str] = None
    unit: str = ""
    dimensions: Dimensions = field(default_factory=Dimensions)
    rate: Optional[float] = None
    remarks: str = ""
    status: str = DEFAULT_STATUS
    attachments: List[str] = field(default_factory=list)
    location: Optional[GeoPoint] = None
    created_at: str = ""

    @property
    def derived_quantity(self) -> float:
        return self.dimensions.quantity()

    @property
    def amount(self) -> float:
        return compute_amount(self.derived_quantity, self.rate)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "reference_code": self.reference_code,
            "description": self.description,
            "unit": self.unit,
            "count": self.dimensions.count,
            "length": self.dimensions.length,
            "width": self.dimensions.width,
            "height": self.dimensions.height,
            "derived_quantity": round_quantity(self.derived_quantity),
            "rate": self.rate,
            "amount": round_money(self.amount),
            "remarks": self.remarks,
            "status": self.status,
            "attachments": list(self.attachments),
            "location": self.location.to_dict() if self.location else None,
            "created_at": self.created_at,
        }


def new_item_id() -> str:
    """Millisecond timestamp plus 32 random bits."""
    return f"{time.time_ns() // 1_000_000:x}-{secrets.token_hex(4)}"


def snapshot_location(provider: Optional[Callable[[], Any]]) -> Optional[GeoPoint]:
    """
    Ask the geolocation provider for one position. Providers may return a
    GeoPoint, a (lat, lng) pair, a {"latitude", "longitude"} mapping, or None.
    """
    if provider is None:
        return None
    try:
        position = provider()
    except Exception as e:
        logger.warning(f"Geolocation unavailable: {e}")
        return None
    return _to_geopoint(position)


def _to_geopoint(position: Any) -> Optional[GeoPoint]:
    if position is None:
        return None
    if isinstance(position, GeoPoint):
        return position
    try:
        if isinstance(position, dict):
            lat, lng = position["latitude"], position["longitude"]
        else:
            lat, lng = position
        return GeoPoint(float(lat), float(lng))
    except (KeyError, TypeError, ValueError):
        logger.warning(f"Ignoring malformed position {position!r}")
        return None


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


class Ledger:
    """
    Ordered collection of LineItems. Insertion order is display order.

    Cost ledgers are catalog-backed: a reference code alone is enough to add
    a row, and blank description/unit/rate are filled from the catalog.
    Inspection ledgers require a description and snapshot the current
    location when a row is added.
    """

    def __init__(
        self,
        kind: LedgerKind = "cost",
        catalog: Optional[CatalogEngine] = None,
        usage_tracker=None,
        location_provider: Optional[Callable[[], Any]] = None,
        id_factory: Callable[[], str] = new_item_id,
    ):
        if kind not in LEDGER_KINDS:
            raise ValueError(f"Unknown ledger kind {kind!r}")
        self.kind: str = kind
        self.catalog = catalog
        self.usage_tracker = usage_tracker
        self.location_provider = location_provider
        self._id_factory = id_factory
        self._items: List[LineItem] = []
        self._listeners: List[LedgerListener] = []

    # ── Read side ────────────────────────────────────────────────────────────

    @property
    def items(self) -> Tuple[LineItem, ...]:
        return tuple(self._items)

    @property
    def is_catalog_backed(self) -> bool:
        return self.kind == "cost"

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def state(self) -> str:
        return "empty" if self.is_empty else "populated"

    @property
    def total(self) -> float:
        return self.recompute_total()

    def recompute_total(self) -> float:
        return sum(item.amount for item in self._items)

    def get(self, item_id: str) -> Optional[LineItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[LineItem]:
        return iter(tuple(self._items))

    # ── Events ───────────────────────────────────────────────────────────────

    def subscribe(self, listener: LedgerListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: LedgerListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: str, item: Optional[LineItem]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self, item)
            except Exception as e:
                logger.error(f"Ledger listener failed on {event}: {e}", exc_info=True)

    # ── Mutations ────────────────────────────────────────────────────────────

    def add_item(self, record_usage: bool = True, **fields: Any) -> LineItem:
        """
        Validate, build and append one row. Raises ValidationError without
        touching the ledger when required fields are missing.
        """
        item = self._build_item(fields)

        self._items.append(item)
        if record_usage and item.reference_code and self.usage_tracker is not None:
            self.usage_tracker.record_usage(item.reference_code)
        total = self.recompute_total()
        logger.debug(f"{self.kind} ledger: added {item.id} (n={len(self._items)}, total={total:.2f})")
        self._emit("added", item)
        return item

    def remove_item(self, item_id: str) -> Optional[LineItem]:
        """
        Remove exactly one row. An unknown id is a silent no-op: duplicate
        delete triggers from the UI are expected.
        """
        for index, item in enumerate(self._items):
            if item.id == item_id:
                del self._items[index]
                self.recompute_total()
                self._emit("removed", item)
                return item
        logger.info(f"{self.kind} ledger: remove of unknown id {item_id!r} ignored")
        return None

    def replace_items(self, items: List[LineItem]) -> None:
        """Swap in a whole item list (project import). Ids must be unique."""
        self.check_unique_ids(items)
        self._items = list(items)
        self.recompute_total()
        self._emit("replaced", None)

    @staticmethod
    def check_unique_ids(items: List[LineItem]) -> None:
        seen = set()
        for item in items:
            if item.id in seen:
                raise ValidationError(f"Duplicate line item id {item.id!r}")
            seen.add(item.id)

    def _build_item(self, fields: Dict[str, Any]) -> LineItem:
        reference_code = _text(fields.get("reference_code")) or None
        description = _text(fields.get("description"))
        unit = _text(fields.get("unit"))
        rate = coerce_rate(fields.get("rate"))

        if self.is_catalog_backed:
            if not reference_code and not description:
                raise ValidationError("Please select a BOQ item or enter a description")
        elif not description:
            raise ValidationError("Please enter asset description")

        entry = self.catalog.lookup(reference_code) if (self.catalog and reference_code) else None
        if entry is not None:
            description = description or entry.description
            unit = unit or entry.unit
            if rate is None:
                rate = entry.rate

        location = _to_geopoint(fields.get("location"))
        if location is None and self.kind == "inspection":
            location = snapshot_location(self.location_provider)

        item_id = _text(fields.get("id")) or self._id_factory()
        if self.get(item_id) is not None:
            item_id = self._id_factory()

        return LineItem(
            id=item_id,
            description=description,
            reference_code=reference_code,
            unit=unit,
            dimensions=Dimensions.from_raw(
                fields.get("count"), fields.get("length"),
                fields.get("width"), fields.get("height"),
            ),
            rate=rate if self.is_catalog_backed else None,
            remarks=_text(fields.get("remarks")),
            status=_text(fields.get("status")) or DEFAULT_STATUS,
            attachments=[str(a) for a in (fields.get("attachments") or [])],
            location=location,
            created_at=datetime.now(timezone.utc).isoformat(),
        )

    # ── Snapshots ────────────────────────────────────────────────────────────

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "items": [item.to_dict() for item in self._items],
        }

    @classmethod
    def from_snapshot(cls, snapshot: Dict[str, Any], **kwargs: Any) -> "Ledger":
        """
        Rebuild a ledger from to_snapshot() output. Stored quantities and
        amounts are ignored and recomputed from the dimensional inputs.
        """
        kind = snapshot.get("kind", kwargs.pop("kind", "cost"))
        ledger = cls(kind=kind, **kwargs)
        items = [item_from_dict(row, kind) for row in snapshot.get("items", [])]
        ledger._items = items
        return ledger


def item_from_dict(row: Dict[str, Any], kind: str = "cost") -> LineItem:
    """Inverse of LineItem.to_dict(); tolerant of missing keys."""
    return LineItem(
        id=_text(row.get("id")) or new_item_id(),
        description=_text(row.get("description")),
        reference_code=_text(row.get("reference_code")) or None,
        unit=_text(row.get("unit")),
        dimensions=Dimensions.from_raw(row.get("count"), row.get("length"),
                                       row.get("width"), row.get("height")),
        rate=coerce_rate(row.get("rate")) if kind == "cost" else None,
        remarks=_text(row.get("remarks")),
        status=_text(row.get("status")) or DEFAULT_STATUS,
        attachments=[str(a) for a in (row.get("attachments") or [])],
        location=_to_geopoint(row.get("location")),
        created_at=_text(row.get("created_at")),
    )


def confirm_and_remove(ledger: Ledger, item_id: str,
                       confirm: Callable[[Optional[LineItem]], bool]) -> bool:
    """
    Destructive removal behind a human-in-the-loop gate. ``confirm`` is
    asked first; the ledger is only touched when it answers True.
    Returns True when a row was actually removed.
    """
    if not confirm(ledger.get(item_id)):
        return False
    return ledger.remove_item(item_id) is not None


# ---------------------------------------------------------------------------
# Input staging form
# ---------------------------------------------------------------------------

@dataclass
class LineItemForm:
    """
    Transient fields behind the BOQ / inspection entry form. Only a
    successful submit() clears them.
    """
    reference_code: str = ""
    description: str = ""
    unit: str = ""
    count: Any = 1
    length: Any = None
    width: Any = None
    height: Any = None
    rate: Any = None
    remarks: str = ""
    status: str = DEFAULT_STATUS
    attachments: List[str] = field(default_factory=list)

    def preview_quantity(self) -> float:
        return round_quantity(resolve_quantity(self.count, self.length, self.width, self.height))

    def preview_amount(self) -> float:
        quantity = resolve_quantity(self.count, self.length, self.width, self.height)
        return round_money(compute_amount(quantity, self.rate))

    def apply_catalog(self, entry: Optional[CatalogEntry]) -> None:
        if entry is None:
            return
        self.reference_code = entry.reference_code
        self.description = entry.description
        self.unit = entry.unit
        self.rate = entry.rate

    def clear(self) -> None:
        defaults = LineItemForm()
        for name in self.__dataclass_fields__:
            setattr(self, name, getattr(defaults, name))

    def fields(self) -> Dict[str, Any]:
        return {
            "reference_code": self.reference_code,
            "description": self.description,
            "unit": self.unit,
            "count": self.count,
            "length": self.length,
            "width": self.width,
            "height": self.height,
            "rate": self.rate,
            "remarks": self.remarks,
            "status": self.status,
            "attachments": list(self.attachments),
        }

    def submit(self, ledger: Ledger) -> LineItem:
        item = ledger.add_item(**self.fields())
        self.clear()
        return item
