"""
Project workspaces — one inspection ledger + one cost ledger per project,
snapshotted to the key-value store whenever either ledger changes.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as SchemaError

from app.models.ledger_schema import GeoPointIn
from app.services.catalog_engine import CatalogEngine
from app.services.kv_store import KeyValueStore
from app.services.ledger_engine import GeoPoint, Ledger, LineItem, ValidationError
from app.services.usage_tracker import UsageTracker

logger = logging.getLogger("sitebook-workspace")

SNAPSHOT_PREFIX = "ledger:"


class StaticLocationProvider:
    """
    Holds the "current location" for a workspace (manual mode, or the last
    position pushed by a device). Calling it returns a snapshot.
    """

    def __init__(self, latitude: float, longitude: float):
        self.position = GeoPoint(latitude, longitude)

    def update(self, latitude: float, longitude: float) -> GeoPoint:
        self.position = GeoPoint(float(latitude), float(longitude))
        return self.position

    def __call__(self) -> GeoPoint:
        return self.position


class ProjectWorkspace:

    def __init__(
        self,
        project_key: str,
        catalog: CatalogEngine,
        tracker: UsageTracker,
        location: Optional[StaticLocationProvider] = None,
    ):
        self.project_key = project_key
        self.catalog = catalog
        self.tracker = tracker
        self.location = location or StaticLocationProvider(25.2854, 51.5310)
        self.inspection = Ledger("inspection", catalog=catalog, location_provider=self.location)
        self.cost = Ledger("cost", catalog=catalog, usage_tracker=tracker)

    def ledger(self, kind: str) -> Ledger:
        if kind == "inspection":
            return self.inspection
        if kind == "cost":
            return self.cost
        raise KeyError(f"Unknown ledger kind {kind!r}")

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "project_key": self.project_key,
            "location": self.location.position.to_dict(),
            "inspection": self.inspection.to_snapshot(),
            "cost": self.cost.to_snapshot(),
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }

    def load_snapshot(self, snapshot: Dict[str, Any]) -> None:
        """
        Replace ledger contents from a snapshot or an imported project document.

        Every section is parsed and checked before anything is swapped in, so
        a rejected document leaves the location and both ledgers untouched.
        """
        position = _parse_location(snapshot.get("location"))
        restored: Dict[str, List[LineItem]] = {}
        for kind in ("inspection", "cost"):
            section = snapshot.get(kind)
            if section is None:
                continue
            if not isinstance(section, dict) or not isinstance(section.get("items", []), list):
                raise ValidationError(f"Malformed {kind} section")
            items = list(Ledger.from_snapshot({"kind": kind, "items": section.get("items", [])}).items)
            Ledger.check_unique_ids(items)
            restored[kind] = items

        if position is not None:
            self.location.update(position.latitude, position.longitude)
        for kind, items in restored.items():
            self.ledger(kind).replace_items(items)


def _parse_location(loc: Any) -> Optional[GeoPoint]:
    if not loc:
        return None
    if not isinstance(loc, dict) or "latitude" not in loc or "longitude" not in loc:
        raise ValidationError("Location must carry latitude and longitude")
    try:
        point = GeoPointIn(latitude=loc["latitude"], longitude=loc["longitude"])
    except SchemaError as e:
        raise ValidationError(f"Invalid location: {e.errors()[0]['msg']}")
    return GeoPoint(point.latitude, point.longitude)


class WorkspaceRegistry:
    """
    Process-wide map of project_key -> ProjectWorkspace. Workspaces are
    rebuilt from their durable snapshot on first access. A key with no
    snapshot gets a fresh workspace that is only kept once it is saved,
    so read-only requests for unknown keys do not grow the map.
    """

    def __init__(self, store: KeyValueStore, catalog: CatalogEngine, tracker: UsageTracker,
                 default_location: tuple = (25.2854, 51.5310)):
        self.store = store
        self.catalog = catalog
        self.tracker = tracker
        self.default_location = default_location
        self._workspaces: Dict[str, ProjectWorkspace] = {}

    def __contains__(self, project_key: str) -> bool:
        return project_key in self._workspaces

    def get(self, project_key: str) -> ProjectWorkspace:
        ws = self._workspaces.get(project_key)
        if ws is not None:
            return ws

        ws = ProjectWorkspace(
            project_key, self.catalog, self.tracker,
            location=StaticLocationProvider(*self.default_location),
        )
        raw = self.store.get(SNAPSHOT_PREFIX + project_key)
        if raw is not None:
            try:
                ws.load_snapshot(json.loads(raw))
            except Exception as e:
                logger.warning(
                    f"Workspace snapshot for {project_key!r} unreadable, starting empty: {e}",
                    extra={"project_key": project_key},
                )
            self._workspaces[project_key] = ws

        def _persist(event: str, ledger: Ledger, item: Optional[LineItem]) -> None:
            self.save(ws)

        ws.inspection.subscribe(_persist)
        ws.cost.subscribe(_persist)
        return ws

    def save(self, ws: ProjectWorkspace) -> bool:
        self._workspaces.setdefault(ws.project_key, ws)
        ok = self.store.set(SNAPSHOT_PREFIX + ws.project_key, json.dumps(ws.to_snapshot()))
        if not ok:
            logger.warning(
                f"Workspace {ws.project_key!r} snapshot not persisted",
                extra={"project_key": ws.project_key},
            )
        return ok
