"""
conftest.py — Shared pytest fixtures for the Sitebook backend test suite.

No database fixtures are defined here. Ledger, usage and export tests run
against the in-memory key-value store; route tests mount only the ledger
router on a bare FastAPI app with dependency overrides.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``app.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import itertools
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any app imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Store / catalog / tracker
# ---------------------------------------------------------------------------

@pytest.fixture
def memory_store():
    """Fresh InMemoryStore per test."""
    from app.services.kv_store import InMemoryStore
    return InMemoryStore()


@pytest.fixture(scope="session")
def catalog():
    """
    Built-in three-item catalog:
      A001 Asphalt overlay          m²  45.50
      A002 Storm drain installation m   125.00
      A003 LED street light         NR  850.00
    """
    from app.services.catalog_engine import CatalogEngine
    return CatalogEngine.default()


@pytest.fixture
def tracker(memory_store):
    from app.services.usage_tracker import UsageTracker
    return UsageTracker(memory_store)


# ---------------------------------------------------------------------------
# Ledgers
# ---------------------------------------------------------------------------

@pytest.fixture
def id_factory():
    """Deterministic ids: item-1, item-2, ..."""
    counter = itertools.count(1)
    return lambda: f"item-{next(counter)}"


@pytest.fixture
def cost_ledger(catalog, tracker, id_factory):
    from app.services.ledger_engine import Ledger
    return Ledger("cost", catalog=catalog, usage_tracker=tracker, id_factory=id_factory)


@pytest.fixture
def inspection_ledger(id_factory):
    """Inspection ledger whose location provider always reports Doha."""
    from app.services.ledger_engine import GeoPoint, Ledger
    return Ledger(
        "inspection",
        location_provider=lambda: GeoPoint(25.2854, 51.5310),
        id_factory=id_factory,
    )


@pytest.fixture
def registry(memory_store, catalog, tracker):
    from app.services.workspace_engine import WorkspaceRegistry
    return WorkspaceRegistry(memory_store, catalog, tracker, default_location=(25.2854, 51.5310))


@pytest.fixture
def workspace(registry):
    return registry.get("site-a")


# ---------------------------------------------------------------------------
# Sample BOQ rows
# ---------------------------------------------------------------------------

@pytest.fixture
def boq_csv_bytes():
    """Template-layout CSV: two valid rows and one with neither ref nor description."""
    return (
        "BOQ Ref,Description,Unit,NR,Length (m),Width (m),Height (m),Total Qty,Rate,Amount,Remarks\n"
        "A001,,,2,3,4,,999,,999,resurface lane 2\n"
        ",Kerb repair,m,1,12.5,,,,30,,\n"
        ",,,1,,,,,,,\n"
    ).encode("utf-8")
