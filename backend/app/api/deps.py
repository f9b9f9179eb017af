"""FastAPI dependency injection — process-wide ledger services."""
import logging
from functools import lru_cache

from fastapi import Depends, HTTPException

from app import config
from app.services.catalog_engine import CatalogEngine
from app.services.defect_analysis import DefectAnalyzer
from app.services.kv_store import KeyValueStore, build_store
from app.services.ledger_engine import LEDGER_KINDS
from app.services.report_engine import ReportEngine
from app.services.usage_tracker import UsageTracker
from app.services.workspace_engine import WorkspaceRegistry

logger = logging.getLogger("sitebook-deps")


@lru_cache(maxsize=1)
def get_store() -> KeyValueStore:
    return build_store(config.KV_BACKEND, config.KV_FILE_PATH, config.REDIS_URL)


@lru_cache(maxsize=1)
def get_catalog() -> CatalogEngine:
    if config.BOQ_CATALOG_PATH:
        try:
            catalog = CatalogEngine.from_csv(config.BOQ_CATALOG_PATH)
            logger.info(f"BOQ catalog loaded: {len(catalog)} item(s) from {config.BOQ_CATALOG_PATH}")
            return catalog
        except Exception as e:
            logger.warning(f"BOQ catalog load failed ({e}) — using built-in catalog")
    return CatalogEngine.default()


@lru_cache(maxsize=1)
def get_tracker() -> UsageTracker:
    return UsageTracker(get_store())


@lru_cache(maxsize=1)
def get_registry() -> WorkspaceRegistry:
    return WorkspaceRegistry(
        get_store(), get_catalog(), get_tracker(),
        default_location=(config.DEFAULT_LATITUDE, config.DEFAULT_LONGITUDE),
    )


def get_report_engine() -> ReportEngine:
    return ReportEngine({"currency": config.CURRENCY}, output_dir=config.DOWNLOAD_DIR)


def get_defect_analyzer() -> DefectAnalyzer:
    return DefectAnalyzer()


def get_workspace(project_key: str, registry: WorkspaceRegistry = Depends(get_registry)):
    return registry.get(project_key)


def valid_kind(kind: str) -> str:
    if kind not in LEDGER_KINDS:
        raise HTTPException(status_code=404, detail=f"Unknown ledger '{kind}'")
    return kind
