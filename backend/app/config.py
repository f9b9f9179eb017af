"""
Runtime configuration — single source of truth for environment-driven settings.

Import from here in routes and services rather than calling os.getenv inline.
"""
from __future__ import annotations

import os

# Load .env file automatically in dev (no-op if the file is missing)
from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# ── Database ──────────────────────────────────────────────────────────────────
DATABASE_URL: str = os.getenv("DATABASE_URL", "")

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json").lower()

# ── Durable key-value store (usage counters + ledger snapshots) ──────────────
KV_BACKEND: str = os.getenv("KV_BACKEND", "file").lower()     # memory | file | redis
KV_FILE_PATH: str = os.getenv("KV_FILE_PATH", "/tmp/sitebook/kv_store.json")
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# ── Files ─────────────────────────────────────────────────────────────────────
UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "/tmp/sitebook/uploads")
DOWNLOAD_DIR: str = os.getenv("DOWNLOAD_DIR", "/tmp/sitebook/downloads")
MAX_UPLOAD_BYTES: int = _env_int("MAX_UPLOAD_BYTES", 20 * 1024 * 1024)   # 20 MB

# ── Estimation defaults ───────────────────────────────────────────────────────
CURRENCY: str = os.getenv("CURRENCY", "QR")
BOQ_CATALOG_PATH: str = os.getenv("BOQ_CATALOG_PATH", "")
MOST_USED_LIMIT: int = _env_int("MOST_USED_LIMIT", 5)

# Manual-mode location used until a device position is pushed (Doha)
DEFAULT_LATITUDE: float = _env_float("DEFAULT_LATITUDE", 25.2854)
DEFAULT_LONGITUDE: float = _env_float("DEFAULT_LONGITUDE", 51.5310)

# ── HTTP ──────────────────────────────────────────────────────────────────────
CORS_ORIGINS: list[str] = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()
]
