"""
Sitebook API v1.0
FastAPI backend for site inspection and BOQ cost estimation ledgers,
with async PostgreSQL for contract records and a key-value store for ledgers.
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app import config
from app.services.logging_config import setup_logging
from app.services.middleware import RequestTimingMiddleware

setup_logging(level=config.LOG_LEVEL, json_output=config.LOG_FORMAT != "text")
logger = logging.getLogger("sitebook-api")

# Record process start time for uptime calculation
_PROCESS_START = time.monotonic()

if not config.DATABASE_URL:
    logger.warning("MISSING env var: DATABASE_URL — contract records disabled (dev mode)")
if config.KV_BACKEND == "redis":
    logger.info(f"Ledger store: redis at {config.REDIS_URL}")
else:
    logger.info(f"Ledger store: {config.KV_BACKEND}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        from app.db import init_db
        await init_db()
    except Exception as e:
        logger.warning(f"Table init warning: {e}")
    yield
    from app.db import dispose_db
    await dispose_db()


app = FastAPI(
    title="Sitebook API",
    version="1.0.0",
    description="Site inspection and BOQ cost estimation ledgers",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

# Routers
from app.api.ledger_routes import router as ledger_router
from app.api.contract_routes import router as contract_router

app.include_router(ledger_router)
app.include_router(contract_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": "1.0.0",
        "uptime_seconds": round(time.monotonic() - _PROCESS_START, 1),
        "db_configured": bool(config.DATABASE_URL),
        "kv_backend": config.KV_BACKEND,
        "currency": config.CURRENCY,
    }
