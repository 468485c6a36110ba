import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.core.cache import QueryCache
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.storage import StorageClient
from app.api.routes.profile import router as profile_router
from app.api.routes.projects import router as projects_router
from app.api.routes.unit_types import router as unit_types_router
from app.api.routes.contracts import router as contracts_router
from app.api.routes.imports import router as imports_router
from app.api.routes.agent import router as agent_router
from app.api.routes.statistics import router as statistics_router
from app.api.routes.audit_logs import router as audit_logs_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # one cache and one storage client per process
    cache = QueryCache(
        stale_time=settings.CACHE_STALE_SECONDS,
        ttl=settings.CACHE_TTL_SECONDS,
        sweep_interval=settings.CACHE_SWEEP_INTERVAL_SECONDS,
    )
    storage = StorageClient()
    app.state.query_cache = cache
    app.state.storage = storage
    cache.start()
    logger.info("Marketplace backend started (env=%s)", settings.ENV)
    try:
        yield
    finally:
        await cache.stop()
        storage.close()


# 1) Create the app FIRST
app = FastAPI(title="Property Marketplace Backend", lifespan=lifespan)

# 2) Add CORS Middleware BEFORE routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 3) Include routers AFTER app is created
app.include_router(profile_router)
app.include_router(projects_router)
app.include_router(unit_types_router)
app.include_router(contracts_router)
app.include_router(imports_router)
app.include_router(agent_router)
app.include_router(statistics_router)
app.include_router(audit_logs_router)


# 4) Health check endpoints
@app.get("/health")
def health():
    return {"ok": True, "service": "marketplace-backend"}


@app.get("/db-health")
def db_health():
    db = SessionLocal()
    try:
        db.execute(text("select 1"))
        return {"ok": True, "db": "connected"}
    finally:
        db.close()
