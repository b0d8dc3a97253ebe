# storefront_hub/main.py
# Storefront Hub - B2B grade-pack storefront API
from __future__ import annotations
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront_hub.settings import settings
from storefront_hub.errors import StoreError, InternalError
from storefront_hub.database import init_db, close_db, create_all, check_db_health, get_session_context
from storefront_hub.services.grades import grade_tables
from storefront_hub.services.notifications import drain_notifications

from storefront_hub.routers.store import router as store_router
from storefront_hub.routers.grades import router as grades_router
from storefront_hub.routers.catalog import router as catalog_router
from storefront_hub.routers.orders import router as orders_router
from storefront_hub.routers.customers import router as customers_router
from storefront_hub.routers.notifications import router as notifications_router
from storefront_hub.routers.imports import router as imports_router
from storefront_hub.routers.settings import router as settings_router

# ---------------------------------------------------------
# Logging setup
# ---------------------------------------------------------
from storefront_hub.logging_setup import setup_logging
setup_logging(settings)

logger = logging.getLogger("storefront_hub")

# ---------------------------------------------------------
# Lifespan: Database init/cleanup
# ---------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    await init_db()
    if settings.DB_CREATE_ALL:
        await create_all()
    try:
        async with get_session_context() as db:
            await grade_tables.detect(db)
        logger.info("Database connected")
    except Exception:
        logger.exception("Database not reachable at startup; grade table source will be detected lazily")
    yield
    # Shutdown
    await drain_notifications()
    await close_db()
    logger.info("Database disconnected")

# ---------------------------------------------------------
# FastAPI app + CORS
# ---------------------------------------------------------
app = FastAPI(
    title="Storefront Hub API",
    version="1.0.0",
    description="B2B footwear storefront - grade packs, size variants and orders",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# ---------------------------------------------------------
# Error rendering
# ---------------------------------------------------------
@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    err = InternalError()
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


app.include_router(store_router)
app.include_router(grades_router)
app.include_router(catalog_router)
app.include_router(orders_router)
app.include_router(customers_router)
app.include_router(notifications_router)
app.include_router(imports_router)
app.include_router(settings_router)


@app.get("/health")
async def health():
    result = {"status": "ok", "version": app.version}
    db_health = await check_db_health()
    result["database"] = db_health
    if db_health.get("status") != "healthy":
        result["status"] = "degraded"
    return result
