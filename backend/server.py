"""
Showroom Back-Office - API Backend

Complaints, brand escalation, notifications, customers, employees, sales,
quotations and statistics for the electronics and furniture showrooms.

Start with:
    uvicorn server:app --host 0.0.0.0 --port 8001 --reload
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

import config
from services.customers import ListingCache
from services.errors import NotFoundError, StoreError, ValidationError
from services.events import RefreshBus

# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("showroom")

app = FastAPI(
    title="Showroom Back-Office",
    description="Multi-tenant retail back office with complaint escalation",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== ERRORS ====================

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": exc.message, "field": exc.field})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"[STORE] {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": "Storage temporarily unavailable, please retry"},
    )


# ==================== ROUTES ====================

from routes import brands, complaint_notifications, complaints, customers, employees, quotations, sales, stats

app.include_router(complaints.router, prefix="/api")
app.include_router(brands.router, prefix="/api")
app.include_router(complaint_notifications.router, prefix="/api")
app.include_router(customers.router, prefix="/api")
app.include_router(employees.router, prefix="/api")
app.include_router(sales.router, prefix="/api")
app.include_router(quotations.router, prefix="/api")
app.include_router(stats.router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": "Showroom Back-Office API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


# ==================== STARTUP / SHUTDOWN ====================

@app.on_event("startup")
async def startup():
    if getattr(app.state, "store", None) is None:
        app.state.store = config.build_store()
    app.state.refresh_bus = RefreshBus()
    app.state.customer_cache = ListingCache()
    app.state.scheduler = None

    if config.SCHEDULER_ENABLED:
        from scheduler_service import TaskScheduler

        app.state.scheduler = TaskScheduler(app.state.store)
        app.state.scheduler.start()

    logger.info("🚀 Showroom Back-Office started")


@app.on_event("shutdown")
async def shutdown():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler:
        scheduler.stop()
    logger.info("Showroom Back-Office stopped")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
