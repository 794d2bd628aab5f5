"""
StockManager FastAPI Backend
Main application entry point.

Production features:
- Health check with subsystem status
- Request correlation IDs for log tracing
- Structured JSON logging with rotating log files
- Rate limiting on expensive endpoints
- Graceful shutdown of the alert monitor
"""
import asyncio
import threading
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from starlette.middleware.gzip import GZipMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
import logging
import uvicorn

from api.routes import router as api_router
from api.middleware import (
    correlation_id_middleware,
    api_key_middleware,
    write_logging_middleware,
    configure_structured_logging,
    limiter,
    rate_limit_exceeded_handler,
)
from api.health import build_health_response, mark_startup, APP_VERSION
from config.paths import default_log_directory
from config.settings import get_settings
from services.alert_monitor import start_alert_monitor, stop_alert_monitor
from services.logging_service import configure_file_logging, cleanup_old_logs
from services.validation import sanitize_text
from storage.database import init_db, check_integrity, backup_sqlite_database

logger = logging.getLogger(__name__)

_shutdown_event = threading.Event()


def _is_shutting_down() -> bool:
    return _shutdown_event.is_set()


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    """Manage logging, database and alert monitor lifecycle."""
    settings = get_settings()
    log_directory = default_log_directory()
    configure_file_logging(log_directory)
    configure_structured_logging(settings.log_level)
    cleanup_old_logs(log_directory, settings.log_retention_days)
    mark_startup()
    _shutdown_event.clear()
    logger.info("StockManager backend starting up (env=%s)", settings.environment)

    # ── Database init ────────────────────────────────────────────────────
    try:
        init_db()
        logger.info("Database initialized successfully")
    except SQLAlchemyError:
        logger.exception("Failed to initialize database schema")
        raise

    ok, result = check_integrity()
    if not ok:
        logger.critical("Database integrity check failed: %s (continuing)", result)

    try:
        backup_path = backup_sqlite_database()
        if backup_path:
            logger.info("Startup database backup created: %s", backup_path)
    except (RuntimeError, OSError):
        logger.warning("Database backup on startup failed (non-blocking)", exc_info=True)

    # ── Startup validation ───────────────────────────────────────────────
    if settings.environment == "production" and not settings.api_auth_key:
        logger.warning(
            "Production environment detected but STOCKMANAGER_API_KEY is not set. "
            "API authentication is disabled."
        )
    if not settings.finnhub_api_key:
        logger.warning("FINNHUB_API_KEY is not set; quotes and alerts are unavailable")

    if start_alert_monitor():
        logger.info("Alert monitor started")

    try:
        yield
    finally:
        logger.info("Initiating graceful shutdown...")
        _shutdown_event.set()
        if stop_alert_monitor():
            logger.info("Alert monitor stopped")
        await asyncio.sleep(0.5)
        logger.info("Graceful shutdown complete")


app = FastAPI(
    title="StockManager API",
    description="Personal finance, options analytics and trade journaling backend",
    version=APP_VERSION,
    lifespan=_lifespan,
    openapi_tags=[
        {"name": "Options", "description": "Options pricing and strategy calculators"},
        {"name": "Retirement", "description": "Tax, Roth, RMD, withdrawal and FIRE planning"},
        {"name": "Personal Finance", "description": "Paycheck, debt payoff and car loans"},
        {"name": "Investing", "description": "Monte Carlo, dividends and fundamentals"},
        {"name": "Market Data", "description": "Quotes, candles and company fundamentals"},
        {"name": "Alerts", "description": "Price and percent-change alerts"},
        {"name": "Journal", "description": "Trade journal and trade logs"},
        {"name": "Settings", "description": "Risk limits and report preferences"},
        {"name": "Signals", "description": "Inbound TradingView signals"},
        {"name": "Audit", "description": "Audit trail"},
    ],
)

# ── Rate Limiter ─────────────────────────────────────────────────────────────
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
# Applies the default limit to routes without their own @limiter.limit.
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def _correlation_id(request: Request, call_next):
    return await correlation_id_middleware(request, call_next)


@app.middleware("http")
async def _api_auth(request: Request, call_next):
    return await api_key_middleware(request, call_next)


@app.middleware("http")
async def _write_logging(request: Request, call_next):
    return await write_logging_middleware(request, call_next)


@app.middleware("http")
async def shutdown_rejection_middleware(request: Request, call_next):
    """Reject new write requests during graceful shutdown."""
    if _is_shutting_down() and request.method in {"POST", "PUT", "PATCH", "DELETE"}:
        if request.url.path not in {"/", "/status"}:
            return JSONResponse(
                status_code=503,
                content={"detail": "Server is shutting down. Please retry shortly."},
            )
    return await call_next(request)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(_request: Request, exc: SQLAlchemyError):
    logger.error("Database error: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "Internal database error"})


@app.get("/")
@limiter.exempt
async def root():
    """Root endpoint."""
    return {"message": "StockManager API"}


@app.get("/status")
@limiter.exempt
async def status():
    """Health check: database, market data configuration and alert monitor."""
    return build_health_response()


# ── Frontend Error Reporting ─────────────────────────────────────────────────
class FrontendErrorReport(BaseModel):
    """Frontend error report payload."""
    error: str = Field(..., description="Error message", min_length=1, max_length=2000)
    component: Optional[str] = Field(None, description="Component name", max_length=200)
    stack: Optional[str] = Field(None, description="Stack trace", max_length=5000)
    url: Optional[str] = Field(None, description="Page URL", max_length=500)
    user_agent: Optional[str] = Field(None, description="Browser user agent", max_length=500)


@app.post("/errors/frontend")
async def report_frontend_error(report: FrontendErrorReport):
    """Receive and log frontend error reports."""
    logger.error(
        "Frontend error: component=%s error=%s url=%s",
        report.component or "unknown",
        sanitize_text(report.error, 500),
        report.url or "unknown",
    )
    if report.stack:
        logger.debug("Frontend stack trace: %s", sanitize_text(report.stack, 2000))
    return {"received": True}


app.include_router(api_router)


if __name__ == "__main__":
    reload_enabled = get_settings().backend_reload
    logger.info("Backend bootstrap: uvicorn reload=%s", reload_enabled)
    uvicorn.run(
        "app:app",
        host="127.0.0.1",
        port=8000,
        reload=reload_enabled,
    )
