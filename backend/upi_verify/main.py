"""
UPI Payment Verification — FastAPI Application Entry Point

Builds the recognition engine and payment lifecycle manager, aggregates the
routers, configures middleware and serves uploaded screenshots.
"""
import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from upi_verify.config import get_settings
from upi_verify.database import init_db
from upi_verify.errors import PaymentPipelineError
from upi_verify.logging_setup import configure_logging
from upi_verify.routes import admin_router, upi_payments_router
from upi_verify.services.ocr_engine import TextRecognitionEngine
from upi_verify.services.payment_lifecycle import PaymentLifecycleManager
from upi_verify.services.screenshot_pipeline import ScreenshotPipeline
from upi_verify.services.screenshot_storage import ScreenshotStorage

settings = get_settings()
logger = logging.getLogger("upi_verify")

BOOT_TIME = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize tables, build the pipeline, and release the OCR engine on exit."""
    configure_logging()
    init_db()

    if getattr(app.state, "lifecycle_manager", None) is None:
        engine = TextRecognitionEngine()
        app.state.ocr_engine = engine
        app.state.lifecycle_manager = PaymentLifecycleManager(
            pipeline=ScreenshotPipeline(engine),
            storage=ScreenshotStorage(),
        )

    logger.info(
        "\n%s\n  %s v%s\n  TIME: %s\n  DATABASE: %s\n  OCR LANGUAGE: %s\n  UPLOADS: %s\n  DEBUG: %s\n%s",
        "=" * 60, settings.APP_NAME, settings.APP_VERSION, datetime.now().isoformat(),
        settings.DATABASE_URL, settings.OCR_LANGUAGE, settings.UPLOAD_DIR, settings.DEBUG, "=" * 60,
    )

    yield

    engine = getattr(app.state, "ocr_engine", None)
    if engine is not None:
        engine.shutdown()
    logger.info("Shutdown complete")


# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "API for verifying UPI payments from customer screenshots. Covers screenshot "
        "upload, OCR-based transaction reference extraction, duplicate detection, "
        "bounded resubmission and admin approval."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# ─── Middleware ──────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with timing."""
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 1)

    if request.url.path.startswith("/api"):
        logger.info("-> %s %s -> %s (%sms)", request.method, request.url.path, response.status_code, duration)

    return response


# ─── Error Handling ──────────────────────────────────────────────────
@app.exception_handler(PaymentPipelineError)
async def pipeline_error_handler(request: Request, exc: PaymentPipelineError):
    if exc.status_code >= 500:
        logger.error("%s %s failed at %s: %s", request.method, request.url.path, exc.stage, exc.message)
    else:
        logger.info("%s %s rejected at %s: %s", request.method, request.url.path, exc.stage, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(upi_payments_router)
app.include_router(admin_router)


@app.get("/health", tags=["Health"])
def deep_health(request: Request):
    """Detailed health check including dependency statuses."""
    from sqlalchemy import text
    from upi_verify.database import SessionLocal

    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception as e:
        logger.warning("Health check database probe failed: %s", e)
    finally:
        db.close()

    engine = getattr(request.app.state, "ocr_engine", None)
    return {
        "status": "healthy" if db_ok else "degraded",
        "database": "connected" if db_ok else "disconnected",
        "ocr_engine": "started" if engine is not None and engine.is_started else "idle",
        "uptime_seconds": round(time.time() - BOOT_TIME, 1),
        "version": settings.APP_VERSION,
    }


# ─── Uploaded Screenshots (Static Files) ────────────────────────────
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")
