"""
RYLS Registration & Payment API — FastAPI Application Entry Point

Aggregates all routers, configures middleware and error mapping,
validates configuration and initializes the database on startup.
"""
import logging
import os
import time
import uuid
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ryls_api.config import get_settings, SANDBOX, PRODUCTION
from ryls_api.constants import EXPIRY_UNITS
from ryls_api.database import init_db
from ryls_api.dependencies import get_gateway, get_order_id_allocator, get_pricing
from ryls_api.errors import RylsError, ConfigurationError
from ryls_api.routes import registration_router, payment_router, upload_router, admin_router
from ryls_api.schemas.schemas import ErrorResponse

settings = get_settings()
logger = logging.getLogger("ryls_api")

# Shown instead of the message for errors that are not public
SAFE_MESSAGES = {
    "SIGNATURE": "Invalid notification signature",
    "CONSISTENCY": "Notification does not match the stored payment",
    "GATEWAY": "Payment gateway unavailable",
}
GENERIC_MESSAGE = "Internal processing error"

# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Registration and payment API for the Rise Young Leaders Summit. "
        "Covers fully and self funded applications, document uploads, "
        "Midtrans Snap payments with webhook reconciliation, and proof of transfer."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

BOOT_TIME = time.time()


def configure_logging():
    """Console + LOG_DIR/server.log handlers on the root logger, installed once."""
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL.upper())
    if any(h.get_name() == "ryls" for h in root.handlers):
        return

    formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    for handler in (
        logging.StreamHandler(),
        logging.FileHandler(os.path.join(settings.LOG_DIR, "server.log"), mode="a", encoding="utf-8"),
    ):
        handler.setFormatter(formatter)
        handler.set_name("ryls")
        root.addHandler(handler)


def validate_configuration():
    """Fatal checks; raises ConfigurationError."""
    mode = settings.MIDTRANS_MODE.lower()
    if mode not in (SANDBOX, PRODUCTION):
        raise ConfigurationError(f"MIDTRANS_MODE must be '{SANDBOX}' or '{PRODUCTION}', got {settings.MIDTRANS_MODE!r}")
    if settings.PAYMENT_EXPIRY_UNIT not in EXPIRY_UNITS:
        raise ConfigurationError(f"PAYMENT_EXPIRY_UNIT must be one of {EXPIRY_UNITS}")
    if settings.PAYMENT_EXPIRY_DURATION < 1:
        raise ConfigurationError("PAYMENT_EXPIRY_DURATION must be positive")
    if not settings.midtrans_server_key:
        if mode == SANDBOX and settings.DEBUG:
            logger.warning("Midtrans sandbox server key missing; notifications will be rejected")
        else:
            raise ConfigurationError(f"Midtrans server key missing for {mode} mode")

    get_pricing().validate_configuration()
    get_order_id_allocator().validate_configuration()


def _mask(secret: str) -> str:
    return f"{secret[:6]}..." if secret else "[!] Missing"


# ─── Startup ─────────────────────────────────────────────────────────
@app.on_event("startup")
def on_startup():
    """Validate configuration, initialize database tables and log boot info."""
    configure_logging()
    validate_configuration()
    init_db()

    boot_msg = (
        f"\n{'='*60}\n"
        f"  {settings.APP_NAME} v{settings.APP_VERSION}\n"
        f"  TIME: {datetime.now().isoformat()}\n"
        f"  MIDTRANS: {settings.MIDTRANS_MODE} (server key {_mask(get_gateway().server_key())})\n"
        f"  WEBHOOK: {settings.WEBHOOK_SIGNATURE_ALGORITHM}, gateway retries {settings.WEBHOOK_RETRY_ATTEMPTS}x within {settings.WEBHOOK_TIMEOUT_MS}ms\n"
        f"  DATABASE: {settings.DATABASE_URL}\n"
        f"  DEBUG: {settings.DEBUG}\n"
        f"{'='*60}"
    )
    logger.info(boot_msg)


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


# ─── Error Mapping ───────────────────────────────────────────────────
def _error_response(status_code: int, detail: str, error_code: str, error_id: str) -> JSONResponse:
    body = ErrorResponse(detail=detail, error_code=error_code, error_id=error_id)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(RylsError)
async def ryls_error_handler(request: Request, exc: RylsError):
    detail = exc.message if exc.public else SAFE_MESSAGES.get(exc.kind, GENERIC_MESSAGE)
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "%s error %s on %s %s: %s %s",
        exc.kind, exc.error_id, request.method, request.url.path, exc.message, exc.context or "",
    )
    return _error_response(exc.status_code, detail, exc.kind, exc.error_id)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())[1:])
        problems.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    error_id = uuid.uuid4().hex[:12]
    logger.warning("Rejected request %s on %s %s: %s", error_id, request.method, request.url.path, problems)
    return _error_response(400, "; ".join(problems) or "Invalid request", "VALIDATION", error_id)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    error_id = uuid.uuid4().hex[:12]
    logger.error("Database error %s on %s %s: %s", error_id, request.method, request.url.path, exc)
    return _error_response(500, GENERIC_MESSAGE, "DATABASE", error_id)


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(registration_router)
app.include_router(payment_router)
app.include_router(upload_router)
app.include_router(admin_router)


@app.get("/health", tags=["Health"])
def deep_health():
    """Detailed health check including dependency statuses."""
    from ryls_api.database import SessionLocal
    from sqlalchemy import text
    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        logger.error("Health check database query failed: %s", e)
    finally:
        db.close()

    return {
        "status": "healthy" if db_ok else "degraded",
        "database": "connected" if db_ok else "disconnected",
        "gateway_mode": settings.MIDTRANS_MODE,
        "uptime_seconds": round(time.time() - BOOT_TIME, 1),
        "version": settings.APP_VERSION,
    }
