"""FastAPI application entrypoint. No business logic; only wiring, middleware and error mapping."""

from dotenv import load_dotenv

load_dotenv()

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app.api.v1 import router as v1_router
from app.core.config import settings
from app.core.errors import (
    AccountLockedError,
    AuthServiceError,
    ServiceUnavailableError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

# Seconds a client should wait before retrying after a store outage.
STORE_RETRY_AFTER_SEC = 5

app = FastAPI(
    title="TenantGuard API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthServiceError)
async def auth_service_error_handler(request: Request, exc: AuthServiceError) -> JSONResponse:
    """Map service errors to {"detail", "code"} with the error's HTTP status."""
    headers: dict[str, str] = {}
    if isinstance(exc, UnauthorizedError):
        headers["WWW-Authenticate"] = "Bearer"
    if isinstance(exc, AccountLockedError):
        headers["Retry-After"] = str(exc.retry_after_minutes * 60)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers or None,
    )


@app.exception_handler(OperationalError)
async def store_unavailable_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """Store unreachable or timed out: retryable 503, never a silent success."""
    logger.error(
        "Account store unavailable",
        extra={"path": request.url.path, "error_type": type(exc.orig).__name__},
    )
    error = ServiceUnavailableError("Service temporarily unavailable.")
    return JSONResponse(
        status_code=error.status_code,
        content={"detail": error.message, "code": error.code},
        headers={"Retry-After": str(STORE_RETRY_AFTER_SEC)},
    )


app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Root route; minimal payload for discovery."""
    return {"message": "TenantGuard API"}
