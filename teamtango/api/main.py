"""
TeamTango API Server

FastAPI server for booking Pune sports venues, running teams and matches,
and reporting on venue usage.
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from teamtango.api.routes import router, limiter as routes_limiter
from teamtango.config import get_settings
from teamtango.database import db
from teamtango.database.db import get_db_session
from teamtango.database.init_defaults import init_defaults
from teamtango.services.errors import DomainError

settings = get_settings()

log_level = settings.LOG_LEVEL.upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

HTTP_ERROR_KINDS = {
    400: "bad_request",
    401: "not_authenticated",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limited",
    500: "internal_error",
    504: "timeout",
}


def error_response(status_code: int, error: str, message: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message}, headers=headers)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    logger.info(f"Starting up {settings.APP_NAME} API ({settings.ENV})...")

    # Fallback for tables missing from migrations
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    try:
        await init_defaults()
        logger.info("Default roles, permissions and sports initialized")
    except Exception as e:
        logger.error(f"Failed to initialize defaults: {e}", exc_info=True)

    yield

    logger.info(f"Shutting down {settings.APP_NAME} API...")
    try:
        await db.close_database()
    except Exception as e:
        logger.error(f"Error closing database engine: {e}", exc_info=True)


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Venue booking, teams, matches and analytics for Pune sports venues",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return error_response(exc.status_code, exc.error, exc.message, headers=exc.headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    kind = HTTP_ERROR_KINDS.get(exc.status_code, "error")
    return error_response(exc.status_code, kind, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Schema errors use the same 400 validation_error body as service-level checks."""
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    return error_response(400, "validation_error", message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(500, "internal_error", "Internal server error")


@app.middleware("http")
async def request_timeout(request: Request, call_next):
    try:
        return await asyncio.wait_for(call_next(request), timeout=settings.REQUEST_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning(f"Request timed out: {request.method} {request.url.path}")
        return error_response(504, "timeout", "Request timed out")


@app.middleware("http")
async def log_request(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/api/status")
async def status():
    return {"status": "ok", "name": settings.APP_NAME, "version": settings.APP_VERSION, "env": settings.ENV}


@app.get("/api/health")
async def health_check(session: AsyncSession = Depends(get_db_session)):
    """
    Health check endpoint.

    Returns:
        dict: Service and database status
    """
    try:
        await session.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logger.error(f"Health check database probe failed: {e}", exc_info=True)
        return JSONResponse(status_code=503, content={"status": "unhealthy", "database": "unavailable"})


@app.api_route("/api/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def unknown_api_route(path: str):
    return error_response(404, "not_found", f"No API route for /api/{path}")


if settings.FRONTEND_DIR and os.path.isdir(settings.FRONTEND_DIR):
    app.mount("/", StaticFiles(directory=settings.FRONTEND_DIR, html=True), name="frontend")


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
