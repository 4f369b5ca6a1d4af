"""FastAPI application entry point.

Chess Arena API - chess match and single-elimination tournament server
"""

import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from chess_arena import __version__
from chess_arena.api import matches, tournaments
from chess_arena.config import Settings, get_settings
from chess_arena.container import ArenaServices, build_services
from chess_arena.logging_config import bind_context, clear_context, configure_logging, get_logger
from chess_arena.utils.errors import ArenaError, ErrorCode
from chess_arena.utils.json_utils import ORJSONResponse
from chess_arena.utils.locks import LockAcquisitionError
from chess_arena.ws.gateway import router as ws_router

logger = get_logger(__name__)

API_V1_PREFIX = "/api/v1"


# =============================================================================
# Middleware
# =============================================================================


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each HTTP request with a trace id.

    The id comes from the client's X-Request-ID header when present, is
    bound into the log context for the request's duration and echoed on
    the response.
    """

    async def dispatch(self, request: Request, call_next):
        # WebSocket upgrades bypass BaseHTTPMiddleware
        if request.headers.get("upgrade", "").lower() == "websocket":
            return await call_next(request)

        trace_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = trace_id
        started = time.perf_counter()

        bind_context(trace_id=trace_id)
        try:
            response = await call_next(request)
            logger.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        finally:
            clear_context()

        response.headers["X-Request-ID"] = trace_id
        return response


# =============================================================================
# Error Handlers
# =============================================================================


def trace_id_of(request: Request) -> str:
    trace_id = getattr(request.state, "request_id", None)
    if trace_id is None:
        trace_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    return trace_id


def error_body(
    request: Request,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """``{"error": {code, message, details}, "traceId"}``, the body of every failed request."""
    return {
        "error": {"code": code, "message": message, "details": details or {}},
        "traceId": trace_id_of(request),
    }


async def http_exception_handler(request: Request, exc: HTTPException) -> ORJSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        # Raised by raise_for_result with the service's error already filled in
        body = {"error": detail["error"], "traceId": trace_id_of(request)}
    else:
        body = error_body(request, "HTTP_ERROR", str(detail))
    return ORJSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    problems = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
    return ORJSONResponse(
        error_body(
            request,
            ErrorCode.INVALID_REQUEST.value,
            "Request validation failed",
            {"errors": problems},
        ),
        status_code=status.HTTP_400_BAD_REQUEST,
    )


async def arena_error_handler(request: Request, exc: ArenaError) -> ORJSONResponse:
    """Stored state contradicts itself; nothing the caller can fix."""
    logger.error("invariant_violation", code=exc.code, message=exc.message, details=exc.details)
    return ORJSONResponse(
        error_body(request, exc.code, exc.message, exc.details),
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


async def lock_error_handler(request: Request, exc: LockAcquisitionError) -> ORJSONResponse:
    logger.warning("lock_timeout", error=str(exc))
    return ORJSONResponse(
        error_body(request, "RESOURCE_BUSY", "Resource is busy, retry shortly"),
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


async def general_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    logger.error("unhandled_exception", exc_type=type(exc).__name__, exc_info=exc)

    message = "Internal server error"
    if request.app.state.settings.app_debug:
        message = f"{type(exc).__name__}: {exc}"
    return ORJSONResponse(
        error_body(request, ErrorCode.INTERNAL_ERROR.value, message),
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


# =============================================================================
# Health Check
# =============================================================================


async def health_check(request: Request) -> dict[str, Any]:
    """Database reachability, lock backend and live socket count."""
    services: ArenaServices = request.app.state.services
    database = "healthy"
    try:
        async with services.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        database = f"unhealthy: {e}"
        logger.error("health_database_failed", error=str(e))

    return {
        "status": "healthy" if database == "healthy" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "services": {
            "database": database,
            "locks": type(services.locks).__name__,
            "websocket_connections": services.broadcaster.connection_count,
        },
    }


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    settings: Settings | None = None,
    services: ArenaServices | None = None,
) -> FastAPI:
    """Build the application.

    With ``services`` given (tests), the caller owns their lifetime and the
    lifespan neither builds nor closes them.
    """
    if services is not None:
        settings = services.settings
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.services is None
        if owned:
            configure_logging(
                log_level=settings.log_level,
                json_logs=settings.app_env == "production",
                app_env=settings.app_env,
            )
            logger.info(
                "arena_starting",
                env=settings.app_env,
                database=settings.database_url.split(":", 1)[0],
            )
            app.state.services = await build_services(settings)
            logger.info("arena_ready")

        yield

        if owned:
            await app.state.services.close()
            app.state.services = None
            logger.info("arena_stopped")

    app = FastAPI(
        title="Chess Arena API",
        version=__version__,
        description="Chess matches and single-elimination tournaments",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )
    app.state.settings = settings
    app.state.services = services

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.cors_origins.split(",")],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID", "X-User-Id", "X-User-Roles"],
        expose_headers=["X-Request-ID"],
    )

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ArenaError, arena_error_handler)
    app.add_exception_handler(LockAcquisitionError, lock_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])

    app.include_router(matches.router, prefix=API_V1_PREFIX)
    app.include_router(matches.admin_router, prefix=API_V1_PREFIX)
    app.include_router(tournaments.router, prefix=API_V1_PREFIX)
    app.include_router(tournaments.admin_router, prefix=API_V1_PREFIX)

    # WebSocket router (no prefix - endpoint is /ws)
    app.include_router(ws_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "chess_arena.main:app",
        host=_settings.app_host,
        port=_settings.app_port,
        reload=_settings.app_debug,
        log_level=_settings.log_level.lower(),
    )
