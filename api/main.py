"""
api/main.py -- FastAPI application factory and entry point for msid-api.

Run with:      uvicorn asgi:app --reload
               python main.py

Middleware stack (outermost to innermost):
  1. log_requests   -- one access-log line per request with latency
  2. CORSMiddleware -- lets the configured frontend (APP_URL) call the API
                       with credentials

Configuration is loaded once, in create_app(), and attached to app.state.
Every component receives it from there or through its constructor; nothing
below this module calls get_settings().

Lifespan handles startup (stores, provider client, auth service) and
shutdown (close DB engines) symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.resources import router as resources_router
from auth.errors import AuthenticationFailure
from auth.oauth import MicrosoftProvider
from auth.service import AuthService
from auth.store import UserStore
from core.config import Settings, get_settings
from resources.store import ResourceStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("msid.api")

VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the stateful collaborators from app.state.settings.

    Startup order matters: the auth service needs the user store and the
    provider client, so those come first.
    """
    settings: Settings = app.state.settings
    logger.info("msid-api starting up")
    app.state.user_store = UserStore(settings.database_url)
    app.state.resource_store = ResourceStore(settings.database_url)
    app.state.provider = MicrosoftProvider(settings)
    app.state.auth_service = AuthService(settings, app.state.provider, app.state.user_store)
    if not settings.microsoft_client_id:
        logger.warning("MICROSOFT_CLIENT_ID is not set -- provider sign-in will fail")
    logger.info("Auth initialized (tenant=%s)", settings.microsoft_tenant_id)

    yield

    app.state.resource_store.close()
    app.state.user_store.close()
    logger.info("msid-api shutdown complete")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return {"error": detail} for every HTTPException, keeping its headers (WWW-Authenticate)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the request body or params fail validation."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error=f"Invalid request: {problems}").model_dump(),
    )


async def authentication_failure_handler(request: Request, exc: AuthenticationFailure) -> JSONResponse:
    return JSONResponse(status_code=500, content=ErrorResponse(error="Failed to authenticate").model_dump())


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="An unexpected error occurred.").model_dump(),
    )


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Health endpoint
#
# Registered directly on the app (not in a router) so it is always reachable.
# ---------------------------------------------------------------------------


async def health() -> HealthResponse:
    """Return API liveness."""
    return HealthResponse(status="ok")


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application around one immutable Settings instance."""
    settings = settings or get_settings()

    app = FastAPI(
        title="msid-api",
        description="Microsoft sign-in, bearer credentials and an owner-scoped resource collection.",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.app_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "Cache-Control", "X-Requested-With"],
        max_age=3600,
    )
    app.middleware("http")(log_requests)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(AuthenticationFailure, authentication_failure_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(auth_router, tags=["Auth"])
    app.include_router(resources_router, tags=["Resources"])
    app.add_api_route("/health", health, methods=["GET"], response_model=HealthResponse, tags=["Health"])

    return app
