"""
api/main.py -- FastAPI application entry point for the catalog API.

Run with:  python main.py serve
           uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware     -- adds CORS headers for allowed browser origins
  2. log_requests       -- one access-log line per request with latency

Lifespan builds the stores and services on startup and tears them down on
shutdown. Everything request handlers need hangs off app.state:
  settings, user_store, product_store, credentials, tokens, hub, products

Error handling: every failure -- taxonomy errors from core/errors.py, routing
errors, unexpected exceptions -- leaves through one of the handlers below as
the same {success: false, message, errors?} envelope.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import HealthResponse, envelope
from api.routes.auth import router as auth_router
from api.routes.products import router as products_router
from api.routes.realtime import router as realtime_router
from auth.credentials import CredentialStore
from auth.store import UserStore
from auth.tokens import get_token_service
from catalog.service import ProductService
from catalog.store import ProductStore
from core.config import Settings, get_settings
from core.errors import CatalogError, InternalError
from realtime.hub import BroadcastHub

VERSION = "1.0.0"

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("catalog.api")


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def attach_services(
    app: FastAPI,
    *,
    settings: Settings,
    user_store: UserStore,
    product_store: ProductStore,
) -> None:
    """Build the service graph on app.state from already-open stores.

    Must run inside the event loop (lifespan) so the hub can bind to it.
    Shared with the test suite, which passes in-memory stores.
    """
    hub: BroadcastHub | None = None
    if settings.realtime_enabled:
        hub = BroadcastHub()
        hub.bind(asyncio.get_running_loop())

    app.state.settings = settings
    app.state.user_store = user_store
    app.state.product_store = product_store
    app.state.credentials = CredentialStore(user_store, settings.bcrypt_rounds)
    app.state.tokens = get_token_service()
    app.state.hub = hub
    app.state.products = ProductService(product_store, notifier=hub)


async def detach_services(app: FastAPI) -> None:
    if app.state.hub is not None:
        await app.state.hub.close()
    app.state.product_store.close()
    app.state.user_store.close()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores and wire services on startup; close them on shutdown."""
    logger.info("Catalog API starting up (env=%s)", settings.app_env)
    attach_services(
        app,
        settings=settings,
        user_store=UserStore(settings.database_url),
        product_store=ProductStore(settings.database_url),
    )
    logger.info("Stores initialized (realtime=%s)", settings.realtime_enabled)

    yield

    await detach_services(app)
    logger.info("Catalog API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Product Catalog API",
    description="Product catalog with JWT authentication, role-based access and live change notifications.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


@app.middleware("http")
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
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(products_router, prefix="/api", tags=["Products"])
app.include_router(realtime_router, tags=["Realtime"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the envelope from api/models.py.
# ---------------------------------------------------------------------------


def _debug_detail(exc: BaseException) -> str | None:
    """Raw error text for development mode; None (omitted) in production."""
    if not get_settings().is_development:
        return None
    cause = exc.__cause__ or exc
    return f"{type(cause).__name__}: {cause}"


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    """Map any taxonomy error to its status code and the envelope."""
    error = _debug_detail(exc) if isinstance(exc, InternalError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(success=False, message=exc.message, errors=exc.errors, error=error),
    )


_REDACTED_FIELDS = {"password"}


def _violation(err: dict) -> dict:
    """One pydantic error as a {field, message, value} entry."""
    loc = err.get("loc", ())
    field = ".".join(str(part) for part in loc[1:]) or (str(loc[0]) if loc else "request")
    if err.get("type") == "json_invalid":
        field = "body"
    value = err.get("input")
    if err.get("type") in ("missing", "json_invalid") or len(loc) <= 1 or field in _REDACTED_FIELDS:
        # Whole-body input, unparseable text and secrets are never echoed.
        value = None
    elif isinstance(value, float) and not math.isfinite(value):
        value = str(value)
    return {"field": field, "message": err.get("msg", "Invalid value"), "value": value}


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body, path and query violations, all reported together as a 400."""
    errors = [_violation(err) for err in exc.errors()]
    return JSONResponse(status_code=400, content=envelope(success=False, message="Validation failed", errors=errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing-level errors: unknown path (404), wrong method (405), and the like."""
    if exc.status_code == 404:
        message = "Route not found"
    elif exc.status_code == 405:
        message = "Method not allowed"
    else:
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(success=False, message=message),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the log. The client receives a generic message,
    plus the raw error text only when APP_ENV=development.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=envelope(success=False, message="Something went wrong!", error=_debug_detail(exc)),
    )


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    try:
        database = "ok" if request.app.state.product_store.ping() else "error"
    except SQLAlchemyError:
        logger.warning("Health check could not reach the database", exc_info=True)
        database = "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
