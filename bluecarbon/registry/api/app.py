# -*- coding: utf-8 -*-
"""
Blue Carbon Registry - FastAPI application factory

Builds the HTTP API: CORS, rate limiting (slowapi), the registry router
under ``/api``, Prometheus metrics at ``/metrics`` and the exception
handlers that turn registry errors into JSON responses.

Status mapping:
    BlueCarbonException   -> exc.http_status with exc.to_dict()
    RequestValidationError -> 400 {"error": "Validation failed", "details": [...]}
    RateLimitExceeded     -> 429
    HTTPException         -> its status with {"error": detail}
    anything else         -> 500 (logged)

Usage:
    >>> from bluecarbon.registry.api.app import create_app
    >>> app = create_app()
    >>> # uvicorn.run(app, host="0.0.0.0", port=5000)
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from bluecarbon._version import __version__
from bluecarbon.exceptions import BlueCarbonException, StorageError, format_exception_chain
from bluecarbon.registry.config import RegistryConfig, get_config
from bluecarbon.registry.setup import configure_registry, get_registry_service

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _validation_details(exc: RequestValidationError) -> List[Dict[str, str]]:
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        # drop the "body" / "query" / "path" source marker
        field = ".".join(loc[1:] if len(loc) > 1 else loc) or "body"
        details.append({"field": field, "message": err.get("msg", "Invalid value")})
    return details


# =============================================================================
# Exception handlers
# =============================================================================

async def registry_exception_handler(request: Request, exc: BlueCarbonException) -> JSONResponse:
    if isinstance(exc, StorageError):
        logger.error(
            "Storage failure on %s %s:\n%s",
            request.method, request.url.path, format_exception_chain(exc),
        )
    else:
        logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "details": _validation_details(exc)},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# =============================================================================
# Application factory
# =============================================================================

@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    get_registry_service(app).shutdown()


def create_app(config: Optional[RegistryConfig] = None) -> FastAPI:
    """Build the registry FastAPI application.

    Args:
        config: Optional config. Uses global config if None.

    Returns:
        Configured FastAPI app with the registry service in ``app.state``.
    """
    config = config or get_config()
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)

    app = FastAPI(
        title="Blue Carbon Registry",
        description="Registry of blue-carbon restoration projects, stakeholders and MRV data",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=_lifespan,
    )

    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[config.rate_limit],
        enabled=config.rate_limit_enabled,
    )
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    # outermost, so limiter responses carry CORS headers too
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(BlueCarbonException, registry_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/metrics", tags=["Observability"])
    def metrics() -> Response:
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    configure_registry(app, config=config)

    logger.info(
        "Blue Carbon Registry app created (data_dir=%s, rate_limit=%s, enabled=%s)",
        config.data_dir, config.rate_limit, config.rate_limit_enabled,
    )
    return app


__all__ = [
    "create_app",
    "LOG_FORMAT",
]
