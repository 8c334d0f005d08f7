from __future__ import annotations

import os

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from opreg.api.errors import ApiError, api_error_handler, validation_error_handler
from opreg.api.routes import router
from opreg.api.security import RequestSizeLimitMiddleware
from opreg.api.structured_logging import RequestLogMiddleware
from opreg.runtime.boot import build_registry as _build_registry
from opreg.runtime.event_log import configure_structured_logging


def build_registry():
    """Build the Registry for the API runtime.

    This wrapper exists so tests can monkeypatch `opreg.api.app.build_registry`
    without reaching into runtime modules.
    """
    return _build_registry()


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load config and attach app.state.registry
      - False: no registry; /v1/call answers 500 not_ready
    """
    mode = os.environ.get("OPREG_MODE", "prod").strip().lower()

    configure_structured_logging()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="opreg", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="opreg")

    app.state.registry = build_registry() if boot_runtime else None

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Added last runs first: log every request, including rejected oversize ones.
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(RequestLogMiddleware)

    app.include_router(router)

    return app
