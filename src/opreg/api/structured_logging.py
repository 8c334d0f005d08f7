# src/opreg/api/structured_logging.py
from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Any, Dict

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from opreg.runtime.event_log import log_event

Json = Dict[str, Any]

_LOG = logging.getLogger("opreg.http")


def note_call(request: Request, **fields: Any) -> None:
    """Record call facts (function, caller, outcome) for the request log line.

    Only identifiers go here: args carry addresses and are never noted.
    """
    call = getattr(request.state, "call", None)
    if call is None:
        call = {}
        request.state.call = call
    call.update(fields)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` event per request, tagged with x-request-id.

    For /v1/call the event also carries what the route noted via note_call():
    the dispatched function, the verified caller and the outcome code.
    Rejected calls (status >= 400) log at WARNING.

    OPREG_LOG_REQUESTS=0 turns it off.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        raw = (os.environ.get("OPREG_LOG_REQUESTS") or "1").strip().lower()
        self._enabled = raw not in {"0", "false", "no", "off"}

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        # Touch state now so the endpoint writes into the same mapping we read.
        request.state.request_id = request_id
        request.state.call = {}

        started = time.monotonic()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
        except Exception as e:
            note_call(request, outcome="crash", error=type(e).__name__)
            raise
        finally:
            if self._enabled:
                log_event(
                    _LOG,
                    "http_request",
                    level=logging.WARNING if status >= 400 else logging.INFO,
                    request_id=request_id,
                    method=request.method,
                    path=request.url.path,
                    status=status,
                    duration_ms=int((time.monotonic() - started) * 1000),
                    **request.state.call,
                )

        response.headers.setdefault("x-request-id", request_id)
        return response
