# src/opreg/api/security.py
from __future__ import annotations

import os
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from opreg.api.errors import ApiError
from opreg.api.structured_logging import note_call

# A call envelope is a caller key, a function name, two short args, a nonce
# and a signature; anything near this size is not a registry call.
DEFAULT_MAX_CALL_BYTES = 65_536

CALL_PATH = "/v1/call"


def _max_call_bytes() -> int:
    raw = (os.environ.get("OPREG_MAX_REQUEST_BYTES") or "").strip()
    try:
        return int(raw) if raw else DEFAULT_MAX_CALL_BYTES
    except ValueError:
        return DEFAULT_MAX_CALL_BYTES


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject oversized /v1/call bodies with 413 before they reach JSON parsing.

    The declared Content-Length is checked first, then the buffered body, so
    chunked uploads are capped too. Other paths pass through untouched.

    OPREG_MAX_REQUEST_BYTES sets the cap; OPREG_SIZE_LIMIT_DISABLE=1 turns it
    off when a proxy in front already enforces one.
    """

    def __init__(self, app, *, max_bytes: Optional[int] = None) -> None:
        super().__init__(app)
        disabled = (os.environ.get("OPREG_SIZE_LIMIT_DISABLE") or "").strip().lower()
        self._enabled = disabled not in {"1", "true", "yes", "on"}
        self._max_bytes = int(max_bytes) if max_bytes is not None else _max_call_bytes()

    def _reject(self, request: Request, size: int):
        note_call(request, outcome="request_too_large")
        return ApiError.too_large(
            "request_too_large",
            "call body too large",
            {"max_bytes": self._max_bytes, "size": size},
        ).to_response()

    async def dispatch(self, request: Request, call_next):
        if not self._enabled or request.url.path != CALL_PATH:
            return await call_next(request)

        declared = request.headers.get("content-length") or ""
        if declared.isdigit() and int(declared) > self._max_bytes:
            return self._reject(request, int(declared))

        body = await request.body()
        if len(body) > self._max_bytes:
            return self._reject(request, len(body))

        return await call_next(request)
