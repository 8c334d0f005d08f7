from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from opreg.runtime.errors import BAD_SIGNATURE, UNAUTHORIZED, RegistryError


@dataclass(slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def unauthenticated(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(401, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def too_large(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(413, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    @staticmethod
    def from_registry_error(e: RegistryError) -> "ApiError":
        details = e.details if isinstance(e.details, dict) else ({} if e.details is None else {"details": e.details})
        if e.code == UNAUTHORIZED:
            return ApiError.forbidden(e.code, e.reason, details)
        if e.code == BAD_SIGNATURE:
            return ApiError.unauthenticated(e.code, e.reason, details)
        return ApiError.bad_request(e.code, e.reason, details)

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content={
                "ok": False,
                "error": {"code": self.code, "message": self.message, "details": self.details},
            },
        )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return exc.to_response()


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body validation failures in the same error shape as ApiError."""
    problems = [
        {"loc": [str(p) for p in err.get("loc", ())], "msg": str(err.get("msg", "")), "type": str(err.get("type", ""))}
        for err in exc.errors()
    ]
    return ApiError.bad_request("invalid_request", "request body failed validation", {"errors": problems}).to_response()
