# src/opreg/api/routes.py
from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict

from fastapi import APIRouter, Request

from opreg.api.errors import ApiError
from opreg.api.schemas import CallRequest, CallResponse
from opreg.api.structured_logging import note_call
from opreg.crypto.sig import CallEnvelope, verify_call
from opreg.runtime.dispatch import call_function
from opreg.runtime.errors import RegistryError
from opreg.runtime.event_log import log_event
from opreg.runtime.registry import Registry

router = APIRouter()

_LOG = logging.getLogger("opreg.api")

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _registry(request: Request) -> Registry:
    reg = getattr(request.app.state, "registry", None)
    if reg is None:
        raise ApiError.internal("not_ready", "registry not attached to app.state", {})
    return reg


def _health_payload(request: Request) -> Json:
    reg = getattr(request.app.state, "registry", None)
    return {
        "ok": True,
        "service": "opreg",
        "version": "v1",
        "ts_ms": _now_ms(),
        "mode": (os.environ.get("OPREG_MODE") or "prod").strip().lower(),
        "registry": {
            "attached": reg is not None,
            "namespace": reg.namespace if reg is not None else None,
            "operator_configured": bool(reg is not None and reg.operator),
        },
    }


@router.get("/v1/health")
def v1_health(request: Request) -> Json:
    return _health_payload(request)


@router.get("/health")
def health(request: Request) -> Json:
    # unversioned alias for ops tooling
    return _health_payload(request)


@router.post("/v1/call", response_model=CallResponse)
def v1_call(body: CallRequest, request: Request) -> CallResponse:
    """Run one registry function on behalf of a verified caller.

    Order of checks:
      1) signature over the canonical call message (401 bad_signature)
      2) function name and args shape (400 unknown_function / bad_args)
      3) operator identity (403 unauthorized)
    """
    reg = _registry(request)
    env = CallEnvelope.from_json(body.model_dump())
    note_call(request, function=env.function)

    if not verify_call(env):
        note_call(request, outcome="bad_signature")
        log_event(_LOG, "call_bad_signature", level=logging.WARNING, caller=env.caller, function=env.function)
        raise ApiError.unauthenticated("bad_signature", "signature does not verify for caller", {"caller": env.caller})

    # From here on the caller is authenticated.
    note_call(request, caller=env.caller)
    try:
        result = call_function(reg, env.caller, env.function, env.args)
    except RegistryError as e:
        note_call(request, outcome=e.code)
        raise ApiError.from_registry_error(e) from e

    ok, value = result
    if not ok:
        note_call(request, outcome=value.code)
        raise ApiError.from_registry_error(value)

    note_call(request, outcome="ok")
    return CallResponse(ok=True, function=env.function, result=value)
