# src/opreg/runtime/dispatch.py
from __future__ import annotations

import json
from typing import Any, Callable, Dict, List

from opreg.runtime.errors import RegistryError
from opreg.runtime.registry import Registry
from opreg.runtime.result import CallResult


def _parse_args(args: Any) -> List[Any]:
    """Decode a call's arguments.

    Accepts a JSON array string (the wire form, e.g. '["alice","addr1"]')
    or an already-decoded list.
    """
    if isinstance(args, str):
        raw = args.strip() or "[]"
        try:
            args = json.loads(raw)
        except json.JSONDecodeError as e:
            raise RegistryError.bad_args("args is not valid JSON", error=str(e)) from e
    if not isinstance(args, list):
        raise RegistryError.bad_args("args must be a JSON array", type=type(args).__name__)
    return args


def _as_id(v: Any) -> str:
    # Numeric ids are accepted; bools are not.
    if isinstance(v, bool):
        raise RegistryError.bad_args("id must be a string or integer", value=v)
    if isinstance(v, int):
        return str(v)
    if isinstance(v, str) and v:
        return v
    raise RegistryError.bad_args("id must be a non-empty string or integer", value=v)


def _as_address(v: Any) -> str:
    if not isinstance(v, str):
        raise RegistryError.bad_args("address must be a string", value=v)
    return v


def _arity(fn: str, args: List[Any], n: int) -> None:
    if len(args) != n:
        raise RegistryError.bad_args(f"{fn} expects {n} argument(s)", got=len(args))


def _get_account(registry: Registry, caller: str, args: List[Any]) -> CallResult:
    _arity("getAccount", args, 1)
    return registry.get_account(caller, _as_id(args[0]))


def _set_account(registry: Registry, caller: str, args: List[Any]) -> CallResult:
    _arity("setAccount", args, 2)
    return registry.set_account(caller, _as_id(args[0]), _as_address(args[1]))


FUNCTIONS: Dict[str, Callable[[Registry, str, List[Any]], CallResult]] = {
    "getAccount": _get_account,
    "setAccount": _set_account,
}


def call_function(registry: Registry, caller: str, function: str, args: Any) -> CallResult:
    """Invoke a registry operation by its exported name.

    Raises RegistryError for unknown functions and malformed arguments.
    An unauthorized caller is not an exception here: it comes back as a
    failed CallResult, exactly as the Registry produced it.
    """
    handler = FUNCTIONS.get(str(function or "").strip())
    if handler is None:
        raise RegistryError.unknown_function(function, FUNCTIONS)
    return handler(registry, caller, _parse_args(args))
