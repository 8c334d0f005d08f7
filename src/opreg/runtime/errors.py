# src/opreg/runtime/errors.py
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

# Error codes carried on RegistryError and in HTTP error bodies.
UNAUTHORIZED = "unauthorized"  # caller is not the operator (403)
UNKNOWN_FUNCTION = "unknown_function"  # dispatch name not exported (400)
BAD_ARGS = "bad_args"  # args not a JSON array of the right shape (400)
BAD_SIGNATURE = "bad_signature"  # envelope signature does not verify (401)


class RegistryError(Exception):
    """A registry call that did not produce a value.

    `code` is one of the constants above (or a transport code on the client
    side); `details` names the offending input, never a stored address.
    """

    def __init__(self, code: str, reason: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(f"{code}: {reason}")
        self.code = code
        self.reason = reason
        self.details = details

    @classmethod
    def bad_args(cls, reason: str, **details: Any) -> "RegistryError":
        return cls(BAD_ARGS, reason, details)

    @classmethod
    def unknown_function(cls, function: Any, known: Iterable[str]) -> "RegistryError":
        return cls(UNKNOWN_FUNCTION, "no such function", {"function": function, "known": sorted(known)})

    def __repr__(self) -> str:
        return f"RegistryError(code={self.code!r}, reason={self.reason!r}, details={self.details!r})"
