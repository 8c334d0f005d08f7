from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Generic, Iterator, Optional, TypeVar

from opreg.runtime.errors import UNAUTHORIZED, RegistryError

T = TypeVar("T")


@dataclass(frozen=True)
class CallResult(Generic[T]):
    """Outcome of a registry operation.

    A failed result carries an error code instead of raising, so callers can
    branch on `ok` without exception handling. `unwrap()` converts a failure
    back into a RegistryError for callers that prefer exceptions.
    """

    ok: bool
    value: Optional[T] = None
    code: str = "ok"
    reason: str = ""
    details: Optional[Dict[str, Any]] = None

    def __iter__(self) -> Iterator[Any]:
        """Allow `ok, value_or_err = registry.get_account(...)` unpacking."""
        if self.ok:
            yield True
            yield self.value
        else:
            yield False
            yield RegistryError(self.code, self.reason, self.details)

    @property
    def is_unauthorized(self) -> bool:
        return (not self.ok) and self.code == UNAUTHORIZED

    def unwrap(self) -> Optional[T]:
        if not self.ok:
            raise RegistryError(self.code, self.reason, self.details)
        return self.value

    @staticmethod
    def success(value: Optional[T] = None) -> "CallResult[T]":
        return CallResult(True, value)

    @staticmethod
    def failure(code: str, reason: str, details: Optional[Dict[str, Any]] = None) -> "CallResult[T]":
        return CallResult(False, None, code, reason, details)

    @classmethod
    def unauthorized(cls, caller: str) -> "CallResult[T]":
        return cls.failure(UNAUTHORIZED, "caller is not the operator", {"caller": caller})
