# src/opreg/runtime/registry.py
from __future__ import annotations

import logging
from typing import Optional

from opreg.runtime.event_log import log_event
from opreg.runtime.kv_store import KVStore
from opreg.runtime.result import CallResult

_LOG = logging.getLogger("opreg.registry")


class Registry:
    """Operator-gated mapping from an identifier to an address.

    The operator identity is fixed at construction. The caller identity is
    passed into every operation; the host is responsible for having verified
    it. Storage is delegated to the injected KVStore.

    Rules:
      - every read and write requires caller == operator (exact match)
      - a rejected call never touches the store
      - addresses are opaque strings; a missing id reads as None
    """

    def __init__(self, *, operator: str, store: KVStore) -> None:
        op = str(operator or "").strip()
        if not op:
            raise ValueError("operator must be a non-empty string")
        self._operator = op
        self._store = store

    @property
    def operator(self) -> str:
        return self._operator

    @property
    def namespace(self) -> str:
        return str(getattr(self._store, "namespace", ""))

    def is_operator(self, caller: str) -> bool:
        return isinstance(caller, str) and caller == self._operator

    def _reject(self, op: str, caller: str, account_id: str) -> CallResult:
        log_event(_LOG, "registry_unauthorized", level=logging.WARNING, op=op, caller=caller, id=account_id)
        return CallResult.unauthorized(caller)

    def get_account(self, caller: str, account_id: str) -> CallResult[str]:
        if not self.is_operator(caller):
            return self._reject("getAccount", caller, account_id)

        address: Optional[str] = self._store.get(str(account_id))
        log_event(_LOG, "registry_get", id=account_id, found=address is not None)
        return CallResult.success(address)

    def set_account(self, caller: str, account_id: str, address: str) -> CallResult[None]:
        if not self.is_operator(caller):
            return self._reject("setAccount", caller, account_id)

        self._store.set(str(account_id), str(address))
        log_event(_LOG, "registry_set", id=account_id)
        return CallResult.success(None)
