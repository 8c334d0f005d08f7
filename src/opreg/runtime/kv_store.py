from __future__ import annotations

from typing import Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class KVStore(Protocol):
    """Durable string->string mapping scoped to one namespace."""

    namespace: str

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKVStore:
    """In-process store. Used by tests and throwaway dev runs."""

    def __init__(self, namespace: str = "accounts") -> None:
        self.namespace = str(namespace)
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(str(key))

    def set(self, key: str, value: str) -> None:
        self._data[str(key)] = str(value)

    def __len__(self) -> int:
        return len(self._data)
