# src/opreg/runtime/boot.py

from __future__ import annotations

from typing import Optional

from opreg.runtime.config import RegistryConfig, load_registry_config
from opreg.runtime.registry import Registry
from opreg.runtime.sqlite_db import SqliteDB, SqliteKVStore


def build_registry(cfg: Optional[RegistryConfig] = None) -> Registry:
    """
    Build a SQLite-backed Registry from an explicit config or, if omitted,
    from OPREG_* environment variables / OPREG_CONFIG_PATH.
    """
    c = cfg or load_registry_config()
    store = SqliteKVStore(db=SqliteDB(path=c.db_path), namespace=c.namespace)
    return Registry(operator=c.operator, store=store)
