# src/opreg/runtime/config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

Json = Dict[str, Any]


def _as_int(name: str, v: Any, default: int) -> int:
    # Unset or blank falls back to the default; anything else must parse.
    if v is None or (isinstance(v, str) and not v.strip()):
        return int(default)
    if isinstance(v, (bool, float)):
        raise ValueError(f"{name} must be an integer; got: {v!r}")
    try:
        return int(str(v).strip())
    except ValueError as e:
        raise ValueError(f"{name} must be an integer; got: {v!r}") from e


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v).strip()
    return s if s else str(default)


@dataclass(frozen=True)
class RegistryConfig:
    # Identity allowed to read and write; fixed for the process lifetime.
    operator: str
    namespace: str
    mode: str  # "dev" | "testnet" | "prod"

    db_path: str

    api_host: str
    api_port: int

    log_level: str


_ALLOWED_MODES = {"dev", "testnet", "prod"}

# Names accepted by both logging.getLevelName() and uvicorn.run(log_level=...).
_ALLOWED_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def validate_registry_config(cfg: RegistryConfig) -> None:
    """Fail-fast validation so a misconfigured node never serves calls."""

    if not isinstance(cfg.operator, str) or not cfg.operator.strip():
        raise ValueError("operator must be a non-empty string (set OPREG_OPERATOR)")

    if not isinstance(cfg.namespace, str) or not cfg.namespace.strip():
        raise ValueError("namespace must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {sorted(_ALLOWED_MODES)}; got: {cfg.mode!r}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")

    if str(cfg.log_level or "").strip().upper() not in _ALLOWED_LOG_LEVELS:
        raise ValueError(f"log_level must be one of {sorted(_ALLOWED_LOG_LEVELS)}; got: {cfg.log_level!r}")


def default_registry_config() -> RegistryConfig:
    return RegistryConfig(
        operator="",
        namespace="accounts",
        mode="prod",
        db_path="./data/opreg.db",
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def _from_mapping(raw: Json, d: RegistryConfig) -> RegistryConfig:
    return RegistryConfig(
        operator=_as_str(raw.get("operator"), d.operator),
        namespace=_as_str(raw.get("namespace"), d.namespace),
        mode=_as_str(raw.get("mode"), d.mode).lower(),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int("api_port", raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level).upper(),
    )


def read_registry_config_file(path: str) -> RegistryConfig:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("registry config must be a JSON object")

    cfg = _from_mapping(raw, default_registry_config())
    validate_registry_config(cfg)
    return cfg


def registry_config_from_env() -> RegistryConfig:
    env = os.environ
    cfg = _from_mapping(
        {
            "operator": env.get("OPREG_OPERATOR"),
            "namespace": env.get("OPREG_NAMESPACE"),
            "mode": env.get("OPREG_MODE"),
            "db_path": env.get("OPREG_DB_PATH"),
            "api_host": env.get("OPREG_API_HOST"),
            "api_port": env.get("OPREG_API_PORT"),
            "log_level": env.get("OPREG_LOG_LEVEL"),
        },
        default_registry_config(),
    )
    validate_registry_config(cfg)
    return cfg


def load_registry_config(*, config_path: Optional[str] = None) -> RegistryConfig:
    p = config_path or os.environ.get("OPREG_CONFIG_PATH")
    if p:
        return read_registry_config_file(p)
    return registry_config_from_env()
