# src/opreg/env.py
from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from dotenv import dotenv_values

ENV_PREFIX = "OPREG_"

_APPLIED: Optional[List[str]] = None


def load_dotenv_if_present(dotenv_path: Optional[str] = None) -> List[str]:
    """Apply OPREG_* settings from a .env file to os.environ, once per process.

    The file is `dotenv_path`, else $OPREG_DOTENV_PATH, else ./.env. Keys
    without the OPREG_ prefix are ignored, and variables already set in the
    environment win over the file.

    Returns the names that were applied; empty when the file is missing or
    this is not the first call.
    """
    global _APPLIED
    if _APPLIED is not None:
        return []

    path = Path(dotenv_path or os.environ.get("OPREG_DOTENV_PATH") or ".env").expanduser()
    applied: List[str] = []
    if path.is_file():
        for key, value in dotenv_values(path).items():
            if not key.startswith(ENV_PREFIX) or value is None or key in os.environ:
                continue
            os.environ[key] = value
            applied.append(key)

    _APPLIED = applied
    return list(applied)


def reset_dotenv_state() -> None:
    """Forget that a .env file was loaded (tests only)."""
    global _APPLIED
    _APPLIED = None
