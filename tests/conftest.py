from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure local "src/" takes precedence over any globally-installed "opreg" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)


@pytest.fixture(autouse=True)
def _clean_opreg_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # Tests must never pick up a developer's local OPREG_* settings.
    for name in (
        "OPREG_OPERATOR",
        "OPREG_NAMESPACE",
        "OPREG_DB_PATH",
        "OPREG_MODE",
        "OPREG_CONFIG_PATH",
        "OPREG_UNSAFE_DEV",
        "OPREG_MAX_REQUEST_BYTES",
        "OPREG_SIZE_LIMIT_DISABLE",
        "OPREG_DOTENV_PATH",
        "OPREG_API_HOST",
        "OPREG_API_PORT",
        "OPREG_LOG_LEVEL",
        "OPREG_LOG_REQUESTS",
        "OPREG_SQLITE_SYNCHRONOUS",
        "OPREG_SQLITE_BUSY_TIMEOUT_MS",
        "OPREG_SQLITE_WRITE_DEADLINE_MS",
    ):
        monkeypatch.delenv(name, raising=False)
