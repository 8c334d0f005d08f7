# src/opreg/api/__main__.py
from __future__ import annotations

import uvicorn

from opreg.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so OPREG_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from opreg.api.app import create_app
    from opreg.runtime.config import load_registry_config

    cfg = load_registry_config()
    uvicorn.run(create_app(), host=cfg.api_host, port=cfg.api_port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
