# src/opreg/runtime/event_log.py
from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Dict

Json = Dict[str, Any]

# LogRecord attribute carrying the structured payload built by log_event().
EVENT_ATTR = "opreg_event"


def _now_ms() -> int:
    return int(time.time() * 1000)


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line.

    Records produced by log_event() render their payload; any other record on
    the "opreg" tree (a plain logger.warning, say) becomes {"event": "log", "msg": ...}.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Json = dict(getattr(record, EVENT_ATTR, None) or {"event": "log", "msg": record.getMessage()})
        payload.setdefault("ts_ms", int(record.created * 1000))
        payload["level"] = record.levelname
        payload["logger"] = record.name
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def configure_structured_logging(level: str | None = None) -> logging.Logger:
    """Attach a JSONL stdout handler to the "opreg" logger.

    Level comes from `level`, else OPREG_LOG_LEVEL, else INFO. Calling it again
    only updates the level. Root handlers (uvicorn's, pytest's) are left alone.
    """
    name = (level or os.environ.get("OPREG_LOG_LEVEL") or "INFO").strip().upper()
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        resolved = logging.INFO

    logger = logging.getLogger("opreg")
    logger.setLevel(resolved)
    if not any(isinstance(h.formatter, JsonLineFormatter) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(JsonLineFormatter())
        logger.addHandler(handler)
    return logger


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Log a registry event; the message is the event name, the fields ride on the record."""
    payload: Json = {"ts_ms": _now_ms(), "event": str(event)}
    payload.update(fields)
    logger.log(level, str(event), extra={EVENT_ATTR: payload})
