"""Logging helpers for hookgate."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# attributes a caller may attach with ``extra=`` to tie a line to one hook call
CONTEXT_FIELDS = ("hook_name", "event_name", "tool_name", "decision", "error", "session_id")


class JsonFormatter(logging.Formatter):
    """One JSON object per line, carrying any hook context found on the record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = {name: getattr(record, name) for name in CONTEXT_FIELDS if getattr(record, name, None) is not None}
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(name: str, log_dir: Path, *, level: int = logging.INFO, stream: bool = True) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_dir.mkdir(parents=True, exist_ok=True)
    logger.setLevel(level)

    file_handler = logging.FileHandler(log_dir / "hookgate.log", encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(JsonFormatter())
    logger.addHandler(file_handler)

    if stream:
        # stdout carries `hooks run` JSON; keep the console to warnings on stderr
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.WARNING)
        stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(stream_handler)

    return logger
