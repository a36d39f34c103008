"""Logging setup: package logger, in-memory ring buffer, crash log."""

from __future__ import annotations

import logging
import sys
import traceback
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Deque

from .config import CRASH_LOG_PATH, LOG_BUFFER_SIZE

logger = logging.getLogger("clicksand")

# Circular buffer of recent log entries, served by /api/logs/recent
log_buffer: Deque[dict] = deque(maxlen=LOG_BUFFER_SIZE)

_crash_log_path: Path = CRASH_LOG_PATH


class LogBufferHandler(logging.Handler):
    """Capture log records into the circular buffer."""

    def emit(self, record: logging.LogRecord):
        try:
            log_buffer.append({
                "timestamp": datetime.fromtimestamp(record.created).strftime("%H:%M:%S"),
                "level": record.levelname,
                "logger": record.name,
                "message": self.format(record),
            })
        except Exception:
            self.handleError(record)


buffer_handler = LogBufferHandler()
buffer_handler.setLevel(logging.DEBUG)
buffer_handler.setFormatter(logging.Formatter("%(message)s"))


def setup_logging(level: str = "INFO") -> None:
    """Attach the buffer and a stderr handler to the clicksand logger (idempotent)."""
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if buffer_handler not in logger.handlers:
        logger.addHandler(buffer_handler)
    if not any(getattr(h, "_clicksand_console", False) for h in logger.handlers):
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        console._clicksand_console = True
        logger.addHandler(console)

    # Also capture uvicorn and fastapi logs
    for name in ("uvicorn", "fastapi"):
        other = logging.getLogger(name)
        if buffer_handler not in other.handlers:
            other.addHandler(buffer_handler)


def recent_logs(limit: int = 50) -> list[dict]:
    limit = max(0, min(limit, LOG_BUFFER_SIZE))
    if limit == 0:
        return []
    return list(log_buffer)[-limit:]


def log_crash(exc_type, exc_value, exc_tb, context: str = "unhandled") -> None:
    """Append a traceback to the crash log for post-mortem debugging."""
    try:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        tb_str = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
        _crash_log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(_crash_log_path, "a") as f:
            f.write(f"\n{'=' * 60}\n")
            f.write(f"CRASH [{context}] at {timestamp}\n")
            f.write(f"{'=' * 60}\n")
            f.write(tb_str)
            f.write("\n")
        print(f"CRASH [{context}]: {exc_type.__name__}: {exc_value}", file=sys.stderr)
    except Exception:
        pass  # never crash while logging a crash


def _global_exception_handler(exc_type, exc_value, exc_tb):
    log_crash(exc_type, exc_value, exc_tb, context="sync")
    sys.__excepthook__(exc_type, exc_value, exc_tb)


def asyncio_exception_handler(loop, context):
    exception = context.get("exception")
    if exception:
        log_crash(type(exception), exception, exception.__traceback__, context="asyncio")
    else:
        logger.error(f"asyncio error: {context.get('message')}")
    loop.default_exception_handler(context)


def install_crash_handlers(crash_log_path: Path | None = None) -> None:
    global _crash_log_path
    if crash_log_path is not None:
        _crash_log_path = Path(crash_log_path)
    sys.excepthook = _global_exception_handler
