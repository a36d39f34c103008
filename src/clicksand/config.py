"""Configuration for the Clicksand service.

Constants live at module level; runtime overrides come from CLICKSAND_*
environment variables via Settings.from_env().
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger("clicksand.config")

DATA_DIR = Path.home() / ".clicksand"
DB_PATH = DATA_DIR / "clicksand.db"
CRASH_LOG_PATH = DATA_DIR / "crash.log"
SERVER_HOST = "0.0.0.0"
SERVER_PORT = 3000

SESSION_TIMEOUT_MS = 30 * 60 * 1000  # 30 minutes of inactivity ends a session
MAX_DELTA_SECONDS = 600.0  # cap for a single tick (sleep/wake, clock jumps)
HEARTBEAT_SECONDS = 1.0
SAVE_DEBOUNCE_SECONDS = 2.0
IDLE_EVICT_SECONDS = 3600.0  # cached stores untouched this long are dropped from memory
DEFAULT_TIMEZONE = "UTC"

BROWSER_TIME_KEY = "browser_time"
LOG_BUFFER_SIZE = 100

# Built-in rules for a brand new user (seconds)
DEFAULT_ACHIEVEMENT_RULES: dict[str, dict] = {
    "youtube.com": {"limit": 120, "interval": 60, "message": "YouTube Limit Reached!"},
    "goclasses.in": {"limit": 300, "interval": 0, "message": "Study Break!"},
}

VIEW_WINDOWS: dict[str, int] = {
    "weekly": 7,
    "monthly": 30,
}


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    db_path: Path = DB_PATH
    crash_log_path: Path = CRASH_LOG_PATH
    host: str = SERVER_HOST
    port: int = SERVER_PORT
    timezone: str = DEFAULT_TIMEZONE
    save_debounce_seconds: float = SAVE_DEBOUNCE_SECONDS
    idle_evict_seconds: float = IDLE_EVICT_SECONDS
    max_delta_seconds: float = MAX_DELTA_SECONDS
    session_timeout_ms: int = SESSION_TIMEOUT_MS
    video_counts_toward_achievements: bool = False
    browser_time_on_ingest: bool = True
    log_level: str = "INFO"
    default_rules: dict[str, dict] = field(default_factory=lambda: dict(DEFAULT_ACHIEVEMENT_RULES))

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from CLICKSAND_* environment variables."""
        db = os.environ.get("CLICKSAND_DB")
        crash_log = os.environ.get("CLICKSAND_CRASH_LOG")
        return cls(
            db_path=Path(db).expanduser() if db else DB_PATH,
            crash_log_path=Path(crash_log).expanduser() if crash_log else CRASH_LOG_PATH,
            host=os.environ.get("CLICKSAND_HOST", SERVER_HOST),
            port=_env_int("CLICKSAND_PORT", SERVER_PORT),
            timezone=os.environ.get("CLICKSAND_TIMEZONE", DEFAULT_TIMEZONE),
            save_debounce_seconds=max(0.0, _env_float("CLICKSAND_SAVE_DEBOUNCE_SECONDS", SAVE_DEBOUNCE_SECONDS)),
            idle_evict_seconds=max(1.0, _env_float("CLICKSAND_IDLE_EVICT_SECONDS", IDLE_EVICT_SECONDS)),
            max_delta_seconds=max(1.0, _env_float("CLICKSAND_MAX_DELTA_SECONDS", MAX_DELTA_SECONDS)),
            video_counts_toward_achievements=_env_bool("CLICKSAND_VIDEO_ACHIEVEMENTS", False),
            browser_time_on_ingest=_env_bool("CLICKSAND_BROWSER_TIME_ON_INGEST", True),
            log_level=os.environ.get("CLICKSAND_LOG_LEVEL", "INFO").upper(),
        )
