"""Calendar-day rollover of live counters into history."""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from functools import lru_cache

from .config import DEFAULT_TIMEZONE
from .models import DayStats, UserTimeStore

logger = logging.getLogger("clicksand.rollover")


@lru_cache(maxsize=32)
def resolve_timezone(name: str) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        from zoneinfo import ZoneInfo

        return ZoneInfo(name)
    except Exception as e:
        logger.warning(f"Unknown timezone {name!r} ({e}), falling back to UTC")
        return timezone.utc


def date_string(now_ms: int, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """YYYY-MM-DD for an epoch-milliseconds timestamp in the given zone."""
    return datetime.fromtimestamp(now_ms / 1000, tz=resolve_timezone(tz_name)).strftime("%Y-%m-%d")


def _merge_day(target: DayStats, source: DayStats) -> None:
    # Same date archived twice (clock moved back across midnight); keep both
    target.browser_time += source.browser_time
    for domain, entry in source.domains.items():
        existing = target.domains.get(domain)
        if existing is None:
            target.domains[domain] = entry
            continue
        existing.active_time += entry.active_time
        existing.video_time += entry.video_time
        if entry.total_tab_time is not None:
            existing.total_tab_time = (existing.total_tab_time or 0.0) + entry.total_tab_time
        existing.session_count += entry.session_count
        if entry.icon:
            existing.icon = entry.icon


def check_and_rotate(store: UserTimeStore, now_ms: int, tz_name: str = DEFAULT_TIMEZONE) -> bool:
    """Archive today's stats if the date changed. Returns True if a rotation happened."""
    today = date_string(now_ms, tz_name)

    if store.current_date is None:
        store.current_date = today
        return False

    if store.current_date == today:
        return False

    previous = store.current_date
    archived = store.history.get(previous)
    if archived is None:
        store.history[previous] = store.today_stats
    else:
        _merge_day(archived, store.today_stats)

    store.today_stats = DayStats()
    store.current_date = today
    store.last_domain = None
    logger.info(f"Rotated stats from {previous} to {today}")
    return True
