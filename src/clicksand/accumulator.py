"""Apply one activity delta to a user's per-domain counters."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from .config import MAX_DELTA_SECONDS
from .domains import normalize_domain
from .models import DomainStatEntry, UserTimeStore


@dataclass
class Accumulation:
    domain: str
    entry: DomainStatEntry
    effective_increment: float
    active_seconds: float
    video_seconds: float
    created: bool = False
    upgraded_to_video: bool = False


def clamp_seconds(value: Any, cap: float = MAX_DELTA_SECONDS) -> float:
    """Coerce a raw seconds value into [0, cap]; garbage becomes 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(seconds) or seconds <= 0:
        return 0.0
    return min(seconds, cap)


def apply(
    store: UserTimeStore,
    domain: str,
    active_seconds: Any,
    video_seconds: Any,
    icon: str | None,
    now_ms: int,
    cap: float = MAX_DELTA_SECONDS,
    count_browser_time: bool = True,
) -> Accumulation | None:
    """Add a tick to store.today_stats under the normalized domain. Returns None for an empty domain."""
    domain = normalize_domain(domain)
    if not domain:
        return None

    active = clamp_seconds(active_seconds, cap)
    video = clamp_seconds(video_seconds, cap)
    # Watching counts as engagement even with no input activity
    effective = max(active, video)

    day = store.today_stats
    entry = day.domains.get(domain)
    created = entry is None
    if entry is None:
        entry = DomainStatEntry(last_active_at=now_ms)
        day.domains[domain] = entry

    upgraded = False
    if video > 0 and not entry.is_video_capable:
        entry.total_tab_time = max(entry.active_time, entry.video_time)
        upgraded = True

    if entry.is_video_capable:
        entry.total_tab_time += effective
        if video > 0:
            entry.active_time += effective
            entry.video_time += video
    else:
        entry.active_time += effective
        entry.video_time += video

    entry.last_active_at = now_ms
    if icon:
        entry.icon = icon

    if count_browser_time and effective > 0:
        day.browser_time += effective

    return Accumulation(
        domain=domain,
        entry=entry,
        effective_increment=effective,
        active_seconds=active,
        video_seconds=video,
        created=created,
        upgraded_to_video=upgraded,
    )
