"""Attention tracker: pure logic, no I/O.

Time is injected as epoch milliseconds (now_ms) on every call so the whole
pipeline is deterministic under test. Each entry point runs the daily
rollover before touching counters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from . import accumulator, achievements, sessions
from .aggregate import AggregatedStats, aggregate
from .categories import category_breakdown
from .config import HEARTBEAT_SECONDS, VIEW_WINDOWS, Settings
from .domains import normalize_domain
from .errors import InvalidViewError
from .models import DayStats, Notification, UserTimeStore, rules_from_dict
from .rollover import check_and_rotate

logger = logging.getLogger("clicksand.tracker")

TODAY_VIEW = "today"
VIEWS = (TODAY_VIEW, *VIEW_WINDOWS)


class TrackerEvent(str, Enum):
    DAILY_ROLLOVER = "daily_rollover"
    STATS_UPDATED = "stats_update"
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"
    NEW_SESSION = "new_session"


@dataclass
class IngestResult:
    accepted: bool = False
    events: list[TrackerEvent] = field(default_factory=list)
    domain: str | None = None
    effective_increment: float = 0.0
    notification: Notification | None = None
    rotated: bool = False

    @property
    def changed(self) -> bool:
        return self.rotated or self.accepted


def new_store(settings: Settings | None = None) -> UserTimeStore:
    """Fresh store for a user never seen before, seeded with the built-in rules."""
    settings = settings or Settings()
    return UserTimeStore(achievement_rules=rules_from_dict(settings.default_rules))


def normalize_view(view: str | None) -> str:
    value = (view or TODAY_VIEW).strip().lower()
    if value not in VIEWS:
        raise InvalidViewError(value)
    return value


class AttentionTracker:
    """Applies activity ticks to a UserTimeStore and decides on achievements."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()

    def rotate(self, store: UserTimeStore, now_ms: int) -> bool:
        return check_and_rotate(store, now_ms, self.settings.timezone)

    def ingest(
        self,
        store: UserTimeStore,
        domain: str,
        active_seconds: Any,
        video_seconds: Any,
        icon: str | None,
        now_ms: int,
    ) -> IngestResult:
        result = IngestResult()
        if self.rotate(store, now_ms):
            result.rotated = True
            result.events.append(TrackerEvent.DAILY_ROLLOVER)

        domain = normalize_domain(domain)
        if not domain:
            return result

        acc = accumulator.apply(
            store,
            domain,
            active_seconds,
            video_seconds,
            icon,
            now_ms,
            cap=self.settings.max_delta_seconds,
            count_browser_time=self.settings.browser_time_on_ingest,
        )
        result.accepted = True
        result.domain = domain
        result.effective_increment = acc.effective_increment
        result.events.append(TrackerEvent.STATS_UPDATED)

        if acc.effective_increment <= 0:
            return result

        domain_changed = store.last_domain is not None and store.last_domain != domain
        advance = sessions.advance(
            acc.entry,
            acc.effective_increment,
            now_ms,
            domain_changed=domain_changed,
            timeout_ms=self.settings.session_timeout_ms,
        )
        store.last_domain = domain
        if advance.is_new_session:
            result.events.append(TrackerEvent.NEW_SESSION)

        if acc.active_seconds <= 0 and not self.settings.video_counts_toward_achievements:
            return result

        notification = achievements.evaluate_for_domain(domain, acc.entry, store.achievement_rules)
        if notification is not None:
            logger.info(f"Achievement {notification.trigger_type} on {domain}: {notification.message}")
            result.notification = notification
            result.events.append(TrackerEvent.ACHIEVEMENT_UNLOCKED)
        return result

    def heartbeat(self, store: UserTimeStore, now_ms: int) -> bool:
        """Count one unit of browser-open time. Returns True if the store rotated."""
        rotated = self.rotate(store, now_ms)
        store.today_stats.browser_time += HEARTBEAT_SECONDS
        return rotated

    def reset(self, store: UserTimeStore, now_ms: int) -> None:
        """Drop all counters and history; rules and category overrides stay."""
        self.rotate(store, now_ms)
        store.today_stats = DayStats()
        store.history = {}
        store.last_domain = None

    def view_stats(self, store: UserTimeStore, view: str, now_ms: int) -> DayStats | AggregatedStats:
        view = normalize_view(view)
        self.rotate(store, now_ms)
        if view == TODAY_VIEW:
            return store.today_stats
        return aggregate(store.history, store.today_stats, VIEW_WINDOWS[view], store.current_date)

    def query(self, store: UserTimeStore, view: str, now_ms: int) -> dict:
        """Snapshot for API consumers: the selected view plus the raw live data."""
        view = normalize_view(view)
        stats = self.view_stats(store, view, now_ms)
        active_by_domain = {domain: entry.active_time for domain, entry in stats.domains.items()}
        return {
            "view": view,
            "currentDate": store.current_date,
            "stats": stats.to_dict(),
            "todayStats": store.today_stats.to_dict(),
            "history": {day: day_stats.to_dict() for day, day_stats in store.history.items()},
            "categories": category_breakdown(active_by_domain, store.category_overrides),
        }
