"""Per-user store registry, locking and debounced persistence.

All mutations for one user run under that user's asyncio.Lock, from load
through mutation to scheduling the save. Saves are one-shot APScheduler jobs
keyed by user id; scheduling again replaces the pending job, so at most one
write is queued per user per debounce window.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from . import categories
from .config import Settings
from .errors import InvalidCategoryError
from .events import EventHub
from .models import AchievementRule, UserTimeStore, rules_from_dict
from .store import PersistenceGateway
from .tracker import AttentionTracker, IngestResult, TrackerEvent, new_store

logger = logging.getLogger("clicksand.service")

EVICT_JOB_ID = "evict-idle"


def now_ms() -> int:
    return int(time.time() * 1000)


class SaveScheduler:
    """Coalescing save queue on top of an APScheduler scheduler."""

    def __init__(self, scheduler: AsyncIOScheduler, debounce_seconds: float):
        self.scheduler = scheduler
        self.debounce_seconds = debounce_seconds

    @staticmethod
    def job_id(user_id: str) -> str:
        return f"save:{user_id}"

    def schedule(self, user_id: str, func: Callable) -> None:
        run_date = datetime.now(timezone.utc) + timedelta(seconds=self.debounce_seconds)
        self.scheduler.add_job(
            func,
            trigger=DateTrigger(run_date=run_date),
            args=[user_id],
            id=self.job_id(user_id),
            replace_existing=True,
            misfire_grace_time=None,
        )

    def cancel(self, user_id: str) -> None:
        job_id = self.job_id(user_id)
        if self.scheduler.get_job(job_id):
            self.scheduler.remove_job(job_id)


class TimeTrackingService:
    def __init__(
        self,
        gateway: PersistenceGateway,
        settings: Settings | None = None,
        scheduler: AsyncIOScheduler | None = None,
        events: EventHub | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.settings = settings or Settings()
        self.gateway = gateway
        self.tracker = AttentionTracker(self.settings)
        self.events = events or EventHub()
        self.saves = SaveScheduler(scheduler or AsyncIOScheduler(), self.settings.save_debounce_seconds)
        self._clock = clock
        self._stores: dict[str, UserTimeStore] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._last_access: dict[str, int] = {}
        self._dirty: set[str] = set()

    # ---- Store registry ----

    def lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def cached_users(self) -> list[str]:
        return list(self._stores)

    async def get_store(self, user_id: str) -> UserTimeStore:
        """Return the in-memory store for user_id, loading or creating it on first use.

        Callers that mutate must hold lock_for(user_id).
        """
        self._last_access[user_id] = self._clock()
        store = self._stores.get(user_id)
        if store is not None:
            return store

        snapshot = None
        try:
            snapshot = await self.gateway.load(user_id)
        except Exception as e:
            logger.error(f"Failed to load snapshot for {user_id}, starting empty: {e}")

        store = new_store(self.settings)
        if snapshot:
            try:
                loaded = UserTimeStore.from_dict(snapshot)
            except Exception as e:
                logger.warning(f"Unusable snapshot for {user_id}, starting empty: {e}")
            else:
                if "achievementRules" not in snapshot:
                    loaded.achievement_rules = store.achievement_rules
                store = loaded
        self._stores[user_id] = store
        return store

    def evict_idle(self, max_idle_seconds: float | None = None) -> list[str]:
        """Drop cached stores untouched for max_idle_seconds.

        Users with an unsaved change or a held lock stay cached; an evicted user
        is reloaded from the gateway on next access.
        """
        if max_idle_seconds is None:
            max_idle_seconds = self.settings.idle_evict_seconds
        cutoff = self._clock() - int(max_idle_seconds * 1000)
        evicted = []
        for user_id, last_access in list(self._last_access.items()):
            if last_access > cutoff or user_id in self._dirty:
                continue
            lock = self._locks.get(user_id)
            if lock is not None and lock.locked():
                continue
            self._stores.pop(user_id, None)
            self._locks.pop(user_id, None)
            del self._last_access[user_id]
            evicted.append(user_id)
        if evicted:
            logger.debug(f"Evicted {len(evicted)} idle users from cache")
        return evicted

    async def _evict_job(self) -> None:
        self.evict_idle()

    # ---- Persistence ----

    def schedule_save(self, user_id: str) -> None:
        self._dirty.add(user_id)
        self.saves.schedule(user_id, self._flush_job)

    async def _flush_job(self, user_id: str) -> None:
        await self.flush(user_id)

    async def flush(self, user_id: str, retry: bool = True) -> bool:
        """Write the user's snapshot now. On failure the save is retried next window
        unless retry is False.
        """
        store = self._stores.get(user_id)
        if store is None:
            return False
        snapshot = store.to_dict()
        self._dirty.discard(user_id)
        try:
            await self.gateway.save(user_id, snapshot)
        except Exception as e:
            if not retry:
                logger.error(f"Saving snapshot for {user_id} failed, change lost: {e}")
                return False
            logger.error(f"Saving snapshot for {user_id} failed, will retry: {e}")
            self.schedule_save(user_id)
            return False
        return True

    async def flush_all(self, retry: bool = True) -> None:
        for user_id in list(self._dirty):
            self.saves.cancel(user_id)
            await self.flush(user_id, retry=retry)

    def start(self) -> None:
        scheduler = self.saves.scheduler
        if not scheduler.running:
            scheduler.start()
        scheduler.add_job(
            self._evict_job,
            trigger=IntervalTrigger(seconds=self.settings.idle_evict_seconds),
            id=EVICT_JOB_ID,
            replace_existing=True,
        )

    async def close(self) -> None:
        # The scheduler stops below, so a failed final write cannot be retried
        await self.flush_all(retry=False)
        if self.saves.scheduler.running:
            self.saves.scheduler.shutdown(wait=False)

    # ---- Operations ----

    def _publish_stats(self, user_id: str, store: UserTimeStore) -> None:
        self.events.publish(user_id, TrackerEvent.STATS_UPDATED.value, store.today_stats.to_dict())

    async def ingest(
        self,
        user_id: str,
        domain: str,
        active_seconds: Any = 0,
        video_seconds: Any = 0,
        icon: str | None = None,
        now: int | None = None,
    ) -> IngestResult:
        if not user_id:
            logger.warning("Ignoring activity without userId")
            return IngestResult()
        if not domain:
            return IngestResult()

        timestamp = self._clock() if now is None else now
        async with self.lock_for(user_id):
            store = await self.get_store(user_id)
            result = self.tracker.ingest(store, domain, active_seconds, video_seconds, icon, timestamp)
            if result.changed:
                self.schedule_save(user_id)

        if result.notification is not None:
            self.events.publish(
                user_id, TrackerEvent.ACHIEVEMENT_UNLOCKED.value, result.notification.to_dict()
            )
        if result.accepted:
            self._publish_stats(user_id, store)
        return result

    async def heartbeat(self, user_id: str, now: int | None = None) -> bool:
        if not user_id:
            return False
        timestamp = self._clock() if now is None else now
        async with self.lock_for(user_id):
            store = await self.get_store(user_id)
            self.tracker.heartbeat(store, timestamp)
            self.schedule_save(user_id)
        self._publish_stats(user_id, store)
        return True

    async def query(self, user_id: str, view: str = "today", now: int | None = None) -> dict:
        timestamp = self._clock() if now is None else now
        async with self.lock_for(user_id):
            store = await self.get_store(user_id)
            if self.tracker.rotate(store, timestamp):
                self.schedule_save(user_id)
            return self.tracker.query(store, view, timestamp)

    async def reset(self, user_id: str, now: int | None = None) -> None:
        timestamp = self._clock() if now is None else now
        async with self.lock_for(user_id):
            store = await self.get_store(user_id)
            self.tracker.reset(store, timestamp)
            self.schedule_save(user_id)
        logger.info(f"Reset stats for {user_id}")
        self._publish_stats(user_id, store)

    async def get_achievement_rules(self, user_id: str) -> dict[str, AchievementRule]:
        async with self.lock_for(user_id):
            store = await self.get_store(user_id)
            return dict(store.achievement_rules)

    async def update_achievement_rules(
        self,
        user_id: str,
        rules: Mapping[str, AchievementRule | dict],
        now: int | None = None,
    ) -> dict[str, AchievementRule]:
        # Insertion order decides between overlapping suffix patterns
        canonical: dict[str, AchievementRule] = {}
        for pattern, rule in rules.items():
            if isinstance(rule, AchievementRule):
                canonical[pattern] = rule
            elif isinstance(rule, dict):
                canonical.update(rules_from_dict({pattern: rule}))

        timestamp = self._clock() if now is None else now
        async with self.lock_for(user_id):
            store = await self.get_store(user_id)
            self.tracker.rotate(store, timestamp)
            store.achievement_rules = canonical
            self.schedule_save(user_id)
        logger.info(f"Updated {len(canonical)} achievement rules for {user_id}")
        return dict(canonical)

    async def get_categories(self, user_id: str) -> dict[str, str]:
        async with self.lock_for(user_id):
            store = await self.get_store(user_id)
            return dict(store.category_overrides)

    async def set_category(self, user_id: str, domain: str, category: str) -> str:
        if not categories.is_valid_category(category):
            raise InvalidCategoryError(category)
        async with self.lock_for(user_id):
            store = await self.get_store(user_id)
            categories.set_category(store.category_overrides, domain, category)
            self.schedule_save(user_id)
        return category

    async def cycle_category(self, user_id: str, domain: str) -> str:
        async with self.lock_for(user_id):
            store = await self.get_store(user_id)
            current = categories.get_category(domain, store.category_overrides)
            category = categories.next_category(current)
            categories.set_category(store.category_overrides, domain, category)
            self.schedule_save(user_id)
        return category
