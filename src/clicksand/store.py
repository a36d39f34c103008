"""Snapshot persistence: one JSON row per user in SQLite.

Legacy rule configurations are migrated here, at load time, so the tracker
only ever sees the canonical per-domain rule map.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol

import aiosqlite

from .config import DB_PATH

logger = logging.getLogger("clicksand.store")

LEGACY_RULE_MESSAGE = "Time Limit Reached!"


class PersistenceGateway(Protocol):
    async def load(self, user_id: str) -> Optional[dict]: ...

    async def save(self, user_id: str, snapshot: dict) -> None: ...


def _minutes_to_seconds(value: Any) -> int:
    try:
        minutes = float(value or 0)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(minutes):
        return 0
    return max(0, int(minutes * 60))


def migrate_rules(data: dict) -> Optional[dict]:
    """Return a canonical {pattern: {limitSeconds, intervalSeconds, message}} map.

    Sources, in priority order:
      - flat "simple mode" settings: achievement_sites + achievement_limit /
        achievement_interval, both in minutes
      - achievementRules (canonical, passed through)
      - achievements: the older map using limit / interval keys in seconds
    Returns None when the data carries no rule configuration at all.
    """
    sites = data.get("achievement_sites")
    if isinstance(sites, list):
        limit = _minutes_to_seconds(data.get("achievement_limit"))
        interval = _minutes_to_seconds(data.get("achievement_interval"))
        return {
            str(site): {"limitSeconds": limit, "intervalSeconds": interval, "message": LEGACY_RULE_MESSAGE}
            for site in sites
            if site
        }

    rules = data.get("achievementRules")
    if isinstance(rules, dict):
        return rules

    legacy = data.get("achievements")
    if isinstance(legacy, dict):
        migrated = {}
        for pattern, rule in legacy.items():
            if not pattern or not isinstance(rule, dict):
                continue
            migrated[str(pattern)] = {
                "limitSeconds": rule.get("limitSeconds", rule.get("limit", 0)),
                "intervalSeconds": rule.get("intervalSeconds", rule.get("interval", 0)),
                "message": rule.get("message") or LEGACY_RULE_MESSAGE,
            }
        return migrated
    return None


def normalize_snapshot(data: Any) -> Optional[dict]:
    """Apply boundary migrations to a raw snapshot. None when unusable."""
    if not isinstance(data, dict):
        return None
    snapshot = dict(data)
    if "todayStats" not in snapshot and "today_stats" in snapshot:
        snapshot["todayStats"] = snapshot.pop("today_stats")
    rules = migrate_rules(snapshot)
    for legacy_key in ("achievement_sites", "achievement_limit", "achievement_interval", "achievements"):
        snapshot.pop(legacy_key, None)
    if rules is None:
        snapshot.pop("achievementRules", None)
    else:
        snapshot["achievementRules"] = rules
    return snapshot


class SnapshotStore:
    """aiosqlite-backed PersistenceGateway."""

    def __init__(self, db_path: Path = DB_PATH):
        self.db_path = Path(db_path)

    async def _connect(self) -> aiosqlite.Connection:
        db = await aiosqlite.connect(self.db_path)
        await db.execute("PRAGMA busy_timeout=5000")
        return db

    async def init(self) -> None:
        """Create the snapshot table."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("PRAGMA busy_timeout=5000")
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("""
                CREATE TABLE IF NOT EXISTS user_snapshots (
                    user_id TEXT PRIMARY KEY,
                    snapshot TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await db.commit()
        logger.info(f"Snapshot store initialized at {self.db_path}")

    async def load(self, user_id: str) -> Optional[dict]:
        """Load and migrate a user's snapshot. Unparseable rows yield None."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT snapshot FROM user_snapshots WHERE user_id = ?",
                (user_id,),
            )
            row = await cursor.fetchone()
        finally:
            await db.close()

        if row is None:
            return None
        try:
            raw = json.loads(row[0])
        except (TypeError, ValueError) as e:
            logger.warning(f"Discarding unparseable snapshot for {user_id}: {e}")
            return None
        snapshot = normalize_snapshot(raw)
        if snapshot is None:
            logger.warning(f"Discarding malformed snapshot for {user_id}")
        return snapshot

    async def save(self, user_id: str, snapshot: dict) -> None:
        payload = json.dumps(snapshot)
        db = await self._connect()
        try:
            await db.execute(
                """INSERT INTO user_snapshots (user_id, snapshot, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(user_id) DO UPDATE SET
                       snapshot = excluded.snapshot,
                       updated_at = excluded.updated_at""",
                (user_id, payload, datetime.now().isoformat()),
            )
            await db.commit()
        finally:
            await db.close()

    async def list_users(self) -> list[str]:
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT user_id FROM user_snapshots ORDER BY user_id")
            rows = await cursor.fetchall()
        finally:
            await db.close()
        return [row[0] for row in rows]
