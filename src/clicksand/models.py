"""Data model for per-user attention stats.

Wire format (persisted snapshots, API payloads) uses camelCase keys. Older
shapes are accepted by the from_dict constructors only: a day entry stored as
a bare number, the older key names (time, video_time, total_tab_time,
sessions, lastActiveTime, lastSessionUpdate, triggeredAchievements) and rule
keys limit/interval. Everything past this module sees canonical records.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from .config import BROWSER_TIME_KEY


def _number(value: Any, default: float = 0.0) -> float:
    """Coerce a stored or received value to a finite, non-negative float."""
    if isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result) or math.isinf(result) or result < 0:
        return default
    return result


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class DomainStatEntry:
    active_time: float = 0.0
    video_time: float = 0.0
    total_tab_time: float | None = None
    session_count: int = 0
    current_session_time: float = 0.0
    last_active_at: int | None = None
    last_session_update_at: int | None = None
    icon: str | None = None
    checkpoints: set[str] = field(default_factory=set)

    @property
    def is_video_capable(self) -> bool:
        return self.total_tab_time is not None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "activeTime": self.active_time,
            "videoTime": self.video_time,
            "sessionCount": self.session_count,
            "currentSessionTime": self.current_session_time,
            "lastActiveAt": self.last_active_at,
            "lastSessionUpdateAt": self.last_session_update_at,
            "checkpoints": sorted(self.checkpoints),
        }
        if self.total_tab_time is not None:
            data["totalTabTime"] = self.total_tab_time
        if self.icon:
            data["icon"] = self.icon
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "DomainStatEntry":
        if not isinstance(data, dict):
            # Legacy: a day entry stored as a bare number of active seconds
            return cls(active_time=_number(data))

        checkpoints: set[str] = set()
        raw_checkpoints = data.get("checkpoints")
        if raw_checkpoints is None:
            raw_checkpoints = data.get("triggeredAchievements")
        if isinstance(raw_checkpoints, dict):
            checkpoints = {str(key) for key, fired in raw_checkpoints.items() if fired}
        elif isinstance(raw_checkpoints, (list, tuple, set)):
            checkpoints = {str(key) for key in raw_checkpoints}

        total_tab = data.get("totalTabTime", data.get("total_tab_time"))
        icon = data.get("icon")

        return cls(
            active_time=_number(data.get("activeTime", data.get("time"))),
            video_time=_number(data.get("videoTime", data.get("video_time"))),
            total_tab_time=None if total_tab is None else _number(total_tab),
            session_count=int(_number(data.get("sessionCount", data.get("sessions")))),
            current_session_time=_number(data.get("currentSessionTime")),
            last_active_at=_optional_int(data.get("lastActiveAt", data.get("lastActiveTime"))),
            last_session_update_at=_optional_int(
                data.get("lastSessionUpdateAt", data.get("lastSessionUpdate"))
            ),
            icon=icon if isinstance(icon, str) and icon else None,
            checkpoints=checkpoints,
        )


@dataclass
class DayStats:
    """One calendar day of counters plus the synthetic browser_time bucket."""

    domains: dict[str, DomainStatEntry] = field(default_factory=dict)
    browser_time: float = 0.0

    def is_empty(self) -> bool:
        return not self.domains and self.browser_time == 0

    def to_dict(self) -> dict:
        data: dict[str, Any] = {domain: entry.to_dict() for domain, entry in self.domains.items()}
        if self.browser_time:
            data[BROWSER_TIME_KEY] = self.browser_time
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "DayStats":
        day = cls()
        if not isinstance(data, dict):
            return day
        for key, value in data.items():
            if key == BROWSER_TIME_KEY:
                day.browser_time = _number(value)
            elif key and value is not None:
                day.domains[str(key)] = DomainStatEntry.from_dict(value)
        return day


@dataclass
class AchievementRule:
    domain_pattern: str
    limit_seconds: int = 0
    interval_seconds: int = 0
    message: str = ""
    interval_message: str | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "limitSeconds": self.limit_seconds,
            "intervalSeconds": self.interval_seconds,
            "message": self.message,
        }
        if self.interval_message:
            data["intervalMessage"] = self.interval_message
        return data

    @classmethod
    def from_dict(cls, pattern: str, data: Any) -> "AchievementRule":
        if not isinstance(data, dict):
            data = {}
        interval_message = data.get("intervalMessage")
        return cls(
            domain_pattern=pattern,
            limit_seconds=int(_number(data.get("limitSeconds", data.get("limit")))),
            interval_seconds=int(_number(data.get("intervalSeconds", data.get("interval")))),
            message=str(data.get("message") or ""),
            interval_message=str(interval_message) if interval_message else None,
        )


def rules_from_dict(data: Any) -> dict[str, AchievementRule]:
    """Build a canonical rule map from a {pattern: rule-dict} mapping."""
    if not isinstance(data, dict):
        return {}
    return {
        str(pattern): AchievementRule.from_dict(str(pattern), raw)
        for pattern, raw in data.items()
        if pattern
    }


def rules_to_dict(rules: dict[str, AchievementRule]) -> dict:
    return {pattern: rule.to_dict() for pattern, rule in rules.items()}


@dataclass
class Notification:
    domain: str
    message: str
    trigger_type: str
    session_seconds: float = 0.0
    rule_pattern: str | None = None

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "message": self.message,
            "triggerType": self.trigger_type,
            "sessionSeconds": self.session_seconds,
            "rulePattern": self.rule_pattern,
            "type": "limit",
        }


@dataclass
class UserTimeStore:
    today_stats: DayStats = field(default_factory=DayStats)
    history: dict[str, DayStats] = field(default_factory=dict)
    current_date: str | None = None
    achievement_rules: dict[str, AchievementRule] = field(default_factory=dict)
    last_domain: str | None = None
    category_overrides: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize the whole store as one persistable snapshot."""
        return {
            "todayStats": self.today_stats.to_dict(),
            "history": {day: stats.to_dict() for day, stats in self.history.items()},
            "currentDate": self.current_date,
            "achievementRules": rules_to_dict(self.achievement_rules),
            "lastDomain": self.last_domain,
            "categoryOverrides": dict(self.category_overrides),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UserTimeStore":
        """Restore a store from a canonical snapshot.

        Rule maps are read from achievementRules only; legacy rule layouts are
        migrated by the persistence gateway before this is called.
        """
        history_raw = data.get("history")
        history: dict[str, DayStats] = {}
        if isinstance(history_raw, dict):
            history = {str(day): DayStats.from_dict(stats) for day, stats in history_raw.items()}

        overrides_raw = data.get("categoryOverrides")
        overrides = {}
        if isinstance(overrides_raw, dict):
            overrides = {str(k): str(v) for k, v in overrides_raw.items()}

        current_date = data.get("currentDate")
        last_domain = data.get("lastDomain")
        return cls(
            today_stats=DayStats.from_dict(data.get("todayStats", data.get("today_stats"))),
            history=history,
            current_date=str(current_date) if current_date else None,
            achievement_rules=rules_from_dict(data.get("achievementRules")),
            last_domain=str(last_domain) if last_domain else None,
            category_overrides=overrides,
        )
