"""Week/month roll-ups over archived history plus the live day."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping

from .config import BROWSER_TIME_KEY
from .models import DayStats


@dataclass
class DomainTotals:
    active_time: float = 0.0
    video_time: float = 0.0
    total_tab_time: float | None = None
    session_count: int = 0
    icon: str | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "activeTime": self.active_time,
            "videoTime": self.video_time,
            "sessionCount": self.session_count,
        }
        if self.total_tab_time is not None:
            data["totalTabTime"] = self.total_tab_time
        if self.icon:
            data["icon"] = self.icon
        return data


@dataclass
class AggregatedStats:
    domains: dict[str, DomainTotals] = field(default_factory=dict)
    browser_time: float = 0.0
    days: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {domain: totals.to_dict() for domain, totals in self.domains.items()}
        data[BROWSER_TIME_KEY] = self.browser_time
        return data


def _parse_date(value: str) -> date | None:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


def merge_day(target: AggregatedStats, day: DayStats) -> None:
    target.browser_time += day.browser_time
    for domain, entry in day.domains.items():
        totals = target.domains.get(domain)
        if totals is None:
            totals = DomainTotals()
            target.domains[domain] = totals
        totals.active_time += entry.active_time
        totals.video_time += entry.video_time
        totals.session_count += entry.session_count
        if entry.total_tab_time is not None:
            totals.total_tab_time = (totals.total_tab_time or 0.0) + entry.total_tab_time
        if entry.icon:
            totals.icon = entry.icon


def aggregate(
    history: Mapping[str, DayStats],
    today_stats: DayStats | None,
    window_days: int,
    today: str | date,
) -> AggregatedStats:
    """Sum every archived day within window_days of today (inclusive) plus the live day.

    Pure: neither history nor today_stats is modified.
    """
    today_date = today if isinstance(today, date) else _parse_date(today)
    result = AggregatedStats()

    for day_str in sorted(history):
        day_date = _parse_date(day_str)
        if day_date is None or today_date is None:
            continue
        if abs((today_date - day_date).days) > window_days:
            continue
        merge_day(result, history[day_str])
        result.days.append(day_str)

    if today_stats is not None:
        merge_day(result, today_stats)
        result.days.append(today_date.isoformat() if today_date else str(today))
    return result


def aggregate_raw(history: Any, today_stats: Any, window_days: int, today: str | date) -> AggregatedStats:
    """aggregate() over wire-shaped maps, normalizing legacy entries first."""
    days = {}
    if isinstance(history, dict):
        days = {str(day): DayStats.from_dict(stats) for day, stats in history.items()}
    return aggregate(days, DayStats.from_dict(today_stats), window_days, today)
