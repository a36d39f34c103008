"""Work / distraction / neutral labels for domains."""

from __future__ import annotations

from typing import Mapping

from .domains import normalize_domain

WORK = "work"
DISTRACTION = "distraction"
NEUTRAL = "neutral"

CATEGORY_ORDER = [NEUTRAL, WORK, DISTRACTION]

DEFAULT_CATEGORIES: dict[str, str] = {
    "github.com": WORK,
    "gitlab.com": WORK,
    "stackoverflow.com": WORK,
    "docs.google.com": WORK,
    "notion.so": WORK,
    "trello.com": WORK,
    "slack.com": WORK,
    "figma.com": WORK,
    "linear.app": WORK,
    "jira.atlassian.com": WORK,
    "vercel.com": WORK,
    "aws.amazon.com": WORK,
    "console.cloud.google.com": WORK,
    "leetcode.com": WORK,
    "codepen.io": WORK,
    "youtube.com": DISTRACTION,
    "reddit.com": DISTRACTION,
    "twitter.com": DISTRACTION,
    "x.com": DISTRACTION,
    "facebook.com": DISTRACTION,
    "instagram.com": DISTRACTION,
    "tiktok.com": DISTRACTION,
    "netflix.com": DISTRACTION,
    "twitch.tv": DISTRACTION,
    "9gag.com": DISTRACTION,
}


def is_valid_category(category: str) -> bool:
    return category in CATEGORY_ORDER


def get_category(domain: str, overrides: Mapping[str, str] | None = None) -> str:
    """User override first, then the preset list, else neutral."""
    overrides = overrides or {}
    for key in (domain, normalize_domain(domain)):
        if key in overrides:
            return overrides[key]
    return DEFAULT_CATEGORIES.get(normalize_domain(domain), NEUTRAL)


def set_category(overrides: dict[str, str], domain: str, category: str) -> None:
    """Record an override; neutral without a preset just drops the override."""
    key = normalize_domain(domain)
    if category == NEUTRAL and key not in DEFAULT_CATEGORIES:
        overrides.pop(key, None)
        return
    overrides[key] = category


def next_category(category: str) -> str:
    if category not in CATEGORY_ORDER:
        return CATEGORY_ORDER[0]
    return CATEGORY_ORDER[(CATEGORY_ORDER.index(category) + 1) % len(CATEGORY_ORDER)]


def category_breakdown(active_by_domain: Mapping[str, float], overrides: Mapping[str, str] | None = None) -> dict[str, float]:
    totals = {category: 0.0 for category in CATEGORY_ORDER}
    for domain, seconds in active_by_domain.items():
        category = get_category(domain, overrides)
        totals[category] = totals.get(category, 0.0) + seconds
    return totals
