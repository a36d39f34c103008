"""Achievement thresholds: limit-then-interval checkpoints per session.

A rule with limit L and interval I fires "limit_reached" once the session
reaches L seconds, then "interval_{k}" each time the session passes
L + k*I. With L == 0 the interval checkpoints start counting from zero.
Each checkpoint fires at most once per session; the session tracker clears
the recorded set when a new session begins.
"""

from __future__ import annotations

import math
from typing import Mapping

from .domains import resolve_rule
from .models import AchievementRule, DomainStatEntry, Notification

LIMIT_CHECKPOINT = "limit_reached"
DEFAULT_LIMIT_MESSAGE = "Time Limit Reached!"
DEFAULT_INTERVAL_MESSAGE = "You've been here for {minutes} minutes"


def interval_checkpoint(step: int) -> str:
    return f"interval_{step}"


def _format_minutes(seconds: float) -> str:
    minutes = seconds / 60
    if minutes == int(minutes):
        return str(int(minutes))
    return f"{minutes:.1f}"


def is_gate_open(session_seconds: float, rule: AchievementRule) -> bool:
    limit = rule.limit_seconds
    interval = rule.interval_seconds
    if limit > 0:
        return session_seconds >= limit
    return interval > 0 and session_seconds >= interval


def next_checkpoint(entry: DomainStatEntry, rule: AchievementRule) -> tuple[str, int] | None:
    """Return (checkpoint_id, step) for the checkpoint due now, or None.

    step is 0 for the limit checkpoint.
    """
    session_seconds = entry.current_session_time
    if not is_gate_open(session_seconds, rule):
        return None

    limit = rule.limit_seconds
    interval = rule.interval_seconds

    if limit > 0 and LIMIT_CHECKPOINT not in entry.checkpoints:
        return LIMIT_CHECKPOINT, 0

    if interval > 0:
        step = math.floor((session_seconds - limit) / interval)
        if step > 0:
            checkpoint = interval_checkpoint(step)
            if checkpoint not in entry.checkpoints:
                return checkpoint, step
    return None


def build_message(rule: AchievementRule, step: int) -> str:
    if step == 0:
        return rule.message or DEFAULT_LIMIT_MESSAGE
    minutes = _format_minutes(rule.limit_seconds + step * rule.interval_seconds)
    template = rule.interval_message or DEFAULT_INTERVAL_MESSAGE
    try:
        return template.format(minutes=minutes)
    except (KeyError, IndexError, ValueError):
        return DEFAULT_INTERVAL_MESSAGE.format(minutes=minutes)


def evaluate(domain: str, entry: DomainStatEntry, rule: AchievementRule) -> Notification | None:
    """Fire the due checkpoint for entry under rule, recording it on the entry."""
    due = next_checkpoint(entry, rule)
    if due is None:
        return None

    checkpoint, step = due
    entry.checkpoints.add(checkpoint)
    return Notification(
        domain=domain,
        message=build_message(rule, step),
        trigger_type=checkpoint,
        session_seconds=entry.current_session_time,
        rule_pattern=rule.domain_pattern,
    )


def evaluate_for_domain(
    domain: str,
    entry: DomainStatEntry,
    rules: Mapping[str, AchievementRule],
) -> Notification | None:
    rule = resolve_rule(domain, rules)
    if rule is None:
        return None
    return evaluate(domain, entry, rule)
