"""Session boundary detection per domain."""

from __future__ import annotations

from dataclasses import dataclass

from .config import SESSION_TIMEOUT_MS
from .models import DomainStatEntry


@dataclass
class SessionAdvance:
    is_new_session: bool = False


def starts_new_session(
    entry: DomainStatEntry,
    now_ms: int,
    domain_changed: bool,
    timeout_ms: int = SESSION_TIMEOUT_MS,
) -> bool:
    if entry.last_session_update_at is None:
        return True
    if domain_changed:
        return True
    # A negative gap (clock moved backwards) keeps the session alive
    return now_ms - entry.last_session_update_at > timeout_ms


def advance(
    entry: DomainStatEntry,
    increment: float,
    now_ms: int,
    domain_changed: bool = False,
    timeout_ms: int = SESSION_TIMEOUT_MS,
) -> SessionAdvance:
    """Extend (or restart) the current session on entry by increment seconds."""
    if increment <= 0:
        return SessionAdvance()

    is_new = starts_new_session(entry, now_ms, domain_changed, timeout_ms)
    if is_new:
        entry.session_count += 1
        entry.current_session_time = 0.0
        entry.checkpoints.clear()

    entry.current_session_time += increment
    entry.last_session_update_at = now_ms
    return SessionAdvance(is_new_session=is_new)
