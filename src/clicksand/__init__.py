"""Clicksand: per-domain browser attention tracking with time-limit achievements.

Counters, sessions, daily rollover and achievement checkpoints live in the
pure tracker; the service layer adds per-user locking and debounced
persistence; the FastAPI app and click CLI sit on top.
"""

__version__ = "0.1.0"

from .config import Settings
from .errors import ClicksandError, InvalidCategoryError, InvalidViewError
from .models import AchievementRule, DayStats, DomainStatEntry, Notification, UserTimeStore
from .tracker import AttentionTracker, IngestResult, TrackerEvent

__all__ = [
    "AchievementRule",
    "AttentionTracker",
    "ClicksandError",
    "DayStats",
    "DomainStatEntry",
    "IngestResult",
    "InvalidCategoryError",
    "InvalidViewError",
    "Notification",
    "Settings",
    "TrackerEvent",
    "UserTimeStore",
    "__version__",
]
