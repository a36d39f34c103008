"""Tests for session boundaries, directly and through the tracker."""

from datetime import datetime, timezone

from clicksand.config import SESSION_TIMEOUT_MS, Settings
from clicksand.models import DomainStatEntry
from clicksand.sessions import advance, starts_new_session
from clicksand.tracker import AttentionTracker, TrackerEvent, new_store

START = int(datetime(2026, 2, 11, 9, 0, tzinfo=timezone.utc).timestamp() * 1000)
MINUTE = 60_000


class TestAdvance:
    def test_first_advance_opens_session(self):
        entry = DomainStatEntry()
        result = advance(entry, 10, START)
        assert result.is_new_session
        assert entry.session_count == 1
        assert entry.current_session_time == 10
        assert entry.last_session_update_at == START

    def test_within_timeout_continues(self):
        entry = DomainStatEntry()
        advance(entry, 10, START)
        result = advance(entry, 10, START + 29 * MINUTE)
        assert not result.is_new_session
        assert entry.session_count == 1
        assert entry.current_session_time == 20

    def test_gap_over_timeout_starts_new_session(self):
        entry = DomainStatEntry()
        advance(entry, 10, START)
        entry.checkpoints.add("limit_reached")
        result = advance(entry, 5, START + SESSION_TIMEOUT_MS + 1)
        assert result.is_new_session
        assert entry.session_count == 2
        assert entry.current_session_time == 5
        assert entry.checkpoints == set()

    def test_exact_timeout_is_same_session(self):
        entry = DomainStatEntry()
        advance(entry, 10, START)
        assert not starts_new_session(entry, START + SESSION_TIMEOUT_MS, domain_changed=False)

    def test_clock_moving_backwards_keeps_session(self):
        entry = DomainStatEntry()
        advance(entry, 10, START)
        result = advance(entry, 10, START - 5 * MINUTE)
        assert not result.is_new_session
        assert entry.current_session_time == 20

    def test_domain_change_starts_new_session(self):
        entry = DomainStatEntry()
        advance(entry, 10, START)
        result = advance(entry, 10, START + MINUTE, domain_changed=True)
        assert result.is_new_session
        assert entry.session_count == 2

    def test_zero_increment_is_noop(self):
        entry = DomainStatEntry()
        result = advance(entry, 0, START)
        assert not result.is_new_session
        assert entry.session_count == 0
        assert entry.last_session_update_at is None


class TestTrackerSessions:
    def test_three_visits_31_minutes_apart(self):
        tracker = AttentionTracker(Settings())
        store = new_store()
        for i in range(3):
            tracker.ingest(store, "example.com", 70, 0, None, START + i * 31 * MINUTE)
        entry = store.today_stats.domains["example.com"]
        assert entry.session_count == 3
        assert entry.active_time == 210
        assert entry.current_session_time == 70

    def test_switching_domains_restarts_sessions(self):
        tracker = AttentionTracker(Settings())
        store = new_store()
        tracker.ingest(store, "a.com", 10, 0, None, START)
        tracker.ingest(store, "b.com", 10, 0, None, START + 1000)
        result = tracker.ingest(store, "a.com", 10, 0, None, START + 2000)
        assert TrackerEvent.NEW_SESSION in result.events
        assert store.today_stats.domains["a.com"].session_count == 2
        assert store.today_stats.domains["a.com"].current_session_time == 10

    def test_zero_tick_does_not_touch_session(self):
        tracker = AttentionTracker(Settings())
        store = new_store()
        tracker.ingest(store, "a.com", 10, 0, None, START)
        tracker.ingest(store, "a.com", 0, 0, None, START + 40 * MINUTE)
        entry = store.today_stats.domains["a.com"]
        assert entry.session_count == 1
        assert entry.last_session_update_at == START

    def test_www_prefix_continues_same_session(self):
        tracker = AttentionTracker(Settings())
        store = new_store()
        tracker.ingest(store, "www.example.com", 10, 0, None, START)
        result = tracker.ingest(store, "example.com", 10, 0, None, START + 1000)
        assert result.domain == "example.com"
        assert TrackerEvent.NEW_SESSION not in result.events
        assert list(store.today_stats.domains) == ["example.com"]
        entry = store.today_stats.domains["example.com"]
        assert entry.active_time == 20
        assert entry.session_count == 1
        assert store.last_domain == "example.com"
