"""Tests for the click command line."""

from click.testing import CliRunner

from clicksand.cli import build_stats_table, format_seconds, main


class TestFormatSeconds:
    def test_zero(self):
        assert format_seconds(0) == "00:00"

    def test_minutes(self):
        assert format_seconds(125) == "02:05"

    def test_hours(self):
        assert format_seconds(3 * 3600 + 61) == "3:01:01"


class TestCommands:
    def test_rules_for_new_user(self, tmp_path):
        result = CliRunner().invoke(main, ["--db", str(tmp_path / "c.db"), "rules", "alice"])
        assert result.exit_code == 0, result.output
        assert "youtube.com" in result.output

    def test_stats_without_activity(self, tmp_path):
        result = CliRunner().invoke(main, ["--db", str(tmp_path / "c.db"), "stats", "alice"])
        assert result.exit_code == 0, result.output
        assert "No activity" in result.output

    def test_stats_rejects_unknown_view(self, tmp_path):
        result = CliRunner().invoke(main, ["--db", str(tmp_path / "c.db"), "stats", "alice", "--view", "yearly"])
        assert result.exit_code != 0

    def test_reset(self, tmp_path):
        result = CliRunner().invoke(main, ["--db", str(tmp_path / "c.db"), "reset", "alice", "--yes"])
        assert result.exit_code == 0, result.output
        assert "Reset stats for alice" in result.output


class TestStatsTable:
    def test_rows_sorted_by_active_time(self):
        result = {
            "view": "today",
            "currentDate": "2026-02-11",
            "stats": {
                "a.com": {"activeTime": 10, "videoTime": 0, "sessionCount": 1},
                "b.com": {"activeTime": 90, "videoTime": 0, "sessionCount": 2},
                "browser_time": 100,
            },
        }
        table = build_stats_table(result)
        assert table.row_count == 2
        assert list(table.columns[0].cells) == ["b.com", "a.com"]
