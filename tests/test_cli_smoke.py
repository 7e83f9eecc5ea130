"""
Smoke tests for the rolling-coach CLI.

Tests basic functionality:
- App runs without errors
- Coach home initializes
- A week is planned and projected
- Reconcile and calendar-sync record adaptation events
- The illness/travel window can be set and cleared
"""

import json
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest
from typer.testing import CliRunner

from rolling_coach.cli.app import resolve_today
from rolling_coach.cli.main import app


runner = CliRunner()

TODAY = "2026-10-19"

INTAKE = {
    "goals": [{"id": "10k_spring", "kind": "endurance", "subKind": "10k", "dateLocal": "2027-03-14"}],
    "constraints": {"daysAvailable": ["mon", "wed", "thu", "sat", "sun"]},
    "baseline": {"perceivedFitness": "moderate", "longestRecentRunMinutes": 80, "enduranceFrequencyPerWeek": 3},
}


@pytest.fixture
def coach_home():
    """Coach home with an intake document and a small workout cache."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "cache").mkdir()
        (root / "intake.json").write_text(json.dumps(INTAKE), encoding="utf-8")
        workouts = [
            {"id": "w1", "workoutType": "Running", "localDate": "2026-10-15", "duration_seconds": 2700},
            {"id": "w2", "workoutType": "Running", "localDate": "2026-10-17", "duration_seconds": 4800},
        ]
        (root / "cache" / "workouts_a.jsonl").write_text(
            "\n".join(json.dumps(w) for w in workouts) + "\n", encoding="utf-8"
        )
        yield root


def _plan_json(root: Path) -> dict:
    result = runner.invoke(app, ["plan", "--root", str(root), "--today", TODAY, "--json"])
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


class _SundayNightUtc(datetime):
    """Clock stuck at 22:30 UTC on Sunday 2026-10-18 (00:30 Monday in Berlin)."""

    @classmethod
    def now(cls, tz=None):
        return datetime(2026, 10, 18, 22, 30, tzinfo=timezone.utc).astimezone(tz)


@pytest.fixture
def sunday_night(monkeypatch):
    monkeypatch.setattr("rolling_coach.cli.app.datetime", _SundayNightUtc)


def _add_workout(root: Path, workout: dict) -> None:
    with open(root / "cache" / "workouts_b.jsonl", "a", encoding="utf-8") as f:
        f.write(json.dumps(workout) + "\n")


class TestCLISmoke:
    """Basic smoke tests for CLI commands."""

    def test_app_help(self):
        """Test that app runs and shows help."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "reconcile" in result.output

    def test_init_creates_layout(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir) / "home"
            result = runner.invoke(app, ["init", "--root", str(root)])
            assert result.exit_code == 0
            assert (root / "cache").is_dir()
            assert (root / "current").is_dir()

    def test_plan_without_intake_fails(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            result = runner.invoke(app, ["plan", "--root", tmpdir, "--today", TODAY])
            assert result.exit_code == 1
            assert "Intake file not found" in result.output

    def test_plan_with_invalid_intake_fails(self, coach_home):
        (coach_home / "intake.json").write_text(json.dumps({"goals": [], "constraints": {}}), encoding="utf-8")
        result = runner.invoke(app, ["plan", "--root", str(coach_home), "--today", TODAY])
        assert result.exit_code == 1
        assert "daysAvailable" in result.output

    def test_plan_bad_today(self, coach_home):
        result = runner.invoke(app, ["plan", "--root", str(coach_home), "--today", "tomorrow"])
        assert result.exit_code != 0

    def test_plan_writes_calendar_and_projection(self, coach_home):
        result = runner.invoke(app, ["plan", "--root", str(coach_home), "--today", TODAY])
        assert result.exit_code == 0, result.output
        assert "Calendar saved" in result.output
        assert (coach_home / "workout_calendar.json").exists()
        assert (coach_home / "current" / "training_plan_week.json").exists()

        calendar = json.loads((coach_home / "workout_calendar.json").read_text(encoding="utf-8"))
        assert calendar["schemaVersion"] == 2
        assert [h["id"] for h in calendar["history"]] == ["w1", "w2"]

    def test_plan_json(self, coach_home):
        doc = _plan_json(coach_home)
        week = doc["week"]
        assert week["weekStart"] == TODAY
        assert week["weekEnd"] == "2026-10-25"
        assert week["sessions"]
        for s in week["sessions"]:
            assert TODAY <= s["localDate"] <= "2026-10-25"
            assert s["status"] == "planned"
            assert s["modality"] == "endurance"
        assert isinstance(doc["recommendations"], list)

    def test_plan_is_idempotent(self, coach_home):
        first = _plan_json(coach_home)["week"]["sessions"]
        second = _plan_json(coach_home)["week"]["sessions"]
        assert [s["id"] for s in first] == [s["id"] for s in second]

    def test_week_before_plan_fails(self, coach_home):
        result = runner.invoke(app, ["week", "--root", str(coach_home)])
        assert result.exit_code == 1
        assert "No weekly projection" in result.output

    def test_week_shows_projection(self, coach_home):
        planned = _plan_json(coach_home)["week"]
        result = runner.invoke(app, ["week", "--root", str(coach_home), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output)["sessions"] == planned["sessions"]

        result = runner.invoke(app, ["week", "--root", str(coach_home)])
        assert result.exit_code == 0
        assert "Week" in result.output


class TestDefaultToday:
    """Without --today the date is taken in the athlete's time zone."""

    def test_resolve_today_in_zone(self, sunday_night):
        assert resolve_today(None, "UTC") == "2026-10-18"
        assert resolve_today(None, "Europe/Berlin") == TODAY
        assert resolve_today(None) == TODAY

    def test_explicit_today_wins(self, sunday_night):
        assert resolve_today("2026-10-01", "UTC") == "2026-10-01"

    def test_plan_uses_default_zone(self, coach_home, sunday_night):
        result = runner.invoke(app, ["plan", "--root", str(coach_home), "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["week"]["weekStart"] == TODAY

    def test_plan_uses_intake_zone(self, coach_home, sunday_night):
        (coach_home / "intake.json").write_text(json.dumps({**INTAKE, "timeZone": "UTC"}), encoding="utf-8")
        result = runner.invoke(app, ["plan", "--root", str(coach_home), "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["week"]["weekStart"] == "2026-10-18"

    def test_unknown_intake_zone(self, coach_home, sunday_night):
        (coach_home / "intake.json").write_text(
            json.dumps({**INTAKE, "timeZone": "Mars/Olympus"}), encoding="utf-8"
        )
        result = runner.invoke(app, ["plan", "--root", str(coach_home)])
        assert result.exit_code == 1
        assert "Unknown time zone" in result.output

    def test_reconcile_uses_calendar_zone(self, coach_home, sunday_night):
        """It is already Monday in Berlin, so Sunday's session is closed out."""
        result = runner.invoke(app, ["plan", "--root", str(coach_home), "--today", "2026-10-18", "--json"])
        assert result.exit_code == 0, result.output
        sessions = json.loads(result.output)["week"]["sessions"]
        sunday = [s["id"] for s in sessions if s["localDate"] == "2026-10-18"]
        assert sunday

        result = runner.invoke(app, ["reconcile", "--root", str(coach_home), "--json"])
        assert result.exit_code == 0, result.output
        assert [e["sessionId"] for e in json.loads(result.output)["events"]] == sunday


class TestReconcileCommands:
    """Tests for the daily reconciliation commands."""

    def test_reconcile_without_calendar_fails(self, coach_home):
        result = runner.invoke(app, ["reconcile", "--root", str(coach_home), "--today", TODAY])
        assert result.exit_code == 1
        assert "No calendar yet" in result.output

    def test_nothing_to_reconcile_on_plan_day(self, coach_home):
        _plan_json(coach_home)
        result = runner.invoke(app, ["reconcile", "--root", str(coach_home), "--today", TODAY])
        assert result.exit_code == 0
        assert "Nothing to reconcile" in result.output

    def test_completed_session(self, coach_home):
        session = _plan_json(coach_home)["week"]["sessions"][0]
        _add_workout(
            coach_home,
            {
                "id": "done_1",
                "workoutType": "Running",
                "localDate": session["localDate"],
                "duration_seconds": session["targets"]["durationMinutes"] * 60,
            },
        )
        result = runner.invoke(
            app, ["reconcile", "--root", str(coach_home), "--today", session["localDate"], "--json"]
        )
        assert result.exit_code == 0, result.output
        events = json.loads(result.output)["events"]
        assert events[0]["reason"] == "matched"
        assert events[0]["sessionId"] == session["id"]
        assert events[0]["actualActivityId"] == "done_1"

    def test_missed_week_then_monotonic(self, coach_home):
        sessions = _plan_json(coach_home)["week"]["sessions"]
        args = ["reconcile", "--root", str(coach_home), "--today", "2026-10-27", "--json"]

        result = runner.invoke(app, args)
        assert result.exit_code == 0, result.output
        events = json.loads(result.output)["events"]
        assert len(events) == len(sessions)
        assert {e["status"] for e in events} <= {"missed", "skipped"}

        again = runner.invoke(app, args)
        assert json.loads(again.output)["events"] == []

        log = runner.invoke(app, ["events", "--root", str(coach_home), "--json", "--limit", "0"])
        assert log.exit_code == 0
        assert len(json.loads(log.output)["events"]) >= len(sessions)

    def test_illness_window_skips(self, coach_home):
        _plan_json(coach_home)
        result = runner.invoke(
            app,
            ["status", "--root", str(coach_home), "--set", "illness", "--since", TODAY, "--until", "2026-10-25"],
        )
        assert result.exit_code == 0
        result = runner.invoke(app, ["reconcile", "--root", str(coach_home), "--today", "2026-10-27", "--json"])
        events = json.loads(result.output)["events"]
        assert events
        assert all(e["reason"] == "status_illness_or_travel" for e in events)

    def test_calendar_sync_without_map(self, coach_home):
        _plan_json(coach_home)
        result = runner.invoke(app, ["calendar-sync", "--root", str(coach_home), "--today", TODAY])
        assert result.exit_code == 0
        assert "Calendar is in sync" in result.output

    def test_calendar_sync_follows_moves_and_deletes(self, coach_home):
        sessions = _plan_json(coach_home)["week"]["sessions"]
        assert len(sessions) >= 2
        moved, kept = sessions[0], sessions[1]
        published = {moved["id"]: "2026-10-26", kept["id"]: kept["localDate"]}
        (coach_home / "published_events.json").write_text(json.dumps(published), encoding="utf-8")

        result = runner.invoke(app, ["calendar-sync", "--root", str(coach_home), "--today", TODAY, "--json"])
        assert result.exit_code == 0, result.output
        events = json.loads(result.output)["events"]
        reasons = {e["sessionId"]: e["reason"] for e in events}
        assert reasons[moved["id"]] == "calendar_moved"
        assert kept["id"] not in reasons

    def test_events_empty(self, coach_home):
        result = runner.invoke(app, ["events", "--root", str(coach_home)])
        assert result.exit_code == 0
        assert "No adaptation events" in result.output


class TestStatusCommands:
    """Tests for signals and the status window."""

    def test_signals_json(self, coach_home):
        result = runner.invoke(app, ["signals", "--root", str(coach_home), "--today", TODAY, "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["today"] == TODAY
        assert data["mode"] == "endurance_only"
        assert data["completed_endurance"] == 2
        assert data["total_minutes"] == 125
        assert data["marathon_phase"] is None
        assert 1 <= data["max_hard_per_week"] <= 6

    def test_signals_table(self, coach_home):
        result = runner.invoke(app, ["signals", "--root", str(coach_home), "--today", TODAY])
        assert result.exit_code == 0
        assert "ACWR" in result.output

    def test_status_set_and_clear(self, coach_home):
        result = runner.invoke(
            app,
            ["status", "--root", str(coach_home), "--set", "travel", "--since", TODAY, "--until", "2026-10-22",
             "--json"],
        )
        assert result.exit_code == 0
        assert json.loads(result.output) == {
            "status": "travel",
            "since": TODAY,
            "until": "2026-10-22",
            "note": None,
        }

        result = runner.invoke(app, ["status", "--root", str(coach_home), "--clear", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output) == {"status": None}

    def test_status_unknown_value(self, coach_home):
        result = runner.invoke(app, ["status", "--root", str(coach_home), "--set", "vacation"])
        assert result.exit_code == 1
        assert "Unknown status" in result.output

    def test_status_set_and_clear_together(self, coach_home):
        result = runner.invoke(app, ["status", "--root", str(coach_home), "--set", "illness", "--clear"])
        assert result.exit_code == 1

    def test_status_inverted_window(self, coach_home):
        result = runner.invoke(
            app,
            ["status", "--root", str(coach_home), "--set", "illness", "--since", "2026-10-22", "--until", TODAY],
        )
        assert result.exit_code == 1

    def test_status_default(self, coach_home):
        result = runner.invoke(app, ["status", "--root", str(coach_home)])
        assert result.exit_code == 0
        assert "No active status" in result.output
