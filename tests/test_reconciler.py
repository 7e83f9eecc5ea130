"""
Tests for the reconciler: activity matching, missed-workout rules, the
illness/travel window and calendar edit signals.
"""

import pytest

from rolling_coach.core.kinds import SessionKind
from rolling_coach.core.models import (
    ActivityRecord,
    Calendar,
    CalendarRef,
    Session,
    SessionTargets,
    StatusWindow,
)
from rolling_coach.core.reconciler import (
    apply_calendar_signals,
    duration_matches,
    find_match,
    reconcile,
)
from rolling_coach.core.rules import MissedRule, load_rules, rule_for

TODAY = "2026-10-19"
SATURDAY = "2026-10-17"
AT = "2026-10-19T07:00:00"


@pytest.fixture
def rules(tmp_path, monkeypatch):
    """Bundled rule table, isolated from any user override."""
    monkeypatch.setenv("HOME", str(tmp_path))
    return load_rules()


def _session(kind: SessionKind, local_date: str, minutes: int = 90, session_id: str | None = None) -> Session:
    return Session(
        id=session_id or f"sess_{local_date}_{kind.value.lower()}",
        program_id="marathon_1",
        local_date=local_date,
        title=kind.value,
        kind=kind,
        hardness="hard" if kind in (SessionKind.LR, SessionKind.TEMPO, SessionKind.STRENGTH) else "easy",
        targets=SessionTargets(duration_minutes=minutes, intensity="easy"),
    )


def _activity(local_date: str, minutes: float, activity_type: str = "running", activity_id: str = "w1"):
    return ActivityRecord(id=activity_id, activity_type=activity_type, local_date=local_date,
                          duration_minutes=minutes)


def _calendar(*sessions: Session) -> Calendar:
    return Calendar(time_zone="Europe/Berlin", generated_at=AT, sessions=list(sessions))


class TestMatching:
    """Tests for activity-to-session matching."""

    def test_duration_tolerance(self):
        assert duration_matches(90, 95)
        assert duration_matches(90, 63)
        assert not duration_matches(90, 50)
        assert not duration_matches(90, 120)

    def test_missing_duration_matches(self):
        assert duration_matches(None, 40)
        assert duration_matches(60, 0)

    def test_kind_must_fit(self):
        session = _session(SessionKind.STRENGTH, SATURDAY, 60)
        assert find_match(session, [_activity(SATURDAY, 60)], set()) is None
        gym = _activity(SATURDAY, 55, activity_type="strength training", activity_id="g1")
        assert find_match(session, [gym], set()) is gym

    def test_claimed_activity_skipped(self):
        session = _session(SessionKind.Z2, SATURDAY, 45)
        assert find_match(session, [_activity(SATURDAY, 45)], {"w1"}) is None

    def test_other_date_never_matches(self):
        session = _session(SessionKind.LR, SATURDAY)
        assert find_match(session, [_activity("2026-10-18", 90)], set()) is None


class TestReconcile:
    """Tests for the daily status pass."""

    def test_long_run_completed(self, rules):
        """Planned 90 min LR, 95 min run on the same day -> completed."""
        cal = _calendar(_session(SessionKind.LR, SATURDAY))
        events = reconcile(cal, [_activity(SATURDAY, 95)], TODAY, rules=rules, at=AT)

        session = cal.sessions[0]
        assert session.status == "completed"
        assert session.actual_activity_id == "w1"
        assert len(events) == 1
        assert events[0].reason == "matched"
        assert events[0].actual_activity_id == "w1"
        assert events[0].evidence_refs == ["SRC010"]
        assert cal.events == events

    def test_short_run_is_missed_long_run(self, rules):
        """50 min against a planned 90 is outside +/-30% -> missed."""
        cal = _calendar(_session(SessionKind.LR, SATURDAY))
        events = reconcile(cal, [_activity(SATURDAY, 50)], TODAY, rules=rules, at=AT)

        assert cal.sessions[0].status == "missed"
        assert cal.sessions[0].actual_activity_id is None
        assert events[0].reason == "missed_lr"
        assert events[0].rule_refs == ["RULE_LR_MISSED_SWAP_OR_SHORTEN"]
        assert events[0].status == "missed"

    def test_event_time_in_calendar_zone(self, rules):
        cal = Calendar(time_zone="UTC", generated_at=AT, sessions=[_session(SessionKind.LR, SATURDAY)])
        events = reconcile(cal, [], TODAY, rules=rules)
        assert events[0].at.endswith("+00:00")

    def test_easy_run_is_skipped(self, rules):
        cal = _calendar(_session(SessionKind.Z2, SATURDAY, 45))
        events = reconcile(cal, [], TODAY, rules=rules, at=AT)
        assert cal.sessions[0].status == "skipped"
        assert events[0].rule_refs == ["RULE_Z2_MISSED_SKIP"]

    def test_today_stays_planned_until_tomorrow(self, rules):
        cal = _calendar(_session(SessionKind.TEMPO, TODAY, 30))
        assert reconcile(cal, [], TODAY, rules=rules, at=AT) == []
        assert cal.sessions[0].status == "planned"

    def test_today_can_complete(self, rules):
        cal = _calendar(_session(SessionKind.TEMPO, TODAY, 30))
        reconcile(cal, [_activity(TODAY, 32)], TODAY, rules=rules, at=AT)
        assert cal.sessions[0].status == "completed"

    def test_future_untouched(self, rules):
        cal = _calendar(_session(SessionKind.LR, "2026-10-24"))
        assert reconcile(cal, [_activity("2026-10-24", 90)], TODAY, rules=rules, at=AT) == []
        assert cal.sessions[0].status == "planned"

    def test_one_activity_binds_one_session(self, rules):
        first = _session(SessionKind.Z2, SATURDAY, 45, session_id="a")
        second = _session(SessionKind.Z2, SATURDAY, 45, session_id="b")
        cal = _calendar(first, second)
        reconcile(cal, [_activity(SATURDAY, 45)], TODAY, rules=rules, at=AT)
        assert sorted(s.status for s in cal.sessions) == ["completed", "skipped"]

    def test_status_is_monotonic(self, rules):
        """Terminal sessions never change, even when a matching workout shows up later."""
        cal = _calendar(_session(SessionKind.LR, SATURDAY))
        reconcile(cal, [], TODAY, rules=rules, at=AT)
        assert cal.sessions[0].status == "missed"

        again = reconcile(cal, [_activity(SATURDAY, 90)], TODAY, rules=rules, at=AT)
        assert again == []
        assert cal.sessions[0].status == "missed"
        assert len(cal.events) == 1

    def test_rerun_does_not_reclaim(self, rules):
        cal = _calendar(_session(SessionKind.LR, SATURDAY))
        acts = [_activity(SATURDAY, 90)]
        reconcile(cal, acts, TODAY, rules=rules, at=AT)
        assert reconcile(cal, acts, TODAY, rules=rules, at=AT) == []
        assert cal.sessions[0].actual_activity_id == "w1"

    def test_illness_window_skips(self, rules):
        cal = _calendar(_session(SessionKind.LR, SATURDAY))
        status = StatusWindow(status="illness", since="2026-10-16", until="2026-10-20")
        events = reconcile(cal, [], TODAY, status=status, rules=rules, at=AT)
        assert cal.sessions[0].status == "skipped"
        assert events[0].reason == "status_illness_or_travel"
        assert events[0].rule_refs == ["RULE_DISRUPTION_DELOAD"]

    def test_open_window_does_not_skip(self, rules):
        cal = _calendar(_session(SessionKind.LR, SATURDAY))
        reconcile(cal, [], TODAY, status=StatusWindow(status="travel", since="2026-10-16"), rules=rules, at=AT)
        assert cal.sessions[0].status == "missed"

    def test_match_beats_status_window(self, rules):
        cal = _calendar(_session(SessionKind.LR, SATURDAY))
        status = StatusWindow(status="travel", since="2026-10-16", until="2026-10-20")
        reconcile(cal, [_activity(SATURDAY, 85)], TODAY, status=status, rules=rules, at=AT)
        assert cal.sessions[0].status == "completed"


class TestCalendarSignals:
    """Tests for edits made in the external calendar."""

    def _published(self, local_date: str = "2026-10-21") -> Session:
        s = _session(SessionKind.TEMPO, local_date, 30, session_id="sess_tempo")
        s.calendar_ref = CalendarRef(event_uid="uid-1", published_at=AT)
        return s

    def test_no_map_is_noop(self, rules):
        cal = _calendar(self._published())
        assert apply_calendar_signals(cal, None, TODAY, rules=rules, at=AT) == []
        assert cal.sessions[0].status == "planned"

    def test_deleted_event_cancels(self, rules):
        cal = _calendar(self._published())
        events = apply_calendar_signals(cal, {}, TODAY, rules=rules, at=AT)
        assert cal.sessions[0].status == "cancelled"
        assert events[0].reason == "calendar_deleted"
        assert events[0].rule_refs == ["RULE_CALENDAR_RECONCILE"]

    def test_moved_event_moves_session(self, rules):
        cal = _calendar(self._published())
        events = apply_calendar_signals(cal, {"sess_tempo": "2026-10-22"}, TODAY, rules=rules, at=AT)
        assert cal.sessions[0].local_date == "2026-10-22"
        assert cal.sessions[0].status == "planned"
        assert (events[0].from_date, events[0].to_date) == ("2026-10-21", "2026-10-22")

    def test_unchanged_event(self, rules):
        cal = _calendar(self._published())
        assert apply_calendar_signals(cal, {"sess_tempo": "2026-10-21"}, TODAY, rules=rules, at=AT) == []

    def test_unpublished_session_untouched(self, rules):
        cal = _calendar(_session(SessionKind.Z2, "2026-10-21", 45))
        assert apply_calendar_signals(cal, {}, TODAY, rules=rules, at=AT) == []
        assert cal.sessions[0].status == "planned"

    def test_past_session_untouched(self, rules):
        cal = _calendar(self._published("2026-10-18"))
        assert apply_calendar_signals(cal, {}, TODAY, rules=rules, at=AT) == []


class TestRules:
    """Tests for the missed-workout rule table."""

    def test_every_kind_has_a_rule(self, rules):
        for kind in SessionKind:
            assert rule_for(kind, rules).key == kind.value
        for special in ("matched", "disruption", "calendar"):
            assert special in rules

    def test_user_override_deep_merged(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        override = tmp_path / "override.yaml"
        override.write_text("Z2:\n  status: missed\n", encoding="utf-8")
        table = load_rules(override)
        assert table["Z2"].status == "missed"
        assert table["Z2"].rule_refs == ("RULE_Z2_MISSED_SKIP",)
        assert table["LR"].status == "missed"

    def test_broken_override_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        override = tmp_path / "override.yaml"
        override.write_text("Z2:\n  status: postponed\n", encoding="utf-8")
        with pytest.warns(UserWarning):
            table = load_rules(override)
        assert table["Z2"].status == "skipped"

    def test_rule_status_validated(self):
        with pytest.raises(ValueError):
            MissedRule(key="x", status="planned")
