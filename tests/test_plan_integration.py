"""
Integration tests for the planning cycle.

Each test runs the full pipeline: PlanningSnapshot -> generate_plan (and,
where relevant, merge_into_calendar). Hand-computed placements are noted
in comments.

Calendar used throughout: 2026-10-19 is a Monday, 2026-10-24 a Saturday.
"""

import pytest

from rolling_coach.core.dates import add_days, date_range
from rolling_coach.core.guardrails import count_hard_in_window
from rolling_coach.core.kinds import SessionKind
from rolling_coach.core.models import (
    ActivityRecord,
    AdaptationEvent,
    Baseline,
    Calendar,
    CalendarRef,
    Constraints,
    FixedAppointment,
    Goal,
    Intake,
    PlanningSnapshot,
    Readiness,
    ScoreRecord,
    Session,
    SessionTargets,
    Slot,
)
from rolling_coach.core.planner import generate_plan, merge_into_calendar, resolve_goals
from rolling_coach.core.readiness import apply_lr_carryover, apply_readiness_gate

MONDAY = "2026-10-19"
SATURDAY = "2026-10-24"
ALL_DAYS = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


# ===========================================================================
# Helpers
# ===========================================================================

def _ten_k() -> Goal:
    return Goal(id="10k_spring", kind="endurance", sub_kind="10k", date_local="2027-03-14")


def _strength() -> Goal:
    return Goal(id="strength", kind="strength")


def _intake(goals: list[Goal], baseline: Baseline | None = None, **constraints) -> Intake:
    return Intake(
        goals=goals,
        constraints=Constraints(days_available=constraints.pop("days", ALL_DAYS), **constraints),
        baseline=baseline or Baseline(),
    )


def _snapshot(intake: Intake, today: str = MONDAY, activities=(), scores=()) -> PlanningSnapshot:
    return PlanningSnapshot(
        today=today,
        intake=intake,
        activities=tuple(activities),
        scores=tuple(scores),
    )


def _run(local_date: str, minutes: float = 45, effort: float | None = None, activity_id: str | None = None):
    return ActivityRecord(
        id=activity_id or f"run_{local_date}",
        activity_type="running",
        local_date=local_date,
        duration_minutes=minutes,
        effort_score=effort,
    )


def _assert_no_adjacent_hard(sessions: list[Session], completed_hard: set[str] = frozenset()) -> None:
    hard = sorted(s.local_date for s in sessions if s.is_hard)
    assert len(hard) == len(set(hard)), "two hard sessions on one date"
    for d in hard:
        assert add_days(d, -1) not in hard
        assert add_days(d, -1) not in completed_hard


def _assert_hard_budget(sessions: list[Session], completed_hard: list[str], max_hard: int, today: str) -> None:
    planned = [s.local_date for s in sessions if s.is_hard]
    for end in date_range(today, 13):
        assert count_hard_in_window(end, completed_hard, planned) <= max_hard


def _assert_single_modality(sessions: list[Session]) -> None:
    by_date: dict[str, set[str]] = {}
    for s in sessions:
        by_date.setdefault(s.local_date, set()).add(s.modality)
    assert all(len(m) == 1 for m in by_date.values())


# ===========================================================================
# Goal resolution
# ===========================================================================

class TestResolveGoals:
    """Tests for planning mode and milestone selection."""

    def test_hybrid(self):
        res = resolve_goals(_intake([_ten_k(), _strength()]))
        assert res.mode == "hybrid"
        assert res.endurance_milestone.id == "10k_spring"
        assert res.marathon_milestone is None

    def test_strength_only(self):
        res = resolve_goals(_intake([_strength()]))
        assert res.mode == "strength_only"
        assert res.endurance_milestone is None

    def test_marathon_milestone_wins(self):
        intake = _intake([_ten_k()])
        intake.milestones = [Goal(id="berlin", kind="marathon", date_local="2027-09-26")]
        res = resolve_goals(intake)
        assert res.mode == "endurance_only"
        assert res.marathon_milestone.id == "berlin"
        assert res.endurance_milestone.id == "berlin"


# ===========================================================================
# Endurance-only week
# ===========================================================================

class TestEnduranceWeek:
    """
    10k goal, every day available, no history.

    Targets: 3 endurance, max hard 3. Week seed is odd -> Intervals.
        LR        -> Sat 24 (weekend first)
        Z2        -> Mon 19 (chronological)
        Intervals -> Thu 22 (latest first; 25 and 23 touch the long run)
    """

    def test_expected_placement(self):
        result = generate_plan(_snapshot(_intake([_ten_k()])))
        placed = [(s.local_date, s.kind) for s in result.sessions]
        assert placed == [
            ("2026-10-19", SessionKind.Z2),
            ("2026-10-22", SessionKind.INTERVALS),
            ("2026-10-24", SessionKind.LR),
        ]

    def test_session_ids_are_stable(self):
        result = generate_plan(_snapshot(_intake([_ten_k()])))
        lr = next(s for s in result.sessions if s.kind is SessionKind.LR)
        assert lr.id == "sess_10k_spring_2026-10-24_lr_0"
        assert lr.program_id == "10k_spring"
        assert lr.milestone_id == "10k_spring"

    def test_idempotent(self):
        """Same inputs on the same day give the same sessions."""
        snap = _snapshot(_intake([_ten_k()]))
        first = generate_plan(snap)
        second = generate_plan(snap)
        key = lambda r: [(s.id, s.local_date, s.kind, s.targets.duration_minutes) for s in r.sessions]
        assert key(first) == key(second)

    def test_all_sessions_inside_window(self):
        result = generate_plan(_snapshot(_intake([_ten_k()])))
        window = set(date_range(MONDAY, 7))
        assert all(s.local_date in window for s in result.sessions)

    def test_polarized_recommendation(self):
        """1 quality of 3 endurance sessions is above 25%."""
        result = generate_plan(_snapshot(_intake([_ten_k()])))
        assert result.blueprint["polarized_ratio"]["hard_count"] == 1
        assert not result.blueprint["polarized_ratio"]["ok"]
        assert "polarized" in [r.kind for r in result.recommendations]
        assert "planning" in [r.kind for r in result.recommendations]

    def test_no_hard_session_after_hard_yesterday(self):
        """A hard run yesterday blocks hard work today."""
        yesterday = add_days(MONDAY, -1)
        result = generate_plan(_snapshot(_intake([_ten_k()]), activities=[_run(yesterday, 50, effort=7)]))
        assert not any(s.is_hard and s.local_date == MONDAY for s in result.sessions)
        _assert_no_adjacent_hard(result.sessions, {yesterday})

    def test_hard_budget_with_completed_hard(self):
        acts = [
            _run(add_days(MONDAY, -5), 50, effort=7),
            _run(add_days(MONDAY, -3), 50, effort=7),
        ]
        intake = _intake([_ten_k()], Baseline(max_hard_sessions_per_week=2, endurance_frequency_per_week=4))
        result = generate_plan(_snapshot(intake, activities=acts))
        _assert_hard_budget(result.sessions, [a.local_date for a in acts], 2, MONDAY)

    def test_very_hard_effort_blocks_two_days(self):
        """
        Mon/Wed/Fri only, so the long run goes to the first weekday.

        A hard run on Saturday 17 leaves Monday open; a very hard one
        (effort 8) keeps hard work off Monday too.
        """
        intake = _intake([_ten_k()], days=["mon", "wed", "fri"])
        two_back = add_days(MONDAY, -2)

        hard = generate_plan(_snapshot(intake, activities=[_run(two_back, 45, effort=7)]))
        lr = next(s for s in hard.sessions if s.kind is SessionKind.LR)
        assert lr.local_date == MONDAY

        very_hard = generate_plan(_snapshot(intake, activities=[_run(two_back, 45, effort=8)]))
        assert not any(s.is_hard and s.local_date == MONDAY for s in very_hard.sessions)
        assert any(s.kind is SessionKind.LR for s in very_hard.sessions)

    def test_rest_days_and_fixed_appointments_respected(self):
        intake = _intake([_ten_k()], preferred_rest_days=["fri"])
        intake.constraints.fixed_appointments = [FixedAppointment(id="vb", name="Volleyball", day_of_week="wed")]
        result = generate_plan(_snapshot(intake))
        dates = {s.local_date for s in result.sessions}
        assert "2026-10-23" not in dates  # Friday rest
        assert "2026-10-21" not in dates  # Wednesday volleyball
        assert [e.local_date for e in result.fixed_events] == ["2026-10-21"]
        assert result.fixed_events[0].hardness == "hard"

    def test_completed_day_not_reproposed(self):
        """A workout already done today removes today from the slots."""
        result = generate_plan(_snapshot(_intake([_ten_k()]), activities=[_run(MONDAY, 30)]))
        assert MONDAY not in {s.local_date for s in result.sessions}


# ===========================================================================
# Hybrid week
# ===========================================================================

class TestHybridWeek:
    """
    10k + strength goals, every day available, no history, max hard 3.

    Endurance: Z2 Mon 19, Intervals Thu 22, LR Sat 24 (Fri 23 protected).
    Strength:  Tue 20 fits; Wed 21 touches 20; Sun 25 busts the hard budget.
    -> one strength session, shortfall reported.
    """

    def test_invariants(self):
        result = generate_plan(_snapshot(_intake([_ten_k(), _strength()])))
        _assert_no_adjacent_hard(result.sessions)
        _assert_hard_budget(result.sessions, [], 3, MONDAY)
        _assert_single_modality(result.sessions)

    def test_strength_placement_and_shortfall(self):
        result = generate_plan(_snapshot(_intake([_ten_k(), _strength()])))
        strength = [s for s in result.sessions if s.kind is SessionKind.STRENGTH]
        assert [s.local_date for s in strength] == ["2026-10-20"]
        assert strength[0].title == "Full Body A"
        assert strength[0].program_id == "strength_1"
        assert result.blueprint["targets"]["strength_shortfall"]
        assert "strength_shortfall" in [r.kind for r in result.recommendations]

    def test_day_before_long_run_kept_free_of_strength(self):
        result = generate_plan(_snapshot(_intake([_ten_k(), _strength()], Baseline(max_hard_sessions_per_week=5))))
        lr = next(s for s in result.sessions if s.kind is SessionKind.LR)
        day_before = add_days(lr.local_date, -1)
        assert not any(s.kind is SessionKind.STRENGTH and s.local_date == day_before for s in result.sessions)

    def test_strength_keeps_clear_of_long_run_buffer(self):
        """
        Mon/Thu/Sat, 1 strength and 2 endurance.

        LR Sat 24 and Z2 Mon 19 leave only Thu 22, which sits next to the
        easy Friday before the long run. Strength is not placed there.
        """
        baseline = Baseline(strength_frequency_per_week=1, endurance_frequency_per_week=2)
        intake = _intake([_ten_k(), _strength()], baseline, days=["mon", "thu", "sat"])
        result = generate_plan(_snapshot(intake))

        lr = next(s for s in result.sessions if s.kind is SessionKind.LR)
        assert lr.local_date == SATURDAY
        strength = [s.local_date for s in result.sessions if s.kind is SessionKind.STRENGTH]
        assert add_days(SATURDAY, -2) not in strength
        assert strength == []


class TestTwoADayFallback:
    """
    10k + strength, Mon/Tue/Thu/Fri/Sat, 1 strength and 4 endurance,
    two-a-days allowed.

    Endurance: LR Sat 24, Z2 Mon 19, quality Thu 22, Z2 Tue 20. Fri 23 is
    the long-run buffer, so strength has no free day and doubles up on
    the first easy endurance day that keeps the spacing rule: Mon 19.
    """

    def _plan(self, allow: bool = True):
        baseline = Baseline(strength_frequency_per_week=1, endurance_frequency_per_week=4)
        intake = _intake(
            [_ten_k(), _strength()],
            baseline,
            days=["mon", "tue", "thu", "fri", "sat"],
            allow_two_a_days=allow,
        )
        return generate_plan(_snapshot(intake))

    def test_strength_doubles_up_on_easy_day(self):
        result = self._plan()
        strength = [s for s in result.sessions if s.kind is SessionKind.STRENGTH]
        assert [s.local_date for s in strength] == [MONDAY]
        assert strength[0].two_a_day
        assert strength[0].id.endswith("_2ad")
        assert strength[0].targets.note.startswith("Two-a-day")

        same_day = [s for s in result.sessions if s.local_date == MONDAY and s.modality == "endurance"]
        assert [s.hardness for s in same_day] == ["easy"]

    def test_never_on_long_run_buffer(self):
        result = self._plan()
        lr = next(s for s in result.sessions if s.kind is SessionKind.LR)
        buffer = add_days(lr.local_date, -1)
        assert not any(s.local_date == buffer for s in result.sessions)

    def test_spacing_holds(self):
        result = self._plan()
        _assert_no_adjacent_hard(result.sessions)
        _assert_hard_budget(result.sessions, [], 3, MONDAY)

    def test_not_used_unless_allowed(self):
        result = self._plan(allow=False)
        assert not any(s.kind is SessionKind.STRENGTH for s in result.sessions)
        _assert_single_modality(result.sessions)


class TestStrengthOnlyWeek:
    """Strength goal only: two sessions, split titles in order."""

    def test_two_spaced_sessions(self):
        result = generate_plan(_snapshot(_intake([_strength()])))
        assert [(s.local_date, s.title) for s in result.sessions] == [
            ("2026-10-19", "Full Body A"),
            ("2026-10-21", "Full Body B"),
        ]
        assert all(s.modality == "strength" for s in result.sessions)

    def test_split_preference(self):
        result = generate_plan(_snapshot(_intake([_strength()], Baseline(strength_split_preference="upper_lower"))))
        assert [s.title for s in result.sessions] == ["Upper", "Lower"]

    def test_no_endurance_recommendation_for_marathon(self):
        result = generate_plan(_snapshot(_intake([_strength()])))
        kinds = [r.kind for r in result.recommendations]
        assert "marathon_phase" not in kinds
        assert result.blueprint["mode"] == "strength_only"


# ===========================================================================
# Readiness
# ===========================================================================

class TestReadinessInPlan:
    """
    Planning on Saturday 24 with readiness 42.

    Week seed is even -> Tempo. LR Sat 24, Z2 Sun 25, Tempo Fri 30.
    The long run is downgraded to Zone 2 and carried to Sunday by
    replacing the Zone 2 there.
    """

    def _plan(self, score: float):
        scores = [ScoreRecord(local_date=SATURDAY, readiness_score=score)]
        return generate_plan(_snapshot(_intake([_ten_k()]), today=SATURDAY, scores=scores))

    def test_long_run_downgraded_and_carried(self):
        result = self._plan(42)
        today = [s for s in result.sessions if s.local_date == SATURDAY]
        assert len(today) == 1
        assert today[0].kind is SessionKind.Z2
        assert today[0].downgraded_from is SessionKind.LR
        assert today[0].readiness_gated

        carried = [s for s in result.sessions if s.id.endswith("_lr_carryover")]
        assert len(carried) == 1
        assert carried[0].local_date == "2026-10-25"
        assert carried[0].kind is SessionKind.LR
        assert "RULE_LR_CARRYOVER" in carried[0].rule_refs
        assert "readiness" in [r.kind for r in result.recommendations]

    def test_high_readiness_leaves_plan(self):
        result = self._plan(80)
        assert not any(s.readiness_gated for s in result.sessions)
        assert [s.kind for s in result.sessions] == [SessionKind.LR, SessionKind.Z2, SessionKind.TEMPO]

    def test_insufficient_data_ignored(self):
        scores = [ScoreRecord(local_date=SATURDAY, readiness_score=20, data_quality="insufficient")]
        result = generate_plan(_snapshot(_intake([_ten_k()]), today=SATURDAY, scores=scores))
        assert not any(s.readiness_gated for s in result.sessions)


def _session(kind: SessionKind, local_date: str, minutes: int = 60, hardness: str | None = None) -> Session:
    hard = kind in (SessionKind.LR, SessionKind.TEMPO, SessionKind.INTERVALS, SessionKind.STRENGTH)
    return Session(
        id=f"s_{local_date}_{kind.value}",
        program_id="p",
        local_date=local_date,
        title=kind.value,
        kind=kind,
        hardness=hardness or ("hard" if hard else "easy"),
        targets=SessionTargets(duration_minutes=minutes, intensity="easy"),
    )


class TestReadinessGate:
    """Unit tests for the gate and carryover on hand-built sessions."""

    def test_tempo_downgraded_at_moderate_readiness(self):
        sessions = [_session(SessionKind.TEMPO, MONDAY, 30)]
        lr = apply_readiness_gate(sessions, Readiness(score=60), MONDAY)
        assert lr is None
        assert sessions[0].kind is SessionKind.Z2
        assert sessions[0].downgraded_from is SessionKind.TEMPO
        assert sessions[0].hardness == "easy"
        assert sessions[0].title == "Zone 2 (readiness 60)"

    def test_long_run_kept_at_moderate_readiness(self):
        sessions = [_session(SessionKind.LR, MONDAY, 90)]
        assert apply_readiness_gate(sessions, Readiness(score=60), MONDAY) is None
        assert sessions[0].kind is SessionKind.LR

    def test_strength_light_at_low_readiness(self):
        sessions = [_session(SessionKind.STRENGTH, MONDAY, 60)]
        apply_readiness_gate(sessions, Readiness(score=45), MONDAY)
        s = sessions[0]
        assert s.kind is SessionKind.STRENGTH
        assert s.targets.intensity == "light"
        assert s.targets.sets_reps == "2x12-15"
        assert s.targets.duration_minutes == 40
        assert s.title == "Strength (readiness 45)"

    def test_far_session_untouched(self):
        """Only a session today or tomorrow is gated."""
        sessions = [_session(SessionKind.TEMPO, add_days(MONDAY, 2), 30)]
        apply_readiness_gate(sessions, Readiness(score=40), MONDAY)
        assert sessions[0].kind is SessionKind.TEMPO

    def test_carryover_to_free_weekend_slot(self):
        sessions = [_session(SessionKind.LR, SATURDAY, 90)]
        downgraded = apply_readiness_gate(sessions, Readiness(score=42), SATURDAY)
        slots = [Slot(local_date=d, day_key="") for d in date_range(SATURDAY, 7)]
        result, outcome = apply_lr_carryover(sessions, downgraded, slots, [], set(), set(), 3)
        assert outcome.status == "placed"
        assert outcome.session.local_date == "2026-10-25"
        assert outcome.session.targets.duration_minutes == 90
        assert len(result) == 2

    def test_carryover_fails_without_legal_day(self):
        sessions = [_session(SessionKind.LR, SATURDAY, 90)]
        downgraded = apply_readiness_gate(sessions, Readiness(score=42), SATURDAY)
        result, outcome = apply_lr_carryover(
            sessions, downgraded, [Slot(local_date=SATURDAY, day_key="sat")], [], set(), set(), 3
        )
        assert outcome.status == "failed"
        assert result == sessions


# ===========================================================================
# Calendar merge
# ===========================================================================

class TestMergeIntoCalendar:
    """Tests for persisting a new cycle over the previous calendar."""

    def test_keeps_past_and_terminal_sessions(self):
        snap = _snapshot(_intake([_ten_k()]))
        past = _session(SessionKind.Z2, add_days(MONDAY, -2))
        past.status = "completed"
        old_future = _session(SessionKind.TEMPO, add_days(MONDAY, 3))
        previous = Calendar(time_zone="Europe/Berlin", generated_at="x", sessions=[past, old_future])

        calendar = merge_into_calendar(previous, generate_plan(snap), snap, "2026-10-19T06:00:00")

        ids = [s.id for s in calendar.sessions]
        assert past.id in ids
        assert old_future.id not in ids
        assert calendar.sessions == sorted(calendar.sessions, key=lambda s: (s.local_date, s.id))

    def test_calendar_handle_survives_regeneration(self):
        snap = _snapshot(_intake([_ten_k()]))
        first = generate_plan(snap)
        published = first.sessions[0]
        published.calendar_ref = CalendarRef(event_uid="uid-1")
        previous = Calendar(time_zone="Europe/Berlin", generated_at="x", sessions=first.sessions)

        calendar = merge_into_calendar(previous, generate_plan(snap), snap, "t")
        same = next(s for s in calendar.sessions if s.id == published.id)
        assert same.calendar_ref.event_uid == "uid-1"

    def test_events_carried_forward(self):
        snap = _snapshot(_intake([_ten_k()]))
        event = AdaptationEvent(at="t", reason="matched", session_id="x")
        previous = Calendar(time_zone="Europe/Berlin", generated_at="x", events=[event])
        calendar = merge_into_calendar(previous, generate_plan(snap), snap, "t")
        assert calendar.events == [event]

    @pytest.mark.parametrize("today", [MONDAY, SATURDAY])
    def test_first_plan_without_previous(self, today):
        snap = _snapshot(_intake([_ten_k(), _strength()]), today=today)
        calendar = merge_into_calendar(None, generate_plan(snap), snap, "t")
        assert calendar.sessions
        assert calendar.schema_version == 2
        assert [g.id for g in calendar.goals] == ["10k_spring", "strength"]
