"""
Plan generation for rolling-coach.

One planning cycle turns a PlanningSnapshot into a 7-day schedule:
signals -> mode and phase -> targets and budget -> slots and specs ->
placement -> guardrails -> readiness gate -> long-run carryover ->
recommendations and blueprint. The cycle is deterministic: identical
inputs on the same day produce identical sessions.
"""

import dataclasses
from dataclasses import dataclass
from typing import Any

from loguru import logger

from .adaptation import derive_max_hard, estimate_targets, taper_endurance_target
from .config import (
    DEFAULT_MAX_MINUTES_PER_DAY,
    MARATHON_MIN_DAILY_CAP,
    SCHEMA_VERSION,
    WINDOW_DAYS,
)
from .dates import epoch_week
from .guardrails import apply_guardrails, polarized_ratio
from .models import (
    Baseline,
    Calendar,
    Goal,
    Intake,
    PhaseInfo,
    PlanMode,
    PlanningSnapshot,
    PlanResult,
    Recommendation,
    Session,
    Signals,
    WeeklyTargets,
)
from .phase import compute_phase
from .readiness import CarryoverOutcome, apply_lr_carryover, apply_readiness_gate
from .scheduler import PlacementContext, schedule_week
from .signals import collect_signals
from .slots import build_slots, fixed_events_in_window
from .specs import build_endurance_specs, build_strength_spec


@dataclass(frozen=True)
class GoalResolution:
    """Which goals drive this cycle."""

    mode: PlanMode
    has_endurance: bool
    has_strength: bool
    endurance_milestone: Goal | None = None
    marathon_milestone: Goal | None = None


def resolve_goals(intake: Intake) -> GoalResolution:
    """
    Derive the planning mode and the driving endurance milestone.

    Endurance is active with a marathon milestone or any endurance goal;
    strength with any strength goal. The endurance milestone is the
    marathon milestone, else the first milestone, else the first dated
    endurance goal, else the first endurance goal.
    """
    endurance_goals = [g for g in intake.goals if g.kind == "endurance"]
    strength_goals = [g for g in intake.goals if g.kind == "strength"]

    marathon = next(
        (m for m in intake.milestones if m.is_marathon and m.date_local),
        None,
    ) or next(
        (g for g in endurance_goals if g.sub_kind == "marathon" and g.date_local),
        None,
    )

    has_endurance = marathon is not None or bool(endurance_goals)
    has_strength = bool(strength_goals)

    if has_endurance and has_strength:
        mode: PlanMode = "hybrid"
    elif has_endurance:
        mode = "endurance_only"
    else:
        mode = "strength_only"

    milestone = marathon
    if milestone is None and intake.milestones:
        milestone = intake.milestones[0]
    if milestone is None:
        milestone = next((g for g in endurance_goals if g.date_local), None)
    if milestone is None and endurance_goals:
        milestone = endurance_goals[0]

    return GoalResolution(
        mode=mode,
        has_endurance=has_endurance,
        has_strength=has_strength,
        endurance_milestone=milestone if has_endurance else None,
        marathon_milestone=marathon,
    )


def effective_baseline(baseline: Baseline, signals: Signals) -> Baseline:
    """Baseline with the long-run anchor raised to the longest recent endurance session."""
    recent = signals.longest_recent_endurance_minutes
    if recent is None or recent <= (baseline.longest_recent_run_minutes or 0):
        return baseline
    return dataclasses.replace(baseline, longest_recent_run_minutes=recent)


def daily_cap(intake: Intake, phase: PhaseInfo | None) -> int:
    """Daily minute cap, raised during active marathon phases."""
    cap = intake.constraints.max_minutes_per_day or DEFAULT_MAX_MINUTES_PER_DAY
    if phase is not None and phase.phase not in ("taper", "post"):
        cap = max(cap, MARATHON_MIN_DAILY_CAP)
    return cap


# =============================================================================
# RECOMMENDATIONS
# =============================================================================

_PHASE_TEXT = {
    "base": "Build aerobic volume. Mostly Zone 2, long run grows week by week, tempo only once the base holds.",
    "build": "Add race-specific work. Alternate intervals and marathon-pace runs, keep easy days easy.",
    "peak": "Longest runs and race simulation. Protect sleep and recovery, no new training stimuli.",
    "taper": "Reduce volume, keep short sharp efforts. Arrive at the start line fresh.",
    "post": "Race is behind you. Recover with easy movement before the next block.",
}


def build_recommendations(
    resolution: GoalResolution,
    intake: Intake,
    sessions: list[Session],
    signals: Signals,
    targets: WeeklyTargets,
    phase: PhaseInfo | None,
    polarized: dict[str, Any],
    carryover: CarryoverOutcome,
    strength_shortfall: bool,
) -> list[Recommendation]:
    """Advice emitted alongside the plan, in a fixed order."""
    recs: list[Recommendation] = []

    if not polarized["ok"]:
        recs.append(
            Recommendation(
                kind="polarized",
                title="Intensity distribution",
                text=(
                    f"{polarized['hard_count']} of {polarized['total_count']} endurance sessions are "
                    "quality work. Aim for about 80% easy, 20% hard."
                ),
            )
        )

    if carryover.status == "failed":
        recs.append(
            Recommendation(
                kind="lr_carryover",
                title="Long run not rescheduled",
                text=(
                    "Low readiness downgraded the long run and no later day this week passes the "
                    "recovery rules. Do not squeeze it in; the next long run follows the plan."
                ),
            )
        )

    if strength_shortfall:
        placed = sum(1 for s in sessions if s.modality == "strength")
        recs.append(
            Recommendation(
                kind="strength_shortfall",
                title="Strength below target",
                text=(
                    f"Only {placed} strength session(s) fit this week around endurance and recovery "
                    "rules. Add an available day or allow two-a-days."
                ),
            )
        )

    goal_kinds = {g.kind for g in intake.goals}
    if "sleep" in goal_kinds:
        recs.append(
            Recommendation(
                kind="sleep",
                title="Sleep",
                text="Keep a regular bedtime and 7-9 hours in bed. Avoid hard sessions late in the evening.",
            )
        )
    if "bodycomp" in goal_kinds:
        recs.append(
            Recommendation(
                kind="bodycomp",
                title="Body composition",
                text=(
                    "Moderate energy deficit only (0.5-1% body weight per week) and 1.6-2.2 g/kg "
                    "protein to keep strength while leaning out."
                ),
            )
        )

    recs.append(
        Recommendation(
            kind="planning",
            title="Rolling plan",
            text="Only next 7 days are fixed. Replan weekly from recent execution and recovery.",
        )
    )

    if any(s.readiness_gated for s in sessions) and signals.readiness is not None:
        recs.append(
            Recommendation(
                kind="readiness",
                title="Low readiness",
                text=(
                    f"Readiness {signals.readiness.score:g}: the nearest session was eased. "
                    "Prioritize sleep and easy movement today."
                ),
            )
        )

    if targets.deload:
        acwr = f"ACWR {targets.acwr:.2f}" if targets.acwr is not None else "ACWR unavailable"
        recs.append(
            Recommendation(
                kind="recovery",
                title="Deload signal",
                text=(
                    f"Deload week ({targets.deload_reason}, {acwr}): volume reduced, frequency kept. "
                    "Keep intensity low and sleep long."
                ),
            )
        )

    if phase is not None and resolution.marathon_milestone is not None:
        recs.append(
            Recommendation(
                kind="marathon_phase",
                title=f"Marathon phase: {phase.phase} ({phase.weeks_to_race} weeks to race)",
                text=_PHASE_TEXT[phase.phase],
            )
        )

    return recs


def build_blueprint(
    resolution: GoalResolution,
    today: str,
    signals: Signals,
    targets: WeeklyTargets,
    endurance_target: int,
    max_hard: int,
    phase: PhaseInfo | None,
    polarized: dict[str, Any],
    strength_shortfall: bool,
) -> dict[str, Any]:
    """Diagnostic summary of the inputs and decisions behind the plan."""
    readiness = None
    if signals.readiness is not None:
        readiness = {
            "score": signals.readiness.score,
            "label": signals.readiness.label,
            "data_quality": signals.readiness.data_quality,
        }
    return {
        "mode": resolution.mode,
        "window_days": WINDOW_DAYS,
        "week_of": today,
        "targets": {
            "strength_per_week": targets.strength_per_week,
            "endurance_per_week": endurance_target,
            "strength_remaining": max(0, targets.strength_per_week - signals.completed_strength),
            "endurance_remaining": max(0, endurance_target - signals.completed_endurance),
            "max_hard_per_week": max_hard,
            "hard_remaining": max(0, max_hard - signals.hard_count),
            "deload": targets.deload,
            "deload_reason": targets.deload_reason,
            "acwr": targets.acwr,
            "strength_shortfall": strength_shortfall,
        },
        "polarized_ratio": polarized,
        "recent_7d": {
            "total_minutes": round(signals.total_minutes),
            "hard_sessions": signals.hard_count,
            "very_hard_sessions": len(signals.very_hard_dates),
            "completed_endurance": signals.completed_endurance,
            "completed_strength": signals.completed_strength,
            "yesterday_hard": signals.yesterday_hard,
            "acwr": signals.acwr,
            "acwr_source": signals.acwr_source,
        },
        "readiness": readiness,
        "marathon_phase": dataclasses.asdict(phase) if phase is not None else None,
    }


# =============================================================================
# PLANNING CYCLE
# =============================================================================


def generate_plan(snapshot: PlanningSnapshot) -> PlanResult:
    """
    Run one planning cycle.

    Args:
        snapshot: Everything read at the boundary for this run

    Returns:
        PlanResult with sessions sorted by date
    """
    today = snapshot.today
    intake = snapshot.intake
    activities = list(snapshot.activities)
    signals = collect_signals(activities, today, list(snapshot.scores))

    resolution = resolve_goals(intake)
    milestone = resolution.endurance_milestone
    marathon = resolution.marathon_milestone

    training_start = intake.training_start_date or (marathon.training_start_date if marathon else None)
    phase = compute_phase(marathon.date_local, today, training_start) if marathon else None

    baseline = effective_baseline(intake.baseline, signals)
    max_minutes = daily_cap(intake, phase)

    targets = estimate_targets(resolution.mode, baseline, signals, phase, activities, today)
    endurance_target = taper_endurance_target(targets.endurance_per_week, phase)
    max_hard = derive_max_hard(baseline, signals)

    slots = build_slots(today, intake.constraints, signals.completed_dates)
    week_seed = epoch_week(slots[0].local_date if slots else today)
    deload = targets.deload

    endurance_specs = []
    if endurance_target > 0:
        endurance_specs = build_endurance_specs(
            milestone,
            week_seed,
            deload,
            baseline,
            max_minutes,
            targets.endurance_per_week,
            phase,
            signals.acwr,
        )
    strength_spec = None
    if targets.strength_per_week > 0:
        strength_spec = build_strength_spec(baseline, max_minutes, phase, deload)

    hard_dates = set(signals.hard_dates)
    if signals.trained_today:
        hard_dates.add(today)

    ctx = PlacementContext(
        slots=slots,
        activities=activities,
        completed_hard=signals.hard_activity_dates,
        hard_dates=hard_dates,
        very_hard_dates=signals.very_hard_dates,
        max_hard=max_hard,
        max_minutes=max_minutes,
    )
    readiness_score = signals.readiness.score if signals.readiness is not None and signals.readiness.usable else None
    scheduled = schedule_week(
        resolution.mode,
        ctx,
        endurance_specs,
        strength_spec,
        endurance_target,
        targets.strength_per_week,
        milestone,
        baseline.strength_split_preference,
        today,
        readiness_score=readiness_score,
        allow_two_a_days=intake.constraints.allow_two_a_days,
        marathon_goal=marathon is not None,
    )

    sessions = apply_guardrails(
        scheduled.sessions,
        signals.hard_activity_dates,
        hard_dates,
        signals.very_hard_dates,
        max_hard,
        allow_two_a_days=intake.constraints.allow_two_a_days,
    )

    downgraded = apply_readiness_gate(sessions, signals.readiness, today)
    carryover = CarryoverOutcome("not_needed")
    if resolution.mode != "strength_only" and milestone is not None:
        sessions, carryover = apply_lr_carryover(
            sessions,
            downgraded,
            slots,
            signals.hard_activity_dates,
            hard_dates,
            signals.very_hard_dates,
            max_hard,
        )

    polarized = polarized_ratio(sessions)
    blueprint = build_blueprint(
        resolution, today, signals, targets, endurance_target, max_hard, phase, polarized,
        scheduled.strength_shortfall,
    )
    recommendations = build_recommendations(
        resolution, intake, sessions, signals, targets, phase, polarized, carryover,
        scheduled.strength_shortfall,
    )

    logger.info(
        f"Planned {len(sessions)} session(s) for {today} ({resolution.mode}, "
        f"max hard {max_hard}, deload {targets.deload})"
    )
    return PlanResult(
        sessions=sorted(sessions, key=lambda s: s.local_date),
        recommendations=recommendations,
        blueprint=blueprint,
        fixed_events=fixed_events_in_window(intake.constraints, today),
    )


def merge_into_calendar(
    previous: Calendar | None,
    result: PlanResult,
    snapshot: PlanningSnapshot,
    generated_at: str,
) -> Calendar:
    """
    Build the calendar to persist after a planning cycle.

    Sessions from today onward are replaced by the new plan, except that a
    session already in a terminal status keeps its status (and its ID wins
    over a regenerated twin). Earlier sessions and the event log are
    carried forward unchanged. Calendar handles survive regeneration when
    the session ID is stable.
    """
    today = snapshot.today
    kept: list[Session] = []
    refs = {}
    events = []
    if previous is not None:
        events = list(previous.events)
        for s in previous.sessions:
            if s.local_date < today or s.is_terminal:
                kept.append(s)
            elif s.calendar_ref.is_published:
                refs[s.id] = s.calendar_ref

    kept_ids = {s.id for s in kept}
    fresh = []
    for s in result.sessions:
        if s.id in kept_ids:
            continue
        if s.id in refs:
            s.calendar_ref = refs[s.id]
        fresh.append(s)

    return Calendar(
        time_zone=snapshot.time_zone,
        generated_at=generated_at,
        goals=list(snapshot.intake.goals),
        milestones=list(snapshot.intake.milestones),
        history=list(previous.history) if previous is not None else [],
        sessions=sorted(kept + fresh, key=lambda s: (s.local_date, s.id)),
        recommendations=result.recommendations,
        blueprint=result.blueprint,
        events=events,
        schema_version=SCHEMA_VERSION,
    )
