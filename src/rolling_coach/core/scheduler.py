"""
Greedy, deterministic placement of session specs onto slots.

For each spec in order, slots are walked in the spec's preferred order and
the first legal one is taken. A slot is legal when it is unused, the
rolling 7-day count of the spec's modality is below the weekly target,
and, for hard specs, the spacing rule and the hard budget both hold.
A spec without a legal slot is dropped.

Hybrid mode (endurance + strength goals) reserves strength dates first,
places endurance around them, then fills strength and, if permitted and
still short, falls back to two-a-days on easy endurance days.
"""

from dataclasses import dataclass

from loguru import logger

from .config import DEFAULT_PROGRAM_ID, STRENGTH_PROGRAM_ID
from .dates import add_days, diff_days, is_saturday, is_weekend
from .guardrails import (
    can_place_hard,
    count_modality_in_window,
    enforce_single_modality,
    hard_budget_allows,
)
from .kinds import QUALITY_KINDS, SessionKind
from .models import (
    ActivityRecord,
    Goal,
    PlanMode,
    Session,
    SessionSpec,
    SessionTargets,
    Slot,
)
from .specs import split_titles

TWO_A_DAY_NOTE = "Two-a-day: strength in the morning, at least 3h before endurance. No intervals the same day."


@dataclass
class PlacementContext:
    """Inputs shared by every placement pass in one planning cycle."""

    slots: list[Slot]
    activities: list[ActivityRecord]
    completed_hard: list[str]  # one date per completed hard activity
    hard_dates: set[str]  # completed hard dates, plus today if already trained
    very_hard_dates: set[str]
    max_hard: int
    max_minutes: int


@dataclass
class ScheduleResult:
    sessions: list[Session]
    strength_shortfall: bool = False


def sort_slots_for_spec(slots: list[Slot], spec: SessionSpec) -> list[Slot]:
    """
    Preferred slot order for a spec.

    Long runs go weekend-first (then chronological), hard quality sessions
    latest-first so early-week days stay free for strength, everything
    else chronological.
    """
    if spec.kind is SessionKind.LR:
        return sorted(slots, key=lambda s: (not is_weekend(s.local_date), s.local_date))
    if spec.kind in QUALITY_KINDS and spec.hardness == "hard":
        return sorted(slots, key=lambda s: s.local_date, reverse=True)
    return list(slots)


def min_gap_between_free_slots(slots: list[Slot], used_dates: set[str], chosen: str) -> int:
    """Smallest day gap between the slots left free if ``chosen`` is taken (0 if < 2 free)."""
    free = sorted(s.local_date for s in slots if s.local_date not in used_dates and s.local_date != chosen)
    if len(free) < 2:
        return 0
    return min(diff_days(b, a) for a, b in zip(free, free[1:]))


def _session_from_spec(
    spec: SessionSpec,
    session_id: str,
    program_id: str,
    date_str: str,
    max_minutes: int,
    milestone_id: str | None = None,
) -> Session:
    t = spec.targets
    return Session(
        id=session_id,
        program_id=program_id,
        milestone_id=milestone_id,
        local_date=date_str,
        title=spec.title,
        kind=spec.kind,
        hardness=spec.hardness or "easy",
        targets=SessionTargets(
            duration_minutes=min(max_minutes, t.duration_minutes),
            intensity=t.intensity,
            sets_reps=t.sets_reps,
            work_bouts=t.work_bouts,
            recovery=t.recovery,
            note=t.note,
        ),
        rule_refs=list(spec.rule_refs),
    )


def place_endurance(
    specs: list[SessionSpec],
    ctx: PlacementContext,
    slots: list[Slot],
    target: int,
    milestone: Goal | None = None,
    leave_gaps_for_strength: bool = False,
) -> list[Session]:
    """
    Place endurance specs in order until the weekly target is reached.

    With ``leave_gaps_for_strength`` every legal slot is collected and the
    one leaving the widest minimum gap between remaining free slots wins,
    so hard strength days can still be spaced out.

    Args:
        specs: Ordered endurance specs
        ctx: Shared placement context
        slots: Slots available to endurance
        target: Weekly endurance target
        milestone: Goal owning the sessions
        leave_gaps_for_strength: Prefer gap-preserving slots

    Returns:
        Placed sessions in placement order
    """
    program_id = milestone.id if milestone is not None else DEFAULT_PROGRAM_ID
    milestone_id = milestone.id if milestone is not None else None
    sessions: list[Session] = []
    used: set[str] = set()
    used_hard: set[str] = set()

    for spec in specs:
        if len(sessions) >= target:
            break
        candidates: list[Slot] = []
        for slot in sort_slots_for_spec(slots, spec):
            d = slot.local_date
            if d in used:
                continue
            if count_modality_in_window(d, ctx.activities, sessions, "endurance") >= target:
                continue
            if spec.hardness == "hard":
                planned_hard = [s.local_date for s in sessions if s.is_hard]
                if not hard_budget_allows(d, ctx.completed_hard, planned_hard, ctx.max_hard):
                    continue
                if not can_place_hard(d, used_hard, ctx.hard_dates, ctx.very_hard_dates):
                    continue
            candidates.append(slot)
            if not leave_gaps_for_strength:
                break

        if not candidates:
            logger.info(f"No legal slot for {spec.kind} '{spec.title}', dropped this cycle")
            continue

        chosen = candidates[0]
        if leave_gaps_for_strength and len(candidates) > 1:
            best_gap = min_gap_between_free_slots(slots, used, chosen.local_date)
            for cand in candidates[1:]:
                gap = min_gap_between_free_slots(slots, used, cand.local_date)
                if gap > best_gap:
                    chosen, best_gap = cand, gap

        d = chosen.local_date
        idx = len(sessions)
        session_id = f"sess_{program_id}_{d}_{spec.kind.value.lower()}_{idx}"
        sessions.append(_session_from_spec(spec, session_id, program_id, d, ctx.max_minutes, milestone_id))
        used.add(d)
        if spec.hardness == "hard":
            used_hard.add(d)

    return sessions


def place_strength(
    spec: SessionSpec,
    ctx: PlacementContext,
    slots: list[Slot],
    target: int,
    titles: tuple[str, ...],
    planned: list[Session] | None = None,
    avoid_hard_dates: set[str] | None = None,
    protected_dates: set[str] | None = None,
    start_index: int = 0,
) -> list[Session]:
    """
    Place up to ``target`` strength sessions on ``slots`` in the given order.

    Strength sessions are hard: they respect the spacing rule against each
    other, against ``avoid_hard_dates`` (hard endurance days) and against
    completed activity, and they count against the hard budget together
    with ``planned`` sessions. ``protected_dates`` are never used.
    """
    planned = planned or []
    avoid_hard_dates = avoid_hard_dates or set()
    protected_dates = protected_dates or set()
    chosen: list[Session] = []

    for slot in slots:
        if len(chosen) >= target:
            break
        d = slot.local_date
        if d in protected_dates:
            continue
        if count_modality_in_window(d, ctx.activities, chosen, "strength") >= target:
            continue
        planned_hard = [s.local_date for s in planned + chosen if s.is_hard]
        if not hard_budget_allows(d, ctx.completed_hard, planned_hard, ctx.max_hard):
            continue
        local_hard = {s.local_date for s in chosen} | avoid_hard_dates
        if not can_place_hard(d, local_hard, ctx.hard_dates, ctx.very_hard_dates):
            continue

        i = start_index + len(chosen)
        session = _session_from_spec(
            spec, f"sess_{STRENGTH_PROGRAM_ID}_{d}_str_{i}", STRENGTH_PROGRAM_ID, d, ctx.max_minutes
        )
        session.title = titles[i % len(titles)]
        chosen.append(session)

    return chosen


def retitle_strength(sessions: list[Session], titles: tuple[str, ...]) -> list[Session]:
    """Re-assign split titles in calendar order (A = earliest)."""
    ordered = sorted((s for s in sessions if s.kind is SessionKind.STRENGTH), key=lambda s: s.local_date)
    for i, s in enumerate(ordered):
        s.title = titles[i % len(titles)]
    return sessions


def schedule_week(
    mode: PlanMode,
    ctx: PlacementContext,
    endurance_specs: list[SessionSpec],
    strength_spec: SessionSpec | None,
    endurance_target: int,
    strength_target: int,
    milestone: Goal | None,
    split: str | None,
    today: str,
    readiness_score: float | None = None,
    allow_two_a_days: bool = False,
    marathon_goal: bool = False,
) -> ScheduleResult:
    """
    Build the cycle's sessions for a planning mode.

    Args:
        mode: hybrid, endurance_only or strength_only
        ctx: Shared placement context
        endurance_specs: Ordered endurance specs
        strength_spec: Strength template (None without a strength goal)
        endurance_target: Weekly endurance target (taper-adjusted)
        strength_target: Weekly strength target
        milestone: Endurance goal owning endurance sessions
        split: Strength split preference
        today: First date of the window
        readiness_score: Today's readiness, used to keep a carryover day free
        allow_two_a_days: User permits two sessions on one day
        marathon_goal: A marathon milestone drives the plan

    Returns:
        ScheduleResult with sessions sorted by date
    """
    titles = split_titles(split)

    if mode == "strength_only":
        sessions = []
        if strength_spec is not None:
            sessions = place_strength(strength_spec, ctx, ctx.slots, strength_target, titles)
        return ScheduleResult(sessions=sorted(sessions, key=lambda s: s.local_date))

    if mode == "endurance_only" or strength_spec is None:
        sessions = place_endurance(endurance_specs, ctx, ctx.slots, endurance_target, milestone)
        return ScheduleResult(sessions=sorted(sessions, key=lambda s: s.local_date))

    # Hybrid: guarantee strength a minimum before endurance takes the week
    guarantee = min(strength_target, 2) if strength_target >= 1 else 0
    reserved = place_strength(strength_spec, ctx, ctx.slots, guarantee, titles) if guarantee else []
    reserved_dates = {s.local_date for s in reserved}

    endurance_slots = ctx.slots
    if marathon_goal and not allow_two_a_days:
        endurance_slots = [s for s in ctx.slots if s.local_date not in reserved_dates]

    endurance = place_endurance(
        endurance_specs,
        ctx,
        endurance_slots,
        endurance_target,
        milestone,
        leave_gaps_for_strength=strength_target >= 2,
    )
    endurance_dates = {s.local_date for s in endurance}
    endurance_hard = {s.local_date for s in endurance if s.is_hard}

    long_run = next((s for s in endurance if s.kind is SessionKind.LR), None)
    # Strength never takes LR-1 and keeps a day clear of it
    protected = {add_days(long_run.local_date, -1)} if long_run else set()

    lr_will_be_gated = (
        readiness_score is not None
        and readiness_score < 50
        and long_run is not None
        and long_run.local_date == today
    )
    strength_slots = [
        s
        for s in ctx.slots
        if s.local_date not in endurance_dates and not (lr_will_be_gated and is_saturday(s.local_date))
    ]
    strength_slots.sort(key=lambda s: is_saturday(s.local_date))

    strength = place_strength(
        strength_spec,
        ctx,
        strength_slots,
        strength_target,
        titles,
        planned=endurance,
        avoid_hard_dates=endurance_hard | protected,
        protected_dates=protected,
    )

    if allow_two_a_days and len(strength) < strength_target:
        taken = {s.local_date for s in strength}
        easy_days = sorted(
            s.local_date
            for s in endurance
            if s.hardness == "easy" and s.local_date not in taken and s.local_date not in protected
        )
        two_a_day_slots = [sl for sl in ctx.slots if sl.local_date in easy_days]
        extra = place_strength(
            strength_spec,
            ctx,
            two_a_day_slots,
            strength_target - len(strength),
            titles,
            planned=endurance + strength,
            avoid_hard_dates=endurance_hard | taken | protected,
            protected_dates=protected,
            start_index=len(strength),
        )
        for s in extra:
            s.id = f"{s.id}_2ad"
            s.two_a_day = True
            s.targets.note = TWO_A_DAY_NOTE
        if extra:
            logger.info(f"Two-a-day fallback placed {len(extra)} strength session(s)")
        strength += extra

    sessions = endurance + retitle_strength(strength, titles)
    if not allow_two_a_days:
        sessions = enforce_single_modality(sessions)

    total_strength = sum(1 for s in sessions if s.kind is SessionKind.STRENGTH)
    shortfall = strength_target >= 2 and total_strength < 2
    if shortfall:
        logger.info(f"Strength shortfall: {total_strength} placed, target {strength_target}")

    return ScheduleResult(
        sessions=sorted(sessions, key=lambda s: s.local_date),
        strength_shortfall=shortfall,
    )
