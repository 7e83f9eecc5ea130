"""
Readiness gate and long-run carryover.

A low readiness score on the day of (or before) the nearest session
downgrades it: quality work becomes Zone 2, strength goes light. A
downgraded long run is then carried to a later weekend slot, or replaces
a later Zone 2, if the spacing rule and hard budget allow it.
"""

from dataclasses import dataclass

from loguru import logger

from .config import READINESS_GATE_HORIZON_DAYS, READINESS_GATE_MAX, READINESS_LOW, STRENGTH_DELOAD_FACTOR
from .dates import diff_days, is_weekend
from .guardrails import can_place_hard, hard_budget_allows
from .kinds import QUALITY_KINDS, SessionKind
from .models import Readiness, Session, SessionTargets, Slot


@dataclass
class CarryoverOutcome:
    """Result of trying to reschedule a downgraded long run."""

    status: str  # "placed", "replaced", "failed" or "not_needed"
    session: Session | None = None


def _downgrade_strength(session: Session, score: float) -> None:
    t = session.targets
    session.title = f"{session.title} (readiness {score:g})"
    session.targets = SessionTargets(
        duration_minutes=round(t.duration_minutes * STRENGTH_DELOAD_FACTOR),
        intensity="light",
        sets_reps="2x12-15",
        note="Low readiness: light technique work only",
    )
    session.readiness_gated = True


def _downgrade_to_z2(session: Session, score: float) -> None:
    previous = session.kind
    session.title = f"Zone 2 (readiness {score:g})"
    session.kind = SessionKind.Z2
    session.hardness = "easy"
    session.targets = SessionTargets(
        duration_minutes=session.targets.duration_minutes,
        intensity="Z2",
        note=f"Downgraded from {previous.value} due to low readiness",
    )
    session.readiness_gated = True
    session.downgraded_from = previous


def apply_readiness_gate(
    sessions: list[Session],
    readiness: Readiness | None,
    today: str,
) -> Session | None:
    """
    Downgrade the nearest planned session when readiness is low.

    Only the earliest planned date is touched, and only when it is at most
    one day away. Thresholds:
        score > 65:       nothing
        50 <= score <= 65: Tempo/Intervals become Zone 2
        score < 50:       LR/Tempo/Intervals become Zone 2, strength goes light

    Sessions are modified in place.

    Args:
        sessions: Planned sessions sorted by date
        readiness: Today's readiness, or None
        today: Evaluation date

    Returns:
        The downgraded long run, if one was downgraded (carryover candidate)
    """
    if readiness is None or not readiness.usable or readiness.score > READINESS_GATE_MAX:
        return None

    planned = [s for s in sessions if s.status == "planned"]
    if not planned:
        return None
    first_date = min(s.local_date for s in planned)
    if diff_days(first_date, today) > READINESS_GATE_HORIZON_DAYS:
        return None

    score = readiness.score
    low = score < READINESS_LOW
    downgraded_lr: Session | None = None

    for s in planned:
        if s.local_date != first_date:
            continue
        if s.kind is SessionKind.STRENGTH:
            if low:
                _downgrade_strength(s, score)
                logger.info(f"Readiness {score:g}: {s.id} reduced to light strength")
        elif s.kind in QUALITY_KINDS or (low and s.kind is SessionKind.LR):
            was_lr = s.kind is SessionKind.LR
            _downgrade_to_z2(s, score)
            logger.info(f"Readiness {score:g}: {s.id} downgraded from {s.downgraded_from.value} to Zone 2")
            if was_lr:
                downgraded_lr = s

    return downgraded_lr


def _carryover_session(template: Session, date_str: str, rule_refs: list[str]) -> Session:
    return Session(
        id=f"sess_{template.program_id}_{date_str}_lr_carryover",
        program_id=template.program_id,
        milestone_id=template.milestone_id,
        local_date=date_str,
        title="Long Run (carried over)",
        kind=SessionKind.LR,
        hardness="hard",
        targets=SessionTargets(duration_minutes=template.targets.duration_minutes, intensity="easy"),
        rule_refs=rule_refs,
    )


def apply_lr_carryover(
    sessions: list[Session],
    downgraded: Session | None,
    slots: list[Slot],
    completed_hard: list[str],
    completed_hard_dates: set[str],
    completed_very_hard_dates: set[str],
    max_hard: int,
) -> tuple[list[Session], CarryoverOutcome]:
    """
    Carry a downgraded long run to a later date in the window.

    Option 1 is the first free weekend slot after the downgraded date;
    option 2 replaces a later, non-gated Zone 2 (weekends first, then by
    date). Either must pass the spacing rule and the weekly hard budget.

    Args:
        sessions: Sessions after gating
        downgraded: The long run turned into Zone 2, or None
        slots: Slots available this cycle
        completed_hard: One date per completed hard activity
        completed_hard_dates: Dates with completed hard activity
        completed_very_hard_dates: Dates with completed very hard activity
        max_hard: Hard sessions allowed per rolling 7 days

    Returns:
        (sessions, outcome)
    """
    if downgraded is None:
        return sessions, CarryoverOutcome("not_needed")

    rule_refs = ["RULE_KEY_WORKOUT_PRIORITY", "RULE_LR_CARRYOVER"]
    after = downgraded.local_date

    def legal(date_str: str, others: list[Session]) -> bool:
        planned_hard = {s.local_date for s in others if s.is_hard}
        if not can_place_hard(date_str, planned_hard, completed_hard_dates, completed_very_hard_dates):
            return False
        return hard_budget_allows(
            date_str, completed_hard, [s.local_date for s in others if s.is_hard], max_hard
        )

    used = {s.local_date for s in sessions}
    for slot in sorted(slots, key=lambda sl: sl.local_date):
        d = slot.local_date
        if d <= after or d in used or not is_weekend(d):
            continue
        if legal(d, sessions):
            carried = _carryover_session(downgraded, d, rule_refs)
            logger.info(f"Long run carried over from {after} to {d}")
            return sorted(sessions + [carried], key=lambda s: s.local_date), CarryoverOutcome("placed", carried)

    replaceable = sorted(
        (
            s
            for s in sessions
            if s.kind is SessionKind.Z2
            and s.local_date > after
            and not s.readiness_gated
            and s.status == "planned"
        ),
        key=lambda s: (not is_weekend(s.local_date), s.local_date),
    )
    for z2 in replaceable:
        others = [s for s in sessions if s.id != z2.id]
        if legal(z2.local_date, others):
            carried = _carryover_session(downgraded, z2.local_date, rule_refs)
            logger.info(f"Long run carried over to {z2.local_date}, replacing {z2.id}")
            return sorted(others + [carried], key=lambda s: s.local_date), CarryoverOutcome("replaced", carried)

    logger.info(f"No legal carryover date for long run downgraded on {after}")
    return sessions, CarryoverOutcome("failed")
