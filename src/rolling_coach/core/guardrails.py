"""
Guardrails: hard-session spacing, weekly hard budget, single modality per day.

The scheduler consults can_place_hard() and hard_budget_allows() while
placing; apply_guardrails() re-checks the finished schedule and removes
whatever still violates a rule.
"""

from loguru import logger

from .config import POLARIZED_HARD_RATIO_MAX, WINDOW_DAYS
from .dates import add_days
from .kinds import QUALITY_KINDS, priority_of
from .models import ActivityRecord, Session
from .signals import activity_modality


def can_place_hard(
    date_str: str,
    planned_hard_dates: set[str],
    completed_hard_dates: set[str],
    completed_very_hard_dates: set[str] | None = None,
) -> bool:
    """
    Spacing rule for a hard session on ``date_str``.

    Fails when:
        - a planned hard session already sits on the date, the day before
          or the day after
        - a completed hard activity happened the day before
        - a completed very hard activity happened two days before

    Args:
        date_str: Candidate date
        planned_hard_dates: Dates already holding a planned hard session
        completed_hard_dates: Dates with a completed hard activity
        completed_very_hard_dates: Dates with a completed very hard activity

    Returns:
        True if a hard session may go on the date
    """
    prev = add_days(date_str, -1)
    nxt = add_days(date_str, 1)
    if date_str in planned_hard_dates or prev in planned_hard_dates or nxt in planned_hard_dates:
        return False
    if prev in completed_hard_dates:
        return False
    if completed_very_hard_dates and add_days(date_str, -2) in completed_very_hard_dates:
        return False
    return True


def count_hard_in_window(
    end_date: str,
    completed_hard: list[str],
    planned_hard: list[str],
) -> int:
    """Hard activities + planned hard sessions in [end_date-6, end_date]."""
    start = add_days(end_date, -(WINDOW_DAYS - 1))
    return sum(1 for d in completed_hard if start <= d <= end_date) + sum(
        1 for d in planned_hard if start <= d <= end_date
    )


def hard_budget_allows(
    date_str: str,
    completed_hard: list[str],
    planned_hard: list[str],
    max_hard: int,
) -> bool:
    """
    Whether one more hard session on ``date_str`` keeps every rolling
    7-day window that contains the date within ``max_hard``.
    """
    with_new = planned_hard + [date_str]
    for offset in range(WINDOW_DAYS):
        end = add_days(date_str, offset)
        if count_hard_in_window(end, completed_hard, with_new) > max_hard:
            return False
    return True


def count_modality_in_window(
    date_str: str,
    activities: list[ActivityRecord],
    sessions: list[Session],
    modality: str,
) -> int:
    """Completed activities + planned sessions of a modality in [date-6, date]."""
    start = add_days(date_str, -(WINDOW_DAYS - 1))
    completed = sum(
        1
        for a in activities
        if start <= a.local_date <= date_str and activity_modality(a.activity_type) == modality
    )
    planned = sum(1 for s in sessions if start <= s.local_date <= date_str and s.modality == modality)
    return completed + planned


# =============================================================================
# FINAL SWEEPS
# =============================================================================


def _by_priority(sessions: list[Session]) -> list[Session]:
    return sorted(sessions, key=lambda s: -priority_of(s.kind))


def remove_back_to_back_hard(
    sessions: list[Session],
    completed_hard_dates: set[str] | None = None,
    completed_very_hard_dates: set[str] | None = None,
) -> list[Session]:
    """
    Drop hard sessions that share a date with, or follow, another hard day.

    Dates are walked in order; on a same-date conflict the higher priority
    session stays. Completed activities count as earlier hard days.
    """
    completed_hard_dates = completed_hard_dates or set()
    completed_very_hard_dates = completed_very_hard_dates or set()
    kept_hard: set[str] = set()
    removed: set[str] = set()

    for date_str in sorted({s.local_date for s in sessions}):
        hard_today = _by_priority([s for s in sessions if s.local_date == date_str and s.is_hard])
        if not hard_today:
            continue
        blocked = not can_place_hard(date_str, kept_hard, completed_hard_dates, completed_very_hard_dates)
        survivors = [] if blocked else hard_today[:1]
        for s in hard_today:
            if s not in survivors:
                removed.add(s.id)
        if survivors:
            kept_hard.add(date_str)

    if removed:
        logger.info(f"Guardrail removed back-to-back hard sessions: {sorted(removed)}")
    return [s for s in sessions if s.id not in removed]


def enforce_hard_budget(
    sessions: list[Session],
    completed_hard: list[str],
    max_hard: int,
) -> list[Session]:
    """Trim the lowest-priority, latest hard sessions until no 7-day window exceeds the budget."""
    kept = list(sessions)
    while True:
        planned_hard = [s.local_date for s in kept if s.is_hard]
        violating_end = next(
            (
                end
                for d in sorted(set(planned_hard))
                for end in (add_days(d, o) for o in range(WINDOW_DAYS))
                if count_hard_in_window(end, completed_hard, planned_hard) > max_hard
            ),
            None,
        )
        if violating_end is None:
            return kept
        start = add_days(violating_end, -(WINDOW_DAYS - 1))
        in_window = sorted(
            (s for s in kept if s.is_hard and start <= s.local_date <= violating_end),
            key=lambda s: s.local_date,
            reverse=True,
        )
        victim = min(in_window, key=lambda s: priority_of(s.kind))
        logger.info(f"Guardrail removed {victim.id}: hard budget {max_hard} exceeded")
        kept = [s for s in kept if s.id != victim.id]


def enforce_single_modality(sessions: list[Session]) -> list[Session]:
    """
    Keep one session on any date that mixes endurance and strength.

    The survivor is the highest priority kind: LR > Tempo > Intervals >
    Strength > Z2 > others.
    """
    removed: set[str] = set()
    for date_str in sorted({s.local_date for s in sessions}):
        day = [s for s in sessions if s.local_date == date_str]
        if len({s.modality for s in day}) <= 1:
            continue
        keep = _by_priority(day)[0]
        removed.update(s.id for s in day if s.id != keep.id)
    return [s for s in sessions if s.id not in removed]


def apply_guardrails(
    sessions: list[Session],
    completed_hard: list[str],
    completed_hard_dates: set[str],
    completed_very_hard_dates: set[str],
    max_hard: int,
    allow_two_a_days: bool = False,
) -> list[Session]:
    """Final sweep over a placed schedule: spacing, then budget, then modality isolation."""
    result = remove_back_to_back_hard(sessions, completed_hard_dates, completed_very_hard_dates)
    result = enforce_hard_budget(result, completed_hard, max_hard)
    if not allow_two_a_days:
        result = enforce_single_modality(result)
    return sorted(result, key=lambda s: s.local_date)


def polarized_ratio(sessions: list[Session]) -> dict:
    """
    Share of quality work (Tempo/Intervals) among endurance sessions.

    Strength is not counted. Above 25% the plan drifts away from an 80/20
    intensity distribution.
    """
    endurance = [s for s in sessions if s.modality == "endurance"]
    hard = sum(1 for s in endurance if s.kind in QUALITY_KINDS)
    total = len(endurance)
    ratio = hard / total if total else 0.0
    return {
        "scope": "endurance_only",
        "hard": round(ratio, 2),
        "target": 0.2,
        "ok": ratio <= POLARIZED_HARD_RATIO_MAX,
        "hard_count": hard,
        "easy_count": total - hard,
        "total_count": total,
    }
