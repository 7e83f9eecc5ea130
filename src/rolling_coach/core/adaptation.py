"""
Load adaptation: deload triggers, weekly targets and the hard-session budget.

Deload is reactive (ACWR, or a blunt volume rule when ACWR is unavailable)
or proactive (every few weeks inside a periodized block). A deload keeps
session frequency roughly stable and cuts volume.
"""

import math

from loguru import logger

from .config import (
    ACWR_DELOAD_THRESHOLD,
    ACWR_DETRAINING,
    ACWR_HARD_CAP_DOWN,
    DEFAULT_ENDURANCE_PER_WEEK,
    DEFAULT_FITNESS,
    DEFAULT_STRENGTH_PER_WEEK,
    DELOAD_EVERY_BASE_WEEKS,
    DELOAD_EVERY_BUILD_WEEKS,
    DELOAD_FACTOR,
    DELOAD_HARD_COUNT,
    DELOAD_HARD_VOLUME_MINUTES,
    DELOAD_VOLUME_MINUTES,
    FITNESS_HARD_ANCHORS,
    MAX_HARD_MAX,
    MAX_HARD_MIN,
    MIN_ENDURANCE_PER_WEEK,
    MIN_STRENGTH_PER_WEEK,
    TAPER_FREQUENCY_FACTORS,
    VERY_HARD_DAYS_CAP_DOWN,
)
from .dates import add_days
from .models import ActivityRecord, Baseline, PhaseInfo, PlanMode, Signals, WeeklyTargets
from .signals import activity_modality


def assess_deload(signals: Signals, phase: PhaseInfo | None = None) -> str | None:
    """
    Decide whether this week is a deload and why.

    Triggers, first match wins:
        "acwr":      ACWR > 1.3
        "volume":    ACWR unknown and (7-day minutes > 600, or >= 4 hard
                     sessions with > 480 minutes)
        "scheduled": every 4th base week or every 3rd build week

    Args:
        signals: Recent training signals
        phase: Current periodization phase, if any

    Returns:
        Deload reason, or None when no deload applies
    """
    if signals.acwr is not None and signals.acwr > ACWR_DELOAD_THRESHOLD:
        return "acwr"

    if signals.acwr is None and (
        signals.total_minutes > DELOAD_VOLUME_MINUTES
        or (
            signals.hard_count >= DELOAD_HARD_COUNT
            and signals.total_minutes > DELOAD_HARD_VOLUME_MINUTES
        )
    ):
        return "volume"

    if phase is not None:
        if phase.phase == "base" and (phase.weeks_into_base or 0) % DELOAD_EVERY_BASE_WEEKS == 0:
            return "scheduled"
        if phase.phase == "build" and (phase.weeks_into_build or 0) % DELOAD_EVERY_BUILD_WEEKS == 0:
            return "scheduled"

    return None


def _history_frequency(activities: list[ActivityRecord], today: str, modality: str) -> int | None:
    """Average weekly count of a modality over the last 28 days (None without history)."""
    start = add_days(today, -27)
    window = [a for a in activities if start <= a.local_date <= today]
    if not window:
        return None
    count = sum(1 for a in window if activity_modality(a.activity_type) == modality)
    return max(1, math.ceil(count / 4))


def estimate_targets(
    mode: PlanMode,
    baseline: Baseline,
    signals: Signals,
    phase: PhaseInfo | None = None,
    activities: list[ActivityRecord] | None = None,
    today: str | None = None,
) -> WeeklyTargets:
    """
    Weekly session targets per modality.

    Base frequency comes from the baseline, else from the 28-day history,
    else from the defaults (2 strength, 3 endurance). A deload scales both
    by the deload factor with floors of 1 strength / 2 endurance. A
    modality without a matching goal gets 0.

    Args:
        mode: Planning mode
        baseline: Intake baseline
        signals: Recent training signals
        phase: Current periodization phase, if any
        activities: Activity history used when the baseline is silent
        today: Evaluation date for the history fallback

    Returns:
        WeeklyTargets
    """
    activities = activities or []

    base_strength = baseline.strength_frequency_per_week
    if base_strength is None and today is not None:
        base_strength = _history_frequency(activities, today, "strength")
    if base_strength is None:
        base_strength = DEFAULT_STRENGTH_PER_WEEK

    base_endurance = baseline.endurance_frequency_per_week
    if base_endurance is None and today is not None:
        base_endurance = _history_frequency(activities, today, "endurance")
    if base_endurance is None:
        base_endurance = DEFAULT_ENDURANCE_PER_WEEK

    reason = assess_deload(signals, phase)
    factor = DELOAD_FACTOR if reason else 1.0
    if reason:
        logger.info(f"Deload week ({reason}), ACWR {signals.acwr}")

    strength = 0
    endurance = 0
    if mode in ("strength_only", "hybrid"):
        strength = max(MIN_STRENGTH_PER_WEEK, round(base_strength * factor))
    if mode in ("endurance_only", "hybrid"):
        endurance = max(MIN_ENDURANCE_PER_WEEK, round(base_endurance * factor))

    return WeeklyTargets(
        strength_per_week=strength,
        endurance_per_week=endurance,
        deload=reason is not None,
        deload_reason=reason,
        acwr=signals.acwr,
    )


def taper_endurance_target(endurance_per_week: int, phase: PhaseInfo | None) -> int:
    """Endurance frequency reduced by taper week (1.0 / 0.7 / 0.4, at least 1)."""
    if phase is None or phase.phase != "taper" or endurance_per_week == 0:
        return endurance_per_week
    week = min(max(phase.taper_week or 1, 1), len(TAPER_FREQUENCY_FACTORS))
    return max(1, round(endurance_per_week * TAPER_FREQUENCY_FACTORS[week - 1]))


def derive_max_hard(baseline: Baseline, signals: Signals | None = None) -> int:
    """
    Maximum hard sessions per rolling 7-day window.

    An explicit baseline override wins outright. Otherwise the fitness
    anchor (low 2, moderate 3, high 4, advanced 5) is adjusted:
        +1 if ACWR < 0.8
        -1 if ACWR > 1.25
        -1 if >= 2 very-hard days in the last 7
    and clamped to [1, 6].

    Readiness is not used here; it only gates the nearest session.
    """
    if baseline.max_hard_sessions_per_week is not None:
        return baseline.max_hard_sessions_per_week

    fitness = baseline.perceived_fitness or DEFAULT_FITNESS
    cap = FITNESS_HARD_ANCHORS.get(fitness, FITNESS_HARD_ANCHORS[DEFAULT_FITNESS])
    if signals is None:
        return cap

    if signals.acwr is not None:
        if signals.acwr < ACWR_DETRAINING:
            cap += 1
        if signals.acwr > ACWR_HARD_CAP_DOWN:
            cap -= 1
    if len(signals.very_hard_dates) >= VERY_HARD_DAYS_CAP_DOWN:
        cap -= 1

    return max(MAX_HARD_MIN, min(MAX_HARD_MAX, cap))
