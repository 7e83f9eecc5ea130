"""
Periodization phase model.

The preparation window before a target race is split, counting back from
race day, into:

    taper  - always the final 3 weeks
    peak   - the week before the taper
    build  - ~35% of the remaining weeks (at least 2)
    base   - everything earlier

so the same shape scales from an 8-week to a 32-week preparation.
Each phase yields a long-session duration target.
"""

import math

from .config import (
    BASE_END_PEAK_FRACTION,
    BUILD_SHARE,
    DELOAD_FACTOR,
    LONG_RUN_MIN_MINUTES,
    LONG_RUN_PEAK_FLOOR,
    LONG_RUN_PEAK_MULTIPLIER,
    LONG_RUN_START_DEFAULT,
    LONG_RUN_START_MIN,
    MIN_BUILD_WEEKS,
    NON_PHASED_LONG_RUN_DEFAULT,
    NON_PHASED_LONG_RUN_RANGE,
    PEAK_WEEKS,
    TAPER_LONG_RUN_FACTORS,
    TAPER_WEEKS,
)
from .dates import diff_days
from .models import PhaseInfo


def compute_phase(
    race_date: str | None,
    today: str,
    training_start_date: str | None = None,
) -> PhaseInfo | None:
    """
    Periodization phase for a race date.

    weeks_to_race = ceil(days_to_race / 7). With a training start date,
    weeks into base/build come from elapsed weeks since the start instead
    of being counted back from the race, so repeated runs within one week
    agree.

    Args:
        race_date: Target event date, or None
        today: Evaluation date
        training_start_date: Optional start of the preparation block

    Returns:
        PhaseInfo, or None without a race date
    """
    if not race_date:
        return None

    days_to_race = diff_days(race_date, today)
    if days_to_race < 0:
        return PhaseInfo(phase="post", weeks_to_race=0)

    weeks_to_race = math.ceil(days_to_race / 7)

    if weeks_to_race <= TAPER_WEEKS:
        return PhaseInfo(
            phase="taper",
            weeks_to_race=weeks_to_race,
            taper_week=TAPER_WEEKS - weeks_to_race + 1,
        )
    if weeks_to_race <= TAPER_WEEKS + PEAK_WEEKS:
        return PhaseInfo(phase="peak", weeks_to_race=weeks_to_race)

    remaining = weeks_to_race - TAPER_WEEKS - PEAK_WEEKS
    build_weeks = max(MIN_BUILD_WEEKS, round(remaining * BUILD_SHARE))
    base_weeks = remaining - build_weeks

    weeks_since_start: int | None = None
    if training_start_date:
        weeks_since_start = max(1, diff_days(today, training_start_date) // 7 + 1)

    if weeks_to_race <= TAPER_WEEKS + PEAK_WEEKS + build_weeks:
        if weeks_since_start is not None and weeks_since_start > base_weeks:
            weeks_into_build = min(weeks_since_start - base_weeks, build_weeks)
        else:
            weeks_into_build = (TAPER_WEEKS + PEAK_WEEKS + build_weeks) - weeks_to_race + 1
        return PhaseInfo(
            phase="build",
            weeks_to_race=weeks_to_race,
            weeks_into_build=weeks_into_build,
            build_weeks=build_weeks,
        )

    if weeks_since_start is not None:
        weeks_into_base = min(weeks_since_start, base_weeks)
    else:
        weeks_into_base = base_weeks - (weeks_to_race - TAPER_WEEKS - PEAK_WEEKS - build_weeks) + 1
    return PhaseInfo(
        phase="base",
        weeks_to_race=weeks_to_race,
        weeks_into_base=weeks_into_base,
        base_weeks=base_weeks,
    )


def _progress(week: int | None, total: int | None) -> float:
    """Linear progress through a block: 0.0 in its first week, 1.0 in its last."""
    if not total or total <= 1:
        return 1.0
    return ((week or 1) - 1) / (total - 1)


def long_run_minutes(
    longest_recent_run: float | None,
    max_minutes: int,
    phase: PhaseInfo | None,
    deload: bool,
) -> int:
    """
    Long-session duration for a periodized (marathon) preparation.

    Formula:
        start = max(30, longest recent run or 50)
        peak  = min(cap, max(90, round(2.2 * start)))
        base:  start -> 0.75 * peak  (linear over base weeks)
        build: 0.75 * peak -> peak   (linear over build weeks)
        peak:  peak
        taper: peak * (0.75, 0.60, 0.40)[taper_week - 1]

    A deload multiplies by 0.55, except in taper. Result is clamped to
    [20, cap].

    Args:
        longest_recent_run: Baseline longest run (minutes)
        max_minutes: Effective daily cap
        phase: Current phase, or None
        deload: Whether this is a deload week

    Returns:
        Duration in whole minutes
    """
    start = max(LONG_RUN_START_MIN, longest_recent_run or LONG_RUN_START_DEFAULT)
    peak = min(max_minutes, max(LONG_RUN_PEAK_FLOOR, round(start * LONG_RUN_PEAK_MULTIPLIER)))

    if phase is None or phase.phase == "post":
        scaled = round(start * (DELOAD_FACTOR if deload else 1.0))
        return max(LONG_RUN_MIN_MINUTES, min(max_minutes, scaled))

    base_end = round(peak * BASE_END_PEAK_FRACTION)
    if phase.phase == "base":
        p = _progress(phase.weeks_into_base, phase.base_weeks)
        duration = round(start + (base_end - start) * p)
    elif phase.phase == "build":
        p = _progress(phase.weeks_into_build, phase.build_weeks)
        duration = round(base_end + (peak - base_end) * p)
    elif phase.phase == "peak":
        duration = peak
    else:
        week = min(max(phase.taper_week or 1, 1), len(TAPER_LONG_RUN_FACTORS))
        duration = round(peak * TAPER_LONG_RUN_FACTORS[week - 1])

    if deload and phase.phase != "taper":
        duration = round(duration * DELOAD_FACTOR)
    return max(LONG_RUN_MIN_MINUTES, min(max_minutes, duration))


def long_run_anchor(longest_recent_run: float | None) -> float:
    """Baseline long-run anchor clamped to [30, 150] (default 70)."""
    low, high = NON_PHASED_LONG_RUN_RANGE
    return max(low, min(longest_recent_run or NON_PHASED_LONG_RUN_DEFAULT, high))


def default_long_run_minutes(longest_recent_run: float | None, max_minutes: int, deload: bool) -> int:
    """Long-session duration without periodization: the clamped baseline anchor."""
    anchor = long_run_anchor(longest_recent_run)
    return min(max_minutes, round(anchor * (DELOAD_FACTOR if deload else 1.0)))
