"""
Session spec builder.

Produces the ordered list of endurance templates for the cycle and the
strength prescription, parameterized by phase, deload state and baseline.
Order matters: the scheduler places specs first to last and drops the
ones that find no legal slot.
"""

import re

from .config import (
    DEFAULT_FITNESS,
    DEFAULT_STRENGTH_SPLIT,
    INTERVAL_MINUTES,
    MARATHON_PACE_BUILD_MINUTES,
    MARATHON_PACE_PEAK_MINUTES,
    SHAKEOUT_MINUTES,
    STRENGTH_ANCHOR_DEFAULT,
    STRENGTH_ANCHOR_RANGE,
    STRENGTH_CAP_SHARE,
    STRENGTH_DELOAD_FACTOR,
    STRENGTH_SPLITS,
    STRENGTH_TAPER_FACTOR,
    TAPER_TEMPO_MINUTES,
    TEMPO_GATE,
    TEMPO_GATE_MIN_ACWR,
    TEMPO_MINUTES,
    Z2_DELOAD_FACTOR,
    Z2_LONG_RUN_SHARE,
    Z2_MAX_MINUTES,
    Z2_MIN_MINUTES,
    Z2_TAPER_FACTOR,
)
from .kinds import SessionKind
from .models import Baseline, Goal, PhaseInfo, SessionSpec, SessionTargets
from .phase import default_long_run_minutes, long_run_anchor, long_run_minutes

_LONG_ENDURANCE_SUBKINDS = re.compile(r"triathlon|cycling")

STRIDES_NOTE = "Optional: 4-6 x 20s strides at the end (relaxed, not a sprint)"


def tempo_allowed_in_base(baseline: Baseline, phase: PhaseInfo, acwr: float | None) -> bool:
    """
    Readiness-to-progress gate for Tempo during base.

    ACWR must be >= 0.8 (unknown counts as 1.0). High/advanced fitness
    needs 1+ base weeks and a 45+ min longest run; moderate needs 3+ weeks
    and 60+ min; low fitness gets no Tempo in base.
    """
    if (acwr if acwr is not None else 1.0) < TEMPO_GATE_MIN_ACWR:
        return False
    gate = TEMPO_GATE.get(baseline.perceived_fitness or DEFAULT_FITNESS)
    if gate is None:
        return False
    min_weeks, min_longest = gate
    longest = baseline.longest_recent_run_minutes or 0
    return (phase.weeks_into_base or 0) >= min_weeks and longest >= min_longest


def z2_minutes(
    baseline: Baseline,
    long_run: int,
    max_minutes: int,
    endurance_per_week: int,
    deload: bool,
    taper: bool,
) -> int:
    """
    Easy-session duration.

    Baseline override, else clamp(round(1.3 * LR anchor / z2_count), 40, 80)
    with z2_count = max(1, endurance_per_week - 2). Scaled by 0.6 in taper
    or 0.75 on deload, capped at the long run, floored at min(40, long run).
    """
    z2_count = max(1, (endurance_per_week or 2) - 2)
    if baseline.z2_duration_minutes and baseline.z2_duration_minutes > 0:
        base = baseline.z2_duration_minutes
    else:
        anchor = long_run_anchor(baseline.longest_recent_run_minutes)
        base = max(Z2_MIN_MINUTES, min(round(anchor * Z2_LONG_RUN_SHARE / z2_count), Z2_MAX_MINUTES))

    factor = 1.0
    if taper:
        factor = Z2_TAPER_FACTOR
    elif deload:
        factor = Z2_DELOAD_FACTOR

    duration = min(max_minutes, round(base * factor))
    duration = min(duration, long_run)
    return max(duration, min(Z2_MIN_MINUTES, long_run))


def _z2(duration: int, rule: str, title: str = "Zone 2", note: str | None = None) -> SessionSpec:
    return SessionSpec(
        kind=SessionKind.Z2,
        title=title,
        targets=SessionTargets(duration_minutes=duration, intensity="Z2", note=note),
        rule_refs=[rule],
    )


def _intervals() -> SessionSpec:
    return SessionSpec(
        kind=SessionKind.INTERVALS,
        title="Intervals (5K pace)",
        targets=SessionTargets(
            duration_minutes=INTERVAL_MINUTES,
            intensity="VO2max",
            work_bouts="6x1min",
            recovery="1min jog",
        ),
        rule_refs=["RULE_HIIT_FREQUENCY"],
    )


def _tempo(duration: int, rule: str, title: str = "Tempo", intensity: str = "threshold",
           note: str | None = None) -> SessionSpec:
    return SessionSpec(
        kind=SessionKind.TEMPO,
        title=title,
        targets=SessionTargets(duration_minutes=duration, intensity=intensity, note=note),
        rule_refs=[rule],
    )


def build_endurance_specs(
    milestone: Goal | None,
    week_seed: int,
    deload: bool,
    baseline: Baseline,
    max_minutes: int,
    endurance_per_week: int,
    phase: PhaseInfo | None = None,
    acwr: float | None = None,
) -> list[SessionSpec]:
    """
    Ordered endurance specs for the cycle.

    Marathon preparations follow the phase mix:
        base:   LR, Z2, Tempo (gated), Z2
        build:  LR, Z2, Intervals (odd week) | Marathon Pace (even week), Z2
        peak:   LR, Marathon Pace, Z2, Intervals
        taper:  LR, short Tempo, Z2 (weeks 1-2) | LR, Z2 shakeout (week 3)
    Everything else uses LR, Z2, Intervals | Tempo by week parity, Z2.

    Args:
        milestone: Endurance goal/milestone driving the plan
        week_seed: Stable week number; its parity alternates quality work
        deload: Whether this is a deload week
        baseline: Intake baseline (already carrying the effective long run)
        max_minutes: Effective daily cap
        endurance_per_week: Untapered endurance target
        phase: Current phase, or None
        acwr: Current ACWR (for the base-phase Tempo gate)

    Returns:
        Specs in placement order
    """
    odd_week = week_seed % 2 == 1
    is_marathon = milestone is not None and milestone.is_marathon
    phase_name = phase.phase if (phase is not None and is_marathon) else None

    if is_marathon and phase is not None:
        lr = long_run_minutes(baseline.longest_recent_run_minutes, max_minutes, phase, deload)
    else:
        lr = default_long_run_minutes(baseline.longest_recent_run_minutes, max_minutes, deload)

    specs = [
        SessionSpec(
            kind=SessionKind.LR,
            title="Long Run",
            targets=SessionTargets(duration_minutes=lr, intensity="easy"),
            rule_refs=["RULE_KEY_WORKOUT_PRIORITY"],
        )
    ]

    z2 = z2_minutes(
        baseline, lr, max_minutes, endurance_per_week, deload, taper=phase_name == "taper"
    )

    if phase_name == "base":
        note = STRIDES_NOTE if z2 >= Z2_MIN_MINUTES else None
        specs.append(_z2(z2, "RULE_MARATHON_PHASE_BASE", note=note))
        if tempo_allowed_in_base(baseline, phase, acwr):  # type: ignore[arg-type]
            specs.append(_tempo(TEMPO_MINUTES, "RULE_MARATHON_PHASE_BASE"))
        specs.append(_z2(z2, "RULE_MARATHON_PHASE_BASE", note=note))
    elif phase_name == "build":
        specs.append(_z2(z2, "RULE_MARATHON_PHASE_BUILD"))
        if odd_week:
            specs.append(_intervals())
        else:
            specs.append(
                _tempo(MARATHON_PACE_BUILD_MINUTES, "RULE_MARATHON_PHASE_BUILD",
                       title="Marathon Pace", intensity="marathon_pace",
                       note="Comfortably hard, target race pace")
            )
        specs.append(_z2(z2, "RULE_MARATHON_PHASE_BUILD"))
    elif phase_name == "peak":
        specs.append(
            _tempo(MARATHON_PACE_PEAK_MINUTES, "RULE_MARATHON_PHASE_PEAK",
                   title="Marathon Pace", intensity="marathon_pace",
                   note="Race simulation effort")
        )
        specs.append(_z2(z2, "RULE_MARATHON_PHASE_PEAK"))
        specs.append(_intervals())
    elif phase_name == "taper":
        if (phase.taper_week or 1) <= 2:  # type: ignore[union-attr]
            specs.append(
                _tempo(min(TAPER_TEMPO_MINUTES, max_minutes), "RULE_TAPER_QUALITY",
                       title="Tempo (short)",
                       note="Short and sharp, keeps neuromuscular sharpness")
            )
            specs.append(_z2(z2, "RULE_MARATHON_PHASE_BASE"))
        else:
            specs.append(
                _z2(min(SHAKEOUT_MINUTES, max_minutes), "RULE_TAPER_RACE_WEEK",
                    title="Zone 2 (race week)", note="Easy shakeout, legs fresh for race")
            )
    else:
        specs.append(_z2(z2, "RULE_MARATHON_PHASE_BASE"))
        if odd_week:
            specs.append(_intervals())
        else:
            specs.append(_tempo(TEMPO_MINUTES, "RULE_MARATHON_PHASE_BUILD"))
        specs.append(_z2(z2, "RULE_MARATHON_PHASE_BASE"))

    if milestone is not None and milestone.sub_kind and _LONG_ENDURANCE_SUBKINDS.search(milestone.sub_kind):
        specs[0].title = "Long Endurance"

    return specs


# =============================================================================
# STRENGTH
# =============================================================================


def split_titles(split: str | None) -> tuple[str, ...]:
    """Title rotation for a strength split preference."""
    return STRENGTH_SPLITS.get(split or DEFAULT_STRENGTH_SPLIT, STRENGTH_SPLITS[DEFAULT_STRENGTH_SPLIT])


def strength_targets(
    baseline: Baseline,
    max_minutes: int,
    phase: PhaseInfo | None,
    deload: bool,
) -> SessionTargets:
    """
    Strength prescription for the cycle.

    Volume is reduced rather than sessions cancelled:
        deload: 2x12-15 light, 67% duration
        taper:  2x8-10 light, 60% duration (capped at 70% of daily cap)
        peak:   3x3-5 hard (capped at 70% of daily cap)
        build:  4x5-6 hard
        other:  3x10-12 moderate
    """
    low, high = STRENGTH_ANCHOR_RANGE
    anchor = max(low, min(baseline.longest_strength_session_minutes or STRENGTH_ANCHOR_DEFAULT, high))
    phase_name = phase.phase if phase is not None else None
    cap = round(max_minutes * STRENGTH_CAP_SHARE)

    if deload:
        return SessionTargets(
            duration_minutes=min(round(anchor * STRENGTH_DELOAD_FACTOR), max_minutes),
            intensity="light",
            sets_reps="2x12-15",
        )
    if phase_name == "taper":
        return SessionTargets(
            duration_minutes=min(round(anchor * STRENGTH_TAPER_FACTOR), cap),
            intensity="light",
            sets_reps="2x8-10",
        )
    if phase_name == "peak":
        return SessionTargets(duration_minutes=min(round(anchor), cap), intensity="hard", sets_reps="3x3-5")
    if phase_name == "build":
        return SessionTargets(duration_minutes=min(round(anchor), max_minutes), intensity="hard", sets_reps="4x5-6")
    return SessionTargets(duration_minutes=min(round(anchor), max_minutes), intensity="moderate", sets_reps="3x10-12")


def build_strength_spec(
    baseline: Baseline,
    max_minutes: int,
    phase: PhaseInfo | None,
    deload: bool,
) -> SessionSpec:
    """Single strength template; titles are assigned by calendar order after placement."""
    return SessionSpec(
        kind=SessionKind.STRENGTH,
        title=split_titles(baseline.strength_split_preference)[0],
        targets=strength_targets(baseline, max_minutes, phase, deload),
        rule_refs=["RULE_STRENGTH_PROGRESSION", "RULE_NO_BACK_TO_BACK_HARD"],
    )
