"""
Configuration constants for the rolling training planner.

All adjustable parameters are centralized here for easy tuning.
Thresholds for hard-day detection, load ratios, periodization and
readiness gating live side by side so the engine modules stay free of
magic numbers.
"""

from typing import Final

# =============================================================================
# PLANNING WINDOW
# =============================================================================

WINDOW_DAYS: Final[int] = 7  # Rolling planning horizon (today..today+6)
RECENT_DAYS: Final[int] = 7  # Trailing window for hard-day / volume signals
CHRONIC_DAYS: Final[int] = 28  # Trailing window for chronic load
LONGEST_RUN_LOOKBACK_DAYS: Final[int] = 14  # Window for effective long-run baseline
DEFAULT_TIME_ZONE: Final[str] = "Europe/Berlin"
DEFAULT_PROGRAM_ID: Final[str] = "endurance_1"
STRENGTH_PROGRAM_ID: Final[str] = "strength_1"
SCHEMA_VERSION: Final[int] = 2

# =============================================================================
# HARD-DAY CLASSIFICATION
# =============================================================================

HARD_EFFORT_MIN: Final[float] = 7.0  # Effort score (1-10) that alone marks a day hard
VERY_HARD_EFFORT_MIN: Final[float] = 8.0
LONG_SESSION_MINUTES: Final[float] = 90.0  # Above this, high-zone ratio rule applies
LONG_SESSION_HIGH_ZONE_RATIO: Final[float] = 0.15
LONG_SESSION_HIGH_ZONE_MINUTES: Final[float] = 20.0
LONG_SESSION_EFFORT_MIN: Final[float] = 6.0
HIGH_ZONE_MINUTES_HARD: Final[float] = 8.0  # Absolute Z4+Z5 minutes for shorter sessions
HIGH_ZONE_MINUTES_MODERATE: Final[float] = 5.0
HIGH_ZONE_MODERATE_MIN_DURATION: Final[float] = 30.0
VERY_HARD_HIGH_ZONE_MINUTES: Final[float] = 20.0
VERY_HARD_DURATION_MINUTES: Final[float] = 80.0
TYPE_FALLBACK_ENDURANCE_MINUTES: Final[float] = 50.0  # Long run/ride without vitals

# =============================================================================
# LOAD MODEL & ACWR
# =============================================================================

CLASSIFICATION_LOAD_MULTIPLIERS: Final[dict[str, float]] = {
    "recovery": 0.5,
    "zone1": 0.7,
    "zone2": 1.0,
    "mixed": 1.3,
    "zone3": 1.5,
    "tempo": 2.0,
    "zone4": 2.0,
    "intervals": 2.5,
    "zone5": 2.5,
}

RECOVERY_EFFORT_INCLUDE_MIN: Final[float] = 5.0  # Yoga/mobility still counts above this
RECOVERY_Z3_PLUS_INCLUDE_MINUTES: Final[float] = 5.0
RECOVERY_HR_FRACTION_INCLUDE: Final[float] = 0.7

ACWR_DELOAD_THRESHOLD: Final[float] = 1.3
ACWR_HIGH: Final[float] = 2.0
ACWR_ELEVATED: Final[float] = 1.5
ACWR_DETRAINING: Final[float] = 0.8
ACWR_HARD_CAP_DOWN: Final[float] = 1.25  # Above this the weekly hard budget shrinks

# =============================================================================
# DELOAD & WEEKLY TARGETS
# =============================================================================

DELOAD_FACTOR: Final[float] = 0.55  # ~45% volume reduction, frequency preserved
DELOAD_VOLUME_MINUTES: Final[float] = 600.0  # 7-day minutes when ACWR unavailable
DELOAD_HARD_COUNT: Final[int] = 4
DELOAD_HARD_VOLUME_MINUTES: Final[float] = 480.0
DELOAD_EVERY_BASE_WEEKS: Final[int] = 4
DELOAD_EVERY_BUILD_WEEKS: Final[int] = 3

DEFAULT_STRENGTH_PER_WEEK: Final[int] = 2
DEFAULT_ENDURANCE_PER_WEEK: Final[int] = 3
MIN_STRENGTH_PER_WEEK: Final[int] = 1
MIN_ENDURANCE_PER_WEEK: Final[int] = 2
TAPER_FREQUENCY_FACTORS: Final[tuple[float, ...]] = (1.0, 0.7, 0.4)

FITNESS_HARD_ANCHORS: Final[dict[str, int]] = {
    "low": 2,
    "moderate": 3,
    "high": 4,
    "advanced": 5,
}
DEFAULT_FITNESS: Final[str] = "moderate"
MAX_HARD_MIN: Final[int] = 1
MAX_HARD_MAX: Final[int] = 6
VERY_HARD_DAYS_CAP_DOWN: Final[int] = 2

POLARIZED_HARD_RATIO_MAX: Final[float] = 0.25

# =============================================================================
# PERIODIZATION
# =============================================================================

TAPER_WEEKS: Final[int] = 3
PEAK_WEEKS: Final[int] = 1
BUILD_SHARE: Final[float] = 0.35
MIN_BUILD_WEEKS: Final[int] = 2
TAPER_LONG_RUN_FACTORS: Final[tuple[float, ...]] = (0.75, 0.60, 0.40)
BASE_END_PEAK_FRACTION: Final[float] = 0.75

LONG_RUN_START_DEFAULT: Final[int] = 50
LONG_RUN_START_MIN: Final[int] = 30
LONG_RUN_PEAK_FLOOR: Final[int] = 90
LONG_RUN_PEAK_MULTIPLIER: Final[float] = 2.2
LONG_RUN_MIN_MINUTES: Final[int] = 20
NON_PHASED_LONG_RUN_DEFAULT: Final[int] = 70
NON_PHASED_LONG_RUN_RANGE: Final[tuple[int, int]] = (30, 150)

DEFAULT_MAX_MINUTES_PER_DAY: Final[int] = 120
MARATHON_MIN_DAILY_CAP: Final[int] = 150  # Cap raised during base/build/peak

# =============================================================================
# SESSION SPECS
# =============================================================================

Z2_MIN_MINUTES: Final[int] = 40
Z2_MAX_MINUTES: Final[int] = 80
Z2_LONG_RUN_SHARE: Final[float] = 1.3
Z2_TAPER_FACTOR: Final[float] = 0.6
Z2_DELOAD_FACTOR: Final[float] = 0.75

TEMPO_MINUTES: Final[int] = 30
INTERVAL_MINUTES: Final[int] = 35
MARATHON_PACE_BUILD_MINUTES: Final[int] = 40
MARATHON_PACE_PEAK_MINUTES: Final[int] = 45
TAPER_TEMPO_MINUTES: Final[int] = 25
SHAKEOUT_MINUTES: Final[int] = 30

TEMPO_GATE_MIN_ACWR: Final[float] = 0.8
TEMPO_GATE: Final[dict[str, tuple[int, int]]] = {
    # fitness tier -> (min base weeks, min longest run minutes)
    "high": (1, 45),
    "advanced": (1, 45),
    "moderate": (3, 60),
}

STRENGTH_ANCHOR_DEFAULT: Final[int] = 60
STRENGTH_ANCHOR_RANGE: Final[tuple[int, int]] = (20, 90)
STRENGTH_DELOAD_FACTOR: Final[float] = 0.67
STRENGTH_TAPER_FACTOR: Final[float] = 0.6
STRENGTH_CAP_SHARE: Final[float] = 0.7  # Of the daily cap in taper/peak

STRENGTH_SPLITS: Final[dict[str, tuple[str, ...]]] = {
    "full_body": ("Full Body A", "Full Body B"),
    "upper_lower": ("Upper", "Lower"),
    "push_pull_legs": ("Push", "Pull", "Legs"),
    "bro_split": ("Chest/Triceps", "Back/Biceps", "Legs", "Shoulders"),
}
DEFAULT_STRENGTH_SPLIT: Final[str] = "full_body"

# =============================================================================
# READINESS GATE
# =============================================================================

READINESS_GATE_MAX: Final[float] = 65.0  # At or below: quality work downgraded
READINESS_LOW: Final[float] = 50.0  # Below: long run and strength downgraded too
READINESS_GATE_HORIZON_DAYS: Final[int] = 1

# =============================================================================
# RECONCILER
# =============================================================================

MATCH_DURATION_TOLERANCE: Final[float] = 0.30  # +/-30% of planned duration
DISRUPTION_STATUSES: Final[tuple[str, ...]] = ("illness", "travel")
