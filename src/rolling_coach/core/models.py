"""
Data models for rolling-coach.

All core dataclasses: intake (goals, constraints, baseline), normalized
activity and score records, derived signals, session specs, planned
sessions and the persisted calendar container.

Dates are ISO ``YYYY-MM-DD`` strings throughout.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal

from .kinds import Hardness, Modality, SessionKind, is_hard, modality_of

GoalKind = Literal["endurance", "strength", "bodycomp", "sleep", "vo2max", "general"]
SessionStatus = Literal["planned", "completed", "missed", "skipped", "cancelled"]
PlanMode = Literal["hybrid", "endurance_only", "strength_only"]
PhaseName = Literal["base", "build", "peak", "taper", "post"]
PerceivedFitness = Literal["low", "moderate", "high", "advanced"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "missed", "skipped", "cancelled"})


# =============================================================================
# INTAKE
# =============================================================================


@dataclass
class Goal:
    """
    A user goal or milestone.

    Endurance goals with a race sub-kind carry a target ``date_local``.
    Milestones use the same shape with ``kind`` naming the event
    (e.g. "marathon").
    """

    id: str
    kind: str
    sub_kind: str | None = None
    date_local: str | None = None
    training_start_date: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_marathon(self) -> bool:
        return self.kind == "marathon" or self.sub_kind == "marathon"


@dataclass
class FixedAppointment:
    """Recurring weekly commitment (team training, class) that blocks a weekday."""

    id: str
    name: str
    day_of_week: str  # canonical key, "mon".."sun"
    season_start: str | None = None
    season_end: str | None = None

    def is_active_on(self, date_str: str) -> bool:
        """Active on a date when no complete season window exists, or inside it."""
        if self.season_start is None or self.season_end is None:
            return True
        return self.season_start <= date_str <= self.season_end


@dataclass
class Constraints:
    """Weekly availability and scheduling limits."""

    days_available: list[str]  # canonical day keys
    preferred_rest_days: list[str] = field(default_factory=list)
    max_minutes_per_day: int | None = None
    max_sessions_per_week: int | None = None
    fixed_appointments: list[FixedAppointment] = field(default_factory=list)
    allow_two_a_days: bool = False

    def __post_init__(self) -> None:
        """Validate constraints."""
        if not self.days_available:
            raise ValueError("days_available must contain at least one weekday")
        if self.max_minutes_per_day is not None and self.max_minutes_per_day <= 0:
            raise ValueError("max_minutes_per_day must be positive")
        if self.max_sessions_per_week is not None and self.max_sessions_per_week < 0:
            raise ValueError("max_sessions_per_week must be non-negative")


@dataclass
class Baseline:
    """Self-reported fitness anchors. Every field is optional."""

    perceived_fitness: str | None = None
    strength_frequency_per_week: int | None = None
    endurance_frequency_per_week: int | None = None
    longest_recent_run_minutes: float | None = None
    longest_strength_session_minutes: float | None = None
    z2_duration_minutes: float | None = None
    strength_split_preference: str | None = None
    max_hard_sessions_per_week: int | None = None


@dataclass
class Intake:
    """Goal/constraint/baseline document owned by the intake collaborator."""

    goals: list[Goal]
    constraints: Constraints
    baseline: Baseline = field(default_factory=Baseline)
    milestones: list[Goal] = field(default_factory=list)
    training_start_date: str | None = None
    time_zone: str | None = None


# =============================================================================
# OBSERVED DATA
# =============================================================================


@dataclass(frozen=True)
class ActivityRecord:
    """
    One completed workout, normalized at the ingestion boundary.

    ``activity_type`` and ``classification`` are lower-case.
    ``hr_zone_minutes`` maps zone number (1-5) to minutes spent there.
    """

    id: str
    activity_type: str
    local_date: str
    duration_minutes: float = 0.0
    effort_score: float | None = None
    hr_zone_minutes: dict[int, float] = field(default_factory=dict, hash=False)
    high_zone_minutes: float | None = None  # Z4+Z5, explicit or derived from zones
    classification: str = ""
    avg_heart_rate: float | None = None
    max_heart_rate: float | None = None
    distance_meters: float | None = None
    start_time: str | None = None

    def __post_init__(self) -> None:
        """Validate activity data."""
        if self.duration_minutes < 0:
            raise ValueError("duration_minutes must be non-negative")
        if self.effort_score is not None and self.effort_score < 0:
            raise ValueError("effort_score must be non-negative")
        if self.high_zone_minutes is not None and self.high_zone_minutes < 0:
            raise ValueError("high_zone_minutes must be non-negative")

    @property
    def has_vitals(self) -> bool:
        """True when any physiological or effort signal was recorded."""
        return (
            self.effort_score is not None
            or self.high_zone_minutes is not None
            or bool(self.classification.strip())
        )


@dataclass(frozen=True)
class ScoreRecord:
    """Daily readiness composite and load ratio reported by the sync collaborator."""

    local_date: str
    readiness_score: float | None = None
    readiness_label: str | None = None
    recovery_score: float | None = None
    sleep_score: float | None = None
    data_quality: str | None = None
    load_ratio: float | None = None
    load_method: str | None = None


@dataclass(frozen=True)
class StatusWindow:
    """Illness/travel window. Dates inside it force ``skipped``."""

    status: str
    since: str | None = None
    until: str | None = None
    note: str | None = None

    def covers(self, date_str: str) -> bool:
        """Whether ``date_str`` lies inside a complete window."""
        if self.since is None or self.until is None:
            return False
        return self.since <= date_str <= self.until


# =============================================================================
# DERIVED SIGNALS
# =============================================================================


@dataclass(frozen=True)
class Readiness:
    """Today's readiness composite (0-100)."""

    score: float
    label: str | None = None
    recovery: float | None = None
    sleep: float | None = None
    data_quality: str | None = None

    @property
    def usable(self) -> bool:
        return self.data_quality != "insufficient"


@dataclass
class Signals:
    """
    Training-load signals over the trailing window.

    Derived every run, never persisted.
    """

    hard_dates: set[str] = field(default_factory=set)
    hard_activity_dates: list[str] = field(default_factory=list)  # one entry per hard activity
    very_hard_dates: set[str] = field(default_factory=set)
    completed_dates: set[str] = field(default_factory=set)
    total_minutes: float = 0.0
    hard_count: int = 0
    completed_endurance: int = 0
    completed_strength: int = 0
    yesterday_hard: bool = False
    trained_today: bool = False
    acwr: float | None = None
    acwr_source: str = "computed"
    readiness: Readiness | None = None
    longest_recent_endurance_minutes: float | None = None


@dataclass(frozen=True)
class PhaseInfo:
    """Periodization position relative to a target race date."""

    phase: PhaseName
    weeks_to_race: int
    taper_week: int | None = None
    weeks_into_build: int | None = None
    build_weeks: int | None = None
    weeks_into_base: int | None = None
    base_weeks: int | None = None


@dataclass(frozen=True)
class Slot:
    """A date eligible to receive a new session this cycle."""

    local_date: str
    day_key: str


@dataclass(frozen=True)
class FixedEvent:
    """A fixed appointment expanded onto a date in the planning window."""

    local_date: str
    title: str
    hardness: Hardness
    kind: str = "FixedAppointment"
    source: str = "intake.fixed_appointments"


@dataclass
class WeeklyTargets:
    """Per-modality weekly session targets and deload state."""

    strength_per_week: int
    endurance_per_week: int
    deload: bool = False
    deload_reason: str | None = None
    acwr: float | None = None


# =============================================================================
# SESSIONS
# =============================================================================


@dataclass
class SessionTargets:
    """Prescription attached to a spec or session."""

    duration_minutes: int
    intensity: str
    sets_reps: str | None = None
    work_bouts: str | None = None
    recovery: str | None = None
    note: str | None = None


@dataclass
class SessionSpec:
    """An unplaced session template awaiting a slot."""

    kind: SessionKind
    title: str
    targets: SessionTargets
    rule_refs: list[str] = field(default_factory=list)
    hardness: Hardness | None = None

    def __post_init__(self) -> None:
        if self.hardness is None:
            self.hardness = "hard" if is_hard(self.kind) else "easy"

    @property
    def requires_recovery(self) -> bool:
        return self.hardness == "hard"


@dataclass
class CalendarRef:
    """Handle of the published calendar event (owned by the publisher)."""

    event_uid: str | None = None
    published_at: str | None = None

    @property
    def is_published(self) -> bool:
        return self.event_uid is not None or self.published_at is not None


@dataclass
class Session:
    """
    The scheduling unit persisted in the plan.

    ``status`` drives the lifecycle: planned -> completed | missed |
    skipped | cancelled. Terminal statuses never change again.
    """

    id: str
    program_id: str
    local_date: str
    title: str
    kind: SessionKind
    targets: SessionTargets
    hardness: Hardness = "easy"
    milestone_id: str | None = None
    week_index: int = 0
    status: SessionStatus = "planned"
    actual_activity_id: str | None = None
    rule_refs: list[str] = field(default_factory=list)
    readiness_gated: bool = False
    downgraded_from: SessionKind | None = None
    two_a_day: bool = False
    calendar_ref: CalendarRef = field(default_factory=CalendarRef)

    STATUSES: ClassVar[tuple[str, ...]] = ("planned", "completed", "missed", "skipped", "cancelled")

    def __post_init__(self) -> None:
        """Validate session data."""
        if self.status not in self.STATUSES:
            raise ValueError(f"Invalid session status: {self.status}")
        if self.targets.duration_minutes < 0:
            raise ValueError("duration_minutes must be non-negative")

    @property
    def modality(self) -> Modality:
        return modality_of(self.kind)

    @property
    def requires_recovery(self) -> bool:
        return self.hardness == "hard"

    @property
    def is_hard(self) -> bool:
        return is_hard(self.kind)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass
class AdaptationEvent:
    """Audit record of one status transition or plan adaptation."""

    at: str  # ISO timestamp
    reason: str
    session_id: str | None = None
    rule_refs: list[str] = field(default_factory=list)
    evidence_refs: list[str] = field(default_factory=list)
    actual_activity_id: str | None = None
    from_date: str | None = None
    to_date: str | None = None
    status: str | None = None


@dataclass
class Recommendation:
    """Human-facing advice emitted alongside the plan."""

    kind: str
    title: str
    text: str


# =============================================================================
# PLAN CONTAINERS
# =============================================================================


@dataclass
class PlanResult:
    """Output of one planning cycle."""

    sessions: list[Session]
    recommendations: list[Recommendation]
    blueprint: dict[str, Any]
    fixed_events: list[FixedEvent] = field(default_factory=list)


@dataclass
class Calendar:
    """
    Persisted plan container.

    ``sessions`` is rewritten each planning cycle; ``events`` is append-only.
    """

    time_zone: str
    generated_at: str
    goals: list[Goal] = field(default_factory=list)
    milestones: list[Goal] = field(default_factory=list)
    history: list[dict[str, Any]] = field(default_factory=list)
    sessions: list[Session] = field(default_factory=list)
    recommendations: list[Recommendation] = field(default_factory=list)
    blueprint: dict[str, Any] = field(default_factory=dict)
    events: list[AdaptationEvent] = field(default_factory=list)
    schema_version: int = 2


@dataclass(frozen=True)
class PlanningSnapshot:
    """
    Everything one invocation reads, loaded once at the boundary.

    Core functions treat it as read-only input.
    """

    today: str
    intake: Intake
    activities: tuple[ActivityRecord, ...] = ()
    scores: tuple[ScoreRecord, ...] = ()
    status: StatusWindow | None = None
    time_zone: str = "Europe/Berlin"
