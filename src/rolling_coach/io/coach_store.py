"""
File-backed storage for the coach home directory.

Layout (under ``$COACH_HOME`` or ``~/.rolling-coach``):
    intake.json                         goals, constraints, baseline
    cache/workouts_*.jsonl              raw workout stream from the sync job
    cache/scores_*.jsonl                daily readiness / load-ratio scores
    status.json                         illness/travel window
    workout_calendar.json               plan + adaptation log (read-write)
    adaptation_log.jsonl                append-only mirror of adaptation events
    current/training_plan_week.json     7-day projection for notifiers
    published_events.json               {session_id: local_date} from the calendar job

Whole-file writes go through a temp file in the same directory and
``os.replace`` so readers never see a half-written document.
"""

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, TypeVar

from loguru import logger

from ..core.config import DEFAULT_TIME_ZONE
from ..core.models import (
    ActivityRecord,
    AdaptationEvent,
    Calendar,
    FixedEvent,
    Intake,
    PlanningSnapshot,
    ScoreRecord,
    StatusWindow,
)
from ..core.slots import window_end
from .intake import parse_intake
from .serializers import (
    ValidationError,
    calendar_to_dict,
    dict_to_calendar,
    dict_to_event,
    dict_to_status,
    event_to_json_line,
    fixed_event_to_dict,
    normalize_activity,
    normalize_score,
    resolve_time_zone,
    session_to_dict,
    status_to_dict,
)

T = TypeVar("T")


def _atomic_write_json(path: Path, data: Any) -> None:
    """Write JSON to ``path`` via a temp file and rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


class CoachStore:
    """
    Reads and writes every file the engine touches.

    All reads for one invocation are gathered by :meth:`snapshot`; the core
    never touches the filesystem.
    """

    def __init__(self, root: str | Path):
        """
        Initialize the store.

        Args:
            root: Coach home directory
        """
        self.root = Path(root)
        self.intake_path = self.root / "intake.json"
        self.cache_dir = self.root / "cache"
        self.status_path = self.root / "status.json"
        self.calendar_path = self.root / "workout_calendar.json"
        self.adaptation_log_path = self.root / "adaptation_log.jsonl"
        self.week_path = self.root / "current" / "training_plan_week.json"
        self.published_path = self.root / "published_events.json"

    def exists(self) -> bool:
        """Check if an intake document exists."""
        return self.intake_path.exists()

    def init(self) -> None:
        """Create the directory layout."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.week_path.parent.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def _read_json(self, path: Path) -> Any:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Malformed JSON in {path}: {e}") from e

    def load_intake_raw(self) -> dict[str, Any]:
        """
        Raw intake document.

        Raises:
            FileNotFoundError: If intake.json doesn't exist
            ValidationError: If it is not valid JSON
        """
        if not self.intake_path.exists():
            raise FileNotFoundError(f"Intake file not found: {self.intake_path}")
        return self._read_json(self.intake_path)

    def time_zone(self) -> str:
        """
        IANA zone named by the intake document, or the default zone.

        Only the raw document is read, so an intake that fails validation
        still yields its zone.

        Raises:
            ValidationError: If intake.json is not valid JSON
        """
        if not self.intake_path.exists():
            return DEFAULT_TIME_ZONE
        raw = self.load_intake_raw()
        if isinstance(raw, dict) and raw.get("timeZone"):
            return str(raw["timeZone"])
        return DEFAULT_TIME_ZONE

    def load_intake(self) -> Intake:
        """
        Validated intake.

        Raises:
            FileNotFoundError: If intake.json doesn't exist
            IntakeValidationError: If the document violates the schema
        """
        return parse_intake(self.load_intake_raw())

    # ------------------------------------------------------------------
    # Cache streams
    # ------------------------------------------------------------------

    def _load_jsonl(self, prefix: str, convert: Callable[[dict[str, Any]], T]) -> list[T]:
        """Records from every ``<prefix>*.jsonl`` in the cache; malformed lines are skipped."""
        records: list[T] = []
        if not self.cache_dir.is_dir():
            return records
        for path in sorted(self.cache_dir.glob(f"{prefix}*.jsonl")):
            with open(path, "r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        records.append(convert(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError, AttributeError) as e:
                        logger.warning(f"Skipping line {line_num} in {path.name}: {e}")
        return records

    def load_activities(self, time_zone: str | None = None) -> list[ActivityRecord]:
        """
        Normalized workouts, de-duplicated by ID (later files win).

        Returns:
            Activities sorted by local date
        """
        tz = time_zone or DEFAULT_TIME_ZONE
        by_id: dict[str, ActivityRecord] = {}
        for a in self._load_jsonl("workouts_", lambda raw: normalize_activity(raw, tz)):
            by_id[a.id] = a
        return sorted(by_id.values(), key=lambda a: (a.local_date, a.start_time or "", a.id))

    def load_scores(self) -> list[ScoreRecord]:
        """Daily score records sorted by date (later records for a date win)."""
        by_date: dict[str, ScoreRecord] = {}
        for s in self._load_jsonl("scores_", normalize_score):
            by_date[s.local_date] = s
        return [by_date[d] for d in sorted(by_date)]

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def load_status(self) -> StatusWindow | None:
        if not self.status_path.exists():
            return None
        return dict_to_status(self._read_json(self.status_path))

    def save_status(self, status: StatusWindow | None) -> None:
        data = status_to_dict(status)
        data["updatedAt"] = datetime.now().isoformat(timespec="seconds")
        _atomic_write_json(self.status_path, data)

    # ------------------------------------------------------------------
    # Calendar
    # ------------------------------------------------------------------

    def load_calendar(self) -> Calendar | None:
        """
        The persisted calendar, or None before the first plan.

        Raises:
            ValidationError: If the file is malformed
        """
        if not self.calendar_path.exists():
            return None
        data = self._read_json(self.calendar_path)
        if not isinstance(data, dict):
            raise ValidationError(f"Malformed calendar in {self.calendar_path}")
        return dict_to_calendar(data)

    def save_calendar(self, calendar: Calendar) -> None:
        _atomic_write_json(self.calendar_path, calendar_to_dict(calendar))

    def append_events(self, events: list[AdaptationEvent]) -> None:
        """Append events to the adaptation log."""
        if not events:
            return
        self.adaptation_log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.adaptation_log_path, "a", encoding="utf-8") as f:
            for event in events:
                f.write(event_to_json_line(event) + "\n")

    def load_events(self) -> list[AdaptationEvent]:
        """All events from the adaptation log; malformed lines are skipped."""
        events: list[AdaptationEvent] = []
        if not self.adaptation_log_path.exists():
            return events
        with open(self.adaptation_log_path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(dict_to_event(json.loads(line)))
                except (json.JSONDecodeError, ValidationError) as e:
                    logger.warning(f"Skipping adaptation log line {line_num}: {e}")
        return events

    def load_published_events(self) -> dict[str, str] | None:
        """
        Published-event map written by the calendar collaborator.

        Returns:
            {session_id: local_date}, or None when the file is absent
        """
        if not self.published_path.exists():
            return None
        data = self._read_json(self.published_path)
        if not isinstance(data, dict):
            raise ValidationError(f"Malformed published events in {self.published_path}")
        return {str(k): str(v) for k, v in data.items()}

    # ------------------------------------------------------------------
    # Weekly projection
    # ------------------------------------------------------------------

    def save_week_projection(
        self,
        calendar: Calendar,
        today: str,
        fixed_events: list[FixedEvent] | None = None,
        status: StatusWindow | None = None,
    ) -> dict[str, Any]:
        """
        Write the [today, today+6] view of the calendar.

        Returns:
            The projection document
        """
        end = window_end(today)
        doc = {
            "updatedAt": datetime.now(resolve_time_zone(calendar.time_zone)).isoformat(timespec="seconds"),
            "weekStart": today,
            "weekEnd": end,
            "sessions": [session_to_dict(s) for s in calendar.sessions if today <= s.local_date <= end],
            "fixedEvents": [fixed_event_to_dict(e) for e in fixed_events or []],
            "status": status_to_dict(status),
            "blueprint": calendar.blueprint,
        }
        _atomic_write_json(self.week_path, doc)
        return doc

    def load_week_projection(self) -> dict[str, Any] | None:
        if not self.week_path.exists():
            return None
        return self._read_json(self.week_path)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self, today: str) -> PlanningSnapshot:
        """
        Read everything one planning run needs.

        Activities dated after ``today`` are left out; older ones are kept
        and the core filters by window itself.
        """
        intake = self.load_intake()
        tz = intake.time_zone or DEFAULT_TIME_ZONE
        activities = [a for a in self.load_activities(tz) if a.local_date <= today]
        return PlanningSnapshot(
            today=today,
            intake=intake,
            activities=tuple(activities),
            scores=tuple(self.load_scores()),
            status=self.load_status(),
            time_zone=tz,
        )


def get_default_root() -> Path:
    """Coach home: ``$COACH_HOME`` or ``~/.rolling-coach``."""
    env = os.environ.get("COACH_HOME")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".rolling-coach"


def get_default_store() -> CoachStore:
    return CoachStore(get_default_root())
