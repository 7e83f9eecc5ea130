"""
Intake document validation.

The intake collaborator owns ``intake.json``; this module checks it before
planning and reports every violation at once.
"""

from typing import Any

from ..core.config import MAX_HARD_MAX, MAX_HARD_MIN, STRENGTH_SPLITS
from ..core.dates import normalize_day_key
from ..core.models import Intake
from .serializers import ValidationError, dict_to_intake, resolve_time_zone, validate_date

VALID_GOAL_KINDS = ("endurance", "strength", "bodycomp", "sleep", "vo2max", "general")
VALID_ENDURANCE_SUBKINDS = (
    "marathon",
    "half",
    "10k",
    "5k",
    "cycling",
    "triathlon_sprint",
    "triathlon_olympic",
    "triathlon_70.3",
    "triathlon_ironman",
)
VALID_BODYCOMP_DIRECTIONS = ("lose", "gain")
VALID_FITNESS = ("low", "moderate", "high", "advanced")


class IntakeValidationError(ValidationError):
    """Raised when an intake document fails validation; carries every message."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Intake validation failed: " + "; ".join(errors))


def _is_date(value: Any) -> bool:
    try:
        validate_date(value)
    except ValidationError:
        return False
    return True


def _in_range(value: Any, low: float, high: float) -> bool:
    if isinstance(value, bool):
        return False
    try:
        n = float(value)
    except (TypeError, ValueError):
        return False
    return low <= n <= high


def _validate_goal(g: dict[str, Any], errors: list[str]) -> None:
    kind = g.get("kind")
    sub_kind = g.get("subKind")
    label = g.get("id") or sub_kind or kind

    if kind == "endurance" and sub_kind in VALID_ENDURANCE_SUBKINDS and not g.get("dateLocal"):
        errors.append(f'Endurance goal "{label}" requires dateLocal (YYYY-MM-DD) for race planning.')
    if g.get("dateLocal") and not _is_date(g["dateLocal"]):
        errors.append(f'Goal "{label}": dateLocal must be a valid date (YYYY-MM-DD).')
    if kind is None:
        errors.append(f'Goal "{label}" has no kind.')
    elif kind not in VALID_GOAL_KINDS:
        errors.append(f"Unknown goal kind: {kind}. Valid: {', '.join(VALID_GOAL_KINDS)}")

    if kind == "bodycomp":
        if g.get("targetWeightKg") is not None and not _in_range(g["targetWeightKg"], 35, 250):
            errors.append(f'Bodycomp goal "{g.get("id") or "bodycomp"}" targetWeightKg must be 35-250.')
        if g.get("direction") is not None and g["direction"] not in VALID_BODYCOMP_DIRECTIONS:
            errors.append(f'Bodycomp goal "{g.get("id") or "bodycomp"}" direction must be "lose" or "gain".')
    if kind == "sleep" and g.get("targetTotalMinutes") is not None:
        if not _in_range(g["targetTotalMinutes"], 240, 600):
            errors.append(f'Sleep goal "{g.get("id") or "sleep"}" targetTotalMinutes must be 240-600 (4-10h).')
    if kind == "vo2max" and g.get("targetVo2max") is not None:
        if not _in_range(g["targetVo2max"], 25, 90):
            errors.append(f'VO2max goal "{g.get("id") or "vo2max"}" targetVo2max must be 25-90.')


def validate_intake(payload: Any) -> list[str]:
    """
    Check an intake document.

    Args:
        payload: Parsed ``intake.json`` content

    Returns:
        Violation messages, empty when the document is valid
    """
    if not isinstance(payload, dict):
        return ["Intake payload is required and must be an object."]

    errors: list[str] = []
    constraints = payload.get("constraints") or {}
    baseline = payload.get("baseline") or {}

    days = constraints.get("daysAvailable") or []
    if not isinstance(days, list) or not days:
        errors.append('daysAvailable is required and must be non-empty. Ask user: "Which days can you train?"')
    else:
        invalid = [str(d) for d in days if normalize_day_key(str(d)) is None]
        if invalid:
            errors.append(
                f"Invalid day keys in daysAvailable: {', '.join(invalid)}. Use: mon, tue, wed, thu, fri, sat, sun"
            )

    for d in constraints.get("preferredRestDays") or []:
        if normalize_day_key(str(d)) is None:
            errors.append(f"Invalid day key in preferredRestDays: {d}")

    for g in payload.get("goals") or []:
        if isinstance(g, dict):
            _validate_goal(g, errors)
        else:
            errors.append("Each goal must be an object.")

    for m in payload.get("milestones") or []:
        if not isinstance(m, dict) or not m.get("kind"):
            errors.append("Each milestone must be an object with a kind.")
        elif m.get("dateLocal") and not _is_date(m["dateLocal"]):
            errors.append(f'Milestone "{m.get("id") or m["kind"]}": dateLocal must be a valid date (YYYY-MM-DD).')

    for fa in constraints.get("fixedAppointments") or []:
        if not fa.get("id") or not fa.get("name"):
            errors.append("Each fixedAppointment must have id and name.")
        if fa.get("dayOfWeek") is None or normalize_day_key(str(fa["dayOfWeek"])) is None:
            errors.append(f'Invalid dayOfWeek in fixedAppointment "{fa.get("id")}": {fa.get("dayOfWeek")}')
        start, end = fa.get("seasonStart"), fa.get("seasonEnd")
        if start and end:
            if not (_is_date(start) and _is_date(end)):
                errors.append(
                    f'fixedAppointment "{fa.get("id")}": seasonStart/seasonEnd must be valid dates (YYYY-MM-DD).'
                )
            elif start > end:
                errors.append(f'fixedAppointment "{fa.get("id")}": seasonStart must be before seasonEnd.')

    split = baseline.get("strengthSplitPreference")
    if split and split not in STRENGTH_SPLITS:
        errors.append(f"Invalid strengthSplitPreference: {split}. Valid: {', '.join(STRENGTH_SPLITS)}")

    fitness = baseline.get("perceivedFitness")
    if fitness is not None and str(fitness).lower() not in VALID_FITNESS:
        errors.append(f"Invalid perceivedFitness: {fitness}. Valid: {', '.join(VALID_FITNESS)}")

    if baseline.get("maxHardSessionsPerWeek") is not None:
        if not _in_range(baseline["maxHardSessionsPerWeek"], MAX_HARD_MIN, MAX_HARD_MAX):
            errors.append(f"baseline.maxHardSessionsPerWeek must be between {MAX_HARD_MIN} and {MAX_HARD_MAX}.")

    if constraints.get("allowTwoADays") is not None and not isinstance(constraints["allowTwoADays"], bool):
        errors.append("constraints.allowTwoADays must be a boolean (true/false).")

    if payload.get("timeZone") is not None:
        try:
            resolve_time_zone(str(payload["timeZone"]))
        except ValidationError as e:
            errors.append(str(e))

    if payload.get("trainingStartDate") is not None and not _is_date(payload["trainingStartDate"]):
        errors.append("trainingStartDate must be a valid date (YYYY-MM-DD).")

    if baseline.get("z2DurationMinutes") is not None and not _in_range(baseline["z2DurationMinutes"], 20, 120):
        errors.append("baseline.z2DurationMinutes must be between 20 and 120 minutes.")

    return errors


def parse_intake(payload: Any) -> Intake:
    """
    Validate and convert an intake document.

    Raises:
        IntakeValidationError: With every violation found
    """
    errors = validate_intake(payload)
    if errors:
        raise IntakeValidationError(errors)
    try:
        return dict_to_intake(payload)
    except ValidationError as e:
        raise IntakeValidationError([str(e)]) from e
