"""
Session kinds and their attached metadata.

Every place in the engine that needs to know whether a kind is hard, which
modality it belongs to, how it ranks when two sessions compete for one day,
or which activity types count as doing it, reads the KIND_INFO table below.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Literal

Modality = Literal["endurance", "strength"]
Hardness = Literal["easy", "medium", "hard"]


class SessionKind(str, Enum):
    """Closed set of plannable session kinds (values are the stored strings)."""

    LR = "LR"
    TEMPO = "Tempo"
    INTERVALS = "Intervals"
    Z2 = "Z2"
    STRENGTH = "Strength"
    CYCLING = "Cycling"
    SWIM = "Swim"
    BIKE = "Bike"
    BRICK = "Brick"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class KindInfo:
    """Static properties of one session kind."""

    hard: bool
    modality: Modality
    priority: int  # Higher wins same-day conflicts
    tracked: bool  # Key workout: a miss is "missed", not "skipped"
    pattern: re.Pattern  # Activity-type keywords that satisfy this kind


KIND_INFO: dict[SessionKind, KindInfo] = {
    SessionKind.LR: KindInfo(True, "endurance", 100, True, re.compile(r"run|zone|walking")),
    SessionKind.TEMPO: KindInfo(True, "endurance", 90, True, re.compile(r"run|interval|tempo")),
    SessionKind.INTERVALS: KindInfo(True, "endurance", 80, True, re.compile(r"interval|run|hiit")),
    SessionKind.STRENGTH: KindInfo(
        True,
        "strength",
        70,
        True,
        re.compile(
            r"strength|full body|upper|lower|push|pull|legs|flexibility"
            r"|climbing|gym|hypertrophy|mind and body"
        ),
    ),
    SessionKind.Z2: KindInfo(
        False, "endurance", 60, False, re.compile(r"run|zone|walking|cycling|cardio|jog")
    ),
    SessionKind.CYCLING: KindInfo(False, "endurance", 50, True, re.compile(r"cycling|bike")),
    SessionKind.SWIM: KindInfo(False, "endurance", 50, True, re.compile(r"swim")),
    SessionKind.BIKE: KindInfo(False, "endurance", 50, True, re.compile(r"cycling|bike")),
    SessionKind.BRICK: KindInfo(
        False, "endurance", 50, True, re.compile(r"brick|bike.*run|run.*bike|multisport")
    ),
}

# Raw activity type (lower-case) -> the kind it counts as directly
ACTIVITY_TYPE_ALIASES: dict[str, SessionKind] = {
    "running": SessionKind.Z2,
    "walking": SessionKind.Z2,
    "cycling": SessionKind.CYCLING,
    "strength training": SessionKind.STRENGTH,
    "strength": SessionKind.STRENGTH,
    "swim": SessionKind.SWIM,
    "swimming": SessionKind.SWIM,
    "bike": SessionKind.BIKE,
    "brick": SessionKind.BRICK,
}

HARD_KINDS: frozenset[SessionKind] = frozenset(k for k, info in KIND_INFO.items() if info.hard)
QUALITY_KINDS: frozenset[SessionKind] = frozenset({SessionKind.TEMPO, SessionKind.INTERVALS})


def parse_kind(value: "str | SessionKind") -> SessionKind:
    """
    Convert a stored kind string to SessionKind.

    Raises:
        ValueError: If the value is not a known kind
    """
    if isinstance(value, SessionKind):
        return value
    return SessionKind(value)


def is_hard(kind: SessionKind) -> bool:
    return KIND_INFO[kind].hard


def modality_of(kind: SessionKind) -> Modality:
    return KIND_INFO[kind].modality


def priority_of(kind: SessionKind) -> int:
    return KIND_INFO[kind].priority


def is_tracked(kind: SessionKind) -> bool:
    return KIND_INFO[kind].tracked


def activity_matches_kind(activity_type: str, kind: SessionKind) -> bool:
    """
    Whether a raw activity type can satisfy a planned session of ``kind``.

    A direct alias hit ("Running" -> Z2) counts, and so does a keyword match
    against the kind's pattern ("Running" also satisfies LR/Tempo/Intervals).
    """
    lowered = activity_type.strip().lower()
    if ACTIVITY_TYPE_ALIASES.get(lowered) is kind:
        return True
    return bool(KIND_INFO[kind].pattern.search(lowered))
