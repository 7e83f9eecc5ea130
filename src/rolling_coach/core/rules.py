"""
Missed-workout rule registry.

Rules are loaded from ``missed_rules.yaml`` bundled with the package and
deep-merged with an optional user override at
``~/.rolling-coach/missed_rules.yaml``. A broken user override is ignored
with a warning; if no rule table can be loaded at all, a RuntimeError is
raised since the reconciler cannot run without it.
"""

import os
import warnings
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from .kinds import SessionKind
from .models import TERMINAL_STATUSES

RULES_FILENAME = "missed_rules.yaml"
SPECIAL_RULES = ("matched", "disruption", "calendar")


@dataclass(frozen=True)
class MissedRule:
    """Transition applied to an unmatched (or matched) planned session."""

    key: str
    status: str
    rule_refs: tuple[str, ...] = ()
    evidence_refs: tuple[str, ...] = ()
    action: str = ""

    def __post_init__(self) -> None:
        if self.status not in TERMINAL_STATUSES:
            raise ValueError(f"Rule '{self.key}': status must be one of {sorted(TERMINAL_STATUSES)}")


def rule_from_dict(key: str, d: dict[str, Any]) -> MissedRule:
    """Build a MissedRule from its YAML mapping."""
    if not isinstance(d, dict):
        raise ValueError(f"Rule '{key}' must be a mapping")
    if "status" not in d:
        raise ValueError(f"Rule '{key}' is missing 'status'")
    return MissedRule(
        key=key,
        status=str(d["status"]),
        rule_refs=tuple(d.get("rule_refs") or ()),
        evidence_refs=tuple(d.get("evidence_refs") or ()),
        action=str(d.get("action") or ""),
    )


def _load_yaml_file(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def get_bundled_rules_path() -> Path:
    """Return the path of the rules file shipped with the package."""
    # rules.py lives at src/rolling_coach/core/rules.py
    return Path(__file__).parent.parent / RULES_FILENAME


def get_user_rules_path() -> Path | None:
    """Return ~/.rolling-coach/missed_rules.yaml if it exists, else None."""
    home = Path(os.environ.get("HOME", "~")).expanduser()
    p = home / ".rolling-coach" / RULES_FILENAME
    return p if p.exists() else None


def _parse_table(raw: dict) -> dict[str, MissedRule]:
    return {str(key): rule_from_dict(str(key), value) for key, value in raw.items()}


def load_rules(user_path: Path | None = None) -> dict[str, MissedRule]:
    """
    Load and merge the rule table.

    Load order (later overrides earlier):
    1. Bundled src/rolling_coach/missed_rules.yaml
    2. User override (``user_path`` or ~/.rolling-coach/missed_rules.yaml)

    Returns:
        {key: MissedRule}, keyed by session kind value or special entry

    Raises:
        RuntimeError: If no usable rule table exists
    """
    raw: dict = {}
    try:
        raw = _load_yaml_file(get_bundled_rules_path())
    except (OSError, yaml.YAMLError) as exc:
        warnings.warn(f"rolling-coach: bundled rules unreadable ({exc})", stacklevel=2)

    user_path = user_path or get_user_rules_path()
    if user_path is not None:
        try:
            user_raw = _load_yaml_file(user_path)
            merged = _deep_merge(raw, user_raw)
            table = _parse_table(merged)
        except (OSError, yaml.YAMLError, ValueError) as exc:
            warnings.warn(f"rolling-coach: ignoring rule override {user_path} ({exc})", stacklevel=2)
        else:
            return table

    table = _parse_table(raw) if raw else {}
    if not table:
        raise RuntimeError(
            "rolling-coach: no missed-workout rules could be loaded. "
            f"Check that src/rolling_coach/{RULES_FILENAME} is present and valid."
        )
    return table


@lru_cache(maxsize=1)
def default_rules() -> dict[str, MissedRule]:
    """Rule table for the current user, loaded once per process."""
    return load_rules()


def rule_for(kind: SessionKind, rules: dict[str, MissedRule]) -> MissedRule:
    """
    Rule for an unmatched session of ``kind``.

    Raises:
        KeyError: If the table has no entry for the kind
    """
    if kind.value not in rules:
        raise KeyError(f"No missed-workout rule for kind '{kind.value}'")
    return rules[kind.value]
