"""League points rules: normalization and the per-round points calculation."""

from __future__ import annotations

import copy
import math
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

MODES = ("medal", "stableford", "handicap")

DEFAULT_PLACEMENT_POINTS: Dict[int, int] = {1: 3, 2: 2, 3: 0}

DEFAULT_POINTS_SYSTEM: Dict[str, Any] = {
    "mode": "medal",
    "placement_points": DEFAULT_PLACEMENT_POINTS,
    "participation": {"enabled": False, "points": 1},
    "bonuses": {
        "enabled": False,
        "birdie": {"enabled": False, "points": 1},
        "eagle": {"enabled": False, "points": 2},
        "hio": {"enabled": False, "points": 5},
    },
}

# Keys accepted for the placement table, checked in order.
_PLACEMENT_KEYS = ("placement_points", "placementPoints", "placement", "pointsTable")


def _num(value: Any, fallback: Optional[float] = 0.0) -> Optional[float]:
    """Return ``value`` as a finite float, or ``fallback``."""
    if isinstance(value, bool) or value is None:
        return fallback
    if isinstance(value, str):
        value = value.strip()
    elif not isinstance(value, (int, float, Decimal)):
        return fallback
    try:
        out = float(value)
    except (OverflowError, ValueError):
        # ints beyond float range, signalling Decimal NaN
        return fallback
    return out if math.isfinite(out) else fallback


def _int(value: Any, fallback: int) -> int:
    """Truncate a numeric value to int, using ``fallback`` when it is not numeric."""
    out = _num(value, None)
    if out is None:
        return fallback
    return int(out)


def _obj(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _flag(value: Any) -> bool:
    return value if isinstance(value, bool) else False


def _normalize_placement(raw: Any) -> Dict[int, int]:
    """Coerce a loosely shaped placement table to ``{place: points}``.

    Places that are not positive integers are dropped. An empty result falls
    back to :data:`DEFAULT_PLACEMENT_POINTS`.
    """
    table: Dict[int, int] = {}
    for key, value in _obj(raw).items():
        place = _num(key, None)
        if place is None:
            continue
        place = int(place)
        if place <= 0:
            continue
        table[place] = _int(value, 0)
    if not table:
        return dict(DEFAULT_PLACEMENT_POINTS)
    return dict(sorted(table.items()))


def _normalize_toggle(raw: Any, default_points: int) -> Dict[str, Any]:
    obj = _obj(raw)
    return {
        "enabled": _flag(obj.get("enabled")),
        "points": _int(obj.get("points"), default_points),
    }


def normalize_points_rules(raw: Any = None) -> Dict[str, Any]:
    """Return a fully populated points system from a possibly partial one.

    Args:
        raw: Rules as stored by a league admin. May be ``None``, partial, or
            use the legacy ``placementPoints``/``placement``/``pointsTable``
            names for the placement table.

    Returns:
        Dictionary with ``mode``, ``placement_points``, ``participation`` and
        ``bonuses`` keys. Normalizing the result again yields an equal object.
    """
    rules = _obj(raw)

    placement_raw = None
    for key in _PLACEMENT_KEYS:
        if rules.get(key) is not None:
            placement_raw = rules[key]
            break

    mode = rules.get("mode")
    if mode not in MODES:
        mode = DEFAULT_POINTS_SYSTEM["mode"]

    defaults = DEFAULT_POINTS_SYSTEM["bonuses"]
    bonuses = _obj(rules.get("bonuses"))
    return {
        "mode": mode,
        "placement_points": _normalize_placement(placement_raw),
        "participation": _normalize_toggle(
            rules.get("participation"), DEFAULT_POINTS_SYSTEM["participation"]["points"]
        ),
        "bonuses": {
            "enabled": _flag(bonuses.get("enabled")),
            "birdie": _normalize_toggle(bonuses.get("birdie"), defaults["birdie"]["points"]),
            "eagle": _normalize_toggle(bonuses.get("eagle"), defaults["eagle"]["points"]),
            "hio": _normalize_toggle(bonuses.get("hio"), defaults["hio"]["points"]),
        },
    }


def merge_points_rules(current: Any, update: Any) -> Dict[str, Any]:
    """Apply a partial admin edit on top of ``current`` and normalize.

    Top-level keys in ``update`` replace those in ``current``; nested objects
    are replaced wholesale, matching how the settings form submits sections.
    """
    merged = copy.deepcopy(normalize_points_rules(current))
    update = _obj(update)
    for key in _PLACEMENT_KEYS:
        if update.get(key) is not None:
            merged.pop("placement_points", None)
            break
    merged.update(update)
    return normalize_points_rules(merged)


def bonus_flags(round_: Mapping[str, Any]) -> Dict[str, bool]:
    """Return which bonus achievements happened at least once in a round."""
    return {
        "birdie": (_num(round_.get("birdies")) or 0) > 0,
        "eagle": (_num(round_.get("eagles")) or 0) > 0,
        "hio": (_num(round_.get("hio")) or 0) > 0,
    }


def calculate_league_points(
    rules: Any,
    place: Optional[int] = None,
    flags: Optional[Mapping[str, bool]] = None,
    played: bool = True,
) -> Dict[str, int]:
    """Compute the points a single round earns under ``rules``.

    Args:
        rules: Points system; normalized here so raw rules are accepted.
        place: Finishing place within the event, or ``None`` when the round
            could not be ranked.
        flags: Bonus presence flags as returned by :func:`bonus_flags`.
        played: Whether the player took part (gates participation points).

    Returns:
        Dictionary with ``placement_points``, ``participation_points``,
        ``bonus_points`` and ``total_points``.
    """
    ps = normalize_points_rules(rules)
    flags = flags or {}

    placement = 0
    position = _num(place, None)
    if position is not None and position > 0:
        placement = ps["placement_points"].get(int(position), 0)

    participation = 0
    if played and ps["participation"]["enabled"]:
        participation = ps["participation"]["points"]

    bonus = 0
    if ps["bonuses"]["enabled"]:
        for name in ("birdie", "eagle", "hio"):
            cfg = ps["bonuses"][name]
            if cfg["enabled"] and flags.get(name):
                bonus += cfg["points"]

    return {
        "placement_points": placement,
        "participation_points": participation,
        "bonus_points": bonus,
        "total_points": placement + participation + bonus,
    }


__all__ = [
    "DEFAULT_POINTS_SYSTEM",
    "MODES",
    "bonus_flags",
    "calculate_league_points",
    "merge_points_rules",
    "normalize_points_rules",
]
