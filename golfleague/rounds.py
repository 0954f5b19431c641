"""Canonical round and player shapes.

Rounds reach the app from several places (database rows, API payloads, rounds
saved by older clients) and the same concept has gone by different names over
time. Everything is coalesced here, once, so the standings engine only ever
reads the canonical keys below.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, TypedDict


class Round(TypedDict, total=False):
    id: str
    user_id: str
    league_id: str
    date: str
    course: str
    holes: int
    gross_score: float
    stableford_points: float
    vs_handicap: float
    birdies: int
    eagles: int
    hio: int
    is_major: bool
    points: float
    points_breakdown: Dict[str, Any]


class Player(TypedDict):
    id: str
    name: str


# canonical key -> accepted source keys, first present wins
_ROUND_ALIASES: Dict[str, tuple] = {
    "id": ("id", "_id", "round_id"),
    "user_id": ("user_id", "player_id", "userId", "playerId", "userID", "uid"),
    "league_id": ("league_id", "leagueId"),
    "date": ("date", "created_at", "createdAt"),
    "course": ("course", "course_name", "courseName"),
    "holes": ("holes",),
    "gross_score": ("gross_score", "grossScore", "score"),
    "stableford_points": ("stableford_points", "stablefordPoints", "stableford"),
    "vs_handicap": ("vs_handicap", "vsHandicap", "handicap_delta", "handicapDelta"),
    "birdies": ("birdies",),
    "eagles": ("eagles",),
    "hio": ("hio", "hole_in_ones", "holeInOnes"),
    "is_major": ("is_major", "isMajor"),
    "points": ("points", "pointsEarned", "points_earned"),
    "points_breakdown": ("points_breakdown", "pointsBreakdown"),
}

_NAME_KEYS = ("name", "full_name", "fullName", "display_name", "displayName", "username")

# An empty string here means "not set"; the next alias is tried.
_SKIP_BLANK = ("user_id", "date")


def _first(raw: Mapping[str, Any], keys: tuple, skip_blank: bool = False) -> Optional[Any]:
    for key in keys:
        value = raw.get(key)
        if value is None or (skip_blank and value == ""):
            continue
        return value
    return None


def _iso(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def canonical_round(raw: Any) -> Round:
    """Return ``raw`` with every known alias mapped to its canonical key.

    Keys that are absent (or ``None``) in ``raw`` stay absent so callers can
    tell a missing precomputed ``points`` value from a zero. Values are not
    validated; the standings engine treats junk as zero or unrankable.
    """
    if not isinstance(raw, Mapping):
        return Round()
    out: Dict[str, Any] = {}
    for key, aliases in _ROUND_ALIASES.items():
        value = _first(raw, aliases, skip_blank=key in _SKIP_BLANK)
        if value is None:
            continue
        if key in ("id", "user_id", "league_id"):
            value = str(value)
        elif key == "date":
            value = _iso(value)
        elif key == "is_major":
            value = bool(value)
        out[key] = value
    return Round(**out)  # type: ignore[typeddict-item]


def canonical_player(raw: Any) -> Optional[Player]:
    """Return an ``{id, name}`` roster record, or ``None`` when there is no id."""
    if not isinstance(raw, Mapping):
        return None
    pid = _first(raw, ("id", "_id", "user_id"))
    if pid is None or pid == "":
        return None
    name = _first(raw, _NAME_KEYS) or "Unnamed"
    return Player(id=str(pid), name=str(name))


__all__ = ["Player", "Round", "canonical_player", "canonical_round"]
