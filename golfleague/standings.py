"""League standings engine.

Rounds are grouped into events (same league, calendar day, course and hole
count), ranked within each event using standard competition ranking, scored
with the league's points rules and summed into a per-player season table.

Everything here is a pure function of its arguments: rounds and rosters are
read, never modified.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .points import _num, bonus_flags, calculate_league_points, normalize_points_rules

log = logging.getLogger(__name__)

EventKey = Tuple[str, str, str, str]

# Round field used to rank each mode; medal is the only lower-is-better mode.
_MODE_FIELDS = {
    "medal": "gross_score",
    "stableford": "stableford_points",
    "handicap": "vs_handicap",
}

LAST_N = 5
RECENT_ROUNDS = 10


def _date_key(round_: Mapping[str, Any]) -> str:
    """Return the calendar-day part of a round's date (``YYYY-MM-DD``)."""
    raw = str(round_.get("date") or "")
    if len(raw) >= 10 and raw[4] == "-" and raw[7] == "-":
        return raw[:10]
    return raw


def _count(value: Any) -> int:
    return max(int(_num(value) or 0), 0)


def _points_value(value: Any) -> Union[int, float]:
    points = _num(value) or 0.0
    return int(points) if float(points).is_integer() else points


def event_key(round_: Mapping[str, Any]) -> EventKey:
    """Return the key identifying the event a round competes in.

    Missing parts fall back to sentinel strings so malformed rounds still form
    an event of their own instead of being dropped.
    """
    holes = _num(round_.get("holes"), None)
    return (
        str(round_.get("league_id") or "no_league"),
        _date_key(round_) or "no_date",
        str(round_.get("course") or "").strip().lower() or "no_course",
        str(int(holes)) if holes else "18",
    )


def group_by_event(rounds: Sequence[Mapping[str, Any]]) -> Dict[EventKey, List[int]]:
    """Map each event key to the indices of its rounds, in input order."""
    events: Dict[EventKey, List[int]] = {}
    for idx, round_ in enumerate(rounds):
        events.setdefault(event_key(round_), []).append(idx)
    return events


def ranking_value(round_: Mapping[str, Any], mode: str) -> Optional[float]:
    """Return the value a round is ranked on, or ``None`` if it is unrankable."""
    field = _MODE_FIELDS.get(mode, _MODE_FIELDS["medal"])
    return _num(round_.get(field), None)


def can_rank(rules: Any, rounds: Iterable[Mapping[str, Any]]) -> bool:
    """Return True when placement ranking is possible for this dataset."""
    ps = normalize_points_rules(rules)
    if not ps["placement_points"]:
        return False
    return any(ranking_value(r, ps["mode"]) is not None for r in rounds)


def _rank_indices(
    rounds: Sequence[Mapping[str, Any]], indices: Iterable[int], mode: str
) -> List[Tuple[int, Optional[int]]]:
    rankable: List[Tuple[int, float]] = []
    unrankable: List[int] = []
    for idx in indices:
        value = ranking_value(rounds[idx], mode)
        if value is None:
            unrankable.append(idx)
        else:
            rankable.append((idx, value))

    # Best first; sort is stable so tied rounds keep their input order.
    rankable.sort(key=lambda item: item[1], reverse=mode in ("stableford", "handicap"))

    ranked: List[Tuple[int, Optional[int]]] = []
    last_value = None
    place = 0
    for position, (idx, value) in enumerate(rankable, start=1):
        if last_value is None or value != last_value:
            place = position
            last_value = value
        ranked.append((idx, place))
    ranked.extend((idx, None) for idx in unrankable)
    return ranked


def rank_event(
    rounds: Sequence[Mapping[str, Any]], mode: str = "medal"
) -> List[Tuple[Mapping[str, Any], Optional[int]]]:
    """Rank the rounds of one event.

    Ties share a place and the next distinct value resumes at its 1-based
    position (1, 1, 3). Rounds without a usable value for ``mode`` are listed
    last with a place of ``None``.
    """
    return [(rounds[idx], place) for idx, place in _rank_indices(rounds, range(len(rounds)), mode)]


def _placement_results(rounds: Sequence[Mapping[str, Any]], ps: Dict[str, Any]) -> Dict[int, Dict[str, Any]]:
    """Score every round against the other rounds of its event."""
    results: Dict[int, Dict[str, Any]] = {}
    for indices in group_by_event(rounds).values():
        for idx, place in _rank_indices(rounds, indices, ps["mode"]):
            scored = calculate_league_points(ps, place, bonus_flags(rounds[idx]))
            results[idx] = {**scored, "place": place}
    return results


def _round_points(
    round_: Mapping[str, Any],
    idx: int,
    ps: Dict[str, Any],
    placement: Optional[Dict[int, Dict[str, Any]]],
) -> Union[int, float]:
    if placement is not None:
        return placement[idx]["total_points"]
    # Rounds saved before rules existed carry their own points.
    if round_.get("points") is not None:
        return _points_value(round_.get("points"))
    return calculate_league_points(ps, None, bonus_flags(round_))["total_points"]


def _empty_row(user_id: str, name: str) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "name": name,
        "points": 0,
        "rounds": 0,
        "majors": 0,
        "birdies": 0,
        "eagles": 0,
        "hio": 0,
        "last5": [],
    }


def build_standings(
    players: Iterable[Mapping[str, Any]],
    rounds: Iterable[Mapping[str, Any]],
    rules: Any = None,
) -> List[Dict[str, Any]]:
    """Build the league table for a roster.

    Args:
        players: Roster as ``{"id", "name"}`` records. Only these players
            appear in the table, including those with no rounds.
        rounds: Canonical rounds (see :mod:`golfleague.rounds`). Rounds whose
            ``user_id`` is not on the roster are ignored.
        rules: League points rules, raw or normalized.

    Returns:
        One row per roster player sorted by points (high first), then rounds
        played (high first), then name (case-insensitive).
    """
    ps = normalize_points_rules(rules)
    rounds = [r for r in (rounds or []) if isinstance(r, Mapping)]

    placement = None
    if can_rank(ps, rounds):
        placement = _placement_results(rounds, ps)
    else:
        log.debug("placement ranking skipped: no %s values in %d rounds", ps["mode"], len(rounds))

    table: Dict[str, Dict[str, Any]] = {}
    for player in players or []:
        if not isinstance(player, Mapping):
            continue
        pid = player.get("id")
        if pid is None or pid == "":
            continue
        table[str(pid)] = _empty_row(str(pid), str(player.get("name") or "Unnamed"))

    # Newest first so last5 is filled in date order.
    order = sorted(range(len(rounds)), key=lambda i: _date_key(rounds[i]), reverse=True)
    for idx in order:
        round_ = rounds[idx]
        row = table.get(str(round_.get("user_id") or ""))
        if row is None:
            continue
        earned = _round_points(round_, idx, ps, placement)
        is_major = bool(round_.get("is_major"))

        row["points"] += earned
        row["rounds"] += 1
        row["birdies"] += _count(round_.get("birdies"))
        row["eagles"] += _count(round_.get("eagles"))
        row["hio"] += _count(round_.get("hio"))
        if is_major:
            row["majors"] += 1
        if len(row["last5"]) < LAST_N:
            row["last5"].append({"points": earned, "is_major": is_major, "date": round_.get("date") or ""})

    standings = list(table.values())
    standings.sort(key=lambda r: (-r["points"], -r["rounds"], r["name"].casefold()))
    return standings


def build_player_stats(
    user_id: Any,
    players: Iterable[Mapping[str, Any]],
    rounds: Iterable[Mapping[str, Any]],
    rules: Any = None,
) -> Dict[str, Any]:
    """Return one player's standings row and their most recent rounds."""
    uid = str(user_id)
    rounds = [r for r in (rounds or []) if isinstance(r, Mapping)]
    standings = build_standings(players, rounds, rules)
    row = next((r for r in standings if r["user_id"] == uid), None)

    mine = [dict(r) for r in rounds if str(r.get("user_id") or "") == uid]
    mine.sort(key=_date_key, reverse=True)
    return {"row": row, "recent_rounds": mine[:RECENT_ROUNDS]}


def recompute_event_points(
    rounds: Sequence[Mapping[str, Any]],
    event: Union[EventKey, Mapping[str, Any]],
    rules: Any = None,
) -> List[Mapping[str, Any]]:
    """Re-score every round in one event after a new submission.

    Args:
        rounds: All known rounds; only those in ``event`` are re-scored.
        event: An event key or any round belonging to the event.
        rules: League points rules, raw or normalized.

    Returns:
        A new list in input order. Rounds of the event are copies carrying
        ``points`` and ``points_breakdown``; other rounds are passed through.
    """
    ps = normalize_points_rules(rules)
    key = event if isinstance(event, tuple) else event_key(event)
    members = [i for i, r in enumerate(rounds) if event_key(r) == key]
    places = dict(_rank_indices(rounds, members, ps["mode"]))

    out: List[Mapping[str, Any]] = []
    for idx, round_ in enumerate(rounds):
        if idx not in places:
            out.append(round_)
            continue
        place = places[idx]
        scored = calculate_league_points(ps, place, bonus_flags(round_))
        out.append(
            {
                **round_,
                "points": scored["total_points"],
                "points_breakdown": {
                    "mode": "league",
                    "rank": place,
                    "placement_points": scored["placement_points"],
                    "participation_points": scored["participation_points"],
                    "bonus_points": scored["bonus_points"],
                },
            }
        )
    return out


__all__ = [
    "build_player_stats",
    "build_standings",
    "can_rank",
    "event_key",
    "group_by_event",
    "rank_event",
    "ranking_value",
    "recompute_event_points",
]
