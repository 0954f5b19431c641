from typing import Any, Dict, List, Optional

# Storage proxy used by the routes. Every call is delegated to datastore_pg at
# call time so tests can monkeypatch the PostgreSQL functions in one place.

from . import datastore_pg as _pg
from .rounds import Player, Round


def get_league(league_id: str) -> Optional[Dict[str, Any]]:
    return _pg.get_league(league_id)


def list_members(league_id: str) -> List[Player]:
    return _pg.list_members(league_id)


def list_rounds(league_id: str) -> List[Round]:
    return _pg.list_rounds(league_id)


def get_points_system(league_id: str) -> Dict[str, Any]:
    return _pg.get_points_system(league_id)


def set_points_system(league_id: str, rules: Dict[str, Any], version: int, updated_at: str) -> Dict[str, Any]:
    return _pg.set_points_system(league_id, rules, version, updated_at)


def insert_round(round_: Round) -> Round:
    return _pg.insert_round(round_)


def update_round_points(updates: List[Dict[str, Any]]) -> None:
    return _pg.update_round_points(updates)
