from flask import Blueprint, abort, current_app, request
from datetime import datetime, timezone
import os
import time
import uuid

from .points import merge_points_rules
from .rounds import canonical_round
from .standings import build_player_stats, build_standings, event_key, recompute_event_points
from .datastore import (
    get_league as ds_get_league,
    list_members as ds_list_members,
    list_rounds as ds_list_rounds,
    get_points_system as ds_get_points_system,
    set_points_system as ds_set_points_system,
    insert_round as ds_insert_round,
    update_round_points as ds_update_round_points,
)


bp = Blueprint('main', __name__)

# In-process standings cache, keyed by league id
_STANDINGS_CACHE: dict[str, tuple[float, list[dict]]] = {}
_STANDINGS_TTL = int(os.environ.get('CACHE_TTL_STANDINGS', '180'))  # seconds


def _cache_get_standings(league_id: str) -> list[dict] | None:
    entry = _STANDINGS_CACHE.get(str(league_id))
    if not entry:
        return None
    exp, table = entry
    if exp < time.time():
        _STANDINGS_CACHE.pop(str(league_id), None)
        return None
    return table


def _cache_set_standings(league_id: str, table: list[dict]) -> None:
    _STANDINGS_CACHE[str(league_id)] = (time.time() + _STANDINGS_TTL, table)


def _cache_delete_league(league_id: str) -> None:
    _STANDINGS_CACHE.pop(str(league_id), None)


def _cache_clear_all() -> None:
    _STANDINGS_CACHE.clear()


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + 'Z'


@bp.route('/health/db')
def health_db():
    """Database connectivity health check.

    Always returns HTTP 200 with a JSON body describing connection status.
    """
    url = os.environ.get('DATABASE_URL')
    if not url:
        return {'connected': False, 'status': 'no_database_url'}
    try:
        import psycopg2  # type: ignore
        with psycopg2.connect(url, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute('SELECT current_user, current_database(), version()')
                user, db, ver = cur.fetchone()
        return {
            'connected': True,
            'status': 'ok',
            'user': user,
            'database': db,
            'server_version': (ver or '').split('\n')[0],
        }
    except Exception as e:  # pragma: no cover - best-effort health output
        return {'connected': False, 'status': 'error', 'error': str(e)}


def _require_league(league_id: str) -> dict:
    league = ds_get_league(league_id)
    if not league:
        abort(404, description=f"League '{league_id}' not found.")
    return league


def _json_object() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        abort(400, description='Expected a JSON object.')
    return payload


#<getdata>
@bp.route('/api/leagues/<league_id>/standings')
def league_standings(league_id):
    _require_league(league_id)
    points_system = ds_get_points_system(league_id)
    rules = points_system['rules']
    table = _cache_get_standings(league_id)
    if table is None:
        table = build_standings(ds_list_members(league_id), ds_list_rounds(league_id), rules)
        _cache_set_standings(league_id, table)
    return {
        'league_id': league_id,
        'mode': rules['mode'],
        'version': points_system['version'],
        'standings': table,
    }
#</getdata>


#<getdata>
@bp.route('/api/leagues/<league_id>/players/<user_id>')
def player_stats(league_id, user_id):
    _require_league(league_id)
    players = ds_list_members(league_id)
    if not any(p['id'] == str(user_id) for p in players):
        abort(404, description=f"Player '{user_id}' is not a member of this league.")
    rules = ds_get_points_system(league_id)['rules']
    return build_player_stats(user_id, players, ds_list_rounds(league_id), rules)
#</getdata>


#<getdata>
@bp.route('/api/leagues/<league_id>/points-system')
def get_points_system(league_id):
    _require_league(league_id)
    points_system = ds_get_points_system(league_id)
    if request.args.get('only') == 'version':
        return {'version': points_system['version']}
    return points_system
#</getdata>


#<getdata>
@bp.route('/api/leagues/<league_id>/points-system', methods=['POST'])
def save_points_system(league_id):
    """Merge a partial points-system edit into the league's rules."""
    _require_league(league_id)
    payload = _json_object()
    existing = ds_get_points_system(league_id)
    rules = merge_points_rules(existing.get('rules'), payload)
    version = int(existing.get('version', 0)) + 1
    saved = ds_set_points_system(league_id, rules, version, _now_iso())

    # Rules change every event's points
    _cache_delete_league(league_id)
    current_app.logger.info('points_system_saved league=%s version=%s mode=%s', league_id, version, rules['mode'])
    return {'status': 'ok', **saved}
#</getdata>


#<getdata>
@bp.route('/api/leagues/<league_id>/rounds', methods=['POST'])
def submit_round(league_id):
    """Store a round and re-score every round of its event."""
    _require_league(league_id)
    round_ = canonical_round(_json_object())
    round_['league_id'] = str(league_id)
    # Points are always computed server-side
    round_.pop('points', None)
    round_.pop('points_breakdown', None)

    uid = round_.get('user_id')
    if not uid or not any(p['id'] == uid for p in ds_list_members(league_id)):
        abort(400, description='Round must belong to a member of this league.')
    if not round_.get('date') or not str(round_.get('course') or '').strip():
        abort(400, description='Round requires a date and a course.')
    # Client-supplied ids are ignored
    round_['id'] = uuid.uuid4().hex

    stored = ds_insert_round(round_)
    rules = ds_get_points_system(league_id)['rules']
    key = event_key(stored)
    rescored = [r for r in recompute_event_points(ds_list_rounds(league_id), key, rules) if event_key(r) == key]
    ds_update_round_points(rescored)
    _cache_delete_league(league_id)

    current_app.logger.info(
        'round_submitted league=%s user=%s event=%s rescored=%d', league_id, uid, '::'.join(key), len(rescored)
    )
    result = next((r for r in rescored if r.get('id') == stored.get('id')), stored)
    return {'status': 'ok', 'round': result, 'event_rounds': len(rescored)}, 201
#</getdata>
