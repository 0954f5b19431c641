import os
import json
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import pool as pg_pool
from psycopg2.extras import RealDictCursor, execute_values
from psycopg2 import errors as pg_errors
from contextlib import contextmanager

from .points import normalize_points_rules
from .rounds import Player, Round, canonical_player, canonical_round


_POOL: Optional[pg_pool.AbstractConnectionPool] = None

# Numeric columns are cast to float8 so rows carry floats rather than Decimals.
_ROUND_COLUMNS = """
    id, league_id, user_id, date, course, holes,
    gross_score::float8 AS gross_score,
    stableford_points::float8 AS stableford_points,
    vs_handicap::float8 AS vs_handicap,
    birdies, eagles, hio, is_major,
    points::float8 AS points,
    points_breakdown, created_at
"""


def _env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    val = os.environ.get(name)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _connect_kwargs() -> Dict[str, Any]:
    """Connection kwargs shared by the pool and direct connections.

    Defaults:
      - connect_timeout: 10 seconds (DB_CONNECT_TIMEOUT)
      - keepalives: on unless DB_KEEPALIVES is 0/false
      - DB_KEEPALIVES_IDLE / _INTERVAL / _COUNT passed through when set
    """
    kwargs: Dict[str, Any] = {}
    ct_env = _env_int("DB_CONNECT_TIMEOUT")
    kwargs["connect_timeout"] = ct_env if ct_env is not None else 10

    ka_env = os.environ.get("DB_KEEPALIVES")
    if ka_env is None:
        kwargs["keepalives"] = 1
    else:
        kwargs["keepalives"] = 0 if str(ka_env).lower() in ("0", "false") else 1

    for env_name, key in (
        ("DB_KEEPALIVES_IDLE", "keepalives_idle"),
        ("DB_KEEPALIVES_INTERVAL", "keepalives_interval"),
        ("DB_KEEPALIVES_COUNT", "keepalives_count"),
    ):
        val = _env_int(env_name)
        if val is not None:
            kwargs[key] = val
    return kwargs


def init_pool(minconn: int = 1, maxconn: int = 10) -> None:
    """Create the module-level connection pool from DATABASE_URL.

    Calling again once a pool exists is a no-op.
    """
    global _POOL
    if _POOL is not None:
        return
    url = os.environ.get("DATABASE_URL")
    if not url:
        return
    _POOL = pg_pool.ThreadedConnectionPool(minconn, maxconn, dsn=url, **_connect_kwargs())


def _rollback_quietly(conn) -> None:
    # A dead connection must not mask the error already propagating
    try:
        conn.rollback()
    except Exception:
        pass


def _ping(conn) -> bool:
    """Return True when ``conn`` answers ``SELECT 1``; any error counts as stale."""
    try:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
    except Exception:
        return False
    # Clear the implicit transaction the SELECT opened
    if not getattr(conn, "autocommit", False):
        _rollback_quietly(conn)
    return True


def _discard(conn) -> None:
    try:
        _POOL.putconn(conn, close=True)
    except Exception:
        pass


def _release(conn) -> None:
    """Roll back any open transaction and hand the connection back to the pool."""
    try:
        # status 1 = active, 2 = in transaction, 3 = in error
        if getattr(conn, "closed", 0) == 0 and not getattr(conn, "autocommit", False):
            if getattr(conn, "status", 0) in (1, 2, 3):
                _rollback_quietly(conn)
    finally:
        _POOL.putconn(conn)


@contextmanager
def _get_conn():
    """Yield a pooled connection, or a direct one when no pool exists.

    Pooled connections are pinged first; a stale one is discarded and the
    checkout retried once before giving up.
    """
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set; configure a PostgreSQL connection string")
    if _POOL is None:
        conn = psycopg2.connect(url, **_connect_kwargs())
        try:
            yield conn
        except Exception:
            _rollback_quietly(conn)
            raise
        finally:
            try:
                conn.close()
            except Exception:
                pass
        return

    conn = _POOL.getconn()
    if not _ping(conn):
        _discard(conn)
        conn = _POOL.getconn()
        if not _ping(conn):
            _discard(conn)
            raise psycopg2.OperationalError("Failed to acquire healthy DB connection after retry")
    try:
        yield conn
    except Exception:
        _rollback_quietly(conn)
        raise
    finally:
        _release(conn)


def get_league(league_id: str) -> Optional[Dict[str, Any]]:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        try:
            cur.execute("SELECT id, name FROM leagues WHERE id = %s", (str(league_id),))
        except pg_errors.UndefinedTable:
            return None
        row = cur.fetchone()
    if not row:
        return None
    return {"id": str(row["id"]), "name": row.get("name") or ""}


def list_members(league_id: str) -> List[Player]:
    """Return the league roster as ``{id, name}`` records."""
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            SELECT p.id, p.name, p.username
            FROM league_members m JOIN profiles p ON p.id = m.user_id
            WHERE m.league_id = %s
            ORDER BY p.name
            """,
            (str(league_id),),
        )
        rows = cur.fetchall()
    players = [canonical_player(r) for r in rows]
    return [p for p in players if p is not None]


def list_rounds(league_id: str) -> List[Round]:
    """Return every round logged in the league, newest first."""
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"SELECT {_ROUND_COLUMNS} FROM rounds WHERE league_id = %s ORDER BY date DESC, created_at DESC",
            (str(league_id),),
        )
        rows = cur.fetchall()
    return [canonical_round(r) for r in rows]


def get_points_system(league_id: str) -> Dict[str, Any]:
    """Return ``{rules, version, updated_at}`` for a league; rules are normalized."""
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            "SELECT points_system, points_version, points_updated_at FROM leagues WHERE id = %s",
            (str(league_id),),
        )
        row = cur.fetchone() or {}
    updated_at = row.get("points_updated_at")
    return {
        "rules": normalize_points_rules(row.get("points_system")),
        "version": int(row.get("points_version") or 0),
        "updated_at": updated_at.isoformat() + "Z" if updated_at else None,
    }


def set_points_system(league_id: str, rules: Dict[str, Any], version: int, updated_at: str) -> Dict[str, Any]:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute(
            """
            UPDATE leagues
            SET points_system = %s, points_version = %s, points_updated_at = %s
            WHERE id = %s
            """,
            (json.dumps(rules), int(version), updated_at.rstrip("Z"), str(league_id)),
        )
        conn.commit()
    return {"rules": rules, "version": int(version), "updated_at": updated_at}


def insert_round(round_: Round) -> Round:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"""
            INSERT INTO rounds (
                id, league_id, user_id, date, course, holes, gross_score,
                stableford_points, vs_handicap, birdies, eagles, hio, is_major
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {_ROUND_COLUMNS}
            """,
            (
                round_.get("id"),
                round_.get("league_id"),
                round_.get("user_id"),
                round_.get("date"),
                round_.get("course"),
                round_.get("holes") or 18,
                round_.get("gross_score"),
                round_.get("stableford_points"),
                round_.get("vs_handicap"),
                round_.get("birdies") or 0,
                round_.get("eagles") or 0,
                round_.get("hio") or 0,
                bool(round_.get("is_major")),
            ),
        )
        row = cur.fetchone()
        conn.commit()
    return canonical_round(row)


def update_round_points(updates: List[Dict[str, Any]]) -> None:
    """Store recomputed ``points``/``points_breakdown`` for several rounds at once."""
    rows = [
        (str(u["id"]), u.get("points"), json.dumps(u.get("points_breakdown") or {}))
        for u in (updates or [])
        if u.get("id")
    ]
    if not rows:
        return
    with _get_conn() as conn, conn.cursor() as cur:
        execute_values(
            cur,
            """
            UPDATE rounds AS r
            SET points = v.points::numeric, points_breakdown = v.breakdown::jsonb
            FROM (VALUES %s) AS v(id, points, breakdown)
            WHERE r.id = v.id
            """,
            rows,
        )
        conn.commit()
