#!/usr/bin/env python3
"""
Create the PostgreSQL schema and import a JSON export of league data.

The export is the shape older clients kept locally:
{"leagues": [...], "profiles": [...], "members": [...], "rounds": [...]}
Round and profile field names are coalesced through golfleague.rounds, so
legacy camelCase exports import as-is.
"""
import json
import os
import sys

import psycopg2
from psycopg2.extras import execute_values

from golfleague.points import normalize_points_rules
from golfleague.rounds import canonical_player, canonical_round


def create_tables(conn):
    """Create the database schema"""
    with conn.cursor() as cur:
        cur.execute("""
            CREATE TABLE IF NOT EXISTS leagues (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                points_system JSONB,
                points_version INTEGER NOT NULL DEFAULT 0,
                points_updated_at TIMESTAMP
            )
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                name TEXT,
                username TEXT
            )
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS league_members (
                league_id TEXT REFERENCES leagues(id) ON DELETE CASCADE,
                user_id TEXT REFERENCES profiles(id) ON DELETE CASCADE,
                role TEXT NOT NULL DEFAULT 'member',
                PRIMARY KEY (league_id, user_id)
            )
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS rounds (
                id TEXT PRIMARY KEY,
                league_id TEXT REFERENCES leagues(id) ON DELETE CASCADE,
                user_id TEXT REFERENCES profiles(id) ON DELETE CASCADE,
                date DATE,
                course TEXT,
                holes INTEGER NOT NULL DEFAULT 18,
                gross_score NUMERIC,
                stableford_points NUMERIC,
                vs_handicap NUMERIC,
                birdies INTEGER NOT NULL DEFAULT 0,
                eagles INTEGER NOT NULL DEFAULT 0,
                hio INTEGER NOT NULL DEFAULT 0,
                is_major BOOLEAN NOT NULL DEFAULT FALSE,
                points NUMERIC,
                points_breakdown JSONB,
                created_at TIMESTAMP NOT NULL DEFAULT now()
            )
        """)

        cur.execute(
            "CREATE INDEX IF NOT EXISTS rounds_league_event_idx ON rounds (league_id, date, course, holes)"
        )
        conn.commit()
        print("Database schema created successfully")


def import_export(conn, data):
    """Upsert leagues, profiles, memberships and rounds from an export dict."""
    leagues = [
        (str(lg["id"]), lg.get("name") or "", json.dumps(normalize_points_rules(lg.get("pointsSystem") or lg.get("points_system"))))
        for lg in data.get("leagues", [])
        if lg.get("id")
    ]
    profiles = [canonical_player(p) for p in data.get("profiles", [])]
    profiles = [(p["id"], p["name"]) for p in profiles if p]
    members = [
        (str(m.get("league_id") or m.get("leagueId")), str(m.get("user_id") or m.get("userId")))
        for m in data.get("members", [])
    ]
    rounds = []
    for raw in data.get("rounds", []):
        r = canonical_round(raw)
        if not r.get("id") or not r.get("user_id"):
            continue
        rounds.append((
            r["id"], r.get("league_id"), r["user_id"], str(r.get("date") or "")[:10] or None,
            r.get("course"), r.get("holes") or 18, r.get("gross_score"), r.get("stableford_points"),
            r.get("vs_handicap"), r.get("birdies") or 0, r.get("eagles") or 0, r.get("hio") or 0,
            bool(r.get("is_major")), r.get("points"),
        ))

    with conn.cursor() as cur:
        if leagues:
            execute_values(cur, """
                INSERT INTO leagues (id, name, points_system) VALUES %s
                ON CONFLICT (id) DO UPDATE SET name = EXCLUDED.name, points_system = EXCLUDED.points_system
            """, leagues)
        if profiles:
            execute_values(cur, """
                INSERT INTO profiles (id, name) VALUES %s
                ON CONFLICT (id) DO UPDATE SET name = EXCLUDED.name
            """, profiles)
        if members:
            execute_values(cur, """
                INSERT INTO league_members (league_id, user_id) VALUES %s
                ON CONFLICT DO NOTHING
            """, members)
        if rounds:
            execute_values(cur, """
                INSERT INTO rounds (
                    id, league_id, user_id, date, course, holes, gross_score, stableford_points,
                    vs_handicap, birdies, eagles, hio, is_major, points
                ) VALUES %s
                ON CONFLICT (id) DO NOTHING
            """, rounds)
        conn.commit()
    print(f"- {len(leagues)} leagues")
    print(f"- {len(profiles)} profiles")
    print(f"- {len(members)} memberships")
    print(f"- {len(rounds)} rounds")


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    database_url = os.environ.get('DATABASE_URL')
    if not database_url:
        print("ERROR: DATABASE_URL environment variable not set")
        return 1

    conn = psycopg2.connect(database_url)
    try:
        create_tables(conn)
        if argv:
            with open(argv[0]) as f:
                data = json.load(f)
            print(f"Importing {argv[0]}...")
            import_export(conn, data)
    finally:
        conn.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
