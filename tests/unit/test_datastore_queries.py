import importlib
import json
from contextlib import contextmanager
from datetime import date, datetime


class FakeCursor:
    def __init__(self, rows):
        self.rows = list(rows)
        self.executed = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, sql, params=None):
        self.executed.append((sql, params))

    def fetchall(self):
        return self.rows

    def fetchone(self):
        return self.rows[0] if self.rows else None


class FakeConn:
    def __init__(self, cur):
        self.cur = cur
        self.commits = 0

    def cursor(self, cursor_factory=None):
        return self.cur

    def commit(self):
        self.commits += 1


def _patch_conn(monkeypatch, pg, rows):
    cur = FakeCursor(rows)
    conn = FakeConn(cur)

    @contextmanager
    def fake_get_conn():
        yield conn

    monkeypatch.setattr(pg, "_get_conn", fake_get_conn)
    return conn


def test_list_rounds_returns_canonical_rounds(monkeypatch):
    import golfleague.datastore_pg as pg
    pg = importlib.reload(pg)
    rows = [{
        "id": "r1", "league_id": "L1", "user_id": "u1", "date": date(2024, 5, 1), "course": "Pine",
        "holes": 18, "gross_score": 70.0, "stableford_points": None, "vs_handicap": None,
        "birdies": 1, "eagles": 0, "hio": 0, "is_major": False, "points": None,
        "points_breakdown": None, "created_at": datetime(2024, 5, 1, 12, 0),
    }]
    conn = _patch_conn(monkeypatch, pg, rows)
    rounds = pg.list_rounds("L1")
    assert rounds == [{
        "id": "r1", "league_id": "L1", "user_id": "u1", "date": "2024-05-01", "course": "Pine",
        "holes": 18, "gross_score": 70.0, "birdies": 1, "eagles": 0, "hio": 0, "is_major": False,
    }]
    assert conn.cur.executed[0][1] == ("L1",)


def test_list_members_skips_profiles_without_id(monkeypatch):
    import golfleague.datastore_pg as pg
    pg = importlib.reload(pg)
    _patch_conn(monkeypatch, pg, [{"id": "u1", "name": None, "username": "ace"}, {"id": None, "name": "x"}])
    assert pg.list_members("L1") == [{"id": "u1", "name": "ace"}]


def test_get_points_system_normalizes_stored_rules(monkeypatch):
    import golfleague.datastore_pg as pg
    pg = importlib.reload(pg)
    _patch_conn(monkeypatch, pg, [{
        "points_system": {"pointsTable": {"1": "4"}},
        "points_version": 3,
        "points_updated_at": datetime(2025, 1, 2, 3, 4, 5),
    }])
    ps = pg.get_points_system("L1")
    assert ps["rules"]["placement_points"] == {1: 4}
    assert ps["version"] == 3
    assert ps["updated_at"] == "2025-01-02T03:04:05Z"


def test_update_round_points_batches_rows(monkeypatch):
    import golfleague.datastore_pg as pg
    pg = importlib.reload(pg)
    conn = _patch_conn(monkeypatch, pg, [])
    captured = {}

    def fake_execute_values(cur, sql, rows):
        captured["rows"] = rows

    monkeypatch.setattr(pg, "execute_values", fake_execute_values)
    pg.update_round_points([
        {"id": "r1", "points": 3, "points_breakdown": {"rank": 1}},
        {"points": 9},
    ])
    assert captured["rows"] == [("r1", 3, json.dumps({"rank": 1}))]
    assert conn.commits == 1


def test_update_round_points_noop_without_rows(monkeypatch):
    import golfleague.datastore_pg as pg
    pg = importlib.reload(pg)
    conn = _patch_conn(monkeypatch, pg, [])
    pg.update_round_points([])
    assert conn.commits == 0
