"""Print league standings from a JSON export without a database.

Usage: python scripts/standings_report.py export.json [LEAGUE_ID]

The export uses the same shape migrate_to_postgres.py imports.
"""
import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from golfleague.rounds import canonical_player, canonical_round  # noqa: E402
from golfleague.standings import build_standings  # noqa: E402


def league_tables(data, league_id=None):
    """Yield ``(league, standings)`` for each league in the export."""
    profiles = {}
    for raw in data.get("profiles", []):
        player = canonical_player(raw)
        if player:
            profiles[player["id"]] = player
    rounds = [canonical_round(r) for r in data.get("rounds", [])]

    for league in data.get("leagues", []):
        lid = str(league.get("id"))
        if league_id and lid != league_id:
            continue
        member_ids = {
            str(m.get("user_id") or m.get("userId"))
            for m in data.get("members", [])
            if str(m.get("league_id") or m.get("leagueId")) == lid
        }
        roster = [profiles[uid] for uid in sorted(member_ids) if uid in profiles]
        league_rounds = [r for r in rounds if r.get("league_id") == lid]
        rules = league.get("pointsSystem") or league.get("points_system")
        yield league, build_standings(roster, league_rounds, rules)


def format_table(standings):
    lines = [f"{'#':>3}  {'Player':<24}{'Pts':>6}{'Rnd':>5}{'Maj':>5}{'Bir':>5}{'Eag':>5}{'HIO':>5}"]
    for pos, row in enumerate(standings, start=1):
        lines.append(
            f"{pos:>3}  {row['name'][:24]:<24}{row['points']:>6}{row['rounds']:>5}"
            f"{row['majors']:>5}{row['birdies']:>5}{row['eagles']:>5}{row['hio']:>5}"
        )
    return "\n".join(lines)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print(__doc__)
        return 1
    with open(argv[0]) as f:
        data = json.load(f)
    for league, standings in league_tables(data, argv[1] if len(argv) > 1 else None):
        print(f"\n{league.get('name') or league.get('id')}")
        print(format_table(standings))
    return 0


if __name__ == "__main__":
    sys.exit(main())
