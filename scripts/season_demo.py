#!/usr/bin/env python3
"""
Season demo: Create league → Join → Draft → Score weeks → Standings.
Run from project root: python3 scripts/season_demo.py
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from chef_league.config import Settings
from chef_league.logging_config import configure_logging
from chef_league.persistence import SqliteRecordStore
from chef_league.services import ChefService, LeagueService, ScoringService
from chef_league.services.announcer import RecordingAnnouncer

CHEFS = [
    ("Ana Ruiz", "Oaxaca", "mole"),
    ("Ben Ito", "Seattle", "seafood"),
    ("Cy Okafor", "Houston", "barbecue"),
    ("Dee Marsh", "Charleston", "pastry"),
]

WEEKS = [
    {"week": 1, "performances": [
        {"chef_id": "ana", "highlights": ["quickfire_win", "challenge_win"]},
        {"chef_id": "ben", "highlights": ["top"]},
        {"chef_id": "cy", "highlights": ["bottom", "eliminated"]},
        {"chef_id": "dee", "highlights": ["quickfire_least"]},
    ]},
    {"week": 2, "performances": [
        {"chef_id": "ana", "highlights": ["top"]},
        {"chef_id": "ben", "highlights": ["challenge_win"]},
        {"chef_id": "cy", "highlights": ["lck_win"]},
        {"chef_id": "dee", "highlights": ["bottom", "eliminated"]},
    ]},
    {"week": 3, "performances": [
        {"chef_id": "ana", "highlights": ["finale"]},
        {"chef_id": "ben", "highlights": ["finale", "challenge_win", "top_chef"]},
    ]},
]


def main() -> None:
    # Use data/season_demo.db for demo (distinct from app.db)
    db_path = PROJECT_ROOT / "data" / "season_demo.db"
    if db_path.exists():
        db_path.unlink()
    settings = Settings(db_path=db_path, log_level="WARNING")
    configure_logging(settings)

    store = SqliteRecordStore(db_path)
    announcer = RecordingAnnouncer()
    chefs = ChefService(store, announcer)
    leagues = LeagueService(store, announcer, settings)
    scoring = ScoringService(store, announcer, settings)

    # 1. Chef catalog
    for name, hometown, specialty in CHEFS:
        chefs.create_chef(name, hometown=hometown, specialty=specialty, id=name.split()[0].lower())
    print(f"Created {len(CHEFS)} chefs")

    # 2. League with two members
    league = leagues.create_league("alice", "Demo Kitchen", 22, max_roster_size=2)
    leagues.join_league("bob", league.invite_code)
    print(f"Created league: {league.name} (invite code {league.invite_code})")

    # 3. Snake-ish draft
    for user, chef_id in (("alice", "ana"), ("bob", "ben"), ("bob", "cy"), ("alice", "dee")):
        leagues.draft_chef(league.id, user, chef_id)
        print(f"  {user} drafted {chef_id}")
    leagues.transition_league_status(league.id, "alice", "active")

    # 4. Weekly scoring
    for week in WEEKS:
        scored = scoring.record_week(week)
        print(f"Week {week['week']}: " + ", ".join(f"{c.id} {c.weekly_performance[-1].points:+d}" for c in scored))

    leagues.transition_league_status(league.id, "alice", "completed")

    # 5. Standings
    print("\nFinal standings:")
    for row in leagues.leaderboard(league.id, "alice"):
        print(f"  {row.rank}. {row.user_id}: {row.score} pts ({row.roster_count} chefs)")
    print(f"\n{len(announcer.announcements)} announcements emitted")
    print("Season demo complete.")


if __name__ == "__main__":
    main()
