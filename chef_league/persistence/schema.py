"""
SQLite schema for chef league entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def users_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        username TEXT,
        password_hash TEXT,
        is_admin INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_users_username ON users(username);
    """


def leagues_schema() -> str:
    """League aggregate root. status: draft | active | completed. version: optimistic lock token."""
    return """
    CREATE TABLE IF NOT EXISTS leagues (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        season INTEGER NOT NULL,
        created_by TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'draft',
        current_week INTEGER NOT NULL DEFAULT 1,
        max_members INTEGER NOT NULL,
        max_roster_size INTEGER NOT NULL,
        invite_code TEXT NOT NULL,
        scoring_settings TEXT NOT NULL,
        draft_order TEXT NOT NULL DEFAULT '[]',
        version INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_leagues_invite_code ON leagues(invite_code);
    CREATE INDEX IF NOT EXISTS ix_leagues_status ON leagues(status);
    """


def league_members_schema() -> str:
    """Members embedded in a league. position keeps join order (leaderboard tie-break)."""
    return """
    CREATE TABLE IF NOT EXISTS league_members (
        league_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'member',
        score INTEGER NOT NULL DEFAULT 0,
        position INTEGER NOT NULL,
        joined_at TEXT NOT NULL,
        PRIMARY KEY (league_id, user_id),
        FOREIGN KEY (league_id) REFERENCES leagues(id)
    );
    CREATE INDEX IF NOT EXISTS ix_league_members_user ON league_members(user_id);
    """


def roster_slots_schema() -> str:
    """One row per drafted chef. UNIQUE(league_id, chef_id): a chef sits on one roster per league."""
    return """
    CREATE TABLE IF NOT EXISTS roster_slots (
        league_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        chef_id TEXT NOT NULL,
        position INTEGER NOT NULL,
        drafted_at TEXT NOT NULL,
        active INTEGER NOT NULL DEFAULT 1,
        FOREIGN KEY (league_id, user_id) REFERENCES league_members(league_id, user_id)
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_roster_slots_league_chef ON roster_slots(league_id, chef_id);
    CREATE INDEX IF NOT EXISTS ix_roster_slots_chef ON roster_slots(chef_id);
    """


def chefs_schema() -> str:
    """Global contestants. status: active | eliminated | winner."""
    return """
    CREATE TABLE IF NOT EXISTS chefs (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        bio TEXT NOT NULL DEFAULT '',
        hometown TEXT NOT NULL DEFAULT '',
        specialty TEXT NOT NULL DEFAULT '',
        image TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT 'active',
        elimination_week INTEGER,
        wins INTEGER NOT NULL DEFAULT 0,
        eliminations INTEGER NOT NULL DEFAULT 0,
        quickfire_wins INTEGER NOT NULL DEFAULT 0,
        challenge_wins INTEGER NOT NULL DEFAULT 0,
        lck_wins INTEGER NOT NULL DEFAULT 0,
        total_points INTEGER NOT NULL DEFAULT 0,
        version INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS ix_chefs_total_points ON chefs(total_points);
    """


def weekly_performances_schema() -> str:
    """Append-only. One entry per (chef, week)."""
    return """
    CREATE TABLE IF NOT EXISTS weekly_performances (
        chef_id TEXT NOT NULL,
        week INTEGER NOT NULL,
        points INTEGER NOT NULL,
        highlights TEXT NOT NULL,
        rank INTEGER,
        notes TEXT,
        seq INTEGER NOT NULL,
        recorded_at TEXT NOT NULL,
        PRIMARY KEY (chef_id, week),
        FOREIGN KEY (chef_id) REFERENCES chefs(id)
    );
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution. Order: users, leagues, league_members, roster_slots, chefs, weekly_performances."""
    return "\n".join([
        users_schema(),
        leagues_schema(),
        league_members_schema(),
        roster_slots_schema(),
        chefs_schema(),
        weekly_performances_schema(),
    ])
