"""
Record store: load/persist League and Chef aggregates.
No business logic. Every save carries the version the caller loaded; a moved version
raises VersionConflict so the caller can re-run its checks against fresh state.
"""
from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from chef_league.errors import NotFound, VersionConflict
from chef_league.models import (
    Chef,
    ChefStats,
    League,
    Member,
    RosterSlot,
    WeeklyPerformanceEntry,
)

from .db import get_connection, init_db


class InviteCodeTaken(Exception):
    """create_league collided with an existing invite code."""


@dataclass(frozen=True)
class WeeklyWrite:
    """One chef's scored week: the updated chef, the version it was loaded at, the points to credit."""
    chef: Chef
    expected_version: int
    points_delta: int


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- Interface ----------


class RecordStore(ABC):
    """Boundary contract used by the services. Implementations must honor versions."""

    @abstractmethod
    def create_league(self, league: League) -> League:
        """Insert a new league. Raises InviteCodeTaken on invite code collision."""

    @abstractmethod
    def load_league(self, league_id: str) -> League:
        """Raises NotFound."""

    @abstractmethod
    def find_league_by_invite_code(self, invite_code: str) -> League:
        """Raises NotFound."""

    @abstractmethod
    def list_leagues_for_user(self, user_id: str) -> list[League]:
        ...

    @abstractmethod
    def save_league(self, league: League, expected_version: int) -> League:
        """Persist the whole aggregate. Returns it with the new version. Raises VersionConflict."""

    @abstractmethod
    def create_chef(self, chef: Chef) -> Chef:
        ...

    @abstractmethod
    def load_chef(self, chef_id: str) -> Chef:
        """Raises NotFound."""

    @abstractmethod
    def list_chefs(self) -> list[Chef]:
        """All chefs, highest total points first."""

    @abstractmethod
    def save_chef(self, chef: Chef, expected_version: int) -> Chef:
        """Persist chef fields and append new weekly entries. Raises VersionConflict."""

    @abstractmethod
    def increment_member_scores(self, chef_id: str, delta: int) -> list[str]:
        """
        Atomically add delta to every member holding an active slot for chef_id.
        Bumps each touched league's version. Returns touched league ids.
        """

    @abstractmethod
    def apply_weekly_batch(self, writes: list[WeeklyWrite]) -> list[tuple[Chef, list[str]]]:
        """
        save_chef + increment_member_scores for every write in one atomic step.
        Any VersionConflict leaves every chef and league untouched.
        Returns (saved chef, touched league ids) per write, in order.
        """


# ---------- SQLite ----------


class SqliteRecordStore(RecordStore):
    """
    SQLite-backed store. One connection per operation so it is safe to share across
    request threads; writes run under BEGIN IMMEDIATE.
    """

    def __init__(self, db_path: str | Path, initialize: bool = True) -> None:
        self.db_path = Path(db_path)
        if initialize:
            init_db(self.db_path)

    @contextmanager
    def _transaction(self, immediate: bool = True) -> Iterator[sqlite3.Connection]:
        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    # ---------- Leagues ----------

    def create_league(self, league: League) -> League:
        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO leagues (id, name, season, created_by, status, current_week, max_members, "
                    "max_roster_size, invite_code, scoring_settings, draft_order, version, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        league.id, league.name, league.season, league.created_by, _value(league.status),
                        league.current_week, league.max_members, league.max_roster_size, league.invite_code,
                        json.dumps(league.scoring_settings), json.dumps(league.draft_order), 1,
                        league.created_at.isoformat(),
                    ),
                )
                self._write_members(conn, league)
        except sqlite3.IntegrityError as e:
            if "invite_code" in str(e):
                raise InviteCodeTaken(league.invite_code) from e
            raise
        out = league.copy()
        out.version = 1
        return out

    def load_league(self, league_id: str) -> League:
        with self._transaction(immediate=False) as conn:
            row = conn.execute("SELECT * FROM leagues WHERE id = ?", (league_id,)).fetchone()
            if row is None:
                raise NotFound(f"League not found: {league_id}")
            return self._read_league(conn, row)

    def find_league_by_invite_code(self, invite_code: str) -> League:
        with self._transaction(immediate=False) as conn:
            row = conn.execute("SELECT * FROM leagues WHERE invite_code = ?", (invite_code,)).fetchone()
            if row is None:
                raise NotFound("League not found with that invite code")
            return self._read_league(conn, row)

    def list_leagues_for_user(self, user_id: str) -> list[League]:
        with self._transaction(immediate=False) as conn:
            rows = conn.execute(
                "SELECT l.* FROM leagues l JOIN league_members m ON m.league_id = l.id "
                "WHERE m.user_id = ? ORDER BY l.created_at DESC",
                (user_id,),
            ).fetchall()
            return [self._read_league(conn, r) for r in rows]

    def save_league(self, league: League, expected_version: int) -> League:
        with self._transaction() as conn:
            self._check_version(conn, "leagues", "league", league.id, expected_version)
            conn.execute(
                "UPDATE leagues SET name = ?, season = ?, status = ?, current_week = ?, max_members = ?, "
                "max_roster_size = ?, scoring_settings = ?, draft_order = ?, version = version + 1 "
                "WHERE id = ? AND version = ?",
                (
                    league.name, league.season, _value(league.status), league.current_week,
                    league.max_members, league.max_roster_size, json.dumps(league.scoring_settings),
                    json.dumps(league.draft_order), league.id, expected_version,
                ),
            )
            conn.execute("DELETE FROM roster_slots WHERE league_id = ?", (league.id,))
            conn.execute("DELETE FROM league_members WHERE league_id = ?", (league.id,))
            self._write_members(conn, league)
        out = league.copy()
        out.version = expected_version + 1
        return out

    def _check_version(
        self, conn: sqlite3.Connection, table: str, kind: str, record_id: str, expected: int
    ) -> None:
        row = conn.execute(f"SELECT version FROM {table} WHERE id = ?", (record_id,)).fetchone()
        if row is None:
            raise NotFound(f"{kind.capitalize()} not found: {record_id}")
        if row["version"] != expected:
            raise VersionConflict(kind, record_id, expected, row["version"])

    def _write_members(self, conn: sqlite3.Connection, league: League) -> None:
        for pos, m in enumerate(league.members):
            conn.execute(
                "INSERT INTO league_members (league_id, user_id, role, score, position, joined_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (league.id, m.user_id, _value(m.role), m.score, pos, m.joined_at.isoformat()),
            )
            for spos, s in enumerate(m.roster):
                conn.execute(
                    "INSERT INTO roster_slots (league_id, user_id, chef_id, position, drafted_at, active) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (league.id, m.user_id, s.chef_id, spos, s.drafted_at.isoformat(), 1 if s.active else 0),
                )

    def _read_league(self, conn: sqlite3.Connection, row: sqlite3.Row) -> League:
        league_id = row["id"]
        slot_rows = conn.execute(
            "SELECT user_id, chef_id, drafted_at, active FROM roster_slots WHERE league_id = ? "
            "ORDER BY user_id, position",
            (league_id,),
        ).fetchall()
        rosters: dict[str, list[RosterSlot]] = {}
        for s in slot_rows:
            rosters.setdefault(s["user_id"], []).append(
                RosterSlot(chef_id=s["chef_id"], drafted_at=_parse_datetime(s["drafted_at"]), active=bool(s["active"]))
            )
        member_rows = conn.execute(
            "SELECT user_id, role, score, joined_at FROM league_members WHERE league_id = ? ORDER BY position",
            (league_id,),
        ).fetchall()
        members = [
            Member(
                user_id=m["user_id"],
                role=m["role"],
                score=m["score"],
                joined_at=_parse_datetime(m["joined_at"]),
                roster=rosters.get(m["user_id"], []),
            )
            for m in member_rows
        ]
        return League(
            id=league_id,
            name=row["name"],
            season=row["season"],
            created_by=row["created_by"],
            invite_code=row["invite_code"],
            created_at=_parse_datetime(row["created_at"]),
            status=row["status"],
            current_week=row["current_week"],
            max_members=row["max_members"],
            max_roster_size=row["max_roster_size"],
            scoring_settings=json.loads(row["scoring_settings"]),
            draft_order=json.loads(row["draft_order"]),
            members=members,
            version=row["version"],
        )

    # ---------- Chefs ----------

    def create_chef(self, chef: Chef) -> Chef:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO chefs (id, name, bio, hometown, specialty, image, status, elimination_week, "
                "wins, eliminations, quickfire_wins, challenge_wins, lck_wins, total_points, version, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    chef.id, chef.name, chef.bio, chef.hometown, chef.specialty, chef.image,
                    _value(chef.status), chef.elimination_week, chef.stats.wins, chef.stats.eliminations,
                    chef.stats.quickfire_wins, chef.stats.challenge_wins, chef.stats.lck_wins,
                    chef.stats.total_points, 1, chef.created_at.isoformat(),
                ),
            )
            self._append_entries(conn, chef)
        out = chef.copy()
        out.version = 1
        return out

    def load_chef(self, chef_id: str) -> Chef:
        with self._transaction(immediate=False) as conn:
            row = conn.execute("SELECT * FROM chefs WHERE id = ?", (chef_id,)).fetchone()
            if row is None:
                raise NotFound(f"Chef not found: {chef_id}")
            return self._read_chef(conn, row)

    def list_chefs(self) -> list[Chef]:
        with self._transaction(immediate=False) as conn:
            rows = conn.execute("SELECT * FROM chefs ORDER BY total_points DESC, name").fetchall()
            return [self._read_chef(conn, r) for r in rows]

    def save_chef(self, chef: Chef, expected_version: int) -> Chef:
        with self._transaction() as conn:
            self._save_chef(conn, chef, expected_version)
        out = chef.copy()
        out.version = expected_version + 1
        return out

    def increment_member_scores(self, chef_id: str, delta: int) -> list[str]:
        with self._transaction() as conn:
            return self._increment_scores(conn, chef_id, delta)

    def apply_weekly_batch(self, writes: list[WeeklyWrite]) -> list[tuple[Chef, list[str]]]:
        results: list[tuple[Chef, list[str]]] = []
        with self._transaction() as conn:
            for w in writes:
                self._save_chef(conn, w.chef, w.expected_version)
                league_ids = self._increment_scores(conn, w.chef.id, w.points_delta)
                out = w.chef.copy()
                out.version = w.expected_version + 1
                results.append((out, league_ids))
        return results

    def _save_chef(self, conn: sqlite3.Connection, chef: Chef, expected_version: int) -> None:
        self._check_version(conn, "chefs", "chef", chef.id, expected_version)
        conn.execute(
            "UPDATE chefs SET name = ?, bio = ?, hometown = ?, specialty = ?, image = ?, status = ?, "
            "elimination_week = ?, wins = ?, eliminations = ?, quickfire_wins = ?, challenge_wins = ?, "
            "lck_wins = ?, total_points = ?, version = version + 1 WHERE id = ? AND version = ?",
            (
                chef.name, chef.bio, chef.hometown, chef.specialty, chef.image, _value(chef.status),
                chef.elimination_week, chef.stats.wins, chef.stats.eliminations, chef.stats.quickfire_wins,
                chef.stats.challenge_wins, chef.stats.lck_wins, chef.stats.total_points,
                chef.id, expected_version,
            ),
        )
        self._append_entries(conn, chef)

    def _append_entries(self, conn: sqlite3.Connection, chef: Chef) -> None:
        """Insert entries not yet stored. Stored entries are never rewritten."""
        stored = {
            r["week"] for r in conn.execute(
                "SELECT week FROM weekly_performances WHERE chef_id = ?", (chef.id,)
            ).fetchall()
        }
        for seq, e in enumerate(chef.weekly_performance):
            if e.week in stored:
                continue
            recorded_at = e.recorded_at or utcnow()
            conn.execute(
                "INSERT INTO weekly_performances (chef_id, week, points, highlights, rank, notes, seq, recorded_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (chef.id, e.week, e.points, json.dumps(sorted(e.highlights)), e.rank, e.notes, seq,
                 recorded_at.isoformat()),
            )

    def _increment_scores(self, conn: sqlite3.Connection, chef_id: str, delta: int) -> list[str]:
        rows = conn.execute(
            "SELECT league_id, user_id FROM roster_slots WHERE chef_id = ? AND active = 1 ORDER BY league_id",
            (chef_id,),
        ).fetchall()
        league_ids: list[str] = []
        for r in rows:
            conn.execute(
                "UPDATE league_members SET score = score + ? WHERE league_id = ? AND user_id = ?",
                (delta, r["league_id"], r["user_id"]),
            )
            conn.execute("UPDATE leagues SET version = version + 1 WHERE id = ?", (r["league_id"],))
            if r["league_id"] not in league_ids:
                league_ids.append(r["league_id"])
        return league_ids

    def _read_chef(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Chef:
        entries = [
            WeeklyPerformanceEntry(
                week=e["week"],
                points=e["points"],
                highlights=frozenset(json.loads(e["highlights"])),
                rank=e["rank"],
                notes=e["notes"],
                recorded_at=_parse_datetime(e["recorded_at"]),
            )
            for e in conn.execute(
                "SELECT week, points, highlights, rank, notes, recorded_at FROM weekly_performances "
                "WHERE chef_id = ? ORDER BY seq",
                (row["id"],),
            ).fetchall()
        ]
        return Chef(
            id=row["id"],
            name=row["name"],
            created_at=_parse_datetime(row["created_at"]),
            bio=row["bio"],
            hometown=row["hometown"],
            specialty=row["specialty"],
            image=row["image"],
            status=row["status"],
            elimination_week=row["elimination_week"],
            stats=ChefStats(
                wins=row["wins"],
                eliminations=row["eliminations"],
                quickfire_wins=row["quickfire_wins"],
                challenge_wins=row["challenge_wins"],
                lck_wins=row["lck_wins"],
                total_points=row["total_points"],
            ),
            weekly_performance=entries,
            version=row["version"],
        )


def _value(v: object) -> object:
    return getattr(v, "value", v)
