"""
In-process record store. Same version contract as SqliteRecordStore; used by tests and
single-process demos. Records are deep-copied in and out so callers never share state.
"""
from __future__ import annotations

import threading
from dataclasses import replace

from chef_league.errors import NotFound, VersionConflict
from chef_league.models import Chef, League, WeeklyPerformanceEntry

from .store import InviteCodeTaken, RecordStore, WeeklyWrite, utcnow


class InMemoryRecordStore(RecordStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._leagues: dict[str, League] = {}
        self._chefs: dict[str, Chef] = {}

    # ---------- Leagues ----------

    def create_league(self, league: League) -> League:
        with self._lock:
            if any(l.invite_code == league.invite_code for l in self._leagues.values()):
                raise InviteCodeTaken(league.invite_code)
            stored = league.copy()
            stored.version = 1
            self._leagues[stored.id] = stored
            return stored.copy()

    def load_league(self, league_id: str) -> League:
        with self._lock:
            league = self._leagues.get(league_id)
            if league is None:
                raise NotFound(f"League not found: {league_id}")
            return league.copy()

    def find_league_by_invite_code(self, invite_code: str) -> League:
        with self._lock:
            for league in self._leagues.values():
                if league.invite_code == invite_code:
                    return league.copy()
        raise NotFound("League not found with that invite code")

    def list_leagues_for_user(self, user_id: str) -> list[League]:
        with self._lock:
            found = [l.copy() for l in self._leagues.values() if l.member(user_id) is not None]
        return sorted(found, key=lambda l: l.created_at, reverse=True)

    def save_league(self, league: League, expected_version: int) -> League:
        with self._lock:
            current = self._leagues.get(league.id)
            if current is None:
                raise NotFound(f"League not found: {league.id}")
            if current.version != expected_version:
                raise VersionConflict("league", league.id, expected_version, current.version)
            stored = league.copy()
            stored.version = expected_version + 1
            self._leagues[stored.id] = stored
            return stored.copy()

    # ---------- Chefs ----------

    def create_chef(self, chef: Chef) -> Chef:
        with self._lock:
            stored = chef.copy()
            stored.version = 1
            self._chefs[stored.id] = stored
            return stored.copy()

    def load_chef(self, chef_id: str) -> Chef:
        with self._lock:
            chef = self._chefs.get(chef_id)
            if chef is None:
                raise NotFound(f"Chef not found: {chef_id}")
            return chef.copy()

    def list_chefs(self) -> list[Chef]:
        with self._lock:
            chefs = [c.copy() for c in self._chefs.values()]
        return sorted(chefs, key=lambda c: (-c.stats.total_points, c.name))

    def save_chef(self, chef: Chef, expected_version: int) -> Chef:
        with self._lock:
            return self._save_chef(chef, expected_version)

    def increment_member_scores(self, chef_id: str, delta: int) -> list[str]:
        with self._lock:
            return self._increment_scores(chef_id, delta)

    def apply_weekly_batch(self, writes: list[WeeklyWrite]) -> list[tuple[Chef, list[str]]]:
        with self._lock:
            # All versions are checked before anything is written.
            for w in writes:
                self._check_chef_version(w.chef.id, w.expected_version)
            return [
                (self._save_chef(w.chef, w.expected_version), self._increment_scores(w.chef.id, w.points_delta))
                for w in writes
            ]

    def _check_chef_version(self, chef_id: str, expected_version: int) -> Chef:
        current = self._chefs.get(chef_id)
        if current is None:
            raise NotFound(f"Chef not found: {chef_id}")
        if current.version != expected_version:
            raise VersionConflict("chef", chef_id, expected_version, current.version)
        return current

    def _save_chef(self, chef: Chef, expected_version: int) -> Chef:
        current = self._check_chef_version(chef.id, expected_version)
        stored = chef.copy()
        # Stored entries are never rewritten; only new weeks are appended.
        stored_weeks = {e.week for e in current.weekly_performance}
        entries = list(current.weekly_performance)
        for e in stored.weekly_performance:
            if e.week not in stored_weeks:
                entries.append(e if e.recorded_at is not None else _stamped(e))
        stored.weekly_performance = entries
        stored.version = expected_version + 1
        self._chefs[stored.id] = stored
        return stored.copy()

    def _increment_scores(self, chef_id: str, delta: int) -> list[str]:
        touched: list[str] = []
        for league_id in sorted(self._leagues):
            league = self._leagues[league_id]
            hit = False
            for m in league.members:
                slot = m.slot_for(chef_id)
                if slot is not None and slot.active:
                    m.score += delta
                    hit = True
            if hit:
                league.version += 1
                touched.append(league_id)
        return touched


def _stamped(entry: WeeklyPerformanceEntry) -> WeeklyPerformanceEntry:
    return replace(entry, recorded_at=utcnow())
