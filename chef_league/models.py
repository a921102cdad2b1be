"""
Data models for the chef league backend.
Domain objects only, no persistence or API logic.

League-centric architecture: users join leagues; members draft chefs onto rosters;
chefs are global and carry the canonical weekly performance history.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# ---------- League status (state machine) ----------
class LeagueStatus(str, Enum):
    """League lifecycle: draft → active → completed."""
    DRAFT = "draft"          # Roster allocation allowed
    ACTIVE = "active"        # Season in progress, weekly scoring
    COMPLETED = "completed"  # Terminal


class MemberRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class ChefStatus(str, Enum):
    ACTIVE = "active"
    ELIMINATED = "eliminated"
    WINNER = "winner"


# ---------- User ----------
@dataclass
class User:
    """
    An app user. username is unique (login); password_hash is never plain text.
    is_admin gates site-wide administrative actions (chef catalog, weekly scoring).
    """
    id: str
    name: str
    created_at: datetime
    username: str | None = None
    password_hash: str | None = None
    is_admin: bool = False

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
            "is_admin": self.is_admin,
        }
        if self.username is not None:
            d["username"] = self.username
        return d


# ---------- RosterSlot ----------
@dataclass
class RosterSlot:
    """
    Binding of one chef to one member within one league.
    A benched slot (active=False) stays in the roster and keeps blocking re-drafts.
    """
    chef_id: str
    drafted_at: datetime
    active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "chef_id": self.chef_id,
            "drafted_at": self.drafted_at.isoformat(),
            "active": self.active,
        }


# ---------- Member (embedded in League) ----------
@dataclass
class Member:
    """One user's participation in a league: role, score and roster."""
    user_id: str
    role: str  # MemberRole value
    joined_at: datetime
    score: int = 0
    roster: list[RosterSlot] = field(default_factory=list)

    @property
    def is_manager(self) -> bool:
        """Owners and admins may change league-level fields."""
        return self.role in (MemberRole.OWNER, MemberRole.ADMIN)

    def slot_for(self, chef_id: str) -> RosterSlot | None:
        for slot in self.roster:
            if slot.chef_id == chef_id:
                return slot
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "role": _enum_value(self.role),
            "score": self.score,
            "joined_at": self.joined_at.isoformat(),
            "roster": [s.to_dict() for s in self.roster],
        }


# ---------- Scoring settings ----------
DEFAULT_SCORING_SETTINGS: dict[str, int] = {
    "quickfire_win": 5,
    "quickfire_favorite": 1,
    "quickfire_least": -1,
    "challenge_win": 7,
    "sweep_bonus": 3,
    "top": 3,
    "bottom": -2,
    "lck_win": 2,
    "finale": 15,
    "top_chef": 30,
}


# ---------- League ----------
@dataclass
class League:
    """
    Private competition for one show season. Aggregate root for members and rosters.
    version is the optimistic concurrency token; the record store bumps it on every save.
    """
    id: str
    name: str
    season: int
    created_by: str
    invite_code: str
    created_at: datetime
    status: str = LeagueStatus.DRAFT  # LeagueStatus value
    current_week: int = 1
    max_members: int = 10
    max_roster_size: int = 5
    scoring_settings: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_SCORING_SETTINGS))
    draft_order: list[str] = field(default_factory=list)
    members: list[Member] = field(default_factory=list)
    version: int = 1

    def member(self, user_id: str) -> Member | None:
        for m in self.members:
            if m.user_id == user_id:
                return m
        return None

    def holder_of(self, chef_id: str) -> Member | None:
        """Member whose roster contains chef_id (active or benched), if any."""
        for m in self.members:
            if m.slot_for(chef_id) is not None:
                return m
        return None

    def copy(self) -> "League":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "season": self.season,
            "created_by": self.created_by,
            "status": _enum_value(self.status),
            "current_week": self.current_week,
            "max_members": self.max_members,
            "max_roster_size": self.max_roster_size,
            "invite_code": self.invite_code,
            "scoring_settings": dict(self.scoring_settings),
            "draft_order": list(self.draft_order),
            "members": [m.to_dict() for m in self.members],
            "created_at": self.created_at.isoformat(),
            "version": self.version,
        }


# ---------- Chef ----------
@dataclass
class ChefStats:
    wins: int = 0
    eliminations: int = 0
    quickfire_wins: int = 0
    challenge_wins: int = 0
    lck_wins: int = 0
    total_points: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "wins": self.wins,
            "eliminations": self.eliminations,
            "quickfire_wins": self.quickfire_wins,
            "challenge_wins": self.challenge_wins,
            "lck_wins": self.lck_wins,
            "total_points": self.total_points,
        }


@dataclass(frozen=True)
class WeeklyPerformanceEntry:
    """One chef's scored week. Immutable; at most one per (chef, week)."""
    week: int
    points: int
    highlights: frozenset[str]
    rank: int | None = None
    notes: str | None = None
    recorded_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "week": self.week,
            "points": self.points,
            "highlights": sorted(self.highlights),
        }
        if self.rank is not None:
            d["rank"] = self.rank
        if self.notes is not None:
            d["notes"] = self.notes
        if self.recorded_at is not None:
            d["recorded_at"] = self.recorded_at.isoformat()
        return d


@dataclass
class Chef:
    """
    A contestant. Global across leagues: elimination and point totals are shared by
    every league that drafted this chef.
    """
    id: str
    name: str
    created_at: datetime
    bio: str = ""
    hometown: str = ""
    specialty: str = ""
    image: str = ""
    status: str = ChefStatus.ACTIVE  # ChefStatus value
    elimination_week: int | None = None
    stats: ChefStats = field(default_factory=ChefStats)
    weekly_performance: list[WeeklyPerformanceEntry] = field(default_factory=list)
    version: int = 1

    def entry_for_week(self, week: int) -> WeeklyPerformanceEntry | None:
        for e in self.weekly_performance:
            if e.week == week:
                return e
        return None

    def copy(self) -> "Chef":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "bio": self.bio,
            "hometown": self.hometown,
            "specialty": self.specialty,
            "image": self.image,
            "status": _enum_value(self.status),
            "elimination_week": self.elimination_week,
            "stats": self.stats.to_dict(),
            "weekly_performance": [e.to_dict() for e in self.weekly_performance],
            "created_at": self.created_at.isoformat(),
        }


def _enum_value(v: Any) -> Any:
    return v.value if isinstance(v, Enum) else v
