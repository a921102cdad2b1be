"""
Roster allocation: the draft rules.

assign() validates against the league it is given and returns a new aggregate; it never
mutates its input. Atomicity against concurrent drafts comes from the caller saving the
result with the version it loaded (see LeagueService.draft_chef).
"""
from __future__ import annotations

from datetime import datetime, timezone

from chef_league.errors import (
    ChefAlreadyDrafted,
    Forbidden,
    InvalidLeagueSettings,
    LeagueNotInDraft,
    NotAMember,
    NotFound,
    RosterFull,
)
from chef_league.models import League, LeagueStatus, RosterSlot
from chef_league.services.lifecycle import require_manager


def assign(league: League, acting_user: str, chef_id: str, now: datetime | None = None) -> League:
    """
    Draft chef_id onto acting_user's roster. Checks, first failure wins:
    league in draft, actor is a member, actor's roster has room, chef not on any roster
    in this league (benched slots included).
    """
    if league.status != LeagueStatus.DRAFT:
        raise LeagueNotInDraft(f"League is not in draft mode (current: {league.status})")
    member = league.member(acting_user)
    if member is None:
        raise NotAMember("You are not a member of this league")
    if len(member.roster) >= league.max_roster_size:
        raise RosterFull(f"Your roster is full ({league.max_roster_size} chefs)")
    holder = league.holder_of(chef_id)
    if holder is not None:
        raise ChefAlreadyDrafted("This chef has already been drafted")

    updated = league.copy()
    slot = RosterSlot(chef_id=chef_id, drafted_at=now or datetime.now(timezone.utc), active=True)
    updated.member(acting_user).roster.append(slot)
    return updated


def update_draft_order(league: League, acting_user: str, order: list[str]) -> League:
    """Replace the draft order. Owner/admin only; every entry must be a distinct member."""
    require_manager(league, acting_user)
    if len(set(order)) != len(order):
        raise InvalidLeagueSettings("Draft order contains duplicate members")
    strangers = [u for u in order if league.member(u) is None]
    if strangers:
        raise InvalidLeagueSettings(f"Draft order contains non-members: {strangers}")
    updated = league.copy()
    updated.draft_order = list(order)
    return updated


def set_slot_active(league: League, acting_user: str, chef_id: str, active: bool) -> League:
    """Bench or re-activate a chef on the actor's own roster. Not allowed once completed."""
    if league.status == LeagueStatus.COMPLETED:
        raise Forbidden("League is completed; rosters are frozen")
    member = league.member(acting_user)
    if member is None:
        raise NotAMember("You are not a member of this league")
    if member.slot_for(chef_id) is None:
        raise NotFound(f"Chef {chef_id} is not on your roster")
    updated = league.copy()
    updated.member(acting_user).slot_for(chef_id).active = active
    return updated
