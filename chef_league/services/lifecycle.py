"""
League lifecycle: status state machine and owner/admin gating of league-level fields.
Operates on League aggregates in memory; LeagueService handles persistence.
"""
from __future__ import annotations

from typing import Any

from chef_league.errors import Forbidden, InvalidLeagueSettings, InvalidTransition
from chef_league.models import DEFAULT_SCORING_SETTINGS, League, LeagueStatus, Member

# ---------- Valid transitions ----------

_VALID_TRANSITIONS: dict[str, set[str]] = {
    LeagueStatus.DRAFT: {LeagueStatus.ACTIVE},
    LeagueStatus.ACTIVE: {LeagueStatus.COMPLETED},
    LeagueStatus.COMPLETED: set(),
}

# Fields a manager may change through update_settings.
EDITABLE_FIELDS = ("name", "max_members", "max_roster_size", "scoring_settings", "status", "current_week")


def _status(value: Any) -> LeagueStatus:
    try:
        return LeagueStatus(value)
    except ValueError as e:
        raise InvalidTransition(f"Unknown league status: {value!r}") from e


def require_manager(league: League, acting_user: str) -> Member:
    """Return the acting member if owner/admin, else raise Forbidden."""
    member = league.member(acting_user)
    if member is None or not member.is_manager:
        raise Forbidden("Only the league owner or an admin can change this league")
    return member


def can_transition(current: Any, new_status: Any) -> bool:
    return LeagueStatus(new_status) in _VALID_TRANSITIONS.get(LeagueStatus(current), set())


def transition(league: League, acting_user: str, new_status: Any) -> League:
    """
    Move league to new_status. Valid: draft -> active -> completed.
    Roster completeness is not required for either step.
    """
    require_manager(league, acting_user)
    current = _status(league.status)
    target = _status(new_status)
    allowed = _VALID_TRANSITIONS[current]
    if target not in allowed:
        allowed_names = sorted(s.value for s in allowed)
        raise InvalidTransition(
            f"Invalid transition: {current.value} -> {target.value}. Allowed from {current.value}: {allowed_names}"
        )
    updated = league.copy()
    updated.status = target.value
    return updated


def update_settings(league: League, acting_user: str, **fields: Any) -> tuple[League, dict[str, Any]]:
    """
    Partial update of league-level fields by an owner/admin.
    Returns the updated copy and the fields that actually changed.
    """
    require_manager(league, acting_user)
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise InvalidLeagueSettings(f"Unknown league fields: {sorted(unknown)}")

    updated = league.copy()
    changed: dict[str, Any] = {}

    if fields.get("name") is not None:
        name = str(fields["name"]).strip()
        if not name:
            raise InvalidLeagueSettings("name must not be empty")
        updated.name = name
    if fields.get("max_members") is not None:
        max_members = int(fields["max_members"])
        if max_members < max(1, len(updated.members)):
            raise InvalidLeagueSettings(
                f"max_members must be at least {max(1, len(updated.members))} (current member count)"
            )
        updated.max_members = max_members
    if fields.get("max_roster_size") is not None:
        max_roster = int(fields["max_roster_size"])
        longest = max((len(m.roster) for m in updated.members), default=0)
        if max_roster < max(1, longest):
            raise InvalidLeagueSettings(f"max_roster_size must be at least {max(1, longest)}")
        updated.max_roster_size = max_roster
    if fields.get("scoring_settings") is not None:
        updated.scoring_settings = merge_scoring_settings(updated.scoring_settings, fields["scoring_settings"])
    if fields.get("current_week") is not None:
        week = fields["current_week"]
        if isinstance(week, bool) or not isinstance(week, int) or week < 1:
            raise InvalidLeagueSettings("current_week must be an integer >= 1")
        updated.current_week = week
    if fields.get("status") is not None and _status(fields["status"]) != _status(league.status):
        updated = transition(updated, acting_user, fields["status"])

    for name in EDITABLE_FIELDS:
        if getattr(updated, name) != getattr(league, name):
            changed[name] = getattr(updated, name)
    return updated, changed


def merge_scoring_settings(current: dict[str, int], incoming: dict[str, Any]) -> dict[str, int]:
    """Overlay named point values. Names outside the standard table are rejected."""
    unknown = set(incoming) - set(DEFAULT_SCORING_SETTINGS)
    if unknown:
        raise InvalidLeagueSettings(f"Unknown scoring settings: {sorted(unknown)}")
    merged = dict(current)
    for k, v in incoming.items():
        if isinstance(v, bool) or not isinstance(v, int):
            raise InvalidLeagueSettings(f"Scoring setting {k} must be an integer")
        merged[k] = v
    return merged
