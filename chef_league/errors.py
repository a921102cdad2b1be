"""
Domain errors. Every rejected mutation names the precondition that failed via `code`,
so draft clients can tell "roster full" from "chef taken".
"""
from __future__ import annotations


class LeagueError(ValueError):
    """Base class for user-facing domain errors."""

    code = "league_error"


class NotFound(LeagueError):
    """League, chef, member or invite code does not exist."""

    code = "not_found"


class Forbidden(LeagueError):
    """Role or membership check failed."""

    code = "forbidden"


class NotAMember(Forbidden):
    code = "not_a_member"


class LeagueNotInDraft(LeagueError):
    code = "league_not_in_draft"


class RosterFull(LeagueError):
    code = "roster_full"


class ChefAlreadyDrafted(LeagueError):
    code = "chef_already_drafted"


class InvalidTransition(LeagueError):
    """Invalid league status transition (e.g. draft -> completed)."""

    code = "invalid_transition"


class InvalidScoringInput(LeagueError):
    code = "invalid_scoring_input"


class InvalidLeagueSettings(LeagueError):
    code = "invalid_league_settings"


class LeagueFull(LeagueError):
    code = "league_full"


class AlreadyMember(LeagueError):
    code = "already_member"


class VersionConflict(Exception):
    """
    The stored record moved since it was loaded. Internal retry signal, never shown
    to users directly.
    """

    def __init__(self, kind: str, record_id: str, expected: int, actual: int | None) -> None:
        super().__init__(f"{kind} {record_id}: expected version {expected}, found {actual}")
        self.kind = kind
        self.record_id = record_id
        self.expected = expected
        self.actual = actual


class ConcurrencyRetryExhausted(LeagueError):
    """Too many concurrent writers; the caller should try again."""

    code = "try_again"
