"""
League-centric service: creation, membership, lifecycle, drafting, standings.
Load aggregate -> validate/mutate via lifecycle/allocator -> save with expected version
-> announce. A VersionConflict re-runs the whole check sequence on fresh state.
"""
from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from chef_league.config import Settings
from chef_league.errors import (
    AlreadyMember,
    ConcurrencyRetryExhausted,
    Forbidden,
    InvalidLeagueSettings,
    InvalidTransition,
    LeagueFull,
    VersionConflict,
)
from chef_league.models import DEFAULT_SCORING_SETTINGS, League, LeagueStatus, Member, MemberRole
from chef_league.persistence.store import InviteCodeTaken, RecordStore
from chef_league.services import allocator, lifecycle
from chef_league.services.announcer import (
    LEAGUE_DRAFT_ORDER_CHANGED,
    LEAGUE_MEMBERS_CHANGED,
    LEAGUE_UPDATED,
    EventAnnouncer,
    LoggingAnnouncer,
    league_payload,
    safe_announce,
)
from chef_league.services.leaderboard import Standing, leaderboard

logger = logging.getLogger(__name__)

_INVITE_CODE_ATTEMPTS = 10


def generate_invite_code() -> str:
    """8 uppercase hex characters."""
    return secrets.token_hex(4).upper()


def members_snapshot(league: League) -> list[dict[str, Any]]:
    return [m.to_dict() for m in league.members]


class LeagueService:
    """
    Domain orchestration for leagues. Persistence is delegated to the record store;
    announcements to the event announcer.
    """

    def __init__(
        self,
        store: RecordStore,
        announcer: EventAnnouncer | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._announcer = announcer or LoggingAnnouncer()
        self._settings = settings or Settings()

    # ---------- Commit loop ----------

    def _commit(self, league_id: str, mutate: Callable[[League], League], action: str) -> League:
        """
        Optimistic read-modify-write. mutate() receives a freshly loaded league and
        returns the new aggregate (or raises a domain error, which aborts with no change).
        """
        attempts = self._settings.max_commit_attempts
        for attempt in range(1, attempts + 1):
            league = self._store.load_league(league_id)
            updated = mutate(league)
            try:
                return self._store.save_league(updated, expected_version=league.version)
            except VersionConflict as e:
                logger.warning("%s: version conflict on attempt %d/%d (%s)", action, attempt, attempts, e)
        raise ConcurrencyRetryExhausted(f"{action}: league {league_id} is busy, please try again")

    # ---------- Create / read ----------

    def create_league(
        self,
        acting_user: str,
        name: str,
        season: int,
        max_members: int | None = None,
        max_roster_size: int | None = None,
        scoring_settings: dict[str, int] | None = None,
    ) -> League:
        """Create a league in draft. Creator becomes its single owner with score 0."""
        name = (name or "").strip()
        if not name:
            raise InvalidLeagueSettings("Name is required")
        if isinstance(season, bool) or not isinstance(season, int) or season < 1:
            raise InvalidLeagueSettings("Season must be a positive integer")
        max_members = max_members or self._settings.default_max_members
        max_roster_size = max_roster_size or self._settings.default_max_roster_size
        if max_members < 1 or max_roster_size < 1:
            raise InvalidLeagueSettings("max_members and max_roster_size must be >= 1")
        settings = lifecycle.merge_scoring_settings(dict(DEFAULT_SCORING_SETTINGS), scoring_settings or {})

        now = datetime.now(timezone.utc)
        for _ in range(_INVITE_CODE_ATTEMPTS):
            league = League(
                id=str(uuid.uuid4()),
                name=name,
                season=season,
                created_by=acting_user,
                invite_code=generate_invite_code(),
                created_at=now,
                max_members=max_members,
                max_roster_size=max_roster_size,
                scoring_settings=settings,
                members=[Member(user_id=acting_user, role=MemberRole.OWNER.value, joined_at=now)],
            )
            try:
                created = self._store.create_league(league)
            except InviteCodeTaken:
                logger.warning("invite code collision, regenerating")
                continue
            logger.info("league %s created by %s (season %d)", created.id, acting_user, season)
            safe_announce(
                self._announcer, LEAGUE_MEMBERS_CHANGED,
                league_payload(created.id, {"members": members_snapshot(created)}),
            )
            return created
        raise ConcurrencyRetryExhausted("Could not allocate a unique invite code, please try again")

    def get_league(self, league_id: str, acting_user: str) -> League:
        league = self._store.load_league(league_id)
        if league.member(acting_user) is None:
            raise Forbidden("Not authorized to access this league")
        return league

    def list_leagues(self, user_id: str) -> list[League]:
        return self._store.list_leagues_for_user(user_id)

    # ---------- Membership ----------

    def join_league(self, acting_user: str, invite_code: str) -> League:
        """Join by invite code during draft or active. Fails when full or already joined."""
        code = (invite_code or "").strip().upper()
        if not code:
            raise InvalidLeagueSettings("Invite code is required")
        league_id = self._store.find_league_by_invite_code(code).id

        def mutate(league: League) -> League:
            if league.status == LeagueStatus.COMPLETED:
                raise InvalidTransition("League is completed and no longer accepts members")
            if len(league.members) >= league.max_members:
                raise LeagueFull("League is full")
            if league.member(acting_user) is not None:
                raise AlreadyMember("You are already a member of this league")
            updated = league.copy()
            updated.members.append(
                Member(user_id=acting_user, role=MemberRole.MEMBER.value, joined_at=datetime.now(timezone.utc))
            )
            return updated

        saved = self._commit(league_id, mutate, "join_league")
        logger.info("user %s joined league %s", acting_user, league_id)
        safe_announce(
            self._announcer, LEAGUE_MEMBERS_CHANGED,
            league_payload(league_id, {"members": members_snapshot(saved)}),
        )
        return saved

    # ---------- Lifecycle ----------

    def transition_league_status(self, league_id: str, acting_user: str, new_status: str) -> League:
        """draft -> active -> completed; owner/admin only."""
        saved = self._commit(
            league_id, lambda l: lifecycle.transition(l, acting_user, new_status), "transition_league_status"
        )
        logger.info("league %s status -> %s", league_id, saved.status)
        safe_announce(self._announcer, LEAGUE_UPDATED, league_payload(league_id, {"status": saved.status}))
        return saved

    def update_league(self, league_id: str, acting_user: str, **fields: Any) -> League:
        changed: dict[str, Any] = {}

        def mutate(league: League) -> League:
            updated, diff = lifecycle.update_settings(league, acting_user, **fields)
            changed.clear()
            changed.update(diff)
            return updated

        saved = self._commit(league_id, mutate, "update_league")
        if changed:
            safe_announce(self._announcer, LEAGUE_UPDATED, league_payload(league_id, changed))
        return saved

    # ---------- Draft ----------

    def draft_chef(self, league_id: str, acting_user: str, chef_id: str) -> League:
        """
        Draft a chef onto the actor's roster. Serializable per league: the uniqueness
        check is re-run against fresh state whenever another writer got there first.
        """
        def mutate(league: League) -> League:
            updated = allocator.assign(league, acting_user, chef_id)
            # Raises NotFound for an unknown chef once the draft rules have passed.
            self._store.load_chef(chef_id)
            return updated

        saved = self._commit(league_id, mutate, "draft_chef")
        logger.info("league %s: %s drafted chef %s", league_id, acting_user, chef_id)
        safe_announce(
            self._announcer, LEAGUE_MEMBERS_CHANGED,
            league_payload(league_id, {"members": members_snapshot(saved)}),
        )
        return saved

    def update_draft_order(self, league_id: str, acting_user: str, order: list[str]) -> League:
        saved = self._commit(
            league_id, lambda l: allocator.update_draft_order(l, acting_user, order), "update_draft_order"
        )
        safe_announce(
            self._announcer, LEAGUE_DRAFT_ORDER_CHANGED,
            league_payload(league_id, {"draft_order": list(saved.draft_order)}),
        )
        return saved

    def set_roster_slot_active(self, league_id: str, acting_user: str, chef_id: str, active: bool) -> League:
        """Bench (active=False) or re-activate a chef on the actor's roster."""
        saved = self._commit(
            league_id, lambda l: allocator.set_slot_active(l, acting_user, chef_id, active), "set_roster_slot_active"
        )
        safe_announce(
            self._announcer, LEAGUE_MEMBERS_CHANGED,
            league_payload(league_id, {"members": members_snapshot(saved)}),
        )
        return saved

    # ---------- Standings ----------

    def leaderboard(self, league_id: str, acting_user: str) -> list[Standing]:
        return leaderboard(self._store.load_league(league_id), acting_user)
