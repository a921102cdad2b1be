"""
Tests for league service: creation, membership, lifecycle, drafting and concurrency.
"""
from __future__ import annotations

import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from chef_league.config import Settings
from chef_league.errors import (
    AlreadyMember,
    ChefAlreadyDrafted,
    Forbidden,
    InvalidLeagueSettings,
    InvalidTransition,
    LeagueFull,
    LeagueNotInDraft,
    NotAMember,
    NotFound,
    RosterFull,
)
from chef_league.models import LeagueStatus, MemberRole
from chef_league.persistence import InMemoryRecordStore, SqliteRecordStore
from chef_league.services import ChefService, LeagueService
from chef_league.services.announcer import (
    LEAGUE_DRAFT_ORDER_CHANGED,
    LEAGUE_MEMBERS_CHANGED,
    LEAGUE_UPDATED,
    RecordingAnnouncer,
)


@pytest.fixture(params=["sqlite", "memory"])
def store(request, tmp_path):
    if request.param == "sqlite":
        return SqliteRecordStore(tmp_path / "test.db")
    return InMemoryRecordStore()


@pytest.fixture
def announcer():
    return RecordingAnnouncer()


@pytest.fixture
def service(store, announcer):
    return LeagueService(store, announcer, Settings(max_commit_attempts=50))


@pytest.fixture
def chefs(store):
    svc = ChefService(store)
    return [svc.create_chef(f"Chef {i}", id=f"c{i}") for i in range(1, 9)]


def _league_with(service, *users, **kwargs):
    league = service.create_league("alice", "Test Kitchen", 22, **kwargs)
    for u in users:
        service.join_league(u, league.invite_code)
    return service.get_league(league.id, "alice")


# ---------- Create / join ----------

def test_create_league_owner_and_defaults(service, announcer):
    league = service.create_league("alice", "  Test Kitchen ", 22)
    assert league.name == "Test Kitchen"
    assert league.status == LeagueStatus.DRAFT
    assert league.max_members == 10
    assert league.max_roster_size == 5
    assert len(league.invite_code) == 8
    assert [(m.user_id, m.role, m.score) for m in league.members] == [("alice", MemberRole.OWNER, 0)]
    assert announcer.topics() == [LEAGUE_MEMBERS_CHANGED]


@pytest.mark.parametrize("name,season", [("", 22), ("ok", 0), ("ok", True)])
def test_create_league_validation(service, name, season):
    with pytest.raises(InvalidLeagueSettings):
        service.create_league("alice", name, season)


def test_create_league_rejects_unknown_scoring_setting(service):
    with pytest.raises(InvalidLeagueSettings):
        service.create_league("alice", "Test Kitchen", 22, scoring_settings={"fan_favorite": 1})


def test_join_by_invite_code(service, announcer):
    league = service.create_league("alice", "Test Kitchen", 22)
    joined = service.join_league("bob", league.invite_code.lower())
    assert [m.user_id for m in joined.members] == ["alice", "bob"]
    assert joined.member("bob").role == MemberRole.MEMBER
    payload = announcer.for_topic(LEAGUE_MEMBERS_CHANGED)[-1]
    assert payload["league_id"] == league.id
    assert [m["user_id"] for m in payload["changed_fields"]["members"]] == ["alice", "bob"]


def test_join_errors(service):
    league = service.create_league("alice", "Test Kitchen", 22, max_members=2)
    with pytest.raises(NotFound):
        service.join_league("bob", "NOPE0000")
    with pytest.raises(AlreadyMember):
        service.join_league("alice", league.invite_code)
    service.join_league("bob", league.invite_code)
    with pytest.raises(LeagueFull):
        service.join_league("carol", league.invite_code)


def test_join_completed_league_rejected(service):
    league = service.create_league("alice", "Test Kitchen", 22)
    service.transition_league_status(league.id, "alice", "active")
    service.transition_league_status(league.id, "alice", "completed")
    with pytest.raises(InvalidTransition):
        service.join_league("bob", league.invite_code)


def test_get_and_list_leagues(service):
    league = _league_with(service, "bob")
    assert service.get_league(league.id, "bob").id == league.id
    with pytest.raises(Forbidden):
        service.get_league(league.id, "mallory")
    assert [l.id for l in service.list_leagues("bob")] == [league.id]
    assert service.list_leagues("mallory") == []


# ---------- Lifecycle ----------

def test_transition_announces_status(service, announcer):
    league = service.create_league("alice", "Test Kitchen", 22)
    updated = service.transition_league_status(league.id, "alice", "active")
    assert updated.status == LeagueStatus.ACTIVE
    assert updated.version == league.version + 1
    assert announcer.for_topic(LEAGUE_UPDATED) == [
        {"league_id": league.id, "changed_fields": {"status": "active"}}
    ]


def test_transition_rejected_leaves_state(service, announcer):
    league = _league_with(service, "bob")
    with pytest.raises(Forbidden):
        service.transition_league_status(league.id, "bob", "active")
    with pytest.raises(InvalidTransition):
        service.transition_league_status(league.id, "alice", "completed")
    assert service.get_league(league.id, "alice").status == LeagueStatus.DRAFT
    assert LEAGUE_UPDATED not in announcer.topics()


def test_update_league_announces_changed_fields(service, announcer):
    league = service.create_league("alice", "Test Kitchen", 22)
    service.update_league(league.id, "alice", name="Renamed", current_week=3)
    assert announcer.for_topic(LEAGUE_UPDATED)[-1]["changed_fields"] == {"name": "Renamed", "current_week": 3}
    before = len(announcer.announcements)
    service.update_league(league.id, "alice", name="Renamed")
    assert len(announcer.announcements) == before


# ---------- Draft ----------

def test_draft_chef(service, chefs, announcer):
    league = _league_with(service, "bob")
    updated = service.draft_chef(league.id, "bob", "c1")
    assert updated.member("bob").slot_for("c1").active
    assert updated.version > league.version
    assert announcer.topics()[-1] == LEAGUE_MEMBERS_CHANGED


def test_draft_unknown_chef(service, chefs):
    league = _league_with(service, "bob")
    with pytest.raises(NotFound):
        service.draft_chef(league.id, "bob", "ghost")
    assert service.get_league(league.id, "bob").member("bob").roster == []


def test_draft_errors_in_order(service, chefs):
    league = _league_with(service, "bob", max_roster_size=1)
    with pytest.raises(NotAMember):
        service.draft_chef(league.id, "mallory", "c1")
    service.draft_chef(league.id, "alice", "c1")
    with pytest.raises(ChefAlreadyDrafted):
        service.draft_chef(league.id, "bob", "c1")
    with pytest.raises(RosterFull):
        service.draft_chef(league.id, "alice", "c2")
    service.transition_league_status(league.id, "alice", "active")
    with pytest.raises(LeagueNotInDraft):
        service.draft_chef(league.id, "bob", "c2")


def test_rejected_draft_does_not_announce(service, chefs, announcer):
    league = _league_with(service, "bob")
    service.draft_chef(league.id, "alice", "c1")
    before = len(announcer.announcements)
    with pytest.raises(ChefAlreadyDrafted):
        service.draft_chef(league.id, "bob", "c1")
    assert len(announcer.announcements) == before


def test_same_chef_in_different_leagues(service, chefs):
    first = _league_with(service, "bob")
    second = _league_with(service, "bob")
    service.draft_chef(first.id, "alice", "c1")
    service.draft_chef(second.id, "bob", "c1")
    assert service.get_league(second.id, "bob").holder_of("c1").user_id == "bob"


def test_draft_order(service, announcer):
    league = _league_with(service, "bob", "carol")
    service.update_draft_order(league.id, "alice", ["carol", "bob", "alice"])
    assert service.get_league(league.id, "bob").draft_order == ["carol", "bob", "alice"]
    assert announcer.for_topic(LEAGUE_DRAFT_ORDER_CHANGED)[-1]["changed_fields"] == {
        "draft_order": ["carol", "bob", "alice"]
    }
    with pytest.raises(Forbidden):
        service.update_draft_order(league.id, "bob", ["bob"])


def test_bench_and_activate(service, chefs):
    league = _league_with(service, "bob")
    service.draft_chef(league.id, "bob", "c1")
    benched = service.set_roster_slot_active(league.id, "bob", "c1", False)
    assert benched.member("bob").slot_for("c1").active is False
    # Benched chef still blocks a re-draft.
    with pytest.raises(ChefAlreadyDrafted):
        service.draft_chef(league.id, "alice", "c1")
    active = service.set_roster_slot_active(league.id, "bob", "c1", True)
    assert active.member("bob").slot_for("c1").active is True


# ---------- Concurrency ----------

def _run_concurrently(fn, args_list):
    barrier = threading.Barrier(len(args_list))

    def call(args):
        barrier.wait()
        try:
            return fn(*args), None
        except Exception as e:  # collected for assertions
            return None, e

    with ThreadPoolExecutor(max_workers=len(args_list)) as pool:
        return list(pool.map(call, args_list))


def test_concurrent_drafts_of_same_chef_exactly_one_wins(service, chefs):
    users = [f"user{i}" for i in range(8)]
    league = service.create_league("alice", "Test Kitchen", 22)
    for u in users:
        service.join_league(u, league.invite_code)

    results = _run_concurrently(service.draft_chef, [(league.id, u, "c1") for u in users])
    wins = [r for r, e in results if e is None]
    errors = [e for r, e in results if e is not None]
    assert len(wins) == 1
    assert len(errors) == len(users) - 1
    assert all(isinstance(e, ChefAlreadyDrafted) for e in errors)

    final = service.get_league(league.id, "alice")
    holders = [m.user_id for m in final.members if m.slot_for("c1") is not None]
    assert len(holders) == 1


def test_concurrent_drafts_of_different_chefs_all_land(service, chefs):
    users = [f"user{i}" for i in range(6)]
    league = service.create_league("alice", "Test Kitchen", 22)
    for u in users:
        service.join_league(u, league.invite_code)

    results = _run_concurrently(
        service.draft_chef, [(league.id, u, f"c{i + 1}") for i, u in enumerate(users)]
    )
    assert all(e is None for _, e in results)
    final = service.get_league(league.id, "alice")
    for i, u in enumerate(users):
        assert final.member(u).slot_for(f"c{i + 1}") is not None


def test_concurrent_drafts_respect_roster_capacity(service, chefs):
    league = service.create_league("alice", "Test Kitchen", 22, max_roster_size=2)
    results = _run_concurrently(service.draft_chef, [(league.id, "alice", f"c{i}") for i in range(1, 6)])
    assert sum(1 for _, e in results if e is None) == 2
    assert all(isinstance(e, RosterFull) for _, e in results if e is not None)
    assert len(service.get_league(league.id, "alice").member("alice").roster) == 2


def test_concurrent_joins_respect_capacity(service):
    league = service.create_league("alice", "Test Kitchen", 22, max_members=3)
    results = _run_concurrently(service.join_league, [(f"user{i}", league.invite_code) for i in range(6)])
    assert sum(1 for _, e in results if e is None) == 2
    assert all(isinstance(e, LeagueFull) for _, e in results if e is not None)
    assert len(service.get_league(league.id, "alice").members) == 3
