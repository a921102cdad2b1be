"""
Tests for league status transitions and manager-only settings updates.
"""
from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from chef_league.errors import Forbidden, InvalidLeagueSettings, InvalidTransition
from chef_league.models import League, LeagueStatus, Member, MemberRole, RosterSlot
from chef_league.services import lifecycle

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _league(status=LeagueStatus.DRAFT.value):
    return League(
        id="L1",
        name="Test Kitchen",
        season=22,
        created_by="alice",
        invite_code="ABCD1234",
        created_at=NOW,
        status=status,
        members=[
            Member(user_id="alice", role=MemberRole.OWNER.value, joined_at=NOW),
            Member(user_id="carol", role=MemberRole.ADMIN.value, joined_at=NOW),
            Member(user_id="bob", role=MemberRole.MEMBER.value, joined_at=NOW),
        ],
    )


def test_draft_to_active_to_completed():
    league = lifecycle.transition(_league(), "alice", "active")
    assert league.status == LeagueStatus.ACTIVE
    league = lifecycle.transition(league, "carol", LeagueStatus.COMPLETED)
    assert league.status == LeagueStatus.COMPLETED


def test_transition_returns_copy():
    league = _league()
    lifecycle.transition(league, "alice", "active")
    assert league.status == LeagueStatus.DRAFT


@pytest.mark.parametrize(
    "current,target",
    [
        ("draft", "completed"),
        ("active", "draft"),
        ("completed", "active"),
        ("completed", "draft"),
        ("draft", "draft"),
        ("active", "active"),
    ],
)
def test_invalid_transitions(current, target):
    with pytest.raises(InvalidTransition):
        lifecycle.transition(_league(status=current), "alice", target)


def test_unknown_status_rejected():
    with pytest.raises(InvalidTransition):
        lifecycle.transition(_league(), "alice", "paused")


def test_member_cannot_transition():
    with pytest.raises(Forbidden):
        lifecycle.transition(_league(), "bob", "active")
    with pytest.raises(Forbidden):
        lifecycle.transition(_league(), "mallory", "active")


def test_can_transition():
    assert lifecycle.can_transition("draft", "active")
    assert not lifecycle.can_transition("draft", "completed")
    assert not lifecycle.can_transition("completed", "draft")


def test_update_settings_reports_changed_fields():
    updated, changed = lifecycle.update_settings(_league(), "alice", name="  Renamed ", max_members=12)
    assert updated.name == "Renamed"
    assert changed == {"name": "Renamed", "max_members": 12}


def test_update_settings_no_change():
    _, changed = lifecycle.update_settings(_league(), "alice", name="Test Kitchen")
    assert changed == {}


def test_update_settings_status_goes_through_state_machine():
    updated, changed = lifecycle.update_settings(_league(), "alice", status="active")
    assert changed["status"] == "active"
    with pytest.raises(InvalidTransition):
        lifecycle.update_settings(_league(), "alice", status="completed")


def test_update_settings_forbidden_for_member():
    with pytest.raises(Forbidden):
        lifecycle.update_settings(_league(), "bob", name="Mine now")


def test_update_settings_limits():
    league = _league()
    league.member("bob").roster = [
        RosterSlot(chef_id="c1", drafted_at=NOW),
        RosterSlot(chef_id="c2", drafted_at=NOW),
    ]
    with pytest.raises(InvalidLeagueSettings):
        lifecycle.update_settings(league, "alice", max_members=2)
    with pytest.raises(InvalidLeagueSettings):
        lifecycle.update_settings(league, "alice", max_roster_size=1)
    with pytest.raises(InvalidLeagueSettings):
        lifecycle.update_settings(league, "alice", current_week=0)
    with pytest.raises(InvalidLeagueSettings):
        lifecycle.update_settings(league, "alice", invite_code="NEWCODE1")


def test_merge_scoring_settings():
    merged = lifecycle.merge_scoring_settings({"top": 3}, {"top": 4})
    assert merged == {"top": 4}
    with pytest.raises(InvalidLeagueSettings):
        lifecycle.merge_scoring_settings({}, {"fan_favorite": 2})
    with pytest.raises(InvalidLeagueSettings):
        lifecycle.merge_scoring_settings({}, {"top": "3"})
