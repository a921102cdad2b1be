"""
Tests for league standings.
"""
from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from chef_league.errors import Forbidden
from chef_league.models import League, Member, MemberRole, RosterSlot
from chef_league.services.leaderboard import leaderboard

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _league(scores):
    members = [
        Member(user_id=uid, role=MemberRole.MEMBER.value, joined_at=NOW, score=score)
        for uid, score in scores
    ]
    members[0].role = MemberRole.OWNER.value
    return League(
        id="L1", name="Test Kitchen", season=22, created_by=members[0].user_id,
        invite_code="ABCD1234", created_at=NOW, members=members,
    )


def test_sorted_by_score_descending():
    board = leaderboard(_league([("a", 3), ("b", 15), ("c", -2)]), "a")
    assert [s.user_id for s in board] == ["b", "a", "c"]
    assert [s.rank for s in board] == [1, 2, 3]


def test_ties_share_rank_and_keep_join_order():
    board = leaderboard(_league([("a", 5), ("b", 10), ("c", 5), ("d", 1)]), "a")
    assert [s.user_id for s in board] == ["b", "a", "c", "d"]
    assert [s.rank for s in board] == [1, 2, 2, 4]


def test_roster_count_and_to_dict():
    league = _league([("a", 0)])
    league.members[0].roster.append(RosterSlot(chef_id="c1", drafted_at=NOW, active=False))
    board = leaderboard(league, "a")
    assert board[0].to_dict() == {"user_id": "a", "score": 0, "roster_count": 1, "rank": 1}


def test_non_member_forbidden():
    with pytest.raises(Forbidden):
        leaderboard(_league([("a", 0)]), "stranger")
