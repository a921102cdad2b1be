"""
Tests for weekly scoring application: chef stats, status, and score propagation
to every league holding the chef on an active roster slot.
"""
from __future__ import annotations

import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from chef_league.config import Settings
from chef_league.errors import ChefAlreadyDrafted, InvalidScoringInput, NotFound
from chef_league.models import ChefStatus
from chef_league.persistence import InMemoryRecordStore, SqliteRecordStore
from chef_league.services import ChefService, LeagueService, ScoringService, WeeklyScoringRequest
from chef_league.services.announcer import CHEF_UPDATED, LEAGUE_SCORE_CHANGED, RecordingAnnouncer


@pytest.fixture(params=["sqlite", "memory"])
def store(request, tmp_path):
    if request.param == "sqlite":
        return SqliteRecordStore(tmp_path / "test.db")
    return InMemoryRecordStore()


@pytest.fixture
def announcer():
    return RecordingAnnouncer()


@pytest.fixture
def leagues(store, announcer):
    return LeagueService(store, announcer, Settings(max_commit_attempts=50))


@pytest.fixture
def scoring(store, announcer):
    return ScoringService(store, announcer, Settings(max_commit_attempts=50))


@pytest.fixture
def chefs(store):
    svc = ChefService(store)
    for cid, name in (("c1", "Ana"), ("c2", "Ben"), ("c3", "Cy")):
        svc.create_chef(name, hometown="Chicago", id=cid)
    return svc


@pytest.fixture
def league(leagues, chefs):
    """alice drafts c1, bob drafts c2; league moved to active."""
    created = leagues.create_league("alice", "Test Kitchen", 22)
    leagues.join_league("bob", created.invite_code)
    leagues.draft_chef(created.id, "alice", "c1")
    leagues.draft_chef(created.id, "bob", "c2")
    return leagues.transition_league_status(created.id, "alice", "active")


def _week(week, *perfs):
    return {"week": week, "performances": [{"chef_id": cid, "highlights": tags} for cid, tags in perfs]}


def _scores(leagues, league_id):
    return {m.user_id: m.score for m in leagues.get_league(league_id, "alice").members}


def test_points_flow_to_holders(leagues, scoring, league):
    scoring.record_week(_week(1, ("c1", ["challenge_win", "quickfire_win"]), ("c2", ["bottom"])))
    assert _scores(leagues, league.id) == {"alice": 15, "bob": -2}

    scoring.record_week(_week(2, ("c1", ["top"]), ("c2", ["quickfire_favorite"])))
    assert _scores(leagues, league.id) == {"alice": 18, "bob": -1}


def test_chef_stats_and_history(scoring, chefs, league):
    scoring.record_week(_week(1, ("c1", ["challenge_win", "quickfire_win"])))
    scoring.record_week(_week(2, ("c1", ["lck_win", "fan_favorite"])))
    chef = chefs.get_chef("c1")
    assert chef.stats.total_points == 17
    assert chef.stats.challenge_wins == 1
    assert chef.stats.wins == 1
    assert chef.stats.quickfire_wins == 1
    assert chef.stats.lck_wins == 1
    assert [e.week for e in chef.weekly_performance] == [1, 2]
    assert chef.entry_for_week(2).highlights == frozenset({"lck_win", "fan_favorite"})
    assert chef.entry_for_week(2).points == 2


def test_elimination(scoring, chefs, league):
    scoring.record_week(_week(3, ("c2", ["bottom", "eliminated"])))
    chef = chefs.get_chef("c2")
    assert chef.status == ChefStatus.ELIMINATED
    assert chef.elimination_week == 3
    assert chef.stats.eliminations == 1
    assert chef.stats.total_points == -2


def test_top_chef_override_and_winner(leagues, scoring, chefs, league):
    scoring.record_week(_week(14, ("c1", ["challenge_win", "finale", "top_chef"])))
    chef = chefs.get_chef("c1")
    assert chef.status == ChefStatus.WINNER
    assert chef.stats.total_points == 30
    assert _scores(leagues, league.id)["alice"] == 30


def test_benched_slot_earns_nothing(leagues, scoring, league):
    leagues.set_roster_slot_active(league.id, "alice", "c1", False)
    scoring.record_week(_week(1, ("c1", ["challenge_win"])))
    assert _scores(leagues, league.id)["alice"] == 0
    leagues.set_roster_slot_active(league.id, "alice", "c1", True)
    scoring.record_week(_week(2, ("c1", ["challenge_win"])))
    assert _scores(leagues, league.id)["alice"] == 7


def test_one_chef_credited_in_every_league(leagues, scoring, league):
    other = leagues.create_league("carol", "Other Kitchen", 22)
    leagues.draft_chef(other.id, "carol", "c1")
    scoring.record_week(_week(1, ("c1", ["top"])))
    assert _scores(leagues, league.id)["alice"] == 3
    assert leagues.get_league(other.id, "carol").member("carol").score == 3


def test_undrafted_chef_touches_no_league(leagues, scoring, announcer, league):
    scoring.record_week(_week(1, ("c3", ["challenge_win"])))
    assert _scores(leagues, league.id) == {"alice": 0, "bob": 0}
    assert announcer.for_topic(LEAGUE_SCORE_CHANGED) == []
    assert announcer.for_topic(CHEF_UPDATED)[-1]["chef_id"] == "c3"


def test_week_scored_once(scoring, chefs, league):
    scoring.record_week(_week(1, ("c1", ["top"])))
    with pytest.raises(InvalidScoringInput):
        scoring.record_week(_week(1, ("c1", ["challenge_win"])))
    assert chefs.get_chef("c1").stats.total_points == 3


def test_batch_validated_before_any_write(leagues, scoring, chefs, league):
    with pytest.raises(NotFound):
        scoring.record_week(_week(1, ("c1", ["top"]), ("ghost", ["top"])))
    with pytest.raises(InvalidScoringInput):
        scoring.record_week(_week(1, ("c1", ["top"]), ("c1", ["bottom"])))
    assert chefs.get_chef("c1").weekly_performance == []
    assert _scores(leagues, league.id)["alice"] == 0


@pytest.mark.parametrize(
    "payload",
    [
        {"week": 0, "performances": []},
        {"week": "1", "performances": []},
        {"week": 1},
        {"week": 1, "performances": [{"highlights": ["top"]}]},
        {"week": 1, "performances": [{"chef_id": "c1", "highlights": "top"}]},
        {"week": 1, "performances": [{"chef_id": "c1", "highlights": [], "rank": "first"}]},
    ],
)
def test_malformed_payloads(scoring, payload):
    with pytest.raises(InvalidScoringInput):
        scoring.record_week(payload)


def test_request_object_and_rank_notes(scoring, chefs, league):
    request = WeeklyScoringRequest.from_dict({
        "week": 4,
        "performances": [{"chef_id": "c1", "highlights": ["TOP"], "rank": 2, "notes": "crudo"}],
    })
    scoring.record_week(request)
    entry = chefs.get_chef("c1").entry_for_week(4)
    assert entry.rank == 2
    assert entry.notes == "crudo"
    assert entry.highlights == frozenset({"top"})


def test_score_announcement(scoring, announcer, league):
    scoring.record_week(_week(1, ("c1", ["challenge_win"])))
    payload = announcer.for_topic(LEAGUE_SCORE_CHANGED)[-1]
    assert payload["league_id"] == league.id
    assert payload["changed_fields"]["points_delta"] == 7
    assert payload["changed_fields"]["scores"] == {"alice": 7, "bob": 0}
    chef_event = announcer.for_topic(CHEF_UPDATED)[-1]
    assert chef_event["changed_fields"]["stats"]["total_points"] == 7


def test_scoring_outside_active_still_applies(leagues, scoring, chefs):
    draft = leagues.create_league("dana", "Early Kitchen", 22)
    leagues.draft_chef(draft.id, "dana", "c3")
    scoring.record_week(_week(1, ("c3", ["top"])))
    assert leagues.get_league(draft.id, "dana").member("dana").score == 3


def test_season_scenario(leagues, scoring, chefs, league):
    scoring.record_week(_week(1, ("c1", ["quickfire_win"]), ("c2", ["challenge_win"])))
    scoring.record_week(_week(2, ("c1", ["bottom", "eliminated"]), ("c2", ["top", "lck_win"])))
    scoring.record_week(_week(3, ("c2", ["top_chef", "challenge_win"])))
    leagues.transition_league_status(league.id, "alice", "completed")

    board = leagues.leaderboard(league.id, "alice")
    assert [(s.user_id, s.score, s.rank) for s in board] == [("bob", 42, 1), ("alice", 3, 2)]
    assert chefs.get_chef("c1").status == ChefStatus.ELIMINATED
    assert chefs.get_chef("c2").status == ChefStatus.WINNER


def test_draft_then_score_end_to_end(leagues, scoring, chefs):
    created = leagues.create_league("alice", "Two Person", 22)
    leagues.join_league("bob", created.invite_code)
    leagues.draft_chef(created.id, "alice", "c3")
    with pytest.raises(ChefAlreadyDrafted):
        leagues.draft_chef(created.id, "bob", "c3")
    leagues.transition_league_status(created.id, "alice", "active")

    scoring.record_week(_week(1, ("c3", ["challenge_win", "quickfire_win"])))
    board = leagues.leaderboard(created.id, "bob")
    assert board[0].to_dict() == {"user_id": "alice", "score": 15, "roster_count": 1, "rank": 1}
    assert board[1].to_dict() == {"user_id": "bob", "score": 0, "roster_count": 0, "rank": 2}


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


def test_opposite_order_batches_for_one_week_apply_whole_or_not_at_all(leagues, scoring, chefs, league):
    first = {"c1": 3, "c2": -2}
    second = {"c1": 7, "c2": 2}
    for week in range(1, 6):
        batch_a = _week(week, ("c1", ["top"]), ("c2", ["bottom"]))
        batch_b = _week(week, ("c2", ["lck_win"]), ("c1", ["challenge_win"]))
        results = _run_concurrently(scoring.record_week, [(batch_a,), (batch_b,)])

        assert sum(1 for _, e in results if e is None) == 1
        assert all(isinstance(e, InvalidScoringInput) for _, e in results if e is not None)
        landed = {cid: chefs.get_chef(cid).entry_for_week(week).points for cid in ("c1", "c2")}
        assert landed in (first, second)

    c1, c2 = chefs.get_chef("c1"), chefs.get_chef("c2")
    assert len(c1.weekly_performance) == 5
    assert len(c2.weekly_performance) == 5
    assert c1.stats.total_points == sum(e.points for e in c1.weekly_performance)
    assert c2.stats.total_points == sum(e.points for e in c2.weekly_performance)
    assert _scores(leagues, league.id) == {"alice": c1.stats.total_points, "bob": c2.stats.total_points}


def test_concurrent_weeks_for_one_chef_all_land(leagues, scoring, chefs, league):
    tags = [["top"], ["challenge_win"], ["bottom"], ["lck_win"]] * 2
    expected = [3, 7, -2, 2] * 2
    results = _run_concurrently(
        scoring.record_week, [(_week(week, ("c1", t)),) for week, t in enumerate(tags, start=1)]
    )
    assert all(e is None for _, e in results)

    chef = chefs.get_chef("c1")
    assert sorted(e.week for e in chef.weekly_performance) == list(range(1, len(tags) + 1))
    assert [chef.entry_for_week(w).points for w in range(1, len(tags) + 1)] == expected
    assert chef.stats.total_points == sum(expected)
    assert chef.stats.challenge_wins == 2
    assert _scores(leagues, league.id)["alice"] == sum(expected)


def test_drafting_races_scoring_without_losing_points(leagues, scoring, chefs):
    extra = [f"x{i}" for i in range(6)]
    for cid in extra:
        chefs.create_chef(f"Chef {cid}", id=cid)
    created = leagues.create_league("alice", "Busy Kitchen", 22, max_roster_size=10)
    leagues.join_league("bob", created.invite_code)
    leagues.draft_chef(created.id, "alice", "c1")

    deltas = [3, 7, -2, 2, 3, 7]
    tags = {3: ["top"], 7: ["challenge_win"], -2: ["bottom"], 2: ["lck_win"]}

    def draft_loop():
        for cid in extra:
            leagues.draft_chef(created.id, "bob", cid)

    def score_loop():
        for week, delta in enumerate(deltas, start=1):
            scoring.record_week(_week(week, ("c1", tags[delta])))

    results = _run_concurrently(lambda loop: loop(), [(draft_loop,), (score_loop,)])
    assert all(e is None for _, e in results)

    final = leagues.get_league(created.id, "alice")
    assert final.member("alice").score == sum(deltas)
    assert final.member("bob").score == 0
    assert [s.chef_id for s in final.member("bob").roster] == extra
    assert chefs.get_chef("c1").stats.total_points == sum(deltas)
