"""
Administrative weekly scoring: the only entry point into the rule engine.
For each chef: compute the week's outcome, append the entry, update stats/status and
credit members holding an active slot. The whole batch commits in one transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from chef_league.config import Settings
from chef_league.errors import ConcurrencyRetryExhausted, InvalidScoringInput, NotFound, VersionConflict
from chef_league.models import Chef, ChefStatus, LeagueStatus, WeeklyPerformanceEntry
from chef_league.persistence.store import RecordStore, WeeklyWrite
from chef_league.scoring import (
    DEFAULT_RULES,
    KNOWN_TAGS,
    ScoringRules,
    WeeklyOutcome,
    compute_weekly_entry,
    normalize_tags,
    validate_week,
)
from chef_league.services.announcer import (
    CHEF_UPDATED,
    LEAGUE_SCORE_CHANGED,
    EventAnnouncer,
    LoggingAnnouncer,
    chef_payload,
    league_payload,
    safe_announce,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PerformanceInput:
    chef_id: str
    highlights: frozenset[str] = frozenset()
    rank: int | None = None
    notes: str | None = None


@dataclass(frozen=True)
class WeeklyScoringRequest:
    week: int
    performances: list[PerformanceInput] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WeeklyScoringRequest":
        """Parse {week, performances: [{chef_id, highlights, rank?, notes?}]}."""
        if not isinstance(data, dict):
            raise InvalidScoringInput("Scoring payload must be an object")
        week = validate_week(data.get("week"))
        raw = data.get("performances")
        if not isinstance(raw, list):
            raise InvalidScoringInput("performances must be a list")
        perfs: list[PerformanceInput] = []
        for p in raw:
            if not isinstance(p, dict) or not p.get("chef_id"):
                raise InvalidScoringInput("each performance needs a chef_id")
            rank = p.get("rank")
            if rank is not None and (isinstance(rank, bool) or not isinstance(rank, int)):
                raise InvalidScoringInput(f"rank must be an integer, got {rank!r}")
            perfs.append(PerformanceInput(
                chef_id=str(p["chef_id"]),
                highlights=normalize_tags(p.get("highlights")),
                rank=rank,
                notes=p.get("notes"),
            ))
        return cls(week=week, performances=perfs)


def apply_outcome(chef: Chef, outcome: WeeklyOutcome, rank: int | None = None, notes: str | None = None) -> Chef:
    """Return a copy of chef with the outcome applied: entry appended, stats and status updated."""
    updated = chef.copy()
    updated.weekly_performance.append(WeeklyPerformanceEntry(
        week=outcome.week,
        points=outcome.points_delta,
        highlights=outcome.highlights,
        rank=rank,
        notes=notes,
        recorded_at=datetime.now(timezone.utc),
    ))
    inc = outcome.stat_increments
    stats = updated.stats
    stats.total_points += outcome.points_delta
    stats.quickfire_wins += inc.quickfire_wins
    stats.challenge_wins += inc.challenge_wins
    stats.wins += inc.challenge_wins
    stats.lck_wins += inc.lck_wins
    stats.eliminations += inc.eliminations
    if outcome.status_change == ChefStatus.ELIMINATED:
        updated.status = ChefStatus.ELIMINATED.value
        updated.elimination_week = outcome.week
    elif outcome.season_winner:
        updated.status = ChefStatus.WINNER.value
    return updated


class ScoringService:
    def __init__(
        self,
        store: RecordStore,
        announcer: EventAnnouncer | None = None,
        settings: Settings | None = None,
        rules: ScoringRules = DEFAULT_RULES,
    ) -> None:
        self._store = store
        self._announcer = announcer or LoggingAnnouncer()
        self._settings = settings or Settings()
        self._rules = rules

    def record_week(self, request: WeeklyScoringRequest | dict[str, Any]) -> list[Chef]:
        """
        Score one week for the listed chefs, all or nothing. Every chef is written in one
        store transaction; on a version conflict the batch is reloaded and re-checked
        (known chefs, week not yet scored) before trying again.
        """
        if isinstance(request, dict):
            request = WeeklyScoringRequest.from_dict(request)
        week = validate_week(request.week)
        seen: set[str] = set()
        for p in request.performances:
            if p.chef_id in seen:
                raise InvalidScoringInput(f"Chef {p.chef_id} listed twice for week {week}")
            seen.add(p.chef_id)

        outcomes: list[tuple[PerformanceInput, WeeklyOutcome]] = []
        for p in request.performances:
            ignored = p.highlights - KNOWN_TAGS
            if ignored:
                logger.debug("chef %s week %d: ignoring unknown tags %s", p.chef_id, week, sorted(ignored))
            outcomes.append((p, compute_weekly_entry(week, p.highlights, self._rules)))

        attempts = self._settings.max_commit_attempts
        for attempt in range(1, attempts + 1):
            writes = [self._prepare_write(week, p, outcome) for p, outcome in outcomes]
            try:
                results = self._store.apply_weekly_batch(writes)
                break
            except VersionConflict as e:
                logger.warning("record_week: version conflict on attempt %d/%d (%s)", attempt, attempts, e)
        else:
            raise ConcurrencyRetryExhausted(f"Week {week} scoring is busy, please try again")

        updated: list[Chef] = []
        for (saved, league_ids), (_, outcome) in zip(results, outcomes):
            logger.info(
                "chef %s week %d: %+d points, %d league(s) credited",
                saved.id, week, outcome.points_delta, len(league_ids),
            )
            safe_announce(self._announcer, CHEF_UPDATED, chef_payload(saved.id, {
                "stats": saved.stats.to_dict(),
                "status": saved.status,
                "elimination_week": saved.elimination_week,
                "weekly_performance": saved.entry_for_week(week).to_dict(),
            }))
            self._announce_scores(saved.id, week, outcome.points_delta, league_ids)
            updated.append(saved)
        return updated

    def _prepare_write(self, week: int, perf: PerformanceInput, outcome: WeeklyOutcome) -> WeeklyWrite:
        """Load the chef fresh, refuse an already scored week, apply the outcome to a copy."""
        chef = self._store.load_chef(perf.chef_id)
        if chef.entry_for_week(week) is not None:
            raise InvalidScoringInput(f"Week {week} already recorded for chef {perf.chef_id}")
        return WeeklyWrite(
            chef=apply_outcome(chef, outcome, rank=perf.rank, notes=perf.notes),
            expected_version=chef.version,
            points_delta=outcome.points_delta,
        )

    def _announce_scores(self, chef_id: str, week: int, delta: int, league_ids: Iterable[str]) -> None:
        for league_id in league_ids:
            try:
                league = self._store.load_league(league_id)
            except NotFound:
                continue
            if league.status != LeagueStatus.ACTIVE:
                logger.warning("chef %s scored for week %d in league %s with status %s",
                               chef_id, week, league_id, league.status)
            safe_announce(self._announcer, LEAGUE_SCORE_CHANGED, league_payload(league_id, {
                "chef_id": chef_id,
                "week": week,
                "points_delta": delta,
                "scores": {m.user_id: m.score for m in league.members},
            }))
