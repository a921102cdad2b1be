"""
Service layer: draft rules, league state machine, scoring application, standings.
allocator/lifecycle/leaderboard are pure over aggregates; the *_service modules
orchestrate the record store and announcements.
"""
from .chef_service import ChefService
from .league_service import LeagueService
from .scoring_service import ScoringService, WeeklyScoringRequest

__all__ = [
    "ChefService",
    "LeagueService",
    "ScoringService",
    "WeeklyScoringRequest",
]
