"""
League standings. Read-only.
Order: score descending; ties keep member join order (sorted() is stable).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from chef_league.errors import Forbidden
from chef_league.models import League


@dataclass(frozen=True)
class Standing:
    user_id: str
    score: int
    roster_count: int
    rank: int  # competition ranking: 1, 2, 2, 4

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "score": self.score,
            "roster_count": self.roster_count,
            "rank": self.rank,
        }


def leaderboard(league: League, acting_user: str) -> list[Standing]:
    if league.member(acting_user) is None:
        raise Forbidden("Not authorized to access this league")
    ordered = sorted(league.members, key=lambda m: -m.score)
    out: list[Standing] = []
    for i, m in enumerate(ordered):
        rank = out[-1].rank if out and out[-1].score == m.score else i + 1
        out.append(Standing(user_id=m.user_id, score=m.score, roster_count=len(m.roster), rank=rank))
    return out
