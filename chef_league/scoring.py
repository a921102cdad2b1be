"""
Weekly fantasy scoring for chefs.
Pure rule engine: highlight tags for one chef-week -> point delta, stat increments,
optional status change. No state, no I/O.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from chef_league.errors import InvalidScoringInput
from chef_league.models import DEFAULT_SCORING_SETTINGS, ChefStatus

# ---------- Highlight tags ----------
QUICKFIRE_WIN = "quickfire_win"
QUICKFIRE_FAVORITE = "quickfire_favorite"
QUICKFIRE_LEAST = "quickfire_least"
CHALLENGE_WIN = "challenge_win"
TOP = "top"
BOTTOM = "bottom"
LCK_WIN = "lck_win"  # last chance kitchen
FINALE = "finale"
TOP_CHEF = "top_chef"  # season winner
ELIMINATED = "eliminated"

KNOWN_TAGS = frozenset({
    QUICKFIRE_WIN, QUICKFIRE_FAVORITE, QUICKFIRE_LEAST, CHALLENGE_WIN, TOP, BOTTOM,
    LCK_WIN, FINALE, TOP_CHEF, ELIMINATED,
})


@dataclass(frozen=True)
class ScoringRules:
    """Point table. Defaults are the standard league rules."""
    quickfire_win: int = DEFAULT_SCORING_SETTINGS["quickfire_win"]
    quickfire_favorite: int = DEFAULT_SCORING_SETTINGS["quickfire_favorite"]
    quickfire_least: int = DEFAULT_SCORING_SETTINGS["quickfire_least"]
    challenge_win: int = DEFAULT_SCORING_SETTINGS["challenge_win"]
    sweep_bonus: int = DEFAULT_SCORING_SETTINGS["sweep_bonus"]  # challenge win + quickfire win same week
    top: int = DEFAULT_SCORING_SETTINGS["top"]
    bottom: int = DEFAULT_SCORING_SETTINGS["bottom"]
    lck_win: int = DEFAULT_SCORING_SETTINGS["lck_win"]
    finale: int = DEFAULT_SCORING_SETTINGS["finale"]
    top_chef: int = DEFAULT_SCORING_SETTINGS["top_chef"]  # replaces the week's total

    @classmethod
    def from_settings(cls, settings: Mapping[str, int]) -> "ScoringRules":
        """Build from a league's named scoring settings; missing names keep defaults."""
        known = {k: int(v) for k, v in settings.items() if k in DEFAULT_SCORING_SETTINGS}
        return cls(**known)


DEFAULT_RULES = ScoringRules()


@dataclass(frozen=True)
class StatIncrements:
    quickfire_wins: int = 0
    challenge_wins: int = 0
    lck_wins: int = 0
    eliminations: int = 0

    def is_empty(self) -> bool:
        return not (self.quickfire_wins or self.challenge_wins or self.lck_wins or self.eliminations)


@dataclass(frozen=True)
class WeeklyOutcome:
    """Engine output for one chef-week."""
    week: int
    points_delta: int
    stat_increments: StatIncrements = field(default_factory=StatIncrements)
    status_change: str | None = None  # ChefStatus value
    highlights: frozenset[str] = frozenset()
    season_winner: bool = False


def validate_week(week: object) -> int:
    """Week must be a positive int. bool is rejected even though it subclasses int."""
    if week is None:
        raise InvalidScoringInput("week is required")
    if isinstance(week, bool) or not isinstance(week, int):
        raise InvalidScoringInput(f"week must be an integer, got {week!r}")
    if week < 1:
        raise InvalidScoringInput(f"week must be >= 1, got {week}")
    return week


def normalize_tags(tags: Iterable[str] | None) -> frozenset[str]:
    """Lowercase/strip tags. Unknown tags are kept for the record; no rule reads them."""
    if tags is None:
        return frozenset()
    if isinstance(tags, str):
        raise InvalidScoringInput("highlights must be a list of tags, not a string")
    out = set()
    for t in tags:
        key = str(t).strip().lower()
        if key:
            out.add(key)
    return frozenset(out)


def _quickfire_points(tags: frozenset[str], rules: ScoringRules) -> int:
    points = 0
    if QUICKFIRE_WIN in tags:
        points += rules.quickfire_win
    if QUICKFIRE_FAVORITE in tags:
        points += rules.quickfire_favorite
    if QUICKFIRE_LEAST in tags:
        points += rules.quickfire_least
    return points


def _elimination_challenge_points(tags: frozenset[str], rules: ScoringRules) -> int:
    """Challenge win (with sweep bonus), top placement, bottom placement."""
    points = 0
    if CHALLENGE_WIN in tags:
        points += rules.challenge_win
        if QUICKFIRE_WIN in tags:
            points += rules.sweep_bonus
    elif TOP in tags:
        # Top-three bonus does not stack with a challenge win
        points += rules.top
    if BOTTOM in tags:
        points += rules.bottom
    return points


def _late_season_points(tags: frozenset[str], rules: ScoringRules) -> int:
    points = 0
    if LCK_WIN in tags:
        points += rules.lck_win
    if FINALE in tags:
        points += rules.finale
    return points


def compute_weekly_entry(
    week: object,
    highlight_tags: Iterable[str] | None,
    rules: ScoringRules = DEFAULT_RULES,
) -> WeeklyOutcome:
    """
    Score one chef-week from its highlight tags.

    Additive rules are summed in fixed order; top_chef then replaces the week's total
    outright (not max, not additive). Stat increments are never overridden.
    Unknown tags are ignored.
    """
    wk = validate_week(week)
    tags = normalize_tags(highlight_tags)

    total = (
        _quickfire_points(tags, rules)
        + _elimination_challenge_points(tags, rules)
        + _late_season_points(tags, rules)
    )
    season_winner = TOP_CHEF in tags
    if season_winner:
        total = rules.top_chef

    eliminated = ELIMINATED in tags
    increments = StatIncrements(
        quickfire_wins=1 if QUICKFIRE_WIN in tags else 0,
        challenge_wins=1 if CHALLENGE_WIN in tags else 0,
        lck_wins=1 if LCK_WIN in tags else 0,
        eliminations=1 if eliminated else 0,
    )
    return WeeklyOutcome(
        week=wk,
        points_delta=total,
        stat_increments=increments,
        status_change=ChefStatus.ELIMINATED.value if eliminated else None,
        highlights=tags,
        season_winner=season_winner,
    )
