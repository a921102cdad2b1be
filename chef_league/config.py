"""
Runtime configuration. Read once from the environment and passed explicitly into
services and the API; nothing in the core reads os.environ directly.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://0.0.0.0:5173",
    "http://[::1]:5173",
)


def _default_db_path() -> Path:
    return Path(__file__).resolve().parent.parent / "data" / "app.db"


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    db_path: Path = field(default_factory=_default_db_path)
    jwt_secret: str = "chef-league-dev-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_minutes: int = 60 * 24 * 7  # 7 days
    default_max_members: int = 10
    default_max_roster_size: int = 5
    max_commit_attempts: int = 5
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    # Usernames granted site-admin (chef catalog, weekly scoring) at signup.
    admin_usernames: tuple[str, ...] = ()

    @classmethod
    def from_env(cls) -> "Settings":
        db_path = os.environ.get("CHEF_LEAGUE_DB_PATH", "").strip()
        origins = os.environ.get("CHEF_LEAGUE_CORS_ORIGINS", "").strip()
        admins = os.environ.get("CHEF_LEAGUE_ADMINS", "").strip()
        return cls(
            db_path=Path(db_path) if db_path else _default_db_path(),
            jwt_secret=os.environ.get("JWT_SECRET_KEY", cls.jwt_secret),
            access_token_minutes=_int_env("CHEF_LEAGUE_TOKEN_MINUTES", cls.access_token_minutes),
            default_max_members=_int_env("CHEF_LEAGUE_MAX_MEMBERS", cls.default_max_members),
            default_max_roster_size=_int_env("CHEF_LEAGUE_MAX_ROSTER", cls.default_max_roster_size),
            max_commit_attempts=max(1, _int_env("CHEF_LEAGUE_COMMIT_ATTEMPTS", cls.max_commit_attempts)),
            log_level=os.environ.get("CHEF_LEAGUE_LOG_LEVEL", cls.log_level).upper(),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()) or DEFAULT_CORS_ORIGINS,
            admin_usernames=tuple(a.strip() for a in admins.split(",") if a.strip()),
        )
