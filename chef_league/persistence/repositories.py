"""
Repository for users (login identity).
No business logic; only read/write operations.
"""
from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime, timezone

from chef_league.models import User


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _row_to_user(r: sqlite3.Row) -> User:
    return User(
        id=r["id"],
        name=r["name"],
        created_at=_parse_datetime(r["created_at"]),
        username=r["username"],
        password_hash=r["password_hash"],
        is_admin=bool(r["is_admin"]),
    )


class UserRepository:
    """CRUD for users: username, password_hash, is_admin."""

    def create_with_password(
        self,
        conn: sqlite3.Connection,
        username: str,
        password_hash: str,
        name: str | None = None,
        is_admin: bool = False,
    ) -> User:
        uid = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        display_name = name or username
        conn.execute(
            "INSERT INTO users (id, username, password_hash, name, is_admin, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (uid, username, password_hash, display_name, 1 if is_admin else 0, now),
        )
        return self.get(conn, uid) or User(
            id=uid, name=display_name, created_at=_parse_datetime(now),
            username=username, password_hash=password_hash, is_admin=is_admin,
        )

    def get(self, conn: sqlite3.Connection, user_id: str) -> User | None:
        row = conn.execute(
            "SELECT id, name, username, password_hash, is_admin, created_at FROM users WHERE id = ?",
            (user_id,),
        ).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_username(self, conn: sqlite3.Connection, username: str) -> User | None:
        row = conn.execute(
            "SELECT id, name, username, password_hash, is_admin, created_at FROM users WHERE username = ?",
            (username,),
        ).fetchone()
        return _row_to_user(row) if row is not None else None
