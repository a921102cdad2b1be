"""
Persistence layer for chef league data.
No business logic; only read/write interfaces.
"""
from .db import get_connection, init_db
from .memory import InMemoryRecordStore
from .repositories import UserRepository
from .store import InviteCodeTaken, RecordStore, SqliteRecordStore, WeeklyWrite

__all__ = [
    "get_connection",
    "init_db",
    "InMemoryRecordStore",
    "InviteCodeTaken",
    "RecordStore",
    "SqliteRecordStore",
    "UserRepository",
    "WeeklyWrite",
]
