"""
Event announcement boundary. The core decides what to announce; delivery (WebSocket,
push, ...) belongs to the transport. Fire-and-forget: a failing announcer never undoes
a committed change.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)

# ---------- Topics ----------
LEAGUE_MEMBERS_CHANGED = "league.members_changed"
LEAGUE_DRAFT_ORDER_CHANGED = "league.draft_order_changed"
LEAGUE_SCORE_CHANGED = "league.score_changed"
LEAGUE_UPDATED = "league.updated"
CHEF_UPDATED = "chef.updated"


class EventAnnouncer(Protocol):
    def announce(self, topic: str, payload: dict[str, Any]) -> None:
        ...


def league_payload(league_id: str, changed_fields: dict[str, Any]) -> dict[str, Any]:
    return {"league_id": league_id, "changed_fields": changed_fields}


def chef_payload(chef_id: str, changed_fields: dict[str, Any]) -> dict[str, Any]:
    return {"chef_id": chef_id, "changed_fields": changed_fields}


def safe_announce(announcer: EventAnnouncer | None, topic: str, payload: dict[str, Any]) -> None:
    """Announce, logging (not raising) transport failures."""
    if announcer is None:
        return
    try:
        announcer.announce(topic, payload)
    except Exception:
        logger.exception("announce failed: topic=%s", topic)


class LoggingAnnouncer:
    """Default announcer when no transport is wired: logs at debug level."""

    def announce(self, topic: str, payload: dict[str, Any]) -> None:
        logger.debug("announce %s %s", topic, payload)


@dataclass
class Announcement:
    topic: str
    payload: dict[str, Any]


class RecordingAnnouncer:
    """Keeps every announcement in order. Thread-safe."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.announcements: list[Announcement] = []

    def announce(self, topic: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self.announcements.append(Announcement(topic, payload))

    def topics(self) -> list[str]:
        with self._lock:
            return [a.topic for a in self.announcements]

    def for_topic(self, topic: str) -> list[dict[str, Any]]:
        with self._lock:
            return [a.payload for a in self.announcements if a.topic == topic]
