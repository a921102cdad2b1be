"""
Chef catalog: create, read and edit contestants. Scoring changes go through ScoringService.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from chef_league.config import Settings
from chef_league.errors import ConcurrencyRetryExhausted, InvalidLeagueSettings, VersionConflict
from chef_league.models import Chef
from chef_league.persistence.store import RecordStore
from chef_league.services.announcer import CHEF_UPDATED, EventAnnouncer, LoggingAnnouncer, chef_payload, safe_announce

logger = logging.getLogger(__name__)

# Fields an admin may edit directly; stats, status and history belong to weekly scoring.
EDITABLE_FIELDS = ("name", "bio", "hometown", "specialty", "image")


class ChefService:
    def __init__(
        self,
        store: RecordStore,
        announcer: EventAnnouncer | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._announcer = announcer or LoggingAnnouncer()
        self._settings = settings or Settings()

    def create_chef(
        self,
        name: str,
        bio: str = "",
        hometown: str = "",
        specialty: str = "",
        image: str = "",
        id: str | None = None,
    ) -> Chef:
        name = (name or "").strip()
        if not name:
            raise InvalidLeagueSettings("Chef name is required")
        chef = self._store.create_chef(Chef(
            id=id or str(uuid.uuid4()),
            name=name,
            created_at=datetime.now(timezone.utc),
            bio=bio,
            hometown=hometown,
            specialty=specialty,
            image=image,
        ))
        logger.info("chef %s created (%s)", chef.id, chef.name)
        safe_announce(self._announcer, CHEF_UPDATED, chef_payload(chef.id, chef.to_dict()))
        return chef

    def update_chef(self, chef_id: str, **fields: Any) -> Chef:
        """
        Edit a chef's descriptive fields. Versioned like every other chef write, so an edit
        racing a weekly scoring run is retried on fresh state instead of overwriting stats.
        Announces only the fields that actually changed.
        """
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidLeagueSettings(f"Chef fields not editable: {', '.join(sorted(unknown))}")
        if "name" in fields:
            fields["name"] = (fields["name"] or "").strip()
            if not fields["name"]:
                raise InvalidLeagueSettings("Chef name is required")

        attempts = self._settings.max_commit_attempts
        for attempt in range(1, attempts + 1):
            chef = self._store.load_chef(chef_id)
            changed = {k: v for k, v in fields.items() if getattr(chef, k) != v}
            if not changed:
                return chef
            updated = chef.copy()
            for key, value in changed.items():
                setattr(updated, key, value)
            try:
                saved = self._store.save_chef(updated, expected_version=chef.version)
            except VersionConflict as e:
                logger.warning("update_chef %s: version conflict on attempt %d/%d (%s)", chef_id, attempt, attempts, e)
                continue
            logger.info("chef %s updated: %s", chef_id, ", ".join(sorted(changed)))
            safe_announce(self._announcer, CHEF_UPDATED, chef_payload(chef_id, changed))
            return saved
        raise ConcurrencyRetryExhausted(f"Chef {chef_id} is busy, please try again")

    def get_chef(self, chef_id: str) -> Chef:
        return self._store.load_chef(chef_id)

    def list_chefs(self) -> list[Chef]:
        return self._store.list_chefs()
