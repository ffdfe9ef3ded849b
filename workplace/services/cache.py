"""In-process cache of building timezones."""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workplace.config import get_settings
from workplace.models import Building

logger = logging.getLogger(__name__)


class TimezoneCache:
    """Maps building ids to IANA timezone names with a TTL.

    Entries are dropped explicitly whenever a building's timezone may have
    changed (update, delete, organization delete).
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        *,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session_factory = session_factory
        self._ttl = ttl_seconds if ttl_seconds is not None else get_settings().TIMEZONE_CACHE_TTL_SECONDS
        self._clock = clock
        self._entries: dict[UUID, tuple[str, float]] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def _load(self, building_id: UUID) -> str | None:
        if self._session_factory is None:
            from workplace import db

            factory: Callable[[], Session] = db.get_sessionmaker()
        else:
            factory = self._session_factory
        with factory() as session:
            return session.execute(
                select(Building.timezone).where(Building.id == building_id, Building.deleted.is_(False))
            ).scalar_one_or_none()

    def get(self, building_id: UUID) -> str | None:
        now = self._clock()
        with self._lock:
            cached = self._entries.get(building_id)
            if cached is not None and cached[1] > now:
                return cached[0]
            generation = self._generation
        timezone = self._load(building_id)
        if timezone is not None:
            with self._lock:
                # An invalidation during the load makes the value stale.
                if self._generation == generation:
                    self._prune(now)
                    self._entries[building_id] = (timezone, now + self._ttl)
        return timezone

    def _prune(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]

    def invalidate(self, building_id: UUID) -> None:
        with self._lock:
            self._entries.pop(building_id, None)
            self._generation += 1
        logger.debug("Timezone cache entry invalidated", extra={"building_id": str(building_id)})

    def __contains__(self, building_id: UUID) -> bool:
        with self._lock:
            cached = self._entries.get(building_id)
            return cached is not None and cached[1] > self._clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1


timezone_cache = TimezoneCache()


__all__ = ["TimezoneCache", "timezone_cache"]
