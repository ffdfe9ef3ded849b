"""Zero-wait, transaction-scoped exclusive locks keyed by natural key.

Every create/update/delete takes one lock named after the entity type, its
uniqueness scope and a digest of the case-folded natural key. Acquisition
never waits: a contended lock is reported back to the caller immediately.
"""
from __future__ import annotations

import hashlib
import threading
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from workplace.config import get_settings


def build_lock_key(entity_type: str, scope: UUID | str | None, natural_key: str) -> str:
    """Return ``<entity_type>_Name_<scope>_<sha1>`` for the case-folded key."""

    digest = hashlib.sha1(natural_key.casefold().encode("utf-8")).hexdigest().upper()
    if scope is None:
        return f"{entity_type}_Name_{digest}"
    return f"{entity_type}_Name_{scope}_{digest}"


def lock_id_for(key: str) -> int:
    """Map a lock name onto the signed 64-bit space used by PostgreSQL advisory locks."""

    digest = hashlib.sha1(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


class LockHandle(Protocol):
    key: str

    def release(self) -> None: ...


class LockProvider(Protocol):
    def try_acquire(self, session: Session, key: str) -> LockHandle | None: ...


@dataclass
class _AdvisoryHandle:
    key: str

    def release(self) -> None:
        # pg_try_advisory_xact_lock is released by COMMIT/ROLLBACK.
        return None


class AdvisoryLockProvider:
    """PostgreSQL ``pg_try_advisory_xact_lock`` bound to the session's transaction."""

    def try_acquire(self, session: Session, key: str) -> LockHandle | None:
        acquired = session.execute(select(func.pg_try_advisory_xact_lock(lock_id_for(key)))).scalar_one()
        if not acquired:
            return None
        return _AdvisoryHandle(key=key)


@dataclass
class _LocalHandle:
    key: str
    provider: "LocalLockProvider"
    _released: bool = field(default=False, repr=False)

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self.provider._release(self.key)


class LocalLockProvider:
    """In-process keyed mutex with non-blocking try-acquire.

    Suitable for single-instance deployments and SQLite. The orchestrator
    releases the handle once the owning transaction has committed or rolled back.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._held: set[str] = set()

    def try_acquire(self, session: Session, key: str) -> LockHandle | None:
        with self._guard:
            if key in self._held:
                return None
            self._held.add(key)
        return _LocalHandle(key=key, provider=self)

    def is_held(self, key: str) -> bool:
        with self._guard:
            return key in self._held

    def _release(self, key: str) -> None:
        with self._guard:
            self._held.discard(key)


_local_provider = LocalLockProvider()
_advisory_provider = AdvisoryLockProvider()


def get_lock_provider(session: Session) -> LockProvider:
    """Pick the lock backend configured by ``LOCK_BACKEND``.

    ``auto`` uses advisory locks when the session is bound to PostgreSQL and
    the shared in-process provider otherwise.
    """

    backend = get_settings().LOCK_BACKEND
    if backend == "advisory":
        return _advisory_provider
    if backend == "local":
        return _local_provider
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return _advisory_provider
    return _local_provider


__all__ = [
    "AdvisoryLockProvider",
    "LocalLockProvider",
    "LockHandle",
    "LockProvider",
    "build_lock_key",
    "get_lock_provider",
    "lock_id_for",
]
