"""Caller-facing outcomes of registry mutations."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum as PyEnum
from typing import Any, Generic, TypeVar
from uuid import UUID

from workplace.utils.concurrency import check_token

EntityT = TypeVar("EntityT")


class Outcome(str, PyEnum):
    """Result taxonomy shared by every create / update / delete."""

    OK = "Ok"
    RECORD_ALREADY_EXISTS = "RecordAlreadyExists"
    RECORD_DID_NOT_EXIST = "RecordDidNotExist"
    SUB_RECORD_ALREADY_EXISTS = "SubRecordAlreadyExists"
    SUB_RECORD_DID_NOT_EXIST = "SubRecordDidNotExist"
    SUB_RECORD_INVALID = "SubRecordInvalid"
    CONCURRENCY_KEY_INVALID = "ConcurrencyKeyInvalid"
    RECORD_IS_IN_USE = "RecordIsInUse"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class Dependent:
    """A row that blocks a delete, with enough detail to show the user."""

    kind: str
    id: UUID
    display_name: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DomainCollision:
    organization_id: UUID
    domain_name: str


@dataclass
class MutationResult(Generic[EntityT]):
    outcome: Outcome
    entity: EntityT | None = None
    in_use: list[Dependent] = field(default_factory=list)
    collisions: list[DomainCollision] = field(default_factory=list)
    log_id: UUID | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK


def classify_zero_rows(
    current: Any | None,
    supplied_token: bytes | None,
    *,
    conflict: Outcome = Outcome.RECORD_ALREADY_EXISTS,
) -> Outcome:
    """Explain why a guarded update/delete touched no rows.

    ``current`` is the row as re-read after the failed write (``None`` when
    it is gone). A live row whose token still matches means the guard failed
    on something else, which the caller names through ``conflict``.
    """

    if current is None or getattr(current, "deleted", False):
        return Outcome.RECORD_DID_NOT_EXIST
    if not check_token(current.concurrency_key, supplied_token):
        return Outcome.CONCURRENCY_KEY_INVALID
    return conflict


__all__ = [
    "Dependent",
    "DomainCollision",
    "MutationResult",
    "Outcome",
    "classify_zero_rows",
]
