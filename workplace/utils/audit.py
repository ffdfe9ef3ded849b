"""Audit logging helper utilities."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping
from uuid import UUID, uuid4

from sqlalchemy import insert
from sqlalchemy.orm import Session

from workplace.utils.time import utcnow


class AuditAction(str, Enum):
    INSERT = "Insert"
    UPDATE = "Update"
    DELETE = "Delete"


@dataclass(frozen=True)
class Actor:
    """Who triggered a mutation; every field is optional (system jobs have none)."""

    uid: UUID | None = None
    display_name: str | None = None
    ip_address: str | None = None


SYSTEM_ACTOR = Actor(display_name="system")


@dataclass(frozen=True)
class OperationContext:
    """Provenance shared by every write of one logical operation.

    ``log_id`` becomes the id of the root audit row; every cascaded row stores
    it in ``cascade_log_id`` together with ``root_table`` in ``cascade_from``.
    """

    actor: Actor
    root_table: str
    log_id: UUID = field(default_factory=uuid4)
    now: datetime = field(default_factory=utcnow)

    @classmethod
    def begin(cls, actor: Actor | None, root_table: str, *, now: datetime | None = None) -> "OperationContext":
        return cls(actor=actor or SYSTEM_ACTOR, root_table=root_table, now=now or utcnow())


@dataclass
class AuditEntry:
    """One row for a ``*_log`` table.

    ``new`` and ``old`` map mirrored field names to posterior / prior values;
    ``fixed`` holds columns that are recorded once (owning organization, etc.).
    """

    action: AuditAction
    description: str
    subject_id: UUID
    context: OperationContext
    new: Mapping[str, Any] = field(default_factory=dict)
    old: Mapping[str, Any] = field(default_factory=dict)
    fixed: Mapping[str, Any] = field(default_factory=dict)
    deleted: bool | None = False
    old_deleted: bool | None = None
    cascaded: bool = False


def append_audit(session: Session, log_model: type, entry: AuditEntry) -> UUID:
    """Insert ``entry`` into ``log_model``'s table and return the log id.

    Root entries reuse the context's log id; cascaded entries get their own id
    and point back at the root. Storage errors propagate to the caller.
    """

    ctx = entry.context
    log_id = uuid4() if entry.cascaded else ctx.log_id
    row: dict[str, Any] = {
        "id": log_id,
        "created_at": ctx.now,
        "updated_by_uid": ctx.actor.uid,
        "updated_by_display_name": ctx.actor.display_name,
        "updated_by_ip_address": ctx.actor.ip_address,
        "log_description": entry.description,
        "log_action": entry.action.value,
        "deleted": entry.deleted,
        "old_deleted": entry.old_deleted,
        "cascade_from": ctx.root_table if entry.cascaded else None,
        "cascade_log_id": ctx.log_id if entry.cascaded else None,
        log_model.__audit_subject__: entry.subject_id,
    }
    row.update(entry.fixed)
    for name, value in entry.new.items():
        row[name] = value
    for name, value in entry.old.items():
        row[f"old_{name}"] = value
    session.execute(insert(log_model.__table__).values(**row))
    return log_id


def snapshot(obj: Any, fields: tuple[str, ...]) -> dict[str, Any]:
    """Read ``fields`` from an ORM row (or mapping) into a plain dict."""

    if isinstance(obj, Mapping):
        return {name: obj[name] for name in fields}
    return {name: getattr(obj, name) for name in fields}


def actor_from_request(uid: UUID | None, display_name: str | None, ip_address: str | None) -> Actor:
    """Build an :class:`Actor` from request-level identity headers."""

    if display_name:
        display_name = display_name.strip()[:200] or None
    return Actor(uid=uid, display_name=display_name, ip_address=ip_address)


__all__ = [
    "Actor",
    "AuditAction",
    "AuditEntry",
    "OperationContext",
    "SYSTEM_ACTOR",
    "actor_from_request",
    "append_audit",
    "snapshot",
]
