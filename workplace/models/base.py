"""Declarative base model and shared column mixins for SQLAlchemy."""
from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, LargeBinary, String, TypeDecorator, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from workplace.utils.concurrency import TOKEN_BYTES, new_concurrency_key


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that comes back as UTC on every backend."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)


class EntityMixin:
    """Columns shared by versioned, soft-deletable registry entities."""

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    concurrency_key: Mapped[bytes] = mapped_column(
        LargeBinary(TOKEN_BYTES),
        default=new_concurrency_key,
        onupdate=new_concurrency_key,
        nullable=False,
    )


class HistoryMixin:
    """Half-open ``[start_at, end_at)`` interval; only ``end_at`` ever changes."""

    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    start_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class AuditLogMixin:
    """Provenance columns present on every ``*_log`` table.

    Subclasses declare ``__audit_subject__`` naming the column that holds the
    id of the audited row, plus ``<field>`` / ``old_<field>`` pairs.
    """

    __audit_subject__: str

    updated_by_uid: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    updated_by_display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    updated_by_ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    log_description: Mapped[str] = mapped_column(String(200), nullable=False)
    log_action: Mapped[str] = mapped_column(String(10), nullable=False)
    deleted: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    old_deleted: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    cascade_from: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cascade_log_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True, index=True)
