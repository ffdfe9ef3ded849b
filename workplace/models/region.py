"""Region models."""
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import AuditLogMixin, Base, EntityMixin, HistoryMixin


class Region(EntityMixin, Base):
    """Geographic grouping of buildings inside an organization."""

    __tablename__ = "regions"

    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)


Index(
    "ux_regions_org_name_active",
    Region.organization_id,
    func.lower(Region.name),
    unique=True,
    sqlite_where=Region.deleted.is_(False),
    postgresql_where=Region.deleted.is_(False),
)


class RegionHistory(HistoryMixin, Base):
    __tablename__ = "region_histories"
    __table_args__ = (Index("ix_region_histories_region_start", "region_id", "start_at"),)

    region_id: Mapped[UUID] = mapped_column(ForeignKey("regions.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class RegionLog(AuditLogMixin, Base):
    __tablename__ = "regions_log"
    __audit_subject__ = "region_id"

    region_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    old_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
