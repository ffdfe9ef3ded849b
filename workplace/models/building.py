"""Building models."""
from uuid import UUID

from sqlalchemy import Boolean, Float, ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import AuditLogMixin, Base, EntityMixin, HistoryMixin


class Building(EntityMixin, Base):
    """Physical site belonging to a region of an organization."""

    __tablename__ = "buildings"

    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)
    region_id: Mapped[UUID] = mapped_column(ForeignKey("regions.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    timezone: Mapped[str] = mapped_column(String(50), nullable=False)
    facilities_management_email: Mapped[str | None] = mapped_column(String(254), nullable=True)
    feature_image_storage_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    feature_image_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    map_image_storage_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    map_image_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    check_in_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


Index(
    "ux_buildings_org_name_active",
    Building.organization_id,
    func.lower(Building.name),
    unique=True,
    sqlite_where=Building.deleted.is_(False),
    postgresql_where=Building.deleted.is_(False),
)


class BuildingHistory(HistoryMixin, Base):
    __tablename__ = "building_histories"
    __table_args__ = (Index("ix_building_histories_building_start", "building_id", "start_at"),)

    building_id: Mapped[UUID] = mapped_column(ForeignKey("buildings.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    region_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)


class BuildingLog(AuditLogMixin, Base):
    __tablename__ = "buildings_log"
    __audit_subject__ = "building_id"

    building_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    old_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    region_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    old_region_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    old_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    old_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    old_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    old_timezone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    facilities_management_email: Mapped[str | None] = mapped_column(String(254), nullable=True)
    old_facilities_management_email: Mapped[str | None] = mapped_column(String(254), nullable=True)
    feature_image_storage_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    old_feature_image_storage_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    feature_image_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    old_feature_image_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    map_image_storage_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    old_map_image_storage_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    map_image_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    old_map_image_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    check_in_enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    old_check_in_enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
