"""Stored image models."""
from datetime import datetime
from enum import Enum as PyEnum
from uuid import UUID

from sqlalchemy import Boolean, Enum as SqlEnum, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import AuditLogMixin, Base, UTCDateTime


class ImageRelatedObjectType(str, PyEnum):
    """Which entity field a stored image belongs to."""

    ORGANIZATION_LOGO = "ORGANIZATION_LOGO"
    BUILDING_FEATURE = "BUILDING_FEATURE"
    BUILDING_MAP = "BUILDING_MAP"


class StoredImage(Base):
    """Metadata of an image file kept in local storage."""

    __tablename__ = "stored_images"
    __table_args__ = (Index("ix_stored_images_deleted_created", "deleted", "created_at"),)

    organization_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    related_object_type: Mapped[ImageRelatedObjectType] = mapped_column(
        SqlEnum(ImageRelatedObjectType), nullable=False
    )
    related_object_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    relative_path: Mapped[str] = mapped_column(String(255), nullable=False)
    public_url: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(50), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class StoredImageLog(AuditLogMixin, Base):
    __tablename__ = "stored_images_log"
    __audit_subject__ = "stored_image_id"

    stored_image_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    organization_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    related_object_type: Mapped[str] = mapped_column(String(32), nullable=False)
    related_object_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    relative_path: Mapped[str] = mapped_column(String(255), nullable=False)
