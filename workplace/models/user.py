"""User model."""
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class User(Base):
    """Represents a member of an organization."""

    __tablename__ = "users"

    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(151), nullable=False)
    avatar_thumbnail_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class UserBuildingAssignment(Base):
    """Places a user in a building, optionally inside one of its functions."""

    __tablename__ = "user_building_assignments"
    __table_args__ = (UniqueConstraint("user_id", "building_id", name="uq_user_building_assignment"),)

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    building_id: Mapped[UUID] = mapped_column(ForeignKey("buildings.id"), nullable=False, index=True)
    function_id: Mapped[UUID | None] = mapped_column(ForeignKey("functions.id"), nullable=True, index=True)
