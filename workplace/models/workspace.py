"""Floors and desks; only read here to find functions that are still in use."""
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Floor(Base):
    __tablename__ = "floors"

    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)
    building_id: Mapped[UUID] = mapped_column(ForeignKey("buildings.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class Desk(Base):
    __tablename__ = "desks"

    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)
    floor_id: Mapped[UUID] = mapped_column(ForeignKey("floors.id"), nullable=False, index=True)
    function_id: Mapped[UUID | None] = mapped_column(ForeignKey("functions.id"), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
