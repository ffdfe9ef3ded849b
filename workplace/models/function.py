"""Function (team / department) models."""
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditLogMixin, Base, EntityMixin, HistoryMixin


class Function(EntityMixin, Base):
    """Team or department seated in a building."""

    __tablename__ = "functions"

    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)
    building_id: Mapped[UUID] = mapped_column(ForeignKey("buildings.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    html_color: Mapped[str] = mapped_column(String(7), nullable=False)

    adjacencies = relationship(
        "FunctionAdjacency",
        foreign_keys="FunctionAdjacency.function_id",
        lazy="selectin",
    )


Index(
    "ux_functions_building_name_active",
    Function.organization_id,
    Function.building_id,
    func.lower(Function.name),
    unique=True,
    sqlite_where=Function.deleted.is_(False),
    postgresql_where=Function.deleted.is_(False),
)


class FunctionAdjacency(Base):
    """Directed "sits next to" link between two functions of one building."""

    __tablename__ = "function_adjacencies"
    __table_args__ = (
        UniqueConstraint("function_id", "adjacent_function_id", name="uq_function_adjacencies_pair"),
    )

    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    function_id: Mapped[UUID] = mapped_column(ForeignKey("functions.id"), nullable=False, index=True)
    adjacent_function_id: Mapped[UUID] = mapped_column(ForeignKey("functions.id"), nullable=False, index=True)


class FunctionHistory(HistoryMixin, Base):
    __tablename__ = "function_histories"
    __table_args__ = (Index("ix_function_histories_function_start", "function_id", "start_at"),)

    function_id: Mapped[UUID] = mapped_column(ForeignKey("functions.id"), nullable=False)
    building_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    html_color: Mapped[str] = mapped_column(String(7), nullable=False)


class FunctionLog(AuditLogMixin, Base):
    __tablename__ = "functions_log"
    __audit_subject__ = "function_id"

    function_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    building_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    old_building_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    old_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    html_color: Mapped[str | None] = mapped_column(String(7), nullable=True)
    old_html_color: Mapped[str | None] = mapped_column(String(7), nullable=True)


class FunctionAdjacencyLog(AuditLogMixin, Base):
    __tablename__ = "function_adjacencies_log"
    __audit_subject__ = "function_id"

    function_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    adjacent_function_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
