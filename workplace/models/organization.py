"""Organization (tenant) models."""
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditLogMixin, Base, EntityMixin


class Organization(EntityMixin, Base):
    """Top-level tenant that owns regions, buildings and functions."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    logo_image_storage_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    logo_image_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    check_in_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    work_from_home_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    disabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    domains = relationship(
        "OrganizationDomain",
        back_populates="organization",
        lazy="selectin",
        order_by="OrganizationDomain.domain_name",
    )


Index(
    "ux_organizations_name_active",
    func.lower(Organization.name),
    unique=True,
    sqlite_where=Organization.deleted.is_(False),
    postgresql_where=Organization.deleted.is_(False),
)


class OrganizationDomain(Base):
    """Email domain owned by one organization; rows are removed, not soft-deleted."""

    __tablename__ = "organization_domains"
    __table_args__ = (UniqueConstraint("domain_name", name="uq_organization_domains_domain_name"),)

    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)
    domain_name: Mapped[str] = mapped_column(String(253), nullable=False)

    organization = relationship("Organization", back_populates="domains")


class OrganizationLog(AuditLogMixin, Base):
    __tablename__ = "organizations_log"
    __audit_subject__ = "organization_id"

    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    old_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    logo_image_storage_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    old_logo_image_storage_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    logo_image_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    old_logo_image_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    check_in_enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    old_check_in_enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    work_from_home_enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    old_work_from_home_enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    disabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    old_disabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)


class OrganizationDomainLog(AuditLogMixin, Base):
    __tablename__ = "organization_domains_log"
    __audit_subject__ = "organization_domain_id"

    organization_domain_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    domain_name: Mapped[str | None] = mapped_column(String(253), nullable=True)
    old_domain_name: Mapped[str | None] = mapped_column(String(253), nullable=True)
