"""Organization mutations: domains, logo and the seeded first building."""
from __future__ import annotations

import logging
from typing import Any, Iterable
from uuid import UUID, uuid4

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workplace.models import (
    Building,
    ImageRelatedObjectType,
    Organization,
    OrganizationDomain,
    OrganizationDomainLog,
    OrganizationLog,
    Region,
)
from workplace.schemas.organization import OrganizationCreate, OrganizationUpdate
from workplace.services.buildings import BuildingService
from workplace.services.image_storage import ImageOwner
from workplace.services.orchestrator import MutationOrchestrator, PostCommitQueue, abort
from workplace.services.outcomes import DomainCollision, MutationResult, Outcome
from workplace.services.regions import RegionService
from workplace.utils.audit import Actor, AuditAction, AuditEntry, OperationContext, append_audit

logger = logging.getLogger(__name__)


class OrganizationService(MutationOrchestrator[Organization]):
    model = Organization
    log_model = OrganizationLog
    audited_fields = (
        "name",
        "logo_image_storage_id",
        "logo_image_url",
        "check_in_enabled",
        "work_from_home_enabled",
        "disabled",
    )
    fixed_fields = ()

    def lock_scope(self, row: Organization) -> None:
        return None

    # -- domains -----------------------------------------------------------

    def domain_collisions(
        self, session: Session, domains: Iterable[str], organization_id: UUID | None = None
    ) -> list[DomainCollision]:
        """Domains already registered to another organization."""

        wanted = list(domains)
        if not wanted:
            return []
        stmt = select(OrganizationDomain.organization_id, OrganizationDomain.domain_name).where(
            OrganizationDomain.domain_name.in_(wanted)
        )
        if organization_id is not None:
            stmt = stmt.where(OrganizationDomain.organization_id != organization_id)
        rows = session.execute(stmt.order_by(OrganizationDomain.domain_name))
        return [DomainCollision(row.organization_id, row.domain_name) for row in rows]

    def _ensure_domains_free(self, session: Session, domains: list[str], organization_id: UUID | None = None) -> None:
        collisions = self.domain_collisions(session, domains, organization_id)
        if collisions:
            logger.info(
                "Domain collision",
                extra={"domains": [collision.domain_name for collision in collisions]},
            )
            abort(Outcome.SUB_RECORD_ALREADY_EXISTS, collisions=collisions)

    @staticmethod
    def _domain_entry(ctx: OperationContext, action: AuditAction, domain_id: UUID, organization_id: UUID, name: str) -> AuditEntry:
        inserted = action is AuditAction.INSERT
        return AuditEntry(
            action=action,
            description=action.value,
            subject_id=domain_id,
            context=ctx,
            new={"domain_name": name} if inserted else {},
            old={} if inserted else {"domain_name": name},
            fixed={"organization_id": organization_id},
            deleted=not inserted,
            old_deleted=None if inserted else False,
            cascaded=True,
        )

    def add_domains(self, session: Session, ctx: OperationContext, organization_id: UUID, domains: Iterable[str]) -> None:
        for name in domains:
            domain_id = uuid4()
            try:
                with session.begin_nested():
                    session.execute(
                        insert(OrganizationDomain.__table__).values(
                            id=domain_id, created_at=ctx.now, organization_id=organization_id, domain_name=name
                        )
                    )
            except IntegrityError:
                # Claimed by a concurrent transaction after the collision check.
                logger.info("Domain claimed concurrently", extra={"domain": name})
                abort(
                    Outcome.SUB_RECORD_ALREADY_EXISTS,
                    collisions=self.domain_collisions(session, [name], organization_id),
                )
            append_audit(
                session,
                OrganizationDomainLog,
                self._domain_entry(ctx, AuditAction.INSERT, domain_id, organization_id, name),
            )

    def remove_domains(self, session: Session, ctx: OperationContext, domains: Iterable[OrganizationDomain]) -> None:
        for domain in domains:
            session.execute(delete(OrganizationDomain.__table__).where(OrganizationDomain.id == domain.id))
            append_audit(
                session,
                OrganizationDomainLog,
                self._domain_entry(ctx, AuditAction.DELETE, domain.id, domain.organization_id, domain.domain_name),
            )

    def domains_of(self, session: Session, organization_id: UUID) -> list[OrganizationDomain]:
        stmt = select(OrganizationDomain).where(OrganizationDomain.organization_id == organization_id)
        return list(session.execute(stmt.order_by(OrganizationDomain.domain_name)).scalars())

    # -- mutations ---------------------------------------------------------

    def _logo_values(
        self,
        session: Session,
        ctx: OperationContext,
        tasks: PostCommitQueue,
        organization_id: UUID,
        content: bytes,
    ) -> dict[str, Any]:
        stored = self.store_image(
            session,
            ctx,
            tasks,
            content,
            ImageOwner(organization_id, ImageRelatedObjectType.ORGANIZATION_LOGO, organization_id),
        )
        return {"logo_image_storage_id": stored.id, "logo_image_url": stored.public_url}

    def create(self, payload: OrganizationCreate, actor: Actor | None = None) -> MutationResult[Organization]:
        """Create an organization together with its first region, building and function."""

        def body(session: Session, ctx: OperationContext, tasks: PostCommitQueue) -> MutationResult:
            self.ensure_name_free(session, {}, payload.name)
            self._ensure_domains_free(session, payload.domains)

            organization_id = uuid4()
            values: dict[str, Any] = {
                "id": organization_id,
                "name": payload.name,
                "check_in_enabled": payload.check_in_enabled,
                "work_from_home_enabled": payload.work_from_home_enabled,
                "disabled": payload.disabled,
                "logo_image_storage_id": None,
                "logo_image_url": None,
            }
            if payload.logo_image is not None:
                values.update(self._logo_values(session, ctx, tasks, organization_id, payload.logo_image.content))
            self.insert_entity(session, ctx, values, {})
            self.add_domains(session, ctx, organization_id, payload.domains)

            region = self.child(RegionService).insert_entity(
                session,
                ctx,
                {"organization_id": organization_id, "name": payload.region_name},
                {"organization_id": organization_id},
                cascaded=True,
            )
            self.child(BuildingService).insert_building(
                session,
                ctx,
                tasks,
                organization_id,
                region["id"],
                payload.building,
                payload.function,
                {"feature_image": payload.building.feature_image},
                cascaded=True,
            )
            return MutationResult(Outcome.OK, entity=self.reload(session, organization_id))

        return self.execute(self.lock_key(None, payload.name), actor, body, operation="create")

    def update(
        self,
        organization_id: UUID,
        payload: OrganizationUpdate,
        actor: Actor | None = None,
    ) -> MutationResult[Organization]:
        """Edit fields, reconcile domains and replace or clear the logo."""

        def body(session: Session, ctx: OperationContext, tasks: PostCommitQueue) -> MutationResult:
            current = self.load_for_write(session, organization_id, payload.concurrency_key)
            conflict = self.ensure_name_free(session, {}, payload.name, exclude_id=organization_id)
            self._ensure_domains_free(session, payload.domains, organization_id)

            values: dict[str, Any] = {
                "name": payload.name,
                "check_in_enabled": payload.check_in_enabled,
                "work_from_home_enabled": payload.work_from_home_enabled,
                "disabled": payload.disabled,
            }
            previous_logo = current.logo_image_storage_id
            if payload.logo_image is not None:
                values.update(self._logo_values(session, ctx, tasks, organization_id, payload.logo_image.content))
                self.delete_image_after_commit(tasks, ctx, previous_logo)
            elif payload.clear_logo_image:
                values.update(logo_image_storage_id=None, logo_image_url=None)
                self.delete_image_after_commit(tasks, ctx, previous_logo)

            self.guarded_update(session, ctx, current, payload.concurrency_key, values, conflict)

            existing = self.domains_of(session, organization_id)
            wanted = set(payload.domains)
            self.remove_domains(session, ctx, [domain for domain in existing if domain.domain_name not in wanted])
            kept = {domain.domain_name for domain in existing}
            self.add_domains(session, ctx, organization_id, [name for name in payload.domains if name not in kept])
            return MutationResult(Outcome.OK, entity=self.reload(session, organization_id))

        return self.execute(self.lock_key(None, payload.name), actor, body, operation="update")

    def after_delete(self, session: Session, ctx: OperationContext, current: Organization, tasks: PostCommitQueue) -> None:
        """Remove domains and soft-delete every region, building and function."""

        self.remove_domains(session, ctx, self.domains_of(session, current.id))

        buildings = self.child(BuildingService)
        live_buildings = session.execute(
            select(Building).where(Building.organization_id == current.id, Building.deleted.is_(False))
        ).scalars()
        for building in list(live_buildings):
            buildings.cascade_soft_delete(session, ctx, building, tasks)

        regions = self.child(RegionService)
        live_regions = session.execute(
            select(Region).where(Region.organization_id == current.id, Region.deleted.is_(False))
        ).scalars()
        for region in list(live_regions):
            regions.cascade_soft_delete(session, ctx, region)

        self.delete_image_after_commit(tasks, ctx, current.logo_image_storage_id)


__all__ = ["OrganizationService"]
