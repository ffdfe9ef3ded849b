"""Region mutations and lookups."""
from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workplace.models import Building, Organization, Region, RegionHistory, RegionLog
from workplace.schemas.region import RegionCreate, RegionUpdate
from workplace.services.history import HistorySplicer
from workplace.services.orchestrator import MutationOrchestrator, PostCommitQueue, abort
from workplace.services.outcomes import Dependent, MutationResult, Outcome
from workplace.utils.audit import Actor, OperationContext


def organization_is_live(session: Session, organization_id: UUID) -> bool:
    stmt = select(Organization.id).where(Organization.id == organization_id, Organization.deleted.is_(False))
    return session.execute(stmt).first() is not None


class RegionService(MutationOrchestrator[Region]):
    model = Region
    log_model = RegionLog
    history = HistorySplicer(RegionHistory, "region_id", ("name",))
    audited_fields = ("name",)

    def create(self, organization_id: UUID, payload: RegionCreate, actor: Actor | None = None) -> MutationResult[Region]:
        scope = {"organization_id": organization_id}

        def body(session: Session, ctx: OperationContext, tasks: PostCommitQueue) -> MutationResult:
            if not organization_is_live(session, organization_id):
                abort(Outcome.SUB_RECORD_DID_NOT_EXIST)
            self.ensure_name_free(session, scope, payload.name)
            row = self.insert_entity(session, ctx, {"organization_id": organization_id, "name": payload.name}, scope)
            return MutationResult(Outcome.OK, entity=self.reload(session, row["id"]))

        return self.execute(self.lock_key(organization_id, payload.name), actor, body, operation="create")

    def update(
        self,
        organization_id: UUID,
        region_id: UUID,
        payload: RegionUpdate,
        actor: Actor | None = None,
    ) -> MutationResult[Region]:
        """Rename a region."""

        scope = {"organization_id": organization_id}

        def body(session: Session, ctx: OperationContext, tasks: PostCommitQueue) -> MutationResult:
            current = self.load_for_write(session, region_id, payload.concurrency_key, organization_id)
            conflict = self.ensure_name_free(session, scope, payload.name, exclude_id=region_id)
            fresh = self.guarded_update(
                session, ctx, current, payload.concurrency_key, {"name": payload.name}, conflict
            )
            return MutationResult(Outcome.OK, entity=fresh)

        return self.execute(self.lock_key(organization_id, payload.name), actor, body, operation="update")

    def find_dependents(self, session: Session, current: Region) -> list[Dependent]:
        rows = session.execute(
            select(Building.id, Building.name)
            .where(Building.region_id == current.id, Building.deleted.is_(False))
            .order_by(Building.name)
        )
        return [Dependent(kind="building", id=row.id, display_name=row.name) for row in rows]


__all__ = ["RegionService", "organization_is_live"]
