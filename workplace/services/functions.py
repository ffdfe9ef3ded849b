"""Function mutations, adjacency bookkeeping and in-use checks."""
from __future__ import annotations

import logging
from typing import Iterable
from uuid import UUID, uuid4

from sqlalchemy import delete, insert, or_, select
from sqlalchemy.orm import Session

from workplace.models import (
    Building,
    Desk,
    Floor,
    Function,
    FunctionAdjacency,
    FunctionAdjacencyLog,
    FunctionHistory,
    FunctionLog,
    User,
    UserBuildingAssignment,
)
from workplace.schemas.function import FunctionCreate, FunctionUpdate
from workplace.services.history import HistorySplicer
from workplace.services.orchestrator import MutationOrchestrator, PostCommitQueue, abort
from workplace.services.outcomes import Dependent, MutationResult, Outcome
from workplace.utils.audit import Actor, AuditAction, AuditEntry, OperationContext, append_audit, snapshot

logger = logging.getLogger(__name__)


def building_is_live(session: Session, organization_id: UUID, building_id: UUID) -> bool:
    stmt = select(Building.id).where(
        Building.id == building_id,
        Building.organization_id == organization_id,
        Building.deleted.is_(False),
    )
    return session.execute(stmt).first() is not None


class FunctionService(MutationOrchestrator[Function]):
    model = Function
    log_model = FunctionLog
    history = HistorySplicer(FunctionHistory, "function_id", ("name", "building_id", "html_color"))
    audited_fields = ("name", "building_id", "html_color")

    def lock_scope(self, row: Function) -> UUID:
        return row.building_id

    @staticmethod
    def scope_for(organization_id: UUID, building_id: UUID) -> dict[str, UUID]:
        return {"organization_id": organization_id, "building_id": building_id}

    # -- adjacencies -------------------------------------------------------

    def _check_adjacencies(
        self,
        session: Session,
        organization_id: UUID,
        building_id: UUID,
        adjacent_ids: Iterable[UUID],
        function_id: UUID | None = None,
    ) -> set[UUID]:
        """Return the requested ids, aborting unless all are live functions of the building."""

        wanted = set(adjacent_ids)
        if function_id is not None and function_id in wanted:
            abort(Outcome.SUB_RECORD_INVALID)
        if not wanted:
            return wanted
        found = set(
            session.execute(
                select(Function.id).where(
                    Function.id.in_(wanted),
                    Function.organization_id == organization_id,
                    Function.building_id == building_id,
                    Function.deleted.is_(False),
                )
            ).scalars()
        )
        if found != wanted:
            logger.info(
                "Rejected adjacent functions",
                extra={"building_id": str(building_id), "invalid": sorted(str(i) for i in wanted - found)},
            )
            abort(Outcome.SUB_RECORD_INVALID)
        return wanted

    def _adjacency_entry(
        self, ctx: OperationContext, action: AuditAction, adjacency: FunctionAdjacency | dict
    ) -> AuditEntry:
        values = snapshot(adjacency, ("function_id", "adjacent_function_id", "organization_id"))
        return AuditEntry(
            action=action,
            description=action.value,
            subject_id=values.pop("function_id"),
            context=ctx,
            fixed=values,
            deleted=action is AuditAction.DELETE,
            old_deleted=None if action is AuditAction.INSERT else False,
            cascaded=True,
        )

    def add_adjacencies(
        self,
        session: Session,
        ctx: OperationContext,
        organization_id: UUID,
        function_id: UUID,
        adjacent_ids: Iterable[UUID],
    ) -> None:
        for adjacent_id in sorted(adjacent_ids, key=str):
            row = {
                "id": uuid4(),
                "created_at": ctx.now,
                "organization_id": organization_id,
                "function_id": function_id,
                "adjacent_function_id": adjacent_id,
            }
            session.execute(insert(FunctionAdjacency.__table__).values(**row))
            append_audit(session, FunctionAdjacencyLog, self._adjacency_entry(ctx, AuditAction.INSERT, row))

    def remove_adjacencies(self, session: Session, ctx: OperationContext, adjacencies: Iterable[FunctionAdjacency]) -> int:
        removed = 0
        for adjacency in adjacencies:
            session.execute(delete(FunctionAdjacency.__table__).where(FunctionAdjacency.id == adjacency.id))
            append_audit(session, FunctionAdjacencyLog, self._adjacency_entry(ctx, AuditAction.DELETE, adjacency))
            removed += 1
        return removed

    def adjacencies_touching(self, session: Session, function_id: UUID, *, outgoing: bool = True, incoming: bool = True) -> list[FunctionAdjacency]:
        clauses = []
        if outgoing:
            clauses.append(FunctionAdjacency.function_id == function_id)
        if incoming:
            clauses.append(FunctionAdjacency.adjacent_function_id == function_id)
        return list(session.execute(select(FunctionAdjacency).where(or_(*clauses))).scalars())

    # -- mutations ---------------------------------------------------------

    def create(self, organization_id: UUID, payload: FunctionCreate, actor: Actor | None = None) -> MutationResult[Function]:
        scope = self.scope_for(organization_id, payload.building_id)

        def body(session: Session, ctx: OperationContext, tasks: PostCommitQueue) -> MutationResult:
            if not building_is_live(session, organization_id, payload.building_id):
                abort(Outcome.SUB_RECORD_DID_NOT_EXIST)
            self.ensure_name_free(session, scope, payload.name)
            adjacent = self._check_adjacencies(session, organization_id, payload.building_id, payload.adjacent_function_ids)
            row = self.insert_entity(
                session,
                ctx,
                {
                    "organization_id": organization_id,
                    "building_id": payload.building_id,
                    "name": payload.name,
                    "html_color": payload.html_color,
                },
                scope,
            )
            self.add_adjacencies(session, ctx, organization_id, row["id"], adjacent)
            return MutationResult(Outcome.OK, entity=self.reload(session, row["id"]))

        return self.execute(self.lock_key(payload.building_id, payload.name), actor, body, operation="create")

    def update(
        self,
        organization_id: UUID,
        function_id: UUID,
        payload: FunctionUpdate,
        actor: Actor | None = None,
    ) -> MutationResult[Function]:
        """Rename, recolor or move a function and reconcile its adjacencies."""

        scope = self.scope_for(organization_id, payload.building_id)

        def body(session: Session, ctx: OperationContext, tasks: PostCommitQueue) -> MutationResult:
            current = self.load_for_write(session, function_id, payload.concurrency_key, organization_id)
            if not building_is_live(session, organization_id, payload.building_id):
                abort(Outcome.SUB_RECORD_DID_NOT_EXIST)
            conflict = self.ensure_name_free(session, scope, payload.name, exclude_id=function_id)
            wanted = self._check_adjacencies(
                session, organization_id, payload.building_id, payload.adjacent_function_ids, function_id
            )
            moved = current.building_id != payload.building_id

            fresh = self.guarded_update(
                session,
                ctx,
                current,
                payload.concurrency_key,
                {"name": payload.name, "html_color": payload.html_color, "building_id": payload.building_id},
                conflict,
            )

            existing = self.adjacencies_touching(session, function_id, incoming=moved)
            stale = [
                adjacency
                for adjacency in existing
                if adjacency.function_id != function_id or adjacency.adjacent_function_id not in wanted
            ]
            self.remove_adjacencies(session, ctx, stale)
            kept = {adjacency.adjacent_function_id for adjacency in existing if adjacency not in stale}
            self.add_adjacencies(session, ctx, organization_id, function_id, wanted - kept)
            return MutationResult(Outcome.OK, entity=fresh)

        return self.execute(self.lock_key(payload.building_id, payload.name), actor, body, operation="update")

    def find_dependents(self, session: Session, current: Function) -> list[Dependent]:
        """Desks and users still assigned to the function."""

        desks = session.execute(
            select(Desk.id, Desk.name, Floor.id.label("floor_id"), Floor.name.label("floor_name"))
            .join(Floor, Floor.id == Desk.floor_id)
            .where(Desk.function_id == current.id, Desk.deleted.is_(False), Floor.deleted.is_(False))
            .order_by(Floor.name, Desk.name)
        )
        dependents = [
            Dependent(
                kind="desk",
                id=row.id,
                display_name=row.name,
                details={"floor_id": str(row.floor_id), "floor_name": row.floor_name},
            )
            for row in desks
        ]
        users = session.execute(
            select(User.id, User.display_name, User.email, User.avatar_thumbnail_url)
            .join(UserBuildingAssignment, UserBuildingAssignment.user_id == User.id)
            .where(UserBuildingAssignment.function_id == current.id)
            .order_by(User.display_name)
        )
        dependents.extend(
            Dependent(
                kind="user",
                id=row.id,
                display_name=row.display_name,
                details={"email": row.email, "avatar_thumbnail_url": row.avatar_thumbnail_url},
            )
            for row in users
        )
        return dependents

    def after_delete(self, session: Session, ctx: OperationContext, current: Function, tasks: PostCommitQueue) -> None:
        self.remove_adjacencies(session, ctx, self.adjacencies_touching(session, current.id))

    def cascade_soft_delete(self, session: Session, ctx: OperationContext, row: Function) -> None:
        super().cascade_soft_delete(session, ctx, row)
        self.remove_adjacencies(session, ctx, self.adjacencies_touching(session, row.id))


__all__ = ["FunctionService", "building_is_live"]
