"""Building mutations and lookups."""
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from workplace.models import Building, BuildingHistory, BuildingLog, Function, ImageRelatedObjectType, Region
from workplace.schemas.building import BuildingCreate, BuildingFields, BuildingUpdate, FunctionSeed
from workplace.schemas.common import ImageUpload
from workplace.services.functions import FunctionService
from workplace.services.history import HistorySplicer
from workplace.services.image_storage import ImageOwner
from workplace.services.orchestrator import MutationOrchestrator, PostCommitQueue, abort
from workplace.services.outcomes import MutationResult, Outcome
from workplace.utils.audit import Actor, OperationContext

logger = logging.getLogger(__name__)

# Image slots on a building: (column prefix, stored image type).
IMAGE_SLOTS = (
    ("feature_image", ImageRelatedObjectType.BUILDING_FEATURE),
    ("map_image", ImageRelatedObjectType.BUILDING_MAP),
)

_DETAIL_FIELDS = (
    "name",
    "address",
    "latitude",
    "longitude",
    "timezone",
    "facilities_management_email",
    "check_in_enabled",
)


def region_is_live(session: Session, organization_id: UUID, region_id: UUID) -> bool:
    stmt = select(Region.id).where(
        Region.id == region_id,
        Region.organization_id == organization_id,
        Region.deleted.is_(False),
    )
    return session.execute(stmt).first() is not None


class BuildingService(MutationOrchestrator[Building]):
    model = Building
    log_model = BuildingLog
    history = HistorySplicer(BuildingHistory, "building_id", ("name", "region_id"))
    audited_fields = (
        "name",
        "region_id",
        "address",
        "latitude",
        "longitude",
        "timezone",
        "facilities_management_email",
        "feature_image_storage_id",
        "feature_image_url",
        "map_image_storage_id",
        "map_image_url",
        "check_in_enabled",
    )
    sortable_fields = ("name", "created_at", "updated_at", "timezone")

    @property
    def functions(self) -> FunctionService:
        return self.child(FunctionService)

    def _attach_image(
        self,
        session: Session,
        ctx: OperationContext,
        tasks: PostCommitQueue,
        values: dict[str, Any],
        slot: str,
        image_type: ImageRelatedObjectType,
        upload: ImageUpload,
    ) -> None:
        stored = self.store_image(
            session,
            ctx,
            tasks,
            upload.content,
            ImageOwner(values["organization_id"], image_type, values["id"]),
        )
        values[f"{slot}_storage_id"] = stored.id
        values[f"{slot}_url"] = stored.public_url

    def insert_building(
        self,
        session: Session,
        ctx: OperationContext,
        tasks: PostCommitQueue,
        organization_id: UUID,
        region_id: UUID,
        details: BuildingFields,
        function: FunctionSeed,
        images: dict[str, ImageUpload | None],
        *,
        cascaded: bool = False,
    ) -> dict[str, Any]:
        """Insert a building plus its first function; shared with organization create."""

        values: dict[str, Any] = {
            "id": uuid4(),
            "organization_id": organization_id,
            "region_id": region_id,
            **details.model_dump(include=set(_DETAIL_FIELDS)),
        }
        for slot, image_type in IMAGE_SLOTS:
            values[f"{slot}_storage_id"] = None
            values[f"{slot}_url"] = None
            upload = images.get(slot)
            if upload is not None:
                self._attach_image(session, ctx, tasks, values, slot, image_type, upload)

        row = self.insert_entity(session, ctx, values, {"organization_id": organization_id}, cascaded=cascaded)
        self.functions.insert_entity(
            session,
            ctx,
            {
                "organization_id": organization_id,
                "building_id": row["id"],
                "name": function.name,
                "html_color": function.html_color,
            },
            FunctionService.scope_for(organization_id, row["id"]),
            cascaded=True,
        )
        return row

    def create(self, organization_id: UUID, payload: BuildingCreate, actor: Actor | None = None) -> MutationResult[Building]:
        """Create a building in an existing region, seeded with one function."""

        def body(session: Session, ctx: OperationContext, tasks: PostCommitQueue) -> MutationResult:
            if not region_is_live(session, organization_id, payload.region_id):
                abort(Outcome.SUB_RECORD_DID_NOT_EXIST)
            self.ensure_name_free(session, {"organization_id": organization_id}, payload.name)
            row = self.insert_building(
                session,
                ctx,
                tasks,
                organization_id,
                payload.region_id,
                payload,
                payload.function,
                {"feature_image": payload.feature_image, "map_image": payload.map_image},
            )
            return MutationResult(Outcome.OK, entity=self.reload(session, row["id"]))

        return self.execute(self.lock_key(organization_id, payload.name), actor, body, operation="create")

    def update(
        self,
        organization_id: UUID,
        building_id: UUID,
        payload: BuildingUpdate,
        actor: Actor | None = None,
    ) -> MutationResult[Building]:
        """Rename, move or edit a building; replaced or cleared images are deleted after commit."""

        scope = {"organization_id": organization_id}

        def body(session: Session, ctx: OperationContext, tasks: PostCommitQueue) -> MutationResult:
            current = self.load_for_write(session, building_id, payload.concurrency_key, organization_id)
            if not region_is_live(session, organization_id, payload.region_id):
                abort(Outcome.SUB_RECORD_DID_NOT_EXIST)
            conflict = self.ensure_name_free(session, scope, payload.name, exclude_id=building_id)

            values: dict[str, Any] = {
                "id": building_id,
                "organization_id": organization_id,
                "region_id": payload.region_id,
                **payload.model_dump(include=set(_DETAIL_FIELDS)),
            }
            for slot, image_type in IMAGE_SLOTS:
                previous = getattr(current, f"{slot}_storage_id")
                upload = getattr(payload, slot)
                if upload is not None:
                    self._attach_image(session, ctx, tasks, values, slot, image_type, upload)
                elif getattr(payload, f"clear_{slot}"):
                    values[f"{slot}_storage_id"] = None
                    values[f"{slot}_url"] = None
                else:
                    continue
                self.delete_image_after_commit(tasks, ctx, previous)
            del values["id"], values["organization_id"]
            if current.region_id != payload.region_id:
                logger.info(
                    "Building moved between regions",
                    extra={
                        "building_id": str(building_id),
                        "from_region_id": str(current.region_id),
                        "to_region_id": str(payload.region_id),
                    },
                )

            fresh = self.guarded_update(session, ctx, current, payload.concurrency_key, values, conflict)
            self.invalidate_timezone_after_commit(tasks, building_id)
            return MutationResult(Outcome.OK, entity=fresh)

        return self.execute(self.lock_key(organization_id, payload.name), actor, body, operation="update")

    def cascade_children(self, session: Session, ctx: OperationContext, building: Building, tasks: PostCommitQueue) -> None:
        """Soft-delete the building's functions and schedule image and cache cleanup."""

        functions = self.functions
        children = session.execute(
            select(Function).where(Function.building_id == building.id, Function.deleted.is_(False))
        ).scalars()
        for function in list(children):
            functions.cascade_soft_delete(session, ctx, function)
        for slot, _ in IMAGE_SLOTS:
            self.delete_image_after_commit(tasks, ctx, getattr(building, f"{slot}_storage_id"))
        self.invalidate_timezone_after_commit(tasks, building.id)

    def after_delete(self, session: Session, ctx: OperationContext, current: Building, tasks: PostCommitQueue) -> None:
        self.cascade_children(session, ctx, current, tasks)

    def cascade_soft_delete(self, session: Session, ctx: OperationContext, row: Building, tasks: PostCommitQueue | None = None) -> None:
        super().cascade_soft_delete(session, ctx, row)
        if tasks is not None:
            self.cascade_children(session, ctx, row, tasks)

    def timezone_for(self, building_id: UUID) -> str | None:
        """Cached timezone lookup used by scheduling features."""

        return self.timezones.get(building_id)


__all__ = ["BuildingService", "IMAGE_SLOTS", "region_is_live"]
