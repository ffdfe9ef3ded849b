"""Background sweep for stored images nobody references any more.

Post-commit image deletions are best effort; this job retries the ones that
failed (or never ran because the process died between commit and cleanup).
"""
from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy import exists, select, union_all
from sqlalchemy.orm import Session

from workplace.config import get_settings
from workplace.models import Building, Organization, StoredImage
from workplace.services.image_storage import ImageStorageService
from workplace.services.outcomes import Outcome
from workplace.utils.audit import SYSTEM_ACTOR, OperationContext
from workplace.utils.time import utcnow

logger = logging.getLogger(__name__)


def _referenced_image_ids():
    live_org = Organization.deleted.is_(False)
    live_building = Building.deleted.is_(False)
    return union_all(
        select(Organization.logo_image_storage_id.label("image_id")).where(
            live_org, Organization.logo_image_storage_id.is_not(None)
        ),
        select(Building.feature_image_storage_id.label("image_id")).where(
            live_building, Building.feature_image_storage_id.is_not(None)
        ),
        select(Building.map_image_storage_id.label("image_id")).where(
            live_building, Building.map_image_storage_id.is_not(None)
        ),
    ).subquery()


def find_orphaned_images(session: Session, *, grace: timedelta) -> list[UUID]:
    """Live stored images older than ``grace`` that no live entity points at."""

    referenced = _referenced_image_ids()
    cutoff = utcnow() - grace
    stmt = (
        select(StoredImage.id)
        .where(
            StoredImage.deleted.is_(False),
            StoredImage.created_at < cutoff,
            ~exists().where(referenced.c.image_id == StoredImage.id),
        )
        .order_by(StoredImage.created_at)
    )
    return list(session.execute(stmt).scalars())


def sweep_orphaned_images_once(images: ImageStorageService | None = None) -> int:
    """Delete orphaned images; returns how many were removed."""

    settings = get_settings()
    images = images or ImageStorageService()
    session = images.session_factory()
    try:
        orphaned = find_orphaned_images(session, grace=timedelta(minutes=settings.CLEANUP_SWEEP_GRACE_MINUTES))
    finally:
        session.close()

    removed = 0
    for image_id in orphaned:
        ctx = OperationContext.begin(SYSTEM_ACTOR, StoredImage.__tablename__)
        try:
            outcome = images.delete_image(image_id, ctx)
        except Exception:
            logger.exception("Orphaned image cleanup failed", extra={"stored_image_id": str(image_id)})
            continue
        if outcome is Outcome.OK:
            removed += 1
    if orphaned:
        logger.info("Orphaned image sweep finished", extra={"found": len(orphaned), "removed": removed})
    return removed


__all__ = ["find_orphaned_images", "sweep_orphaned_images_once"]
