"""Local image storage with soft-delete bookkeeping."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable
from uuid import UUID, uuid4

from sqlalchemy import insert, select, update
from sqlalchemy.orm import Session, sessionmaker

from workplace.config import Settings, get_settings
from workplace.models import ImageRelatedObjectType, StoredImage, StoredImageLog
from workplace.services.outcomes import Outcome
from workplace.utils.audit import AuditAction, AuditEntry, OperationContext, append_audit

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}


@dataclass(frozen=True)
class ImageConstraints:
    max_bytes: int
    allowed_mime_types: frozenset[str]

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ImageConstraints":
        settings = settings or get_settings()
        return cls(
            max_bytes=settings.IMAGE_MAX_BYTES,
            allowed_mime_types=frozenset(settings.IMAGE_ALLOWED_MIME_TYPES),
        )


@dataclass(frozen=True)
class ImageOwner:
    organization_id: UUID | None
    related_object_type: ImageRelatedObjectType
    related_object_id: UUID


@dataclass(frozen=True)
class StoredImageFile:
    id: UUID
    public_url: str
    relative_path: str
    mime_type: str
    size_bytes: int


def sniff_mime_type(data: bytes) -> str | None:
    """Identify the image format from its leading bytes."""

    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    head = data[:512].lstrip().lower()
    if head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in head):
        return "image/svg+xml"
    return None


class ImageStorageService:
    """Writes image files under ``IMAGE_STORAGE_ROOT`` and tracks them in ``stored_images``."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session] | None = None,
        *,
        root: str | Path | None = None,
        public_base_url: str | None = None,
    ) -> None:
        settings = get_settings()
        self._session_factory = session_factory
        self.root = Path(root or settings.IMAGE_STORAGE_ROOT)
        self.public_base_url = (public_base_url or settings.IMAGE_PUBLIC_BASE_URL).rstrip("/")

    @property
    def session_factory(self) -> Callable[[], Session]:
        if self._session_factory is not None:
            return self._session_factory
        from workplace import db

        return db.get_sessionmaker()

    def path_for(self, relative_path: str) -> Path:
        return self.root / relative_path

    def store_image(
        self,
        session: Session,
        data: bytes,
        constraints: ImageConstraints,
        owner: ImageOwner,
        context: OperationContext,
    ) -> tuple[Outcome, StoredImageFile | None]:
        """Validate and persist ``data`` inside the caller's transaction.

        The file is written before the row; callers remove it again with
        :meth:`remove_file` when their transaction does not commit.
        """

        mime_type = sniff_mime_type(data)
        if not data or len(data) > constraints.max_bytes:
            logger.info(
                "Rejected image upload",
                extra={"reason": "size", "size_bytes": len(data), "owner": owner.related_object_type.value},
            )
            return Outcome.SUB_RECORD_INVALID, None
        if mime_type is None or mime_type not in constraints.allowed_mime_types:
            logger.info(
                "Rejected image upload",
                extra={"reason": "mime_type", "mime_type": mime_type, "owner": owner.related_object_type.value},
            )
            return Outcome.SUB_RECORD_INVALID, None

        image_id = uuid4()
        folder = str(owner.organization_id) if owner.organization_id else "global"
        relative_path = f"{folder}/{image_id}{_EXTENSIONS[mime_type]}"
        target = self.path_for(relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

        stored = StoredImageFile(
            id=image_id,
            public_url=f"{self.public_base_url}/{relative_path}",
            relative_path=relative_path,
            mime_type=mime_type,
            size_bytes=len(data),
        )
        session.execute(
            insert(StoredImage.__table__).values(
                id=image_id,
                created_at=context.now,
                organization_id=owner.organization_id,
                related_object_type=owner.related_object_type,
                related_object_id=owner.related_object_id,
                relative_path=relative_path,
                public_url=stored.public_url,
                mime_type=mime_type,
                size_bytes=len(data),
                deleted=False,
            )
        )
        append_audit(
            session,
            StoredImageLog,
            AuditEntry(
                action=AuditAction.INSERT,
                description="Insert",
                subject_id=image_id,
                context=context,
                fixed=self._log_fields(owner.organization_id, owner.related_object_type, owner.related_object_id, relative_path),
                deleted=False,
                cascaded=context.root_table != StoredImage.__tablename__,
            ),
        )
        return Outcome.OK, stored

    def delete_image(self, stored_id: UUID, context: OperationContext) -> Outcome:
        """Soft-delete a stored image and remove its file.

        Runs in its own transaction. Deleting an image that is already gone
        returns ``RecordDidNotExist``.
        """

        session = self.session_factory()
        try:
            result = session.execute(
                update(StoredImage.__table__)
                .where(StoredImage.id == stored_id, StoredImage.deleted.is_(False))
                .values(deleted=True, deleted_at=context.now)
            )
            if result.rowcount == 0:
                session.rollback()
                return Outcome.RECORD_DID_NOT_EXIST
            row = session.execute(
                select(StoredImage).where(StoredImage.id == stored_id).execution_options(populate_existing=True)
            ).scalar_one()
            append_audit(
                session,
                StoredImageLog,
                AuditEntry(
                    action=AuditAction.DELETE,
                    description="Delete",
                    subject_id=stored_id,
                    context=context,
                    fixed=self._log_fields(row.organization_id, row.related_object_type, row.related_object_id, row.relative_path),
                    deleted=True,
                    old_deleted=False,
                    cascaded=context.root_table != StoredImage.__tablename__,
                ),
            )
            relative_path = row.relative_path
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        self.remove_file(relative_path)
        logger.info("Stored image deleted", extra={"stored_image_id": str(stored_id), "cascade_from": context.root_table})
        return Outcome.OK

    def remove_file(self, relative_path: str) -> None:
        """Best-effort removal of an image file from disk."""

        try:
            self.path_for(relative_path).unlink(missing_ok=True)
        except OSError:
            logger.exception("Failed to remove image file", extra={"relative_path": relative_path})

    @staticmethod
    def _log_fields(
        organization_id: UUID | None,
        related_object_type: ImageRelatedObjectType,
        related_object_id: UUID,
        relative_path: str,
    ) -> dict[str, object]:
        return {
            "organization_id": organization_id,
            "related_object_type": ImageRelatedObjectType(related_object_type).value,
            "related_object_id": related_object_id,
            "relative_path": relative_path,
        }


__all__ = [
    "ImageConstraints",
    "ImageOwner",
    "ImageStorageService",
    "StoredImageFile",
    "sniff_mime_type",
]
