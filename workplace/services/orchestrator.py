"""Shared create / update / delete machinery for registry entities.

One run of a mutation goes through::

    Start -> LockAcquired -> Validated -> Applied -> HistorySpliced
          -> AuditWritten -> Committed

and may abort before ``Applied``. Entity services subclass
:class:`MutationOrchestrator` and fill in the hooks; the base class owns the
session, the lock and the post-commit task queue.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, ClassVar, Generic, Mapping, NoReturn, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import Select, cast, func, insert, literal, select, text, update
from sqlalchemy.orm import Session

from workplace.services.cache import TimezoneCache, timezone_cache
from workplace.services.history import HistorySplicer
from workplace.services.image_storage import ImageConstraints, ImageOwner, ImageStorageService, StoredImageFile
from workplace.services.locking import LockProvider, build_lock_key, get_lock_provider
from workplace.services.outcomes import Dependent, MutationResult, Outcome, classify_zero_rows
from workplace.utils.audit import Actor, AuditAction, AuditEntry, OperationContext, append_audit, snapshot
from workplace.utils.concurrency import check_token, new_concurrency_key
from workplace.utils.time import utcnow

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT")
ServiceT = TypeVar("ServiceT", bound="MutationOrchestrator")

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 500


# --- Conditional writes -------------------------------------------------


def insert_unless_exists(
    session: Session,
    model: type,
    values: Mapping[str, Any],
    conflict: Select | None = None,
) -> bool:
    """``INSERT ... SELECT ... WHERE NOT EXISTS (conflict)`` as one statement.

    Returns ``True`` when the row was written.
    """

    table = model.__table__
    names = list(values)
    # PostgreSQL types bare SELECT-list parameters as text.
    typed = session.get_bind().dialect.name == "postgresql"
    columns = []
    for name in names:
        value = literal(values[name], table.c[name].type)
        columns.append((cast(value, table.c[name].type) if typed else value).label(name))
    row = select(*columns)
    if conflict is not None:
        row = row.where(~conflict.exists())
    result = session.execute(insert(table).from_select(names, row))
    return result.rowcount == 1


def update_where(
    session: Session,
    model: type,
    entity_id: UUID,
    token: bytes | None,
    values: Mapping[str, Any],
    *,
    now: datetime,
    conflict: Select | None = None,
) -> bool:
    """Update a live row only while ``token`` still matches and ``conflict`` finds nothing.

    A fresh concurrency key is written with every successful update.
    """

    table = model.__table__
    stmt = update(table).where(
        table.c.id == entity_id,
        table.c.deleted.is_(False),
        table.c.concurrency_key == token,
    )
    if conflict is not None:
        stmt = stmt.where(~conflict.exists())
    stmt = stmt.values(**values, concurrency_key=new_concurrency_key(), updated_at=now)
    return session.execute(stmt).rowcount == 1


def soft_delete_where(session: Session, model: type, entity_id: UUID, token: bytes | None, *, now: datetime) -> bool:
    return update_where(session, model, entity_id, token, {"deleted": True, "deleted_at": now}, now=now)


# --- Post-commit side effects --------------------------------------------


@dataclass
class _Task:
    description: str
    func: Callable[..., Any]
    args: tuple[Any, ...]
    kwargs: dict[str, Any]


@dataclass
class PostCommitQueue:
    """Side effects that touch non-transactional resources.

    ``after_commit`` tasks run once the transaction is durable;
    ``after_rollback`` tasks undo file writes when it is not. Failures are
    logged and swallowed in both cases.
    """

    _after_commit: list[_Task] = field(default_factory=list)
    _after_rollback: list[_Task] = field(default_factory=list)

    def after_commit(self, description: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._after_commit.append(_Task(description, func, args, kwargs))

    def after_rollback(self, description: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._after_rollback.append(_Task(description, func, args, kwargs))

    def __len__(self) -> int:
        return len(self._after_commit)

    def run_after_commit(self) -> int:
        return self._run(self._after_commit)

    def run_after_rollback(self) -> int:
        return self._run(self._after_rollback)

    @staticmethod
    def _run(tasks: list[_Task]) -> int:
        failures = 0
        for task in tasks:
            try:
                task.func(*task.args, **task.kwargs)
            except Exception:
                failures += 1
                logger.exception("Post-commit task failed", extra={"task": task.description})
        tasks.clear()
        return failures


# --- Read side -----------------------------------------------------------


@dataclass
class Page(Generic[EntityT]):
    records: list[EntityT]
    total_count: int
    page_number: int
    page_size: int


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def apply_statement_timeout(session: Session, timeout: float | None) -> None:
    """Bound the current transaction's statements on backends that support it."""

    if timeout is None:
        return
    if session.get_bind().dialect.name == "postgresql":
        session.execute(text(f"SET LOCAL statement_timeout = {int(timeout * 1000)}"))


# --- Orchestrator --------------------------------------------------------


class MutationAborted(Exception):
    """Raised inside a mutation body to stop before the write is applied."""

    def __init__(self, result: MutationResult) -> None:
        super().__init__(result.outcome.value)
        self.result = result


def abort(outcome: Outcome, **details: Any) -> NoReturn:
    raise MutationAborted(MutationResult(outcome, **details))


class MutationOrchestrator(Generic[EntityT]):
    """Template for one entity type's mutations and reads.

    Subclasses set the class attributes, implement ``create`` and ``update``
    on top of :meth:`execute` and override ``find_dependents`` /
    ``after_delete`` where deletes block or cascade.
    """

    model: ClassVar[type]
    log_model: ClassVar[type]
    history: ClassVar[HistorySplicer | None] = None
    audited_fields: ClassVar[tuple[str, ...]] = ("name",)
    fixed_fields: ClassVar[tuple[str, ...]] = ("organization_id",)
    sortable_fields: ClassVar[tuple[str, ...]] = ("name", "created_at", "updated_at")

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        *,
        lock_provider: LockProvider | None = None,
        images: ImageStorageService | None = None,
        timezones: TimezoneCache | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._lock_provider = lock_provider
        self.images = images or ImageStorageService(session_factory)
        self.timezones = timezones or timezone_cache
        self.clock = clock

    def child(self, service_cls: type[ServiceT]) -> ServiceT:
        """Build another entity service sharing this one's collaborators."""

        return service_cls(
            self._session_factory,
            lock_provider=self._lock_provider,
            images=self.images,
            timezones=self.timezones,
            clock=self.clock,
        )

    # -- plumbing --------------------------------------------------------

    @property
    def table_name(self) -> str:
        return self.model.__tablename__

    @property
    def session_factory(self) -> Callable[[], Session]:
        if self._session_factory is not None:
            return self._session_factory
        from workplace import db

        return db.get_sessionmaker()

    def lock_provider(self, session: Session) -> LockProvider:
        return self._lock_provider or get_lock_provider(session)

    def lock_key(self, scope: UUID | str | None, name: str) -> str:
        return build_lock_key(self.table_name, scope, name)

    def execute(
        self,
        lock_key: str,
        actor: Actor | None,
        body: Callable[[Session, OperationContext, PostCommitQueue], MutationResult],
        *,
        operation: str,
    ) -> MutationResult:
        """Run ``body`` in one transaction under the zero-wait lock ``lock_key``.

        The transaction commits only when ``body`` returns ``Ok``; post-commit
        tasks run before this method returns.
        """

        ctx = OperationContext.begin(actor, self.table_name, now=self.clock())
        tasks = PostCommitQueue()
        log_extra = {"entity": self.table_name, "operation": operation, "log_id": str(ctx.log_id)}
        session = self.session_factory()
        handle = None
        try:
            handle = self.lock_provider(session).try_acquire(session, lock_key)
            if handle is None:
                session.rollback()
                logger.warning("Lock contended; mutation aborted", extra={**log_extra, "lock_key": lock_key})
                return MutationResult(Outcome.UNKNOWN)
            try:
                result = body(session, ctx, tasks)
            except MutationAborted as aborted:
                result = aborted.result
            if result.ok:
                session.commit()
            else:
                session.rollback()
        except Exception:
            session.rollback()
            tasks.run_after_rollback()
            logger.exception("Mutation failed; transaction rolled back", extra=log_extra)
            raise
        finally:
            if handle is not None:
                handle.release()
            session.close()

        if not result.ok:
            tasks.run_after_rollback()
            logger.info("Mutation rejected", extra={**log_extra, "outcome": result.outcome.value})
            return result

        result.log_id = ctx.log_id
        failures = tasks.run_after_commit()
        if result.entity is not None:
            result.entity = self.get(result.entity.id) or result.entity
        logger.info(
            "Mutation committed",
            extra={**log_extra, "outcome": result.outcome.value, "post_commit_failures": failures},
        )
        return result

    def reload(self, session: Session, entity_id: UUID) -> EntityT | None:
        return session.execute(
            select(self.model).where(self.model.id == entity_id).execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def load_live(self, session: Session, entity_id: UUID, organization_id: UUID | None = None) -> EntityT | None:
        stmt = select(self.model).where(self.model.id == entity_id, self.model.deleted.is_(False))
        if organization_id is not None:
            stmt = stmt.where(self.model.organization_id == organization_id)
        return session.execute(stmt.execution_options(populate_existing=True)).scalar_one_or_none()

    def name_conflict(self, scope: Mapping[str, Any], name: str, exclude_id: UUID | None = None) -> Select:
        """Live rows in ``scope`` whose name matches ``name`` case-insensitively."""

        other = self.model.__table__.alias(f"{self.table_name}_other")
        stmt = select(other.c.id).where(
            func.lower(other.c.name) == func.lower(literal(name)),
            other.c.deleted.is_(False),
            *[other.c[column] == value for column, value in scope.items()],
        )
        if exclude_id is not None:
            stmt = stmt.where(other.c.id != exclude_id)
        return stmt

    def audit(
        self,
        session: Session,
        ctx: OperationContext,
        action: AuditAction,
        row: Any,
        *,
        old: Any | None = None,
        cascaded: bool = False,
        description: str | None = None,
    ) -> UUID:
        """Write this entity's audit row; ``row`` / ``old`` are ORM rows or mappings."""

        new_values = snapshot(row, self.audited_fields)
        old_values = snapshot(old, self.audited_fields) if old is not None else {}
        return append_audit(
            session,
            self.log_model,
            AuditEntry(
                action=action,
                description=description or action.value,
                subject_id=row["id"] if isinstance(row, Mapping) else row.id,
                context=ctx,
                new=new_values,
                old=old_values,
                fixed=snapshot(row, self.fixed_fields),
                deleted=action is AuditAction.DELETE,
                old_deleted=None if action is AuditAction.INSERT else False,
                cascaded=cascaded,
            ),
        )

    def history_snapshot(self, row: Any) -> dict[str, Any]:
        assert self.history is not None
        return snapshot(row, self.history.tracked)

    # -- shared mutation steps --------------------------------------------

    def insert_entity(
        self,
        session: Session,
        ctx: OperationContext,
        values: Mapping[str, Any],
        scope: Mapping[str, Any],
        *,
        cascaded: bool = False,
    ) -> dict[str, Any]:
        """Insert a row unless its name is taken in ``scope``; open history and audit.

        Aborts with ``RecordAlreadyExists`` when the guarded insert writes nothing.
        """

        row: dict[str, Any] = {
            "id": uuid4(),
            "created_at": ctx.now,
            "updated_at": ctx.now,
            "deleted": False,
            "concurrency_key": new_concurrency_key(),
            **values,
        }
        if not insert_unless_exists(session, self.model, row, self.name_conflict(scope, row["name"])):
            abort(Outcome.RECORD_ALREADY_EXISTS)
        if self.history is not None:
            self.history.open_interval(session, row["id"], self.history_snapshot(row), ctx.now, row["organization_id"])
        self.audit(session, ctx, AuditAction.INSERT, row, cascaded=cascaded)
        return row

    def ensure_name_free(self, session: Session, scope: Mapping[str, Any], name: str, exclude_id: UUID | None = None) -> Select:
        """Abort with ``RecordAlreadyExists`` when ``name`` is taken; return the conflict query."""

        conflict = self.name_conflict(scope, name, exclude_id)
        if session.execute(conflict.limit(1)).first() is not None:
            abort(Outcome.RECORD_ALREADY_EXISTS)
        return conflict

    def load_for_write(
        self,
        session: Session,
        entity_id: UUID,
        token: bytes,
        organization_id: UUID | None = None,
    ) -> EntityT:
        """Load the live row and check the caller's token, aborting otherwise."""

        current = self.load_live(session, entity_id, organization_id)
        if current is None:
            abort(Outcome.RECORD_DID_NOT_EXIST)
        if not check_token(current.concurrency_key, token):
            abort(Outcome.CONCURRENCY_KEY_INVALID)
        return current

    def guarded_update(
        self,
        session: Session,
        ctx: OperationContext,
        current: EntityT,
        token: bytes,
        values: Mapping[str, Any],
        conflict: Select | None,
    ) -> EntityT:
        """Apply ``values`` to ``current``, splice history and audit.

        A guarded write that touches no rows is classified and aborts the run.
        """

        old = snapshot(current, self.audited_fields + self.fixed_fields + ("id",))
        if not update_where(session, self.model, current.id, token, values, now=ctx.now, conflict=conflict):
            abort(classify_zero_rows(self.reload(session, current.id), token))
        fresh = self.reload(session, current.id)
        if self.history is not None:
            self.history.splice(session, fresh.id, self.history_snapshot(fresh), ctx.now, fresh.organization_id)
        self.audit(session, ctx, AuditAction.UPDATE, fresh, old=old)
        return fresh

    def cascade_soft_delete(self, session: Session, ctx: OperationContext, row: EntityT) -> None:
        """Soft-delete a child row on behalf of a parent operation."""

        session.execute(
            update(self.model.__table__)
            .where(self.model.id == row.id, self.model.deleted.is_(False))
            .values(deleted=True, deleted_at=ctx.now, updated_at=ctx.now, concurrency_key=new_concurrency_key())
        )
        if self.history is not None:
            self.history.close_open_interval(session, row.id, ctx.now)
        self.audit(session, ctx, AuditAction.DELETE, row, old=row, cascaded=True)

    def store_image(
        self,
        session: Session,
        ctx: OperationContext,
        tasks: PostCommitQueue,
        content: bytes,
        owner: ImageOwner,
    ) -> StoredImageFile:
        """Store an uploaded image inside the transaction; aborts on invalid content."""

        outcome, stored = self.images.store_image(session, content, ImageConstraints.from_settings(), owner, ctx)
        if stored is None:
            abort(outcome)
        tasks.after_rollback("remove image file", self.images.remove_file, stored.relative_path)
        return stored

    def delete_image_after_commit(self, tasks: PostCommitQueue, ctx: OperationContext, stored_id: UUID | None) -> None:
        if stored_id is not None:
            tasks.after_commit("delete stored image", self.images.delete_image, stored_id, ctx)

    def invalidate_timezone_after_commit(self, tasks: PostCommitQueue, building_id: UUID) -> None:
        tasks.after_commit("invalidate building timezone", self.timezones.invalidate, building_id)

    # -- delete template ---------------------------------------------------

    def lock_scope(self, row: EntityT) -> UUID | None:
        return row.organization_id

    def find_dependents(self, session: Session, current: EntityT) -> list[Dependent]:
        return []

    def after_delete(self, session: Session, ctx: OperationContext, current: EntityT, tasks: PostCommitQueue) -> None:
        return None

    def delete(
        self,
        entity_id: UUID,
        concurrency_key: bytes,
        actor: Actor | None = None,
        *,
        organization_id: UUID | None = None,
    ) -> MutationResult:
        """Soft-delete a row unless something still depends on it."""

        peek = self.get(entity_id, organization_id=organization_id)
        if peek is None:
            return MutationResult(Outcome.RECORD_DID_NOT_EXIST)

        def body(session: Session, ctx: OperationContext, tasks: PostCommitQueue) -> MutationResult:
            current = self.load_for_write(session, entity_id, concurrency_key, organization_id)
            dependents = self.find_dependents(session, current)
            if dependents:
                abort(Outcome.RECORD_IS_IN_USE, entity=current, in_use=dependents)
            if not soft_delete_where(session, self.model, entity_id, concurrency_key, now=ctx.now):
                abort(classify_zero_rows(self.reload(session, entity_id), concurrency_key, conflict=Outcome.UNKNOWN))
            if self.history is not None:
                self.history.close_open_interval(session, entity_id, ctx.now)
            self.audit(session, ctx, AuditAction.DELETE, current, old=current)
            self.after_delete(session, ctx, current, tasks)
            return MutationResult(Outcome.OK, entity=self.reload(session, entity_id))

        return self.execute(self.lock_key(self.lock_scope(peek), peek.name), actor, body, operation="delete")

    # -- read side ---------------------------------------------------------

    def _scoped(self, stmt: Select, organization_id: UUID | None) -> Select:
        stmt = stmt.where(self.model.deleted.is_(False))
        if organization_id is not None:
            stmt = stmt.where(self.model.organization_id == organization_id)
        return stmt

    def get(
        self, entity_id: UUID, *, organization_id: UUID | None = None, timeout: float | None = None
    ) -> EntityT | None:
        with self.session_factory() as session:
            apply_statement_timeout(session, timeout)
            stmt = self._scoped(select(self.model).where(self.model.id == entity_id), organization_id)
            return session.execute(stmt).scalar_one_or_none()

    def exists(
        self, entity_id: UUID, *, organization_id: UUID | None = None, timeout: float | None = None
    ) -> bool:
        with self.session_factory() as session:
            apply_statement_timeout(session, timeout)
            stmt = self._scoped(select(self.model.id).where(self.model.id == entity_id), organization_id)
            return session.execute(stmt).first() is not None

    def _search(self, stmt: Select, search_term: str | None) -> Select:
        if search_term and search_term.strip():
            pattern = f"%{escape_like(search_term.strip())}%"
            stmt = stmt.where(func.lower(self.model.name).like(func.lower(literal(pattern)), escape="\\"))
        return stmt

    def list_for_dropdown(
        self,
        *,
        organization_id: UUID | None = None,
        search_term: str | None = None,
        filters: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> list[tuple[UUID, str]]:
        """Return ``(id, name)`` pairs ordered by name."""

        stmt = self._scoped(select(self.model.id, self.model.name), organization_id)
        for column, value in (filters or {}).items():
            stmt = stmt.where(getattr(self.model, column) == value)
        stmt = self._search(stmt, search_term).order_by(func.lower(self.model.name))
        with self.session_factory() as session:
            apply_statement_timeout(session, timeout)
            return [(row.id, row.name) for row in session.execute(stmt)]

    def list_for_data_table(
        self,
        *,
        organization_id: UUID | None = None,
        page_number: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        sort: str = "name",
        search_term: str | None = None,
        filters: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Page[EntityT]:
        """Return one page of live rows plus the total count.

        ``sort`` is a column name, prefixed with ``-`` for descending order.
        """

        descending = sort.startswith("-")
        sort_field = sort.lstrip("-") or "name"
        if sort_field not in self.sortable_fields:
            raise ValueError(f"cannot sort by {sort_field!r}")
        page_number = max(page_number, 1)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

        base = self._scoped(select(self.model), organization_id)
        for column, value in (filters or {}).items():
            base = base.where(getattr(self.model, column) == value)
        base = self._search(base, search_term)
        order_column = getattr(self.model, sort_field)
        if sort_field == "name":
            order_column = func.lower(order_column)
        ordered = base.order_by(order_column.desc() if descending else order_column.asc(), self.model.id)

        with self.session_factory() as session:
            apply_statement_timeout(session, timeout)
            total = session.execute(select(func.count()).select_from(base.subquery())).scalar_one()
            records = list(
                session.execute(ordered.offset((page_number - 1) * page_size).limit(page_size)).scalars()
            )
        return Page(records=records, total_count=total, page_number=page_number, page_size=page_size)


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "MutationAborted",
    "MutationOrchestrator",
    "Page",
    "PostCommitQueue",
    "abort",
    "apply_statement_timeout",
    "insert_unless_exists",
    "soft_delete_where",
    "update_where",
]
