"""Quantized interval history for tracked entity attributes."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping
from uuid import UUID, uuid4

from sqlalchemy import insert, select, update
from sqlalchemy.orm import Session

from workplace.utils.time import SENTINEL_END_OF_TIME, quantize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Interval:
    start_at: datetime
    end_at: datetime
    attributes: dict[str, Any]

    @property
    def is_open(self) -> bool:
        return self.end_at == SENTINEL_END_OF_TIME

    @property
    def is_empty(self) -> bool:
        return self.start_at >= self.end_at


class HistorySplicer:
    """Keeps one entity's ``[start_at, end_at)`` sequence contiguous.

    Every mutation closes the open interval at ``quantize(as_of)`` and opens a
    new one at that same boundary, so intervals never overlap or leave gaps.
    """

    def __init__(
        self,
        model: type,
        entity_column: str,
        tracked: tuple[str, ...],
        *,
        granularity: timedelta | None = None,
    ) -> None:
        self.model = model
        self.table = model.__table__
        self.entity_column = entity_column
        self.tracked = tracked
        self.granularity = granularity

    def _boundary(self, as_of: datetime) -> datetime:
        return quantize(as_of, self.granularity)

    def close_open_interval(self, session: Session, entity_id: UUID, as_of: datetime) -> int:
        """End every interval reaching past ``quantize(as_of)`` at that boundary."""

        boundary = self._boundary(as_of)
        entity_col = self.table.c[self.entity_column]
        result = session.execute(
            update(self.table)
            .where(entity_col == entity_id, self.table.c.end_at > boundary)
            .values(end_at=boundary)
        )
        return result.rowcount or 0

    def open_interval(
        self,
        session: Session,
        entity_id: UUID,
        attributes: Mapping[str, Any],
        as_of: datetime,
        organization_id: UUID,
    ) -> UUID:
        """Insert ``[quantize(as_of), SENTINEL)`` carrying the tracked attributes."""

        missing = set(self.tracked) - set(attributes)
        if missing:
            raise ValueError(f"history snapshot is missing {sorted(missing)}")
        interval_id = uuid4()
        session.execute(
            insert(self.table).values(
                id=interval_id,
                created_at=as_of,
                organization_id=organization_id,
                start_at=self._boundary(as_of),
                end_at=SENTINEL_END_OF_TIME,
                **{self.entity_column: entity_id},
                **{name: attributes[name] for name in self.tracked},
            )
        )
        return interval_id

    def splice(
        self,
        session: Session,
        entity_id: UUID,
        attributes: Mapping[str, Any],
        as_of: datetime,
        organization_id: UUID,
    ) -> None:
        """Close then open with the same ``as_of``; the update path."""

        closed = self.close_open_interval(session, entity_id, as_of)
        if closed == 0:
            logger.debug(
                "No interval to close before splice",
                extra={"history_table": self.table.name, "entity_id": str(entity_id)},
            )
        self.open_interval(session, entity_id, attributes, as_of, organization_id)

    def intervals(self, session: Session, entity_id: UUID, *, include_empty: bool = True) -> list[Interval]:
        """Return the entity's intervals ordered by start, then end.

        Mutations that land in one bucket produce zero-length ``[q, q)`` rows;
        pass ``include_empty=False`` to see bucket-granularity history only.
        """

        entity_col = self.table.c[self.entity_column]
        rows = session.execute(
            select(self.model)
            .where(entity_col == entity_id)
            .order_by(self.table.c.start_at, self.table.c.end_at)
        ).scalars()
        result = [
            Interval(
                start_at=row.start_at,
                end_at=row.end_at,
                attributes={name: getattr(row, name) for name in self.tracked},
            )
            for row in rows
        ]
        if include_empty:
            return result
        return [interval for interval in result if not interval.is_empty]


def is_contiguous(intervals: list[Interval]) -> bool:
    """True when intervals chain without gaps and only the last one is open."""

    if not intervals:
        return True
    for previous, current in zip(intervals, intervals[1:]):
        if previous.end_at != current.start_at:
            return False
    open_count = sum(1 for interval in intervals if interval.is_open)
    return open_count == 1 and intervals[-1].is_open or open_count == 0


__all__ = ["HistorySplicer", "Interval", "is_contiguous"]
