"""Request-level dependencies: actor identity, tokens and service wiring."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from workplace import db
from workplace.schemas.common import PageRead
from workplace.services.buildings import BuildingService
from workplace.services.functions import FunctionService
from workplace.services.image_storage import ImageStorageService
from workplace.services.orchestrator import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, MutationOrchestrator
from workplace.services.organizations import OrganizationService
from workplace.services.regions import RegionService
from workplace.utils.audit import Actor, actor_from_request
from workplace.utils.concurrency import decode_token
from workplace.utils.errors import error_response


def get_session_factory() -> Callable[[], Session]:
    return db.get_sessionmaker()


def get_image_storage(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> ImageStorageService:
    return ImageStorageService(session_factory)


def get_actor(
    request: Request,
    x_user_id: UUID | None = Header(default=None, alias="X-User-Id"),
    x_user_name: str | None = Header(default=None, alias="X-User-Name"),
) -> Actor:
    """Identity of the caller as forwarded by the gateway."""

    ip_address = request.client.host if request.client else None
    return actor_from_request(x_user_id, x_user_name, ip_address)


def require_concurrency_key(if_match: str | None = Header(default=None, alias="If-Match")) -> bytes:
    """Read the caller's concurrency key from ``If-Match`` (quotes optional)."""

    if not if_match:
        raise HTTPException(
            status_code=status.HTTP_428_PRECONDITION_REQUIRED,
            detail=error_response("CONCURRENCY_KEY_REQUIRED", "If-Match header with the concurrency key is required."),
        )
    try:
        return decode_token(if_match.strip().strip('"'))
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("CONCURRENCY_KEY_MALFORMED", str(exc)),
        ) from exc


@dataclass
class ListParams:
    page_number: int
    page_size: int
    sort: str
    search_term: str | None


def list_params(
    page_number: int = Query(default=1, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    sort: str = Query(default="name", max_length=50),
    search: str | None = Query(default=None, max_length=100),
) -> ListParams:
    return ListParams(page_number=page_number, page_size=page_size, sort=sort, search_term=search)


def load_page(service: MutationOrchestrator, params: ListParams, item_model: type[BaseModel], **scope: Any) -> PageRead:
    """Run a data-table query and shape it for the response; bad sort fields are a 422."""

    filters = {column: value for column, value in scope.pop("filters", {}).items() if value is not None}
    try:
        page = service.list_for_data_table(
            page_number=params.page_number,
            page_size=params.page_size,
            sort=params.sort,
            search_term=params.search_term,
            filters=filters,
            **scope,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=error_response("INVALID_SORT", str(exc)),
        ) from exc
    return PageRead.of(page, item_model)


def _service_factory(service_cls):
    def factory(
        session_factory: Callable[[], Session] = Depends(get_session_factory),
        images: ImageStorageService = Depends(get_image_storage),
    ):
        return service_cls(session_factory, images=images)

    factory.__name__ = f"get_{service_cls.__name__}"
    return factory


get_organization_service = _service_factory(OrganizationService)
get_region_service = _service_factory(RegionService)
get_building_service = _service_factory(BuildingService)
get_function_service = _service_factory(FunctionService)


__all__ = [
    "ListParams",
    "get_actor",
    "get_building_service",
    "get_function_service",
    "get_image_storage",
    "get_organization_service",
    "get_region_service",
    "get_session_factory",
    "list_params",
    "load_page",
    "require_concurrency_key",
]
