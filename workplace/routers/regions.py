"""Region endpoints, scoped to one organization."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from workplace.dependencies import (
    ListParams,
    get_actor,
    get_region_service,
    list_params,
    load_page,
    require_concurrency_key,
)
from workplace.models import Region
from workplace.schemas import DropdownItem, PageRead, RegionCreate, RegionRead, RegionUpdate
from workplace.services.regions import RegionService
from workplace.utils.audit import Actor
from workplace.utils.errors import not_found, raise_for_outcome

router = APIRouter(prefix="/organizations/{organization_id}/regions", tags=["regions"])


@router.post("", response_model=RegionRead, status_code=status.HTTP_201_CREATED)
def create_region(
    organization_id: UUID,
    payload: RegionCreate,
    service: RegionService = Depends(get_region_service),
    actor: Actor = Depends(get_actor),
) -> Region:
    result = service.create(organization_id, payload, actor)
    raise_for_outcome(result)
    return result.entity


@router.get("", response_model=PageRead[RegionRead])
def list_regions(
    organization_id: UUID,
    params: ListParams = Depends(list_params),
    service: RegionService = Depends(get_region_service),
) -> PageRead:
    return load_page(service, params, RegionRead, organization_id=organization_id)


@router.get("/dropdown", response_model=list[DropdownItem])
def region_dropdown(
    organization_id: UUID,
    search: str | None = Query(default=None, max_length=100),
    service: RegionService = Depends(get_region_service),
) -> list[DropdownItem]:
    items = service.list_for_dropdown(organization_id=organization_id, search_term=search)
    return [DropdownItem(id=item_id, name=name) for item_id, name in items]


@router.get("/{region_id}", response_model=RegionRead)
def get_region(
    organization_id: UUID,
    region_id: UUID,
    service: RegionService = Depends(get_region_service),
) -> Region:
    region = service.get(region_id, organization_id=organization_id)
    if region is None:
        raise not_found("Region not found.")
    return region


@router.put("/{region_id}", response_model=RegionRead)
def update_region(
    organization_id: UUID,
    region_id: UUID,
    payload: RegionUpdate,
    service: RegionService = Depends(get_region_service),
    actor: Actor = Depends(get_actor),
) -> Region:
    result = service.update(organization_id, region_id, payload, actor)
    raise_for_outcome(result)
    return result.entity


@router.delete("/{region_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_region(
    organization_id: UUID,
    region_id: UUID,
    concurrency_key: bytes = Depends(require_concurrency_key),
    service: RegionService = Depends(get_region_service),
    actor: Actor = Depends(get_actor),
) -> None:
    """Soft-delete a region; refused while buildings still reference it."""

    raise_for_outcome(service.delete(region_id, concurrency_key, actor, organization_id=organization_id))
