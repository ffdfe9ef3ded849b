"""Building endpoints, scoped to one organization."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from workplace.dependencies import (
    ListParams,
    get_actor,
    get_building_service,
    list_params,
    load_page,
    require_concurrency_key,
)
from workplace.models import Building
from workplace.schemas import BuildingCreate, BuildingRead, BuildingUpdate, DropdownItem, PageRead
from workplace.services.buildings import BuildingService
from workplace.utils.audit import Actor
from workplace.utils.errors import not_found, raise_for_outcome

router = APIRouter(prefix="/organizations/{organization_id}/buildings", tags=["buildings"])


@router.post("", response_model=BuildingRead, status_code=status.HTTP_201_CREATED)
def create_building(
    organization_id: UUID,
    payload: BuildingCreate,
    service: BuildingService = Depends(get_building_service),
    actor: Actor = Depends(get_actor),
) -> Building:
    """Create a building and its first function."""

    result = service.create(organization_id, payload, actor)
    raise_for_outcome(result)
    return result.entity


@router.get("", response_model=PageRead[BuildingRead])
def list_buildings(
    organization_id: UUID,
    region_id: UUID | None = None,
    params: ListParams = Depends(list_params),
    service: BuildingService = Depends(get_building_service),
) -> PageRead:
    return load_page(
        service, params, BuildingRead, organization_id=organization_id, filters={"region_id": region_id}
    )


@router.get("/dropdown", response_model=list[DropdownItem])
def building_dropdown(
    organization_id: UUID,
    region_id: UUID | None = None,
    search: str | None = Query(default=None, max_length=100),
    service: BuildingService = Depends(get_building_service),
) -> list[DropdownItem]:
    filters = {"region_id": region_id} if region_id else None
    items = service.list_for_dropdown(organization_id=organization_id, search_term=search, filters=filters)
    return [DropdownItem(id=item_id, name=name) for item_id, name in items]


@router.get("/{building_id}", response_model=BuildingRead)
def get_building(
    organization_id: UUID,
    building_id: UUID,
    service: BuildingService = Depends(get_building_service),
) -> Building:
    building = service.get(building_id, organization_id=organization_id)
    if building is None:
        raise not_found("Building not found.")
    return building


@router.put("/{building_id}", response_model=BuildingRead)
def update_building(
    organization_id: UUID,
    building_id: UUID,
    payload: BuildingUpdate,
    service: BuildingService = Depends(get_building_service),
    actor: Actor = Depends(get_actor),
) -> Building:
    result = service.update(organization_id, building_id, payload, actor)
    raise_for_outcome(result)
    return result.entity


@router.delete("/{building_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_building(
    organization_id: UUID,
    building_id: UUID,
    concurrency_key: bytes = Depends(require_concurrency_key),
    service: BuildingService = Depends(get_building_service),
    actor: Actor = Depends(get_actor),
) -> None:
    raise_for_outcome(service.delete(building_id, concurrency_key, actor, organization_id=organization_id))
