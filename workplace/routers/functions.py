"""Function endpoints, scoped to one organization."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from workplace.dependencies import (
    ListParams,
    get_actor,
    get_function_service,
    list_params,
    load_page,
    require_concurrency_key,
)
from workplace.models import Function
from workplace.schemas import DropdownItem, FunctionCreate, FunctionRead, FunctionUpdate, PageRead
from workplace.services.functions import FunctionService
from workplace.utils.audit import Actor
from workplace.utils.errors import not_found, raise_for_outcome

router = APIRouter(prefix="/organizations/{organization_id}/functions", tags=["functions"])


@router.post("", response_model=FunctionRead, status_code=status.HTTP_201_CREATED)
def create_function(
    organization_id: UUID,
    payload: FunctionCreate,
    service: FunctionService = Depends(get_function_service),
    actor: Actor = Depends(get_actor),
) -> Function:
    result = service.create(organization_id, payload, actor)
    raise_for_outcome(result)
    return result.entity


@router.get("", response_model=PageRead[FunctionRead])
def list_functions(
    organization_id: UUID,
    building_id: UUID | None = None,
    params: ListParams = Depends(list_params),
    service: FunctionService = Depends(get_function_service),
) -> PageRead:
    return load_page(
        service, params, FunctionRead, organization_id=organization_id, filters={"building_id": building_id}
    )


@router.get("/dropdown", response_model=list[DropdownItem])
def function_dropdown(
    organization_id: UUID,
    building_id: UUID | None = None,
    search: str | None = Query(default=None, max_length=100),
    service: FunctionService = Depends(get_function_service),
) -> list[DropdownItem]:
    filters = {"building_id": building_id} if building_id else None
    items = service.list_for_dropdown(organization_id=organization_id, search_term=search, filters=filters)
    return [DropdownItem(id=item_id, name=name) for item_id, name in items]


@router.get("/{function_id}", response_model=FunctionRead)
def get_function(
    organization_id: UUID,
    function_id: UUID,
    service: FunctionService = Depends(get_function_service),
) -> Function:
    function = service.get(function_id, organization_id=organization_id)
    if function is None:
        raise not_found("Function not found.")
    return function


@router.put("/{function_id}", response_model=FunctionRead)
def update_function(
    organization_id: UUID,
    function_id: UUID,
    payload: FunctionUpdate,
    service: FunctionService = Depends(get_function_service),
    actor: Actor = Depends(get_actor),
) -> Function:
    result = service.update(organization_id, function_id, payload, actor)
    raise_for_outcome(result)
    return result.entity


@router.delete("/{function_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_function(
    organization_id: UUID,
    function_id: UUID,
    concurrency_key: bytes = Depends(require_concurrency_key),
    service: FunctionService = Depends(get_function_service),
    actor: Actor = Depends(get_actor),
) -> None:
    """Soft-delete a function; refused while desks or users still reference it."""

    raise_for_outcome(service.delete(function_id, concurrency_key, actor, organization_id=organization_id))
