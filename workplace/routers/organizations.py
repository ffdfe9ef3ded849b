"""Organization endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from workplace.dependencies import (
    ListParams,
    get_actor,
    get_organization_service,
    list_params,
    load_page,
    require_concurrency_key,
)
from workplace.models import Organization
from workplace.schemas import DropdownItem, OrganizationCreate, OrganizationRead, OrganizationUpdate, PageRead
from workplace.services.organizations import OrganizationService
from workplace.utils.audit import Actor
from workplace.utils.errors import not_found, raise_for_outcome

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.post("", response_model=OrganizationRead, status_code=status.HTTP_201_CREATED)
def create_organization(
    payload: OrganizationCreate,
    service: OrganizationService = Depends(get_organization_service),
    actor: Actor = Depends(get_actor),
) -> Organization:
    """Create an organization with its first region, building and function."""

    result = service.create(payload, actor)
    raise_for_outcome(result)
    return result.entity


@router.get("", response_model=PageRead[OrganizationRead])
def list_organizations(
    params: ListParams = Depends(list_params),
    service: OrganizationService = Depends(get_organization_service),
) -> PageRead:
    return load_page(service, params, OrganizationRead)


@router.get("/dropdown", response_model=list[DropdownItem])
def organization_dropdown(
    search: str | None = Query(default=None, max_length=100),
    service: OrganizationService = Depends(get_organization_service),
) -> list[DropdownItem]:
    return [DropdownItem(id=item_id, name=name) for item_id, name in service.list_for_dropdown(search_term=search)]


@router.get("/{organization_id}", response_model=OrganizationRead)
def get_organization(
    organization_id: UUID,
    service: OrganizationService = Depends(get_organization_service),
) -> Organization:
    organization = service.get(organization_id)
    if organization is None:
        raise not_found("Organization not found.")
    return organization


@router.put("/{organization_id}", response_model=OrganizationRead)
def update_organization(
    organization_id: UUID,
    payload: OrganizationUpdate,
    service: OrganizationService = Depends(get_organization_service),
    actor: Actor = Depends(get_actor),
) -> Organization:
    result = service.update(organization_id, payload, actor)
    raise_for_outcome(result)
    return result.entity


@router.delete("/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_organization(
    organization_id: UUID,
    concurrency_key: bytes = Depends(require_concurrency_key),
    service: OrganizationService = Depends(get_organization_service),
    actor: Actor = Depends(get_actor),
) -> None:
    """Soft-delete an organization and everything it owns."""

    raise_for_outcome(service.delete(organization_id, concurrency_key, actor))
