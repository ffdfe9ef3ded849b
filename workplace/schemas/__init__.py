"""Schema package exports."""
from .building import BuildingCreate, BuildingFields, BuildingRead, BuildingUpdate, FunctionSeed
from .common import (
    ConcurrencyKey,
    DependentRead,
    DomainCollisionRead,
    DropdownItem,
    ImageUpload,
    PageRead,
)
from .function import FunctionCreate, FunctionRead, FunctionUpdate
from .organization import OrganizationCreate, OrganizationRead, OrganizationUpdate, SeedBuilding
from .region import RegionCreate, RegionRead, RegionUpdate

__all__ = [
    "BuildingCreate",
    "BuildingFields",
    "BuildingRead",
    "BuildingUpdate",
    "ConcurrencyKey",
    "DependentRead",
    "DomainCollisionRead",
    "DropdownItem",
    "FunctionCreate",
    "FunctionRead",
    "FunctionSeed",
    "FunctionUpdate",
    "ImageUpload",
    "OrganizationCreate",
    "OrganizationRead",
    "OrganizationUpdate",
    "PageRead",
    "RegionCreate",
    "RegionRead",
    "RegionUpdate",
    "SeedBuilding",
]
