"""ORM models package."""
from .base import Base
from .building import Building, BuildingHistory, BuildingLog
from .function import Function, FunctionAdjacency, FunctionAdjacencyLog, FunctionHistory, FunctionLog
from .image import ImageRelatedObjectType, StoredImage, StoredImageLog
from .organization import Organization, OrganizationDomain, OrganizationDomainLog, OrganizationLog
from .region import Region, RegionHistory, RegionLog
from .user import User, UserBuildingAssignment
from .workspace import Desk, Floor

__all__ = [
    "Base",
    "Building",
    "BuildingHistory",
    "BuildingLog",
    "Desk",
    "Floor",
    "Function",
    "FunctionAdjacency",
    "FunctionAdjacencyLog",
    "FunctionHistory",
    "FunctionLog",
    "ImageRelatedObjectType",
    "Organization",
    "OrganizationDomain",
    "OrganizationDomainLog",
    "OrganizationLog",
    "Region",
    "RegionHistory",
    "RegionLog",
    "StoredImage",
    "StoredImageLog",
    "User",
    "UserBuildingAssignment",
]
