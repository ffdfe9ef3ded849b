"""Region schemas."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .common import ConcurrencyKey, EntityName


class RegionCreate(BaseModel):
    name: EntityName

    model_config = ConfigDict(str_strip_whitespace=True)


class RegionUpdate(BaseModel):
    name: EntityName
    concurrency_key: ConcurrencyKey

    model_config = ConfigDict(str_strip_whitespace=True)


class RegionRead(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    created_at: datetime
    updated_at: datetime
    concurrency_key: ConcurrencyKey

    model_config = ConfigDict(from_attributes=True)
