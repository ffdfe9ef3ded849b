"""Function schemas."""
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .common import ConcurrencyKey, EntityName, HtmlColor


class FunctionCreate(BaseModel):
    building_id: UUID
    name: EntityName
    html_color: HtmlColor
    adjacent_function_ids: list[UUID] = Field(default_factory=list, max_length=200)

    model_config = ConfigDict(str_strip_whitespace=True)


class FunctionUpdate(FunctionCreate):
    concurrency_key: ConcurrencyKey


class FunctionRead(BaseModel):
    id: UUID
    organization_id: UUID
    building_id: UUID
    name: str
    html_color: str
    adjacent_function_ids: list[UUID] = Field(
        default_factory=list,
        validation_alias=AliasChoices("adjacent_function_ids", "adjacencies"),
    )
    created_at: datetime
    updated_at: datetime
    concurrency_key: ConcurrencyKey

    model_config = ConfigDict(from_attributes=True)

    @field_validator("adjacent_function_ids", mode="before")
    @classmethod
    def _adjacency_ids(cls, value: Any) -> Any:
        if value is None:
            return []
        return [getattr(item, "adjacent_function_id", item) for item in value]
