"""Building schemas."""
from datetime import datetime
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .common import ConcurrencyKey, EntityName, HtmlColor, ImageUpload


class FunctionSeed(BaseModel):
    """First function created together with a new building."""

    name: EntityName
    html_color: HtmlColor

    model_config = ConfigDict(str_strip_whitespace=True)


class BuildingFields(BaseModel):
    name: EntityName
    address: str = Field(min_length=1, max_length=500)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    timezone: str = Field(min_length=1, max_length=50)
    facilities_management_email: EmailStr | None = None
    check_in_enabled: bool = False

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {value!r}") from exc
        return value


class BuildingCreate(BuildingFields):
    region_id: UUID
    function: FunctionSeed
    feature_image: ImageUpload | None = None
    map_image: ImageUpload | None = None


class BuildingUpdate(BuildingFields):
    region_id: UUID
    concurrency_key: ConcurrencyKey
    feature_image: ImageUpload | None = None
    clear_feature_image: bool = False
    map_image: ImageUpload | None = None
    clear_map_image: bool = False


class BuildingRead(BaseModel):
    id: UUID
    organization_id: UUID
    region_id: UUID
    name: str
    address: str
    latitude: float
    longitude: float
    timezone: str
    facilities_management_email: str | None
    feature_image_url: str | None
    map_image_url: str | None
    check_in_enabled: bool
    created_at: datetime
    updated_at: datetime
    concurrency_key: ConcurrencyKey

    model_config = ConfigDict(from_attributes=True)
