"""Organization schemas."""
import re
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .building import BuildingFields, FunctionSeed
from .common import ConcurrencyKey, EntityName, ImageUpload

_DOMAIN_RE = re.compile(r"^(?=.{1,253}$)([a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$")


def normalize_domains(values: list[str]) -> list[str]:
    """Lower-case, validate and de-duplicate domain names, keeping input order."""

    seen: dict[str, None] = {}
    for raw in values:
        domain = raw.strip().lower()
        if not _DOMAIN_RE.match(domain):
            raise ValueError(f"invalid domain {raw!r}")
        seen.setdefault(domain, None)
    return list(seen)


class OrganizationFields(BaseModel):
    name: EntityName
    domains: list[str] = Field(default_factory=list, max_length=100)
    check_in_enabled: bool = False
    work_from_home_enabled: bool = False
    disabled: bool = False

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("domains")
    @classmethod
    def _normalize_domains(cls, value: list[str]) -> list[str]:
        return normalize_domains(value)


class SeedBuilding(BuildingFields):
    feature_image: ImageUpload | None = None


class OrganizationCreate(OrganizationFields):
    logo_image: ImageUpload | None = None
    region_name: EntityName
    building: SeedBuilding
    function: FunctionSeed


class OrganizationUpdate(OrganizationFields):
    concurrency_key: ConcurrencyKey
    logo_image: ImageUpload | None = None
    clear_logo_image: bool = False


class OrganizationRead(BaseModel):
    id: UUID
    name: str
    domains: list[str] = Field(default_factory=list)
    logo_image_url: str | None
    check_in_enabled: bool
    work_from_home_enabled: bool
    disabled: bool
    created_at: datetime
    updated_at: datetime
    concurrency_key: ConcurrencyKey

    model_config = ConfigDict(from_attributes=True)

    @field_validator("domains", mode="before")
    @classmethod
    def _domain_names(cls, value: Any) -> Any:
        if value is None:
            return []
        return [getattr(item, "domain_name", item) for item in value]
