"""Schemas shared by every registry resource."""
from typing import Annotated, Any, Generic, TypeVar
from uuid import UUID

from pydantic import Base64Bytes, BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer

from workplace.utils.concurrency import TOKEN_BYTES, decode_token, encode_token

ItemT = TypeVar("ItemT")


def _coerce_token(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if len(raw) != TOKEN_BYTES:
            raise ValueError(f"concurrency key must be {TOKEN_BYTES} bytes")
        return raw
    if isinstance(value, str):
        return decode_token(value)
    raise ValueError("concurrency key must be a base64 string")


# Travels as base64 text, handled as raw bytes everywhere else.
ConcurrencyKey = Annotated[
    bytes,
    BeforeValidator(_coerce_token),
    PlainSerializer(encode_token, return_type=str, when_used="json"),
]

HtmlColor = Annotated[str, Field(pattern=r"^#[0-9A-Fa-f]{6}$")]
EntityName = Annotated[str, Field(min_length=1, max_length=100)]


class ImageUpload(BaseModel):
    """Image bytes sent inline as base64."""

    content: Base64Bytes
    file_name: str | None = Field(default=None, max_length=255)


class DependentRead(BaseModel):
    kind: str
    id: UUID
    display_name: str
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)


class DomainCollisionRead(BaseModel):
    organization_id: UUID
    domain_name: str

    model_config = ConfigDict(from_attributes=True)


class DropdownItem(BaseModel):
    id: UUID
    name: str


class PageRead(BaseModel, Generic[ItemT]):
    records: list[ItemT]
    total_count: int
    page_number: int
    page_size: int

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def of(cls, page: Any, item_model: type[BaseModel]) -> "PageRead":
        """Validate a service-layer page of ORM rows against ``item_model``."""

        return cls[item_model].model_validate(page, from_attributes=True)


__all__ = [
    "ConcurrencyKey",
    "DependentRead",
    "DomainCollisionRead",
    "DropdownItem",
    "EntityName",
    "HtmlColor",
    "ImageUpload",
    "PageRead",
]
