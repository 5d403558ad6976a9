"""Schemas shared by the storefront and analytics routes."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class BaseSchema(BaseModel):
    """Reads ORM objects and accepts either field names or aliases."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class HealthResponse(BaseSchema):
    """Service status with one entry per backing store (database, redis)."""

    status: str
    version: str
    environment: str
    checks: dict[str, str]


class PaginatedResponse(BaseSchema, Generic[T]):
    """One page of a merchant's listing."""

    items: list[T]
    total: int
    page: int
    page_size: int
    pages: int
