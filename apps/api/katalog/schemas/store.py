"""Pydantic schemas for store setup and settings."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from katalog.models.store import StoreCategory
from katalog.schemas.common import BaseSchema

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


class StoreCreate(BaseSchema):
    """Schema for the first-time store setup."""

    name: str = Field(..., min_length=1, max_length=255, description="Store name")
    custom_url: str = Field(..., min_length=1, max_length=64, description="Vanity URL slug")
    category: StoreCategory
    phone_number: str | None = Field(default=None, max_length=32)
    logo_url: str | None = Field(default=None, max_length=1024)
    is_visible: bool = True


class StoreUpdate(BaseSchema):
    """Schema for editing a store; only provided fields change."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    custom_url: str | None = Field(default=None, min_length=1, max_length=64)
    category: StoreCategory | None = None
    phone_number: str | None = Field(default=None, max_length=32)
    logo_url: str | None = Field(default=None, max_length=1024)
    is_visible: bool | None = None
    action_button_title: str | None = Field(default=None, max_length=100)
    action_button_link: str | None = Field(default=None, max_length=1024)
    action_button_color: str | None = Field(default=None, pattern=HEX_COLOR)


class ActionButton(BaseSchema):
    title: str
    link: str
    color: str = "#000000"


class StoreResponse(BaseSchema):
    """Schema for store response."""

    id: UUID
    owner_id: str
    name: str
    custom_url: str
    category: StoreCategory
    phone_number: str | None
    logo_url: str | None
    is_visible: bool
    action_button_title: str | None
    action_button_link: str | None
    action_button_color: str | None
    created_at: datetime
    updated_at: datetime


class PublicStoreResponse(BaseSchema):
    """What visitors see about a store."""

    id: UUID
    owner_id: str
    name: str
    custom_url: str
    category: StoreCategory
    logo_url: str | None
    action_button: ActionButton | None = None


class CustomURLAvailability(BaseSchema):
    custom_url: str
    available: bool
    reason: str | None = None
