"""Pydantic schemas for categories, products and the public catalog."""

import enum
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from katalog.models.category import CategoryLevel
from katalog.schemas.common import BaseSchema
from katalog.schemas.store import PublicStoreResponse

# === Categories ===


class CategoryCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=255)
    level: CategoryLevel = CategoryLevel.MAIN
    parent_id: UUID | None = None


class CategoryUpdate(BaseSchema):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    parent_id: UUID | None = None


class CategoryResponse(BaseSchema):
    id: UUID
    name: str
    level: CategoryLevel
    parent_id: UUID | None


class CategoryTreeNode(CategoryResponse):
    """A category with its children nested below it."""

    children: list["CategoryTreeNode"] = Field(default_factory=list)


# === Products ===


class ProductCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    currency: str = Field(default="₺", max_length=8)
    price: Decimal | None = Field(default=None, ge=0)
    show_price: bool = False
    highlighted: bool = False
    main_category_id: UUID
    sub_category1_id: UUID | None = None
    sub_category2_id: UUID | None = None
    image_urls: list[str] = Field(default_factory=list)
    custom_link: str | None = Field(default=None, max_length=1024)


class ProductUpdate(BaseSchema):
    name: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    currency: str | None = Field(default=None, max_length=8)
    price: Decimal | None = Field(default=None, ge=0)
    show_price: bool | None = None
    highlighted: bool | None = None
    main_category_id: UUID | None = None
    sub_category1_id: UUID | None = None
    sub_category2_id: UUID | None = None
    image_urls: list[str] | None = None
    custom_link: str | None = Field(default=None, max_length=1024)


class ProductResponse(BaseSchema):
    id: UUID
    name: str
    description: str | None
    currency: str
    price: Decimal | None
    show_price: bool
    highlighted: bool
    main_category_id: UUID
    sub_category1_id: UUID | None
    sub_category2_id: UUID | None
    image_urls: list[str]
    custom_link: str | None
    created_at: datetime


class PublicProductResponse(BaseSchema):
    """Product as shown to visitors; the price is hidden unless opted in."""

    id: UUID
    name: str
    description: str | None
    currency: str
    price: Decimal | None
    highlighted: bool
    main_category_id: UUID
    sub_category1_id: UUID | None
    sub_category2_id: UUID | None
    image_urls: list[str]
    created_at: datetime


# === Public catalog ===


class CatalogSort(str, enum.Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    PRICE_LOW = "priceLow"
    PRICE_HIGH = "priceHigh"


class OrderLink(BaseSchema):
    url: str
    link_type: str


class StorefrontResponse(BaseSchema):
    store: PublicStoreResponse
    categories: list[CategoryTreeNode]
    highlighted: list[PublicProductResponse]
    products: list[PublicProductResponse]
    total: int


class ProductDetailResponse(BaseSchema):
    store: PublicStoreResponse
    product: PublicProductResponse
    categories: list[CategoryResponse]
    order_link: OrderLink
