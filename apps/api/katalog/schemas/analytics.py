"""Analytics Pydantic schemas: event kinds, payloads, events and rollups."""

import enum
from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import ConfigDict, Field

from katalog.schemas.common import BaseSchema


class EventType(str, enum.Enum):
    """Every tracked storefront interaction."""

    PRODUCT_VIEW = "product_view"
    PRODUCT_CLICK = "product_click"
    ACTION_BUTTON_CLICK = "action_button_click"
    ORDER_BUTTON_CLICK = "order_button_click"
    STORE_VISIT = "store_visit"
    CATEGORY_FILTER = "category_filter"
    SEARCH_QUERY = "search_query"
    HIGHLIGHTED_PRODUCT_VIEW = "highlighted_product_view"
    HIGHLIGHTED_PRODUCT_CLICK = "highlighted_product_click"
    IMAGE_GALLERY_NAVIGATION = "image_gallery_navigation"
    PRICE_VISIBILITY_TOGGLE = "price_visibility_toggle"
    LINK_TYPE_CLICK = "link_type_click"


class Principal(BaseSchema):
    """An authenticated identity, either a signed-in user or an anonymous one."""

    uid: str
    is_anonymous: bool = False
    email: str | None = None


# === Event payloads ===
#
# Field names are camelCase aliases because they are persisted verbatim in the
# event's ``data`` document and read by the dashboard under those names.


class PayloadBase(BaseSchema):
    """Fields any event may carry."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        extra="forbid",
    )

    page_path: str | None = Field(default=None, alias="pagePath")
    store_name: str | None = Field(default=None, alias="storeName")
    store_custom_url: str | None = Field(default=None, alias="storeCustomURL")
    timestamp: str | None = None


class ProductFields(PayloadBase):
    """Fields describing the product an event is about."""

    product_id: str = Field(..., alias="productId")
    product_name: str | None = Field(default=None, alias="productName")
    product_description: str | None = Field(default=None, alias="productDescription")
    product_price: float | str | None = Field(default=None, alias="productPrice")
    product_currency: str | None = Field(default=None, alias="productCurrency")
    product_show_price: bool | None = Field(default=None, alias="productShowPrice")
    product_highlighted: bool | None = Field(default=None, alias="productHighlighted")
    product_image_count: int | None = Field(default=None, alias="productImageCount")
    main_category_id: str | None = Field(default=None, alias="mainCategoryId")
    main_category_name: str | None = Field(default=None, alias="mainCategoryName")


class ProductViewPayload(ProductFields):
    event_type: Literal["product_view"] = "product_view"


class ProductClickPayload(ProductFields):
    event_type: Literal["product_click"] = "product_click"


class HighlightedProductViewPayload(ProductFields):
    event_type: Literal["highlighted_product_view"] = "highlighted_product_view"


class HighlightedProductClickPayload(ProductFields):
    event_type: Literal["highlighted_product_click"] = "highlighted_product_click"


class OrderButtonClickPayload(ProductFields):
    event_type: Literal["order_button_click"] = "order_button_click"

    link_type: str | None = Field(default=None, alias="linkType")
    custom_link: str | None = Field(default=None, alias="customLink")


class ImageGalleryNavigationPayload(ProductFields):
    event_type: Literal["image_gallery_navigation"] = "image_gallery_navigation"

    image_index: int = Field(..., alias="imageIndex", ge=0)
    total_images: int | None = Field(default=None, alias="totalImages", ge=0)


class PriceVisibilityTogglePayload(ProductFields):
    event_type: Literal["price_visibility_toggle"] = "price_visibility_toggle"


class ActionButtonClickPayload(PayloadBase):
    event_type: Literal["action_button_click"] = "action_button_click"

    button_title: str | None = Field(default=None, alias="buttonTitle")
    button_color: str | None = Field(default=None, alias="buttonColor")
    custom_link: str | None = Field(default=None, alias="customLink")


class StoreVisitPayload(PayloadBase):
    event_type: Literal["store_visit"] = "store_visit"

    referrer: str | None = None


class CategoryFilterPayload(PayloadBase):
    event_type: Literal["category_filter"] = "category_filter"

    category_id: str | None = Field(default=None, alias="categoryId")
    category_name: str | None = Field(default=None, alias="categoryName")
    main_category_id: str | None = Field(default=None, alias="mainCategoryId")
    main_category_name: str | None = Field(default=None, alias="mainCategoryName")
    sub_category1_id: str | None = Field(default=None, alias="subCategory1Id")
    sub_category1_name: str | None = Field(default=None, alias="subCategory1Name")
    sub_category2_id: str | None = Field(default=None, alias="subCategory2Id")
    sub_category2_name: str | None = Field(default=None, alias="subCategory2Name")


class SearchQueryPayload(PayloadBase):
    event_type: Literal["search_query"] = "search_query"

    search_query: str = Field(..., alias="searchQuery", max_length=500)


class LinkTypeClickPayload(PayloadBase):
    event_type: Literal["link_type_click"] = "link_type_click"

    link_type: str = Field(..., alias="linkType")
    custom_link: str | None = Field(default=None, alias="customLink")
    product_id: str | None = Field(default=None, alias="productId")
    product_name: str | None = Field(default=None, alias="productName")


EventPayload = Annotated[
    ProductViewPayload
    | ProductClickPayload
    | HighlightedProductViewPayload
    | HighlightedProductClickPayload
    | OrderButtonClickPayload
    | ImageGalleryNavigationPayload
    | PriceVisibilityTogglePayload
    | ActionButtonClickPayload
    | StoreVisitPayload
    | CategoryFilterPayload
    | SearchQueryPayload
    | LinkTypeClickPayload,
    Field(discriminator="event_type"),
]


class TrackEventRequest(BaseSchema):
    """Body of ``POST /analytics/events``.

    ``user_id`` is the known user the event is attributed to (usually the
    store owner); leave it out for anonymous visitors.
    """

    user_id: str | None = Field(default=None, max_length=255)
    payload: EventPayload


class TrackEventResponse(BaseSchema):
    status: str = "accepted"


class MergeResponse(BaseSchema):
    merged: int


# === Stored documents ===


class AnalyticsEventDoc(BaseSchema):
    """A single recorded interaction as persisted."""

    id: str | None = None
    event_type: EventType = Field(..., alias="eventType")
    user_id: str = Field(..., alias="userId")
    is_anonymous: bool = Field(..., alias="isAnonymous")
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime
    user_agent: str = Field(default="", alias="userAgent")
    referrer: str = ""
    page_path: str = Field(default="", alias="pagePath")
    session_id: str = Field(..., alias="sessionId")


class UserAnalyticsSummary(BaseSchema):
    """Per-user rollup: a counter and last-seen time per event kind."""

    user_id: str
    counts: dict[EventType, int] = Field(default_factory=dict)
    last_seen: dict[EventType, datetime] = Field(default_factory=dict)
    total_events: int = 0
    created_at: datetime | None = None
    last_updated: datetime | None = None

    def count(self, event_type: EventType) -> int:
        return self.counts.get(event_type, 0)


class ProductAnalyticsSummary(UserAnalyticsSummary):
    """Per-product rollup; ``user_id`` is the owning merchant."""

    product_id: str
    product_name: str = ""


class AnalyticsDashboard(BaseSchema):
    """Merchant dashboard: rollup plus this device's unsynced events."""

    summary: UserAnalyticsSummary
    top_products: list[ProductAnalyticsSummary]
    recent_events: list[AnalyticsEventDoc]
