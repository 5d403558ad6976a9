"""Public catalog pages, reachable at a store's custom URL. No auth required."""

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select

from katalog.core.deps import DBSession
from katalog.models.category import Category
from katalog.models.product import Product
from katalog.models.store import Store
from katalog.schemas.catalog import (
    CatalogSort,
    CategoryResponse,
    ProductDetailResponse,
    PublicProductResponse,
    StorefrontResponse,
)
from katalog.schemas.store import ActionButton, PublicStoreResponse
from katalog.services.catalog_service import (
    CatalogFilters,
    build_category_tree,
    list_catalog_products,
    list_categories,
    list_highlighted_products,
)
from katalog.services.order_link_service import build_order_link
from katalog.services.store_service import get_store_by_custom_url

router = APIRouter()


def _public_store(store: Store) -> PublicStoreResponse:
    action_button = None
    if store.action_button_title and store.action_button_link:
        action_button = ActionButton(
            title=store.action_button_title,
            link=store.action_button_link,
            color=store.action_button_color or "#000000",
        )
    return PublicStoreResponse(
        id=store.id,
        owner_id=store.owner_id,
        name=store.name,
        custom_url=store.custom_url,
        category=store.category,
        logo_url=store.logo_url,
        action_button=action_button,
    )


def _public_product(product: Product) -> PublicProductResponse:
    public = PublicProductResponse.model_validate(product)
    if not product.show_price:
        public.price = None
    return public


async def _get_visible_store(db: DBSession, custom_url: str) -> Store:
    store = await get_store_by_custom_url(db, custom_url)
    if store is None or not store.is_visible:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Store not found",
        )
    return store


@router.get(
    "/{custom_url}",
    response_model=StorefrontResponse,
    summary="Get catalog",
    description="A store's public catalog with optional filters and sorting.",
)
async def get_storefront(
    custom_url: str,
    db: DBSession,
    main: UUID | None = Query(None, description="Main category"),
    section: UUID | None = Query(None, description="First-level subcategory"),
    q: str | None = Query(None, max_length=200, description="Search product names"),
    min_price: Decimal | None = Query(None, ge=0),
    max_price: Decimal | None = Query(None, ge=0),
    with_price: bool = Query(False, description="Only products with a visible price"),
    with_image: bool = Query(False, description="Only products with images"),
    sort: CatalogSort = Query(CatalogSort.NEWEST),
) -> StorefrontResponse:
    store = await _get_visible_store(db, custom_url)

    filters = CatalogFilters(
        main=main,
        section=section,
        q=q,
        min_price=min_price,
        max_price=max_price,
        with_price=with_price,
        with_image=with_image,
        sort=sort,
    )
    products = await list_catalog_products(db, store.id, filters)
    highlighted = await list_highlighted_products(db, store.id)
    categories = await list_categories(db, store.id)

    return StorefrontResponse(
        store=_public_store(store),
        categories=build_category_tree(categories),
        highlighted=[_public_product(p) for p in highlighted],
        products=[_public_product(p) for p in products],
        total=len(products),
    )


@router.get(
    "/{custom_url}/products/{product_id}",
    response_model=ProductDetailResponse,
    summary="Get product page",
    description="One product with its category path and order link.",
)
async def get_storefront_product(
    custom_url: str,
    product_id: UUID,
    db: DBSession,
) -> ProductDetailResponse:
    store = await _get_visible_store(db, custom_url)

    result = await db.execute(
        select(Product).where(Product.id == product_id, Product.store_id == store.id)
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )

    path_ids = [
        category_id
        for category_id in (
            product.main_category_id,
            product.sub_category1_id,
            product.sub_category2_id,
        )
        if category_id is not None
    ]
    result = await db.execute(select(Category).where(Category.id.in_(path_ids)))
    by_id = {c.id: c for c in result.scalars().all()}

    return ProductDetailResponse(
        store=_public_store(store),
        product=_public_product(product),
        categories=[CategoryResponse.model_validate(by_id[i]) for i in path_ids if i in by_id],
        order_link=build_order_link(product.name, product.custom_link, store.phone_number),
    )
