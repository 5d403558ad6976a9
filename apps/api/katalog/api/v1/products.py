"""Product management endpoints for the caller's store."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select

from katalog.core.deps import DBSession, get_owned_store
from katalog.models.product import Product
from katalog.models.store import Store
from katalog.schemas.catalog import ProductCreate, ProductResponse, ProductUpdate
from katalog.schemas.common import PaginatedResponse
from katalog.services.catalog_service import CategoryTreeError, validate_product_categories

router = APIRouter()


async def _get_product_or_404(db: DBSession, store: Store, product_id: UUID) -> Product:
    result = await db.execute(
        select(Product).where(Product.id == product_id, Product.store_id == store.id)
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )
    return product


@router.get("", response_model=PaginatedResponse[ProductResponse])
async def list_products(
    db: DBSession,
    store: Store = Depends(get_owned_store),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[ProductResponse]:
    """List the store's products, newest first."""
    count_stmt = select(func.count()).select_from(Product).where(Product.store_id == store.id)
    total = (await db.execute(count_stmt)).scalar() or 0

    offset = (page - 1) * page_size
    stmt = (
        select(Product)
        .where(Product.store_id == store.id)
        .order_by(Product.created_at.desc())
        .offset(offset)
        .limit(page_size)
    )
    result = await db.execute(stmt)
    products = list(result.scalars().all())

    pages = (total + page_size - 1) // page_size if total > 0 else 1

    return PaginatedResponse[ProductResponse](
        items=[ProductResponse.model_validate(p) for p in products],
        total=total,
        page=page,
        page_size=page_size,
        pages=pages,
    )


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create product",
)
async def create_product(
    data: ProductCreate,
    db: DBSession,
    store: Store = Depends(get_owned_store),
) -> ProductResponse:
    try:
        await validate_product_categories(
            db,
            store.id,
            data.main_category_id,
            data.sub_category1_id,
            data.sub_category2_id,
        )
    except CategoryTreeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    product = Product(store_id=store.id, **data.model_dump())
    db.add(product)
    await db.commit()
    await db.refresh(product)

    return ProductResponse.model_validate(product)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: UUID,
    db: DBSession,
    store: Store = Depends(get_owned_store),
) -> ProductResponse:
    product = await _get_product_or_404(db, store, product_id)
    return ProductResponse.model_validate(product)


@router.patch(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Update product",
    description="Update a product. Only provided fields change.",
)
async def update_product(
    product_id: UUID,
    data: ProductUpdate,
    db: DBSession,
    store: Store = Depends(get_owned_store),
) -> ProductResponse:
    product = await _get_product_or_404(db, store, product_id)
    update_data = data.model_dump(exclude_unset=True)

    # Required columns can't be cleared
    for field in ("name", "currency", "show_price", "highlighted", "main_category_id"):
        if field in update_data and update_data[field] is None:
            del update_data[field]
    if update_data.get("image_urls", []) is None:
        update_data["image_urls"] = []

    category_fields = {"main_category_id", "sub_category1_id", "sub_category2_id"}
    if category_fields & update_data.keys():
        main_id = update_data.get("main_category_id") or product.main_category_id
        try:
            await validate_product_categories(
                db,
                store.id,
                main_id,
                update_data.get("sub_category1_id", product.sub_category1_id),
                update_data.get("sub_category2_id", product.sub_category2_id),
            )
        except CategoryTreeError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
        update_data["main_category_id"] = main_id

    for field, value in update_data.items():
        setattr(product, field, value)

    await db.commit()
    await db.refresh(product)

    return ProductResponse.model_validate(product)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete product",
)
async def delete_product(
    product_id: UUID,
    db: DBSession,
    store: Store = Depends(get_owned_store),
) -> None:
    product = await _get_product_or_404(db, store, product_id)
    await db.delete(product)
    await db.commit()
