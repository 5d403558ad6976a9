"""Category tree endpoints for the caller's store."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select

from katalog.core.deps import DBSession, get_owned_store
from katalog.models.category import Category
from katalog.models.product import Product
from katalog.models.store import Store
from katalog.schemas.catalog import (
    CategoryCreate,
    CategoryResponse,
    CategoryTreeNode,
    CategoryUpdate,
)
from katalog.services.catalog_service import (
    CategoryTreeError,
    build_category_tree,
    get_category,
    list_categories,
    validate_parent,
)

router = APIRouter()


async def _get_category_or_404(db: DBSession, store: Store, category_id: UUID) -> Category:
    category = await get_category(db, store.id, category_id)
    if category is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found",
        )
    return category


@router.get(
    "",
    response_model=list[CategoryTreeNode],
    summary="List categories",
    description="The store's categories nested as main > sub1 > sub2.",
)
async def list_category_tree(
    db: DBSession,
    store: Store = Depends(get_owned_store),
) -> list[CategoryTreeNode]:
    return build_category_tree(await list_categories(db, store.id))


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create category",
)
async def create_category(
    data: CategoryCreate,
    db: DBSession,
    store: Store = Depends(get_owned_store),
) -> CategoryResponse:
    """Create a category under the right kind of parent."""
    try:
        await validate_parent(db, store.id, data.level, data.parent_id)
    except CategoryTreeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    category = Category(
        store_id=store.id,
        name=data.name,
        level=data.level,
        parent_id=data.parent_id,
    )
    db.add(category)
    await db.commit()
    await db.refresh(category)

    return CategoryResponse.model_validate(category)


@router.patch(
    "/{category_id}",
    response_model=CategoryResponse,
    summary="Update category",
    description="Rename a category or move it under another parent of the same level.",
)
async def update_category(
    category_id: UUID,
    data: CategoryUpdate,
    db: DBSession,
    store: Store = Depends(get_owned_store),
) -> CategoryResponse:
    category = await _get_category_or_404(db, store, category_id)
    update_data = data.model_dump(exclude_unset=True)

    if "parent_id" in update_data:
        try:
            await validate_parent(db, store.id, category.level, update_data["parent_id"])
        except CategoryTreeError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    for field, value in update_data.items():
        setattr(category, field, value)

    await db.commit()
    await db.refresh(category)

    return CategoryResponse.model_validate(category)


@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete category",
    description="Delete a category and its subcategories. Fails while products still use it as their main category.",
)
async def delete_category(
    category_id: UUID,
    db: DBSession,
    store: Store = Depends(get_owned_store),
) -> None:
    category = await _get_category_or_404(db, store, category_id)

    in_use = await db.execute(
        select(func.count()).select_from(Product).where(Product.main_category_id == category.id)
    )
    if in_use.scalar():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category still has products",
        )

    await db.delete(category)
    await db.commit()
