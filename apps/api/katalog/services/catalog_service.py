"""Category tree and public catalog queries."""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import Select, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from katalog.models.category import PARENT_LEVEL, Category, CategoryLevel
from katalog.models.product import Product
from katalog.schemas.catalog import CatalogSort, CategoryTreeNode

logger = logging.getLogger(__name__)


class CategoryTreeError(ValueError):
    """Raised when a category or product would break the main > sub1 > sub2 tree."""


# === Category tree ===


async def list_categories(db: AsyncSession, store_id: uuid.UUID) -> list[Category]:
    result = await db.execute(
        select(Category)
        .where(Category.store_id == store_id)
        .order_by(Category.created_at)
    )
    return list(result.scalars().all())


async def get_category(
    db: AsyncSession,
    store_id: uuid.UUID,
    category_id: uuid.UUID,
) -> Category | None:
    result = await db.execute(
        select(Category).where(
            Category.id == category_id,
            Category.store_id == store_id,
        )
    )
    return result.scalar_one_or_none()


async def validate_parent(
    db: AsyncSession,
    store_id: uuid.UUID,
    level: CategoryLevel,
    parent_id: uuid.UUID | None,
) -> Category | None:
    """Check that ``parent_id`` is a legal parent for a category at ``level``.

    Main categories take no parent; sub1 hangs under a main category and sub2
    under a sub1 category of the same store.

    Raises:
        CategoryTreeError: If the parent is missing, foreign or at the wrong level.
    """
    expected = PARENT_LEVEL[level]

    if expected is None:
        if parent_id is not None:
            raise CategoryTreeError("Main categories cannot have a parent.")
        return None

    if parent_id is None:
        raise CategoryTreeError(f"A {level.value} category needs a {expected.value} parent.")

    parent = await get_category(db, store_id, parent_id)
    if parent is None:
        raise CategoryTreeError("Parent category not found.")
    if parent.level != expected:
        raise CategoryTreeError(
            f"A {level.value} category must sit under a {expected.value} category."
        )
    return parent


def build_category_tree(categories: list[Category]) -> list[CategoryTreeNode]:
    """Nest a flat category list under its main categories.

    Nodes whose parent is not in the list are dropped.
    """
    nodes = {c.id: CategoryTreeNode.model_validate(c) for c in categories}
    roots: list[CategoryTreeNode] = []

    for category in categories:
        node = nodes[category.id]
        if category.parent_id is None:
            roots.append(node)
        elif category.parent_id in nodes:
            nodes[category.parent_id].children.append(node)

    return roots


async def validate_product_categories(
    db: AsyncSession,
    store_id: uuid.UUID,
    main_category_id: uuid.UUID,
    sub_category1_id: uuid.UUID | None = None,
    sub_category2_id: uuid.UUID | None = None,
) -> None:
    """Check that a product's category path is a real branch of the store's tree."""
    main = await get_category(db, store_id, main_category_id)
    if main is None or main.level != CategoryLevel.MAIN:
        raise CategoryTreeError("Main category not found.")

    if sub_category1_id is None:
        if sub_category2_id is not None:
            raise CategoryTreeError("A second-level category needs a first-level category.")
        return

    sub1 = await get_category(db, store_id, sub_category1_id)
    if sub1 is None or sub1.level != CategoryLevel.SUB1 or sub1.parent_id != main.id:
        raise CategoryTreeError("First-level category does not belong to the main category.")

    if sub_category2_id is None:
        return

    sub2 = await get_category(db, store_id, sub_category2_id)
    if sub2 is None or sub2.level != CategoryLevel.SUB2 or sub2.parent_id != sub1.id:
        raise CategoryTreeError(
            "Second-level category does not belong to the first-level category."
        )


# === Public catalog ===


@dataclass
class CatalogFilters:
    """Visitor-selected filters for a store's catalog page."""

    main: uuid.UUID | None = None
    section: uuid.UUID | None = None
    q: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    with_price: bool = False
    with_image: bool = False
    sort: CatalogSort = CatalogSort.NEWEST


def _has_image():
    return func.coalesce(func.cardinality(Product.image_urls), 0) > 0


def _visible_price():
    """The price visitors see; hidden prices count as no price."""
    return case((Product.show_price.is_(True), Product.price), else_=None)


def escape_like(value: str) -> str:
    """Make ``%``, ``_`` and ``\\`` in visitor input match literally in LIKE."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def catalog_query(store_id: uuid.UUID, filters: CatalogFilters) -> Select[tuple[Product]]:
    """Build the product query for a catalog page.

    Price filters and price sorts only ever look at visible prices, so a
    product with a hidden price cannot be located by its price.
    """
    stmt = select(Product).where(Product.store_id == store_id)
    visible_price = _visible_price()

    if filters.main is not None:
        stmt = stmt.where(Product.main_category_id == filters.main)
    if filters.section is not None:
        stmt = stmt.where(Product.sub_category1_id == filters.section)
    if filters.q and filters.q.strip():
        pattern = f"%{escape_like(filters.q.strip())}%"
        stmt = stmt.where(Product.name.ilike(pattern, escape="\\"))
    if filters.min_price is not None:
        stmt = stmt.where(visible_price >= filters.min_price)
    if filters.max_price is not None:
        stmt = stmt.where(visible_price <= filters.max_price)
    if filters.with_price:
        stmt = stmt.where(visible_price.is_not(None))
    if filters.with_image:
        stmt = stmt.where(_has_image())

    price = func.coalesce(visible_price, 0)
    if filters.sort == CatalogSort.OLDEST:
        stmt = stmt.order_by(Product.created_at.asc())
    elif filters.sort == CatalogSort.PRICE_LOW:
        stmt = stmt.order_by(price.asc(), Product.created_at.desc())
    elif filters.sort == CatalogSort.PRICE_HIGH:
        stmt = stmt.order_by(price.desc(), Product.created_at.desc())
    else:
        stmt = stmt.order_by(Product.created_at.desc())

    return stmt


async def list_catalog_products(
    db: AsyncSession,
    store_id: uuid.UUID,
    filters: CatalogFilters,
) -> list[Product]:
    result = await db.execute(catalog_query(store_id, filters))
    return list(result.scalars().all())


async def list_highlighted_products(db: AsyncSession, store_id: uuid.UUID) -> list[Product]:
    """Highlighted products with at least one image, newest first."""
    result = await db.execute(
        select(Product)
        .where(
            Product.store_id == store_id,
            Product.highlighted.is_(True),
            _has_image(),
        )
        .order_by(Product.created_at.desc())
    )
    return list(result.scalars().all())
