"""Tests for the category tree endpoints."""

from collections.abc import Callable
from typing import Any

from httpx import AsyncClient

from katalog.models.category import CategoryLevel
from katalog.models.store import Store
from tests.conftest import OTHER_USER_ID

CATEGORIES_URL = "/api/v1/categories"


class TestCategoryTree:
    async def test_empty(self, client: AsyncClient, store: Store) -> None:  # noqa: ARG002
        response = await client.get(CATEGORIES_URL)

        assert response.status_code == 200
        assert response.json() == []

    async def test_nested(
        self,
        client: AsyncClient,
        store: Store,
        category_factory: Callable[..., Any],
    ) -> None:
        clothing = await category_factory(store_id=store.id, name="Clothing")
        shirts = await category_factory(
            store_id=store.id, name="Shirts", level=CategoryLevel.SUB1, parent_id=clothing.id
        )
        await category_factory(
            store_id=store.id, name="Linen", level=CategoryLevel.SUB2, parent_id=shirts.id
        )
        await category_factory(store_id=store.id, name="Shoes")

        response = await client.get(CATEGORIES_URL)

        tree = response.json()
        assert [c["name"] for c in tree] == ["Clothing", "Shoes"]
        [sub1] = tree[0]["children"]
        assert sub1["name"] == "Shirts"
        assert [c["name"] for c in sub1["children"]] == ["Linen"]
        assert tree[1]["children"] == []

    async def test_requires_store(self, client: AsyncClient) -> None:
        response = await client.get(CATEGORIES_URL)
        assert response.status_code == 404

    async def test_requires_auth(self, unauthed_client: AsyncClient) -> None:
        response = await unauthed_client.get(CATEGORIES_URL)
        assert response.status_code == 401


class TestCreateCategory:
    async def test_main(self, client: AsyncClient, store: Store) -> None:  # noqa: ARG002
        response = await client.post(CATEGORIES_URL, json={"name": "Clothing"})

        assert response.status_code == 201
        data = response.json()
        assert data["level"] == "main"
        assert data["parent_id"] is None

    async def test_sub1_under_main(
        self,
        client: AsyncClient,
        store: Store,
        category_factory: Callable[..., Any],
    ) -> None:
        main = await category_factory(store_id=store.id)

        response = await client.post(
            CATEGORIES_URL,
            json={"name": "Shirts", "level": "sub1", "parent_id": str(main.id)},
        )

        assert response.status_code == 201
        assert response.json()["parent_id"] == str(main.id)

    async def test_main_cannot_have_parent(
        self,
        client: AsyncClient,
        store: Store,
        category_factory: Callable[..., Any],
    ) -> None:
        main = await category_factory(store_id=store.id)

        response = await client.post(
            CATEGORIES_URL, json={"name": "Other", "parent_id": str(main.id)}
        )

        assert response.status_code == 400

    async def test_sub2_needs_sub1_parent(
        self,
        client: AsyncClient,
        store: Store,
        category_factory: Callable[..., Any],
    ) -> None:
        main = await category_factory(store_id=store.id)

        response = await client.post(
            CATEGORIES_URL,
            json={"name": "Linen", "level": "sub2", "parent_id": str(main.id)},
        )

        assert response.status_code == 400
        assert "sub1" in response.json()["detail"]

    async def test_sub1_needs_parent(self, client: AsyncClient, store: Store) -> None:  # noqa: ARG002
        response = await client.post(CATEGORIES_URL, json={"name": "Shirts", "level": "sub1"})
        assert response.status_code == 400

    async def test_parent_from_another_store(
        self,
        client: AsyncClient,
        store: Store,  # noqa: ARG002
        store_factory: Callable[..., Any],
        category_factory: Callable[..., Any],
    ) -> None:
        other = await store_factory(owner_id=OTHER_USER_ID, custom_url="othershop")
        foreign = await category_factory(store_id=other.id)

        response = await client.post(
            CATEGORIES_URL,
            json={"name": "Shirts", "level": "sub1", "parent_id": str(foreign.id)},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Parent category not found."


class TestUpdateCategory:
    async def test_rename(
        self,
        client: AsyncClient,
        store: Store,
        category_factory: Callable[..., Any],
    ) -> None:
        category = await category_factory(store_id=store.id)

        response = await client.patch(f"{CATEGORIES_URL}/{category.id}", json={"name": "Apparel"})

        assert response.status_code == 200
        assert response.json()["name"] == "Apparel"

    async def test_move_to_wrong_level(
        self,
        client: AsyncClient,
        store: Store,
        category_factory: Callable[..., Any],
    ) -> None:
        main = await category_factory(store_id=store.id)
        sub1 = await category_factory(
            store_id=store.id, name="Shirts", level=CategoryLevel.SUB1, parent_id=main.id
        )
        other_sub1 = await category_factory(
            store_id=store.id, name="Pants", level=CategoryLevel.SUB1, parent_id=main.id
        )

        response = await client.patch(
            f"{CATEGORIES_URL}/{sub1.id}", json={"parent_id": str(other_sub1.id)}
        )

        assert response.status_code == 400

    async def test_not_found(self, client: AsyncClient, store: Store) -> None:  # noqa: ARG002
        response = await client.patch(
            f"{CATEGORIES_URL}/00000000-0000-0000-0000-000000000000", json={"name": "X"}
        )
        assert response.status_code == 404


class TestDeleteCategory:
    async def test_delete(
        self,
        client: AsyncClient,
        store: Store,
        category_factory: Callable[..., Any],
    ) -> None:
        category = await category_factory(store_id=store.id)

        response = await client.delete(f"{CATEGORIES_URL}/{category.id}")
        assert response.status_code == 204

        tree = await client.get(CATEGORIES_URL)
        assert tree.json() == []

    async def test_in_use(
        self,
        client: AsyncClient,
        store: Store,
        category_factory: Callable[..., Any],
        product_factory: Callable[..., Any],
    ) -> None:
        category = await category_factory(store_id=store.id)
        await product_factory(store_id=store.id, main_category_id=category.id)

        response = await client.delete(f"{CATEGORIES_URL}/{category.id}")

        assert response.status_code == 409
        assert response.json()["detail"] == "Category still has products"
