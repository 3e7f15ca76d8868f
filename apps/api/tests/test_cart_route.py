"""Tests for the storefront cart endpoints.

Covers /api/v1/cart: session issuance, adding/merging lines, quantity
updates, removal, clearing, and rejection of foreign products.
"""

import uuid
from collections.abc import Callable
from typing import Any

from httpx import AsyncClient

from app.models.store import Store
from tests.conftest import store_headers

CART_URL = "/api/v1/cart"


class TestCartSession:
    """Anonymous carts are keyed by the X-Cart-Session header."""

    async def test_new_session_issued(self, unauthed_client: AsyncClient, store: Store) -> None:
        response = await unauthed_client.get(CART_URL, headers=store_headers(store))

        assert response.status_code == 200
        assert response.headers["X-Cart-Session"]
        data = response.json()
        assert data["items"] == []
        assert data["subtotal"] == "0.00"

    async def test_session_reused(
        self,
        unauthed_client: AsyncClient,
        store: Store,
        product_factory: Callable[..., Any],
    ) -> None:
        product = await product_factory(store_id=store.id)

        first = await unauthed_client.post(
            f"{CART_URL}/items",
            json={"product_id": str(product.id), "quantity": 1},
            headers=store_headers(store),
        )
        session_id = first.headers["X-Cart-Session"]

        second = await unauthed_client.get(
            CART_URL, headers=store_headers(store, **{"X-Cart-Session": session_id})
        )

        assert second.headers["X-Cart-Session"] == session_id
        assert second.json()["id"] == first.json()["id"]
        assert second.json()["items_count"] == 1

    async def test_signed_in_user_gets_no_session_header(
        self, client: AsyncClient, store: Store
    ) -> None:
        response = await client.get(CART_URL, headers=store_headers(store))

        assert response.status_code == 200
        assert "X-Cart-Session" not in response.headers

    async def test_unknown_store(self, unauthed_client: AsyncClient) -> None:
        response = await unauthed_client.get(CART_URL, headers={"X-Store-Id": str(uuid.uuid4())})

        assert response.status_code == 404


class TestCartItems:
    """Tests for line maintenance through the API."""

    async def test_add_and_merge(
        self,
        client: AsyncClient,
        store: Store,
        product_factory: Callable[..., Any],
    ) -> None:
        product = await product_factory(store_id=store.id, price="49.90")
        body = {"product_id": str(product.id), "quantity": 1}

        await client.post(f"{CART_URL}/items", json=body, headers=store_headers(store))
        response = await client.post(f"{CART_URL}/items", json=body, headers=store_headers(store))

        assert response.status_code == 201
        data = response.json()
        assert len(data["items"]) == 1
        assert data["items"][0]["quantity"] == 2
        assert data["items"][0]["unit_price"] == "49.90"
        assert data["items"][0]["line_total"] == "99.80"
        assert data["subtotal"] == "99.80"

    async def test_add_variation(
        self,
        client: AsyncClient,
        store: Store,
        product_factory: Callable[..., Any],
        variation_factory: Callable[..., Any],
    ) -> None:
        product = await product_factory(store_id=store.id, price="79.90")
        xl = await variation_factory(product_id=product.id, name="XL", price="89.90", stock=2)

        response = await client.post(
            f"{CART_URL}/items",
            json={"product_id": str(product.id), "variation_id": str(xl.id)},
            headers=store_headers(store),
        )

        assert response.status_code == 201
        line = response.json()["items"][0]
        assert line["variation"]["name"] == "XL"
        assert line["unit_price"] == "89.90"

    async def test_product_of_other_store_rejected(
        self,
        client: AsyncClient,
        store: Store,
        other_store: Store,
        product_factory: Callable[..., Any],
    ) -> None:
        foreign = await product_factory(store_id=other_store.id)

        response = await client.post(
            f"{CART_URL}/items",
            json={"product_id": str(foreign.id)},
            headers=store_headers(store),
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "Product does not belong to this store"

    async def test_unknown_product(self, client: AsyncClient, store: Store) -> None:
        response = await client.post(
            f"{CART_URL}/items",
            json={"product_id": str(uuid.uuid4())},
            headers=store_headers(store),
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Product not found"

    async def test_out_of_stock(
        self,
        client: AsyncClient,
        store: Store,
        product_factory: Callable[..., Any],
    ) -> None:
        product = await product_factory(store_id=store.id, stock=0)

        response = await client.post(
            f"{CART_URL}/items",
            json={"product_id": str(product.id)},
            headers=store_headers(store),
        )

        assert response.status_code == 422
        assert "out of stock" in response.json()["detail"]

    async def test_zero_quantity_rejected_by_schema(
        self,
        client: AsyncClient,
        store: Store,
        product_factory: Callable[..., Any],
    ) -> None:
        product = await product_factory(store_id=store.id)

        response = await client.post(
            f"{CART_URL}/items",
            json={"product_id": str(product.id), "quantity": 0},
            headers=store_headers(store),
        )

        assert response.status_code == 422

    async def test_update_remove_and_clear(
        self,
        client: AsyncClient,
        store: Store,
        product_factory: Callable[..., Any],
    ) -> None:
        mug = await product_factory(store_id=store.id, price="10.00")
        poster = await product_factory(store_id=store.id, price="5.00")
        headers = store_headers(store)

        await client.post(f"{CART_URL}/items", json={"product_id": str(mug.id)}, headers=headers)
        added = await client.post(
            f"{CART_URL}/items", json={"product_id": str(poster.id)}, headers=headers
        )
        lines = {line["product_id"]: line["id"] for line in added.json()["items"]}

        updated = await client.patch(
            f"{CART_URL}/items/{lines[str(mug.id)]}", json={"quantity": 3}, headers=headers
        )
        assert updated.status_code == 200
        assert updated.json()["subtotal"] == "35.00"

        removed = await client.delete(f"{CART_URL}/items/{lines[str(poster.id)]}", headers=headers)
        assert removed.json()["subtotal"] == "30.00"

        cleared = await client.delete(CART_URL, headers=headers)
        assert cleared.json()["items"] == []

    async def test_line_of_another_cart_not_found(
        self,
        unauthed_client: AsyncClient,
        store: Store,
        product_factory: Callable[..., Any],
    ) -> None:
        product = await product_factory(store_id=store.id)
        anonymous = await unauthed_client.post(
            f"{CART_URL}/items",
            json={"product_id": str(product.id)},
            headers=store_headers(store),
        )
        line_id = anonymous.json()["items"][0]["id"]

        response = await unauthed_client.patch(
            f"{CART_URL}/items/{line_id}",
            json={"quantity": 5},
            headers=store_headers(store, **{"X-Cart-Session": "someone-else"}),
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Cart item not found"
