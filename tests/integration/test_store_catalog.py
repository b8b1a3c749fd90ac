"""Integration tests for the public catalog and admin catalog endpoints."""

import pytest
from tests.factories import make_auth_user, override_auth


# ---------------------------------------------------------------------------
# Public catalog
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
@pytest.mark.integration
async def test_public_listing_hides_inactive(client, make_product):
    """GET /store/products: only active products are listed."""
    visible = await make_product(name="Visible phone")
    hidden = await make_product(name="Hidden phone", is_active=False)

    response = await client.get("/store/products")

    assert response.status_code == 200, response.text
    ids = [p["id"] for p in response.json()]
    assert visible.id in ids
    assert hidden.id not in ids

    detail = await client.get(f"/store/products/{hidden.id}")
    assert detail.status_code == 404
    assert detail.json()["detail"]["kind"] == "NotFound"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_public_subcategories(client, catalog):
    category, subcategory = catalog

    response = await client.get(f"/store/categories/{category.id}/subcategories")

    assert response.status_code == 200
    assert [s["id"] for s in response.json()] == [subcategory.id]


# ---------------------------------------------------------------------------
# Admin catalog
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_customer_cannot_manage_catalog(client):
    """POST /admin/store/categories: 403 for customers."""
    response = await client.post("/admin/store/categories", json={"name": "Toys"})

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_builds_and_deactivates_tree(admin_client):
    """Create a category tree, then deactivate the category and see it cascade."""
    category = await admin_client.post(
        "/admin/store/categories", json={"name": "Outdoor", "description": "Camping"}
    )
    assert category.status_code == 201, category.text
    category_id = category.json()["id"]

    sub = await admin_client.post(
        "/admin/store/subcategories", json={"name": "Tents", "category_id": category_id}
    )
    assert sub.status_code == 201, sub.text
    sub_id = sub.json()["id"]

    product = await admin_client.post(
        "/admin/store/products",
        json={
            "name": "Two-person tent",
            "price": "149.90",
            "stock": 4,
            "category_id": category_id,
            "subcategory_id": sub_id,
        },
    )
    assert product.status_code == 201, product.text
    product_id = product.json()["id"]

    response = await admin_client.put(
        f"/admin/store/categories/{category_id}/active", json={"is_active": False}
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["is_active"] is False
    assert body["subcategory_ids"] == [sub_id]
    assert body["product_ids"] == [product_id]

    listed = await admin_client.get(
        "/admin/store/products", params={"category_id": category_id}
    )
    assert [p["is_active"] for p in listed.json()] == [False]

    # New products under the inactive tree are refused
    blocked = await admin_client.post(
        "/admin/store/products",
        json={
            "name": "Sleeping bag",
            "price": "40.00",
            "category_id": category_id,
            "subcategory_id": sub_id,
        },
    )
    assert blocked.status_code == 409
    assert blocked.json()["detail"]["kind"] == "PreconditionFailed"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_mismatched_subcategory_is_conflict(admin_client, catalog):
    category, _ = catalog
    other = await admin_client.post("/admin/store/categories", json={"name": "Garden"})
    foreign = await admin_client.post(
        "/admin/store/subcategories",
        json={"name": "Hoses", "category_id": other.json()["id"]},
    )

    response = await admin_client.post(
        "/admin/store/products",
        json={
            "name": "Garden hose",
            "price": "19.99",
            "category_id": category.id,
            "subcategory_id": foreign.json()["id"],
        },
    )

    assert response.status_code == 409
    assert response.json()["detail"]["kind"] == "ConsistencyViolation"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_staff_cannot_delete(app, client, admin, make_product):
    """DELETE /admin/store/products/{id}: admin only."""
    product = await make_product()

    with override_auth(app, make_auth_user(admin.id, role="staff")):
        response = await client.delete(f"/admin/store/products/{product.id}")
    assert response.status_code == 403

    with override_auth(app, make_auth_user(admin.id, role="admin")):
        response = await client.delete(f"/admin/store/products/{product.id}")
    assert response.status_code == 200, response.text
    assert response.json() == {"id": product.id, "image_deleted": False}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_adjust_stock_and_stats(admin_client, catalog, make_product):
    category, _ = catalog
    product = await make_product(stock=2)

    response = await admin_client.post(
        f"/admin/store/products/{product.id}/stock",
        json={"quantity": 8, "operation": "increase"},
    )
    assert response.status_code == 200, response.text
    assert response.json()["new_stock"] == 10

    refused = await admin_client.post(
        f"/admin/store/products/{product.id}/stock",
        json={"quantity": 11, "operation": "decrease"},
    )
    assert refused.status_code == 409
    assert refused.json()["detail"]["kind"] == "InsufficientStock"

    stats = await admin_client.get(f"/admin/store/categories/{category.id}/stats")
    assert stats.status_code == 200, stats.text
    assert stats.json()["total_stock"] == 10
    assert stats.json()["products"] == {"total": 1, "active": 1, "inactive": 0}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_rejected_request_keeps_caller_request_id(client):
    """GET /store/products/{id}: correlation headers on an error response."""
    response = await client.get(
        "/store/products/424242", headers={"X-Request-ID": "checkout-trace-1"}
    )

    assert response.status_code == 404
    assert response.headers["X-Request-ID"] == "checkout-trace-1"
    assert float(response.headers["X-Response-Time-Ms"]) >= 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_duplicate_category_name_is_unprocessable(admin_client, catalog):
    """POST /admin/store/categories: a taken name answers 422 ValidationError."""
    response = await admin_client.post(
        "/admin/store/categories", json={"name": "Electronics"}
    )

    assert response.status_code == 422
    assert response.json()["detail"]["kind"] == "ValidationError"
    assert response.json()["detail"]["field"] == "name"
