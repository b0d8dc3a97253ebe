"""
HTTP-level tests: routing, status codes and error rendering.
"""
import httpx
import pytest

from storefront_hub.database import get_session
from storefront_hub.main import app
from storefront_hub.routers.imports import get_importer
from storefront_hub.routers.notifications import get_dispatcher
from storefront_hub.services.imports import ProductImporter
from storefront_hub.services.notifications import NotificationDispatcher

from factories import grade_product


@pytest.fixture
async def client(session_factory):
    async def _session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_dispatcher] = lambda: NotificationDispatcher(session_factory)
    app.dependency_overrides[get_importer] = lambda: ProductImporter(session_factory)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def _order_payload(setup, type_="grade", quantity=1):
    return {
        "customer": {"name": "Maria Silva", "email": "maria@example.com", "whatsapp": "5511999991111"},
        "items": [{
            "productId": setup.product_id,
            "colorId": setup.color_id,
            "gradeId": setup.grade_id,
            "quantity": quantity,
            "productName": setup.product_name,
            "colorName": setup.color_name,
            "gradeName": setup.grade_name,
            "totalPrice": 100,
            "type": type_,
        }],
    }


# ============================================================================
# Storefront
# ============================================================================

async def test_submit_order_then_pack_disappears(client, seed):
    setup = await grade_product(seed, {"38": 4, "39": 6})

    before = await client.get(f"/store/products/{setup.product_id}/availability")
    assert len(before.json()["grades"]) == 1

    resp = await client.post("/store/orders", json=_order_payload(setup))
    assert resp.status_code == 201
    body = resp.json()
    assert body["order_id"] > 0
    assert body["share_message"].startswith("%F0%9F%9B%8D")

    after = await client.get(f"/store/products/{setup.product_id}/availability")
    assert after.json()["grades"] == []
    assert after.json()["colors"] == []


async def test_second_order_is_rejected_with_stock_details(client, seed):
    setup = await grade_product(seed, {"38": 4, "39": 6})
    await client.post("/store/orders", json=_order_payload(setup))

    resp = await client.post("/store/orders", json=_order_payload(setup))

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "InsufficientStockError"
    assert body["code"] == "insufficient_stock"
    assert body["details"]["required"] == 4
    assert body["details"]["available"] == 0


async def test_individual_size_purchase_is_rejected(client, seed):
    setup = await grade_product(seed, {"38": 4, "39": 6})

    resp = await client.post("/store/orders", json=_order_payload(setup, type_="size"))

    assert resp.status_code == 400
    assert resp.json()["code"] == "grade_only"


async def test_order_without_customer_is_rejected(client):
    resp = await client.post("/store/orders", json={"items": []})
    assert resp.status_code == 400
    assert resp.json()["code"] == "customer_required"


async def test_unknown_product_renders_not_found(client):
    resp = await client.get("/store/products/999/availability")
    assert resp.status_code == 404
    assert resp.json()["error"] == "NotFoundError"
    assert resp.json()["code"] == "product_not_found"


async def test_store_listing_paginates(client, seed):
    await grade_product(seed, {"38": 4, "39": 6})

    resp = await client.get("/store/products", params={"page": 1, "limit": 5})

    assert resp.status_code == 200
    body = resp.json()
    assert body["pagination"]["total_products"] == 1
    assert len(body["products"][0]["available_colors"]) == 1


async def test_minimum_order_falls_back_to_store_setting(client):
    await client.patch("/admin/settings", json={"minimum_order": "150"})

    resp = await client.get("/store/customers/ninguem@example.com/minimum-order")

    assert resp.status_code == 200
    assert float(resp.json()["minimum_order"]) == 150.0


# ============================================================================
# Admin
# ============================================================================

async def test_grade_admin_flow(client, seed):
    s38 = await seed.size("38")
    s39 = await seed.size("39")
    product_id = await seed.product()
    color_id = await seed.color("Preto")
    await seed.variant(product_id, "38", color_id, 2)
    await seed.variant(product_id, "39", color_id, 2)

    created = await client.post("/admin/grades", json={
        "name": "Mini",
        "templates": [{"size_id": s38, "required_quantity": 2}, {"size_id": s39, "required_quantity": 2}],
    })
    assert created.status_code == 201
    grade_id = created.json()["id"]

    assigned = await client.post(f"/admin/grades/{grade_id}/assign",
                                 json={"product_id": product_id, "color_id": color_id})
    assert assigned.json()["created"] is True

    store_view = (await client.get(f"/store/grades/{grade_id}")).json()
    assert "assignments" not in store_view
    assert store_view["total_quantity"] == 4

    availability = (await client.get(f"/store/products/{product_id}/availability")).json()
    assert [g["grade_id"] for g in availability["grades"]] == [grade_id]

    removed = await client.request("DELETE", f"/admin/grades/{grade_id}/assign",
                                   json={"product_id": product_id, "color_id": color_id})
    assert removed.json()["removed"] == 1


async def test_duplicate_category_conflicts(client):
    assert (await client.post("/admin/categories", json={"name": "Chinelos"})).status_code == 201

    resp = await client.post("/admin/categories", json={"name": "chinelos"})

    assert resp.status_code == 409
    assert resp.json()["code"] == "category_exists"


async def test_invalid_stock_type_is_rejected(client, seed):
    product_id = await seed.product()

    resp = await client.put(f"/admin/products/{product_id}/stock-type", json={"stock_type": "box"})

    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_stock_type"


async def test_order_status_update(client, seed):
    setup = await grade_product(seed, {"38": 4, "39": 6})
    order_id = (await client.post("/store/orders", json=_order_payload(setup))).json()["order_id"]

    resp = await client.patch(f"/admin/orders/{order_id}/status", json={"status": "confirmed"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "confirmed"

    detail = (await client.get(f"/admin/orders/{order_id}")).json()
    assert detail["status"] == "confirmed"
    assert detail["items"][0]["grade_name"] == "G1"

    history = (await client.get("/admin/customers/maria@example.com/orders")).json()
    assert [o["id"] for o in history] == [order_id]


async def test_import_job_runs_and_reports(client, seed):
    category_id = await seed.category()
    group_id = await seed.size_group("Adulto", ["38", "39"])

    started = await client.post("/import/products", json={"data": [
        {"name": "Chinelo Novo", "category_id": category_id, "base_price": "12.50",
         "size_group_id": group_id, "colors": "Preto", "stock_per_variant": 3},
    ]})
    assert started.status_code == 202
    job_id = started.json()["job_id"]

    job = (await client.get(f"/import/jobs/{job_id}")).json()
    assert job["success"] == 1
    assert job["errors"] == 0
    assert job["is_running"] is False

    missing = await client.get("/import/jobs/nope")
    assert missing.status_code == 404


async def test_empty_import_is_rejected(client):
    resp = await client.post("/import/products", json={"data": []})
    assert resp.status_code == 400
    assert resp.json()["code"] == "import_empty"


async def test_export_is_csv_attachment(client, seed):
    await seed.product()

    resp = await client.get("/import/export-products")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "attachment" in resp.headers["content-disposition"]
