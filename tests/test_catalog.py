"""
Tests for catalog administration, customers and store settings.
"""
from decimal import Decimal

import pytest

from storefront_hub.db_models import StockType
from storefront_hub.errors import ConflictError, NotFoundError, ValidationError
from storefront_hub.models import (
    BulkVariantsIn, CategoryIn, CustomerIn, CustomerPatch, ProductIn, ProductPatch, VariantUpdateIn,
)
from storefront_hub.services.catalog import CatalogService
from storefront_hub.services.customers import CustomerService
from storefront_hub.services.kv_settings import store_settings
from storefront_hub.services.orders import OrderCommitEngine

from factories import customer, grade_item, grade_product


async def test_category_names_are_unique_ignoring_case(db):
    catalog = CatalogService(db)
    await catalog.create_category(CategoryIn(name="Slides"))

    with pytest.raises(ConflictError):
        await catalog.create_category(CategoryIn(name=" slides "))


async def test_product_with_unknown_category_is_not_found(db):
    with pytest.raises(NotFoundError):
        await CatalogService(db).create_product(ProductIn(name="X", category_id=31337))


async def test_patch_ignores_nulls_for_required_fields(db, seed):
    product_id = await seed.product("Original")

    product = await CatalogService(db).patch_product(
        product_id, ProductPatch(name=None, description="Nova", sell_without_stock=True)
    )

    assert product.name == "Original"
    assert product.description == "Nova"
    assert product.sell_without_stock is True


async def test_stock_type_switch(db, seed):
    product_id = await seed.product()
    catalog = CatalogService(db)

    product = await catalog.set_stock_type(product_id, " SIZE ")
    assert product.stock_type == StockType.size
    with pytest.raises(ValidationError):
        await catalog.set_stock_type(product_id, "pair")


async def test_bulk_variants_skip_existing_pairs(db, seed):
    product_id = await seed.product(stock_type=StockType.size)
    group_id = await seed.size_group("Adulto", ["38", "39"])
    black = await seed.color("Preto")
    white = await seed.color("Branco")
    await seed.variant(product_id, "38", black, 9)
    catalog = CatalogService(db)

    created = await catalog.bulk_create_variants(
        product_id, BulkVariantsIn(size_group_id=group_id, color_ids=[black, white, black], stock=2)
    )

    assert created == 3
    variants = {(v["size"], v["color_name"]): v["stock"] for v in await catalog.list_variants(product_id)}
    assert variants[("38", "Preto")] == 9
    assert variants[("39", "Branco")] == 2
    assert len(variants) == 4


async def test_negative_variant_stock_is_rejected(db, seed):
    product_id = await seed.product(stock_type=StockType.size)
    variant_id = await seed.variant(product_id, "38", await seed.color("Preto"), 1)

    with pytest.raises(ValidationError):
        await CatalogService(db).update_variant(variant_id, VariantUpdateIn(stock=-1))


async def test_stock_summary_for_grade_product(db, seed):
    setup = await grade_product(seed, {"38": 4, "39": 6})
    other_grade = await seed.grade("Grande", {"38": 40})
    await seed.assign(setup.product_id, setup.color_id, other_grade)

    summary = await CatalogService(db).stock_summary(setup.product_id)

    assert summary["grade_stats"] == {"total_combinations": 2, "available_combinations": 1}


async def test_product_with_orders_cannot_be_deleted(db, seed):
    setup = await grade_product(seed, {"38": 4, "39": 6})
    await OrderCommitEngine(db).commit_order(customer(), [grade_item(setup)])

    with pytest.raises(ConflictError) as exc:
        await CatalogService(db).delete_product(setup.product_id)
    assert exc.value.code == "product_has_orders"


# ============================================================================
# Customers + settings
# ============================================================================

async def test_customer_minimum_order_overrides_store_default(db):
    await store_settings(db).set("minimum_order", "300")
    service = CustomerService(db)
    await service.create(CustomerIn(email="Loja@Example.com", name="Loja Centro"))

    assert await service.effective_minimum_order("loja@example.com") == Decimal("300")

    await service.patch("loja@example.com", CustomerPatch(minimum_order=Decimal("500")))
    assert await service.effective_minimum_order("LOJA@example.com") == Decimal("500")


async def test_duplicate_customer_conflicts(db):
    service = CustomerService(db)
    await service.create(CustomerIn(email="a@example.com", name="A"))

    with pytest.raises(ConflictError):
        await service.create(CustomerIn(email="A@example.com", name="A"))


async def test_customer_detail_totals_orders(db, seed):
    setup = await grade_product(seed, {"38": 8, "39": 12})
    engine = OrderCommitEngine(db)
    await engine.commit_order(customer(), [grade_item(setup, total="100.00")])
    await engine.commit_order(customer(), [grade_item(setup, total="80.00")])

    detail = await CustomerService(db).detail("maria@example.com")

    assert detail["order_count"] == 2
    assert detail["total_spent"] == Decimal("180.00")


async def test_store_settings_defaults_and_updates(db):
    settings = store_settings(db)

    values = await settings.update({"store_name": "Havai", "show_prices": True})

    assert values["store_name"] == "Havai"
    assert values["show_prices"] == "true"
    assert values["primary_color"] == "#f97316"
    with pytest.raises(NotFoundError):
        await settings.get("does_not_exist")
