"""
Tests for the Availability Resolver.
"""
import pytest

from storefront_hub.db_models import StockType
from storefront_hub.errors import NotFoundError
from storefront_hub.models import GradeIn, GradeTemplateIn
from storefront_hub.services.availability import AvailabilityResolver, TemplateRow, evaluate_grade
from storefront_hub.services.grades import GradeService

from factories import grade_product


def _rows(template):
    return [TemplateRow(size_id=sid, size=str(sid), display_order=sid, required_quantity=q)
            for sid, q in template.items()]


# ============================================================================
# evaluate_grade (pure)
# ============================================================================

def test_full_stock_is_offered():
    check = evaluate_grade(_rows({38: 4, 39: 6}), {(38, 1): 4, (39, 1): 6}, 1, False)
    assert check.offered
    assert check.has_full_stock
    assert check.total_quantity == 10


def test_one_short_size_excludes_whole_pack():
    check = evaluate_grade(_rows({38: 4, 39: 6}), {(38, 1): 4, (39, 1): 5}, 1, False)
    assert not check.offered
    assert not check.has_full_stock
    assert check.has_any_stock


def test_missing_variant_counts_as_zero():
    check = evaluate_grade(_rows({38: 4, 39: 6}), {(38, 1): 10}, 1, False)
    assert not check.has_full_stock
    assert not check.offered


def test_sell_without_stock_ignores_stock():
    check = evaluate_grade(_rows({38: 4, 39: 6}), {}, 1, True)
    assert check.offered
    assert check.total_quantity == 10
    assert not check.has_any_stock


def test_empty_template_never_offered():
    assert not evaluate_grade([], {}, 1, True).offered
    assert not evaluate_grade([], {}, 1, False).offered


def test_stock_of_other_color_does_not_count():
    check = evaluate_grade(_rows({38: 1}), {(38, 2): 50}, 1, False)
    assert not check.offered


# ============================================================================
# Resolver against the database
# ============================================================================

async def test_grade_with_full_stock_is_listed(db, seed):
    setup = await grade_product(seed, {"38": 4, "39": 6})

    availability = await AvailabilityResolver(db).resolve(setup.product_id)

    assert availability.stock_type == StockType.grade
    [offer] = availability.grades
    assert offer.grade_id == setup.grade_id
    assert offer.color_id == setup.color_id
    assert offer.has_full_stock is True
    assert offer.total_quantity == 10
    assert [t.required_quantity for t in offer.templates] == [4, 6]
    assert [c.id for c in availability.colors] == [setup.color_id]


async def test_grade_short_by_one_is_excluded(db, seed):
    setup = await grade_product(seed, {"38": 4, "39": 5})

    availability = await AvailabilityResolver(db).resolve(setup.product_id)

    assert availability.grades == []
    assert availability.colors == []


async def test_sell_without_stock_lists_short_grade(db, seed):
    setup = await grade_product(seed, {"38": 4, "39": 5}, sell_without_stock=True)

    availability = await AvailabilityResolver(db).resolve(setup.product_id)

    [offer] = availability.grades
    assert offer.total_quantity == 10
    assert offer.has_full_stock is False


async def test_template_size_without_variant_excludes_grade(db, seed):
    setup = await grade_product(seed, {"38": 4, "39": 6}, template={"38": 4, "39": 6, "40": 2})

    availability = await AvailabilityResolver(db).resolve(setup.product_id)

    assert availability.grades == []


async def test_empty_grade_not_offered_even_without_stock_check(db, seed):
    product_id = await seed.product(sell_without_stock=True)
    color_id = await seed.color("Azul")
    grade_id = await seed.grade("Vazia", {})
    await seed.assign(product_id, color_id, grade_id)

    availability = await AvailabilityResolver(db).resolve(product_id)

    assert availability.grades == []


async def test_inactive_grade_is_skipped(db, seed):
    product_id = await seed.product()
    color_id = await seed.color("Preto")
    await seed.variant(product_id, "38", color_id, 10)
    grade_id = await seed.grade("Inativa", {"38": 1}, active=False)
    await seed.assign(product_id, color_id, grade_id)

    availability = await AvailabilityResolver(db).resolve(product_id)

    assert availability.grades == []


async def test_size_path_lists_variants_with_stock(db, seed):
    product_id = await seed.product("Chinelo Slim", stock_type=StockType.size)
    blue = await seed.color("Azul")
    pink = await seed.color("Rosa")
    await seed.variant(product_id, "38", blue, 3)
    await seed.variant(product_id, "39", pink, 0)

    availability = await AvailabilityResolver(db).resolve(product_id)

    assert availability.stock_type == StockType.size
    assert [(v.size, v.stock) for v in availability.variants] == [("38", 3)]
    assert [c.name for c in availability.colors] == ["Azul"]


async def test_size_path_sell_without_stock_lists_empty_variants(db, seed):
    product_id = await seed.product("Chinelo Slim", stock_type=StockType.size, sell_without_stock=True)
    blue = await seed.color("Azul")
    await seed.variant(product_id, "38", blue, 0)

    availability = await AvailabilityResolver(db).resolve(product_id)

    assert len(availability.variants) == 1
    assert [c.name for c in availability.colors] == ["Azul"]


async def test_inactive_product_is_not_found(db, seed):
    product_id = await seed.product(active=False)

    with pytest.raises(NotFoundError):
        await AvailabilityResolver(db).resolve(product_id)


async def test_missing_product_is_not_found(db):
    with pytest.raises(NotFoundError):
        await AvailabilityResolver(db).resolve(9999)


async def test_template_edit_applies_to_every_assignment(db, seed):
    first = await grade_product(seed, {"38": 4, "39": 5}, name="Chinelo A")
    second_product = await seed.product("Chinelo B")
    await seed.variant(second_product, "38", first.color_id, 4)
    await seed.variant(second_product, "39", first.color_id, 5)
    await seed.assign(second_product, first.color_id, first.grade_id)

    resolver = AvailabilityResolver(db)
    assert (await resolver.resolve(first.product_id)).grades == []
    assert (await resolver.resolve(second_product)).grades == []

    sizes = {t.size: t.size_id for t in (await resolver.templates_for([first.grade_id]))[first.grade_id]}
    await GradeService(db).update_grade(first.grade_id, GradeIn(
        name="G1",
        templates=[
            GradeTemplateIn(size_id=sizes["38"], required_quantity=4),
            GradeTemplateIn(size_id=sizes["39"], required_quantity=5),
        ],
    ))

    a = (await resolver.resolve(first.product_id)).grades
    b = (await resolver.resolve(second_product)).grades
    assert [g.total_quantity for g in a] == [9]
    assert [g.total_quantity for g in b] == [9]


async def test_store_listing_pages_and_colors(db, seed):
    setup = await grade_product(seed, {"38": 4, "39": 6})
    await seed.product("Chinelo Sem Grade")
    await seed.product("Chinelo Oculto", active=False)

    page = await AvailabilityResolver(db).list_products(page=1, limit=1)

    assert page["pagination"]["total_products"] == 2
    assert page["pagination"]["total_pages"] == 2
    assert page["pagination"]["has_next_page"] is True
    assert page["pagination"]["has_prev_page"] is False
    assert len(page["products"]) == 1

    both = await AvailabilityResolver(db).list_products(page=1, limit=10)
    colors = {p["id"]: p["available_colors"] for p in both["products"]}
    assert [c["id"] for c in colors[setup.product_id]] == [setup.color_id]
