"""
Tests for bulk product import jobs and CSV export.
"""
import csv
import io
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from storefront_hub.db_models import Color, ProductVariant, StockType
from storefront_hub.errors import NotFoundError
from storefront_hub.models import ImportRow
from storefront_hub.services.imports import (
    EXPORT_COLUMNS, ImportJobStore, ProductImporter, export_products_csv,
)


async def _variant_count(db, product_id):
    return (await db.execute(
        select(func.count(ProductVariant.id)).where(ProductVariant.product_id == product_id)
    )).scalar_one()


async def test_import_job_counts_and_creates_variants(db, seed, session_factory):
    category_id = await seed.category()
    group_id = await seed.size_group("Adulto", ["38", "39"])
    rows = [
        ImportRow(name="Chinelo Praia", category_id=category_id, base_price=Decimal("19.90"),
                  size_group_id=group_id, colors="Preto, branco, Preto", stock_per_variant=5),
        ImportRow(name="", category_id=category_id, base_price=Decimal("10"), size_group_id=group_id,
                  colors="Azul"),
        ImportRow(name="Sem Grupo", category_id=category_id, base_price=Decimal("10"),
                  size_group_id=999, colors="Azul"),
        ImportRow(name="Sem Cor", category_id=category_id, base_price=Decimal("10"),
                  size_group_id=group_id, colors=" , "),
    ]
    store = ImportJobStore()
    job = store.create(total=len(rows))

    await ProductImporter(session_factory).run(job, rows)

    assert job.processed == 4
    assert job.success == 1
    assert job.errors == 3
    assert job.is_running is False
    assert job.finished_at is not None
    assert [e["row"] for e in job.error_list] == [2, 3, 4]
    assert "name" in job.error_list[0]["message"]

    [product_id] = job.created_product_ids
    assert await _variant_count(db, product_id) == 4
    names = set((await db.execute(select(Color.name))).scalars().all())
    assert {"Preto", "branco"} <= names


async def test_failed_row_leaves_no_partial_product(db, seed, session_factory):
    group_id = await seed.size_group("Adulto", ["38"])
    job = ImportJobStore().create(total=1)

    await ProductImporter(session_factory).run(job, [
        ImportRow(name="Orfao", category_id=4242, base_price=Decimal("10"),
                  size_group_id=group_id, colors="Verde"),
    ])

    assert job.errors == 1
    greens = (await db.execute(select(Color).where(Color.name == "Verde"))).scalars().all()
    assert greens == []


def test_job_store_lookup_and_cleanup():
    store = ImportJobStore()
    job = store.create(total=3)

    assert store.get(job.id) is job
    assert store.all_jobs() == [job]
    with pytest.raises(NotFoundError):
        store.get("missing")

    job.is_running = True
    assert store.clear_finished() == 0
    job.is_running = False
    assert store.clear_finished() == 1


async def test_export_csv_round_trips_import_columns(db, seed):
    category_id = await seed.category("Infantil")
    group_id = await seed.size_group("Kids", ["32", "33"])
    product_id = await seed.product("Chinelo Kids", stock_type=StockType.size, category_id=category_id)
    red = await seed.color("Vermelho")
    blue = await seed.color("Azul")
    await seed.variant(product_id, "32", red, 4)
    await seed.variant(product_id, "33", blue, 6)

    content = await export_products_csv(db)

    assert content.startswith("\ufeff")
    [row] = list(csv.DictReader(io.StringIO(content[1:])))
    assert list(row) == EXPORT_COLUMNS
    assert row["name"] == "Chinelo Kids"
    assert row["category_name"] == "Infantil"
    assert row["colors"] == "Azul,Vermelho"
    assert row["size_group_id"] == str(group_id)
    assert row["stock_per_variant"] == "5"
    assert row["stock_type"] == "size"
    assert row["sell_without_stock"] == "false"
