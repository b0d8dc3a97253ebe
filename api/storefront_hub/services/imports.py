# storefront_hub/services/imports.py
"""
Bulk product import (per-job) and CSV export.

Each import request gets its own ImportJob record in an ImportJobStore,
addressable by id. Rows run one transaction each: a failed row is rolled
back and recorded, the rest of the job continues.
"""
from __future__ import annotations
import csv
import io
import logging
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront_hub.database import transaction
from storefront_hub.db_models import Product, ProductVariant, Category, Color, Size, SizeGroup
from storefront_hub.errors import NotFoundError, StoreError, ValidationError
from storefront_hub.models import ImportRow, ProductIn
from storefront_hub.services.catalog import CatalogService

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "name", "category_id", "category_name", "base_price", "sale_price", "suggested_price",
    "photo", "size_group_id", "colors", "sku", "parent_sku", "description",
    "stock_per_variant", "stock_type", "sell_without_stock",
]


@dataclass
class ImportJob:
    id: str
    total: int
    processed: int = 0
    success: int = 0
    errors: int = 0
    current: str = ""
    is_running: bool = False
    error_list: List[dict] = field(default_factory=list)
    created_product_ids: List[int] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat() if self.started_at else None
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        return data


class ImportJobStore:
    """In-process registry of import jobs keyed by job id."""

    def __init__(self):
        self._jobs: Dict[str, ImportJob] = {}

    def create(self, total: int) -> ImportJob:
        job = ImportJob(id=uuid.uuid4().hex, total=total)
        self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> ImportJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Import job {job_id} not found", code="import_job_not_found")
        return job

    def all_jobs(self) -> List[ImportJob]:
        return sorted(self._jobs.values(), key=lambda j: j.started_at or datetime.min.replace(tzinfo=timezone.utc),
                      reverse=True)

    def clear_finished(self) -> int:
        done = [jid for jid, job in self._jobs.items() if not job.is_running]
        for jid in done:
            del self._jobs[jid]
        return len(done)


import_jobs = ImportJobStore()


class ProductImporter:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def run(self, job: ImportJob, rows: List[ImportRow]) -> ImportJob:
        job.is_running = True
        job.started_at = datetime.now(timezone.utc)
        logger.info("Import job %s started: %d row(s)", job.id, job.total)
        try:
            for index, row in enumerate(rows):
                job.current = row.name or f"Item {index + 1}"
                try:
                    async with self.session_factory() as db:
                        async with transaction(db):
                            product_id = await self.import_row(db, row)
                    job.success += 1
                    job.created_product_ids.append(product_id)
                except (StoreError, SQLAlchemyError) as e:
                    job.errors += 1
                    message = e.message if isinstance(e, StoreError) else "Database error"
                    job.error_list.append({"row": index + 1, "name": row.name, "message": message})
                    logger.warning("Import job %s row %d failed: %s", job.id, index + 1, e)
                job.processed += 1
        finally:
            job.is_running = False
            job.current = ""
            job.finished_at = datetime.now(timezone.utc)
            logger.info("Import job %s finished: %d ok, %d failed", job.id, job.success, job.errors)
        return job

    async def import_row(self, db: AsyncSession, row: ImportRow) -> int:
        missing = [
            name for name, value in (
                ("name", (row.name or "").strip()),
                ("category_id", row.category_id),
                ("base_price", row.base_price),
                ("size_group_id", row.size_group_id),
            ) if not value
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", code="import_missing_fields")
        if row.stock_per_variant < 0:
            raise ValidationError("stock_per_variant must not be negative", code="invalid_stock")

        catalog = CatalogService(db)
        names = list(dict.fromkeys(c.strip() for c in row.colors.split(",") if c.strip()))
        if not names:
            raise ValidationError("At least one color is required", code="import_no_colors")
        sizes = await catalog.sizes_for_group(row.size_group_id)
        if not sizes:
            raise ValidationError(f"No sizes found for size group {row.size_group_id}", code="import_no_sizes")
        colors = [await catalog.get_or_create_color_by_name(n) for n in names]

        product = await catalog.create_product(ProductIn(
            name=row.name.strip(),
            description=row.description,
            category_id=row.category_id,
            base_price=row.base_price,
            sale_price=row.sale_price,
            suggested_price=row.suggested_price,
            sku=row.sku or None,
            parent_sku=row.parent_sku or None,
            stock_type=row.stock_type,
            sell_without_stock=row.sell_without_stock,
        ))
        for color in colors:
            for size in sizes:
                db.add(ProductVariant(
                    product_id=product.id, size_id=size.id, color_id=color.id,
                    stock=row.stock_per_variant,
                ))
        await db.flush()
        return product.id


# ============================================================================
# Export
# ============================================================================

def _best_size_group(labels: List[str], groups: List[SizeGroup]) -> Optional[int]:
    best_id, best_hits = None, 0
    wanted = set(labels)
    for group in groups:
        hits = len(wanted.intersection(group.sizes or []))
        if hits > best_hits:
            best_id, best_hits = group.id, hits
    return best_id


async def export_products_csv(db: AsyncSession) -> str:
    """All products as CSV (UTF-8 BOM), one row per product, columns importable back."""
    products = (await db.execute(
        select(Product, Category.name)
        .outerjoin(Category, Product.category_id == Category.id)
        .order_by(Product.created_at.desc(), Product.id.desc())
    )).all()
    groups = list((await db.execute(select(SizeGroup))).scalars().all())
    variants = (await db.execute(
        select(ProductVariant.product_id, ProductVariant.stock, Size.size, Color.name)
        .join(Size, ProductVariant.size_id == Size.id)
        .join(Color, ProductVariant.color_id == Color.id)
    )).all()

    by_product: Dict[int, List[tuple]] = {}
    for product_id, stock, size, color in variants:
        by_product.setdefault(product_id, []).append((stock, size, color))

    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=EXPORT_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for product, category_name in products:
        rows = by_product.get(product.id, [])
        colors = sorted({color for _, _, color in rows})
        sizes = list(dict.fromkeys(size for _, size, _ in rows))
        avg = round(sum(stock for stock, _, _ in rows) / len(rows)) if rows else 0
        writer.writerow({
            "name": product.name,
            "category_id": product.category_id or "",
            "category_name": category_name or "",
            "base_price": product.base_price if product.base_price is not None else "",
            "sale_price": product.sale_price if product.sale_price is not None else "",
            "suggested_price": product.suggested_price if product.suggested_price is not None else "",
            "photo": product.photo or "",
            "size_group_id": _best_size_group(sizes, groups) or "",
            "colors": ",".join(colors),
            "sku": product.sku or "",
            "parent_sku": product.parent_sku or "",
            "description": product.description or "",
            "stock_per_variant": avg,
            "stock_type": product.stock_type.value,
            "sell_without_stock": "true" if product.sell_without_stock else "false",
        })
    return "\ufeff" + buf.getvalue()
