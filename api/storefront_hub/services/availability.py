# storefront_hub/services/availability.py
"""
Availability Resolver - what a customer can buy for one product right now.

Two accounting paths, selected by Product.stock_type:
- size:  individual variants, offerable when stock > 0 or the product sells
         without stock
- grade: whole packs, one per (color, grade) assignment; a pack is offered
         only when every size in its template has enough variant stock,
         unless the product sells without stock

Read-only. Always reads fresh rows; no stock caching.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field, asdict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_hub.db_models import (
    Product, ProductVariant, Size, Color, Grade, GradeTemplate,
    ProductColorGrade, Category, StockType,
)
from storefront_hub.errors import NotFoundError

logger = logging.getLogger(__name__)

StockKey = Tuple[int, int]  # (size_id, color_id)


@dataclass
class TemplateRow:
    size_id: int
    size: Optional[str]
    display_order: int
    required_quantity: int


@dataclass
class ColorOffer:
    id: int
    name: str
    hex_code: Optional[str] = None


@dataclass
class VariantOffer:
    id: int
    size_id: int
    size: Optional[str]
    display_order: int
    color_id: int
    color_name: Optional[str]
    hex_code: Optional[str]
    stock: int
    price_override: Optional[Decimal]


@dataclass
class GradeOffer:
    grade_id: int
    name: str
    description: Optional[str]
    color_id: int
    color_name: Optional[str]
    hex_code: Optional[str]
    templates: List[TemplateRow]
    total_quantity: int
    has_full_stock: bool
    has_any_stock: bool


@dataclass
class Availability:
    product_id: int
    stock_type: StockType
    sell_without_stock: bool
    colors: List[ColorOffer] = field(default_factory=list)
    variants: List[VariantOffer] = field(default_factory=list)
    grades: List[GradeOffer] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["stock_type"] = self.stock_type.value
        return data


@dataclass
class GradeCheck:
    total_quantity: int
    has_full_stock: bool
    has_any_stock: bool
    offered: bool


def evaluate_grade(
    templates: Iterable[TemplateRow],
    stock_by_key: Dict[StockKey, int],
    color_id: int,
    sell_without_stock: bool,
) -> GradeCheck:
    """
    Decide whether one grade pack is offered for one color.

    A missing variant counts as zero stock. An empty template is never
    offered, not even when selling without stock.
    """
    rows = list(templates)
    total = 0
    has_full = bool(rows)
    has_any = False
    for row in rows:
        total += row.required_quantity
        stock = stock_by_key.get((row.size_id, color_id))
        if stock is None:
            has_full = False
            continue
        if stock > 0:
            has_any = True
        if stock < row.required_quantity:
            has_full = False

    if sell_without_stock:
        offered = total > 0
    else:
        offered = has_full and total > 0
    return GradeCheck(total, has_full, has_any, offered)


class AvailabilityResolver:
    """Compose the purchasable view of a product from the stock ledgers."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Loading
    # =========================================================================

    async def load_product(self, product_id: int) -> Product:
        stmt = select(Product).where(Product.id == product_id, Product.active == True)
        result = await self.db.execute(stmt)
        product = result.scalar_one_or_none()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", code="product_not_found")
        return product

    async def product_detail(self, product_id: int) -> dict:
        """Product row + category name, as shown on the storefront detail page."""
        stmt = (
            select(Product, Category.name)
            .outerjoin(Category, Product.category_id == Category.id)
            .where(Product.id == product_id, Product.active == True)
        )
        row = (await self.db.execute(stmt)).first()
        if row is None:
            raise NotFoundError(f"Product {product_id} not found", code="product_not_found")
        product, category_name = row
        availability = await self.resolve_for(product)
        return {
            "id": product.id,
            "name": product.name,
            "description": product.description,
            "category_id": product.category_id,
            "category_name": category_name,
            "base_price": product.base_price,
            "sale_price": product.sale_price,
            "suggested_price": product.suggested_price,
            "sku": product.sku,
            "parent_sku": product.parent_sku,
            "photo": product.photo,
            **availability.to_dict(),
        }

    async def _variants(self, product_id: int) -> List[VariantOffer]:
        stmt = (
            select(ProductVariant, Size, Color)
            .join(Size, ProductVariant.size_id == Size.id)
            .join(Color, ProductVariant.color_id == Color.id)
            .where(ProductVariant.product_id == product_id)
            .order_by(Size.display_order, Color.name)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return [
            VariantOffer(
                id=variant.id,
                size_id=variant.size_id,
                size=size.size,
                display_order=size.display_order,
                color_id=variant.color_id,
                color_name=color.name,
                hex_code=color.hex_code,
                stock=variant.stock,
                price_override=variant.price_override,
            )
            for variant, size, color in result.all()
        ]

    async def templates_for(self, grade_ids: Iterable[int]) -> Dict[int, List[TemplateRow]]:
        """Template rows per grade id, ordered by size display order."""
        ids = sorted(set(grade_ids))
        by_grade: Dict[int, List[TemplateRow]] = {gid: [] for gid in ids}
        if not ids:
            return by_grade
        stmt = (
            select(GradeTemplate, Size)
            .join(Size, GradeTemplate.size_id == Size.id)
            .where(GradeTemplate.grade_id.in_(ids))
            .order_by(Size.display_order, Size.size)
        )
        for template, size in (await self.db.execute(stmt)).all():
            by_grade[template.grade_id].append(TemplateRow(
                size_id=template.size_id,
                size=size.size,
                display_order=size.display_order,
                required_quantity=template.required_quantity,
            ))
        return by_grade

    async def list_products(self, page: int = 1, limit: int = 20,
                            category_id: Optional[int] = None) -> dict:
        """Storefront listing page: active products with their offerable colors."""
        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        filters = [Product.active == True]
        if category_id is not None:
            filters.append(Product.category_id == category_id)

        total = (await self.db.execute(
            select(func.count(Product.id)).where(*filters)
        )).scalar_one()
        stmt = (
            select(Product, Category.name)
            .outerjoin(Category, Product.category_id == Category.id)
            .where(*filters)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        products = []
        for product, category_name in (await self.db.execute(stmt)).all():
            availability = await self.resolve_for(product)
            products.append({
                "id": product.id,
                "name": product.name,
                "description": product.description,
                "category_id": product.category_id,
                "category_name": category_name,
                "base_price": product.base_price,
                "sale_price": product.sale_price,
                "suggested_price": product.suggested_price,
                "photo": product.photo,
                "stock_type": product.stock_type.value,
                "sell_without_stock": product.sell_without_stock,
                "available_colors": [asdict(c) for c in availability.colors],
            })

        total_pages = (total + limit - 1) // limit
        return {
            "products": products,
            "pagination": {
                "current_page": page,
                "total_pages": total_pages,
                "total_products": total,
                "per_page": limit,
                "has_next_page": page < total_pages,
                "has_prev_page": page > 1,
            },
        }

    # =========================================================================
    # Resolution
    # =========================================================================

    async def resolve(self, product_id: int) -> Availability:
        product = await self.load_product(product_id)
        return await self.resolve_for(product)

    async def resolve_for(self, product: Product) -> Availability:
        if product.stock_type == StockType.grade:
            return await self._resolve_grades(product)
        return await self._resolve_sizes(product)

    async def _resolve_sizes(self, product: Product) -> Availability:
        variants = [
            v for v in await self._variants(product.id)
            if v.stock > 0 or product.sell_without_stock
        ]
        colors: Dict[int, ColorOffer] = {}
        for v in variants:
            colors.setdefault(v.color_id, ColorOffer(v.color_id, v.color_name, v.hex_code))
        return Availability(
            product_id=product.id,
            stock_type=StockType.size,
            sell_without_stock=product.sell_without_stock,
            colors=sorted(colors.values(), key=lambda c: c.name or ""),
            variants=variants,
        )

    async def _resolve_grades(self, product: Product) -> Availability:
        stmt = (
            select(ProductColorGrade, Grade, Color)
            .join(Grade, ProductColorGrade.grade_id == Grade.id)
            .join(Color, ProductColorGrade.color_id == Color.id)
            .where(ProductColorGrade.product_id == product.id, Grade.active == True)
            .order_by(Grade.name, Color.name)
        )
        assignments = (await self.db.execute(stmt)).all()

        stock_by_key: Dict[StockKey, int] = {
            (v.size_id, v.color_id): v.stock for v in await self._variants(product.id)
        }
        templates = await self.templates_for(grade.id for _, grade, _ in assignments)

        offers: List[GradeOffer] = []
        colors: Dict[int, ColorOffer] = {}
        for _, grade, color in assignments:
            rows = templates.get(grade.id, [])
            check = evaluate_grade(rows, stock_by_key, color.id, product.sell_without_stock)
            if not check.offered:
                logger.debug(
                    "grade %s color %s not offered for product %s (total=%s full=%s)",
                    grade.id, color.id, product.id, check.total_quantity, check.has_full_stock,
                )
                continue
            offers.append(GradeOffer(
                grade_id=grade.id,
                name=grade.name,
                description=grade.description,
                color_id=color.id,
                color_name=color.name,
                hex_code=color.hex_code,
                templates=rows,
                total_quantity=check.total_quantity,
                has_full_stock=check.has_full_stock,
                has_any_stock=check.has_any_stock,
            ))
            colors.setdefault(color.id, ColorOffer(color.id, color.name, color.hex_code))

        return Availability(
            product_id=product.id,
            stock_type=StockType.grade,
            sell_without_stock=product.sell_without_stock,
            colors=sorted(colors.values(), key=lambda c: c.name or ""),
            grades=offers,
        )
