# storefront_hub/services/catalog.py
"""
Catalog administration: categories, colors, sizes, size groups, products
and their size variants.
"""
from __future__ import annotations
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_hub.db_models import (
    Category, Color, Size, SizeGroup, Product, ProductVariant,
    ProductColorGrade, Grade, GradeTemplate, OrderItem, StockType,
)
from storefront_hub.errors import ConflictError, NotFoundError, ValidationError
from storefront_hub.models import (
    CategoryIn, ColorIn, SizeIn, SizeGroupIn, ProductIn, ProductPatch,
    VariantUpdateIn, BulkVariantsIn,
)
from storefront_hub.services.availability import AvailabilityResolver

logger = logging.getLogger(__name__)


def category_to_dict(c: Category) -> dict:
    return {"id": c.id, "name": c.name, "description": c.description, "active": c.active}


def color_to_dict(c: Color) -> dict:
    return {"id": c.id, "name": c.name, "hex_code": c.hex_code}


def size_to_dict(s: Size) -> dict:
    return {"id": s.id, "size": s.size, "display_order": s.display_order}


def size_group_to_dict(g: SizeGroup) -> dict:
    return {
        "id": g.id,
        "name": g.name,
        "description": g.description,
        "sizes": list(g.sizes or []),
        "active": g.active,
    }


def product_to_dict(p: Product, category_name: Optional[str] = None) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "category_id": p.category_id,
        "category_name": category_name,
        "base_price": p.base_price,
        "sale_price": p.sale_price,
        "suggested_price": p.suggested_price,
        "sku": p.sku,
        "parent_sku": p.parent_sku,
        "parent_id": p.parent_id,
        "photo": p.photo,
        "active": p.active,
        "stock_type": p.stock_type.value,
        "sell_without_stock": p.sell_without_stock,
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


def variant_to_dict(v: ProductVariant, size: Optional[Size] = None, color: Optional[Color] = None) -> dict:
    return {
        "id": v.id,
        "product_id": v.product_id,
        "size_id": v.size_id,
        "size": size.size if size else None,
        "color_id": v.color_id,
        "color_name": color.name if color else None,
        "hex_code": color.hex_code if color else None,
        "stock": v.stock,
        "price_override": v.price_override,
    }


class CatalogService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get(self, model, obj_id: int, label: str):
        obj = (await self.db.execute(select(model).where(model.id == obj_id))).scalar_one_or_none()
        if obj is None:
            raise NotFoundError(f"{label.capitalize()} {obj_id} not found", code=f"{label}_not_found")
        return obj

    # =========================================================================
    # Categories
    # =========================================================================

    async def list_categories(self) -> List[Category]:
        return list((await self.db.execute(select(Category).order_by(Category.name))).scalars().all())

    async def get_category(self, category_id: int) -> Category:
        return await self._get(Category, category_id, "category")

    async def _category_name_taken(self, name: str, exclude_id: Optional[int] = None) -> bool:
        stmt = select(Category.id).where(func.lower(Category.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        return (await self.db.execute(stmt)).first() is not None

    async def create_category(self, payload: CategoryIn) -> Category:
        name = payload.name.strip()
        if not name:
            raise ValidationError("Category name is required", code="name_required")
        if await self._category_name_taken(name):
            raise ConflictError(f"Category {name} already exists", code="category_exists")
        category = Category(name=name, description=payload.description, active=payload.active)
        self.db.add(category)
        await self.db.flush()
        return category

    async def update_category(self, category_id: int, payload: CategoryIn) -> Category:
        category = await self.get_category(category_id)
        name = payload.name.strip()
        if not name:
            raise ValidationError("Category name is required", code="name_required")
        if await self._category_name_taken(name, exclude_id=category.id):
            raise ConflictError(f"Category {name} already exists", code="category_exists")
        category.name = name
        category.description = payload.description
        category.active = payload.active
        await self.db.flush()
        return category

    async def delete_category(self, category_id: int) -> None:
        category = await self.get_category(category_id)
        await self.db.delete(category)
        await self.db.flush()

    # =========================================================================
    # Colors
    # =========================================================================

    async def list_colors(self) -> List[Color]:
        return list((await self.db.execute(select(Color).order_by(Color.name))).scalars().all())

    async def get_color(self, color_id: int) -> Color:
        return await self._get(Color, color_id, "color")

    async def create_color(self, payload: ColorIn) -> Color:
        name = payload.name.strip()
        if not name:
            raise ValidationError("Color name is required", code="name_required")
        color = Color(name=name, hex_code=payload.hex_code)
        self.db.add(color)
        await self.db.flush()
        return color

    async def update_color(self, color_id: int, payload: ColorIn) -> Color:
        color = await self.get_color(color_id)
        color.name = payload.name.strip() or color.name
        color.hex_code = payload.hex_code
        await self.db.flush()
        return color

    async def delete_color(self, color_id: int) -> None:
        color = await self.get_color(color_id)
        await self.db.execute(delete(ProductVariant).where(ProductVariant.color_id == color.id))
        await self.db.execute(delete(ProductColorGrade).where(ProductColorGrade.color_id == color.id))
        await self.db.delete(color)
        await self.db.flush()

    async def get_or_create_color_by_name(self, name: str) -> Color:
        """Case-insensitive lookup; unknown names become new colors."""
        clean = name.strip()
        color = (await self.db.execute(
            select(Color).where(func.lower(Color.name) == clean.lower())
        )).scalars().first()
        if color is None:
            color = Color(name=clean)
            self.db.add(color)
            await self.db.flush()
            logger.info("Color created: %s", clean)
        return color

    # =========================================================================
    # Sizes / size groups
    # =========================================================================

    async def list_sizes(self) -> List[Size]:
        return list((await self.db.execute(
            select(Size).order_by(Size.display_order, Size.size)
        )).scalars().all())

    async def get_size(self, size_id: int) -> Size:
        return await self._get(Size, size_id, "size")

    async def create_size(self, payload: SizeIn) -> Size:
        label = payload.size.strip()
        if not label:
            raise ValidationError("Size label is required", code="size_required")
        if (await self.db.execute(select(Size.id).where(Size.size == label))).first() is not None:
            raise ConflictError(f"Size {label} already exists", code="size_exists")
        size = Size(size=label, display_order=payload.display_order)
        self.db.add(size)
        await self.db.flush()
        return size

    async def update_size(self, size_id: int, payload: SizeIn) -> Size:
        size = await self.get_size(size_id)
        label = payload.size.strip()
        clash = (await self.db.execute(
            select(Size.id).where(Size.size == label, Size.id != size.id)
        )).first()
        if clash is not None:
            raise ConflictError(f"Size {label} already exists", code="size_exists")
        size.size = label
        size.display_order = payload.display_order
        await self.db.flush()
        return size

    async def delete_size(self, size_id: int) -> None:
        size = await self.get_size(size_id)
        await self.db.execute(delete(ProductVariant).where(ProductVariant.size_id == size.id))
        await self.db.execute(delete(GradeTemplate).where(GradeTemplate.size_id == size.id))
        await self.db.delete(size)
        await self.db.flush()

    async def size_by_label(self, label: str) -> Size:
        """Existing size with this label, or a new one ordered by its numeric value."""
        clean = label.strip()
        size = (await self.db.execute(select(Size).where(Size.size == clean))).scalar_one_or_none()
        if size is None:
            size = Size(size=clean, display_order=int(clean) if clean.isdigit() else 0)
            self.db.add(size)
            await self.db.flush()
        return size

    async def list_size_groups(self) -> List[SizeGroup]:
        return list((await self.db.execute(select(SizeGroup).order_by(SizeGroup.name))).scalars().all())

    async def get_size_group(self, group_id: int) -> SizeGroup:
        return await self._get(SizeGroup, group_id, "size_group")

    async def create_size_group(self, payload: SizeGroupIn) -> SizeGroup:
        if not payload.name.strip():
            raise ValidationError("Size group name is required", code="name_required")
        group = SizeGroup(
            name=payload.name.strip(),
            description=payload.description,
            sizes=[s.strip() for s in payload.sizes if s and s.strip()],
            active=payload.active,
        )
        self.db.add(group)
        await self.db.flush()
        return group

    async def update_size_group(self, group_id: int, payload: SizeGroupIn) -> SizeGroup:
        group = await self.get_size_group(group_id)
        group.name = payload.name.strip() or group.name
        group.description = payload.description
        group.sizes = [s.strip() for s in payload.sizes if s and s.strip()]
        group.active = payload.active
        await self.db.flush()
        return group

    async def delete_size_group(self, group_id: int) -> None:
        group = await self.get_size_group(group_id)
        await self.db.delete(group)
        await self.db.flush()

    async def sizes_for_group(self, group_id: int) -> List[Size]:
        """Size rows for the labels of a group, in group order; missing labels are created."""
        group = await self.get_size_group(group_id)
        return [await self.size_by_label(label) for label in (group.sizes or [])]

    # =========================================================================
    # Products
    # =========================================================================

    async def list_products(self, category_id: Optional[int] = None,
                            include_inactive: bool = True) -> List[dict]:
        stmt = (
            select(Product, Category.name)
            .outerjoin(Category, Product.category_id == Category.id)
            .order_by(Product.created_at.desc(), Product.id.desc())
        )
        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)
        if not include_inactive:
            stmt = stmt.where(Product.active == True)
        return [product_to_dict(p, cname) for p, cname in (await self.db.execute(stmt)).all()]

    async def get_product(self, product_id: int) -> Product:
        return await self._get(Product, product_id, "product")

    async def product_detail(self, product_id: int) -> dict:
        product = await self.get_product(product_id)
        category_name = None
        if product.category_id is not None:
            category_name = (await self.db.execute(
                select(Category.name).where(Category.id == product.category_id)
            )).scalar_one_or_none()
        return {
            **product_to_dict(product, category_name),
            "variants": await self.list_variants(product.id),
        }

    async def _check_refs(self, category_id: Optional[int], parent_id: Optional[int],
                          product_id: Optional[int] = None) -> None:
        if category_id is not None:
            await self.get_category(category_id)
        if parent_id is not None:
            if product_id is not None and parent_id == product_id:
                raise ValidationError("A product cannot be its own parent", code="invalid_parent")
            await self.get_product(parent_id)

    async def create_product(self, payload: ProductIn) -> Product:
        if not payload.name.strip():
            raise ValidationError("Product name is required", code="name_required")
        await self._check_refs(payload.category_id, payload.parent_id)
        product = Product(**{**payload.model_dump(), "name": payload.name.strip()})
        self.db.add(product)
        await self.db.flush()
        logger.info("Product %s created: %s (%s)", product.id, product.name, product.stock_type.value)
        return product

    async def patch_product(self, product_id: int, payload: ProductPatch) -> Product:
        product = await self.get_product(product_id)
        changes = payload.model_dump(exclude_unset=True)
        await self._check_refs(changes.get("category_id"), changes.get("parent_id"), product.id)
        for key, value in changes.items():
            if value is None and key in ("name", "base_price", "active", "stock_type", "sell_without_stock"):
                continue
            setattr(product, key, value)
        await self.db.flush()
        logger.info("Product %s updated: %s", product.id, sorted(changes))
        return product

    async def delete_product(self, product_id: int) -> None:
        product = await self.get_product(product_id)
        ordered = (await self.db.execute(
            select(func.count(OrderItem.id)).where(OrderItem.product_id == product.id)
        )).scalar_one()
        if ordered:
            raise ConflictError(
                f"Product {product.name} has order history; deactivate it instead",
                code="product_has_orders",
            )
        await self.db.execute(delete(ProductVariant).where(ProductVariant.product_id == product.id))
        await self.db.execute(delete(ProductColorGrade).where(ProductColorGrade.product_id == product.id))
        await self.db.delete(product)
        await self.db.flush()
        logger.info("Product %s deleted", product_id)

    async def set_stock_type(self, product_id: int, stock_type: str) -> Product:
        try:
            value = StockType((stock_type or "").strip().lower())
        except ValueError:
            raise ValidationError(
                "Invalid stock type. Must be 'size' or 'grade'",
                code="invalid_stock_type",
            ) from None
        product = await self.get_product(product_id)
        product.stock_type = value
        await self.db.flush()
        logger.info("Product %s stock type -> %s", product.id, value.value)
        return product

    async def stock_summary(self, product_id: int) -> dict:
        product = await self.get_product(product_id)
        summary: Dict[str, object] = {
            "product": {
                "id": product.id,
                "name": product.name,
                "stock_type": product.stock_type.value,
                "sell_without_stock": product.sell_without_stock,
            }
        }
        if product.stock_type == StockType.grade:
            assignments = (await self.db.execute(
                select(func.count(ProductColorGrade.id))
                .join(Grade, ProductColorGrade.grade_id == Grade.id)
                .where(ProductColorGrade.product_id == product.id, Grade.active == True)
            )).scalar_one()
            availability = await AvailabilityResolver(self.db).resolve_for(product)
            summary["grade_stats"] = {
                "total_combinations": assignments,
                "available_combinations": len(availability.grades),
            }
        else:
            total, stock, with_stock = (await self.db.execute(
                select(
                    func.count(ProductVariant.id),
                    func.coalesce(func.sum(ProductVariant.stock), 0),
                    func.count(ProductVariant.id).filter(ProductVariant.stock > 0),
                ).where(ProductVariant.product_id == product.id)
            )).one()
            summary["size_stats"] = {
                "total_variants": total,
                "total_stock": int(stock),
                "available_variants": with_stock,
            }
        return summary

    # =========================================================================
    # Variants
    # =========================================================================

    async def list_variants(self, product_id: int) -> List[dict]:
        stmt = (
            select(ProductVariant, Size, Color)
            .join(Size, ProductVariant.size_id == Size.id)
            .join(Color, ProductVariant.color_id == Color.id)
            .where(ProductVariant.product_id == product_id)
            .order_by(Color.name, Size.display_order)
        )
        return [variant_to_dict(v, s, c) for v, s, c in (await self.db.execute(stmt)).all()]

    async def update_variant(self, variant_id: int, payload: VariantUpdateIn) -> ProductVariant:
        variant = await self._get(ProductVariant, variant_id, "variant")
        changes = payload.model_dump(exclude_unset=True)
        if "stock" in changes:
            if changes["stock"] is None or changes["stock"] < 0:
                raise ValidationError("Stock must be a non-negative integer", code="invalid_stock")
            variant.stock = changes["stock"]
        if "price_override" in changes:
            variant.price_override = changes["price_override"]
        await self.db.flush()
        logger.info("Variant %s updated: %s", variant.id, sorted(changes))
        return variant

    async def bulk_create_variants(self, product_id: int, payload: BulkVariantsIn) -> int:
        """Create size-group x colors variants; existing (size, color) rows are left as they are."""
        if payload.stock < 0:
            raise ValidationError("Stock must be a non-negative integer", code="invalid_stock")
        product = await self.get_product(product_id)
        sizes = await self.sizes_for_group(payload.size_group_id)
        colors: Sequence[Color] = [await self.get_color(cid) for cid in dict.fromkeys(payload.color_ids)]

        existing = set((await self.db.execute(
            select(ProductVariant.size_id, ProductVariant.color_id)
            .where(ProductVariant.product_id == product.id)
        )).tuples().all())
        created = 0
        for color in colors:
            for size in sizes:
                if (size.id, color.id) in existing:
                    continue
                self.db.add(ProductVariant(
                    product_id=product.id, size_id=size.id, color_id=color.id, stock=payload.stock
                ))
                existing.add((size.id, color.id))
                created += 1
        await self.db.flush()
        logger.info("Product %s: %d variant(s) created", product.id, created)
        return created
