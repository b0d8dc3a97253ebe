# storefront_hub/routers/catalog.py
"""
Catalog administration: categories, colors, sizes, size groups, products,
variants and stock-type switching.
"""
from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_hub.database import get_session
from storefront_hub.models import (
    CategoryIn, ColorIn, SizeIn, SizeGroupIn, ProductIn, ProductPatch,
    StockTypeIn, VariantUpdateIn, BulkVariantsIn,
)
from storefront_hub.services.catalog import (
    CatalogService, category_to_dict, color_to_dict, size_to_dict,
    size_group_to_dict, product_to_dict, variant_to_dict,
)

router = APIRouter(prefix="/admin", tags=["Catalog"])


# ============================================================================
# Categories
# ============================================================================

@router.get("/categories")
async def list_categories(db: AsyncSession = Depends(get_session)):
    return [category_to_dict(c) for c in await CatalogService(db).list_categories()]


@router.post("/categories", status_code=201)
async def create_category(payload: CategoryIn, db: AsyncSession = Depends(get_session)):
    return category_to_dict(await CatalogService(db).create_category(payload))


@router.get("/categories/{category_id}")
async def get_category(category_id: int, db: AsyncSession = Depends(get_session)):
    return category_to_dict(await CatalogService(db).get_category(category_id))


@router.put("/categories/{category_id}")
async def update_category(category_id: int, payload: CategoryIn, db: AsyncSession = Depends(get_session)):
    return category_to_dict(await CatalogService(db).update_category(category_id, payload))


@router.delete("/categories/{category_id}", status_code=204)
async def delete_category(category_id: int, db: AsyncSession = Depends(get_session)):
    await CatalogService(db).delete_category(category_id)
    return Response(status_code=204)


# ============================================================================
# Colors
# ============================================================================

@router.get("/colors")
async def list_colors(db: AsyncSession = Depends(get_session)):
    return [color_to_dict(c) for c in await CatalogService(db).list_colors()]


@router.post("/colors", status_code=201)
async def create_color(payload: ColorIn, db: AsyncSession = Depends(get_session)):
    return color_to_dict(await CatalogService(db).create_color(payload))


@router.put("/colors/{color_id}")
async def update_color(color_id: int, payload: ColorIn, db: AsyncSession = Depends(get_session)):
    return color_to_dict(await CatalogService(db).update_color(color_id, payload))


@router.delete("/colors/{color_id}", status_code=204)
async def delete_color(color_id: int, db: AsyncSession = Depends(get_session)):
    await CatalogService(db).delete_color(color_id)
    return Response(status_code=204)


# ============================================================================
# Sizes / size groups
# ============================================================================

@router.get("/sizes")
async def list_sizes(db: AsyncSession = Depends(get_session)):
    return [size_to_dict(s) for s in await CatalogService(db).list_sizes()]


@router.post("/sizes", status_code=201)
async def create_size(payload: SizeIn, db: AsyncSession = Depends(get_session)):
    return size_to_dict(await CatalogService(db).create_size(payload))


@router.put("/sizes/{size_id}")
async def update_size(size_id: int, payload: SizeIn, db: AsyncSession = Depends(get_session)):
    return size_to_dict(await CatalogService(db).update_size(size_id, payload))


@router.delete("/sizes/{size_id}", status_code=204)
async def delete_size(size_id: int, db: AsyncSession = Depends(get_session)):
    await CatalogService(db).delete_size(size_id)
    return Response(status_code=204)


@router.get("/size-groups")
async def list_size_groups(db: AsyncSession = Depends(get_session)):
    return [size_group_to_dict(g) for g in await CatalogService(db).list_size_groups()]


@router.post("/size-groups", status_code=201)
async def create_size_group(payload: SizeGroupIn, db: AsyncSession = Depends(get_session)):
    return size_group_to_dict(await CatalogService(db).create_size_group(payload))


@router.get("/size-groups/{group_id}")
async def get_size_group(group_id: int, db: AsyncSession = Depends(get_session)):
    return size_group_to_dict(await CatalogService(db).get_size_group(group_id))


@router.put("/size-groups/{group_id}")
async def update_size_group(group_id: int, payload: SizeGroupIn, db: AsyncSession = Depends(get_session)):
    return size_group_to_dict(await CatalogService(db).update_size_group(group_id, payload))


@router.delete("/size-groups/{group_id}", status_code=204)
async def delete_size_group(group_id: int, db: AsyncSession = Depends(get_session)):
    await CatalogService(db).delete_size_group(group_id)
    return Response(status_code=204)


# ============================================================================
# Products
# ============================================================================

@router.get("/products")
async def list_products(
    category_id: Optional[int] = Query(None),
    include_inactive: bool = Query(True),
    db: AsyncSession = Depends(get_session),
):
    return await CatalogService(db).list_products(category_id=category_id, include_inactive=include_inactive)


@router.post("/products", status_code=201)
async def create_product(payload: ProductIn, db: AsyncSession = Depends(get_session)):
    return product_to_dict(await CatalogService(db).create_product(payload))


@router.get("/products/{product_id}")
async def get_product(product_id: int, db: AsyncSession = Depends(get_session)):
    return await CatalogService(db).product_detail(product_id)


@router.patch("/products/{product_id}")
async def patch_product(product_id: int, payload: ProductPatch, db: AsyncSession = Depends(get_session)):
    return product_to_dict(await CatalogService(db).patch_product(product_id, payload))


@router.delete("/products/{product_id}", status_code=204)
async def delete_product(product_id: int, db: AsyncSession = Depends(get_session)):
    await CatalogService(db).delete_product(product_id)
    return Response(status_code=204)


@router.put("/products/{product_id}/stock-type")
async def set_stock_type(product_id: int, payload: StockTypeIn, db: AsyncSession = Depends(get_session)):
    product = await CatalogService(db).set_stock_type(product_id, payload.stock_type)
    return {"message": "Stock type updated", "id": product.id, "stock_type": product.stock_type.value}


@router.get("/products/{product_id}/stock-summary")
async def stock_summary(product_id: int, db: AsyncSession = Depends(get_session)):
    return await CatalogService(db).stock_summary(product_id)


@router.get("/products/{product_id}/variants")
async def list_variants(product_id: int, db: AsyncSession = Depends(get_session)):
    svc = CatalogService(db)
    await svc.get_product(product_id)
    return await svc.list_variants(product_id)


@router.post("/products/{product_id}/variants/bulk", status_code=201)
async def bulk_create_variants(product_id: int, payload: BulkVariantsIn, db: AsyncSession = Depends(get_session)):
    created = await CatalogService(db).bulk_create_variants(product_id, payload)
    return {"created": created}


@router.patch("/variants/{variant_id}")
async def update_variant(variant_id: int, payload: VariantUpdateIn, db: AsyncSession = Depends(get_session)):
    return variant_to_dict(await CatalogService(db).update_variant(variant_id, payload))
