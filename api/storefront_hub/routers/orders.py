# storefront_hub/routers/orders.py
"""
Admin order management: listing, detail, status changes, statistics.
"""
from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_hub.database import get_session
from storefront_hub.models import OrderStatusIn
from storefront_hub.services.orders import OrderAdminService

router = APIRouter(prefix="/admin/orders", tags=["Orders"])


@router.get("")
async def list_orders(status: Optional[str] = Query(None), db: AsyncSession = Depends(get_session)):
    return await OrderAdminService(db).list_orders(status=status)


@router.get("/stats/summary")
async def order_stats(db: AsyncSession = Depends(get_session)):
    return await OrderAdminService(db).stats_summary()


@router.get("/{order_id}")
async def get_order(order_id: int, db: AsyncSession = Depends(get_session)):
    return await OrderAdminService(db).detail(order_id)


@router.patch("/{order_id}/status")
async def update_order_status(order_id: int, payload: OrderStatusIn, db: AsyncSession = Depends(get_session)):
    return await OrderAdminService(db).update_status(order_id, payload.status)
