# storefront_hub/routers/customers.py
"""
Admin customer management (approval status, minimum order) and order history.
"""
from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_hub.database import get_session
from storefront_hub.models import CustomerIn, CustomerPatch
from storefront_hub.services.customers import CustomerService, customer_to_dict
from storefront_hub.services.orders import OrderAdminService

router = APIRouter(prefix="/admin/customers", tags=["Customers"])


@router.get("")
async def list_customers(status: Optional[str] = Query(None), db: AsyncSession = Depends(get_session)):
    return await CustomerService(db).list_customers(status=status)


@router.post("", status_code=201)
async def create_customer(payload: CustomerIn, db: AsyncSession = Depends(get_session)):
    return customer_to_dict(await CustomerService(db).create(payload))


@router.get("/{email}")
async def get_customer(email: str, db: AsyncSession = Depends(get_session)):
    return await CustomerService(db).detail(email)


@router.patch("/{email}")
async def patch_customer(email: str, payload: CustomerPatch, db: AsyncSession = Depends(get_session)):
    return customer_to_dict(await CustomerService(db).patch(email, payload))


@router.get("/{email}/orders")
async def customer_orders(email: str, db: AsyncSession = Depends(get_session)):
    await CustomerService(db).get(email)
    return await OrderAdminService(db).orders_for_customer(email)
