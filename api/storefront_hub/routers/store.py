# storefront_hub/routers/store.py
"""
Storefront (customer-facing) endpoints: listing, product availability,
grade detail, minimum order and order submission.
"""
from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_hub.database import get_session
from storefront_hub.models import OrderSubmitIn, OrderSubmitOut
from storefront_hub.routers.notifications import get_dispatcher
from storefront_hub.services.availability import AvailabilityResolver
from storefront_hub.services.customers import CustomerService
from storefront_hub.services.grades import GradeService
from storefront_hub.services.notifications import NotificationDispatcher
from storefront_hub.services.orders import OrderCommitEngine

router = APIRouter(prefix="/store", tags=["Store"])


@router.get("/products")
async def list_store_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_session),
):
    return await AvailabilityResolver(db).list_products(page=page, limit=limit, category_id=category)


@router.get("/products/{product_id}")
async def get_store_product(product_id: int, db: AsyncSession = Depends(get_session)):
    return await AvailabilityResolver(db).product_detail(product_id)


@router.get("/products/{product_id}/availability")
async def get_availability(product_id: int, db: AsyncSession = Depends(get_session)):
    availability = await AvailabilityResolver(db).resolve(product_id)
    return availability.to_dict()


@router.get("/grades/{grade_id}")
async def get_store_grade(grade_id: int, db: AsyncSession = Depends(get_session)):
    grade = await GradeService(db).get_grade(grade_id, active_only=True)
    grade.pop("assignments", None)
    return grade


@router.get("/customers/{email}/minimum-order")
async def get_minimum_order(email: str, db: AsyncSession = Depends(get_session)):
    amount = await CustomerService(db).effective_minimum_order(email)
    return {"email": email, "minimum_order": amount}


@router.post("/orders", response_model=OrderSubmitOut, status_code=201)
async def submit_order(
    payload: OrderSubmitIn,
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Commit a cart of grade packs; stock is re-checked and decremented atomically."""
    engine = OrderCommitEngine(db, notifier=dispatcher.send_order_notifications)
    result = await engine.commit_order(payload.customer, payload.items)
    return OrderSubmitOut(order_id=result.order_id, share_message=result.share_message)
