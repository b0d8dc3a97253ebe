# storefront_hub/services/customers.py
"""
Customers - keyed by email. Upserted by the order path, curated by admins.
"""
from __future__ import annotations
import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_hub.db_models import Customer, Order, StoreSetting
from storefront_hub.errors import ConflictError, NotFoundError, ValidationError
from storefront_hub.models import CustomerIn, CustomerPatch
from storefront_hub.settings import settings

logger = logging.getLogger(__name__)

MINIMUM_ORDER_KEY = "minimum_order"


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def customer_to_dict(c: Customer) -> dict:
    return {
        "id": c.id,
        "email": c.email,
        "name": c.name,
        "whatsapp": c.whatsapp,
        "minimum_order": c.minimum_order,
        "status": c.status.value,
        "created_at": c.created_at.isoformat() if c.created_at else None,
    }


class CustomerService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find(self, email: str) -> Optional[Customer]:
        stmt = select(Customer).where(Customer.email == normalize_email(email))
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def get(self, email: str) -> Customer:
        customer = await self.find(email)
        if customer is None:
            raise NotFoundError(f"Customer {email} not found", code="customer_not_found")
        return customer

    async def upsert_from_order(self, name: str, email: str, whatsapp: str) -> Customer:
        """Insert, or refresh name/whatsapp of, the customer with this email."""
        customer = await self.find(email)
        if customer is None:
            customer = Customer(email=normalize_email(email), name=name, whatsapp=whatsapp)
            self.db.add(customer)
        else:
            customer.name = name
            customer.whatsapp = whatsapp
        await self.db.flush()
        return customer

    async def list_customers(self, status: Optional[str] = None) -> List[dict]:
        stmt = (
            select(Customer, func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0))
            .outerjoin(Order, Order.customer_email == Customer.email)
            .group_by(Customer.id)
            .order_by(Customer.created_at.desc())
        )
        if status:
            stmt = stmt.where(Customer.status == status)
        rows = (await self.db.execute(stmt)).all()
        return [
            {**customer_to_dict(c), "order_count": count, "total_spent": Decimal(str(spent))}
            for c, count, spent in rows
        ]

    async def detail(self, email: str) -> dict:
        customer = await self.get(email)
        stmt = select(func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0)).where(
            Order.customer_email == customer.email
        )
        count, spent = (await self.db.execute(stmt)).one()
        return {
            **customer_to_dict(customer),
            "order_count": count,
            "total_spent": Decimal(str(spent)),
            "effective_minimum_order": await self.effective_minimum_order(customer.email),
        }

    async def create(self, payload: CustomerIn) -> Customer:
        if await self.find(payload.email):
            raise ConflictError(f"Customer {payload.email} already exists", code="customer_exists")
        customer = Customer(
            email=normalize_email(payload.email),
            name=payload.name,
            whatsapp=payload.whatsapp,
            minimum_order=payload.minimum_order,
            status=payload.status,
        )
        self.db.add(customer)
        await self.db.flush()
        return customer

    async def patch(self, email: str, payload: CustomerPatch) -> Customer:
        customer = await self.get(email)
        changes = payload.model_dump(exclude_unset=True)
        if "minimum_order" in changes and changes["minimum_order"] is not None and changes["minimum_order"] < 0:
            raise ValidationError("minimum_order must not be negative")
        for key, value in changes.items():
            if value is None and key in ("name", "status"):
                continue
            setattr(customer, key, value)
        await self.db.flush()
        logger.info("Customer %s updated: %s", customer.email, sorted(changes))
        return customer

    async def store_minimum_order(self) -> Decimal:
        stmt = select(StoreSetting.setting_value).where(StoreSetting.setting_key == MINIMUM_ORDER_KEY)
        raw = (await self.db.execute(stmt)).scalar_one_or_none()
        if raw:
            try:
                return Decimal(raw)
            except InvalidOperation:
                logger.warning("Invalid store minimum_order setting: %r", raw)
        return settings.DEFAULT_MINIMUM_ORDER

    async def effective_minimum_order(self, email: str) -> Decimal:
        customer = await self.find(email)
        if customer is not None and customer.minimum_order and customer.minimum_order > 0:
            return Decimal(customer.minimum_order)
        return await self.store_minimum_order()
