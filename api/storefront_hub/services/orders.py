# storefront_hub/services/orders.py
"""
Order Commit Engine + admin order queries.

commit_order() turns a cart of grade packs into one persisted Order inside a
single transaction:

1. validation pass - product, grade, assignment, template and (unless the
   product sells without stock) locked variant stock, tracked cumulatively
   across the cart
2. customer upsert + order row
3. commit pass - one conditional UPDATE per template size row, then the
   order item row

Any failure rolls everything back. Notifications are scheduled only after
the commit and never affect the response.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_hub.database import transaction
from storefront_hub.db_models import (
    Product, ProductVariant, Grade, ProductColorGrade, Order, OrderItem,
    OrderStatus, OrderItemType, StockType, Color, Size,
)
from storefront_hub.errors import (
    StoreError, ValidationError, NotFoundError, InsufficientStockError, InternalError,
)
from storefront_hub.models import OrderCustomerIn, OrderItemIn
from storefront_hub.services.availability import AvailabilityResolver, TemplateRow
from storefront_hub.services.customers import CustomerService, normalize_email
from storefront_hub.services.notifications import (
    Notifier, NotificationItem, OrderNotification, spawn_notification,
)
from storefront_hub.settings import settings

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass
class CommitResult:
    order_id: int
    share_message: str
    total_amount: Decimal


@dataclass
class _Decrement:
    variant_id: int
    size_id: int
    size: Optional[str]
    amount: int


@dataclass
class _PlannedItem:
    item: OrderItemIn
    product: Product
    grade: Grade
    decrements: List[_Decrement]


# ============================================================================
# Input checks (no database access)
# ============================================================================

def validate_order_input(customer: Optional[OrderCustomerIn], items: List[OrderItemIn]) -> None:
    if customer is None or not (customer.name or "").strip() \
            or not (customer.email or "").strip() or not (customer.whatsapp or "").strip():
        raise ValidationError("Customer name, email and whatsapp are required",
                              code="customer_required")
    if not items:
        raise ValidationError("No items in order", code="empty_cart")

    # every line must be a grade pack, whatever else is wrong with the cart
    for index, item in enumerate(items):
        if item.type != OrderItemType.grade.value:
            raise ValidationError(
                "Only grade purchases are allowed. Individual purchases are not permitted.",
                code="grade_only",
                details={"item_index": index, "type": item.type},
            )

    for index, item in enumerate(items):
        missing = [
            name for name, value in (
                ("productId", item.product_id),
                ("colorId", item.color_id),
                ("gradeId", item.grade_id),
                ("quantity", item.quantity),
                ("totalPrice", item.total_price),
            ) if value is None
        ]
        if missing:
            raise ValidationError(f"Item {index + 1} is missing {', '.join(missing)}",
                                  code="invalid_item", details={"item_index": index})
        if item.quantity <= 0:
            raise ValidationError(f"Item {index + 1} quantity must be positive",
                                  code="invalid_item", details={"item_index": index})
        if item.total_price < 0:
            raise ValidationError(f"Item {index + 1} total price must not be negative",
                                  code="invalid_item", details={"item_index": index})


def build_share_message(order_id: int, customer: OrderCustomerIn, items: List[OrderItemIn]) -> str:
    """URL-encoded order summary for the storefront's WhatsApp hand-off."""
    cur = settings.CURRENCY_SYMBOL
    lines = [
        f"🛍️ *Novo Pedido - #{order_id}*",
        "",
        f"👤 *Cliente:* {customer.name}",
        f"📧 *Email:* {customer.email}",
        f"📱 *WhatsApp:* {customer.whatsapp}",
        "",
        "📦 *Itens do Pedido:*",
    ]
    for index, item in enumerate(items, start=1):
        lines += [
            "",
            f"{index}. *{item.product_name or ''}*",
            f"   • Grade: {item.grade_name or ''}",
            f"   • Cor: {item.color_name or ''}",
            f"   • Quantidade: {item.quantity} kit(s)",
            f"   • Valor: {cur} {Decimal(item.total_price):.2f}",
        ]
    total = sum((Decimal(i.total_price) for i in items), Decimal("0"))
    lines += ["", f"💰 *Total: {cur} {total:.2f}*"]
    return quote("\n".join(lines), safe="")


# ============================================================================
# Commit engine
# ============================================================================

class OrderCommitEngine:
    """All-or-nothing order submission for grade packs."""

    def __init__(self, db: AsyncSession, notifier: Optional[Notifier] = None):
        self.db = db
        self.notifier = notifier
        self.resolver = AvailabilityResolver(db)

    async def commit_order(self, customer: Optional[OrderCustomerIn], items: List[OrderItemIn]) -> CommitResult:
        validate_order_input(customer, items)
        email = normalize_email(customer.email)

        try:
            async with transaction(self.db):
                order, planned = await self._commit(customer, items)
        except StoreError as e:
            logger.warning("Order rejected for %s: %s", email, e)
            raise
        except SQLAlchemyError as e:
            logger.exception("Database error while creating order for %s", email)
            raise InternalError("Failed to create order", code="order_failed") from e

        logger.info("Order %s committed for %s: %d item(s), total %s",
                    order.id, email, len(items), order.total_amount)

        if self.notifier is not None:
            spawn_notification(self.notifier, self._notification(order, customer, planned))

        return CommitResult(
            order_id=order.id,
            share_message=build_share_message(order.id, customer, items),
            total_amount=order.total_amount,
        )

    async def _commit(self, customer: OrderCustomerIn, items: List[OrderItemIn]) -> Tuple[Order, List[_PlannedItem]]:
        planned = await self._validate(items)

        record = await CustomerService(self.db).upsert_from_order(
            customer.name.strip(), customer.email, customer.whatsapp.strip()
        )
        total = sum((Decimal(i.total_price) for i in items), Decimal("0"))
        order = Order(
            customer_email=record.email,
            customer_name=record.name,
            customer_whatsapp=record.whatsapp,
            total_amount=total,
            status=OrderStatus.pending,
            created_at=datetime.now(timezone.utc),
        )
        self.db.add(order)
        await self.db.flush()

        for plan in planned:
            for dec in plan.decrements:
                await self._decrement(plan.product, dec)
            item = plan.item
            self.db.add(OrderItem(
                order_id=order.id,
                product_id=item.product_id,
                color_id=item.color_id,
                grade_id=item.grade_id,
                size_id=None,
                quantity=item.quantity,
                unit_price=(Decimal(item.total_price) / item.quantity).quantize(CENT),
                total_price=Decimal(item.total_price),
                type=OrderItemType.grade,
            ))
        await self.db.flush()
        return order, planned

    # =========================================================================
    # Validation pass
    # =========================================================================

    async def _validate(self, items: List[OrderItemIn]) -> List[_PlannedItem]:
        templates = await self.resolver.templates_for(i.grade_id for i in items)
        reserved: Dict[int, int] = {}  # variant id -> units already claimed by this cart
        planned: List[_PlannedItem] = []

        for item in items:
            product = await self._product(item.product_id)
            grade = await self._grade(item.grade_id)
            rows = templates.get(grade.id, [])
            if not rows:
                raise ValidationError(f"Grade {grade.name} has no sizes configured",
                                      code="grade_empty", details={"grade_id": grade.id})
            await self._require_assignment(item)

            decrements: List[_Decrement] = []
            if not product.sell_without_stock:
                for row in rows:
                    decrements.append(await self._reserve(product, item, row, reserved))
            planned.append(_PlannedItem(item, product, grade, decrements))
        return planned

    async def _product(self, product_id: int) -> Product:
        product = (await self.db.execute(
            select(Product).where(Product.id == product_id)
        )).scalar_one_or_none()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", code="product_not_found")
        if not product.active:
            raise ValidationError(f"Product {product.name} is not available",
                                  code="product_inactive", details={"product_id": product.id})
        if product.stock_type != StockType.grade:
            raise ValidationError(
                f"Product {product.name} is not sold by grade",
                code="product_not_grade", details={"product_id": product.id},
            )
        return product

    async def _grade(self, grade_id: int) -> Grade:
        grade = (await self.db.execute(
            select(Grade).where(Grade.id == grade_id)
        )).scalar_one_or_none()
        if grade is None:
            raise NotFoundError(f"Grade {grade_id} not found", code="grade_not_found")
        if not grade.active:
            raise ValidationError(f"Grade {grade.name} is not active",
                                  code="grade_inactive", details={"grade_id": grade.id})
        return grade

    async def _require_assignment(self, item: OrderItemIn) -> None:
        stmt = select(ProductColorGrade.id).where(
            ProductColorGrade.product_id == item.product_id,
            ProductColorGrade.color_id == item.color_id,
            ProductColorGrade.grade_id == item.grade_id,
        )
        if (await self.db.execute(stmt)).scalar_one_or_none() is None:
            raise ValidationError(
                "Grade is not offered for this product color",
                code="grade_not_assigned",
                details={"product_id": item.product_id, "color_id": item.color_id,
                         "grade_id": item.grade_id},
            )

    async def _reserve(self, product: Product, item: OrderItemIn, row: TemplateRow,
                       reserved: Dict[int, int]) -> _Decrement:
        required = row.required_quantity * item.quantity
        stmt = (
            select(ProductVariant)
            .where(
                ProductVariant.product_id == product.id,
                ProductVariant.size_id == row.size_id,
                ProductVariant.color_id == item.color_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        variant = (await self.db.execute(stmt)).scalar_one_or_none()
        if variant is None:
            raise InsufficientStockError(product.id, product.name, row.size_id, row.size, required, 0)

        available = variant.stock - reserved.get(variant.id, 0)
        if available < required:
            raise InsufficientStockError(
                product.id, product.name, row.size_id, row.size, required, max(available, 0)
            )
        reserved[variant.id] = reserved.get(variant.id, 0) + required
        return _Decrement(variant.id, row.size_id, row.size, required)

    # =========================================================================
    # Commit pass
    # =========================================================================

    async def _decrement(self, product: Product, dec: _Decrement) -> None:
        stmt = (
            update(ProductVariant)
            .where(ProductVariant.id == dec.variant_id, ProductVariant.stock >= dec.amount)
            .values(stock=ProductVariant.stock - dec.amount)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            current = (await self.db.execute(
                select(ProductVariant.stock).where(ProductVariant.id == dec.variant_id)
            )).scalar_one_or_none() or 0
            raise InsufficientStockError(product.id, product.name, dec.size_id, dec.size,
                                         dec.amount, current)

    def _notification(self, order: Order, customer: OrderCustomerIn,
                      planned: List[_PlannedItem]) -> OrderNotification:
        return OrderNotification(
            order_id=str(order.id),
            customer_name=order.customer_name or customer.name,
            customer_email=order.customer_email,
            customer_whatsapp=order.customer_whatsapp or customer.whatsapp,
            items=[
                NotificationItem(
                    product_name=p.item.product_name or p.product.name,
                    color_name=p.item.color_name,
                    grade_name=p.item.grade_name or p.grade.name,
                    quantity=p.item.quantity,
                    price=(Decimal(p.item.total_price) / p.item.quantity).quantize(CENT),
                )
                for p in planned
            ],
            total_price=order.total_amount,
            order_date=order.created_at,
            status=order.status.value,
        )


# ============================================================================
# Admin queries
# ============================================================================

def order_to_dict(order: Order, item_count: Optional[int] = None) -> dict:
    data = {
        "id": order.id,
        "customer_email": order.customer_email,
        "customer_name": order.customer_name,
        "customer_whatsapp": order.customer_whatsapp,
        "total_amount": order.total_amount,
        "status": order.status.value,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
    }
    if item_count is not None:
        data["item_count"] = item_count
    return data


class OrderAdminService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_orders(self, status: Optional[str] = None) -> List[dict]:
        stmt = (
            select(Order, func.count(OrderItem.id))
            .outerjoin(OrderItem, OrderItem.order_id == Order.id)
            .group_by(Order.id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        if status:
            stmt = stmt.where(Order.status == _parse_status(status))
        rows = (await self.db.execute(stmt)).all()
        return [order_to_dict(order, count) for order, count in rows]

    async def _get(self, order_id: int) -> Order:
        order = (await self.db.execute(
            select(Order).where(Order.id == order_id)
        )).scalar_one_or_none()
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", code="order_not_found")
        return order

    async def detail(self, order_id: int) -> dict:
        order = await self._get(order_id)
        stmt = (
            select(OrderItem, Product.name, Color.name, Color.hex_code, Grade.name, Size.size)
            .join(Product, OrderItem.product_id == Product.id)
            .outerjoin(Color, OrderItem.color_id == Color.id)
            .outerjoin(Grade, OrderItem.grade_id == Grade.id)
            .outerjoin(Size, OrderItem.size_id == Size.id)
            .where(OrderItem.order_id == order.id)
            .order_by(OrderItem.id)
        )
        items = [
            {
                "id": item.id,
                "product_id": item.product_id,
                "product_name": product_name,
                "color_id": item.color_id,
                "color_name": color_name,
                "hex_code": hex_code,
                "grade_id": item.grade_id,
                "grade_name": grade_name,
                "size_id": item.size_id,
                "size": size,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "total_price": item.total_price,
                "type": item.type.value,
            }
            for item, product_name, color_name, hex_code, grade_name, size in (await self.db.execute(stmt)).all()
        ]
        return {**order_to_dict(order, len(items)), "items": items}

    async def update_status(self, order_id: int, status: str) -> dict:
        new_status = _parse_status(status)
        order = await self._get(order_id)
        previous = order.status
        order.status = new_status
        order.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        logger.info("Order %s status %s -> %s", order.id, previous.value, new_status.value)
        return order_to_dict(order)

    async def stats_summary(self) -> dict:
        rows = (await self.db.execute(
            select(Order.status, func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0))
            .group_by(Order.status)
        )).all()
        by_status = {s.value: 0 for s in OrderStatus}
        total_orders = 0
        revenue = Decimal("0")
        for status, count, amount in rows:
            by_status[status.value] = count
            total_orders += count
            if status != OrderStatus.cancelled:
                revenue += Decimal(str(amount))
        billable = total_orders - by_status[OrderStatus.cancelled.value]
        average = (revenue / billable).quantize(CENT) if billable else Decimal("0.00")
        return {
            "total_orders": total_orders,
            "by_status": by_status,
            "revenue": revenue.quantize(CENT),
            "average_order_value": average,
        }

    async def orders_for_customer(self, email: str) -> List[dict]:
        stmt = (
            select(Order, func.count(OrderItem.id))
            .outerjoin(OrderItem, OrderItem.order_id == Order.id)
            .where(Order.customer_email == normalize_email(email))
            .group_by(Order.id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return [order_to_dict(order, count) for order, count in (await self.db.execute(stmt)).all()]


def _parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus((value or "").strip().lower())
    except ValueError:
        raise ValidationError(
            f"Invalid order status: {value}",
            code="invalid_status",
            details={"allowed": [s.value for s in OrderStatus]},
        ) from None
