# storefront_hub/db_models.py
"""
SQLAlchemy ORM Models for Storefront Hub.

Catalog (categories, colors, sizes, size groups, products), the two stock
ledgers (size variants, grade templates + product/color assignments),
customers, orders and the key/value settings tables.
"""
from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List
import enum

from sqlalchemy import (
    String, Integer, BigInteger, Boolean, Text, DateTime,
    Numeric, ForeignKey, Index, CheckConstraint, UniqueConstraint,
    Enum as SQLEnum, JSON
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront_hub.database import Base

# SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# ENUMS
# ============================================================================

class StockType(str, enum.Enum):
    size = "size"
    grade = "grade"


class OrderStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class OrderItemType(str, enum.Enum):
    individual = "individual"
    grade = "grade"


class CustomerStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# ============================================================================
# MIXIN for updated_at
# ============================================================================

class TimestampMixin:
    """Mixin for created_at and updated_at columns."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


# ============================================================================
# 1. CATALOG REFERENCE DATA
# ============================================================================

class Category(TimestampMixin, Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    products: Mapped[List["Product"]] = relationship(back_populates="category")


class Color(Base):
    __tablename__ = "colors"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    hex_code: Mapped[Optional[str]] = mapped_column(String(7))


class Size(Base):
    __tablename__ = "sizes"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    size: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class SizeGroup(TimestampMixin, Base):
    """Authoring convenience only - never consulted at order time."""
    __tablename__ = "size_groups"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    sizes: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


# ============================================================================
# 2. PRODUCTS
# ============================================================================

class Product(TimestampMixin, Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL")
    )
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    sale_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    suggested_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    sku: Mapped[Optional[str]] = mapped_column(String(100))
    # lookup relation for variant grouping, never ownership
    parent_sku: Mapped[Optional[str]] = mapped_column(String(100))
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("products.id", ondelete="SET NULL")
    )
    photo: Mapped[Optional[str]] = mapped_column(String(500))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    stock_type: Mapped[StockType] = mapped_column(
        SQLEnum(StockType, name="stock_type"),
        default=StockType.grade,
        nullable=False,
    )
    sell_without_stock: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    category: Mapped[Optional["Category"]] = relationship(back_populates="products")
    variants: Mapped[List["ProductVariant"]] = relationship(
        back_populates="product", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("idx_products_active", "active"),
        Index("idx_products_parent_sku", "parent_sku"),
    )


class ProductVariant(Base):
    """Size-path stock unit: one row per (product, size, color)."""
    __tablename__ = "product_variants"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    size_id: Mapped[int] = mapped_column(ForeignKey("sizes.id", ondelete="CASCADE"), nullable=False)
    color_id: Mapped[int] = mapped_column(ForeignKey("colors.id", ondelete="CASCADE"), nullable=False)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    price_override: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))

    product: Mapped["Product"] = relationship(back_populates="variants")
    size: Mapped["Size"] = relationship()
    color: Mapped["Color"] = relationship()

    __table_args__ = (
        UniqueConstraint("product_id", "size_id", "color_id", name="uq_variant_product_size_color"),
        CheckConstraint("stock >= 0", name="ck_variant_stock_non_negative"),
    )


# ============================================================================
# 3. GRADES (template catalog + product/color assignment)
# ============================================================================

class Grade(TimestampMixin, Base):
    __tablename__ = "grade_vendida"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    templates: Mapped[List["GradeTemplate"]] = relationship(
        back_populates="grade", cascade="all, delete-orphan", passive_deletes=True
    )
    assignments: Mapped[List["ProductColorGrade"]] = relationship(
        back_populates="grade", cascade="all, delete-orphan", passive_deletes=True
    )


class GradeTemplate(Base):
    """(grade, size) -> required_quantity. Independent of any product or color."""
    __tablename__ = "grade_templates"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    grade_id: Mapped[int] = mapped_column(
        ForeignKey("grade_vendida.id", ondelete="CASCADE"), nullable=False
    )
    size_id: Mapped[int] = mapped_column(ForeignKey("sizes.id", ondelete="CASCADE"), nullable=False)
    required_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    grade: Mapped["Grade"] = relationship(back_populates="templates")
    size: Mapped["Size"] = relationship()

    __table_args__ = (
        UniqueConstraint("grade_id", "size_id", name="uq_grade_template_size"),
    )


class ProductColorGrade(Base):
    """Makes a grade purchasable for one (product, color) pair."""
    __tablename__ = "product_color_grades"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    color_id: Mapped[int] = mapped_column(ForeignKey("colors.id", ondelete="CASCADE"), nullable=False)
    grade_id: Mapped[int] = mapped_column(
        ForeignKey("grade_vendida.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    grade: Mapped["Grade"] = relationship(back_populates="assignments")
    product: Mapped["Product"] = relationship()
    color: Mapped["Color"] = relationship()

    __table_args__ = (
        UniqueConstraint("product_id", "color_id", "grade_id", name="uq_product_color_grade"),
    )


# ============================================================================
# 4. CUSTOMERS & ORDERS
# ============================================================================

class Customer(TimestampMixin, Base):
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    whatsapp: Mapped[Optional[str]] = mapped_column(String(50))
    # supersedes the store-wide default when > 0
    minimum_order: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    status: Mapped[CustomerStatus] = mapped_column(
        SQLEnum(CustomerStatus, name="customer_status"),
        default=CustomerStatus.pending,
        nullable=False,
    )


class Order(TimestampMixin, Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    customer_email: Mapped[str] = mapped_column(
        ForeignKey("customers.email", ondelete="RESTRICT"), nullable=False
    )
    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    customer_whatsapp: Mapped[Optional[str]] = mapped_column(String(50))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(OrderStatus, name="order_status"),
        default=OrderStatus.pending,
        nullable=False,
    )

    items: Mapped[List["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("idx_orders_customer_email", "customer_email"),
        Index("idx_orders_status", "status"),
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    size_id: Mapped[Optional[int]] = mapped_column(ForeignKey("sizes.id", ondelete="SET NULL"))
    color_id: Mapped[Optional[int]] = mapped_column(ForeignKey("colors.id", ondelete="SET NULL"))
    grade_id: Mapped[Optional[int]] = mapped_column(ForeignKey("grade_vendida.id", ondelete="SET NULL"))
    # for type=grade this is the number of packs, not raw units
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    type: Mapped[OrderItemType] = mapped_column(
        SQLEnum(OrderItemType, name="order_item_type"),
        default=OrderItemType.grade,
        nullable=False,
    )

    order: Mapped["Order"] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_item_quantity_positive"),
    )


# ============================================================================
# 5. KEY/VALUE SETTINGS
# ============================================================================

class NotificationSetting(TimestampMixin, Base):
    __tablename__ = "notification_settings"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    setting_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    setting_value: Mapped[Optional[str]] = mapped_column(Text)


class StoreSetting(TimestampMixin, Base):
    __tablename__ = "store_settings"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    setting_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    setting_value: Mapped[Optional[str]] = mapped_column(Text)
