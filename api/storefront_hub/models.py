from decimal import Decimal
from typing import Optional, Dict, List, Any
from pydantic import BaseModel, ConfigDict, Field

from storefront_hub.db_models import StockType, CustomerStatus

# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class CategoryIn(BaseModel):
    name: str
    description: Optional[str] = None
    active: bool = True

class ColorIn(BaseModel):
    name: str
    hex_code: Optional[str] = None

class SizeIn(BaseModel):
    size: str
    display_order: int = 0

class SizeGroupIn(BaseModel):
    name: str
    description: Optional[str] = None
    sizes: List[str] = Field(default_factory=list)
    active: bool = True

class ProductIn(BaseModel):
    name: str
    description: Optional[str] = None
    category_id: Optional[int] = None
    base_price: Decimal = Decimal("0")
    sale_price: Optional[Decimal] = None
    suggested_price: Optional[Decimal] = None
    sku: Optional[str] = None
    parent_sku: Optional[str] = None
    parent_id: Optional[int] = None
    photo: Optional[str] = None
    active: bool = True
    stock_type: StockType = StockType.grade
    sell_without_stock: bool = False

class ProductPatch(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    base_price: Optional[Decimal] = None
    sale_price: Optional[Decimal] = None
    suggested_price: Optional[Decimal] = None
    sku: Optional[str] = None
    parent_sku: Optional[str] = None
    parent_id: Optional[int] = None
    photo: Optional[str] = None
    active: Optional[bool] = None
    stock_type: Optional[StockType] = None
    sell_without_stock: Optional[bool] = None

class StockTypeIn(BaseModel):
    stock_type: str

class VariantUpdateIn(BaseModel):
    stock: Optional[int] = None
    price_override: Optional[Decimal] = None

class BulkVariantsIn(BaseModel):
    size_group_id: int
    color_ids: List[int]
    stock: int = 0

# ---------------------------------------------------------------------------
# Grades
# ---------------------------------------------------------------------------

class GradeTemplateIn(BaseModel):
    size_id: Optional[int] = None
    required_quantity: Optional[int] = None

class GradeIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    active: Optional[bool] = None
    templates: List[GradeTemplateIn] = Field(default_factory=list)

class GradeAssignmentIn(BaseModel):
    product_id: Optional[int] = None
    color_id: Optional[int] = None

# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

class OrderCustomerIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    whatsapp: Optional[str] = None

class OrderItemIn(BaseModel):
    """Cart line as sent by the storefront (camelCase accepted)."""
    model_config = ConfigDict(populate_by_name=True)

    product_id: Optional[int] = Field(default=None, alias="productId")
    color_id: Optional[int] = Field(default=None, alias="colorId")
    grade_id: Optional[int] = Field(default=None, alias="gradeId")
    size_id: Optional[int] = Field(default=None, alias="sizeId")
    quantity: Optional[int] = None
    product_name: Optional[str] = Field(default=None, alias="productName")
    color_name: Optional[str] = Field(default=None, alias="colorName")
    grade_name: Optional[str] = Field(default=None, alias="gradeName")
    total_price: Optional[Decimal] = Field(default=None, alias="totalPrice")
    type: Optional[str] = None

class OrderSubmitIn(BaseModel):
    customer: Optional[OrderCustomerIn] = None
    items: List[OrderItemIn] = Field(default_factory=list)

class OrderSubmitOut(BaseModel):
    order_id: int
    message: str = "Order created successfully"
    share_message: str

class OrderStatusIn(BaseModel):
    status: str

# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

class CustomerIn(BaseModel):
    email: str
    name: str
    whatsapp: Optional[str] = None
    minimum_order: Optional[Decimal] = None
    status: CustomerStatus = CustomerStatus.pending

class CustomerPatch(BaseModel):
    name: Optional[str] = None
    whatsapp: Optional[str] = None
    minimum_order: Optional[Decimal] = None
    status: Optional[CustomerStatus] = None

# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

class ImportRow(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    base_price: Optional[Decimal] = None
    sale_price: Optional[Decimal] = None
    suggested_price: Optional[Decimal] = None
    size_group_id: Optional[int] = None
    colors: str = ""
    stock_per_variant: int = 0
    sku: Optional[str] = None
    parent_sku: Optional[str] = None
    stock_type: StockType = StockType.grade
    sell_without_stock: bool = False

class ImportRequest(BaseModel):
    data: List[ImportRow]

class ImportStartedOut(BaseModel):
    job_id: str
    message: str = "Import started"
    total: int

# ---------------------------------------------------------------------------
# Key/value settings
# ---------------------------------------------------------------------------

class SettingValueIn(BaseModel):
    value: str

SettingsIn = Dict[str, Any]
