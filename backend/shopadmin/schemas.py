"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable and provide validation for the
route handlers. Update payloads mark every field optional; handlers pass
`model_dump(exclude_unset=True)` so only supplied fields change.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .models import (
    CampaignStatus,
    CampaignType,
    CouponType,
    CustomerSegment,
    CustomerStatus,
    OrderStatus,
    ProductStatus,
    UserRole,
    UserStatus,
)


class LoginIn(BaseModel):
    """Credentials for `POST /api/auth/login`."""
    email: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = "bearer"
    user: Dict[str, Any]


class UserCreate(BaseModel):
    name: str
    email: str
    password: str
    role: UserRole = UserRole.VIEWER
    status: UserStatus = UserStatus.ACTIVE


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None


class CategoryIn(BaseModel):
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[int] = None
    is_active: bool = True


class BrandIn(BaseModel):
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    logo: Optional[str] = None
    website: Optional[str] = None
    is_active: bool = True


class BrandUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    logo: Optional[str] = None
    website: Optional[str] = None
    is_active: Optional[bool] = None


class ProductCreate(BaseModel):
    name: str
    sku: str
    price: float
    description: Optional[str] = None
    barcode: Optional[str] = None
    cost_price: Optional[float] = None
    compare_price: Optional[float] = None
    quantity: int = 0
    track_quantity: bool = True
    reorder_level: int = 10
    status: ProductStatus = ProductStatus.DRAFT
    category_id: Optional[int] = None
    brand_id: Optional[int] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[float] = None
    description: Optional[str] = None
    barcode: Optional[str] = None
    cost_price: Optional[float] = None
    compare_price: Optional[float] = None
    quantity: Optional[int] = None
    track_quantity: Optional[bool] = None
    reorder_level: Optional[int] = None
    status: Optional[ProductStatus] = None
    category_id: Optional[int] = None
    brand_id: Optional[int] = None


class StockAdjustment(BaseModel):
    change: int
    reason: str = ""


class CustomerCreate(BaseModel):
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    status: CustomerStatus = CustomerStatus.ACTIVE
    segment: CustomerSegment = CustomerSegment.REGULAR
    notes: Optional[str] = None


class CustomerUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[CustomerStatus] = None
    segment: Optional[CustomerSegment] = None
    notes: Optional[str] = None


class OrderItemIn(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)


class OrderCreate(BaseModel):
    customer_id: int
    items: List[OrderItemIn]
    notes: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = None
    shipping_amount: float = Field(default=0.0, ge=0)
    coupon_code: Optional[str] = None


class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    notes: Optional[str] = None
    tracking_number: Optional[str] = None


class CouponCreate(BaseModel):
    code: str
    name: str
    type: CouponType
    value: float
    description: Optional[str] = None
    minimum_amount: float = 0.0
    maximum_discount: Optional[float] = None
    usage_limit: Optional[int] = None
    is_active: bool = True
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    applicable_products: List[int] = Field(default_factory=list)
    applicable_categories: List[int] = Field(default_factory=list)


class CouponUpdate(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None
    type: Optional[CouponType] = None
    value: Optional[float] = None
    description: Optional[str] = None
    minimum_amount: Optional[float] = None
    maximum_discount: Optional[float] = None
    usage_limit: Optional[int] = None
    is_active: Optional[bool] = None
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    applicable_products: Optional[List[int]] = None
    applicable_categories: Optional[List[int]] = None


class CampaignCreate(BaseModel):
    name: str
    type: CampaignType
    status: CampaignStatus = CampaignStatus.DRAFT
    start_date: datetime
    end_date: datetime
    budget: float = Field(ge=0)
    description: Optional[str] = None
    target_audience: List[str] = Field(default_factory=list)
    channels: List[str] = Field(default_factory=list)
    products: List[int] = Field(default_factory=list)


class CampaignUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[CampaignType] = None
    status: Optional[CampaignStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    budget: Optional[float] = Field(default=None, ge=0)
    spent: Optional[float] = Field(default=None, ge=0)
    impressions: Optional[int] = Field(default=None, ge=0)
    clicks: Optional[int] = Field(default=None, ge=0)
    conversions: Optional[int] = Field(default=None, ge=0)
    revenue: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = None
    target_audience: Optional[List[str]] = None
    channels: Optional[List[str]] = None
    products: Optional[List[int]] = None


class SettingsUpdate(BaseModel):
    section: Optional[str] = None
    data: Optional[Any] = None
