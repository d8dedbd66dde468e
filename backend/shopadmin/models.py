"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table; enumerations describe the allowed values for
role, status and type columns. Timestamps are naive UTC and every
timestamp column is declared as a plain `DateTime`.
"""

from enum import Enum
from typing import List, Optional
from datetime import datetime

from sqlalchemy import Column, DateTime, JSON
from sqlmodel import SQLModel, Field, Relationship

from .utils.dates import utcnow


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    STAFF = "STAFF"
    VIEWER = "VIEWER"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class ProductStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


class CustomerStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    BLOCKED = "BLOCKED"


class CustomerSegment(str, Enum):
    NEW = "NEW"
    REGULAR = "REGULAR"
    VIP = "VIP"
    AT_RISK = "AT_RISK"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class CouponType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class CouponStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class CampaignType(str, Enum):
    EMAIL_CAMPAIGN = "EMAIL_CAMPAIGN"
    SOCIAL_MEDIA = "SOCIAL_MEDIA"
    DISCOUNT_CAMPAIGN = "DISCOUNT_CAMPAIGN"
    PRODUCT_LAUNCH = "PRODUCT_LAUNCH"
    SEASONAL = "SEASONAL"
    RETARGETING = "RETARGETING"


class CampaignStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class User(SQLModel, table=True):
    """A back-office user.

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `role`: RBAC role, see `permissions.ROLE_PERMISSIONS`
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    role: UserRole = Field(default=UserRole.VIEWER, index=True)
    status: UserStatus = Field(default=UserStatus.ACTIVE)
    last_login_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    created_at: datetime = Field(sa_type=DateTime, default_factory=utcnow)
    updated_at: datetime = Field(sa_type=DateTime, default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class Category(SQLModel, table=True):
    """A product category. Categories nest through `parent_id`."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    slug: str = Field(index=True, unique=True)
    description: str = ""
    parent_id: Optional[int] = Field(default=None, foreign_key="category.id", index=True)
    is_active: bool = True
    created_at: datetime = Field(sa_type=DateTime, default_factory=utcnow)
    updated_at: datetime = Field(sa_type=DateTime, default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class Brand(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    slug: str = Field(index=True, unique=True)
    description: str = ""
    logo: str = ""
    website: str = ""
    is_active: bool = True
    created_at: datetime = Field(sa_type=DateTime, default_factory=utcnow)
    updated_at: datetime = Field(sa_type=DateTime, default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class Product(SQLModel, table=True):
    """A sellable catalog item identified by a unique SKU.

    `quantity` is only enforced for orders when `track_quantity` is set.
    `cost_price` is optional; reports estimate cost when it is missing.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    slug: str = Field(index=True, unique=True)
    description: Optional[str] = None
    sku: str = Field(index=True, unique=True)
    barcode: Optional[str] = Field(default=None, index=True)
    price: float
    cost_price: Optional[float] = None
    compare_price: Optional[float] = None
    quantity: int = 0
    track_quantity: bool = True
    reorder_level: int = 10
    status: ProductStatus = Field(default=ProductStatus.DRAFT, index=True)
    category_id: Optional[int] = Field(default=None, foreign_key="category.id", index=True)
    brand_id: Optional[int] = Field(default=None, foreign_key="brand.id", index=True)
    created_at: datetime = Field(sa_type=DateTime, default_factory=utcnow)
    updated_at: datetime = Field(sa_type=DateTime, default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class InventoryLog(SQLModel, table=True):
    """A single stock movement for a product."""
    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    change: int
    quantity_after: int
    reason: str = ""
    user_id: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(sa_type=DateTime, default_factory=utcnow)


class Review(SQLModel, table=True):
    """A product rating left by a customer (1-5)."""
    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    customer_id: Optional[int] = Field(default=None, foreign_key="customer.id")
    rating: int
    comment: Optional[str] = None
    created_at: datetime = Field(sa_type=DateTime, default_factory=utcnow)


class Customer(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    email: str = Field(index=True, unique=True)
    phone: Optional[str] = None
    status: CustomerStatus = Field(default=CustomerStatus.ACTIVE, index=True)
    segment: CustomerSegment = Field(default=CustomerSegment.REGULAR)
    notes: Optional[str] = None
    created_at: datetime = Field(sa_type=DateTime, default_factory=utcnow)
    updated_at: datetime = Field(sa_type=DateTime, default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class Order(SQLModel, table=True):
    """A customer order with price snapshots of its items.

    `total_amount` = `subtotal` - `discount_amount` + `shipping_amount`, with the
    discounted part never below zero.
    """
    # "order" is a reserved word in SQL
    __tablename__ = "orders"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_number: str = Field(index=True, unique=True)
    customer_id: int = Field(foreign_key="customer.id", index=True)
    customer_email: str
    status: OrderStatus = Field(default=OrderStatus.PENDING, index=True)
    subtotal: float = 0.0
    shipping_amount: float = 0.0
    discount_amount: float = 0.0
    total_amount: float = 0.0
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_address: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_by_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    created_at: datetime = Field(sa_type=DateTime, default_factory=utcnow, index=True)
    updated_at: datetime = Field(sa_type=DateTime, default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})
    items: List["OrderItem"] = Relationship(back_populates="order")


class OrderItem(SQLModel, table=True):
    """A line of an `Order`. Name, SKU and price are copied at order time."""
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    product_name: str
    product_sku: str
    quantity: int
    price: float
    total_amount: float
    order: Optional[Order] = Relationship(back_populates="items")


class Coupon(SQLModel, table=True):
    """A discount code.

    `status` is the administrative switch; the effective state also
    depends on the validity window and usage limit, see
    `utils.scoring.coupon_state`.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(index=True, unique=True)
    name: str
    description: str = ""
    type: CouponType
    value: float
    minimum_amount: float = 0.0
    maximum_discount: Optional[float] = None
    usage_limit: Optional[int] = None
    usage_count: int = 0
    status: CouponStatus = Field(default=CouponStatus.ACTIVE, index=True)
    starts_at: datetime = Field(sa_type=DateTime, default_factory=utcnow)
    expires_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    applicable_products: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    applicable_categories: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(sa_type=DateTime, default_factory=utcnow)
    updated_at: datetime = Field(sa_type=DateTime, default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class OrderCoupon(SQLModel, table=True):
    """Coupon applied to an order together with the discount it granted."""
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    coupon_id: int = Field(foreign_key="coupon.id", index=True)
    discount_amount: float


class Campaign(SQLModel, table=True):
    """A marketing campaign and its raw performance counters."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: str = ""
    type: CampaignType
    status: CampaignStatus = Field(default=CampaignStatus.DRAFT, index=True)
    start_date: datetime = Field(sa_type=DateTime)
    end_date: datetime = Field(sa_type=DateTime)
    budget: float = 0.0
    spent: float = 0.0
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    revenue: float = 0.0
    target_audience: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    channels: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    products: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(sa_type=DateTime, default_factory=utcnow)
    updated_at: datetime = Field(sa_type=DateTime, default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class StoreSetting(SQLModel, table=True):
    """Persisted overrides for one settings section."""
    section: str = Field(primary_key=True)
    data: dict = Field(default_factory=dict, sa_column=Column(JSON))
    updated_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    updated_at: datetime = Field(sa_type=DateTime, default_factory=utcnow)


class AuditLog(SQLModel, table=True):
    """Append-only record of administrative changes."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    action: str
    entity_type: str = Field(index=True)
    entity_id: Optional[str] = None
    new_values: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(sa_type=DateTime, default_factory=utcnow, index=True)
