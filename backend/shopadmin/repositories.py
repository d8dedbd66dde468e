"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
categories, brands, products, customers, orders, coupons, campaigns,
settings, audit logs). Repositories return SQLModel objects and perform
commits/refreshes where appropriate; list methods return `(rows, total)`
so handlers can build pagination metadata.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from . import models
from .utils.pagination import PageParams


def _count(session: Session, stmt) -> int:
    return session.exec(select(func.count()).select_from(stmt.subquery())).one()


def _page(session: Session, stmt, params: Optional[PageParams]) -> Tuple[list, int]:
    """Run `stmt` for one page and return the rows with the unpaged total."""
    total = _count(session, stmt)
    if params is not None:
        stmt = stmt.offset(params.offset).limit(params.limit)
    return session.exec(stmt).all(), total


def _like(column, term: str):
    return col(column).ilike(f"%{term}%")


def _within(stmt, column, start: Optional[datetime], end: Optional[datetime]):
    if start is not None:
        stmt = stmt.where(column >= start)
    if end is not None:
        stmt = stmt.where(column < end)
    return stmt


class _Repository:
    model = None

    def __init__(self, session: Session):
        self.session = session

    def get(self, obj_id):
        """Get a row by primary key or `None`."""
        return self.session.get(self.model, obj_id)

    def save(self, obj):
        """Persist a new or modified row and return the refreshed instance."""
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def delete(self, obj) -> None:
        self.session.delete(obj)
        self.session.commit()


class UserRepository(_Repository):
    """CRUD operations for `User` objects."""
    model = models.User

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email (case-insensitive) or `None` if not found."""
        stmt = select(models.User).where(func.lower(models.User.email) == email.strip().lower())
        return self.session.exec(stmt).first()

    def list(self, params: PageParams, search: str = "", role: Optional[str] = None):
        stmt = select(models.User)
        if search:
            stmt = stmt.where(or_(_like(models.User.name, search), _like(models.User.email, search)))
        if role:
            stmt = stmt.where(models.User.role == role)
        stmt = stmt.order_by(col(models.User.created_at).desc(), col(models.User.id).desc())
        return _page(self.session, stmt, params)

    def created_order_counts(self, user_ids: Iterable[int]) -> Dict[int, int]:
        ids = list(user_ids)
        if not ids:
            return {}
        stmt = (
            select(models.Order.created_by_id, func.count(models.Order.id))
            .where(col(models.Order.created_by_id).in_(ids))
            .group_by(models.Order.created_by_id)
        )
        return {uid: n for uid, n in self.session.exec(stmt).all()}

    def count_by_role(self, status: Optional[models.UserStatus] = None) -> Dict[str, int]:
        stmt = select(models.User.role, func.count(models.User.id)).group_by(models.User.role)
        if status is not None:
            stmt = stmt.where(models.User.status == status)
        return {getattr(r, "value", r): n for r, n in self.session.exec(stmt).all()}


class CategoryRepository(_Repository):
    model = models.Category

    def get_by_slug(self, slug: str) -> Optional[models.Category]:
        return self.session.exec(select(models.Category).where(models.Category.slug == slug)).first()

    def list(self, include_inactive: bool = False, parent_filter: str = "any", parent_id: Optional[int] = None):
        """List categories sorted by name.

        `parent_filter` is `any` (no filter), `root` (top level only) or
        `parent` (children of `parent_id`).
        """
        stmt = select(models.Category)
        if not include_inactive:
            stmt = stmt.where(models.Category.is_active == True)  # noqa: E712
        if parent_filter == "root":
            stmt = stmt.where(col(models.Category.parent_id).is_(None))
        elif parent_filter == "parent":
            stmt = stmt.where(models.Category.parent_id == parent_id)
        return self.session.exec(stmt.order_by(models.Category.name)).all()

    def children(self, category_id: int) -> List[models.Category]:
        stmt = select(models.Category).where(models.Category.parent_id == category_id).order_by(models.Category.name)
        return self.session.exec(stmt).all()

    def product_counts(self, category_ids: Iterable[int]) -> Dict[int, int]:
        ids = list(category_ids)
        if not ids:
            return {}
        stmt = (
            select(models.Product.category_id, func.count(models.Product.id))
            .where(col(models.Product.category_id).in_(ids))
            .group_by(models.Product.category_id)
        )
        return {cid: n for cid, n in self.session.exec(stmt).all()}

    def children_counts(self, category_ids: Iterable[int]) -> Dict[int, int]:
        ids = list(category_ids)
        if not ids:
            return {}
        stmt = (
            select(models.Category.parent_id, func.count(models.Category.id))
            .where(col(models.Category.parent_id).in_(ids))
            .group_by(models.Category.parent_id)
        )
        return {pid: n for pid, n in self.session.exec(stmt).all()}

    def products(self, category_id: int, limit: int = 10) -> List[models.Product]:
        stmt = (
            select(models.Product)
            .where(models.Product.category_id == category_id)
            .order_by(col(models.Product.created_at).desc())
            .limit(limit)
        )
        return self.session.exec(stmt).all()

    def all(self) -> List[models.Category]:
        return self.session.exec(select(models.Category)).all()


class BrandRepository(_Repository):
    model = models.Brand

    def get_by_slug(self, slug: str) -> Optional[models.Brand]:
        return self.session.exec(select(models.Brand).where(models.Brand.slug == slug)).first()

    def get_by_name(self, name: str) -> Optional[models.Brand]:
        stmt = select(models.Brand).where(func.lower(models.Brand.name) == name.strip().lower())
        return self.session.exec(stmt).first()

    def list(self, include_inactive: bool = False, search: str = ""):
        stmt = select(models.Brand)
        if not include_inactive:
            stmt = stmt.where(models.Brand.is_active == True)  # noqa: E712
        if search:
            stmt = stmt.where(or_(_like(models.Brand.name, search), _like(models.Brand.description, search)))
        return self.session.exec(stmt.order_by(models.Brand.name)).all()

    def product_counts(self, brand_ids: Iterable[int]) -> Dict[int, int]:
        ids = list(brand_ids)
        if not ids:
            return {}
        stmt = (
            select(models.Product.brand_id, func.count(models.Product.id))
            .where(col(models.Product.brand_id).in_(ids))
            .group_by(models.Product.brand_id)
        )
        return {bid: n for bid, n in self.session.exec(stmt).all()}

    def products(self, brand_id: int, limit: int = 10) -> List[models.Product]:
        stmt = (
            select(models.Product)
            .where(models.Product.brand_id == brand_id)
            .order_by(col(models.Product.created_at).desc())
            .limit(limit)
        )
        return self.session.exec(stmt).all()


class ProductRepository(_Repository):
    """Queries over the product catalog and its stock."""
    model = models.Product

    def get_by_sku(self, sku: str) -> Optional[models.Product]:
        return self.session.exec(select(models.Product).where(models.Product.sku == sku)).first()

    def slug_exists(self, slug: str) -> bool:
        return self.session.exec(select(models.Product.id).where(models.Product.slug == slug)).first() is not None

    def list(
        self,
        params: PageParams,
        search: str = "",
        status: Optional[str] = None,
        category_id: Optional[int] = None,
        brand_id: Optional[int] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ):
        stmt = select(models.Product)
        if search:
            stmt = stmt.where(or_(
                _like(models.Product.name, search),
                _like(models.Product.description, search),
                _like(models.Product.sku, search),
            ))
        if status:
            stmt = stmt.where(models.Product.status == status)
        if category_id is not None:
            stmt = stmt.where(models.Product.category_id == category_id)
        if brand_id is not None:
            stmt = stmt.where(models.Product.brand_id == brand_id)
        stmt = _within(stmt, models.Product.created_at, created_from, created_to)
        stmt = stmt.order_by(col(models.Product.created_at).desc(), col(models.Product.id).desc())
        return _page(self.session, stmt, params)

    def tracked(self, search: str = "", max_quantity: Optional[int] = None) -> List[models.Product]:
        """Quantity-tracked products, lowest stock first."""
        stmt = select(models.Product).where(models.Product.track_quantity == True)  # noqa: E712
        if search:
            stmt = stmt.where(or_(
                _like(models.Product.name, search),
                _like(models.Product.sku, search),
                _like(models.Product.barcode, search),
            ))
        if max_quantity is not None:
            stmt = stmt.where(models.Product.quantity <= max_quantity)
        stmt = stmt.order_by(models.Product.quantity, models.Product.id)
        return self.session.exec(stmt).all()

    def has_order_items(self, product_id: int) -> bool:
        stmt = select(models.OrderItem.id).where(models.OrderItem.product_id == product_id)
        return self.session.exec(stmt).first() is not None

    def all(self) -> List[models.Product]:
        return self.session.exec(select(models.Product)).all()

    def get_many(self, product_ids: Iterable[int]) -> Dict[int, models.Product]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        rows = self.session.exec(select(models.Product).where(col(models.Product.id).in_(ids))).all()
        return {p.id: p for p in rows}


class InventoryLogRepository(_Repository):
    model = models.InventoryLog

    def list_for_product(self, product_id: int, params: PageParams):
        stmt = (
            select(models.InventoryLog)
            .where(models.InventoryLog.product_id == product_id)
            .order_by(col(models.InventoryLog.created_at).desc(), col(models.InventoryLog.id).desc())
        )
        return _page(self.session, stmt, params)


class CustomerRepository(_Repository):
    model = models.Customer

    def get_by_email(self, email: str) -> Optional[models.Customer]:
        stmt = select(models.Customer).where(func.lower(models.Customer.email) == email.strip().lower())
        return self.session.exec(stmt).first()

    def list(
        self,
        params: PageParams,
        search: str = "",
        status: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ):
        stmt = select(models.Customer)
        if search:
            stmt = stmt.where(or_(
                _like(models.Customer.first_name, search),
                _like(models.Customer.last_name, search),
                _like(models.Customer.email, search),
                _like(models.Customer.phone, search),
            ))
        if status:
            stmt = stmt.where(models.Customer.status == status)
        stmt = _within(stmt, models.Customer.created_at, created_from, created_to)
        stmt = stmt.order_by(col(models.Customer.created_at).desc(), col(models.Customer.id).desc())
        return _page(self.session, stmt, params)

    def order_stats(self, customer_ids: Iterable[int]) -> Dict[int, dict]:
        """Total spent, order count and last order date per customer (all orders)."""
        ids = list(customer_ids)
        if not ids:
            return {}
        stmt = (
            select(
                models.Order.customer_id,
                func.coalesce(func.sum(models.Order.total_amount), 0.0),
                func.count(models.Order.id),
                func.max(models.Order.created_at),
            )
            .where(col(models.Order.customer_id).in_(ids))
            .group_by(models.Order.customer_id)
        )
        return {
            cid: {"total_spent": float(spent), "total_orders": n, "last_order_date": last}
            for cid, spent, n, last in self.session.exec(stmt).all()
        }

    def orders(self, customer_id: int) -> List[models.Order]:
        stmt = (
            select(models.Order)
            .where(models.Order.customer_id == customer_id)
            .order_by(col(models.Order.created_at).desc(), col(models.Order.id).desc())
        )
        return self.session.exec(stmt).all()

    def has_orders(self, customer_id: int) -> bool:
        stmt = select(models.Order.id).where(models.Order.customer_id == customer_id)
        return self.session.exec(stmt).first() is not None

    def get_many(self, customer_ids: Iterable[int]) -> Dict[int, models.Customer]:
        ids = list(set(customer_ids))
        if not ids:
            return {}
        rows = self.session.exec(select(models.Customer).where(col(models.Customer.id).in_(ids))).all()
        return {c.id: c for c in rows}


class OrderRepository(_Repository):
    """Persist orders together with their items and side effects."""
    model = models.Order

    def list(self, params: PageParams, search: str = "", status: Optional[str] = None):
        stmt = select(models.Order)
        if search:
            stmt = stmt.join(models.Customer, models.Customer.id == models.Order.customer_id).where(or_(
                _like(models.Order.order_number, search),
                _like(models.Customer.first_name, search),
                _like(models.Customer.last_name, search),
                _like(models.Customer.email, search),
            ))
        if status:
            stmt = stmt.where(models.Order.status == status)
        stmt = stmt.order_by(col(models.Order.created_at).desc(), col(models.Order.id).desc())
        return _page(self.session, stmt, params)

    def items(self, order_id: int) -> List[models.OrderItem]:
        stmt = select(models.OrderItem).where(models.OrderItem.order_id == order_id).order_by(models.OrderItem.id)
        return self.session.exec(stmt).all()

    def items_for(self, order_ids: Iterable[int]) -> Dict[int, List[models.OrderItem]]:
        ids = list(order_ids)
        out: Dict[int, List[models.OrderItem]] = {i: [] for i in ids}
        if not ids:
            return out
        stmt = select(models.OrderItem).where(col(models.OrderItem.order_id).in_(ids)).order_by(models.OrderItem.id)
        for item in self.session.exec(stmt).all():
            out[item.order_id].append(item)
        return out

    def number_exists(self, order_number: str) -> bool:
        stmt = select(models.Order.id).where(models.Order.order_number == order_number)
        return self.session.exec(stmt).first() is not None

    def count_for_year_prefix(self, prefix: str) -> int:
        stmt = select(func.count(models.Order.id)).where(col(models.Order.order_number).startswith(prefix))
        return self.session.exec(stmt).one()

    def create(
        self,
        order: models.Order,
        items: List[models.OrderItem],
        touched_products: List[models.Product],
        coupon: Optional[models.Coupon] = None,
        logs: Optional[List[models.InventoryLog]] = None,
    ) -> models.Order:
        """Store an order with its items, stock changes and coupon usage in one commit."""
        self.session.add(order)
        self.session.flush()
        for it in items:
            it.order_id = order.id
            self.session.add(it)
        for p in touched_products:
            self.session.add(p)
        for log in logs or []:
            self.session.add(log)
        if coupon is not None:
            self.session.add(coupon)
            self.session.add(models.OrderCoupon(order_id=order.id, coupon_id=coupon.id, discount_amount=order.discount_amount))
        self.session.commit()
        self.session.refresh(order)
        return order

    def coupons_for(self, order_id: int) -> List[models.Coupon]:
        stmt = (
            select(models.Coupon)
            .join(models.OrderCoupon, models.OrderCoupon.coupon_id == models.Coupon.id)
            .where(models.OrderCoupon.order_id == order_id)
        )
        return self.session.exec(stmt).all()

    def delete_with_items(self, order: models.Order) -> None:
        for it in self.items(order.id):
            self.session.delete(it)
        for link in self.session.exec(select(models.OrderCoupon).where(models.OrderCoupon.order_id == order.id)).all():
            self.session.delete(link)
        self.session.delete(order)
        self.session.commit()

    def in_window(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        statuses: Optional[Iterable[models.OrderStatus]] = None,
        exclude: Optional[Iterable[models.OrderStatus]] = None,
    ) -> List[models.Order]:
        stmt = select(models.Order)
        stmt = _within(stmt, models.Order.created_at, start, end)
        if statuses is not None:
            stmt = stmt.where(col(models.Order.status).in_(list(statuses)))
        if exclude is not None:
            stmt = stmt.where(col(models.Order.status).not_in(list(exclude)))
        return self.session.exec(stmt.order_by(models.Order.created_at)).all()

    def revenue(self, start: Optional[datetime], end: Optional[datetime]) -> Tuple[float, int]:
        stmt = select(
            func.coalesce(func.sum(models.Order.total_amount), 0.0),
            func.count(models.Order.id),
        ).where(models.Order.status == models.OrderStatus.COMPLETED)
        stmt = _within(stmt, models.Order.created_at, start, end)
        total, count = self.session.exec(stmt).one()
        return float(total), count


class CouponRepository(_Repository):
    model = models.Coupon

    SORTABLE = {"created_at", "code", "name", "value", "usage_count", "expires_at", "starts_at"}

    def get_by_code(self, code: str) -> Optional[models.Coupon]:
        return self.session.exec(select(models.Coupon).where(models.Coupon.code == code)).first()

    def list(
        self,
        params: PageParams,
        now: datetime,
        search: str = "",
        status: Optional[str] = None,
        coupon_type: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ):
        """List coupons.

        `status` is `active` (enabled and not expired), `inactive` (disabled)
        or `expired` (past `expires_at`).
        """
        stmt = select(models.Coupon)
        if search:
            stmt = stmt.where(or_(
                _like(models.Coupon.code, search),
                _like(models.Coupon.name, search),
                _like(models.Coupon.description, search),
            ))
        if status == "active":
            stmt = stmt.where(models.Coupon.status == models.CouponStatus.ACTIVE).where(
                or_(col(models.Coupon.expires_at).is_(None), col(models.Coupon.expires_at) >= now)
            )
        elif status == "inactive":
            stmt = stmt.where(models.Coupon.status == models.CouponStatus.INACTIVE)
        elif status == "expired":
            stmt = stmt.where(col(models.Coupon.expires_at) < now)
        if coupon_type:
            stmt = stmt.where(models.Coupon.type == coupon_type)
        column = col(getattr(models.Coupon, sort_by if sort_by in self.SORTABLE else "created_at"))
        stmt = stmt.order_by(column.asc() if sort_order == "asc" else column.desc(), col(models.Coupon.id).desc())
        return _page(self.session, stmt, params)

    def used_by_orders(self, coupon_id: int) -> bool:
        stmt = select(models.OrderCoupon.id).where(models.OrderCoupon.coupon_id == coupon_id)
        return self.session.exec(stmt).first() is not None


class CampaignRepository(_Repository):
    model = models.Campaign

    def list(self, params: PageParams, search: str = "", status: Optional[str] = None, campaign_type: Optional[str] = None):
        stmt = select(models.Campaign)
        if search:
            stmt = stmt.where(or_(_like(models.Campaign.name, search), _like(models.Campaign.description, search)))
        if status:
            stmt = stmt.where(models.Campaign.status == status)
        if campaign_type:
            stmt = stmt.where(models.Campaign.type == campaign_type)
        stmt = stmt.order_by(col(models.Campaign.created_at).desc(), col(models.Campaign.id).desc())
        return _page(self.session, stmt, params)


class ReviewRepository(_Repository):
    model = models.Review

    def rating_stats(self) -> Dict[int, Tuple[float, int]]:
        """Average rating and review count per product."""
        stmt = select(
            models.Review.product_id,
            func.avg(models.Review.rating),
            func.count(models.Review.id),
        ).group_by(models.Review.product_id)
        return {pid: (float(avg or 0), n) for pid, avg, n in self.session.exec(stmt).all()}


class SettingRepository(_Repository):
    model = models.StoreSetting

    def all(self) -> Dict[str, dict]:
        return {row.section: dict(row.data or {}) for row in self.session.exec(select(models.StoreSetting)).all()}


class AuditLogRepository(_Repository):
    model = models.AuditLog

    def list(self, params: PageParams, entity_type: Optional[str] = None):
        stmt = select(models.AuditLog)
        if entity_type:
            stmt = stmt.where(models.AuditLog.entity_type == entity_type)
        stmt = stmt.order_by(col(models.AuditLog.created_at).desc(), col(models.AuditLog.id).desc())
        return _page(self.session, stmt, params)
