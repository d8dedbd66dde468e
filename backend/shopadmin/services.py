"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories and
domain rules for authentication, users, the catalog, inventory, customers
and orders. Services perform validation, execute domain logic and persist
aggregates via repositories.

Errors are reported with exceptions that the HTTP layer maps onto status
codes: `ValueError` (400), `NotFoundError` (404) and `PermissionDenied`
(403).
"""

import logging
import re
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import jwt
from passlib.context import CryptContext
from sqlmodel import Session

from . import models, permissions, repositories
from .config import settings
from .utils.dates import days_between, utcnow
from .utils.pagination import PageParams, pagination_meta
from .utils.scoring import (
    LOW_STOCK,
    calculate_discount,
    coupon_state,
    customer_value_segment,
    rfm_score,
    stock_level,
)
from .utils.text import format_order_number, normalise_code, slugify

logger = logging.getLogger("shopadmin.services")

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6

FROZEN_ORDER_STATUSES = {models.OrderStatus.COMPLETED, models.OrderStatus.CANCELLED}
DELETABLE_ORDER_STATUSES = {models.OrderStatus.PENDING, models.OrderStatus.CANCELLED}


class NotFoundError(Exception):
    """Raised when a referenced row does not exist."""


class PermissionDenied(Exception):
    """Raised when the acting user lacks `resource:action`."""

    def __init__(self, resource: str, action: str, message: Optional[str] = None):
        self.resource = resource
        self.action = action
        self.message = message or permissions.permission_denied_message(resource, action)
        super().__init__(self.message)


def dump(obj, exclude=None) -> dict:
    return obj.model_dump(exclude=exclude)


def _require(value, message: str):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(message)
    return value.strip() if isinstance(value, str) else value


def _ref(obj, *fields) -> Optional[dict]:
    if obj is None:
        return None
    return {f: getattr(obj, f) for f in fields}


class AuthService:
    """Password hashing, credential checks and token issuing."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    @staticmethod
    def hash_password(password: str) -> str:
        return PWD_CTX.hash(password)

    @staticmethod
    def create_token(user: models.User) -> str:
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
        payload = {
            "user_id": user.id,
            "email": user.email,
            "role": getattr(user.role, "value", user.role),
            "exp": int(expire.timestamp()),
        }
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    def authenticate(self, email: str, password: str):
        """Verify credentials and return `(token, user)` on success.

        Returns `None` if the user is unknown, the password does not match
        or the account is not ACTIVE.
        """
        user = self.user_repo.get_by_email(email or "")
        if not user or not PWD_CTX.verify(password or "", user.password_hash):
            return None
        if user.status != models.UserStatus.ACTIVE:
            logger.info("login refused for non-active user %s", user.id)
            return None
        user.last_login_at = utcnow()
        self.user_repo.save(user)
        return self.create_token(user), user


class AuditService:
    """Append audit log rows."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.AuditLogRepository(session)

    def record(self, user_id: Optional[int], action: str, entity_type: str, entity_id=None, new_values: Optional[dict] = None):
        entry = models.AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            new_values=new_values,
        )
        return self.repo.save(entry)

    def list(self, params: PageParams, entity_type: Optional[str] = None):
        rows, total = self.repo.list(params, entity_type)
        return {"audit_logs": [dump(r) for r in rows], "pagination": pagination_meta(params, total)}


class UserService:
    """User administration with role assignment rules."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.UserRepository(session)
        self.audit = AuditService(session)

    @staticmethod
    def serialize(user: models.User, created_orders: Optional[int] = None) -> dict:
        out = dump(user, exclude={"password_hash"})
        out["role_display_name"] = permissions.role_display_name(user.role)
        if created_orders is not None:
            out["created_orders"] = created_orders
        return out

    def list(self, params: PageParams, search: str = "", role: Optional[str] = None):
        rows, total = self.repo.list(params, search, role)
        counts = self.repo.created_order_counts(u.id for u in rows)
        return {
            "users": [self.serialize(u, counts.get(u.id, 0)) for u in rows],
            "pagination": pagination_meta(params, total),
        }

    def _check_role_assignment(self, actor: models.User, role: models.UserRole):
        if not permissions.has_permission(actor.role, "USERS", "MANAGE_ROLES"):
            raise PermissionDenied("USERS", "MANAGE_ROLES")
        if role not in permissions.available_roles(actor.role):
            raise PermissionDenied("USERS", "MANAGE_ROLES", f"You cannot assign the {role.value} role")

    def _check_email(self, email: str, exclude_id: Optional[int] = None) -> str:
        email = email.strip()
        if not EMAIL_RE.match(email):
            raise ValueError("invalid email format")
        existing = self.repo.get_by_email(email)
        if existing and existing.id != exclude_id:
            raise ValueError("email already in use")
        return email

    @staticmethod
    def _check_password(password: str) -> str:
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValueError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
        return password

    def create(self, actor: models.User, data: dict) -> dict:
        """Create a user.

        Roles other than VIEWER may only be assigned by users holding
        USERS:MANAGE_ROLES and only up to the actor's own level.
        """
        name = _require(data.get("name"), "name is required")
        email = self._check_email(_require(data.get("email"), "email is required"))
        password = self._check_password(data.get("password") or "")
        role = data.get("role") or models.UserRole.VIEWER
        if role != models.UserRole.VIEWER:
            self._check_role_assignment(actor, role)
        user = models.User(
            name=name,
            email=email,
            password_hash=AuthService.hash_password(password),
            role=role,
            status=data.get("status") or models.UserStatus.ACTIVE,
        )
        user = self.repo.save(user)
        self.audit.record(actor.id, "CREATE", "USER", user.id, {"email": user.email, "role": user.role.value})
        logger.info("user %s created by %s", user.id, actor.id)
        return self.serialize(user, 0)

    def _load(self, user_id: int) -> models.User:
        user = self.repo.get(user_id)
        if not user:
            raise NotFoundError("user not found")
        return user

    def get(self, actor: models.User, user_id: int) -> dict:
        if actor.id != user_id and not permissions.has_permission(actor.role, "USERS", "READ"):
            raise PermissionDenied("USERS", "READ")
        user = self._load(user_id)
        counts = self.repo.created_order_counts([user.id])
        return self.serialize(user, counts.get(user.id, 0))

    def update(self, actor: models.User, user_id: int, changes: dict) -> dict:
        """Apply a partial update.

        Users may always edit their own name, email and password; editing
        others needs USERS:UPDATE. Role changes need USERS:MANAGE_ROLES and
        status changes need USERS:UPDATE.
        """
        can_update = permissions.has_permission(actor.role, "USERS", "UPDATE")
        if actor.id != user_id and not can_update:
            raise PermissionDenied("USERS", "UPDATE")
        user = self._load(user_id)
        audit_values = {}
        if changes.get("role") is not None and changes["role"] != user.role:
            self._check_role_assignment(actor, changes["role"])
            user.role = changes["role"]
            audit_values["role"] = user.role.value
        if changes.get("status") is not None and changes["status"] != user.status:
            if not can_update:
                raise PermissionDenied("USERS", "UPDATE")
            user.status = changes["status"]
            audit_values["status"] = user.status.value
        if changes.get("name") is not None:
            user.name = _require(changes["name"], "name is required")
            audit_values["name"] = user.name
        if changes.get("email") is not None:
            user.email = self._check_email(changes["email"], exclude_id=user.id)
            audit_values["email"] = user.email
        if changes.get("password"):
            user.password_hash = AuthService.hash_password(self._check_password(changes["password"]))
            audit_values["password"] = "changed"
        user = self.repo.save(user)
        self.audit.record(actor.id, "UPDATE", "USER", user.id, audit_values)
        counts = self.repo.created_order_counts([user.id])
        return self.serialize(user, counts.get(user.id, 0))

    def delete(self, actor: models.User, user_id: int) -> None:
        if actor.id == user_id:
            raise ValueError("you cannot delete your own account")
        user = self._load(user_id)
        if self.repo.created_order_counts([user.id]).get(user.id, 0) > 0:
            raise ValueError("cannot delete a user who has created orders")
        email = user.email
        self.repo.delete(user)
        self.audit.record(actor.id, "DELETE", "USER", user_id, {"email": email})
        logger.info("user %s deleted by %s", user_id, actor.id)


class CategoryService:
    """Category tree maintenance."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.CategoryRepository(session)

    def _serialize(self, category: models.Category, product_counts: dict, children_counts: dict, parents: dict) -> dict:
        out = dump(category)
        out["product_count"] = product_counts.get(category.id, 0)
        out["children_count"] = children_counts.get(category.id, 0)
        out["parent"] = _ref(parents.get(category.parent_id), "id", "name", "slug")
        return out

    def _decorate(self, categories: List[models.Category]) -> List[dict]:
        ids = [c.id for c in categories]
        product_counts = self.repo.product_counts(ids)
        children_counts = self.repo.children_counts(ids)
        parents = {pid: self.repo.get(pid) for pid in {c.parent_id for c in categories if c.parent_id}}
        return [self._serialize(c, product_counts, children_counts, parents) for c in categories]

    def list(self, include_inactive: bool = False, parent_id: Optional[str] = None) -> dict:
        """List categories.

        `parent_id` of `"null"` or `""` restricts to root categories; a
        numeric value restricts to that parent's children.
        """
        if parent_id is None:
            rows = self.repo.list(include_inactive)
        elif parent_id.strip().lower() in ("", "null"):
            rows = self.repo.list(include_inactive, parent_filter="root")
        else:
            try:
                pid = int(parent_id)
            except ValueError:
                raise ValueError("parent_id must be an integer or 'null'")
            rows = self.repo.list(include_inactive, parent_filter="parent", parent_id=pid)
        return {"categories": self._decorate(rows), "total": len(rows)}

    def _load(self, category_id: int) -> models.Category:
        category = self.repo.get(category_id)
        if not category:
            raise NotFoundError("category not found")
        return category

    def _check_slug(self, slug: str, exclude_id: Optional[int] = None) -> str:
        slug = slugify(slug)
        if not slug:
            raise ValueError("slug is required")
        existing = self.repo.get_by_slug(slug)
        if existing and existing.id != exclude_id:
            raise ValueError("slug already exists")
        return slug

    def _check_parent(self, parent_id: Optional[int], category_id: Optional[int] = None) -> Optional[int]:
        if parent_id is None:
            return None
        if category_id is not None and parent_id == category_id:
            raise ValueError("a category cannot be its own parent")
        parent = self.repo.get(parent_id)
        if not parent:
            raise ValueError("parent category not found")
        if category_id is not None:
            # walk up from the new parent; meeting ourselves means a cycle
            seen = set()
            node = parent
            while node is not None and node.parent_id is not None and node.id not in seen:
                seen.add(node.id)
                if node.parent_id == category_id:
                    raise ValueError("a category cannot be moved under its own descendant")
                node = self.repo.get(node.parent_id)
        return parent_id

    def create(self, data: dict) -> dict:
        name = _require(data.get("name"), "name is required")
        category = models.Category(
            name=name,
            slug=self._check_slug(data.get("slug") or name),
            description=data.get("description") or "",
            parent_id=self._check_parent(data.get("parent_id")),
            is_active=data.get("is_active", True),
        )
        category = self.repo.save(category)
        return self._decorate([category])[0]

    def get(self, category_id: int) -> dict:
        category = self._load(category_id)
        out = self._decorate([category])[0]
        out["children"] = self._decorate(self.repo.children(category.id))
        out["products"] = [
            _ref(p, "id", "name", "slug", "sku", "price", "quantity", "status")
            for p in self.repo.products(category.id)
        ]
        return out

    def update(self, category_id: int, data: dict) -> dict:
        category = self._load(category_id)
        category.name = _require(data.get("name"), "name is required")
        category.slug = self._check_slug(_require(data.get("slug"), "slug is required"), exclude_id=category.id)
        if "description" in data:
            category.description = data.get("description") or ""
        if "parent_id" in data:
            category.parent_id = self._check_parent(data.get("parent_id"), category.id)
        if data.get("is_active") is not None:
            category.is_active = data["is_active"]
        category = self.repo.save(category)
        return self._decorate([category])[0]

    def delete(self, category_id: int) -> None:
        category = self._load(category_id)
        if self.repo.product_counts([category.id]).get(category.id, 0):
            raise ValueError("cannot delete a category that still has products")
        if self.repo.children_counts([category.id]).get(category.id, 0):
            raise ValueError("cannot delete a category that has subcategories")
        self.repo.delete(category)


class BrandService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.BrandRepository(session)

    def _decorate(self, brands: List[models.Brand]) -> List[dict]:
        counts = self.repo.product_counts(b.id for b in brands)
        out = []
        for b in brands:
            row = dump(b)
            row["product_count"] = counts.get(b.id, 0)
            out.append(row)
        return out

    def list(self, include_inactive: bool = False, search: str = "") -> dict:
        rows = self.repo.list(include_inactive, search)
        return {"brands": self._decorate(rows), "total": len(rows)}

    def _load(self, brand_id: int) -> models.Brand:
        brand = self.repo.get(brand_id)
        if not brand:
            raise NotFoundError("brand not found")
        return brand

    def _check_slug(self, slug: str, exclude_id: Optional[int] = None) -> str:
        slug = slugify(slug)
        if not slug:
            raise ValueError("slug is required")
        existing = self.repo.get_by_slug(slug)
        if existing and existing.id != exclude_id:
            raise ValueError("slug already exists")
        return slug

    def _check_name(self, name: str, exclude_id: Optional[int] = None) -> str:
        name = _require(name, "name is required")
        existing = self.repo.get_by_name(name)
        if existing and existing.id != exclude_id:
            raise ValueError("brand name already exists")
        return name

    def create(self, data: dict) -> dict:
        name = self._check_name(data.get("name"))
        brand = models.Brand(
            name=name,
            slug=self._check_slug(data.get("slug") or name),
            description=data.get("description") or "",
            logo=data.get("logo") or "",
            website=data.get("website") or "",
            is_active=data.get("is_active", True),
        )
        return self._decorate([self.repo.save(brand)])[0]

    def get(self, brand_id: int) -> dict:
        brand = self._load(brand_id)
        out = self._decorate([brand])[0]
        out["products"] = [
            _ref(p, "id", "name", "slug", "sku", "price", "quantity", "status")
            for p in self.repo.products(brand.id)
        ]
        return out

    def update(self, brand_id: int, changes: dict) -> dict:
        brand = self._load(brand_id)
        if changes.get("name") is not None:
            brand.name = self._check_name(changes["name"], exclude_id=brand.id)
        if changes.get("slug") is not None:
            brand.slug = self._check_slug(changes["slug"], exclude_id=brand.id)
        for field in ("description", "logo", "website"):
            if field in changes:
                setattr(brand, field, changes[field] or "")
        if changes.get("is_active") is not None:
            brand.is_active = changes["is_active"]
        return self._decorate([self.repo.save(brand)])[0]

    def delete(self, brand_id: int) -> None:
        brand = self._load(brand_id)
        if self.repo.product_counts([brand.id]).get(brand.id, 0):
            raise ValueError("cannot delete a brand that still has products")
        self.repo.delete(brand)


class ProductService:
    """Catalog products: validation, slugs and relation checks."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.ProductRepository(session)
        self.categories = repositories.CategoryRepository(session)
        self.brands = repositories.BrandRepository(session)

    def serialize(self, product: models.Product) -> dict:
        out = dump(product)
        category = self.categories.get(product.category_id) if product.category_id else None
        brand = self.brands.get(product.brand_id) if product.brand_id else None
        out["category"] = _ref(category, "id", "name", "slug")
        out["brand"] = _ref(brand, "id", "name", "slug")
        return out

    def list(self, params: PageParams, **filters) -> dict:
        rows, total = self.repo.list(params, **filters)
        return {"products": [self.serialize(p) for p in rows], "pagination": pagination_meta(params, total)}

    def _load(self, product_id: int) -> models.Product:
        product = self.repo.get(product_id)
        if not product:
            raise NotFoundError("product not found")
        return product

    def _unique_slug(self, name: str, current: Optional[models.Product] = None) -> str:
        base = slugify(name) or "product"
        slug, n = base, 2
        while self.repo.slug_exists(slug) and not (current is not None and current.slug == slug):
            slug = f"{base}-{n}"
            n += 1
        return slug

    def _check_relations(self, data: dict):
        if data.get("category_id") is not None and not self.categories.get(data["category_id"]):
            raise ValueError("category not found")
        if data.get("brand_id") is not None and not self.brands.get(data["brand_id"]):
            raise ValueError("brand not found")

    @staticmethod
    def _check_numbers(data: dict):
        if "price" in data and (data["price"] is None or data["price"] <= 0):
            raise ValueError("price must be greater than 0")
        for field in ("cost_price", "compare_price"):
            if data.get(field) is not None and data[field] < 0:
                raise ValueError(f"{field} must not be negative")
        if data.get("quantity") is not None and data["quantity"] < 0:
            raise ValueError("quantity must not be negative")
        if data.get("reorder_level") is not None and data["reorder_level"] < 0:
            raise ValueError("reorder_level must not be negative")

    def create(self, data: dict) -> dict:
        name = _require(data.get("name"), "name is required")
        sku = _require(data.get("sku"), "sku is required")
        self._check_numbers(data)
        if self.repo.get_by_sku(sku):
            raise ValueError("sku already exists")
        self._check_relations(data)
        fields = {k: v for k, v in data.items() if k not in ("name", "sku") and v is not None}
        product = models.Product(name=name, sku=sku, slug=self._unique_slug(name), **fields)
        product = self.repo.save(product)
        logger.info("product %s created (sku=%s)", product.id, product.sku)
        return self.serialize(product)

    def get(self, product_id: int) -> dict:
        return self.serialize(self._load(product_id))

    def update(self, product_id: int, changes: dict) -> dict:
        product = self._load(product_id)
        self._check_numbers(changes)
        if changes.get("sku") is not None:
            sku = _require(changes["sku"], "sku is required")
            existing = self.repo.get_by_sku(sku)
            if existing and existing.id != product.id:
                raise ValueError("sku already exists")
            changes["sku"] = sku
        self._check_relations(changes)
        if changes.get("name") is not None:
            name = _require(changes["name"], "name is required")
            if name != product.name:
                product.slug = self._unique_slug(name, current=product)
            changes["name"] = name
        for field, value in changes.items():
            if value is None and field not in ("description", "barcode", "cost_price", "compare_price", "category_id", "brand_id"):
                continue
            setattr(product, field, value)
        return self.serialize(self.repo.save(product))

    def delete(self, product_id: int) -> None:
        product = self._load(product_id)
        if self.repo.has_order_items(product.id):
            raise ValueError("cannot delete a product that appears in orders")
        self.repo.delete(product)


class InventoryService:
    """Stock levels and manual stock adjustments."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.ProductRepository(session)
        self.logs = repositories.InventoryLogRepository(session)
        self.products = ProductService(session)

    def list(self, params: PageParams, search: str = "", low_stock: bool = False) -> dict:
        """Tracked products lowest stock first, with stats over the whole filtered set."""
        rows = self.repo.tracked(search, LOW_STOCK if low_stock else None)
        page = rows[params.offset:params.offset + params.limit]
        items = []
        for p in page:
            row = self.products.serialize(p)
            row["stock_level"] = stock_level(p.quantity)
            items.append(row)
        levels = [stock_level(p.quantity) for p in rows]
        stats = {
            "total_products": len(rows),
            "critical_stock": levels.count("critical"),
            "low_stock": levels.count("low"),
            "average_stock": round(sum(p.quantity for p in rows) / len(rows), 2) if rows else 0,
        }
        return {"inventory": items, "stats": stats, "pagination": pagination_meta(params, len(rows))}

    def adjust(self, actor: models.User, product_id: int, change: int, reason: str = "") -> dict:
        product = self.repo.get(product_id)
        if not product:
            raise NotFoundError("product not found")
        if change == 0:
            raise ValueError("change must not be zero")
        new_quantity = product.quantity + change
        if new_quantity < 0:
            raise ValueError("stock cannot go below zero")
        product.quantity = new_quantity
        self.session.add(product)
        self.session.add(models.InventoryLog(
            product_id=product.id, change=change, quantity_after=new_quantity, reason=reason or "manual adjustment", user_id=actor.id,
        ))
        self.session.commit()
        self.session.refresh(product)
        logger.info("stock of product %s adjusted by %s to %s", product.id, change, new_quantity)
        row = self.products.serialize(product)
        row["stock_level"] = stock_level(product.quantity)
        return row

    def history(self, product_id: int, params: PageParams) -> dict:
        if not self.repo.get(product_id):
            raise NotFoundError("product not found")
        rows, total = self.logs.list_for_product(product_id, params)
        return {"logs": [dump(r) for r in rows], "pagination": pagination_meta(params, total)}


class CustomerService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.CustomerRepository(session)

    @staticmethod
    def _with_stats(customer: models.Customer, stats: dict) -> dict:
        out = dump(customer)
        s = stats.get(customer.id) or {}
        out["total_spent"] = round(s.get("total_spent", 0.0), 2)
        out["total_orders"] = s.get("total_orders", 0)
        out["last_order_date"] = s.get("last_order_date")
        return out

    def list(self, params: PageParams, **filters) -> dict:
        rows, total = self.repo.list(params, **filters)
        stats = self.repo.order_stats(c.id for c in rows)
        return {
            "customers": [self._with_stats(c, stats) for c in rows],
            "pagination": pagination_meta(params, total),
        }

    def _load(self, customer_id: int) -> models.Customer:
        customer = self.repo.get(customer_id)
        if not customer:
            raise NotFoundError("customer not found")
        return customer

    def _check_email(self, email: str, exclude_id: Optional[int] = None) -> str:
        email = _require(email, "email is required")
        if not EMAIL_RE.match(email):
            raise ValueError("invalid email format")
        existing = self.repo.get_by_email(email)
        if existing and existing.id != exclude_id:
            raise ValueError("email already in use")
        return email

    def create(self, data: dict) -> dict:
        customer = models.Customer(
            first_name=_require(data.get("first_name"), "first_name is required"),
            last_name=_require(data.get("last_name"), "last_name is required"),
            email=self._check_email(data.get("email")),
            phone=data.get("phone"),
            status=data.get("status") or models.CustomerStatus.ACTIVE,
            segment=data.get("segment") or models.CustomerSegment.REGULAR,
            notes=data.get("notes"),
        )
        customer = self.repo.save(customer)
        return self._with_stats(customer, {})

    def get(self, customer_id: int) -> dict:
        """Customer detail with orders newest first and RFM/value segments."""
        customer = self._load(customer_id)
        orders = self.repo.orders(customer.id)
        stats = self.repo.order_stats([customer.id])
        out = self._with_stats(customer, stats)
        out["orders"] = [
            _ref(o, "id", "order_number", "status", "total_amount", "created_at") for o in orders
        ]
        if orders:
            days = days_between(orders[0].created_at, utcnow())
            out["rfm_score"] = rfm_score(days, out["total_orders"], out["total_spent"])
        else:
            out["rfm_score"] = None
        out["value_segment"] = customer_value_segment(out["total_spent"], out["total_orders"])
        return out

    def update(self, customer_id: int, changes: dict) -> dict:
        customer = self._load(customer_id)
        if changes.get("email") is not None:
            changes["email"] = self._check_email(changes["email"], exclude_id=customer.id)
        for field in ("first_name", "last_name"):
            if field in changes:
                changes[field] = _require(changes[field], f"{field} is required")
        for field, value in changes.items():
            if value is None and field not in ("phone", "notes"):
                continue
            setattr(customer, field, value)
        customer = self.repo.save(customer)
        return self._with_stats(customer, self.repo.order_stats([customer.id]))

    def delete(self, customer_id: int) -> None:
        customer = self._load(customer_id)
        if self.repo.has_orders(customer.id):
            raise ValueError("cannot delete a customer who has orders")
        self.repo.delete(customer)


class OrderService:
    """Order creation, status updates and deletion.

    Creating an order snapshots product names and prices, decrements stock
    for tracked products and applies an optional coupon. Cancelling an
    order puts tracked stock and the coupon use back.
    """
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.OrderRepository(session)
        self.customers = repositories.CustomerRepository(session)
        self.products = repositories.ProductRepository(session)
        self.coupons = repositories.CouponRepository(session)
        self.users = repositories.UserRepository(session)
        self.audit = AuditService(session)

    def serialize(self, order: models.Order, items: Optional[List[models.OrderItem]] = None, customer=None, creator=None) -> dict:
        out = dump(order)
        out["items"] = [dump(i) for i in (items if items is not None else self.repo.items(order.id))]
        if customer is None:
            customer = self.customers.get(order.customer_id)
        out["customer"] = _ref(customer, "id", "first_name", "last_name", "email", "phone")
        if creator is None and order.created_by_id:
            creator = self.users.get(order.created_by_id)
        out["created_by"] = _ref(creator, "id", "name", "email")
        return out

    def list(self, params: PageParams, search: str = "", status: Optional[str] = None) -> dict:
        rows, total = self.repo.list(params, search, status)
        items = self.repo.items_for(o.id for o in rows)
        customers = self.customers.get_many(o.customer_id for o in rows)
        return {
            "orders": [self.serialize(o, items[o.id], customers.get(o.customer_id)) for o in rows],
            "pagination": pagination_meta(params, total),
        }

    def _load(self, order_id: int) -> models.Order:
        order = self.repo.get(order_id)
        if not order:
            raise NotFoundError("order not found")
        return order

    def _next_number(self, now: datetime) -> str:
        prefix = f"ORD-{now.year}-"
        seq = self.repo.count_for_year_prefix(prefix) + 1
        number = format_order_number(now.year, seq)
        while self.repo.number_exists(number):
            seq += 1
            number = format_order_number(now.year, seq)
        return number

    def _coupon_discount(self, code: str, subtotal: float, lines: List[tuple], now: datetime):
        """Validate `code` for this order and return `(coupon, discount)`.

        When the coupon lists applicable products or categories only the
        matching lines count towards the discounted amount.
        """
        coupon = self.coupons.get_by_code(normalise_code(code))
        if not coupon:
            raise ValueError("coupon not found")
        state = coupon_state(coupon, now)
        if state != "ACTIVE":
            raise ValueError(f"coupon is not usable ({state.lower()})")
        if subtotal < (coupon.minimum_amount or 0):
            raise ValueError(f"order subtotal must be at least {coupon.minimum_amount:.2f} to use this coupon")
        eligible = subtotal
        if coupon.applicable_products or coupon.applicable_categories:
            eligible = sum(
                line_total for product, line_total in lines
                if product.id in (coupon.applicable_products or [])
                or (product.category_id is not None and product.category_id in (coupon.applicable_categories or []))
            )
            if eligible <= 0:
                raise ValueError("coupon does not apply to the ordered products")
        discount = calculate_discount(eligible, coupon.type.value, coupon.value, coupon.maximum_discount)
        return coupon, discount

    def create(self, actor: models.User, data: dict) -> dict:
        customer = self.customers.get(data.get("customer_id"))
        if not customer:
            raise ValueError("customer not found")
        requested = data.get("items") or []
        if not requested:
            raise ValueError("order must contain at least one item")
        products = self.products.get_many(i["product_id"] for i in requested)
        wanted = defaultdict(int)
        for line in requested:
            if line["product_id"] not in products:
                raise ValueError(f"product not found: {line['product_id']}")
            if line["quantity"] <= 0:
                raise ValueError("quantity must be greater than 0")
            wanted[line["product_id"]] += line["quantity"]
        for pid, qty in wanted.items():
            p = products[pid]
            if p.track_quantity and p.quantity < qty:
                raise ValueError(f"insufficient stock for {p.sku}: {p.quantity} available")

        now = utcnow()
        items, lines = [], []
        for line in requested:
            p = products[line["product_id"]]
            line_total = round(p.price * line["quantity"], 2)
            items.append(models.OrderItem(
                product_id=p.id, product_name=p.name, product_sku=p.sku,
                quantity=line["quantity"], price=p.price, total_amount=line_total,
            ))
            lines.append((p, line_total))
        subtotal = round(sum(t for _, t in lines), 2)

        coupon, discount = None, 0.0
        if data.get("coupon_code"):
            coupon, discount = self._coupon_discount(data["coupon_code"], subtotal, lines, now)
            coupon.usage_count += 1

        shipping = round(data.get("shipping_amount") or 0.0, 2)
        order = models.Order(
            order_number=self._next_number(now),
            customer_id=customer.id,
            customer_email=customer.email,
            status=models.OrderStatus.PENDING,
            subtotal=subtotal,
            shipping_amount=shipping,
            discount_amount=discount,
            total_amount=round(max(subtotal - discount, 0.0) + shipping, 2),
            notes=data.get("notes"),
            shipping_address=data.get("shipping_address"),
            created_by_id=actor.id,
            created_at=now,
        )
        touched, logs = [], []
        for pid, qty in wanted.items():
            p = products[pid]
            if p.track_quantity:
                p.quantity -= qty
                touched.append(p)
                logs.append(models.InventoryLog(product_id=p.id, change=-qty, quantity_after=p.quantity, reason="order", user_id=actor.id))
        order = self.repo.create(order, items, touched, coupon, logs)
        logger.info("order %s created (%s items, total=%.2f)", order.order_number, len(items), order.total_amount)
        return self.serialize(order, customer=customer, creator=actor)

    def get(self, order_id: int) -> dict:
        return self.serialize(self._load(order_id))

    def _restock(self, order: models.Order, actor: models.User, reason: str):
        for item in self.repo.items(order.id):
            p = self.products.get(item.product_id)
            if p is not None and p.track_quantity:
                p.quantity += item.quantity
                self.session.add(p)
                self.session.add(models.InventoryLog(
                    product_id=p.id, change=item.quantity, quantity_after=p.quantity, reason=reason, user_id=actor.id,
                ))

    def _release_coupons(self, order: models.Order):
        for coupon in self.repo.coupons_for(order.id):
            coupon.usage_count = max((coupon.usage_count or 0) - 1, 0)
            self.session.add(coupon)
            logger.info("coupon %s use released by order %s", coupon.code, order.order_number)

    def update(self, actor: models.User, order_id: int, changes: dict) -> dict:
        order = self._load(order_id)
        if order.status in FROZEN_ORDER_STATUSES:
            raise ValueError("cannot modify a completed or cancelled order")
        new_status = changes.get("status")
        if new_status is not None and new_status != order.status:
            if new_status == models.OrderStatus.CANCELLED:
                self._restock(order, actor, f"order {order.order_number} cancelled")
                self._release_coupons(order)
            logger.info("order %s status %s -> %s", order.order_number, order.status.value, new_status.value)
            order.status = new_status
        if "notes" in changes:
            order.notes = changes["notes"]
        if "tracking_number" in changes:
            order.tracking_number = changes["tracking_number"]
        order = self.repo.save(order)
        return self.serialize(order)

    def delete(self, actor: models.User, order_id: int) -> None:
        order = self._load(order_id)
        if order.status not in DELETABLE_ORDER_STATUSES:
            raise ValueError("only pending or cancelled orders can be deleted")
        if order.status == models.OrderStatus.PENDING:
            self._restock(order, actor, f"order {order.order_number} deleted")
            self._release_coupons(order)
        number = order.order_number
        self.repo.delete_with_items(order)
        self.audit.record(actor.id, "DELETE", "ORDER", order_id, {"order_number": number})

    def revenue(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
        total, count = self.repo.revenue(start, end)
        return {"total_revenue": round(total, 2), "order_count": count, "start_date": start, "end_date": end}
