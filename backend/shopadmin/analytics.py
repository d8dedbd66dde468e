"""Dashboard analytics aggregated from orders, customers and products.

Aggregation happens in Python over the rows of the requested window;
cancelled orders never count towards revenue.
"""

from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from . import models, repositories
from .utils.dates import month_starts, next_month, period_start, utcnow
from .utils.scoring import LOW_STOCK, OVERSTOCK, growth_rate, order_count_segment

EXCLUDED = [models.OrderStatus.CANCELLED]


def _share(part: float, whole: float) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


class AnalyticsService:
    def __init__(self, session: Session, now: Optional[datetime] = None):
        self.session = session
        self.now = now or utcnow()
        self.orders = repositories.OrderRepository(session)
        self.products = repositories.ProductRepository(session)
        self.categories = repositories.CategoryRepository(session)

    def _customers_created(self, start: datetime, end: datetime) -> int:
        stmt = select(models.Customer.id).where(models.Customer.created_at >= start, models.Customer.created_at < end)
        return len(self.session.exec(stmt).all())

    def _window(self, start: datetime, end: datetime) -> dict:
        orders = self.orders.in_window(start, end, exclude=EXCLUDED)
        per_customer = defaultdict(int)
        for o in orders:
            per_customer[o.customer_id] += 1
        return {
            "revenue": round(sum(o.total_amount for o in orders), 2),
            "orders": len(orders),
            "customers": self._customers_created(start, end),
            "returning": sum(1 for n in per_customer.values() if n > 1),
        }

    def overview(self, period: str) -> dict:
        """Headline numbers for `period` with growth versus the preceding window."""
        start = period_start(period, self.now)
        current = self._window(start, self.now)
        previous = self._window(start - (self.now - start), start)
        orders = current["orders"]
        return {
            "period": period if period in ("30days", "90days", "12months") else "30days",
            "total_revenue": current["revenue"],
            "total_orders": orders,
            "total_customers": current["customers"],
            "average_order_value": round(current["revenue"] / orders, 2) if orders else 0.0,
            "conversion_rate": round(orders / current["customers"] * 100, 2) if current["customers"] else 0.0,
            "returning_customers": current["returning"],
            "new_customers": max(current["customers"] - current["returning"], 0),
            "revenue_growth": growth_rate(current["revenue"], previous["revenue"]),
            "order_growth": growth_rate(orders, previous["orders"]),
            "customer_growth": growth_rate(current["customers"], previous["customers"]),
        }

    def sales_chart(self) -> dict:
        months = month_starts(12, self.now)
        orders = self.orders.in_window(months[0], next_month(months[-1]), exclude=EXCLUDED)
        revenue = defaultdict(float)
        counts = defaultdict(int)
        for o in orders:
            key = o.created_at.strftime("%Y-%m")
            revenue[key] += o.total_amount
            counts[key] += 1
        labels = [m.strftime("%Y-%m") for m in months]
        return {
            "labels": labels,
            "revenue": [round(revenue[k], 2) for k in labels],
            "orders": [counts[k] for k in labels],
        }

    def _sold_lines(self) -> List[models.OrderItem]:
        stmt = (
            select(models.OrderItem)
            .join(models.Order, models.Order.id == models.OrderItem.order_id)
            .where(models.Order.status != models.OrderStatus.CANCELLED)
        )
        return self.session.exec(stmt).all()

    def top_products(self, limit: int = 5) -> List[dict]:
        revenue: Dict[int, float] = defaultdict(float)
        units: Dict[int, int] = defaultdict(int)
        names: Dict[int, str] = {}
        for line in self._sold_lines():
            revenue[line.product_id] += line.total_amount
            units[line.product_id] += line.quantity
            names[line.product_id] = line.product_name
        ranked = sorted(revenue, key=lambda pid: (-revenue[pid], pid))[:limit]
        products = self.products.get_many(ranked)
        out = []
        for pid in ranked:
            product = products.get(pid)
            category = self.categories.get(product.category_id) if product and product.category_id else None
            out.append({
                "id": pid,
                "name": product.name if product else names[pid],
                "category": category.name if category else "Uncategorized",
                "revenue": round(revenue[pid], 2),
                "units": units[pid],
            })
        return out

    def top_categories(self, limit: int = 6) -> List[dict]:
        lines = self._sold_lines()
        products = self.products.get_many(l.product_id for l in lines)
        names = {c.id: c.name for c in self.categories.all()}
        revenue: Dict[str, float] = defaultdict(float)
        for line in lines:
            product = products.get(line.product_id)
            name = names.get(product.category_id) if product and product.category_id else None
            revenue[name or "Uncategorized"] += line.total_amount
        total = sum(revenue.values())
        ranked = sorted(revenue.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]
        return [{"name": n, "revenue": round(r, 2), "percentage": _share(r, total)} for n, r in ranked]

    def customer_segments(self) -> List[dict]:
        orders = self.orders.in_window(exclude=EXCLUDED)
        counts = defaultdict(int)
        spent = defaultdict(float)
        for o in orders:
            counts[o.customer_id] += 1
            spent[o.customer_id] += o.total_amount
        buckets = {name: {"segment": name, "count": 0, "revenue": 0.0} for name in ("VIP", "Regular", "New")}
        for cid, n in counts.items():
            name = order_count_segment(n)
            if name:
                buckets[name]["count"] += 1
                buckets[name]["revenue"] += spent[cid]
        total = sum(b["revenue"] for b in buckets.values())
        out = []
        for b in buckets.values():
            b["revenue"] = round(b["revenue"], 2)
            b["percentage"] = _share(b["revenue"], total)
            out.append(b)
        return out

    def inventory(self) -> dict:
        products = self.products.all()
        names = {c.id: c.name for c in self.categories.all()}
        per_category = defaultdict(lambda: {"products": 0, "stock": 0, "value": 0.0})
        for p in products:
            bucket = per_category[names.get(p.category_id, "Uncategorized")]
            bucket["products"] += 1
            bucket["stock"] += p.quantity
            bucket["value"] += p.price * p.quantity
        return {
            "total_products": len(products),
            "low_stock": sum(1 for p in products if 0 < p.quantity <= LOW_STOCK),
            "out_of_stock": sum(1 for p in products if p.quantity <= 0),
            "overstocked": sum(1 for p in products if p.quantity > OVERSTOCK),
            "total_value": round(sum(p.price * p.quantity for p in products), 2),
            "categories": [
                {"name": name, "products": b["products"], "stock": b["stock"], "value": round(b["value"], 2)}
                for name, b in sorted(per_category.items())
            ],
        }

    @staticmethod
    def traffic() -> dict:
        # needs an external analytics provider
        return {
            "total_visitors": 0,
            "unique_visitors": 0,
            "page_views": 0,
            "bounce_rate": 0,
            "avg_session_duration": "0:00",
            "sources": [],
        }

    def build(self, analytics_type: str, period: str) -> dict:
        if analytics_type == "overview":
            return {"overview": self.overview(period), "sales_chart": self.sales_chart()}
        if analytics_type == "products":
            return {"top_products": self.top_products(), "top_categories": self.top_categories()}
        if analytics_type == "customers":
            ov = self.overview(period)
            return {
                "customer_segments": self.customer_segments(),
                "overview": {k: ov[k] for k in ("total_customers", "new_customers", "returning_customers", "customer_growth")},
            }
        if analytics_type == "traffic":
            return {"traffic": self.traffic()}
        if analytics_type == "inventory":
            return {"inventory": self.inventory()}
        return {
            "overview": self.overview(period),
            "sales_chart": self.sales_chart(),
            "top_products": self.top_products(),
            "top_categories": self.top_categories(),
            "customer_segments": self.customer_segments(),
            "inventory": self.inventory(),
        }
