"""Tabular business reports (sales, inventory, customers, products).

Every report returns `{"data": [...], "summary": {...}}`; the rows are
flat dicts so they can also be rendered as CSV.
"""

import math
from collections import defaultdict
from datetime import datetime, timedelta
from typing import List, Optional

from sqlmodel import Session, col, select

from . import models, repositories
from .utils.dates import days_between, utcnow
from .utils.scoring import (
    customer_value_segment,
    days_on_hand,
    inventory_status,
    rfm_score,
    turnover_rate,
)

REPORT_TYPES = ("sales", "inventory", "customers", "products")
REPORT_FORMATS = ("json", "csv")
FULFILLED = [models.OrderStatus.COMPLETED, models.OrderStatus.DELIVERED]
ESTIMATED_COST_RATIO = 0.7
ESTIMATED_MARGIN = 0.3
ACTIVE_CUSTOMER_DAYS = 90


def _avg(values: List[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


class ReportService:
    def __init__(self, session: Session, now: Optional[datetime] = None):
        self.session = session
        self.now = now or utcnow()
        self.orders = repositories.OrderRepository(session)
        self.products = repositories.ProductRepository(session)
        self.categories = repositories.CategoryRepository(session)
        self.brands = repositories.BrandRepository(session)
        self.reviews = repositories.ReviewRepository(session)

    def _names(self):
        categories = {c.id: c.name for c in self.categories.all()}
        brands = {b.id: b.name for b in self.brands.list(include_inactive=True)}
        return categories, brands

    def sales_report(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
        """COMPLETED orders grouped per day; defaults to the last 30 days."""
        start = start or self.now - timedelta(days=30)
        end = end or self.now
        orders = self.orders.in_window(start, end, statuses=[models.OrderStatus.COMPLETED])
        days = {}
        for o in orders:
            key = o.created_at.date().isoformat()
            day = days.setdefault(key, {"revenue": 0.0, "orders": 0, "customers": set()})
            day["revenue"] += o.total_amount
            day["orders"] += 1
            day["customers"].add(o.customer_id)
        data = [
            {
                "date": key,
                "revenue": round(d["revenue"], 2),
                "orders": d["orders"],
                "customers": len(d["customers"]),
                "average_order_value": math.floor(d["revenue"] / d["orders"]) if d["orders"] else 0,
            }
            for key, d in sorted(days.items())
        ]
        summary = {
            "total_revenue": round(sum(d["revenue"] for d in data), 2),
            "total_orders": sum(d["orders"] for d in data),
            "total_customers": len({o.customer_id for o in orders}),
            "average_order_value": _avg([d["average_order_value"] for d in data]),
            "start_date": start.date().isoformat(),
            "end_date": (end - timedelta(seconds=1)).date().isoformat(),
        }
        return {"data": data, "summary": summary}

    def _units_sold_since(self, since: datetime) -> dict:
        stmt = (
            select(models.OrderItem.product_id, models.OrderItem.quantity)
            .join(models.Order, models.Order.id == models.OrderItem.order_id)
            .where(models.Order.created_at >= since)
        )
        sold = defaultdict(int)
        for pid, qty in self.session.exec(stmt).all():
            sold[pid] += qty
        return sold

    def inventory_report(self) -> dict:
        """Per product stock position with a turnover estimate over the last year."""
        sold = self._units_sold_since(self.now - timedelta(days=365))
        categories, brands = self._names()
        data = []
        for p in sorted(self.products.all(), key=lambda p: p.name):
            turnover = turnover_rate(sold.get(p.id, 0), p.quantity)
            unit_cost = p.cost_price if p.cost_price is not None else round(p.price * ESTIMATED_COST_RATIO, 2)
            data.append({
                "id": p.id,
                "product_name": p.name,
                "sku": p.sku,
                "category": categories.get(p.category_id, "Uncategorized"),
                "brand": brands.get(p.brand_id, "No Brand"),
                "current_stock": p.quantity,
                "reorder_level": p.reorder_level,
                "status": inventory_status(p.quantity, p.reorder_level),
                "units_sold": sold.get(p.id, 0),
                "unit_cost": unit_cost,
                "value": round(unit_cost * p.quantity, 2),
                "turnover_rate": round(turnover, 1),
                "days_on_hand": days_on_hand(turnover),
                "last_updated": p.updated_at,
            })
        summary = {
            "total_products": len(data),
            "in_stock": sum(1 for r in data if r["status"] == "IN_STOCK"),
            "low_stock": sum(1 for r in data if r["status"] == "LOW_STOCK"),
            "out_of_stock": sum(1 for r in data if r["status"] == "OUT_OF_STOCK"),
            "total_value": round(sum(r["value"] for r in data), 2),
            "average_turnover": _avg([r["turnover_rate"] for r in data]),
        }
        return {"data": data, "summary": summary}

    def customer_report(self) -> dict:
        """Customer value over fulfilled (COMPLETED/DELIVERED) orders."""
        customers = self.session.exec(select(models.Customer).order_by(models.Customer.id)).all()
        by_customer = defaultdict(list)
        for o in self.orders.in_window(statuses=FULFILLED):
            by_customer[o.customer_id].append(o)
        data = []
        for c in customers:
            orders = by_customer.get(c.id, [])
            spent = sum(o.total_amount for o in orders)
            count = len(orders)
            last = max((o.created_at for o in orders), default=c.created_at)
            recency = days_between(last, self.now)
            data.append({
                "id": c.id,
                "name": f"{c.first_name} {c.last_name}",
                "email": c.email,
                "segment": customer_value_segment(spent, count),
                "registration_date": c.created_at.date().isoformat(),
                "last_order_date": last.date().isoformat(),
                "total_orders": count,
                "total_spent": math.floor(spent),
                "average_order_value": math.floor(spent / count) if count else 0,
                "lifetime_days": days_between(c.created_at, self.now),
                "rfm_score": rfm_score(recency, count, spent),
                "status": "ACTIVE" if recency <= ACTIVE_CUSTOMER_DAYS else "INACTIVE",
            })
        summary = {
            "total_customers": len(data),
            "active_customers": sum(1 for r in data if r["status"] == "ACTIVE"),
            "inactive_customers": sum(1 for r in data if r["status"] == "INACTIVE"),
            "vip_customers": sum(1 for r in data if r["segment"] == "VIP"),
            "average_lifetime_value": math.floor(sum(r["total_spent"] for r in data) / len(data)) if data else 0,
            "average_order_value": math.floor(sum(r["average_order_value"] for r in data) / len(data)) if data else 0,
        }
        return {"data": data, "summary": summary}

    def product_report(self) -> dict:
        """Sales performance of products sold in fulfilled orders, revenue descending."""
        stmt = (
            select(models.OrderItem)
            .join(models.Order, models.Order.id == models.OrderItem.order_id)
            .where(col(models.Order.status).in_(FULFILLED))
        )
        units = defaultdict(int)
        revenue = defaultdict(float)
        for item in self.session.exec(stmt).all():
            units[item.product_id] += item.quantity
            revenue[item.product_id] += item.total_amount
        products = self.products.get_many(units)
        ratings = self.reviews.rating_stats()
        categories, brands = self._names()
        data = []
        for pid in units:
            p = products.get(pid)
            if p is None:
                continue
            rev = revenue[pid]
            if p.cost_price is not None:
                profit = rev - p.cost_price * units[pid]
            else:
                profit = rev * ESTIMATED_MARGIN
            avg_rating, review_count = ratings.get(pid, (0.0, 0))
            data.append({
                "id": pid,
                "product_name": p.name,
                "sku": p.sku,
                "category": categories.get(p.category_id, "Uncategorized"),
                "brand": brands.get(p.brand_id, "No Brand"),
                "units_sold": units[pid],
                "revenue": round(rev, 2),
                "gross_profit": round(profit, 2),
                "margin_percent": round(profit / rev * 100, 1) if rev else 0.0,
                "average_rating": round(avg_rating, 1),
                "review_count": review_count,
            })
        data.sort(key=lambda r: (-r["revenue"], r["id"]))
        summary = {
            "total_products": len(data),
            "total_units_sold": sum(r["units_sold"] for r in data),
            "total_revenue": round(sum(r["revenue"] for r in data), 2),
            "total_profit": round(sum(r["gross_profit"] for r in data), 2),
            "average_margin": _avg([r["margin_percent"] for r in data]),
        }
        return {"data": data, "summary": summary}

    def build(self, report_type: str, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
        if report_type not in REPORT_TYPES:
            raise ValueError(f"invalid report type; expected one of: {', '.join(REPORT_TYPES)}")
        if report_type == "sales":
            report = self.sales_report(start, end)
        elif report_type == "inventory":
            report = self.inventory_report()
        elif report_type == "customers":
            report = self.customer_report()
        else:
            report = self.product_report()
        report["type"] = report_type
        report["generated_at"] = self.now
        return report
