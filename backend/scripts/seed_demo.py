"""Seed the database with demo users, catalog, customers, orders and marketing data.
Usage: python scripts/seed_demo.py [--reset]
"""
import sys
import argparse
import pathlib
from datetime import timedelta
# Ensure `backend/` is on sys.path so `shopadmin` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session, select
from shopadmin import models
from shopadmin.database import create_db_and_tables, drop_db_and_tables, engine
from shopadmin.marketing import CampaignService, CouponService
from shopadmin.services import AuthService, OrderService
from shopadmin.utils.dates import utcnow

DEMO_PASSWORD = 'admin123'

USERS = [
    ('Admin User', 'admin@example.com', models.UserRole.SUPER_ADMIN),
    ('Store Manager', 'manager@example.com', models.UserRole.MANAGER),
    ('Staff Member', 'staff@example.com', models.UserRole.STAFF),
]

CATEGORIES = [
    ('Electronics', 'electronics', None),
    ('Smartphones', 'smartphones', 'electronics'),
    ('Fashion', 'fashion', None),
    ('Home & Living', 'home-living', None),
]

BRANDS = [
    ('Samsung', 'samsung', 'https://www.samsung.com'),
    ('Nike', 'nike', 'https://www.nike.com'),
    ('IKEA', 'ikea', 'https://www.ikea.com'),
]

PRODUCTS = [
    # name, sku, price, cost, quantity, category slug, brand slug
    ('Samsung Galaxy S24', 'SAM-S24-128', 29900.0, 24000.0, 25, 'smartphones', 'samsung'),
    ('Nike Air Zoom Pegasus', 'NIKE-PEG-42', 4200.0, 2600.0, 8, 'fashion', 'nike'),
    ('IKEA POANG Armchair', 'IKEA-POANG-01', 3990.0, None, 120, 'home-living', 'ikea'),
]

CUSTOMERS = [
    ('Somchai', 'Jaidee', 'somchai@example.com', '081-234-5678'),
    ('Malee', 'Sukjai', 'malee@example.com', '089-876-5432'),
]


def _seed_users(session: Session):
    users = []
    for name, email, role in USERS:
        user = models.User(name=name, email=email, password_hash=AuthService.hash_password(DEMO_PASSWORD), role=role)
        session.add(user)
        users.append(user)
    session.commit()
    for u in users:
        session.refresh(u)
    return users


def _seed_catalog(session: Session):
    categories = {}
    for name, slug, parent in CATEGORIES:
        category = models.Category(name=name, slug=slug, parent_id=categories[parent].id if parent else None)
        session.add(category)
        session.commit()
        session.refresh(category)
        categories[slug] = category
    brands = {}
    for name, slug, website in BRANDS:
        brand = models.Brand(name=name, slug=slug, website=website)
        session.add(brand)
        brands[slug] = brand
    session.commit()
    products = []
    for name, sku, price, cost, qty, category, brand in PRODUCTS:
        product = models.Product(
            name=name,
            slug=sku.lower(),
            sku=sku,
            price=price,
            cost_price=cost,
            quantity=qty,
            status=models.ProductStatus.ACTIVE,
            category_id=categories[category].id,
            brand_id=brands[brand].id,
        )
        session.add(product)
        products.append(product)
    session.commit()
    for p in products:
        session.refresh(p)
    return products


def _seed_customers(session: Session):
    customers = []
    for first, last, email, phone in CUSTOMERS:
        customer = models.Customer(first_name=first, last_name=last, email=email, phone=phone)
        session.add(customer)
        customers.append(customer)
    session.commit()
    for c in customers:
        session.refresh(c)
    return customers


def main(reset: bool = False):
    """Create tables and insert demo rows.

    With `reset` every table is dropped first. Seeding is skipped when the
    demo admin already exists so the script can be re-run safely.
    """
    if reset:
        drop_db_and_tables()
    create_db_and_tables()
    with Session(engine) as session:
        if session.exec(select(models.User).where(models.User.email == USERS[0][1])).first():
            print('Demo data already present; use --reset to recreate it')
            return
        admin, manager, _ = _seed_users(session)
        phone, shoes, chair = _seed_catalog(session)
        somchai, malee = _seed_customers(session)

        coupons = CouponService(session)
        coupons.create({'code': 'WELCOME10', 'name': 'Welcome 10%', 'type': models.CouponType.PERCENTAGE,
                        'value': 10, 'maximum_discount': 500, 'usage_limit': 100})
        coupons.create({'code': 'SAVE500', 'name': 'Save 500', 'type': models.CouponType.FIXED,
                        'value': 500, 'minimum_amount': 5000})

        orders = OrderService(session)
        first = orders.create(admin, {'customer_id': somchai.id, 'coupon_code': 'WELCOME10', 'shipping_amount': 50,
                                      'items': [{'product_id': phone.id, 'quantity': 1}]})
        orders.update(admin, first['id'], {'status': models.OrderStatus.COMPLETED})
        orders.create(manager, {'customer_id': malee.id, 'items': [{'product_id': shoes.id, 'quantity': 1},
                                                                   {'product_id': chair.id, 'quantity': 2}]})

        now = utcnow()
        CampaignService(session).create({'name': 'Summer Sale', 'type': models.CampaignType.SEASONAL,
                                         'status': models.CampaignStatus.ACTIVE, 'start_date': now - timedelta(days=7),
                                         'end_date': now + timedelta(days=23), 'budget': 20000,
                                         'channels': ['email', 'facebook'], 'products': [phone.id, shoes.id]})
    print(f'Seeded demo data; log in as {USERS[0][1]} / {DEMO_PASSWORD}')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--reset', action='store_true', help='Drop all tables before seeding')
    args = parser.parse_args()
    main(reset=args.reset)
