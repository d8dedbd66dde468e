from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from shopadmin.main import app
from shopadmin.models import UserRole
from shopadmin.utils.dates import utcnow

client = TestClient(app)


def _setup(headers, qty=10, price=1000.0, **product_extra):
    customer = client.post('/api/customers', json={'first_name': 'Somchai', 'last_name': 'Jaidee', 'email': 'somchai@example.com'}, headers=headers).json()
    product = client.post('/api/products', json={'name': 'Kettle', 'sku': 'KT-1', 'price': price, 'quantity': qty, **product_extra}, headers=headers).json()
    return customer, product


def _order(headers, customer, items, **extra):
    return client.post('/api/orders', json={'customer_id': customer['id'], 'items': items, **extra}, headers=headers)


def _coupon(headers, **fields):
    body = {'code': 'save10', 'name': 'Save 10', 'type': 'PERCENTAGE', 'value': 10}
    body.update(fields)
    return client.post('/api/marketing/coupons', json=body, headers=headers)


def test_create_order_snapshots_prices_and_decrements_stock(admin_headers):
    customer, product = _setup(admin_headers)
    r = _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 3}], shipping_amount=50, notes='gift')
    assert r.status_code == 201, r.text
    order = r.json()
    assert order['status'] == 'PENDING'
    assert order['order_number'] == f'ORD-{datetime.now(timezone.utc).year}-000001'
    assert order['subtotal'] == 3000
    assert order['total_amount'] == 3050
    assert 'tax_amount' not in order and 'channel' not in order
    assert order['customer_email'] == 'somchai@example.com'
    assert order['items'][0]['product_sku'] == 'KT-1'
    assert order['items'][0]['price'] == 1000
    assert order['created_by']['id'] is not None

    # later price changes do not touch the order
    client.put(f"/api/products/{product['id']}", json={'price': 1500}, headers=admin_headers)
    again = client.get(f"/api/orders/{order['id']}", headers=admin_headers).json()
    assert again['items'][0]['price'] == 1000
    assert client.get(f"/api/products/{product['id']}", headers=admin_headers).json()['quantity'] == 7

    second = _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 1}]).json()
    assert second['order_number'].endswith('-000002')


def test_order_rejects_insufficient_stock_and_bad_input(admin_headers):
    customer, product = _setup(admin_headers, qty=2)
    r = _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 3}])
    assert r.status_code == 400
    assert 'insufficient stock' in r.json()['error']
    # quantities of repeated lines add up
    r = _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 1}, {'product_id': product['id'], 'quantity': 2}])
    assert r.status_code == 400
    assert _order(admin_headers, customer, []).status_code == 400
    assert _order(admin_headers, customer, [{'product_id': 999, 'quantity': 1}]).status_code == 400
    assert _order(admin_headers, {'id': 999}, [{'product_id': product['id'], 'quantity': 1}]).status_code == 400
    assert _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 0}]).status_code == 400
    assert client.get(f"/api/products/{product['id']}", headers=admin_headers).json()['quantity'] == 2


def test_untracked_products_ignore_stock(admin_headers):
    customer, product = _setup(admin_headers, qty=0, track_quantity=False)
    r = _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 5}])
    assert r.status_code == 201


def test_order_status_updates_and_cancel_restocks(admin_headers, headers_for):
    customer, product = _setup(admin_headers)
    order = _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 4}]).json()
    staff = headers_for(UserRole.STAFF)
    r = client.put(f"/api/orders/{order['id']}", json={'status': 'SHIPPED', 'tracking_number': 'TH123'}, headers=staff)
    assert r.status_code == 200
    assert r.json()['tracking_number'] == 'TH123'

    r = client.put(f"/api/orders/{order['id']}", json={'status': 'CANCELLED'}, headers=staff)
    assert r.json()['status'] == 'CANCELLED'
    assert client.get(f"/api/products/{product['id']}", headers=admin_headers).json()['quantity'] == 10

    r = client.put(f"/api/orders/{order['id']}", json={'status': 'PENDING'}, headers=staff)
    assert r.status_code == 400
    assert client.put(f"/api/orders/{order['id']}", json={'status': 'BOGUS'}, headers=staff).status_code == 400


def test_order_delete_rules(admin_headers):
    customer, product = _setup(admin_headers)
    pending = _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 2}]).json()
    shipped = _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 1}]).json()
    client.put(f"/api/orders/{shipped['id']}", json={'status': 'SHIPPED'}, headers=admin_headers)

    assert client.delete(f"/api/orders/{shipped['id']}", headers=admin_headers).status_code == 400
    r = client.delete(f"/api/orders/{pending['id']}", headers=admin_headers)
    assert r.json() == {'message': 'order deleted'}
    assert client.get(f"/api/orders/{pending['id']}", headers=admin_headers).status_code == 404
    assert client.get(f"/api/products/{product['id']}", headers=admin_headers).json()['quantity'] == 9

    logs = client.get('/api/audit-logs', params={'entity_type': 'ORDER'}, headers=admin_headers).json()
    assert logs['audit_logs'][0]['action'] == 'DELETE'


def test_cancel_and_delete_give_back_coupon_use(admin_headers):
    customer, product = _setup(admin_headers)
    coupon = _coupon(admin_headers, code='ONCE', usage_limit=1).json()
    url = f"/api/marketing/coupons/{coupon['id']}"
    line = [{'product_id': product['id'], 'quantity': 1}]

    first = _order(admin_headers, customer, line, coupon_code='ONCE').json()
    assert client.get(url, headers=admin_headers).json()['state'] == 'EXHAUSTED'
    client.put(f"/api/orders/{first['id']}", json={'status': 'CANCELLED'}, headers=admin_headers)
    body = client.get(url, headers=admin_headers).json()
    assert (body['usage_count'], body['state']) == (0, 'ACTIVE')
    # deleting the cancelled order does not release the use twice
    client.delete(f"/api/orders/{first['id']}", headers=admin_headers)
    assert client.get(url, headers=admin_headers).json()['usage_count'] == 0

    second = _order(admin_headers, customer, line, coupon_code='ONCE')
    assert second.status_code == 201, second.text
    client.delete(f"/api/orders/{second.json()['id']}", headers=admin_headers)
    assert client.get(url, headers=admin_headers).json()['usage_count'] == 0

    r = client.delete(url, headers=admin_headers)
    assert r.json()['deleted'] is True


def test_order_list_search_and_status(admin_headers):
    customer, product = _setup(admin_headers)
    first = _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 1}]).json()
    _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 1}])
    client.put(f"/api/orders/{first['id']}", json={'status': 'CONFIRMED'}, headers=admin_headers)

    body = client.get('/api/orders', headers=admin_headers).json()
    assert body['pagination']['total'] == 2
    assert body['orders'][0]['customer']['email'] == 'somchai@example.com'
    assert client.get('/api/orders', params={'status': 'CONFIRMED'}, headers=admin_headers).json()['pagination']['total'] == 1
    assert client.get('/api/orders', params={'search': 'jaidee'}, headers=admin_headers).json()['pagination']['total'] == 2
    assert client.get('/api/orders', params={'search': 'nobody'}, headers=admin_headers).json()['pagination']['total'] == 0


def test_revenue_counts_completed_orders_only(admin_headers, headers_for):
    customer, product = _setup(admin_headers)
    done = _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 2}]).json()
    _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 1}])
    client.put(f"/api/orders/{done['id']}", json={'status': 'COMPLETED'}, headers=admin_headers)

    r = client.get('/api/revenue', headers=admin_headers)
    assert r.json()['total_revenue'] == 2000
    assert r.json()['order_count'] == 1
    today = utcnow().date().isoformat()
    r = client.get('/api/revenue', params={'start_date': '2000-01-01', 'end_date': '2000-01-31'}, headers=admin_headers)
    assert r.json()['order_count'] == 0
    assert client.get('/api/revenue', params={'start_date': today}, headers=admin_headers).json()['order_count'] == 1
    assert client.get('/api/revenue', headers=headers_for(UserRole.STAFF)).status_code == 403


def test_coupon_create_validation(admin_headers):
    r = _coupon(admin_headers)
    assert r.status_code == 201
    coupon = r.json()
    assert coupon['code'] == 'SAVE10'
    assert coupon['state'] == 'ACTIVE'
    assert coupon['is_active'] is True
    assert _coupon(admin_headers, code='SAVE10').status_code == 400
    assert _coupon(admin_headers, code='BIG', value=150).status_code == 400
    assert _coupon(admin_headers, code='ZERO', value=0).status_code == 400
    assert _coupon(admin_headers, code='CAP', maximum_discount=0).status_code == 400
    r = _coupon(admin_headers, code='WINDOW', starts_at='2030-01-10T00:00:00', expires_at='2030-01-01T00:00:00')
    assert r.status_code == 400
    r = _coupon(admin_headers, code='LATER', starts_at='2999-01-01T00:00:00')
    assert r.json()['state'] == 'SCHEDULED'


def test_coupon_applied_to_order(admin_headers):
    customer, product = _setup(admin_headers)
    _coupon(admin_headers, code='TENPCT', value=10, maximum_discount=150, usage_limit=1)
    r = _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 2}], coupon_code='tenpct', shipping_amount=40)
    assert r.status_code == 201, r.text
    order = r.json()
    assert order['discount_amount'] == 150
    assert order['total_amount'] == 2000 - 150 + 40

    coupons = client.get('/api/marketing/coupons', headers=admin_headers).json()['coupons']
    assert coupons[0]['usage_count'] == 1
    assert coupons[0]['state'] == 'EXHAUSTED'
    r = _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 1}], coupon_code='TENPCT')
    assert r.status_code == 400
    assert 'exhausted' in r.json()['error']


def test_coupon_minimum_and_fixed_cap(admin_headers):
    customer, product = _setup(admin_headers, price=300.0)
    _coupon(admin_headers, code='MIN1000', type='FIXED', value=100, minimum_amount=1000)
    _coupon(admin_headers, code='HUGE', type='FIXED', value=5000)
    r = _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 1}], coupon_code='MIN1000')
    assert r.status_code == 400
    r = _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 1}], coupon_code='HUGE', shipping_amount=50)
    assert r.json()['discount_amount'] == 300
    assert r.json()['total_amount'] == 50
    assert _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 1}], coupon_code='NOPE').status_code == 400


def test_coupon_restricted_to_products(admin_headers):
    customer, kettle = _setup(admin_headers)
    toaster = client.post('/api/products', json={'name': 'Toaster', 'sku': 'TS-1', 'price': 500, 'quantity': 5}, headers=admin_headers).json()
    _coupon(admin_headers, code='KETTLE20', value=20, applicable_products=[kettle['id']])
    r = _order(admin_headers, customer, [{'product_id': kettle['id'], 'quantity': 1}, {'product_id': toaster['id'], 'quantity': 1}], coupon_code='KETTLE20')
    assert r.json()['discount_amount'] == 200
    r = _order(admin_headers, customer, [{'product_id': toaster['id'], 'quantity': 1}], coupon_code='KETTLE20')
    assert r.status_code == 400


def test_coupon_list_filters_and_delete(admin_headers):
    customer, product = _setup(admin_headers)
    _coupon(admin_headers, code='USED')
    unused = _coupon(admin_headers, code='UNUSED').json()
    off = _coupon(admin_headers, code='OFF', is_active=False).json()
    past = (utcnow() - timedelta(days=1)).isoformat()
    _coupon(admin_headers, code='OLD', starts_at=(utcnow() - timedelta(days=10)).isoformat(), expires_at=past)
    _order(admin_headers, customer, [{'product_id': product['id'], 'quantity': 1}], coupon_code='USED')

    def codes(**params):
        body = client.get('/api/marketing/coupons', params=params, headers=admin_headers).json()
        return sorted(c['code'] for c in body['coupons'])

    assert codes(status='active') == ['UNUSED', 'USED']
    assert codes(status='inactive') == ['OFF']
    assert codes(status='expired') == ['OLD']
    assert codes(search='unu') == ['UNUSED']
    body = client.get('/api/marketing/coupons', params={'sort_by': 'code', 'sort_order': 'asc'}, headers=admin_headers).json()
    assert [c['code'] for c in body['coupons']] == ['OFF', 'OLD', 'UNUSED', 'USED']
    assert client.get('/api/marketing/coupons', params={'status': 'weird'}, headers=admin_headers).status_code == 400

    used_id = next(c['id'] for c in body['coupons'] if c['code'] == 'USED')
    r = client.delete(f'/api/marketing/coupons/{used_id}', headers=admin_headers)
    assert r.json()['deactivated'] is True
    assert client.get(f'/api/marketing/coupons/{used_id}', headers=admin_headers).json()['state'] == 'INACTIVE'
    r = client.delete(f"/api/marketing/coupons/{unused['id']}", headers=admin_headers)
    assert r.json()['deleted'] is True
    assert client.get(f"/api/marketing/coupons/{unused['id']}", headers=admin_headers).status_code == 404

    r = client.put(f"/api/marketing/coupons/{off['id']}", json={'is_active': True, 'value': 15}, headers=admin_headers)
    assert r.json()['state'] == 'ACTIVE'
    assert r.json()['value'] == 15
