import csv
import io

from fastapi.testclient import TestClient

from shopadmin.main import app
from shopadmin.models import UserRole
from shopadmin.utils.dates import utcnow

client = TestClient(app)


def _post(url, body, headers):
    r = client.post(url, json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def _shop(headers):
    """One customer, two products in two categories and three orders.

    Order A (2 x 1000) is completed, order B (1 x 500) is pending and
    order C (1 x 500) is cancelled.
    """
    kitchen = _post('/api/categories', {'name': 'Kitchen'}, headers)
    garden = _post('/api/categories', {'name': 'Garden'}, headers)
    pan = _post('/api/products', {'name': 'Pan', 'sku': 'PAN-1', 'price': 1000, 'quantity': 10, 'category_id': kitchen['id']}, headers)
    hose = _post('/api/products', {'name': 'Hose', 'sku': 'HOSE-1', 'price': 500, 'quantity': 20, 'category_id': garden['id']}, headers)
    customer = _post('/api/customers', {'first_name': 'Ying', 'last_name': 'Suk', 'email': 'ying@example.com'}, headers)
    a = _post('/api/orders', {'customer_id': customer['id'], 'items': [{'product_id': pan['id'], 'quantity': 2}]}, headers)
    _post('/api/orders', {'customer_id': customer['id'], 'items': [{'product_id': hose['id'], 'quantity': 1}]}, headers)
    c = _post('/api/orders', {'customer_id': customer['id'], 'items': [{'product_id': hose['id'], 'quantity': 1}]}, headers)
    client.put(f"/api/orders/{a['id']}", json={'status': 'COMPLETED'}, headers=headers)
    client.put(f"/api/orders/{c['id']}", json={'status': 'CANCELLED'}, headers=headers)
    return pan, hose, customer


def test_overview_excludes_cancelled_orders(admin_headers):
    _shop(admin_headers)
    body = client.get('/api/analytics', params={'type': 'overview'}, headers=admin_headers).json()
    ov = body['overview']
    assert ov['total_revenue'] == 2500
    assert ov['total_orders'] == 2
    assert ov['average_order_value'] == 1250
    assert ov['total_customers'] == 1
    # the only customer ordered twice, so nobody counts as new
    assert ov['new_customers'] == 0
    assert ov['returning_customers'] == 1
    assert ov['revenue_growth'] == 100.0
    chart = body['sales_chart']
    assert len(chart['labels']) == 12
    assert chart['labels'][-1] == utcnow().strftime('%Y-%m')
    assert chart['revenue'][-1] == 2500
    assert chart['orders'][-1] == 2


def test_new_customers_exclude_returning_ones(admin_headers):
    pan, _, _ = _shop(admin_headers)
    other = _post('/api/customers', {'first_name': 'Mali', 'last_name': 'Dee', 'email': 'mali@example.com'}, admin_headers)
    _post('/api/orders', {'customer_id': other['id'], 'items': [{'product_id': pan['id'], 'quantity': 1}]}, admin_headers)
    _post('/api/customers', {'first_name': 'Nid', 'last_name': 'Noi', 'email': 'nid@example.com'}, admin_headers)
    ov = client.get('/api/analytics', params={'type': 'customers'}, headers=admin_headers).json()['overview']
    assert ov['total_customers'] == 3
    assert ov['returning_customers'] == 1
    assert ov['new_customers'] == 2


def test_product_and_category_rankings(admin_headers):
    pan, hose, _ = _shop(admin_headers)
    body = client.get('/api/analytics', params={'type': 'products'}, headers=admin_headers).json()
    assert [(p['id'], p['revenue'], p['units']) for p in body['top_products']] == [(pan['id'], 2000, 2), (hose['id'], 500, 1)]
    assert body['top_products'][0]['category'] == 'Kitchen'
    assert body['top_categories'] == [
        {'name': 'Kitchen', 'revenue': 2000, 'percentage': 80.0},
        {'name': 'Garden', 'revenue': 500, 'percentage': 20.0},
    ]


def test_customer_segments_and_inventory_blocks(admin_headers):
    _shop(admin_headers)
    body = client.get('/api/analytics', params={'type': 'customers'}, headers=admin_headers).json()
    segments = {s['segment']: s for s in body['customer_segments']}
    assert segments['Regular']['count'] == 1
    assert segments['Regular']['percentage'] == 100.0
    assert segments['VIP']['count'] == 0
    assert set(body['overview']) == {'total_customers', 'new_customers', 'returning_customers', 'customer_growth'}

    inv = client.get('/api/analytics', params={'type': 'inventory'}, headers=admin_headers).json()['inventory']
    assert inv['total_products'] == 2
    assert inv['low_stock'] == 1
    assert inv['out_of_stock'] == 0
    assert inv['total_value'] == 1000 * 8 + 500 * 19


def test_all_blocks_and_traffic(admin_headers):
    body = client.get('/api/analytics', headers=admin_headers).json()
    assert set(body) == {'overview', 'sales_chart', 'top_products', 'top_categories', 'customer_segments', 'inventory'}
    assert body['overview']['total_revenue'] == 0
    assert body['overview']['revenue_growth'] == 0
    traffic = client.get('/api/analytics', params={'type': 'traffic'}, headers=admin_headers).json()['traffic']
    assert traffic['page_views'] == 0


def test_analytics_permissions(headers_for):
    assert client.get('/api/analytics', headers=headers_for(UserRole.VIEWER)).status_code == 200
    assert client.get('/api/analytics', headers=headers_for(UserRole.STAFF)).status_code == 403


def test_sales_report_uses_completed_orders(admin_headers):
    _shop(admin_headers)
    body = client.get('/api/reports', params={'type': 'sales'}, headers=admin_headers).json()
    assert body['type'] == 'sales'
    assert len(body['data']) == 1
    day = body['data'][0]
    assert day['date'] == utcnow().date().isoformat()
    assert (day['revenue'], day['orders'], day['customers'], day['average_order_value']) == (2000, 1, 1, 2000)
    assert body['summary']['total_revenue'] == 2000
    assert body['summary']['end_date'] == utcnow().date().isoformat()

    r = client.get('/api/reports', params={'type': 'sales', 'start_date': '2001-01-01', 'end_date': '2001-01-31'}, headers=admin_headers)
    assert r.json()['data'] == []
    assert r.json()['summary']['start_date'] == '2001-01-01'
    assert r.json()['summary']['end_date'] == '2001-01-31'


def test_inventory_customer_and_product_reports(admin_headers):
    pan, hose, customer = _shop(admin_headers)
    inv = client.get('/api/reports', params={'type': 'inventory'}, headers=admin_headers).json()
    rows = {r['sku']: r for r in inv['data']}
    assert rows['PAN-1']['status'] == 'LOW_STOCK'
    assert rows['PAN-1']['category'] == 'Kitchen'
    assert rows['PAN-1']['brand'] == 'No Brand'
    assert rows['HOSE-1']['status'] == 'IN_STOCK'
    assert inv['summary']['low_stock'] == 1

    cust = client.get('/api/reports', params={'type': 'customers'}, headers=admin_headers).json()
    row = cust['data'][0]
    assert row['id'] == customer['id']
    assert row['total_orders'] == 1
    assert row['total_spent'] == 2000
    assert row['status'] == 'ACTIVE'

    prod = client.get('/api/reports', params={'type': 'products'}, headers=admin_headers).json()
    assert [r['id'] for r in prod['data']] == [pan['id']]
    assert prod['data'][0]['units_sold'] == 2
    # no cost price: 30% estimated margin
    assert prod['data'][0]['gross_profit'] == 600
    assert prod['data'][0]['margin_percent'] == 30.0


def test_report_argument_errors(admin_headers):
    assert client.get('/api/reports', params={'type': 'weird'}, headers=admin_headers).status_code == 400
    assert client.get('/api/reports', params={'format': 'xml'}, headers=admin_headers).status_code == 400


def test_csv_export(admin_headers):
    _shop(admin_headers)
    r = client.get('/api/reports', params={'type': 'products', 'format': 'csv'}, headers=admin_headers)
    assert r.status_code == 200
    assert r.headers['content-type'].startswith('text/csv')
    assert r.headers['content-disposition'] == f'attachment; filename="products_report_{utcnow().date().isoformat()}.csv"'
    rows = list(csv.DictReader(io.StringIO(r.text)))
    assert rows[0]['sku'] == 'PAN-1'
    assert rows[0]['units_sold'] == '2'


def test_csv_export_needs_export_permission(headers_for):
    manager = headers_for(UserRole.MANAGER)
    assert client.get('/api/reports', params={'type': 'inventory'}, headers=manager).status_code == 200
    r = client.get('/api/reports', params={'type': 'inventory', 'format': 'csv'}, headers=manager)
    assert r.status_code == 403
    assert r.json()['required_permission'] == 'REPORTS:EXPORT'
