from fastapi.testclient import TestClient

from shopadmin.main import app
from shopadmin.models import UserRole

client = TestClient(app)


def _category(headers, name, **extra):
    r = client.post('/api/categories', json={'name': name, **extra}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def _product(headers, name, sku, price=100.0, **extra):
    r = client.post('/api/products', json={'name': name, 'sku': sku, 'price': price, **extra}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_category_tree_and_filters(admin_headers):
    root = _category(admin_headers, 'Electronics')
    assert root['slug'] == 'electronics'
    child = _category(admin_headers, 'Phones', parent_id=root['id'])
    assert child['parent']['id'] == root['id']

    r = client.get('/api/categories', params={'parent_id': 'null'}, headers=admin_headers)
    assert [c['name'] for c in r.json()['categories']] == ['Electronics']
    assert r.json()['categories'][0]['children_count'] == 1

    r = client.get('/api/categories', params={'parent_id': root['id']}, headers=admin_headers)
    assert [c['id'] for c in r.json()['categories']] == [child['id']]

    r = client.get('/api/categories', params={'parent_id': 'abc'}, headers=admin_headers)
    assert r.status_code == 400

    detail = client.get(f"/api/categories/{root['id']}", headers=admin_headers).json()
    assert [c['id'] for c in detail['children']] == [child['id']]


def test_category_slug_unique_and_cycles_rejected(admin_headers):
    a = _category(admin_headers, 'Toys')
    b = _category(admin_headers, 'Puzzles', parent_id=a['id'])
    r = client.post('/api/categories', json={'name': 'Toys again', 'slug': 'toys'}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json() == {'error': 'slug already exists'}

    r = client.put(f"/api/categories/{a['id']}", json={'name': 'Toys', 'slug': 'toys', 'parent_id': b['id']}, headers=admin_headers)
    assert r.status_code == 400
    r = client.put(f"/api/categories/{a['id']}", json={'name': 'Toys', 'slug': 'toys', 'parent_id': a['id']}, headers=admin_headers)
    assert r.status_code == 400
    # name and slug are both required on update
    r = client.put(f"/api/categories/{a['id']}", json={'name': 'Games'}, headers=admin_headers)
    assert r.status_code == 400


def test_category_delete_guards(admin_headers):
    parent = _category(admin_headers, 'Garden')
    child = _category(admin_headers, 'Tools', parent_id=parent['id'])
    r = client.delete(f"/api/categories/{parent['id']}", headers=admin_headers)
    assert r.status_code == 400
    _product(admin_headers, 'Rake', 'RAKE-1', category_id=child['id'])
    r = client.delete(f"/api/categories/{child['id']}", headers=admin_headers)
    assert r.status_code == 400
    assert client.delete('/api/categories/9999', headers=admin_headers).status_code == 404


def test_brand_crud(admin_headers):
    r = client.post('/api/brands', json={'name': 'Nike', 'website': 'https://nike.com'}, headers=admin_headers)
    assert r.status_code == 201
    brand = r.json()
    assert brand['slug'] == 'nike'
    assert brand['product_count'] == 0
    r = client.post('/api/brands', json={'name': 'nike'}, headers=admin_headers)
    assert r.status_code == 400

    r = client.put(f"/api/brands/{brand['id']}", json={'is_active': False}, headers=admin_headers)
    assert r.json()['is_active'] is False
    assert client.get('/api/brands', headers=admin_headers).json()['total'] == 0
    assert client.get('/api/brands', params={'include_inactive': True}, headers=admin_headers).json()['total'] == 1

    _product(admin_headers, 'Pegasus', 'PEG-1', brand_id=brand['id'])
    assert client.delete(f"/api/brands/{brand['id']}", headers=admin_headers).status_code == 400


def test_product_create_validates_and_generates_slug(admin_headers):
    p1 = _product(admin_headers, 'Blue Shirt', 'SH-1')
    assert p1['slug'] == 'blue-shirt'
    assert p1['status'] == 'DRAFT'
    p2 = _product(admin_headers, 'Blue Shirt', 'SH-2')
    assert p2['slug'] == 'blue-shirt-2'

    r = client.post('/api/products', json={'name': 'Dup', 'sku': 'SH-1', 'price': 5}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json() == {'error': 'sku already exists'}
    r = client.post('/api/products', json={'name': 'Free', 'sku': 'F-1', 'price': 0}, headers=admin_headers)
    assert r.status_code == 400
    r = client.post('/api/products', json={'name': 'Orphan', 'sku': 'O-1', 'price': 5, 'category_id': 404}, headers=admin_headers)
    assert r.status_code == 400


def test_product_list_filters_and_pagination(admin_headers):
    cat = _category(admin_headers, 'Books')
    for i in range(3):
        _product(admin_headers, f'Novel {i}', f'BK-{i}', category_id=cat['id'])
    _product(admin_headers, 'Lamp', 'LMP-1', status='ACTIVE')

    r = client.get('/api/products', params={'limit': 2}, headers=admin_headers)
    body = r.json()
    assert len(body['products']) == 2
    assert body['pagination'] == {'page': 1, 'limit': 2, 'total': 4, 'total_pages': 2, 'has_next': True, 'has_prev': False}

    r = client.get('/api/products', params={'category_id': cat['id']}, headers=admin_headers)
    assert r.json()['pagination']['total'] == 3
    assert r.json()['products'][0]['category']['name'] == 'Books'
    r = client.get('/api/products', params={'search': 'lmp'}, headers=admin_headers)
    assert [p['sku'] for p in r.json()['products']] == ['LMP-1']
    r = client.get('/api/products', params={'status': 'ACTIVE'}, headers=admin_headers)
    assert r.json()['pagination']['total'] == 1
    assert client.get('/api/products', params={'limit': 1000}, headers=admin_headers).status_code == 400


def test_product_update_and_delete(admin_headers, headers_for):
    p = _product(admin_headers, 'Mug', 'MUG-1', price=120)
    staff = headers_for(UserRole.STAFF)
    r = client.put(f"/api/products/{p['id']}", json={'name': 'Big Mug', 'price': 150}, headers=staff)
    assert r.status_code == 200
    assert r.json()['slug'] == 'big-mug'
    assert r.json()['price'] == 150
    assert client.delete(f"/api/products/{p['id']}", headers=staff).status_code == 403
    assert client.delete(f"/api/products/{p['id']}", headers=admin_headers).json() == {'message': 'product deleted'}
    assert client.get(f"/api/products/{p['id']}", headers=admin_headers).status_code == 404


def test_inventory_listing_and_adjustments(admin_headers):
    low = _product(admin_headers, 'Cable', 'CB-1', quantity=3)
    _product(admin_headers, 'Charger', 'CH-1', quantity=50)
    _product(admin_headers, 'Ebook', 'EB-1', quantity=0, track_quantity=False)

    body = client.get('/api/inventory', headers=admin_headers).json()
    assert [i['sku'] for i in body['inventory']] == ['CB-1', 'CH-1']
    assert body['inventory'][0]['stock_level'] == 'critical'
    assert body['stats'] == {'total_products': 2, 'critical_stock': 1, 'low_stock': 0, 'average_stock': 26.5}
    body = client.get('/api/inventory', params={'low_stock': True}, headers=admin_headers).json()
    assert [i['sku'] for i in body['inventory']] == ['CB-1']

    r = client.post(f"/api/inventory/{low['id']}/adjust", json={'change': 10, 'reason': 'restock'}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()['quantity'] == 13
    assert r.json()['stock_level'] == 'medium'
    r = client.post(f"/api/inventory/{low['id']}/adjust", json={'change': -20}, headers=admin_headers)
    assert r.status_code == 400
    r = client.post(f"/api/inventory/{low['id']}/adjust", json={'change': 0}, headers=admin_headers)
    assert r.status_code == 400

    logs = client.get(f"/api/inventory/{low['id']}/logs", headers=admin_headers).json()
    assert len(logs['logs']) == 1
    assert logs['logs'][0]['change'] == 10
    assert logs['logs'][0]['quantity_after'] == 13
    assert logs['logs'][0]['reason'] == 'restock'


def test_viewer_can_read_catalog_but_not_write(headers_for):
    viewer = headers_for(UserRole.VIEWER)
    assert client.get('/api/products', headers=viewer).status_code == 200
    assert client.get('/api/inventory', headers=viewer).status_code == 200
    r = client.post('/api/inventory/1/adjust', json={'change': 1}, headers=viewer)
    assert r.status_code == 403
