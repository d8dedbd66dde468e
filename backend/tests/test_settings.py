from fastapi.testclient import TestClient

from shopadmin.main import app
from shopadmin.models import UserRole

client = TestClient(app)


def test_defaults_for_every_section(admin_headers):
    body = client.get('/api/settings', headers=admin_headers).json()
    assert set(body) == {'store', 'notifications', 'payment', 'shipping', 'security', 'api'}
    assert body['store']['currency'] == 'THB'
    assert body['api']['api_keys'] == []
    assert client.get('/api/settings/shipping', headers=admin_headers).json()['free_shipping_threshold'] == 1000
    assert client.get('/api/settings/unknown', headers=admin_headers).status_code == 404


def test_update_merges_and_persists(admin_headers):
    r = client.put('/api/settings', json={'section': 'store', 'data': {'name': 'Siam Shop', 'phone': '02-999-9999'}}, headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body['message'] == 'settings updated'
    assert body['section'] == 'store'
    assert body['data']['name'] == 'Siam Shop'
    # untouched keys keep their defaults
    assert body['data']['currency'] == 'THB'

    client.put('/api/settings', json={'section': 'store', 'data': {'currency': 'USD'}}, headers=admin_headers)
    store = client.get('/api/settings/store', headers=admin_headers).json()
    assert (store['name'], store['currency']) == ('Siam Shop', 'USD')

    logs = client.get('/api/audit-logs', params={'entity_type': 'SETTINGS'}, headers=admin_headers).json()
    assert logs['pagination']['total'] == 2
    assert logs['audit_logs'][0]['new_values'] == {'currency': 'USD'}


def test_update_validation(admin_headers):
    assert client.put('/api/settings', json={'section': 'store'}, headers=admin_headers).status_code == 400
    r = client.put('/api/settings', json={'section': 'billing', 'data': {}}, headers=admin_headers)
    assert r.status_code == 400
    assert 'invalid section' in r.json()['error']
    assert client.put('/api/settings', json={'section': 'store', 'data': [1, 2]}, headers=admin_headers).status_code == 400


def test_settings_permissions(headers_for):
    admin = headers_for(UserRole.ADMIN)
    assert client.get('/api/settings', headers=admin).status_code == 200
    assert client.put('/api/settings', json={'section': 'payment', 'data': {'enable_cod': True}}, headers=admin).status_code == 200
    manager = headers_for(UserRole.MANAGER)
    r = client.get('/api/settings', headers=manager)
    assert r.status_code == 403
    assert r.json()['message'] == 'You do not have permission to view system settings'
    assert client.get('/api/audit-logs', headers=manager).status_code == 403
