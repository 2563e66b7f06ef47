from flask import Flask
from tests.test_lifecycle_helpers import (
    jwt_headers, client_headers, relay_headers, technician_headers, admin_headers,
    assert_post, assert_rejected, submit_repair,
)
from tests.test_utils_seed import new_id, create_repair, force_status


def test_statuses_listed_in_order(app_context: Flask):
    client = app_context.test_client()
    resp = client.get('/repairs/statuses', headers=client_headers(new_id('client')))
    assert resp.status_code == 200
    data = resp.get_json()['data']
    assert [s['id'] for s in data] == list(range(1, 9))
    assert data[0]['code'] == 'SUBMITTED'
    assert data[6]['next'] == []


def test_client_submits_and_reads_own_request(app_context: Flask):
    client = app_context.test_client()
    owner = new_id('client')
    created = submit_repair(client, owner)
    assert created['client_id'] == owner
    assert created['next_statuses'] == ['CANCELLED', 'RECEIVED']
    resp = client.get(f"/repairs/requests/{created['id']}", headers=client_headers(owner))
    assert resp.status_code == 200
    resp = client.get(f"/repairs/requests/{created['id']}", headers=client_headers(new_id('client')))
    assert resp.status_code == 403


def test_create_requires_fields(app_context: Flask):
    client = app_context.test_client()
    resp = client.post('/repairs/requests', json={'device_type': 'Phone'}, headers=client_headers(new_id('client')))
    assert resp.status_code == 400
    assert 'problem_description' in resp.get_json()['error']['detail']
    # staff creating on behalf of a client must name the client
    resp = client.post('/repairs/requests', json={'device_type': 'Phone', 'problem_description': 'x'}, headers=admin_headers())
    assert resp.status_code == 400


def test_staff_transition_and_illegal_jump(app_context: Flask):
    client = app_context.test_client()
    repair = create_repair()
    force_status(repair.id, 'RECEIVED')
    tech = technician_headers('tech-42')
    resp = assert_post(client, f'/repairs/requests/{repair.id}/transition', tech, 200,
                       {'status': 'DIAGNOSED', 'pre_diagnosis': 'Battery swollen', 'estimated_cost_cents': 3900},
                       expected_body_value='DIAGNOSED')
    body = resp.get_json()
    assert body['technician_id'] == 'tech-42'
    assert body['estimated_cost_cents'] == 3900
    resp = client.post(f'/repairs/requests/{repair.id}/transition', json={'status': 'REPAIRED'}, headers=tech)
    body = assert_rejected(resp, 409, 'ILLEGAL_TRANSITION')
    assert body['current_status'] == 'DIAGNOSED'


def test_transition_rejects_handoff_targets(app_context: Flask):
    client = app_context.test_client()
    repair = create_repair()
    for target in ('RECEIVED', 'DELIVERED', 'CANCELLED', 'BOGUS', None):
        resp = client.post(f'/repairs/requests/{repair.id}/transition', json={'status': target}, headers=technician_headers())
        assert resp.status_code == 400


def test_transition_bad_cost_is_rejected(app_context: Flask):
    client = app_context.test_client()
    repair = create_repair()
    force_status(repair.id, 'RECEIVED')
    resp = client.post(f'/repairs/requests/{repair.id}/transition', json={'status': 'DIAGNOSED', 'estimated_cost_cents': 'lots'},
                       headers=technician_headers())
    assert resp.status_code == 400


def test_ready_requires_pickup_relay(app_context: Flask):
    client = app_context.test_client()
    repair = create_repair()
    force_status(repair.id, 'REPAIRED')
    assert client.post(f'/repairs/requests/{repair.id}/ready', json={}, headers=technician_headers()).status_code == 400
    pickup = new_id('rp')
    resp = assert_post(client, f'/repairs/requests/{repair.id}/ready', technician_headers(), 200, {'pickup_relay_id': pickup},
                       expected_body_value='READY_FOR_PICKUP')
    assert resp.get_json()['pickup_relay_id'] == pickup


def test_cancel(app_context: Flask):
    client = app_context.test_client()
    repair = create_repair()
    resp = assert_post(client, f'/repairs/requests/{repair.id}/cancel', admin_headers(), 200, {'reason': 'Client changed mind'},
                       expected_body_value='CANCELLED')
    assert resp.get_json()['notes'] == 'Client changed mind'
    assert resp.get_json()['next_statuses'] == []
    resp = client.post(f'/repairs/requests/{repair.id}/cancel', json={}, headers=admin_headers())
    assert_rejected(resp, 409, 'ILLEGAL_TRANSITION')


def test_permission_denials(app_context: Flask):
    client = app_context.test_client()
    repair = create_repair()
    read_only = jwt_headers('reader', ['RPR.READ'])
    assert client.post('/repairs/requests', json={'device_type': 'x', 'problem_description': 'y', 'client_id': 'c'},
                       headers=read_only).status_code == 403
    assert client.post(f'/repairs/requests/{repair.id}/cancel', json={}, headers=technician_headers()).status_code == 403
    assert client.post(f'/repairs/requests/{repair.id}/transition', json={'status': 'DIAGNOSED'},
                       headers=client_headers(repair.client_id)).status_code == 403


def test_list_is_scoped_and_paginated(app_context: Flask):
    client = app_context.test_client()
    owner, relay = new_id('client'), new_id('rp')
    for _ in range(3):
        create_repair(client_id=owner, drop_off_relay_id=relay)
    create_repair(drop_off_relay_id=new_id('rp'))

    resp = client.get('/repairs/requests?limit=2', headers=client_headers(owner))
    body = resp.get_json()
    assert body['pagination']['total'] == 3
    assert body['pagination']['returned'] == 2
    assert body['pagination']['has_more'] is True
    assert all(r['client_id'] == owner for r in body['data'])

    resp = client.get('/repairs/requests', headers=relay_headers(relay))
    assert {r['drop_off_relay_id'] for r in resp.get_json()['data']} == {relay}

    resp = client.get(f'/repairs/requests?client_id={owner}&status=SUBMITTED', headers=admin_headers())
    assert resp.get_json()['pagination']['total'] == 3
    assert client.get('/repairs/requests?status=LOST', headers=admin_headers()).status_code == 400
    assert client.get('/repairs/requests?limit=abc', headers=admin_headers()).status_code == 400
