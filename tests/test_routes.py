"""
Route tests.
Authentication, response envelopes and status codes of the JSON API.
"""

import pytest

from conftest import auth

START = '2025-06-12T10:00:00Z'
END = '2025-06-14T10:00:00Z'


def create(client, actors, renter=None, start=START, end=END, **extra):
    body = {'vehicle_id': actors['vehicle'], 'start_at': start, 'end_at': end, 'total_amount': 600}
    body.update(extra)
    return client.post('/api/reservations', json=body, headers=auth(renter or actors['renter']))


class TestServiceRoutes:
    """Health check and error envelopes."""

    def test_health(self, client):
        response = client.get('/api/health')
        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'ok'
        assert data['database'] == 'ok'

    def test_unknown_route_is_json(self, client):
        response = client.get('/api/does-not-exist')
        assert response.status_code == 404
        assert response.get_json()['success'] is False

    def test_requires_identity(self, client, actors):
        response = client.get(f"/api/vehicles/{actors['vehicle']}/availability?start={START}&end={END}")
        assert response.status_code == 401
        assert response.get_json()['code'] == 'unauthenticated'

    def test_unknown_identity(self, client, actors):
        response = client.get(f"/api/vehicles/{actors['vehicle']}/calendar", headers=auth(9999))
        assert response.status_code == 401


class TestVehicleRoutes:
    """Availability, search and calendar."""

    def test_availability(self, client, actors):
        url = f"/api/vehicles/{actors['vehicle']}/availability?start={START}&end={END}"
        response = client.get(url, headers=auth(actors['renter']))
        assert response.status_code == 200
        assert response.get_json()['data'] == {
            'available': True, 'conflict_kind': 'available', 'conflict_details': []
        }

        create(client, actors)
        data = client.get(url, headers=auth(actors['renter'])).get_json()['data']
        assert data['conflict_kind'] == 'booking_conflict'

    def test_availability_needs_interval(self, client, actors):
        response = client.get(f"/api/vehicles/{actors['vehicle']}/availability", headers=auth(actors['renter']))
        assert response.status_code == 400
        assert response.get_json()['code'] == 'invalid_dates'

    def test_search(self, client, actors):
        create(client, actors)
        response = client.get(f'/api/vehicles/available?start={START}&end={END}', headers=auth(actors['renter']))
        ids = [v['id'] for v in response.get_json()['data']]
        assert actors['vehicle'] not in ids

    def test_search_rejects_infinite_rate(self, client, actors):
        response = client.get(f'/api/vehicles/available?start={START}&end={END}&max_daily_rate=inf',
                              headers=auth(actors['renter']))
        assert response.status_code == 400
        assert response.get_json()['code'] == 'invalid_argument'

    def test_calendar_last_supported_year(self, client, actors):
        response = client.get(f"/api/vehicles/{actors['vehicle']}/calendar?year=9999&month=12",
                              headers=auth(actors['renter']))
        assert response.status_code == 400
        assert response.get_json()['code'] == 'invalid_month'

    def test_calendar(self, client, actors):
        create(client, actors)
        response = client.get(f"/api/vehicles/{actors['vehicle']}/calendar?year=2025&month=6",
                              headers=auth(actors['renter']))
        payload = response.get_json()
        assert response.status_code == 200
        assert (payload['year'], payload['month']) == (2025, 6)
        assert payload['data'][11]['date'] == '2025-06-12'
        assert payload['data'][11]['status'] == 'booked'

    def test_calendar_bad_month(self, client, actors):
        response = client.get(f"/api/vehicles/{actors['vehicle']}/calendar?year=2025&month=0",
                              headers=auth(actors['renter']))
        assert response.status_code == 400
        assert response.get_json()['code'] == 'invalid_month'


class TestReservationRoutes:
    """Create, read, reject, cancel and status."""

    def test_create(self, client, actors):
        response = create(client, actors, booking_details={'pickup_location': 'Airport'})
        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['status'] == 'PENDING'
        assert data['approval_type'] == 'manual'

    def test_create_requires_renter_role(self, client, actors):
        response = create(client, actors, renter=actors['host'])
        assert response.status_code == 403
        assert response.get_json()['code'] == 'unauthorized'

    def test_create_missing_fields(self, client, actors):
        response = client.post('/api/reservations', json={'vehicle_id': actors['vehicle']},
                               headers=auth(actors['renter']))
        assert response.status_code == 400
        assert set(response.get_json()['details']['missing']) == {'start_at', 'end_at', 'total_amount'}

    def test_create_infinite_amount(self, client, actors):
        body = ('{"vehicle_id": %d, "start_at": "%s", "end_at": "%s", "total_amount": Infinity}'
                % (actors['vehicle'], START, END))
        response = client.post('/api/reservations', data=body, content_type='application/json',
                               headers=auth(actors['renter']))
        assert response.status_code == 400
        assert response.get_json()['code'] == 'invalid_amount'

    def test_create_conflict(self, client, actors):
        create(client, actors)
        response = create(client, actors, renter=actors['other_renter'], start='2025-06-13T00:00:00Z')
        payload = response.get_json()
        assert response.status_code == 409
        assert payload['kind'] == 'conflict'
        assert payload['code'] == 'booking_conflict'

    def test_create_unknown_vehicle(self, client, actors):
        response = client.post('/api/reservations', json={
            'vehicle_id': 9999, 'start_at': START, 'end_at': END, 'total_amount': 100
        }, headers=auth(actors['renter']))
        assert response.status_code == 404
        assert response.get_json()['code'] == 'invalid_vehicle'

    def test_detail_for_parties_only(self, client, actors):
        rid = create(client, actors).get_json()['data']['reservation_id']

        response = client.get(f'/api/reservations/{rid}', headers=auth(actors['host']))
        data = response.get_json()['data']
        assert response.status_code == 200
        assert data['start_at'] == '2025-06-12T10:00:00+00:00'
        assert data['booking_details'] is None
        assert [log['action_type'] for log in data['logs']] == ['created']

        assert client.get(f'/api/reservations/{rid}', headers=auth(actors['admin'])).status_code == 200
        assert client.get(f'/api/reservations/{rid}', headers=auth(actors['other_renter'])).status_code == 403

    def test_reject(self, client, actors):
        rid = create(client, actors).get_json()['data']['reservation_id']

        response = client.post(f'/api/reservations/{rid}/reject', json={'reason': 'Unavailable'},
                               headers=auth(actors['other_host']))
        assert response.status_code == 403

        response = client.post(f'/api/reservations/{rid}/reject', headers=auth(actors['host']))
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'REJECTED'

        response = client.post(f'/api/reservations/{rid}/reject', headers=auth(actors['host']))
        assert response.status_code == 409
        assert response.get_json()['code'] == 'wrong_status'

    def test_cancel_past_deadline(self, client, actors, clock):
        from datetime import datetime, timezone

        rid = create(client, actors).get_json()['data']['reservation_id']
        clock.set(datetime(2025, 6, 10, 0, 0, tzinfo=timezone.utc))

        response = client.post(f'/api/reservations/{rid}/cancel', headers=auth(actors['renter']))
        payload = response.get_json()
        assert response.status_code == 422
        assert payload['code'] == 'deadline_passed'
        assert payload['details']['deadline'] == '2025-06-09T10:00:00+00:00'

    def test_cancel(self, client, actors):
        rid = create(client, actors, security_deposit=100).get_json()['data']['reservation_id']

        info = client.get(f'/api/reservations/{rid}/cancellation-info', headers=auth(actors['renter']))
        assert info.get_json()['data']['can_cancel'] is True
        assert info.get_json()['data']['potential_refund'] == 600.0

        response = client.post(f'/api/reservations/{rid}/cancel', json={'reason': 'Trip off'},
                               headers=auth(actors['renter']))
        assert response.status_code == 200
        assert response.get_json()['data']['refund_amount'] == 600.0

    def test_status(self, client, actors):
        rid = create(client, actors).get_json()['data']['reservation_id']

        response = client.post(f'/api/reservations/{rid}/status', json={'status': 'IN_PROGRESS'},
                               headers=auth(actors['admin']))
        assert response.status_code == 409

        response = client.post(f'/api/reservations/{rid}/status', json={'status': 'CONFIRMED'},
                               headers=auth(actors['host']))
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'CONFIRMED'

        response = client.post(f'/api/reservations/{rid}/status', json={'status': 'IN_PROGRESS'},
                               headers=auth(actors['renter']))
        assert response.status_code == 403


class TestBlockRoutes:
    """Manual and recurring blocks."""

    def test_block_and_partial_unblock(self, client, actors):
        base = f"/api/vehicles/{actors['vehicle']}/blocks"
        response = client.post(base, json={'start_date': '2025-06-20', 'end_date': '2025-06-25',
                                           'block_type': 'maintenance', 'reason': 'Tyres'},
                               headers=auth(actors['host']))
        assert response.status_code == 201
        block_id = response.get_json()['data']['block_id']

        response = client.delete(f'{base}/{block_id}?start_date=2025-06-22&end_date=2025-06-23',
                                 headers=auth(actors['host']))
        assert response.get_json()['data']['action'] == 'split'

        listing = client.get(base, headers=auth(actors['host'])).get_json()
        assert listing['count'] == 2

    def test_block_conflict(self, client, actors):
        create(client, actors)
        response = client.post(f"/api/vehicles/{actors['vehicle']}/blocks",
                               json={'start_date': '2025-06-13'}, headers=auth(actors['host']))
        assert response.status_code == 409
        assert response.get_json()['code'] == 'booking_conflict'

    def test_admin_override(self, client, actors):
        rid = create(client, actors).get_json()['data']['reservation_id']
        response = client.post(f"/api/vehicles/{actors['vehicle']}/blocks",
                               json={'start_date': '2025-06-13', 'override_bookings': True},
                               headers=auth(actors['admin']))
        payload = response.get_json()
        assert response.status_code == 201
        assert payload['data']['cancelled_reservations'] == [rid]
        assert 'warning' in payload

    def test_delete_block_of_other_vehicle(self, client, actors):
        response = client.post(f"/api/vehicles/{actors['vehicle']}/blocks",
                               json={'start_date': '2025-06-20'}, headers=auth(actors['host']))
        block_id = response.get_json()['data']['block_id']

        response = client.delete(f'/api/vehicles/9999/blocks/{block_id}', headers=auth(actors['admin']))
        assert response.status_code == 404

    def test_recurring(self, client, actors):
        response = client.post(f"/api/vehicles/{actors['vehicle']}/blocks/recurring", json={
            'pattern': {'type': 'weekly', 'days': [6, 0]},
            'start_date': '2025-06-01', 'end_date': '2025-06-30', 'available': False,
        }, headers=auth(actors['host']))
        assert response.status_code == 201
        assert response.get_json()['data']['blocks_written'] == 9

    def test_bulk_block(self, client, actors):
        response = client.post('/api/vehicles/blocks/bulk', json={
            'vehicle_ids': [actors['vehicle'], 9999], 'start_date': '2025-07-01', 'end_date': '2025-07-02',
        }, headers=auth(actors['admin']))
        payload = response.get_json()
        assert response.status_code == 200
        assert payload['updated'] == 1
        assert payload['failed'] == 1
        assert 'warning' in payload

    def test_bulk_block_admin_only(self, client, actors):
        response = client.post('/api/vehicles/blocks/bulk', json={
            'vehicle_ids': [actors['vehicle']], 'start_date': '2025-07-01',
        }, headers=auth(actors['host']))
        assert response.status_code == 403

    def test_recurring_invalid(self, client, actors):
        response = client.post(f"/api/vehicles/{actors['vehicle']}/blocks/recurring", json={
            'pattern': {'type': 'weekly', 'days': [9]},
            'start_date': '2025-06-01', 'end_date': '2025-06-30',
        }, headers=auth(actors['host']))
        assert response.status_code == 400
        assert response.get_json()['code'] == 'invalid_pattern'


class TestPolicyRoutes:
    """Host policy read and update."""

    def test_defaults_created_on_read(self, client, actors):
        response = client.get('/api/hosts/me/policy', headers=auth(actors['host']))
        data = response.get_json()['data']
        assert response.status_code == 200
        assert data['auto_approval_enabled'] is False
        assert data['min_renter_score'] == 70
        assert data['max_auto_approve_amount'] == 7750000.0

    def test_update_enables_auto_approval(self, client, actors, set_trust):
        response = client.put('/api/hosts/me/policy', json={
            'auto_approval_enabled': True, 'max_auto_approve_amount': 5000
        }, headers=auth(actors['host']))
        assert response.status_code == 200
        assert response.get_json()['data']['auto_approval_enabled'] is True

        set_trust(actors['renter'])
        data = create(client, actors).get_json()['data']
        assert data['status'] == 'AUTO_APPROVED'
        assert data['approval_score'] == 80

    @pytest.mark.parametrize('body', [
        {'min_renter_score': 101},
        {'min_advance_hours': -1},
        {'auto_approval_enabled': 'yes'},
        {'unknown': 1},
        {'max_auto_approve_amount': float('inf')},
    ])
    def test_invalid_update(self, client, actors, body):
        response = client.put('/api/hosts/me/policy', json=body, headers=auth(actors['host']))
        assert response.status_code == 400
        assert response.get_json()['code'] == 'invalid_policy'

    def test_renter_forbidden(self, client, actors):
        assert client.get('/api/hosts/me/policy', headers=auth(actors['renter'])).status_code == 403
