"""
Tests for the activity and attendance API endpoints.
"""
import pytest


@pytest.fixture
def series_payload():
    return {
        'name': 'Rehearsal',
        'date': '2024-01-01',
        'start_time': '19:00',
        'end_time': '21:00',
        'type': 'recurring',
        'location': 'Room A',
        'recurrence_rule': 'weekly',
        'recurrence_end': '2024-01-22',
    }


class TestActivitiesApi:
    """Tests for /api/activities."""

    def test_create_recurring(self, client, auth_headers, series_payload):
        response = client.post('/api/activities', headers=auth_headers, json=series_payload)
        assert response.status_code == 201
        data = response.get_json()
        assert data['type'] == 'recurring'
        assert data['instances_created'] == 3

        listing = client.get(
            '/api/activities?start_date=2024-01-01&end_date=2024-01-31', headers=auth_headers
        ).get_json()
        assert [a['date'] for a in listing['activities']] == [
            '2024-01-01', '2024-01-08', '2024-01-15', '2024-01-22'
        ]

    def test_create_rejects_unknown_field(self, client, auth_headers, series_payload):
        series_payload['priority'] = 'high'
        response = client.post('/api/activities', headers=auth_headers, json=series_payload)
        assert response.status_code == 400

    @pytest.mark.parametrize('field', ['name', 'date', 'start_time', 'end_time'])
    def test_create_missing_required_field(self, client, auth_headers, series_payload, field):
        del series_payload[field]
        response = client.post('/api/activities', headers=auth_headers, json=series_payload)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == f'INVALID_{field.upper()}'

    def test_create_invalid_recurrence(self, client, auth_headers, series_payload):
        del series_payload['recurrence_end']
        response = client.post('/api/activities', headers=auth_headers, json=series_payload)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'INVALID_RECURRENCE_END'

    def test_update_all_future(self, client, auth_headers, series_payload):
        head_id = client.post('/api/activities', headers=auth_headers, json=series_payload).get_json()['id']
        listing = client.get('/api/activities', headers=auth_headers).get_json()['activities']
        third = next(a for a in listing if a['date'] == '2024-01-15')

        response = client.put(f"/api/activities/{third['id']}", headers=auth_headers, json={
            'location': 'Room B', 'update_all_future': True,
        })
        assert response.status_code == 200

        locations = {
            a['date']: a['location']
            for a in client.get('/api/activities', headers=auth_headers).get_json()['activities']
        }
        assert locations == {
            '2024-01-01': 'Room A', '2024-01-08': 'Room A',
            '2024-01-15': 'Room B', '2024-01-22': 'Room B',
        }
        assert head_id is not None

    def test_update_all_future_must_be_boolean(self, client, auth_headers, series_payload):
        client.post('/api/activities', headers=auth_headers, json=series_payload)
        listing = client.get('/api/activities', headers=auth_headers).get_json()['activities']
        third = next(a for a in listing if a['date'] == '2024-01-15')

        response = client.put(f"/api/activities/{third['id']}", headers=auth_headers, json={
            'location': 'Room B', 'update_all_future': 'false',
        })
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'INVALID_UPDATE_ALL_FUTURE'

        locations = {
            a['date']: a['location']
            for a in client.get('/api/activities', headers=auth_headers).get_json()['activities']
        }
        assert set(locations.values()) == {'Room A'}

    def test_update_all_future_false_edits_one(self, client, auth_headers, series_payload):
        client.post('/api/activities', headers=auth_headers, json=series_payload)
        listing = client.get('/api/activities', headers=auth_headers).get_json()['activities']
        third = next(a for a in listing if a['date'] == '2024-01-15')

        response = client.put(f"/api/activities/{third['id']}", headers=auth_headers, json={
            'location': 'Room B', 'update_all_future': False,
        })
        assert response.status_code == 200

        locations = {
            a['date']: a['location']
            for a in client.get('/api/activities', headers=auth_headers).get_json()['activities']
        }
        assert locations['2024-01-15'] == 'Room B'
        assert locations['2024-01-22'] == 'Room A'

    def test_delete_series(self, client, auth_headers, series_payload):
        head_id = client.post('/api/activities', headers=auth_headers, json=series_payload).get_json()['id']

        response = client.delete(f'/api/activities/{head_id}?delete_recurring=true', headers=auth_headers)
        assert response.status_code == 200
        assert len(response.get_json()['deleted_activity_ids']) == 4
        assert client.get('/api/activities', headers=auth_headers).get_json()['total'] == 0

    def test_get_with_attendance(self, client, auth_headers, sample_activity, sample_member):
        activity_id, member_id = sample_activity.id, sample_member.id
        client.post('/api/attendance', headers=auth_headers, json={
            'activity_id': activity_id, 'member_id': member_id, 'status': 'present',
        })

        data = client.get(f'/api/activities/{activity_id}', headers=auth_headers).get_json()
        assert data['attendance_count']['present'] == 1
        assert len(data['attendance']) == 1

    def test_get_missing(self, client, auth_headers):
        response = client.get('/api/activities/12345', headers=auth_headers)
        assert response.status_code == 404
        assert response.get_json()['error']['code'] == 'ACTIVITY_NOT_FOUND'

    def test_fix_recurring(self, client, auth_headers, series_payload):
        client.post('/api/activities', headers=auth_headers, json=series_payload)
        response = client.post('/api/activities/fix-recurring', headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json() == {'fixed': 0, 'instances_created': 0}


class TestAttendanceApi:
    """Tests for /api/attendance."""

    def test_mark_then_bulk(self, client, auth_headers, sample_activity, sample_member):
        activity_id, member_id = sample_activity.id, sample_member.id

        first = client.post('/api/attendance', headers=auth_headers, json={
            'activity_id': activity_id, 'member_id': member_id, 'status': 'present',
        }).get_json()
        bulk = client.post('/api/attendance/bulk', headers=auth_headers, json={
            'activity_id': activity_id,
            'attendance': [{'member_id': member_id, 'status': 'absent'}],
        }).get_json()

        assert bulk['attendance_ids'] == [first['attendance_id']]
        records = client.get(f'/api/attendance/activity/{activity_id}', headers=auth_headers).get_json()
        assert records['total'] == 1
        assert records['attendance'][0]['status'] == 'absent'
        assert records['attendance'][0]['member']['id'] == member_id

    def test_mark_invalid_status(self, client, auth_headers, sample_activity, sample_member):
        response = client.post('/api/attendance', headers=auth_headers, json={
            'activity_id': sample_activity.id, 'member_id': sample_member.id, 'status': 'late',
        })
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'INVALID_STATUS'

    def test_mark_missing_ids(self, client, auth_headers):
        response = client.post('/api/attendance', headers=auth_headers, json={'status': 'present'})
        assert response.status_code == 400

    def test_bulk_is_atomic(self, client, auth_headers, sample_activity, sample_member):
        activity_id, member_id = sample_activity.id, sample_member.id
        response = client.post('/api/attendance/bulk', headers=auth_headers, json={
            'activity_id': activity_id,
            'attendance': [
                {'member_id': member_id, 'status': 'present'},
                {'member_id': 9999, 'status': 'present'},
            ],
        })
        assert response.status_code == 404

        records = client.get(f'/api/attendance/activity/{activity_id}', headers=auth_headers).get_json()
        assert records['total'] == 0

    def test_member_history_and_stats(self, client, auth_headers, sample_activity, sample_member):
        activity_id, member_id = sample_activity.id, sample_member.id
        client.post('/api/attendance', headers=auth_headers, json={
            'activity_id': activity_id, 'member_id': member_id, 'status': 'present',
        })

        history = client.get(f'/api/attendance/member/{member_id}', headers=auth_headers).get_json()
        assert history['attendance'][0]['activity']['id'] == activity_id

        stats = client.get('/api/attendance/stats', headers=auth_headers).get_json()
        assert stats['attendance_rate'] == 100
