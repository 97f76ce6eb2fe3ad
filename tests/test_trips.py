import io
from datetime import date
import pytest
from trucktrack.init_db import db
from trucktrack.fleet.models import Trip

DAY = date(2025, 3, 10)


@pytest.fixture
def fleet(make_user, make_driver, make_vehicle, make_customer, auth_for):
    """Two companies, each with one driver, sharing the vehicle pool."""
    ids = {
        'master': make_user('boss', role='master_admin', company=None),
        'acme_admin': make_user('ana', role='admin', company='Acme'),
        'beta_admin': make_user('ben', role='admin', company='Beta'),
        'driver_user': make_user('juan', role='user', company='Acme'),
    }
    ids['acme_driver'] = make_driver('Juan Dela Cruz', company='Acme', user_id=ids['driver_user'])
    ids['beta_driver'] = make_driver('Pedro Penduko', company='Beta')
    ids['van'] = make_vehicle('NPL888')
    ids['truck'] = make_vehicle('ABC123', model='Isuzu Elf')
    ids['customer'] = make_customer()
    ids['headers'] = {role: auth_for(ids[role]) for role in ('master', 'acme_admin', 'beta_admin', 'driver_user')}
    return ids


def trip_payload(fleet, driver='acme_driver', vehicle='van', day='2025-03-10', **extra):
    payload = {
        'origin': 'Manila',
        'destination': 'Quezon City',
        'date': day,
        'driver_id': fleet[driver],
        'vehicle_id': fleet[vehicle],
        'customer_id': fleet['customer'],
    }
    payload.update(extra)
    return payload


def test_admin_creates_trip_for_own_company(client, fleet):
    response = client.post('/trips', json=trip_payload(fleet, price='1,250.50'), headers=fleet['headers']['acme_admin'])

    assert response.status_code == 201
    body = response.get_json()
    assert body['status'] == 'Pending'
    assert body['company_id'] == 'Acme'
    assert body['driver_name'] == 'Juan Dela Cruz'
    assert body['price'] == 1250.5


def test_master_admin_trip_has_no_company(client, fleet):
    response = client.post('/trips', json=trip_payload(fleet), headers=fleet['headers']['master'])

    assert response.status_code == 201
    assert response.get_json()['company_id'] is None


def test_create_trip_requires_fields(client, fleet):
    payload = trip_payload(fleet)
    del payload['destination']

    response = client.post('/trips', json=payload, headers=fleet['headers']['acme_admin'])

    assert response.status_code == 400
    assert 'destination' in response.get_json()['message']


def test_create_trip_rejects_unknown_references(client, fleet):
    payload = trip_payload(fleet)
    payload['customer_id'] = 999

    response = client.post('/trips', json=payload, headers=fleet['headers']['master'])

    assert response.status_code == 400


def test_admin_cannot_book_another_companys_driver(client, fleet):
    response = client.post('/trips', json=trip_payload(fleet, driver='beta_driver'), headers=fleet['headers']['acme_admin'])

    assert response.status_code == 403


def test_drivers_cannot_create_trips(client, fleet):
    response = client.post('/trips', json=trip_payload(fleet), headers=fleet['headers']['driver_user'])

    assert response.status_code == 403


def test_admin_lists_only_own_company_trips(client, fleet, make_trip):
    make_trip(fleet['acme_driver'], fleet['van'], fleet['customer'], company_id='Acme')
    make_trip(fleet['beta_driver'], fleet['truck'], fleet['customer'], company_id='Beta')

    acme = client.get('/trips', headers=fleet['headers']['acme_admin']).get_json()
    beta = client.get('/trips', headers=fleet['headers']['beta_admin']).get_json()
    everything = client.get('/trips', headers=fleet['headers']['master']).get_json()

    assert [t['driver_name'] for t in acme] == ['Juan Dela Cruz']
    assert [t['driver_name'] for t in beta] == ['Pedro Penduko']
    assert len(everything) == 2


def test_admin_cannot_open_another_companys_trip(client, fleet, make_trip):
    trip_id = make_trip(fleet['beta_driver'], fleet['truck'], fleet['customer'], company_id='Beta')

    assert client.get(f'/trips/{trip_id}', headers=fleet['headers']['acme_admin']).status_code == 403
    assert client.get(f'/trips/{trip_id}', headers=fleet['headers']['beta_admin']).status_code == 200
    assert client.get('/trips/999', headers=fleet['headers']['master']).status_code == 404


def test_fully_booked_day_rejects_new_trip(client, fleet, make_trip):
    # Acme has a single driver, already out on DAY
    make_trip(fleet['acme_driver'], fleet['van'], fleet['customer'])

    response = client.post('/trips', json=trip_payload(fleet, vehicle='truck'), headers=fleet['headers']['acme_admin'])

    assert response.status_code == 409
    assert 'fully booked' in response.get_json()['message']


def test_completed_trips_do_not_block_the_day(client, fleet, make_trip):
    make_trip(fleet['acme_driver'], fleet['van'], fleet['customer'], status='Completed')

    response = client.post('/trips', json=trip_payload(fleet), headers=fleet['headers']['acme_admin'])

    assert response.status_code == 201


def test_double_booked_vehicle_is_a_conflict(client, fleet, make_trip):
    make_trip(fleet['beta_driver'], fleet['van'], fleet['customer'], company_id='Beta')

    response = client.post('/trips', json=trip_payload(fleet, vehicle='van'), headers=fleet['headers']['master'])

    assert response.status_code == 409
    assert 'vehicle' in response.get_json()['message']


def test_availability_endpoint_reports_free_resources(client, fleet, make_trip):
    make_trip(fleet['acme_driver'], fleet['van'], fleet['customer'])

    acme = client.get('/trips/availability?date=2025-03-10', headers=fleet['headers']['acme_admin']).get_json()
    master = client.get('/trips/availability?date=2025-03-10', headers=fleet['headers']['master']).get_json()

    assert acme['fullyBooked'] is True
    assert acme['allDriversBooked'] is True
    assert master['fullyBooked'] is False
    assert master['freeDriverIds'] == [fleet['beta_driver']]
    assert master['freeVehicleIds'] == [fleet['truck']]


def test_availability_rejects_bad_date(client, fleet):
    response = client.get('/trips/availability?date=10/03/2025', headers=fleet['headers']['master'])

    assert response.status_code == 400


def test_admin_updates_own_trip(client, fleet, make_trip):
    trip_id = make_trip(fleet['acme_driver'], fleet['van'], fleet['customer'])

    response = client.put(f'/trips/{trip_id}', json={'status': 'Active', 'distance': '12.5 km'},
                          headers=fleet['headers']['acme_admin'])

    assert response.status_code == 200
    trip = response.get_json()['trip']
    assert trip['status'] == 'Active'
    assert trip['distance'] == 12.5


def test_moving_trip_onto_booked_vehicle_is_rolled_back(client, fleet, make_trip, app):
    make_trip(fleet['beta_driver'], fleet['truck'], fleet['customer'], company_id='Beta')
    trip_id = make_trip(fleet['acme_driver'], fleet['van'], fleet['customer'], company_id='Acme')

    response = client.put(f'/trips/{trip_id}', json={'vehicle_id': fleet['truck']}, headers=fleet['headers']['master'])

    assert response.status_code == 409
    with app.app_context():
        assert db.session.get(Trip, trip_id).vehicle_id == fleet['van']


def test_admin_cannot_modify_master_admin_trip(client, fleet, make_trip):
    trip_id = make_trip(fleet['acme_driver'], fleet['van'], fleet['customer'], company_id=None)

    assert client.put(f'/trips/{trip_id}', json={'status': 'Active'}, headers=fleet['headers']['acme_admin']).status_code == 403
    assert client.delete(f'/trips/{trip_id}', headers=fleet['headers']['acme_admin']).status_code == 403
    assert client.delete(f'/trips/{trip_id}', headers=fleet['headers']['master']).status_code == 204


def test_driver_sees_and_completes_own_active_trip(client, fleet, make_trip):
    pending_id = make_trip(fleet['acme_driver'], fleet['van'], fleet['customer'], day=date(2025, 3, 11))
    active_id = make_trip(fleet['acme_driver'], fleet['van'], fleet['customer'], status='Active')
    headers = fleet['headers']['driver_user']

    listed = client.get('/trips', headers=headers).get_json()
    assert [t['id'] for t in listed] == [active_id]
    assert client.get(f'/trips/{pending_id}', headers=headers).status_code == 403

    tampered = client.put(f'/trips/{active_id}', json={'status': 'Completed', 'price': 1}, headers=headers)
    assert tampered.status_code == 403

    done = client.put(f'/trips/{active_id}', json={'status': 'Completed'}, headers=headers)
    assert done.status_code == 200
    assert done.get_json()['trip']['status'] == 'Completed'


def test_driver_cannot_complete_someone_elses_trip(client, fleet, make_trip):
    trip_id = make_trip(fleet['beta_driver'], fleet['truck'], fleet['customer'], status='Active', company_id='Beta')

    response = client.put(f'/trips/{trip_id}', json={'status': 'Completed'}, headers=fleet['headers']['driver_user'])

    assert response.status_code == 403


def test_deleting_driver_keeps_trip_and_clears_reference(client, fleet, make_trip):
    trip_id = make_trip(fleet['beta_driver'], fleet['truck'], fleet['customer'], company_id='Beta')
    headers = fleet['headers']['master']

    assert client.delete(f"/drivers/{fleet['beta_driver']}", headers=headers).status_code == 204

    trip = client.get(f'/trips/{trip_id}', headers=headers).get_json()
    assert trip['driver_id'] is None
    assert trip['driver_name'] is None
    assert trip['vehicle_id'] == fleet['truck']


def test_admin_only_manages_own_company_drivers(client, fleet):
    headers = fleet['headers']['acme_admin']

    listed = client.get('/drivers', headers=headers).get_json()
    assert [d['name'] for d in listed] == ['Juan Dela Cruz']
    assert client.delete(f"/drivers/{fleet['beta_driver']}", headers=headers).status_code == 403

    created = client.post('/drivers', json={'name': 'Nena', 'license': 'N01', 'company': 'Beta'}, headers=headers)
    assert created.status_code == 201
    assert created.get_json()['company'] == 'Acme'


def test_vehicle_and_customer_crud(client, fleet):
    headers = fleet['headers']['master']

    vehicle = client.post('/vehicles', json={'model': 'Toyota Hiace', 'year': '2020', 'plate_number': 'XYZ789',
                                             'last_service': '2025-01-15'}, headers=headers)
    assert vehicle.status_code == 201
    vehicle_id = vehicle.get_json()['id']
    assert vehicle.get_json()['last_service'] == '2025-01-15'

    updated = client.put(f'/vehicles/{vehicle_id}', json={'status': 'Maintenance'}, headers=headers)
    assert updated.get_json()['vehicle']['status'] == 'Maintenance'
    assert client.post('/vehicles', json={'model': 'No plate', 'year': 2020}, headers=headers).status_code == 400
    assert client.delete(f'/vehicles/{vehicle_id}', headers=headers).status_code == 204
    assert client.get(f'/vehicles/{vehicle_id}', headers=headers).status_code == 404

    customer = client.post('/customers', json={'name': 'Maria', 'phone': '0917', 'address': 'Cebu'}, headers=headers)
    assert customer.status_code == 201
    assert client.post('/customers', json={'name': 'Maria'}, headers=headers).status_code == 400


def test_drivers_can_read_but_not_write_customers(client, fleet):
    headers = fleet['headers']['driver_user']

    assert client.get('/customers', headers=headers).status_code == 200
    assert client.post('/customers', json={'name': 'X', 'phone': '1', 'address': 'Y'}, headers=headers).status_code == 403
    assert client.get('/vehicles', headers=headers).status_code == 403


def upload(client, trip_id, headers, filename='receipt.png'):
    return client.post('/proofs', headers=headers, content_type='multipart/form-data', data={
        'tripId': str(trip_id),
        'notes': 'Delivered to the guard house',
        'file': (io.BytesIO(b'fake image bytes'), filename),
    })


def test_driver_submits_proof_for_completed_trip(client, fleet, make_trip):
    headers = fleet['headers']['driver_user']
    trip_id = make_trip(fleet['acme_driver'], fleet['van'], fleet['customer'], status='Completed')

    response = upload(client, trip_id, headers)
    assert response.status_code == 201
    proof = response.get_json()
    assert proof['tripId'] == trip_id
    assert proof['userId'] == fleet['driver_user']

    listed = client.get('/proofs', headers=headers).get_json()
    assert [p['id'] for p in listed] == [proof['id']]
    assert client.get('/proofs', headers=fleet['headers']['beta_admin']).get_json() == []

    download = client.get(f"/proofs/{proof['id']}/file", headers=headers)
    assert download.status_code == 200
    assert download.data == b'fake image bytes'


def test_proof_requires_completed_trip_and_allowed_file(client, fleet, make_trip):
    headers = fleet['headers']['driver_user']
    active_id = make_trip(fleet['acme_driver'], fleet['van'], fleet['customer'], status='Active')
    done_id = make_trip(fleet['acme_driver'], fleet['van'], fleet['customer'], status='Completed', day=date(2025, 3, 9))

    assert upload(client, active_id, headers).status_code == 400
    assert upload(client, done_id, headers, filename='notes.exe').status_code == 400


def test_health_check(client):
    response = client.get('/health')

    assert response.status_code == 200
    assert response.get_json() == {'status': 'OK'}


def test_admin_cannot_modify_another_companys_trip(client, fleet, make_trip, app):
    trip_id = make_trip(fleet['beta_driver'], fleet['truck'], fleet['customer'], company_id='Beta')
    headers = fleet['headers']['acme_admin']

    assert client.put(f'/trips/{trip_id}', json={'status': 'Active'}, headers=headers).status_code == 403
    assert client.delete(f'/trips/{trip_id}', headers=headers).status_code == 403
    with app.app_context():
        trip = db.session.get(Trip, trip_id)
        assert trip is not None
        assert trip.status == 'Pending'


@pytest.mark.parametrize('raw', [
    '{"price": 1e999}',
    '{"distance": "nan"}',
    '{"origin_lat": "Infinity"}',
    '{"price": "1e999"}',
    '{"price": true}',
])
def test_trip_numbers_must_be_finite(client, fleet, make_trip, raw):
    trip_id = make_trip(fleet['acme_driver'], fleet['van'], fleet['customer'])

    response = client.put(f'/trips/{trip_id}', data=raw, content_type='application/json',
                          headers=fleet['headers']['acme_admin'])

    assert response.status_code == 400
    assert response.get_json()['error'] == 'ValidationError'


@pytest.mark.parametrize('value, expected', [
    ('1e5', 100000.0),
    ('12.5 km', 12.5),
    ('1,250.50', 1250.5),
    (45, 45.0),
    ('N/A', None),
    ('', None),
])
def test_trip_numbers_accept_display_strings(client, fleet, make_trip, value, expected):
    trip_id = make_trip(fleet['acme_driver'], fleet['van'], fleet['customer'])

    response = client.put(f'/trips/{trip_id}', json={'distance': value}, headers=fleet['headers']['acme_admin'])

    assert response.status_code == 200
    assert response.get_json()['trip']['distance'] == expected


def test_trip_body_must_be_an_object(client, fleet):
    response = client.post('/trips', json=[trip_payload(fleet)], headers=fleet['headers']['master'])

    assert response.status_code == 400


def test_driver_availability_is_scoped_to_own_company(client, fleet):
    response = client.get('/trips/availability?date=2025-03-10', headers=fleet['headers']['driver_user'])

    assert response.status_code == 200
    assert response.get_json()['freeDriverIds'] == [fleet['acme_driver']]


def test_availability_defaults_to_today_in_app_timezone(client, fleet, app):
    from trucktrack.fleet.views import local_today

    response = client.get('/trips/availability', headers=fleet['headers']['master'])

    with app.app_context():
        today = local_today()
    assert response.get_json()['date'] == today.isoformat()


def test_local_today_follows_configured_timezone(app):
    from datetime import timedelta
    from trucktrack.fleet.views import local_today

    # UTC+14 and UTC-11 are always on different calendar days
    with app.app_context():
        app.config['APP_TIMEZONE'] = 'Pacific/Kiritimati'
        ahead = local_today()
        app.config['APP_TIMEZONE'] = 'Pacific/Pago_Pago'
        behind = local_today()

    assert ahead - behind == timedelta(days=1)
