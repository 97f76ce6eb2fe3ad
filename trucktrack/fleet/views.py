# trucktrack/fleet/views.py
import pytz
from datetime import datetime
from flask import current_app
from trucktrack.init_db import db
from trucktrack.exceptions import ConflictError, Forbidden, ValidationError
from trucktrack.fleet.availability import check_availability, find_conflicts
from trucktrack.fleet.estimation import NOT_AVAILABLE
from trucktrack.fleet.models import (
    COMMITTED_STATUSES, TRIP_STATUSES, Customer, Driver, Trip, Vehicle,
)
from trucktrack.logging_config import setup_logging
from trucktrack.roles import Role
from trucktrack.store import booking_lock
from trucktrack.validation import finite_number

logger = setup_logging()

TEXT_FIELDS = ('origin', 'destination', 'estimated_travel_time', 'estimated_arrival_time', 'delivery_requirement')
NUMBER_FIELDS = ('origin_lat', 'origin_lng', 'destination_lat', 'destination_lng', 'distance', 'price')
REFERENCE_FIELDS = {'driver_id': Driver, 'customer_id': Customer, 'vehicle_id': Vehicle}
REQUIRED_FIELDS = ('origin', 'destination', 'date', 'driver_id', 'customer_id', 'vehicle_id')


def parse_date(value, field='date'):
    if hasattr(value, 'year') and not isinstance(value, str):
        return value
    try:
        return datetime.strptime(str(value), '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {field}. Use YYYY-MM-DD.')

def parse_number(value, field):
    """Accept plain numbers as well as display strings such as ``12.5 km``.

    Blank values and the estimator's ``N/A`` placeholder clear the field.
    """
    if value is None or (isinstance(value, str) and value.strip() in ('', NOT_AVAILABLE)):
        return None
    return finite_number(value, field)

def local_today():
    return datetime.now(pytz.timezone(current_app.config['APP_TIMEZONE'])).date()

def _role(caller):
    return Role(caller.role)


def drivers_query(caller):
    query = Driver.query
    if _role(caller) != Role.MASTER_ADMIN:
        query = query.filter(Driver.company == caller.company)
    return query

def trips_query(caller):
    role = _role(caller)
    query = Trip.query
    if role == Role.ADMIN:
        query = query.join(Driver, Trip.driver_id == Driver.id).filter(Driver.company == caller.company)
    elif role == Role.USER:
        query = query.join(Driver, Trip.driver_id == Driver.id).filter(
            Driver.user_id == caller.id, Trip.status == 'Active')
    return query

def list_trips(caller):
    return trips_query(caller).order_by(Trip.date.desc(), Trip.id.desc()).all()

def can_view(caller, trip):
    role = _role(caller)
    if role == Role.MASTER_ADMIN:
        return True
    driver = trip.driver
    if driver is None:
        return False
    if role == Role.ADMIN:
        return driver.company == caller.company
    return driver.user_id == caller.id and trip.status == 'Active'

def can_mutate(caller, trip, action):
    """Decide whether ``caller`` may ``create``, ``update``, ``delete`` or ``complete`` ``trip``."""
    role = _role(caller)
    if role == Role.MASTER_ADMIN:
        return True
    if role == Role.ADMIN:
        return action != 'complete' and trip.company_id is not None and can_view(caller, trip)
    return action == 'complete' and can_view(caller, trip)

def can_manage_driver(caller, driver):
    role = _role(caller)
    if role == Role.MASTER_ADMIN:
        return True
    return role == Role.ADMIN and driver.company == caller.company

def ensure_can_mutate(caller, trip, action):
    if not can_mutate(caller, trip, action):
        logger.warning(f"User {caller.username} ({caller.role}) denied {action} on trip {trip.id}.")
        raise Forbidden()


def availability_for(caller, date):
    drivers = drivers_query(caller).all()
    vehicles = Vehicle.query.all()
    trips = Trip.query.filter(Trip.date == date, Trip.status.in_(COMMITTED_STATUSES)).all()
    return check_availability(date, drivers, vehicles, trips)

def _ensure_free(caller, date, driver_id, vehicle_id, exclude_id=None, check_full=False):
    if check_full:
        availability = availability_for(caller, date)
        if availability['fully_booked']:
            logger.warning(f"Booking rejected: {date} is fully booked.")
            raise ConflictError(f'{date.isoformat()} is fully booked. Please choose another date.')

    trips = Trip.query.filter(Trip.date == date, Trip.status.in_(COMMITTED_STATUSES)).all()
    conflicts = find_conflicts(date, driver_id, vehicle_id, trips, exclude_id=exclude_id)
    if conflicts:
        logger.warning(f"Booking rejected: {' and '.join(conflicts)} already booked on {date}.")
        raise ConflictError(f"The selected {' and '.join(conflicts)} already has a trip on {date.isoformat()}.")


def _apply_trip_fields(trip, data):
    for field in TEXT_FIELDS:
        if field in data:
            value = data[field]
            setattr(trip, field, str(value).strip() if value not in (None, '') else None)

    for field in NUMBER_FIELDS:
        if field in data:
            setattr(trip, field, parse_number(data[field], field))

    for field, model in REFERENCE_FIELDS.items():
        if field in data:
            value = data[field]
            if value in (None, ''):
                setattr(trip, field, None)
                continue
            try:
                record_id = int(value)
            except (TypeError, ValueError):
                raise ValidationError(f'Invalid {field}.')
            if db.session.get(model, record_id) is None:
                raise ValidationError(f'{model.__name__} {record_id} does not exist.')
            setattr(trip, field, record_id)

    if 'date' in data:
        trip.date = parse_date(data['date'])

    if 'status' in data:
        if data['status'] not in TRIP_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(TRIP_STATUSES)}.")
        trip.status = data['status']

def _ensure_driver_in_company(caller, driver_id):
    if _role(caller) != Role.ADMIN or driver_id is None:
        return
    driver = db.session.get(Driver, driver_id)
    if driver.company != caller.company:
        logger.warning(f"Admin {caller.username} tried to book driver {driver_id} from another company.")
        raise Forbidden('You can only assign drivers from your own company.')

def create_trip(caller, data):
    missing = [field for field in REQUIRED_FIELDS if data.get(field) in (None, '')]
    if missing:
        raise ValidationError(f"Missing required trip fields: {', '.join(missing)}.")

    with booking_lock:
        trip = Trip(status='Pending')
        _apply_trip_fields(trip, data)
        _ensure_driver_in_company(caller, trip.driver_id)
        trip.company_id = caller.company if _role(caller) == Role.ADMIN else None

        if trip.status in COMMITTED_STATUSES:
            _ensure_free(caller, trip.date, trip.driver_id, trip.vehicle_id, check_full=True)

        db.session.add(trip)
        db.session.commit()

    logger.info(f"Trip {trip.id} on {trip.date} created by {caller.username}.")
    return trip

def update_trip(caller, trip, data):
    if _role(caller) == Role.USER:
        return complete_trip(caller, trip, data)

    ensure_can_mutate(caller, trip, 'update')

    with booking_lock:
        before = (trip.date, trip.driver_id, trip.vehicle_id, trip.status)
        _apply_trip_fields(trip, data)
        if trip.origin is None or trip.destination is None:
            db.session.rollback()
            raise ValidationError('Origin and destination cannot be empty.')

        try:
            if trip.driver_id != before[1]:
                _ensure_driver_in_company(caller, trip.driver_id)
            moved = (trip.date, trip.driver_id, trip.vehicle_id) != before[:3]
            reopened = before[3] not in COMMITTED_STATUSES
            if trip.status in COMMITTED_STATUSES and (moved or reopened):
                _ensure_free(caller, trip.date, trip.driver_id, trip.vehicle_id, exclude_id=trip.id)
        except (ConflictError, Forbidden):
            db.session.rollback()
            raise

        db.session.commit()

    logger.info(f"Trip {trip.id} updated by {caller.username}.")
    return trip

def complete_trip(caller, trip, data):
    """The one write open to drivers: marking their Active trip Completed."""
    if set(data) != {'status'} or data.get('status') != 'Completed':
        logger.warning(f"User {caller.username} attempted a restricted trip update.")
        raise Forbidden('Drivers may only mark their active trips as completed.')
    ensure_can_mutate(caller, trip, 'complete')

    trip.status = 'Completed'
    db.session.commit()
    logger.info(f"Trip {trip.id} marked completed by {caller.username}.")
    return trip

def delete_trip(caller, trip):
    ensure_can_mutate(caller, trip, 'delete')
    trip_id = trip.id
    db.session.delete(trip)
    db.session.commit()
    logger.info(f"Trip {trip_id} deleted by {caller.username}.")
