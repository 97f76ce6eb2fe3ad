# trucktrack/fleet/routes.py
import os
import uuid
from flask import Blueprint, request, jsonify, current_app, send_from_directory
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.utils import secure_filename
from trucktrack.init_db import db
from trucktrack.authentication.models import User
from trucktrack.decorators import capability_required
from trucktrack.exceptions import Forbidden, NotFoundError, ValidationError
from trucktrack.fleet.estimation import estimate_trip, format_arrival
from trucktrack.fleet.models import DRIVER_STATUSES, VEHICLE_STATUSES, Customer, Driver, Proof, Trip, Vehicle
from trucktrack.fleet.views import (
    availability_for, can_manage_driver, can_view, create_trip, delete_trip, drivers_query,
    list_trips, local_today, parse_date, parse_number, update_trip,
)
from trucktrack.logging_config import setup_logging
from trucktrack.roles import Role
from trucktrack.store import get_or_404
from trucktrack.validation import json_body


fleet_bp = Blueprint('fleet', __name__)

logger = setup_logging()

ALLOWED_PROOF_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'pdf'}


def _commit(action, label):
    session = db.session()
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Database error while {action} {label}: {e}")
        return jsonify({'message': f'Error {action} {label}.'}), 500
    return None


@fleet_bp.route('/trips', methods=['GET'])
@login_required
@capability_required('trips')
def get_trips():
    trips = list_trips(current_user)
    return jsonify([trip.to_dict() for trip in trips]), 200

@fleet_bp.route('/trips', methods=['POST'])
@login_required
@capability_required('trips', write=True)
def add_trip():
    trip = create_trip(current_user, json_body())
    return jsonify(trip.to_dict()), 201

@fleet_bp.route('/trips/<int:trip_id>', methods=['GET'])
@login_required
@capability_required('trips')
def get_trip(trip_id):
    trip = get_or_404(Trip, trip_id, 'Trip')
    if not can_view(current_user, trip):
        raise Forbidden()
    return jsonify(trip.to_dict()), 200

@fleet_bp.route('/trips/<int:trip_id>', methods=['PUT'])
@login_required
@capability_required('trips')
def edit_trip(trip_id):
    trip = get_or_404(Trip, trip_id, 'Trip')
    trip = update_trip(current_user, trip, json_body())
    return jsonify({'message': 'Trip updated successfully!', 'trip': trip.to_dict()}), 200

@fleet_bp.route('/trips/<int:trip_id>', methods=['DELETE'])
@login_required
@capability_required('trips', write=True)
def remove_trip(trip_id):
    trip = get_or_404(Trip, trip_id, 'Trip')
    delete_trip(current_user, trip)
    return '', 204

@fleet_bp.route('/trips/availability', methods=['GET'])
@login_required
@capability_required('trips')
def trip_availability():
    date_str = request.args.get('date')
    day = parse_date(date_str) if date_str else local_today()
    availability = availability_for(current_user, day)
    return jsonify({
        'date': day.isoformat(),
        'fullyBooked': availability['fully_booked'],
        'allDriversBooked': availability['all_drivers_booked'],
        'allVehiclesBooked': availability['all_vehicles_booked'],
        'freeDriverIds': availability['free_driver_ids'],
        'freeVehicleIds': availability['free_vehicle_ids'],
    }), 200

@fleet_bp.route('/trips/estimate', methods=['POST'])
@login_required
@capability_required('trips', write=True)
def trip_estimate():
    data = json_body()
    origin = (parse_number(data.get('origin_lat'), 'origin_lat'), parse_number(data.get('origin_lng'), 'origin_lng'))
    destination = (parse_number(data.get('destination_lat'), 'destination_lat'),
                   parse_number(data.get('destination_lng'), 'destination_lng'))
    day = parse_date(data['date']) if data.get('date') else None

    result = estimate_trip(origin, destination, day)
    available = result['arrival_time'] != 'N/A'
    return jsonify({
        'available': available,
        'estimated_travel_time': result['travel_time'],
        'estimated_arrival_time': format_arrival(result['arrival_time']),
        'arrival_time_iso': result['arrival_time'].isoformat() if available else None,
        'distance': result['distance_km'],
        'price': result['price'],
        'message': None if available else 'Route estimate is not available.',
    }), 200


def _apply_driver_fields(driver, data):
    for field in ('name', 'license', 'phone', 'email'):
        if field in data:
            setattr(driver, field, str(data[field] or '').strip() or None)
    if 'status' in data:
        if data['status'] not in DRIVER_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(DRIVER_STATUSES)}.")
        driver.status = data['status']
    if 'user_id' in data:
        user_id = data['user_id']
        if user_id in (None, ''):
            driver.user_id = None
        else:
            try:
                user_id = int(user_id)
            except (TypeError, ValueError):
                raise ValidationError('Invalid user_id.')
            if db.session.get(User, user_id) is None:
                raise ValidationError(f'User {user_id} does not exist.')
            driver.user_id = user_id
    if 'company' in data and current_user.role == Role.MASTER_ADMIN.value:
        driver.company = str(data['company'] or '').strip() or None

def _managed_driver(driver_id):
    driver = get_or_404(Driver, driver_id, 'Driver')
    if not can_manage_driver(current_user, driver):
        raise Forbidden()
    return driver

@fleet_bp.route('/drivers', methods=['GET'])
@login_required
@capability_required('drivers')
def get_drivers():
    drivers = drivers_query(current_user).order_by(Driver.name).all()
    return jsonify([driver.to_dict() for driver in drivers]), 200

@fleet_bp.route('/drivers', methods=['POST'])
@login_required
@capability_required('drivers', write=True)
def add_driver():
    data = json_body()
    if not data.get('name') or not data.get('license'):
        return jsonify({'message': 'Name and license are required.'}), 400

    driver = Driver(status='Active')
    _apply_driver_fields(driver, data)
    if current_user.role == Role.ADMIN.value:
        driver.company = current_user.company
    db.session.add(driver)

    failed = _commit('adding', 'driver')
    if failed:
        return failed
    logger.info(f"Driver {driver.id} added by {current_user.username}.")
    return jsonify(driver.to_dict()), 201

@fleet_bp.route('/drivers/<int:driver_id>', methods=['GET'])
@login_required
@capability_required('drivers')
def get_driver(driver_id):
    return jsonify(_managed_driver(driver_id).to_dict()), 200

@fleet_bp.route('/drivers/<int:driver_id>', methods=['PUT'])
@login_required
@capability_required('drivers', write=True)
def update_driver(driver_id):
    driver = _managed_driver(driver_id)
    _apply_driver_fields(driver, json_body())
    if not driver.name or not driver.license:
        db.session.rollback()
        return jsonify({'message': 'Name and license cannot be empty.'}), 400

    failed = _commit('updating', 'driver')
    if failed:
        return failed
    return jsonify({'message': 'Driver updated successfully!', 'driver': driver.to_dict()}), 200

@fleet_bp.route('/drivers/<int:driver_id>', methods=['DELETE'])
@login_required
@capability_required('drivers', write=True)
def delete_driver(driver_id):
    driver = _managed_driver(driver_id)
    # Trips keep their rows; the relationship nulls their driver_id
    db.session.delete(driver)

    failed = _commit('deleting', 'driver')
    if failed:
        return failed
    logger.info(f"Driver {driver_id} deleted by {current_user.username}.")
    return '', 204


def _apply_vehicle_fields(vehicle, data):
    for field in ('model', 'plate_number'):
        if field in data:
            setattr(vehicle, field, str(data[field] or '').strip() or None)
    if 'year' in data:
        try:
            vehicle.year = int(data['year'])
        except (TypeError, ValueError):
            raise ValidationError('Year must be a number.')
    if 'last_service' in data:
        vehicle.last_service = parse_date(data['last_service'], 'last_service') if data['last_service'] else None
    if 'status' in data:
        if data['status'] not in VEHICLE_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(VEHICLE_STATUSES)}.")
        vehicle.status = data['status']

@fleet_bp.route('/vehicles', methods=['GET'])
@login_required
@capability_required('vehicles')
def get_vehicles():
    vehicles = Vehicle.query.order_by(Vehicle.model).all()
    return jsonify([vehicle.to_dict() for vehicle in vehicles]), 200

@fleet_bp.route('/vehicles', methods=['POST'])
@login_required
@capability_required('vehicles', write=True)
def add_vehicle():
    data = json_body()
    if not data.get('model') or not data.get('year') or not data.get('plate_number'):
        return jsonify({'message': 'Model, year, and plate number are required.'}), 400

    vehicle = Vehicle(status='Active')
    _apply_vehicle_fields(vehicle, data)
    db.session.add(vehicle)

    failed = _commit('adding', 'vehicle')
    if failed:
        return failed
    logger.info(f"Vehicle {vehicle.id} added by {current_user.username}.")
    return jsonify(vehicle.to_dict()), 201

@fleet_bp.route('/vehicles/<int:vehicle_id>', methods=['GET'])
@login_required
@capability_required('vehicles')
def get_vehicle(vehicle_id):
    return jsonify(get_or_404(Vehicle, vehicle_id, 'Vehicle').to_dict()), 200

@fleet_bp.route('/vehicles/<int:vehicle_id>', methods=['PUT'])
@login_required
@capability_required('vehicles', write=True)
def update_vehicle(vehicle_id):
    vehicle = get_or_404(Vehicle, vehicle_id, 'Vehicle')
    _apply_vehicle_fields(vehicle, json_body())
    if not vehicle.model or not vehicle.plate_number:
        db.session.rollback()
        return jsonify({'message': 'Model and plate number cannot be empty.'}), 400

    failed = _commit('updating', 'vehicle')
    if failed:
        return failed
    return jsonify({'message': 'Vehicle updated successfully!', 'vehicle': vehicle.to_dict()}), 200

@fleet_bp.route('/vehicles/<int:vehicle_id>', methods=['DELETE'])
@login_required
@capability_required('vehicles', write=True)
def delete_vehicle(vehicle_id):
    vehicle = get_or_404(Vehicle, vehicle_id, 'Vehicle')
    db.session.delete(vehicle)

    failed = _commit('deleting', 'vehicle')
    if failed:
        return failed
    logger.info(f"Vehicle {vehicle_id} deleted by {current_user.username}.")
    return '', 204


def _apply_customer_fields(customer, data):
    for field in ('name', 'email', 'phone', 'address'):
        if field in data:
            setattr(customer, field, str(data[field] or '').strip() or None)

@fleet_bp.route('/customers', methods=['GET'])
@login_required
@capability_required('customers')
def get_customers():
    customers = Customer.query.order_by(Customer.name).all()
    return jsonify([customer.to_dict() for customer in customers]), 200

@fleet_bp.route('/customers', methods=['POST'])
@login_required
@capability_required('customers', write=True)
def add_customer():
    data = json_body()
    if not data.get('name') or not data.get('phone') or not data.get('address'):
        return jsonify({'message': 'Name, phone, and address are required.'}), 400

    customer = Customer()
    _apply_customer_fields(customer, data)
    db.session.add(customer)

    failed = _commit('adding', 'customer')
    if failed:
        return failed
    logger.info(f"Customer {customer.id} added by {current_user.username}.")
    return jsonify(customer.to_dict()), 201

@fleet_bp.route('/customers/<int:customer_id>', methods=['GET'])
@login_required
@capability_required('customers')
def get_customer(customer_id):
    return jsonify(get_or_404(Customer, customer_id, 'Customer').to_dict()), 200

@fleet_bp.route('/customers/<int:customer_id>', methods=['PUT'])
@login_required
@capability_required('customers', write=True)
def update_customer(customer_id):
    customer = get_or_404(Customer, customer_id, 'Customer')
    _apply_customer_fields(customer, json_body())
    if not customer.name or not customer.phone or not customer.address:
        db.session.rollback()
        return jsonify({'message': 'Name, phone, and address cannot be empty.'}), 400

    failed = _commit('updating', 'customer')
    if failed:
        return failed
    return jsonify({'message': 'Customer updated successfully!', 'customer': customer.to_dict()}), 200

@fleet_bp.route('/customers/<int:customer_id>', methods=['DELETE'])
@login_required
@capability_required('customers', write=True)
def delete_customer(customer_id):
    customer = get_or_404(Customer, customer_id, 'Customer')
    db.session.delete(customer)

    failed = _commit('deleting', 'customer')
    if failed:
        return failed
    logger.info(f"Customer {customer_id} deleted by {current_user.username}.")
    return '', 204


@fleet_bp.route('/proofs', methods=['GET'])
@login_required
@capability_required('proof')
def get_proofs():
    query = Proof.query
    if current_user.role == Role.USER.value:
        query = query.filter(Proof.user_id == current_user.id)
    elif current_user.role == Role.ADMIN.value:
        query = query.join(Trip, Proof.trip_id == Trip.id).join(Driver, Trip.driver_id == Driver.id) \
            .filter(Driver.company == current_user.company)
    proofs = query.order_by(Proof.created_at.desc()).all()
    return jsonify([proof.to_dict() for proof in proofs]), 200

@fleet_bp.route('/proofs', methods=['POST'])
@login_required
@capability_required('proof')
def add_proof():
    trip_id = request.form.get('tripId', type=int)
    upload = request.files.get('file')
    notes = request.form.get('notes')

    if not trip_id or upload is None or not upload.filename:
        return jsonify({'message': 'Trip and proof file are required.'}), 400

    extension = upload.filename.rsplit('.', 1)[-1].lower() if '.' in upload.filename else ''
    if extension not in ALLOWED_PROOF_EXTENSIONS:
        return jsonify({'message': 'Unsupported file type.'}), 400

    trip = get_or_404(Trip, trip_id, 'Trip')
    if trip.status != 'Completed':
        raise ValidationError('Proof of delivery can only be submitted for completed trips.')
    if current_user.role == Role.USER.value and (trip.driver is None or trip.driver.user_id != current_user.id):
        raise Forbidden('You can only submit proof for your own trips.')
    if current_user.role == Role.ADMIN.value and (trip.driver is None or trip.driver.company != current_user.company):
        raise Forbidden()

    upload_folder = current_app.config['UPLOAD_FOLDER']
    os.makedirs(upload_folder, exist_ok=True)
    filename = f"{uuid.uuid4().hex}_{secure_filename(upload.filename)}"
    upload.save(os.path.join(upload_folder, filename))

    proof = Proof(trip_id=trip.id, user_id=current_user.id, file=filename, notes=notes)
    db.session.add(proof)

    failed = _commit('adding', 'proof')
    if failed:
        return failed
    logger.info(f"Proof of delivery for trip {trip.id} submitted by {current_user.username}.")
    return jsonify(proof.to_dict()), 201

@fleet_bp.route('/proofs/<int:proof_id>/file', methods=['GET'])
@login_required
@capability_required('proof')
def get_proof_file(proof_id):
    proof = get_or_404(Proof, proof_id, 'Proof')
    driver = proof.trip.driver
    if current_user.role == Role.USER.value and proof.user_id != current_user.id:
        raise NotFoundError('Proof not found.')
    if current_user.role == Role.ADMIN.value and (driver is None or driver.company != current_user.company):
        raise NotFoundError('Proof not found.')
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], proof.file)
