# trucktrack/fleet/models.py
from datetime import datetime
from trucktrack.init_db import db

DRIVER_STATUSES = ('Active', 'Inactive')
VEHICLE_STATUSES = ('Active', 'Maintenance', 'Inactive')
TRIP_STATUSES = ('Pending', 'Active', 'Completed')
# Trips in these states hold their driver and vehicle for the day
COMMITTED_STATUSES = ('Pending', 'Active')

class Driver(db.Model):
    __tablename__ = 'drivers'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    license = db.Column(db.String(50), nullable=False)
    phone = db.Column(db.String(30), nullable=True)
    email = db.Column(db.String(120), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='Active')
    company = db.Column(db.String(100), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'license': self.license,
            'phone': self.phone,
            'email': self.email,
            'status': self.status,
            'company': self.company,
            'user_id': self.user_id,
        }

class Vehicle(db.Model):
    __tablename__ = 'vehicles'
    id = db.Column(db.Integer, primary_key=True)
    model = db.Column(db.String(100), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    plate_number = db.Column(db.String(20), nullable=False)
    last_service = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='Active')

    def to_dict(self):
        return {
            'id': self.id,
            'model': self.model,
            'year': self.year,
            'plate_number': self.plate_number,
            'last_service': self.last_service.isoformat() if self.last_service else None,
            'status': self.status,
        }

class Customer(db.Model):
    __tablename__ = 'customers'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(30), nullable=False)
    address = db.Column(db.String(255), nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
        }

class Trip(db.Model):
    __tablename__ = 'trips'
    id = db.Column(db.Integer, primary_key=True)
    origin = db.Column(db.String(255), nullable=False)
    origin_lat = db.Column(db.Float, nullable=True)
    origin_lng = db.Column(db.Float, nullable=True)
    destination = db.Column(db.String(255), nullable=False)
    destination_lat = db.Column(db.Float, nullable=True)
    destination_lng = db.Column(db.Float, nullable=True)
    date = db.Column(db.Date, nullable=False, index=True)
    # Weak references: deleting the target nulls these ids
    driver_id = db.Column(db.Integer, db.ForeignKey('drivers.id', ondelete='SET NULL'), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicles.id', ondelete='SET NULL'), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='Pending')
    estimated_travel_time = db.Column(db.String(50), nullable=True)
    estimated_arrival_time = db.Column(db.String(50), nullable=True)
    distance = db.Column(db.Float, nullable=True)
    price = db.Column(db.Float, nullable=True)
    delivery_requirement = db.Column(db.String(255), nullable=True)
    # Company of the creating admin; None marks a master admin trip
    company_id = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    driver = db.relationship('Driver', backref=db.backref('trips', lazy=True))
    customer = db.relationship('Customer', backref=db.backref('trips', lazy=True))
    vehicle = db.relationship('Vehicle', backref=db.backref('trips', lazy=True))

    def to_dict(self):
        return {
            'id': self.id,
            'origin': self.origin,
            'origin_lat': self.origin_lat,
            'origin_lng': self.origin_lng,
            'destination': self.destination,
            'destination_lat': self.destination_lat,
            'destination_lng': self.destination_lng,
            'date': self.date.isoformat(),
            'driver_id': self.driver_id,
            'customer_id': self.customer_id,
            'vehicle_id': self.vehicle_id,
            'status': self.status,
            'estimated_travel_time': self.estimated_travel_time,
            'estimated_arrival_time': self.estimated_arrival_time,
            'distance': self.distance,
            'price': self.price,
            'delivery_requirement': self.delivery_requirement,
            'company_id': self.company_id,
            'driver_name': self.driver.name if self.driver else None,
            'customer_name': self.customer.name if self.customer else None,
            'vehicle_model': self.vehicle.model if self.vehicle else None,
            'vehicle_plate_number': self.vehicle.plate_number if self.vehicle else None,
        }

class Proof(db.Model):
    __tablename__ = 'proofs'
    id = db.Column(db.Integer, primary_key=True)
    trip_id = db.Column(db.Integer, db.ForeignKey('trips.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    file = db.Column(db.String(255), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    trip = db.relationship('Trip', backref=db.backref('proofs', lazy=True, cascade='all, delete-orphan'))

    def to_dict(self):
        return {
            'id': self.id,
            'tripId': self.trip_id,
            'userId': self.user_id,
            'file': self.file,
            'notes': self.notes,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
