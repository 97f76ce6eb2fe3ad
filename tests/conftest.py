import pytest
from datetime import date
from trucktrack.app_factory import create_app
from trucktrack.config import Config
from trucktrack.init_db import db
from trucktrack.authentication import views as auth_views
from trucktrack.authentication.models import User
from trucktrack.fleet.models import Customer, Driver, Trip, Vehicle


class UnitTestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    JWT_SECRET_KEY = 'test-secret'
    ADMIN_ROLE_KEY = 'admin-key'
    MASTER_ADMIN_ROLE_KEY = 'master-key'
    ADMIN_SEED_PATH = '/nonexistent/admin_user.json'
    MAIL_SUPPRESS_SEND = False
    GOOGLE_MAPS_API_KEY = 'test-maps-key'
    PRICE_PER_KM = 45
    APP_TIMEZONE = 'Asia/Manila'


@pytest.fixture
def config_class(tmp_path):
    class _Config(UnitTestConfig):
        UPLOAD_FOLDER = str(tmp_path / 'uploads')
    return _Config


@pytest.fixture
def app(config_class):
    app = create_app(config_class)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def outbox(monkeypatch):
    """Capture OTP emails instead of calling the mail provider."""
    sent = []

    def fake_send(to_address, otp):
        sent.append((to_address, otp))

    monkeypatch.setattr(auth_views, 'send_otp_email', fake_send)
    return sent


@pytest.fixture
def make_user(app):
    def _make(username, role='user', company='Acme', password='Passw0rd!', verified=True):
        with app.app_context():
            user = User(username=username, password_hash=auth_views.hash_password(password),
                        email=f'{username}@example.com', role=role, company=company, verified=verified)
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make


@pytest.fixture
def auth_for(app):
    def _headers(user_id):
        with app.app_context():
            token = auth_views.issue_token(db.session.get(User, user_id))
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture
def make_driver(app):
    def _make(name='Mang Banong', company='Acme', user_id=None, status='Active'):
        with app.app_context():
            driver = Driver(name=name, license=f'LIC-{name[:3].upper()}', phone='09123456789',
                            status=status, company=company, user_id=user_id)
            db.session.add(driver)
            db.session.commit()
            return driver.id
    return _make


@pytest.fixture
def make_vehicle(app):
    def _make(plate_number='NPL888', model='Nissan Terra'):
        with app.app_context():
            vehicle = Vehicle(model=model, year=2022, plate_number=plate_number, status='Active')
            db.session.add(vehicle)
            db.session.commit()
            return vehicle.id
    return _make


@pytest.fixture
def make_customer(app):
    def _make(name='James'):
        with app.app_context():
            customer = Customer(name=name, email='james@example.com', phone='09000000001', address='123 Main St')
            db.session.add(customer)
            db.session.commit()
            return customer.id
    return _make


@pytest.fixture
def make_trip(app):
    def _make(driver_id, vehicle_id, customer_id, day=date(2025, 3, 10), status='Pending', company_id='Acme', price=None):
        with app.app_context():
            trip = Trip(origin='Manila', destination='Quezon City', date=day, driver_id=driver_id,
                        vehicle_id=vehicle_id, customer_id=customer_id, status=status,
                        company_id=company_id, price=price)
            db.session.add(trip)
            db.session.commit()
            return trip.id
    return _make
