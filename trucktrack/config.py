# trucktrack/config.py
import os
import binascii

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or binascii.hexlify(os.urandom(24)).decode()

    BASE_DIR = os.path.abspath(os.path.dirname(__file__))

    DATABASE_PATH = os.path.join(BASE_DIR, 'trucktrack.db')

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', f'sqlite:///{DATABASE_PATH}')

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Authentication
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', SECRET_KEY)
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRES_MINUTES = int(os.environ.get('JWT_EXPIRES_MINUTES', 60))
    OTP_TTL_MINUTES = int(os.environ.get('OTP_TTL_MINUTES', 10))

    # Shared secrets that unlock the privileged roles at registration
    ADMIN_ROLE_KEY = os.environ.get('ADMIN_ROLE_KEY', 'admin-key')
    MASTER_ADMIN_ROLE_KEY = os.environ.get('MASTER_ADMIN_ROLE_KEY', 'master-admin-key')

    # Mail
    EMAIL_CONFIG_PATH = os.environ.get('EMAIL_CONFIG_PATH', os.path.join(BASE_DIR, 'email_config.json'))
    MAIL_SUPPRESS_SEND = os.environ.get('MAIL_SUPPRESS_SEND', '').lower() in ('1', 'true', 'yes')

    ADMIN_SEED_PATH = os.environ.get('ADMIN_SEED_PATH', os.path.join(BASE_DIR, 'admin_user.json'))

    # Route estimation
    GOOGLE_MAPS_API_KEY = os.environ.get('GOOGLE_MAPS_API_KEY')
    DIRECTIONS_URL = os.environ.get('DIRECTIONS_URL', 'https://maps.googleapis.com/maps/api/directions/json')
    ROUTING_TIMEOUT = float(os.environ.get('ROUTING_TIMEOUT', 10))
    PRICE_PER_KM = float(os.environ.get('PRICE_PER_KM', 45))
    TRIP_START_HOUR = int(os.environ.get('TRIP_START_HOUR', 9))
    APP_TIMEZONE = os.environ.get('APP_TIMEZONE', 'Asia/Manila')

    # Proof of delivery uploads
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', os.path.join(BASE_DIR, 'uploads'))
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024
