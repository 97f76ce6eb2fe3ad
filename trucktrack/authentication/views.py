# trucktrack/authentication/views.py
import hmac
import json
import random
import sib_api_v3_sdk
from datetime import datetime, timedelta
from flask import current_app, g
from jose import JWTError, jwt
from sib_api_v3_sdk.rest import ApiException
from sqlalchemy.exc import OperationalError
from werkzeug.security import generate_password_hash, check_password_hash
from trucktrack.init_db import db
from trucktrack.authentication.models import User, PendingOtp
from trucktrack.exceptions import (
    AccountUnverified, DuplicateUsername, EmailDeliveryFailed, InvalidCredentials,
    InvalidOrExpiredToken, InvalidRoleKey, MissingToken, NoPendingRegistration,
    NotFoundError, OtpExpired, OtpMismatch, Unauthenticated, ValidationError,
)
from trucktrack.logging_config import setup_logging
from trucktrack.roles import KEYED_ROLES, Role

logger = setup_logging()


def utcnow():
    return datetime.utcnow()

def hash_password(password):
    return generate_password_hash(password, method='pbkdf2:sha256')

# Function to generate a 6-digit OTP
def generate_otp():
    return f'{random.SystemRandom().randint(0, 999999):06d}'

# Function to load email configuration
def load_email_config():
    json_path = current_app.config.get('EMAIL_CONFIG_PATH')
    try:
        with open(json_path, 'r') as f:
            return json.load(f)
    except FileNotFoundError:
        logger.error("Email configuration file not found.")
        return None
    except json.JSONDecodeError:
        logger.error("Error decoding the email configuration file.")
        return None

# Function to send the registration OTP using Brevo
def send_otp_email(to_address, otp):
    ttl = current_app.config['OTP_TTL_MINUTES']
    if current_app.config.get('MAIL_SUPPRESS_SEND'):
        logger.info(f"Mail sending suppressed. OTP for {to_address}: {otp}")
        return

    email_config = load_email_config()
    if not email_config:
        raise EmailDeliveryFailed('Email service is not configured.')

    configuration = sib_api_v3_sdk.Configuration()
    configuration.api_key['api-key'] = email_config.get('api_key')
    api_client = sib_api_v3_sdk.ApiClient(configuration)
    api_instance = sib_api_v3_sdk.TransactionalEmailsApi(api_client)

    sender_name = email_config.get('sender_name', 'TruckTrack')
    send_smtp_email = sib_api_v3_sdk.SendSmtpEmail(
        to=[{"email": to_address}],
        sender={"name": sender_name, "email": email_config.get('sender_email')},
        subject="Your TruckTrack verification code",
        html_content=f"Hello,<br>Your verification code is <strong>{otp}</strong>. This code is valid for {ttl} minutes.<br><br>Warm Regards,<br>The {sender_name} Team"
    )

    try:
        api_response = api_instance.send_transac_email(send_smtp_email)
        logger.info(f"OTP email sent to {to_address}: {api_response}")
    except ApiException as e:
        logger.error(f"Exception when calling TransactionalEmailsApi->send_transac_email: {e}")
        raise EmailDeliveryFailed()

def check_role_key(role, key):
    setting = KEYED_ROLES.get(role)
    if setting is None:
        return
    expected = current_app.config.get(setting) or ''
    if not hmac.compare_digest(str(key or '').encode(), expected.encode()):
        logger.warning(f"Registration rejected: invalid key for role {role.value}.")
        raise InvalidRoleKey()

def _has_live_otp(user, now):
    return any(record.expires_at >= now for record in user.pending_otps)

def _unlink_fleet_records(user_id):
    from trucktrack.fleet.models import Driver, Proof
    Driver.query.filter_by(user_id=user_id).update({'user_id': None})
    Proof.query.filter_by(user_id=user_id).update({'user_id': None})

def register_user(username, password, email, role, company=None, key=None):
    """Create an unverified account and email it a one-time code.

    A username held by an unverified account whose code has lapsed is
    reclaimed. The whole registration is rolled back when the email cannot
    be delivered.
    """
    role = Role(role)
    check_role_key(role, key)

    now = utcnow()
    existing = User.query.filter_by(username=username).first()
    if existing:
        if existing.verified or _has_live_otp(existing, now):
            logger.warning(f"Registration attempt with existing username: {username}")
            raise DuplicateUsername()
        logger.info(f"Reclaiming username {username} from a lapsed registration.")
        _unlink_fleet_records(existing.id)
        db.session.delete(existing)
        db.session.flush()

    # A new attempt supersedes any code already issued to this email
    superseded = db.session.get(PendingOtp, email)
    if superseded:
        db.session.delete(superseded)
        db.session.flush()

    user = User(username=username, password_hash=hash_password(password), email=email,
                role=role.value, company=company, verified=False)
    db.session.add(user)
    db.session.flush()

    otp = generate_otp()
    ttl = timedelta(minutes=current_app.config['OTP_TTL_MINUTES'])
    db.session.add(PendingOtp(email=email, otp_hash=hash_password(otp), expires_at=now + ttl, user_id=user.id))

    try:
        send_otp_email(email, otp)
    except EmailDeliveryFailed:
        db.session.rollback()
        raise

    db.session.commit()
    logger.info(f"User {username} registered as {role.value}; awaiting OTP verification.")
    return user

def verify_registration(email, otp):
    record = db.session.get(PendingOtp, email)
    if record is None:
        raise NoPendingRegistration()

    if utcnow() > record.expires_at:
        db.session.delete(record)
        db.session.commit()
        logger.warning(f"Expired OTP presented for {email}.")
        raise OtpExpired()

    if not check_password_hash(record.otp_hash, str(otp)):
        logger.warning(f"OTP mismatch for {email}.")
        raise OtpMismatch()

    user = record.user
    user.verified = True
    db.session.delete(record)
    db.session.commit()
    logger.info(f"User {user.username} verified.")
    return user

def issue_token(user):
    now = utcnow()
    claims = {
        'userId': user.id,
        'username': user.username,
        'role': user.role,
        'iat': now,
        'exp': now + timedelta(minutes=current_app.config['JWT_EXPIRES_MINUTES']),
    }
    return jwt.encode(claims, current_app.config['JWT_SECRET_KEY'], algorithm=current_app.config['JWT_ALGORITHM'])

def authenticate(username, password):
    user = User.query.filter_by(username=username).first()

    if not user or not check_password_hash(user.password_hash, password):
        logger.warning(f"Failed login attempt for username: {username}")
        raise InvalidCredentials()

    if not user.verified:
        logger.warning(f"Login attempt by unverified user: {username}")
        raise AccountUnverified()

    logger.info(f"User {username} logged in successfully.")
    return issue_token(user), user

def authorize(authorization):
    """Return the claims carried by an ``Authorization: Bearer`` header."""
    if not authorization:
        raise MissingToken()

    scheme, _, token = authorization.partition(' ')
    token = token.strip()
    if scheme.lower() != 'bearer' or not token:
        raise MissingToken()

    try:
        return jwt.decode(token, current_app.config['JWT_SECRET_KEY'], algorithms=[current_app.config['JWT_ALGORITHM']])
    except JWTError:
        raise InvalidOrExpiredToken()

def load_user_from_request(request):
    try:
        claims = authorize(request.headers.get('Authorization'))
    except Unauthenticated as e:
        g.auth_error = e
        return None

    user = db.session.get(User, claims.get('userId'))
    if user is None or not user.verified:
        g.auth_error = InvalidOrExpiredToken()
        return None
    return user

def delete_user(caller, user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError('User not found.')
    if user.id == caller.id:
        raise ValidationError('You cannot delete your own account.')

    _unlink_fleet_records(user.id)
    db.session.delete(user)
    db.session.commit()
    logger.info(f"User {user.username} deleted by {caller.username}.")

def create_admin_users():
    try:
        # Load seeded accounts from the JSON file
        json_path = current_app.config.get('ADMIN_SEED_PATH')
        with open(json_path, 'r') as f:
            admin_data = json.load(f)

        for admin_details in admin_data.get('admins', []):
            admin_user = User.query.filter_by(username=admin_details['username']).first()
            if admin_user is None:
                admin_user = User(
                    username=admin_details['username'],
                    email=admin_details['email'],
                    password_hash=hash_password(admin_details['password']),
                    role=admin_details.get('role', Role.MASTER_ADMIN.value),
                    company=admin_details.get('company'),
                    verified=True
                )
                db.session.add(admin_user)
                logger.info(f"Seeded user '{admin_details['username']}' created successfully.")
            else:
                logger.info(f"Seeded user '{admin_details['username']}' already exists.")

        db.session.commit()
    except FileNotFoundError:
        logger.warning("Admin seed file not found; no accounts seeded.")
    except json.JSONDecodeError:
        logger.error("Error decoding the admin seed file.")
    except OperationalError as e:
        db.session.rollback()
        logger.error(f"OperationalError when seeding admin users: {e}")
