# trucktrack/authentication/routes.py
import re
from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from trucktrack.decorators import master_admin_required
from trucktrack.logging_config import setup_logging
from trucktrack.authentication.models import User
from trucktrack.authentication.views import authenticate, delete_user, register_user, verify_registration
from trucktrack.roles import CAPABILITIES, Role
from trucktrack.validation import json_body, text_field


auth_bp = Blueprint('auth', __name__)

# Setup logging
logger = setup_logging()

PASSWORD_PATTERN = r'^(?=.*[A-Za-z])(?=.*\d)(?=.*[@$!%*#?&])[A-Za-z\d@$!%*#?&]{6,}$'


@auth_bp.route('/register', methods=['POST'])
def register():
    data = json_body(allow_empty=True)
    username = text_field(data, 'username')
    password = text_field(data, 'password', strip=False)
    email = text_field(data, 'email')
    company = text_field(data, 'company') or None
    role = text_field(data, 'role') or Role.USER.value

    if not username or not password or not email:
        logger.warning("Registration attempt with missing fields.")
        return jsonify({'message': 'Username, password and email are required.'}), 400

    if not re.match(r"[^@]+@[^@]+\.[^@]+", email):
        logger.warning("Invalid email format during registration.")
        return jsonify({'message': 'Invalid email address.'}), 400

    if len(password) < 6:
        logger.warning("Password too short during registration.")
        return jsonify({'message': 'Password must be at least 6 characters long.'}), 400

    if not re.match(PASSWORD_PATTERN, password):
        logger.warning("Password does not meet complexity requirements during registration.")
        return jsonify({'message': 'Password must contain letters, numbers, and symbols.'}), 400

    if Role.parse(role) is None:
        logger.warning(f"Registration attempt with unknown role: {role}")
        return jsonify({'message': f'Unknown role: {role}'}), 400

    if role != Role.MASTER_ADMIN.value and not company:
        return jsonify({'message': 'Company is required.'}), 400

    register_user(username, password, email, role, company=company, key=data.get('key'))
    return jsonify({'message': 'Registration successful. An OTP has been sent to your email.', 'status': 'PendingVerification'}), 201

@auth_bp.route('/verify-otp', methods=['POST'])
def verify_otp():
    data = json_body(allow_empty=True)
    email = text_field(data, 'email')
    otp = str(data.get('otp') or '').strip()

    if not email or not otp:
        return jsonify({'message': 'Email and OTP are required.'}), 400

    verify_registration(email, otp)
    return jsonify({'message': 'OTP verified successfully. You can now log in.', 'status': 'Verified'}), 200

@auth_bp.route('/login', methods=['POST'])
def login():
    data = json_body(allow_empty=True)
    username = text_field(data, 'username')
    password = text_field(data, 'password', strip=False)

    if not username or not password:
        logger.warning("Login attempt with missing fields.")
        return jsonify({'message': 'Please fill out all fields.'}), 400

    token, user = authenticate(username, password)
    return jsonify({'message': 'Login successful!', 'token': token, 'role': user.role}), 200

@auth_bp.route('/capabilities', methods=['GET'])
@login_required
def capabilities():
    role = Role(current_user.role)
    return jsonify({'role': role.value, 'sections': sorted(CAPABILITIES[role])}), 200

@auth_bp.route('/admin/users', methods=['GET'])
@login_required
@master_admin_required
def list_users():
    users = User.query.order_by(User.id).all()
    logger.info(f"Master admin {current_user.username} listed all users.")
    return jsonify([user.to_dict() for user in users]), 200

@auth_bp.route('/admin/users/<int:user_id>', methods=['DELETE'])
@login_required
@master_admin_required
def remove_user(user_id):
    delete_user(current_user, user_id)
    return '', 204
