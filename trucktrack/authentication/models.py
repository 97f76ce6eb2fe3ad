# trucktrack/authentication/models.py
from datetime import datetime
from flask_login import UserMixin
from trucktrack.init_db import db

class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='user')
    company = db.Column(db.String(100), nullable=True)
    verified = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def is_active(self):
        return self.verified

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'role': self.role,
            'company': self.company,
            'verified': self.verified,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

class PendingOtp(db.Model):
    __tablename__ = 'pending_otps'
    email = db.Column(db.String(120), primary_key=True)
    otp_hash = db.Column(db.String(255), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    user = db.relationship('User', backref=db.backref('pending_otps', lazy=True, cascade='all, delete-orphan'))
