from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from sqlalchemy.orm import validates
from reagent_inventory.extensions import db


class User(UserMixin, db.Model):
    """User model representing application users (staff profiles).

    Inherits from:
        UserMixin: Provides default implementations for Flask-Login interface
        db.Model: SQLAlchemy model base class
    """
    ROLES = ('admin', 'technician')

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(256))
    role = db.Column(
        db.String(20),
        nullable=False,
        default='technician'
    )  # admin, technician
    phone = db.Column(db.String(32))
    created_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow
    )
    last_login = db.Column(db.DateTime)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    transactions = db.relationship(
        'StockTransaction',
        backref=db.backref('user', lazy='joined'),
        lazy='dynamic'
    )
    notifications = db.relationship(
        'Notification',
        backref='user',
        lazy='dynamic',
        cascade='all, delete-orphan'
    )

    @validates('email')
    def validate_email(self, key, value):
        if not value or not value.strip():
            raise ValueError("Email cannot be empty")
        return value.strip().lower()

    @validates('role')
    def validate_role(self, key, value):
        if value not in self.ROLES:
            raise ValueError("Invalid role")
        return value

    def set_password(self, password):
        """Set user's password hash from plain text password.

        Args:
            password: Plain text password to hash
        """
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check if plain text password matches hash.

        Args:
            password: Plain text password to verify

        Returns:
            bool: True if password matches, False otherwise
        """
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def is_admin(self):
        """Check if user has admin role.

        Returns:
            bool: True if user is admin, False otherwise
        """
        return self.role == 'admin'

    def update_last_login(self):
        """Update user's last login timestamp to current time."""
        self.last_login = datetime.utcnow()
        db.session.commit()

    @classmethod
    def active_admins(cls):
        return cls.query.filter_by(role='admin', is_active=True)\
            .order_by(cls.id).all()

    def __repr__(self):
        return f'<User {self.email}>'
