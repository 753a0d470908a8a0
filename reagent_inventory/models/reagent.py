# reagent_inventory/models/reagent.py

from datetime import datetime, date, timedelta
from reagent_inventory.extensions import db
from sqlalchemy.orm import validates, joinedload


class Reagent(db.Model):
    __tablename__ = 'reagent'

    UNITS = ['bottles', 'boxes', 'kits', 'vials', 'packs', 'pieces', 'ml', 'liters']
    STORAGE_CONDITIONS = [
        'Room Temperature',
        'Refrigerated (2-8°C)',
        'Frozen (-20°C)',
        'Deep Frozen (-80°C)',
    ]

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    unit = db.Column(db.String(20), nullable=False, default='bottles')
    current_stock = db.Column(db.Integer, nullable=False, default=0)
    minimum_stock = db.Column(db.Integer, nullable=False, default=5)
    storage_condition = db.Column(
        db.String(50),
        nullable=False,
        default='Room Temperature'
    )
    expiry_date = db.Column(db.Date)
    lot_number = db.Column(db.String(50))
    remarks = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Every UPDATE is conditional on the version read; a mismatch raises
    # StaleDataError at flush time.
    version_id = db.Column(db.Integer, nullable=False)
    __mapper_args__ = {
        'version_id_col': version_id
    }

    category_id = db.Column(db.Integer, db.ForeignKey('category.id'), nullable=False)
    machine_id = db.Column(db.Integer, db.ForeignKey('machine.id'))

    transactions = db.relationship(
        'StockTransaction',
        backref=db.backref('reagent', lazy='joined'),
        lazy='dynamic'
    )

    @validates('name')
    def validate_name(self, key, value):
        if not value or not value.strip():
            raise ValueError("Reagent name cannot be empty")
        return value.strip()

    @validates('current_stock')
    def validate_current_stock(self, key, value):
        try:
            value = int(value)
        except (ValueError, TypeError):
            raise ValueError("Stock must be a whole number")
        if value < 0:
            raise ValueError("Stock cannot be negative")
        return value

    @validates('minimum_stock')
    def validate_minimum_stock(self, key, value):
        try:
            value = int(value)
        except (ValueError, TypeError):
            raise ValueError("Minimum stock must be a whole number")
        if value < 0:
            raise ValueError("Minimum stock cannot be negative")
        return value

    @property
    def is_low_stock(self):
        return self.current_stock <= self.minimum_stock

    def check_stock_level(self):
        """Classify the stock level.

        Returns:
            - 'out' if current_stock == 0
            - 'low' if current_stock <= minimum_stock
            - 'ok' otherwise
        """
        if self.current_stock == 0:
            return 'out'
        elif self.current_stock <= self.minimum_stock:
            return 'low'
        return 'ok'

    def location_display(self):
        """Category, plus machine when the reagent is machine specific."""
        if self.machine:
            return f"{self.category.name} - {self.machine.name}"
        return self.category.name

    def snapshot(self):
        """Plain dict of the reagent as sent with low stock alerts."""
        return {
            'id': self.id,
            'name': self.name,
            'category_name': self.category.name if self.category else None,
            'machine_name': self.machine.name if self.machine else None,
            'current_stock': self.current_stock,
            'minimum_stock': self.minimum_stock,
            'unit': self.unit,
        }

    @classmethod
    def active(cls):
        return cls.query.filter_by(is_active=True)

    @classmethod
    def low_stock(cls):
        """Active reagents at or below their minimum, lowest stock first."""
        return cls.query\
            .options(joinedload(cls.category), joinedload(cls.machine))\
            .filter(
                cls.is_active.is_(True),
                cls.current_stock <= cls.minimum_stock
            )\
            .order_by(cls.current_stock, cls.name)

    @classmethod
    def expiring_within(cls, days, today=None):
        today = today or date.today()
        return cls.query.filter(
            cls.is_active.is_(True),
            cls.expiry_date.isnot(None),
            cls.expiry_date <= today + timedelta(days=days)
        ).order_by(cls.expiry_date).all()

    @classmethod
    def for_selection(cls, category_id, machine_id=None):
        """Active reagents under a category, optionally scoped to a machine."""
        query = cls.query.filter_by(category_id=category_id, is_active=True)
        if machine_id is not None:
            query = query.filter_by(machine_id=machine_id)
        return query.order_by(cls.name).all()

    def __repr__(self):
        return f'<Reagent {self.name}>'
