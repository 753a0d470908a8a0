# reagent_inventory/models/category.py

from datetime import datetime
from reagent_inventory.extensions import db
from sqlalchemy.orm import validates
from reagent_inventory.models.machine import Machine


class Category(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    has_machines = db.Column(db.Boolean, nullable=False, default=False)
    color = db.Column(db.String(20), nullable=False, default='#3b82f6')
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    machines = db.relationship('Machine', backref='category', lazy='dynamic')
    reagents = db.relationship('Reagent', backref='category', lazy='dynamic')

    # Starter catalog for a fresh installation
    PREDEFINED_CATEGORIES = [
        ("Hematology", "Blood count analyzers and stains", True, '#dc2626'),
        ("Biochemistry", "Clinical chemistry reagents", True, '#2563eb'),
        ("Immunology", "Immunoassay kits and controls", True, '#7c3aed'),
        ("Microbiology", "Culture media and identification kits", False, '#16a34a'),
        ("General Consumables", "Tubes, tips and other supplies", False, '#6b7280'),
    ]

    @validates('name')
    def validate_name(self, key, value):
        if not value or not value.strip():
            raise ValueError("Category name cannot be empty")
        return value.strip()

    @classmethod
    def active(cls):
        return cls.query.filter_by(is_active=True).order_by(cls.name)

    @classmethod
    def get_predefined_categories(cls):
        """Create predefined categories if they don't exist."""
        for name, desc, has_machines, color in cls.PREDEFINED_CATEGORIES:
            category = cls.query.filter_by(name=name).first()
            if not category:
                category = cls(
                    name=name,
                    description=desc,
                    has_machines=has_machines,
                    color=color
                )
                db.session.add(category)
        db.session.commit()
        return cls.query.filter(
            cls.name.in_([n for n, _, _, _ in cls.PREDEFINED_CATEGORIES])
        ).all()

    def active_machines(self):
        return self.machines.filter_by(is_active=True)\
            .order_by(Machine.name).all()

    def __repr__(self):
        return f'<Category {self.name}>'
