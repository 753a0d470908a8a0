from datetime import datetime
from reagent_inventory.extensions import db


class Machine(db.Model):
    """Analyzer or instrument that consumes reagents of one category."""
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    category_id = db.Column(
        db.Integer,
        db.ForeignKey('category.id'),
        nullable=False
    )

    reagents = db.relationship('Reagent', backref='machine', lazy='dynamic')

    @classmethod
    def active(cls):
        return cls.query.filter_by(is_active=True).order_by(cls.name)

    def __repr__(self):
        return f'<Machine {self.name}>'
