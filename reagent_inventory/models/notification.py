# File: reagent_inventory/models/notification.py
from datetime import datetime
from reagent_inventory.extensions import db


class Notification(db.Model):
    """In-app message for one user, optionally about one reagent."""
    TYPES = ('low_stock', 'expiry', 'system')

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    type = db.Column(db.String(20), nullable=False)  # low_stock, expiry, system
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    reagent_id = db.Column(db.Integer, db.ForeignKey('reagent.id'))
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    email_sent = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    reagent = db.relationship('Reagent')

    # At most one unread alert of a kind per user and reagent
    __table_args__ = (
        db.Index(
            'uq_notification_unread_alert',
            'user_id', 'reagent_id', 'type',
            unique=True,
            sqlite_where=db.text('is_read = 0 AND reagent_id IS NOT NULL'),
            postgresql_where=db.text('NOT is_read AND reagent_id IS NOT NULL'),
        ),
    )

    @classmethod
    def unread_for(cls, user_id, reagent_id, kind):
        return cls.query.filter_by(
            user_id=user_id,
            reagent_id=reagent_id,
            type=kind,
            is_read=False
        ).first()

    @classmethod
    def unread_count(cls, user_id):
        return cls.query.filter_by(user_id=user_id, is_read=False).count()

    def __repr__(self):
        return f'<Notification {self.type} for User {self.user_id}>'
