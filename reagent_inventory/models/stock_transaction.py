# reagent_inventory/models/stock_transaction.py

from datetime import datetime
from reagent_inventory.extensions import db
from sqlalchemy import event


class StockTransaction(db.Model):
    """Append-only ledger entry for one stock change."""
    TYPES = ('withdraw', 'add')

    id = db.Column(db.Integer, primary_key=True)
    transaction_type = db.Column(db.String(10), nullable=False)  # withdraw, add
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    reagent_id = db.Column(db.Integer, db.ForeignKey('reagent.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='ck_transaction_quantity_positive'),
        db.CheckConstraint('new_stock >= 0', name='ck_transaction_new_stock_non_negative'),
        db.CheckConstraint(
            "transaction_type IN ('withdraw', 'add')",
            name='ck_transaction_type'
        ),
    )

    @property
    def signed_quantity(self):
        return -self.quantity if self.transaction_type == 'withdraw' else self.quantity

    def __repr__(self):
        return f'<StockTransaction {self.transaction_type} {self.quantity} of reagent {self.reagent_id}>'


@event.listens_for(StockTransaction, 'before_update')
def prevent_transaction_update(mapper, connection, target):
    """Ledger rows are immutable once written."""
    raise ValueError("Stock transactions cannot be modified")
