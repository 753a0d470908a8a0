# reagent_inventory/services/ledger.py
"""
Stock ledger: the only code path that changes a reagent's stock.

A change is written as one StockTransaction row plus the new
``Reagent.current_stock`` in a single commit. The reagent row is read
``FOR UPDATE`` and its UPDATE is conditional on ``Reagent.version_id``,
so two requests withdrawing from the same reagent cannot both succeed
against the same previous stock. A version conflict rolls back and the
whole attempt is repeated with fresh data.
"""

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from reagent_inventory.errors import (
    AuthError,
    ConcurrencyError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from reagent_inventory.extensions import db
from reagent_inventory.models import Reagent, StockTransaction
from reagent_inventory.services.notifier import notify_low_stock

DEFAULT_REASONS = {
    'withdraw': 'Stock withdrawal',
    'add': 'Stock added',
}


def _check_actor(actor):
    if actor is None or not getattr(actor, 'is_authenticated', False):
        raise AuthError('You must be signed in to change stock.')
    if not actor.is_active:
        raise AuthError('This account has been deactivated.')


def _coerce_quantity(quantity):
    if isinstance(quantity, bool):
        raise ValidationError('Quantity must be a whole number.')
    try:
        value = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError('Quantity must be a whole number.')
    if value != quantity and str(value) != str(quantity).strip():
        raise ValidationError('Quantity must be a whole number.')
    if value <= 0:
        raise ValidationError('Quantity must be greater than zero.')
    return value


def get_active_reagent(reagent_id, lock=False):
    """Load an active reagent or raise NotFoundError.

    Args:
        reagent_id: Primary key
        lock: Re-read the row with SELECT ... FOR UPDATE
    """
    try:
        reagent_id = int(reagent_id)
    except (TypeError, ValueError):
        raise NotFoundError('Reagent not found.')
    if lock:
        reagent = db.session.get(
            Reagent,
            reagent_id,
            with_for_update=True,
            populate_existing=True
        )
    else:
        reagent = db.session.get(Reagent, reagent_id)
    if reagent is None or not reagent.is_active:
        raise NotFoundError('Reagent not found.')
    return reagent


def record_transaction(reagent_id, actor, transaction_type, quantity, reason=None):
    """Withdraw stock from or add stock to a reagent.

    Args:
        reagent_id: Reagent primary key
        actor: Authenticated User performing the change
        transaction_type: 'withdraw' or 'add'
        quantity: Positive whole number
        reason: Optional free text stored with the transaction

    Returns:
        StockTransaction: The committed row; carries previous_stock
        and new_stock

    Raises:
        AuthError: Actor missing, anonymous or deactivated
        ValidationError: Unknown type or non-positive quantity
        NotFoundError: Reagent missing or inactive
        InsufficientStockError: Withdrawal larger than current stock
        ConcurrencyError: Version conflicts outlasted the retry budget
    """
    _check_actor(actor)
    if transaction_type not in StockTransaction.TYPES:
        raise ValidationError(f"Unknown transaction type: {transaction_type}")
    quantity = _coerce_quantity(quantity)
    reason = (reason or '').strip() or DEFAULT_REASONS[transaction_type]

    max_attempts = max(1, current_app.config.get('LEDGER_MAX_RETRIES', 3))
    for attempt in range(1, max_attempts + 1):
        try:
            reagent = get_active_reagent(reagent_id, lock=True)
        except NotFoundError:
            # Release the row lock taken by SELECT ... FOR UPDATE
            db.session.rollback()
            raise
        previous_stock = reagent.current_stock

        if transaction_type == 'withdraw':
            if quantity > previous_stock:
                error = InsufficientStockError(reagent, quantity)
                db.session.rollback()
                raise error
            new_stock = previous_stock - quantity
        else:
            new_stock = previous_stock + quantity

        transaction = StockTransaction(
            reagent_id=reagent.id,
            user_id=actor.id,
            transaction_type=transaction_type,
            quantity=quantity,
            previous_stock=previous_stock,
            new_stock=new_stock,
            reason=reason
        )
        db.session.add(transaction)
        reagent.current_stock = new_stock

        try:
            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            current_app.logger.warning(
                f"Stock of reagent {reagent_id} changed concurrently "
                f"(attempt {attempt}/{max_attempts})"
            )
            continue
        except SQLAlchemyError:
            db.session.rollback()
            raise
        break
    else:
        raise ConcurrencyError(
            'Stock was modified by another user. Please try again.'
        )

    current_app.logger.info(
        f"{actor.email} {transaction_type} {quantity} {reagent.unit} of "
        f"{reagent.name}: {previous_stock} -> {new_stock}"
    )

    if transaction_type == 'withdraw' and new_stock <= reagent.minimum_stock:
        _trigger_low_stock(reagent)

    return transaction


def _trigger_low_stock(reagent):
    """Run the low stock notifier; its failures never reach the caller."""
    if not current_app.config.get('LOW_STOCK_NOTIFICATIONS', True):
        return
    try:
        notify_low_stock(reagent)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(
            f"Low stock notification for reagent {reagent.id} failed: {e}"
        )
