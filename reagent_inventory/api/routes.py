# reagent_inventory/api/routes.py

from flask import jsonify, request, current_app
from flask_login import current_user

from reagent_inventory.api import bp
from reagent_inventory.errors import InventoryError, AuthError, ValidationError
from reagent_inventory.extensions import limiter
from reagent_inventory.services.ledger import record_transaction, get_active_reagent
from reagent_inventory.services.notifier import notify_low_stock


@bp.errorhandler(InventoryError)
def handle_inventory_error(error):
    return jsonify({'error': error.message}), error.status_code


def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


@bp.route('/transactions', methods=['POST'])
@limiter.limit("60 per hour")
def create_transaction():
    """Record a withdrawal or an addition for the signed-in user."""
    data = json_body()
    transaction_type = data.get('type')
    if transaction_type == 'add' and current_user.is_authenticated \
            and not current_user.is_admin():
        raise AuthError('Only administrators can add stock.')

    transaction = record_transaction(
        data.get('reagent_id'),
        current_user._get_current_object(),
        transaction_type,
        data.get('quantity'),
        data.get('reason')
    )
    return jsonify({
        'id': transaction.id,
        'previous_stock': transaction.previous_stock,
        'new_stock': transaction.new_stock
    }), 201


@bp.route('/notify', methods=['POST'])
def notify():
    """Alert admins about a reagent that ran low."""
    if not current_user.is_authenticated:
        raise AuthError('You must be signed in.')

    data = request.get_json(silent=True) or {}
    snapshot = data.get('reagent') if isinstance(data, dict) else None
    if not snapshot or not isinstance(snapshot, dict):
        return jsonify({'error': 'Missing reagent data'}), 400

    # The stored row is the source of truth, not the posted snapshot
    reagent = get_active_reagent(snapshot.get('id'))
    notified = notify_low_stock(reagent)
    current_app.logger.info(
        f"{current_user.email} triggered low stock alert for {reagent.name}"
    )
    return jsonify({'success': True, 'notified': notified})
