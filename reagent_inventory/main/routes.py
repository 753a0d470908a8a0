# reagent_inventory/main/routes.py

from flask import (
    render_template, redirect, url_for, flash, request, abort, current_app
)
from flask_login import login_required, current_user

from reagent_inventory.main import bp
from reagent_inventory.main.forms import (
    StockTransactionForm, ActionForm, ProfileForm, PasswordForm
)
from reagent_inventory.auth.decorators import role_home_url
from reagent_inventory.errors import InventoryError
from reagent_inventory.extensions import db, limiter
from reagent_inventory.models import Category, Machine, Reagent, Notification
from reagent_inventory.services.ledger import record_transaction
from reagent_inventory.utils import filter_transactions

STOCK_ACTIONS = {
    'withdraw': {'title': 'Withdraw Stock', 'verb': 'Withdraw'},
    'add': {'title': 'Add Stock', 'verb': 'Add'},
}


def get_active_or_404(model, id):
    """Fetch an active (not soft-deleted) row or abort with 404."""
    obj = db.session.get(model, id)
    if obj is None or not obj.is_active:
        abort(404)
    return obj


def guard_action(action):
    """Adding stock is an administrator capability."""
    if action == 'add' and not current_user.is_admin():
        abort(403)
    return STOCK_ACTIONS[action]


@bp.route('/')
@bp.route('/index')
def index():
    """Send users to the landing page for their role."""
    if current_user.is_authenticated:
        return redirect(role_home_url(current_user))
    return redirect(url_for('auth.login'))


#######################################################################
#  STOCK FLOW: category -> machine -> reagent -> quantity
#######################################################################

@bp.route('/stock/<any(withdraw, add):action>')
@login_required
def pick_category(action):
    """Step 1: choose a category."""
    meta = guard_action(action)
    categories = Category.active().all()
    return render_template(
        'main/pick_category.html',
        title=meta['title'],
        action=action,
        categories=categories
    )


@bp.route('/stock/<any(withdraw, add):action>/category/<int:category_id>')
@login_required
def pick_in_category(action, category_id):
    """Step 2: machines of the category, or its reagents directly."""
    meta = guard_action(action)
    category = get_active_or_404(Category, category_id)

    if category.has_machines:
        return render_template(
            'main/pick_machine.html',
            title=meta['title'],
            action=action,
            category=category,
            machines=category.active_machines()
        )

    return render_template(
        'main/pick_reagent.html',
        title=meta['title'],
        action=action,
        category=category,
        machine=None,
        reagents=Reagent.for_selection(category.id)
    )


@bp.route('/stock/<any(withdraw, add):action>/category/<int:category_id>/machine/<int:machine_id>')
@login_required
def pick_in_machine(action, category_id, machine_id):
    """Step 3: reagents used by one machine."""
    meta = guard_action(action)
    category = get_active_or_404(Category, category_id)
    machine = get_active_or_404(Machine, machine_id)
    if machine.category_id != category.id:
        abort(404)

    return render_template(
        'main/pick_reagent.html',
        title=meta['title'],
        action=action,
        category=category,
        machine=machine,
        reagents=Reagent.for_selection(category.id, machine.id)
    )


@bp.route('/stock/<any(withdraw, add):action>/reagent/<int:reagent_id>', methods=['GET', 'POST'])
@login_required
@limiter.limit("60 per hour", methods=['POST'])
def stock_form(action, reagent_id):
    """Step 4: enter quantity and reason, then record the transaction."""
    meta = guard_action(action)
    reagent = get_active_or_404(Reagent, reagent_id)

    form = StockTransactionForm(
        max_quantity=reagent.current_stock if action == 'withdraw' else None
    )

    if form.validate_on_submit():
        try:
            transaction = record_transaction(
                reagent.id,
                current_user._get_current_object(),
                action,
                form.quantity.data,
                form.reason.data
            )
        except InventoryError as e:
            current_app.logger.info(f"Stock {action} rejected: {e.message}")
            flash(e.message, 'error')
        else:
            if action == 'withdraw':
                flash(
                    f'Successfully withdrew {transaction.quantity} {reagent.unit}! '
                    f'Remaining: {transaction.new_stock}',
                    'success'
                )
            else:
                flash(
                    f'Successfully added {transaction.quantity} {reagent.unit}! '
                    f'New stock: {transaction.new_stock}',
                    'success'
                )
            return redirect(url_for('main.pick_category', action=action))

    return render_template(
        'main/stock_form.html',
        title=meta['title'],
        action=action,
        verb=meta['verb'],
        reagent=reagent,
        form=form
    )


@bp.route('/history')
@login_required
def history():
    """The signed-in user's own transactions."""
    page = request.args.get('page', 1, type=int)
    transactions = filter_transactions({}, user_id=current_user.id).paginate(
        page=page,
        per_page=current_app.config['ITEMS_PER_PAGE'],
        error_out=False
    )
    return render_template(
        'main/history.html',
        title='My History',
        transactions=transactions
    )


#######################################################################
#  NOTIFICATIONS
#######################################################################

def own_notification_or_404(notification_id):
    return Notification.query.filter_by(
        id=notification_id,
        user_id=current_user.id
    ).first_or_404()


@bp.route('/notifications')
@login_required
def notifications():
    items = Notification.query.filter_by(user_id=current_user.id)\
        .order_by(Notification.created_at.desc(), Notification.id.desc())\
        .all()
    return render_template(
        'main/notifications.html',
        title='Notifications',
        notifications=items,
        unread_count=sum(1 for n in items if not n.is_read),
        form=ActionForm()
    )


@bp.route('/notifications/<int:notification_id>/read', methods=['POST'])
@login_required
def mark_notification_read(notification_id):
    notification = own_notification_or_404(notification_id)
    if ActionForm().validate_on_submit():
        notification.is_read = True
        db.session.commit()
    return redirect(url_for('main.notifications'))


@bp.route('/notifications/read-all', methods=['POST'])
@login_required
def mark_all_notifications_read():
    if ActionForm().validate_on_submit():
        Notification.query.filter_by(user_id=current_user.id, is_read=False)\
            .update({'is_read': True})
        db.session.commit()
        flash('All notifications marked as read', 'success')
    return redirect(url_for('main.notifications'))


@bp.route('/notifications/<int:notification_id>/delete', methods=['POST'])
@login_required
def delete_notification(notification_id):
    notification = own_notification_or_404(notification_id)
    if ActionForm().validate_on_submit():
        db.session.delete(notification)
        db.session.commit()
    return redirect(url_for('main.notifications'))


#######################################################################
#  ACCOUNT SETTINGS
#######################################################################

@bp.route('/settings', methods=['GET', 'POST'])
@login_required
def settings():
    profile_form = ProfileForm(obj=current_user)
    password_form = PasswordForm()

    if profile_form.save_profile.data and profile_form.validate_on_submit():
        current_user.full_name = profile_form.full_name.data.strip()
        current_user.phone = profile_form.phone.data or None
        db.session.commit()
        flash('Profile updated successfully!', 'success')
        return redirect(url_for('main.settings'))

    if password_form.update_password.data and password_form.validate_on_submit():
        if not current_user.check_password(password_form.current_password.data):
            flash('Current password is incorrect', 'error')
        else:
            current_user.set_password(password_form.new_password.data)
            db.session.commit()
            flash('Password updated successfully!', 'success')
            return redirect(url_for('main.settings'))

    return render_template(
        'main/settings.html',
        title='Settings',
        profile_form=profile_form,
        password_form=password_form
    )
