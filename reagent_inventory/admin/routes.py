# reagent_inventory/admin/routes.py

from datetime import datetime
from flask import (
    render_template, redirect, url_for, flash, request, current_app, Response
)
from flask_login import login_required, current_user
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from reagent_inventory.admin import bp
from reagent_inventory.admin.forms import CategoryForm, MachineForm, ReagentForm, UserForm
from reagent_inventory.auth.decorators import admin_required
from reagent_inventory.extensions import db, limiter
from reagent_inventory.main.forms import ActionForm
from reagent_inventory.main.routes import get_active_or_404
from reagent_inventory.models import Category, Machine, Reagent, User
from reagent_inventory.utils import (
    dashboard_stats, filter_transactions, transaction_rows,
    generate_csv, generate_excel
)

REPORT_FILTERS = ('type', 'search', 'start_date', 'end_date')


@bp.before_request
@login_required
@admin_required
def require_admin():
    """Every admin page needs a signed-in administrator."""


@bp.route('/')
def dashboard():
    """Counters, lowest stock items and latest activity."""
    return render_template(
        'admin/dashboard.html',
        title='Dashboard',
        stats=dashboard_stats(),
        low_stock_items=Reagent.low_stock().limit(5).all(),
        recent_transactions=filter_transactions({}).limit(5).all()
    )


@bp.route('/low-stock')
def low_stock():
    return render_template(
        'admin/low_stock.html',
        title='Low Stock Alerts',
        reagents=Reagent.low_stock().all()
    )


#######################################################################
#  CATEGORIES
#######################################################################

@bp.route('/categories')
def categories():
    return render_template(
        'admin/categories.html',
        title='Categories',
        categories=Category.active().all(),
        form=ActionForm()
    )


@bp.route('/categories/new', methods=['GET', 'POST'])
@bp.route('/categories/<int:id>/edit', methods=['GET', 'POST'])
def edit_category(id=None):
    category = get_active_or_404(Category, id) if id else None
    form = CategoryForm(obj=category)

    if form.validate_on_submit():
        if category is None:
            category = Category()
            db.session.add(category)
        category.name = form.name.data
        category.description = form.description.data
        category.has_machines = form.has_machines.data
        category.color = form.color.data or '#3b82f6'
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.exception(e)
            flash('DB error while saving category.', 'error')
        else:
            flash(f'Category "{category.name}" saved', 'success')
            return redirect(url_for('admin.categories'))

    return render_template(
        'admin/form.html',
        title='Edit Category' if id else 'Add Category',
        form=form,
        cancel_url=url_for('admin.categories')
    )


@bp.route('/categories/<int:id>/delete', methods=['POST'])
def delete_category(id):
    """Soft delete; reagents keep their history."""
    category = get_active_or_404(Category, id)
    if ActionForm().validate_on_submit():
        category.is_active = False
        db.session.commit()
        flash(f'Category "{category.name}" deleted', 'success')
    return redirect(url_for('admin.categories'))


#######################################################################
#  MACHINES
#######################################################################

@bp.route('/machines')
def machines():
    items = Machine.active().options(joinedload(Machine.category)).all()
    return render_template(
        'admin/machines.html',
        title='Machines',
        machines=items,
        form=ActionForm()
    )


@bp.route('/machines/new', methods=['GET', 'POST'])
@bp.route('/machines/<int:id>/edit', methods=['GET', 'POST'])
def edit_machine(id=None):
    machine = get_active_or_404(Machine, id) if id else None
    form = MachineForm(obj=machine)

    if form.validate_on_submit():
        if machine is None:
            machine = Machine()
            db.session.add(machine)
        machine.name = form.name.data.strip()
        machine.category_id = form.category_id.data
        machine.description = form.description.data
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.exception(e)
            flash('DB error while saving machine.', 'error')
        else:
            flash(f'Machine "{machine.name}" saved', 'success')
            return redirect(url_for('admin.machines'))

    return render_template(
        'admin/form.html',
        title='Edit Machine' if id else 'Add Machine',
        form=form,
        cancel_url=url_for('admin.machines')
    )


@bp.route('/machines/<int:id>/delete', methods=['POST'])
def delete_machine(id):
    machine = get_active_or_404(Machine, id)
    if ActionForm().validate_on_submit():
        machine.is_active = False
        db.session.commit()
        flash(f'Machine "{machine.name}" deleted', 'success')
    return redirect(url_for('admin.machines'))


#######################################################################
#  REAGENTS
#######################################################################

@bp.route('/reagents')
def reagents():
    """Active reagents filtered by category, machine, name or low stock."""
    category_id = request.args.get('category', type=int)
    machine_id = request.args.get('machine', type=int)
    search = request.args.get('q', '').strip()
    low_only = request.args.get('low') == '1'

    query = Reagent.active().options(
        joinedload(Reagent.category),
        joinedload(Reagent.machine)
    )
    if category_id:
        query = query.filter(Reagent.category_id == category_id)
    if machine_id:
        query = query.filter(Reagent.machine_id == machine_id)
    if search:
        query = query.filter(Reagent.name.ilike(f"%{search}%"))
    if low_only:
        query = query.filter(Reagent.current_stock <= Reagent.minimum_stock)

    return render_template(
        'admin/reagents.html',
        title='Reagents',
        reagents=query.order_by(Reagent.name).all(),
        categories=Category.active().all(),
        machines=Machine.active().all(),
        filters={'category': category_id, 'machine': machine_id,
                 'q': search, 'low': low_only},
        form=ActionForm()
    )


def resolve_machine(category, machine_id):
    """Machine kept only when the category groups by machine and owns it.

    Returns:
        tuple: (machine_id or None, error message or None)
    """
    if not category.has_machines or not machine_id:
        return None, None
    machine = db.session.get(Machine, machine_id)
    if machine is None or not machine.is_active or machine.category_id != category.id:
        return None, 'Selected machine does not belong to this category'
    return machine.id, None


@bp.route('/reagents/new', methods=['GET', 'POST'])
@bp.route('/reagents/<int:id>/edit', methods=['GET', 'POST'])
def edit_reagent(id=None):
    reagent = get_active_or_404(Reagent, id) if id else None
    form = ReagentForm(obj=reagent)
    if request.method == 'GET' and reagent is not None:
        form.machine_id.data = reagent.machine_id or 0

    if form.validate_on_submit():
        category = get_active_or_404(Category, form.category_id.data)
        machine_id, error = resolve_machine(category, form.machine_id.data)
        if error:
            flash(error, 'error')
        else:
            try:
                if reagent is None:
                    # New reagents start empty; stock arrives through the ledger
                    reagent = Reagent(current_stock=0)
                    db.session.add(reagent)
                reagent.name = form.name.data
                reagent.category_id = category.id
                reagent.machine_id = machine_id
                reagent.unit = form.unit.data
                reagent.minimum_stock = form.minimum_stock.data
                reagent.storage_condition = form.storage_condition.data
                reagent.expiry_date = form.expiry_date.data
                reagent.lot_number = form.lot_number.data or None
                reagent.remarks = form.remarks.data
                db.session.commit()
            except ValueError as ve:
                db.session.rollback()
                flash(f'Validation error: {str(ve)}', 'error')
            except SQLAlchemyError as e:
                db.session.rollback()
                current_app.logger.exception(e)
                flash('DB error while saving reagent.', 'error')
            else:
                flash(f'Reagent "{reagent.name}" saved', 'success')
                return redirect(url_for('admin.reagents'))

    return render_template(
        'admin/form.html',
        title='Edit Reagent' if id else 'Add Reagent',
        form=form,
        cancel_url=url_for('admin.reagents')
    )


@bp.route('/reagents/<int:id>/delete', methods=['POST'])
def delete_reagent(id):
    reagent = get_active_or_404(Reagent, id)
    if ActionForm().validate_on_submit():
        reagent.is_active = False
        db.session.commit()
        flash(f'Reagent "{reagent.name}" deleted', 'success')
    return redirect(url_for('admin.reagents'))


#######################################################################
#  USERS
#######################################################################

@bp.route('/users')
def users():
    items = User.query.order_by(User.created_at.desc()).all()
    return render_template(
        'admin/users.html',
        title='Users',
        users=items,
        active_count=sum(1 for u in items if u.is_active),
        form=ActionForm()
    )


@bp.route('/users/new', methods=['GET', 'POST'])
def create_user():
    form = UserForm()
    if form.validate_on_submit():
        user = User(
            email=form.email.data,
            full_name=form.full_name.data.strip(),
            role=form.role.data,
            phone=form.phone.data or None
        )
        user.set_password(form.password.data)
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            flash('A user with this email already exists', 'error')
        else:
            current_app.logger.info(f'{current_user.email} created {user.role} {user.email}')
            flash(f'User {user.email} created', 'success')
            return redirect(url_for('admin.users'))

    return render_template(
        'admin/form.html',
        title='Add User',
        form=form,
        cancel_url=url_for('admin.users')
    )


@bp.route('/users/<int:id>/toggle', methods=['POST'])
def toggle_user(id):
    user = db.get_or_404(User, id)
    if ActionForm().validate_on_submit():
        if user.id == current_user.id:
            flash('You cannot deactivate your own account', 'error')
        else:
            user.is_active = not user.is_active
            db.session.commit()
            state = 'activated' if user.is_active else 'deactivated'
            flash(f'User {user.email} {state}', 'success')
    return redirect(url_for('admin.users'))


#######################################################################
#  REPORTS
#######################################################################

@bp.route('/reports')
def reports():
    filters = {key: request.args.get(key, '') for key in REPORT_FILTERS}
    page = request.args.get('page', 1, type=int)
    transactions = filter_transactions(filters).paginate(
        page=page,
        per_page=current_app.config['ITEMS_PER_PAGE'],
        error_out=False
    )
    return render_template(
        'admin/reports.html',
        title='Reports',
        transactions=transactions,
        filters=filters
    )


@bp.route('/reports/export/<any(csv, xlsx):format>')
@limiter.limit("10 per minute")
def export_report(format):
    """Export the filtered transaction report."""
    filters = {key: request.args.get(key, '') for key in REPORT_FILTERS}
    data = transaction_rows(filter_transactions(filters).all())
    filename = f"transactions-{datetime.utcnow().strftime('%Y-%m-%d')}"

    if format == 'csv':
        return Response(
            generate_csv(data).getvalue(),
            mimetype='text/csv',
            headers={
                "Content-Disposition": f"attachment; filename={filename}.csv"
            }
        )

    return Response(
        generate_excel(data).getvalue(),
        mimetype=(
            "application/vnd.openxmlformats-officedocument"
            ".spreadsheetml.sheet"
        ),
        headers={
            "Content-Disposition": f"attachment; filename={filename}.xlsx"
        }
    )
