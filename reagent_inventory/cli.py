import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy.exc import SQLAlchemyError
from reagent_inventory.extensions import db
from reagent_inventory.models import User, Category, Reagent
from reagent_inventory.services.notifier import notify_expiring
from reagent_inventory.utils import recompute_stock


def init_cli(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_admin_command)
    app.cli.add_command(seed_catalog_command)
    app.cli.add_command(check_stock_command)
    app.cli.add_command(notify_expiring_command)


@click.command("init-db")
@click.option('--drop', is_flag=True, help='Drop existing tables first')
@with_appcontext
def init_db_command(drop):
    """Initialize database tables"""
    if drop:
        db.drop_all()
    db.create_all()
    click.echo("Database tables created fresh." if drop else "Database tables created.")


@click.command("create-admin")
@click.option('--email', required=True, help='Admin email')
@click.option('--password', required=True, help='Admin password')
@click.option('--full-name', default='Administrator', help='Admin full name')
@with_appcontext
def create_admin_command(email, password, full_name):
    """Create an admin user"""
    if len(password) < current_app.config['MIN_PASSWORD_LENGTH']:
        raise click.BadParameter(
            f"must be at least {current_app.config['MIN_PASSWORD_LENGTH']} characters",
            param_hint='--password'
        )

    existing_user = User.query.filter_by(email=email.strip().lower()).first()
    if existing_user:
        click.echo(f"User '{existing_user.email}' already exists")
        return

    admin = User(email=email, full_name=full_name, role='admin')
    admin.set_password(password)
    db.session.add(admin)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise click.ClickException(f"Error creating admin: {str(e)}")
    click.echo(f"Admin '{admin.email}' has been created")


@click.command("seed-catalog")
@with_appcontext
def seed_catalog_command():
    """Seed predefined categories"""
    existing = {c.name for c in Category.query.all()}
    try:
        categories = Category.get_predefined_categories()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise click.ClickException(f"Error seeding catalog: {str(e)}")
    for category in categories:
        if category.name not in existing:
            click.echo(f"Added new category: {category.name}")
    click.echo("Categories have been seeded successfully!")


@click.command("check-stock")
@click.option('--fix', is_flag=True, help='Reset stock to the value implied by transactions')
@with_appcontext
def check_stock_command(fix):
    """Compare each reagent's stock with its transaction history"""
    mismatches = 0
    fixed = 0
    for reagent in Reagent.active().order_by(Reagent.id).all():
        expected = recompute_stock(reagent.id)
        if expected == reagent.current_stock:
            continue
        mismatches += 1
        click.echo(
            f"{reagent.name} (id {reagent.id}): stock {reagent.current_stock}, "
            f"transactions imply {expected}"
        )
        if fix:
            if expected < 0:
                click.echo("  skipped: cannot set negative stock", err=True)
                continue
            reagent.current_stock = expected
            fixed += 1

    if fixed:
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise click.ClickException(f"Error fixing stock: {str(e)}")
        current_app.logger.warning(f"check-stock corrected {fixed} reagents")

    if not mismatches:
        click.echo("All stock levels match their transaction history.")
    elif fix:
        click.echo(f"Fixed {fixed} of {mismatches} reagent(s).")
    else:
        click.echo(f"{mismatches} mismatch(es) found. Run with --fix to correct.")
        click.get_current_context().exit(1)


@click.command("notify-expiring")
@click.option('--days', type=int, default=None, help='Warning window in days')
@with_appcontext
def notify_expiring_command(days):
    """Alert admins about reagents expiring soon"""
    if days is None:
        days = current_app.config['EXPIRY_WARNING_DAYS']
    created = notify_expiring(days)
    click.echo(f"Created {created} expiry notification(s) for reagents expiring within {days} days.")
