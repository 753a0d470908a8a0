import os
import tempfile
import pytest
from config import TestingConfig
from reagent_inventory import create_app
from reagent_inventory.extensions import db
from reagent_inventory.models import User, Category, Machine, Reagent

ADMIN_EMAIL = 'admin@hospital.org'
ADMIN_PASSWORD = 'adminpass'
TECH_EMAIL = 'tech@hospital.org'
TECH_PASSWORD = 'techpass'


def make_test_config(db_path, **overrides):
    """TestingConfig bound to its own SQLite file."""
    attrs = {'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}'}
    attrs.update(overrides)
    return type('IsolatedTestingConfig', (TestingConfig,), attrs)


@pytest.fixture
def app():
    """Create and configure a new app instance for each test."""
    # Create a temporary file to isolate the database for each test
    db_fd, db_path = tempfile.mkstemp(suffix='.db')

    app = create_app(make_test_config(db_path))

    with app.app_context():
        init_test_data()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def bare_app():
    """App over an empty database, for first-run behaviour."""
    db_fd, db_path = tempfile.mkstemp(suffix='.db')
    app = create_app(make_test_config(db_path))
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def ctx(app):
    """Application context for tests that call services directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


def login(client, email, password):
    return client.post('/auth/login', data={
        'email': email,
        'password': password
    })


@pytest.fixture
def admin_client(app):
    """A test client signed in as the admin."""
    client = app.test_client()
    login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    return client


@pytest.fixture
def tech_client(app):
    """A test client signed in as a technician."""
    client = app.test_client()
    login(client, TECH_EMAIL, TECH_PASSWORD)
    return client


def init_test_data():
    """Initialize test data.

    Ids are stable: admin 1, technician 2, Hematology 1 (with machine 1),
    Biochemistry 2 (no machines), reagent 1 under the machine with stock
    10 / minimum 5, reagent 2 under Biochemistry with stock 3 / minimum 2.
    """
    admin = User(email=ADMIN_EMAIL, full_name='Alice Admin', role='admin')
    admin.set_password(ADMIN_PASSWORD)
    db.session.add(admin)

    tech = User(email=TECH_EMAIL, full_name='Tom Tech', role='technician')
    tech.set_password(TECH_PASSWORD)
    db.session.add(tech)

    hematology = Category(
        name='Hematology',
        description='Blood count analyzers',
        has_machines=True
    )
    biochemistry = Category(name='Biochemistry', has_machines=False)
    db.session.add_all([hematology, biochemistry])
    db.session.flush()

    analyzer = Machine(name='Sysmex XN-1000', category_id=hematology.id)
    db.session.add(analyzer)
    db.session.flush()

    db.session.add(Reagent(
        name='CBC Diluent',
        category_id=hematology.id,
        machine_id=analyzer.id,
        unit='bottles',
        current_stock=10,
        minimum_stock=5
    ))
    db.session.add(Reagent(
        name='Glucose Reagent',
        category_id=biochemistry.id,
        unit='kits',
        current_stock=3,
        minimum_stock=2
    ))

    db.session.commit()
