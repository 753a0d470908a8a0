# reagent_inventory/__init__.py

from flask import Flask, jsonify, has_request_context
from flask_login import current_user
from config import get_config
from reagent_inventory.extensions import db, login_manager, socketio, migrate, limiter, engine_options
from reagent_inventory.models import User, Notification
import os
import logging
from logging.handlers import RotatingFileHandler
from sqlalchemy.exc import SQLAlchemyError, OperationalError, DisconnectionError


def configure_logging(app):
    """Attach stdout or rotating file logging outside debug and tests."""
    if app.debug or app.testing:
        return

    if app.config.get('LOG_TO_STDOUT'):
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.INFO)
        app.logger.addHandler(stream_handler)
    else:
        if not os.path.exists('logs'):
            os.mkdir('logs')
        file_handler = RotatingFileHandler('logs/reagent_inventory.log',
                                           maxBytes=10240000,
                                           backupCount=10)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s '
            '[in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)

    app.logger.setLevel(logging.INFO)
    app.logger.info('Reagent Inventory startup')


def ensure_admin_user(app):
    """Create the bootstrap admin from ADMIN_EMAIL / ADMIN_PASSWORD."""
    email = app.config.get('ADMIN_EMAIL')
    password = app.config.get('ADMIN_PASSWORD')
    if not email or not password:
        return
    if User.query.filter_by(email=email.strip().lower()).first():
        return
    admin = User(
        email=email,
        full_name=app.config.get('ADMIN_FULL_NAME', 'Administrator'),
        role='admin'
    )
    admin.set_password(password)
    db.session.add(admin)
    db.session.commit()
    app.logger.info(f'Bootstrap admin {admin.email} created')


def create_app(config_class=None):
    app = Flask(__name__)
    app.config.from_object(config_class or get_config())
    app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', engine_options(app.config))

    configure_logging(app)

    # Initialize Flask extensions
    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db, render_as_batch=True)

    # Redis message queue lets several workers share Socket.IO rooms
    socketio.init_app(
        app,
        message_queue=app.config.get('REDIS_URL') if app.config.get('ENV_NAME') == 'production' else None,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE')
    )

    limiter.init_app(app)

    login_manager.login_view = 'auth.login'
    login_manager.login_message = 'Please log in to access this page.'
    login_manager.login_message_category = 'info'
    login_manager.session_protection = 'strong'

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    from reagent_inventory.main import bp as main_bp
    from reagent_inventory.auth import bp as auth_bp
    from reagent_inventory.admin import bp as admin_bp
    from reagent_inventory.api import bp as api_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(api_bp, url_prefix='/api')

    from reagent_inventory.utils import format_timestamp

    @app.template_filter('localtime')
    def localtime_filter(value, fmt='%Y-%m-%d %H:%M'):
        local = format_timestamp(value)
        return local.strftime(fmt) if local else ''

    @app.context_processor
    def inject_unread_notifications():
        if has_request_context() and current_user.is_authenticated:
            return dict(unread_notifications=Notification.unread_count(current_user.id))
        return dict(unread_notifications=0)

    # Register CLI commands
    from reagent_inventory.cli import init_cli
    init_cli(app)

    with app.app_context():
        db.create_all()
        ensure_admin_user(app)

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(error):
        app.logger.error(f'Database error occurred: {str(error)}')
        if isinstance(error, OperationalError):
            return jsonify({'error': 'Database connection error. Please try again later.'}), 503
        elif isinstance(error, DisconnectionError):
            db.session.remove()  # Clean up the session
            return jsonify({'error': 'Lost connection to database. Please refresh the page.'}), 500
        return jsonify({'error': 'An unexpected database error occurred.'}), 500

    @app.teardown_appcontext
    def cleanup(resp_or_exc):
        """Ensure proper cleanup of database sessions"""
        db.session.remove()

    return app
