import os
from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))

# Load environment variables from .env file, fallback to .env.development
env_path = os.path.join(basedir, '.env')
if not os.path.exists(env_path):
    env_path = os.path.join(basedir, '.env.development')
load_dotenv(env_path)


def normalize_database_url(url):
    """Rewrite Heroku/Render style ``postgres://`` URLs for SQLAlchemy."""
    if url and url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql://', 1)
    return url


class Config:
    """Base configuration class"""
    ENV_NAME = os.environ.get('FLASK_ENV', 'development')

    SECRET_KEY = os.environ.get('SECRET_KEY')
    if not SECRET_KEY:
        if ENV_NAME == 'production':
            raise ValueError("SECRET_KEY must be set in production")
        SECRET_KEY = 'dev-secret-key'

    SQLALCHEMY_DATABASE_URI = (
        normalize_database_url(os.environ.get('DATABASE_URL'))
        or 'sqlite:///' + os.path.join(basedir, 'reagents.db')
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    DEBUG = ENV_NAME == 'development'

    # Secure cookie settings
    SESSION_COOKIE_SECURE = ENV_NAME == 'production'
    SESSION_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SECURE = ENV_NAME == 'production'
    REMEMBER_COOKIE_HTTPONLY = True

    # Redis (rate limit storage and Socket.IO message queue in production)
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379')

    # Rate limiting
    RATELIMIT_STRATEGY = 'fixed-window'
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_DEFAULT = "200 per day;50 per hour"
    RATELIMIT_STORAGE_URI = 'memory://'

    # Socket.IO; None lets Flask-SocketIO pick the best available mode
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE') or None

    # Bootstrap admin account, created on startup when a password is set
    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL')
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD')
    ADMIN_FULL_NAME = os.environ.get('ADMIN_FULL_NAME', 'Administrator')

    # Timestamps are stored in UTC and rendered in this zone
    TIMEZONE = os.environ.get('TIMEZONE', 'UTC')

    # Mail Configuration
    MAIL_SERVER = os.environ.get('MAIL_SERVER')
    MAIL_PORT = int(os.environ.get('MAIL_PORT') or 25)
    MAIL_USE_TLS = os.environ.get('MAIL_USE_TLS') is not None
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get(
        'MAIL_DEFAULT_SENDER',
        'Lab Inventory <noreply@localhost>'
    )
    MAIL_TIMEOUT = 10

    # Inventory behaviour
    LEDGER_MAX_RETRIES = int(os.environ.get('LEDGER_MAX_RETRIES') or 3)
    LOW_STOCK_NOTIFICATIONS = True
    EXPIRY_WARNING_DAYS = 30
    MIN_PASSWORD_LENGTH = 6
    ITEMS_PER_PAGE = 50


class ProductionConfig(Config):
    """Production configuration"""
    ENV_NAME = 'production'
    DEBUG = False
    TESTING = False

    SQLALCHEMY_DATABASE_URI = normalize_database_url(
        os.environ.get('DATABASE_URL')
    )

    RATELIMIT_STORAGE_URI = Config.REDIS_URL

    # Production security settings
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True
    REMEMBER_COOKIE_DURATION = 3600 * 24 * 7  # 7 days in production

    # Production logging
    LOG_TO_STDOUT = os.environ.get('LOG_TO_STDOUT', 'true').lower() == 'true'


class DevelopmentConfig(Config):
    """Development configuration"""
    ENV_NAME = 'development'
    DEBUG = True


class TestingConfig(Config):
    """Testing configuration"""
    ENV_NAME = 'testing'
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    WTF_CSRF_ENABLED = False  # Disable CSRF protection in tests
    RATELIMIT_ENABLED = False  # Disable rate limiting in tests
    SOCKETIO_ASYNC_MODE = 'threading'
    MAIL_SERVER = None
    ADMIN_PASSWORD = None


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config():
    """Get configuration class based on environment"""
    env = os.environ.get('FLASK_ENV', 'development')
    return config.get(env, config['default'])
