"""Testing configuration."""
from datetime import timedelta
from .base import Config

class TestingConfig(Config):
    """Testing configuration class."""

    # Basic Flask config
    DEBUG = False
    TESTING = True
    SECRET_KEY = 'test-secret-key'

    # Database (in-memory SQLite for testing)
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'

    # No Redis in tests; the catalogue cache becomes a no-op
    REDIS_URL = None

    # JWT Configuration
    JWT_SECRET_KEY = 'test-jwt-secret-with-enough-length-for-hs256'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=5)

    # Rate Limiting (disabled for testing)
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = 'memory://'

    # Mail is recorded, never sent
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = 'tests@university.edu'

    # Jobs are driven explicitly by the tests
    SCHEDULER_ENABLED = False

    # Logging
    LOG_LEVEL = 'WARNING'
