"""Development configuration."""
import os
from .base import Config

class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or \
        'sqlite:///campus_attendance_dev.db'
    SQLALCHEMY_ECHO = True

    # Print mail instead of sending it unless a server is configured
    MAIL_SUPPRESS_SEND = os.environ.get('MAIL_USERNAME') is None

    LOG_LEVEL = 'DEBUG'
