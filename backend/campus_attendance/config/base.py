"""Base configuration shared by every environment."""
import os
from datetime import timedelta

class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False

    # JWT Configuration
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'jwt-secret-key-change-in-production'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=2)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=7)
    JWT_ALGORITHM = 'HS256'

    # CORS
    CORS_ORIGINS = ["http://localhost:*", "https://*.vercel.app", "http://127.0.0.1:*"]

    # Rate Limiting
    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL') or 'memory://'
    RATELIMIT_DEFAULT = "200 per day, 50 per hour"

    # Optional read cache for catalogue listings
    REDIS_URL = os.environ.get('REDIS_URL')
    CACHE_TTL_SECONDS = 300

    # QR tokens and sessions
    QR_TOKEN_TTL_SECONDS = 90  # one ~30s rotation plus scan latency
    SESSION_TTL_SECONDS = 5 * 60
    QR_TOKEN_RETENTION_HOURS = 24

    # Absence warnings (percent of sessions missed)
    ABSENCE_WARNING_THRESHOLDS = {
        'ABSENCE_FAIL': 10,
        'FINAL_WARNING': 7,
        'FIRST_WARNING': 5,
        'NOTICE': 3,
    }
    CONSECUTIVE_ABSENCE_WINDOW = 7
    # 'global' inspects the most recent sessions system-wide,
    # 'roster' only sessions of materials in the student's department and stage
    CONSECUTIVE_ABSENCE_SCOPE = os.environ.get('CONSECUTIVE_ABSENCE_SCOPE', 'global')

    # Promotion defaults when a department has no PromotionConfig row
    PROMOTION_DEFAULTS = {
        'max_carry_subjects': 2,
        'fail_threshold_for_repeat': 3,
        'disable_carry_for_final_year': False,
        'block_carry_for_core': False,
        'repeat_mode': 'repeat_failed_only',
    }
    PROMOTION_LOCK_TIMEOUT_MINUTES = 60

    # Notification outbox
    OUTBOX_BATCH_SIZE = 50
    OUTBOX_MAX_ATTEMPTS = 5
    OUTBOX_POLL_SECONDS = 30

    # Mail
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 587))
    MAIL_USE_TLS = True
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = (
        os.environ.get('MAIL_FROM_NAME', 'Attendance System'),
        os.environ.get('MAIL_FROM', 'no-reply@university.edu')
    )

    # Background jobs
    SCHEDULER_ENABLED = True

    # Logging
    LOG_LEVEL = 'INFO'
    LOG_FILE = 'logs/app.log'
