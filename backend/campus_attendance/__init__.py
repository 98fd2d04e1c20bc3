"""Campus Attendance Platform - Application Factory."""
import logging
import os
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_mail import Mail

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
mail = Mail()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200 per day", "50 per hour"]
)

def create_app(config_name: str = None) -> Flask:
    """Application factory pattern."""
    app = Flask(__name__)

    # Load configuration
    from campus_attendance.config import get_config
    config_class = get_config(config_name)
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)
    limiter.init_app(app)

    # Configure CORS
    CORS(app, origins=app.config.get('CORS_ORIGINS', ["*"]))

    # Setup logging
    setup_logging(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Setup database
    setup_database(app)

    # Add CLI commands
    register_commands(app)

    # Add health check
    @app.route('/health')
    def health_check():
        return jsonify({
            'status': 'healthy',
            'service': 'Campus Attendance Platform',
            'version': '1.0.0'
        })

    return app

def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""
    from campus_attendance.api.auth import auth_bp
    from campus_attendance.api.catalog import catalog_bp
    from campus_attendance.api.sessions import sessions_bp
    from campus_attendance.api.qr import qr_bp
    from campus_attendance.api.attendance import attendance_bp
    from campus_attendance.api.enrollments import enrollments_bp
    from campus_attendance.api.promotion import promotion_bp

    # Auth
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    # Read-only reference data
    app.register_blueprint(catalog_bp, url_prefix='/api/catalog')

    # Core Features
    app.register_blueprint(sessions_bp, url_prefix='/api/sessions')
    app.register_blueprint(qr_bp, url_prefix='/api/qrcodes')
    app.register_blueprint(attendance_bp, url_prefix='/api/attendance')
    app.register_blueprint(enrollments_bp, url_prefix='/api/enrollments')
    app.register_blueprint(promotion_bp, url_prefix='/api/promotion')

def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from campus_attendance.utils.errors import AppError
    from campus_attendance.utils.helpers import handle_error
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(AppError)
    def handle_app_error(error):
        db.session.rollback()
        return handle_error(error.message, error.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return handle_error(e.description, e.code)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        db.session.rollback()
        app.logger.exception('Unhandled error: %s', e)
        return handle_error('Internal server error', 500)

    # JWT error handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return handle_error('Token has expired', 401)

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return handle_error('Invalid token', 401)

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return handle_error('Authorization token required', 401)

def setup_logging(app: Flask) -> None:
    """Setup application logging."""
    package_logger = logging.getLogger('campus_attendance')
    package_logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    if not app.debug and not app.testing:
        log_dir = os.path.dirname(app.config.get('LOG_FILE', 'logs/app.log')) or '.'
        if not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = logging.FileHandler(app.config.get('LOG_FILE', 'logs/app.log'))
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        package_logger.addHandler(file_handler)

        app.logger.setLevel(logging.INFO)
        app.logger.info('Campus Attendance Platform startup')

def setup_database(app: Flask) -> None:
    """Setup database connections."""
    with app.app_context():
        # Import all models so metadata is complete
        from campus_attendance.models import (
            Department, Stage, Material, Geofence,
            Admin, Teacher, Student,
            Session, QRToken, AttendanceRecord, FailedAttempt,
            Enrollment, CarriedSubject,
            PromotionConfig, PromotionRecord, PromotionLock,
            AbsenceWarning, NotificationOutbox
        )

def register_commands(app: Flask) -> None:
    """Register CLI commands."""
    from campus_attendance.commands import register
    register(app)
