"""Authentication service for admins, teachers and students."""
import logging
from typing import Dict, Optional

from flask_jwt_extended import create_access_token, create_refresh_token

from campus_attendance import db
from campus_attendance.models.accounts import Admin, Student, Teacher
from campus_attendance.models.attendance import FailedAttemptType
from campus_attendance.services.failed_attempt_service import FailedAttemptService
from campus_attendance.services.outbox_service import OutboxService, LOGIN_NOTIFICATION
from campus_attendance.utils.errors import AuthenticationError, ForbiddenError, ValidationError
from campus_attendance.utils.helpers import utcnow
from campus_attendance.utils.principals import (
    AdminPrincipal, StudentPrincipal, TeacherPrincipal, principal_claims
)
from campus_attendance.utils.validators import Validator

logger = logging.getLogger(__name__)

# Lookup order when no role is given
ACCOUNT_MODELS = (
    (AdminPrincipal.role, Admin),
    (TeacherPrincipal.role, Teacher),
    (StudentPrincipal.role, Student),
)

INVALID_LOGIN = "Invalid email or password"

class AuthService:
    @staticmethod
    def login(email: str, password: str, role: Optional[str] = None,
              ip_address: str = None, device_info: str = None) -> Dict:
        """Authenticate any account type and return tokens."""
        email = (email or '').lower().strip()
        if not email or not password:
            raise ValidationError("Email and password are required")
        if not Validator.validate_email(email):
            raise ValidationError("Invalid email format")

        models = ACCOUNT_MODELS
        if role:
            models = tuple((name, model) for name, model in ACCOUNT_MODELS if name == role)
            if not models:
                raise ValidationError(f"Invalid role: {role}")

        for role_name, model in models:
            account = model.query.filter_by(email=email).first()
            if account is None:
                continue

            if not account.check_password(password):
                if role_name == StudentPrincipal.role:
                    FailedAttemptService.log_attempt(
                        error_type=FailedAttemptType.INVALID_CREDENTIALS,
                        error_message=f"Student login failed: invalid password for {email}",
                        student_id=account.id,
                        ip_address=ip_address,
                        device_info=device_info
                    )
                raise AuthenticationError(INVALID_LOGIN)

            if not account.is_active:
                raise ForbiddenError("Account is deactivated")

            account.last_login = utcnow()
            if role_name == StudentPrincipal.role:
                OutboxService.enqueue(LOGIN_NOTIFICATION, {
                    'student_id': account.id,
                    'login_time': account.last_login.isoformat(),
                    'ip_address': ip_address,
                })
            db.session.commit()

            logger.info("%s %s logged in", role_name, account.id)
            return AuthService.issue_tokens(account, role_name)

        FailedAttemptService.log_attempt(
            error_type=FailedAttemptType.INVALID_CREDENTIALS,
            error_message=f"Login failed: email not found - {email}",
            ip_address=ip_address,
            device_info=device_info
        )
        raise AuthenticationError(INVALID_LOGIN)

    @staticmethod
    def issue_tokens(account, role: str) -> Dict:
        claims = principal_claims(account, role)
        identity = str(account.id)
        user = account.to_dict()
        user['role'] = role
        return {
            'access_token': create_access_token(identity=identity, additional_claims=claims),
            'refresh_token': create_refresh_token(identity=identity, additional_claims=claims),
            'user': user,
        }

    @staticmethod
    def get_account(principal):
        """Account row behind a principal, or None."""
        model = dict(ACCOUNT_MODELS)[principal.role]
        return db.session.get(model, principal.id)
