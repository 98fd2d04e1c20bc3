"""Attendance audit and warnings API."""
from flask import Blueprint, g, request

from campus_attendance.services.absence_warning_service import AbsenceWarningService
from campus_attendance.services.failed_attempt_service import FailedAttemptService
from campus_attendance.utils.decorators import admin_required, roles_required
from campus_attendance.utils.errors import ForbiddenError, ValidationError
from campus_attendance.utils.helpers import success_response
from campus_attendance.utils.principals import AdminPrincipal, StudentPrincipal
from campus_attendance.utils.validators import Validator

attendance_bp = Blueprint('attendance', __name__)

@attendance_bp.route('/failed-attempts', methods=['GET'])
@admin_required
def failed_attempts():
    """Audit trail of rejected scans and logins."""
    student_id = request.args.get('student_id')
    session_id = request.args.get('session_id')
    try:
        limit = min(int(request.args.get('limit', 100)), 500)
    except ValueError:
        raise ValidationError("limit must be a number")

    attempts = FailedAttemptService.list_attempts(
        error_type=request.args.get('error_type'),
        student_id=Validator.parse_id(student_id, 'student_id') if student_id else None,
        session_id=Validator.parse_id(session_id, 'session_id') if session_id else None,
        limit=limit
    )
    return success_response(data=attempts)

@attendance_bp.route('/warnings/<student_id>', methods=['GET'])
@roles_required(AdminPrincipal, StudentPrincipal)
def student_warnings(student_id):
    """Absence warnings of a student; students only see their own."""
    student_id = Validator.parse_id(student_id, 'student_id')
    if isinstance(g.principal, StudentPrincipal) and g.principal.id != student_id:
        raise ForbiddenError("You can only view your own warnings")

    return success_response(data=AbsenceWarningService.list_student_warnings(student_id))
