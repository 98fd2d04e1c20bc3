"""Enrollment results API."""
from flask import Blueprint, g, request

from campus_attendance.services.enrollment_service import EnrollmentService
from campus_attendance.utils.decorators import staff_required
from campus_attendance.utils.helpers import success_response
from campus_attendance.utils.validators import Validator

enrollments_bp = Blueprint('enrollments', __name__)

@enrollments_bp.route('/<enrollment_id>', methods=['PATCH'])
@staff_required
def update_enrollment(enrollment_id):
    """Set result_status of an enrollment."""
    enrollment_id = Validator.parse_id(enrollment_id, 'enrollment_id')
    data = request.get_json(silent=True) or {}
    Validator.require_fields(data, ['result_status'])

    enrollment = EnrollmentService.set_result(enrollment_id, data['result_status'], g.principal)
    return success_response(data=enrollment, message="Enrollment updated successfully")
