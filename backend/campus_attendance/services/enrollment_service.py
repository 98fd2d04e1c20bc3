"""Recording subject results on enrollments."""
import logging
from typing import Dict

from campus_attendance import db
from campus_attendance.models.enrollment import Enrollment, ResultStatus
from campus_attendance.models.session import Session
from campus_attendance.utils.errors import ForbiddenError, NotFoundError, ValidationError
from campus_attendance.utils.principals import AdminPrincipal, TeacherPrincipal

logger = logging.getLogger(__name__)

class EnrollmentService:
    @staticmethod
    def set_result(enrollment_id: int, result_status: str, principal=None) -> Dict:
        """Set an enrollment's result. Teachers may only grade materials they teach."""
        try:
            status = ResultStatus(str(result_status or '').upper())
        except ValueError:
            allowed = ', '.join(s.value for s in ResultStatus)
            raise ValidationError(f"result_status must be one of: {allowed}")

        enrollment = db.session.get(Enrollment, enrollment_id)
        if enrollment is None:
            raise NotFoundError("Enrollment not found")

        if isinstance(principal, TeacherPrincipal):
            teaches = db.session.query(Session.id).filter_by(
                teacher_id=principal.id, material_id=enrollment.material_id
            ).first()
            if teaches is None:
                raise ForbiddenError("You can only grade materials you teach")
        elif isinstance(principal, AdminPrincipal) and principal.department_id and \
                enrollment.material.department_id != principal.department_id:
            raise ForbiddenError("Enrollment belongs to another department")

        enrollment.result_status = status
        db.session.commit()

        logger.info("Enrollment %s result set to %s", enrollment.id, status.value)
        return enrollment.to_dict()
