# backend/campus_attendance/services/absence_warning_service.py
"""Absence warnings: percentage thresholds per material and consecutive-absence sweep."""
import logging
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from campus_attendance import db
from campus_attendance.models.absence_warning import (
    AbsenceWarning, WarningType, warning_scope_key
)
from campus_attendance.models.academic import Material
from campus_attendance.models.accounts import Student
from campus_attendance.models.attendance import AttendanceRecord, ATTENDED_STATUSES
from campus_attendance.models.session import Session
from campus_attendance.services.email_service import EmailService
from campus_attendance.utils.errors import ValidationError

logger = logging.getLogger(__name__)

SCOPE_GLOBAL = 'global'
SCOPE_ROSTER = 'roster'
CONSECUTIVE_SCOPES = (SCOPE_GLOBAL, SCOPE_ROSTER)

class AbsenceWarningService:
    """Service for absence warning operations."""

    @staticmethod
    def calculate_absence_percentage(student_id: int, material_id: int) -> float:
        """(sessions - attended or late) / sessions * 100, two decimals; 0 without sessions."""
        total_sessions = Session.query.filter_by(material_id=material_id).count()
        if total_sessions == 0:
            return 0.0

        attended_sessions = AttendanceRecord.query \
            .join(Session, AttendanceRecord.session_id == Session.id) \
            .filter(
                Session.material_id == material_id,
                AttendanceRecord.student_id == student_id,
                AttendanceRecord.status.in_(ATTENDED_STATUSES)
            ).count()

        absent_sessions = total_sessions - attended_sessions
        return round(absent_sessions / total_sessions * 100, 2)

    @staticmethod
    def get_warning_type_for_percentage(percentage: float) -> Optional[WarningType]:
        """Highest threshold crossed, or None."""
        thresholds = current_app.config['ABSENCE_WARNING_THRESHOLDS']
        for name, threshold in sorted(thresholds.items(), key=lambda item: item[1], reverse=True):
            if percentage >= threshold:
                return WarningType[name]
        return None

    @staticmethod
    def has_warning_been_sent(student_id: int, material_id: Optional[int],
                              warning_type: WarningType) -> bool:
        return db.session.query(AbsenceWarning.id).filter_by(
            student_id=student_id,
            scope_key=warning_scope_key(material_id),
            warning_type=warning_type
        ).first() is not None

    @staticmethod
    def check_and_send_warning(student_id: int, material_id: int) -> Optional[AbsenceWarning]:
        """
        Issue the warning matching the student's current absence percentage.

        Each (student, material, warning type) is warned at most once. The email
        is best-effort; the row records whether it went out.
        """
        student = db.session.get(Student, student_id)
        material = db.session.get(Material, material_id)
        if student is None or material is None:
            logger.warning("Student or material not found: student=%s material=%s",
                           student_id, material_id)
            return None

        percentage = AbsenceWarningService.calculate_absence_percentage(student_id, material_id)
        warning_type = AbsenceWarningService.get_warning_type_for_percentage(percentage)
        if warning_type is None:
            return None

        if AbsenceWarningService.has_warning_been_sent(student_id, material_id, warning_type):
            return None

        email_sent = EmailService.send_warning_email(
            student.email, student.name, material.name, percentage, warning_type
        )

        warning = AbsenceWarning(
            student_id=student_id,
            material_id=material_id,
            scope_key=warning_scope_key(material_id),
            warning_type=warning_type,
            absence_percentage=percentage,
            email_sent=email_sent
        )
        if not AbsenceWarningService._persist(warning):
            return None

        logger.info("Absence warning %s created for student %s in %s (%s%%)",
                    warning_type.value, student_id, material.name, percentage)
        return warning

    @staticmethod
    def check_consecutive_absences(scope: str = None) -> List[AbsenceWarning]:
        """
        Warn every student absent from each of their most recent sessions.

        ``global`` looks at the most recent sessions system-wide, ``roster``
        at sessions of materials in the student's department and stage.
        """
        scope = scope or current_app.config.get('CONSECUTIVE_ABSENCE_SCOPE', SCOPE_GLOBAL)
        if scope not in CONSECUTIVE_SCOPES:
            raise ValidationError(f"Unknown consecutive absence scope: {scope}")
        window = current_app.config.get('CONSECUTIVE_ABSENCE_WINDOW', 7)

        recent_by_cohort: Dict = {}
        created = []

        for student in Student.query.order_by(Student.id).all():
            if scope == SCOPE_GLOBAL:
                cohort = None
            elif student.has_placement():
                cohort = (student.department_id, student.stage_id)
            else:
                continue

            if cohort not in recent_by_cohort:
                recent_by_cohort[cohort] = AbsenceWarningService._recent_session_ids(cohort, window)
            session_ids = recent_by_cohort[cohort]

            if len(session_ids) < window:
                continue

            if AbsenceWarningService._leading_absences(student.id, session_ids) < window:
                continue

            if AbsenceWarningService.has_warning_been_sent(
                    student.id, None, WarningType.EXPULSION_WARNING):
                continue

            email_sent = EmailService.send_expulsion_warning(student.email, student.name, window)
            warning = AbsenceWarning(
                student_id=student.id,
                material_id=None,
                scope_key=warning_scope_key(None),
                warning_type=WarningType.EXPULSION_WARNING,
                absence_percentage=0,
                consecutive_days=window,
                email_sent=email_sent
            )
            if AbsenceWarningService._persist(warning):
                logger.warning("Expulsion warning issued to student %s", student.id)
                created.append(warning)

        return created

    @staticmethod
    def list_student_warnings(student_id: int) -> List[Dict]:
        """Warnings of a student, newest first, with the material name."""
        warnings = AbsenceWarning.query.filter_by(student_id=student_id) \
            .order_by(AbsenceWarning.created_at.desc(), AbsenceWarning.id.desc()).all()

        material_names = {
            material.id: material.name
            for material in Material.query.filter(
                Material.id.in_([w.material_id for w in warnings if w.material_id])
            )
        } if warnings else {}

        result = []
        for warning in warnings:
            data = warning.to_dict()
            data['material_name'] = material_names.get(warning.material_id)
            result.append(data)
        return result

    @staticmethod
    def _recent_session_ids(cohort, limit: int) -> List[int]:
        query = db.session.query(Session.id)
        if cohort is not None:
            department_id, stage_id = cohort
            query = query.join(Material, Session.material_id == Material.id).filter(
                Material.department_id == department_id,
                Material.stage_id == stage_id
            )
        rows = query.order_by(Session.created_at.desc(), Session.id.desc()).limit(limit).all()
        return [row.id for row in rows]

    @staticmethod
    def _leading_absences(student_id: int, session_ids: List[int]) -> int:
        """Sessions missed, counted from the newest until the first attended one."""
        attended = {
            row.session_id for row in db.session.query(AttendanceRecord.session_id).filter(
                AttendanceRecord.student_id == student_id,
                AttendanceRecord.session_id.in_(session_ids),
                AttendanceRecord.status.in_(ATTENDED_STATUSES)
            )
        }
        count = 0
        for session_id in session_ids:
            if session_id in attended:
                break
            count += 1
        return count

    @staticmethod
    def _persist(warning: AbsenceWarning) -> bool:
        """Insert a warning; a concurrent duplicate counts as already sent."""
        db.session.add(warning)
        try:
            db.session.commit()
            return True
        except IntegrityError:
            db.session.rollback()
            logger.info("Warning %s for student %s already recorded",
                        warning.warning_type.value, warning.student_id)
            return False
