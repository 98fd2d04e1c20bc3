# backend/campus_attendance/services/session_service.py
"""Session lifecycle: opening, closing with absence backfill, and read views."""
import logging
import secrets
from datetime import timedelta
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy import insert as sql_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from campus_attendance import db
from campus_attendance.models.academic import Material, Geofence
from campus_attendance.models.accounts import Student, Teacher
from campus_attendance.models.attendance import AttendanceRecord, AttendanceStatus, SYSTEM_AUTO
from campus_attendance.models.session import Session
from campus_attendance.services.outbox_service import OutboxService, ABSENCE_CHECK
from campus_attendance.utils.errors import ForbiddenError, NotFoundError
from campus_attendance.utils.helpers import utcnow
from campus_attendance.utils.principals import TeacherPrincipal

logger = logging.getLogger(__name__)

def _insert_ignore(model, rows: List[Dict], conflict_columns: List[str]) -> int:
    """Bulk insert that silently skips rows violating the given unique key."""
    if not rows:
        return 0

    dialect = db.session.get_bind().dialect.name
    if dialect == 'postgresql':
        from sqlalchemy.dialects.postgresql import insert
        stmt = insert(model).values(rows).on_conflict_do_nothing(index_elements=conflict_columns)
    elif dialect == 'sqlite':
        from sqlalchemy.dialects.sqlite import insert
        stmt = insert(model).values(rows).on_conflict_do_nothing(index_elements=conflict_columns)
    elif dialect in ('mysql', 'mariadb'):
        from sqlalchemy.dialects.mysql import insert
        stmt = insert(model).values(rows).prefix_with('IGNORE')
    else:
        return _insert_each(model, rows)

    result = db.session.execute(stmt)
    return result.rowcount if result.rowcount is not None and result.rowcount >= 0 else len(rows)

def _insert_each(model, rows: List[Dict]) -> int:
    """Row by row inside savepoints, for dialects without a native insert-or-ignore."""
    inserted = 0
    for row in rows:
        try:
            with db.session.begin_nested():
                db.session.execute(sql_insert(model).values(**row))
            inserted += 1
        except IntegrityError:
            logger.debug("Skipping existing %s row %s", model.__tablename__, row)
    return inserted

class SessionService:
    """Service for session operations."""

    @staticmethod
    def generate_qr_secret() -> str:
        """Six-digit per-session seed mixed into every token hash."""
        return f"{secrets.randbelow(900000) + 100000}"

    @staticmethod
    def open_session(material_id: int, teacher_id: int, geofence_id: int, principal=None) -> Session:
        """Open a session for a material; all three references must exist."""
        if isinstance(principal, TeacherPrincipal):
            if teacher_id is None:
                teacher_id = principal.id
            elif teacher_id != principal.id:
                raise ForbiddenError("Teachers can only open sessions for themselves")

        material = db.session.get(Material, material_id) if material_id else None
        if material is None:
            raise NotFoundError("Material not found")

        teacher = db.session.get(Teacher, teacher_id) if teacher_id else None
        if teacher is None:
            raise NotFoundError("Teacher not found")

        geofence = db.session.get(Geofence, geofence_id) if geofence_id else None
        if geofence is None:
            raise NotFoundError("Geofence not found")

        ttl = current_app.config.get('SESSION_TTL_SECONDS', 300)
        session = Session(
            material_id=material.id,
            teacher_id=teacher.id,
            geofence_id=geofence.id,
            qr_secret=SessionService.generate_qr_secret(),
            is_active=True,
            expires_at=utcnow() + timedelta(seconds=ttl)
        )
        session.save()

        logger.info("Session %s opened for material %s by teacher %s",
                    session.id, material.id, teacher.id)
        return session

    @staticmethod
    def close_session(session_id: int, principal=None) -> Dict:
        """
        End a session and mark every roster student without a record as ABSENT.

        The backfill and the absence-check events commit together.
        Returns the session dict plus marked_absent_count.
        """
        session = SessionService._load(session_id, principal)
        material = session.material

        session.is_active = False

        roster_ids = {
            row.id for row in db.session.query(Student.id).filter(
                Student.department_id == material.department_id,
                Student.stage_id == material.stage_id
            )
        }
        present_ids = {
            row.student_id for row in db.session.query(AttendanceRecord.student_id)
            .filter(AttendanceRecord.session_id == session.id).distinct()
        }
        absentee_ids = sorted(roster_ids - present_ids)

        now = utcnow()
        rows = [
            {
                'student_id': student_id,
                'session_id': session.id,
                'status': AttendanceStatus.ABSENT,
                'marked_by': SYSTEM_AUTO,
                'marked_at': now,
                'created_at': now,
                'updated_at': now,
            }
            for student_id in absentee_ids
        ]
        # A scan committing after the present query must not collide with the backfill
        marked_absent_count = _insert_ignore(AttendanceRecord, rows, ['student_id', 'session_id'])

        for student_id in absentee_ids:
            OutboxService.enqueue(ABSENCE_CHECK, {
                'student_id': student_id,
                'material_id': material.id,
                'session_id': session.id,
            })

        db.session.commit()

        logger.info("Session %s closed: %s absent of %s on roster",
                    session.id, marked_absent_count, len(roster_ids))

        data = session.to_dict()
        data['marked_absent_count'] = marked_absent_count
        return data

    @staticmethod
    def get_session(session_id: int, principal=None) -> Dict:
        """Session with material, teacher and geofence details."""
        session = SessionService._load(session_id, principal)
        return SessionService._serialize(session)

    @staticmethod
    def list_sessions(principal=None, active_only: bool = False) -> List[Dict]:
        """Teachers see their own sessions, admins see all."""
        query = Session.query.options(
            joinedload(Session.material), joinedload(Session.geofence)
        )
        if isinstance(principal, TeacherPrincipal):
            query = query.filter(Session.teacher_id == principal.id)
        if active_only:
            query = query.filter(Session.is_active.is_(True))

        sessions = query.order_by(Session.created_at.desc(), Session.id.desc()).all()
        return [SessionService._serialize(session) for session in sessions]

    @staticmethod
    def session_attendance(session_id: int, principal=None) -> Dict:
        """Attendance sheet of a session with per-status counts."""
        session = SessionService._load(session_id, principal)

        records = session.records.options(joinedload(AttendanceRecord.student)) \
            .order_by(AttendanceRecord.marked_at.asc(), AttendanceRecord.id.asc()).all()

        summary = {status.value: 0 for status in AttendanceStatus}
        items = []
        for record in records:
            summary[record.status.value] += 1
            item = record.to_dict(exclude=['token_hash'])
            item['student_name'] = record.student.name if record.student else None
            item['student_number'] = record.student.student_number if record.student else None
            items.append(item)

        return {
            'session': SessionService._serialize(session),
            'records': items,
            'summary': summary,
            'total': len(items),
        }

    @staticmethod
    def _load(session_id: int, principal=None) -> Session:
        session = Session.query.options(joinedload(Session.material)) \
            .filter(Session.id == session_id).first()
        if session is None:
            raise NotFoundError("Session not found")
        if isinstance(principal, TeacherPrincipal) and session.teacher_id != principal.id:
            raise ForbiddenError("You can only manage your own sessions")
        return session

    @staticmethod
    def _serialize(session: Session) -> Dict:
        data = session.to_dict()
        data['material'] = session.material.to_dict() if session.material else None
        data['geofence'] = session.geofence.to_dict() if session.geofence else None
        teacher: Optional[Teacher] = session.teacher
        data['teacher'] = {'id': str(teacher.id), 'name': teacher.name} if teacher else None
        return data
