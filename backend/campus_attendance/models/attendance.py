"""Attendance records and the audit trail of rejected attempts."""
import enum
from campus_attendance import db
from campus_attendance.models.base import BaseModel, BigId
from campus_attendance.utils.helpers import utcnow

SYSTEM_AUTO = 'system_auto'
SELF_SCAN = 'self_scan'

class AttendanceStatus(enum.Enum):
    """Attendance status enumeration."""
    PRESENT = 'PRESENT'
    LATE = 'LATE'
    ABSENT = 'ABSENT'
    EXCUSED = 'EXCUSED'

# Statuses that count as having attended
ATTENDED_STATUSES = (AttendanceStatus.PRESENT, AttendanceStatus.LATE)

class AttendanceRecord(BaseModel):
    """Proof that a student attended (or was marked absent from) a session."""

    __tablename__ = 'attendance_records'
    __table_args__ = (
        db.UniqueConstraint('student_id', 'session_id', name='uq_attendance_student_session'),
    )

    student_id = db.Column(BigId, db.ForeignKey('students.id'), nullable=False, index=True)
    session_id = db.Column(BigId, db.ForeignKey('sessions.id'), nullable=False, index=True)
    status = db.Column(db.Enum(AttendanceStatus), default=AttendanceStatus.PRESENT, nullable=False)
    marked_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    marked_by = db.Column(db.String(50), default=SELF_SCAN, nullable=False)

    # Scan evidence
    token_hash = db.Column(db.String(64), nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    student = db.relationship('Student')

    def __repr__(self):
        return f'<AttendanceRecord {self.student_id}-{self.session_id} {self.status.value}>'

class FailedAttemptType:
    """error_type values written to the audit trail."""
    INVALID_TOKEN = 'INVALID_TOKEN'
    EXPIRED_TOKEN = 'EXPIRED_TOKEN'
    DUPLICATE_USAGE = 'DUPLICATE_USAGE'
    GEOFENCE_ERROR = 'GEOFENCE_ERROR'
    INVALID_HASH = 'INVALID_HASH'
    UNAUTHORIZED_STUDENT = 'UNAUTHORIZED_STUDENT'
    INVALID_CREDENTIALS = 'INVALID_CREDENTIALS'
    EMAIL_NOT_VERIFIED = 'EMAIL_NOT_VERIFIED'
    FINGERPRINT_MISMATCH = 'FINGERPRINT_MISMATCH'

class FailedAttempt(BaseModel):
    """Append-only audit row for a rejected scan or login."""

    __tablename__ = 'failed_attempts'

    error_type = db.Column(db.String(50), nullable=False, index=True)
    error_message = db.Column(db.Text, nullable=False)
    student_id = db.Column(BigId, db.ForeignKey('students.id'), nullable=True, index=True)
    session_id = db.Column(BigId, db.ForeignKey('sessions.id', ondelete='SET NULL'), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    device_info = db.Column(db.String(512), nullable=True)
    attempted_at = db.Column(db.DateTime, default=utcnow, nullable=False)
