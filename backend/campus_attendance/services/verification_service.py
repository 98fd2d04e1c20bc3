# File: backend/campus_attendance/services/verification_service.py
"""Attendance verification: an ordered list of gates in front of one atomic write.

Gate order:
    1. Presence        - token, id, latitude, longitude (400, not audited)
    2. Token exists    - INVALID_TOKEN
    3. Geofence        - GEOFENCE_ERROR (only when the session has a geofence)
    4. Single use      - DUPLICATE_USAGE
    5. Expiry          - EXPIRED_TOKEN
    6. Hash            - INVALID_HASH (constant-time comparison)
    7. Profile         - department and stage set (400, not audited)
    8. Eligibility     - UNAUTHORIZED_STUDENT
    9. Commit          - mark token used + insert record, all or nothing

The first gate that returns a Rejection ends the request.
"""
import hmac
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from campus_attendance import db
from campus_attendance.models.accounts import Student
from campus_attendance.models.attendance import (
    AttendanceRecord, AttendanceStatus, FailedAttemptType, SELF_SCAN
)
from campus_attendance.models.session import Session, QRToken
from campus_attendance.services.failed_attempt_service import FailedAttemptService
from campus_attendance.services.geofence_service import GeofenceService
from campus_attendance.services.qr_service import QRService
from campus_attendance.utils.errors import AppError, ScanRejected, ValidationError
from campus_attendance.utils.helpers import utcnow
from campus_attendance.utils.validators import Validator

logger = logging.getLogger(__name__)

# Deliberately vague for the client; the audit row keeps the precise reason
GENERIC_INVALID = "Invalid QR code"

@dataclass
class ScanRequest:
    """What the student's device sent, plus request metadata."""
    student_id: int
    token: Any
    token_id: Any
    latitude: Any
    longitude: Any
    ip_address: Optional[str] = None
    device_info: Optional[str] = None

@dataclass
class Rejection:
    """Outcome of a failed gate. error_type None means not audited."""
    message: str
    status_code: int
    error_type: Optional[str] = None
    audit_message: Optional[str] = None

@dataclass
class ScanContext:
    """State accumulated while the gates run."""
    request: ScanRequest
    latitude: float = None
    longitude: float = None
    qr_token: QRToken = None
    student: Student = None

    @property
    def session(self) -> Optional[Session]:
        return self.qr_token.session if self.qr_token else None

# =================== GATES ===================

def check_presence(ctx: ScanContext) -> Optional[Rejection]:
    req = ctx.request
    try:
        Validator.require_fields(
            {'token': req.token, 'id': req.token_id,
             'latitude': req.latitude, 'longitude': req.longitude},
            ['token', 'id', 'latitude', 'longitude']
        )
        ctx.latitude = Validator.parse_float(req.latitude, 'latitude')
        ctx.longitude = Validator.parse_float(req.longitude, 'longitude')
        Validator.validate_coordinates(ctx.latitude, ctx.longitude)
    except ValidationError as e:
        return Rejection(e.message, 400)

    if not isinstance(req.token, str):
        return Rejection("Token must be a string", 400)
    return None

def load_token(ctx: ScanContext) -> Optional[Rejection]:
    try:
        token_id = Validator.parse_id(ctx.request.token_id)
    except ValidationError:
        token_id = None

    if token_id is not None:
        ctx.qr_token = QRToken.query.options(
            joinedload(QRToken.session).joinedload(Session.geofence),
            joinedload(QRToken.session).joinedload(Session.material)
        ).filter(QRToken.id == token_id).first()

    if ctx.qr_token is None:
        return Rejection(GENERIC_INVALID, 400, FailedAttemptType.INVALID_TOKEN,
                         "Invalid QR Token ID")
    return None

def check_geofence(ctx: ScanContext) -> Optional[Rejection]:
    geofence = ctx.session.geofence
    if geofence is None:
        return None

    result = GeofenceService.verify_location(ctx.latitude, ctx.longitude, geofence)
    if result['is_inside']:
        return None

    distance = int(result['distance'] + 0.5)
    return Rejection(
        f"You are outside the class range ({distance}m away). "
        f"Max allowed: {geofence.radius_meters}m",
        403,
        FailedAttemptType.GEOFENCE_ERROR,
        f"Distance: {distance}m, Allowed: {geofence.radius_meters}m"
    )

def check_single_use(ctx: ScanContext) -> Optional[Rejection]:
    if ctx.qr_token.is_used():
        return Rejection("QR code already used", 400, FailedAttemptType.DUPLICATE_USAGE,
                         "Token already used")
    return None

def check_expiry(ctx: ScanContext) -> Optional[Rejection]:
    if ctx.qr_token.is_expired():
        return Rejection("QR code expired", 400, FailedAttemptType.EXPIRED_TOKEN,
                         "Token expired")
    return None

def check_hash(ctx: ScanContext) -> Optional[Rejection]:
    expected = QRService.hash_token(ctx.request.token, ctx.session.qr_secret)
    if not hmac.compare_digest(expected.encode(), ctx.qr_token.token_hash.encode()):
        return Rejection(GENERIC_INVALID, 400, FailedAttemptType.INVALID_HASH,
                         "Token hash mismatch")
    return None

def check_profile(ctx: ScanContext) -> Optional[Rejection]:
    ctx.student = db.session.get(Student, ctx.request.student_id)
    if ctx.student is None:
        return Rejection("Student not found", 404)
    if not ctx.student.has_placement():
        return Rejection(
            "Your profile is incomplete: department and stage must be set before attending", 400
        )
    return None

def check_eligibility(ctx: ScanContext) -> Optional[Rejection]:
    student, material = ctx.student, ctx.session.material
    if student.department_id == material.department_id and student.stage_id == material.stage_id:
        return None

    detail = (
        f"student department {student.department_id} / stage {student.stage_id}, "
        f"material department {material.department_id} / stage {material.stage_id}"
    )
    return Rejection(
        f"You are not allowed to attend this session ({detail})",
        403,
        FailedAttemptType.UNAUTHORIZED_STUDENT,
        f"Department/stage mismatch: {detail}"
    )

# =================== INTERPRETER ===================

class AttendanceVerifier:
    """Runs the gates in order, audits rejections and commits attendance."""

    GATES = (
        check_presence,
        load_token,
        check_geofence,
        check_single_use,
        check_expiry,
        check_hash,
        check_profile,
        check_eligibility,
    )

    @classmethod
    def verify_scan(cls, request: ScanRequest) -> AttendanceRecord:
        """Verify a scan and record attendance, or raise the first rejection."""
        ctx = ScanContext(request=request)

        for gate in cls.GATES:
            rejection = gate(ctx)
            if rejection is not None:
                cls._reject(ctx, rejection)

        return cls._commit(ctx)

    @classmethod
    def _commit(cls, ctx: ScanContext) -> AttendanceRecord:
        qr_token, student = ctx.qr_token, ctx.student
        session_id, token_hash = qr_token.session_id, qr_token.token_hash

        # Update-if-unused: of N concurrent scans of one token exactly one sees rowcount 1
        result = db.session.execute(
            update(QRToken)
            .where(QRToken.id == qr_token.id, QRToken.used_at.is_(None))
            .values(used_at=utcnow(), used_by_student_id=student.id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            cls._reject(ctx, Rejection("QR code already used", 400,
                                       FailedAttemptType.DUPLICATE_USAGE,
                                       "Token claimed by a concurrent scan"))

        record = AttendanceRecord(
            student_id=student.id,
            session_id=session_id,
            status=AttendanceStatus.PRESENT,
            marked_by=SELF_SCAN,
            token_hash=token_hash,
            latitude=ctx.latitude,
            longitude=ctx.longitude
        )
        db.session.add(record)

        try:
            db.session.commit()
        except IntegrityError:
            # Another token (or the absence backfill) already produced a record
            db.session.rollback()
            cls._reject(ctx, Rejection("Attendance already recorded for this session", 400,
                                       FailedAttemptType.DUPLICATE_USAGE,
                                       "Attendance record already exists for this session"))

        logger.info("Attendance recorded: student=%s session=%s", student.id, session_id)
        return record

    @staticmethod
    def _reject(ctx: ScanContext, rejection: Rejection) -> None:
        if rejection.error_type is None:
            raise AppError(rejection.message, rejection.status_code)

        req = ctx.request
        session_id = ctx.qr_token.session_id if ctx.qr_token is not None else None
        logger.warning(
            "Scan rejected (%s) student=%s session=%s: %s",
            rejection.error_type, req.student_id, session_id, rejection.audit_message
        )
        FailedAttemptService.log_attempt(
            error_type=rejection.error_type,
            error_message=rejection.audit_message or rejection.message,
            student_id=req.student_id,
            session_id=session_id,
            ip_address=req.ip_address,
            device_info=req.device_info
        )
        raise ScanRejected(rejection.message, rejection.status_code, rejection.error_type)
