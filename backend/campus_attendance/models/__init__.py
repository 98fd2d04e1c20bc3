"""Models package with all models."""
from .base import BaseModel
from .academic import Department, Stage, Material, Geofence
from .accounts import Admin, Teacher, Student, AcademicStatus
from .session import Session, QRToken
from .attendance import AttendanceRecord, AttendanceStatus, FailedAttempt, FailedAttemptType
from .enrollment import Enrollment, ResultStatus, CarriedSubject
from .promotion import PromotionConfig, PromotionRecord, PromotionDecision, PromotionLock, RepeatMode
from .absence_warning import AbsenceWarning, WarningType
from .outbox import NotificationOutbox, OutboxStatus

__all__ = [
    'BaseModel', 'Department', 'Stage', 'Material', 'Geofence',
    'Admin', 'Teacher', 'Student', 'AcademicStatus',
    'Session', 'QRToken',
    'AttendanceRecord', 'AttendanceStatus', 'FailedAttempt', 'FailedAttemptType',
    'Enrollment', 'ResultStatus', 'CarriedSubject',
    'PromotionConfig', 'PromotionRecord', 'PromotionDecision', 'PromotionLock', 'RepeatMode',
    'AbsenceWarning', 'WarningType',
    'NotificationOutbox', 'OutboxStatus'
]
