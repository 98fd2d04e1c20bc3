"""Promotion policy, audit records and the batch lock."""
import enum
from campus_attendance import db
from campus_attendance.models.base import BaseModel, BigId
from campus_attendance.utils.helpers import utcnow

class PromotionDecision(enum.Enum):
    """Outcome of a promotion evaluation."""
    PROMOTED = 'PROMOTED'
    PROMOTED_WITH_CARRY = 'PROMOTED_WITH_CARRY'
    REPEAT_YEAR = 'REPEAT_YEAR'

class RepeatMode:
    FAILED_ONLY = 'repeat_failed_only'
    FULL_YEAR = 'repeat_full_year'

class PromotionConfig(BaseModel):
    """Per-department promotion policy."""

    __tablename__ = 'promotion_configs'

    department_id = db.Column(BigId, db.ForeignKey('departments.id'), nullable=False, unique=True)
    max_carry_subjects = db.Column(db.Integer, nullable=False, default=2)
    fail_threshold_for_repeat = db.Column(db.Integer, nullable=False, default=3)
    disable_carry_for_final_year = db.Column(db.Boolean, nullable=False, default=False)
    block_carry_for_core = db.Column(db.Boolean, nullable=False, default=False)
    repeat_mode = db.Column(db.String(30), nullable=False, default=RepeatMode.FAILED_ONLY)

class PromotionRecord(BaseModel):
    """Immutable audit of one executed promotion."""

    __tablename__ = 'promotion_records'

    student_id = db.Column(BigId, db.ForeignKey('students.id'), nullable=False, index=True)
    academic_year_from = db.Column(db.String(9), nullable=False)
    academic_year_to = db.Column(db.String(9), nullable=False)
    stage_from_id = db.Column(BigId, db.ForeignKey('stages.id'), nullable=True)
    stage_to_id = db.Column(BigId, db.ForeignKey('stages.id'), nullable=True)
    decision = db.Column(db.Enum(PromotionDecision), nullable=False)
    failed_count = db.Column(db.Integer, nullable=False, default=0)
    carried_count = db.Column(db.Integer, nullable=False, default=0)
    processed_by = db.Column(db.String(255), nullable=False)
    processed_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    stage_from = db.relationship('Stage', foreign_keys=[stage_from_id])
    stage_to = db.relationship('Stage', foreign_keys=[stage_to_id])

    def to_dict(self, exclude: list = None):
        data = super().to_dict(exclude=exclude)
        data['stage_from'] = self.stage_from.name if self.stage_from else None
        data['stage_to'] = self.stage_to.name if self.stage_to else None
        return data

class PromotionLock(BaseModel):
    """Row held while a promotion batch runs; the unique name makes it exclusive."""

    __tablename__ = 'promotion_locks'

    name = db.Column(db.String(100), nullable=False, unique=True)
    held_by = db.Column(db.String(255), nullable=False)
    acquired_at = db.Column(db.DateTime, default=utcnow, nullable=False)
