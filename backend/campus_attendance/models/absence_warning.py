"""One-time absence warnings."""
import enum
from campus_attendance import db
from campus_attendance.models.base import BaseModel, BigId

class WarningType(enum.Enum):
    """Warning levels, lowest to highest, plus the consecutive-day warning."""
    NOTICE = 'NOTICE'                      # تنبيه
    FIRST_WARNING = 'FIRST_WARNING'        # إنذار أولي
    FINAL_WARNING = 'FINAL_WARNING'        # إنذار نهائي
    ABSENCE_FAIL = 'ABSENCE_FAIL'          # رسوب بالغياب
    EXPULSION_WARNING = 'EXPULSION_WARNING'  # تحذير فصل

CONSECUTIVE_SCOPE = 'consecutive'

def warning_scope_key(material_id) -> str:
    """Non-null key standing in for material_id in the unique constraint."""
    return f'material:{material_id}' if material_id is not None else CONSECUTIVE_SCOPE

class AbsenceWarning(BaseModel):
    """At most one row per (student, material, warning type)."""

    __tablename__ = 'absence_warnings'
    __table_args__ = (
        db.UniqueConstraint('student_id', 'scope_key', 'warning_type', name='uq_absence_warning'),
    )

    student_id = db.Column(BigId, db.ForeignKey('students.id'), nullable=False, index=True)
    material_id = db.Column(BigId, db.ForeignKey('materials.id'), nullable=True)
    scope_key = db.Column(db.String(40), nullable=False)
    warning_type = db.Column(db.Enum(WarningType), nullable=False)
    absence_percentage = db.Column(db.Float, nullable=False, default=0)
    consecutive_days = db.Column(db.Integer, nullable=True)
    email_sent = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self, exclude: list = None):
        return super().to_dict(exclude=(exclude or []) + ['scope_key'])
