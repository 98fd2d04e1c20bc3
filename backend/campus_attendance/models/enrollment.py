"""Enrollments of students in materials per academic year."""
import enum
from campus_attendance import db
from campus_attendance.models.base import BaseModel, BigId

class ResultStatus(enum.Enum):
    """Outcome of an enrollment."""
    IN_PROGRESS = 'IN_PROGRESS'
    PASSED = 'PASSED'
    FAILED = 'FAILED'
    BLOCKED_BY_ABSENCE = 'BLOCKED_BY_ABSENCE'

FAILING_RESULTS = (ResultStatus.FAILED, ResultStatus.BLOCKED_BY_ABSENCE)

class Enrollment(BaseModel):
    """A student's registration in a material for one academic year."""

    __tablename__ = 'enrollments'
    __table_args__ = (
        db.UniqueConstraint('student_id', 'material_id', 'academic_year',
                            name='uq_enrollment_student_material_year'),
    )

    student_id = db.Column(BigId, db.ForeignKey('students.id'), nullable=False, index=True)
    material_id = db.Column(BigId, db.ForeignKey('materials.id'), nullable=False)
    academic_year = db.Column(db.String(9), nullable=False, index=True)
    result_status = db.Column(db.Enum(ResultStatus), default=ResultStatus.IN_PROGRESS, nullable=False)
    is_carried = db.Column(db.Boolean, default=False, nullable=False)

    material = db.relationship('Material')

class CarriedSubject(BaseModel):
    """A failed subject a promoted student still owes."""

    __tablename__ = 'carried_subjects'

    student_id = db.Column(BigId, db.ForeignKey('students.id'), nullable=False, index=True)
    material_id = db.Column(BigId, db.ForeignKey('materials.id'), nullable=False)
    academic_year = db.Column(db.String(9), nullable=False)
