"""Account models for admins, teachers and students."""
import enum
from werkzeug.security import generate_password_hash, check_password_hash
from campus_attendance import db
from campus_attendance.models.base import BaseModel, BigId

class AcademicStatus(enum.Enum):
    """Student standing after the last promotion run."""
    REGULAR = 'REGULAR'      # منتظم
    CARRYING = 'CARRYING'    # محمل
    REPEATING = 'REPEATING'  # معيد

class AccountMixin:
    """Login fields shared by every account type."""

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login = db.Column(db.DateTime, nullable=True)

    def set_password(self, password: str) -> None:
        """Set user password with hashing."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Check if provided password matches user's password."""
        return check_password_hash(self.password_hash, password)

    def to_dict(self, exclude: list = None) -> dict:
        """Convert to dictionary excluding sensitive data."""
        exclude = (exclude or []) + ['password_hash']
        return super().to_dict(exclude=exclude)

class Admin(AccountMixin, BaseModel):
    """Administrator, optionally scoped to one department."""

    __tablename__ = 'admins'

    department_id = db.Column(BigId, db.ForeignKey('departments.id'), nullable=True)

class Teacher(AccountMixin, BaseModel):
    """Teacher account."""

    __tablename__ = 'teachers'

    department_id = db.Column(BigId, db.ForeignKey('departments.id'), nullable=True)

    sessions = db.relationship('Session', backref='teacher', lazy='dynamic')

class Student(AccountMixin, BaseModel):
    """Student account with its current academic placement."""

    __tablename__ = 'students'

    student_number = db.Column(db.String(50), unique=True, nullable=False, index=True)
    department_id = db.Column(BigId, db.ForeignKey('departments.id'), nullable=True, index=True)
    stage_id = db.Column(BigId, db.ForeignKey('stages.id'), nullable=True, index=True)
    academic_status = db.Column(db.Enum(AcademicStatus), default=AcademicStatus.REGULAR, nullable=False)
    academic_year = db.Column(db.String(9), nullable=True)  # 2024-2025

    department = db.relationship('Department')
    stage = db.relationship('Stage')
    enrollments = db.relationship('Enrollment', backref='student', lazy='dynamic')

    def has_placement(self) -> bool:
        """Both department and stage are known."""
        return self.department_id is not None and self.stage_id is not None

    def __repr__(self):
        return f'<Student {self.student_number}>'
