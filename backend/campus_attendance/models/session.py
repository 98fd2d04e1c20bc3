"""Teaching sessions and their rotating QR tokens."""
from campus_attendance import db
from campus_attendance.models.base import BaseModel, BigId
from campus_attendance.utils.helpers import utcnow

class Session(BaseModel):
    """One teaching occurrence of a material, bound to a geofence."""

    __tablename__ = 'sessions'

    material_id = db.Column(BigId, db.ForeignKey('materials.id'), nullable=False, index=True)
    teacher_id = db.Column(BigId, db.ForeignKey('teachers.id'), nullable=False, index=True)
    geofence_id = db.Column(BigId, db.ForeignKey('geofences.id'), nullable=True)
    qr_secret = db.Column(db.String(64), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    # Relationships
    material = db.relationship('Material')
    geofence = db.relationship('Geofence')
    tokens = db.relationship('QRToken', backref='session', lazy='dynamic',
                             cascade='all, delete-orphan')
    records = db.relationship('AttendanceRecord', backref='session', lazy='dynamic',
                              cascade='all, delete-orphan')

    def is_expired(self) -> bool:
        """Check if the token issuance window has passed."""
        return utcnow() > self.expires_at

    def accepts_new_tokens(self) -> bool:
        return self.is_active and not self.is_expired()

    def to_dict(self, exclude: list = None):
        """Convert to dictionary. The rotation secret never leaves the server."""
        exclude = (exclude or []) + ['qr_secret']
        return super().to_dict(exclude=exclude)

class QRToken(BaseModel):
    """One rotation of a session's QR code; usable once."""

    __tablename__ = 'qr_tokens'

    session_id = db.Column(BigId, db.ForeignKey('sessions.id'), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)
    used_at = db.Column(db.DateTime, nullable=True)
    used_by_student_id = db.Column(BigId, db.ForeignKey('students.id'), nullable=True)

    def is_used(self) -> bool:
        return self.used_at is not None

    def is_expired(self, now=None) -> bool:
        return self.expires_at < (now or utcnow())

    def to_dict(self, exclude: list = None):
        exclude = (exclude or []) + ['token_hash']
        return super().to_dict(exclude=exclude)
