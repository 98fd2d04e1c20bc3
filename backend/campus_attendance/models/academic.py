"""Academic structure: departments, stages, materials and geofences."""
from campus_attendance import db
from campus_attendance.models.base import BaseModel, BigId

class Department(BaseModel):
    """Department (القسم)."""

    __tablename__ = 'departments'

    name = db.Column(db.String(255), nullable=False, unique=True)

    materials = db.relationship('Material', backref='department', lazy='dynamic')

    def __repr__(self):
        return f'<Department {self.name}>'

class Stage(BaseModel):
    """Academic stage (المرحلة). Ordered by level; the next stage has level + 1."""

    __tablename__ = 'stages'

    name = db.Column(db.String(100), nullable=False)
    level = db.Column(db.Integer, nullable=False, index=True)

    materials = db.relationship('Material', backref='stage', lazy='dynamic')

    @classmethod
    def next_after(cls, stage: 'Stage'):
        """Stage one level above, or None for the final year."""
        if stage is None:
            return None
        return cls.query.filter_by(level=stage.level + 1).first()

    def __repr__(self):
        return f'<Stage {self.name} L{self.level}>'

class Material(BaseModel):
    """A subject taught to one department and stage."""

    __tablename__ = 'materials'

    name = db.Column(db.String(255), nullable=False)
    department_id = db.Column(BigId, db.ForeignKey('departments.id'), nullable=False, index=True)
    stage_id = db.Column(BigId, db.ForeignKey('stages.id'), nullable=False, index=True)
    is_core_subject = db.Column(db.Boolean, default=False, nullable=False)

    def __repr__(self):
        return f'<Material {self.name}>'

class Geofence(BaseModel):
    """Circular region where scans for a session are accepted."""

    __tablename__ = 'geofences'

    name = db.Column(db.String(255), nullable=False)
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    radius_meters = db.Column(db.Integer, nullable=False, default=100)

    def __repr__(self):
        return f'<Geofence {self.name} r={self.radius_meters}m>'
