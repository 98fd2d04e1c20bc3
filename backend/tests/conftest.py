"""Shared fixtures: app, client, a small campus and JWT headers."""
from datetime import timedelta
from types import SimpleNamespace

import pytest
from flask_jwt_extended import create_access_token

from campus_attendance import create_app, db
from campus_attendance.models import (
    Admin, Department, Enrollment, Geofence, Material, Stage, Student, Teacher
)
from campus_attendance.models.enrollment import ResultStatus
from campus_attendance.services.qr_service import QRService
from campus_attendance.services.session_service import SessionService
from campus_attendance.utils.helpers import utcnow
from campus_attendance.utils.principals import principal_claims

# Geofence center used throughout the tests (Baghdad)
CENTER = (33.3152, 44.3661)

@pytest.fixture
def app():
    """Create test app."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()

def make_student(name, email, number, department=None, stage=None, password='student123'):
    student = Student(
        name=name,
        email=email,
        student_number=number,
        department_id=department.id if department else None,
        stage_id=stage.id if stage else None,
        academic_year='2024-2025'
    )
    student.set_password(password)
    return student.save()

def make_teacher(name, email, department=None, password='teacher123'):
    teacher = Teacher(name=name, email=email,
                      department_id=department.id if department else None)
    teacher.set_password(password)
    return teacher.save()

def make_admin(name, email, department=None, password='admin123'):
    admin = Admin(name=name, email=email,
                  department_id=department.id if department else None)
    admin.set_password(password)
    return admin.save()

def enroll(student, material, academic_year='2024-2025', result=ResultStatus.PASSED):
    return Enrollment(student_id=student.id, material_id=material.id,
                      academic_year=academic_year, result_status=result).save()

@pytest.fixture
def campus(app):
    """Two departments, three stages, materials, a geofence and accounts."""
    cs = Department(name='Computer Science').save()
    se = Department(name='Software Engineering').save()
    stage1 = Stage(name='First Stage', level=1).save()
    stage2 = Stage(name='Second Stage', level=2).save()
    stage3 = Stage(name='Third Stage', level=3).save()

    programming = Material(name='Programming', department_id=cs.id, stage_id=stage1.id,
                           is_core_subject=True).save()
    english = Material(name='English', department_id=cs.id, stage_id=stage1.id).save()
    se_material = Material(name='Requirements', department_id=se.id, stage_id=stage1.id).save()

    geofence = Geofence(name='Main Hall', latitude=CENTER[0], longitude=CENTER[1],
                        radius_meters=100).save()

    teacher = make_teacher('Dr. Ahmed', 'ahmed@university.edu', cs)
    other_teacher = make_teacher('Dr. Fatima', 'fatima@university.edu', cs)
    admin = make_admin('Registrar', 'admin@university.edu')
    student = make_student('Ali Hassan', 'ali@university.edu', 'CS00001', cs, stage1)
    classmate = make_student('Sara Ali', 'sara@university.edu', 'CS00002', cs, stage1)
    outsider = make_student('Omar Salem', 'omar@university.edu', 'SE00001', se, stage1)

    return SimpleNamespace(
        cs=cs, se=se, stage1=stage1, stage2=stage2, stage3=stage3,
        programming=programming, english=english, se_material=se_material,
        geofence=geofence, teacher=teacher, other_teacher=other_teacher, admin=admin,
        student=student, classmate=classmate, outsider=outsider
    )

@pytest.fixture
def open_session(campus):
    """Factory opening a session for a material (Programming by default)."""
    def _open(material=None, teacher=None, geofence=None):
        return SessionService.open_session(
            material_id=(material or campus.programming).id,
            teacher_id=(teacher or campus.teacher).id,
            geofence_id=(geofence or campus.geofence).id
        )
    return _open

@pytest.fixture
def issue_token():
    """Factory issuing a token; returns the QRToken payload dict."""
    def _issue(session, expired=False):
        issued = QRService.issue_token(session.id)
        if expired:
            from campus_attendance.models import QRToken
            token = db.session.get(QRToken, int(issued['payload']['id']))
            token.expires_at = utcnow() - timedelta(seconds=5)
            db.session.commit()
        return issued['payload']
    return _issue

@pytest.fixture
def auth_headers(app):
    """Factory building Authorization headers for an account and role."""
    def _headers(account, role):
        token = create_access_token(identity=str(account.id),
                                    additional_claims=principal_claims(account, role))
        return {'Authorization': f'Bearer {token}'}
    return _headers
