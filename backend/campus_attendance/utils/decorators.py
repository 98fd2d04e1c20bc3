# backend/campus_attendance/utils/decorators.py
"""Custom decorators for authorization."""
from functools import wraps
from flask import g
from flask_jwt_extended import verify_jwt_in_request
from campus_attendance import db
from campus_attendance.models.accounts import Student, Teacher
from campus_attendance.utils.errors import ForbiddenError, NotFoundError
from campus_attendance.utils.principals import (
    AdminPrincipal, StudentPrincipal, TeacherPrincipal, current_principal
)

def roles_required(*principal_types):
    """Require a JWT whose principal is one of the given types.

    The principal is stored on ``g.principal``.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            verify_jwt_in_request()
            principal = current_principal()

            if not isinstance(principal, principal_types):
                allowed = ' or '.join(t.role for t in principal_types)
                raise ForbiddenError(f"Access denied: {allowed} role required")

            g.principal = principal
            return f(*args, **kwargs)
        return decorated_function
    return decorator

def admin_required(f):
    """Decorator to require admin role."""
    return roles_required(AdminPrincipal)(f)

def teacher_required(f):
    """Decorator to require a teacher whose account still exists."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if db.session.get(Teacher, g.principal.id) is None:
            raise NotFoundError("Teacher not found")
        return f(*args, **kwargs)
    return roles_required(TeacherPrincipal)(decorated_function)

def staff_required(f):
    """Decorator to require teacher or admin role."""
    return roles_required(TeacherPrincipal, AdminPrincipal)(f)

def student_required(f):
    """Decorator to require an active student; the account is stored on ``g.student``."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        student = db.session.get(Student, g.principal.id)
        if student is None:
            raise NotFoundError("Student not found")
        if not student.is_active:
            raise ForbiddenError("Account is deactivated")
        g.student = student
        return f(*args, **kwargs)
    return roles_required(StudentPrincipal)(decorated_function)
