"""Authenticated principals, built from JWT claims."""
from dataclasses import dataclass
from typing import Optional, Union

from flask_jwt_extended import get_jwt, get_jwt_identity

from campus_attendance.utils.errors import AuthenticationError

@dataclass(frozen=True)
class AdminPrincipal:
    id: int
    department_id: Optional[int] = None
    name: str = 'Admin'
    role = 'admin'

@dataclass(frozen=True)
class TeacherPrincipal:
    id: int
    name: str = ''
    role = 'teacher'

@dataclass(frozen=True)
class StudentPrincipal:
    id: int
    name: str = ''
    role = 'student'

Principal = Union[AdminPrincipal, TeacherPrincipal, StudentPrincipal]

PRINCIPAL_TYPES = {
    AdminPrincipal.role: AdminPrincipal,
    TeacherPrincipal.role: TeacherPrincipal,
    StudentPrincipal.role: StudentPrincipal,
}

def principal_claims(account, role: str) -> dict:
    """Additional JWT claims for an account of the given role."""
    claims = {'role': role, 'name': account.name}
    if role == AdminPrincipal.role and getattr(account, 'department_id', None):
        claims['department_id'] = str(account.department_id)
    return claims

def current_principal() -> Principal:
    """Principal of the request's verified JWT."""
    claims = get_jwt()
    principal_type = PRINCIPAL_TYPES.get(claims.get('role'))
    if principal_type is None:
        raise AuthenticationError("Invalid token role", 401)

    try:
        principal_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token subject", 401)

    if principal_type is AdminPrincipal:
        department_id = claims.get('department_id')
        return AdminPrincipal(
            id=principal_id,
            department_id=int(department_id) if department_id else None,
            name=claims.get('name') or 'Admin'
        )
    return principal_type(id=principal_id, name=claims.get('name') or '')
