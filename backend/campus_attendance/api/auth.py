# File: backend/campus_attendance/api/auth.py
"""Authentication API."""
from flask import Blueprint, g, request
from flask_jwt_extended import jwt_required

from campus_attendance import limiter
from campus_attendance.services.auth_service import AuthService
from campus_attendance.utils.decorators import roles_required
from campus_attendance.utils.errors import NotFoundError, ValidationError
from campus_attendance.utils.helpers import client_info, success_response
from campus_attendance.utils.principals import (
    AdminPrincipal, StudentPrincipal, TeacherPrincipal, current_principal
)

auth_bp = Blueprint("auth", __name__)

@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    """Login for admins, teachers and students."""
    data = request.get_json(silent=True)
    if not data:
        raise ValidationError("Request body must be JSON")

    ip_address, device_info = client_info()
    result = AuthService.login(
        data.get("email"),
        data.get("password"),
        role=data.get("role"),
        ip_address=ip_address,
        device_info=device_info
    )
    return success_response(data=result, message="Login successful")

@auth_bp.route("/refresh", methods=["POST"])
@jwt_required(refresh=True)
def refresh():
    """Exchange a refresh token for new tokens."""
    principal = current_principal()
    account = AuthService.get_account(principal)
    if account is None or not account.is_active:
        raise NotFoundError("Account not found")
    return success_response(data=AuthService.issue_tokens(account, principal.role))

@auth_bp.route("/me", methods=["GET"])
@roles_required(AdminPrincipal, TeacherPrincipal, StudentPrincipal)
def me():
    """Current account."""
    account = AuthService.get_account(g.principal)
    if account is None:
        raise NotFoundError("Account not found")
    data = account.to_dict()
    data['role'] = g.principal.role
    return success_response(data=data)
