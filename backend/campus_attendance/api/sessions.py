# backend/campus_attendance/api/sessions.py
"""Session lifecycle API."""
from flask import Blueprint, g, request

from campus_attendance.services.session_service import SessionService
from campus_attendance.utils.decorators import staff_required
from campus_attendance.utils.helpers import success_response
from campus_attendance.utils.validators import Validator

sessions_bp = Blueprint('sessions', __name__)

def _optional_id(data, *keys):
    """First present key parsed as an id; accepts snake_case and camelCase."""
    for key in keys:
        if data.get(key) not in (None, ''):
            return Validator.parse_id(data[key], key)
    return None

@sessions_bp.route('', methods=['POST'])
@staff_required
def open_session():
    """Open a session: material_id, teacher_id (teachers default to themselves), geofence_id."""
    data = request.get_json(silent=True) or {}

    session = SessionService.open_session(
        material_id=_optional_id(data, 'material_id', 'materialId'),
        teacher_id=_optional_id(data, 'teacher_id', 'teacherId'),
        geofence_id=_optional_id(data, 'geofence_id', 'geofenceId'),
        principal=g.principal
    )
    return success_response(data=session.to_dict(), message="Session created successfully",
                            status_code=201)

@sessions_bp.route('', methods=['GET'])
@staff_required
def list_sessions():
    active_only = request.args.get('active', '').lower() in ('1', 'true', 'yes')
    return success_response(data=SessionService.list_sessions(g.principal, active_only))

@sessions_bp.route('/<session_id>', methods=['GET'])
@staff_required
def get_session(session_id):
    session_id = Validator.parse_id(session_id, 'session_id')
    return success_response(data=SessionService.get_session(session_id, g.principal))

@sessions_bp.route('/<session_id>/end', methods=['POST'])
@staff_required
def end_session(session_id):
    """Close the session and backfill absences."""
    session_id = Validator.parse_id(session_id, 'session_id')
    result = SessionService.close_session(session_id, g.principal)
    return success_response(data=result, message="Session ended successfully")

@sessions_bp.route('/<session_id>/attendance', methods=['GET'])
@staff_required
def session_attendance(session_id):
    session_id = Validator.parse_id(session_id, 'session_id')
    return success_response(data=SessionService.session_attendance(session_id, g.principal))
