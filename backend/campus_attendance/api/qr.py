# backend/campus_attendance/api/qr.py
"""QR Code API endpoints."""
from flask import Blueprint, g, request

from campus_attendance import limiter
from campus_attendance.services.qr_service import QRService
from campus_attendance.services.verification_service import AttendanceVerifier, ScanRequest
from campus_attendance.utils.decorators import student_required, teacher_required
from campus_attendance.utils.errors import ValidationError
from campus_attendance.utils.helpers import client_info, success_response
from campus_attendance.utils.validators import Validator

qr_bp = Blueprint('qr', __name__)

@qr_bp.route('/generate/<session_id>', methods=['POST'])
@limiter.limit("30 per minute")
@teacher_required
def generate_qr(session_id):
    """Mint a fresh single-use token for the session and render it."""
    session_id = Validator.parse_id(session_id, 'session_id')
    issued = QRService.issue_token(session_id, g.principal)

    return success_response(
        data={
            'qr_code': QRService.render_data_url(issued['payload']),
            'payload': issued['payload'],
            'expires_at': issued['expires_at'],
            'expires_in': issued['expires_in'],
        },
        message="QR code generated successfully"
    )

@qr_bp.route('/session/<session_id>', methods=['GET'])
@teacher_required
def session_tokens(session_id):
    """Token rotation history of a session."""
    session_id = Validator.parse_id(session_id, 'session_id')
    return success_response(data=QRService.list_session_tokens(session_id, g.principal))

@qr_bp.route('/validate', methods=['POST'])
@limiter.limit("20 per minute")
@student_required
def validate_qr():
    """Scan a QR code: token, id, latitude, longitude."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be JSON")

    ip_address, device_info = client_info()
    record = AttendanceVerifier.verify_scan(ScanRequest(
        student_id=g.student.id,
        token=data.get('token'),
        token_id=data.get('id'),
        latitude=data.get('latitude'),
        longitude=data.get('longitude'),
        ip_address=ip_address,
        device_info=device_info
    ))

    return success_response(
        data={'session_id': str(record.session_id), 'status': record.status.value},
        message="Attendance recorded successfully"
    )
