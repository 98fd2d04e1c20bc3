# backend/campus_attendance/services/qr_service.py
"""QR token issuance and rendering."""
import base64
import hashlib
import io
import json
import secrets
from datetime import timedelta
from typing import Dict, List

import qrcode
from flask import current_app

from campus_attendance import db
from campus_attendance.models.session import Session, QRToken
from campus_attendance.utils.errors import ForbiddenError, NotFoundError
from campus_attendance.utils.helpers import utcnow
from campus_attendance.utils.principals import TeacherPrincipal

class QRService:
    """Service for QR token operations."""

    @staticmethod
    def hash_token(raw_token: str, qr_secret: str) -> str:
        """Bind a raw token to its session's private rotation seed."""
        return hashlib.sha256((raw_token + qr_secret).encode()).hexdigest()

    @staticmethod
    def issue_token(session_id: int, principal=None) -> Dict:
        """
        Mint a single-use token for an active session.
        Returns: {'payload': {'token', 'id'}, 'expires_at': iso}
        """
        session = db.session.get(Session, session_id)

        if session is None or not session.accepts_new_tokens():
            raise NotFoundError("Session not found or inactive")

        if isinstance(principal, TeacherPrincipal) and session.teacher_id != principal.id:
            raise ForbiddenError("You can only generate QR codes for your own sessions")

        raw_token = secrets.token_hex(32)
        ttl = current_app.config.get('QR_TOKEN_TTL_SECONDS', 90)

        qr_token = QRToken(
            session_id=session.id,
            token_hash=QRService.hash_token(raw_token, session.qr_secret),
            expires_at=utcnow() + timedelta(seconds=ttl)
        )
        db.session.add(qr_token)
        db.session.commit()

        return {
            'payload': {'token': raw_token, 'id': str(qr_token.id)},
            'expires_at': qr_token.expires_at.isoformat(),
            'expires_in': ttl
        }

    @staticmethod
    def render_data_url(payload: Dict) -> str:
        """Render the payload as a PNG data URL."""
        qr = qrcode.QRCode(
            version=None,  # Auto-determine size
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(json.dumps(payload, separators=(',', ':')))
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffered = io.BytesIO()
        img.save(buffered, format="PNG")
        img_str = base64.b64encode(buffered.getvalue()).decode()

        return f"data:image/png;base64,{img_str}"

    @staticmethod
    def list_session_tokens(session_id: int, principal=None) -> List[Dict]:
        """Rotation history of a session, newest first. Raw tokens are never stored."""
        session = db.session.get(Session, session_id)
        if session is None:
            raise NotFoundError("Session not found")

        if isinstance(principal, TeacherPrincipal) and session.teacher_id != principal.id:
            raise ForbiddenError("You can only view QR codes of your own sessions")

        tokens = session.tokens.order_by(QRToken.created_at.desc(), QRToken.id.desc()).all()
        return [token.to_dict() for token in tokens]

