"""Session lifecycle: opening, closing and absence backfill."""
import json

import pytest

from campus_attendance import db
from campus_attendance.models import (
    AttendanceRecord, AttendanceStatus, NotificationOutbox, OutboxStatus, Session
)
from campus_attendance.models.attendance import SYSTEM_AUTO
from campus_attendance.services.outbox_service import ABSENCE_CHECK
from campus_attendance.services.session_service import SessionService, _insert_each, _insert_ignore
from campus_attendance.services.verification_service import AttendanceVerifier, ScanRequest
from campus_attendance.utils.errors import NotFoundError
from conftest import CENTER

def scan_in(student, payload):
    return AttendanceVerifier.verify_scan(ScanRequest(
        student_id=student.id, token=payload['token'], token_id=payload['id'],
        latitude=CENTER[0], longitude=CENTER[1]
    ))

def test_open_session_endpoint(client, campus, auth_headers):
    response = client.post('/api/sessions', json={
        'materialId': str(campus.programming.id),
        'geofenceId': str(campus.geofence.id),
    }, headers=auth_headers(campus.teacher, 'teacher'))

    assert response.status_code == 201
    data = json.loads(response.data)['data']
    assert data['teacher_id'] == str(campus.teacher.id)
    assert data['is_active'] is True
    assert 'qr_secret' not in data

    session = db.session.get(Session, int(data['id']))
    assert 295 <= (session.expires_at - session.created_at).total_seconds() <= 301

@pytest.mark.parametrize('field', ['material_id', 'geofence_id'])
def test_open_session_missing_reference(client, campus, auth_headers, field):
    body = {'material_id': campus.programming.id, 'geofence_id': campus.geofence.id}
    body[field] = 999

    response = client.post('/api/sessions', json=body,
                           headers=auth_headers(campus.teacher, 'teacher'))

    assert response.status_code == 404

def test_admin_must_name_teacher(client, campus, auth_headers):
    response = client.post('/api/sessions', json={
        'material_id': campus.programming.id, 'geofence_id': campus.geofence.id,
    }, headers=auth_headers(campus.admin, 'admin'))
    assert response.status_code == 404
    assert json.loads(response.data)['message'] == 'Teacher not found'

def test_teacher_cannot_open_for_colleague(client, campus, auth_headers):
    response = client.post('/api/sessions', json={
        'material_id': campus.programming.id, 'geofence_id': campus.geofence.id,
        'teacher_id': campus.other_teacher.id,
    }, headers=auth_headers(campus.teacher, 'teacher'))
    assert response.status_code == 403

def test_close_backfills_every_absent_student(campus, open_session, issue_token):
    session = open_session()
    scan_in(campus.student, issue_token(session))

    result = SessionService.close_session(session.id)

    assert result['marked_absent_count'] == 1
    assert result['is_active'] is False

    records = {r.student_id: r for r in AttendanceRecord.query.filter_by(session_id=session.id)}
    # Every roster student has exactly one record; other departments are untouched
    assert set(records) == {campus.student.id, campus.classmate.id}
    assert records[campus.student.id].status == AttendanceStatus.PRESENT
    assert records[campus.classmate.id].status == AttendanceStatus.ABSENT
    assert records[campus.classmate.id].marked_by == SYSTEM_AUTO

def test_close_enqueues_absence_checks(campus, open_session):
    session = open_session()

    SessionService.close_session(session.id)

    events = NotificationOutbox.query.filter_by(event_type=ABSENCE_CHECK).all()
    assert {e.payload['student_id'] for e in events} == {campus.student.id, campus.classmate.id}
    assert all(e.payload['material_id'] == campus.programming.id for e in events)
    assert all(e.status == OutboxStatus.PENDING for e in events)

def test_closing_twice_adds_nothing(campus, open_session):
    session = open_session()
    SessionService.close_session(session.id)

    again = SessionService.close_session(session.id)

    assert again['marked_absent_count'] == 0
    assert AttendanceRecord.query.filter_by(session_id=session.id).count() == 2

def test_backfill_ignores_rows_that_appeared_meanwhile(campus, open_session):
    session = open_session()
    db.session.add(AttendanceRecord(student_id=campus.classmate.id, session_id=session.id))
    db.session.commit()

    inserted = _insert_ignore(AttendanceRecord, [{
        'student_id': campus.classmate.id,
        'session_id': session.id,
        'status': AttendanceStatus.ABSENT,
        'marked_by': SYSTEM_AUTO,
    }], ['student_id', 'session_id'])
    db.session.commit()

    assert inserted == 0
    record = AttendanceRecord.query.filter_by(session_id=session.id).one()
    assert record.status == AttendanceStatus.PRESENT

def test_row_by_row_fallback_skips_existing(campus, open_session):
    session = open_session()
    db.session.add(AttendanceRecord(student_id=campus.classmate.id, session_id=session.id))
    db.session.commit()

    inserted = _insert_each(AttendanceRecord, [
        {'student_id': student.id, 'session_id': session.id,
         'status': AttendanceStatus.ABSENT, 'marked_by': SYSTEM_AUTO}
        for student in (campus.classmate, campus.student)
    ])
    db.session.commit()

    assert inserted == 1
    statuses = {r.student_id: r.status for r in AttendanceRecord.query.filter_by(session_id=session.id)}
    assert statuses == {campus.classmate.id: AttendanceStatus.PRESENT,
                        campus.student.id: AttendanceStatus.ABSENT}

def test_close_unknown_session(app):
    with pytest.raises(NotFoundError):
        SessionService.close_session(404)

def test_end_endpoint(client, campus, open_session, auth_headers):
    session = open_session()

    response = client.post(f'/api/sessions/{session.id}/end',
                           headers=auth_headers(campus.teacher, 'teacher'))

    assert response.status_code == 200
    data = json.loads(response.data)['data']
    assert data['marked_absent_count'] == 2
    assert data['id'] == str(session.id)

def test_end_endpoint_other_teacher(client, campus, open_session, auth_headers):
    session = open_session()
    response = client.post(f'/api/sessions/{session.id}/end',
                           headers=auth_headers(campus.other_teacher, 'teacher'))
    assert response.status_code == 403

def test_closed_session_rejects_new_tokens(client, campus, open_session, auth_headers):
    session = open_session()
    SessionService.close_session(session.id)

    response = client.post(f'/api/qrcodes/generate/{session.id}',
                           headers=auth_headers(campus.teacher, 'teacher'))
    assert response.status_code == 404

def test_attendance_sheet(client, campus, open_session, issue_token, auth_headers):
    session = open_session()
    scan_in(campus.student, issue_token(session))
    SessionService.close_session(session.id)

    response = client.get(f'/api/sessions/{session.id}/attendance',
                          headers=auth_headers(campus.admin, 'admin'))

    data = json.loads(response.data)['data']
    assert data['total'] == 2
    assert data['summary']['PRESENT'] == 1
    assert data['summary']['ABSENT'] == 1
    assert all('token_hash' not in r for r in data['records'])

def test_list_sessions_scoped_to_teacher(client, campus, open_session, auth_headers):
    open_session()
    open_session(teacher=campus.other_teacher)

    mine = client.get('/api/sessions', headers=auth_headers(campus.teacher, 'teacher'))
    everyone = client.get('/api/sessions', headers=auth_headers(campus.admin, 'admin'))

    assert len(json.loads(mine.data)['data']) == 1
    assert len(json.loads(everyone.data)['data']) == 2
