"""Promotion decisions and their execution."""
import json

import pytest

from campus_attendance import db
from campus_attendance.models import (
    AcademicStatus, CarriedSubject, Enrollment, Material, PromotionConfig, PromotionDecision,
    PromotionLock, PromotionRecord, RepeatMode, Student
)
from campus_attendance.models.enrollment import ResultStatus
from campus_attendance.services.promotion_service import PromotionPolicy, PromotionService
from campus_attendance.utils.errors import ConflictError, ValidationError
from conftest import enroll, make_admin, make_student

FROM_YEAR, TO_YEAR = '2024-2025', '2025-2026'

@pytest.fixture
def school(campus):
    """Adds a third first-stage material and second-stage materials to the campus."""
    campus.math = Material(name='Math', department_id=campus.cs.id,
                           stage_id=campus.stage1.id).save()
    campus.structures = Material(name='Data Structures', department_id=campus.cs.id,
                                 stage_id=campus.stage2.id, is_core_subject=True).save()
    campus.calculus = Material(name='Calculus', department_id=campus.cs.id,
                               stage_id=campus.stage2.id).save()
    # Same stage, other department: never enrolled by CS students
    Material(name='Design', department_id=campus.se.id, stage_id=campus.stage2.id).save()
    return campus

def results_for(student, mapping):
    """Enroll the student with {material: result} for FROM_YEAR."""
    for material, result in mapping.items():
        enroll(student, material, FROM_YEAR, result)
    return Enrollment.query.filter_by(student_id=student.id, academic_year=FROM_YEAR).all()

def decide(school, enrollments, policy=None, student=None, next_stage='default'):
    student = student or school.student
    return PromotionService.calculate_student_decision(
        student, enrollments, policy or PromotionPolicy(),
        school.stage2 if next_stage == 'default' else next_stage, school.stage1
    )

# =================== DECISIONS ===================

def test_all_passed_is_promoted(school):
    enrollments = results_for(school.student, {
        school.programming: ResultStatus.PASSED, school.english: ResultStatus.PASSED})

    decision = decide(school, enrollments)

    assert decision.decision == PromotionDecision.PROMOTED
    assert decision.next_stage_id == school.stage2.id
    assert decision.failed_count == 0

def test_two_failed_non_core_carry(school):
    enrollments = results_for(school.student, {
        school.english: ResultStatus.FAILED, school.math: ResultStatus.BLOCKED_BY_ABSENCE,
        school.programming: ResultStatus.PASSED})

    decision = decide(school, enrollments)

    assert decision.decision == PromotionDecision.PROMOTED_WITH_CARRY
    assert decision.failed_count == decision.carried_count == 2
    assert {s.id for s in decision.carried_subjects} == {school.english.id, school.math.id}
    assert decision.next_stage_id == school.stage2.id

def test_three_failed_repeat(school):
    enrollments = results_for(school.student, {
        school.english: ResultStatus.FAILED, school.math: ResultStatus.FAILED,
        school.programming: ResultStatus.FAILED})

    decision = decide(school, enrollments)

    assert decision.decision == PromotionDecision.REPEAT_YEAR
    assert decision.failed_count == 3
    assert decision.carried_count == 0
    assert decision.next_stage_id == school.stage1.id

def test_core_subject_blocks_carry(school):
    enrollments = results_for(school.student, {
        school.programming: ResultStatus.FAILED, school.english: ResultStatus.PASSED})

    blocked = decide(school, enrollments, PromotionPolicy(max_carry_subjects=2,
                                                          block_carry_for_core=True))
    allowed = decide(school, enrollments, PromotionPolicy(max_carry_subjects=2))

    assert blocked.decision == PromotionDecision.REPEAT_YEAR
    assert allowed.decision == PromotionDecision.PROMOTED_WITH_CARRY

def test_final_year_carry(school):
    enrollments = results_for(school.student, {school.english: ResultStatus.FAILED})

    disabled = decide(school, enrollments, PromotionPolicy(disable_carry_for_final_year=True),
                      next_stage=None)
    enabled = decide(school, enrollments, PromotionPolicy(), next_stage=None)

    assert disabled.decision == PromotionDecision.REPEAT_YEAR
    assert enabled.decision == PromotionDecision.PROMOTED_WITH_CARRY
    assert enabled.next_stage_id is None

def test_in_progress_is_not_failed(school):
    enrollments = results_for(school.student, {school.english: ResultStatus.IN_PROGRESS})
    assert decide(school, enrollments).decision == PromotionDecision.PROMOTED

def test_decision_is_deterministic(school):
    enrollments = results_for(school.student, {
        school.english: ResultStatus.FAILED, school.programming: ResultStatus.PASSED})

    assert decide(school, enrollments) == decide(school, enrollments)

def test_default_policy_from_config(school):
    assert PromotionService.get_promotion_config(school.cs.id) == PromotionPolicy()

# =================== EXECUTION ===================

def test_execute_selected_promotes(school):
    results_for(school.student, {
        school.programming: ResultStatus.PASSED, school.english: ResultStatus.PASSED})

    results = PromotionService.execute_selected_promotion(
        [school.student.id], FROM_YEAR, TO_YEAR, 'Admin')

    assert results[0]['success'] is True
    assert results[0]['decision'] == 'PROMOTED'
    assert results[0]['student_id'] == str(school.student.id)

    student = db.session.get(Student, school.student.id)
    assert student.stage_id == school.stage2.id
    assert student.academic_status == AcademicStatus.REGULAR
    assert student.academic_year == TO_YEAR

    new = Enrollment.query.filter_by(student_id=student.id, academic_year=TO_YEAR).all()
    assert {e.material_id for e in new} == {school.structures.id, school.calculus.id}
    assert all(e.result_status == ResultStatus.IN_PROGRESS and not e.is_carried for e in new)

    record = PromotionRecord.query.filter_by(student_id=student.id).one()
    assert record.decision == PromotionDecision.PROMOTED
    assert record.stage_from_id == school.stage1.id
    assert record.stage_to_id == school.stage2.id
    assert record.processed_by == 'Admin'

def test_carry_execution(school):
    results_for(school.student, {
        school.english: ResultStatus.FAILED, school.programming: ResultStatus.PASSED})

    PromotionService.execute_selected_promotion([school.student.id], FROM_YEAR, TO_YEAR, 'Admin')

    student = db.session.get(Student, school.student.id)
    assert student.academic_status == AcademicStatus.CARRYING
    assert student.stage_id == school.stage2.id

    carried = CarriedSubject.query.filter_by(student_id=student.id).all()
    assert [c.material_id for c in carried] == [school.english.id]

    new = {e.material_id: e for e in
           Enrollment.query.filter_by(student_id=student.id, academic_year=TO_YEAR)}
    assert set(new) == {school.structures.id, school.calculus.id, school.english.id}
    assert new[school.english.id].is_carried is True
    assert new[school.calculus.id].is_carried is False

    record = PromotionRecord.query.filter_by(student_id=student.id).one()
    assert (record.failed_count, record.carried_count) == (1, 1)

def test_repeat_execution_reenrolls_failed_only(school):
    PromotionService.upsert_promotion_config(school.cs.id, {'max_carry_subjects': 0})
    results_for(school.student, {
        school.english: ResultStatus.FAILED, school.math: ResultStatus.PASSED,
        school.programming: ResultStatus.PASSED})

    PromotionService.execute_selected_promotion([school.student.id], FROM_YEAR, TO_YEAR, 'Admin')

    student = db.session.get(Student, school.student.id)
    assert student.stage_id == school.stage1.id
    assert student.academic_status == AcademicStatus.REPEATING
    new = Enrollment.query.filter_by(student_id=student.id, academic_year=TO_YEAR).all()
    assert [e.material_id for e in new] == [school.english.id]

    record = PromotionRecord.query.filter_by(student_id=student.id).one()
    assert record.decision == PromotionDecision.REPEAT_YEAR
    assert record.stage_from_id == record.stage_to_id == school.stage1.id
    assert record.carried_count == 0

def test_repeat_full_year_mode(school):
    PromotionService.upsert_promotion_config(school.cs.id, {
        'max_carry_subjects': 0, 'repeat_mode': RepeatMode.FULL_YEAR})
    results_for(school.student, {
        school.english: ResultStatus.FAILED, school.programming: ResultStatus.PASSED})

    results = PromotionService.execute_selected_promotion(
        [school.student.id], FROM_YEAR, TO_YEAR, 'Admin')

    assert results[0]['decision'] == 'REPEAT_YEAR'
    new = Enrollment.query.filter_by(student_id=school.student.id, academic_year=TO_YEAR).all()
    assert {e.material_id for e in new} == {school.programming.id, school.english.id, school.math.id}

def test_existing_enrollment_is_skipped(school):
    results_for(school.student, {school.programming: ResultStatus.PASSED})
    enroll(school.student, school.calculus, TO_YEAR, ResultStatus.IN_PROGRESS)

    results = PromotionService.execute_selected_promotion(
        [school.student.id], FROM_YEAR, TO_YEAR, 'Admin')

    assert results[0]['success'] is True
    assert Enrollment.query.filter_by(student_id=school.student.id,
                                      academic_year=TO_YEAR).count() == 2

def test_unknown_student_in_selection(school):
    results = PromotionService.execute_selected_promotion([4242], FROM_YEAR, TO_YEAR, 'Admin')
    assert results == [{'success': False, 'student_id': '4242', 'error': 'Student not found'}]

def test_unplaced_student_in_selection(school):
    unplaced = make_student('No Stage', 'nostage@university.edu', 'CS08888', school.cs, None)

    results = PromotionService.execute_selected_promotion([unplaced.id], FROM_YEAR, TO_YEAR, 'Admin')

    assert results[0]['success'] is False
    assert results[0]['error'] == 'Student has no department or stage'

def test_student_is_promoted_once_per_year(school):
    results_for(school.student, {school.programming: ResultStatus.PASSED})

    first = PromotionService.execute_selected_promotion([school.student.id], FROM_YEAR, TO_YEAR, 'Admin')
    second = PromotionService.execute_selected_promotion([school.student.id], FROM_YEAR, TO_YEAR, 'Admin')

    assert first[0]['success'] is True
    assert second[0] == {'success': False, 'student_id': str(school.student.id),
                         'error': f'Already promoted for {FROM_YEAR}'}
    assert db.session.get(Student, school.student.id).stage_id == school.stage2.id
    assert PromotionRecord.query.filter_by(student_id=school.student.id).count() == 1
    assert Enrollment.query.filter_by(student_id=school.student.id, academic_year=TO_YEAR).count() == 2

def test_repeating_student_is_not_reprocessed_by_cohort_run(school):
    PromotionService.upsert_promotion_config(school.cs.id, {'max_carry_subjects': 0})
    results_for(school.student, {school.english: ResultStatus.FAILED})

    PromotionService.process_promotion(school.cs.id, school.stage1.id, FROM_YEAR, TO_YEAR, 'Admin')
    rerun = PromotionService.process_promotion(
        school.cs.id, school.stage1.id, FROM_YEAR, TO_YEAR, 'Admin')

    assert rerun == [{'success': False, 'student_id': str(school.student.id),
                      'error': f'Already promoted for {FROM_YEAR}'}]
    assert PromotionRecord.query.filter_by(student_id=school.student.id).count() == 1

def test_cohort_batch_survives_one_failure(school, monkeypatch):
    results_for(school.student, {school.programming: ResultStatus.PASSED})
    results_for(school.classmate, {school.programming: ResultStatus.PASSED})

    original = PromotionService.promote_student

    def flaky(decision, from_year, to_year, processed_by):
        if decision.student_id == school.student.id:
            raise RuntimeError('corrupt record')
        return original(decision, from_year, to_year, processed_by)
    monkeypatch.setattr(PromotionService, 'promote_student', staticmethod(flaky))

    results = PromotionService.process_promotion(
        school.cs.id, school.stage1.id, FROM_YEAR, TO_YEAR, 'Admin')

    by_student = {r['student_id']: r for r in results}
    assert by_student[str(school.student.id)] == {
        'success': False, 'student_id': str(school.student.id), 'error': 'corrupt record'}
    assert by_student[str(school.classmate.id)]['success'] is True
    assert db.session.get(Student, school.student.id).stage_id == school.stage1.id
    assert db.session.get(Student, school.classmate.id).stage_id == school.stage2.id
    assert PromotionLock.query.count() == 0

def test_cohort_batch_excludes_other_departments(school):
    results = PromotionService.process_promotion(
        school.cs.id, school.stage1.id, FROM_YEAR, TO_YEAR, 'Admin')
    assert {r['student_id'] for r in results} == {str(school.student.id), str(school.classmate.id)}

def test_lock_blocks_concurrent_batch(school):
    PromotionLock(name='promotion', held_by='Other Admin').save()

    with pytest.raises(ConflictError):
        PromotionService.execute_selected_promotion([school.student.id], FROM_YEAR, TO_YEAR, 'Admin')

    assert PromotionRecord.query.count() == 0

@pytest.mark.parametrize('from_year,to_year', [
    ('2024-2025', '2024-2025'),
    ('2024', '2025-2026'),
    ('2024-2026', '2026-2027'),
])
def test_year_validation(school, from_year, to_year):
    with pytest.raises(ValidationError):
        PromotionService.execute_selected_promotion([school.student.id], from_year, to_year, 'Admin')

# =================== LISTINGS & CONFIG ===================

def test_preview_writes_nothing(school):
    results_for(school.student, {school.english: ResultStatus.FAILED})

    preview = PromotionService.get_promotion_preview(school.cs.id, school.stage1.id, FROM_YEAR)

    assert {d.student_id for d in preview} == {school.student.id, school.classmate.id}
    assert PromotionRecord.query.count() == 0
    assert db.session.get(Student, school.student.id).stage_id == school.stage1.id

def test_eligible_skips_students_without_placement(school):
    unplaced = make_student('No Stage', 'nostage@university.edu', 'CS08888', school.cs, None)
    results_for(unplaced, {school.english: ResultStatus.PASSED})
    results_for(school.student, {school.english: ResultStatus.PASSED})

    eligible = PromotionService.get_all_eligible_students(FROM_YEAR)

    assert [e['student_id'] for e in eligible] == [str(school.student.id)]
    assert eligible[0]['department_name'] == 'Computer Science'

def test_upsert_config(school):
    policy = PromotionService.upsert_promotion_config(school.cs.id, {
        'max_carry_subjects': 1, 'block_carry_for_core': True})

    assert policy.max_carry_subjects == 1
    assert policy.block_carry_for_core is True
    assert policy.repeat_mode == RepeatMode.FAILED_ONLY
    assert PromotionConfig.query.filter_by(department_id=school.cs.id).count() == 1

    PromotionService.upsert_promotion_config(school.cs.id, {'max_carry_subjects': 3})
    assert PromotionService.get_promotion_config(school.cs.id).max_carry_subjects == 3
    assert PromotionConfig.query.count() == 1

@pytest.mark.parametrize('data', [
    {'max_carry_subjects': -1},
    {'max_carry_subjects': 'two'},
    {'block_carry_for_core': 'yes'},
    {'repeat_mode': 'repeat_everything'},
])
def test_upsert_config_validation(school, data):
    with pytest.raises(ValidationError):
        PromotionService.upsert_promotion_config(school.cs.id, data)

# =================== API ===================

def test_preview_endpoint(client, school, auth_headers):
    results_for(school.student, {school.english: ResultStatus.FAILED})

    response = client.get('/api/promotion/preview', query_string={
        'department_id': str(school.cs.id), 'stage_id': str(school.stage1.id),
        'academic_year': FROM_YEAR}, headers=auth_headers(school.admin, 'admin'))

    assert response.status_code == 200
    data = {d['student_id']: d for d in json.loads(response.data)['data']}
    assert data[str(school.student.id)]['decision'] == 'PROMOTED_WITH_CARRY'
    assert data[str(school.student.id)]['carried_subjects'] == [
        {'id': str(school.english.id), 'name': 'English'}]

def test_preview_endpoint_missing_params(client, school, auth_headers):
    response = client.get('/api/promotion/preview', query_string={'department_id': '1'},
                          headers=auth_headers(school.admin, 'admin'))
    assert response.status_code == 400

def test_promotion_is_admin_only(client, school, auth_headers):
    response = client.get('/api/promotion/eligible', query_string={'academic_year': FROM_YEAR},
                          headers=auth_headers(school.teacher, 'teacher'))
    assert response.status_code == 403

def test_execute_selected_endpoint(client, school, auth_headers):
    results_for(school.student, {school.programming: ResultStatus.PASSED})

    response = client.post('/api/promotion/execute-selected', json={
        'student_ids': [str(school.student.id)], 'from_year': FROM_YEAR, 'to_year': TO_YEAR,
    }, headers=auth_headers(school.admin, 'admin'))

    assert response.status_code == 200
    result = json.loads(response.data)['data'][0]
    assert result['success'] is True
    assert result['decision'] == 'PROMOTED'
    assert result['result']['processed_by'] == 'Registrar'
    assert result['result']['stage_to'] == 'Second Stage'

def test_execute_endpoint_conflict(client, school, auth_headers):
    PromotionLock(name='promotion', held_by='Other Admin').save()

    response = client.post('/api/promotion/execute', json={
        'department_id': str(school.cs.id), 'stage_id': str(school.stage1.id),
        'from_year': FROM_YEAR, 'to_year': TO_YEAR,
    }, headers=auth_headers(school.admin, 'admin'))

    assert response.status_code == 409
    assert json.loads(response.data)['message'] == 'A promotion is already in progress'

def test_department_admin_scope(client, school, auth_headers):
    se_admin = make_admin('SE Head', 'se.head@university.edu', school.se)

    response = client.get(f'/api/promotion/config/{school.cs.id}',
                          headers=auth_headers(se_admin, 'admin'))
    assert response.status_code == 403

def test_department_admin_cannot_promote_other_departments(client, school, auth_headers):
    results_for(school.student, {school.programming: ResultStatus.PASSED})
    se_admin = make_admin('SE Head', 'se.head@university.edu', school.se)
    headers = auth_headers(se_admin, 'admin')

    response = client.post('/api/promotion/execute-selected', json={
        'student_ids': [str(school.outsider.id), str(school.student.id)],
        'from_year': FROM_YEAR, 'to_year': TO_YEAR,
    }, headers=headers)
    history = client.get(f'/api/promotion/history/{school.student.id}', headers=headers)

    assert response.status_code == 403
    assert history.status_code == 403
    assert db.session.get(Student, school.student.id).stage_id == school.stage1.id
    assert db.session.get(Student, school.outsider.id).stage_id == school.stage1.id
    assert PromotionRecord.query.count() == 0

def test_department_admin_promotes_own_department(client, school, auth_headers):
    cs_admin = make_admin('CS Head', 'cs.head@university.edu', school.cs)

    response = client.post('/api/promotion/execute-selected', json={
        'student_ids': [str(school.student.id)], 'from_year': FROM_YEAR, 'to_year': TO_YEAR,
    }, headers=auth_headers(cs_admin, 'admin'))

    assert response.status_code == 200
    assert json.loads(response.data)['data'][0]['success'] is True

def test_config_endpoints(client, school, auth_headers):
    headers = auth_headers(school.admin, 'admin')

    put = client.put(f'/api/promotion/config/{school.cs.id}',
                     json={'max_carry_subjects': 1}, headers=headers)
    get = client.get(f'/api/promotion/config/{school.cs.id}', headers=headers)

    assert put.status_code == 200
    assert json.loads(get.data)['data']['max_carry_subjects'] == 1

def test_history_endpoint(client, school, auth_headers):
    results_for(school.student, {school.programming: ResultStatus.PASSED})
    PromotionService.execute_selected_promotion([school.student.id], FROM_YEAR, TO_YEAR, 'Admin')

    response = client.get(f'/api/promotion/history/{school.student.id}',
                          headers=auth_headers(school.admin, 'admin'))

    history = json.loads(response.data)['data']
    assert len(history) == 1
    assert history[0]['decision'] == 'PROMOTED'
    assert history[0]['stage_from'] == 'First Stage'
