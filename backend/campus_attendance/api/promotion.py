# File: backend/campus_attendance/api/promotion.py
"""Promotion (end of year) API. Admin only."""
from flask import Blueprint, g, request

from campus_attendance import db
from campus_attendance.models.accounts import Student
from campus_attendance.services.promotion_service import PromotionService
from campus_attendance.utils.decorators import admin_required
from campus_attendance.utils.errors import ForbiddenError, ValidationError
from campus_attendance.utils.helpers import success_response
from campus_attendance.utils.validators import Validator

promotion_bp = Blueprint('promotion', __name__)

def _check_department(department_id: int) -> None:
    """Department-scoped admins only act on their own department."""
    if g.principal.department_id and g.principal.department_id != department_id:
        raise ForbiddenError("Access denied to this department")

def _check_students(student_ids) -> None:
    """Every listed student that exists must belong to the admin's department."""
    if not g.principal.department_id:
        return
    for student_id in student_ids:
        student = db.session.get(Student, student_id)
        if student is not None:
            _check_department(student.department_id)

@promotion_bp.route('/preview', methods=['GET'])
@admin_required
def preview():
    """Decisions for a cohort without executing them."""
    Validator.require_fields(request.args, ['department_id', 'stage_id', 'academic_year'])
    department_id = Validator.parse_id(request.args['department_id'], 'department_id')
    stage_id = Validator.parse_id(request.args['stage_id'], 'stage_id')
    _check_department(department_id)

    decisions = PromotionService.get_promotion_preview(
        department_id, stage_id, request.args['academic_year']
    )
    return success_response(data=[decision.to_dict() for decision in decisions])

@promotion_bp.route('/eligible', methods=['GET'])
@admin_required
def eligible():
    """Decisions for every student enrolled in the academic year."""
    Validator.require_fields(request.args, ['academic_year'])
    students = PromotionService.get_all_eligible_students(request.args['academic_year'])
    if g.principal.department_id:
        students = [s for s in students if s['department_id'] == str(g.principal.department_id)]
    return success_response(data=students)

@promotion_bp.route('/execute', methods=['POST'])
@admin_required
def execute():
    """Promote a department and stage cohort."""
    data = request.get_json(silent=True) or {}
    Validator.require_fields(data, ['department_id', 'stage_id', 'from_year', 'to_year'])
    department_id = Validator.parse_id(data['department_id'], 'department_id')
    stage_id = Validator.parse_id(data['stage_id'], 'stage_id')
    _check_department(department_id)

    results = PromotionService.process_promotion(
        department_id, stage_id, data['from_year'], data['to_year'], g.principal.name
    )
    return success_response(data=results, message="Promotion processed")

@promotion_bp.route('/execute-selected', methods=['POST'])
@admin_required
def execute_selected():
    """Promote the listed students."""
    data = request.get_json(silent=True) or {}
    Validator.require_fields(data, ['from_year', 'to_year'])
    student_ids = data.get('student_ids')
    if not isinstance(student_ids, list) or not student_ids:
        raise ValidationError("student_ids must be a non-empty list")

    ids = [Validator.parse_id(student_id, 'student_id') for student_id in student_ids]
    _check_students(ids)
    results = PromotionService.execute_selected_promotion(
        ids, data['from_year'], data['to_year'], g.principal.name
    )
    return success_response(data=results, message="Promotion processed")

@promotion_bp.route('/history/<student_id>', methods=['GET'])
@admin_required
def history(student_id):
    student_id = Validator.parse_id(student_id, 'student_id')
    _check_students([student_id])
    return success_response(data=PromotionService.get_student_promotion_history(student_id))

@promotion_bp.route('/config/<department_id>', methods=['GET'])
@admin_required
def get_config(department_id):
    department_id = Validator.parse_id(department_id, 'department_id')
    _check_department(department_id)
    return success_response(data=PromotionService.get_promotion_config(department_id).to_dict())

@promotion_bp.route('/config/<department_id>', methods=['PUT'])
@admin_required
def put_config(department_id):
    department_id = Validator.parse_id(department_id, 'department_id')
    _check_department(department_id)
    data = request.get_json(silent=True) or {}
    policy = PromotionService.upsert_promotion_config(department_id, data)
    return success_response(data=policy.to_dict(), message="Promotion config saved")
