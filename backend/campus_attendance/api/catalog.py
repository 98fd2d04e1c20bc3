"""Read-only catalogue listings, served through the optional cache."""
from flask import Blueprint

from campus_attendance.models.academic import Department, Stage
from campus_attendance.utils.cache import get_cache
from campus_attendance.utils.decorators import roles_required
from campus_attendance.utils.helpers import success_response
from campus_attendance.utils.principals import AdminPrincipal, StudentPrincipal, TeacherPrincipal

catalog_bp = Blueprint('catalog', __name__)

authenticated = roles_required(AdminPrincipal, TeacherPrincipal, StudentPrincipal)

@catalog_bp.route('/departments', methods=['GET'])
@authenticated
def list_departments():
    departments = get_cache().get_or_set('departments', lambda: [
        department.to_dict() for department in Department.query.order_by(Department.name).all()
    ])
    return success_response(data=departments)

@catalog_bp.route('/stages', methods=['GET'])
@authenticated
def list_stages():
    stages = get_cache().get_or_set('stages', lambda: [
        stage.to_dict() for stage in Stage.query.order_by(Stage.level).all()
    ])
    return success_response(data=stages)
