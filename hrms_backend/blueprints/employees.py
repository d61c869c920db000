# hrms_backend/blueprints/employees.py
from flask import Blueprint, request

from hrms_backend.common.auth import (
    requires_caps, current_principal,
    CAP_EMPLOYEES_MANAGE, CAP_EMPLOYEES_VIEW, CAP_EMPLOYEES_UPDATE,
)
from hrms_backend.common.http import ok
from hrms_backend.common.paging import paginate
from hrms_backend.services import employee_service as svc

bp = Blueprint("employees", __name__, url_prefix="/api/v1/employees")


@bp.post("")
@requires_caps(CAP_EMPLOYEES_MANAGE)
def create_employee():
    d = request.get_json(silent=True) or {}
    emp = svc.create_employee(d, creator_id=current_principal().employee_id)
    return ok(emp.to_dict(), status=201)


@bp.get("")
@requires_caps(CAP_EMPLOYEES_VIEW)
def list_employees():
    rows = svc.list_employees(current_principal())
    page_rows, meta = paginate(rows)
    return ok([e.to_dict() for e in page_rows], **meta)


@bp.get("/managers/<int:department_id>")
@requires_caps(CAP_EMPLOYEES_MANAGE)
def managers(department_id: int):
    return ok(svc.managers_by_department(department_id))


@bp.get("/<int:employee_id>")
@requires_caps()
def get_employee(employee_id: int):
    return ok(svc.get_employee(employee_id, current_principal()))


@bp.patch("/<int:employee_id>")
@requires_caps(CAP_EMPLOYEES_UPDATE)
def update_employee(employee_id: int):
    d = request.get_json(silent=True) or {}
    emp = svc.update_employee(employee_id, d, current_principal())
    return ok(emp.to_dict())


@bp.delete("/<int:employee_id>")
@requires_caps(CAP_EMPLOYEES_MANAGE)
def delete_employee(employee_id: int):
    emp = svc.deactivate_employee(employee_id, current_principal().employee_id)
    return ok({**emp.brief(), "is_active": emp.is_active})
