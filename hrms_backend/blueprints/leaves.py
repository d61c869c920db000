# hrms_backend/blueprints/leaves.py
from flask import Blueprint, request

from hrms_backend.common.auth import (
    requires_caps, current_principal, ensure_can_view, CAP_LEAVE_APPROVE, CAP_LEAVE_BALANCES,
)
from hrms_backend.common.errors import NotFound
from hrms_backend.common.http import ok, fail
from hrms_backend.common.paging import paginate, query_filters
from hrms_backend.extensions import db
from hrms_backend.models.employee import Employee
from hrms_backend.services import leave_service as svc

bp = Blueprint("leaves", __name__, url_prefix="/api/v1/leaves")


@bp.post("")
@requires_caps()
def apply_leave():
    d = request.get_json(silent=True) or {}
    missing = [k for k in ("leave_type", "start_date", "end_date", "reason") if not d.get(k)]
    if missing:
        return fail(f"Missing required fields: {', '.join(missing)}", status=422)
    req = svc.apply_for_leave(
        current_principal().employee_id,
        d["leave_type"],
        d["start_date"],
        d["end_date"],
        d["reason"],
    )
    return ok(req.to_dict(), status=201)


@bp.get("")
@requires_caps()
def list_leaves():
    filters = query_filters("status", "leave_type", "start_date", "end_date", "employee_id", "department_id")
    rows = svc.list_leaves(current_principal(), filters)
    page_rows, meta = paginate(rows)
    return ok([r.to_dict() for r in page_rows], **meta)


@bp.get("/balance")
@requires_caps()
def my_balance():
    year = request.args.get("year", type=int)
    return ok(svc.get_leave_balance(current_principal().employee_id, year))


@bp.get("/balance/<int:employee_id>")
@requires_caps(CAP_LEAVE_BALANCES)
def employee_balance(employee_id: int):
    emp = db.session.get(Employee, employee_id)
    if not emp:
        raise NotFound("Employee not found")
    ensure_can_view(current_principal(), emp)
    year = request.args.get("year", type=int)
    return ok(svc.get_leave_balance(employee_id, year))


@bp.get("/<int:request_id>")
@requires_caps()
def get_leave(request_id: int):
    return ok(svc.get_leave(request_id, current_principal()).to_dict())


@bp.patch("/<int:request_id>/approve")
@requires_caps(CAP_LEAVE_APPROVE)
def approve(request_id: int):
    d = request.get_json(silent=True) or {}
    req = svc.approve_leave(request_id, d.get("status"), current_principal(), d.get("approval_notes"))
    return ok(req.to_dict())


@bp.patch("/<int:request_id>")
@requires_caps()
def update_leave(request_id: int):
    d = request.get_json(silent=True) or {}
    req = svc.update_leave(request_id, d, current_principal().employee_id)
    return ok(req.to_dict())


@bp.delete("/<int:request_id>")
@requires_caps()
def delete_leave(request_id: int):
    svc.delete_leave(request_id, current_principal().employee_id)
    return ok({"deleted": request_id})
