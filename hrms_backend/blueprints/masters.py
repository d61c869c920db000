# hrms_backend/blueprints/masters.py
from datetime import datetime

from flask import Blueprint, request
from sqlalchemy.exc import IntegrityError

from hrms_backend.common.auth import (
    requires_caps, CAP_MASTERS_VIEW, CAP_MASTERS_MANAGE, CAP_EMPLOYEES_MANAGE,
)
from hrms_backend.common.http import ok, fail
from hrms_backend.extensions import db
from hrms_backend.models.master import AttendanceSettings, Department, Role

bp = Blueprint("masters", __name__, url_prefix="/api/v1")


def _parse_time(s):
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(s, fmt).time()
        except (TypeError, ValueError):
            pass
    return None


@bp.get("/departments")
@requires_caps(CAP_MASTERS_VIEW)
def list_departments():
    q = Department.query
    if request.args.get("active") in ("1", "true", "yes"):
        q = q.filter(Department.is_active.is_(True))
    rows = q.order_by(Department.name.asc()).all()
    return ok([{
        "id": d.id,
        "name": d.name,
        "description": d.description,
        "is_active": d.is_active,
        "attendance_settings": d.attendance_settings.to_dict() if d.attendance_settings else None,
    } for d in rows])


@bp.get("/roles")
@requires_caps(CAP_EMPLOYEES_MANAGE)
def list_roles():
    rows = Role.query.order_by(Role.level.asc()).all()
    return ok([{"id": r.id, "name": r.name, "level": r.level, "description": r.description} for r in rows])


@bp.get("/departments/<int:dept_id>/attendance-settings")
@requires_caps(CAP_MASTERS_VIEW)
def get_attendance_settings(dept_id: int):
    dept = db.session.get(Department, dept_id)
    if not dept:
        return fail("Department not found", status=404)
    s = dept.attendance_settings
    return ok(s.to_dict() if s else None)


@bp.put("/departments/<int:dept_id>/attendance-settings")
@requires_caps(CAP_MASTERS_MANAGE)
def put_attendance_settings(dept_id: int):
    """Create or replace the single settings row for a department."""
    dept = db.session.get(Department, dept_id)
    if not dept:
        return fail("Department not found", status=404)

    d = request.get_json(silent=True) or {}
    cin = _parse_time(d.get("check_in_time"))
    cout = _parse_time(d.get("check_out_time"))
    if not cin or not cout:
        return fail("check_in_time and check_out_time must be HH:MM", status=422)
    try:
        grace = int(d.get("grace_period_mins", 15))
        std = float(d.get("standard_work_hours", 8))
    except (TypeError, ValueError):
        return fail("grace_period_mins and standard_work_hours must be numeric", status=422)
    if grace < 0 or std <= 0:
        return fail("grace_period_mins must be >= 0 and standard_work_hours > 0", status=422)

    s = dept.attendance_settings
    created = s is None
    if created:
        s = AttendanceSettings(department_id=dept.id)
        db.session.add(s)
    s.check_in_time, s.check_out_time = cin, cout
    s.grace_period_mins, s.standard_work_hours = grace, std
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return fail("Attendance settings already exist for this department", status=409, code="CONFLICT")
    return ok(s.to_dict(), status=201 if created else 200)
