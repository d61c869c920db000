# hrms_backend/blueprints/attendance.py
from flask import Blueprint, request

from hrms_backend.common.auth import (
    requires_caps, current_principal, CAP_ATTENDANCE_REPORT, CAP_ATTENDANCE_MANAGE,
)
from hrms_backend.common.http import ok
from hrms_backend.common.paging import paginate, query_filters
from hrms_backend.services import attendance_engine as engine

bp = Blueprint("attendance", __name__, url_prefix="/api/v1/attendance")


def _notes():
    d = request.get_json(silent=True) or {}
    notes = d.get("notes")
    return notes.strip() if isinstance(notes, str) and notes.strip() else None


# ---------- self service ----------

@bp.post("/check-in")
@requires_caps()
def check_in():
    rec = engine.check_in(current_principal().employee_id, notes=_notes())
    return ok(rec.to_dict(), status=201)


@bp.post("/check-out")
@requires_caps()
def check_out():
    rec = engine.check_out(current_principal().employee_id, notes=_notes())
    return ok(rec.to_dict())


@bp.get("/today")
@requires_caps()
def today():
    return ok(engine.get_today(current_principal().employee_id))


@bp.get("/records")
@requires_caps()
def records():
    filters = query_filters("start_date", "end_date", "employee_id", "department_id")
    rows = engine.list_records(current_principal(), filters)
    page_rows, meta = paginate(rows)
    return ok([r.to_dict() for r in page_rows], **meta)


@bp.get("/report/<int:month>/<int:year>")
@requires_caps(CAP_ATTENDANCE_REPORT)
def monthly_report(month: int, year: int):
    return ok(engine.get_monthly_report(month, year, current_principal()))


# ---------- manual maintenance ----------

@bp.post("")
@requires_caps(CAP_ATTENDANCE_MANAGE)
def create_record():
    rec = engine.create_record(request.get_json(silent=True) or {})
    return ok(rec.to_dict(), status=201)


@bp.get("")
@requires_caps(CAP_ATTENDANCE_MANAGE)
def list_all():
    rows = engine.list_records(current_principal(), query_filters("start_date", "end_date", "employee_id", "department_id"))
    page_rows, meta = paginate(rows)
    return ok([r.to_dict() for r in page_rows], **meta)


@bp.get("/<int:record_id>")
@requires_caps(CAP_ATTENDANCE_REPORT)
def get_record(record_id: int):
    return ok(engine.get_record(record_id, current_principal()).to_dict())


@bp.patch("/<int:record_id>")
@requires_caps(CAP_ATTENDANCE_MANAGE)
def update_record(record_id: int):
    rec = engine.update_record(record_id, request.get_json(silent=True) or {})
    return ok(rec.to_dict())


@bp.delete("/<int:record_id>")
@requires_caps(CAP_ATTENDANCE_MANAGE)
def delete_record(record_id: int):
    engine.delete_record(record_id)
    return ok({"deleted": record_id})
