# hrms_backend/blueprints/payroll.py
from flask import Blueprint, request

from hrms_backend.common.auth import (
    requires_caps, current_principal,
    CAP_PAYROLL_MANAGE, CAP_PAYROLL_REPORTS, CAP_SALARY_VIEW, CAP_VIEW_ALL,
)
from hrms_backend.common.http import ok, fail, html, xlsx
from hrms_backend.common.paging import paginate, query_filters
from hrms_backend.services import payroll_service as svc
from hrms_backend.services.payslip_service import PayslipService

bp = Blueprint("payroll", __name__, url_prefix="/api/v1/payroll")
payslips = PayslipService()


def _report_department():
    """Department filter for reports; callers without org-wide view are pinned to their own."""
    p = current_principal()
    if p.can(CAP_VIEW_ALL):
        return request.args.get("department_id", type=int)
    return p.department_id


# ---------- batch ----------

@bp.post("/generate")
@requires_caps(CAP_PAYROLL_MANAGE)
def generate():
    d = request.get_json(silent=True) or {}
    if not d.get("month"):
        return fail("month is required", status=422)
    ids = d.get("employee_ids")
    if ids is not None and not isinstance(ids, list):
        return fail("employee_ids must be a list", status=422)
    result = svc.generate_payroll_for_month(
        d["month"],
        employee_ids=ids,
        department_id=d.get("department_id"),
        generated_by=current_principal().employee_id,
    )
    result["records"] = [r.to_dict() for r in result["records"]]
    return ok(result, status=201)


@bp.post("/bulk-action")
@requires_caps(CAP_PAYROLL_MANAGE)
def bulk_action():
    d = request.get_json(silent=True) or {}
    return ok(svc.bulk_action(d.get("payroll_ids"), d.get("action")))


# ---------- reports ----------

@bp.get("/summary/<month>")
@requires_caps(CAP_PAYROLL_REPORTS)
def summary(month):
    return ok(svc.payroll_summary(month, _report_department()))


@bp.get("/stats/<year>")
@requires_caps(CAP_PAYROLL_REPORTS)
def stats(year):
    return ok(svc.monthly_payroll_stats(year, _report_department()))


@bp.get("/analytics/<year>")
@requires_caps(CAP_PAYROLL_REPORTS)
def analytics(year):
    return ok(svc.payroll_analytics(year, _report_department()))


@bp.get("/validate/<month>")
@requires_caps(CAP_PAYROLL_REPORTS)
def validate(month):
    return ok(svc.validate_payroll_data(month, _report_department()))


@bp.get("/export/<month>")
@requires_caps(CAP_PAYROLL_REPORTS)
def export_register(month):
    data = svc.export_payroll_register(month, _report_department())
    return xlsx(data, f"payroll_register_{month}.xlsx")


@bp.get("/salary-details")
@requires_caps(CAP_SALARY_VIEW)
def salary_details():
    return ok([s.to_dict() for s in svc.list_salary_details()])


@bp.get("/history/<int:employee_id>")
@requires_caps()
def history(employee_id: int):
    return ok(svc.employee_payroll_history(employee_id, current_principal()))


# ---------- records ----------

@bp.get("")
@requires_caps()
def list_payroll():
    filters = query_filters("month", "year", "employee_id", "department_id", "status")
    rows = svc.list_payroll(current_principal(), filters)
    page_rows, meta = paginate(rows)
    return ok([r.to_dict() for r in page_rows], **meta)


@bp.post("")
@requires_caps(CAP_PAYROLL_MANAGE)
def create_payroll():
    rec = svc.create_payroll(request.get_json(silent=True) or {})
    return ok(rec.to_dict(), status=201)


@bp.get("/<int:payroll_id>")
@requires_caps()
def get_payroll(payroll_id: int):
    return ok(svc.get_payroll(payroll_id, current_principal()).to_dict())


@bp.get("/<int:payroll_id>/payslip")
@requires_caps()
def payslip(payroll_id: int):
    out = payslips.get_payslip(payroll_id, current_principal())
    if request.args.get("format") == "html":
        return html(out["payslip_html"])
    return ok(out)


@bp.patch("/<int:payroll_id>")
@requires_caps(CAP_PAYROLL_MANAGE)
def update_payroll(payroll_id: int):
    rec = svc.update_payroll(payroll_id, request.get_json(silent=True) or {})
    return ok(rec.to_dict())


@bp.patch("/<int:payroll_id>/send")
@requires_caps(CAP_PAYROLL_MANAGE)
def send(payroll_id: int):
    return ok(svc.mark_as_sent(payroll_id).to_dict())


@bp.post("/<int:payroll_id>/regenerate")
@requires_caps(CAP_PAYROLL_MANAGE)
def regenerate(payroll_id: int):
    rec = svc.regenerate_payroll(payroll_id, generated_by=current_principal().employee_id)
    return ok(rec.to_dict())


@bp.delete("/<int:payroll_id>")
@requires_caps(CAP_PAYROLL_MANAGE)
def delete_payroll(payroll_id: int):
    svc.delete_payroll(payroll_id)
    return ok({"deleted": payroll_id})
