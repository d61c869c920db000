# hrms_backend/services/payroll_service.py
from __future__ import annotations

import logging
import re
from datetime import datetime
from io import BytesIO
from typing import Optional, List, Dict, Any, Iterable

from openpyxl import Workbook
from sqlalchemy.exc import IntegrityError

from hrms_backend.common.auth import Principal, apply_employee_scope, ensure_can_view, CAP_VIEW_ALL
from hrms_backend.common.errors import Conflict, NotFound, ValidationFailed
from hrms_backend.extensions import db
from hrms_backend.models.employee import Employee
from hrms_backend.models.payroll import PayrollRecord, PayrollStatus, SalaryDetail
from hrms_backend.services.attendance_engine import MonthlyTotals, monthly_attendance

log = logging.getLogger(__name__)

MONTH_RE = re.compile(r"^\d{4}-\d{2}$")

# ---- salary rules ----
HRA_RATE = 0.30
PF_RATE = 0.12
DEFAULT_FUEL = 3000.0
DEFAULT_PT = 200.0
WORKING_DAYS = 22
INCENTIVE_TIERS = ((95.0, 10000.0), (90.0, 5000.0))  # (min attendance %, amount)


def _num(v) -> float:
    return float(v) if v is not None else 0.0


# ---------- calculator (pure) ----------

def calculate_payroll(salary: SalaryDetail, totals: MonthlyTotals) -> Dict[str, Any]:
    """
    Line items for one employee-month.

    A stored component of 0 counts as "not set" and falls back to the
    default rule, same as a missing one.
    """
    basic = _num(salary.basic_salary)
    hra = _num(salary.hra) or basic * HRA_RATE
    fuel = _num(salary.fuel_allowance) or DEFAULT_FUEL

    pct = (totals.present_days / totals.total_days * 100) if totals.total_days else 0.0
    incentive = 0.0
    for threshold, amount in INCENTIVE_TIERS:
        if pct >= threshold:
            incentive = amount
            break

    pf = _num(salary.pf_deduction) or basic * PF_RATE
    pt = _num(salary.pt_deduction) or DEFAULT_PT

    per_day = basic / WORKING_DAYS
    absence = totals.absent_days * per_day

    total_earnings = basic + hra + fuel + incentive
    total_deductions = pf + pt + absence

    return {
        "basic_salary": basic,
        "hra": hra,
        "fuel_allowance": fuel,
        "performance_incentive": incentive,
        "other_earnings": 0.0,
        "pf_deduction": pf,
        "pt_deduction": pt,
        "other_deductions": absence,
        "total_earnings": total_earnings,
        "total_deductions": total_deductions,
        "net_pay": max(0.0, total_earnings - total_deductions),
        "total_days": totals.total_days,
        "days_present": totals.present_days,
        "arrear_days": 0,
        "lwp_days": totals.absent_days,
    }


# ---------- salary lookups ----------

def salary_for_month(employee_id: int, month: str) -> Optional[SalaryDetail]:
    """Effective-dated detail covering the first day of `month`."""
    first = datetime.strptime(f"{month}-01", "%Y-%m-%d").date()
    return (
        SalaryDetail.query
        .filter(SalaryDetail.employee_id == employee_id)
        .filter(SalaryDetail.effective_from <= first)
        .filter(db.or_(SalaryDetail.effective_to.is_(None), SalaryDetail.effective_to >= first))
        .order_by(SalaryDetail.effective_from.desc())
        .first()
    )


def current_salary(employee_id: int) -> Optional[SalaryDetail]:
    return (
        SalaryDetail.query
        .filter(SalaryDetail.employee_id == employee_id, SalaryDetail.effective_to.is_(None))
        .order_by(SalaryDetail.created_at.desc(), SalaryDetail.id.desc())
        .first()
    )


def list_salary_details() -> List[SalaryDetail]:
    return SalaryDetail.query.order_by(SalaryDetail.effective_from.desc()).all()


# ---------- generation ----------

def _validate_month(month: str) -> str:
    if not month or not MONTH_RE.match(str(month)):
        raise ValidationFailed("Month must be in format YYYY-MM")
    m = int(month[5:7])
    if not 1 <= m <= 12:
        raise ValidationFailed("Month must be in format YYYY-MM")
    return month


def _apply(rec: PayrollRecord, data: Dict[str, Any]):
    for k, v in data.items():
        setattr(rec, k, round(v, 2) if isinstance(v, float) else v)


def generate_payroll_for_month(
    month: str,
    employee_ids: Optional[Iterable[int]] = None,
    department_id: Optional[int] = None,
    generated_by: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Create GENERATED payroll records for every active employee matching the
    filters. Refuses the whole batch if any matching record already exists;
    otherwise per-employee problems are collected and the batch continues.
    """
    _validate_month(month)
    ids = [int(i) for i in employee_ids] if employee_ids else None

    exists_q = PayrollRecord.query.join(Employee, PayrollRecord.employee_id == Employee.id).filter(
        PayrollRecord.month == month
    )
    if ids:
        exists_q = exists_q.filter(PayrollRecord.employee_id.in_(ids))
    if department_id:
        exists_q = exists_q.filter(Employee.department_id == department_id)
    if exists_q.first():
        raise Conflict(f"Payroll already exists for month {month}", code="PAYROLL_EXISTS")

    emp_q = Employee.query.filter(Employee.is_active.is_(True))
    if ids:
        emp_q = emp_q.filter(Employee.id.in_(ids))
    if department_id:
        emp_q = emp_q.filter(Employee.department_id == department_id)
    employees = emp_q.order_by(Employee.id).all()

    records: List[PayrollRecord] = []
    errors: List[str] = []
    now = datetime.utcnow()

    for emp in employees:
        salary = salary_for_month(emp.id, month)
        if not salary:
            errors.append(f"No salary details found for employee {emp.code}")
            log.warning("payroll %s: no salary detail for %s", month, emp.code)
            continue

        try:
            data = calculate_payroll(salary, monthly_attendance(emp.id, month))
            rec = PayrollRecord(
                employee_id=emp.id,
                month=month,
                status=PayrollStatus.GENERATED,
                generated_by=generated_by,
                generated_at=now,
            )
            _apply(rec, data)
            with db.session.begin_nested():
                db.session.add(rec)
            records.append(rec)
        except IntegrityError:
            errors.append(f"Error generating payroll for {emp.code}: payroll already exists for {month}")
            log.warning("payroll %s: duplicate record for %s", month, emp.code)
        except Exception as e:  # batch continues
            errors.append(f"Error generating payroll for {emp.code}: {e}")
            log.warning("payroll %s: failed for %s: %s", month, emp.code, e)

    db.session.commit()
    log.info("payroll %s generated=%d errors=%d", month, len(records), len(errors))
    return {"success_count": len(records), "errors": errors, "records": records}


# ---------- single-record operations ----------

def _get(payroll_id: int) -> PayrollRecord:
    rec = db.session.get(PayrollRecord, payroll_id)
    if not rec:
        raise NotFound("Payroll record not found")
    return rec


def _ensure_not_sent(rec: PayrollRecord, action: str):
    if rec.is_sent:
        raise Conflict(f"Cannot {action} sent payroll records", code="PAYROLL_SENT")


def get_payroll(payroll_id: int, principal: Optional[Principal] = None) -> PayrollRecord:
    rec = _get(payroll_id)
    if principal is not None:
        ensure_can_view(principal, rec.employee, "Not allowed to view this payroll record")
    return rec


_CREATE_FIELDS = PayrollRecord.MONEY_FIELDS + PayrollRecord.DAY_FIELDS
_UPDATE_FIELDS = _CREATE_FIELDS + ("status",)


def _coerce(field: str, value):
    if value is None:
        return None
    try:
        return int(value) if field in PayrollRecord.DAY_FIELDS else float(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{field} must be numeric")


def create_payroll(data: Dict[str, Any]) -> PayrollRecord:
    emp_id = data.get("employee_id")
    month = data.get("month")
    if not emp_id or not month:
        raise ValidationFailed("employee_id and month are required")
    _validate_month(month)
    if data.get("basic_salary") is None:
        raise ValidationFailed("basic_salary is required")
    if not db.session.get(Employee, int(emp_id)):
        raise NotFound("Employee not found")

    if PayrollRecord.query.filter_by(employee_id=int(emp_id), month=month).first():
        raise Conflict("Payroll already exists for this employee and month", code="PAYROLL_EXISTS")

    rec = PayrollRecord(employee_id=int(emp_id), month=month, status=PayrollStatus.DRAFT)
    for f in _CREATE_FIELDS:
        if f in data:
            setattr(rec, f, _coerce(f, data[f]))
    try:
        with db.session.begin_nested():
            db.session.add(rec)
    except IntegrityError:
        db.session.rollback()
        raise Conflict("Payroll already exists for this employee and month", code="PAYROLL_EXISTS")
    db.session.commit()
    return rec


def update_payroll(payroll_id: int, data: Dict[str, Any]) -> PayrollRecord:
    rec = _get(payroll_id)
    _ensure_not_sent(rec, "update")
    for f in _UPDATE_FIELDS:
        if f not in data:
            continue
        if f == "status":
            if data[f] not in PayrollStatus.ALL:
                raise ValidationFailed(f"status must be one of {', '.join(PayrollStatus.ALL)}")
            rec.status = data[f]
        else:
            setattr(rec, f, _coerce(f, data[f]))
    db.session.commit()
    return rec


def delete_payroll(payroll_id: int) -> None:
    rec = _get(payroll_id)
    _ensure_not_sent(rec, "delete")
    db.session.delete(rec)
    db.session.commit()
    log.info("payroll %s deleted", payroll_id)


def regenerate_payroll(payroll_id: int, generated_by: Optional[int] = None) -> PayrollRecord:
    rec = _get(payroll_id)
    _ensure_not_sent(rec, "regenerate")
    salary = current_salary(rec.employee_id)
    if not salary:
        raise ValidationFailed("No salary details found for employee")

    _apply(rec, calculate_payroll(salary, monthly_attendance(rec.employee_id, rec.month)))
    rec.generated_by = generated_by
    rec.generated_at = datetime.utcnow()
    rec.status = PayrollStatus.GENERATED
    db.session.commit()
    log.info("payroll %s regenerated for employee=%s month=%s", rec.id, rec.employee_id, rec.month)
    return rec


def mark_as_sent(payroll_id: int) -> PayrollRecord:
    rec = _get(payroll_id)
    rec.status = PayrollStatus.SENT
    db.session.commit()
    log.info("payroll %s marked SENT", rec.id)
    return rec


def bulk_action(payroll_ids: Iterable[int], status: str) -> Dict[str, int]:
    ids = [int(i) for i in (payroll_ids or [])]
    if not ids:
        raise ValidationFailed("payroll_ids is required")
    if status not in PayrollStatus.ALL:
        raise ValidationFailed(f"action must be one of {', '.join(PayrollStatus.ALL)}")

    updated = (
        PayrollRecord.query
        .filter(PayrollRecord.id.in_(ids), PayrollRecord.status != PayrollStatus.SENT)
        .update({PayrollRecord.status: status}, synchronize_session=False)
    )
    db.session.commit()
    return {"updated": updated, "total": len(ids)}


# ---------- listing ----------

def _base_query(department_id=None):
    q = PayrollRecord.query.join(Employee, PayrollRecord.employee_id == Employee.id)
    if department_id:
        q = q.filter(Employee.department_id == int(department_id))
    return q


def list_payroll(principal: Principal, filters: Optional[Dict[str, Any]] = None) -> List[PayrollRecord]:
    filters = filters or {}
    q = apply_employee_scope(_base_query(), principal)

    if filters.get("month"):
        q = q.filter(PayrollRecord.month == filters["month"])
    elif filters.get("year"):
        q = q.filter(PayrollRecord.month.like(f"{filters['year']}-%"))
    if filters.get("employee_id"):
        q = q.filter(PayrollRecord.employee_id == int(filters["employee_id"]))
    if filters.get("department_id") and principal.can(CAP_VIEW_ALL):
        q = q.filter(Employee.department_id == int(filters["department_id"]))
    if filters.get("status"):
        q = q.filter(PayrollRecord.status == filters["status"])

    return q.order_by(PayrollRecord.month.desc(), Employee.full_name.asc()).all()


def employee_payroll_history(employee_id: int, principal: Principal) -> Dict[str, Any]:
    emp = db.session.get(Employee, employee_id)
    if not emp:
        raise NotFound("Employee not found")
    ensure_can_view(principal, emp, "Not allowed to view this payroll history")

    rows = (
        PayrollRecord.query.filter_by(employee_id=employee_id)
        .order_by(PayrollRecord.month.desc())
        .all()
    )
    nets = [_num(r.net_pay) for r in rows]
    total_net = sum(nets)
    return {
        "records": [r.to_dict() for r in rows],
        "summary": {
            "total_records": len(rows),
            "total_earnings": sum(_num(r.total_earnings) for r in rows),
            "total_deductions": sum(_num(r.total_deductions) for r in rows),
            "total_net_pay": total_net,
            "average_net_pay": total_net / len(rows) if rows else 0,
            "highest_pay": max(nets) if nets else 0,
            "lowest_pay": min(nets) if nets else 0,
        },
    }


# ---------- reports ----------

def _dept_name(rec: PayrollRecord) -> str:
    emp = rec.employee
    return emp.department.name if emp and emp.department else "Unassigned"


def _status_counts(rows) -> Dict[str, int]:
    counts = {s.lower(): 0 for s in PayrollStatus.ALL}
    for r in rows:
        counts[r.status.lower()] += 1
    return counts


def payroll_summary(month: str, department_id: Optional[int] = None) -> Dict[str, Any]:
    _validate_month(month)
    rows = _base_query(department_id).filter(PayrollRecord.month == month).all()

    departments: Dict[str, Dict[str, Any]] = {}
    for r in rows:
        d = departments.setdefault(_dept_name(r), {
            "count": 0, "total_net_pay": 0.0, "total_earnings": 0.0, "total_deductions": 0.0,
        })
        d["count"] += 1
        d["total_net_pay"] += _num(r.net_pay)
        d["total_earnings"] += _num(r.total_earnings)
        d["total_deductions"] += _num(r.total_deductions)

    return {
        "month": month,
        "total_records": len(rows),
        "total_basic_salary": sum(_num(r.basic_salary) for r in rows),
        "total_earnings": sum(_num(r.total_earnings) for r in rows),
        "total_deductions": sum(_num(r.total_deductions) for r in rows),
        "total_net_pay": sum(_num(r.net_pay) for r in rows),
        "status_breakdown": _status_counts(rows),
        "department_breakdown": departments,
    }


def _year_rows(year, department_id=None):
    try:
        y = int(year)
    except (TypeError, ValueError):
        raise ValidationFailed("Year must be numeric")
    return _base_query(department_id).filter(PayrollRecord.month.like(f"{y:04d}-%")).all()


def monthly_payroll_stats(year, department_id: Optional[int] = None) -> Dict[str, Any]:
    stats: Dict[str, Dict[str, Any]] = {}
    for r in _year_rows(year, department_id):
        s = stats.setdefault(r.month, {
            "total_records": 0, "total_net_pay": 0.0, "total_earnings": 0.0, "total_deductions": 0.0,
            "status_counts": {k.lower(): 0 for k in PayrollStatus.ALL},
        })
        s["total_records"] += 1
        s["total_net_pay"] += _num(r.net_pay)
        s["total_earnings"] += _num(r.total_earnings)
        s["total_deductions"] += _num(r.total_deductions)
        s["status_counts"][r.status.lower()] += 1
    return dict(sorted(stats.items()))


def _bucket_add(buckets: Dict[str, Dict[str, Any]], key: str, net: float):
    b = buckets.setdefault(key, {"count": 0, "total_pay": 0.0, "average_pay": 0.0,
                                 "highest_pay": None, "lowest_pay": None})
    b["count"] += 1
    b["total_pay"] += net
    b["highest_pay"] = net if b["highest_pay"] is None else max(b["highest_pay"], net)
    b["lowest_pay"] = net if b["lowest_pay"] is None else min(b["lowest_pay"], net)


def payroll_analytics(year, department_id: Optional[int] = None) -> Dict[str, Any]:
    rows = _year_rows(year, department_id)
    by_dept: Dict[str, Dict[str, Any]] = {}
    by_role: Dict[str, Dict[str, Any]] = {}
    nets = []
    for r in rows:
        net = _num(r.net_pay)
        nets.append(net)
        _bucket_add(by_dept, _dept_name(r), net)
        _bucket_add(by_role, (r.employee.role_name if r.employee else None) or "Unassigned", net)

    for b in list(by_dept.values()) + list(by_role.values()):
        b["average_pay"] = b["total_pay"] / b["count"]

    total = sum(nets)
    return {
        "department_analytics": by_dept,
        "role_analytics": by_role,
        "overall_stats": {
            "total_records": len(rows),
            "total_payout": total,
            "average_payout": total / len(rows) if rows else 0,
            "highest_payout": max(nets) if nets else 0,
            "lowest_payout": min(nets) if nets else 0,
        },
    }


def validate_payroll_data(month: str, department_id: Optional[int] = None) -> Dict[str, Any]:
    """Sanity checks over a month's records; errors block sending, warnings do not."""
    _validate_month(month)
    rows = _base_query(department_id).filter(PayrollRecord.month == month).all()

    errors: List[Dict[str, Any]] = []
    warnings: List[Dict[str, Any]] = []
    for r in rows:
        who = {"employee_code": r.employee.code, "employee_name": r.employee.full_name}
        net = _num(r.net_pay)
        earnings = _num(r.total_earnings)
        deductions = _num(r.total_deductions)

        if net < 0:
            errors.append({**who, "error": "Negative net pay", "value": net})
        if net == 0:
            warnings.append({**who, "warning": "Zero net pay", "value": net})
        if deductions > earnings:
            errors.append({**who, "error": "Deductions exceed earnings",
                           "earnings": earnings, "deductions": deductions})
        if earnings > 0:
            pct = deductions / earnings * 100
            if pct > 50:
                warnings.append({**who, "warning": "High deduction percentage",
                                 "percentage": round(pct, 2)})

    return {
        "is_valid": not errors,
        "errors": errors,
        "warnings": warnings,
        "summary": {
            "total_records": len(rows),
            "error_count": len(errors),
            "warning_count": len(warnings),
        },
    }


# ---------- export ----------

REGISTER_HEADERS = [
    "Emp Code", "Name", "Department", "Month", "Total Days", "Days Present", "LWP Days",
    "Basic", "HRA", "Fuel", "Incentive", "Other Earnings", "PF", "PT", "Other Deductions",
    "Total Earnings", "Total Deductions", "Net Pay", "Status",
]


def export_payroll_register(month: str, department_id: Optional[int] = None) -> bytes:
    """XLSX payroll register for a month: one row per record plus a totals row."""
    _validate_month(month)
    rows = (
        _base_query(department_id)
        .filter(PayrollRecord.month == month)
        .order_by(Employee.code.asc())
        .all()
    )

    wb = Workbook()
    ws = wb.active
    ws.title = f"REGISTER {month}"
    ws.append(REGISTER_HEADERS)
    for r in rows:
        ws.append([
            r.employee.code, r.employee.full_name, _dept_name(r), r.month,
            r.total_days or 0, r.days_present or 0, r.lwp_days or 0,
            _num(r.basic_salary), _num(r.hra), _num(r.fuel_allowance), _num(r.performance_incentive),
            _num(r.other_earnings), _num(r.pf_deduction), _num(r.pt_deduction), _num(r.other_deductions),
            _num(r.total_earnings), _num(r.total_deductions), _num(r.net_pay), r.status,
        ])
    ws.append([
        "TOTAL", "", "", "", "", "", "",
        *[sum(_num(getattr(r, f)) for r in rows) for f in (
            "basic_salary", "hra", "fuel_allowance", "performance_incentive", "other_earnings",
            "pf_deduction", "pt_deduction", "other_deductions",
            "total_earnings", "total_deductions", "net_pay",
        )],
        "",
    ])

    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()
