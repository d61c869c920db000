# hrms_backend/services/attendance_engine.py
from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, date, time as _time, timedelta
from typing import Iterable, Optional, List, Dict, Any

from sqlalchemy.exc import IntegrityError

from hrms_backend.common.auth import Principal, apply_employee_scope, ensure_can_view, CAP_VIEW_ALL
from hrms_backend.common.errors import Conflict, NotFound, ValidationFailed
from hrms_backend.extensions import db
from hrms_backend.models.attendance import AttendanceRecord, AttendanceStatus
from hrms_backend.models.employee import Employee
from hrms_backend.models.master import AttendanceSettings

log = logging.getLogger(__name__)


def _dt(d: date, t: _time) -> datetime:
    return datetime.combine(d, t)


def _hours(v) -> float:
    return float(v) if v is not None else 0.0


# ---------- evaluator (pure) ----------

def evaluate_check_in(check_in: datetime, settings: Optional[AttendanceSettings]) -> str:
    """
    ON_TIME unless the check-in is strictly after the department's start
    time (on the check-in's own date) plus the grace period.
    """
    if settings is None:
        return AttendanceStatus.ON_TIME
    expected = _dt(check_in.date(), settings.check_in_time)
    grace = timedelta(minutes=settings.grace_period_mins or 0)
    return AttendanceStatus.LATE if check_in > expected + grace else AttendanceStatus.ON_TIME


def evaluate_check_out(
    check_in: Optional[datetime],
    check_out: datetime,
    current_status: str,
    settings: Optional[AttendanceSettings],
):
    """
    Returns (work_hours, status).

    work_hours is wall-clock time between punches in fractional hours.
    Status flips to EARLY_OUT only when the employee leaves before the
    department's end time AND has worked less than the standard hours.
    """
    if check_in is None:
        return 0.0, current_status

    work_hours = (check_out - check_in).total_seconds() / 3600.0
    status = current_status
    if settings is not None:
        expected_out = _dt(check_out.date(), settings.check_out_time)
        if check_out < expected_out and work_hours < _hours(settings.standard_work_hours):
            status = AttendanceStatus.EARLY_OUT
    return work_hours, status


# ---------- check-in / check-out ----------

def _get_employee(employee_id: int) -> Employee:
    emp = db.session.get(Employee, employee_id)
    if not emp:
        raise NotFound("Employee not found")
    return emp


def _settings_for(emp: Employee) -> Optional[AttendanceSettings]:
    return emp.department.attendance_settings if emp.department else None


def _record_for(employee_id: int, day: date) -> Optional[AttendanceRecord]:
    return AttendanceRecord.query.filter_by(employee_id=employee_id, date=day).first()


def check_in(employee_id: int, notes: Optional[str] = None, now: Optional[datetime] = None) -> AttendanceRecord:
    now = now or datetime.now()
    today = now.date()

    existing = _record_for(employee_id, today)
    if existing and existing.check_in_time:
        raise Conflict("Already checked in today", code="ALREADY_CHECKED_IN")

    emp = _get_employee(employee_id)
    status = evaluate_check_in(now, _settings_for(emp))

    if existing:
        # placeholder row (e.g. created manually) without a punch yet
        existing.check_in_time = now
        existing.status = status
        existing.notes = notes
        db.session.commit()
        rec = existing
    else:
        rec = AttendanceRecord(
            employee_id=employee_id, date=today, check_in_time=now, status=status, notes=notes,
        )
        try:
            with db.session.begin_nested():
                db.session.add(rec)
        except IntegrityError:
            # another request inserted today's row first
            db.session.rollback()
            raise Conflict("Already checked in today", code="ALREADY_CHECKED_IN")
        db.session.commit()

    log.info("check-in employee=%s date=%s status=%s", employee_id, today, status)
    return rec


def check_out(employee_id: int, notes: Optional[str] = None, now: Optional[datetime] = None) -> AttendanceRecord:
    now = now or datetime.now()
    today = now.date()

    rec = _record_for(employee_id, today)
    if not rec or not rec.check_in_time:
        raise Conflict("No check-in record found for today", code="NO_CHECK_IN")
    if rec.check_out_time:
        raise Conflict("Already checked out today", code="ALREADY_CHECKED_OUT")

    emp = rec.employee or _get_employee(employee_id)
    work_hours, status = evaluate_check_out(rec.check_in_time, now, rec.status, _settings_for(emp))

    rec.check_out_time = now
    rec.work_hours = round(work_hours, 2)
    rec.status = status
    rec.notes = notes or rec.notes
    db.session.commit()

    log.info("check-out employee=%s date=%s status=%s hours=%.2f", employee_id, today, status, work_hours)
    return rec


def get_today(employee_id: int, today: Optional[date] = None) -> Optional[Dict[str, Any]]:
    today = today or date.today()
    rec = _record_for(employee_id, today)
    if not rec:
        return None
    out = rec.to_dict()
    settings = _settings_for(rec.employee) if rec.employee else None
    out["settings"] = settings.to_dict() if settings else None
    return out


# ---------- listing ----------

def _parse_date(value, field: str) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationFailed(f"{field} must be YYYY-MM-DD")


def list_records(principal: Principal, filters: Optional[Dict[str, Any]] = None) -> List[AttendanceRecord]:
    """
    Records visible to the principal, newest first.

    filters: start_date, end_date, employee_id, department_id. The employee
    filter narrows within the caller's scope; the department filter needs
    organisation-wide visibility.
    """
    filters = filters or {}
    q = AttendanceRecord.query.join(Employee, AttendanceRecord.employee_id == Employee.id)
    q = apply_employee_scope(q, principal)

    if filters.get("employee_id"):
        q = q.filter(AttendanceRecord.employee_id == int(filters["employee_id"]))
    if filters.get("department_id") and principal.can(CAP_VIEW_ALL):
        q = q.filter(Employee.department_id == int(filters["department_id"]))

    start = _parse_date(filters.get("start_date"), "start_date")
    end = _parse_date(filters.get("end_date"), "end_date")
    if start:
        q = q.filter(AttendanceRecord.date >= start)
    if end:
        q = q.filter(AttendanceRecord.date <= end)

    return q.order_by(AttendanceRecord.date.desc(), Employee.full_name.asc()).all()


# ---------- monthly aggregation ----------

@dataclass
class MonthlyTotals:
    total_days: int
    present_days: int
    absent_days: int
    late_days: int
    total_work_hours: float

    def to_dict(self):
        return asdict(self)


def month_bounds(year: int, month: int):
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def aggregate_month(records: Iterable, year: int, month: int) -> MonthlyTotals:
    """Roll one employee's daily records for a month into totals. Pure."""
    total_days = calendar.monthrange(year, month)[1]
    present = late = 0
    hours = 0.0
    for r in records:
        if r.check_in_time:
            present += 1
        if r.status == AttendanceStatus.LATE:
            late += 1
        if r.work_hours is not None:
            hours += float(r.work_hours)
    return MonthlyTotals(
        total_days=total_days,
        present_days=present,
        absent_days=total_days - present,
        late_days=late,
        total_work_hours=round(hours, 2),
    )


def parse_month(month_str: str):
    """'YYYY-MM' -> (year, month)."""
    try:
        y, m = str(month_str).split("-")
        year, month = int(y), int(m)
        if len(y) != 4 or len(m) != 2 or not 1 <= month <= 12:
            raise ValueError
    except ValueError:
        raise ValidationFailed("Invalid month format. Use YYYY-MM")
    return year, month


def monthly_attendance(employee_id: int, month_str: str) -> MonthlyTotals:
    year, month = parse_month(month_str)
    start, end = month_bounds(year, month)
    rows = (
        AttendanceRecord.query
        .filter(AttendanceRecord.employee_id == employee_id)
        .filter(AttendanceRecord.date >= start, AttendanceRecord.date <= end)
        .all()
    )
    return aggregate_month(rows, year, month)


def get_monthly_report(month, year, principal: Principal) -> List[Dict[str, Any]]:
    """
    Per-employee stats for every record in the month the principal can see.
    total_days here counts recorded days, not calendar days.
    """
    try:
        m, y = int(month), int(year)
        start, end = month_bounds(y, m)
    except (TypeError, ValueError, calendar.IllegalMonthError):
        raise ValidationFailed("Invalid month/year")

    q = (
        AttendanceRecord.query
        .join(Employee, AttendanceRecord.employee_id == Employee.id)
        .filter(AttendanceRecord.date >= start, AttendanceRecord.date <= end)
    )
    q = apply_employee_scope(q, principal)
    rows = q.order_by(Employee.full_name.asc(), AttendanceRecord.date.asc()).all()

    stats: Dict[int, Dict[str, Any]] = {}
    for r in rows:
        emp = r.employee
        s = stats.get(emp.id)
        if s is None:
            s = stats[emp.id] = {
                "employee": {
                    **emp.brief(),
                    "department": emp.department.name if emp.department else None,
                },
                "total_days": 0,
                "present_days": 0,
                "late_days": 0,
                "early_out_days": 0,
                "total_work_hours": 0.0,
                "records": [],
            }
        s["records"].append(r.to_dict())
        s["total_days"] += 1
        if r.check_in_time:
            s["present_days"] += 1
        if r.status == AttendanceStatus.LATE:
            s["late_days"] += 1
        if r.status == AttendanceStatus.EARLY_OUT:
            s["early_out_days"] += 1
        if r.work_hours is not None:
            s["total_work_hours"] += float(r.work_hours)

    for s in stats.values():
        s["total_work_hours"] = round(s["total_work_hours"], 2)
    return list(stats.values())


# ---------- manual maintenance (ADMIN / HR) ----------

_EDITABLE = ("check_in_time", "check_out_time", "status", "work_hours", "notes")


def _parse_dt(value, field: str):
    if value in (None, ""):
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise ValidationFailed(f"{field} must be an ISO datetime")


def get_record(record_id: int, principal: Optional[Principal] = None) -> AttendanceRecord:
    rec = db.session.get(AttendanceRecord, record_id)
    if not rec:
        raise NotFound("Attendance record not found")
    if principal is not None:
        ensure_can_view(principal, rec.employee, "Not allowed to view this attendance record")
    return rec


def create_record(data: Dict[str, Any]) -> AttendanceRecord:
    emp_id = data.get("employee_id")
    day = _parse_date(data.get("date"), "date")
    if not emp_id or not day:
        raise ValidationFailed("employee_id and date are required")
    emp = _get_employee(int(emp_id))

    check_in_at = _parse_dt(data.get("check_in_time"), "check_in_time")
    check_out_at = _parse_dt(data.get("check_out_time"), "check_out_time")
    status = data.get("status")
    if status is None:
        status = evaluate_check_in(check_in_at, _settings_for(emp)) if check_in_at else AttendanceStatus.ABSENT
    elif status not in AttendanceStatus.ALL:
        raise ValidationFailed(f"status must be one of {', '.join(AttendanceStatus.ALL)}")

    rec = AttendanceRecord(
        employee_id=int(emp_id), date=day, check_in_time=check_in_at, check_out_time=check_out_at,
        status=status, notes=data.get("notes"),
    )
    if check_in_at and check_out_at:
        rec.work_hours = round((check_out_at - check_in_at).total_seconds() / 3600.0, 2)
    try:
        with db.session.begin_nested():
            db.session.add(rec)
    except IntegrityError:
        db.session.rollback()
        raise Conflict("Attendance record already exists for this date")
    db.session.commit()
    return rec


def update_record(record_id: int, data: Dict[str, Any]) -> AttendanceRecord:
    rec = get_record(record_id)
    for f in _EDITABLE:
        if f not in data:
            continue
        v = data[f]
        if f in ("check_in_time", "check_out_time"):
            v = _parse_dt(v, f)
        elif f == "status" and v not in AttendanceStatus.ALL:
            raise ValidationFailed(f"status must be one of {', '.join(AttendanceStatus.ALL)}")
        setattr(rec, f, v)
    db.session.commit()
    return rec


def delete_record(record_id: int) -> None:
    rec = get_record(record_id)
    db.session.delete(rec)
    db.session.commit()
