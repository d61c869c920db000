# hrms_backend/services/leave_service.py
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional, Dict, Any, List

from sqlalchemy.exc import IntegrityError

from hrms_backend.common.auth import (
    Principal, apply_employee_scope, ensure_can_view, CAP_LEAVE_APPROVE, CAP_VIEW_ALL,
)
from hrms_backend.common.errors import Conflict, Forbidden, NotFound, ValidationFailed
from hrms_backend.extensions import db
from hrms_backend.models.employee import Employee
from hrms_backend.models.leave import LeaveBalance, LeaveRequest, LeaveStatus, LeaveType

log = logging.getLogger(__name__)

DEFAULT_ENTITLEMENT = {"casual_leaves": 12, "sick_leaves": 12, "annual_leaves": 21}
REASON_MIN, REASON_MAX = 10, 500


# ---------- balances ----------

def ensure_balance(employee_id: int, year: int) -> LeaveBalance:
    """Fetch the (employee, year) balance, creating it with default entitlements."""
    bal = LeaveBalance.query.filter_by(employee_id=employee_id, year=year).first()
    if bal:
        return bal

    bal = LeaveBalance(employee_id=employee_id, year=year, used_casual=0, used_sick=0, used_annual=0,
                       **DEFAULT_ENTITLEMENT)
    try:
        with db.session.begin_nested():
            db.session.add(bal)
    except IntegrityError:
        # created concurrently; use theirs
        bal = LeaveBalance.query.filter_by(employee_id=employee_id, year=year).one()
    return bal


def get_leave_balance(employee_id: int, year: Optional[int] = None) -> Dict[str, Any]:
    if not db.session.get(Employee, employee_id):
        raise NotFound("Employee not found")
    bal = ensure_balance(employee_id, year or date.today().year)
    db.session.commit()
    return bal.to_dict()


# ---------- validation helpers ----------

def _parse_date(value, field: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationFailed(f"Invalid {field} format")


def _check_dates(start: date, end: date, today: date):
    if start < today:
        raise ValidationFailed("Leave start date cannot be in the past")
    if end < start:
        raise ValidationFailed("Leave end date cannot be before start date")


def _check_reason(reason):
    if not isinstance(reason, str) or not REASON_MIN <= len(reason.strip()) <= REASON_MAX:
        raise ValidationFailed(f"Reason must be between {REASON_MIN} and {REASON_MAX} characters")


def _check_type(leave_type):
    if leave_type not in LeaveType.ALL:
        raise ValidationFailed("Invalid leave type")


def total_days(start: date, end: date) -> int:
    return (end - start).days + 1


def _overlapping(employee_id: int, start: date, end: date, exclude_id: Optional[int] = None):
    q = LeaveRequest.query.filter(
        LeaveRequest.employee_id == employee_id,
        LeaveRequest.status.in_(LeaveStatus.ACTIVE),
        db.or_(
            db.and_(LeaveRequest.start_date <= start, LeaveRequest.end_date >= start),
            db.and_(LeaveRequest.start_date <= end, LeaveRequest.end_date >= end),
            db.and_(LeaveRequest.start_date >= start, LeaveRequest.end_date <= end),
        ),
    )
    if exclude_id is not None:
        q = q.filter(LeaveRequest.id != exclude_id)
    return q.first()


# ---------- apply ----------

def apply_for_leave(
    employee_id: int,
    leave_type: str,
    start,
    end,
    reason: str,
    today: Optional[date] = None,
) -> LeaveRequest:
    today = today or date.today()
    _check_type(leave_type)
    _check_reason(reason)
    start = _parse_date(start, "start date")
    end = _parse_date(end, "end date")
    _check_dates(start, end, today)
    days = total_days(start, end)

    if not db.session.get(Employee, employee_id):
        raise NotFound("Employee not found")

    if _overlapping(employee_id, start, end):
        raise Conflict("You already have a leave request for this period", code="LEAVE_OVERLAP")

    bal = ensure_balance(employee_id, today.year)
    if leave_type in LeaveType.BALANCE_TRACKED:
        available = bal.available(leave_type)
        if available < days:
            raise ValidationFailed(
                f"Insufficient leave balance. Available: {available} days, Requested: {days} days"
            )

    req = LeaveRequest(
        employee_id=employee_id,
        leave_type=leave_type,
        start_date=start,
        end_date=end,
        total_days=days,
        reason=reason.strip(),
        status=LeaveStatus.PENDING,
    )
    db.session.add(req)
    db.session.commit()
    log.info("leave applied id=%s employee=%s type=%s days=%s", req.id, employee_id, leave_type, days)
    return req


# ---------- approve / reject ----------

def _get(request_id: int) -> LeaveRequest:
    req = db.session.get(LeaveRequest, request_id)
    if not req:
        raise NotFound("Leave request not found")
    return req


def approve_leave(
    request_id: int,
    decision: str,
    approver: Principal,
    notes: Optional[str] = None,
) -> LeaveRequest:
    if not approver.can(CAP_LEAVE_APPROVE):
        raise Forbidden("You do not have permission to approve leave requests")
    if decision not in (LeaveStatus.APPROVED, LeaveStatus.REJECTED):
        raise ValidationFailed("Invalid leave status")

    req = _get(request_id)
    if req.employee_id == approver.employee_id:
        raise Forbidden("You cannot approve or reject your own leave request")
    ensure_can_view(approver, req.employee, "Leave request is outside your approval scope")
    if req.status != LeaveStatus.PENDING:
        raise Conflict("Only pending leave requests can be approved or rejected", code="NOT_PENDING")

    req.status = decision
    req.approved_by = approver.employee_id
    req.approval_date = datetime.utcnow()
    req.approval_notes = notes

    if decision == LeaveStatus.APPROVED and req.leave_type in LeaveType.BALANCE_TRACKED:
        bal = ensure_balance(req.employee_id, date.today().year)
        used_col = getattr(LeaveBalance, LeaveBalance.COLUMNS[req.leave_type][1])
        # increment in SQL so concurrent approvals don't lose updates
        LeaveBalance.query.filter_by(id=bal.id).update(
            {used_col: used_col + req.total_days}, synchronize_session=False
        )

    db.session.commit()
    log.info("leave %s %s by employee=%s", req.id, decision, approver.employee_id)
    return req


# ---------- owner edits ----------

def _owned_pending(request_id: int, employee_id: int, action: str) -> LeaveRequest:
    req = _get(request_id)
    if req.employee_id != employee_id:
        raise Forbidden(f"You can only {action} your own leave requests")
    if req.status != LeaveStatus.PENDING:
        raise Conflict(f"Only pending leave requests can be {action}d", code="NOT_PENDING")
    return req


def update_leave(request_id: int, data: Dict[str, Any], employee_id: int, today: Optional[date] = None) -> LeaveRequest:
    """
    Owner-only edit of a pending request. Changed dates are re-validated and
    re-checked for overlap; the balance is not re-checked.
    """
    today = today or date.today()
    req = _owned_pending(request_id, employee_id, "update")

    if "leave_type" in data:
        _check_type(data["leave_type"])
        req.leave_type = data["leave_type"]
    if "reason" in data:
        _check_reason(data["reason"])
        req.reason = data["reason"].strip()

    if data.get("start_date") or data.get("end_date"):
        start = _parse_date(data.get("start_date") or req.start_date, "start date")
        end = _parse_date(data.get("end_date") or req.end_date, "end date")
        _check_dates(start, end, today)
        if _overlapping(req.employee_id, start, end, exclude_id=req.id):
            raise Conflict("You already have a leave request for this period", code="LEAVE_OVERLAP")
        req.start_date, req.end_date = start, end
        req.total_days = total_days(start, end)

    db.session.commit()
    return req


def delete_leave(request_id: int, employee_id: int) -> None:
    req = _owned_pending(request_id, employee_id, "delete")
    db.session.delete(req)
    db.session.commit()
    log.info("leave %s withdrawn by employee=%s", request_id, employee_id)


# ---------- reads ----------

def list_leaves(principal: Principal, filters: Optional[Dict[str, Any]] = None) -> List[LeaveRequest]:
    filters = filters or {}
    q = LeaveRequest.query.join(Employee, LeaveRequest.employee_id == Employee.id)
    q = apply_employee_scope(q, principal)

    if filters.get("status"):
        q = q.filter(LeaveRequest.status == filters["status"])
    if filters.get("leave_type"):
        q = q.filter(LeaveRequest.leave_type == filters["leave_type"])
    if filters.get("employee_id"):
        q = q.filter(LeaveRequest.employee_id == int(filters["employee_id"]))
    if filters.get("department_id") and principal.can(CAP_VIEW_ALL):
        q = q.filter(Employee.department_id == int(filters["department_id"]))
    if filters.get("start_date"):
        q = q.filter(LeaveRequest.start_date >= _parse_date(filters["start_date"], "start date"))
    if filters.get("end_date"):
        q = q.filter(LeaveRequest.start_date <= _parse_date(filters["end_date"], "end date"))

    return q.order_by(LeaveRequest.applied_at.desc(), LeaveRequest.id.desc()).all()


def get_leave(request_id: int, principal: Principal) -> LeaveRequest:
    req = _get(request_id)
    ensure_can_view(principal, req.employee, "Not allowed to view this leave request")
    return req
