# hrms_backend/services/employee_service.py
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional, Dict, Any, List

from hrms_backend.common.auth import (
    Principal, apply_employee_scope, ensure_can_view, CAP_EMPLOYEES_MANAGE, SCOPE_TEAM,
)
from hrms_backend.common.errors import Conflict, Forbidden, NotFound, ValidationFailed
from hrms_backend.extensions import db
from hrms_backend.models.employee import Employee
from hrms_backend.models.master import (
    Department, Role, ROLE_ADMIN, ROLE_HR, ROLE_DEPARTMENT_HEAD, ROLE_TEAM_LEAD,
)
from hrms_backend.models.payroll import SalaryDetail
from hrms_backend.services.leave_service import ensure_balance
from hrms_backend.services.payroll_service import current_salary

log = logging.getLogger(__name__)

# default salary split for a new hire
HRA_RATE = 0.3
FUEL_RATE = 0.1286
DEFAULT_PF = 3600
DEFAULT_PT = 200

MANAGER_ROLES = (ROLE_DEPARTMENT_HEAD, ROLE_TEAM_LEAD, ROLE_HR, ROLE_ADMIN)
# only employees.manage may touch these
RESTRICTED = ("role_id", "department_id", "is_active", "password")
UPDATABLE = ("code", "email", "full_name", "phone", "address", "date_of_joining",
             "role_id", "department_id", "manager_id", "is_active")


def _parse_date(value, field: str) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()
    except ValueError:
        raise ValidationFailed(f"{field} must be YYYY-MM-DD")


def _get(employee_id: int) -> Employee:
    emp = db.session.get(Employee, employee_id)
    if not emp:
        raise NotFound("Employee not found")
    return emp


def _check_unique(email: Optional[str], code: Optional[str], exclude_id: Optional[int] = None):
    conds = []
    if email:
        conds.append(Employee.email == email)
    if code:
        conds.append(Employee.code == code)
    if not conds:
        return
    q = Employee.query.filter(db.or_(*conds))
    if exclude_id is not None:
        q = q.filter(Employee.id != exclude_id)
    if q.first():
        raise Conflict("Employee with this email or employee code already exists", code="EMPLOYEE_EXISTS")


def _check_refs(role_id=None, department_id=None):
    if role_id is not None and not db.session.get(Role, int(role_id)):
        raise ValidationFailed("Unknown role_id")
    if department_id is not None and not db.session.get(Department, int(department_id)):
        raise ValidationFailed("Unknown department_id")


def check_manager_assignment(employee_id: Optional[int], manager_id: Optional[int]):
    """
    Reject a manager that is the employee itself or one of its reports
    (directly or transitively). Walks up the proposed manager's chain.
    """
    if manager_id is None:
        return
    manager = db.session.get(Employee, int(manager_id))
    if not manager:
        raise ValidationFailed("Unknown manager_id")
    if employee_id is None:
        return

    seen = set()
    node = manager
    while node is not None:
        if node.id == employee_id:
            raise ValidationFailed("Manager assignment would create a reporting cycle")
        if node.id in seen:
            break
        seen.add(node.id)
        node = node.manager


def create_employee(data: Dict[str, Any], creator_id: Optional[int] = None) -> Employee:
    missing = [f for f in ("code", "full_name", "email", "password", "role_id", "department_id",
                           "date_of_joining") if not data.get(f)]
    if missing:
        raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")

    email = data["email"].strip().lower()
    code = data["code"].strip()
    _check_unique(email, code)
    _check_refs(data["role_id"], data["department_id"])
    check_manager_assignment(None, data.get("manager_id"))

    doj = _parse_date(data["date_of_joining"], "date_of_joining")
    salary_in = data.get("salary_detail") or {}
    try:
        basic = float(salary_in.get("basic_salary") or 0)
    except (TypeError, ValueError):
        raise ValidationFailed("salary_detail.basic_salary must be numeric")
    effective_from = _parse_date(salary_in.get("effective_from"), "effective_from") or doj

    emp = Employee(
        code=code,
        email=email,
        full_name=data["full_name"].strip(),
        phone=data.get("phone"),
        address=data.get("address"),
        date_of_joining=doj,
        role_id=int(data["role_id"]),
        department_id=int(data["department_id"]),
        manager_id=int(data["manager_id"]) if data.get("manager_id") else None,
    )
    emp.set_password(data["password"])
    db.session.add(emp)
    db.session.flush()

    db.session.add(SalaryDetail(
        employee_id=emp.id,
        basic_salary=basic,
        hra=round(basic * HRA_RATE),
        fuel_allowance=round(basic * FUEL_RATE),
        other_allowances=0,
        pf_deduction=DEFAULT_PF,
        pt_deduction=DEFAULT_PT,
        other_deductions=0,
        effective_from=effective_from,
        created_by=creator_id,
    ))
    ensure_balance(emp.id, date.today().year)
    db.session.commit()
    log.info("employee created id=%s code=%s by=%s", emp.id, emp.code, creator_id)
    return emp


def list_employees(principal: Principal) -> List[Employee]:
    q = apply_employee_scope(Employee.query, principal)
    if principal.scope == SCOPE_TEAM:
        # team leads list their reports, not themselves
        q = q.filter(Employee.manager_id == principal.employee_id)
    return q.order_by(Employee.created_at.desc(), Employee.id.desc()).all()


def get_employee(employee_id: int, principal: Principal) -> Dict[str, Any]:
    emp = _get(employee_id)
    ensure_can_view(principal, emp)
    out = emp.to_dict()
    sal = current_salary(emp.id)
    out["salary_detail"] = sal.to_dict() if sal else None
    return out


def update_employee(employee_id: int, data: Dict[str, Any], principal: Principal) -> Employee:
    emp = _get(employee_id)
    ensure_can_view(principal, emp)
    if not principal.can(CAP_EMPLOYEES_MANAGE) and any(f in data for f in RESTRICTED):
        raise Forbidden("Not allowed to change role, department, status or password")

    email = data["email"].strip().lower() if data.get("email") else None
    code = data["code"].strip() if data.get("code") else None
    _check_unique(email, code, exclude_id=emp.id)
    _check_refs(data.get("role_id"), data.get("department_id"))
    if "manager_id" in data:
        check_manager_assignment(emp.id, data["manager_id"] or None)

    for f in UPDATABLE:
        if f not in data:
            continue
        v = data[f]
        if f == "email":
            v = email
        elif f == "code":
            v = code
        elif f == "date_of_joining":
            v = _parse_date(v, f)
        elif f in ("role_id", "department_id", "manager_id"):
            v = int(v) if v else None
        setattr(emp, f, v)
    if data.get("password"):
        emp.set_password(data["password"])

    db.session.commit()
    return emp


def deactivate_employee(employee_id: int, current_employee_id: int) -> Employee:
    emp = _get(employee_id)
    if emp.id == current_employee_id:
        raise Forbidden("You cannot delete your own account")
    emp.is_active = False
    db.session.commit()
    log.info("employee %s deactivated by %s", emp.id, current_employee_id)
    return emp


def managers_by_department(department_id: int) -> List[Dict[str, Any]]:
    rows = (
        Employee.query.join(Role, Employee.role_id == Role.id)
        .filter(Employee.department_id == department_id)
        .filter(Employee.is_active.is_(True))
        .filter(Role.name.in_(MANAGER_ROLES))
        .order_by(Employee.full_name.asc())
        .all()
    )
    return [{**e.brief(), "role": e.role_name} for e in rows]
