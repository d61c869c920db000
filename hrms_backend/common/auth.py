# hrms_backend/common/auth.py
from __future__ import annotations

from dataclasses import dataclass, field
from functools import wraps
from typing import FrozenSet, Iterable, Optional

from flask import g
from flask_jwt_extended import jwt_required, get_jwt_identity

from hrms_backend.common.errors import Forbidden
from hrms_backend.common.http import fail
from hrms_backend.extensions import db
from hrms_backend.models.employee import Employee
from hrms_backend.models.master import (
    ROLE_ADMIN, ROLE_HR, ROLE_DEPARTMENT_HEAD, ROLE_TEAM_LEAD, ROLE_TECHNICAL_EXPERT,
)


# ---------- capabilities ----------

CAP_EMPLOYEES_MANAGE = "employees.manage"
CAP_EMPLOYEES_VIEW = "employees.view"
CAP_EMPLOYEES_UPDATE = "employees.update"
CAP_PAYROLL_MANAGE = "payroll.manage"
CAP_PAYROLL_REPORTS = "payroll.view_reports"
CAP_SALARY_VIEW = "payroll.salary_details"
CAP_LEAVE_APPROVE = "leave.approve"
CAP_LEAVE_BALANCES = "leave.view_balances"
CAP_ATTENDANCE_REPORT = "attendance.report"
CAP_ATTENDANCE_MANAGE = "attendance.manage"
CAP_MASTERS_VIEW = "masters.view"
CAP_MASTERS_MANAGE = "masters.manage"
CAP_VIEW_ALL = "data.view_all"

SCOPE_ALL = "all"
SCOPE_DEPARTMENT = "department"
SCOPE_TEAM = "team"
SCOPE_SELF = "self"

ROLE_CAPABILITIES = {
    ROLE_ADMIN: frozenset({"*"}),
    ROLE_HR: frozenset({
        "employees.*", "payroll.*", "leave.*", "attendance.*", "masters.*", CAP_VIEW_ALL,
    }),
    ROLE_DEPARTMENT_HEAD: frozenset({
        CAP_EMPLOYEES_VIEW, CAP_EMPLOYEES_UPDATE, CAP_PAYROLL_REPORTS, CAP_LEAVE_APPROVE,
        CAP_LEAVE_BALANCES, CAP_ATTENDANCE_REPORT, CAP_MASTERS_VIEW,
    }),
    ROLE_TEAM_LEAD: frozenset({
        CAP_EMPLOYEES_VIEW, CAP_LEAVE_APPROVE, CAP_ATTENDANCE_REPORT,
    }),
    ROLE_TECHNICAL_EXPERT: frozenset(),
}

ROLE_SCOPES = {
    ROLE_ADMIN: SCOPE_ALL,
    ROLE_HR: SCOPE_ALL,
    ROLE_DEPARTMENT_HEAD: SCOPE_DEPARTMENT,
    ROLE_TEAM_LEAD: SCOPE_TEAM,
    ROLE_TECHNICAL_EXPERT: SCOPE_SELF,
}


def _wildcard_match(granted: str, required: str) -> bool:
    """
    Match a required capability against a granted one.
      '*'           matches everything
      'payroll.*'   matches 'payroll.manage'
      'leave.approve' matches only exact
    """
    if granted == "*" or granted == required:
        return True
    if granted.endswith(".*"):
        return required.startswith(granted[:-1])
    return False


@dataclass(frozen=True)
class Principal:
    """Who is calling, resolved once per request from the JWT identity."""
    employee_id: int
    department_id: Optional[int]
    role: Optional[str]
    capabilities: FrozenSet[str] = field(default_factory=frozenset)
    scope: str = SCOPE_SELF

    @classmethod
    def for_employee(cls, emp: Employee) -> "Principal":
        role = emp.role_name
        return cls(
            employee_id=emp.id,
            department_id=emp.department_id,
            role=role,
            capabilities=ROLE_CAPABILITIES.get(role, frozenset()),
            scope=ROLE_SCOPES.get(role, SCOPE_SELF),
        )

    def can(self, capability: str) -> bool:
        return any(_wildcard_match(c, capability) for c in self.capabilities)

    def can_any(self, capabilities: Iterable[str]) -> bool:
        caps = list(capabilities)
        if not caps:
            return True
        return any(self.can(c) for c in caps)

    # ---- visibility ----

    def sees(self, emp: Employee) -> bool:
        if emp is None:
            return False
        if self.scope == SCOPE_ALL:
            return True
        if emp.id == self.employee_id:
            return True
        if self.scope == SCOPE_DEPARTMENT:
            return emp.department_id == self.department_id
        if self.scope == SCOPE_TEAM:
            return emp.manager_id == self.employee_id
        return False

    def scope_filter(self):
        """SQL criterion on Employee limiting rows to what this principal may see (None = no limit)."""
        if self.scope == SCOPE_ALL:
            return None
        if self.scope == SCOPE_DEPARTMENT:
            return Employee.department_id == self.department_id
        if self.scope == SCOPE_TEAM:
            return db.or_(Employee.id == self.employee_id, Employee.manager_id == self.employee_id)
        return Employee.id == self.employee_id


def apply_employee_scope(query, principal: Principal):
    """Restrict a query that already joins/selects Employee."""
    crit = principal.scope_filter()
    return query if crit is None else query.filter(crit)


def ensure_can_view(principal: Principal, emp: Employee, message: str = "Not allowed to access this employee's data"):
    if not principal.sees(emp):
        raise Forbidden(message)


def load_principal(employee_id) -> Optional[Principal]:
    emp = db.session.get(Employee, int(employee_id)) if employee_id else None
    if not emp or not emp.is_active:
        return None
    return Principal.for_employee(emp)


def current_principal() -> Optional[Principal]:
    """Principal for the current JWT identity; cached on flask.g per identity."""
    identity = get_jwt_identity()
    cached = g.get("principal")
    if cached is None or str(cached.employee_id) != str(identity):
        g.principal = load_principal(identity)
    return g.principal


# ---------- decorators ----------

def requires_caps(*caps: str):
    """
    Require a valid JWT for an active employee holding ANY of the capabilities.
    With no capabilities listed only authentication is enforced.
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            principal = current_principal()
            if principal is None:
                return fail("Unauthorized", status=401)
            if not principal.can_any(caps):
                return fail("Forbidden", status=403, code="FORBIDDEN")
            return fn(*args, **kwargs)
        return inner
    return outer
