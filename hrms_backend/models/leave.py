from datetime import datetime

from hrms_backend.extensions import db


class LeaveType:
    CASUAL = "CASUAL"
    SICK = "SICK"
    ANNUAL = "ANNUAL"
    MATERNITY = "MATERNITY"
    PATERNITY = "PATERNITY"
    OTHER = "OTHER"

    ALL = (CASUAL, SICK, ANNUAL, MATERNITY, PATERNITY, OTHER)
    # only these are limited by the yearly entitlement
    BALANCE_TRACKED = (CASUAL, SICK, ANNUAL)


class LeaveStatus:
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    ALL = (PENDING, APPROVED, REJECTED)
    ACTIVE = (PENDING, APPROVED)


class LeaveBalance(db.Model):
    __tablename__ = "leave_balances"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)

    casual_leaves = db.Column(db.Integer, nullable=False, default=12)
    sick_leaves = db.Column(db.Integer, nullable=False, default=12)
    annual_leaves = db.Column(db.Integer, nullable=False, default=21)
    used_casual = db.Column(db.Integer, nullable=False, default=0)
    used_sick = db.Column(db.Integer, nullable=False, default=0)
    used_annual = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_id", "year", name="uq_leave_balance_employee_year"),
    )

    # leave type -> (entitlement column, used column)
    COLUMNS = {
        LeaveType.CASUAL: ("casual_leaves", "used_casual"),
        LeaveType.SICK: ("sick_leaves", "used_sick"),
        LeaveType.ANNUAL: ("annual_leaves", "used_annual"),
    }

    def available(self, leave_type: str):
        cols = self.COLUMNS.get(leave_type)
        if not cols:
            return None
        entitled, used = cols
        return (getattr(self, entitled) or 0) - (getattr(self, used) or 0)

    def to_dict(self):
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "year": self.year,
            "casual_leaves": self.casual_leaves,
            "sick_leaves": self.sick_leaves,
            "annual_leaves": self.annual_leaves,
            "used_casual": self.used_casual,
            "used_sick": self.used_sick,
            "used_annual": self.used_annual,
            "casual_remaining": self.available(LeaveType.CASUAL),
            "sick_remaining": self.available(LeaveType.SICK),
            "annual_remaining": self.available(LeaveType.ANNUAL),
        }


class LeaveRequest(db.Model):
    __tablename__ = "leave_requests"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type = db.Column(db.String(16), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    total_days = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=LeaveStatus.PENDING)

    approved_by = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    approval_date = db.Column(db.DateTime)
    approval_notes = db.Column(db.Text)

    applied_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint("end_date >= start_date", name="ck_leave_dates"),
        db.Index("ix_leave_employee_status", "employee_id", "status"),
    )

    employee = db.relationship("Employee", foreign_keys=[employee_id], lazy="joined")
    approver = db.relationship("Employee", foreign_keys=[approved_by], lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "employee": self.employee.brief() if self.employee else None,
            "leave_type": self.leave_type,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_days": self.total_days,
            "reason": self.reason,
            "status": self.status,
            "approved_by": self.approver.brief() if self.approver else None,
            "approval_date": self.approval_date.isoformat() if self.approval_date else None,
            "approval_notes": self.approval_notes,
            "applied_at": self.applied_at.isoformat() if self.applied_at else None,
        }
