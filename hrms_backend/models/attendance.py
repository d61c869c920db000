# hrms_backend/models/attendance.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, Any

from hrms_backend.extensions import db


class AttendanceStatus:
    ON_TIME = "ON_TIME"
    LATE = "LATE"
    EARLY_OUT = "EARLY_OUT"
    ABSENT = "ABSENT"
    HALF_DAY = "HALF_DAY"

    ALL = (ON_TIME, LATE, EARLY_OUT, ABSENT, HALF_DAY)


class AttendanceRecord(db.Model):
    """
    One row per employee per calendar date.

    Created on check-in and completed on check-out; `status` is derived by
    services.attendance_engine and `work_hours` is filled on check-out.
    """

    __tablename__ = "attendance_records"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date = db.Column(db.Date, nullable=False)

    check_in_time = db.Column(db.DateTime, nullable=True)
    check_out_time = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=AttendanceStatus.ON_TIME)
    work_hours = db.Column(db.Numeric(6, 2), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    employee = db.relationship("Employee", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("employee_id", "date", name="uq_attendance_employee_date"),
        db.CheckConstraint(
            "status in ('ON_TIME','LATE','EARLY_OUT','ABSENT','HALF_DAY')",
            name="ck_attendance_status",
        ),
        db.Index("ix_attendance_date", "date"),
    )

    def to_dict(self) -> Dict[str, Any]:
        emp = self.employee
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "employee": emp.brief() if emp else None,
            "date": self.date.isoformat(),
            "check_in_time": self.check_in_time.isoformat() if self.check_in_time else None,
            "check_out_time": self.check_out_time.isoformat() if self.check_out_time else None,
            "status": self.status,
            "work_hours": float(self.work_hours) if self.work_hours is not None else None,
            "notes": self.notes,
        }
