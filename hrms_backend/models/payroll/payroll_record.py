from datetime import datetime

from hrms_backend.extensions import db


class PayrollStatus:
    DRAFT = "DRAFT"
    GENERATED = "GENERATED"
    SENT = "SENT"

    ALL = (DRAFT, GENERATED, SENT)


class PayrollRecord(db.Model):
    __tablename__ = "payroll_records"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    month = db.Column(db.String(7), nullable=False)  # YYYY-MM

    basic_salary = db.Column(db.Numeric(14, 2), default=0)
    hra = db.Column(db.Numeric(14, 2), default=0)
    fuel_allowance = db.Column(db.Numeric(14, 2), default=0)
    performance_incentive = db.Column(db.Numeric(14, 2), default=0)
    other_earnings = db.Column(db.Numeric(14, 2), default=0)

    pf_deduction = db.Column(db.Numeric(14, 2), default=0)
    pt_deduction = db.Column(db.Numeric(14, 2), default=0)
    other_deductions = db.Column(db.Numeric(14, 2), default=0)

    total_earnings = db.Column(db.Numeric(14, 2), default=0)
    total_deductions = db.Column(db.Numeric(14, 2), default=0)
    net_pay = db.Column(db.Numeric(14, 2), default=0)

    total_days = db.Column(db.Integer, default=0)
    days_present = db.Column(db.Integer, default=0)
    arrear_days = db.Column(db.Integer, default=0)
    lwp_days = db.Column(db.Integer, default=0)

    status = db.Column(db.String(16), nullable=False, default=PayrollStatus.DRAFT)
    generated_by = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="SET NULL"))
    generated_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_id", "month", name="uq_payroll_employee_month"),
        db.CheckConstraint("status in ('DRAFT','GENERATED','SENT')", name="ck_payroll_status"),
        db.Index("ix_payroll_month", "month"),
    )

    employee = db.relationship("Employee", foreign_keys=[employee_id], lazy="joined")
    generator = db.relationship("Employee", foreign_keys=[generated_by], lazy="joined")

    MONEY_FIELDS = (
        "basic_salary", "hra", "fuel_allowance", "performance_incentive", "other_earnings",
        "pf_deduction", "pt_deduction", "other_deductions",
        "total_earnings", "total_deductions", "net_pay",
    )
    DAY_FIELDS = ("total_days", "days_present", "arrear_days", "lwp_days")

    @property
    def is_sent(self) -> bool:
        return self.status == PayrollStatus.SENT

    def to_dict(self):
        out = {
            "id": self.id,
            "employee_id": self.employee_id,
            "month": self.month,
            "status": self.status,
            "generated_by": self.generator.brief() if self.generator else None,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }
        emp = self.employee
        if emp:
            out["employee"] = {
                **emp.brief(),
                "email": emp.email,
                "department": emp.department.name if emp.department else None,
                "role": emp.role_name,
            }
        for f in self.MONEY_FIELDS:
            v = getattr(self, f)
            out[f] = float(v) if v is not None else 0.0
        for f in self.DAY_FIELDS:
            out[f] = getattr(self, f) or 0
        return out
