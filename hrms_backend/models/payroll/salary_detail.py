from datetime import datetime

from hrms_backend.extensions import db


class SalaryDetail(db.Model):
    """
    Effective-dated salary structure for one employee.

    The current row has effective_to NULL; payroll generation picks the row
    covering the first day of the month being processed.
    """

    __tablename__ = "salary_details"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)

    basic_salary = db.Column(db.Numeric(14, 2), nullable=False)
    hra = db.Column(db.Numeric(14, 2))
    fuel_allowance = db.Column(db.Numeric(14, 2))
    other_allowances = db.Column(db.Numeric(14, 2), default=0)
    pf_deduction = db.Column(db.Numeric(14, 2))
    pt_deduction = db.Column(db.Numeric(14, 2))
    other_deductions = db.Column(db.Numeric(14, 2), default=0)

    bank_name = db.Column(db.String(120))
    account_number = db.Column(db.String(40))
    ifsc_code = db.Column(db.String(20))
    pan_number = db.Column(db.String(20))
    uan_number = db.Column(db.String(20))

    effective_from = db.Column(db.Date, nullable=False)
    effective_to = db.Column(db.Date)

    created_by = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_salary_employee_effective", "employee_id", "effective_from"),
    )

    employee = db.relationship("Employee", foreign_keys=[employee_id], lazy="joined")

    def to_dict(self):
        def _f(v):
            return float(v) if v is not None else None

        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "employee": self.employee.brief() if self.employee else None,
            "basic_salary": _f(self.basic_salary),
            "hra": _f(self.hra),
            "fuel_allowance": _f(self.fuel_allowance),
            "other_allowances": _f(self.other_allowances),
            "pf_deduction": _f(self.pf_deduction),
            "pt_deduction": _f(self.pt_deduction),
            "other_deductions": _f(self.other_deductions),
            "bank_name": self.bank_name,
            "account_number": self.account_number,
            "ifsc_code": self.ifsc_code,
            "pan_number": self.pan_number,
            "uan_number": self.uan_number,
            "effective_from": self.effective_from.isoformat() if self.effective_from else None,
            "effective_to": self.effective_to.isoformat() if self.effective_to else None,
        }
