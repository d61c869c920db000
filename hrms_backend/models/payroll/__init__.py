# hrms_backend/models/payroll/__init__.py
# salary details first; payroll records reference employees only.
from hrms_backend.extensions import db  # noqa

from .salary_detail import SalaryDetail
from .payroll_record import PayrollRecord, PayrollStatus

__all__ = ["SalaryDetail", "PayrollRecord", "PayrollStatus"]
