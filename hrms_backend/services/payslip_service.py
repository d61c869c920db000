from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import List, Dict, Any, Optional

from flask import current_app, render_template

from hrms_backend.common.auth import Principal
from hrms_backend.models.payroll import PayrollRecord
from hrms_backend.services.payroll_service import current_salary, get_payroll

DEFAULT_COMPANY_NAME = "JHEx Consulting LLP"
DEFAULT_COMPANY_ADDRESS = (
    "FF-Block-A-103, Ganesh Meridian, Opp High Court, SG Highway, Ghatlodiya Ahmedabad – (380061)"
)
DEFAULT_BANK = "State Bank of India"
NA = "N/A"

_ONES = ["", "ONE", "TWO", "THREE", "FOUR", "FIVE", "SIX", "SEVEN", "EIGHT", "NINE"]
_TEENS = ["TEN", "ELEVEN", "TWELVE", "THIRTEEN", "FOURTEEN", "FIFTEEN",
          "SIXTEEN", "SEVENTEEN", "EIGHTEEN", "NINETEEN"]
_TENS = ["", "", "TWENTY", "THIRTY", "FORTY", "FIFTY", "SIXTY", "SEVENTY", "EIGHTY", "NINETY"]

# (divisor, word), largest first; Indian grouping
_SCALES = ((10_000_000, "CRORE"), (100_000, "LAKH"), (1000, "THOUSAND"))


def _below_thousand(n: int) -> str:
    parts = []
    if n >= 100:
        parts.append(f"{_ONES[n // 100]} HUNDRED")
        n %= 100
    if n >= 20:
        parts.append(_TENS[n // 10] + (f" {_ONES[n % 10]}" if n % 10 else ""))
    elif n >= 10:
        parts.append(_TEENS[n - 10])
    elif n > 0:
        parts.append(_ONES[n])
    return " ".join(parts)


def number_to_words(amount) -> str:
    """
    Uppercase English words for an amount in Indian numbering, e.g.
    70000 -> "SEVENTY THOUSAND", 125000 -> "ONE LAKH TWENTY FIVE THOUSAND".
    Fractions are dropped.
    """
    n = int(amount or 0)
    if n <= 0:
        return "ZERO"
    for divisor, word in _SCALES:
        if n >= divisor:
            head, rest = divmod(n, divisor)
            head_words = _below_thousand(head) if head < 1000 else number_to_words(head)
            return f"{head_words} {word}" + (f" {number_to_words(rest)}" if rest else "")
    return _below_thousand(n)


def month_label(month: str) -> str:
    """'2024-05' -> 'May 2024'."""
    return datetime.strptime(f"{month}-01", "%Y-%m-%d").strftime("%B %Y")


@dataclass
class PayslipLine:
    label: str
    amount: float
    kind: str  # earning | deduction


@dataclass
class PayslipDTO:
    payroll_id: int
    month: str
    month_label: str
    company: Dict[str, Any]
    employee: Dict[str, Any]
    attendance: Dict[str, Any]
    lines: List[PayslipLine] = field(default_factory=list)
    totals: Dict[str, Any] = field(default_factory=dict)
    amount_in_words: str = ""


class PayslipService:
    def build_payslip(self, rec: PayrollRecord) -> dict:
        """Snapshot of everything the payslip shows, as a plain dict."""
        emp = rec.employee
        salary = current_salary(emp.id)

        def _f(v):
            return float(v) if v is not None else 0.0

        def _sal(attr, default=NA):
            v = getattr(salary, attr, None) if salary else None
            return v or default

        incentive = _f(rec.performance_incentive)
        other_ded = _f(rec.other_deductions)

        lines = [
            PayslipLine("Basic", _f(rec.basic_salary), "earning"),
            PayslipLine("HRA", _f(rec.hra), "earning"),
            PayslipLine("Fuel Allowance", _f(rec.fuel_allowance), "earning"),
            PayslipLine("PF", _f(rec.pf_deduction), "deduction"),
            PayslipLine("PT", _f(rec.pt_deduction), "deduction"),
        ]
        if incentive > 0:
            lines.append(PayslipLine("Performance Incentive", incentive, "earning"))
        if other_ded > 0:
            lines.append(PayslipLine("Other Deductions", other_ded, "deduction"))

        net = _f(rec.net_pay)
        dto = PayslipDTO(
            payroll_id=rec.id,
            month=rec.month,
            month_label=month_label(rec.month),
            company={
                "name": current_app.config.get("COMPANY_NAME", DEFAULT_COMPANY_NAME),
                "address": current_app.config.get("COMPANY_ADDRESS", DEFAULT_COMPANY_ADDRESS),
            },
            employee={
                "code": emp.code,
                "name": emp.full_name,
                "doj": emp.date_of_joining.strftime("%d/%m/%Y") if emp.date_of_joining else NA,
                "designation": emp.role_name or NA,
                "department": emp.department.name if emp.department else NA,
                "bank_name": _sal("bank_name", DEFAULT_BANK),
                "account_number": _sal("account_number"),
                "ifsc_code": _sal("ifsc_code"),
                "pan_number": _sal("pan_number"),
                "uan_number": _sal("uan_number"),
            },
            attendance={
                "total_days": rec.total_days or 0,
                "days_present": rec.days_present or 0,
                "arrear_days": rec.arrear_days or 0,
                "lwp_days": rec.lwp_days or 0,
            },
            lines=lines,
            totals={
                "total_earnings": _f(rec.total_earnings),
                "total_deductions": _f(rec.total_deductions),
                "net_pay": net,
            },
            amount_in_words=number_to_words(net),
        )
        return asdict(dto)

    def render_payslip_html(self, payslip: dict) -> str:
        return render_template("payroll/payslip.html", payslip=payslip)

    def get_payslip(self, payroll_id: int, principal: Optional[Principal] = None) -> dict:
        rec = get_payroll(payroll_id, principal)
        payslip = self.build_payslip(rec)
        return {
            "payslip_html": self.render_payslip_html(payslip),
            "payslip_url": f"/api/v1/payroll/{rec.id}/payslip.pdf",
            "payroll_record": rec.to_dict(),
            "payslip": payslip,
        }
