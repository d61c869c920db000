from types import SimpleNamespace

import pytest

from hrms_backend.services.attendance_engine import MonthlyTotals
from hrms_backend.services.payroll_service import calculate_payroll


def _salary(basic=70000, hra=None, fuel=None, pf=None, pt=None):
    return SimpleNamespace(basic_salary=basic, hra=hra, fuel_allowance=fuel, pf_deduction=pf, pt_deduction=pt)


def _totals(total, present):
    return MonthlyTotals(total_days=total, present_days=present, absent_days=total - present,
                         late_days=0, total_work_hours=0.0)


def test_full_attendance_defaults():
    out = calculate_payroll(_salary(), _totals(31, 31))
    assert out["hra"] == pytest.approx(21000)
    assert out["fuel_allowance"] == 3000
    assert out["performance_incentive"] == 10000
    assert out["pf_deduction"] == pytest.approx(8400)
    assert out["pt_deduction"] == 200
    assert out["other_deductions"] == 0
    assert out["total_earnings"] == pytest.approx(104000)
    assert out["total_deductions"] == pytest.approx(8600)
    assert out["net_pay"] == pytest.approx(95400)
    assert out["other_earnings"] == 0
    assert out["arrear_days"] == 0
    assert out["lwp_days"] == 0
    assert out["total_days"] == 31
    assert out["days_present"] == 31


def test_incentive_tiers():
    assert calculate_payroll(_salary(), _totals(20, 19))["performance_incentive"] == 10000  # 95%
    assert calculate_payroll(_salary(), _totals(10, 9))["performance_incentive"] == 5000    # 90%
    assert calculate_payroll(_salary(), _totals(30, 26))["performance_incentive"] == 0      # 86.7%


def test_absence_deduction_uses_22_day_rate():
    out = calculate_payroll(_salary(basic=66000), _totals(30, 28))
    assert out["other_deductions"] == pytest.approx(2 * 3000)
    assert out["lwp_days"] == 2
    assert out["performance_incentive"] == 5000


def test_overrides_take_precedence():
    out = calculate_payroll(_salary(hra=20000, fuel=5000, pf=3600, pt=150), _totals(31, 31))
    assert out["hra"] == 20000
    assert out["fuel_allowance"] == 5000
    assert out["pf_deduction"] == 3600
    assert out["pt_deduction"] == 150


def test_zero_override_falls_back_to_default():
    out = calculate_payroll(_salary(hra=0, pf=0), _totals(31, 31))
    assert out["hra"] == pytest.approx(21000)
    assert out["pf_deduction"] == pytest.approx(8400)


def test_net_pay_never_negative():
    out = calculate_payroll(_salary(basic=22000), _totals(30, 0))
    assert out["total_deductions"] > out["total_earnings"]
    assert out["net_pay"] == 0
