from datetime import date, datetime, timedelta
from io import BytesIO

import pytest
from openpyxl import load_workbook

from hrms_backend.common.errors import Conflict, ValidationFailed
from hrms_backend.extensions import db
from hrms_backend.models.attendance import AttendanceRecord
from hrms_backend.models.payroll import PayrollRecord, PayrollStatus
from hrms_backend.services import payroll_service as payroll


def _full_month(employee_id, year=2024, month=5, days=31):
    for d in range(1, days + 1):
        day = date(year, month, d)
        db.session.add(AttendanceRecord(
            employee_id=employee_id, date=day, status="ON_TIME",
            check_in_time=datetime.combine(day, datetime.min.time()) + timedelta(hours=9),
            check_out_time=datetime.combine(day, datetime.min.time()) + timedelta(hours=18),
            work_hours=9,
        ))
    db.session.commit()


@pytest.fixture
def salaried(org, add_salary):
    for key in ("admin", "hr", "head", "lead", "dev"):
        add_salary(org[key])
    return org


def test_generate_collects_missing_salary_errors(salaried):
    _full_month(salaried["dev"])
    result = payroll.generate_payroll_for_month("2024-05")

    assert result["success_count"] == 5
    assert result["errors"] == ["No salary details found for employee SAL001"]

    dev = PayrollRecord.query.filter_by(employee_id=salaried["dev"], month="2024-05").one()
    assert dev.status == PayrollStatus.GENERATED
    assert float(dev.net_pay) == pytest.approx(95400)
    assert float(dev.performance_incentive) == 10000
    assert dev.days_present == 31
    assert dev.lwp_days == 0


def test_no_attendance_means_full_absence(salaried):
    result = payroll.generate_payroll_for_month("2024-05", employee_ids=[salaried["lead"]])
    assert result["success_count"] == 1
    rec = result["records"][0]
    assert rec.lwp_days == 31
    assert float(rec.performance_incentive) == 0
    assert float(rec.net_pay) == 0


def test_existing_payroll_blocks_the_whole_batch(salaried):
    payroll.generate_payroll_for_month("2024-05", employee_ids=[salaried["dev"]])
    with pytest.raises(Conflict) as exc:
        payroll.generate_payroll_for_month("2024-05")
    assert exc.value.code == "PAYROLL_EXISTS"
    assert PayrollRecord.query.filter_by(month="2024-05").count() == 1


def test_department_filter(salaried):
    result = payroll.generate_payroll_for_month("2024-05", department_id=salaried["eng"])
    assert {r.employee_id for r in result["records"]} == {salaried["head"], salaried["lead"], salaried["dev"]}
    assert result["errors"] == []


def test_month_format_is_validated(salaried):
    for bad in ("2024-5", "24-05", "2024-13", ""):
        with pytest.raises(ValidationFailed):
            payroll.generate_payroll_for_month(bad)


def test_effective_dated_salary(org, add_salary):
    add_salary(org["dev"], basic=50000, effective_from=date(2023, 1, 1), effective_to=date(2024, 3, 31))
    add_salary(org["dev"], basic=70000, effective_from=date(2024, 4, 1))

    assert float(payroll.salary_for_month(org["dev"], "2024-03").basic_salary) == 50000
    assert float(payroll.salary_for_month(org["dev"], "2024-05").basic_salary) == 70000
    assert payroll.salary_for_month(org["dev"], "2022-12") is None


def test_sent_records_are_immutable(salaried):
    rec = payroll.generate_payroll_for_month("2024-05", employee_ids=[salaried["dev"]])["records"][0]
    payroll.mark_as_sent(rec.id)

    for call in (
        lambda: payroll.update_payroll(rec.id, {"other_earnings": 100}),
        lambda: payroll.delete_payroll(rec.id),
        lambda: payroll.regenerate_payroll(rec.id),
    ):
        with pytest.raises(Conflict) as exc:
            call()
        assert exc.value.code == "PAYROLL_SENT"


def test_bulk_action_skips_sent(salaried):
    recs = payroll.generate_payroll_for_month("2024-05", department_id=salaried["eng"])["records"]
    ids = [r.id for r in recs]
    payroll.mark_as_sent(ids[0])

    out = payroll.bulk_action(ids, PayrollStatus.DRAFT)
    assert out == {"updated": 2, "total": 3}
    db.session.expire_all()
    assert db.session.get(PayrollRecord, ids[0]).status == PayrollStatus.SENT

    with pytest.raises(ValidationFailed):
        payroll.bulk_action(ids, "ARCHIVED")


def test_manual_create_and_regenerate(salaried):
    rec = payroll.create_payroll({"employee_id": salaried["dev"], "month": "2024-06", "basic_salary": 1000})
    assert rec.status == PayrollStatus.DRAFT
    with pytest.raises(Conflict):
        payroll.create_payroll({"employee_id": salaried["dev"], "month": "2024-06", "basic_salary": 1000})

    rec = payroll.regenerate_payroll(rec.id, generated_by=salaried["hr"])
    assert rec.status == PayrollStatus.GENERATED
    assert float(rec.basic_salary) == 70000


def test_summary_and_validation_report(salaried):
    _full_month(salaried["dev"])
    payroll.generate_payroll_for_month("2024-05", department_id=salaried["eng"])

    summary = payroll.payroll_summary("2024-05")
    assert summary["total_records"] == 3
    assert summary["total_net_pay"] == pytest.approx(95400)

    report = payroll.validate_payroll_data("2024-05")
    assert report["summary"]["total_records"] == 3
    # head and lead have no attendance, so absence wipes out their pay
    assert report["is_valid"] is False
    assert report["summary"]["error_count"] == 2


def test_register_export_has_row_per_record(salaried):
    payroll.generate_payroll_for_month("2024-05", department_id=salaried["eng"])
    wb = load_workbook(BytesIO(payroll.export_payroll_register("2024-05")))
    ws = wb.active
    assert ws.max_row == 5  # header, 3 records, totals
    assert ws.cell(row=1, column=1).value == payroll.REGISTER_HEADERS[0]


def test_duplicate_inserted_mid_batch_becomes_error_string(salaried, monkeypatch):
    lookup = payroll.salary_for_month

    def racing_lookup(employee_id, month):
        # another run writes this employee's record after the batch pre-check passed
        if employee_id == salaried["dev"]:
            db.session.add(PayrollRecord(employee_id=employee_id, month=month, status=PayrollStatus.DRAFT))
            db.session.flush()
        return lookup(employee_id, month)

    monkeypatch.setattr(payroll, "salary_for_month", racing_lookup)
    result = payroll.generate_payroll_for_month("2024-05", employee_ids=[salaried["lead"], salaried["dev"]])

    assert result["success_count"] == 1
    assert [r.employee_id for r in result["records"]] == [salaried["lead"]]
    assert result["errors"] == [
        "Error generating payroll for DEV001: payroll already exists for 2024-05"
    ]
    dev = PayrollRecord.query.filter_by(employee_id=salaried["dev"], month="2024-05").one()
    assert dev.status == PayrollStatus.DRAFT
