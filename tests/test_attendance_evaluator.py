from datetime import datetime, time
from types import SimpleNamespace

from hrms_backend.models.attendance import AttendanceStatus
from hrms_backend.models.master import AttendanceSettings
from hrms_backend.services.attendance_engine import (
    evaluate_check_in, evaluate_check_out, aggregate_month,
)


def _settings():
    return AttendanceSettings(
        check_in_time=time(9, 0), check_out_time=time(18, 0),
        grace_period_mins=15, standard_work_hours=8,
    )


def test_check_in_without_settings_is_on_time():
    assert evaluate_check_in(datetime(2024, 5, 6, 11, 0), None) == AttendanceStatus.ON_TIME


def test_check_in_at_grace_boundary_is_on_time():
    assert evaluate_check_in(datetime(2024, 5, 6, 9, 15, 0), _settings()) == AttendanceStatus.ON_TIME


def test_check_in_one_second_after_grace_is_late():
    assert evaluate_check_in(datetime(2024, 5, 6, 9, 15, 1), _settings()) == AttendanceStatus.LATE


def test_check_in_uses_check_in_date_not_settings_date():
    # an early punch on any day is on time
    assert evaluate_check_in(datetime(2031, 12, 31, 8, 30), _settings()) == AttendanceStatus.ON_TIME


def test_short_day_before_end_time_is_early_out():
    hours, status = evaluate_check_out(
        datetime(2024, 5, 6, 9, 0), datetime(2024, 5, 6, 16, 0), AttendanceStatus.ON_TIME, _settings()
    )
    assert hours == 7.0
    assert status == AttendanceStatus.EARLY_OUT


def test_full_hours_before_end_time_keeps_status():
    hours, status = evaluate_check_out(
        datetime(2024, 5, 6, 7, 0), datetime(2024, 5, 6, 17, 0), AttendanceStatus.LATE, _settings()
    )
    assert hours == 10.0
    assert status == AttendanceStatus.LATE


def test_short_day_after_end_time_keeps_status():
    hours, status = evaluate_check_out(
        datetime(2024, 5, 6, 13, 30), datetime(2024, 5, 6, 18, 30), AttendanceStatus.LATE, _settings()
    )
    assert hours == 5.0
    assert status == AttendanceStatus.LATE


def test_check_out_without_settings_only_computes_hours():
    hours, status = evaluate_check_out(
        datetime(2024, 5, 6, 9, 0), datetime(2024, 5, 6, 10, 30), AttendanceStatus.ON_TIME, None
    )
    assert hours == 1.5
    assert status == AttendanceStatus.ON_TIME


def test_check_out_without_check_in():
    assert evaluate_check_out(None, datetime(2024, 5, 6, 18, 0), "ON_TIME", _settings()) == (0.0, "ON_TIME")


# ---- monthly aggregation ----

def _rec(check_in=True, status="ON_TIME", hours=8):
    return SimpleNamespace(
        check_in_time=datetime(2024, 5, 1, 9, 0) if check_in else None,
        status=status,
        work_hours=hours,
    )


def test_aggregate_empty_month():
    t = aggregate_month([], 2024, 2)
    assert t.total_days == 29
    assert t.present_days == 0
    assert t.absent_days == 29
    assert t.late_days == 0
    assert t.total_work_hours == 0


def test_aggregate_counts_present_late_and_hours():
    rows = [
        _rec(),
        _rec(status="LATE", hours=7.5),
        _rec(status="EARLY_OUT", hours=4),
        _rec(check_in=False, status="ABSENT", hours=None),
    ]
    t = aggregate_month(rows, 2024, 5)
    assert t.total_days == 31
    assert t.present_days == 3
    assert t.absent_days == 28
    assert t.late_days == 1
    assert t.total_work_hours == 19.5
