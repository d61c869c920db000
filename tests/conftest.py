import os
from datetime import date, time

import pytest
from flask_jwt_extended import create_access_token

from hrms_backend import create_app
from hrms_backend.common.auth import Principal
from hrms_backend.extensions import db
from hrms_backend.models.employee import Employee
from hrms_backend.models.master import Role, Department, AttendanceSettings, ROLE_NAMES
from hrms_backend.models.payroll import SalaryDetail

PASSWORD = "secret123"


@pytest.fixture(scope="function")
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    app.config["TESTING"] = True
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    return app.test_client()


def _employee(code, role, dept, manager=None, doj=date(2023, 1, 2)):
    e = Employee(
        code=code,
        email=f"{code.lower()}@test.local",
        full_name=f"{code.title()} Person",
        role_id=role.id,
        department_id=dept.id,
        manager_id=manager.id if manager else None,
        date_of_joining=doj,
    )
    e.set_password(PASSWORD)
    db.session.add(e)
    db.session.flush()
    return e


@pytest.fixture(scope="function")
def org(app):
    """
    Two departments and one employee per role:
      admin/hr in HR, head/lead/dev in Engineering (dev reports to lead), other in Sales.
    Returns a dict of ids.
    """
    roles = {}
    for level, name in enumerate(ROLE_NAMES, start=1):
        roles[name] = Role(name=name, level=level)
        db.session.add(roles[name])

    eng = Department(name="Engineering")
    hr = Department(name="HR")
    sales = Department(name="Sales")
    db.session.add_all([eng, hr, sales])
    db.session.flush()
    db.session.add(AttendanceSettings(
        department_id=eng.id, check_in_time=time(9, 0), check_out_time=time(18, 0),
        grace_period_mins=15, standard_work_hours=8,
    ))

    admin = _employee("ADM001", roles["ADMIN"], hr)
    hr_emp = _employee("HR001", roles["HR"], hr)
    head = _employee("HEAD001", roles["DEPARTMENT_HEAD"], eng)
    lead = _employee("LEAD001", roles["TEAM_LEAD"], eng, manager=head)
    dev = _employee("DEV001", roles["TECHNICAL_EXPERT"], eng, manager=lead)
    other = _employee("SAL001", roles["TECHNICAL_EXPERT"], sales)
    db.session.commit()

    return {
        "eng": eng.id, "hr_dept": hr.id, "sales": sales.id,
        "admin": admin.id, "hr": hr_emp.id, "head": head.id,
        "lead": lead.id, "dev": dev.id, "other": other.id,
    }


@pytest.fixture
def principal_of(app):
    def _make(employee_id) -> Principal:
        return Principal.for_employee(db.session.get(Employee, employee_id))
    return _make


@pytest.fixture
def add_salary(app):
    def _add(employee_id, basic=70000, effective_from=date(2024, 1, 1), effective_to=None, **kw):
        s = SalaryDetail(
            employee_id=employee_id, basic_salary=basic,
            effective_from=effective_from, effective_to=effective_to, **kw
        )
        db.session.add(s)
        db.session.commit()
        return s
    return _add


@pytest.fixture
def auth_headers(app):
    def _headers(employee_id):
        token = create_access_token(identity=str(employee_id))
        return {"Authorization": f"Bearer {token}"}
    return _headers
