import pytest

from hrms_backend.common.errors import Conflict, Forbidden, ValidationFailed
from hrms_backend.models.leave import LeaveBalance
from hrms_backend.models.master import Role
from hrms_backend.services import employee_service as employees


def _payload(org, **kw):
    role = Role.query.filter_by(name="TECHNICAL_EXPERT").one()
    data = {
        "code": "DEV002",
        "full_name": "New Developer",
        "email": "New.Dev@Test.local",
        "password": "changeme1",
        "role_id": role.id,
        "department_id": org["eng"],
        "manager_id": org["lead"],
        "date_of_joining": "2024-04-01",
        "salary_detail": {"basic_salary": 70000},
    }
    data.update(kw)
    return data


def test_create_employee_sets_defaults(org, principal_of):
    emp = employees.create_employee(_payload(org), creator_id=org["hr"])
    assert emp.email == "new.dev@test.local"
    assert emp.check_password("changeme1")

    out = employees.get_employee(emp.id, principal_of(org["hr"]))
    sal = out["salary_detail"]
    assert sal["basic_salary"] == 70000
    assert sal["hra"] == 21000
    assert sal["fuel_allowance"] == 9002
    assert sal["pf_deduction"] == 3600
    assert sal["pt_deduction"] == 200
    assert sal["effective_from"] == "2024-04-01"

    assert LeaveBalance.query.filter_by(employee_id=emp.id).count() == 1


def test_create_requires_fields_and_unique(org):
    with pytest.raises(ValidationFailed) as exc:
        employees.create_employee({"code": "X"})
    assert exc.value.message.startswith("Missing required fields:")

    with pytest.raises(Conflict) as exc:
        employees.create_employee(_payload(org, email="dev001@test.local"))
    assert exc.value.code == "EMPLOYEE_EXISTS"


def test_manager_cycle_is_rejected(org, principal_of):
    hr = principal_of(org["hr"])
    # head -> lead -> dev; making dev manage head closes the loop
    with pytest.raises(ValidationFailed):
        employees.update_employee(org["head"], {"manager_id": org["dev"]}, hr)
    with pytest.raises(ValidationFailed):
        employees.update_employee(org["dev"], {"manager_id": org["dev"]}, hr)

    emp = employees.update_employee(org["dev"], {"manager_id": org["head"]}, hr)
    assert emp.manager_id == org["head"]


def test_department_head_cannot_change_restricted_fields(org, principal_of):
    head = principal_of(org["head"])
    with pytest.raises(Forbidden):
        employees.update_employee(org["dev"], {"department_id": org["sales"]}, head)
    with pytest.raises(Forbidden):
        employees.update_employee(org["other"], {"phone": "9999999999"}, head)

    emp = employees.update_employee(org["dev"], {"phone": "9999999999"}, head)
    assert emp.phone == "9999999999"


def test_list_scopes(org, principal_of):
    assert len(employees.list_employees(principal_of(org["admin"]))) == 6
    assert {e.id for e in employees.list_employees(principal_of(org["head"]))} == {
        org["head"], org["lead"], org["dev"],
    }
    assert [e.id for e in employees.list_employees(principal_of(org["lead"]))] == [org["dev"]]
    assert [e.id for e in employees.list_employees(principal_of(org["dev"]))] == [org["dev"]]


def test_deactivate(org):
    with pytest.raises(Forbidden):
        employees.deactivate_employee(org["hr"], org["hr"])
    emp = employees.deactivate_employee(org["dev"], org["hr"])
    assert emp.is_active is False


def test_managers_by_department(org):
    rows = employees.managers_by_department(org["eng"])
    assert {r["code"] for r in rows} == {"HEAD001", "LEAD001"}
