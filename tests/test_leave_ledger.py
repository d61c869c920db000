from datetime import date, timedelta

import pytest

from hrms_backend.common.errors import Conflict, Forbidden, ValidationFailed
from hrms_backend.models.leave import LeaveStatus
from hrms_backend.services import leave_service as leaves


REASON = "Family function out of town"


def _day(offset):
    return date.today() + timedelta(days=offset)


def test_total_days_is_inclusive():
    assert leaves.total_days(date(2024, 6, 10), date(2024, 6, 12)) == 3
    assert leaves.total_days(date(2024, 6, 10), date(2024, 6, 10)) == 1


def test_apply_creates_pending_request(org):
    req = leaves.apply_for_leave(org["dev"], "CASUAL", _day(10), _day(12), REASON)
    assert req.status == LeaveStatus.PENDING
    assert req.total_days == 3

    bal = leaves.get_leave_balance(org["dev"])
    assert bal["casual_remaining"] == 12  # nothing consumed until approval


def test_apply_validation(org):
    with pytest.raises(ValidationFailed):
        leaves.apply_for_leave(org["dev"], "VACATION", _day(10), _day(12), REASON)
    with pytest.raises(ValidationFailed):
        leaves.apply_for_leave(org["dev"], "CASUAL", _day(10), _day(12), "too short")
    with pytest.raises(ValidationFailed):
        leaves.apply_for_leave(org["dev"], "CASUAL", _day(-1), _day(2), REASON)
    with pytest.raises(ValidationFailed):
        leaves.apply_for_leave(org["dev"], "CASUAL", _day(12), _day(10), REASON)


def test_insufficient_balance_message(org):
    with pytest.raises(ValidationFailed) as exc:
        leaves.apply_for_leave(org["dev"], "ANNUAL", _day(1), _day(22), REASON)
    assert exc.value.message == "Insufficient leave balance. Available: 21 days, Requested: 22 days"


def test_untracked_types_skip_balance(org):
    req = leaves.apply_for_leave(org["dev"], "MATERNITY", _day(1), _day(90), REASON)
    assert req.total_days == 90


def test_overlap_with_active_request_conflicts(org, principal_of):
    first = leaves.apply_for_leave(org["dev"], "CASUAL", _day(10), _day(12), REASON)
    with pytest.raises(Conflict) as exc:
        leaves.apply_for_leave(org["dev"], "SICK", _day(12), _day(14), REASON)
    assert exc.value.code == "LEAVE_OVERLAP"

    # rejected requests no longer block the period
    leaves.approve_leave(first.id, "REJECTED", principal_of(org["hr"]))
    again = leaves.apply_for_leave(org["dev"], "SICK", _day(12), _day(14), REASON)
    assert again.id != first.id


def test_approve_consumes_balance(org, principal_of):
    req = leaves.apply_for_leave(org["dev"], "CASUAL", _day(10), _day(12), REASON)
    out = leaves.approve_leave(req.id, "APPROVED", principal_of(org["hr"]), notes="enjoy")
    assert out.status == LeaveStatus.APPROVED
    assert out.approved_by == org["hr"]
    assert out.approval_date is not None

    bal = leaves.get_leave_balance(org["dev"])
    assert bal["used_casual"] == 3
    assert bal["casual_remaining"] == 9
    assert bal["used_sick"] == 0
    assert bal["used_annual"] == 0

    with pytest.raises(Conflict) as exc:
        leaves.approve_leave(req.id, "REJECTED", principal_of(org["hr"]))
    assert exc.value.code == "NOT_PENDING"


@pytest.mark.parametrize("leave_type,used_key", [
    ("SICK", "used_sick"),
    ("ANNUAL", "used_annual"),
])
def test_approve_touches_only_matching_counter(org, principal_of, leave_type, used_key):
    req = leaves.apply_for_leave(org["dev"], leave_type, _day(5), _day(6), REASON)
    leaves.approve_leave(req.id, "APPROVED", principal_of(org["hr"]))

    bal = leaves.get_leave_balance(org["dev"])
    used = {k: bal[k] for k in ("used_casual", "used_sick", "used_annual")}
    assert used.pop(used_key) == 2
    assert set(used.values()) == {0}


def test_approving_untracked_types_changes_no_counter(org, principal_of):
    for offset, leave_type in ((5, "MATERNITY"), (40, "PATERNITY"), (60, "OTHER")):
        req = leaves.apply_for_leave(org["dev"], leave_type, _day(offset), _day(offset + 2), REASON)
        assert leaves.approve_leave(req.id, "APPROVED", principal_of(org["hr"])).status == "APPROVED"

    bal = leaves.get_leave_balance(org["dev"])
    assert (bal["used_casual"], bal["used_sick"], bal["used_annual"]) == (0, 0, 0)


def test_approvers_cannot_decide_their_own_requests(org, principal_of):
    for key in ("lead", "head", "hr"):
        req = leaves.apply_for_leave(org[key], "CASUAL", _day(10), _day(10), REASON)
        with pytest.raises(Forbidden):
            leaves.approve_leave(req.id, "APPROVED", principal_of(org[key]))
        assert leaves.get_leave(req.id, principal_of(org[key])).status == LeaveStatus.PENDING

    assert leaves.get_leave_balance(org["lead"])["used_casual"] == 0


def test_reject_leaves_balance_untouched(org, principal_of):
    req = leaves.apply_for_leave(org["dev"], "SICK", _day(3), _day(4), REASON)
    leaves.approve_leave(req.id, "REJECTED", principal_of(org["hr"]))
    assert leaves.get_leave_balance(org["dev"])["used_sick"] == 0


def test_approval_permissions(org, principal_of):
    req = leaves.apply_for_leave(org["dev"], "CASUAL", _day(10), _day(10), REASON)
    other = leaves.apply_for_leave(org["other"], "CASUAL", _day(10), _day(10), REASON)

    with pytest.raises(Forbidden):
        leaves.approve_leave(req.id, "APPROVED", principal_of(org["other"]))
    with pytest.raises(Forbidden):
        leaves.approve_leave(other.id, "APPROVED", principal_of(org["lead"]))
    with pytest.raises(Forbidden):
        leaves.approve_leave(other.id, "APPROVED", principal_of(org["head"]))
    with pytest.raises(ValidationFailed):
        leaves.approve_leave(req.id, "MAYBE", principal_of(org["lead"]))

    assert leaves.approve_leave(req.id, "APPROVED", principal_of(org["lead"])).status == "APPROVED"


def test_owner_update_rules(org, principal_of):
    req = leaves.apply_for_leave(org["dev"], "CASUAL", _day(10), _day(12), REASON)

    with pytest.raises(Forbidden) as exc:
        leaves.update_leave(req.id, {"reason": REASON}, org["lead"])
    assert exc.value.message == "You can only update your own leave requests"

    # moving inside its own period does not count as overlap
    out = leaves.update_leave(req.id, {"end_date": _day(13).isoformat()}, org["dev"])
    assert out.total_days == 4

    leaves.approve_leave(req.id, "APPROVED", principal_of(org["hr"]))
    with pytest.raises(Conflict) as exc:
        leaves.update_leave(req.id, {"reason": REASON}, org["dev"])
    assert exc.value.message == "Only pending leave requests can be updated"


def test_delete_only_pending_own(org, principal_of):
    req = leaves.apply_for_leave(org["dev"], "CASUAL", _day(10), _day(10), REASON)
    with pytest.raises(Forbidden):
        leaves.delete_leave(req.id, org["other"])
    leaves.delete_leave(req.id, org["dev"])

    req = leaves.apply_for_leave(org["dev"], "CASUAL", _day(20), _day(20), REASON)
    leaves.approve_leave(req.id, "APPROVED", principal_of(org["hr"]))
    with pytest.raises(Conflict) as exc:
        leaves.delete_leave(req.id, org["dev"])
    assert exc.value.message == "Only pending leave requests can be deleted"


def test_list_is_scoped(org, principal_of):
    leaves.apply_for_leave(org["dev"], "CASUAL", _day(10), _day(10), REASON)
    leaves.apply_for_leave(org["other"], "CASUAL", _day(10), _day(10), REASON)

    assert len(leaves.list_leaves(principal_of(org["hr"]))) == 2
    assert [r.employee_id for r in leaves.list_leaves(principal_of(org["lead"]))] == [org["dev"]]
    assert [r.employee_id for r in leaves.list_leaves(principal_of(org["other"]))] == [org["other"]]
