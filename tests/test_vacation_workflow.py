import pytest
from datetime import date
from pathlib import Path
import json
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from schichtplan.data_manager import DataManager, DataValidationError, UnknownEmployeeError
from schichtplan.models import (
    Area,
    NotificationType,
    RequestStatus,
    RequestType,
    ShiftType,
    SpecialPlacement,
    SpecialStatus,
)
from schichtplan.storage import MemoryStore
from schichtplan.vacation import RequestAlreadyDecidedError, UnknownRequestError, VacationWorkflow

START = "2025-01-06"
MIDDLE = "2025-01-07"
END = "2025-01-08"


@pytest.fixture
def data_manager():
    return DataManager(MemoryStore(), today=date(2025, 1, 8))


@pytest.fixture
def workflow(data_manager):
    """Fixture for a VacationWorkflow over the demo roster."""
    return VacationWorkflow(data_manager)


def placement(workflow, date_str, emp_id="1"):
    return workflow.data_manager.schedule.get_placement(date_str, emp_id)


def test_submit_marks_every_day(workflow):
    """Tests that a submitted request marks every date of the range as requested."""
    request = workflow.submit_request("1", START, END)

    assert request.status == RequestStatus.PENDING
    assert request.type == RequestType.VACATION
    assert request.employee_name == "Max Mustermann"
    for date_str in (START, MIDDLE, END):
        assert placement(workflow, date_str) == SpecialPlacement(SpecialStatus.VACATION_REQUESTED)
    assert placement(workflow, "2025-01-09") is None
    assert workflow.pending_requests() == [request]


def test_submit_overwrites_existing_shift(workflow):
    """Tests that the request marker replaces an assignment in the range."""
    workflow.data_manager.schedule.set_assignment(MIDDLE, Area.HALLE, ShiftType.EARLY, "1", "Max Mustermann")

    workflow.submit_request("1", START, END)

    assert workflow.data_manager.schedule.get_assignments(MIDDLE, Area.HALLE, ShiftType.EARLY) == []
    assert placement(workflow, MIDDLE) == SpecialPlacement(SpecialStatus.VACATION_REQUESTED)


def test_submit_persists_request(workflow):
    """Tests that the request list is written to the store on submit."""
    request = workflow.submit_request("2", START, START, RequestType.OVERTIME)

    stored = json.loads(workflow.data_manager.store.values["vacation_requests"])
    assert stored == [request.to_dict()]
    assert stored[0]["type"] == "overtime"
    assert stored[0]["status"] == "pending"


def test_submit_rejects_reversed_range(workflow):
    """Tests that an end date before the start date is rejected without changes."""
    with pytest.raises(DataValidationError):
        workflow.submit_request("1", END, START)

    assert workflow.requests == []
    assert workflow.data_manager.schedule.days() == []


def test_submit_unknown_employee(workflow):
    with pytest.raises(UnknownEmployeeError):
        workflow.submit_request("999", START, END)


def test_approve_request(workflow):
    """Tests that approval rewrites the markers and notifies the employee once."""
    request = workflow.submit_request("1", START, END)

    notification = workflow.decide(request.id, approved=True)

    assert request.status == RequestStatus.APPROVED
    assert request.reviewed_by == "Admin"
    assert request.reviewed_at is not None
    for date_str in (START, MIDDLE, END):
        assert placement(workflow, date_str) == SpecialPlacement(SpecialStatus.VACATION_APPROVED)

    assert workflow.notifications_for("1") == [notification]
    assert notification.type == NotificationType.VACATION_APPROVED
    assert notification.message == "Ihr Urlaubsantrag vom 06.01.2025 bis 08.01.2025 wurde genehmigt."
    assert notification.date == date.today().isoformat()
    assert not notification.read


def test_reject_overtime_request(workflow):
    """Tests that rejecting an overtime request writes the rejected overtime marker."""
    request = workflow.submit_request("3", START, MIDDLE, RequestType.OVERTIME)

    notification = workflow.decide(request.id, approved=False)

    assert request.status == RequestStatus.REJECTED
    assert placement(workflow, START, "3") == SpecialPlacement(SpecialStatus.OVERTIME_REJECTED)
    assert notification.type == NotificationType.VACATION_REJECTED
    assert notification.message.endswith("wurde abgelehnt.")
    assert "Überstundenantrag" in notification.message


def test_request_is_decided_only_once(workflow):
    """Tests that a second decision raises and creates no further notification."""
    request = workflow.submit_request("1", START, END)
    workflow.decide(request.id, approved=True)

    with pytest.raises(RequestAlreadyDecidedError):
        workflow.decide(request.id, approved=False)

    assert request.status == RequestStatus.APPROVED
    assert len(workflow.notifications) == 1
    assert placement(workflow, START) == SpecialPlacement(SpecialStatus.VACATION_APPROVED)


def test_decide_unknown_request(workflow):
    with pytest.raises(UnknownRequestError):
        workflow.decide("missing", approved=True)


def test_decision_skips_cleared_days(workflow):
    """Tests that days cleared while the request was pending stay empty."""
    request = workflow.submit_request("1", START, END)
    workflow.data_manager.schedule.clear_placement(MIDDLE, "1")

    workflow.decide(request.id, approved=True)

    assert placement(workflow, MIDDLE) is None
    assert placement(workflow, END) == SpecialPlacement(SpecialStatus.VACATION_APPROVED)


def test_decision_persists_requests_and_notifications(workflow):
    """Tests that both the request list and the notifications are written."""
    request = workflow.submit_request("1", START, END)
    workflow.decide(request.id, approved=True)

    values = workflow.data_manager.store.values
    assert json.loads(values["vacation_requests"])[0]["status"] == "approved"
    stored_notifications = json.loads(values["notifications"])
    assert len(stored_notifications) == 1
    assert stored_notifications[0]["employeeId"] == "1"


def test_mark_read(workflow):
    """Tests that marking a notification read only succeeds the first time."""
    request = workflow.submit_request("1", START, END)
    notification = workflow.decide(request.id, approved=True)
    assert workflow.unread_count("1") == 1

    assert workflow.mark_read(notification.id)
    assert not workflow.mark_read(notification.id)
    assert not workflow.mark_read("missing")

    assert workflow.unread_count("1") == 0
    assert json.loads(workflow.data_manager.store.values["notifications"])[0]["read"] is True


def test_mark_all_read_only_touches_one_employee(workflow):
    """Tests that mark-all-read leaves other employees' notifications unread."""
    first = workflow.submit_request("1", START, START)
    second = workflow.submit_request("1", END, END)
    other = workflow.submit_request("2", START, START)
    for request in (first, second, other):
        workflow.decide(request.id, approved=True)

    assert workflow.mark_all_read("1") == 2
    assert workflow.mark_all_read("1") == 0
    assert workflow.unread_count("2") == 1


def test_requests_for_employee(workflow):
    first = workflow.submit_request("1", START, START)
    workflow.submit_request("2", START, START)

    assert workflow.requests_for("1") == [first]
    assert workflow.get_request(first.id) is first
