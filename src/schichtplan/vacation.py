"""
Vacation and Overtime Requests for Schichtplan

Employees submit requests over a date range, which marks every day as
"requested"; an administrator approves or rejects each request exactly once,
which rewrites the markers and notifies the employee.
"""

from datetime import date
from typing import Dict, List, Optional
import logging

from .data_manager import (
    KEY_NOTIFICATIONS,
    KEY_VACATION_REQUESTS,
    DataManager,
    DataValidationError,
    PlannerError,
    generate_id,
)
from .models import (
    Notification,
    NotificationType,
    RequestStatus,
    RequestType,
    SpecialStatus,
    VacationRequest,
    date_range,
    format_date_de,
    format_iso,
    now_iso,
    parse_date,
)

logger = logging.getLogger(__name__)


class UnknownRequestError(PlannerError):
    """Raised when a request id does not exist"""
    pass


class RequestAlreadyDecidedError(PlannerError):
    """Raised when a request that is no longer pending is decided again"""
    pass


# Special status written for each (request type, request status)
REQUEST_STATUS_MARKERS: Dict[RequestType, Dict[RequestStatus, SpecialStatus]] = {
    RequestType.VACATION: {
        RequestStatus.PENDING: SpecialStatus.VACATION_REQUESTED,
        RequestStatus.APPROVED: SpecialStatus.VACATION_APPROVED,
        RequestStatus.REJECTED: SpecialStatus.VACATION_REJECTED,
    },
    RequestType.OVERTIME: {
        RequestStatus.PENDING: SpecialStatus.OVERTIME_REQUESTED,
        RequestStatus.APPROVED: SpecialStatus.OVERTIME_APPROVED,
        RequestStatus.REJECTED: SpecialStatus.OVERTIME_REJECTED,
    },
}

REQUEST_TYPE_LABELS = {
    RequestType.VACATION: "Urlaubsantrag",
    RequestType.OVERTIME: "Überstundenantrag",
}


def decision_message(request: VacationRequest) -> str:
    verdict = "genehmigt" if request.status == RequestStatus.APPROVED else "abgelehnt"
    return (f"Ihr {REQUEST_TYPE_LABELS[request.type]} vom "
            f"{format_date_de(request.start_date, with_year=True)} bis "
            f"{format_date_de(request.end_date, with_year=True)} wurde {verdict}.")


class VacationWorkflow:
    """Request submission, admin decisions and employee notifications"""

    def __init__(self, data_manager: DataManager):
        self.data_manager = data_manager

    @property
    def requests(self) -> List[VacationRequest]:
        return self.data_manager.vacation_requests

    @property
    def notifications(self) -> List[Notification]:
        return self.data_manager.notifications

    def get_request(self, request_id: str) -> Optional[VacationRequest]:
        for request in self.requests:
            if request.id == request_id:
                return request
        return None

    def pending_requests(self) -> List[VacationRequest]:
        return [r for r in self.requests if r.status == RequestStatus.PENDING]

    def requests_for(self, employee_id: str) -> List[VacationRequest]:
        return [r for r in self.requests if r.employee_id == employee_id]

    def submit_request(self, employee_id: str, start_date, end_date,
                       request_type: RequestType = RequestType.VACATION) -> VacationRequest:
        """
        Create a pending request and mark every day of the range as requested.

        Existing placements in the range are overwritten by the marker.

        Raises:
            UnknownEmployeeError: employee id not in the directory
            DataValidationError: end date before start date
        """
        employee = self.data_manager.employees.require(employee_id)
        request_type = RequestType(request_type)
        start_date, end_date = format_iso(start_date), format_iso(end_date)
        if parse_date(end_date) < parse_date(start_date):
            raise DataValidationError("⚠️ Das Enddatum liegt vor dem Startdatum!")

        request = VacationRequest(
            id=generate_id(r.id for r in self.requests),
            employee_id=employee.id,
            employee_name=employee.full_name,
            start_date=start_date,
            end_date=end_date,
            type=request_type,
            status=RequestStatus.PENDING,
            requested_at=now_iso(),
        )

        marker = REQUEST_STATUS_MARKERS[request_type][RequestStatus.PENDING]
        schedule = self.data_manager.schedule
        with schedule.batch():
            for date_str in date_range(start_date, end_date):
                schedule.set_special_status(date_str, employee.id, marker)

        self.requests.append(request)
        self.data_manager.persist(KEY_VACATION_REQUESTS)
        logger.info(f"{employee.full_name} requested {request_type.value} {start_date}..{end_date} ({request.id})")
        return request

    def decide(self, request_id: str, approved: bool, reviewer: str = "Admin") -> Notification:
        """
        Approve or reject a pending request and notify the employee.

        Days whose marker was removed in the meantime are left untouched.

        Raises:
            UnknownRequestError: request id does not exist
            RequestAlreadyDecidedError: request is not pending anymore
        """
        request = self.get_request(request_id)
        if request is None:
            raise UnknownRequestError(f"Unknown request id {request_id!r}")
        if request.status != RequestStatus.PENDING:
            raise RequestAlreadyDecidedError(
                f"Request {request_id} was already {request.status.value}"
            )

        request.status = RequestStatus.APPROVED if approved else RequestStatus.REJECTED
        request.reviewed_at = now_iso()
        request.reviewed_by = reviewer

        marker = REQUEST_STATUS_MARKERS[request.type][request.status]
        schedule = self.data_manager.schedule
        with schedule.batch():
            for date_str in date_range(request.start_date, request.end_date):
                if request.employee_id in schedule.get_day(date_str).special_status:
                    schedule.set_special_status(date_str, request.employee_id, marker)

        notification = Notification(
            id=generate_id(n.id for n in self.notifications),
            employee_id=request.employee_id,
            type=NotificationType.VACATION_APPROVED if approved else NotificationType.VACATION_REJECTED,
            message=decision_message(request),
            date=date.today().isoformat(),
            read=False,
            created_at=now_iso(),
        )
        self.notifications.append(notification)

        self.data_manager.persist(KEY_VACATION_REQUESTS)
        self.data_manager.persist(KEY_NOTIFICATIONS)
        logger.info(f"Request {request.id} of {request.employee_name} {request.status.value} by {reviewer}")
        return notification

    def notifications_for(self, employee_id: str, unread_only: bool = False) -> List[Notification]:
        return [n for n in self.notifications
                if n.employee_id == employee_id and not (unread_only and n.read)]

    def unread_count(self, employee_id: str) -> int:
        return len(self.notifications_for(employee_id, unread_only=True))

    def mark_read(self, notification_id: str) -> bool:
        """Mark a notification read; returns False if unknown or already read"""
        for notification in self.notifications:
            if notification.id == notification_id:
                if notification.read:
                    return False
                notification.read = True
                self.data_manager.persist(KEY_NOTIFICATIONS)
                return True
        return False

    def mark_all_read(self, employee_id: str) -> int:
        unread = self.notifications_for(employee_id, unread_only=True)
        for notification in unread:
            notification.read = True
        if unread:
            self.data_manager.persist(KEY_NOTIFICATIONS)
        return len(unread)
