"""
Data Model for the Schichtplan Scheduling Tool

Fixed enums (areas, shifts, special statuses, colours), the persisted records
(employees, day schedules, requests, notifications), the per-cell placement
variant and the calendar helpers shared by all modules.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import calendar
import logging

logger = logging.getLogger(__name__)


class Area(str, Enum):
    HALLE = "Halle"
    KASSE = "Kasse"
    SAUNA = "Sauna"
    REINIGUNG = "Reinigung"
    GASTRO = "Gastro"


class ShiftType(str, Enum):
    EARLY = "Frühschicht"
    MID = "Mittelschicht"
    LATE = "Spätschicht"


class SpecialStatus(str, Enum):
    VACATION = "Urlaub"
    SICK = "Krank"
    VACATION_REQUESTED = "Urlaub beantragt"
    VACATION_APPROVED = "Urlaub genehmigt"
    VACATION_REJECTED = "Urlaub abgelehnt"
    OVERTIME_REQUESTED = "Überstunden beantragt"
    OVERTIME_APPROVED = "Überstunden genehmigt"
    OVERTIME_REJECTED = "Überstunden abgelehnt"


class EmployeeColor(str, Enum):
    RED = "Rot"
    BROWN = "Braun"
    BLACK = "Schwarz"
    GREEN = "Grün"
    VIOLET = "Violett"


class RequestType(str, Enum):
    VACATION = "vacation"
    OVERTIME = "overtime"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationType(str, Enum):
    VACATION_APPROVED = "vacation_approved"
    VACATION_REJECTED = "vacation_rejected"


AREAS: List[Area] = list(Area)
SHIFT_TYPES: List[ShiftType] = list(ShiftType)
DEFAULT_AREA = Area.HALLE
MAX_AREAS_PER_EMPLOYEE = 4

WEEKDAYS = ["Montag", "Dienstag", "Mittwoch", "Donnerstag", "Freitag", "Samstag", "Sonntag"]

SHIFT_TIMES: Dict[ShiftType, str] = {
    ShiftType.EARLY: "06:00 - 14:00",
    ShiftType.MID: "14:00 - 22:00",
    ShiftType.LATE: "22:00 - 06:00",
}

SHIFT_ABBREVIATIONS: Dict[ShiftType, str] = {
    ShiftType.EARLY: "F",
    ShiftType.MID: "M",
    ShiftType.LATE: "S",
}

STATUS_ABBREVIATIONS: Dict[SpecialStatus, str] = {
    SpecialStatus.VACATION: "U",
    SpecialStatus.SICK: "K",
    SpecialStatus.VACATION_REQUESTED: "U?",
    SpecialStatus.VACATION_APPROVED: "U✓",
    SpecialStatus.VACATION_REJECTED: "U✗",
    SpecialStatus.OVERTIME_REQUESTED: "Ü?",
    SpecialStatus.OVERTIME_APPROVED: "Ü✓",
    SpecialStatus.OVERTIME_REJECTED: "Ü✗",
}

COLOR_VALUES: Dict[EmployeeColor, str] = {
    EmployeeColor.RED: "#ef4444",
    EmployeeColor.BROWN: "#92400e",
    EmployeeColor.BLACK: "#1f2937",
    EmployeeColor.GREEN: "#10b981",
    EmployeeColor.VIOLET: "#8b5cf6",
}


def _parse_enum(enum_cls, value: Any, context: str):
    """Parse a persisted enum value, returning None (with a warning) if unknown"""
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(f"Ignoring unknown {enum_cls.__name__} value {value!r} in {context}")
        return None


@dataclass
class Employee:
    """Employee record with permitted work areas (first area is the primary area)"""
    id: str
    first_name: str
    last_name: str
    areas: List[Area] = field(default_factory=lambda: [DEFAULT_AREA])
    phone: Optional[str] = None
    email: Optional[str] = None
    weekly_hours: Optional[float] = None
    color: Optional[EmployeeColor] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def primary_area(self) -> Area:
        return self.areas[0]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "areas": [area.value for area in self.areas],
        }
        if self.phone is not None:
            data["phone"] = self.phone
        if self.email is not None:
            data["email"] = self.email
        if self.weekly_hours is not None:
            data["weeklyHours"] = self.weekly_hours
        if self.color is not None:
            data["color"] = self.color.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Employee':
        # Records are migrated before they get here, see data_manager.migrate_employee_record
        context = f"employee {data.get('id')}"
        areas = [a for a in (_parse_enum(Area, raw, context) for raw in data.get("areas", [])) if a]
        color = _parse_enum(EmployeeColor, data["color"], context) if data.get("color") else None
        return cls(
            id=str(data["id"]),
            first_name=data.get("firstName", ""),
            last_name=data.get("lastName", ""),
            areas=areas or [DEFAULT_AREA],
            phone=data.get("phone"),
            email=data.get("email"),
            weekly_hours=data.get("weeklyHours"),
            color=color,
        )


@dataclass
class ShiftAssignment:
    """Assignment of one employee to a shift cell; the name is a display cache"""
    employee_id: str
    employee_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"employeeId": self.employee_id, "employeeName": self.employee_name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ShiftAssignment':
        return cls(employee_id=str(data["employeeId"]), employee_name=data.get("employeeName", ""))


@dataclass
class DaySchedule:
    """All assignments and special statuses of one calendar day"""
    date: str
    shifts: Dict[Area, Dict[ShiftType, List[ShiftAssignment]]] = field(default_factory=dict)
    special_status: Dict[str, SpecialStatus] = field(default_factory=dict)

    @classmethod
    def empty(cls, date_str: str) -> 'DaySchedule':
        return cls(date=date_str, shifts={area: {} for area in AREAS})

    def get_assignments(self, area: Area, shift: ShiftType) -> List[ShiftAssignment]:
        return self.shifts.get(area, {}).get(shift, [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "shifts": {
                area.value: {
                    shift.value: [a.to_dict() for a in assignments]
                    for shift, assignments in area_shifts.items()
                }
                for area, area_shifts in self.shifts.items()
            },
            "specialStatus": {emp_id: status.value for emp_id, status in self.special_status.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DaySchedule':
        date_str = data["date"]
        context = f"day {date_str}"
        shifts: Dict[Area, Dict[ShiftType, List[ShiftAssignment]]] = {}
        for raw_area, raw_shifts in (data.get("shifts") or {}).items():
            area = _parse_enum(Area, raw_area, context)
            if area is None:
                continue
            shifts[area] = {}
            for raw_shift, raw_assignments in (raw_shifts or {}).items():
                shift = _parse_enum(ShiftType, raw_shift, context)
                if shift is None:
                    continue
                shifts[area][shift] = [ShiftAssignment.from_dict(a) for a in raw_assignments or []]

        special_status = {}
        for emp_id, raw_status in (data.get("specialStatus") or {}).items():
            status = _parse_enum(SpecialStatus, raw_status, context)
            if status is not None:
                special_status[str(emp_id)] = status

        return cls(date=date_str, shifts=shifts, special_status=special_status)


@dataclass(frozen=True)
class RegularPlacement:
    area: Area
    shift: ShiftType

    def describe(self) -> str:
        return f"{self.shift.value} ({self.area.value})"


@dataclass(frozen=True)
class SpecialPlacement:
    status: SpecialStatus

    def describe(self) -> str:
        return self.status.value


# None stands for the empty cell
Placement = Union[RegularPlacement, SpecialPlacement]


def placement_abbreviation(placement: Optional[Placement]) -> str:
    """Short tag shown in the employee grid ("F", "M", "S", "U", "K", ...)"""
    if placement is None:
        return ""
    if isinstance(placement, RegularPlacement):
        return SHIFT_ABBREVIATIONS[placement.shift]
    return STATUS_ABBREVIATIONS[placement.status]


@dataclass
class VacationRequest:
    """Employee request for vacation or overtime over an inclusive date range"""
    id: str
    employee_id: str
    employee_name: str
    start_date: str
    end_date: str
    type: RequestType
    status: RequestStatus
    requested_at: str
    reviewed_at: Optional[str] = None
    reviewed_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "employeeId": self.employee_id,
            "employeeName": self.employee_name,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "type": self.type.value,
            "status": self.status.value,
            "requestedAt": self.requested_at,
        }
        if self.reviewed_at is not None:
            data["reviewedAt"] = self.reviewed_at
        if self.reviewed_by is not None:
            data["reviewedBy"] = self.reviewed_by
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VacationRequest':
        return cls(
            id=str(data["id"]),
            employee_id=str(data["employeeId"]),
            employee_name=data.get("employeeName", ""),
            start_date=data["startDate"],
            end_date=data["endDate"],
            type=RequestType(data.get("type", RequestType.VACATION.value)),
            status=RequestStatus(data.get("status", RequestStatus.PENDING.value)),
            requested_at=data.get("requestedAt", ""),
            reviewed_at=data.get("reviewedAt"),
            reviewed_by=data.get("reviewedBy"),
        )


@dataclass
class Notification:
    """Message to an employee about a request decision"""
    id: str
    employee_id: str
    type: NotificationType
    message: str
    date: str
    read: bool = False
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "employeeId": self.employee_id,
            "type": self.type.value,
            "message": self.message,
            "date": self.date,
            "read": self.read,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Notification':
        return cls(
            id=str(data["id"]),
            employee_id=str(data["employeeId"]),
            type=NotificationType(data["type"]),
            message=data.get("message", ""),
            date=data.get("date", ""),
            read=bool(data.get("read", False)),
            created_at=data.get("createdAt", ""),
        )


# Calendar helpers

def parse_date(value: Union[str, date]) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def format_iso(value: Union[str, date]) -> str:
    return parse_date(value).isoformat()


def get_monday(value: Union[str, date]) -> date:
    day = parse_date(value)
    return day - timedelta(days=day.weekday())


def week_dates(week_start: Union[str, date]) -> List[str]:
    """ISO dates of the week containing week_start, Monday first"""
    monday = get_monday(week_start)
    return [(monday + timedelta(days=offset)).isoformat() for offset in range(7)]


def date_range(start: Union[str, date], end: Union[str, date]) -> List[str]:
    """Inclusive list of ISO dates; empty if end lies before start"""
    current, last = parse_date(start), parse_date(end)
    dates = []
    while current <= last:
        dates.append(current.isoformat())
        current += timedelta(days=1)
    return dates


def month_dates(year: int, month: int) -> List[str]:
    days_in_month = calendar.monthrange(year, month)[1]
    return [date(year, month, day).isoformat() for day in range(1, days_in_month + 1)]


def format_date_de(value: Union[str, date], with_year: bool = False, with_weekday: bool = False) -> str:
    """German short date, e.g. "06.01.", "06.01.2025" or "Mo 06.01." """
    day = parse_date(value)
    text = f"{day.day:02d}.{day.month:02d}."
    if with_year:
        text += f"{day.year}"
    if with_weekday:
        text = f"{WEEKDAYS[day.weekday()][:2]} {text}"
    return text


def format_week_range(week_start: Union[str, date]) -> str:
    monday = get_monday(week_start)
    sunday = monday + timedelta(days=6)
    return f"{format_date_de(monday)} - {format_date_de(sunday, with_year=True)}"


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")
