"""
Data Manager for Schichtplan

Loads the complete application state from the key-value store, migrates old
employee records, substitutes defaults for missing or corrupt keys and writes
every changed collection back after each mutation.
"""

import json
import logging
import time
from datetime import date, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from .models import (
    AREAS,
    DEFAULT_AREA,
    MAX_AREAS_PER_EMPLOYEE,
    Area,
    Employee,
    EmployeeColor,
    Notification,
    VacationRequest,
    format_iso,
    get_monday,
)
from .schedule_store import ScheduleStore
from .storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)


class PlannerError(Exception):
    """Base exception for all scheduling operations"""
    pass


class DataValidationError(PlannerError):
    """Raised when user input fails validation"""
    pass


class UnknownEmployeeError(PlannerError):
    """Raised when an employee id is not in the directory"""
    pass


class MalformedPersistedStateError(PlannerError):
    """Raised when a stored record cannot be parsed"""
    pass


KEY_SCHEDULE = "schedule"
KEY_EMPLOYEES = "employees"
KEY_VIEW = "view"
KEY_CURRENT_EMPLOYEE = "current_employee"
KEY_CURRENT_WEEK = "current_week"
KEY_VACATION_REQUESTS = "vacation_requests"
KEY_NOTIFICATIONS = "notifications"

ALL_KEYS = [
    KEY_SCHEDULE,
    KEY_EMPLOYEES,
    KEY_VIEW,
    KEY_CURRENT_EMPLOYEE,
    KEY_CURRENT_WEEK,
    KEY_VACATION_REQUESTS,
    KEY_NOTIFICATIONS,
]

VIEW_ADMIN = "admin"
VIEW_EMPLOYEE = "employee"

DEMO_EMPLOYEES = [
    {"id": "1", "firstName": "Max", "lastName": "Mustermann", "areas": ["Halle"]},
    {"id": "2", "firstName": "Anna", "lastName": "Schmidt", "areas": ["Kasse", "Gastro"]},
    {"id": "3", "firstName": "Tom", "lastName": "Weber", "areas": ["Sauna"]},
    {"id": "4", "firstName": "Lisa", "lastName": "Müller", "areas": ["Reinigung"]},
    {"id": "5", "firstName": "Jan", "lastName": "Klein", "areas": ["Halle", "Kasse"]},
]


def generate_id(existing_ids: Iterable[str] = ()) -> str:
    """Millisecond timestamp id, bumped until it does not collide"""
    taken = set(existing_ids)
    candidate = int(time.time() * 1000)
    while str(candidate) in taken:
        candidate += 1
    return str(candidate)


def migrate_employee_record(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Upgrade an employee record from older formats.

    Records with only a combined "name" are split on the first space, records
    without usable areas get the default area. Safe to apply repeatedly.
    """
    record = dict(data)

    if record.get("name") and not record.get("firstName") and not record.get("lastName"):
        first_name, _, last_name = record["name"].strip().partition(" ")
        record["firstName"] = first_name
        record["lastName"] = last_name.strip()

    valid_areas = {area.value for area in AREAS}
    areas = record.get("areas")
    if isinstance(areas, list):
        areas = [a for a in dict.fromkeys(areas) if a in valid_areas]
    if not areas:
        areas = [DEFAULT_AREA.value]
    record["areas"] = areas[:MAX_AREAS_PER_EMPLOYEE]

    return record


def _validate_employee_fields(first_name: str, last_name: str, areas: List[Area],
                              weekly_hours: Optional[float]) -> List[Area]:
    if not first_name.strip() or not last_name.strip():
        raise DataValidationError("⚠️ Bitte geben Sie Vor- und Nachname ein!")

    try:
        unique_areas = list(dict.fromkeys(Area(a) for a in areas))
    except ValueError as e:
        raise DataValidationError(f"⚠️ Unbekannter Bereich: {e}")
    if not unique_areas:
        raise DataValidationError("⚠️ Bitte wählen Sie mindestens einen Bereich aus!")
    if len(unique_areas) > MAX_AREAS_PER_EMPLOYEE:
        raise DataValidationError(
            f"⚠️ Ein Mitarbeiter kann maximal {MAX_AREAS_PER_EMPLOYEE} Bereiche haben!"
        )

    if weekly_hours is not None and weekly_hours < 0:
        raise DataValidationError("⚠️ Die Wochenstunden dürfen nicht negativ sein!")

    return unique_areas


class EmployeeDirectory:
    """Ordered list of employees; records are only added or fully replaced"""

    def __init__(self, employees: Optional[List[Employee]] = None,
                 on_change: Optional[Callable[[], None]] = None):
        self._employees: List[Employee] = list(employees or [])
        self.on_change = on_change

    def _notify(self):
        if self.on_change is not None:
            self.on_change()

    def get_employees(self) -> List[Employee]:
        return list(self._employees)

    def get_employee_by_id(self, emp_id: str) -> Optional[Employee]:
        for employee in self._employees:
            if employee.id == emp_id:
                return employee
        return None

    def require(self, emp_id: str) -> Employee:
        employee = self.get_employee_by_id(emp_id)
        if employee is None:
            raise UnknownEmployeeError(f"Unknown employee id {emp_id!r}")
        return employee

    def employees_for_area(self, area: Area) -> List[Employee]:
        return [emp for emp in self._employees if area in emp.areas]

    def add_employee(self, first_name: str, last_name: str, areas: List[Area],
                     phone: Optional[str] = None, email: Optional[str] = None,
                     weekly_hours: Optional[float] = None,
                     color: Optional[EmployeeColor] = None) -> Employee:
        """Validate and append a new employee with a generated id"""
        unique_areas = _validate_employee_fields(first_name, last_name, areas, weekly_hours)

        employee = Employee(
            id=generate_id(emp.id for emp in self._employees),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            areas=unique_areas,
            phone=phone or None,
            email=email or None,
            weekly_hours=weekly_hours,
            color=color,
        )
        self._employees.append(employee)
        logger.info(f"Added employee {employee.full_name} ({employee.id}) for areas "
                    f"{', '.join(a.value for a in employee.areas)}")
        self._notify()
        return employee

    def update_employee(self, employee: Employee) -> Employee:
        """
        Replace the stored record with the same id.

        Assignments already in the schedule keep the name they were created
        with; renames only show up in new assignments.
        """
        areas = _validate_employee_fields(
            employee.first_name, employee.last_name, employee.areas, employee.weekly_hours
        )
        for index, existing in enumerate(self._employees):
            if existing.id == employee.id:
                employee.areas = areas
                self._employees[index] = employee
                self._notify()
                return employee
        raise UnknownEmployeeError(f"Unknown employee id {employee.id!r}")

    def to_list(self) -> List[Dict[str, Any]]:
        return [emp.to_dict() for emp in self._employees]


class DataManager:
    """Owns the application state and mirrors it to a KeyValueStore"""

    def __init__(self, store: KeyValueStore, today: Optional[date] = None):
        self.store = store
        self.today = today or date.today()

        self.schedule: ScheduleStore = self._load_key(
            KEY_SCHEDULE, self._parse_schedule, lambda: ScheduleStore()
        )
        self.schedule.on_change = lambda: self.persist(KEY_SCHEDULE)

        self.employees: EmployeeDirectory = self._load_key(
            KEY_EMPLOYEES, self._parse_employees, self._default_employees
        )
        self.employees.on_change = lambda: self.persist(KEY_EMPLOYEES)

        self.vacation_requests: List[VacationRequest] = self._load_key(
            KEY_VACATION_REQUESTS, lambda data: [VacationRequest.from_dict(r) for r in self._as_list(data)], list
        )
        self.notifications: List[Notification] = self._load_key(
            KEY_NOTIFICATIONS, lambda data: [Notification.from_dict(n) for n in self._as_list(data)], list
        )

        self.view: str = self._load_key(KEY_VIEW, self._parse_view, lambda: VIEW_ADMIN)
        self.current_week: str = self._load_key(
            KEY_CURRENT_WEEK, lambda data: get_monday(data).isoformat(),
            lambda: get_monday(self.today).isoformat()
        )
        self.current_employee_id: str = self._load_key(
            KEY_CURRENT_EMPLOYEE, str, self._default_current_employee
        )
        if self.employees.get_employee_by_id(self.current_employee_id) is None:
            self.current_employee_id = self._default_current_employee()

        # Migrated records are written back so the upgrade is visible on disk
        self.persist(KEY_EMPLOYEES)

    # Loading

    @staticmethod
    def _as_list(data: Any) -> List[Any]:
        if not isinstance(data, list):
            raise TypeError(f"expected a list, got {type(data).__name__}")
        return data

    def _parse_schedule(self, data: Any) -> ScheduleStore:
        return ScheduleStore.from_list(self._as_list(data))

    def _parse_employees(self, data: Any) -> EmployeeDirectory:
        records = [migrate_employee_record(r) for r in self._as_list(data)]
        return EmployeeDirectory([Employee.from_dict(r) for r in records])

    @staticmethod
    def _parse_view(data: Any) -> str:
        if data not in (VIEW_ADMIN, VIEW_EMPLOYEE):
            raise ValueError(f"unknown view {data!r}")
        return data

    @staticmethod
    def _default_employees() -> EmployeeDirectory:
        return EmployeeDirectory([Employee.from_dict(r) for r in DEMO_EMPLOYEES])

    def _default_current_employee(self) -> str:
        employees = self.employees.get_employees()
        return employees[0].id if employees else ""

    def _parse_value(self, key: str, raw: str, parser: Callable[[Any], Any]) -> Any:
        try:
            return parser(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            raise MalformedPersistedStateError(f"Stored value for '{key}' is malformed: {e}")

    def _load_key(self, key: str, parser: Callable[[Any], Any], default_factory: Callable[[], Any]) -> Any:
        """Parse one stored key, falling back to the default if missing or corrupt"""
        try:
            raw = self.store.get(key)
        except StorageError as e:
            logger.error(f"Could not read '{key}', using defaults: {e}")
            return default_factory()

        if raw is None:
            logger.info(f"No stored value for '{key}', using defaults")
            return default_factory()

        try:
            return self._parse_value(key, raw, parser)
        except MalformedPersistedStateError as e:
            logger.error(f"{e}; discarding it and using defaults")
            try:
                self.store.remove(key)
            except StorageError as remove_e:
                logger.error(f"Failed to remove corrupt key '{key}': {remove_e}", exc_info=True)
            return default_factory()

    # Saving

    def _serialize(self, key: str) -> Any:
        if key == KEY_SCHEDULE:
            return self.schedule.to_list()
        if key == KEY_EMPLOYEES:
            return self.employees.to_list()
        if key == KEY_VACATION_REQUESTS:
            return [r.to_dict() for r in self.vacation_requests]
        if key == KEY_NOTIFICATIONS:
            return [n.to_dict() for n in self.notifications]
        if key == KEY_VIEW:
            return self.view
        if key == KEY_CURRENT_EMPLOYEE:
            return self.current_employee_id
        if key == KEY_CURRENT_WEEK:
            return self.current_week
        raise KeyError(key)

    def persist(self, key: str) -> bool:
        """
        Re-serialize one collection and write it to the store.

        Write failures are logged; the in-memory state stays authoritative.
        """
        try:
            self.store.set(key, json.dumps(self._serialize(key), ensure_ascii=False))
            return True
        except StorageError as e:
            logger.error(f"Failed to persist '{key}', keeping in-memory state: {e}", exc_info=True)
            return False

    def save_data(self) -> bool:
        results = [self.persist(key) for key in ALL_KEYS]
        return all(results)

    # View preferences

    def set_view(self, view: str):
        self.view = self._parse_view(view)
        self.persist(KEY_VIEW)

    def set_current_employee(self, emp_id: str):
        self.employees.require(emp_id)
        self.current_employee_id = emp_id
        self.persist(KEY_CURRENT_EMPLOYEE)

    def set_current_week(self, week_start) -> str:
        self.current_week = get_monday(format_iso(week_start)).isoformat()
        self.persist(KEY_CURRENT_WEEK)
        return self.current_week

    def change_week(self, direction: str) -> str:
        """Move the active week one step "prev" or "next" """
        offset = 7 if direction == "next" else -7
        return self.set_current_week(get_monday(self.current_week) + timedelta(days=offset))
