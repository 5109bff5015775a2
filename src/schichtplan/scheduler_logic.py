"""
Assignment Logic for Schichtplan

Validates every placement request (area eligibility, one placement per
employee and day) before writing it to the ScheduleStore. Covers single
assignments, bulk week planning, drag-copy in the area grid, tag drops in the
employee grid and the multi-cell selection used by those drops.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Set, Tuple
import logging

from .data_manager import DataValidationError, EmployeeDirectory, PlannerError
from .models import (
    Area,
    Employee,
    Placement,
    RegularPlacement,
    ShiftType,
    SpecialPlacement,
    SpecialStatus,
    date_range,
    format_date_de,
    format_iso,
    parse_date,
)
from .schedule_store import ScheduleStore

logger = logging.getLogger(__name__)


class SchedulingError(PlannerError):
    """Base class for rejected placement requests"""
    pass


class AreaMismatchError(SchedulingError):
    """Employee is not permitted to work in the target area"""

    def __init__(self, employee: Employee, area: Area):
        self.employee = employee
        self.area = area
        super().__init__(
            f"⚠️ {employee.full_name} ist nicht dem Bereich \"{area.value}\" zugewiesen! "
            f"(Bereiche: {', '.join(a.value for a in employee.areas)})"
        )


class AlreadyPlacedError(SchedulingError):
    """Employee already holds another placement on that date"""

    def __init__(self, employee: Employee, date_str: str, conflict: Placement):
        self.employee = employee
        self.date = date_str
        self.conflict = conflict
        if isinstance(conflict, RegularPlacement):
            text = (f"⚠️ {employee.full_name} ist bereits am {format_date_de(date_str)} in der "
                    f"{conflict.shift.value} ({conflict.area.value}) eingeteilt!")
        else:
            text = (f"⚠️ {employee.full_name} ist am {format_date_de(date_str)} bereits als "
                    f"\"{conflict.status.value}\" eingetragen!")
        super().__init__(text)


@dataclass
class AssignmentResult:
    """Outcome of a successful single assignment or drag-copy"""
    employee_id: str
    date: str
    area: Area
    shift: ShiftType
    created: bool
    message: str


@dataclass
class BulkAssignmentResult:
    assigned: int
    skipped: int

    @property
    def message(self) -> str:
        text = f"✅ {self.assigned} Schicht(en) erfolgreich zugewiesen!"
        if self.skipped > 0:
            text += f" {self.skipped} Konflikt(e) übersprungen."
        return text


@dataclass(frozen=True)
class PlannedEdit:
    """Intended new placement of one (employee, date) cell; None empties it"""
    employee_id: str
    date: str
    placement: Optional[Placement]


class CellSelection:
    """Multi-cell selection in the employee grid, built by click and shift-click"""

    def __init__(self):
        self._cells: List[Tuple[str, str]] = []
        self.anchor: Optional[Tuple[str, str]] = None

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self):
        return iter(list(self._cells))

    def __contains__(self, cell) -> bool:
        return cell in self._cells

    @property
    def is_active(self) -> bool:
        return bool(self._cells)

    def cells(self) -> List[Tuple[str, str]]:
        return list(self._cells)

    def dates_for(self, employee_id: str) -> List[str]:
        return sorted(d for emp_id, d in self._cells if emp_id == employee_id)

    def toggle(self, employee_id: str, date_str) -> bool:
        """Select or deselect one cell; returns whether it is selected afterwards"""
        cell = (employee_id, format_iso(date_str))
        if cell in self._cells:
            self._cells.remove(cell)
            if self.anchor == cell:
                self.anchor = self._cells[-1] if self._cells else None
            return False
        self._cells.append(cell)
        self.anchor = cell
        return True

    def extend_to(self, employee_id: str, date_str) -> bool:
        """
        Select the inclusive date range between the anchor and this cell.

        Only works within one employee's row; a range across employees is
        rejected and leaves the selection unchanged.
        """
        date_str = format_iso(date_str)
        if self.anchor is None:
            self.toggle(employee_id, date_str)
            return True

        anchor_employee, anchor_date = self.anchor
        if anchor_employee != employee_id:
            logger.warning(f"Ignoring range selection across employees {anchor_employee} and {employee_id}")
            return False

        start, end = sorted([anchor_date, date_str])
        for day in date_range(start, end):
            if (employee_id, day) not in self._cells:
                self._cells.append((employee_id, day))
        self.anchor = (employee_id, date_str)
        return True

    def clear(self):
        self._cells.clear()
        self.anchor = None


def _same_tag(current: Optional[Placement], tag: Placement) -> bool:
    if isinstance(current, RegularPlacement) and isinstance(tag, RegularPlacement):
        return current.shift == tag.shift
    if isinstance(current, SpecialPlacement) and isinstance(tag, SpecialPlacement):
        return current.status == tag.status
    return False


class AssignmentEngine:
    """Validates placement requests and applies them to the schedule"""

    def __init__(self, schedule: ScheduleStore, employees: EmployeeDirectory):
        self.schedule = schedule
        self.employees = employees

    def _check_placement(self, employee: Employee, date_str: str, area: Area, shift: ShiftType):
        if area not in employee.areas:
            raise AreaMismatchError(employee, area)

        existing = self.schedule.get_placement(date_str, employee.id)
        if existing is not None and existing != RegularPlacement(area, shift):
            raise AlreadyPlacedError(employee, date_str, existing)

    def available_employees(self, date_str, area: Area) -> List[Tuple[Employee, bool]]:
        """Employees permitted in the area, each flagged if already placed that day"""
        return [
            (emp, self.schedule.is_employee_assigned_on_date(date_str, emp.id))
            for emp in self.employees.employees_for_area(area)
        ]

    def assign(self, date_str, area: Area, shift: ShiftType, employee_id: str) -> AssignmentResult:
        """
        Assign an employee to one (date, area, shift) cell.

        Raises:
            UnknownEmployeeError: employee id not in the directory
            AreaMismatchError: area not among the employee's areas
            AlreadyPlacedError: employee already placed elsewhere that day
        """
        employee = self.employees.require(employee_id)
        date_str = format_iso(date_str)
        self._check_placement(employee, date_str, area, shift)

        created = self.schedule.set_assignment(date_str, area, shift, employee.id, employee.full_name)
        if created:
            logger.info(f"Assigned {employee.full_name} to {area.value}/{shift.value} on {date_str}")
            message = f"✅ {employee.full_name} wurde erfolgreich zugewiesen!"
        else:
            message = f"✅ {employee.full_name} ist bereits in der {shift.value} ({area.value}) eingeteilt."

        return AssignmentResult(employee.id, date_str, area, shift, created, message)

    def remove(self, date_str, area: Area, shift: ShiftType, employee_id: str) -> bool:
        removed = self.schedule.remove_assignment(date_str, area, shift, employee_id)
        if removed:
            logger.info(f"Removed {employee_id} from {area.value}/{shift.value} on {format_iso(date_str)}")
        return removed

    def bulk_assign(self, employee_ids: Iterable[str], start_date, end_date,
                    weekdays: Iterable[int], shift: ShiftType) -> BulkAssignmentResult:
        """
        Assign employees to their primary area on every matching date.

        Args:
            employee_ids: Employees to plan; unknown ids are ignored
            start_date: First date of the range (inclusive)
            end_date: Last date of the range (inclusive)
            weekdays: ISO weekday numbers to include (Monday=1 ... Sunday=7)
            shift: Shift to assign

        Employees already placed on a date are skipped and counted as conflicts.
        """
        employee_ids = list(employee_ids)
        selected_weekdays: Set[int] = set(weekdays)

        if not employee_ids:
            raise DataValidationError("⚠️ Bitte wählen Sie mindestens einen Mitarbeiter aus!")
        if not selected_weekdays:
            raise DataValidationError("⚠️ Bitte wählen Sie mindestens einen Wochentag aus!")
        if parse_date(end_date) < parse_date(start_date):
            raise DataValidationError("⚠️ Das Enddatum liegt vor dem Startdatum!")

        assigned = 0
        skipped = 0
        with self.schedule.batch():
            for date_str in date_range(start_date, end_date):
                if parse_date(date_str).isoweekday() not in selected_weekdays:
                    continue

                for emp_id in employee_ids:
                    employee = self.employees.get_employee_by_id(emp_id)
                    if employee is None:
                        logger.warning(f"Bulk assignment skips unknown employee {emp_id}")
                        continue

                    if self.schedule.is_employee_assigned_on_date(date_str, employee.id):
                        skipped += 1
                        continue

                    if self.schedule.set_assignment(date_str, employee.primary_area, shift,
                                                    employee.id, employee.full_name):
                        assigned += 1

        logger.info(f"Bulk assignment {start_date}..{end_date} ({shift.value}): "
                    f"{assigned} assigned, {skipped} skipped")
        return BulkAssignmentResult(assigned=assigned, skipped=skipped)

    def copy_by_drag(self, employee_id: str, employee_name: str,
                     source_date, source_area: Area, source_shift: ShiftType,
                     target_date, target_area: Area, target_shift: ShiftType) -> AssignmentResult:
        """Copy a dragged assignment to another cell; the source assignment stays"""
        employee = self.employees.require(employee_id)
        target_date = format_iso(target_date)
        self._check_placement(employee, target_date, target_area, target_shift)

        created = self.schedule.set_assignment(target_date, target_area, target_shift,
                                               employee.id, employee_name or employee.full_name)
        if created:
            logger.info(f"Copied {employee.full_name} from {source_area.value}/{source_shift.value} "
                        f"on {format_iso(source_date)} to {target_area.value}/{target_shift.value} on {target_date}")
            message = (f"✅ {employee.full_name} wurde nach "
                       f"{format_date_de(target_date, with_weekday=True)} kopiert!")
        else:
            message = f"✅ {employee.full_name} ist bereits in der {target_shift.value} ({target_area.value}) eingeteilt."
        return AssignmentResult(employee.id, target_date, target_area, target_shift, created, message)

    def plan_tag_drop(self, employee_id: str, source_date, tag: Optional[Placement], target_date,
                      target_employee_id: Optional[str] = None,
                      selection: Optional[CellSelection] = None) -> List[PlannedEdit]:
        """
        Work out the edits for dropping a shift or status tag in the employee grid.

        The tag goes to every selected date of the target employee, or to the
        single target cell when nothing of theirs is selected. Cells already
        carrying the same tag are emptied instead. A shift tag keeps its area
        if the target employee may work there, else uses their primary area.
        """
        if tag is None:
            return []

        target_id = target_employee_id or employee_id
        target_employee = self.employees.require(target_id)

        if isinstance(tag, RegularPlacement) and tag.area not in target_employee.areas:
            tag = RegularPlacement(target_employee.primary_area, tag.shift)

        dates = selection.dates_for(target_id) if selection is not None else []
        if not dates:
            dates = [format_iso(target_date)]

        edits = []
        for date_str in dates:
            current = self.schedule.get_placement(date_str, target_id)
            new_placement = None if _same_tag(current, tag) else tag
            edits.append(PlannedEdit(employee_id=target_id, date=date_str, placement=new_placement))

        logger.debug(f"Planned {len(edits)} edits for tag drop from {employee_id} on {format_iso(source_date)}")
        return edits

    def apply_edits(self, edits: List[PlannedEdit]) -> int:
        """Apply planned edits as one schedule change; returns the number of changed cells"""
        changed = 0
        with self.schedule.batch():
            for edit in edits:
                employee = self.employees.require(edit.employee_id)
                if self.schedule.replace_placement(edit.date, edit.employee_id,
                                                   edit.placement, employee.full_name):
                    changed += 1
        return changed

    def drop_shift_tag(self, employee_id: str, source_date, tag: Optional[Placement], target_date,
                       target_employee_id: Optional[str] = None,
                       selection: Optional[CellSelection] = None) -> List[PlannedEdit]:
        edits = self.plan_tag_drop(employee_id, source_date, tag, target_date,
                                   target_employee_id, selection)
        self.apply_edits(edits)
        return edits

    def set_status_for_cells(self, cells: Iterable[Tuple[str, str]],
                             status: Optional[SpecialStatus]) -> int:
        """Mark cells with a special status, or empty them when status is None"""
        placement = SpecialPlacement(status) if status is not None else None
        edits = [PlannedEdit(employee_id=emp_id, date=format_iso(d), placement=placement)
                 for emp_id, d in cells]
        return self.apply_edits(edits)
