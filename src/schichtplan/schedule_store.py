"""
Schedule Store for Schichtplan

Sparse in-memory mapping from ISO date to DaySchedule. Every mutator is an
atomic replace of the (employee, date) placement, so an employee never holds
more than one regular assignment or special status on the same day.
"""

from contextlib import contextmanager
from datetime import date
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union
import copy
import logging

from .models import (
    AREAS,
    SHIFT_TYPES,
    Area,
    DaySchedule,
    Placement,
    RegularPlacement,
    ShiftAssignment,
    ShiftType,
    SpecialPlacement,
    SpecialStatus,
    format_iso,
    month_dates,
    week_dates,
)

logger = logging.getLogger(__name__)

DateLike = Union[str, date]


class ScheduleStore:
    """Holds all day entries and notifies on_change after every mutation"""

    def __init__(self, days: Optional[List[DaySchedule]] = None,
                 on_change: Optional[Callable[[], None]] = None):
        self._days: Dict[str, DaySchedule] = {}
        for day in days or []:
            if day.date in self._days:
                logger.warning(f"Duplicate schedule entry for {day.date} ignored")
                continue
            self._days[day.date] = day
        self.on_change = on_change
        self._batch_depth = 0
        self._pending_change = False

    @classmethod
    def from_list(cls, data: List[Dict], on_change: Optional[Callable[[], None]] = None) -> 'ScheduleStore':
        return cls([DaySchedule.from_dict(entry) for entry in data], on_change=on_change)

    def to_list(self) -> List[Dict]:
        return [day.to_dict() for day in self._days.values()]

    def days(self) -> List[DaySchedule]:
        return list(self._days.values())

    def has_day(self, date_str: DateLike) -> bool:
        return format_iso(date_str) in self._days

    # Change notification

    def _notify(self):
        if self._batch_depth > 0:
            self._pending_change = True
            return
        if self.on_change is not None:
            self.on_change()

    @contextmanager
    def batch(self):
        """Collapse all changes made inside the block into a single notification"""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._pending_change:
                self._pending_change = False
                self._notify()

    # Queries

    def get_day(self, date_str: DateLike) -> DaySchedule:
        """Stored entry, or an empty (unstored) entry with every area present"""
        date_str = format_iso(date_str)
        day = self._days.get(date_str)
        if day is None:
            return DaySchedule.empty(date_str)
        return day

    def get_week(self, week_start: DateLike) -> List[DaySchedule]:
        return [self.get_day(d) for d in week_dates(week_start)]

    def get_month(self, year: int, month: int) -> List[DaySchedule]:
        return [self.get_day(d) for d in month_dates(year, month)]

    def get_assignments(self, date_str: DateLike, area: Area, shift: ShiftType) -> List[ShiftAssignment]:
        return list(self.get_day(date_str).get_assignments(area, shift))

    @staticmethod
    def _iter_cells(day: DaySchedule) -> Iterator[Tuple[Area, ShiftType, List[ShiftAssignment]]]:
        for area in AREAS:
            area_shifts = day.shifts.get(area, {})
            for shift in SHIFT_TYPES:
                if shift in area_shifts:
                    yield area, shift, area_shifts[shift]

    def get_placement(self, date_str: DateLike, employee_id: str) -> Optional[Placement]:
        day = self._days.get(format_iso(date_str))
        if day is None:
            return None
        status = day.special_status.get(employee_id)
        if status is not None:
            return SpecialPlacement(status)
        for area, shift, assignments in self._iter_cells(day):
            if any(a.employee_id == employee_id for a in assignments):
                return RegularPlacement(area, shift)
        return None

    def is_employee_assigned_on_date(self, date_str: DateLike, employee_id: str,
                                     exclude_area: Optional[Area] = None,
                                     exclude_shift: Optional[ShiftType] = None) -> bool:
        """True if the employee holds any placement that day other than the excluded cell"""
        day = self._days.get(format_iso(date_str))
        if day is None:
            return False
        if employee_id in day.special_status:
            return True
        for area, shift, assignments in self._iter_cells(day):
            if area == exclude_area and shift == exclude_shift:
                continue
            if any(a.employee_id == employee_id for a in assignments):
                return True
        return False

    def employee_shifts(self, employee_id: str, dates: List[str]) -> List[Tuple[str, RegularPlacement]]:
        """Regular placements of an employee on the given dates, in date order"""
        shifts = []
        for date_str in dates:
            placement = self.get_placement(date_str, employee_id)
            if isinstance(placement, RegularPlacement):
                shifts.append((date_str, placement))
        return shifts

    # Mutations

    def _ensure_day(self, date_str: str) -> DaySchedule:
        day = self._days.get(date_str)
        if day is None:
            day = DaySchedule.empty(date_str)
            self._days[date_str] = day
        return day

    def _clear(self, day: DaySchedule, employee_id: str) -> bool:
        changed = day.special_status.pop(employee_id, None) is not None
        for area, shift, assignments in list(self._iter_cells(day)):
            remaining = [a for a in assignments if a.employee_id != employee_id]
            if len(remaining) != len(assignments):
                day.shifts[area][shift] = remaining
                changed = True
        return changed

    def replace_placement(self, date_str: DateLike, employee_id: str,
                          placement: Optional[Placement], employee_name: str = "") -> bool:
        """Atomically replace an employee's placement on a date (None empties the cell)"""
        date_str = format_iso(date_str)
        if self.get_placement(date_str, employee_id) == placement:
            return False

        if placement is None:
            day = self._days.get(date_str)
            if day is None or not self._clear(day, employee_id):
                return False
        else:
            day = self._ensure_day(date_str)
            self._clear(day, employee_id)
            if isinstance(placement, RegularPlacement):
                day.shifts.setdefault(placement.area, {}).setdefault(placement.shift, []).append(
                    ShiftAssignment(employee_id=employee_id, employee_name=employee_name)
                )
            else:
                day.special_status[employee_id] = placement.status

        self._notify()
        return True

    def set_assignment(self, date_str: DateLike, area: Area, shift: ShiftType,
                       employee_id: str, employee_name: str) -> bool:
        """Add the employee to a cell; no-op if already there. Returns True if changed"""
        day = self._days.get(format_iso(date_str))
        if day is not None and any(a.employee_id == employee_id for a in day.get_assignments(area, shift)):
            return False
        return self.replace_placement(date_str, employee_id, RegularPlacement(area, shift), employee_name)

    def remove_assignment(self, date_str: DateLike, area: Area, shift: ShiftType, employee_id: str) -> bool:
        day = self._days.get(format_iso(date_str))
        if day is None:
            return False
        assignments = day.get_assignments(area, shift)
        remaining = [a for a in assignments if a.employee_id != employee_id]
        if len(remaining) == len(assignments):
            return False
        day.shifts[area][shift] = remaining
        self._notify()
        return True

    def set_special_status(self, date_str: DateLike, employee_id: str, status: SpecialStatus) -> bool:
        return self.replace_placement(date_str, employee_id, SpecialPlacement(status))

    def clear_placement(self, date_str: DateLike, employee_id: str) -> bool:
        return self.replace_placement(date_str, employee_id, None)

    def copy_day(self, source_date: DateLike, target_date: DateLike) -> int:
        """
        Copy the source day's non-empty cells and special statuses onto the target.

        Target cells the source does not fill are kept. Employees brought in by
        the copy lose whatever placement they had on the target date.

        Returns:
            Number of copied placements
        """
        source_date, target_date = format_iso(source_date), format_iso(target_date)
        source = self._days.get(source_date)
        if source is None or source_date == target_date:
            return 0

        filled_cells = [(area, shift, assignments)
                        for area, shift, assignments in self._iter_cells(source) if assignments]
        copied_ids = {a.employee_id for _, _, assignments in filled_cells for a in assignments}
        copied_ids.update(source.special_status)
        if not copied_ids:
            return 0

        target = self._ensure_day(target_date)
        for employee_id in copied_ids:
            self._clear(target, employee_id)

        for area, shift, assignments in filled_cells:
            target.shifts.setdefault(area, {})[shift] = copy.deepcopy(assignments)
        target.special_status.update(source.special_status)

        self._notify()
        return len(copied_ids)

    def copy_week(self, source_week_start: DateLike, target_week_start: DateLike) -> int:
        copied = 0
        with self.batch():
            for source_date, target_date in zip(week_dates(source_week_start), week_dates(target_week_start)):
                copied += self.copy_day(source_date, target_date)
        logger.info(f"Copied {copied} placements from week {week_dates(source_week_start)[0]} "
                    f"to week {week_dates(target_week_start)[0]}")
        return copied
