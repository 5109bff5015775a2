"""
Staffing and Hours Derivation for Schichtplan

Read-only calculations over the schedule: minimum-staffing checks per
(area, shift) and worked hours against each employee's weekly target.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from .models import (
    AREAS,
    SHIFT_TYPES,
    Area,
    Employee,
    ShiftType,
    week_dates,
)
from .schedule_store import ScheduleStore

HOURS_PER_SHIFT = 8

MIN_STAFFING: Dict[Area, Dict[ShiftType, int]] = {
    Area.HALLE: {ShiftType.EARLY: 2, ShiftType.MID: 0, ShiftType.LATE: 2},
    Area.KASSE: {ShiftType.EARLY: 1, ShiftType.MID: 0, ShiftType.LATE: 1},
    Area.SAUNA: {ShiftType.EARLY: 1, ShiftType.MID: 0, ShiftType.LATE: 1},
    Area.REINIGUNG: {ShiftType.EARLY: 1, ShiftType.MID: 0, ShiftType.LATE: 1},
    Area.GASTRO: {ShiftType.EARLY: 1, ShiftType.MID: 0, ShiftType.LATE: 1},
}


class HoursStatus(str, Enum):
    NO_TARGET = "no-target"
    FULFILLED = "fulfilled"
    UNDER = "under"


@dataclass
class UnderstaffedCell:
    date: str
    area: Area
    shift: ShiftType
    count: int
    minimum: int

    @property
    def missing(self) -> int:
        return self.minimum - self.count


def minimum_staffing(area: Area, shift: ShiftType) -> int:
    return MIN_STAFFING[area][shift]


def is_understaffed(area: Area, shift: ShiftType, count: int) -> bool:
    return count < MIN_STAFFING[area][shift]


def understaffed_cells(schedule: ScheduleStore, week_start) -> List[UnderstaffedCell]:
    cells = []
    for day in schedule.get_week(week_start):
        for area in AREAS:
            for shift in SHIFT_TYPES:
                count = len(day.get_assignments(area, shift))
                if is_understaffed(area, shift, count):
                    cells.append(UnderstaffedCell(day.date, area, shift, count, MIN_STAFFING[area][shift]))
    return cells


def _hours_on(schedule: ScheduleStore, employee_id: str, dates: List[str]) -> int:
    # Every regular shift counts as 8 hours regardless of type or area
    return HOURS_PER_SHIFT * len(schedule.employee_shifts(employee_id, dates))


def weekly_hours(schedule: ScheduleStore, employee_id: str, week_start) -> int:
    return _hours_on(schedule, employee_id, week_dates(week_start))


def monthly_hours(schedule: ScheduleStore, employee_id: str, year: int, month: int) -> int:
    return _hours_on(schedule, employee_id, [day.date for day in schedule.get_month(year, month)])


def hours_status(worked: float, target: Optional[float]) -> HoursStatus:
    """Worked hours above the target also count as fulfilled"""
    if target is None:
        return HoursStatus.NO_TARGET
    if worked >= target:
        return HoursStatus.FULFILLED
    return HoursStatus.UNDER


def employee_hours_status(schedule: ScheduleStore, employee: Employee, week_start) -> HoursStatus:
    return hours_status(weekly_hours(schedule, employee.id, week_start), employee.weekly_hours)
