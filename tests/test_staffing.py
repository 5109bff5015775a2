import pytest
from pathlib import Path
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from schichtplan.models import Area, Employee, ShiftType, SpecialStatus
from schichtplan.schedule_store import ScheduleStore
from schichtplan.staffing import (
    HoursStatus,
    employee_hours_status,
    hours_status,
    is_understaffed,
    minimum_staffing,
    monthly_hours,
    understaffed_cells,
    weekly_hours,
)

WEEK = "2025-01-06"


@pytest.fixture
def schedule():
    return ScheduleStore()


@pytest.fixture
def max_mustermann():
    return Employee(id="1", first_name="Max", last_name="Mustermann", areas=[Area.HALLE], weekly_hours=40)


def test_minimum_staffing_table():
    """Tests the fixed minimum staffing per area and shift."""
    assert minimum_staffing(Area.HALLE, ShiftType.EARLY) == 2
    assert minimum_staffing(Area.HALLE, ShiftType.MID) == 0
    assert minimum_staffing(Area.HALLE, ShiftType.LATE) == 2
    for area in (Area.KASSE, Area.SAUNA, Area.REINIGUNG, Area.GASTRO):
        assert minimum_staffing(area, ShiftType.EARLY) == 1
        assert minimum_staffing(area, ShiftType.MID) == 0
        assert minimum_staffing(area, ShiftType.LATE) == 1


def test_is_understaffed():
    """Tests that a cell is understaffed only below its minimum."""
    assert is_understaffed(Area.HALLE, ShiftType.EARLY, 1)
    assert not is_understaffed(Area.HALLE, ShiftType.EARLY, 2)
    assert not is_understaffed(Area.HALLE, ShiftType.MID, 0)
    assert not is_understaffed(Area.KASSE, ShiftType.EARLY, 1)
    assert is_understaffed(Area.GASTRO, ShiftType.LATE, 0)


def test_understaffed_cells_in_week(schedule):
    """Tests that filling a cell to its minimum removes it from the understaffed list."""
    # Five areas with early and late minimums on seven days
    assert len(understaffed_cells(schedule, WEEK)) == 70

    schedule.set_assignment(WEEK, Area.HALLE, ShiftType.EARLY, "1", "Max Mustermann")
    cells = understaffed_cells(schedule, WEEK)
    halle_monday = [c for c in cells if c.date == WEEK and c.area == Area.HALLE and c.shift == ShiftType.EARLY]
    assert len(halle_monday) == 1
    assert halle_monday[0].count == 1
    assert halle_monday[0].missing == 1

    schedule.set_assignment(WEEK, Area.HALLE, ShiftType.EARLY, "5", "Jan Klein")
    assert len(understaffed_cells(schedule, WEEK)) == 69


def test_weekly_hours_below_target(schedule, max_mustermann):
    """Tests that four shifts count as 32 hours, which is under a 40 hour target."""
    for day in ("2025-01-06", "2025-01-07", "2025-01-08"):
        schedule.set_assignment(day, Area.HALLE, ShiftType.EARLY, "1", "Max Mustermann")
    schedule.set_assignment("2025-01-09", Area.HALLE, ShiftType.LATE, "1", "Max Mustermann")
    schedule.set_special_status("2025-01-10", "1", SpecialStatus.VACATION)

    assert weekly_hours(schedule, "1", WEEK) == 32
    assert employee_hours_status(schedule, max_mustermann, WEEK) == HoursStatus.UNDER


def test_weekly_hours_fulfilled(schedule, max_mustermann):
    """Tests that five shifts fulfil a 40 hour target."""
    for offset in range(6, 11):
        schedule.set_assignment(f"2025-01-{offset:02d}", Area.HALLE, ShiftType.MID, "1", "Max Mustermann")

    assert weekly_hours(schedule, "1", "2025-01-09") == 40
    assert employee_hours_status(schedule, max_mustermann, WEEK) == HoursStatus.FULFILLED


def test_weekly_hours_ignore_other_weeks(schedule):
    schedule.set_assignment("2025-01-05", Area.HALLE, ShiftType.EARLY, "1", "Max Mustermann")
    schedule.set_assignment("2025-01-13", Area.HALLE, ShiftType.EARLY, "1", "Max Mustermann")

    assert weekly_hours(schedule, "1", WEEK) == 0


def test_monthly_hours(schedule):
    """Tests that monthly hours cover every day of the calendar month."""
    schedule.set_assignment("2025-01-01", Area.SAUNA, ShiftType.EARLY, "3", "Tom Weber")
    schedule.set_assignment("2025-01-31", Area.SAUNA, ShiftType.LATE, "3", "Tom Weber")
    schedule.set_assignment("2025-02-01", Area.SAUNA, ShiftType.LATE, "3", "Tom Weber")

    assert monthly_hours(schedule, "3", 2025, 1) == 16
    assert monthly_hours(schedule, "3", 2025, 2) == 8


@pytest.mark.parametrize("worked, target, expected", [
    (0, None, HoursStatus.NO_TARGET),
    (48, None, HoursStatus.NO_TARGET),
    (32, 40, HoursStatus.UNDER),
    (40, 40, HoursStatus.FULFILLED),
    (48, 40, HoursStatus.FULFILLED),
    (0, 0, HoursStatus.FULFILLED),
])
def test_hours_status(worked, target, expected):
    assert hours_status(worked, target) == expected


def test_no_target_without_weekly_hours(schedule):
    employee = Employee(id="3", first_name="Tom", last_name="Weber", areas=[Area.SAUNA])

    assert employee_hours_status(schedule, employee, WEEK) == HoursStatus.NO_TARGET
