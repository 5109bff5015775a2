"""
Reporting for Schichtplan

Builds pandas DataFrames for the admin dashboard: the week grid of one area,
staffing per (date, area, shift) and worked hours against weekly targets.
"""

from typing import Any, Dict, List

import pandas as pd

from .models import (
    AREAS,
    SHIFT_TYPES,
    Area,
    Employee,
    format_date_de,
    format_week_range,
    get_monday,
    week_dates,
)
from .schedule_store import ScheduleStore
from .staffing import (
    HOURS_PER_SHIFT,
    HoursStatus,
    hours_status,
    is_understaffed,
    minimum_staffing,
    monthly_hours,
)


def create_week_dataframe(schedule: ScheduleStore, week_start, area: Area) -> pd.DataFrame:
    """Shift x weekday table of assigned names for one area"""
    days = schedule.get_week(week_start)
    columns = [format_date_de(day.date, with_weekday=True) for day in days]
    data = {
        column: [", ".join(a.employee_name for a in day.get_assignments(area, shift))
                 for shift in SHIFT_TYPES]
        for column, day in zip(columns, days)
    }
    return pd.DataFrame(data, index=[shift.value for shift in SHIFT_TYPES], columns=columns)


def create_staffing_dataframe(schedule: ScheduleStore, week_start) -> pd.DataFrame:
    """One row per (date, area, shift) with assigned count and minimum staffing"""
    rows = []
    for day in schedule.get_week(week_start):
        for area in AREAS:
            for shift in SHIFT_TYPES:
                count = len(day.get_assignments(area, shift))
                rows.append({
                    'Date': day.date,
                    'Area': area.value,
                    'Shift': shift.value,
                    'Assigned': count,
                    'Minimum': minimum_staffing(area, shift),
                    'Understaffed': is_understaffed(area, shift, count),
                })
    return pd.DataFrame(rows, columns=['Date', 'Area', 'Shift', 'Assigned', 'Minimum', 'Understaffed'])


def create_hours_dataframe(schedule: ScheduleStore, employees: List[Employee], week_start) -> pd.DataFrame:
    """Worked shifts and hours of every employee against their weekly target"""
    dates = week_dates(week_start)
    rows = []
    for emp in employees:
        shifts = len(schedule.employee_shifts(emp.id, dates))
        hours = shifts * HOURS_PER_SHIFT
        rows.append({
            'Employee_ID': emp.id,
            'Employee': emp.full_name,
            'Primary_Area': emp.primary_area.value,
            'Shifts': shifts,
            'Hours': hours,
            'Target': emp.weekly_hours,
            'Status': hours_status(hours, emp.weekly_hours).value,
        })
    return pd.DataFrame(
        rows,
        columns=['Employee_ID', 'Employee', 'Primary_Area', 'Shifts', 'Hours', 'Target', 'Status'],
    )


def create_month_hours_dataframe(schedule: ScheduleStore, employees: List[Employee],
                                 year: int, month: int) -> pd.DataFrame:
    """Worked hours of every employee over one calendar month"""
    rows = [{
        'Employee_ID': emp.id,
        'Employee': emp.full_name,
        'Hours': monthly_hours(schedule, emp.id, year, month),
    } for emp in employees]
    return pd.DataFrame(rows, columns=['Employee_ID', 'Employee', 'Hours'])


class WeekReport:
    """Dashboard figures for one week"""

    def __init__(self, schedule: ScheduleStore, employees: List[Employee], week_start):
        self.week_start = get_monday(week_start).isoformat()
        self.staffing = create_staffing_dataframe(schedule, self.week_start)
        self.hours = create_hours_dataframe(schedule, employees, self.week_start)
        monday = get_monday(self.week_start)
        self.month = (monday.year, monday.month)
        self.month_hours = create_month_hours_dataframe(schedule, employees, monday.year, monday.month)
        self.week_tables = {area: create_week_dataframe(schedule, self.week_start, area) for area in AREAS}

    def understaffed(self) -> pd.DataFrame:
        return self.staffing[self.staffing['Understaffed']].reset_index(drop=True)

    def understaffed_by_area(self) -> Dict[str, int]:
        counts = self.understaffed().groupby('Area').size()
        return {area.value: int(counts.get(area.value, 0)) for area in AREAS}

    def employees_under_target(self) -> List[str]:
        under = self.hours[self.hours['Status'] == HoursStatus.UNDER.value]
        return under['Employee'].tolist()

    def summary(self) -> Dict[str, Any]:
        return {
            'week': format_week_range(self.week_start),
            'total_shifts': int(self.hours['Shifts'].sum()) if not self.hours.empty else 0,
            'total_hours': int(self.hours['Hours'].sum()) if not self.hours.empty else 0,
            'understaffed_cells': int(self.staffing['Understaffed'].sum()),
            'understaffed_by_area': self.understaffed_by_area(),
            'employees_under_target': self.employees_under_target(),
        }

    def summary_text(self) -> str:
        summary = self.summary()
        lines = [
            f"Woche {summary['week']}",
            f"• Schichten gesamt: {summary['total_shifts']} ({summary['total_hours']} Std.)",
            f"• Unterbesetzte Schichten: {summary['understaffed_cells']}",
        ]
        for area, count in summary['understaffed_by_area'].items():
            if count:
                lines.append(f"    – {area}: {count}")
        if summary['employees_under_target']:
            lines.append(f"• Unter Soll: {', '.join(summary['employees_under_target'])}")
        return "\n".join(lines)
