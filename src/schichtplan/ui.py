"""
User Interface for Schichtplan

CustomTkinter-based GUI with an admin view (area week grid, employee grid with
tag drag-and-drop, request review, dashboard) and an employee view (own
shifts, hours, requests and notifications).
"""

import customtkinter as ctk
import pandas as pd
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional
import logging

from .data_manager import (
    VIEW_ADMIN,
    VIEW_EMPLOYEE,
    DataManager,
    DataValidationError,
    UnknownEmployeeError,
)
from .models import (
    AREAS,
    COLOR_VALUES,
    SHIFT_TIMES,
    SHIFT_TYPES,
    WEEKDAYS,
    Area,
    Employee,
    EmployeeColor,
    RegularPlacement,
    RequestStatus,
    RequestType,
    ShiftType,
    SpecialPlacement,
    SpecialStatus,
    format_date_de,
    format_week_range,
    get_monday,
    placement_abbreviation,
    week_dates,
)
from .reporting import WeekReport
from .scheduler_logic import AssignmentEngine, CellSelection, SchedulingError
from .staffing import HoursStatus, employee_hours_status, is_understaffed, monthly_hours, weekly_hours
from .vacation import REQUEST_TYPE_LABELS, RequestAlreadyDecidedError, UnknownRequestError, VacationWorkflow

logger = logging.getLogger(__name__)


# Configure CustomTkinter
ctk.set_appearance_mode("light")
ctk.set_default_color_theme("blue")

SUCCESS_COLOR = "#d1fae5"
WARNING_COLOR = "#fef3c7"
UNDERSTAFFED_COLOR = "#fde2e2"
MY_SHIFT_COLOR = "#dbeafe"
SELECTED_COLOR = "#93c5fd"
ASSIGN_PLACEHOLDER = "+ Zuweisen"

STATUS_CELL_COLORS = {
    SpecialStatus.VACATION: "#bbf7d0",
    SpecialStatus.SICK: "#fecaca",
    SpecialStatus.VACATION_REQUESTED: "#fef9c3",
    SpecialStatus.VACATION_APPROVED: "#bbf7d0",
    SpecialStatus.VACATION_REJECTED: "#e5e7eb",
    SpecialStatus.OVERTIME_REQUESTED: "#fef9c3",
    SpecialStatus.OVERTIME_APPROVED: "#c7d2fe",
    SpecialStatus.OVERTIME_REJECTED: "#e5e7eb",
}

HOURS_STATUS_LABELS = {
    HoursStatus.NO_TARGET: "kein Soll",
    HoursStatus.FULFILLED: "Soll erfüllt",
    HoursStatus.UNDER: "unter Soll",
}

REQUEST_STATUS_LABELS = {
    RequestStatus.PENDING: "offen",
    RequestStatus.APPROVED: "genehmigt",
    RequestStatus.REJECTED: "abgelehnt",
}


def employee_labels(employees: List[Employee]) -> Dict[str, str]:
    """Unique display label -> employee id"""
    labels = {}
    for emp in employees:
        label = emp.full_name
        if label in labels:
            label = f"{emp.full_name} ({emp.id})"
        labels[label] = emp.id
    return labels


class StatusMessage(ctk.CTkLabel):
    """Transient message line; success and warning use different colours"""

    def __init__(self, parent):
        super().__init__(parent, text="", corner_radius=6, height=28)
        self._after_id = None

    def show(self, message: str, duration_ms: int = 3000):
        if self._after_id is not None:
            self.after_cancel(self._after_id)
        is_success = message.startswith("✅")
        self.configure(text=message, fg_color=SUCCESS_COLOR if is_success else WARNING_COLOR)
        self._after_id = self.after(duration_ms, self.clear)

    def clear(self):
        self._after_id = None
        self.configure(text="", fg_color="transparent")


class DragController:
    """Pointer drag-and-drop between widgets; drop targets expose drop_target(payload)"""

    DRAG_THRESHOLD = 5

    def __init__(self, root):
        self.root = root
        self.payload = None
        self._origin = None
        self._dragging = False
        self._on_click = None

    def make_draggable(self, widget, payload_factory: Callable[[], Any],
                       on_click: Optional[Callable[[Any], None]] = None):
        widget.bind("<ButtonPress-1>", lambda event: self._press(event, payload_factory, on_click))
        widget.bind("<B1-Motion>", self._motion)
        widget.bind("<ButtonRelease-1>", self._release)

    def _press(self, event, payload_factory, on_click):
        self.payload = payload_factory()
        self._origin = (event.x_root, event.y_root)
        self._dragging = False
        self._on_click = on_click

    def _motion(self, event):
        if self.payload is None or self._dragging:
            return
        dx = abs(event.x_root - self._origin[0])
        dy = abs(event.y_root - self._origin[1])
        if max(dx, dy) > self.DRAG_THRESHOLD:
            self._dragging = True
            self.root.configure(cursor="hand2")

    def _release(self, event):
        payload, on_click, dragging = self.payload, self._on_click, self._dragging
        self.payload = None
        self._dragging = False
        self.root.configure(cursor="")
        if payload is None:
            return

        if not dragging:
            if on_click is not None:
                self.root.after_idle(lambda: on_click(event))
            return

        target = self._find_target(event.x_root, event.y_root)
        if target is not None:
            # Deferred: the drop rebuilds the grid, including the dragged widget
            self.root.after_idle(lambda: target.drop_target(payload))

    def _find_target(self, x_root: int, y_root: int):
        widget = self.root.winfo_containing(x_root, y_root)
        while widget is not None:
            if hasattr(widget, "drop_target"):
                return widget
            widget = getattr(widget, "master", None)
        return None


class EmployeeDialog(ctk.CTkToplevel):
    """Dialog for adding a new employee"""

    def __init__(self, parent, on_save: Callable[[Dict[str, Any]], Optional[str]]):
        super().__init__(parent)
        self.on_save = on_save

        self.title("Neuen Mitarbeiter hinzufügen")
        self.geometry("420x560")
        self.transient(parent)
        self.grab_set()

        self._create_widgets()

    def _create_widgets(self):
        main_frame = ctk.CTkFrame(self)
        main_frame.pack(fill="both", expand=True, padx=20, pady=20)

        ctk.CTkLabel(main_frame, text="Neuen Mitarbeiter hinzufügen",
                     font=ctk.CTkFont(size=16, weight="bold")).pack(pady=(0, 10))

        self.first_name_entry = ctk.CTkEntry(main_frame, placeholder_text="Vorname")
        self.first_name_entry.pack(fill="x", pady=4)
        self.last_name_entry = ctk.CTkEntry(main_frame, placeholder_text="Nachname")
        self.last_name_entry.pack(fill="x", pady=4)

        ctk.CTkLabel(main_frame, text="Einsatzbereiche (max. 4, erster = Hauptbereich):").pack(anchor="w", pady=(10, 2))
        self.area_vars: Dict[Area, ctk.BooleanVar] = {}
        self.area_order: List[Area] = []
        for area in AREAS:
            var = ctk.BooleanVar(value=False)
            self.area_vars[area] = var
            ctk.CTkCheckBox(main_frame, text=area.value, variable=var,
                            command=lambda a=area: self._toggle_area(a)).pack(anchor="w", padx=10, pady=2)

        self.phone_entry = ctk.CTkEntry(main_frame, placeholder_text="Telefon (optional)")
        self.phone_entry.pack(fill="x", pady=4)
        self.email_entry = ctk.CTkEntry(main_frame, placeholder_text="E-Mail (optional)")
        self.email_entry.pack(fill="x", pady=4)
        self.hours_entry = ctk.CTkEntry(main_frame, placeholder_text="Wochenstunden (optional)")
        self.hours_entry.pack(fill="x", pady=4)

        self.color_var = ctk.StringVar(value="Keine Farbe")
        ctk.CTkOptionMenu(main_frame, variable=self.color_var,
                          values=["Keine Farbe"] + [c.value for c in EmployeeColor]).pack(fill="x", pady=4)

        self.error_label = ctk.CTkLabel(main_frame, text="", text_color="#b45309", wraplength=360)
        self.error_label.pack(pady=4)

        button_frame = ctk.CTkFrame(main_frame, fg_color="transparent")
        button_frame.pack(fill="x", pady=(10, 0))
        ctk.CTkButton(button_frame, text="Hinzufügen", command=self._save).pack(side="left", expand=True, padx=5)
        ctk.CTkButton(button_frame, text="Abbrechen", fg_color="gray",
                      command=self.destroy).pack(side="left", expand=True, padx=5)

    def _toggle_area(self, area: Area):
        # Keep click order so the first chosen area becomes the primary area
        if self.area_vars[area].get():
            self.area_order.append(area)
        elif area in self.area_order:
            self.area_order.remove(area)

    def _save(self):
        hours_text = self.hours_entry.get().strip().replace(",", ".")
        try:
            weekly_hours = float(hours_text) if hours_text else None
        except ValueError:
            self.error_label.configure(text="⚠️ Wochenstunden müssen eine Zahl sein!")
            return

        color_value = self.color_var.get()
        error = self.on_save({
            "first_name": self.first_name_entry.get(),
            "last_name": self.last_name_entry.get(),
            "areas": list(self.area_order),
            "phone": self.phone_entry.get().strip() or None,
            "email": self.email_entry.get().strip() or None,
            "weekly_hours": weekly_hours,
            "color": EmployeeColor(color_value) if color_value != "Keine Farbe" else None,
        })
        if error:
            self.error_label.configure(text=error)
        else:
            self.destroy()


class BulkAssignmentDialog(ctk.CTkToplevel):
    """Assign several employees to their primary area over a date range"""

    def __init__(self, parent, employees: List[Employee], week_start: str,
                 on_submit: Callable[[List[str], str, str, List[int], ShiftType], Optional[str]]):
        super().__init__(parent)
        self.employees = employees
        self.on_submit = on_submit

        self.title("Wochenplan erstellen")
        self.geometry("460x620")
        self.transient(parent)
        self.grab_set()

        self._create_widgets(week_start)

    def _create_widgets(self, week_start: str):
        main_frame = ctk.CTkScrollableFrame(self)
        main_frame.pack(fill="both", expand=True, padx=20, pady=20)

        ctk.CTkLabel(main_frame, text="📅 Wochenplan erstellen",
                     font=ctk.CTkFont(size=16, weight="bold")).pack(pady=(0, 5))
        ctk.CTkLabel(main_frame, wraplength=380, justify="left",
                     text="Jeder Mitarbeiter wird automatisch seinem Hauptbereich zugewiesen.").pack(pady=(0, 10))

        ctk.CTkLabel(main_frame, text="Zeitraum:").pack(anchor="w")
        range_frame = ctk.CTkFrame(main_frame, fg_color="transparent")
        range_frame.pack(fill="x", pady=4)
        self.start_entry = ctk.CTkEntry(range_frame, width=130)
        self.start_entry.insert(0, week_start)
        self.start_entry.pack(side="left")
        ctk.CTkLabel(range_frame, text="bis").pack(side="left", padx=8)
        self.end_entry = ctk.CTkEntry(range_frame, width=130)
        self.end_entry.insert(0, (get_monday(week_start) + timedelta(days=6)).isoformat())
        self.end_entry.pack(side="left")

        ctk.CTkLabel(main_frame, text="Wochentage:").pack(anchor="w", pady=(10, 0))
        weekday_frame = ctk.CTkFrame(main_frame, fg_color="transparent")
        weekday_frame.pack(fill="x", pady=4)
        self.weekday_vars: Dict[int, ctk.BooleanVar] = {}
        for index, day_name in enumerate(WEEKDAYS):
            day_number = index + 1
            var = ctk.BooleanVar(value=day_number <= 5)
            self.weekday_vars[day_number] = var
            ctk.CTkCheckBox(weekday_frame, text=day_name[:2], variable=var, width=50).pack(side="left", padx=2)

        ctk.CTkLabel(main_frame, text="Schicht:").pack(anchor="w", pady=(10, 0))
        self.shift_var = ctk.StringVar(value=ShiftType.EARLY.value)
        ctk.CTkOptionMenu(main_frame, variable=self.shift_var,
                          values=[s.value for s in SHIFT_TYPES]).pack(fill="x", pady=4)

        ctk.CTkLabel(main_frame, text="Mitarbeiter auswählen:").pack(anchor="w", pady=(10, 0))
        self.employee_vars: Dict[str, ctk.BooleanVar] = {}
        for emp in self.employees:
            var = ctk.BooleanVar(value=False)
            self.employee_vars[emp.id] = var
            text = f"{emp.full_name}  ({', '.join(a.value for a in emp.areas)})"
            ctk.CTkCheckBox(main_frame, text=text, variable=var).pack(anchor="w", padx=10, pady=2)

        self.error_label = ctk.CTkLabel(main_frame, text="", text_color="#b45309", wraplength=380)
        self.error_label.pack(pady=4)

        button_frame = ctk.CTkFrame(main_frame, fg_color="transparent")
        button_frame.pack(fill="x", pady=(10, 0))
        ctk.CTkButton(button_frame, text="✓ Zuweisung durchführen",
                      command=self._submit).pack(side="left", expand=True, padx=5)
        ctk.CTkButton(button_frame, text="Abbrechen", fg_color="gray",
                      command=self.destroy).pack(side="left", expand=True, padx=5)

    def _submit(self):
        employee_ids = [emp_id for emp_id, var in self.employee_vars.items() if var.get()]
        weekdays = [day for day, var in self.weekday_vars.items() if var.get()]
        error = self.on_submit(employee_ids, self.start_entry.get().strip(), self.end_entry.get().strip(),
                               weekdays, ShiftType(self.shift_var.get()))
        if error:
            self.error_label.configure(text=error)
        else:
            self.destroy()


class ShiftCell(ctk.CTkFrame):
    """One (date, area, shift) cell of the admin week grid"""

    def __init__(self, parent, app: 'MainWindow', date_str: str, area: Area, shift: ShiftType):
        self.app = app
        self.date_str = date_str
        self.area = area
        self.shift = shift
        assignments = app.data_manager.schedule.get_assignments(date_str, area, shift)
        understaffed = is_understaffed(area, shift, len(assignments))
        super().__init__(parent, corner_radius=4, fg_color=UNDERSTAFFED_COLOR if understaffed else "white")

        for assignment in assignments:
            row = ctk.CTkFrame(self, fg_color="#e0e7ff", corner_radius=4)
            row.pack(fill="x", padx=2, pady=1)
            name_label = ctk.CTkLabel(row, text=f"⋮⋮ {assignment.employee_name}", anchor="w")
            name_label.pack(side="left", fill="x", expand=True, padx=4)
            app.drag.make_draggable(
                name_label,
                lambda a=assignment: {"kind": "assignment", "employee_id": a.employee_id,
                                      "employee_name": a.employee_name, "date": self.date_str,
                                      "area": self.area, "shift": self.shift},
            )
            ctk.CTkButton(row, text="✕", width=22, height=22, fg_color="transparent", text_color="#b91c1c",
                          hover_color="#fecaca",
                          command=lambda a=assignment: app.remove_assignment(
                              self.date_str, self.area, self.shift, a.employee_id)).pack(side="right")

        self.choices = {}
        for emp, placed in app.engine.available_employees(date_str, area):
            label = f"{emp.full_name} (bereits eingeteilt)" if placed else emp.full_name
            self.choices[label] = emp.id
        self.choice_var = ctk.StringVar(value=ASSIGN_PLACEHOLDER)
        ctk.CTkOptionMenu(self, variable=self.choice_var, width=120, height=24,
                          values=[ASSIGN_PLACEHOLDER] + list(self.choices),
                          command=self._on_choice).pack(fill="x", padx=2, pady=2)

    def _on_choice(self, choice: str):
        emp_id = self.choices.get(choice)
        self.choice_var.set(ASSIGN_PLACEHOLDER)
        if emp_id is not None:
            self.app.assign(self.date_str, self.area, self.shift, emp_id)

    def drop_target(self, payload: Dict[str, Any]):
        if payload.get("kind") != "assignment":
            return
        self.app.copy_assignment(payload, self.date_str, self.area, self.shift)


class AreaWeekGrid(ctk.CTkScrollableFrame):
    """Per-area tables with shifts as rows and weekdays as columns"""

    def __init__(self, parent, app: 'MainWindow', editable: bool = True):
        super().__init__(parent)
        self.app = app
        self.editable = editable

    def refresh(self):
        for widget in self.winfo_children():
            widget.destroy()

        week = week_dates(self.app.data_manager.current_week)
        current_employee = self.app.data_manager.current_employee_id
        for area in AREAS:
            ctk.CTkLabel(self, text=area.value, font=ctk.CTkFont(size=15, weight="bold")).pack(anchor="w", pady=(10, 2))
            table = ctk.CTkFrame(self)
            table.pack(fill="x", padx=5)

            ctk.CTkLabel(table, text="Schicht", font=ctk.CTkFont(weight="bold")).grid(row=0, column=0, padx=2, sticky="nsew")
            for col, date_str in enumerate(week, start=1):
                ctk.CTkLabel(table, text=f"{WEEKDAYS[col - 1]}\n{format_date_de(date_str)}",
                             font=ctk.CTkFont(weight="bold")).grid(row=0, column=col, padx=2, sticky="nsew")
                table.columnconfigure(col, weight=1)

            for row, shift in enumerate(SHIFT_TYPES, start=1):
                ctk.CTkLabel(table, text=f"{shift.value}\n{SHIFT_TIMES[shift]}").grid(row=row, column=0, padx=2, sticky="nsew")
                for col, date_str in enumerate(week, start=1):
                    if self.editable:
                        cell = ShiftCell(table, self.app, date_str, area, shift)
                    else:
                        cell = self._readonly_cell(table, date_str, area, shift, current_employee)
                    cell.grid(row=row, column=col, padx=2, pady=2, sticky="nsew")

    def _readonly_cell(self, parent, date_str: str, area: Area, shift: ShiftType, employee_id: str):
        assignments = self.app.data_manager.schedule.get_assignments(date_str, area, shift)
        is_mine = any(a.employee_id == employee_id for a in assignments)
        if is_mine:
            color = MY_SHIFT_COLOR
        elif is_understaffed(area, shift, len(assignments)):
            color = UNDERSTAFFED_COLOR
        else:
            color = "white"
        text = "\n".join(a.employee_name for a in assignments) or "—"
        return ctk.CTkLabel(parent, text=text, fg_color=color, corner_radius=4, height=40)


class EmployeeGridCell(ctk.CTkFrame):
    """One (employee, date) cell of the employee grid showing the placement tag"""

    def __init__(self, parent, app: 'MainWindow', employee: Employee, date_str: str):
        self.app = app
        self.employee = employee
        self.date_str = date_str
        self.placement = app.data_manager.schedule.get_placement(date_str, employee.id)

        if (employee.id, date_str) in app.selection:
            color = SELECTED_COLOR
        elif isinstance(self.placement, SpecialPlacement):
            color = STATUS_CELL_COLORS[self.placement.status]
        elif isinstance(self.placement, RegularPlacement):
            color = "#e0e7ff"
        else:
            color = "white"
        super().__init__(parent, corner_radius=4, fg_color=color, width=60, height=36)

        label = ctk.CTkLabel(self, text=placement_abbreviation(self.placement) or "·", width=56)
        label.pack(fill="both", expand=True)

        app.drag.make_draggable(
            label,
            lambda: {"kind": "tag", "employee_id": self.employee.id,
                     "date": self.date_str, "tag": self.placement},
            on_click=self._on_click,
        )

    def _on_click(self, event):
        extend = bool(event.state & 0x0001)
        self.app.select_cell(self.employee.id, self.date_str, extend)

    def drop_target(self, payload: Dict[str, Any]):
        if payload.get("kind") != "tag":
            return
        if payload["employee_id"] == self.employee.id and payload["date"] == self.date_str:
            return
        self.app.drop_tag(payload, self.employee.id, self.date_str)


class EmployeeGrid(ctk.CTkFrame):
    """Employees as rows, days of the week as columns"""

    def __init__(self, parent, app: 'MainWindow'):
        super().__init__(parent, fg_color="transparent")
        self.app = app

        toolbar = ctk.CTkFrame(self)
        toolbar.pack(fill="x", pady=(0, 5))
        ctk.CTkLabel(toolbar, text="Auswahl:").pack(side="left", padx=5)
        for status in (SpecialStatus.VACATION, SpecialStatus.SICK):
            ctk.CTkButton(toolbar, text=status.value, width=80,
                          command=lambda s=status: app.set_status_for_selection(s)).pack(side="left", padx=3)
        ctk.CTkButton(toolbar, text="Leeren", width=80, fg_color="gray",
                      command=lambda: app.set_status_for_selection(None)).pack(side="left", padx=3)
        ctk.CTkButton(toolbar, text="Auswahl aufheben", width=120, fg_color="gray",
                      command=app.clear_selection).pack(side="left", padx=3)
        ctk.CTkLabel(toolbar, text="Klick: auswählen · Umschalt+Klick: Bereich · Ziehen: Kürzel kopieren",
                     text_color="gray").pack(side="right", padx=5)

        self.grid_frame = ctk.CTkScrollableFrame(self)
        self.grid_frame.pack(fill="both", expand=True)

    def refresh(self):
        for widget in self.grid_frame.winfo_children():
            widget.destroy()

        week = week_dates(self.app.data_manager.current_week)
        ctk.CTkLabel(self.grid_frame, text="Mitarbeiter", font=ctk.CTkFont(weight="bold")).grid(row=0, column=0, padx=4)
        for col, date_str in enumerate(week, start=1):
            ctk.CTkLabel(self.grid_frame, text=format_date_de(date_str, with_weekday=True),
                         font=ctk.CTkFont(weight="bold")).grid(row=0, column=col, padx=2)
        ctk.CTkLabel(self.grid_frame, text="Stunden", font=ctk.CTkFont(weight="bold")).grid(row=0, column=8, padx=4)

        schedule = self.app.data_manager.schedule
        for row, emp in enumerate(self.app.data_manager.employees.get_employees(), start=1):
            name_frame = ctk.CTkFrame(self.grid_frame, fg_color="transparent")
            name_frame.grid(row=row, column=0, sticky="w", padx=4)
            if emp.color is not None:
                ctk.CTkFrame(name_frame, width=6, height=24, fg_color=COLOR_VALUES[emp.color]).pack(side="left", padx=(0, 4))
            ctk.CTkLabel(name_frame, text=emp.full_name).pack(side="left")

            for col, date_str in enumerate(week, start=1):
                EmployeeGridCell(self.grid_frame, self.app, emp, date_str).grid(row=row, column=col, padx=1, pady=1)

            worked = weekly_hours(schedule, emp.id, week[0])
            target = f" / {emp.weekly_hours:g}" if emp.weekly_hours is not None else ""
            status = employee_hours_status(schedule, emp, week[0])
            ctk.CTkLabel(self.grid_frame, text=f"{worked}{target} ({HOURS_STATUS_LABELS[status]})").grid(
                row=row, column=8, padx=4)


class RequestsPanel(ctk.CTkScrollableFrame):
    """Pending requests with approve/reject actions, followed by decided ones"""

    def __init__(self, parent, app: 'MainWindow'):
        super().__init__(parent)
        self.app = app

    def refresh(self):
        for widget in self.winfo_children():
            widget.destroy()

        pending = self.app.workflow.pending_requests()
        ctk.CTkLabel(self, text=f"Offene Anträge ({len(pending)})",
                     font=ctk.CTkFont(size=15, weight="bold")).pack(anchor="w", pady=(5, 5))
        if not pending:
            ctk.CTkLabel(self, text="Keine offenen Anträge", text_color="gray").pack(anchor="w", padx=10)

        for request in pending:
            frame = ctk.CTkFrame(self)
            frame.pack(fill="x", pady=2)
            text = (f"{request.employee_name}: {REQUEST_TYPE_LABELS[request.type]} "
                    f"{format_date_de(request.start_date)} - {format_date_de(request.end_date, with_year=True)}")
            ctk.CTkLabel(frame, text=text).pack(side="left", padx=10)
            ctk.CTkButton(frame, text="Ablehnen", width=90, fg_color="#dc2626",
                          command=lambda r=request: self.app.decide_request(r.id, False)).pack(side="right", padx=4)
            ctk.CTkButton(frame, text="Genehmigen", width=90, fg_color="#16a34a",
                          command=lambda r=request: self.app.decide_request(r.id, True)).pack(side="right", padx=4)

        decided = [r for r in self.app.workflow.requests if r.status != RequestStatus.PENDING]
        if decided:
            ctk.CTkLabel(self, text="Entschiedene Anträge",
                         font=ctk.CTkFont(size=15, weight="bold")).pack(anchor="w", pady=(15, 5))
        for request in reversed(decided):
            text = (f"{request.employee_name}: {REQUEST_TYPE_LABELS[request.type]} "
                    f"{format_date_de(request.start_date)} - {format_date_de(request.end_date, with_year=True)} "
                    f"– {REQUEST_STATUS_LABELS[request.status]} ({request.reviewed_by})")
            ctk.CTkLabel(self, text=text, text_color="gray").pack(anchor="w", padx=10)


class DashboardPanel(ctk.CTkScrollableFrame):
    """Staffing and hours overview for the active week"""

    def __init__(self, parent, app: 'MainWindow'):
        super().__init__(parent)
        self.app = app

    def refresh(self):
        for widget in self.winfo_children():
            widget.destroy()

        report = WeekReport(self.app.data_manager.schedule,
                            self.app.data_manager.employees.get_employees(),
                            self.app.data_manager.current_week)

        ctk.CTkLabel(self, text="Übersicht", font=ctk.CTkFont(size=18, weight="bold")).pack(pady=(10, 10))
        ctk.CTkLabel(self, text=report.summary_text(), justify="left").pack(anchor="w", padx=10)

        ctk.CTkLabel(self, text="Stunden je Mitarbeiter",
                     font=ctk.CTkFont(weight="bold")).pack(anchor="w", padx=10, pady=(15, 5))
        for _, row in report.hours.iterrows():
            status = HoursStatus(row['Status'])
            target = "–" if pd.isna(row['Target']) else f"{row['Target']:g}"
            frame = ctk.CTkFrame(self, fg_color={
                HoursStatus.UNDER: "lightyellow",
                HoursStatus.FULFILLED: "lightgreen",
            }.get(status, "white"))
            frame.pack(fill="x", padx=10, pady=2)
            ctk.CTkLabel(frame, text=f"{row['Employee']} ({row['Primary_Area']})",
                         font=ctk.CTkFont(weight="bold")).pack(anchor="w", padx=10)
            ctk.CTkLabel(frame, text=f"Schichten: {row['Shifts']} | Stunden: {row['Hours']} | Soll: {target} "
                                     f"| {HOURS_STATUS_LABELS[status]}").pack(anchor="w", padx=20)

        year, month = report.month
        ctk.CTkLabel(self, text=f"Stunden im Monat {month:02d}.{year}",
                     font=ctk.CTkFont(weight="bold")).pack(anchor="w", padx=10, pady=(15, 5))
        for _, row in report.month_hours.iterrows():
            ctk.CTkLabel(self, text=f"{row['Employee']}: {row['Hours']} Std.").pack(anchor="w", padx=20)

        ctk.CTkLabel(self, text="Wochenplan je Bereich",
                     font=ctk.CTkFont(weight="bold")).pack(anchor="w", padx=10, pady=(15, 5))
        for area, table in report.week_tables.items():
            self._create_week_table(area, table)

        understaffed = report.understaffed()
        ctk.CTkLabel(self, text=f"Unterbesetzt ({len(understaffed)})",
                     font=ctk.CTkFont(weight="bold")).pack(anchor="w", padx=10, pady=(15, 5))
        for _, row in understaffed.iterrows():
            ctk.CTkLabel(self, text=f"{format_date_de(row['Date'], with_weekday=True)} {row['Area']} "
                                    f"{row['Shift']}: {row['Assigned']}/{row['Minimum']}").pack(anchor="w", padx=20)

    def _create_week_table(self, area: Area, table: pd.DataFrame):
        frame = ctk.CTkFrame(self)
        frame.pack(fill="x", padx=10, pady=4)
        ctk.CTkLabel(frame, text=area.value, font=ctk.CTkFont(weight="bold")).grid(row=0, column=0, padx=4, sticky="w")
        for col, column in enumerate(table.columns, start=1):
            ctk.CTkLabel(frame, text=column).grid(row=0, column=col, padx=4)
        for row_index, (shift, values) in enumerate(table.iterrows(), start=1):
            ctk.CTkLabel(frame, text=shift).grid(row=row_index, column=0, padx=4, sticky="w")
            for col, names in enumerate(values, start=1):
                ctk.CTkLabel(frame, text=names or "–", wraplength=120).grid(row=row_index, column=col, padx=4)


class AdminView(ctk.CTkFrame):
    """Administrator view with planning tabs"""

    def __init__(self, parent, app: 'MainWindow'):
        super().__init__(parent, fg_color="transparent")
        self.app = app

        toolbar = ctk.CTkFrame(self)
        toolbar.pack(fill="x", pady=(0, 5))
        ctk.CTkButton(toolbar, text="+ Mitarbeiter", command=app.open_employee_dialog).pack(side="left", padx=5, pady=5)
        ctk.CTkButton(toolbar, text="📅 Wochenplan erstellen", command=app.open_bulk_dialog).pack(side="left", padx=5)
        ctk.CTkButton(toolbar, text="Woche in nächste Woche kopieren",
                      command=app.copy_week_forward).pack(side="left", padx=5)

        self.tabs = ctk.CTkTabview(self, command=self.refresh)
        self.tabs.pack(fill="both", expand=True)
        self.week_grid = AreaWeekGrid(self.tabs.add("Wochenplan"), app)
        self.week_grid.pack(fill="both", expand=True)
        self.employee_grid = EmployeeGrid(self.tabs.add("Mitarbeiterplan"), app)
        self.employee_grid.pack(fill="both", expand=True)
        self.requests_panel = RequestsPanel(self.tabs.add("Anträge"), app)
        self.requests_panel.pack(fill="both", expand=True)
        self.dashboard = DashboardPanel(self.tabs.add("Übersicht"), app)
        self.dashboard.pack(fill="both", expand=True)

    def refresh(self):
        # Only the visible tab is rebuilt
        panels = {
            "Wochenplan": self.week_grid,
            "Mitarbeiterplan": self.employee_grid,
            "Anträge": self.requests_panel,
            "Übersicht": self.dashboard,
        }
        panels[self.tabs.get()].refresh()


class EmployeeView(ctk.CTkScrollableFrame):
    """Personal view: own shifts, hours, requests and notifications"""

    def __init__(self, parent, app: 'MainWindow'):
        super().__init__(parent)
        self.app = app

    def refresh(self):
        for widget in self.winfo_children():
            widget.destroy()

        data_manager = self.app.data_manager
        employee = data_manager.employees.get_employee_by_id(data_manager.current_employee_id)
        if employee is None:
            ctk.CTkLabel(self, text="Mitarbeiter").pack(pady=20)
            return

        header = ctk.CTkFrame(self, fg_color="transparent")
        header.pack(fill="x", pady=(5, 10))
        if employee.color is not None:
            ctk.CTkFrame(header, width=8, height=30, fg_color=COLOR_VALUES[employee.color]).pack(side="left", padx=(0, 8))
        ctk.CTkLabel(header, text=f"👤 Meine Schichten – {employee.full_name}",
                     font=ctk.CTkFont(size=18, weight="bold")).pack(side="left")

        self._create_my_week(employee)
        self._create_request_form(employee)
        self._create_notifications(employee)

        ctk.CTkLabel(self, text="Gesamter Wochenplan",
                     font=ctk.CTkFont(size=15, weight="bold")).pack(anchor="w", pady=(15, 5))
        plan = AreaWeekGrid(self, self.app, editable=False)
        plan.pack(fill="x", expand=True)
        plan.refresh()

    def _create_my_week(self, employee: Employee):
        schedule = self.app.data_manager.schedule
        week = week_dates(self.app.data_manager.current_week)

        worked = weekly_hours(schedule, employee.id, week[0])
        status = employee_hours_status(schedule, employee, week[0])
        target = f" von {employee.weekly_hours:g}" if employee.weekly_hours is not None else ""
        ctk.CTkLabel(self, text=f"Stunden diese Woche: {worked}{target} ({HOURS_STATUS_LABELS[status]})").pack(anchor="w")
        monday = get_monday(week[0])
        month_total = monthly_hours(schedule, employee.id, monday.year, monday.month)
        ctk.CTkLabel(self, text=f"Stunden im Monat {monday.month:02d}.{monday.year}: {month_total}").pack(anchor="w")

        ctk.CTkLabel(self, text="Meine Einsätze diese Woche",
                     font=ctk.CTkFont(size=15, weight="bold")).pack(anchor="w", pady=(10, 5))
        cards = ctk.CTkFrame(self, fg_color="transparent")
        cards.pack(fill="x")

        count = 0
        for index, date_str in enumerate(week):
            placement = schedule.get_placement(date_str, employee.id)
            if placement is None:
                continue
            card = ctk.CTkFrame(cards, width=150)
            card.grid(row=0, column=count, padx=4, pady=4, sticky="n")
            ctk.CTkLabel(card, text=f"{WEEKDAYS[index]} {format_date_de(date_str)}",
                         font=ctk.CTkFont(weight="bold")).pack(padx=10, pady=(5, 0))
            if isinstance(placement, RegularPlacement):
                ctk.CTkLabel(card, text=f"{placement.shift.value}\n{SHIFT_TIMES[placement.shift]}").pack(padx=10)
                ctk.CTkLabel(card, text=f"📍 {placement.area.value}").pack(padx=10, pady=(0, 5))
            else:
                ctk.CTkLabel(card, text=placement.status.value,
                             fg_color=STATUS_CELL_COLORS[placement.status], corner_radius=4).pack(padx=10, pady=(0, 5))
            count += 1

        if count == 0:
            ctk.CTkLabel(cards, text="Keine Schichten für diese Woche eingeplant", text_color="gray").grid(row=0, column=0)

    def _create_request_form(self, employee: Employee):
        ctk.CTkLabel(self, text="Antrag stellen", font=ctk.CTkFont(size=15, weight="bold")).pack(anchor="w", pady=(15, 5))
        form = ctk.CTkFrame(self)
        form.pack(fill="x")

        week_start = self.app.data_manager.current_week
        start_entry = ctk.CTkEntry(form, width=120)
        start_entry.insert(0, week_start)
        start_entry.pack(side="left", padx=5, pady=5)
        ctk.CTkLabel(form, text="bis").pack(side="left")
        end_entry = ctk.CTkEntry(form, width=120)
        end_entry.insert(0, week_start)
        end_entry.pack(side="left", padx=5)

        type_labels = {REQUEST_TYPE_LABELS[t]: t for t in RequestType}
        type_var = ctk.StringVar(value=REQUEST_TYPE_LABELS[RequestType.VACATION])
        ctk.CTkOptionMenu(form, variable=type_var, values=list(type_labels)).pack(side="left", padx=5)
        ctk.CTkButton(form, text="Absenden", command=lambda: self.app.submit_request(
            employee.id, start_entry.get().strip(), end_entry.get().strip(), type_labels[type_var.get()]
        )).pack(side="left", padx=5)

        for request in reversed(self.app.workflow.requests_for(employee.id)):
            text = (f"{REQUEST_TYPE_LABELS[request.type]} {format_date_de(request.start_date)} - "
                    f"{format_date_de(request.end_date, with_year=True)}: {REQUEST_STATUS_LABELS[request.status]}")
            ctk.CTkLabel(self, text=text, text_color="gray").pack(anchor="w", padx=10)

    def _create_notifications(self, employee: Employee):
        workflow = self.app.workflow
        unread = workflow.unread_count(employee.id)
        title_frame = ctk.CTkFrame(self, fg_color="transparent")
        title_frame.pack(fill="x", pady=(15, 5))
        ctk.CTkLabel(title_frame, text=f"🔔 Benachrichtigungen ({unread} neu)",
                     font=ctk.CTkFont(size=15, weight="bold")).pack(side="left")
        if unread:
            ctk.CTkButton(title_frame, text="Alle gelesen", width=100,
                          command=lambda: self.app.mark_all_read(employee.id)).pack(side="left", padx=10)

        for notification in reversed(workflow.notifications_for(employee.id)):
            frame = ctk.CTkFrame(self, fg_color="white" if notification.read else WARNING_COLOR)
            frame.pack(fill="x", pady=2)
            ctk.CTkLabel(frame, text=f"{format_date_de(notification.date)} {notification.message}",
                         wraplength=700, justify="left").pack(side="left", padx=10, pady=4)
            if not notification.read:
                ctk.CTkButton(frame, text="Gelesen", width=80,
                              command=lambda n=notification: self.app.mark_read(n.id)).pack(side="right", padx=5)


class MainWindow(ctk.CTk):
    """Main application window"""

    def __init__(self, data_manager: DataManager, engine: AssignmentEngine, workflow: VacationWorkflow):
        super().__init__()

        self.title("Schichtplan")
        self.geometry("1400x900")

        self.data_manager = data_manager
        self.engine = engine
        self.workflow = workflow
        self.selection = CellSelection()
        self.drag = DragController(self)
        self.current_view = None

        self._create_widgets()
        self.show_view(self.data_manager.view)

    def _create_widgets(self):
        nav = ctk.CTkFrame(self, height=60)
        nav.pack(fill="x", padx=10, pady=10)

        self.view_var = ctk.StringVar(value="👨‍💼 Admin" if self.data_manager.view == VIEW_ADMIN else "👤 Mitarbeiter")
        ctk.CTkSegmentedButton(
            nav,
            values=["👨‍💼 Admin", "👤 Mitarbeiter"],
            variable=self.view_var,
            command=lambda value: self.show_view(VIEW_ADMIN if "Admin" in value else VIEW_EMPLOYEE),
        ).pack(side="left", padx=10, pady=10)

        self.employee_var = ctk.StringVar()
        self.employee_menu = ctk.CTkOptionMenu(nav, variable=self.employee_var, values=[""],
                                               command=self._on_employee_change, width=200)

        ctk.CTkButton(nav, text="Nächste Woche →", width=140,
                      command=lambda: self.change_week("next")).pack(side="right", padx=5)
        self.week_label = ctk.CTkLabel(nav, text="", font=ctk.CTkFont(weight="bold"))
        self.week_label.pack(side="right", padx=10)
        ctk.CTkButton(nav, text="← Vorherige Woche", width=140,
                      command=lambda: self.change_week("prev")).pack(side="right", padx=5)

        self.status = StatusMessage(self)
        self.status.pack(fill="x", padx=10)

        self.content = ctk.CTkFrame(self, fg_color="transparent")
        self.content.pack(fill="both", expand=True, padx=10, pady=(5, 10))

    def _update_employee_menu(self):
        self.employee_map = employee_labels(self.data_manager.employees.get_employees())
        labels = list(self.employee_map) or [""]
        self.employee_menu.configure(values=labels)
        current = next((label for label, emp_id in self.employee_map.items()
                        if emp_id == self.data_manager.current_employee_id), labels[0])
        self.employee_var.set(current)

    def show_view(self, view: str):
        self.data_manager.set_view(view)
        if self.current_view is not None:
            self.current_view.destroy()

        if view == VIEW_ADMIN:
            self.employee_menu.pack_forget()
            self.current_view = AdminView(self.content, self)
        else:
            self._update_employee_menu()
            self.employee_menu.pack(side="left", padx=10)
            self.current_view = EmployeeView(self.content, self)
        self.current_view.pack(fill="both", expand=True)
        self.refresh()

    def refresh(self):
        self.week_label.configure(text=f"Woche: {format_week_range(self.data_manager.current_week)}")
        if self.current_view is not None:
            self.current_view.refresh()

    def _on_employee_change(self, label: str):
        emp_id = self.employee_map.get(label)
        if emp_id is not None:
            self.run_action(self.data_manager.set_current_employee, emp_id)

    def change_week(self, direction: str):
        self.data_manager.change_week(direction)
        self.selection.clear()
        self.refresh()

    def run_action(self, action: Callable, *args, **kwargs):
        """Run a user action, turning recoverable errors into status messages"""
        try:
            result = action(*args, **kwargs)
        except (SchedulingError, DataValidationError) as e:
            self.status.show(str(e), duration_ms=5000)
            return None
        except (UnknownEmployeeError, UnknownRequestError, RequestAlreadyDecidedError) as e:
            logger.warning(f"Action {getattr(action, '__name__', action)} aborted: {e}")
            return None
        except ValueError as e:
            # Malformed date input from a text field
            self.status.show(f"⚠️ Ungültige Eingabe: {e}", duration_ms=5000)
            return None
        self.refresh()
        return result

    # Admin actions

    def assign(self, date_str: str, area: Area, shift: ShiftType, emp_id: str):
        result = self.run_action(self.engine.assign, date_str, area, shift, emp_id)
        if result is not None:
            self.status.show(result.message)

    def remove_assignment(self, date_str: str, area: Area, shift: ShiftType, emp_id: str):
        self.run_action(self.engine.remove, date_str, area, shift, emp_id)

    def copy_assignment(self, payload: Dict[str, Any], date_str: str, area: Area, shift: ShiftType):
        result = self.run_action(
            self.engine.copy_by_drag, payload["employee_id"], payload["employee_name"],
            payload["date"], payload["area"], payload["shift"], date_str, area, shift,
        )
        if result is not None:
            self.status.show(result.message)

    def select_cell(self, emp_id: str, date_str: str, extend: bool):
        if extend:
            if not self.selection.extend_to(emp_id, date_str):
                self.status.show("⚠️ Bereichsauswahl ist nur innerhalb eines Mitarbeiters möglich!")
        else:
            self.selection.toggle(emp_id, date_str)
        self.refresh()

    def clear_selection(self):
        self.selection.clear()
        self.refresh()

    def drop_tag(self, payload: Dict[str, Any], target_emp_id: str, target_date: str):
        edits = self.run_action(
            self.engine.drop_shift_tag, payload["employee_id"], payload["date"], payload["tag"],
            target_date, target_emp_id, self.selection,
        )
        if edits:
            self.selection.clear()
            self.refresh()
            self.status.show(f"✅ {len(edits)} Eintrag/Einträge aktualisiert!")

    def set_status_for_selection(self, status: Optional[SpecialStatus]):
        if not self.selection.is_active:
            self.status.show("⚠️ Bitte wählen Sie zuerst Zellen im Mitarbeiterplan aus!")
            return
        changed = self.run_action(self.engine.set_status_for_cells, self.selection.cells(), status)
        self.selection.clear()
        self.refresh()
        if changed is not None:
            self.status.show(f"✅ {changed} Eintrag/Einträge aktualisiert!")

    def copy_week_forward(self):
        source = self.data_manager.current_week
        target = (get_monday(source) + timedelta(days=7)).isoformat()
        copied = self.run_action(self.data_manager.schedule.copy_week, source, target)
        if copied is not None:
            self.status.show(f"✅ {copied} Einträge in die Woche ab {format_date_de(target)} kopiert!")

    def open_employee_dialog(self):
        EmployeeDialog(self, on_save=self._add_employee)

    def _add_employee(self, fields: Dict[str, Any]) -> Optional[str]:
        try:
            employee = self.data_manager.employees.add_employee(**fields)
        except DataValidationError as e:
            return str(e)
        self.refresh()
        self.status.show(f"✅ {employee.full_name} wurde hinzugefügt "
                         f"({', '.join(a.value for a in employee.areas)})!")
        return None

    def open_bulk_dialog(self):
        BulkAssignmentDialog(self, self.data_manager.employees.get_employees(),
                             self.data_manager.current_week, on_submit=self._bulk_assign)

    def _bulk_assign(self, employee_ids: List[str], start: str, end: str,
                     weekdays: List[int], shift: ShiftType) -> Optional[str]:
        try:
            result = self.engine.bulk_assign(employee_ids, start, end, weekdays, shift)
        except DataValidationError as e:
            return str(e)
        except ValueError as e:
            return f"⚠️ Ungültiges Datum: {e}"
        self.refresh()
        self.status.show(result.message, duration_ms=5000)
        return None

    def decide_request(self, request_id: str, approved: bool):
        notification = self.run_action(self.workflow.decide, request_id, approved, "Admin")
        if notification is not None:
            self.status.show("✅ Antrag genehmigt!" if approved else "✅ Antrag abgelehnt!")

    # Employee actions

    def submit_request(self, emp_id: str, start: str, end: str, request_type: RequestType):
        request = self.run_action(self.workflow.submit_request, emp_id, start, end, request_type)
        if request is not None:
            self.status.show(f"✅ {REQUEST_TYPE_LABELS[request.type]} wurde eingereicht!")

    def mark_read(self, notification_id: str):
        self.run_action(self.workflow.mark_read, notification_id)

    def mark_all_read(self, emp_id: str):
        self.run_action(self.workflow.mark_all_read, emp_id)
