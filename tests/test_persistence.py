import pytest
from datetime import date
from pathlib import Path
import json
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from schichtplan.data_manager import (
    DEMO_EMPLOYEES,
    VIEW_ADMIN,
    VIEW_EMPLOYEE,
    DataManager,
    DataValidationError,
    UnknownEmployeeError,
    migrate_employee_record,
)
from schichtplan.models import Area, Employee, EmployeeColor, RegularPlacement, ShiftType, SpecialPlacement, SpecialStatus
from schichtplan.scheduler_logic import AssignmentEngine
from schichtplan.storage import JsonFileStore, MemoryStore, StorageError
from schichtplan.vacation import VacationWorkflow

TODAY = date(2025, 1, 8)
MONDAY = "2025-01-06"


class FailingStore(MemoryStore):
    """MemoryStore whose writes always fail"""

    def set(self, key, value):
        raise StorageError(f"disk full while writing {key}")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def data_manager(store):
    """Fixture for a DataManager on an empty in-memory store."""
    return DataManager(store, today=TODAY)


# Defaults and round trip

def test_defaults_on_empty_store(data_manager, store):
    """Tests that an empty store yields the demo roster and default preferences."""
    employees = data_manager.employees.get_employees()

    assert [emp.full_name for emp in employees] == [
        "Max Mustermann", "Anna Schmidt", "Tom Weber", "Lisa Müller", "Jan Klein"
    ]
    assert employees[1].areas == [Area.KASSE, Area.GASTRO]
    assert data_manager.view == VIEW_ADMIN
    assert data_manager.current_week == MONDAY
    assert data_manager.current_employee_id == "1"
    assert data_manager.schedule.days() == []
    # The roster is written back on load
    assert len(json.loads(store.values["employees"])) == len(DEMO_EMPLOYEES)


def test_state_survives_reload(data_manager, store):
    """Tests that schedule, requests and preferences load back from the store."""
    engine = AssignmentEngine(data_manager.schedule, data_manager.employees)
    workflow = VacationWorkflow(data_manager)
    engine.assign(MONDAY, Area.HALLE, ShiftType.EARLY, "1")
    request = workflow.submit_request("2", "2025-01-07", "2025-01-08")
    workflow.decide(request.id, approved=False)
    data_manager.set_view(VIEW_EMPLOYEE)
    data_manager.set_current_employee("3")
    data_manager.change_week("next")

    reloaded = DataManager(store, today=TODAY)

    assert reloaded.schedule.get_placement(MONDAY, "1") == RegularPlacement(Area.HALLE, ShiftType.EARLY)
    assert reloaded.schedule.get_placement("2025-01-08", "2") == SpecialPlacement(SpecialStatus.VACATION_REJECTED)
    assert [r.to_dict() for r in reloaded.vacation_requests] == [request.to_dict()]
    assert len(reloaded.notifications) == 1
    assert reloaded.view == VIEW_EMPLOYEE
    assert reloaded.current_employee_id == "3"
    assert reloaded.current_week == "2025-01-13"


def test_week_navigation(data_manager):
    assert data_manager.change_week("prev") == "2024-12-30"
    assert data_manager.change_week("next") == MONDAY
    assert data_manager.set_current_week("2025-01-10") == MONDAY


def test_set_current_employee_unknown(data_manager):
    with pytest.raises(UnknownEmployeeError):
        data_manager.set_current_employee("999")
    assert data_manager.current_employee_id == "1"


# Migration

def test_legacy_name_is_split():
    """Tests that a combined name is split on the first space."""
    record = migrate_employee_record({"id": "7", "name": "Erika von Mustermann", "areas": ["Kasse"]})

    assert record["firstName"] == "Erika"
    assert record["lastName"] == "von Mustermann"
    assert record["areas"] == ["Kasse"]


def test_areas_are_cleaned():
    """Tests that unknown and duplicate areas are dropped and the list truncated."""
    record = migrate_employee_record({
        "id": "8", "firstName": "A", "lastName": "B",
        "areas": ["Halle", "Keller", "Halle", "Kasse", "Sauna", "Gastro", "Reinigung"],
    })
    assert record["areas"] == ["Halle", "Kasse", "Sauna", "Gastro"]

    assert migrate_employee_record({"id": "9", "name": "Solo"})["areas"] == ["Halle"]
    assert migrate_employee_record({"id": "9", "name": "Solo", "areas": []})["areas"] == ["Halle"]


def test_migration_is_idempotent():
    once = migrate_employee_record({"id": "7", "name": "Erika Mustermann"})
    assert migrate_employee_record(once) == once


def test_legacy_records_are_migrated_on_load():
    """Tests that legacy employee records are upgraded and written back."""
    store = MemoryStore({"employees": json.dumps([
        {"id": "7", "name": "Erika Mustermann", "areas": []},
        {"id": "8", "firstName": "Paul", "lastName": "Meier", "areas": ["Sauna"], "weeklyHours": 20},
    ])})

    data_manager = DataManager(store, today=TODAY)

    erika = data_manager.employees.get_employee_by_id("7")
    assert (erika.first_name, erika.last_name, erika.areas) == ("Erika", "Mustermann", [Area.HALLE])
    assert data_manager.employees.get_employee_by_id("8").weekly_hours == 20
    stored = json.loads(store.values["employees"])
    assert stored[0] == {"id": "7", "firstName": "Erika", "lastName": "Mustermann", "areas": ["Halle"]}
    assert data_manager.current_employee_id == "7"


# Malformed state

@pytest.mark.parametrize("key, raw", [
    ("schedule", "{not json"),
    ("schedule", json.dumps({"date": "2025-01-06"})),
    ("vacation_requests", json.dumps([{"employeeId": "1"}])),
    ("notifications", json.dumps("oops")),
    ("view", json.dumps("boss")),
    ("current_week", json.dumps("next tuesday")),
])
def test_malformed_key_falls_back_to_default(key, raw):
    """Tests that a corrupt key is discarded and replaced by its default."""
    store = MemoryStore({key: raw})

    data_manager = DataManager(store, today=TODAY)

    assert key not in store.values
    assert data_manager.schedule.days() == []
    assert data_manager.vacation_requests == []
    assert data_manager.notifications == []
    assert data_manager.view == VIEW_ADMIN
    assert data_manager.current_week == MONDAY


def test_malformed_employees_use_demo_roster():
    store = MemoryStore({"employees": "[{\"firstName\": "})

    data_manager = DataManager(store, today=TODAY)

    assert len(data_manager.employees.get_employees()) == 5
    assert len(json.loads(store.values["employees"])) == 5


def test_unknown_current_employee_falls_back():
    store = MemoryStore({"current_employee": json.dumps("42")})

    data_manager = DataManager(store, today=TODAY)

    assert data_manager.current_employee_id == "1"


def test_write_failure_keeps_memory_state():
    """Tests that failed writes are logged and the change stays in memory."""
    data_manager = DataManager(FailingStore(), today=TODAY)
    engine = AssignmentEngine(data_manager.schedule, data_manager.employees)

    result = engine.assign(MONDAY, Area.HALLE, ShiftType.EARLY, "1")

    assert result.created
    assert data_manager.schedule.get_placement(MONDAY, "1") == RegularPlacement(Area.HALLE, ShiftType.EARLY)
    assert not data_manager.persist("schedule")
    assert not data_manager.save_data()


# Employee directory

def test_add_employee(data_manager, store):
    """Tests that a new employee gets a fresh id and is persisted."""
    employee = data_manager.employees.add_employee(
        " Erika ", "Musterfrau", [Area.SAUNA, Area.HALLE, Area.SAUNA],
        phone="0123", weekly_hours=30, color=EmployeeColor.GREEN,
    )

    assert employee.full_name == "Erika Musterfrau"
    assert employee.areas == [Area.SAUNA, Area.HALLE]
    assert employee.primary_area == Area.SAUNA
    assert employee.id not in {"1", "2", "3", "4", "5"}
    stored = json.loads(store.values["employees"])[-1]
    assert stored["color"] == "Grün"
    assert stored["weeklyHours"] == 30
    assert "email" not in stored


@pytest.mark.parametrize("first_name, last_name, areas, weekly_hours", [
    ("", "Musterfrau", [Area.HALLE], None),
    ("Erika", "  ", [Area.HALLE], None),
    ("Erika", "Musterfrau", [], None),
    ("Erika", "Musterfrau", [Area.HALLE, Area.KASSE, Area.SAUNA, Area.GASTRO, Area.REINIGUNG], None),
    ("Erika", "Musterfrau", ["Keller"], None),
    ("Erika", "Musterfrau", [Area.HALLE], -5),
])
def test_add_employee_validation(data_manager, first_name, last_name, areas, weekly_hours):
    with pytest.raises(DataValidationError):
        data_manager.employees.add_employee(first_name, last_name, areas, weekly_hours=weekly_hours)
    assert len(data_manager.employees.get_employees()) == 5


def test_renamed_employee_keeps_cached_names(data_manager):
    """Tests that existing assignments keep the name they were created with."""
    engine = AssignmentEngine(data_manager.schedule, data_manager.employees)
    engine.assign(MONDAY, Area.HALLE, ShiftType.EARLY, "1")

    employee = data_manager.employees.get_employee_by_id("1")
    employee.last_name = "Muster"
    data_manager.employees.update_employee(employee)
    engine.assign("2025-01-07", Area.HALLE, ShiftType.EARLY, "1")

    assert data_manager.schedule.get_assignments(MONDAY, Area.HALLE, ShiftType.EARLY)[0].employee_name == "Max Mustermann"
    assert data_manager.schedule.get_assignments("2025-01-07", Area.HALLE, ShiftType.EARLY)[0].employee_name == "Max Muster"


def test_update_unknown_employee_leaves_record_untouched(data_manager):
    """Tests that updating an unknown id raises without cleaning the passed record."""
    stranger = Employee(id="99", first_name="Erika", last_name="Musterfrau",
                        areas=[Area.KASSE, Area.KASSE])

    with pytest.raises(UnknownEmployeeError):
        data_manager.employees.update_employee(stranger)

    assert stranger.areas == [Area.KASSE, Area.KASSE]
    assert len(data_manager.employees.get_employees()) == 5


# JSON file store

def test_json_file_store_keeps_backup(tmp_path):
    """Tests that every write keeps the previous version as a backup file."""
    store = JsonFileStore(tmp_path)

    assert store.get("view") is None
    store.set("view", json.dumps("admin"))
    store.set("view", json.dumps("employee"))

    path = store.path_for("view")
    assert path.name == "schichtplan_view.json"
    assert json.loads(path.read_text(encoding="utf-8")) == "employee"
    assert json.loads(path.with_suffix(".bak").read_text(encoding="utf-8")) == "admin"
    assert not path.with_suffix(".tmp").exists()

    store.remove("view")
    assert store.get("view") is None
    store.remove("view")


def test_data_manager_on_json_files(tmp_path):
    """Tests a full reload through the file-backed store."""
    data_manager = DataManager(JsonFileStore(tmp_path), today=TODAY)
    data_manager.employees.add_employee("Lena", "Groß", [Area.GASTRO])
    data_manager.schedule.set_special_status(MONDAY, "2", SpecialStatus.SICK)

    reloaded = DataManager(JsonFileStore(tmp_path), today=TODAY)

    assert reloaded.employees.get_employees()[-1].full_name == "Lena Groß"
    assert reloaded.schedule.get_placement(MONDAY, "2") == SpecialPlacement(SpecialStatus.SICK)
    assert (tmp_path / "schichtplan_schedule.json").exists()
