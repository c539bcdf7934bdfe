from pathlib import Path

import pytest
from openpyxl import Workbook

from zonecheck.data import warehouse_repository
from zonecheck.data.warehouse_repository import (
    SupabaseWarehouseRepository,
    WorkbookWarehouseRepository,
    get_warehouse_repository,
    warehouse_from_record,
)


def _write_workbook(path: Path, rows: list[list]) -> Path:
    wb = Workbook()
    sheet = wb.active
    sheet.append(
        ["ID", "Name", "Address", "Latitude", "Longitude", "Status", "DeliveryEnabled", "Is24x7", "Pincodes", "MaxRadiusKm", "FreeRadiusKm"]
    )
    for row in rows:
        sheet.append(row)
    wb.save(path)
    return path


def test_workbook_repository_filters_active_and_located(tmp_path: Path):
    path = _write_workbook(
        tmp_path / "warehouses.xlsx",
        [
            ["W1", "Central", "1 Main Rd", 12.90, 77.58, "active", True, False, "560001, 560002", 5, 2],
            ["W2", "North", "2 Hill Rd", 13.10, 77.60, "inactive", True, True, None, 10, 3],
            ["W3", "Unmapped", "3 Lake Rd", None, None, "active", "yes", "no", 560003, None, None],
        ],
    )
    repository = WorkbookWarehouseRepository(path)

    active = repository.find_active()

    assert [warehouse.id for warehouse in active] == ["W1"]
    central = active[0]
    assert central.delivery_settings.delivery_pincodes == frozenset({"560001", "560002"})
    assert central.delivery_settings.is_24x7_delivery is False
    assert central.delivery_settings.max_delivery_radius_km == 5.0
    assert central.location.lat == pytest.approx(12.90)

    by_id = {warehouse.id: warehouse for warehouse in repository.find_by_ids(["W2", "W3"], active_only=False)}
    assert set(by_id) == {"W2", "W3"}
    assert by_id["W3"].location is None
    assert by_id["W3"].delivery_settings.delivery_pincodes == frozenset({"560003"})
    assert by_id["W3"].delivery_settings.max_delivery_radius_km == 50.0
    assert repository.find_by_ids(["W2"]) == []


def test_workbook_missing_columns(tmp_path: Path):
    wb = Workbook()
    wb.active.append(["ID", "Name"])
    path = tmp_path / "broken.xlsx"
    wb.save(path)

    with pytest.raises(ValueError, match="missing columns"):
        WorkbookWarehouseRepository(path).find_active()


def test_workbook_not_found(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        WorkbookWarehouseRepository(tmp_path / "absent.xlsx").find_active()


def test_record_defaults_and_config_warnings(caplog):
    with caplog.at_level("WARNING"):
        warehouse = warehouse_from_record(
            {
                "id": 7,
                "latitude": "12.9",
                "longitude": "77.58",
                "delivery_pincodes": ["560001", "ABC"],
                "max_delivery_radius": 2,
                "free_delivery_radius": 4,
            }
        )

    assert warehouse.id == "7"
    assert warehouse.name == "7"
    assert warehouse.status == "active"
    assert warehouse.delivery_settings.is_delivery_enabled is True
    assert "exceeds" in caplog.text
    assert "ABC" in caplog.text


def test_record_without_id_is_rejected():
    with pytest.raises(ValueError):
        warehouse_from_record({"name": "Nameless"})


class _FakeQuery:
    def __init__(self, rows, log):
        self.rows = rows
        self.log = log

    def __getattr__(self, name):
        def method(*args):
            self.log.append((name, args))
            return self

        return method

    @property
    def not_(self):
        self.log.append(("not_", ()))
        return self

    def execute(self):
        return type("Response", (), {"data": self.rows})()


class _FakeSupabase:
    def __init__(self, rows):
        self.rows = rows
        self.log = []

    def table(self, name):
        self.log.append(("table", (name,)))
        return _FakeQuery(self.rows, self.log)


def test_supabase_repository_queries_active_located_warehouses():
    client = _FakeSupabase(
        [
            {"id": "W1", "name": "Central", "latitude": 12.9, "longitude": 77.58, "status": "active", "is_24x7_delivery": True},
            {"id": "W2", "name": "Broken", "latitude": None, "longitude": None, "status": "active"},
        ]
    )

    warehouses = SupabaseWarehouseRepository(client).find_active()

    assert [warehouse.id for warehouse in warehouses] == ["W1"]
    assert ("table", ("warehouses",)) in client.log
    assert ("eq", ("status", "active")) in client.log


def test_supabase_repository_find_by_ids_uses_in_filter():
    client = _FakeSupabase([{"id": "W1", "latitude": 12.9, "longitude": 77.58}])

    warehouses = SupabaseWarehouseRepository(client).find_by_ids(["W1", "W9"])

    assert [warehouse.id for warehouse in warehouses] == ["W1"]
    assert ("in_", ("id", ["W1", "W9"])) in client.log


def test_repository_selection_is_explicit(monkeypatch):
    settings = warehouse_repository.settings

    monkeypatch.setattr(settings, "warehouse_source", "file")
    assert isinstance(get_warehouse_repository(), WorkbookWarehouseRepository)

    monkeypatch.setattr(settings, "warehouse_source", "database")
    assert isinstance(get_warehouse_repository(), SupabaseWarehouseRepository)

    monkeypatch.setattr(settings, "warehouse_source", "auto")
    monkeypatch.setattr(warehouse_repository, "is_configured", lambda: False)
    assert isinstance(get_warehouse_repository(), WorkbookWarehouseRepository)
    monkeypatch.setattr(warehouse_repository, "is_configured", lambda: True)
    assert isinstance(get_warehouse_repository(), SupabaseWarehouseRepository)
