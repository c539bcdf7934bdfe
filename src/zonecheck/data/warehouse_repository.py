"""Warehouse read model backed by Supabase or an Excel workbook.

The source is chosen once from ``settings.warehouse_source``; a failing
database query is an error, not a silent switch to the workbook.
"""

from __future__ import annotations

import logging
import math
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Protocol, Sequence

from openpyxl import load_workbook

from ..config import settings
from ..db.supabase import get_supabase_client, is_configured
from ..models.domain import (
    DEFAULT_FREE_DELIVERY_RADIUS_KM,
    DEFAULT_MAX_DELIVERY_RADIUS_KM,
    Coordinate,
    DeliverySettings,
    Warehouse,
)
from ..services.delivery.policy import validate_delivery_settings
from ..services.geospatial import is_valid_coordinate

WAREHOUSE_TABLE = "warehouses"

# workbook header -> record key
WORKBOOK_COLUMNS = {
    "ID": "id",
    "Name": "name",
    "Address": "address",
    "Latitude": "latitude",
    "Longitude": "longitude",
    "Status": "status",
    "DeliveryEnabled": "is_delivery_enabled",
    "Is24x7": "is_24x7_delivery",
    "Pincodes": "delivery_pincodes",
    "MaxRadiusKm": "max_delivery_radius",
    "FreeRadiusKm": "free_delivery_radius",
}
REQUIRED_WORKBOOK_COLUMNS = {"ID", "Name", "Latitude", "Longitude"}

logger = logging.getLogger(__name__)


class WarehouseRepository(Protocol):
    def find_active(self) -> list[Warehouse]:
        """Active warehouses that have a location."""

    def find_by_ids(self, ids: Sequence[str], active_only: bool = True) -> list[Warehouse]:
        """Warehouses whose id is in ``ids``."""


def _as_bool(value: Any, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in {"true", "yes", "y", "1"}


def _as_float(value: Any, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _pincode_text(value: Any) -> str:
    # Excel hands back 560001 as an int or 560001.0
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _as_pincodes(value: Any) -> frozenset[str]:
    if value is None or value == "":
        return frozenset()
    if isinstance(value, str):
        parts: Iterable[Any] = value.replace(";", ",").replace("\n", ",").split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        parts = value
    else:
        parts = [value]
    return frozenset(code for code in (_pincode_text(part) for part in parts) if code)


def _as_location(lat: Any, lng: Any) -> Coordinate | None:
    if lat is None or lng is None or lat == "" or lng == "":
        return None
    try:
        lat_value, lng_value = float(lat), float(lng)
    except (TypeError, ValueError):
        return None
    if not is_valid_coordinate(lat_value, lng_value):
        return None
    return Coordinate(lat=lat_value, lng=lng_value)


def warehouse_from_record(record: dict) -> Warehouse:
    """Build a Warehouse from a flat record (database row or workbook line)."""
    warehouse_id = record.get("id")
    if warehouse_id is None or str(warehouse_id).strip() == "":
        raise ValueError("Warehouse record has no id")
    name = record.get("name")
    warehouse = Warehouse(
        id=str(warehouse_id).strip(),
        name=str(name).strip() if name else str(warehouse_id).strip(),
        address=record.get("address"),
        location=_as_location(record.get("latitude"), record.get("longitude")),
        status=str(record.get("status") or "active").strip().lower(),
        delivery_settings=DeliverySettings(
            is_delivery_enabled=_as_bool(record.get("is_delivery_enabled"), True),
            is_24x7_delivery=_as_bool(record.get("is_24x7_delivery"), False),
            delivery_pincodes=_as_pincodes(record.get("delivery_pincodes")),
            max_delivery_radius_km=_as_float(record.get("max_delivery_radius"), DEFAULT_MAX_DELIVERY_RADIUS_KM),
            free_delivery_radius_km=_as_float(record.get("free_delivery_radius"), DEFAULT_FREE_DELIVERY_RADIUS_KM),
        ),
    )
    for issue in validate_delivery_settings(warehouse):
        logger.warning(f"Warehouse {warehouse.name} ({warehouse.id}): {issue}")
    return warehouse


def _records_to_warehouses(records: Iterable[dict]) -> list[Warehouse]:
    warehouses: list[Warehouse] = []
    for record in records:
        try:
            warehouses.append(warehouse_from_record(record))
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Skipping invalid warehouse row: {e}")
    return warehouses


def _filter(warehouses: Iterable[Warehouse], ids: Sequence[str] | None, active_only: bool) -> list[Warehouse]:
    id_set = {str(item) for item in ids} if ids is not None else None
    selected = []
    for warehouse in warehouses:
        if id_set is not None and warehouse.id not in id_set:
            continue
        if active_only and not warehouse.is_active:
            continue
        selected.append(warehouse)
    return selected


class SupabaseWarehouseRepository:
    """Reads the ``warehouses`` table."""

    def __init__(self, client: Any = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        client = self._client or get_supabase_client()
        if client is None:
            raise RuntimeError("Supabase is not configured for the warehouse read model.")
        return client

    def find_active(self) -> list[Warehouse]:
        response = (
            self.client.table(WAREHOUSE_TABLE)
            .select("*")
            .eq("status", "active")
            .not_.is_("latitude", "null")
            .not_.is_("longitude", "null")
            .execute()
        )
        warehouses = _records_to_warehouses(response.data or [])
        return [warehouse for warehouse in warehouses if warehouse.location is not None]

    def find_by_ids(self, ids: Sequence[str], active_only: bool = True) -> list[Warehouse]:
        if not ids:
            return []
        query = self.client.table(WAREHOUSE_TABLE).select("*").in_("id", [str(item) for item in ids])
        if active_only:
            query = query.eq("status", "active")
        response = query.execute()
        return _records_to_warehouses(response.data or [])


@lru_cache(maxsize=4)
def load_workbook_warehouses(path: Path) -> tuple[Warehouse, ...]:
    """Load warehouses from an Excel workbook."""
    if not path.exists():
        raise FileNotFoundError(f"Warehouse workbook not found: {path}")

    wb = load_workbook(path, data_only=True, read_only=True)
    try:
        sheet = wb.active
        rows = sheet.iter_rows(min_row=1, values_only=True)
        header = next(rows, None)
        if header is None:
            raise ValueError(f"Warehouse workbook '{path}' is empty.")

        header_map = {str(name).strip(): idx for idx, name in enumerate(header) if name is not None}
        missing_columns = REQUIRED_WORKBOOK_COLUMNS - set(header_map)
        if missing_columns:
            raise ValueError(f"Warehouse workbook missing columns: {', '.join(sorted(missing_columns))}")

        records = []
        for row in rows:
            if not row or all(cell is None for cell in row):
                continue
            records.append(
                {
                    key: row[header_map[column]] if header_map[column] < len(row) else None
                    for column, key in WORKBOOK_COLUMNS.items()
                    if column in header_map
                }
            )
    finally:
        wb.close()
    return tuple(_records_to_warehouses(records))


class WorkbookWarehouseRepository:
    """Reads warehouses from the configured workbook."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or settings.warehouses_file

    def _all(self) -> tuple[Warehouse, ...]:
        return load_workbook_warehouses(self.path)

    def find_active(self) -> list[Warehouse]:
        return [warehouse for warehouse in _filter(self._all(), None, True) if warehouse.location is not None]

    def find_by_ids(self, ids: Sequence[str], active_only: bool = True) -> list[Warehouse]:
        if not ids:
            return []
        return _filter(self._all(), ids, active_only)


class InMemoryWarehouseRepository:
    """Fixed set of warehouses; used by tests and local tooling."""

    def __init__(self, warehouses: Iterable[Warehouse]) -> None:
        self.warehouses = list(warehouses)

    def find_active(self) -> list[Warehouse]:
        return [warehouse for warehouse in _filter(self.warehouses, None, True) if warehouse.location is not None]

    def find_by_ids(self, ids: Sequence[str], active_only: bool = True) -> list[Warehouse]:
        return _filter(self.warehouses, ids, active_only)


def get_warehouse_repository() -> WarehouseRepository:
    """Select the warehouse source up front from configuration."""
    source = settings.warehouse_source
    if source == "auto":
        source = "database" if is_configured() else "file"
    if source == "database":
        return SupabaseWarehouseRepository()
    return WorkbookWarehouseRepository()
