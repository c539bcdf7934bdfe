"""Domain models for warehouses, coordinates and cart lines."""

from dataclasses import dataclass, field
from typing import Optional

DEFAULT_MAX_DELIVERY_RADIUS_KM = 50.0
DEFAULT_FREE_DELIVERY_RADIUS_KM = 3.0


@dataclass(frozen=True, slots=True)
class Coordinate:
    lat: float
    lng: float


@dataclass(slots=True)
class DeliverySettings:
    """Per-warehouse delivery rules."""

    is_delivery_enabled: bool = True
    is_24x7_delivery: bool = False
    delivery_pincodes: frozenset[str] = field(default_factory=frozenset)
    max_delivery_radius_km: float = DEFAULT_MAX_DELIVERY_RADIUS_KM
    free_delivery_radius_km: float = DEFAULT_FREE_DELIVERY_RADIUS_KM


@dataclass(slots=True)
class Warehouse:
    """Read-only snapshot of a fulfillment location."""

    id: str
    name: str
    address: Optional[str]
    location: Optional[Coordinate]
    status: str = "active"
    delivery_settings: DeliverySettings = field(default_factory=DeliverySettings)

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(slots=True)
class CartLineItem:
    """A cart line as sent by the client; ``raw`` keeps every original field."""

    id: Optional[str]
    name: Optional[str]
    quantity: int
    warehouse_id: Optional[str]
    raw: dict
