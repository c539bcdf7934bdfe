"""Delivery request/response schemas.

Field names on the wire are camelCase; Python code uses snake_case.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _pincode_or_none(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = int(value) if float(value).is_integer() else value
    text = str(value)
    return text if text.strip() else None


class LocationModel(CamelModel):
    lat: float
    lng: float


class LocationCheckRequest(CamelModel):
    # left untyped so bad coordinates become a 400 from the service, not a 422
    lat: Any = None
    lng: Any = None


class WarehouseOutcomeModel(CamelModel):
    warehouse_id: str
    warehouse_name: str
    warehouse_address: Optional[str] = None
    distance: float = Field(..., description="Distance in km.")
    duration: float = Field(..., description="Duration in minutes.")
    method: str
    used_fallback: bool
    can_deliver: bool
    is_free_delivery_zone: bool


class LocationCheckResponse(CamelModel):
    success: bool = True
    delivery_available: bool
    message: str
    available_warehouses: List[WarehouseOutcomeModel]
    location: LocationModel
    total_warehouses: int = 0
    deliverable_warehouses: int = 0


class DeliveryAddressInput(CamelModel):
    lat: Any = None
    lng: Any = None
    pincode: Optional[str] = None
    address: Optional[str] = None

    @field_validator("pincode", mode="before")
    @classmethod
    def _normalise_pincode(cls, value: Any) -> Optional[str]:
        return _pincode_or_none(value)


class CartValidationRequest(CamelModel):
    """Accepts ``{deliveryAddress, cartItems}`` or flat ``{lat, lng, pincode, address, cartItems}``."""

    delivery_address: DeliveryAddressInput = Field(default_factory=DeliveryAddressInput)
    cart_items: Any = None
    warehouse_ids: Optional[List[str]] = Field(
        default=None,
        description="Warehouses to consider when no cart items are sent. Defaults to all active warehouses.",
    )

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_address(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("deliveryAddress") or data.get("delivery_address"):
            return data
        lifted = dict(data)
        lifted["deliveryAddress"] = {
            "lat": data.get("lat"),
            "lng": data.get("lng"),
            "pincode": data.get("pincode"),
            "address": data.get("address"),
        }
        return lifted


class DeliveryAddressModel(CamelModel):
    lat: float
    lng: float
    address: str = "Selected address"


class ValidationResultModel(CamelModel):
    warehouse_id: str
    warehouse_name: str
    distance: Optional[float] = None
    duration: Optional[float] = None
    max_radius: float
    method: Optional[str] = None
    can_deliver: bool
    is_free_delivery_zone: bool = False
    item_count: int
    reason: Optional[str] = None
    reason_code: Optional[str] = None


class CartValidationResponse(CamelModel):
    success: bool = True
    all_items_deliverable: bool
    message: str
    delivery_address: DeliveryAddressModel
    validation_results: List[ValidationResultModel]
    undeliverable_items: List[Dict[str, Any]]
    deliverable_item_count: int
    total_item_count: int


class ProbeWarehouseModel(CamelModel):
    id: str
    name: str
    distance: float
    duration: float
    is_free_delivery_zone: bool


class DeliveryProbeResponse(CamelModel):
    success: bool = True
    delivery_available: bool
    message: str
    warehouse: Optional[ProbeWarehouseModel] = None


class DeliveryChargeRequest(CamelModel):
    lat: Any = None
    lng: Any = None
    cart_total: float = Field(..., ge=0)
    warehouse_id: Optional[str] = None
    pincode: Optional[str] = None

    @field_validator("pincode", mode="before")
    @classmethod
    def _normalise_pincode(cls, value: Any) -> Optional[str]:
        return _pincode_or_none(value)


class ChargeWarehouseModel(CamelModel):
    id: str
    name: str
    address: Optional[str] = None


class DeliveryChargeResponse(CamelModel):
    success: bool = True
    distance: float
    duration: float
    calculation_method: str
    warehouse: ChargeWarehouseModel
    delivery_charge: float
    total_delivery_charge: float
    is_free_delivery: bool
    free_delivery_eligible: bool
    amount_needed_for_free_delivery: float
    free_delivery_radius: float
