"""Convert delivery results into API response models."""

from __future__ import annotations

from ...models.domain import Warehouse
from ...schemas.delivery import (
    ChargeWarehouseModel,
    CartValidationResponse,
    DeliveryAddressModel,
    DeliveryChargeResponse,
    DeliveryProbeResponse,
    LocationCheckResponse,
    LocationModel,
    ProbeWarehouseModel,
    ValidationResultModel,
    WarehouseOutcomeModel,
)
from ..delivery.cart import CartValidation, DeliveryProbe, UndeliverableItem
from ..delivery.charges import DeliveryCharge
from ..delivery.fanout import WarehouseEvaluation
from ..delivery.resolver import WarehouseDeliveryOutcome, ZoneResolution
from ..routing.estimator import RouteResult


def _round(value: float) -> float:
    return round(value, 2)


def outcome_to_model(outcome: WarehouseDeliveryOutcome) -> WarehouseOutcomeModel:
    return WarehouseOutcomeModel(
        warehouse_id=outcome.warehouse_id,
        warehouse_name=outcome.warehouse_name,
        warehouse_address=outcome.warehouse_address,
        distance=_round(outcome.distance_km),
        duration=_round(outcome.duration_minutes),
        method=outcome.method.value,
        used_fallback=outcome.used_fallback,
        can_deliver=outcome.can_deliver,
        is_free_delivery_zone=outcome.is_free_delivery_zone,
    )


def resolution_to_response(resolution: ZoneResolution) -> LocationCheckResponse:
    count = len(resolution.warehouses)
    message = (
        f"Delivery available from {count} warehouse(s)"
        if resolution.delivery_available
        else "No delivery available in your area. Please try a different location."
    )
    return LocationCheckResponse(
        delivery_available=resolution.delivery_available,
        message=message,
        available_warehouses=[outcome_to_model(outcome) for outcome in resolution.warehouses],
        location=LocationModel(lat=resolution.location.lat, lng=resolution.location.lng),
        total_warehouses=resolution.total_warehouses,
        deliverable_warehouses=count,
    )


def _evaluation_to_result(evaluation: WarehouseEvaluation, item_count: int) -> ValidationResultModel:
    route: RouteResult | None = evaluation.route
    decision = evaluation.decision
    return ValidationResultModel(
        warehouse_id=evaluation.warehouse.id,
        warehouse_name=evaluation.warehouse.name,
        distance=_round(route.distance_km) if route else None,
        duration=_round(route.duration_minutes) if route else None,
        max_radius=evaluation.warehouse.delivery_settings.max_delivery_radius_km,
        method=route.method.value if route else None,
        can_deliver=decision.can_deliver,
        is_free_delivery_zone=decision.is_free_delivery_zone if decision.can_deliver else False,
        item_count=item_count,
        reason=decision.reason,
        reason_code=decision.reason_code.value if decision.reason_code else None,
    )


def undeliverable_to_dict(entry: UndeliverableItem) -> dict:
    return {
        **entry.item.raw,
        "warehouseName": entry.warehouse_name,
        "reason": entry.reason,
        "reasonCode": entry.reason_code.value,
    }


def validation_to_response(validation: CartValidation, address: str | None = None) -> CartValidationResponse:
    undeliverable = len(validation.undeliverable_items)
    message = (
        "All cart items can be delivered to the selected address"
        if validation.all_items_deliverable
        else f"{undeliverable} item(s) cannot be delivered to the selected address"
    )
    return CartValidationResponse(
        all_items_deliverable=validation.all_items_deliverable,
        message=message,
        delivery_address=DeliveryAddressModel(
            lat=validation.location.lat,
            lng=validation.location.lng,
            address=address or "Selected address",
        ),
        validation_results=[
            _evaluation_to_result(evaluation, validation.item_counts.get(evaluation.warehouse.id, 0))
            for evaluation in validation.evaluations
        ],
        undeliverable_items=[undeliverable_to_dict(entry) for entry in validation.undeliverable_items],
        deliverable_item_count=validation.deliverable_count,
        total_item_count=validation.total_count,
    )


def probe_to_response(probe: DeliveryProbe, pincode: str | None = None) -> DeliveryProbeResponse:
    if not probe.delivery_available or probe.evaluation is None:
        target = f"pincode {pincode}" if pincode else "this address"
        return DeliveryProbeResponse(
            delivery_available=False,
            message=(
                f"Delivery not available to {target}. Please check if it is covered by our "
                "delivery network or try a different address."
            ),
        )
    evaluation = probe.evaluation
    return DeliveryProbeResponse(
        delivery_available=True,
        message=f"Delivery available from {evaluation.warehouse.name}",
        warehouse=ProbeWarehouseModel(
            id=evaluation.warehouse.id,
            name=evaluation.warehouse.name,
            distance=_round(evaluation.route.distance_km),
            duration=_round(evaluation.route.duration_minutes),
            is_free_delivery_zone=evaluation.decision.is_free_delivery_zone,
        ),
    )


def charge_to_response(
    warehouse: Warehouse,
    route: RouteResult,
    charge: DeliveryCharge,
) -> DeliveryChargeResponse:
    return DeliveryChargeResponse(
        distance=_round(route.distance_km),
        duration=_round(route.duration_minutes),
        calculation_method=route.method.value,
        warehouse=ChargeWarehouseModel(id=warehouse.id, name=warehouse.name, address=warehouse.address),
        delivery_charge=charge.delivery_charge,
        total_delivery_charge=charge.delivery_charge,
        is_free_delivery=charge.is_free_delivery,
        free_delivery_eligible=charge.free_delivery_eligible,
        amount_needed_for_free_delivery=charge.amount_needed_for_free_delivery,
        free_delivery_radius=charge.free_delivery_radius_km,
    )
