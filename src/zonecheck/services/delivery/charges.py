"""Delivery charge quotes."""

from __future__ import annotations

from dataclasses import dataclass

from ...config import settings


@dataclass(frozen=True, slots=True)
class ChargeTariff:
    free_delivery_min_amount: float
    base_delivery_charge: float
    minimum_delivery_charge: float
    maximum_delivery_charge: float
    per_km_charge: float

    @classmethod
    def from_settings(cls) -> "ChargeTariff":
        return cls(
            free_delivery_min_amount=settings.free_delivery_min_amount,
            base_delivery_charge=settings.base_delivery_charge,
            minimum_delivery_charge=settings.minimum_delivery_charge,
            maximum_delivery_charge=settings.maximum_delivery_charge,
            per_km_charge=settings.per_km_charge,
        )


@dataclass(frozen=True, slots=True)
class DeliveryCharge:
    delivery_charge: float
    is_free_delivery: bool
    free_delivery_eligible: bool
    amount_needed_for_free_delivery: float
    free_delivery_radius_km: float


def quote_delivery_charge(
    distance_km: float,
    cart_total: float,
    free_delivery_radius_km: float,
    tariff: ChargeTariff,
) -> DeliveryCharge:
    """Price a delivery.

    Free when the cart reaches the minimum amount inside the free radius.
    Otherwise the base charge applies inside the free radius and each km
    beyond it adds ``per_km_charge``; the result is clamped to the tariff's
    minimum and maximum.
    """
    inside_free_radius = distance_km <= free_delivery_radius_km
    if cart_total >= tariff.free_delivery_min_amount and inside_free_radius:
        charge = 0.0
        is_free = True
    else:
        is_free = False
        if inside_free_radius:
            charge = tariff.base_delivery_charge
        else:
            extra_distance = distance_km - free_delivery_radius_km
            charge = tariff.base_delivery_charge + extra_distance * tariff.per_km_charge
        charge = max(tariff.minimum_delivery_charge, charge)
        charge = min(tariff.maximum_delivery_charge, charge)

    amount_needed = max(0.0, tariff.free_delivery_min_amount - cart_total)
    return DeliveryCharge(
        delivery_charge=round(charge, 2),
        is_free_delivery=is_free,
        free_delivery_eligible=amount_needed > 0 and inside_free_radius,
        amount_needed_for_free_delivery=round(amount_needed, 2),
        free_delivery_radius_km=free_delivery_radius_km,
    )
