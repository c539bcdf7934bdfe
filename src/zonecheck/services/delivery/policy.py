"""Per-warehouse delivery rules.

Rules are applied in a fixed order and the first failing rule decides the
rejection reason:

1. delivery must be enabled for the warehouse;
2. unless the warehouse delivers 24x7, the customer postal code must be given
   and must be one of the warehouse's postal codes (exact string match);
3. the route distance must not exceed the maximum delivery radius.

The free-delivery flag is computed from the free radius on its own and is only
meaningful when delivery is possible. Nothing here performs I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ...models.domain import Warehouse
from ..routing.estimator import RouteResult

PINCODE_PATTERN = re.compile(r"^\d{6}$")


class ReasonCode(str, Enum):
    DELIVERY_DISABLED = "delivery_disabled"
    PINCODE_REQUIRED = "pincode_required"
    PINCODE_NOT_SERVED = "pincode_not_served"
    OUTSIDE_RADIUS = "outside_radius"
    WAREHOUSE_UNAVAILABLE = "warehouse_unavailable"


@dataclass(frozen=True, slots=True)
class PolicyDecision:
    can_deliver: bool
    is_free_delivery_zone: bool = False
    reason_code: Optional[ReasonCode] = None
    reason: Optional[str] = None

    @classmethod
    def reject(cls, code: ReasonCode, reason: str, is_free_delivery_zone: bool = False) -> "PolicyDecision":
        return cls(can_deliver=False, is_free_delivery_zone=is_free_delivery_zone, reason_code=code, reason=reason)


WAREHOUSE_UNAVAILABLE = PolicyDecision.reject(
    ReasonCode.WAREHOUSE_UNAVAILABLE,
    "Warehouse unavailable",
)


def check_eligibility(
    warehouse: Warehouse,
    customer_pincode: str | None,
    check_pincode: bool = True,
) -> PolicyDecision | None:
    """Apply the rules that do not depend on distance.

    Returns the rejection, or None when the warehouse may still deliver.
    """
    rules = warehouse.delivery_settings
    if not rules.is_delivery_enabled:
        return PolicyDecision.reject(
            ReasonCode.DELIVERY_DISABLED,
            f"Delivery disabled for this warehouse ({warehouse.name})",
        )
    if check_pincode and not rules.is_24x7_delivery:
        if not customer_pincode:
            return PolicyDecision.reject(
                ReasonCode.PINCODE_REQUIRED,
                f"Delivery address postal code is required for {warehouse.name}",
            )
        if customer_pincode not in rules.delivery_pincodes:
            return PolicyDecision.reject(
                ReasonCode.PINCODE_NOT_SERVED,
                f"Postal code {customer_pincode} not served by {warehouse.name}",
            )
    return None


def evaluate(
    warehouse: Warehouse,
    route: RouteResult,
    customer_pincode: str | None,
    check_pincode: bool = True,
) -> PolicyDecision:
    """Full delivery decision for one warehouse against a measured route."""
    rules = warehouse.delivery_settings
    is_free = route.distance_km <= rules.free_delivery_radius_km

    rejection = check_eligibility(warehouse, customer_pincode, check_pincode=check_pincode)
    if rejection is not None:
        return PolicyDecision.reject(rejection.reason_code, rejection.reason, is_free_delivery_zone=is_free)

    if route.distance_km > rules.max_delivery_radius_km:
        return PolicyDecision.reject(
            ReasonCode.OUTSIDE_RADIUS,
            f"Outside delivery radius ({route.distance_km:.2f}km > {rules.max_delivery_radius_km:g}km)",
            is_free_delivery_zone=is_free,
        )
    return PolicyDecision(can_deliver=True, is_free_delivery_zone=is_free)


def validate_delivery_settings(warehouse: Warehouse) -> list[str]:
    """Configuration issues worth reporting; none of them are enforced."""
    rules = warehouse.delivery_settings
    issues: list[str] = []
    if rules.free_delivery_radius_km > rules.max_delivery_radius_km:
        issues.append(
            f"free delivery radius {rules.free_delivery_radius_km:g}km exceeds "
            f"max delivery radius {rules.max_delivery_radius_km:g}km"
        )
    malformed = sorted(code for code in rules.delivery_pincodes if not PINCODE_PATTERN.match(code))
    if malformed:
        issues.append(f"postal codes are not 6-digit values: {', '.join(malformed)}")
    if not rules.is_24x7_delivery and not rules.delivery_pincodes and rules.is_delivery_enabled:
        issues.append("no postal codes configured for a non-24x7 warehouse")
    return issues
