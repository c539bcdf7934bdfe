"""Which warehouses can deliver to a customer location."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from ...data.warehouse_repository import WarehouseRepository, get_warehouse_repository
from ...models.domain import Coordinate
from ..cancellation import CancelToken
from ..routing.estimator import RouteEstimator, RouteMethod
from .fanout import WarehouseEvaluation, evaluate_warehouses

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WarehouseDeliveryOutcome:
    warehouse_id: str
    warehouse_name: str
    warehouse_address: Optional[str]
    distance_km: float
    duration_minutes: float
    method: RouteMethod
    used_fallback: bool
    can_deliver: bool
    is_free_delivery_zone: bool

    @classmethod
    def from_evaluation(cls, evaluation: WarehouseEvaluation) -> "WarehouseDeliveryOutcome":
        route = evaluation.route
        if route is None:
            raise ValueError(f"Warehouse {evaluation.warehouse.id} has no measured route")
        return cls(
            warehouse_id=evaluation.warehouse.id,
            warehouse_name=evaluation.warehouse.name,
            warehouse_address=evaluation.warehouse.address,
            distance_km=route.distance_km,
            duration_minutes=route.duration_minutes,
            method=route.method,
            used_fallback=route.used_fallback,
            can_deliver=evaluation.decision.can_deliver,
            is_free_delivery_zone=evaluation.decision.is_free_delivery_zone,
        )


@dataclass(slots=True)
class ZoneResolution:
    location: Coordinate
    delivery_available: bool = False
    warehouses: list[WarehouseDeliveryOutcome] = field(default_factory=list)
    total_warehouses: int = 0


class DeliveryZoneResolver:
    """Coarse area check: can this location ever be served?

    Postal-code rules are not applied here; only the enabled flag and the
    delivery radius decide. Warehouses that cannot deliver are left out.
    """

    def __init__(
        self,
        repository: WarehouseRepository | None = None,
        estimator: RouteEstimator | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.repository = repository or get_warehouse_repository()
        self.estimator = estimator or RouteEstimator.from_settings()
        self.max_workers = max_workers

    def _deliverable(
        self, customer_location: Coordinate, cancel_token: CancelToken | None
    ) -> tuple[int, list[WarehouseEvaluation]]:
        warehouses = self.repository.find_active()
        if not warehouses:
            logger.info(f"No active warehouses to serve {customer_location.lat}, {customer_location.lng}")
            return 0, []

        logger.info(
            f"Checking delivery availability for location: {customer_location.lat}, {customer_location.lng} "
            f"against {len(warehouses)} warehouse(s)"
        )
        evaluations = evaluate_warehouses(
            warehouses,
            customer_location,
            estimator=self.estimator,
            check_pincode=False,
            max_workers=self.max_workers,
            cancel_token=cancel_token,
        )
        return len(warehouses), [evaluation for evaluation in evaluations if evaluation.can_deliver]

    def resolve(self, customer_location: Coordinate, cancel_token: CancelToken | None = None) -> ZoneResolution:
        total, deliverable = self._deliverable(customer_location, cancel_token)
        outcomes = [WarehouseDeliveryOutcome.from_evaluation(evaluation) for evaluation in deliverable]
        return ZoneResolution(
            location=customer_location,
            delivery_available=bool(outcomes),
            warehouses=outcomes,
            total_warehouses=total,
        )

    def nearest(
        self, customer_location: Coordinate, cancel_token: CancelToken | None = None
    ) -> WarehouseEvaluation | None:
        """Closest warehouse (by measured distance) that can deliver."""
        _, deliverable = self._deliverable(customer_location, cancel_token)
        if not deliverable:
            return None
        return min(deliverable, key=lambda evaluation: evaluation.route.distance_km)
