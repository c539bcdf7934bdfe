"""Delivery charge quotes for a customer location."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ...config import settings
from ...data.warehouse_repository import WarehouseRepository, get_warehouse_repository
from ...models.domain import Coordinate, Warehouse
from ..cancellation import CancelToken
from ..routing.estimator import RouteEstimator, RouteResult
from .charges import ChargeTariff, DeliveryCharge, quote_delivery_charge
from .errors import DeliveryUnavailableError, WarehouseNotFoundError
from .fanout import evaluate_warehouse
from .resolver import DeliveryZoneResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChargeQuote:
    warehouse: Warehouse
    route: RouteResult
    charge: DeliveryCharge


class DeliveryChargeService:
    def __init__(
        self,
        repository: WarehouseRepository | None = None,
        estimator: RouteEstimator | None = None,
        tariff: ChargeTariff | None = None,
    ) -> None:
        self.repository = repository or get_warehouse_repository()
        self.estimator = estimator or RouteEstimator.from_settings()
        self.tariff = tariff or ChargeTariff.from_settings()

    def _free_radius(self, warehouse: Warehouse) -> float:
        radius = warehouse.delivery_settings.free_delivery_radius_km
        return radius if radius > 0 else settings.default_free_delivery_radius_km

    def _route_from(
        self,
        warehouse_id: str,
        customer: Coordinate,
        pincode: str | None,
        cancel_token: CancelToken,
    ) -> tuple[Warehouse, RouteResult]:
        matches = self.repository.find_by_ids([warehouse_id], active_only=True)
        if not matches or matches[0].location is None:
            raise WarehouseNotFoundError(warehouse_id)
        warehouse = matches[0]
        evaluation = evaluate_warehouse(
            warehouse,
            customer,
            estimator=self.estimator,
            customer_pincode=pincode,
            check_pincode=pincode is not None,
            cancel_token=cancel_token,
        )
        if not evaluation.can_deliver:
            raise DeliveryUnavailableError(
                f"Delivery not available to this location from {warehouse.name}: {evaluation.decision.reason}"
            )
        return warehouse, evaluation.route

    def quote(
        self,
        customer: Coordinate,
        cart_total: float,
        warehouse_id: str | None = None,
        pincode: str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> ChargeQuote:
        """Quote from ``warehouse_id`` when given, otherwise from the nearest deliverable warehouse."""
        token = cancel_token or CancelToken()
        if warehouse_id:
            warehouse, route = self._route_from(warehouse_id, customer, pincode, token)
        else:
            resolver = DeliveryZoneResolver(repository=self.repository, estimator=self.estimator)
            nearest = resolver.nearest(customer, cancel_token=token)
            if nearest is None:
                raise DeliveryUnavailableError("No warehouse available for delivery to this location")
            warehouse, route = nearest.warehouse, nearest.route

        charge = quote_delivery_charge(route.distance_km, cart_total, self._free_radius(warehouse), self.tariff)
        logger.info(
            f"Quoted delivery from {warehouse.name}: {route.distance_km:.2f}km, charge {charge.delivery_charge}"
        )
        return ChargeQuote(warehouse=warehouse, route=route, charge=charge)
