"""Cart delivery validation against a delivery address."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from ...data.warehouse_repository import WarehouseRepository, get_warehouse_repository
from ...models.domain import CartLineItem, Coordinate, Warehouse
from ..cancellation import CancelToken
from ..routing.estimator import RouteEstimator
from .errors import InvalidCoordinatesError, MissingWarehouseAttributionError
from .fanout import WarehouseEvaluation, evaluate_warehouses
from .policy import WAREHOUSE_UNAVAILABLE, PolicyDecision, ReasonCode

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UndeliverableItem:
    item: CartLineItem
    warehouse_id: Optional[str]
    warehouse_name: Optional[str]
    reason_code: ReasonCode
    reason: str


@dataclass(slots=True)
class CartValidation:
    location: Coordinate
    evaluations: list[WarehouseEvaluation] = field(default_factory=list)
    undeliverable_items: list[UndeliverableItem] = field(default_factory=list)
    item_counts: dict[str, int] = field(default_factory=dict)
    total_count: int = 0

    @property
    def all_items_deliverable(self) -> bool:
        return not self.undeliverable_items

    @property
    def deliverable_count(self) -> int:
        return self.total_count - len(self.undeliverable_items)


@dataclass(slots=True)
class DeliveryProbe:
    location: Coordinate
    delivery_available: bool
    evaluation: Optional[WarehouseEvaluation] = None
    evaluated: int = 0


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, dict):
        # populated references arrive as {"_id": ..., "name": ...}
        value = value.get("_id") or value.get("id")
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def _quantity(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 1


def parse_cart_items(raw: Any) -> list[CartLineItem]:
    """Normalise cart items from a list or a JSON-encoded list.

    Malformed input degrades to an empty cart rather than an error.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to parse cart items: {e}")
            return []
    if not isinstance(raw, list):
        return []

    items: list[CartLineItem] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        items.append(
            CartLineItem(
                id=_optional_text(entry.get("_id", entry.get("id"))),
                name=entry.get("name"),
                quantity=_quantity(entry.get("quantity", 1)),
                warehouse_id=_optional_text(entry.get("warehouseId", entry.get("warehouse_id"))),
                raw=dict(entry),
            )
        )
    return items


def _distinct_warehouse_ids(items: Sequence[CartLineItem]) -> list[str]:
    seen: dict[str, None] = {}
    for item in items:
        if item.warehouse_id:
            seen.setdefault(item.warehouse_id, None)
    return list(seen)


class CartDeliveryValidator:
    """Checks that every cart line can be delivered to the address.

    Unlike the area check, postal-code rules are mandatory here for every
    warehouse that does not deliver 24x7.
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

    def validate(
        self,
        customer_location: Coordinate | None,
        customer_pincode: str | None,
        items: Sequence[CartLineItem],
        cancel_token: CancelToken | None = None,
    ) -> CartValidation:
        if customer_location is None:
            raise InvalidCoordinatesError("Valid delivery address with coordinates is required")

        warehouse_ids = _distinct_warehouse_ids(items)
        if not warehouse_ids:
            logger.error("No valid warehouse IDs found in cart items")
            raise MissingWarehouseAttributionError()

        items_by_warehouse: dict[str, list[CartLineItem]] = {warehouse_id: [] for warehouse_id in warehouse_ids}
        for item in items:
            if item.warehouse_id:
                items_by_warehouse[item.warehouse_id].append(item)

        found = {warehouse.id: warehouse for warehouse in self.repository.find_by_ids(warehouse_ids, active_only=True)}
        routable: list[Warehouse] = []
        unavailable: list[str] = []
        for warehouse_id in warehouse_ids:
            warehouse = found.get(warehouse_id)
            if warehouse is None or warehouse.location is None:
                unavailable.append(warehouse_id)
            else:
                routable.append(warehouse)

        logger.info(
            f"Validating {len(items)} cart item(s) across {len(warehouse_ids)} warehouse(s) "
            f"(pincode: {customer_pincode or 'not provided'}, unavailable: {len(unavailable)})"
        )

        evaluations = evaluate_warehouses(
            routable,
            customer_location,
            estimator=self.estimator,
            customer_pincode=customer_pincode,
            check_pincode=True,
            max_workers=self.max_workers,
            cancel_token=cancel_token,
        )
        # completion order is arbitrary; report in cart order
        order = {warehouse_id: index for index, warehouse_id in enumerate(warehouse_ids)}
        evaluations.sort(key=lambda evaluation: order[evaluation.warehouse.id])

        result = CartValidation(
            location=customer_location,
            evaluations=evaluations,
            item_counts={warehouse_id: len(group) for warehouse_id, group in items_by_warehouse.items()},
            total_count=len(items),
        )
        rejected: dict[str, tuple[Optional[str], PolicyDecision]] = {
            warehouse_id: (found[warehouse_id].name if warehouse_id in found else None, WAREHOUSE_UNAVAILABLE)
            for warehouse_id in unavailable
        }
        for evaluation in evaluations:
            if not evaluation.can_deliver:
                rejected[evaluation.warehouse.id] = (evaluation.warehouse.name, evaluation.decision)

        for item in items:
            if item.warehouse_id is None:
                # lines without attribution cannot be routed to any warehouse
                result.undeliverable_items.append(
                    UndeliverableItem(
                        item=item,
                        warehouse_id=None,
                        warehouse_name=None,
                        reason_code=ReasonCode.WAREHOUSE_UNAVAILABLE,
                        reason=WAREHOUSE_UNAVAILABLE.reason,
                    )
                )
                continue
            if item.warehouse_id in rejected:
                warehouse_name, decision = rejected[item.warehouse_id]
                result.undeliverable_items.append(
                    UndeliverableItem(
                        item=item,
                        warehouse_id=item.warehouse_id,
                        warehouse_name=warehouse_name,
                        reason_code=decision.reason_code,
                        reason=decision.reason,
                    )
                )

        if not result.all_items_deliverable:
            logger.info(f"{len(result.undeliverable_items)} of {result.total_count} cart item(s) cannot be delivered")
        return result

    def probe(
        self,
        customer_location: Coordinate | None,
        customer_pincode: str | None,
        warehouse_ids: Sequence[str] | None = None,
        cancel_token: CancelToken | None = None,
    ) -> DeliveryProbe:
        """Pre-checkout check used when there are no cart items yet.

        Succeeds as soon as any warehouse in scope can deliver to the address.
        The scope is ``warehouse_ids`` when given, otherwise every active warehouse.
        """
        if customer_location is None:
            raise InvalidCoordinatesError("Valid delivery address with coordinates is required")

        if warehouse_ids:
            candidates = [
                warehouse
                for warehouse in self.repository.find_by_ids(list(warehouse_ids), active_only=True)
                if warehouse.location is not None
            ]
        else:
            candidates = self.repository.find_active()

        evaluations = evaluate_warehouses(
            candidates,
            customer_location,
            estimator=self.estimator,
            customer_pincode=customer_pincode,
            check_pincode=True,
            max_workers=self.max_workers,
            cancel_token=cancel_token,
            stop_when_deliverable=True,
        )
        deliverable = [evaluation for evaluation in evaluations if evaluation.can_deliver]
        if not deliverable:
            return DeliveryProbe(location=customer_location, delivery_available=False, evaluated=len(evaluations))
        best = min(deliverable, key=lambda evaluation: evaluation.route.distance_km)
        return DeliveryProbe(
            location=customer_location,
            delivery_available=True,
            evaluation=best,
            evaluated=len(evaluations),
        )
