"""Concurrent per-warehouse evaluation."""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from ...config import settings
from ...models.domain import Coordinate, Warehouse
from ..cancellation import CancelToken
from ..routing.estimator import RouteEstimator, RouteResult
from . import policy
from .policy import PolicyDecision

# how often the coordinator re-checks the cancel token while workers run
POLL_INTERVAL_SECONDS = 0.1

logger = logging.getLogger(__name__)


class EvaluationKind(str, Enum):
    ROUTED = "routed"
    FALLBACK = "fallback"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class WarehouseEvaluation:
    """Outcome for one warehouse.

    ``route`` is None when the warehouse was rejected before any distance was
    measured (delivery disabled or postal code checks).
    """

    warehouse: Warehouse
    decision: PolicyDecision
    route: Optional[RouteResult] = None

    @property
    def kind(self) -> EvaluationKind:
        if not self.decision.can_deliver:
            return EvaluationKind.REJECTED
        if self.route is not None and self.route.used_fallback:
            return EvaluationKind.FALLBACK
        return EvaluationKind.ROUTED

    @property
    def can_deliver(self) -> bool:
        return self.decision.can_deliver


def evaluate_warehouse(
    warehouse: Warehouse,
    customer: Coordinate,
    *,
    estimator: RouteEstimator,
    customer_pincode: str | None,
    check_pincode: bool,
    cancel_token: CancelToken,
) -> WarehouseEvaluation:
    cancel_token.raise_if_cancelled()
    rejection = policy.check_eligibility(warehouse, customer_pincode, check_pincode=check_pincode)
    if rejection is not None:
        return WarehouseEvaluation(warehouse=warehouse, decision=rejection)

    route = estimator.estimate(warehouse.location, customer, label=warehouse.name, cancel_token=cancel_token)
    cancel_token.raise_if_cancelled()
    decision = policy.evaluate(warehouse, route, customer_pincode, check_pincode=check_pincode)
    return WarehouseEvaluation(warehouse=warehouse, decision=decision, route=route)


def evaluate_warehouses(
    warehouses: Sequence[Warehouse],
    customer: Coordinate,
    *,
    estimator: RouteEstimator,
    customer_pincode: str | None = None,
    check_pincode: bool = True,
    max_workers: int | None = None,
    cancel_token: CancelToken | None = None,
    stop_when_deliverable: bool = False,
) -> list[WarehouseEvaluation]:
    """Evaluate every warehouse concurrently and collect the outcomes.

    At most ``max_workers`` routing calls run at once. Results are gathered
    by the calling thread only, in completion order. When the caller's token
    is cancelled, pending work is dropped and ``EvaluationCancelled`` is raised.
    With ``stop_when_deliverable`` the remaining work is cancelled as soon as
    one warehouse can deliver and the outcomes gathered so far are returned.
    """
    if not warehouses:
        return []

    caller_token = cancel_token or CancelToken()
    caller_token.raise_if_cancelled()
    token = caller_token.child()
    workers = max(1, min(max_workers or settings.max_parallel_route_requests, len(warehouses)))

    results: list[WarehouseEvaluation] = []
    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="warehouse-eval")
    pending: set[Future] = set()
    try:
        pending = {
            executor.submit(
                evaluate_warehouse,
                warehouse,
                customer,
                estimator=estimator,
                customer_pincode=customer_pincode,
                check_pincode=check_pincode,
                cancel_token=token,
            )
            for warehouse in warehouses
        }
        while pending:
            done, pending = wait(pending, timeout=POLL_INTERVAL_SECONDS, return_when=FIRST_COMPLETED)
            caller_token.raise_if_cancelled()
            for future in done:
                evaluation = future.result()
                results.append(evaluation)
                logger.debug(
                    f"Warehouse {evaluation.warehouse.name}: {evaluation.kind.value}"
                    + (f" ({evaluation.decision.reason})" if evaluation.decision.reason else "")
                )
            if stop_when_deliverable and any(result.can_deliver for result in results):
                token.cancel()
                break
    finally:
        token.cancel()
        for future in pending:
            future.cancel()
        executor.shutdown(wait=False, cancel_futures=True)
    return results
