"""Request-level errors raised by the delivery services."""

from __future__ import annotations


class DeliveryRequestError(ValueError):
    """Malformed delivery request; surfaced to clients as HTTP 400."""


class InvalidCoordinatesError(DeliveryRequestError):
    def __init__(self, message: str = "Valid latitude and longitude are required") -> None:
        super().__init__(message)


class MissingWarehouseAttributionError(DeliveryRequestError):
    def __init__(self, message: str = "Cart items must have valid warehouse information") -> None:
        super().__init__(message)


class DeliveryUnavailableError(DeliveryRequestError):
    """No warehouse can serve the request (charge quotes only)."""


class WarehouseNotFoundError(LookupError):
    def __init__(self, warehouse_id: str) -> None:
        super().__init__(f"Warehouse '{warehouse_id}' not found or location not set")
        self.warehouse_id = warehouse_id


class EvaluationCancelled(RuntimeError):
    """The caller aborted an in-flight evaluation; partial results are discarded."""
