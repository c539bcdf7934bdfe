"""Road distance estimates with a straight-line fallback."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from ...config import settings
from ...models.domain import Coordinate
from ..cancellation import CancelToken
from ..geospatial import haversine_km
from .osrm_client import OSRMClient

logger = logging.getLogger(__name__)


class RouteMethod(str, Enum):
    ROUTED = "routed"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class RouteResult:
    distance_km: float
    duration_minutes: float
    method: RouteMethod
    used_fallback: bool
    fallback_reason: Optional[str] = None


class RoutingBackend(Protocol):
    def route_summary(
        self,
        origin: Coordinate,
        destination: Coordinate,
        cancel_token: CancelToken | None = None,
    ) -> tuple[float, float]: ...


def estimate_duration_minutes(distance_km: float, average_speed_kmh: float) -> float:
    return distance_km / average_speed_kmh * 60.0


class RouteEstimator:
    """Driving distance/duration between two points.

    ``estimate`` never raises: any routing failure (network error, timeout,
    malformed payload, missing configuration) is replaced by a haversine
    estimate flagged as ``RouteMethod.FALLBACK``.
    """

    def __init__(
        self,
        backend: RoutingBackend | None = None,
        average_speed_kmh: float | None = None,
    ) -> None:
        self.backend = backend
        self.average_speed_kmh = average_speed_kmh or settings.fallback_average_speed_kmh

    @classmethod
    def from_settings(cls) -> "RouteEstimator":
        backend = OSRMClient() if settings.osrm_base_url else None
        return cls(backend=backend)

    def fallback(self, origin: Coordinate, destination: Coordinate, reason: str) -> RouteResult:
        distance = haversine_km(origin.lat, origin.lng, destination.lat, destination.lng)
        return RouteResult(
            distance_km=distance,
            duration_minutes=estimate_duration_minutes(distance, self.average_speed_kmh),
            method=RouteMethod.FALLBACK,
            used_fallback=True,
            fallback_reason=reason,
        )

    def estimate(
        self,
        origin: Coordinate,
        destination: Coordinate,
        label: str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> RouteResult:
        if self.backend is None:
            logger.warning(
                f"Routing service not configured, using straight-line estimate for warehouse {label or 'unknown'}"
            )
            return self.fallback(origin, destination, "routing service not configured")
        try:
            distance_km, duration_min = self.backend.route_summary(origin, destination, cancel_token=cancel_token)
        except Exception as exc:
            reason = f"{type(exc).__name__}: {exc}"
            logger.warning(f"Routing failed for warehouse {label or 'unknown'}, using straight-line estimate ({reason})")
            return self.fallback(origin, destination, reason)
        if not (math.isfinite(distance_km) and math.isfinite(duration_min)) or distance_km < 0 or duration_min < 0:
            reason = f"invalid route summary ({distance_km}, {duration_min})"
            logger.warning(f"Routing failed for warehouse {label or 'unknown'}, using straight-line estimate ({reason})")
            return self.fallback(origin, destination, reason)
        return RouteResult(
            distance_km=distance_km,
            duration_minutes=duration_min,
            method=RouteMethod.ROUTED,
            used_fallback=False,
        )
