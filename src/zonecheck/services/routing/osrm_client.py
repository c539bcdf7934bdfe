"""HTTP client for interacting with OSRM services."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import httpx

from ...config import settings
from ...models.domain import Coordinate

if TYPE_CHECKING:
    from ..cancellation import CancelToken

USER_AGENT = "zonecheck-delivery/1.0"

logger = logging.getLogger(__name__)


class OSRMResponseError(ValueError):
    """OSRM answered, but not with a usable route."""


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        """Get a per-call HTTP client; calls run on worker threads."""
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            transport=self._transport,
        )

    def route_url(self, origin: Coordinate, destination: Coordinate) -> str:
        # OSRM expects "lon,lat;lon,lat"
        coordinate_str = f"{origin.lng},{origin.lat};{destination.lng},{destination.lat}"
        return f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"

    def route_summary(
        self,
        origin: Coordinate,
        destination: Coordinate,
        cancel_token: "CancelToken | None" = None,
    ) -> tuple[float, float]:
        """Return ``(distance_km, duration_minutes)`` for the fastest driving route.

        Connection failures and 5xx responses are retried with linear backoff.
        Timeouts, 4xx responses and malformed payloads raise immediately so the
        caller can fall back without waiting on a slow backend.
        """
        params = {"overview": "false", "alternatives": "false", "steps": "false"}
        url = self.route_url(origin, destination)

        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    try:
                        payload = response.json()
                    except ValueError as exc:
                        raise OSRMResponseError("OSRM response is not valid JSON.") from exc
                    return _parse_route_payload(payload)
                except httpx.HTTPStatusError as e:
                    if e.response.status_code < 500:
                        raise
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    logger.debug(f"OSRM returned {e.response.status_code}, retrying (attempt {attempt}/{self.max_retries})")
                except httpx.TimeoutException:
                    raise
                except (httpx.ConnectError, httpx.NetworkError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(
                            f"Failed to connect to OSRM service at {self.base_url}: {e}"
                        ) from e
                    logger.debug(f"OSRM network error, retrying (attempt {attempt}/{self.max_retries}): {e}")

                wait_time = self.backoff_seconds * attempt
                if cancel_token is not None:
                    if cancel_token.sleep(wait_time):
                        raise ConnectionError("OSRM request abandoned: evaluation cancelled")
                elif wait_time > 0:
                    time.sleep(wait_time)
        finally:
            client.close()


def _parse_route_payload(data: object) -> tuple[float, float]:
    if not isinstance(data, dict):
        raise OSRMResponseError("OSRM response is not a JSON object.")
    if data.get("code") != "Ok":
        message = data.get("message") or data.get("code") or "Unknown error"
        raise OSRMResponseError(f"OSRM API error: {message}")
    routes = data.get("routes") or []
    if not routes:
        raise OSRMResponseError("OSRM response contains no routes.")
    route = routes[0]
    try:
        distance_m = float(route["distance"])
        duration_s = float(route["duration"])
    except (KeyError, TypeError, ValueError) as exc:
        raise OSRMResponseError("OSRM route missing distance/duration.") from exc
    return distance_m / 1000.0, duration_s / 60.0


def check_health(client: OSRMClient | None = None) -> dict:
    """Check OSRM service health by routing a zero-length trip.

    Public OSRM endpoints may not have a /health endpoint, so connectivity is
    tested with a minimal route request.
    """
    base = client.base_url if client else settings.osrm_base_url
    if not base:
        return {"available": False, "server": None, "method": "fallback", "error": "OSRM base URL is not configured."}
    try:
        osrm = client or OSRMClient(max_retries=0)
        point = Coordinate(lat=28.6139, lng=77.2090)
        osrm.route_summary(point, point)
        return {"available": True, "server": base, "method": "routed", "error": None}
    except Exception as exc:
        logger.warning(f"OSRM health check failed for {base}: {exc}")
        return {"available": False, "server": base, "method": "fallback", "error": str(exc) or type(exc).__name__}
