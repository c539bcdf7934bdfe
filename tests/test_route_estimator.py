import httpx
import pytest

from zonecheck.models.domain import Coordinate
from zonecheck.services.cancellation import CancelToken
from zonecheck.services.geospatial import haversine_km
from zonecheck.services.routing.estimator import RouteEstimator, RouteMethod
from zonecheck.services.routing.osrm_client import OSRMClient, OSRMResponseError, check_health

WAREHOUSE = Coordinate(lat=12.90, lng=77.58)
CUSTOMER = Coordinate(lat=12.93, lng=77.60)


def _client(handler, **kwargs) -> OSRMClient:
    options = {"max_retries": 2, "backoff_seconds": 0.0, "timeout": 1.0}
    options.update(kwargs)
    return OSRMClient(
        base_url="http://osrm.test",
        profile="driving",
        transport=httpx.MockTransport(handler),
        **options,
    )


def _ok(distance_m: float = 4200.0, duration_s: float = 600.0) -> httpx.Response:
    return httpx.Response(200, json={"code": "Ok", "routes": [{"distance": distance_m, "duration": duration_s}]})


def test_route_summary_converts_units_and_builds_lon_lat_url():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _ok(4200.0, 600.0)

    distance, duration = _client(handler).route_summary(WAREHOUSE, CUSTOMER)

    assert distance == pytest.approx(4.2)
    assert duration == pytest.approx(10.0)
    assert seen[0].url.path == "/route/v1/driving/77.58,12.9;77.6,12.93"
    assert seen[0].url.params["overview"] == "false"


def test_server_errors_are_retried_then_succeed():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] < 3:
            return httpx.Response(503)
        return _ok()

    distance, _ = _client(handler).route_summary(WAREHOUSE, CUSTOMER)

    assert calls["count"] == 3
    assert distance == pytest.approx(4.2)


def test_timeouts_are_not_retried():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        raise httpx.ReadTimeout("slow backend", request=request)

    with pytest.raises(httpx.TimeoutException):
        _client(handler).route_summary(WAREHOUSE, CUSTOMER)
    assert calls["count"] == 1


def test_connection_errors_exhaust_retries():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ConnectionError):
        _client(handler, max_retries=1).route_summary(WAREHOUSE, CUSTOMER)
    assert calls["count"] == 2


def test_malformed_payload_raises_response_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "NoRoute", "message": "Impossible route"})

    with pytest.raises(OSRMResponseError):
        _client(handler).route_summary(WAREHOUSE, CUSTOMER)


def test_cancelled_token_abandons_retry_backoff():
    token = CancelToken()
    token.cancel()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    with pytest.raises(ConnectionError):
        _client(handler, backoff_seconds=5.0).route_summary(WAREHOUSE, CUSTOMER, cancel_token=token)


def test_estimate_uses_routed_result():
    estimator = RouteEstimator(backend=_client(lambda request: _ok(2500.0, 300.0)))

    result = estimator.estimate(WAREHOUSE, CUSTOMER, label="Central")

    assert result.method is RouteMethod.ROUTED
    assert result.used_fallback is False
    assert result.distance_km == pytest.approx(2.5)
    assert result.duration_minutes == pytest.approx(5.0)


@pytest.mark.parametrize(
    "failure",
    [
        httpx.ReadTimeout("timed out"),
        httpx.ConnectError("refused"),
        ValueError("bad payload"),
        RuntimeError("unexpected"),
    ],
)
def test_estimate_never_raises_and_falls_back(failure, caplog):
    class FailingBackend:
        def route_summary(self, origin, destination, cancel_token=None):
            raise failure

    estimator = RouteEstimator(backend=FailingBackend(), average_speed_kmh=30.0)

    with caplog.at_level("WARNING"):
        result = estimator.estimate(WAREHOUSE, CUSTOMER, label="Central")

    expected = haversine_km(WAREHOUSE.lat, WAREHOUSE.lng, CUSTOMER.lat, CUSTOMER.lng)
    assert result.method is RouteMethod.FALLBACK
    assert result.used_fallback is True
    assert result.distance_km == pytest.approx(expected)
    assert result.duration_minutes == pytest.approx(expected / 30.0 * 60.0)
    assert result.fallback_reason
    assert "Central" in caplog.text


def test_estimate_rejects_negative_route_summary():
    class BrokenBackend:
        def route_summary(self, origin, destination, cancel_token=None):
            return -1.0, 10.0

    result = RouteEstimator(backend=BrokenBackend()).estimate(WAREHOUSE, CUSTOMER)

    assert result.method is RouteMethod.FALLBACK


def test_estimate_without_backend_is_fallback(caplog):
    with caplog.at_level("WARNING"):
        result = RouteEstimator(backend=None).estimate(WAREHOUSE, CUSTOMER, label="Central")

    assert result.method is RouteMethod.FALLBACK
    assert result.fallback_reason == "routing service not configured"
    assert "not configured" in caplog.text
    assert "Central" in caplog.text


def test_check_health_reports_unavailable_backend():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    report = check_health(_client(handler, max_retries=0))

    assert report["available"] is False
    assert report["server"] == "http://osrm.test"
    assert report["error"]


def test_check_health_reports_available_backend():
    report = check_health(_client(lambda request: _ok(0.0, 0.0)))

    assert report == {"available": True, "server": "http://osrm.test", "method": "routed", "error": None}


def test_route_summary_rejects_non_json_body():
    client = _client(lambda request: httpx.Response(200, text="<html>captive portal</html>"))

    with pytest.raises(OSRMResponseError):
        client.route_summary(WAREHOUSE, CUSTOMER)


def test_check_health_survives_html_response():
    report = check_health(_client(lambda request: httpx.Response(200, text="<html>proxy</html>"), max_retries=0))

    assert report["available"] is False
    assert report["method"] == "fallback"
    assert "JSON" in report["error"]


def test_check_health_survives_unexpected_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("transport exploded")

    report = check_health(_client(handler, max_retries=0))

    assert report["available"] is False
    assert report["error"] == "transport exploded"
