import pytest

from zonecheck.models.domain import Coordinate, DeliverySettings, Warehouse
from zonecheck.services.delivery import policy
from zonecheck.services.delivery.policy import ReasonCode
from zonecheck.services.routing.estimator import RouteMethod, RouteResult


def _warehouse(
    *,
    enabled: bool = True,
    always_open: bool = True,
    pincodes: tuple[str, ...] = (),
    max_radius: float = 5.0,
    free_radius: float = 2.0,
) -> Warehouse:
    return Warehouse(
        id="W1",
        name="Central",
        address="1 Main Road",
        location=Coordinate(lat=12.90, lng=77.58),
        delivery_settings=DeliverySettings(
            is_delivery_enabled=enabled,
            is_24x7_delivery=always_open,
            delivery_pincodes=frozenset(pincodes),
            max_delivery_radius_km=max_radius,
            free_delivery_radius_km=free_radius,
        ),
    )


def _route(distance_km: float) -> RouteResult:
    return RouteResult(
        distance_km=distance_km,
        duration_minutes=distance_km * 2,
        method=RouteMethod.ROUTED,
        used_fallback=False,
    )


@pytest.mark.parametrize("distance", [0.0, 1.0, 4.9, 100.0])
@pytest.mark.parametrize("pincode", [None, "560001", "999999"])
def test_disabled_warehouse_never_delivers(distance, pincode):
    warehouse = _warehouse(enabled=False, always_open=False, pincodes=("560001",))

    decision = policy.evaluate(warehouse, _route(distance), pincode)

    assert decision.can_deliver is False
    assert decision.reason_code is ReasonCode.DELIVERY_DISABLED


def test_always_open_warehouse_ignores_pincode():
    warehouse = _warehouse(always_open=True, pincodes=("560001",))

    assert policy.evaluate(warehouse, _route(3.0), None).can_deliver is True
    assert policy.evaluate(warehouse, _route(3.0), "000000").can_deliver is True
    assert policy.evaluate(warehouse, _route(5.5), "560001").can_deliver is False


def test_radius_boundary_is_inclusive():
    warehouse = _warehouse(max_radius=5.0)

    assert policy.evaluate(warehouse, _route(5.0), None).can_deliver is True
    decision = policy.evaluate(warehouse, _route(5.01), None)
    assert decision.can_deliver is False
    assert decision.reason_code is ReasonCode.OUTSIDE_RADIUS
    assert "5.01km" in decision.reason
    assert "5km" in decision.reason


def test_missing_pincode_rejected_for_restricted_warehouse():
    warehouse = _warehouse(always_open=False, pincodes=("560001",))

    decision = policy.evaluate(warehouse, _route(1.0), None)

    assert decision.can_deliver is False
    assert decision.reason_code is ReasonCode.PINCODE_REQUIRED
    assert "postal code" in decision.reason.lower()


def test_pincode_not_served_even_within_radius():
    warehouse = _warehouse(always_open=False, pincodes=("560001",))

    decision = policy.evaluate(warehouse, _route(3.0), "560002")

    assert decision.can_deliver is False
    assert decision.reason_code is ReasonCode.PINCODE_NOT_SERVED
    assert "postal code" in decision.reason.lower()
    assert "560002" in decision.reason


def test_pincode_match_is_exact_string_equality():
    warehouse = _warehouse(always_open=False, pincodes=("560001",))

    assert policy.evaluate(warehouse, _route(1.0), "560001").can_deliver is True
    assert policy.evaluate(warehouse, _route(1.0), "5600").can_deliver is False
    assert policy.evaluate(warehouse, _route(1.0), " 560001").can_deliver is False


def test_pincode_checked_before_radius():
    warehouse = _warehouse(always_open=False, pincodes=("560001",), max_radius=5.0)

    decision = policy.evaluate(warehouse, _route(50.0), "123456")

    assert decision.reason_code is ReasonCode.PINCODE_NOT_SERVED


def test_area_check_skips_pincode_rules():
    warehouse = _warehouse(always_open=False, pincodes=("560001",))

    decision = policy.evaluate(warehouse, _route(3.0), None, check_pincode=False)

    assert decision.can_deliver is True


def test_free_delivery_zone_is_independent_of_radius_check():
    warehouse = _warehouse(max_radius=5.0, free_radius=2.0)

    inside = policy.evaluate(warehouse, _route(1.5), None)
    outside = policy.evaluate(warehouse, _route(3.0), None)

    assert inside.can_deliver and inside.is_free_delivery_zone
    assert outside.can_deliver and not outside.is_free_delivery_zone


def test_check_eligibility_returns_none_when_distance_decides():
    warehouse = _warehouse(always_open=False, pincodes=("560001",))

    assert policy.check_eligibility(warehouse, "560001") is None
    assert policy.check_eligibility(warehouse, "560002").reason_code is ReasonCode.PINCODE_NOT_SERVED


def test_validate_delivery_settings_reports_inverted_radii_and_bad_pincodes():
    warehouse = _warehouse(always_open=False, pincodes=("560001", "56A001"), max_radius=2.0, free_radius=4.0)

    issues = policy.validate_delivery_settings(warehouse)

    assert any("exceeds" in issue for issue in issues)
    assert any("56A001" in issue for issue in issues)
    # reported, not enforced
    assert policy.evaluate(warehouse, _route(3.0), "560001").is_free_delivery_zone is True
