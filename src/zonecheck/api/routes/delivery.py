"""API routes for location-based delivery checks."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, TypeVar, Union

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ...schemas.delivery import (
    CartValidationRequest,
    CartValidationResponse,
    DeliveryChargeRequest,
    DeliveryChargeResponse,
    DeliveryProbeResponse,
    LocationCheckRequest,
    LocationCheckResponse,
)
from ...services.cancellation import CancelToken
from ...services.delivery.cart import CartDeliveryValidator, parse_cart_items
from ...services.delivery.errors import DeliveryRequestError, EvaluationCancelled, WarehouseNotFoundError
from ...services.delivery.quote import DeliveryChargeService
from ...services.delivery.resolver import DeliveryZoneResolver
from ...services.geospatial import coordinate_from_values
from ...services.outputs.delivery_formatter import (
    charge_to_response,
    probe_to_response,
    resolution_to_response,
    validation_to_response,
)

router = APIRouter(tags=["delivery"])

logger = logging.getLogger(__name__)

T = TypeVar("T")

# how often a running evaluation checks whether the client is still connected
DISCONNECT_POLL_SECONDS = 0.25

# non-standard status nginx uses for requests the client abandoned
CLIENT_CLOSED_REQUEST = 499


def get_zone_resolver() -> DeliveryZoneResolver:
    return DeliveryZoneResolver()


def get_cart_validator() -> CartDeliveryValidator:
    return CartDeliveryValidator()


def get_charge_service() -> DeliveryChargeService:
    return DeliveryChargeService()


def _internal_error(action: str, exc: Exception) -> HTTPException:
    logger.exception(f"Failed to {action}: {exc}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


def _client_gone(action: str) -> HTTPException:
    logger.info(f"Client disconnected, abandoned request to {action}")
    return HTTPException(status_code=CLIENT_CLOSED_REQUEST, detail="Client closed request")


async def run_until_disconnect(request: Request, work: Callable[[CancelToken], T]) -> T:
    """Run blocking ``work`` in a worker thread, cancelling its token if the client disconnects.

    ``work`` receives the token and is expected to hand it to the delivery
    services, which stop their in-flight routing calls once it is cancelled.
    """
    token = CancelToken()
    task = asyncio.ensure_future(asyncio.to_thread(work, token))
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info(f"Client disconnected from {request.url.path}, cancelling delivery evaluation")
                token.cancel()
                return await task
    finally:
        token.cancel()


@router.post("/location/check-delivery", response_model=LocationCheckResponse, status_code=status.HTTP_200_OK)
async def check_location_delivery(
    payload: LocationCheckRequest,
    request: Request,
    resolver: DeliveryZoneResolver = Depends(get_zone_resolver),
) -> LocationCheckResponse:
    """Which warehouses can deliver to a location (postal codes not considered)."""
    try:
        location = coordinate_from_values(payload.lat, payload.lng)
        resolution = await run_until_disconnect(
            request, lambda token: resolver.resolve(location, cancel_token=token)
        )
        return resolution_to_response(resolution)
    except DeliveryRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except EvaluationCancelled as exc:
        raise _client_gone("check delivery availability") from exc
    except Exception as exc:
        raise _internal_error("check delivery availability", exc) from exc


@router.post(
    "/location/validate-cart",
    response_model=Union[CartValidationResponse, DeliveryProbeResponse],
    status_code=status.HTTP_200_OK,
)
async def validate_cart_delivery(
    payload: CartValidationRequest,
    request: Request,
    validator: CartDeliveryValidator = Depends(get_cart_validator),
) -> CartValidationResponse | DeliveryProbeResponse:
    """Validate cart items against a delivery address.

    Without cart items this is a lighter availability probe that succeeds as
    soon as any warehouse in scope can deliver.
    """
    address = payload.delivery_address
    try:
        location = coordinate_from_values(address.lat, address.lng)
        items = parse_cart_items(payload.cart_items)
        if not items:
            probe = await run_until_disconnect(
                request,
                lambda token: validator.probe(
                    location, address.pincode, warehouse_ids=payload.warehouse_ids, cancel_token=token
                ),
            )
            return probe_to_response(probe, pincode=address.pincode)
        validation = await run_until_disconnect(
            request, lambda token: validator.validate(location, address.pincode, items, cancel_token=token)
        )
        return validation_to_response(validation, address=address.address)
    except DeliveryRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except EvaluationCancelled as exc:
        raise _client_gone("validate cart delivery") from exc
    except Exception as exc:
        raise _internal_error("validate cart delivery", exc) from exc


@router.post("/delivery/charge", response_model=DeliveryChargeResponse, status_code=status.HTTP_200_OK)
async def calculate_delivery_charge(
    payload: DeliveryChargeRequest,
    request: Request,
    service: DeliveryChargeService = Depends(get_charge_service),
) -> DeliveryChargeResponse:
    """Quote the delivery charge for a cart total from a warehouse or the nearest one."""
    try:
        location = coordinate_from_values(payload.lat, payload.lng)
        quote = await run_until_disconnect(
            request,
            lambda token: service.quote(
                location,
                payload.cart_total,
                warehouse_id=payload.warehouse_id,
                pincode=payload.pincode,
                cancel_token=token,
            ),
        )
        return charge_to_response(quote.warehouse, quote.route, quote.charge)
    except WarehouseNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except DeliveryRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except EvaluationCancelled as exc:
        raise _client_gone("calculate delivery charge") from exc
    except Exception as exc:
        raise _internal_error("calculate delivery charge", exc) from exc
