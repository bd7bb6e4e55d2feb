"""Customer endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...errors import MissingLocation, NotFound, ShopQueueError, http_error
from ...schemas.customers import CustomerLocationResponse
from ...schemas.shops import CoordinatesModel, LocationUpdateRequest
from ...services.geospatial import make_coordinate
from ..deps import CustomerId, ServicesDep

router = APIRouter(prefix="/customers", tags=["customers"])


@router.patch("/me/location", response_model=CustomerLocationResponse, status_code=status.HTTP_200_OK)
def update_customer_location(
    payload: LocationUpdateRequest, customer_id: CustomerId, services: ServicesDep
) -> CustomerLocationResponse:
    try:
        if payload.latitude is None or payload.longitude is None:
            raise MissingLocation("Latitude and longitude are required.")
        record = services.customers.record(customer_id, make_coordinate(payload.latitude, payload.longitude))
    except ShopQueueError as exc:
        raise http_error(exc) from exc
    return CustomerLocationResponse(
        customerId=record.customer_id,
        coordinates=CoordinatesModel(
            latitude=record.location.latitude, longitude=record.location.longitude
        ),
        recordedAt=record.recorded_at,
    )


@router.get("/me/location", response_model=CustomerLocationResponse, status_code=status.HTTP_200_OK)
def get_customer_location(customer_id: CustomerId, services: ServicesDep) -> CustomerLocationResponse:
    record = services.customers.get(customer_id)
    if record is None:
        raise http_error(NotFound("No location recorded for this customer."))
    return CustomerLocationResponse(
        customerId=record.customer_id,
        coordinates=CoordinatesModel(
            latitude=record.location.latitude, longitude=record.location.longitude
        ),
        recordedAt=record.recorded_at,
    )
